"""Tests for the logging module."""

import json
import logging

import pytest

from dedup.logger import (
    COLORS,
    DEFAULT_BACKUP_COUNT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_BYTES,
    ROOT_LOGGER_NAME,
    ColorFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def _record(level=logging.INFO, msg="Test message", args=(), exc_info=None, name="test"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestColorFormatter:
    """Tests for the ColorFormatter class."""

    def test_format_adds_color_codes(self):
        result = ColorFormatter("%(levelname)s: %(message)s").format(_record())
        assert COLORS["INFO"] in result
        assert COLORS["RESET"] in result
        assert "Test message" in result

    def test_format_preserves_original_level_name(self):
        record = _record(level=logging.WARNING)
        ColorFormatter("%(levelname)s: %(message)s").format(record)
        assert record.levelname == "WARNING"

    @pytest.mark.parametrize(
        "level,color",
        [
            (logging.DEBUG, COLORS["DEBUG"]),
            (logging.WARNING, COLORS["WARNING"]),
            (logging.ERROR, COLORS["ERROR"]),
        ],
    )
    def test_format_uses_correct_color_for_level(self, level, color):
        assert color in ColorFormatter("%(levelname)s").format(_record(level=level))


class TestJSONFormatter:
    """Tests for the JSONFormatter class."""

    def test_required_fields(self):
        data = json.loads(JSONFormatter().format(_record(name="dedup.pipeline")))
        assert data["level"] == "INFO"
        assert data["logger"] == "dedup.pipeline"
        assert data["message"] == "Test message"
        assert data["timestamp"].endswith("Z")

    def test_message_args(self):
        record = _record(msg="%s: %d events", args=("2025-03-14", 5))
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "2025-03-14: 5 events"

    def test_extra_fields(self):
        record = _record()
        record.date = "2025-03-14"
        record.tokens = 321
        data = json.loads(JSONFormatter().format(record))
        assert data["extra"] == {"date": "2025-03-14", "tokens": 321}

    def test_exception_info(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            import sys

            exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(_record(level=logging.ERROR, exc_info=exc_info)))
        assert "ValueError" in data["exception"]
        assert "extra" not in data


class TestSetupLogging:
    """Tests for the setup_logging function."""

    def test_defaults(self):
        assert DEFAULT_LOG_LEVEL == "INFO"
        assert DEFAULT_MAX_BYTES == 10 * 1024 * 1024
        assert DEFAULT_BACKUP_COUNT == 5

    def test_sets_level(self):
        logger = setup_logging(level="DEBUG")
        assert logger.name == ROOT_LOGGER_NAME
        assert logger.level == logging.DEBUG

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_text_file_handler(self, tmp_path):
        setup_logging(log_file="dedup.log", log_dir=tmp_path / "logs")
        get_logger("dedup.test").info("hello file")

        content = (tmp_path / "logs" / "dedup.log").read_text()
        assert "hello file" in content
        assert "dedup.test" in content

    def test_json_file_handler(self, tmp_path):
        setup_logging(log_file="dedup.log", log_dir=tmp_path, log_format="json")
        get_logger("dedup.test").warning("as json")

        line = (tmp_path / "dedup.log").read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "as json"

    def test_child_loggers_share_handlers(self):
        setup_logging()
        assert get_logger("dedup.matcher").parent.name.startswith(ROOT_LOGGER_NAME)
