"""Configuration loading and validation for the deduplication pipeline."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from dotenv import load_dotenv

from .logger import get_logger
from .matcher import StrictMatcher

# Credentials for the AI service live in the environment or a local .env
load_dotenv()

logger = get_logger(__name__)

SCHEMA_FILE = "dedup.schema.json"
DEFAULT_TIMEZONE = "America/New_York"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or a required service is unconfigured."""

    pass


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class RuleSettings:
    """Rule-based pass configuration."""

    enabled: bool = True
    strategy: str = "strict"
    extra_rules: list[str] = field(default_factory=list)
    workers: int = 1


@dataclass
class AISettings:
    """AI confirmation pass configuration."""

    enabled: bool = True
    max_days: int | None = None
    delay_seconds: float = 0.5
    max_completion_tokens: int = 4000
    debug_dir: str | None = None

    def __post_init__(self):
        """Apply environment variable overrides."""
        max_days = _env_float("DEDUP_MAX_DAYS")
        if max_days is not None:
            logger.debug("Overriding ai.max_days from environment")
            if max_days < 1:
                raise ConfigurationError(f"DEDUP_MAX_DAYS must be at least 1, got {max_days:g}")
            self.max_days = int(max_days)

        delay = _env_float("DEDUP_DELAY")
        if delay is not None:
            logger.debug("Overriding ai.delay_seconds from environment")
            self.delay_seconds = delay

        debug_dir = os.environ.get("AI_DEDUP_DEBUG_DIR")
        if debug_dir:
            self.debug_dir = debug_dir


@dataclass
class StoreSettings:
    """Where the catalog lives and how deletions are batched."""

    content_dir: str = "content/events"
    batch_size: int = 50
    future_only: bool = True


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    timezone: str = DEFAULT_TIMEZONE
    filters_file: str = "config/default-filters.yaml"
    rules: RuleSettings = field(default_factory=RuleSettings)
    ai: AISettings = field(default_factory=AISettings)
    store: StoreSettings = field(default_factory=StoreSettings)

    def __post_init__(self):
        tz_override = os.environ.get("DEDUP_TIMEZONE")
        if tz_override:
            logger.debug(f"Overriding timezone from environment: {tz_override}")
            self.timezone = tz_override
        # Fail early on an unknown zone name
        self.tz

    @property
    def tz(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone: {self.timezone}") from e


def pipeline_config_from_dict(raw: dict | None) -> PipelineConfig:
    """Build a PipelineConfig from the parsed main config file."""
    raw = raw or {}
    rules_raw = raw.get("rules", {}) or {}
    ai_raw = raw.get("ai", {}) or {}
    store_raw = raw.get("store", {}) or {}

    rules = RuleSettings(
        enabled=rules_raw.get("enabled", True),
        strategy=rules_raw.get("strategy", "strict"),
        extra_rules=list(rules_raw.get("extra_rules", [])),
        workers=rules_raw.get("workers", 1),
    )
    if rules.strategy not in ("strict", "graded"):
        raise ConfigurationError(f"Unknown rules.strategy: {rules.strategy}")
    if rules.workers < 1:
        raise ConfigurationError("rules.workers must be at least 1")
    unknown = [r for r in rules.extra_rules if r not in StrictMatcher.EXTRA_RULES]
    if unknown:
        raise ConfigurationError(f"Unknown rules.extra_rules: {', '.join(unknown)}")

    ai = AISettings(
        enabled=ai_raw.get("enabled", True),
        max_days=ai_raw.get("max_days"),
        delay_seconds=ai_raw.get("delay_seconds", 0.5),
        max_completion_tokens=ai_raw.get("max_completion_tokens", 4000),
        debug_dir=ai_raw.get("debug_dir"),
    )

    store = StoreSettings(
        content_dir=store_raw.get("content_dir", "content/events"),
        batch_size=store_raw.get("batch_size", 50),
        future_only=store_raw.get("future_only", True),
    )
    if store.batch_size < 1:
        raise ConfigurationError("store.batch_size must be at least 1")

    return PipelineConfig(
        timezone=raw.get("timezone", DEFAULT_TIMEZONE),
        filters_file=raw.get("filters_file", "config/default-filters.yaml"),
        rules=rules,
        ai=ai,
        store=store,
    )


def load_pipeline_config(config_path: Path) -> PipelineConfig:
    """
    Load and validate the main configuration file.

    Args:
        config_path: Path to config.yaml

    Returns:
        PipelineConfig with validated configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Config file must contain a mapping")

    validate_config(raw_config, config_path.parent / "config")
    return pipeline_config_from_dict(raw_config)


def validate_config(config: dict, schema_dir: Path) -> None:
    """
    Validate configuration against the JSON Schema in ``schema_dir``.

    Raises:
        ConfigurationError: If validation fails
    """
    schema_path = schema_dir / SCHEMA_FILE

    if not schema_path.exists():
        logger.warning(f"Schema file not found: {schema_path}, skipping validation")
        return

    try:
        with open(schema_path, encoding="utf-8") as f:
            schema = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON schema: {e}") from e

    try:
        jsonschema.validate(instance=config, schema=schema)
    except jsonschema.ValidationError as e:
        path = " -> ".join(str(p) for p in e.absolute_path) if e.absolute_path else "root"
        raise ConfigurationError(f"Configuration validation failed at '{path}': {e.message}") from e

    logger.debug("Configuration validated against schema")
