"""Shared fixtures for the deduplication tests."""

from datetime import datetime
from itertools import count

import pytest

from dedup.models.event import CATALOG_TZ, EventRecord


@pytest.fixture
def make_record():
    """Factory building EventRecords with sensible defaults."""
    ids = count(1)

    def _make(
        title: str = "Jazz Night",
        start: datetime | None = None,
        source: str = "feed-a",
        **kwargs,
    ) -> EventRecord:
        record_id = kwargs.pop("id", None) or f"evt-{next(ids)}"
        return EventRecord(
            id=record_id,
            title=title,
            start_date=start or datetime(2025, 3, 14, 19, 30, tzinfo=CATALOG_TZ),
            source=source,
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep local overrides and credentials out of the tests."""
    for name in (
        "DEDUP_TIMEZONE",
        "DEDUP_MAX_DAYS",
        "DEDUP_DELAY",
        "AI_DEDUP_DEBUG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
