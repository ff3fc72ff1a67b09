"""Group event records by the local calendar date they start on."""

from collections.abc import Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

from .models.event import CATALOG_TZ, EventRecord

DATE_KEY_FORMAT = "%Y-%m-%d"


def date_key(start: datetime, timezone: ZoneInfo = CATALOG_TZ) -> str:
    """Return the ``YYYY-MM-DD`` key of ``start`` in ``timezone``."""
    return start.astimezone(timezone).strftime(DATE_KEY_FORMAT)


def bucket_by_date(
    records: Iterable[EventRecord], timezone: ZoneInfo = CATALOG_TZ
) -> dict[str, list[EventRecord]]:
    """
    Partition records into day buckets.

    Keys are sorted ascending; inside a bucket records keep their input
    order. Single-record buckets are kept so every record lands in exactly
    one bucket; callers skip them when matching.
    """
    buckets: dict[str, list[EventRecord]] = {}
    for record in records:
        buckets.setdefault(date_key(record.start_date, timezone), []).append(record)
    return {key: buckets[key] for key in sorted(buckets)}


def matchable_buckets(
    buckets: dict[str, list[EventRecord]],
) -> dict[str, list[EventRecord]]:
    """Only the buckets that can contain a duplicate (two or more records)."""
    return {key: day for key, day in buckets.items() if len(day) >= 2}
