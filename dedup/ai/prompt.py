"""Prompt construction for the AI duplicate confirmation pass."""

import json
from collections.abc import Sequence
from zoneinfo import ZoneInfo

from ..models.event import CATALOG_TZ, UNKNOWN_PRICE, EventRecord
from .index_map import EphemeralIndexMap

MAX_DESCRIPTION_CHARS = 300
ELLIPSIS = "..."
NO_DESCRIPTION = "No description"

SYSTEM_PROMPT = """You identify duplicate event listings. Analyze events on the same day and return the numeric IDs of duplicates to REMOVE.

DUPLICATES are the same real-world event listed multiple times:
- Same event at same venue with different titles
- Same performer at same venue from different sources
- Titles that are variations of each other at same time/venue

NOT DUPLICATES:
- Different events at same venue (different times, 2+ hours apart)
- Similar events at different venues

When duplicates exist, REMOVE the one with:
- "Unknown" price (keep the one with known price)
- Less complete title/description
- Aggregator source (keep venue/primary source)

Be conservative - only flag clear duplicates.

Respond with ONLY valid JSON (no markdown):
{"duplicates":[{"remove":[1,2],"reason":"brief reason"}]}

If no duplicates: {"duplicates":[]}"""


def format_time_of_day(record: EventRecord, timezone: ZoneInfo = CATALOG_TZ) -> str:
    """Local start time as "7:30 PM"."""
    local = record.start_date.astimezone(timezone)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def truncate_description(description: str | None) -> str:
    if not description:
        return NO_DESCRIPTION
    if len(description) > MAX_DESCRIPTION_CHARS:
        return description[:MAX_DESCRIPTION_CHARS] + ELLIPSIS
    return description


def format_event_line(
    record: EventRecord, index: int, timezone: ZoneInfo = CATALOG_TZ
) -> str:
    """One record as a compact JSON object referencing its ephemeral index."""
    return json.dumps(
        {
            "id": index,
            "title": record.title,
            "description": truncate_description(record.description),
            "organizer": record.organizer or "Unknown",
            "location": record.location or "Unknown",
            "time": format_time_of_day(record, timezone),
            "price": record.price or UNKNOWN_PRICE,
            "source": record.source,
        },
        ensure_ascii=False,
        separators=(",", ":"),
    )


def build_user_prompt(
    date: str,
    records: Sequence[EventRecord],
    index_map: EphemeralIndexMap,
    timezone: ZoneInfo = CATALOG_TZ,
) -> str:
    lines = "\n".join(
        format_event_line(record, index_map.index_of(record.id), timezone)
        for record in records
    )
    return f"Here are {len(records)} events on {date}. Identify any duplicates:\n\n{lines}"
