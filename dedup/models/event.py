"""Event record and duplicate group models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

# Home timezone of the catalog; day buckets and prompt times use it
CATALOG_TZ = ZoneInfo("America/New_York")

# Sentinel stored by scrapers when no price could be found
UNKNOWN_PRICE = "Unknown"


class Confidence(str, Enum):
    """How certain a rule-based match is."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _parse_datetime(value, tz: ZoneInfo = CATALOG_TZ) -> datetime | None:
    """Parse an ISO string or datetime, attaching ``tz`` when naive."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value


@dataclass(frozen=True)
class EventRecord:
    """
    One catalog listing as supplied by the storage layer.

    Records are snapshots: the pipeline classifies them and recommends
    removals but never modifies them.
    """

    id: str
    title: str
    start_date: datetime
    source: str
    description: str | None = None
    organizer: str | None = None
    location: str | None = None
    price: str | None = None
    created_at: datetime | None = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Event id is required")
        if self.start_date is None:
            raise ValueError("Start date is required")
        if self.start_date.tzinfo is None:
            # frozen dataclass: bypass __setattr__ to normalize naive datetimes
            object.__setattr__(self, "start_date", self.start_date.replace(tzinfo=CATALOG_TZ))

    @property
    def has_known_price(self) -> bool:
        """True when a price is present and is not the "Unknown" sentinel."""
        return self.price is not None and self.price != UNKNOWN_PRICE

    @property
    def description_length(self) -> int:
        return len(self.description) if self.description else 0

    @classmethod
    def from_dict(cls, data: dict) -> "EventRecord":
        """
        Create a record from a storage row.

        Accepts both snake_case and the camelCase names used by the
        catalog's front matter (``startDate``, ``createdAt``).
        """
        start = data.get("start_date", data.get("startDate"))
        created = data.get("created_at", data.get("createdAt"))

        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", "") or "",
            start_date=_parse_datetime(start),
            source=data.get("source", "") or "",
            description=data.get("description"),
            organizer=data.get("organizer"),
            location=data.get("location"),
            price=data.get("price"),
            created_at=_parse_datetime(created),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start_date": self.start_date.isoformat(),
            "source": self.source,
            "description": self.description,
            "organizer": self.organizer,
            "location": self.location,
            "price": self.price,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class DuplicateGroup:
    """
    A cluster of records judged to be the same real-world event.

    ``keep`` survives; every record in ``remove`` is recommended for deletion.
    """

    keep: EventRecord
    remove: list[EventRecord] = field(default_factory=list)
    method: str = ""
    reason: str = ""
    confidence: Confidence = Confidence.HIGH

    @property
    def remove_ids(self) -> list[str]:
        return [record.id for record in self.remove]

    @property
    def members(self) -> list[EventRecord]:
        return [self.keep, *self.remove]

    def to_dict(self) -> dict:
        return {
            "keep": self.keep.id,
            "keep_title": self.keep.title,
            "remove": self.remove_ids,
            "remove_titles": [record.title for record in self.remove],
            "method": self.method,
            "reason": self.reason,
            "confidence": self.confidence.value,
        }
