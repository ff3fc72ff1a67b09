"""Short per-day integer IDs for records sent to the AI service."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..logger import get_logger
from ..models.event import EventRecord

logger = get_logger(__name__)


class ValidationError(ValueError):
    """Raised when an index from the AI reply has no record behind it."""


@dataclass
class ResolvedGroup:
    """Record IDs recovered from one reply group, plus the indices that were dropped."""

    record_ids: list[str] = field(default_factory=list)
    invalid_indices: list[int | float] = field(default_factory=list)


class EphemeralIndexMap:
    """
    Bijection between ``1..N`` and the record IDs of one day.

    Prompts reference records by these small integers instead of their
    durable IDs. A map is built for a single day's request and discarded
    once the reply has been mapped back.

    Raises:
        ValueError: If two records share an ID
    """

    def __init__(self, records: Sequence[EventRecord]):
        self._index_to_id: dict[int, str] = {}
        self._id_to_index: dict[str, int] = {}
        for index, record in enumerate(records, 1):
            if record.id in self._id_to_index:
                raise ValueError(f"Duplicate record id in one day: {record.id}")
            self._index_to_id[index] = record.id
            self._id_to_index[record.id] = index

    def __len__(self) -> int:
        return len(self._index_to_id)

    def index_of(self, record_id: str) -> int:
        return self._id_to_index[record_id]

    def record_id(self, index) -> str:
        """
        Map one index back to its record ID.

        Raises:
            ValidationError: If ``index`` is not an index of this day
        """
        if isinstance(index, bool) or not isinstance(index, (int, float)):
            raise ValidationError(f"Index {index!r} is not a number")
        try:
            return self._index_to_id[index]
        except KeyError:
            raise ValidationError(f"Index {index!r} does not map to an event") from None

    def resolve_group(self, indices: Iterable) -> ResolvedGroup:
        """
        Map a reply group's indices to record IDs.

        Unknown indices are dropped one by one; the rest of the group is kept.
        """
        resolved = ResolvedGroup()
        for index in indices:
            try:
                record_id = self.record_id(index)
            except ValidationError:
                resolved.invalid_indices.append(index)
                continue
            if record_id not in resolved.record_ids:
                resolved.record_ids.append(record_id)

        if resolved.invalid_indices:
            logger.warning(
                "Invalid indices in AI reply group: %s",
                ", ".join(str(i) for i in resolved.invalid_indices),
            )
        return resolved
