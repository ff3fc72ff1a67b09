"""Pick the surviving record of a duplicate cluster."""

from collections.abc import Iterable, Sequence

from .logger import get_logger
from .models.event import DuplicateGroup, EventRecord

logger = get_logger(__name__)


def _created_timestamp(record: EventRecord) -> float:
    # Missing ingestion time sorts as the oldest possible record
    return record.created_at.timestamp() if record.created_at else float("-inf")


def choose_to_keep(first: EventRecord, second: EventRecord) -> EventRecord:
    """
    Return the record to keep out of two duplicates.

    Tie-break chain, applied in order until one criterion discriminates:
    1. A known price beats a missing or "Unknown" price.
    2. The longer description wins.
    3. The more recent ``created_at`` wins.

    On a full tie the first argument is returned, so the result is
    deterministic but depends on argument order in that case only.
    """
    if first.has_known_price != second.has_known_price:
        return first if first.has_known_price else second

    if first.description_length != second.description_length:
        return first if first.description_length > second.description_length else second

    return first if _created_timestamp(first) >= _created_timestamp(second) else second


def resolve_cluster(records: Sequence[EventRecord]) -> tuple[EventRecord, list[EventRecord]]:
    """
    Fold a cluster pairwise into one survivor and a list of losers.

    The first record starts as the survivor and is compared with each
    following record in turn. The fold is order-sensitive on exact ties:
    reordering a cluster whose members tie on price, description length and
    ``created_at`` can change which one survives.
    """
    if not records:
        raise ValueError("Cannot resolve an empty cluster")

    keep = records[0]
    remove: list[EventRecord] = []
    for candidate in records[1:]:
        winner = choose_to_keep(keep, candidate)
        if winner is candidate:
            remove.append(keep)
            keep = candidate
        else:
            remove.append(candidate)

    logger.debug(
        "Resolved cluster of %d: keeping %s (%s)", len(records), keep.id, keep.title
    )
    return keep, remove


def ids_to_remove(groups: Iterable[DuplicateGroup]) -> list[str]:
    """Flatten the losers of every group into a list of record IDs."""
    ids: list[str] = []
    for group in groups:
        ids.extend(group.remove_ids)
    return ids
