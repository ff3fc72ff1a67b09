"""Data models for the deduplication pipeline."""

from .event import CATALOG_TZ, UNKNOWN_PRICE, Confidence, DuplicateGroup, EventRecord

__all__ = [
    "CATALOG_TZ",
    "Confidence",
    "DuplicateGroup",
    "EventRecord",
    "UNKNOWN_PRICE",
]
