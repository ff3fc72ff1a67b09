"""Event catalog deduplication - rule-based matching with AI confirmation."""

from .matcher import GradedMatcher, StrictMatcher, find_duplicates
from .models import Confidence, DuplicateGroup, EventRecord
from .pipeline import DedupReport, apply_removals, run_pipeline
from .resolver import choose_to_keep, resolve_cluster

__version__ = "1.0.0"

__all__ = [
    "Confidence",
    "DedupReport",
    "DuplicateGroup",
    "EventRecord",
    "GradedMatcher",
    "StrictMatcher",
    "apply_removals",
    "choose_to_keep",
    "find_duplicates",
    "resolve_cluster",
    "run_pipeline",
]
