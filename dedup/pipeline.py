"""
Deduplication pipeline.

Runs the rule-based pass over the whole snapshot, then the AI pass over
what the rules left, and merges both removal lists into one report.
Nothing is deleted here; ``apply_removals`` is called separately once the
report exists.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol
from zoneinfo import ZoneInfo

from .ai.confirmation import (
    AIDuplicateGroup,
    CompletionClient,
    run_ai_deduplication,
)
from .config import PipelineConfig
from .filters import DefaultFilter
from .logger import get_logger
from .matcher import MatchStrategy, find_duplicates, get_strategy
from .models.event import CATALOG_TZ, DuplicateGroup, EventRecord
from .resolver import ids_to_remove
from .utils.rate_limit import RateLimiter

logger = get_logger(__name__)


class EventStore(Protocol):
    def delete_events(self, ids: Iterable[str], batch_size: int = ...) -> int: ...


@dataclass
class RuleBasedResult:
    groups: list[DuplicateGroup] = field(default_factory=list)
    remove_ids: list[str] = field(default_factory=list)


@dataclass
class DedupReport:
    """Everything a run decided, ready to print or apply."""

    events_analyzed: int = 0
    remove_ids: list[str] = field(default_factory=list)
    groups: list[DuplicateGroup] = field(default_factory=list)
    ai_groups: list[AIDuplicateGroup] = field(default_factory=list)
    tokens_used: int = 0
    errors: list[str] = field(default_factory=list)
    days_processed: int = 0
    ai_success: bool | None = None  # None when the AI pass was skipped

    @property
    def duplicates_found(self) -> int:
        return len(self.remove_ids)

    @property
    def rule_removals(self) -> int:
        return sum(len(group.remove) for group in self.groups)

    @property
    def ai_removals(self) -> int:
        return sum(len(group.remove) for group in self.ai_groups)

    def to_dict(self) -> dict:
        return {
            "events_analyzed": self.events_analyzed,
            "duplicates_found": self.duplicates_found,
            "remove_ids": self.remove_ids,
            "groups": [group.to_dict() for group in self.groups],
            "ai_groups": [group.to_dict() for group in self.ai_groups],
            "tokens_used": self.tokens_used,
            "days_processed": self.days_processed,
            "ai_success": self.ai_success,
            "errors": self.errors,
        }


def run_rule_based(
    records: Sequence[EventRecord],
    strategy: MatchStrategy,
    timezone: ZoneInfo = CATALOG_TZ,
    workers: int = 1,
) -> RuleBasedResult:
    groups = find_duplicates(records, strategy, timezone=timezone, workers=workers)
    remove_ids = ids_to_remove(groups)
    logger.info(
        f"Rule-based pass ({strategy.name}): {len(groups)} groups, "
        f"{len(remove_ids)} events to remove"
    )
    return RuleBasedResult(groups=groups, remove_ids=remove_ids)


def run_pipeline(
    records: Sequence[EventRecord],
    config: PipelineConfig,
    client: CompletionClient | None,
    *,
    record_filter: Callable[[Sequence[EventRecord]], list[EventRecord]] | None = None,
    should_stop: Callable[[], bool] | None = None,
    rate_limiter: RateLimiter | None = None,
) -> DedupReport:
    """
    Run both passes over a snapshot of the catalog.

    Args:
        records: The snapshot
        config: Pipeline configuration (strategy, AI limits, timezone)
        client: AI completion client, or ``None`` if unconfigured
        record_filter: Filter applied to each day before the AI pass
            (defaults to the built-in blocked keyword list)
        should_stop: Checked between AI days to end the run early
        rate_limiter: Limiter for AI requests

    Returns:
        DedupReport. ``remove_ids`` holds the rule removals followed by the
        AI removals, each ID once.
    """
    tz = config.tz
    report = DedupReport(events_analyzed=len(records))
    removed: set[str] = set()

    if config.rules.enabled:
        strategy = get_strategy(config.rules.strategy, config.rules.extra_rules)
        rules = run_rule_based(records, strategy, timezone=tz, workers=config.rules.workers)
        report.groups = rules.groups
        report.remove_ids.extend(rules.remove_ids)
        removed.update(rules.remove_ids)
    else:
        logger.info("Rule-based pass disabled")

    if not config.ai.enabled:
        logger.info("AI pass disabled")
        return report

    remaining = [record for record in records if record.id not in removed]
    logger.info(f"AI pass over {len(remaining)} remaining events")

    ai_result = run_ai_deduplication(
        remaining,
        client,
        max_days=config.ai.max_days,
        delay_seconds=config.ai.delay_seconds,
        timezone=tz,
        record_filter=record_filter or DefaultFilter(),
        max_tokens=config.ai.max_completion_tokens,
        debug_dir=config.ai.debug_dir,
        should_stop=should_stop,
        rate_limiter=rate_limiter,
    )

    report.ai_success = ai_result.success
    report.ai_groups = ai_result.groups
    report.tokens_used = ai_result.total_tokens_used
    report.days_processed = ai_result.days_processed
    report.errors.extend(ai_result.errors)

    for record_id in ai_result.ids_to_remove:
        if record_id not in removed:
            removed.add(record_id)
            report.remove_ids.append(record_id)

    logger.info(
        f"Pipeline complete: {report.duplicates_found} events to remove "
        f"({report.rule_removals} rule-based, {report.ai_removals} AI)"
    )
    return report


def apply_removals(store: EventStore, ids: Sequence[str], batch_size: int = 50) -> int:
    """Delete ``ids`` from ``store`` in batches; returns the deleted count."""
    if not ids:
        logger.info("Nothing to delete")
        return 0
    logger.info(f"Deleting {len(ids)} events in batches of {batch_size}")
    return store.delete_events(ids, batch_size=batch_size)
