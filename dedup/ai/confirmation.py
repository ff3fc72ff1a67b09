"""
AI confirmation pass.

Runs over the records left after the rule-based pass, one calendar day at
a time. Days are processed sequentially with a pause between requests, and
a failure on one day is recorded without stopping the others.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from zoneinfo import ZoneInfo

from ..bucketing import bucket_by_date
from ..logger import get_logger
from ..models.event import CATALOG_TZ, EventRecord
from ..utils.rate_limit import RateLimiter
from .client import ChatResponse, TransientCallError
from .index_map import EphemeralIndexMap
from .parsing import parse_ai_response
from .prompt import SYSTEM_PROMPT, build_user_prompt

logger = get_logger(__name__)

RATE_LIMIT_KEY = "ai-dedup"
NOT_CONFIGURED_ERROR = "AI service not configured"
CLIENT_UNAVAILABLE_ERROR = "AI client not available"


class CompletionClient(Protocol):
    def complete(
        self, system_prompt: str, user_prompt: str, max_tokens: int = ...
    ) -> ChatResponse: ...


@dataclass
class AIDuplicateGroup:
    """Records the AI service flagged for removal, with its explanation."""

    remove: list[str]
    reason: str
    date: str = ""
    invalid_indices: list[int | float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "remove": self.remove,
            "reason": self.reason,
            "invalid_indices": self.invalid_indices,
        }


@dataclass
class DayResult:
    """Outcome of one day's request."""

    date: str
    event_count: int
    duplicates_found: int = 0
    groups: list[AIDuplicateGroup] = field(default_factory=list)
    tokens_used: int = 0
    error: str | None = None


@dataclass
class AIDeduplicationResult:
    """Aggregate outcome of the AI pass."""

    success: bool = True
    days_processed: int = 0
    total_duplicates_found: int = 0
    ids_to_remove: list[str] = field(default_factory=list)
    total_tokens_used: int = 0
    day_results: list[DayResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def groups(self) -> list[AIDuplicateGroup]:
        return [group for day in self.day_results for group in day.groups]


def _write_debug_file(debug_dir: str | None, name: str, content: str) -> None:
    if not debug_dir:
        return
    path = Path(debug_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
        (path / name).write_text(content, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not write debug file {name} to {debug_dir}: {e}")


def process_day(
    date: str,
    records: Sequence[EventRecord],
    client: CompletionClient | None,
    *,
    record_filter: Callable[[Sequence[EventRecord]], list[EventRecord]] | None = None,
    timezone: ZoneInfo = CATALOG_TZ,
    max_tokens: int = 4000,
    debug_dir: str | None = None,
) -> DayResult:
    """
    Ask the AI service which of one day's records are duplicates.

    The day's records are filtered, given ephemeral indices 1..N, sent as a
    single prompt, and the reply's indices are mapped back to record IDs.
    Service failures and unreadable replies are recorded on the result;
    this function does not raise for them.
    """
    candidates = list(record_filter(records)) if record_filter else list(records)
    result = DayResult(date=date, event_count=len(candidates))

    if len(candidates) < 2:
        return result

    if client is None:
        result.error = CLIENT_UNAVAILABLE_ERROR
        return result

    try:
        index_map = EphemeralIndexMap(candidates)
    except ValueError as e:
        logger.error(f"Skipping {date}: {e}")
        result.error = str(e)
        return result

    user_prompt = build_user_prompt(date, candidates, index_map, timezone)
    _write_debug_file(
        debug_dir,
        f"input-{date}.txt",
        f"SYSTEM PROMPT:\n{SYSTEM_PROMPT}\n\nUSER PROMPT:\n{user_prompt}",
    )

    try:
        response = client.complete(SYSTEM_PROMPT, user_prompt, max_tokens=max_tokens)
    except TransientCallError as e:
        logger.error(f"Error processing {date}: {e}")
        result.error = str(e)
        return result
    except Exception as e:
        logger.error(f"Unexpected error processing {date}: {e}")
        result.error = str(e) or type(e).__name__
        return result

    _write_debug_file(debug_dir, f"output-{date}.txt", response.content)
    result.tokens_used = response.usage.total_tokens

    parsed = parse_ai_response(response.content)
    if not parsed.ok:
        logger.warning(f"{date}: unreadable AI reply, no duplicates taken from this day")
        return result

    for group in parsed.groups:
        resolved = index_map.resolve_group(group.remove)
        if resolved.record_ids:
            result.groups.append(
                AIDuplicateGroup(
                    remove=resolved.record_ids,
                    reason=group.reason,
                    date=date,
                    invalid_indices=resolved.invalid_indices,
                )
            )

    result.duplicates_found = sum(len(g.remove) for g in result.groups)
    return result


def run_ai_deduplication(
    records: Sequence[EventRecord],
    client: CompletionClient | None,
    *,
    max_days: int | None = None,
    delay_seconds: float = 0.5,
    timezone: ZoneInfo = CATALOG_TZ,
    record_filter: Callable[[Sequence[EventRecord]], list[EventRecord]] | None = None,
    max_tokens: int = 4000,
    debug_dir: str | None = None,
    should_stop: Callable[[], bool] | None = None,
    rate_limiter: RateLimiter | None = None,
) -> AIDeduplicationResult:
    """
    Run the AI pass over every day with two or more records.

    Args:
        records: Records remaining after the rule-based pass
        client: Completion client, or ``None`` when the service is unconfigured
        max_days: Stop after this many days have been sent
        delay_seconds: Pause between two days' requests
        timezone: Timezone used for day buckets and prompt times
        record_filter: Drops low-quality records before a day is sent
        max_tokens: Completion token budget per request
        debug_dir: If set, prompts and replies are written there per day
        should_stop: Checked between days; a true value ends the pass early
        rate_limiter: Limiter to share (a new one is built from delay_seconds)

    Returns:
        AIDeduplicationResult. An unconfigured service yields
        ``success=False`` with an explanatory error and no removals.
    """
    result = AIDeduplicationResult()

    if client is None:
        result.success = False
        result.errors.append(NOT_CONFIGURED_ERROR)
        logger.warning("AI service not configured, skipping AI deduplication")
        return result

    limiter = rate_limiter or RateLimiter(default_delay=delay_seconds)
    buckets = bucket_by_date(records, timezone)
    logger.info(f"Processing {len(buckets)} dates with {len(records)} total events")

    for date, day_records in buckets.items():
        if max_days is not None and result.days_processed >= max_days:
            logger.info(f"Reached max days limit ({max_days})")
            break
        if should_stop and should_stop():
            logger.warning(f"Stopping AI pass early after {result.days_processed} days")
            break
        if len(day_records) < 2:
            continue

        logger.info(f"Processing {date}: {len(day_records)} events")
        limiter.wait(RATE_LIMIT_KEY)
        day = process_day(
            date,
            day_records,
            client,
            record_filter=record_filter,
            timezone=timezone,
            max_tokens=max_tokens,
            debug_dir=debug_dir,
        )
        limiter.mark(RATE_LIMIT_KEY)

        result.day_results.append(day)
        result.days_processed += 1
        result.total_tokens_used += day.tokens_used

        if day.error:
            result.errors.append(f"{date}: {day.error}")

        if day.duplicates_found:
            result.total_duplicates_found += day.duplicates_found
            titles = {r.id: r for r in day_records}
            logger.info(f"Found {day.duplicates_found} to remove on {date}")
            for group in day.groups:
                result.ids_to_remove.extend(group.remove)
                for record_id in group.remove:
                    record = titles[record_id]
                    logger.info(f'  - Remove: "{record.title}" ({record.source})')
                logger.info(f"    Reason: {group.reason}")

    logger.info(
        f"AI pass complete: {result.total_duplicates_found} duplicates found "
        f"across {result.days_processed} days, {result.total_tokens_used} tokens used"
    )
    return result
