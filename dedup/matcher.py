"""
Rule-based duplicate detection within day buckets.

Two strategies exist and are kept separate on purpose:

- ``StrictMatcher`` drives the catalog-wide sweep. Two records are
  duplicates when they share an organizer, start at the same minute and
  have at least one significant title word in common.
- ``GradedMatcher`` serves ad-hoc, day-scoped analysis. It grades pairs
  by exact title, organizer, source and shared words into confidence tiers.

Both are greedy: a record claimed by a group is not compared again in the
same pass. Matching is therefore not transitive, and a chain of three or
more listings of the same event can need a second pass to fully collapse.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from zoneinfo import ZoneInfo

from .bucketing import bucket_by_date, matchable_buckets
from .logger import get_logger
from .models.event import CATALOG_TZ, Confidence, DuplicateGroup, EventRecord
from .resolver import resolve_cluster
from .text import (
    longest_shared_run,
    normalize_organizer,
    shared_description_words,
    shared_words,
    titles_exact_match,
)

logger = get_logger(__name__)


def same_minute(first: EventRecord, second: EventRecord) -> bool:
    """True when both records start in the same minute (seconds ignored)."""
    a = first.start_date.timestamp() // 60
    b = second.start_date.timestamp() // 60
    return a == b


def same_organizer(first: EventRecord, second: EventRecord) -> bool:
    return normalize_organizer(first.organizer) == normalize_organizer(second.organizer)


def cross_source(first: EventRecord, second: EventRecord) -> bool:
    return first.source != second.source


class MatchStrategy(ABC):
    """Finds duplicate groups inside one day bucket."""

    name: str = ""

    @abstractmethod
    def match_bucket(self, records: Sequence[EventRecord]) -> list[DuplicateGroup]:
        """
        Return the duplicate groups found among ``records``.

        Records are compared in input order, and each record joins at
        most one group.
        """


class StrictMatcher(MatchStrategy):
    """
    Organizer + start time + shared title word matcher.

    Each unprocessed record seeds a cluster with every later unprocessed
    record it matches; the resolver then picks the survivor. Strict
    matches carry no confidence grading and are always tagged ``high``.

    Two extra rules can be enabled for feeds whose organizer names
    disagree:

    - ``exact_title_description``: same title, same start time and
      descriptions sharing 10+ significant words.
    - ``ordered_title_words``: same start time and a run of 4+ significant
      title words in the same order.
    """

    name = "strict"

    RULE_ORGANIZER_TIME_TITLE = "organizer_time_title"
    RULE_EXACT_TITLE_DESCRIPTION = "exact_title_description"
    RULE_ORDERED_TITLE_WORDS = "ordered_title_words"
    EXTRA_RULES = (RULE_EXACT_TITLE_DESCRIPTION, RULE_ORDERED_TITLE_WORDS)

    MIN_SHARED_TITLE_WORDS = 1
    MIN_SHARED_DESCRIPTION_WORDS = 10
    MIN_ORDERED_TITLE_WORDS = 4

    def __init__(self, extra_rules: Iterable[str] = ()):
        self.extra_rules = tuple(extra_rules)
        unknown = [rule for rule in self.extra_rules if rule not in self.EXTRA_RULES]
        if unknown:
            raise ValueError(f"Unknown strict matcher rule(s): {', '.join(unknown)}")

    def matching_rule(self, first: EventRecord, second: EventRecord) -> str | None:
        """Name of the first rule under which the pair is a duplicate, if any."""
        if not same_minute(first, second):
            return None

        if (
            same_organizer(first, second)
            and len(shared_words(first.title, second.title)) >= self.MIN_SHARED_TITLE_WORDS
        ):
            return self.RULE_ORGANIZER_TIME_TITLE

        if (
            self.RULE_EXACT_TITLE_DESCRIPTION in self.extra_rules
            and titles_exact_match(first.title, second.title)
            and shared_description_words(first.description, second.description)
            >= self.MIN_SHARED_DESCRIPTION_WORDS
        ):
            return self.RULE_EXACT_TITLE_DESCRIPTION

        if (
            self.RULE_ORDERED_TITLE_WORDS in self.extra_rules
            and longest_shared_run(first.title, second.title) >= self.MIN_ORDERED_TITLE_WORDS
        ):
            return self.RULE_ORDERED_TITLE_WORDS

        return None

    def is_duplicate(self, first: EventRecord, second: EventRecord) -> bool:
        return self.matching_rule(first, second) is not None

    def match_bucket(self, records: Sequence[EventRecord]) -> list[DuplicateGroup]:
        groups: list[DuplicateGroup] = []
        processed: set[str] = set()

        for i, seed in enumerate(records):
            if seed.id in processed:
                continue

            partners: list[EventRecord] = []
            rules: list[str] = []
            for other in records[i + 1 :]:
                if other.id in processed:
                    continue
                rule = self.matching_rule(seed, other)
                if rule:
                    partners.append(other)
                    rules.append(rule)
                    processed.add(other.id)

            if not partners:
                continue

            processed.add(seed.id)
            keep, remove = resolve_cluster([seed, *partners])
            groups.append(
                DuplicateGroup(
                    keep=keep,
                    remove=remove,
                    method=f"{self.name}:{rules[0]}",
                    reason=self._describe(seed, partners, rules),
                    confidence=Confidence.HIGH,
                )
            )
            logger.debug(
                "Strict match on '%s': %d duplicate(s) via %s",
                seed.title,
                len(partners),
                ", ".join(sorted(set(rules))),
            )

        return groups

    @staticmethod
    def _describe(seed: EventRecord, partners: list[EventRecord], rules: list[str]) -> str:
        if rules[0] == StrictMatcher.RULE_ORGANIZER_TIME_TITLE:
            words = set()
            for partner in partners:
                words |= shared_words(seed.title, partner.title)
            return f"Same organizer and start time, shared title words: {', '.join(sorted(words))}"
        if rules[0] == StrictMatcher.RULE_EXACT_TITLE_DESCRIPTION:
            return "Same title and start time with matching descriptions"
        return "Same start time with matching title word sequence"


class GradedMatcher(MatchStrategy):
    """
    Confidence-tiered matcher for ad-hoc analysis of a day.

    Start times are not compared. A pair is graded from four signals:
    exact title, same organizer (both present), cross-source and at least
    two shared significant title words. Only ``high`` and ``medium`` pairs
    are reported; the first such partner found for a record wins.
    """

    name = "graded"

    MIN_WORD_LENGTH = 4
    MIN_SHARED_WORDS = 2

    def classify(self, first: EventRecord, second: EventRecord) -> tuple[Confidence, str]:
        """Grade a pair and describe why."""
        exact_title = titles_exact_match(first.title, second.title)
        words = shared_words(first.title, second.title, self.MIN_WORD_LENGTH)
        significant = len(words) >= self.MIN_SHARED_WORDS
        organizer = bool(first.organizer and second.organizer) and same_organizer(
            first, second
        )
        cross = cross_source(first, second)

        if exact_title and (organizer or cross):
            return Confidence.HIGH, "exact title match"
        if significant and organizer and cross:
            return Confidence.HIGH, f"shares key words: {', '.join(sorted(words))}"
        if significant and (organizer or cross):
            return Confidence.MEDIUM, f"shares key words: {', '.join(sorted(words))}"
        return Confidence.LOW, ""

    def match_bucket(self, records: Sequence[EventRecord]) -> list[DuplicateGroup]:
        groups: list[DuplicateGroup] = []
        processed: set[str] = set()

        for i, first in enumerate(records):
            if first.id in processed:
                continue

            for second in records[i + 1 :]:
                if second.id in processed:
                    continue

                confidence, reason = self.classify(first, second)
                if confidence == Confidence.LOW:
                    continue

                keep, remove = resolve_cluster([first, second])
                groups.append(
                    DuplicateGroup(
                        keep=keep,
                        remove=remove,
                        method=self.name,
                        reason=reason,
                        confidence=confidence,
                    )
                )
                processed.update((first.id, second.id))
                # First match wins: ``first`` is not compared any further
                break

        return groups


def get_strategy(name: str, extra_rules: Iterable[str] = ()) -> MatchStrategy:
    """Build a strategy by name ("strict" or "graded")."""
    if name == StrictMatcher.name:
        return StrictMatcher(extra_rules=extra_rules)
    if name == GradedMatcher.name:
        return GradedMatcher()
    raise ValueError(f"Unknown match strategy: {name}")


def find_duplicates(
    records: Iterable[EventRecord],
    strategy: MatchStrategy,
    timezone: ZoneInfo = CATALOG_TZ,
    workers: int = 1,
) -> list[DuplicateGroup]:
    """
    Bucket records by day and run ``strategy`` over every bucket.

    Buckets share no state, so with ``workers > 1`` they are matched on a
    thread pool. Groups are always returned in date order, so the result
    does not depend on ``workers``.
    """
    buckets = matchable_buckets(bucket_by_date(records, timezone))
    if not buckets:
        return []

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                key: executor.submit(strategy.match_bucket, day)
                for key, day in buckets.items()
            }
            per_day = {key: future.result() for key, future in futures.items()}
    else:
        per_day = {key: strategy.match_bucket(day) for key, day in buckets.items()}

    groups: list[DuplicateGroup] = []
    for key, day_groups in per_day.items():
        if day_groups:
            logger.info(
                "%s: %d duplicate group(s) among %d events",
                key,
                len(day_groups),
                len(buckets[key]),
            )
        groups.extend(day_groups)
    return groups
