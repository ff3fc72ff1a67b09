"""Tests for the rule-based matcher strategies."""

from datetime import datetime, timezone
from itertools import permutations

import pytest

from dedup.matcher import (
    GradedMatcher,
    StrictMatcher,
    cross_source,
    find_duplicates,
    get_strategy,
    same_minute,
    same_organizer,
)
from dedup.models.event import CATALOG_TZ, Confidence
from dedup.resolver import ids_to_remove

SEVEN_THIRTY = datetime(2025, 3, 14, 19, 30, tzinfo=CATALOG_TZ)


class TestPredicates:
    """Tests for the pairwise predicates."""

    def test_same_minute_ignores_seconds(self, make_record):
        a = make_record(start=SEVEN_THIRTY.replace(second=5))
        b = make_record(start=SEVEN_THIRTY.replace(second=55))
        assert same_minute(a, b)

    def test_different_minute(self, make_record):
        a = make_record(start=SEVEN_THIRTY)
        b = make_record(start=SEVEN_THIRTY.replace(minute=31))
        assert not same_minute(a, b)

    def test_same_minute_across_timezones(self, make_record):
        a = make_record(start=SEVEN_THIRTY)
        b = make_record(start=datetime(2025, 3, 14, 23, 30, tzinfo=timezone.utc))
        assert same_minute(a, b)

    def test_same_organizer_normalizes(self, make_record):
        a = make_record(organizer="The Blue Room!")
        b = make_record(organizer="the blue  room")
        assert same_organizer(a, b)

    def test_cross_source(self, make_record):
        assert cross_source(make_record(source="a"), make_record(source="b"))
        assert not cross_source(make_record(source="a"), make_record(source="a"))


class TestStrictMatcher:
    """Tests for the strict (catalog-wide) matcher."""

    def test_scenario_same_organizer_identical_title(self, make_record):
        unpriced = make_record(
            title="Jazz Night", organizer="Blue Room", source="feed-a", price="Unknown"
        )
        priced = make_record(
            title="JAZZ NIGHT", organizer="blue room", source="feed-b", price="$15"
        )

        groups = StrictMatcher().match_bucket([unpriced, priced])

        assert len(groups) == 1
        assert groups[0].keep is priced
        assert groups[0].remove == [unpriced]
        assert groups[0].confidence == Confidence.HIGH
        assert groups[0].method == "strict:organizer_time_title"

    def test_one_shared_word_is_enough(self, make_record):
        a = make_record(title="Jazz Brunch", organizer="Blue Room")
        b = make_record(title="Sunday Jazz", organizer="Blue Room")
        assert StrictMatcher().is_duplicate(a, b)

    def test_different_start_time_not_duplicate(self, make_record):
        a = make_record(organizer="Blue Room")
        b = make_record(organizer="Blue Room", start=SEVEN_THIRTY.replace(hour=21))
        assert not StrictMatcher().is_duplicate(a, b)

    def test_different_organizer_not_duplicate(self, make_record):
        a = make_record(organizer="Blue Room")
        b = make_record(organizer="Red Room")
        assert not StrictMatcher().is_duplicate(a, b)

    def test_no_shared_words_not_duplicate(self, make_record):
        a = make_record(title="Poetry Slam", organizer="Blue Room")
        b = make_record(title="Chess Club", organizer="Blue Room")
        assert not StrictMatcher().is_duplicate(a, b)

    def test_predicate_is_symmetric(self, make_record):
        records = [
            make_record(title="Jazz Night", organizer="Blue Room"),
            make_record(title="Late Jazz", organizer="blue room"),
            make_record(title="Jazz Night", organizer="Red Room"),
            make_record(title="Open Mic", organizer=None),
            make_record(title="Open Mic Night", organizer=None),
            make_record(title="Jazz Night", start=SEVEN_THIRTY.replace(minute=45)),
        ]
        matcher = StrictMatcher(extra_rules=StrictMatcher.EXTRA_RULES)
        for a, b in permutations(records, 2):
            assert matcher.is_duplicate(a, b) == matcher.is_duplicate(b, a)

    def test_seed_collects_every_match(self, make_record):
        records = [
            make_record(title="Jazz Night", organizer="Blue Room", source="a"),
            make_record(title="Jazz Night Live", organizer="Blue Room", source="b"),
            make_record(title="Night of Jazz", organizer="Blue Room", source="c"),
        ]

        groups = StrictMatcher().match_bucket(records)

        assert len(groups) == 1
        assert len(groups[0].members) == 3

    def test_chain_needs_second_pass(self, make_record):
        # a~b and b~c, but a and c share no title word
        a = make_record(title="Jazz Night", organizer="Blue Room")
        b = make_record(title="Night Market", organizer="Blue Room", price="$5")
        c = make_record(title="Market Tour", organizer="Blue Room")
        matcher = StrictMatcher()

        first_pass = matcher.match_bucket([a, b, c])
        assert len(first_pass) == 1
        assert first_pass[0].keep is b

        survivors = [r for r in (a, b, c) if r.id not in ids_to_remove(first_pass)]
        second_pass = matcher.match_bucket(survivors)
        assert len(second_pass) == 1
        assert {r.id for r in second_pass[0].members} == {b.id, c.id}

    def test_extra_rules_disabled_by_default(self, make_record):
        a = make_record(title="Freshen Up Comedy Open Mic", organizer="VOWL Bar")
        b = make_record(title="Freshen Up Comedy Open Mic at VOWL Bar", organizer="Freshen Up")
        assert StrictMatcher().matching_rule(a, b) is None

    def test_ordered_title_words_rule(self, make_record):
        a = make_record(title="Freshen Up Comedy Open Mic", organizer="VOWL Bar")
        b = make_record(title="Freshen Up Comedy Open Mic at VOWL Bar", organizer="Freshen Up")
        matcher = StrictMatcher(extra_rules=[StrictMatcher.RULE_ORDERED_TITLE_WORDS])
        assert matcher.matching_rule(a, b) == StrictMatcher.RULE_ORDERED_TITLE_WORDS

    def test_exact_title_description_rule(self, make_record):
        description = (
            "Join local musicians for an evening of improvised jazz standards, "
            "bebop classics, smooth ballads and late night jam sessions downtown"
        )
        a = make_record(title="Jazz Night", organizer="Blue Room", description=description)
        b = make_record(title="jazz night", organizer="Downtown Arts", description=description)
        matcher = StrictMatcher(extra_rules=[StrictMatcher.RULE_EXACT_TITLE_DESCRIPTION])

        groups = matcher.match_bucket([a, b])

        assert len(groups) == 1
        assert groups[0].method == "strict:exact_title_description"

    def test_unknown_extra_rule(self):
        with pytest.raises(ValueError, match="Unknown strict matcher rule"):
            StrictMatcher(extra_rules=["fuzzy"])


class TestGradedMatcher:
    """Tests for the confidence-tiered matcher."""

    def test_scenario_two_shared_words_cross_source_is_medium(self, make_record):
        a = make_record(title="Friday Jazz Night", organizer="Blue Room", source="a")
        b = make_record(title="Jazz Night Downtown", organizer="Jazz Society", source="b")

        confidence, reason = GradedMatcher().classify(a, b)

        assert confidence == Confidence.MEDIUM
        assert reason == "shares key words: jazz, night"

    def test_exact_title_cross_source_is_high(self, make_record):
        a = make_record(title="Jazz Night", source="a")
        b = make_record(title="jazz night", source="b")
        assert GradedMatcher().classify(a, b) == (Confidence.HIGH, "exact title match")

    def test_shared_words_same_organizer_cross_source_is_high(self, make_record):
        a = make_record(title="Friday Jazz Night", organizer="Blue Room", source="a")
        b = make_record(title="Jazz Night Downtown", organizer="Blue Room", source="b")
        confidence, _ = GradedMatcher().classify(a, b)
        assert confidence == Confidence.HIGH

    def test_same_source_different_organizer_is_low(self, make_record):
        a = make_record(title="Friday Jazz Night", organizer="Blue Room", source="a")
        b = make_record(title="Jazz Night Downtown", organizer="Red Room", source="a")
        confidence, _ = GradedMatcher().classify(a, b)
        assert confidence == Confidence.LOW

    def test_missing_organizers_do_not_count_as_same(self, make_record):
        a = make_record(title="Friday Jazz Night", organizer=None, source="a")
        b = make_record(title="Jazz Night Downtown", organizer=None, source="a")
        confidence, _ = GradedMatcher().classify(a, b)
        assert confidence == Confidence.LOW

    def test_three_letter_words_ignored(self, make_record):
        # "mic" and "bar" are below the graded word length
        a = make_record(title="Mic Bar Night", source="a")
        b = make_record(title="Mic Bar Show", source="b")
        confidence, _ = GradedMatcher().classify(a, b)
        assert confidence == Confidence.LOW

    def test_start_time_not_compared(self, make_record):
        a = make_record(title="Jazz Night", source="a")
        b = make_record(title="Jazz Night", source="b", start=SEVEN_THIRTY.replace(hour=10))
        assert GradedMatcher().classify(a, b)[0] == Confidence.HIGH

    def test_low_pairs_not_reported(self, make_record):
        a = make_record(title="Poetry Slam", source="a")
        b = make_record(title="Chess Club", source="b")
        assert GradedMatcher().match_bucket([a, b]) == []

    def test_first_match_wins(self, make_record):
        a = make_record(title="Jazz Night", source="a")
        b = make_record(title="Jazz Night", source="b")
        c = make_record(title="Jazz Night", source="c")

        groups = GradedMatcher().match_bucket([a, b, c])

        assert len(groups) == 1
        assert {r.id for r in groups[0].members} == {a.id, b.id}
        assert groups[0].method == "graded"


class TestFindDuplicates:
    """Tests for bucketed matching across days."""

    def _catalog(self, make_record):
        records = []
        for day in (14, 15, 16):
            start = datetime(2025, 3, day, 20, 0, tzinfo=CATALOG_TZ)
            records += [
                make_record(title="Jazz Night", organizer="Blue Room", start=start, source="a"),
                make_record(
                    title="Jazz Night", organizer="Blue Room", start=start, source="b", price="$10"
                ),
                make_record(title="Poetry Slam", organizer="Word Club", start=start),
            ]
        return records

    def test_groups_in_date_order(self, make_record):
        groups = find_duplicates(self._catalog(make_record), StrictMatcher())
        days = [g.keep.start_date.day for g in groups]
        assert days == [14, 15, 16]

    def test_single_record_day_has_no_groups(self, make_record):
        lone = make_record(organizer="Blue Room")
        assert find_duplicates([lone], StrictMatcher()) == []

    def test_workers_do_not_change_result(self, make_record):
        records = self._catalog(make_record)
        sequential = find_duplicates(records, StrictMatcher(), workers=1)
        parallel = find_duplicates(records, StrictMatcher(), workers=4)
        assert [g.to_dict() for g in parallel] == [g.to_dict() for g in sequential]

    def test_rule_pass_is_idempotent(self, make_record):
        records = self._catalog(make_record)
        first = ids_to_remove(find_duplicates(records, StrictMatcher()))
        remaining = [r for r in records if r.id not in first]

        assert len(first) == 3
        assert find_duplicates(remaining, StrictMatcher()) == []

    def test_get_strategy(self):
        assert isinstance(get_strategy("strict"), StrictMatcher)
        assert isinstance(get_strategy("graded"), GradedMatcher)
        with pytest.raises(ValueError):
            get_strategy("fuzzy")
