"""Tests for title and organizer normalization."""

import pytest

from dedup.text import (
    STOP_WORDS,
    longest_shared_run,
    normalize_organizer,
    normalize_title,
    shared_description_words,
    shared_words,
    significant_words,
    significant_words_ordered,
    titles_exact_match,
)


class TestSignificantWords:
    """Tests for significant word extraction."""

    def test_lowercases_and_drops_stop_words(self):
        words = significant_words("The Jazz Night at the Blue Room")
        assert words == {"jazz", "night", "blue", "room"}

    def test_drops_short_tokens(self):
        assert significant_words("DJ Yo at Club XO") == {"club"}

    def test_punctuation_becomes_space(self):
        assert significant_words("Rock'n'Roll: Live!") == {"rock", "roll", "live"}

    def test_hyphens_are_kept(self):
        assert "hip-hop" in significant_words("Hip-Hop Showcase")

    def test_lone_symbols_ignored(self):
        assert significant_words("Salsa & Bachata - Social") == {
            "salsa",
            "bachata",
            "social",
        }

    def test_min_length_parameter(self):
        assert significant_words("Big Band Swing", min_length=4) == {"band", "swing"}

    def test_unicode_letters_are_word_characters(self):
        assert significant_words("Café Concert") == {"café", "concert"}

    @pytest.mark.parametrize("title", [None, "", "   ", "a the of"])
    def test_empty_inputs(self, title):
        assert significant_words(title) == set()

    def test_ordered_variant_keeps_order_and_duplicates(self):
        assert significant_words_ordered("Open Mic Comedy Open Mic") == [
            "open",
            "mic",
            "comedy",
            "open",
            "mic",
        ]

    def test_stop_words_contain_symbols(self):
        for symbol in ("-", "&", "+", "@"):
            assert symbol in STOP_WORDS


class TestSharedWords:
    """Tests for shared word computation."""

    def test_intersection(self):
        assert shared_words("Jazz Night Live", "Live Jazz at Midnight") == {"jazz", "live"}

    def test_symmetric(self):
        a, b = "Salsa Social Night", "Night of Salsa"
        assert shared_words(a, b) == shared_words(b, a)

    def test_no_overlap(self):
        assert shared_words("Poetry Slam", "Chess Club") == set()


class TestNormalizeOrganizer:
    """Tests for organizer normalization."""

    def test_strips_punctuation_and_case(self):
        assert normalize_organizer("The Blue Room, Inc.") == "the blue room inc"

    def test_collapses_whitespace(self):
        assert normalize_organizer("  Blue   Room\t") == "blue room"

    def test_none_is_empty(self):
        assert normalize_organizer(None) == ""

    def test_variants_compare_equal(self):
        assert normalize_organizer("Blue Room!") == normalize_organizer("blue room")


class TestTitleHelpers:
    """Tests for exact title and description helpers."""

    def test_normalize_title(self):
        assert normalize_title("  Jazz NIGHT ") == "jazz night"
        assert normalize_title(None) == ""

    def test_titles_exact_match_ignores_case(self):
        assert titles_exact_match("Jazz Night", "jazz night ")
        assert not titles_exact_match("Jazz Night", "Jazz Nights")

    def test_shared_description_words(self):
        desc = "An evening of improvised jazz with local musicians and guests"
        assert shared_description_words(desc, desc) == len(significant_words(desc))
        assert shared_description_words(desc, None) == 0


class TestLongestSharedRun:
    """Tests for ordered title word runs."""

    def test_prefix_title(self):
        assert (
            longest_shared_run(
                "Freshen Up Comedy Open Mic", "Freshen Up Comedy Open Mic at VOWL Bar"
            )
            == 4
        )

    def test_order_matters(self):
        assert longest_shared_run("Comedy Open Mic", "Mic Open Comedy") == 1

    def test_no_words(self):
        assert longest_shared_run("", "Comedy Night") == 0
