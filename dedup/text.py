"""Title and organizer normalization used by the rule-based matcher."""

import re

# Words ignored when comparing titles
STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "used", "it", "its", "it's", "this", "that", "these", "those", "i", "you",
        "he", "she", "we", "they", "what", "which", "who", "whom", "when", "where",
        "why", "how", "all", "each", "every", "both", "few", "more", "most", "other",
        "some", "such", "no", "nor", "not", "only", "own", "same", "so", "than",
        "too", "very", "just", "also", "now", "here", "there", "then", "once",
        "-", "&", "+", "@",
    }
)  # fmt: skip

DEFAULT_MIN_WORD_LENGTH = 3

_PUNCTUATION_KEEP_HYPHEN = re.compile(r"[^\w\s-]")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def significant_words_ordered(
    title: str | None, min_length: int = DEFAULT_MIN_WORD_LENGTH
) -> list[str]:
    """Return the significant words of ``title`` in their original order."""
    if not title:
        return []
    cleaned = _PUNCTUATION_KEEP_HYPHEN.sub(" ", title.lower())
    return [
        word
        for word in cleaned.split()
        if len(word) >= min_length and word not in STOP_WORDS
    ]


def significant_words(
    title: str | None, min_length: int = DEFAULT_MIN_WORD_LENGTH
) -> set[str]:
    """
    Extract the set of significant words from a title.

    Lowercases, replaces punctuation (except hyphens) with spaces and keeps
    tokens of at least ``min_length`` characters that are not stop words.
    """
    return set(significant_words_ordered(title, min_length))


def shared_words(
    title1: str | None, title2: str | None, min_length: int = DEFAULT_MIN_WORD_LENGTH
) -> set[str]:
    return significant_words(title1, min_length) & significant_words(title2, min_length)


def normalize_organizer(organizer: str | None) -> str:
    """Lowercase, drop punctuation and collapse whitespace. ``None`` gives ""."""
    if not organizer:
        return ""
    text = _PUNCTUATION.sub("", organizer.lower())
    return _WHITESPACE.sub(" ", text).strip()


def normalize_title(title: str | None) -> str:
    return (title or "").lower().strip()


def titles_exact_match(title1: str | None, title2: str | None) -> bool:
    """Case-insensitive title equality."""
    return normalize_title(title1) == normalize_title(title2)


def shared_description_words(desc1: str | None, desc2: str | None) -> int:
    """Count the significant words two descriptions have in common."""
    if not desc1 or not desc2:
        return 0
    return len(significant_words(desc1) & significant_words(desc2))


def longest_shared_run(title1: str | None, title2: str | None) -> int:
    """
    Length of the longest run of consecutive significant words that appears,
    in the same order, in both titles.

    "Freshen Up Comedy Open Mic" and "Freshen Up Comedy Open Mic at VOWL Bar"
    share a run of 4 ("freshen comedy open mic").
    """
    words1 = significant_words_ordered(title1)
    words2 = significant_words_ordered(title2)
    if not words1 or not words2:
        return 0

    # Classic longest-common-substring table over words
    longest = 0
    previous = [0] * (len(words2) + 1)
    for word1 in words1:
        current = [0] * (len(words2) + 1)
        for j, word2 in enumerate(words2, 1):
            if word1 == word2:
                current[j] = previous[j - 1] + 1
                longest = max(longest, current[j])
        previous = current
    return longest
