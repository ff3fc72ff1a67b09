"""
Parsing of the AI service's duplicate report.

The expected reply is::

    {"duplicates": [{"remove": [2, 5], "reason": "same show, two feeds"}]}

Replies are sometimes wrapped in a markdown code fence, which is stripped
before decoding. Parsing never raises: ``parse_ai_response`` returns a
``ParseResult`` that is either ok (possibly with zero groups) or failed
with an error message, so one bad reply only costs its own day.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from ..logger import get_logger

logger = get_logger(__name__)


class ParseError(ValueError):
    """Raised internally when a reply is not a valid duplicate report."""


@dataclass
class ParsedGroup:
    """One duplicate group as returned by the service, before index mapping."""

    remove: list[int | float]
    reason: str


@dataclass
class ParseResult:
    """Outcome of parsing one reply."""

    groups: list[ParsedGroup] = field(default_factory=list)
    error: str | None = None
    skipped_groups: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_group(group: Any) -> bool:
    if not isinstance(group, dict):
        return False
    remove = group.get("remove")
    return (
        isinstance(remove, list)
        and len(remove) > 0
        and all(_is_number(i) for i in remove)
        and isinstance(group.get("reason"), str)
    )


def decode_reply(text: str) -> list[Any]:
    """
    Decode a reply and return its raw ``duplicates`` array.

    Raises:
        ParseError: If the reply is not JSON or lacks a ``duplicates`` array
    """
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Reply is not valid JSON: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("duplicates"), list):
        raise ParseError("Invalid response format: missing duplicates array")
    return payload["duplicates"]


def parse_ai_response(text: str) -> ParseResult:
    """Parse a reply into validated groups; malformed groups are dropped."""
    try:
        raw_groups = decode_reply(text)
    except ParseError as e:
        logger.warning(f"Failed to parse AI response: {e}")
        logger.debug(f"Raw response: {text!r}")
        return ParseResult(error=str(e))

    result = ParseResult()
    for group in raw_groups:
        if _valid_group(group):
            result.groups.append(ParsedGroup(remove=list(group["remove"]), reason=group["reason"]))
        else:
            result.skipped_groups += 1
            logger.warning(f"Skipping invalid group: {group!r}")
    return result
