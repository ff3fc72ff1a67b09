"""AI confirmation pass: prompting, reply parsing and index mapping."""

from .client import ChatClient, TransientCallError, get_chat_client, is_ai_available
from .confirmation import (
    AIDeduplicationResult,
    AIDuplicateGroup,
    DayResult,
    process_day,
    run_ai_deduplication,
)
from .index_map import EphemeralIndexMap, ValidationError
from .parsing import ParseError, parse_ai_response

__all__ = [
    "AIDeduplicationResult",
    "AIDuplicateGroup",
    "ChatClient",
    "DayResult",
    "EphemeralIndexMap",
    "ParseError",
    "TransientCallError",
    "ValidationError",
    "get_chat_client",
    "is_ai_available",
    "parse_ai_response",
    "process_day",
    "run_ai_deduplication",
]
