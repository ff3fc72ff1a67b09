"""Default keyword filter that hides low-quality listings from the AI pass."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .logger import get_logger
from .models.event import EventRecord

logger = get_logger(__name__)


class FilterError(Exception):
    """Raised when the default filter configuration is invalid."""

    pass


DEFAULT_BLOCKED_KEYWORDS = [
    # Certification/training spam
    "certification training",
    "six sigma",
    "PMP certification",
    "CAPM certification",
    "agile certification",
    "scrum certification",
    "SAFe training",
    "Scaled Agile Framework",
    "bootcamp training",
    "classroom training",
    "Training Course",
    # Self-guided / always-available listings
    "self-guided",
    "walking tour app",
    "driving tour",
    "GPS app",
    "smartphone guided",
    "scavenger hunt",
    # Spam organizers
    "iCertGlobal",
    "Learning Zone Inc.",
    # Miscellaneous low-signal
    "vendors needed",
    "Highly rated on Apple",
    "Highly rated on Google Play",
    "real estate investment",
]


@dataclass
class FilterResult:
    """Outcome of checking one record against the filter."""

    accepted: bool
    reason: str = ""
    keyword: str = ""


@dataclass
class DefaultFilter:
    """
    Case-insensitive blocked-keyword filter.

    A record is rejected when its title, description or organizer contains
    any blocked keyword.
    """

    blocked_keywords: list[str] = field(
        default_factory=lambda: list(DEFAULT_BLOCKED_KEYWORDS)
    )

    def __post_init__(self):
        self._lowered = [(kw, kw.lower()) for kw in self.blocked_keywords if kw]

    def matches(self, text: str | None) -> str | None:
        """Return the first blocked keyword found in ``text``."""
        if not text:
            return None
        lower_text = text.lower()
        for keyword, lowered in self._lowered:
            if lowered in lower_text:
                return keyword
        return None

    def evaluate(self, record: EventRecord) -> FilterResult:
        for field_name in ("title", "description", "organizer"):
            keyword = self.matches(getattr(record, field_name))
            if keyword:
                return FilterResult(
                    accepted=False,
                    reason=f"{field_name} contains blocked keyword '{keyword}'",
                    keyword=keyword,
                )
        return FilterResult(accepted=True)

    def __call__(self, records: Iterable[EventRecord]) -> list[EventRecord]:
        """Keep only the records that pass the filter."""
        kept = []
        for record in records:
            result = self.evaluate(record)
            if result.accepted:
                kept.append(record)
            else:
                logger.debug("Filtered '%s': %s", record.title, result.reason)
        return kept


def load_default_filter(config_path: Path) -> DefaultFilter:
    """
    Load blocked keywords from a YAML file.

    The file holds a ``blocked_keywords`` list. A missing or empty file
    falls back to the built-in list.

    Raises:
        FilterError: If the file is not valid YAML or has the wrong shape
    """
    if not config_path.exists():
        logger.warning(f"Default filter file not found: {config_path}, using built-in list")
        return DefaultFilter()

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise FilterError(f"Invalid YAML in default filter file: {e}") from e

    if not raw:
        logger.warning("Default filter file is empty, using built-in list")
        return DefaultFilter()

    keywords = raw.get("blocked_keywords") if isinstance(raw, dict) else None
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise FilterError("'blocked_keywords' must be a list of strings")

    logger.info(f"Loaded {len(keywords)} blocked keywords from {config_path}")
    return DefaultFilter(blocked_keywords=keywords)
