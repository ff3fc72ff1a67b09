"""Markdown catalog adapter: loads event records and deletes removed ones."""

from collections.abc import Iterable
from datetime import date, datetime, time
from pathlib import Path

import frontmatter

from .logger import get_logger
from .models.event import CATALOG_TZ, EventRecord

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


class StoreError(Exception):
    """Raised when the catalog directory cannot be read."""

    pass


def _as_datetime(value):
    # YAML turns unquoted dates into date/datetime objects
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=CATALOG_TZ)
    return value


class MarkdownEventStore:
    """
    A directory of event markdown files with YAML front matter.

    Each file is one record. Its ID is the ``id`` front matter field, or
    the file path relative to the root with the ``.md`` suffix removed.
    Files whose name starts with ``_`` are section indexes and are skipped.
    """

    def __init__(self, content_dir: str | Path):
        self.content_dir = Path(content_dir)
        self._paths: dict[str, Path] = {}

    def _check_root(self):
        if not self.content_dir.is_dir():
            raise StoreError(f"Content directory not found: {self.content_dir}")

    def _event_files(self) -> list[Path]:
        self._check_root()
        return sorted(
            path
            for path in self.content_dir.rglob("*.md")
            if not path.name.startswith("_")
        )

    def _record_id(self, path: Path, post) -> str:
        if post.get("id"):
            return str(post["id"])
        relative = path.relative_to(self.content_dir).as_posix()
        return relative.removesuffix(".md")

    def _load_file(self, path: Path) -> EventRecord | None:
        post = frontmatter.load(path)

        title = post.get("title") or post.get("name")
        start = _as_datetime(post.get("startDate") or post.get("date"))
        if not title or not start:
            logger.debug(f"Skipping {path}: missing title or date")
            return None

        location = post.get("location")
        if not location:
            locations = post.get("locations") or []
            location = locations[0] if locations else None

        record_id = self._record_id(path, post)
        self._paths[record_id] = path

        return EventRecord.from_dict(
            {
                "id": record_id,
                "title": str(title),
                "start_date": start,
                "source": post.get("source") or "",
                "description": post.get("description"),
                "organizer": post.get("organizer"),
                "location": location,
                "price": post.get("price"),
                "created_at": _as_datetime(post.get("createdAt")),
            }
        )

    def load_events(
        self,
        source: str | None = None,
        future_only: bool = True,
        now: datetime | None = None,
    ) -> list[EventRecord]:
        """
        Load records from the catalog, ordered by start date.

        Args:
            source: Only return records from this source
            future_only: Drop records that started before ``now``
            now: Reference time (defaults to the current time)

        Raises:
            StoreError: If the content directory does not exist
        """
        now = now or datetime.now(CATALOG_TZ)
        records = []

        for path in self._event_files():
            try:
                record = self._load_file(path)
            except Exception as e:
                logger.warning(f"Failed to load {path}: {e}")
                continue

            if record is None:
                continue
            if source and record.source != source:
                continue
            if future_only and record.start_date < now:
                continue
            records.append(record)

        records.sort(key=lambda r: r.start_date)
        logger.info(f"Loaded {len(records)} events from {self.content_dir}")
        return records

    def _path_for(self, record_id: str) -> Path | None:
        if record_id not in self._paths:
            candidate = self.content_dir / f"{record_id}.md"
            if candidate.exists():
                return candidate
        return self._paths.get(record_id)

    def delete_events(
        self, ids: Iterable[str], batch_size: int = DEFAULT_BATCH_SIZE
    ) -> int:
        """
        Delete the files behind ``ids`` in batches of ``batch_size``.

        Unknown IDs are logged and skipped.

        Returns:
            Number of files deleted
        """
        ids = list(dict.fromkeys(ids))
        deleted = 0

        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            batch_deleted = 0
            for record_id in batch:
                path = self._path_for(record_id)
                if path is None or not path.exists():
                    logger.warning(f"No file for event {record_id}")
                    continue
                try:
                    path.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete {path}: {e}")
                    continue
                self._paths.pop(record_id, None)
                batch_deleted += 1

            deleted += batch_deleted
            logger.info(
                f"Deleted batch {start // batch_size + 1}: "
                f"{batch_deleted}/{len(batch)} events"
            )

        return deleted

    def count(self) -> int:
        """Number of event files currently in the catalog."""
        return len(self._event_files())
