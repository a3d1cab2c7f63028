"""
Publish History Repository: Data Access Layer for Published Articles

Reads and appends the publish history document shared with the rest of
the content pipeline:
- Recent-article windows for the topic diversity filter
- Existing-content corpus for the cannibalization check
- Newest-first recording of publish events

Records are handled as raw mappings so fields owned by other writers
survive a rewrite.

Design Pattern: Repository Pattern over a JSON document
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from core.enums import PublishStatus
from core.models import ExistingArticle, PublishRecord, RecentArticle, ensure_utc, utc_now
from knowledge.json_store import load_json_document, save_json_document


class PublishHistoryRepository:
    """
    Repository for the publish history document.

    The document is either a bare list of records or an object with an
    ``articles`` list; both shapes are read and the shape is kept on write.
    """

    def __init__(self, path: Path, max_records: int = 100):
        """
        Initialize repository.

        Args:
            path: History document location
            max_records: Records kept on write, newest first
        """
        self.path = Path(path)
        self.max_records = max_records
        logger.debug("PublishHistoryRepository initialized")

    @staticmethod
    def _keywords_of(record: dict[str, Any]) -> list[str]:
        keywords = record.get("keywords")
        if not isinstance(keywords, list):
            return []
        return [k for k in keywords if isinstance(k, str)]

    def _read_document(self) -> Any:
        return load_json_document(self.path, default=[])

    @staticmethod
    def _records_of(document: Any) -> list[dict[str, Any]]:
        if isinstance(document, dict):
            document = document.get("articles", [])
        if not isinstance(document, list):
            return []
        return [record for record in document if isinstance(record, dict)]

    def load_records(self) -> list[dict[str, Any]]:
        """
        Load every history record.

        Returns:
            Raw record mappings in document order; empty if missing or corrupt
        """
        return self._records_of(self._read_document())

    def load_recent(
        self,
        lookback_days: int,
        lookback_count: int,
        now: Optional[datetime] = None,
    ) -> list[RecentArticle]:
        """
        Published articles inside the lookback window, newest first.

        Both the day window and the record count apply; whichever is tighter
        wins.

        Args:
            lookback_days: Maximum article age in days
            lookback_count: Maximum number of articles
            now: Reference time (defaults to current UTC time)

        Returns:
            List of RecentArticle
        """
        cutoff = ensure_utc(now or utc_now()) - timedelta(days=lookback_days)

        recent: list[RecentArticle] = []
        for record in self.load_records():
            if record.get("status") != PublishStatus.PUBLISHED.value:
                continue
            try:
                article = RecentArticle(
                    title=record.get("title") or record.get("topic") or "",
                    keywords=self._keywords_of(record),
                    created_at=record.get("createdAt"),
                )
            except PydanticValidationError:
                logger.debug(f"Skipping history record without a usable createdAt: {record.get('id')}")
                continue
            if article.created_at >= cutoff:
                recent.append(article)

        recent.sort(key=lambda a: a.created_at, reverse=True)
        recent = recent[:lookback_count]
        logger.info(f"Loaded {len(recent)} recent articles for diversity check")
        return recent

    def corpus_entries(self) -> list[ExistingArticle]:
        """History records usable as cannibalization corpus (title and slug present)."""
        entries: list[ExistingArticle] = []
        for record in self.load_records():
            title, slug = record.get("title"), record.get("slug")
            if not title or not slug:
                continue
            entries.append(
                ExistingArticle(
                    title=title,
                    slug=slug,
                    keywords=self._keywords_of(record),
                )
            )
        return entries

    def has_slug(self, slug: str) -> bool:
        """Whether a publish event for this slug is already recorded."""
        return any(record.get("slug") == slug for record in self.load_records())

    def record_publish(self, record: PublishRecord) -> None:
        """
        Prepend a publish event and rewrite the document.

        Only the newest ``max_records`` records are kept. Write failures are
        logged, never raised.

        Args:
            record: Publish event to store
        """
        document = self._read_document()
        records = [record.to_json_dict(), *self._records_of(document)][: self.max_records]
        payload: Any = {**document, "articles": records} if isinstance(document, dict) else records

        try:
            save_json_document(self.path, payload)
        except OSError:
            logger.exception(f"Failed to save publish history to {self.path}")
            return
        logger.info(f"Recorded publish of '{record.title or record.topic}' ({record.status.value})")


__all__ = ["PublishHistoryRepository"]
