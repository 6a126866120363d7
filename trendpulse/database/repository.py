"""Persistence interface used by the trend pipeline.

The scoring core never talks to SQLAlchemy directly. It depends on the
``TrendRepository`` protocol; ``SqlTrendRepository`` implements it on top of
the session helpers in ``database.db``, running the blocking calls in a worker
thread so the event loop is never held by database I/O.
"""

import asyncio
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from trendpulse.database import db
from trendpulse.database.models import Document, TrendRecord
from trendpulse.workflow.state import (
    DocumentSnapshot,
    HistoryEntry,
    TrendRecordState,
    TrendUpsert,
)


@runtime_checkable
class TrendRepository(Protocol):
    """Storage operations the trend pipeline relies on."""

    async def find_one(self, topic: str) -> Optional[TrendRecordState]:
        """Return the stored record of ``topic`` or None."""
        ...

    async def find_window(
        self,
        *,
        topic: str,
        since: Optional[datetime] = None,
        limit: int,
    ) -> list[DocumentSnapshot]:
        """Return up to ``limit`` documents tagged with ``topic``, newest first."""
        ...

    async def atomic_upsert(self, upsert: TrendUpsert) -> tuple[TrendRecordState, bool]:
        """Write ``upsert`` in one atomic operation.

        Scalar fields are always set. The history entry is appended only when
        ``mention_count`` or ``score`` differs from the stored row, compared
        inside the same atomic operation. An appended entry is stamped no
        earlier than ``updated_at`` and strictly after the newest stored entry.

        Returns:
            The stored record and whether a history entry was appended
        """
        ...

    async def insert_documents(self, documents: Sequence[DocumentSnapshot]) -> int:
        """Insert documents, skipping known ``source_id`` values. Returns the inserted count."""
        ...

    async def source_ids_exist(self, source_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``source_ids`` already stored."""
        ...


def document_from_row(row: Document) -> DocumentSnapshot:
    return DocumentSnapshot(
        text=row.text,
        topic_tags=list(row.topic_tags or []),
        derived_tokens=list(row.derived_tokens or []),
        sentiment=row.sentiment,
        ups=row.ups,
        num_comments=row.num_comments,
        created_at=row.created_at,
        source_id=row.source_id,
        platform=row.platform,
        author=row.author,
        sub_topic=row.sub_topic,
        url=row.url,
    )


def record_from_row(row: TrendRecord) -> TrendRecordState:
    return TrendRecordState(
        topic=row.topic,
        mention_count=row.mention_count,
        avg_sentiment=row.avg_sentiment,
        score=row.score,
        related=list(row.related or []),
        filtered_related=list(row.filtered_related or []),
        history=[HistoryEntry.model_validate(entry) for entry in row.history or []],
        last_updated=row.last_updated,
    )


def document_to_row(document: DocumentSnapshot) -> dict:
    """Column dict for :func:`db.insert_documents`; unset source metadata uses column defaults."""
    row = {
        "source_id": document.source_id,
        "text": document.text,
        "topic_tags": list(document.topic_tags),
        "derived_tokens": list(document.derived_tokens),
        "sentiment": document.sentiment,
        "ups": document.ups,
        "num_comments": document.num_comments,
        "created_at": document.created_at,
    }
    for column in ("platform", "author", "sub_topic", "url"):
        value = getattr(document, column)
        if value is not None:
            row[column] = value
    return row


class SqlTrendRepository:
    """PostgreSQL-backed :class:`TrendRepository`.

    Requires :func:`db.init_db` to have been called.

    Args:
        platform: When set, window reads only include documents of this platform
    """

    def __init__(self, platform: Optional[str] = None) -> None:
        self.platform = platform

    @db.retry_on_transient_error()
    def _find_one(self, topic: str) -> Optional[TrendRecordState]:
        with db.get_session() as session:
            row = db.get_trend_record(session, topic)
            return record_from_row(row) if row is not None else None

    @db.retry_on_transient_error()
    def _find_window(self, topic: str, since: Optional[datetime], limit: int) -> list[DocumentSnapshot]:
        with db.get_session() as session:
            rows = db.find_documents_window(
                session, topic=topic, since=since, platform=self.platform, limit=limit
            )
            return [document_from_row(row) for row in rows]

    @db.retry_on_transient_error()
    def _atomic_upsert(self, upsert: TrendUpsert) -> tuple[TrendRecordState, bool]:
        entry = upsert.history_entry().model_dump(mode="json")
        with db.get_session() as session:
            row, appended = db.upsert_trend_record(
                session,
                topic=upsert.topic,
                mention_count=upsert.mention_count,
                avg_sentiment=upsert.avg_sentiment,
                score=upsert.score,
                related=list(upsert.related),
                filtered_related=list(upsert.filtered_related),
                history_entry=entry,
                updated_at=upsert.updated_at,
            )
            return record_from_row(row), appended

    @db.retry_on_transient_error()
    def _insert_documents(self, rows: list[dict]) -> int:
        with db.get_session() as session:
            return db.insert_documents(session, rows)

    @db.retry_on_transient_error()
    def _source_ids_exist(self, source_ids: list[str]) -> set[str]:
        with db.get_session() as session:
            return db.get_existing_source_ids(session, source_ids)

    async def find_one(self, topic: str) -> Optional[TrendRecordState]:
        return await asyncio.to_thread(self._find_one, topic)

    async def find_window(
        self,
        *,
        topic: str,
        since: Optional[datetime] = None,
        limit: int,
    ) -> list[DocumentSnapshot]:
        return await asyncio.to_thread(self._find_window, topic, since, limit)

    async def atomic_upsert(self, upsert: TrendUpsert) -> tuple[TrendRecordState, bool]:
        return await asyncio.to_thread(self._atomic_upsert, upsert)

    async def insert_documents(self, documents: Sequence[DocumentSnapshot]) -> int:
        rows = [document_to_row(document) for document in documents if document.source_id]
        if not rows:
            return 0
        return await asyncio.to_thread(self._insert_documents, rows)

    async def source_ids_exist(self, source_ids: Iterable[str]) -> set[str]:
        return await asyncio.to_thread(self._source_ids_exist, list(source_ids))
