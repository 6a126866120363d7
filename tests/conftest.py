"""Shared pytest fixtures."""

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pytest

from trendpulse.utils.config import reset_settings
from trendpulse.utils.logging_config import reset_logging
from trendpulse.workflow.state import DocumentSnapshot, TrendRecordState, TrendUpsert


@pytest.fixture(scope="session", autouse=True)
def backup_env_file():
    """Backup .env file during test session to prevent pollution."""
    env_file = Path(".env")
    backup_file = Path(".env.test_backup")

    if env_file.exists():
        shutil.copy(env_file, backup_file)
        env_file.unlink()

    yield

    if backup_file.exists():
        shutil.move(backup_file, env_file)


@pytest.fixture(autouse=True)
def app_env(monkeypatch: pytest.MonkeyPatch):
    """Minimal required settings plus a clean settings/logging state per test."""
    monkeypatch.setenv("APP_NAME", "trendpulse-test")
    monkeypatch.setenv("ENVIRONMENT", "development")
    reset_settings()
    yield
    reset_settings()
    reset_logging()


class InMemoryTrendRepository:
    """TrendRepository fake with the same atomic upsert contract as the SQL one."""

    def __init__(self, documents: Iterable[DocumentSnapshot] = ()) -> None:
        self.documents: list[DocumentSnapshot] = list(documents)
        self.records: dict[str, TrendRecordState] = {}
        self.upsert_calls = 0

    async def find_one(self, topic: str) -> Optional[TrendRecordState]:
        record = self.records.get(topic)
        return record.model_copy(deep=True) if record is not None else None

    async def find_window(
        self,
        *,
        topic: str,
        since: Optional[datetime] = None,
        limit: int,
    ) -> list[DocumentSnapshot]:
        window = [
            doc
            for doc in self.documents
            if doc.is_tagged(topic) and (since is None or doc.created_at >= since)
        ]
        window.sort(key=lambda doc: doc.created_at, reverse=True)
        return window[:limit]

    async def atomic_upsert(self, upsert: TrendUpsert) -> tuple[TrendRecordState, bool]:
        self.upsert_calls += 1
        existing = self.records.get(upsert.topic)
        appended = upsert.differs_from(existing)

        history = list(existing.history) if existing is not None else []
        if appended:
            history.append(upsert.history_entry())

        record = TrendRecordState(
            topic=upsert.topic,
            mention_count=upsert.mention_count,
            avg_sentiment=upsert.avg_sentiment,
            score=upsert.score,
            related=list(upsert.related),
            filtered_related=list(upsert.filtered_related),
            history=history,
            last_updated=upsert.updated_at,
        )
        self.records[upsert.topic] = record
        return record.model_copy(deep=True), appended

    async def insert_documents(self, documents: Sequence[DocumentSnapshot]) -> int:
        known = {doc.source_id for doc in self.documents}
        inserted = 0
        for doc in documents:
            if doc.source_id and doc.source_id in known:
                continue
            self.documents.append(doc)
            known.add(doc.source_id)
            inserted += 1
        return inserted

    async def source_ids_exist(self, source_ids: Iterable[str]) -> set[str]:
        known = {doc.source_id for doc in self.documents}
        return {source_id for source_id in source_ids if source_id in known}


@pytest.fixture
def repository() -> InMemoryTrendRepository:
    return InMemoryTrendRepository()


@pytest.fixture
def make_document():
    """Factory for DocumentSnapshot with sensible defaults."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(
        tokens: Sequence[str],
        *,
        tags: Sequence[str] = ("ai",),
        sentiment: float = 0.0,
        ups: int = 0,
        num_comments: int = 0,
        text: str = "post",
        source_id: Optional[str] = None,
    ) -> DocumentSnapshot:
        counter["n"] += 1
        return DocumentSnapshot(
            text=text,
            topic_tags=list(tags),
            derived_tokens=list(tokens),
            sentiment=sentiment,
            ups=ups,
            num_comments=num_comments,
            created_at=base + timedelta(minutes=counter["n"]),
            source_id=source_id or f"doc-{counter['n']}",
        )

    return _make
