"""
Database models for trend scoring.

This module defines the SQLAlchemy models using PostgreSQL-specific features:
- UUID primary keys with server-side generation
- JSONB fields for token lists, topic tags and the history ledger
- Explicit indexes on the columns the scoring window filters on
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Double, Index, Integer, String, Text, event
from sqlalchemy import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class Document(Base):
    """
    An ingested post with its derived fields.

    Written once at ingestion; ``source_id`` is unique so re-fetching the
    same upstream post is a no-op.
    """
    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sql_text("gen_random_uuid()"),
    )
    source_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False, server_default="Reddit")
    text: Mapped[str] = mapped_column(Text, nullable=False)
    topic_tags: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sql_text("'[]'::jsonb"),
    )
    derived_tokens: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sql_text("'[]'::jsonb"),
    )
    sentiment: Mapped[float] = mapped_column(Double, nullable=False, server_default="0")
    ups: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    num_comments: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    author: Mapped[str] = mapped_column(String(255), nullable=True)
    sub_topic: Mapped[str] = mapped_column(String(255), nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("ix_documents_created_at", "created_at"),
        Index("ix_documents_platform", "platform"),
        Index("ix_documents_topic_tags", "topic_tags", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, source_id={self.source_id})>"


class TrendRecord(Base):
    """
    Durable aggregate of one topic.

    ``history`` is a JSONB array of ``{"ts", "count", "score"}`` objects,
    appended to only by the atomic upsert in ``database.db``.
    """
    __tablename__ = "trend_records"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sql_text("gen_random_uuid()"),
    )
    topic: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    mention_count: Mapped[float] = mapped_column(Double, nullable=False, server_default="0")
    avg_sentiment: Mapped[float] = mapped_column(Double, nullable=False, server_default="0")
    score: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    related: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sql_text("'[]'::jsonb"),
    )
    filtered_related: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sql_text("'[]'::jsonb"),
    )
    history: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sql_text("'[]'::jsonb"),
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("ix_trend_records_last_updated_score", "last_updated", "score"),
    )

    def __repr__(self) -> str:
        return f"<TrendRecord(topic={self.topic}, score={self.score})>"


# ORM updates only; the scoring upsert sets updated_at in SQL
@event.listens_for(TrendRecord, "before_update")
def receive_before_update_trend_record(_mapper, _connection, target):
    """Update the updated_at timestamp before updating a TrendRecord."""
    target.updated_at = datetime.now(timezone.utc)
