"""PostgreSQL database connection layer with SQLAlchemy."""

import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Generator, Iterable

from sqlalchemy import DateTime, cast, create_engine, exc, func, literal, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from trendpulse.database.models import Document, TrendRecord
from trendpulse.utils.config import get_settings
from trendpulse.utils.logging_config import get_logger

# Global engine and session factory
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


class DatabaseError(Exception):
    """Base exception for database errors."""


class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails."""


class DatabaseRetryError(DatabaseError):
    """Exception raised when all retry attempts are exhausted."""


def _get_logger():
    """Get logger instance lazily to avoid import-time config loading."""
    return get_logger(__name__)


def _is_transient_error(error: Exception) -> bool:
    """
    Check if the error is transient and should be retried.

    Args:
        error: The exception to check

    Returns:
        True if the error is transient, False otherwise
    """
    if isinstance(error, exc.OperationalError):
        return True

    error_str = str(error).lower()
    transient_keywords = [
        "connection refused",
        "connection reset",
        "connection timed out",
        "server closed the connection",
        "could not connect",
        "connection lost",
        "deadlock",
        "lock timeout",
        "could not serialize access",
        "connection pool exhausted",
    ]

    return any(keyword in error_str for keyword in transient_keywords)


def retry_on_transient_error(max_retries: int | None = None, delay: float | None = None):
    """
    Decorator to retry database operations on transient errors.

    The decorated function must own its session (open it inside the call)
    so that each attempt runs in a fresh transaction.

    Args:
        max_retries: Maximum number of retry attempts (uses config default if None)
        delay: Initial delay between retries in seconds (uses config default if None)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func):
        def wrapper(*args, **kwargs):
            settings = get_settings()
            retries = max_retries if max_retries is not None else settings.DB_MAX_RETRIES
            retry_delay = delay if delay is not None else settings.DB_RETRY_DELAY

            last_error = None
            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_error = e

                    if not _is_transient_error(e):
                        _get_logger().error("Non-transient database error: %s", e)
                        raise

                    if attempt < retries:
                        wait_time = retry_delay * (2**attempt)
                        _get_logger().warning(
                            "Transient database error (attempt %d/%d): %s. Retrying in %.2fs...",
                            attempt + 1,
                            retries + 1,
                            e,
                            wait_time,
                        )
                        time.sleep(wait_time)
                    else:
                        _get_logger().error(
                            "All %d retry attempts exhausted for database operation", retries + 1
                        )

            raise DatabaseRetryError(
                f"Failed after {retries + 1} attempts. Last error: {last_error}"
            ) from last_error

        return wrapper

    return decorator


def init_db() -> None:
    """
    Initialize database engine and session factory.

    Raises:
        DatabaseConnectionError: If DATABASE_URL is not configured
        DatabaseError: If engine creation fails
    """
    global _engine, _session_factory

    settings = get_settings()
    database_url = settings.get_database_url()

    if not database_url:
        raise DatabaseConnectionError(
            "DATABASE_URL is not configured. Please set it in environment variables."
        )

    try:
        _get_logger().info("Initializing database connection...")

        _engine = create_engine(
            database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
            echo=settings.DEBUG,
        )

        _session_factory = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

        _get_logger().info("Database initialized successfully")

    except Exception as e:
        _get_logger().error("Failed to initialize database: %s", e)
        raise DatabaseError(f"Database initialization failed: {e}") from e


def get_engine() -> Engine:
    """
    Get the SQLAlchemy engine instance.

    Raises:
        DatabaseError: If engine is not initialized
    """
    if _engine is None:
        raise DatabaseError("Database engine not initialized. Call init_db() first.")
    return _engine


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on error and always closes the session.

    Usage:
        with get_session() as session:
            result = session.execute(...)

    Yields:
        Database session

    Raises:
        DatabaseError: If session factory is not initialized
    """
    if _session_factory is None:
        raise DatabaseError("Database session factory not initialized. Call init_db() first.")

    session = _session_factory()
    try:
        yield session
        session.commit()
        _get_logger().debug("Database session committed successfully")
    except Exception as e:
        session.rollback()
        _get_logger().error("Database session rolled back due to error: %s", e)
        raise
    finally:
        session.close()
        _get_logger().debug("Database session closed")


@retry_on_transient_error()
def health_check() -> bool:
    """
    Check database connectivity.

    Returns:
        True if database is accessible

    Raises:
        DatabaseError: If engine is not initialized
        DatabaseRetryError: If all retry attempts fail
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            _get_logger().info("Database health check passed")
            return True
    except Exception as e:
        _get_logger().error("Database health check failed: %s", e)
        raise


def close_db() -> None:
    """Dispose of the engine and clear global state."""
    global _engine, _session_factory

    if _engine is not None:
        _get_logger().info("Closing database connections...")
        _engine.dispose()
        _engine = None
        _session_factory = None
        _get_logger().info("Database connections closed")


# ============================================================================
# CRUD Helpers
# ============================================================================


def insert_documents(session: Session, rows: list[dict]) -> int:
    """
    Insert ingested documents using bulk insert.
    Duplicates (based on source_id) are ignored via ON CONFLICT.

    Args:
        session: SQLAlchemy session (caller must commit)
        rows: Document dicts with keys source_id, text, topic_tags,
              derived_tokens, sentiment, ups, num_comments and optionally
              platform, author, sub_topic, url, created_at

    Returns:
        Number of rows actually inserted

    Raises:
        ValueError: If rows is not a list or a row misses a required field
    """
    if not isinstance(rows, list):
        raise ValueError("rows must be a list")

    if not rows:
        return 0

    required_fields = {"source_id", "text", "topic_tags", "derived_tokens", "sentiment"}
    for row in rows:
        missing = required_fields - set(row.keys())
        if missing:
            raise ValueError(f"Missing required field: {missing.pop()}")

    stmt = insert(Document).values(rows)
    stmt = stmt.on_conflict_do_nothing(index_elements=["source_id"])

    result = session.execute(stmt)
    inserted_count = result.rowcount

    _get_logger().debug("Inserted %d documents (duplicates ignored)", inserted_count)

    return inserted_count


def get_existing_source_ids(session: Session, source_ids: Iterable[str]) -> set[str]:
    """
    Return the subset of ``source_ids`` already stored.

    Args:
        session: SQLAlchemy session
        source_ids: Candidate upstream identifiers

    Returns:
        Set of identifiers that already have a document row
    """
    ids = list(dict.fromkeys(source_ids))
    if not ids:
        return set()
    rows = session.execute(select(Document.source_id).where(Document.source_id.in_(ids)))
    return set(rows.scalars())


def get_trend_record(session: Session, topic: str) -> TrendRecord | None:
    """
    Get the trend record of a topic.

    Args:
        session: SQLAlchemy session
        topic: Normalized topic key

    Returns:
        TrendRecord instance or None if not found
    """
    return session.execute(
        select(TrendRecord).where(TrendRecord.topic == topic)
    ).scalar_one_or_none()


def find_documents_window(
    session: Session,
    *,
    topic: str,
    since: datetime | None = None,
    platform: str | None = None,
    limit: int = 300,
) -> list[Document]:
    """
    Read the scoring window of a topic, newest first.

    Args:
        session: SQLAlchemy session
        topic: Normalized topic key the documents must be tagged with
        since: Only documents created at or after this time
        platform: Only documents from this platform
        limit: Maximum number of documents

    Returns:
        Document rows ordered by created_at descending
    """
    if limit <= 0:
        return []

    stmt = select(Document).where(Document.topic_tags.contains([topic]))
    if since is not None:
        stmt = stmt.where(Document.created_at >= since)
    if platform is not None:
        stmt = stmt.where(Document.platform == platform)
    stmt = stmt.order_by(Document.created_at.desc()).limit(limit)

    return list(session.execute(stmt).scalars())


def build_trend_upsert(
    *,
    topic: str,
    mention_count: float,
    avg_sentiment: float,
    score: int,
    related: list[str],
    filtered_related: list[str],
    history_entry: dict,
    updated_at: datetime,
):
    """
    Build the history-extending trend upsert.

    A fresh row is inserted with ``history_entry`` as its only entry. On
    conflict the row is updated only when the stored ``mention_count`` or
    ``score`` differs from the incoming values. The appended entry is stamped
    inside the statement with the later of ``updated_at`` and the newest
    stored timestamp plus one microsecond, so the ledger stays strictly
    ascending even when passes overlap.

    The statement returns the row only when it inserted or appended. When
    the WHERE clause rejects the update, ON CONFLICT still locks the row for
    the rest of the transaction (see :func:`build_trend_scalar_update`).
    """
    stmt = insert(TrendRecord).values(
        topic=topic,
        mention_count=mention_count,
        avg_sentiment=avg_sentiment,
        score=score,
        related=related,
        filtered_related=filtered_related,
        history=[history_entry],
        last_updated=updated_at,
        updated_at=updated_at,
    )
    table = TrendRecord.__table__
    excluded = stmt.excluded
    changed = or_(
        table.c.mention_count.is_distinct_from(excluded.mention_count),
        table.c.score.is_distinct_from(excluded.score),
    )
    entry_ts = func.greatest(
        excluded.updated_at,
        cast(table.c.history[-1]["ts"].astext, DateTime(timezone=True)) + timedelta(microseconds=1),
    )
    entry = func.jsonb_build_object(
        literal("ts"), entry_ts,
        literal("count"), excluded.mention_count,
        literal("score"), excluded.score,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["topic"],
        set_={
            "mention_count": excluded.mention_count,
            "avg_sentiment": excluded.avg_sentiment,
            "score": excluded.score,
            "related": excluded.related,
            "filtered_related": excluded.filtered_related,
            "history": table.c.history.op("||")(func.jsonb_build_array(entry)),
            "last_updated": excluded.last_updated,
            "updated_at": excluded.updated_at,
        },
        where=changed,
    )
    return stmt.returning(TrendRecord)


def build_trend_scalar_update(
    *,
    topic: str,
    avg_sentiment: float,
    related: list[str],
    filtered_related: list[str],
    updated_at: datetime,
):
    """
    Build the update that overwrites scalars without touching ``history``.

    ``mention_count`` and ``score`` already equal the incoming values
    whenever this runs, so they are left as stored.
    """
    return (
        update(TrendRecord)
        .where(TrendRecord.topic == topic)
        .values(
            avg_sentiment=avg_sentiment,
            related=related,
            filtered_related=filtered_related,
            last_updated=updated_at,
            updated_at=updated_at,
        )
        .returning(TrendRecord)
    )


def upsert_trend_record(session: Session, **fields) -> tuple[TrendRecord, bool]:
    """
    Atomically upsert a trend record.

    Runs :func:`build_trend_upsert` and, when it left the history alone,
    :func:`build_trend_scalar_update` in the same transaction.

    Args:
        session: SQLAlchemy session (caller must commit)
        **fields: Keyword arguments of :func:`build_trend_upsert`

    Returns:
        Tuple of (row as stored after the statements, whether history was extended)
    """
    options = {"populate_existing": True}
    record = session.scalars(build_trend_upsert(**fields), execution_options=options).one_or_none()
    appended = record is not None

    if record is None:
        stmt = build_trend_scalar_update(
            topic=fields["topic"],
            avg_sentiment=fields["avg_sentiment"],
            related=fields["related"],
            filtered_related=fields["filtered_related"],
            updated_at=fields["updated_at"],
        )
        record = session.scalars(stmt, execution_options=options).one()

    _get_logger().debug(
        "Upserted trend record (history length %d, appended=%s)",
        len(record.history or []),
        appended,
        extra={"extra_fields": {"topic": record.topic}},
    )
    return record, appended
