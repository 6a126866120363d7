"""Trend pipeline - ingestion and per-topic scoring.

Topics are processed strictly one after another: window read, scoring and
upsert finish for one topic before the next one starts. Sub-sources of an
interest are also fetched sequentially to respect upstream rate limits.

A failing topic or sub-source is logged and skipped; it never aborts the
rest of the run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Sequence

import httpx

from trendpulse.analysis.sentiment import SentimentEstimator
from trendpulse.analysis.tokenizer import Tokenizer
from trendpulse.database.repository import TrendRepository
from trendpulse.integrations.sources import (
    INTEREST_SOURCES,
    RawItem,
    fetch_subreddit_posts,
    normalize_reddit_posts,
)
from trendpulse.utils.config import get_settings
from trendpulse.workflow.error_handling import CollaboratorError, TopicContext, TopicProcessingError
from trendpulse.workflow.state import DocumentSnapshot, normalize_topic
from trendpulse.workflow.trend_records import TrendRecordManager, TrendUpdate

logger = logging.getLogger(__name__)

FetchPosts = Callable[[str, int], Awaitable[list[dict]]]


class TopicOutcome(str, Enum):
    """Result of processing one topic."""

    UPDATED = "updated"  # history ledger extended
    UNCHANGED = "unchanged"  # scalars rewritten, no new history entry
    SKIPPED = "skipped"  # empty window
    FAILED = "failed"


@dataclass
class CycleSummary:
    """Counts of one collection cycle.

    Attributes:
        inserted: New documents stored, per interest
        outcomes: Scoring outcome, per topic
        errors: Collaborator errors that were isolated during the cycle
    """

    inserted: dict[str, int] = field(default_factory=dict)
    outcomes: dict[str, TopicOutcome] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())


class TrendPipeline:
    """Reads topic windows and hands them to the trend record manager.

    Args:
        repository: Persistence collaborator
        manager: Trend record manager
        window_limit: Maximum number of documents per topic window
    """

    def __init__(
        self,
        repository: TrendRepository,
        manager: TrendRecordManager,
        *,
        window_limit: Optional[int] = None,
    ) -> None:
        self.repository = repository
        self.manager = manager
        self.window_limit = window_limit if window_limit is not None else get_settings().WINDOW_DOC_LIMIT

    async def process_topic(self, topic: str, since: Optional[datetime] = None) -> Optional[TrendUpdate]:
        """Score one topic over its current window.

        Returns:
            TrendUpdate, or None when the window is empty

        Raises:
            TopicProcessingError: If reading the window or persisting fails
        """
        topic = normalize_topic(topic)
        try:
            window = await self.repository.find_window(topic=topic, since=since, limit=self.window_limit)
            return await self.manager.update_topic(topic, window)
        except TopicProcessingError:
            raise
        except Exception as e:
            raise TopicProcessingError(f"Scoring failed: {e}", topic=topic) from e

    async def run(
        self,
        topics: Iterable[str],
        since: Optional[datetime] = None,
    ) -> dict[str, TopicOutcome]:
        """Process topics sequentially, isolating failures.

        Returns:
            Outcome per normalized topic, in processing order
        """
        outcomes: dict[str, TopicOutcome] = {}
        for topic in dict.fromkeys(normalize_topic(t) for t in topics):
            if not topic:
                continue
            try:
                with TopicContext("process_topic", topic=topic) as ctx:
                    update = await self.process_topic(topic, since=since)
                    if update is not None:
                        ctx.add_info("score", update.record.score)
                        ctx.add_info("history_appended", update.history_appended)
            except TopicProcessingError:
                outcomes[topic] = TopicOutcome.FAILED
                continue

            if update is None:
                outcomes[topic] = TopicOutcome.SKIPPED
            elif update.history_appended:
                outcomes[topic] = TopicOutcome.UPDATED
            else:
                outcomes[topic] = TopicOutcome.UNCHANGED
        return outcomes


def build_document(
    item: RawItem,
    topic: str,
    *,
    tokenizer: Tokenizer,
    estimator: SentimentEstimator,
    min_length: int,
    max_tokens: int,
) -> DocumentSnapshot:
    """Derive tokens and sentiment of a fetched item and tag it with ``topic``."""
    timestamps = {"created_at": item.created_at} if item.created_at is not None else {}
    return DocumentSnapshot(
        text=item.text,
        topic_tags=[topic],
        derived_tokens=tokenizer.tokenize(item.text, min_length=min_length, max_tokens=max_tokens),
        sentiment=estimator.score(item.text),
        ups=item.ups,
        num_comments=item.num_comments,
        source_id=item.source_id,
        platform=item.platform,
        author=item.author_id,
        sub_topic=item.sub_topic,
        url=item.url,
        **timestamps,
    )


async def collect_documents(
    repository: TrendRepository,
    interests: Optional[Mapping[str, Sequence[str]]] = None,
    *,
    fetch: FetchPosts = fetch_subreddit_posts,
    tokenizer: Optional[Tokenizer] = None,
    estimator: Optional[SentimentEstimator] = None,
    errors: Optional[list[str]] = None,
) -> dict[str, int]:
    """Fetch, de-duplicate and store new documents for each interest.

    Args:
        repository: Persistence collaborator
        interests: Interest name -> sub-sources; defaults to INTEREST_SOURCES
        fetch: Coroutine returning raw posts for ``(sub_source, limit)``
        tokenizer: Tokenizer used for derived tokens
        estimator: Sentiment estimator
        errors: When given, isolated collaborator errors are appended to it

    Returns:
        Number of inserted documents per interest
    """
    settings = get_settings()
    interests = INTEREST_SOURCES if interests is None else interests
    tokenizer = tokenizer or Tokenizer()
    estimator = estimator or SentimentEstimator()

    inserted: dict[str, int] = {}
    for interest, sub_sources in interests.items():
        topic = normalize_topic(interest)
        inserted[interest] = 0
        seen: set[str] = set()

        for sub_source in sub_sources:
            try:
                raw_posts = await fetch(sub_source, settings.SOURCE_FETCH_LIMIT)
                unique = {item.source_id: item for item in normalize_reddit_posts(raw_posts)}
                items = [item for source_id, item in unique.items() if source_id not in seen]
                known = await repository.source_ids_exist(item.source_id for item in items)
                documents = [
                    build_document(
                        item,
                        topic,
                        tokenizer=tokenizer,
                        estimator=estimator,
                        min_length=settings.TOKEN_MIN_LENGTH,
                        max_tokens=settings.DERIVED_TOKEN_LIMIT,
                    )
                    for item in items
                    if item.source_id not in known
                ]
                seen.update(item.source_id for item in items)
                count = await repository.insert_documents(documents) if documents else 0
            except Exception as e:
                status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                error = CollaboratorError(
                    f"Collection from {sub_source} failed: {e}",
                    source=sub_source,
                    status_code=status_code,
                    topic=topic,
                )
                logger.warning(
                    "%s",
                    error,
                    extra={"extra_fields": {"topic": topic, "source": sub_source, "status_code": error.status_code}},
                )
                if errors is not None:
                    errors.append(str(error))
                continue

            inserted[interest] += count
            logger.info(
                "Collected %d new documents from %s",
                count,
                sub_source,
                extra={"extra_fields": {"topic": topic}},
            )

    return inserted


async def run_collection_cycle(
    repository: TrendRepository,
    manager: TrendRecordManager,
    interests: Optional[Mapping[str, Sequence[str]]] = None,
    *,
    fetch: FetchPosts = fetch_subreddit_posts,
) -> CycleSummary:
    """Ingest new documents, then rescore each interest's topic.

    Usage:
        summary = await run_collection_cycle(SqlTrendRepository(), manager, {"AI": ["OpenAI"]})
        summary.outcomes  # {"ai": TopicOutcome.UPDATED}
    """
    interests = INTEREST_SOURCES if interests is None else interests
    summary = CycleSummary()

    summary.inserted = await collect_documents(repository, interests, fetch=fetch, errors=summary.errors)

    pipeline = TrendPipeline(repository, manager)
    summary.outcomes = await pipeline.run(interests.keys())
    summary.errors.extend(
        f"[{topic}] scoring failed" for topic, outcome in summary.outcomes.items() if outcome is TopicOutcome.FAILED
    )

    logger.info(
        "Collection cycle finished: %d documents inserted, %d topics scored",
        summary.total_inserted,
        len(summary.outcomes),
    )
    return summary
