"""Trend Record Manager - score one topic and persist its aggregate.

One call to :meth:`TrendRecordManager.update_topic` turns a document window
into a trend record:

1. Document-frequency index over the whole window
2. Related-term ranking over the documents tagged with the topic
3. Optional semantic filtering of the candidates (bounded by a timeout)
4. Weighted mentions, engagement and mean sentiment of the window
5. Trend score against the baseline measure of the history ledger
6. One atomic upsert that appends to the history ledger only on change

The semantic filter is a collaborator that may be absent, fail, hang or
answer with garbage. In every such case ``filtered_related`` falls back to
the first candidates of ``related``.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from trendpulse.analysis.document_frequency import DocumentFrequencyIndex
from trendpulse.analysis.relatedness import (
    DEFAULT_DF_THRESHOLD,
    DEFAULT_RELATED_LIMIT,
    RelatedTerm,
    rank_related,
)
from trendpulse.analysis.trend_score import compute_trend_score
from trendpulse.database.repository import TrendRepository
from trendpulse.integrations.semantic_filter import DEFAULT_FILTER_LIMIT, SemanticFilter
from trendpulse.utils.config import get_settings
from trendpulse.workflow.state import (
    DocumentSnapshot,
    TrendRecordState,
    TrendUpsert,
    normalize_topic,
)

logger = logging.getLogger(__name__)

DEFAULT_FILTER_TIMEOUT = 30.0


@dataclass(frozen=True)
class TrendUpdate:
    """Outcome of one scoring pass.

    Attributes:
        record: Record as stored after the pass
        history_appended: Whether the pass extended the history ledger
        related_terms: Scored relatedness candidates, best first
    """

    record: TrendRecordState
    history_appended: bool
    related_terms: tuple[RelatedTerm, ...] = ()


@dataclass(frozen=True)
class WindowAggregates:
    """Mention, engagement and sentiment measures of a document window."""

    weighted_mentions: float
    total_engagement: int
    avg_sentiment: float

    @classmethod
    def from_documents(cls, documents: Sequence[DocumentSnapshot]) -> "WindowAggregates":
        """Aggregate a window.

        ``weighted_mentions`` sums ``ln(1 + engagement)`` per document, so a
        post without any engagement adds nothing.

        Examples:
            >>> WindowAggregates.from_documents([]).avg_sentiment
            0.0
        """
        if not documents:
            return cls(weighted_mentions=0.0, total_engagement=0, avg_sentiment=0.0)

        return cls(
            weighted_mentions=math.fsum(math.log1p(doc.engagement) for doc in documents),
            total_engagement=sum(doc.engagement for doc in documents),
            avg_sentiment=math.fsum(doc.sentiment for doc in documents) / len(documents),
        )


def _next_history_ts(record: Optional[TrendRecordState], now: datetime) -> datetime:
    """Timestamp for a new history entry, strictly after the newest stored one."""
    if record is None or not record.history:
        return now
    last_ts = record.history[-1].ts
    if now <= last_ts:
        return last_ts + timedelta(microseconds=1)
    return now


class TrendRecordManager:
    """Scores topics and upserts their trend records.

    Args:
        repository: Persistence collaborator
        semantic_filter: Optional curation of related candidates
        related_limit: Maximum number of related candidates kept
        df_threshold: Ubiquity cutoff for related candidates
        filtered_limit: Size of the fallback ``filtered_related`` list
        filter_timeout: Seconds the semantic filter may take per topic
    """

    def __init__(
        self,
        repository: TrendRepository,
        semantic_filter: Optional[SemanticFilter] = None,
        *,
        related_limit: int = DEFAULT_RELATED_LIMIT,
        df_threshold: float = DEFAULT_DF_THRESHOLD,
        filtered_limit: int = DEFAULT_FILTER_LIMIT,
        filter_timeout: float = DEFAULT_FILTER_TIMEOUT,
    ) -> None:
        self.repository = repository
        self.semantic_filter = semantic_filter
        self.related_limit = related_limit
        self.df_threshold = df_threshold
        self.filtered_limit = filtered_limit
        self.filter_timeout = filter_timeout

    @classmethod
    def from_settings(
        cls,
        repository: TrendRepository,
        semantic_filter: Optional[SemanticFilter] = None,
    ) -> "TrendRecordManager":
        """Build a manager configured from :func:`get_settings`.

        The filter is dropped when ``SEMANTIC_FILTER_ENABLED`` is false.
        """
        settings = get_settings()
        return cls(
            repository,
            semantic_filter if settings.SEMANTIC_FILTER_ENABLED else None,
            related_limit=settings.RELATED_LIMIT,
            df_threshold=settings.RELATED_DF_THRESHOLD,
            filtered_limit=settings.FILTERED_RELATED_LIMIT,
            filter_timeout=settings.SEMANTIC_FILTER_TIMEOUT,
        )

    async def _filter_related(self, topic: str, related: list[str]) -> list[str]:
        fallback = related[: self.filtered_limit]
        if self.semantic_filter is None or not related:
            return fallback

        try:
            result = await asyncio.wait_for(
                self.semantic_filter.filter(list(related), topic),
                timeout=self.filter_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Semantic filter timed out after %.1fs, using top candidates",
                self.filter_timeout,
                extra={"extra_fields": {"topic": topic}},
            )
            return fallback
        except Exception as e:
            logger.warning(
                "Semantic filter failed, using top candidates: %s",
                e,
                extra={"extra_fields": {"topic": topic}},
            )
            return fallback

        if not isinstance(result, (list, tuple)):
            logger.warning(
                "Semantic filter returned %s, using top candidates",
                type(result).__name__,
                extra={"extra_fields": {"topic": topic}},
            )
            return fallback

        terms = list(dict.fromkeys(item for item in result if isinstance(item, str) and item))
        return terms[: self.filtered_limit] or fallback

    async def update_topic(
        self,
        topic: str,
        window: Sequence[DocumentSnapshot],
        *,
        now: Optional[datetime] = None,
    ) -> Optional[TrendUpdate]:
        """Score ``topic`` over ``window`` and persist the result.

        Args:
            topic: Topic key (normalized before use)
            window: Active document window of the topic
            now: Pass timestamp, defaults to the current UTC time

        Returns:
            TrendUpdate, or None when the window is empty (nothing is written)
        """
        topic = normalize_topic(topic)
        if not topic or not window:
            logger.info("No documents in window, skipping", extra={"extra_fields": {"topic": topic}})
            return None

        index = DocumentFrequencyIndex.build(doc.derived_tokens for doc in window)
        related_terms = rank_related(
            topic,
            (doc.derived_tokens for doc in window if doc.is_tagged(topic)),
            index,
            limit=self.related_limit,
            df_threshold=self.df_threshold,
        )
        related = [term.term for term in related_terms]
        filtered_related = await self._filter_related(topic, related)

        aggregates = WindowAggregates.from_documents(window)
        existing = await self.repository.find_one(topic)
        previous = existing.baseline_measure(aggregates.weighted_mentions) if existing is not None else 0.0

        score = compute_trend_score(
            aggregates.weighted_mentions,
            previous,
            aggregates.avg_sentiment,
            aggregates.total_engagement,
        )

        upsert = TrendUpsert(
            topic=topic,
            mention_count=aggregates.weighted_mentions,
            avg_sentiment=aggregates.avg_sentiment,
            score=score,
            related=related,
            filtered_related=filtered_related,
            updated_at=_next_history_ts(existing, now or datetime.now(timezone.utc)),
        )
        record, appended = await self.repository.atomic_upsert(upsert)

        logger.info(
            "Scored topic: score=%d mentions=%.3f previous=%.3f history_appended=%s",
            score,
            aggregates.weighted_mentions,
            previous,
            appended,
            extra={"extra_fields": {"topic": topic, "documents": len(window)}},
        )
        return TrendUpdate(record=record, history_appended=appended, related_terms=tuple(related_terms))
