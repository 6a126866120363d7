"""Domain state shared by the scoring pipeline and the repositories.

These models describe documents and trend records independently of the
storage engine. They are validated on construction and serializable to JSON.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def normalize_topic(value: object) -> str:
    """Topic key form: trimmed and lower-cased.

    Examples:
        >>> normalize_topic("  AI ")
        'ai'
    """
    if value is None:
        return ""
    return str(value).strip().lower()


class DocumentSnapshot(BaseModel):
    """One ingested post as seen by the scoring engine.

    Attributes:
        text: Post text (title and body)
        topic_tags: Normalized topic keys this post belongs to
        derived_tokens: Tokenizer output, first-occurrence order
        sentiment: Bounded sentiment in [-1, 1]
        ups: Upvote-like counter
        num_comments: Reply-like counter
        created_at: Ingestion time (UTC)
        source_id: Upstream identifier used for de-duplication
        platform: Source platform name
        author: Author handle
        sub_topic: Sub-source (subreddit) the post came from
        url: Permalink
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    topic_tags: list[str] = Field(default_factory=list)
    derived_tokens: list[str] = Field(default_factory=list)
    sentiment: float = Field(default=0.0, ge=-1.0, le=1.0)
    ups: int = Field(default=0, ge=0)
    num_comments: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_id: Optional[str] = None
    platform: Optional[str] = None
    author: Optional[str] = None
    sub_topic: Optional[str] = None
    url: Optional[str] = None

    @field_validator("topic_tags")
    @classmethod
    def normalize_tags(cls, tags: list[str]) -> list[str]:
        """Normalize tag keys and drop blanks and duplicates."""
        normalized = (normalize_topic(tag) for tag in tags)
        return list(dict.fromkeys(tag for tag in normalized if tag))

    @property
    def engagement(self) -> int:
        return self.ups + self.num_comments

    def is_tagged(self, topic: str) -> bool:
        return normalize_topic(topic) in self.topic_tags


class HistoryEntry(BaseModel):
    """One point of a trend's history ledger."""

    model_config = ConfigDict(frozen=True)

    ts: datetime
    count: float
    score: int

    @field_serializer("ts", when_used="json")
    def serialize_ts(self, value: datetime) -> str:
        return value.isoformat()


class TrendRecordState(BaseModel):
    """Durable aggregate of one topic.

    Attributes:
        topic: Unique topic key
        mention_count: Weighted mention measure of the last pass
        avg_sentiment: Mean window sentiment of the last pass
        score: Trend score of the last pass (0-100)
        related: Raw relatedness candidates, best first
        filtered_related: Curated subset shown to readers
        history: Append-only ledger, ascending by ``ts``
        last_updated: Time of the last scoring pass
    """

    topic: str
    mention_count: float = 0.0
    avg_sentiment: float = 0.0
    score: int = Field(default=0, ge=0, le=100)
    related: list[str] = Field(default_factory=list)
    filtered_related: list[str] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def baseline_measure(self, current: float) -> float:
        """Measure that growth of ``current`` is computed against.

        The newest history count that differs from ``current``, 0 when there
        is none. Rescoring an unchanged window therefore sees the same
        baseline as the pass that recorded it and yields the same score.

        Examples:
            >>> record = TrendRecordState(topic="ai", history=[
            ...     HistoryEntry(ts="2026-01-01T00:00:00Z", count=1.0, score=60),
            ...     HistoryEntry(ts="2026-01-01T01:00:00Z", count=2.0, score=70),
            ... ])
            >>> record.baseline_measure(3.0), record.baseline_measure(2.0)
            (2.0, 1.0)
        """
        for entry in reversed(self.history):
            if entry.count != current:
                return entry.count
        return 0.0

    @field_serializer("last_updated", when_used="json")
    def serialize_last_updated(self, value: datetime) -> str:
        return value.isoformat()


class TrendUpsert(BaseModel):
    """Scalar fields written by one scoring pass.

    The repository sets these fields and appends :meth:`history_entry` only
    when ``mention_count`` or ``score`` differs from the stored row.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    mention_count: float
    avg_sentiment: float
    score: int = Field(ge=0, le=100)
    related: list[str] = Field(default_factory=list)
    filtered_related: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def history_entry(self) -> HistoryEntry:
        return HistoryEntry(ts=self.updated_at, count=self.mention_count, score=self.score)

    def differs_from(self, record: Optional[TrendRecordState]) -> bool:
        """True when this pass must extend the history ledger of ``record``."""
        if record is None:
            return True
        return record.mention_count != self.mention_count or record.score != self.score
