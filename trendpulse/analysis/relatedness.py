"""Relatedness Scorer - IDF-weighted co-occurrence ranking.

For every document tagged with a topic, each distinct token (other than the
topic key itself) earns ``ln(1 + total_docs / df)``. Scores accumulate across
the topic's documents, so a term that co-occurs often ranks high while a term
that appears everywhere earns little per document. Presence per document is
all that counts; there is no term-frequency component.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from trendpulse.analysis.document_frequency import DocumentFrequencyIndex

DEFAULT_RELATED_LIMIT: Final[int] = 10

# Only tokens present in virtually every document are excluded
DEFAULT_DF_THRESHOLD: Final[float] = 0.99


@dataclass(frozen=True)
class RelatedTerm:
    """A candidate term and its accumulated relatedness score."""

    term: str
    score: float


def idf_weight(term: str, index: DocumentFrequencyIndex) -> float:
    """Per-document weight ``ln(1 + total_docs / max(df, 1))``."""
    return math.log1p(index.total_docs / max(index.df(term), 1))


def rank_related(
    topic: str,
    topic_token_sets: Iterable[Iterable[str]],
    index: DocumentFrequencyIndex,
    *,
    limit: int = DEFAULT_RELATED_LIMIT,
    df_threshold: float = DEFAULT_DF_THRESHOLD,
) -> list[RelatedTerm]:
    """Rank terms related to ``topic``.

    Args:
        topic: Normalized topic key; never returned as its own candidate
        topic_token_sets: Derived tokens of each document tagged with the topic
        index: Document-frequency index of the active window
        limit: Maximum number of candidates returned
        df_threshold: Terms with ``df / total_docs >= df_threshold`` are skipped

    Returns:
        RelatedTerm list sorted by descending score. Equal scores keep the
        order in which the terms were first seen.

    Examples:
        >>> index = DocumentFrequencyIndex.build([["gpu", "chip"], ["chip"], ["launch"]])
        >>> [t.term for t in rank_related("ai", [["gpu", "chip"]], index)]
        ['gpu', 'chip']
    """
    if limit < 1:
        return []

    scores: dict[str, float] = {}
    for tokens in topic_token_sets:
        for term in dict.fromkeys(tokens):
            if term == topic or index.ratio(term) >= df_threshold:
                continue
            scores[term] = scores.get(term, 0.0) + idf_weight(term, index)

    # sorted() is stable, so insertion order breaks exact ties
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [RelatedTerm(term=term, score=score) for term, score in ranked[:limit]]
