"""Scoring and relatedness engine.

Pure, deterministic building blocks used by the trend record manager:
tokenization, document frequency, relatedness ranking, sentiment and the
trend score formula.
"""

from trendpulse.analysis.document_frequency import DocumentFrequencyIndex
from trendpulse.analysis.relatedness import RelatedTerm, idf_weight, rank_related
from trendpulse.analysis.sentiment import (
    SentimentEstimator,
    SentimentLexicon,
    VaderLexicon,
    compute_sentiment,
)
from trendpulse.analysis.tokenizer import Tokenizer, TokenizerConfig, tokenize
from trendpulse.analysis.trend_score import compute_trend_score

__all__ = [
    "tokenize",
    "Tokenizer",
    "TokenizerConfig",
    "DocumentFrequencyIndex",
    "rank_related",
    "idf_weight",
    "RelatedTerm",
    "compute_sentiment",
    "SentimentEstimator",
    "SentimentLexicon",
    "VaderLexicon",
    "compute_trend_score",
]
