"""Trend Score Calculator - growth, velocity, sentiment and engagement in 0-100.

Scoring Components:
- Growth: relative change against the previous measure, ``ln(1 + recent)``
  on cold start (no previous measure to divide by)
- Velocity: ``ln(1 + recent)``
- Sentiment: average sentiment in [-1, 1]
- Engagement: ``ln(1 + total_engagement)``

Unbounded signals pass through ``tanh`` so no single spike dominates. The
weights do not sum to 1; the weighted sum is clamped to [-1, 1] before being
mapped linearly onto [0, 100].

The measure passed as ``recent``/``previous`` is the weighted mention measure
of a topic, but the calculator only sees scalars.
"""

import math
from typing import Final

GROWTH_WEIGHT: Final[float] = 0.4
VELOCITY_WEIGHT: Final[float] = 0.3
SENTIMENT_WEIGHT: Final[float] = 0.3
ENGAGEMENT_WEIGHT: Final[float] = 0.4

# Divisor applied to log-scaled velocity/engagement before tanh
LOG_SIGNAL_SCALE: Final[float] = 5.0

MIN_SCORE: Final[int] = 0
MAX_SCORE: Final[int] = 100


def _finite_non_negative(value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)


def _growth_rate(recent: float, previous: float) -> float:
    """Relative growth, or log-scaled volume when there is no previous measure.

    Examples:
        >>> _growth_rate(20, 10)
        1.0
        >>> round(_growth_rate(10, 0), 4)
        2.3979
    """
    if previous > 0:
        return (recent - previous) / previous
    return math.log1p(recent)


def _velocity(recent: float) -> float:
    return math.log1p(recent)


def _raw_score(recent: float, previous: float, avg_sentiment: float, total_engagement: float) -> float:
    """Weighted component sum before clamping (roughly -0.3 to 1.4)."""
    growth = GROWTH_WEIGHT * math.tanh(_growth_rate(recent, previous))
    velocity = VELOCITY_WEIGHT * math.tanh(_velocity(recent) / LOG_SIGNAL_SCALE)
    sentiment = SENTIMENT_WEIGHT * avg_sentiment
    engagement = ENGAGEMENT_WEIGHT * math.tanh(math.log1p(total_engagement) / LOG_SIGNAL_SCALE)
    return growth + velocity + sentiment + engagement


def compute_trend_score(
    recent: float,
    previous: float,
    avg_sentiment: float,
    total_engagement: float = 0,
) -> int:
    """Combine growth, velocity, sentiment and engagement into 0-100.

    Pure and total: negative or non-finite measures count as 0 and sentiment
    is clamped to [-1, 1] before scoring.

    Args:
        recent: Current (weighted) mention measure
        previous: Measure recorded by the previous scoring pass, 0 if none
        avg_sentiment: Mean sentiment of the window in [-1, 1]
        total_engagement: Raw engagement sum (upvotes + replies)

    Returns:
        Integer score in [0, 100]. Non-decreasing in ``recent``,
        ``avg_sentiment`` and ``total_engagement``.

    Examples:
        >>> compute_trend_score(100, 10, 0.5, 0) > compute_trend_score(10, 10, 0.5, 0)
        True
        >>> compute_trend_score(0, 0, 0, 0)
        50
    """
    recent = _finite_non_negative(recent)
    previous = _finite_non_negative(previous)
    total_engagement = _finite_non_negative(total_engagement)

    avg_sentiment = float(avg_sentiment)
    if not math.isfinite(avg_sentiment):
        avg_sentiment = 0.0
    avg_sentiment = max(-1.0, min(1.0, avg_sentiment))

    clamped = max(-1.0, min(1.0, _raw_score(recent, previous, avg_sentiment, total_engagement)))
    normalized = ((clamped + 1) / 2) * 100

    # Half-up rounding; round() would send 57.5 and 58.5 both to 58
    score = math.floor(normalized + 0.5)
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))
