"""Sentiment Estimator - bounded polarity for post text.

Raw polarity comes from a lexicon collaborator (signed, unbounded). The
estimator dampens length bias by dividing by ``sqrt(len(text))`` and clamps
the result to [-1, 1]. It is called inline during ingestion and scoring, so it
never raises: lexicon failures are logged and score as neutral.
"""

import logging
import math
import string
from typing import Final, Protocol, runtime_checkable

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

logger = logging.getLogger(__name__)

_EDGE_PUNCTUATION: Final[str] = string.punctuation + "“”‘’…"


@runtime_checkable
class SentimentLexicon(Protocol):
    """Lexicon-based polarity scorer."""

    def analyze(self, text: str) -> float:
        """Return the signed, unbounded polarity of ``text``."""
        ...


class VaderLexicon:
    """Sums VADER lexicon valences over the words of a text.

    Unlike ``polarity_scores`` (already normalized to [-1, 1]), the plain sum
    grows with the number of opinionated words, which is what the length
    normalization in :class:`SentimentEstimator` expects.
    """

    def __init__(self, analyzer: SentimentIntensityAnalyzer | None = None) -> None:
        self._lexicon = (analyzer or SentimentIntensityAnalyzer()).lexicon

    def analyze(self, text: str) -> float:
        total = 0.0
        for word in text.lower().split():
            # emoticons like ":)" are lexicon entries in their raw form
            valence = self._lexicon.get(word)
            if valence is None:
                valence = self._lexicon.get(word.strip(_EDGE_PUNCTUATION))
            if valence is not None:
                total += valence
        return total


class SentimentEstimator:
    """Normalizes lexicon polarity into [-1, 1]."""

    def __init__(self, lexicon: SentimentLexicon | None = None) -> None:
        self._lexicon = lexicon or VaderLexicon()

    def score(self, text: str) -> float:
        """Bounded sentiment of ``text``.

        Args:
            text: Post text

        Returns:
            ``clamp(raw / max(1, sqrt(len(text))), -1, 1)``; 0.0 for
            non-string or empty input and whenever the lexicon fails.
        """
        if not isinstance(text, str) or not text:
            return 0.0

        try:
            raw = float(self._lexicon.analyze(text))
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Sentiment lexicon failed, scoring as neutral: %s: %s", type(e).__name__, e)
            return 0.0

        if not math.isfinite(raw):
            return 0.0

        normalized = raw / max(1.0, math.sqrt(len(text)))
        return max(-1.0, min(1.0, normalized))


_default_estimator: SentimentEstimator | None = None


def compute_sentiment(text: str) -> float:
    """Score ``text`` with the shared VADER-backed estimator.

    The estimator is built on first use; loading the VADER lexicon reads a
    file from the package data.
    """
    global _default_estimator
    if _default_estimator is None:
        _default_estimator = SentimentEstimator()
    return _default_estimator.score(text)
