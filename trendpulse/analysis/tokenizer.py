"""Tokenizer - normalized, de-duplicated token sequences from post text.

Turns raw post text (title + body) into the short token vocabulary stored on
each document as ``derived_tokens``. The same vocabulary feeds the
document-frequency index and the relatedness scorer, so every step here is
deterministic for a given configuration.

Pipeline:
1. Lower-case, strip URL-shaped substrings
2. Replace everything outside ``[a-z\\s]`` with whitespace and split
3. Correction table lookup, otherwise naive plural stripping
4. Drop short tokens, stopwords and numerics
5. De-duplicate (first occurrence wins) and truncate

Stemming is deliberately naive: "games" becomes "game" but so does any
other long word ending in a single ``s``.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final, Mapping

DEFAULT_MIN_LENGTH: Final[int] = 5
DEFAULT_MAX_TOKENS: Final[int] = 10

# Plural stripping only applies to tokens longer than this
STEM_MIN_LENGTH: Final[int] = 4

_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?:https?://|www\.)\S+")
_NON_ALPHA_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^a-z\s]")

DEFAULT_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        # articles, conjunctions, prepositions
        "a", "an", "the", "and", "but", "if", "or", "nor", "because", "as",
        "until", "while", "of", "at", "by", "for", "with", "about", "against",
        "between", "into", "through", "during", "before", "after", "above",
        "below", "to", "from", "up", "down", "in", "out", "on", "off", "over",
        "under", "again", "further", "then", "once", "here", "there", "when",
        "where", "why", "how", "than", "though", "although", "since", "unless",
        "upon", "within", "without", "toward", "towards", "across", "along",
        "around", "behind", "beyond", "despite", "onto", "throughout", "among",
        # pronouns
        "i", "me", "my", "myself", "we", "our", "ours", "ourselves", "you",
        "your", "yours", "yourself", "yourselves", "he", "him", "his",
        "himself", "she", "her", "hers", "herself", "it", "its", "itself",
        "they", "them", "their", "theirs", "themselves", "what", "which",
        "who", "whom", "whose", "this", "that", "these", "those",
        # auxiliaries and modals
        "am", "is", "are", "was", "were", "be", "been", "being", "have", "has",
        "had", "having", "do", "does", "did", "doing", "can", "could", "will",
        "would", "shall", "should", "may", "might", "must", "ought",
        # quantifiers and adverbs
        "all", "any", "both", "each", "few", "more", "most", "other", "some",
        "such", "no", "not", "only", "own", "same", "so", "too", "very",
        "just", "now", "also", "even", "ever", "never", "still", "yet",
        "already", "really", "quite", "rather", "much", "many", "every",
        "another", "either", "neither", "else", "almost", "always", "often",
        "maybe", "perhaps", "well", "back", "keep", "like", "make", "made",
        "thing", "things", "something", "anything", "everything", "nothing",
        "someone", "anyone", "everyone", "going", "getting", "using", "think",
        "know", "want", "need", "actually", "probably", "anyway", "whether",
        # contraction fragments left behind by punctuation stripping
        "s", "t", "d", "ll", "m", "re", "ve", "don", "didn", "doesn", "isn",
        "wasn", "aren", "weren", "couldn", "shouldn", "wouldn", "won",
        # source noise
        "reddit", "subreddit", "post", "posts", "comments", "comment", "http",
        "https", "www", "com", "note", "major", "edit",
    }
)

DEFAULT_CORRECTIONS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "aquires": "acquire",
        "aquire": "acquire",
        "acquireing": "acquiring",
        "games": "game",
        "models": "model",
    }
)


@dataclass(frozen=True)
class TokenizerConfig:
    """Immutable stopword and correction tables.

    Correction targets must be fixed points of normalization (no trailing
    single ``s``) so that tokenizing a tokenizer's output returns it unchanged.

    Attributes:
        stopwords: Tokens never emitted
        corrections: Irregular or misspelled form -> canonical form
    """

    stopwords: frozenset[str] = DEFAULT_STOPWORDS
    corrections: Mapping[str, str] = field(default_factory=lambda: DEFAULT_CORRECTIONS)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stopwords", frozenset(self.stopwords))
        object.__setattr__(self, "corrections", MappingProxyType(dict(self.corrections)))


class Tokenizer:
    """Stateless tokenizer bound to one configuration."""

    def __init__(self, config: TokenizerConfig | None = None) -> None:
        self._config = config or TokenizerConfig()

    @property
    def config(self) -> TokenizerConfig:
        return self._config

    def normalize_token(self, token: str) -> str:
        """Apply the correction table, else strip one plural ``s``.

        Examples:
            >>> Tokenizer().normalize_token("models")
            'model'
            >>> Tokenizer().normalize_token("launches")
            'launche'
            >>> Tokenizer().normalize_token("business")
            'business'
        """
        corrected = self._config.corrections.get(token)
        if corrected is not None:
            return corrected
        if len(token) > STEM_MIN_LENGTH and token.endswith("s") and not token.endswith("ss"):
            return token[:-1]
        return token

    def tokenize(
        self,
        text: str,
        *,
        min_length: int = DEFAULT_MIN_LENGTH,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> list[str]:
        """Extract the normalized token sequence of ``text``.

        Args:
            text: Raw post text
            min_length: Shortest token kept (after normalization)
            max_tokens: Maximum number of tokens returned

        Returns:
            Unique tokens in first-occurrence order. Empty for non-string,
            empty or all-noise input.

        Examples:
            >>> tokenize("OpenAI launches new models! https://x.co/a")
            ['openai', 'launche', 'model']
        """
        if not isinstance(text, str) or not text or max_tokens < 1:
            return []

        cleaned = _URL_PATTERN.sub(" ", text.lower())
        cleaned = _NON_ALPHA_PATTERN.sub(" ", cleaned)

        stopwords = self._config.stopwords
        seen: set[str] = set()
        tokens: list[str] = []
        for raw in cleaned.split():
            token = self.normalize_token(raw)
            if len(token) < min_length or token in stopwords or token.isdigit():
                continue
            if token in seen:
                continue
            seen.add(token)
            tokens.append(token)
            if len(tokens) >= max_tokens:
                break

        return tokens


_default_tokenizer = Tokenizer()


def tokenize(
    text: str,
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> list[str]:
    """Tokenize with the default stopword and correction tables."""
    return _default_tokenizer.tokenize(text, min_length=min_length, max_tokens=max_tokens)
