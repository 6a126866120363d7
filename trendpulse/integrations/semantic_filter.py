"""Semantic filter - LLM curation of related-term candidates.

The DF-ranked candidates of a topic often include generic words. A semantic
filter narrows them to a handful of concrete trends. It is strictly optional:
callers bound each call with a timeout and fall back to the raw candidates
whenever the filter fails, hangs or answers with anything but a JSON array.

Public API:
    SemanticFilter: Capability protocol ``filter(candidates, topic)``
    LLMSemanticFilter: LiteLLM-backed implementation
    parse_filter_response: Validate and clean a raw LLM answer
"""

import json
from typing import Final, Protocol, Sequence, runtime_checkable

from trendpulse.integrations.llm_client import _strip_markdown_json, generate_text
from trendpulse.integrations.prompts import RELATED_TRENDS_FILTER_PROMPT_V1
from trendpulse.utils.logging_config import get_logger
from trendpulse.workflow.error_handling import SemanticFilterError

DEFAULT_FILTER_LIMIT: Final[int] = 3
FILTER_MAX_TOKENS: Final[int] = 150


def _get_logger():
    return get_logger(__name__)


@runtime_checkable
class SemanticFilter(Protocol):
    """Narrows relatedness candidates to semantically meaningful terms."""

    async def filter(self, candidates: Sequence[str], topic: str) -> list[str]:
        """Return the curated subset (2-4 items) of ``candidates`` for ``topic``.

        May raise; callers treat any failure as an empty result.
        """
        ...


def parse_filter_response(text: str, *, limit: int = DEFAULT_FILTER_LIMIT) -> list[str]:
    """Parse an LLM answer expected to be a JSON array of strings.

    Args:
        text: Raw LLM output, optionally wrapped in a markdown code fence
        limit: Maximum number of terms kept

    Returns:
        Lower-cased, de-duplicated, non-empty string items in answer order

    Raises:
        SemanticFilterError: If the answer is empty, not JSON or not an array

    Examples:
        >>> parse_filter_response('```json\\n["GPT-5", "agents", 3]\\n```')
        ['gpt-5', 'agents']
    """
    if not text or not text.strip():
        raise SemanticFilterError("Empty filter response")

    try:
        parsed = json.loads(_strip_markdown_json(text))
    except json.JSONDecodeError as e:
        raise SemanticFilterError(f"Filter response is not JSON: {e}") from e

    if not isinstance(parsed, list):
        raise SemanticFilterError(f"Filter response is {type(parsed).__name__}, expected array")

    terms = (item.strip().lower() for item in parsed if isinstance(item, str))
    return list(dict.fromkeys(term for term in terms if term))[:limit]


class LLMSemanticFilter:
    """Semantic filter backed by :func:`generate_text`.

    Usage:
        semantic_filter = LLMSemanticFilter()
        terms = await semantic_filter.filter(["gpt", "update", "agents"], "ai")
    """

    def __init__(
        self,
        *,
        limit: int = DEFAULT_FILTER_LIMIT,
        model: str | None = None,
        temperature: float = 0.0,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.model = model
        self.temperature = temperature

    def build_prompt(self, candidates: Sequence[str], topic: str) -> str:
        numbered = "\n".join(f"{i}. {candidate}" for i, candidate in enumerate(candidates, start=1))
        return RELATED_TRENDS_FILTER_PROMPT_V1.format(topic=topic, candidates=numbered)

    async def filter(self, candidates: Sequence[str], topic: str) -> list[str]:
        """Ask the LLM which candidates are meaningful trends for ``topic``.

        Raises:
            SemanticFilterError: On malformed output
            LLMRetryExhausted: When the LLM call fails
        """
        if not candidates:
            return []

        response = await generate_text(
            self.build_prompt(candidates, topic),
            model=self.model,
            temperature=self.temperature,
            max_tokens=FILTER_MAX_TOKENS,
        )
        try:
            terms = parse_filter_response(response, limit=self.limit)
        except SemanticFilterError as e:
            e.topic = topic
            raise

        _get_logger().debug(
            "Semantic filter kept %d of %d candidates",
            len(terms),
            len(candidates),
            extra={"extra_fields": {"topic": topic}},
        )
        return terms
