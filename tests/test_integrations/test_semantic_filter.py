"""Tests for the LLM-backed semantic filter."""

from unittest.mock import AsyncMock, patch

import pytest

from trendpulse.integrations.llm_client import LLMRetryExhausted
from trendpulse.integrations.semantic_filter import (
    LLMSemanticFilter,
    SemanticFilter,
    parse_filter_response,
)
from trendpulse.workflow.error_handling import SemanticFilterError


class TestParseFilterResponse:
    """Test validation of raw LLM answers."""

    def test_plain_array(self):
        assert parse_filter_response('["gpt", "agents"]') == ["gpt", "agents"]

    def test_fenced_array(self):
        assert parse_filter_response('```json\n["GPT-5", "Agents"]\n```') == ["gpt-5", "agents"]

    def test_non_string_items_dropped(self):
        assert parse_filter_response('["gpt", 3, null, {"a": 1}, "agents"]') == ["gpt", "agents"]

    def test_blank_and_duplicate_items_dropped(self):
        assert parse_filter_response('["gpt", "  ", "GPT", " agents "]') == ["gpt", "agents"]

    def test_limit(self):
        assert parse_filter_response('["a1", "b2", "c3", "d4"]') == ["a1", "b2", "c3"]
        assert parse_filter_response('["a1", "b2", "c3", "d4"]', limit=4) == ["a1", "b2", "c3", "d4"]

    def test_empty_array_is_valid(self):
        assert parse_filter_response("[]") == []

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_response(self, text):
        with pytest.raises(SemanticFilterError, match="Empty"):
            parse_filter_response(text)

    def test_not_json(self):
        with pytest.raises(SemanticFilterError, match="not JSON"):
            parse_filter_response("Here are the trends: gpt, agents")

    @pytest.mark.parametrize("text", ['{"terms": ["gpt"]}', '"gpt"', "42"])
    def test_not_an_array(self, text):
        with pytest.raises(SemanticFilterError, match="expected array"):
            parse_filter_response(text)

    def test_error_source(self):
        with pytest.raises(SemanticFilterError) as exc_info:
            parse_filter_response("nope")

        assert exc_info.value.source == "semantic_filter"


class TestLLMSemanticFilter:
    """Test the filter against a mocked LLM."""

    def test_satisfies_protocol(self):
        assert isinstance(LLMSemanticFilter(), SemanticFilter)

    def test_rejects_invalid_limit(self):
        with pytest.raises(ValueError):
            LLMSemanticFilter(limit=0)

    def test_build_prompt_numbers_candidates(self):
        prompt = LLMSemanticFilter().build_prompt(["gpt", "update"], "ai")

        assert 'Main topic: "ai"' in prompt
        assert "1. gpt\n2. update" in prompt
        assert "JSON array" in prompt

    @pytest.mark.asyncio
    async def test_no_candidates_skips_llm(self):
        with patch(
            "trendpulse.integrations.semantic_filter.generate_text", new_callable=AsyncMock
        ) as mock_generate:
            assert await LLMSemanticFilter().filter([], "ai") == []

            mock_generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_filter_returns_parsed_terms(self):
        with patch(
            "trendpulse.integrations.semantic_filter.generate_text", new_callable=AsyncMock
        ) as mock_generate:
            mock_generate.return_value = '```json\n["gpt", "agents"]\n```'

            result = await LLMSemanticFilter(model="gemini-2.5-pro").filter(["gpt", "update", "agents"], "ai")

            assert result == ["gpt", "agents"]
            call_kwargs = mock_generate.call_args.kwargs
            assert call_kwargs["model"] == "gemini-2.5-pro"
            assert call_kwargs["temperature"] == 0.0
            assert call_kwargs["max_tokens"] == 150

    @pytest.mark.asyncio
    async def test_malformed_answer_raises_with_topic(self):
        with patch(
            "trendpulse.integrations.semantic_filter.generate_text", new_callable=AsyncMock
        ) as mock_generate:
            mock_generate.return_value = "I think gpt is the main trend."

            with pytest.raises(SemanticFilterError) as exc_info:
                await LLMSemanticFilter().filter(["gpt"], "ai")

            assert exc_info.value.topic == "ai"
            assert str(exc_info.value).startswith("[ai]")

    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self):
        with patch(
            "trendpulse.integrations.semantic_filter.generate_text", new_callable=AsyncMock
        ) as mock_generate:
            mock_generate.side_effect = LLMRetryExhausted("All 3 attempts failed")

            with pytest.raises(LLMRetryExhausted):
                await LLMSemanticFilter().filter(["gpt"], "ai")
