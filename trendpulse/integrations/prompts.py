"""Centralized prompt registry for LLM interactions.

Each prompt is a static string constant with no dynamic logic.

Naming convention: <PURPOSE>_PROMPT_V<NUMBER>

Version History:
- V1: Related-trend filter
"""

RELATED_TRENDS_FILTER_PROMPT_V1 = """You are filtering related trends.

Main topic: "{topic}"

Candidates:
{candidates}

Rules:
- Remove generic words
- Keep concrete, meaningful trends
- Only return terms taken from the candidate list
- Return a JSON array (minimum 2, maximum 4 items)
- NO explanation, JSON ONLY
"""
