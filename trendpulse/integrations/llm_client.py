"""Unified LLM client for text generation using LiteLLM.

Single async interface used by the semantic filter, with Gemini as the
default provider, optional OpenAI support and any OpenAI-compatible custom
endpoint (Ollama, LM Studio).

Public API:
    generate_text: Generate text from a prompt using configured LLM provider
    LLMRetryExhausted: Exception raised when retries are exhausted

Example:
    >>> text = await generate_text("Return a JSON array of two colors")
"""

import asyncio
import re

import litellm

from trendpulse.utils.config import get_settings
from trendpulse.utils.logging_config import get_logger

_CODE_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _get_logger():
    """Get logger instance lazily to avoid module-level import issues."""
    return get_logger(__name__)


class LLMRetryExhausted(Exception):
    """Raised when all retry attempts are exhausted or error is non-retryable.

    The original exception is attached as the cause via exception chaining.
    """


def _strip_markdown_json(text: str) -> str:
    """Remove a surrounding markdown code fence from an LLM JSON answer.

    Examples:
        >>> _strip_markdown_json('```json\\n["a", "b"]\\n```')
        '["a", "b"]'
        >>> _strip_markdown_json('  ["a"]  ')
        '["a"]'
    """
    return _CODE_FENCE_PATTERN.sub("", text.strip()).strip()


def _is_retryable_error(error: Exception) -> bool:
    """Determine if an error should trigger a retry.

    Args:
        error: The exception that occurred

    Returns:
        True if the error is retryable, False otherwise
    """
    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )

    if isinstance(error, retryable_types):
        return True

    error_str = str(error).lower()

    # Non-retryable: authentication, invalid request
    if any(
        keyword in error_str
        for keyword in [
            "authentication",
            "invalid api key",
            "unauthorized",
            "401",
            "403",
            "invalid request",
            "400",
        ]
    ):
        return False

    # Retryable: rate limits, timeouts, server errors (5xx)
    if any(
        keyword in error_str
        for keyword in [
            "rate limit",
            "timeout",
            "connection",
            "server error",
            "500",
            "502",
            "503",
            "504",
        ]
    ):
        return True

    return True


def _get_llm_config(model_override: str | None) -> dict:
    """Get LLM configuration based on priority: custom endpoint > hosted provider.

    Args:
        model_override: Optional model override

    Returns:
        dict with keys model, base_url, api_key, provider
    """
    settings = get_settings()

    if settings.CUSTOM_LLM_BASE_URL:
        return {
            "model": model_override or settings.CUSTOM_LLM_MODEL or settings.LLM_DEFAULT_MODEL,
            "base_url": settings.CUSTOM_LLM_BASE_URL,
            "api_key": settings.get_custom_llm_api_key(),
            "provider": "openai",  # Custom endpoints are OpenAI-compatible
        }

    return {
        "model": model_override or settings.LLM_DEFAULT_MODEL,
        "base_url": None,
        "api_key": settings.get_llm_api_key(),
        "provider": settings.LLM_PROVIDER,
    }


async def _call_llm_with_retry(  # pylint: disable=too-many-locals
    prompt: str,
    config: dict,
    temperature: float,
    max_tokens: int | None,
) -> str:
    """Call LLM with retry logic and exponential backoff.

    Args:
        prompt: Text prompt to send to LLM
        config: LLM configuration dict from _get_llm_config
        temperature: Sampling temperature
        max_tokens: Completion token cap, None for provider default

    Returns:
        Generated text

    Raises:
        LLMRetryExhausted: When retries are exhausted or error is non-retryable
    """
    settings = get_settings()
    logger = _get_logger()
    max_retries = settings.LLM_MAX_RETRIES

    model = config["model"]
    base_url = config["base_url"]
    provider = config["provider"]
    provider_name = "custom" if base_url else provider

    for attempt in range(max_retries + 1):
        try:
            logger.debug(
                "LLM attempt %d/%d",
                attempt + 1,
                max_retries + 1,
                extra={
                    "extra_fields": {
                        "provider": provider_name,
                        "model": model,
                        "temperature": temperature,
                    }
                },
            )

            response = await litellm.acompletion(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
                api_key=config["api_key"],
                base_url=base_url,
                timeout=settings.LLM_TIMEOUT,
                custom_llm_provider=provider,
            )

            generated_text = response.choices[0].message.content or ""

            logger.info(
                "LLM request successful",
                extra={
                    "extra_fields": {
                        "provider": provider_name,
                        "model": model,
                        "attempts": attempt + 1,
                    }
                },
            )

            return generated_text

        except Exception as e:
            logger.debug("LLM error on attempt %d: %s: %s", attempt + 1, type(e).__name__, str(e))

            if not _is_retryable_error(e):
                logger.error(
                    "LLM non-retryable error",
                    extra={
                        "extra_fields": {
                            "provider": provider_name,
                            "model": model,
                            "error_type": type(e).__name__,
                        }
                    },
                )
                raise LLMRetryExhausted(f"Non-retryable error: {type(e).__name__}") from e

            if attempt == max_retries:
                logger.error(
                    "LLM retries exhausted: %s: %s",
                    type(e).__name__,
                    str(e),
                    extra={
                        "extra_fields": {
                            "provider": provider_name,
                            "model": model,
                            "attempts": attempt + 1,
                            "error_type": type(e).__name__,
                        }
                    },
                )
                raise LLMRetryExhausted(
                    f"All {max_retries + 1} attempts failed: {type(e).__name__}: {str(e)}"
                ) from e

            delay = settings.LLM_RETRY_DELAY * (2**attempt)
            logger.debug("Retrying in %ss (attempt %d/%d)", delay, attempt + 2, max_retries + 1)
            await asyncio.sleep(delay)

    raise LLMRetryExhausted("Unexpected retry loop exit")


async def generate_text(
    prompt: str,
    *,
    model: str | None = None,
    temperature: float = 0.2,
    max_tokens: int | None = None,
) -> str:
    """Generate text using configured LLM provider.

    Args:
        prompt: Plain text prompt to send to the LLM
        model: Optional model override. Defaults to LLM_DEFAULT_MODEL or
            CUSTOM_LLM_MODEL from config.
        temperature: Sampling temperature for generation (default: 0.2)
        max_tokens: Optional completion token cap

    Returns:
        Generated text as a string (may be empty)

    Raises:
        ValueError: If prompt is empty or temperature is out of range
        LLMRetryExhausted: When all retry attempts fail or error is non-retryable

    Notes:
        - Priority: CUSTOM_LLM_BASE_URL > LLM_PROVIDER
        - Total attempts = 1 initial + LLM_MAX_RETRIES
        - Logs provider, model, and attempt count (never prompt or generated text)
    """
    if not prompt or not prompt.strip():
        raise ValueError("Prompt cannot be empty")

    if not 0.0 <= temperature <= 2.0:
        raise ValueError("Temperature must be between 0.0 and 2.0")

    if max_tokens is not None and max_tokens < 1:
        raise ValueError("max_tokens must be at least 1")

    config = _get_llm_config(model)

    return await _call_llm_with_retry(
        prompt=prompt,
        config=config,
        temperature=temperature,
        max_tokens=max_tokens,
    )
