"""Tests for the Reddit client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from trendpulse.integrations.sources.reddit_client import INTEREST_SOURCES, fetch_subreddit_posts


def _listing(*posts: dict) -> dict:
    return {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": post} for post in posts]}}


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json = MagicMock(return_value=payload)
    return response


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_success():
    """Test the listing children are unwrapped."""
    payload = _listing(
        {"id": "a1", "title": "New model released"},
        {"id": "b2", "title": "Benchmarks"},
    )

    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=_response(payload))

        results = await fetch_subreddit_posts("OpenAI", limit=10)

        assert [post["id"] for post in results] == ["a1", "b2"]
        mock_instance.get.assert_called_once_with("/r/OpenAI/new.json", params={"limit": 10})


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_sends_user_agent():
    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=_response(_listing()))

        await fetch_subreddit_posts("gaming")

        client_kwargs = mock_client.call_args.kwargs
        assert client_kwargs["headers"] == {"User-Agent": "TrendBot/1.0"}
        assert client_kwargs["base_url"] == "https://www.reddit.com"
        assert client_kwargs["timeout"] == 30.0


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_truncates_to_limit():
    payload = _listing(*({"id": str(i), "title": f"Post {i}"} for i in range(5)))

    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=_response(payload))

        results = await fetch_subreddit_posts("gaming", limit=2)

        assert len(results) == 2


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_empty_listing():
    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=_response({"data": {}}))

        assert await fetch_subreddit_posts("gaming") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"data": []},
        {"data": {"children": {"kind": "t3"}}},
        {"data": {"children": ["t3_a1", {"kind": "t3", "data": "a1"}, {"kind": "more"}]}},
    ],
)
async def test_fetch_subreddit_posts_malformed_listing(payload):
    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=_response(payload))

        assert await fetch_subreddit_posts("gaming") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("subreddit", ["", "   "])
async def test_fetch_subreddit_posts_empty_subreddit(subreddit):
    with pytest.raises(ValueError, match="Subreddit cannot be empty"):
        await fetch_subreddit_posts(subreddit)


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_invalid_limit():
    with pytest.raises(ValueError, match="Limit must be positive"):
        await fetch_subreddit_posts("gaming", limit=0)


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_retries_transport_errors():
    """Test transport errors are retried before succeeding."""
    with patch("httpx.AsyncClient") as mock_client, patch(
        "trendpulse.workflow.error_handling.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(
            side_effect=[httpx.ConnectError("refused"), _response(_listing({"id": "a1", "title": "t"}))]
        )

        results = await fetch_subreddit_posts("gaming")

        assert len(results) == 1
        assert mock_instance.get.call_count == 2
        mock_sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_subreddit_posts_http_status_not_retried():
    response = _response(_listing())
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "429 Too Many Requests", request=MagicMock(), response=MagicMock()
    )

    with patch("httpx.AsyncClient") as mock_client:
        mock_instance = mock_client.return_value.__aenter__.return_value
        mock_instance.get = AsyncMock(return_value=response)

        with pytest.raises(httpx.HTTPStatusError):
            await fetch_subreddit_posts("gaming")

        assert mock_instance.get.call_count == 1


def test_interest_sources_cover_all_interests():
    assert set(INTEREST_SOURCES) == {"AI", "Gaming", "Climate", "Wildlife", "Sports"}
    assert all(len(subreddits) == 4 for subreddits in INTEREST_SOURCES.values())
