"""Reddit client.

Fetches the newest posts of a subreddit from the public JSON listing.
"""

from typing import Final

import httpx

from trendpulse.utils.config import get_settings
from trendpulse.workflow.error_handling import async_retry_with_backoff

REDDIT_BASE_URL: Final[str] = "https://www.reddit.com"

# Interest -> subreddits sampled for it
INTEREST_SOURCES: Final[dict[str, tuple[str, ...]]] = {
    "AI": ("ArtificialIntelligence", "MachineLearning", "OpenAI", "LocalLLaMA"),
    "Gaming": ("gaming", "pcgaming", "Games", "GameDev"),
    "Climate": ("climate", "ClimateActionPlan", "environment", "climatechange"),
    "Wildlife": ("Wildlife", "nature", "Conservation", "Ecology"),
    "Sports": ("sports", "Cricket", "soccer", "WorldCup"),
}


@async_retry_with_backoff(max_retries=2, initial_delay=1.0, exceptions=(httpx.TransportError,))
async def fetch_subreddit_posts(subreddit: str, limit: int = 10) -> list[dict]:
    """Fetch the newest posts of a subreddit.

    Args:
        subreddit: Subreddit name without the ``r/`` prefix
        limit: Maximum number of posts to return

    Returns:
        List of raw Reddit post dictionaries (the ``data`` of each child)

    Raises:
        ValueError: If subreddit is empty or limit is not positive
        httpx.HTTPError: If the request fails (transport errors are retried)
    """
    if not subreddit or not subreddit.strip():
        raise ValueError("Subreddit cannot be empty")

    if limit <= 0:
        raise ValueError("Limit must be positive")

    settings = get_settings()

    async with httpx.AsyncClient(
        base_url=REDDIT_BASE_URL,
        headers={"User-Agent": settings.SOURCE_USER_AGENT},
        timeout=float(settings.API_TIMEOUT),
        follow_redirects=True,
    ) as client:
        response = await client.get(f"/r/{subreddit.strip()}/new.json", params={"limit": limit})
        response.raise_for_status()
        payload = response.json()

    listing = payload.get("data") if isinstance(payload, dict) else None
    children = listing.get("children") if isinstance(listing, dict) else None
    if not isinstance(children, list):
        return []
    return [
        child["data"] for child in children if isinstance(child, dict) and isinstance(child.get("data"), dict)
    ][:limit]
