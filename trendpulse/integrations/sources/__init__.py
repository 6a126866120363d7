"""Document source integrations.

Fetchers return raw source-specific dictionaries; the normalizer turns them
into RawItem records for ingestion.
"""

from trendpulse.integrations.sources.normalizer import RawItem, normalize_reddit_posts
from trendpulse.integrations.sources.reddit_client import INTEREST_SOURCES, fetch_subreddit_posts

__all__ = [
    "fetch_subreddit_posts",
    "INTEREST_SOURCES",
    "normalize_reddit_posts",
    "RawItem",
]
