"""Source item normalization.

Pure data transformation layer that converts raw source-specific posts into
the canonical ``RawItem`` shape consumed by ingestion.

NO scoring, tokenization or de-duplication.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

PLATFORM_REDDIT = "Reddit"


@dataclass(frozen=True)
class RawItem:
    """One fetched post before derived fields are computed.

    Attributes:
        text: Title, plus the body on a new line when present
        author_id: Author handle (may be None for deleted accounts)
        source_id: Upstream identifier, unique per source item
        ups: Upvote counter
        num_comments: Reply counter
        sub_topic: Sub-source the post came from (subreddit)
        url: Permalink
        platform: Source platform name
        created_at: Upstream creation time, None when unknown
    """

    text: str
    author_id: str | None
    source_id: str
    ups: int
    num_comments: int
    sub_topic: str | None
    url: str | None
    platform: str = PLATFORM_REDDIT
    created_at: datetime | None = None

    @property
    def engagement(self) -> int:
        return self.ups + self.num_comments


def _non_negative_int(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def _clean_text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_str(value) -> str | None:
    return _clean_text(value) or None


def normalize_reddit_posts(results: list[dict]) -> list[RawItem]:
    """Normalize raw Reddit listing posts.

    Args:
        results: List of raw Reddit post dictionaries

    Returns:
        RawItem list; malformed posts and posts without an id or without
        text are skipped

    Raises:
        ValueError: If results is not a list
    """
    if not isinstance(results, list):
        raise ValueError("Results must be a list")

    normalized = []
    for raw_post in results:
        if not isinstance(raw_post, dict):
            continue

        source_id = _clean_text(str(raw_post.get("id") or ""))
        title = _clean_text(raw_post.get("title"))
        body = _clean_text(raw_post.get("selftext"))

        if not source_id or not (title or body):
            continue

        text = f"{title}\n{body}" if title and body else title or body

        permalink = _optional_str(raw_post.get("permalink"))
        created_at = None
        if raw_post.get("created_utc") is not None:
            try:
                created_at = datetime.fromtimestamp(float(raw_post["created_utc"]), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                pass

        normalized.append(
            RawItem(
                text=text,
                author_id=_optional_str(raw_post.get("author")),
                source_id=source_id,
                ups=_non_negative_int(raw_post.get("ups")),
                num_comments=_non_negative_int(raw_post.get("num_comments")),
                sub_topic=_optional_str(raw_post.get("subreddit")),
                url=f"https://reddit.com{permalink}" if permalink else None,
                created_at=created_at,
            )
        )

    return normalized
