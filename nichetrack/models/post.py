"""
Reddit post as returned by the listing endpoints.

Reddit listing structure (one child):
{
    "kind": "t3",
    "data": {
        "id": "1abcde",
        "subreddit": "startups",
        "title": "Example title",
        "url": "https://example.com/article",
        "permalink": "/r/startups/comments/1abcde/example_title/",
        "score": 412,
        "num_comments": 87,
        "created_utc": 1718900000.0,
        "selftext": "..."
    }
}
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from nichetrack.errors import UpstreamShapeError

REDDIT_WEB_BASE = "https://www.reddit.com"


@dataclass
class RedditPost:
    """A single top post fetched for a subreddit."""

    reddit_id: str
    subreddit: str
    title: str
    url: str
    permalink: str = ""
    score: int = 0
    num_comments: int = 0
    created_utc: Optional[datetime] = None
    selftext: str = ""

    @property
    def discussion_url(self) -> str:
        """Link to the Reddit comment thread."""
        if self.permalink:
            return f"{REDDIT_WEB_BASE}{self.permalink}"
        return f"{REDDIT_WEB_BASE}/r/{self.subreddit}/comments/{self.reddit_id}/"

    @classmethod
    def from_listing_child(cls, child, subreddit: str) -> "RedditPost":
        """
        Convert one listing child into a RedditPost.

        Args:
            child: A child object from data.children of a listing.
            subreddit: Subreddit the listing was requested for (used when
                the child does not name one).

        Raises:
            UpstreamShapeError: If the child is malformed or its title is blank.
        """
        if not isinstance(child, dict) or not isinstance(child.get("data"), dict):
            raise UpstreamShapeError(
                "Listing child is not an object with data", subreddit=subreddit
            )

        data = child["data"]
        reddit_id = data.get("id")
        title = data.get("title")

        if not reddit_id:
            raise UpstreamShapeError("Post is missing its id", subreddit=subreddit)

        if not isinstance(title, str) or not title.strip():
            raise UpstreamShapeError(
                f"Post {reddit_id} has no title", subreddit=subreddit
            )

        created_utc = None
        if data.get("created_utc") is not None:
            try:
                created_utc = datetime.fromtimestamp(float(data["created_utc"]), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                pass

        permalink = data.get("permalink") or ""
        url = data.get("url") or ""
        if not url.startswith(("http://", "https://")):
            # Self posts sometimes carry a relative url
            url = f"{REDDIT_WEB_BASE}{permalink}" if permalink else ""

        post = cls(
            reddit_id=str(reddit_id),
            subreddit=data.get("subreddit") or subreddit,
            title=title.strip(),
            url=url,
            permalink=permalink,
            score=_as_int(data.get("score")),
            num_comments=_as_int(data.get("num_comments")),
            created_utc=created_utc,
            selftext=data.get("selftext") or "",
        )
        if not post.url:
            post.url = post.discussion_url
        return post

    def __str__(self) -> str:
        return f"[r/{self.subreddit}] {self.title} ({self.score} points)"


def _as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
