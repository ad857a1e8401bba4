"""
Core data model for NicheTrack.

Defines the IngestedItem dataclass: one Reddit post stored in a user's feed.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

from nichetrack.models.post import RedditPost


@dataclass
class IngestedItem:
    """
    A post written to the user_posts table for one user.

    Items are written in two phases: inserted without a summary, then
    updated once the summary is computed. Between the two writes the
    row is visible with summary = NULL.

    Attributes:
        user_id: Owning user.
        subreddit: Subreddit the post came from.
        title: Post title.
        url: Canonical link (external article or the Reddit thread).
        score: Reddit score at fetch time.
        num_comments: Comment count at fetch time.
        created_utc: When the post was created on Reddit.
        summary: Short natural-language summary, None when absent.
        id: Row id assigned by the datastore (None until inserted).
        reddit_id: Reddit's own post id. Informational, not a dedup key.
        ingested_at: When this run fetched the post.
    """

    # Required fields
    user_id: str
    subreddit: str
    title: str
    url: str

    # Optional fields with defaults
    score: int = 0
    num_comments: int = 0
    created_utc: Optional[datetime] = None
    summary: Optional[str] = None
    id: Optional[str] = None
    reddit_id: Optional[str] = None
    ingested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Validate fields after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate that required fields are present and valid.

        Raises:
            ValueError: If validation fails.
        """
        errors = []

        if not self.user_id or not str(self.user_id).strip():
            errors.append("user_id is required and cannot be empty")

        if not self.subreddit or not self.subreddit.strip():
            errors.append("subreddit is required and cannot be empty")

        if not self.title or not self.title.strip():
            errors.append("title is required and cannot be empty")

        if not self.url or not self.url.strip():
            errors.append("url is required and cannot be empty")
        elif not (self.url.startswith("http://") or self.url.startswith("https://")):
            errors.append(f"url must start with http:// or https://, got {self.url}")

        if self.score is None or self.num_comments is None:
            errors.append("score and num_comments must be integers")
        elif self.num_comments < 0:
            errors.append(f"num_comments cannot be negative, got {self.num_comments}")

        if errors:
            raise ValueError(f"IngestedItem validation failed: {'; '.join(errors)}")

    @classmethod
    def from_post(cls, user_id: str, post: RedditPost) -> "IngestedItem":
        """Build an unsummarized item for a user from a fetched post."""
        return cls(
            user_id=user_id,
            subreddit=post.subreddit,
            title=post.title,
            url=post.url,
            score=post.score,
            num_comments=post.num_comments,
            created_utc=post.created_utc,
            reddit_id=post.reddit_id,
        )

    def to_row(self) -> dict:
        """
        Columns written on insert.

        id is assigned by the database and never sent.
        """
        return {
            "user_id": self.user_id,
            "subreddit": self.subreddit,
            "title": self.title,
            "url": self.url,
            "score": self.score,
            "num_comments": self.num_comments,
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
            "summary": self.summary,
            "reddit_id": self.reddit_id,
        }

    def to_dict(self) -> dict:
        """
        Convert to a plain dictionary for JSON responses.

        Datetime fields are converted to ISO format strings.
        """
        data = asdict(self)
        data["created_utc"] = self.created_utc.isoformat() if self.created_utc else None
        data["ingested_at"] = self.ingested_at.isoformat()
        return data

    @classmethod
    def from_row(cls, row: dict) -> "IngestedItem":
        """
        Create an IngestedItem from a user_posts row.

        Handles conversion of ISO format strings back to datetime objects.
        """
        created_utc = row.get("created_utc")
        if created_utc and isinstance(created_utc, str):
            created_utc = datetime.fromisoformat(created_utc.replace("Z", "+00:00"))

        ingested_at = row.get("ingested_at") or row.get("inserted_at")
        if ingested_at and isinstance(ingested_at, str):
            ingested_at = datetime.fromisoformat(ingested_at.replace("Z", "+00:00"))

        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row.get("user_id") or ""),
            subreddit=row.get("subreddit") or "",
            title=row.get("title") or "",
            url=row.get("url") or "",
            score=int(row.get("score") or 0),
            num_comments=int(row.get("num_comments") or 0),
            created_utc=created_utc or None,
            summary=row.get("summary"),
            reddit_id=row.get("reddit_id"),
            ingested_at=ingested_at or datetime.now(timezone.utc),
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"[r/{self.subreddit}] {self.title} ({self.score} points)"

    def __repr__(self) -> str:
        return (
            f"IngestedItem(id={self.id!r}, subreddit={self.subreddit!r}, "
            f"title={self.title!r}, user_id={self.user_id!r})"
        )
