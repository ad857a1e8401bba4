"""
Trend model: one classified trending phrase with content ideas.

Trends are stored in two tables with the same columns. Shared trends
(``user_id`` None) go to the ``trends`` table; trends classified for a
signed-in user go to ``user_trends``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

TREND_CATEGORIES = ("travel", "health", "finance", "tech")


def start_of_today() -> datetime:
    """Midnight UTC of the current day; the default lower bound for listing trends."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass
class Trend:
    """
    A classified trend.

    Attributes:
        title: Short headline.
        description: One or two sentences.
        category: One of TREND_CATEGORIES.
        ideas: Content ideas (blog post, video, ...).
        user_id: Owner for per-user trends, None for shared trends.
        subreddit: Subreddit the source post came from, when known.
        id: Row id assigned by the datastore (None until stored).
        created_at: When the trend was classified.
    """

    title: str
    description: str
    category: str
    ideas: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    subreddit: Optional[str] = None
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.category = (self.category or "").strip().lower()
        self.validate()

    def validate(self) -> None:
        errors = []

        if not self.title or not self.title.strip():
            errors.append("title is required and cannot be empty")

        if self.category not in TREND_CATEGORIES:
            errors.append(f"category must be one of {', '.join(TREND_CATEGORIES)}, got {self.category!r}")

        if errors:
            raise ValueError(f"Trend validation failed: {'; '.join(errors)}")

    @classmethod
    def from_analysis(cls, analysis, user_id: Optional[str] = None, subreddit: Optional[str] = None) -> "Trend":
        """Build an unsaved trend from a TrendAnalysis."""
        return cls(
            title=analysis.title,
            description=analysis.description,
            category=analysis.category,
            ideas=list(analysis.ideas),
            user_id=user_id,
            subreddit=subreddit,
        )

    def to_row(self) -> dict:
        """Columns written on insert. user_id is only sent for per-user trends."""
        row = {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "ideas": list(self.ideas),
            "subreddit": self.subreddit,
        }
        if self.user_id is not None:
            row["user_id"] = self.user_id
        return row

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "ideas": list(self.ideas),
            "subreddit": self.subreddit,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Trend":
        created_at = row.get("created_at")
        if created_at and isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))

        ideas = row.get("ideas") or []
        if isinstance(ideas, str):
            ideas = [ideas]

        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            title=row.get("title") or "",
            description=row.get("description") or "",
            category=row.get("category") or "",
            ideas=[str(i) for i in ideas],
            user_id=str(row["user_id"]) if row.get("user_id") is not None else None,
            subreddit=row.get("subreddit"),
            created_at=created_at or datetime.now(timezone.utc),
        )

    def __str__(self) -> str:
        return f"[{self.category}] {self.title}"
