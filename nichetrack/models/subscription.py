"""
Subscription model: one user following one subreddit.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def normalize_subreddit(name: str) -> str:
    """
    Normalize user input into a bare subreddit name.

    Accepts "startups", "r/startups", "/r/startups/" and surrounding whitespace.
    """
    name = (name or "").strip().strip("/")
    if name.lower().startswith("r/"):
        name = name[2:]
    return name.strip("/").strip()


def is_valid_subreddit(name: str) -> bool:
    """Reddit names are 1 to 21 letters, digits or underscores."""
    return bool(name) and len(name) <= 21 and name.replace("_", "").isalnum() and name.isascii()


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class Subscription:
    """
    A (user, subreddit) pair the ingestion run processes.

    Attributes:
        user_id: Owning user (Supabase auth user id).
        subreddit: Subreddit name without the "r/" prefix.
        active: Inactive subscriptions are kept but skipped by the run.
        id: Row id assigned by the datastore (None until stored).
        created_at: When the user added the subreddit.
    """

    user_id: str
    subreddit: str
    active: bool = True
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.subreddit = normalize_subreddit(self.subreddit)
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ValueError: If user_id or subreddit is empty or the name is malformed.
        """
        errors = []

        if not self.user_id or not str(self.user_id).strip():
            errors.append("user_id is required and cannot be empty")

        if not self.subreddit:
            errors.append("subreddit is required and cannot be empty")
        elif not is_valid_subreddit(self.subreddit):
            errors.append(f"subreddit name is invalid: {self.subreddit!r}")

        if errors:
            raise ValueError(f"Subscription validation failed: {'; '.join(errors)}")

    def to_row(self) -> dict:
        """Columns written on insert (id and created_at are set by the database)."""
        return {
            "user_id": self.user_id,
            "subreddit": self.subreddit,
            "active": self.active,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subreddit": self.subreddit,
            "active": self.active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Subscription":
        """Build from a user_subreddits row. Rows without an active column count as active."""
        active = row.get("active")
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row.get("user_id") or ""),
            subreddit=row.get("subreddit") or "",
            active=True if active is None else bool(active),
            created_at=_parse_timestamp(row.get("created_at")) or datetime.now(timezone.utc),
        )

    def __str__(self) -> str:
        return f"r/{self.subreddit} ({self.user_id})"
