"""
Base storage abstraction for NicheTrack.

Defines the abstract interface that all storage backends must implement.
This allows swapping between Supabase, an in-memory store, etc.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from nichetrack.models.ingested_item import IngestedItem
from nichetrack.models.subscription import Subscription
from nichetrack.models.trend import Trend


class Storage(ABC):
    """
    Abstract base class for all storage backends.

    Three collections are managed:
    - subscriptions: which subreddits each user follows
    - items: posts ingested into each user's feed
    - trends: classified trends, shared or per user

    Item writes are NOT idempotent: inserting the same post twice yields
    two rows. There is no dedup key.

    Implementations raise PersistError on any backend failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the name of this storage backend.

        Used for logging and debugging.
        """
        pass

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    @abstractmethod
    def list_active_subscriptions(self) -> List[Subscription]:
        """Return every active subscription across all users."""
        pass

    @abstractmethod
    def list_subscriptions(self, user_id: str) -> List[Subscription]:
        """Return a user's subscriptions, newest first."""
        pass

    @abstractmethod
    def add_subscription(self, user_id: str, subreddit: str) -> Subscription:
        """Create an active subscription and return it with its id."""
        pass

    @abstractmethod
    def set_subscription_active(self, subscription_id: str, user_id: str, active: bool) -> Optional[Subscription]:
        """
        Flip the active flag of one of the user's subscriptions.

        Returns:
            The updated subscription, or None if the user has no such subscription.
        """
        pass

    @abstractmethod
    def delete_subscription(self, subscription_id: str, user_id: str) -> bool:
        """
        Delete one of the user's subscriptions.

        Returns:
            True if a row was deleted.
        """
        pass

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_item(self, item: IngestedItem) -> str:
        """
        Insert an item and return the id assigned to it.

        The id is also set on the passed item.
        """
        pass

    @abstractmethod
    def update_item_summary(self, item_id: str, summary: str) -> None:
        """Attach a summary to a previously inserted item."""
        pass

    @abstractmethod
    def get_user_feed(self, user_id: str, limit: int = 30) -> List[IngestedItem]:
        """
        Retrieve a user's items, most recent origin time first.

        Args:
            user_id: Owning user.
            limit: Maximum number of items (default 30).
        """
        pass

    # -------------------------------------------------------------------------
    # Trends
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_trend(self, trend: Trend) -> str:
        """
        Insert a trend and return the id assigned to it.

        Shared trends (user_id None) and per-user trends are kept apart.
        The id is also set on the passed trend.
        """
        pass

    @abstractmethod
    def list_trends(
        self,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[Trend]:
        """
        Retrieve trends created at or after ``since``, newest first.

        Args:
            user_id: List this user's trends; None lists the shared trends.
            category: Only this category (None for all).
            search: Case-insensitive substring the title must contain.
            since: Lower bound on created_at (default: start of today, UTC).
        """
        pass

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def resolve_user(self, access_token: str) -> Optional[str]:
        """
        Resolve a user access token to a user id.

        Default implementation resolves nobody. Override for backends
        that own user authentication.
        """
        return None

    def __str__(self) -> str:
        return f"Storage({self.name})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
