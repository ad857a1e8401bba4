"""
Supabase storage backend for NicheTrack.

Implements the Storage interface on top of the supabase Python client
(PostgREST under the hood). Queries are built from structured filters
(``.eq()``, ``.order()``, ``.limit()``), never raw SQL.

=============================================================================
SUPABASE SCHEMA
=============================================================================

user_subreddits

| Column     | Type        | Description                          |
|------------|-------------|--------------------------------------|
| id         | uuid (pk)   | Generated                            |
| user_id    | uuid        | auth.users.id                        |
| subreddit  | text        | Name without the "r/" prefix         |
| active     | boolean     | Default true                         |
| created_at | timestamptz | Default now()                        |

user_posts

| Column       | Type        | Description                        |
|--------------|-------------|------------------------------------|
| id           | uuid (pk)   | Generated                          |
| user_id      | uuid        | Owning user                        |
| subreddit    | text        | Source subreddit                   |
| title        | text        | Post title                         |
| url          | text        | Canonical link                     |
| score        | integer     | Reddit score at fetch time         |
| num_comments | integer     | Comment count at fetch time        |
| created_utc  | timestamptz | Post creation time on Reddit       |
| summary      | text (null) | Set by the follow-up update        |
| reddit_id    | text        | Reddit post id (not unique)        |

There is deliberately no unique constraint on (user_id, reddit_id).

trends, user_trends

| Column      | Type        | Description                       |
|-------------|-------------|-----------------------------------|
| id          | uuid (pk)   | Generated                         |
| user_id     | uuid        | Owning user (user_trends only)    |
| title       | text        | Trend headline                    |
| description | text        | One or two sentences              |
| category    | text        | travel, health, finance or tech   |
| ideas       | text[]      | Content ideas                     |
| subreddit   | text (null) | Source subreddit                  |
| created_at  | timestamptz | Default now()                     |

=============================================================================
"""

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from supabase import Client, create_client

from nichetrack.config import (
    POSTS_TABLE,
    SUBSCRIPTIONS_TABLE,
    SUPABASE_SERVICE_KEY,
    SUPABASE_URL,
    TRENDS_TABLE,
    USER_TRENDS_TABLE,
)
from nichetrack.errors import ConfigError, PersistError
from nichetrack.models.ingested_item import IngestedItem
from nichetrack.models.subscription import Subscription
from nichetrack.models.trend import Trend, start_of_today
from nichetrack.storage.base import Storage

logger = logging.getLogger(__name__)


def create_supabase_client(url: str = None, key: str = None) -> Client:
    """
    Build a Supabase client from config.

    Raises:
        ConfigError: URL or service key is not configured.
    """
    url = url if url is not None else SUPABASE_URL
    key = key if key is not None else SUPABASE_SERVICE_KEY

    missing = []
    if not url:
        missing.append("SUPABASE_URL")
    if not key:
        missing.append("SUPABASE_SERVICE_KEY")
    if missing:
        raise ConfigError(f"Supabase is not configured: {', '.join(missing)}", missing=missing)

    return create_client(url, key)


class SupabaseStorage(Storage):
    """
    Supabase-backed storage implementation.

    The client is injected so one instance can be shared by the web app and
    the pipeline, and tests can pass a fake.
    """

    def __init__(
        self,
        client: Client,
        subscriptions_table: str = None,
        posts_table: str = None,
        trends_table: str = None,
        user_trends_table: str = None,
    ):
        self.client = client
        self.subscriptions_table = subscriptions_table or SUBSCRIPTIONS_TABLE
        self.posts_table = posts_table or POSTS_TABLE
        self.trends_table = trends_table or TRENDS_TABLE
        self.user_trends_table = user_trends_table or USER_TRENDS_TABLE

    @property
    def name(self) -> str:
        return "supabase"

    def _execute(self, query, action: str):
        """Run a built query and return its rows; wrap any failure."""
        try:
            response = query.execute()
        except Exception as e:
            raise PersistError(f"Supabase {action} failed: {e}") from e
        return response.data or []

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def list_active_subscriptions(self) -> List[Subscription]:
        rows = self._execute(
            self.client.table(self.subscriptions_table)
            .select("*")
            .eq("active", True),
            "select active subscriptions",
        )
        return self._rows_to_subscriptions(rows)

    def list_subscriptions(self, user_id: str) -> List[Subscription]:
        rows = self._execute(
            self.client.table(self.subscriptions_table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
            "select subscriptions",
        )
        return self._rows_to_subscriptions(rows)

    def add_subscription(self, user_id: str, subreddit: str) -> Subscription:
        subscription = Subscription(user_id=user_id, subreddit=subreddit)
        rows = self._execute(
            self.client.table(self.subscriptions_table).insert(subscription.to_row()),
            "insert subscription",
        )
        if not rows:
            raise PersistError("Supabase insert subscription returned no row", subreddit=subscription.subreddit)
        return Subscription.from_row(rows[0])

    def set_subscription_active(self, subscription_id: str, user_id: str, active: bool) -> Optional[Subscription]:
        rows = self._execute(
            self.client.table(self.subscriptions_table)
            .update({"active": active})
            .eq("id", subscription_id)
            .eq("user_id", user_id),
            "update subscription",
        )
        return Subscription.from_row(rows[0]) if rows else None

    def delete_subscription(self, subscription_id: str, user_id: str) -> bool:
        rows = self._execute(
            self.client.table(self.subscriptions_table)
            .delete()
            .eq("id", subscription_id)
            .eq("user_id", user_id),
            "delete subscription",
        )
        return bool(rows)

    @staticmethod
    def _rows_to_subscriptions(rows: List[dict]) -> List[Subscription]:
        subscriptions = []
        for row in rows:
            try:
                subscriptions.append(Subscription.from_row(row))
            except ValueError as e:
                logger.warning("Skipping malformed subscription row %s: %s", row.get("id"), e)
        return subscriptions

    # =========================================================================
    # Items
    # =========================================================================

    def insert_item(self, item: IngestedItem) -> str:
        rows = self._execute(
            self.client.table(self.posts_table).insert(item.to_row()),
            "insert post",
        )
        if not rows or rows[0].get("id") is None:
            raise PersistError("Supabase insert post returned no id", subreddit=item.subreddit)

        item.id = str(rows[0]["id"])
        return item.id

    def update_item_summary(self, item_id: str, summary: str) -> None:
        rows = self._execute(
            self.client.table(self.posts_table)
            .update({"summary": summary})
            .eq("id", item_id),
            "update post summary",
        )
        if not rows:
            raise PersistError(f"Supabase update post summary matched no row for id {item_id}")

    def get_user_feed(self, user_id: str, limit: int = 30) -> List[IngestedItem]:
        rows = self._execute(
            self.client.table(self.posts_table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_utc", desc=True)
            .limit(limit),
            "select feed",
        )
        items = []
        for row in rows:
            try:
                items.append(IngestedItem.from_row(row))
            except ValueError as e:
                logger.warning("Skipping malformed post row %s: %s", row.get("id"), e)
        return items

    # =========================================================================
    # Trends
    # =========================================================================

    def _trends_table_for(self, user_id: Optional[str]) -> str:
        return self.user_trends_table if user_id is not None else self.trends_table

    def insert_trend(self, trend: Trend) -> str:
        rows = self._execute(
            self.client.table(self._trends_table_for(trend.user_id)).insert(trend.to_row()),
            "insert trend",
        )
        if not rows or rows[0].get("id") is None:
            raise PersistError("Supabase insert trend returned no id", subreddit=trend.subreddit)

        trend.id = str(rows[0]["id"])
        return trend.id

    def list_trends(
        self,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[Trend]:
        since = since or start_of_today()
        query = self.client.table(self._trends_table_for(user_id)).select("*")
        if user_id is not None:
            query = query.eq("user_id", user_id)
        query = query.gte("created_at", since.isoformat())
        if category:
            query = query.eq("category", category)
        if search:
            query = query.ilike("title", f"%{search}%")

        rows = self._execute(query.order("created_at", desc=True), "select trends")
        trends = []
        for row in rows:
            try:
                trends.append(Trend.from_row(row))
            except ValueError as e:
                logger.warning("Skipping malformed trend row %s: %s", row.get("id"), e)
        return trends

    # =========================================================================
    # Users
    # =========================================================================

    def resolve_user(self, access_token: str) -> Optional[str]:
        """Validate a Supabase session token and return its user id."""
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            logger.info("Rejected user token: %s", e)
            return None
        user = getattr(response, "user", None)
        return str(user.id) if user and getattr(user, "id", None) else None


class MockSupabaseStorage(Storage):
    """
    In-memory mock storage for testing and development.

    Use this when Supabase is not configured or for testing.
    Data is stored in memory and lost when the process ends.
    """

    def __init__(self, subscriptions: List[Subscription] = None, tokens: Dict[str, str] = None):
        self._subscriptions: Dict[str, Subscription] = {}
        self._items: Dict[str, IngestedItem] = {}
        self._trends: List[Trend] = []
        self._tokens: Dict[str, str] = dict(tokens or {})
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

        for subscription in subscriptions or []:
            if subscription.id is None:
                subscription.id = self._next_id("sub")
            self._subscriptions[subscription.id] = subscription

    @property
    def name(self) -> str:
        return "mock"

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def list_active_subscriptions(self) -> List[Subscription]:
        return [s for s in self._subscriptions.values() if s.active]

    def list_subscriptions(self, user_id: str) -> List[Subscription]:
        subscriptions = [s for s in self._subscriptions.values() if s.user_id == user_id]
        return sorted(subscriptions, key=lambda s: s.created_at, reverse=True)

    def add_subscription(self, user_id: str, subreddit: str) -> Subscription:
        subscription = Subscription(user_id=user_id, subreddit=subreddit)
        with self._lock:
            subscription.id = self._next_id("sub")
            self._subscriptions[subscription.id] = subscription
        return subscription

    def set_subscription_active(self, subscription_id: str, user_id: str, active: bool) -> Optional[Subscription]:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            return None
        subscription.active = active
        return subscription

    def delete_subscription(self, subscription_id: str, user_id: str) -> bool:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            return False
        del self._subscriptions[subscription_id]
        return True

    def insert_item(self, item: IngestedItem) -> str:
        with self._lock:
            item.id = self._next_id("post")
            self._items[item.id] = item
        return item.id

    def update_item_summary(self, item_id: str, summary: str) -> None:
        item = self._items.get(item_id)
        if item is None:
            raise PersistError(f"No post with id {item_id}")
        item.summary = summary

    def get_user_feed(self, user_id: str, limit: int = 30) -> List[IngestedItem]:
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        items = [i for i in self._items.values() if i.user_id == user_id]
        items.sort(key=lambda i: i.created_utc or oldest, reverse=True)
        return items[:limit]

    def insert_trend(self, trend: Trend) -> str:
        with self._lock:
            trend.id = self._next_id("trend")
            self._trends.append(trend)
        return trend.id

    def list_trends(
        self,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[Trend]:
        since = since or start_of_today()
        needle = (search or "").lower()
        trends = [
            t for t in self._trends
            if t.user_id == user_id
            and t.created_at >= since
            and (not category or t.category == category)
            and needle in t.title.lower()
        ]
        return sorted(trends, key=lambda t: t.created_at, reverse=True)

    def resolve_user(self, access_token: str) -> Optional[str]:
        return self._tokens.get(access_token)

    def all_items(self) -> List[IngestedItem]:
        """Return every stored item (for testing)."""
        return list(self._items.values())

    def clear(self) -> None:
        """Clear all records (for testing)."""
        self._subscriptions.clear()
        self._items.clear()
        self._trends.clear()

    def all_trends(self) -> List[Trend]:
        """Return every stored trend (for testing)."""
        return list(self._trends)

    def count(self) -> int:
        """Return number of stored items (for testing)."""
        return len(self._items)
