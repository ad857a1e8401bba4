"""
Data models module.

Contains dataclasses for subscriptions, fetched posts, stored items and trends.
"""

from nichetrack.models.subscription import Subscription, is_valid_subreddit, normalize_subreddit
from nichetrack.models.post import RedditPost
from nichetrack.models.ingested_item import IngestedItem
from nichetrack.models.trend import TREND_CATEGORIES, Trend

__all__ = [
    "Subscription",
    "normalize_subreddit",
    "is_valid_subreddit",
    "RedditPost",
    "IngestedItem",
    "Trend",
    "TREND_CATEGORIES",
]
