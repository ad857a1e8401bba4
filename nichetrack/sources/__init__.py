"""
Content sources module.

Fetchers for external platforms: Reddit.
"""

from nichetrack.sources.base import ContentSource
from nichetrack.sources.reddit import RedditSource

__all__ = [
    "ContentSource",
    "RedditSource",
]
