"""
Base source abstraction for NicheTrack.

Defines the abstract interface that all content sources must implement.
"""

from abc import ABC, abstractmethod
from typing import List

from nichetrack.models.post import RedditPost


class ContentSource(ABC):
    """
    Abstract base class for content sources.

    A source delivers the top posts of a named community and the top
    comments of a post. Unlike a best-effort scraper, a source raises
    FetchError (or UpstreamShapeError) when it cannot deliver, so the
    orchestrator can record a failure for that one subscription.

    Attributes:
        name: Unique identifier for this source (e.g., "reddit").
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return the unique name identifier for this source.

        Used for logging. Should be lowercase, no spaces.
        """
        pass

    @abstractmethod
    def fetch_top_posts(self, subreddit: str, limit: int, time_window: str = "day") -> List[RedditPost]:
        """
        Fetch up to `limit` top posts for a subreddit.

        Args:
            subreddit: Subreddit name without the "r/" prefix.
            limit: Maximum number of posts.
            time_window: Ranking window ("hour", "day", "week", ...).

        Returns:
            Non-empty list of RedditPost instances.

        Raises:
            FetchError: Upstream unreachable, rejected the request, or returned nothing.
            UpstreamShapeError: Upstream returned a malformed listing or post.
        """
        pass

    @abstractmethod
    def fetch_top_comments(self, post: RedditPost, limit: int) -> List[str]:
        """
        Fetch up to `limit` qualifying top-level comment excerpts for a post.

        An empty list is a valid answer (no qualifying comments).

        Raises:
            FetchError: Upstream unreachable or rejected the request.
        """
        pass

    def __str__(self) -> str:
        return f"ContentSource({self.name})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
