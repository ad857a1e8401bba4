"""
Reddit source implementation.

Fetches top posts and top comments from Reddit's JSON listing API.
API Documentation: https://www.reddit.com/dev/api

Two modes:
- Anonymous: public endpoints on www.reddit.com (".json" suffix).
- Authenticated: when client id/secret and a username/password are all
  configured, a "password" grant token is obtained from the access_token
  endpoint and requests go to oauth.reddit.com with higher rate limits.

Every request carries the configured User-Agent; Reddit throttles or blocks
clients that send a generic one.
"""

import logging
import threading
import time
from typing import List, Optional

import requests

from nichetrack.config import (
    REDDIT_CLIENT_ID,
    REDDIT_CLIENT_SECRET,
    REDDIT_PASSWORD,
    REDDIT_USER_AGENT,
    REDDIT_USERNAME,
    REQUEST_TIMEOUT,
    VALID_TIME_WINDOWS,
)
from nichetrack.errors import FetchError, UpstreamShapeError
from nichetrack.models.post import RedditPost
from nichetrack.sources.base import ContentSource

logger = logging.getLogger(__name__)


# Reddit API endpoints
REDDIT_PUBLIC_BASE = "https://www.reddit.com"
REDDIT_OAUTH_BASE = "https://oauth.reddit.com"
REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"

# Comment bodies Reddit leaves behind for removed content
REMOVED_BODIES = {"[deleted]", "[removed]", ""}

MAX_COMMENT_CHARS = 500

# Refresh the token this many seconds before Reddit says it expires
TOKEN_EXPIRY_MARGIN = 60


class RedditSource(ContentSource):
    """
    Fetches top posts for a subreddit from Reddit.

    Uses the listing API:
    - /r/{subreddit}/top?t={window}&limit={n} for posts
    - /r/{subreddit}/comments/{id}?sort=top for comments

    Failures raise FetchError so a single bad subreddit never affects others.
    """

    def __init__(
        self,
        user_agent: str = None,
        client_id: str = None,
        client_secret: str = None,
        username: str = None,
        password: str = None,
        session: Optional[requests.Session] = None,
        timeout: int = None,
    ):
        """
        Initialize RedditSource.

        Args default to the REDDIT_* config values when None (not empty string).
        """
        self.user_agent = user_agent if user_agent is not None else REDDIT_USER_AGENT
        self.client_id = client_id if client_id is not None else REDDIT_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else REDDIT_CLIENT_SECRET
        self.username = username if username is not None else REDDIT_USERNAME
        self.password = password if password is not None else REDDIT_PASSWORD
        self.timeout = timeout or REQUEST_TIMEOUT

        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = self.user_agent

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "reddit"

    @property
    def authenticated(self) -> bool:
        """True when account-style credentials are configured."""
        return all([self.client_id, self.client_secret, self.username, self.password])

    # =========================================================================
    # Authentication
    # =========================================================================

    def _get_token(self) -> str:
        """Return a valid bearer token, fetching a new one when needed."""
        with self._token_lock:
            if self._token and time.time() < self._token_expires_at:
                return self._token

            try:
                response = self._session.post(
                    REDDIT_TOKEN_URL,
                    auth=(self.client_id, self.client_secret),
                    data={
                        "grant_type": "password",
                        "username": self.username,
                        "password": self.password,
                    },
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise FetchError(f"Reddit token request failed: {e}") from e

            if response.status_code != 200:
                raise FetchError(
                    "Reddit authentication failed",
                    status_code=response.status_code,
                    detail=response.text[:200],
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise UpstreamShapeError("Reddit token response is not JSON") from e

            token = payload.get("access_token") if isinstance(payload, dict) else None
            if not token:
                # Reddit answers 200 with {"error": "invalid_grant"} on bad passwords
                error = payload.get("error") if isinstance(payload, dict) else None
                raise FetchError(f"Reddit authentication failed: {error or 'no access_token'}")

            expires_in = int(payload.get("expires_in", 3600))
            self._token = token
            self._token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            logger.debug("[reddit] obtained OAuth token (expires in %ss)", expires_in)
            return token

    def _invalidate_token(self) -> None:
        with self._token_lock:
            self._token = None
            self._token_expires_at = 0.0

    # =========================================================================
    # HTTP
    # =========================================================================

    def _build_url(self, path: str) -> str:
        if self.authenticated:
            return f"{REDDIT_OAUTH_BASE}{path}"
        return f"{REDDIT_PUBLIC_BASE}{path}.json"

    def _get_json(self, path: str, params: dict, subreddit: str):
        """
        GET a listing path and return the decoded JSON body.

        Raises:
            FetchError: Network failure or non-200 status.
            UpstreamShapeError: Body is not JSON.
        """
        headers = {"User-Agent": self.user_agent}
        if self.authenticated:
            headers["Authorization"] = f"bearer {self._get_token()}"

        params = dict(params, raw_json=1)

        try:
            response = self._session.get(
                self._build_url(path),
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FetchError(f"Reddit request failed: {e}", subreddit=subreddit) from e

        status = response.status_code
        if status in (401, 403):
            if self.authenticated:
                self._invalidate_token()
            reason = "authentication failed" if status == 401 else "access forbidden (private or banned?)"
            raise FetchError(f"Reddit {reason} for r/{subreddit}", subreddit=subreddit, status_code=status)
        if status == 404:
            raise FetchError(f"r/{subreddit} not found", subreddit=subreddit, status_code=status)
        if status == 429:
            raise FetchError(f"Reddit rate limited r/{subreddit}", subreddit=subreddit, status_code=status)
        if status != 200:
            raise FetchError(
                f"Reddit returned an error for r/{subreddit}",
                subreddit=subreddit,
                status_code=status,
                detail=response.text[:200],
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamShapeError(
                f"Reddit response for r/{subreddit} is not JSON",
                subreddit=subreddit,
                detail=response.text[:200],
            ) from e

    # =========================================================================
    # Source Interface Implementation
    # =========================================================================

    def fetch_top_posts(self, subreddit: str, limit: int, time_window: str = "day") -> List[RedditPost]:
        """
        Fetch top posts of a subreddit for a time window.

        Args:
            subreddit: Subreddit name.
            limit: Maximum number of posts (Reddit caps this at 100).
            time_window: One of hour, day, week, month, year, all.

        Returns:
            Non-empty list of RedditPost instances.
        """
        if time_window not in VALID_TIME_WINDOWS:
            raise ValueError(f"time_window must be one of {VALID_TIME_WINDOWS}, got {time_window!r}")

        limit = max(1, min(int(limit), 100))
        payload = self._get_json(
            f"/r/{subreddit}/top",
            {"limit": limit, "t": time_window},
            subreddit,
        )

        children = self._listing_children(payload, subreddit)
        if not children:
            raise FetchError(f"No top posts for r/{subreddit} ({time_window})", subreddit=subreddit)

        posts = [RedditPost.from_listing_child(child, subreddit) for child in children[:limit]]
        logger.info("[%s] fetched %d posts (requested %d)", subreddit, len(posts), limit)
        return posts

    def fetch_top_comments(self, post: RedditPost, limit: int) -> List[str]:
        """
        Fetch top-level comment excerpts for a post.

        Qualifying comments exclude deleted/removed bodies, stickied
        comments and AutoModerator. Excerpts are trimmed to
        MAX_COMMENT_CHARS characters.
        """
        if limit <= 0:
            return []

        payload = self._get_json(
            f"/r/{post.subreddit}/comments/{post.reddit_id}",
            {"sort": "top", "limit": limit, "depth": 1},
            post.subreddit,
        )

        # Response is [post_listing, comment_listing]
        if not isinstance(payload, list) or len(payload) < 2:
            raise UpstreamShapeError(
                f"Unexpected comments response for post {post.reddit_id}",
                subreddit=post.subreddit,
            )

        comments: List[str] = []
        for child in self._listing_children(payload[1], post.subreddit):
            excerpt = self._comment_excerpt(child)
            if excerpt:
                comments.append(excerpt)
            if len(comments) >= limit:
                break

        logger.debug("[%s] post %s: %d qualifying comments", post.subreddit, post.reddit_id, len(comments))
        return comments

    @staticmethod
    def _listing_children(payload, subreddit: str) -> list:
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise UpstreamShapeError("Response is not a Reddit listing", subreddit=subreddit)
        children = payload["data"].get("children")
        if not isinstance(children, list):
            raise UpstreamShapeError("Listing has no children array", subreddit=subreddit)
        return children

    @staticmethod
    def _comment_excerpt(child) -> Optional[str]:
        """Return the trimmed body of a qualifying comment, or None."""
        if not isinstance(child, dict) or child.get("kind") != "t1":
            return None
        data = child.get("data") or {}
        body = (data.get("body") or "").strip()
        if body in REMOVED_BODIES:
            return None
        if data.get("stickied") or data.get("author") == "AutoModerator":
            return None
        if len(body) > MAX_COMMENT_CHARS:
            body = body[:MAX_COMMENT_CHARS].rstrip() + "..."
        return body
