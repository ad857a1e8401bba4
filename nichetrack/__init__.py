"""
NicheTrack - subreddit tracking with AI summaries.

Fetches top posts for the subreddits users follow, summarizes the
discussion, and stores the results in each user's feed.
"""

__version__ = "1.0.0"
