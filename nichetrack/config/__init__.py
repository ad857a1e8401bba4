"""
Configuration module.

Handles environment variables, API keys, and application settings.
"""

from nichetrack.config.config import (
    APP_ENV,
    DEBUG,
    LOG_LEVEL,
    LOG_FILE,
    SUPABASE_URL,
    SUPABASE_SERVICE_KEY,
    SUBSCRIPTIONS_TABLE,
    POSTS_TABLE,
    TRENDS_TABLE,
    USER_TRENDS_TABLE,
    OPENAI_API_KEY,
    OPENAI_ORG_ID,
    OPENAI_MODEL,
    OPENAI_TEMPERATURE,
    REDDIT_CLIENT_ID,
    REDDIT_CLIENT_SECRET,
    REDDIT_USERNAME,
    REDDIT_PASSWORD,
    REDDIT_USER_AGENT,
    CRON_SECRET,
    POSTS_PER_SUBREDDIT,
    TOP_TIME_WINDOW,
    COMMENTS_PER_POST,
    SUMMARIZE_POSTS,
    MAX_WORKERS,
    REQUEST_TIMEOUT,
    FALLBACK_SUBREDDIT,
    FALLBACK_USER_ID,
    VALID_TIME_WINDOWS,
    is_production,
    credential_snapshot,
    missing_credentials,
    missing_run_credentials,
    validate_config,
    print_config_summary,
    setup_logging,
)

__all__ = [
    "APP_ENV",
    "DEBUG",
    "LOG_LEVEL",
    "LOG_FILE",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "SUBSCRIPTIONS_TABLE",
    "POSTS_TABLE",
    "TRENDS_TABLE",
    "USER_TRENDS_TABLE",
    "OPENAI_API_KEY",
    "OPENAI_ORG_ID",
    "OPENAI_MODEL",
    "OPENAI_TEMPERATURE",
    "REDDIT_CLIENT_ID",
    "REDDIT_CLIENT_SECRET",
    "REDDIT_USERNAME",
    "REDDIT_PASSWORD",
    "REDDIT_USER_AGENT",
    "CRON_SECRET",
    "POSTS_PER_SUBREDDIT",
    "TOP_TIME_WINDOW",
    "COMMENTS_PER_POST",
    "SUMMARIZE_POSTS",
    "MAX_WORKERS",
    "REQUEST_TIMEOUT",
    "FALLBACK_SUBREDDIT",
    "FALLBACK_USER_ID",
    "VALID_TIME_WINDOWS",
    "is_production",
    "credential_snapshot",
    "missing_credentials",
    "missing_run_credentials",
    "validate_config",
    "print_config_summary",
    "setup_logging",
]
