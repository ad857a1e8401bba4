"""
Configuration module for NicheTrack.

Loads environment variables from .env file and exposes them as typed configuration values.
Uses python-dotenv for loading and provides safe defaults where appropriate.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
# The .env file should be in the root directory (parent of nichetrack/)
_project_root = Path(__file__).parent.parent.parent
_env_path = _project_root / ".env"
load_dotenv(_env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Application Environment
# =============================================================================

# Application environment: "development", "staging", or "production"
APP_ENV: str = os.getenv("APP_ENV", "development")

DEBUG: bool = _env_bool("DEBUG", "false")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

# Optional log file; empty means console only
LOG_FILE: str = os.getenv("LOG_FILE", "")


# =============================================================================
# Supabase Configuration
# =============================================================================

SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")

# Service-role key; the ingestion job writes on behalf of every user
SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", os.getenv("SUPABASE_KEY", ""))

SUBSCRIPTIONS_TABLE: str = os.getenv("SUBSCRIPTIONS_TABLE", "user_subreddits")
POSTS_TABLE: str = os.getenv("POSTS_TABLE", "user_posts")

# Classified trends: the shared table and the per-user table
TRENDS_TABLE: str = os.getenv("TRENDS_TABLE", "trends")
USER_TRENDS_TABLE: str = os.getenv("USER_TRENDS_TABLE", "user_trends")


# =============================================================================
# OpenAI Configuration
# =============================================================================

OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_ORG_ID: str = os.getenv("OPENAI_ORG_ID", "")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))


# =============================================================================
# Reddit Configuration
# =============================================================================

# Account-style credentials are optional; without them the public JSON
# listing endpoints are used.
REDDIT_CLIENT_ID: str = os.getenv("REDDIT_CLIENT_ID", "")
REDDIT_CLIENT_SECRET: str = os.getenv("REDDIT_CLIENT_SECRET", "")
REDDIT_USERNAME: str = os.getenv("REDDIT_USERNAME", "")
REDDIT_PASSWORD: str = os.getenv("REDDIT_PASSWORD", "")

# Reddit asks every client to send a stable, descriptive User-Agent
REDDIT_USER_AGENT: str = os.getenv("REDDIT_USER_AGENT", "nichetrack/1.0 (subreddit trend tracker)")


# =============================================================================
# Trigger Endpoint
# =============================================================================

# Bearer secret the scheduler sends to GET /api/ingest-trends
CRON_SECRET: str = os.getenv("CRON_SECRET", "")


# =============================================================================
# Ingestion Configuration
# =============================================================================

# Posts fetched per subscription in a single run
POSTS_PER_SUBREDDIT: int = int(os.getenv("POSTS_PER_SUBREDDIT", "5"))

# Reddit "top" window: hour, day, week, month, year, all
TOP_TIME_WINDOW: str = os.getenv("TOP_TIME_WINDOW", "day")

# Top comments handed to the summarizer per post
COMMENTS_PER_POST: int = int(os.getenv("COMMENTS_PER_POST", "3"))

SUMMARIZE_POSTS: bool = _env_bool("SUMMARIZE_POSTS", "true")

# Subscriptions processed concurrently
MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "4"))

# HTTP request timeout in seconds
REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))

# Subreddit used when the subscription store cannot be read (empty = none)
FALLBACK_SUBREDDIT: str = os.getenv("FALLBACK_SUBREDDIT", "")

# Owner recorded on items ingested through the fallback subreddit
FALLBACK_USER_ID: str = os.getenv("FALLBACK_USER_ID", "system")

VALID_TIME_WINDOWS = ("hour", "day", "week", "month", "year", "all")


# =============================================================================
# Helper Functions
# =============================================================================

def is_production() -> bool:
    """Check if running in production environment."""
    return APP_ENV == "production"


def credential_snapshot() -> dict:
    """Return the credentials the ingestion endpoint depends on."""
    return {
        "SUPABASE_URL": SUPABASE_URL,
        "SUPABASE_SERVICE_KEY": SUPABASE_SERVICE_KEY,
        "CRON_SECRET": CRON_SECRET,
        "OPENAI_API_KEY": OPENAI_API_KEY,
    }


def missing_credentials(values: dict = None, summarize: bool = None) -> list[str]:
    """
    List required credentials that are not set.

    Args:
        values: Mapping of credential name to value. Defaults to the
            current configuration.
        summarize: Whether summarization is enabled. The OpenAI key is
            only required when it is. Defaults to SUMMARIZE_POSTS.

    Returns:
        Names of missing credentials (empty if all present).
    """
    if values is None:
        values = credential_snapshot()
    if summarize is None:
        summarize = SUMMARIZE_POSTS

    required = ["SUPABASE_URL", "SUPABASE_SERVICE_KEY", "CRON_SECRET"]
    if summarize:
        required.append("OPENAI_API_KEY")

    return [name for name in required if not values.get(name)]


def missing_run_credentials(values: dict = None, summarize: bool = None, needs_storage: bool = True) -> list[str]:
    """
    List credentials a command-line run needs that are not set.

    The CLI is not triggered over HTTP, so CRON_SECRET is never required.
    Supabase settings are skipped when the run uses in-memory storage.
    """
    missing = missing_credentials(values, summarize)
    skipped = {"CRON_SECRET"}
    if not needs_storage:
        skipped.update(("SUPABASE_URL", "SUPABASE_SERVICE_KEY"))
    return [name for name in missing if name not in skipped]


def validate_config() -> list[str]:
    """
    Validate that required configuration is present for production.

    Returns:
        List of missing or invalid configuration keys (empty if all valid).
    """
    errors = []

    if is_production():
        for name in missing_credentials():
            errors.append(f"{name} is required in production")

    if POSTS_PER_SUBREDDIT < 1:
        errors.append("POSTS_PER_SUBREDDIT must be at least 1")

    if COMMENTS_PER_POST < 0:
        errors.append("COMMENTS_PER_POST cannot be negative")

    if MAX_WORKERS < 1:
        errors.append("MAX_WORKERS must be at least 1")

    if REQUEST_TIMEOUT < 1:
        errors.append("REQUEST_TIMEOUT must be at least 1 second")

    if TOP_TIME_WINDOW not in VALID_TIME_WINDOWS:
        errors.append(f"TOP_TIME_WINDOW must be one of {', '.join(VALID_TIME_WINDOWS)}")

    if not 0.0 <= OPENAI_TEMPERATURE <= 2.0:
        errors.append("OPENAI_TEMPERATURE must be between 0 and 2")

    return errors


def print_config_summary() -> None:
    """Print a summary of current configuration (safe for logs, no secrets)."""
    print(f"  APP_ENV: {APP_ENV}")
    print(f"  DEBUG: {DEBUG}")
    print(f"  SUPABASE_URL: {SUPABASE_URL or '(not set)'}")
    print(f"  SUPABASE_SERVICE_KEY: {'***' if SUPABASE_SERVICE_KEY else '(not set)'}")
    print(f"  OPENAI_API_KEY: {'***' if OPENAI_API_KEY else '(not set)'}")
    print(f"  OPENAI_MODEL: {OPENAI_MODEL} (temperature {OPENAI_TEMPERATURE})")
    print(f"  REDDIT credentials: {'***' if REDDIT_CLIENT_ID and REDDIT_CLIENT_SECRET else '(anonymous)'}")
    print(f"  REDDIT_USER_AGENT: {REDDIT_USER_AGENT}")
    print(f"  CRON_SECRET: {'***' if CRON_SECRET else '(not set)'}")
    print(f"  POSTS_PER_SUBREDDIT: {POSTS_PER_SUBREDDIT}")
    print(f"  TOP_TIME_WINDOW: {TOP_TIME_WINDOW}")
    print(f"  COMMENTS_PER_POST: {COMMENTS_PER_POST}")
    print(f"  SUMMARIZE_POSTS: {SUMMARIZE_POSTS}")
    print(f"  MAX_WORKERS: {MAX_WORKERS}")
    print(f"  REQUEST_TIMEOUT: {REQUEST_TIMEOUT}s")


def setup_logging(level: str = None, log_file: str = None) -> None:
    """Configure root logging for the CLI and the web app."""
    level = (level or LOG_LEVEL).upper()
    log_file = LOG_FILE if log_file is None else log_file

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=handlers,
        force=True,
    )
