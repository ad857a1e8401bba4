"""
NicheTrack - Web API

Flask application exposing the ingestion trigger, the user feed, trends
and subscription management.

Run with: python -m web.app
Or: flask --app web.app run
"""

import hmac
import logging
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flask import Flask, current_app, jsonify, request

from nichetrack.config import (
    DEBUG,
    credential_snapshot,
    missing_credentials,
    setup_logging,
)
from nichetrack.errors import (
    AuthError,
    ConfigError,
    EnrichmentError,
    FetchError,
    NicheTrackError,
    PersistError,
)
from nichetrack.models import TREND_CATEGORIES, Trend, is_valid_subreddit, normalize_subreddit
from nichetrack.pipeline import (
    IngestionContext,
    IngestionPipeline,
    PipelineConfig,
    RunReport,
    build_context,
)

logger = logging.getLogger(__name__)

FEED_LIMIT = 30


def create_app(context: IngestionContext = None, config: PipelineConfig = None) -> Flask:
    """
    Build the Flask app.

    Args:
        context: Clients to use. When None they are built from config on
            first use, so importing the app needs no credentials.
        config: Pipeline settings for triggered runs.
    """
    app = Flask(__name__)
    app.config["INGESTION_CONTEXT"] = context
    app.config["PIPELINE_CONFIG"] = config or PipelineConfig()
    app.config["CREDENTIALS"] = credential_snapshot()
    app.extensions["nichetrack"] = {
        "context_lock": threading.Lock(),
        "last_run": None,
    }

    _register_routes(app)
    _register_error_handlers(app)
    return app


# =============================================================================
# Helpers
# =============================================================================

def get_context() -> IngestionContext:
    """Return the app's clients, building them once if needed."""
    context = current_app.config.get("INGESTION_CONTEXT")
    if context is not None:
        return context

    state = current_app.extensions["nichetrack"]
    with state["context_lock"]:
        context = current_app.config.get("INGESTION_CONTEXT")
        if context is None:
            pipeline_config = current_app.config["PIPELINE_CONFIG"]
            context = build_context(summarize=pipeline_config.summarize)
            current_app.config["INGESTION_CONTEXT"] = context
    return context


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_cron_secret() -> None:
    """
    Check the caller's bearer token against CRON_SECRET.

    Raises:
        AuthError: Token missing or wrong.
    """
    secret = current_app.config["CREDENTIALS"].get("CRON_SECRET") or ""
    token = _bearer_token() or ""
    if not secret or not hmac.compare_digest(token.encode(), secret.encode()):
        raise AuthError("Unauthorized")


def require_user() -> str:
    """
    Resolve the caller's Supabase access token to a user id.

    Raises:
        AuthError: Token missing or not valid.
    """
    token = _bearer_token()
    if not token:
        raise AuthError("Missing access token")
    user_id = get_context().storage.resolve_user(token)
    if not user_id:
        raise AuthError("Invalid or expired access token")
    return user_id


def _json_object() -> Optional[dict]:
    """The request body as a JSON object; {} when absent, None when it is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _string_field(data: dict, name: str) -> Optional[str]:
    """A stripped string field; "" when absent, None when present but not a string."""
    value = data.get(name)
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else None


def _bad_request(message: str):
    return jsonify({"success": False, "error": message}), 400


def time_ago(dt: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format a timestamp relative to now ("5m ago", "3h ago")."""
    if not dt:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    total_seconds = int((now - dt).total_seconds())
    if total_seconds < 60:
        return "just now"
    if total_seconds < 3600:
        return f"{total_seconds // 60}m ago"
    if total_seconds < 86400:
        return f"{total_seconds // 3600}h ago"
    return f"{total_seconds // 86400}d ago"


# =============================================================================
# Routes
# =============================================================================

def _register_routes(app: Flask) -> None:

    @app.route("/api/health")
    def api_health():
        """Liveness plus a short note on the last triggered run."""
        last_run = current_app.extensions["nichetrack"]["last_run"]
        return jsonify({
            "status": "ok",
            "last_run": last_run,
        })

    @app.route("/api/ingest-trends", methods=["GET"])
    def api_ingest_trends():
        """Run one ingestion pass over every active subscription."""
        pipeline_config = current_app.config["PIPELINE_CONFIG"]

        missing = missing_credentials(current_app.config["CREDENTIALS"], summarize=pipeline_config.summarize)
        if missing:
            logger.error("Ingestion refused, missing credentials: %s", ", ".join(missing))
            raise ConfigError("Missing required credentials in environment", missing=missing)

        require_cron_secret()

        logger.info("Ingestion triggered")
        pipeline = IngestionPipeline(get_context(), pipeline_config)
        report = pipeline.run()
        _remember_run(report)
        return jsonify(report.to_dict())

    @app.route("/api/openai-test", methods=["GET"])
    def api_openai_test():
        """Round-trip a trivial prompt to the chat API and echo the raw answer."""
        require_cron_secret()

        summarizer = get_context().summarizer
        if summarizer is None or not summarizer.is_available():
            raise ConfigError("Missing OpenAI API key", missing=["OPENAI_API_KEY"])

        result = summarizer.probe()
        return jsonify({
            "success": result.success,
            "status": result.status,
            "headers": result.headers,
            "body": result.body,
        })

    @app.route("/api/trends/classify", methods=["POST"])
    def api_trends_classify():
        """
        Classify the current top post of a subreddit as a trend and store it.

        The trend is shared unless the body names a user_id, in which case
        it is stored in that user's trends.
        """
        require_cron_secret()

        data = _json_object()
        if data is None:
            return _bad_request("request body must be a JSON object")

        raw_name = _string_field(data, "subreddit")
        user_id = _string_field(data, "user_id")
        if raw_name is None or user_id is None:
            return _bad_request("subreddit and user_id must be strings")

        subreddit = normalize_subreddit(raw_name)
        if not subreddit:
            return _bad_request("subreddit is required")
        if not is_valid_subreddit(subreddit):
            return _bad_request(f"subreddit name is invalid: {subreddit!r}")

        context = get_context()
        if context.summarizer is None or not context.summarizer.is_available():
            raise ConfigError("Missing OpenAI API key", missing=["OPENAI_API_KEY"])

        pipeline_config = current_app.config["PIPELINE_CONFIG"]
        posts = context.source.fetch_top_posts(subreddit, 1, pipeline_config.time_window)
        analysis = context.summarizer.classify_trend(posts[0].title)

        trend = Trend.from_analysis(analysis, user_id=user_id or None, subreddit=subreddit)
        context.storage.insert_trend(trend)
        logger.info("[%s] trend stored: %s", subreddit, trend)

        return jsonify({
            "success": True,
            "subreddit": subreddit,
            "source_title": posts[0].title,
            "trend": trend.to_dict(),
        })

    @app.route("/api/trends", methods=["GET"])
    def api_list_trends():
        """
        Today's trends, newest first.

        Anonymous callers get the shared trends; a caller with a user
        access token gets their own. ?category= narrows to one category
        ("all" for every one) and ?q= matches titles case-insensitively.
        """
        user_id = require_user() if _bearer_token() else None

        category = (request.args.get("category") or "all").strip().lower()
        if category != "all" and category not in TREND_CATEGORIES:
            return _bad_request(f"category must be all or one of {', '.join(TREND_CATEGORIES)}")

        search = (request.args.get("q") or "").strip()
        trends = get_context().storage.list_trends(
            user_id=user_id,
            category=None if category == "all" else category,
            search=search or None,
        )
        return jsonify({
            "success": True,
            "count": len(trends),
            "trends": [t.to_dict() for t in trends],
        })

    @app.route("/api/subreddits", methods=["GET"])
    def api_list_subreddits():
        """List the caller's subscriptions."""
        user_id = require_user()
        subscriptions = get_context().storage.list_subscriptions(user_id)
        return jsonify({
            "success": True,
            "subreddits": [s.to_dict() for s in subscriptions],
        })

    @app.route("/api/subreddits", methods=["POST"])
    def api_add_subreddit():
        """Subscribe the caller to a subreddit."""
        user_id = require_user()
        data = _json_object()
        if data is None:
            return _bad_request("request body must be a JSON object")

        name = _string_field(data, "subreddit")
        if name is None:
            return _bad_request("subreddit must be a string")
        if not name:
            return _bad_request("subreddit is required")

        try:
            subscription = get_context().storage.add_subscription(user_id, name)
        except ValueError as e:
            return _bad_request(str(e))

        logger.info("[%s] subscription added for %s", subscription.subreddit, user_id)
        return jsonify({"success": True, "subreddit": subscription.to_dict()}), 201

    @app.route("/api/subreddits/<subscription_id>", methods=["PATCH"])
    def api_update_subreddit(subscription_id):
        """Pause or resume one of the caller's subscriptions."""
        user_id = require_user()
        data = _json_object()
        if data is None:
            return _bad_request("request body must be a JSON object")

        if not isinstance(data.get("active"), bool):
            return _bad_request("active must be true or false")

        subscription = get_context().storage.set_subscription_active(subscription_id, user_id, data["active"])
        if subscription is None:
            return jsonify({"success": False, "error": "Subscription not found"}), 404

        return jsonify({"success": True, "subreddit": subscription.to_dict()})

    @app.route("/api/subreddits/<subscription_id>", methods=["DELETE"])
    def api_delete_subreddit(subscription_id):
        """Remove one of the caller's subscriptions."""
        user_id = require_user()
        if not get_context().storage.delete_subscription(subscription_id, user_id):
            return jsonify({"success": False, "error": "Subscription not found"}), 404
        return jsonify({"success": True})

    @app.route("/api/feed", methods=["GET"])
    def api_feed():
        """The caller's most recent ingested posts."""
        user_id = require_user()
        try:
            limit = min(int(request.args.get("limit", FEED_LIMIT)), 100)  # Cap at 100
        except ValueError:
            return _bad_request("limit must be an integer")

        items = get_context().storage.get_user_feed(user_id, limit=max(limit, 1))
        now = datetime.now(timezone.utc)

        results = []
        for item in items:
            data = item.to_dict()
            data["created_ago"] = time_ago(item.created_utc, now)
            results.append(data)

        return jsonify({
            "success": True,
            "count": len(results),
            "posts": results,
        })


def _remember_run(report: RunReport) -> None:
    current_app.extensions["nichetrack"]["last_run"] = {
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
        "processed": len(report.processed),
        "failed": len(report.failed),
        "items_stored": report.items_stored,
    }


# =============================================================================
# Error Handlers
# =============================================================================

def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(AuthError)
    def handle_auth_error(e: AuthError):
        return jsonify({"success": False, "error": e.message}), 401

    @app.errorhandler(ConfigError)
    def handle_config_error(e: ConfigError):
        # Names of missing credentials stay in the server log
        return jsonify({"success": False, "error": e.message}), 500

    @app.errorhandler(FetchError)
    @app.errorhandler(EnrichmentError)
    @app.errorhandler(PersistError)
    def handle_upstream_error(e: NicheTrackError):
        logger.warning("Upstream %s error: %s", e.stage, e)
        return jsonify({"success": False, "stage": e.stage, "error": str(e)}), 502


app = create_app()


if __name__ == "__main__":
    setup_logging()
    print("=" * 50)
    print("NicheTrack API")
    print("=" * 50)
    print("Listening on http://localhost:5001")
    print("Press Ctrl+C to stop")
    print("=" * 50)
    app.run(debug=DEBUG, port=5001)
