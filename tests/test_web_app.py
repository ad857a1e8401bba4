"""
Tests for the Web API.

Tests the trigger endpoint's credential and auth gates, trend
classification and listing, the user-scoped subscription and feed
endpoints, and error mapping.
"""

import pytest
from datetime import datetime, timedelta, timezone

from nichetrack.errors import EnrichmentError
from nichetrack.models.ingested_item import IngestedItem
from nichetrack.models.trend import Trend, start_of_today
from nichetrack.pipeline import PipelineConfig
from nichetrack.services.summarizer import ProbeResult

from web.app import create_app, time_ago

from tests.test_config import CONFIG, EXPECTED, TEST_DATA


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def flask_app(ingestion_context):
    """App wired to the in-memory context with full credentials."""
    app = create_app(
        ingestion_context,
        PipelineConfig(limit_per_subreddit=2, summarize=True, max_workers=2, fallback_subreddit=""),
    )
    app.config["TESTING"] = True
    app.config["CREDENTIALS"] = dict(CONFIG["credentials"])
    return app


@pytest.fixture
def client(flask_app):
    """Flask test client."""
    with flask_app.test_client() as client:
        yield client


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CONFIG['credentials']['CRON_SECRET']}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {CONFIG['user_token']}"}


@pytest.fixture
def subscribed_storage(memory_storage):
    memory_storage.add_subscription(CONFIG["user_id"], "startups")
    memory_storage.add_subscription(CONFIG["user_id"], "Entrepreneur")
    return memory_storage


# =============================================================================
# Test Health
# =============================================================================

class TestHealth:

    def test_health_ok(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"
        assert response.get_json()["last_run"] is None


# =============================================================================
# Test Ingestion Trigger
# =============================================================================

class TestIngestTrends:

    def test_missing_token_is_401(self, client, fake_source):
        response = client.get("/api/ingest-trends")

        assert response.status_code == EXPECTED["http"]["unauthorized"]
        assert response.get_json()["error"] == "Unauthorized"
        assert fake_source.fetch_calls == []

    def test_wrong_token_is_401(self, client, fake_source):
        response = client.get("/api/ingest-trends", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert fake_source.fetch_calls == []

    def test_non_bearer_scheme_is_401(self, client):
        secret = CONFIG["credentials"]["CRON_SECRET"]
        response = client.get("/api/ingest-trends", headers={"Authorization": f"Basic {secret}"})

        assert response.status_code == 401

    @pytest.mark.parametrize("missing", ["SUPABASE_URL", "SUPABASE_SERVICE_KEY", "CRON_SECRET", "OPENAI_API_KEY"])
    def test_missing_credential_is_500_before_auth(self, flask_app, client, fake_source, missing):
        flask_app.config["CREDENTIALS"][missing] = ""

        # No Authorization header at all: the config gate answers first
        response = client.get("/api/ingest-trends")

        assert response.status_code == EXPECTED["http"]["config_error"]
        body = response.get_json()
        assert body["error"] == "Missing required credentials in environment"
        assert missing not in body["error"]
        assert fake_source.fetch_calls == []

    def test_openai_key_optional_when_summaries_disabled(self, flask_app, client, cron_headers):
        flask_app.config["CREDENTIALS"]["OPENAI_API_KEY"] = ""
        flask_app.config["PIPELINE_CONFIG"].summarize = False

        response = client.get("/api/ingest-trends", headers=cron_headers)

        assert response.status_code == 200

    def test_successful_run_reports_outcomes(self, client, cron_headers, subscribed_storage):
        response = client.get("/api/ingest-trends", headers=cron_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert sorted(body["processed"]) == ["Entrepreneur", "startups"]
        assert body["failed"] == []
        assert body["items_stored"] == 3
        assert subscribed_storage.count() == 3

    def test_partial_failure_is_still_200(self, client, cron_headers, subscribed_storage):
        subscribed_storage.add_subscription(CONFIG["other_user_id"], "SaaS")

        response = client.get("/api/ingest-trends", headers=cron_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body["failed"] == ["SaaS"]
        assert body["failures"][0]["stage"] == "fetch"

    def test_no_subscriptions_is_empty_report(self, client, cron_headers, fake_source):
        response = client.get("/api/ingest-trends", headers=cron_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body["processed"] == []
        assert body["failed"] == []
        assert fake_source.fetch_calls == []

    def test_run_is_remembered_by_health(self, client, cron_headers, subscribed_storage):
        client.get("/api/ingest-trends", headers=cron_headers)

        last_run = client.get("/api/health").get_json()["last_run"]

        assert last_run["processed"] == 2
        assert last_run["items_stored"] == 3


# =============================================================================
# Test Diagnostic Endpoints
# =============================================================================

class TestOpenAITest:

    def test_requires_cron_secret(self, client, fake_summarizer):
        response = client.get("/api/openai-test")

        assert response.status_code == 401
        fake_summarizer.probe.assert_not_called()

    def test_returns_raw_probe(self, client, cron_headers, fake_summarizer):
        fake_summarizer.probe.return_value = ProbeResult(
            status=502, headers={"Content-Type": "text/html"}, body=TEST_DATA["html_error_page"]
        )

        response = client.get("/api/openai-test", headers=cron_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["status"] == 502
        assert body["body"] == TEST_DATA["html_error_page"]


class TestClassifyTrend:

    def test_classifies_and_stores_shared_trend(self, client, cron_headers, fake_summarizer, memory_storage):
        """
        GIVEN: r/startups has a top post
        WHEN: The trend is classified without a user_id
        THEN: The trend is returned with its id and stored as a shared trend
        """
        response = client.post("/api/trends/classify", json={"subreddit": "startups"}, headers=cron_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body["source_title"] == "Post s1"
        assert body["trend"]["category"] == "tech"
        fake_summarizer.classify_trend.assert_called_once_with("Post s1")

        stored = memory_storage.all_trends()
        assert len(stored) == 1
        assert stored[0].id == body["trend"]["id"]
        assert stored[0].user_id is None
        assert stored[0].subreddit == "startups"

    def test_user_id_stores_user_trend(self, client, cron_headers, memory_storage):
        body = {"subreddit": "startups", "user_id": CONFIG["user_id"]}

        response = client.post("/api/trends/classify", json=body, headers=cron_headers)

        assert response.status_code == 200
        assert memory_storage.list_trends() == []
        assert [t.title for t in memory_storage.list_trends(user_id=CONFIG["user_id"])] == [TEST_DATA["trend"]["title"]]

    def test_prefixed_name_is_normalized(self, client, cron_headers, fake_source):
        response = client.post("/api/trends/classify", json={"subreddit": "r/startups"}, headers=cron_headers)

        assert response.status_code == 200
        assert response.get_json()["subreddit"] == "startups"
        assert fake_source.fetch_calls == ["startups"]

    def test_invalid_name_is_400_without_fetch(self, client, cron_headers, fake_source):
        response = client.post("/api/trends/classify", json={"subreddit": "not a name"}, headers=cron_headers)

        assert response.status_code == 400
        assert fake_source.fetch_calls == []

    @pytest.mark.parametrize("payload", [
        {"subreddit": 123},
        {"subreddit": ["startups"]},
        {"subreddit": "startups", "user_id": 7},
        ["startups"],
    ])
    def test_non_string_or_non_object_body_is_400(self, client, cron_headers, fake_source, payload):
        response = client.post("/api/trends/classify", json=payload, headers=cron_headers)

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert fake_source.fetch_calls == []

    def test_missing_subreddit_is_400(self, client, cron_headers):
        response = client.post("/api/trends/classify", json={}, headers=cron_headers)
        assert response.status_code == 400

    def test_unknown_subreddit_is_502(self, client, cron_headers, memory_storage):
        response = client.post("/api/trends/classify", json={"subreddit": "SaaS"}, headers=cron_headers)

        assert response.status_code == EXPECTED["http"]["upstream_error"]
        assert response.get_json()["stage"] == "fetch"
        assert memory_storage.all_trends() == []

    def test_enrichment_failure_is_502(self, client, cron_headers, fake_summarizer, memory_storage):
        fake_summarizer.classify_trend.side_effect = EnrichmentError("OpenAI error: Bad Gateway", status_code=502)

        response = client.post("/api/trends/classify", json={"subreddit": "startups"}, headers=cron_headers)

        assert response.status_code == 502
        assert response.get_json()["stage"] == "enrich"
        assert memory_storage.all_trends() == []


# =============================================================================
# Test Trend Listing
# =============================================================================

@pytest.fixture
def stored_trends(memory_storage):
    """Three shared trends from today, one for the test user, one from two days ago."""
    today = start_of_today()
    for offset, data in enumerate(TEST_DATA["trends"], start=1):
        memory_storage.insert_trend(Trend(created_at=today + timedelta(seconds=offset), **data))
    memory_storage.insert_trend(Trend(
        title="My saved trend", description="Only mine.", category="health",
        user_id=CONFIG["user_id"], created_at=today + timedelta(seconds=1),
    ))
    memory_storage.insert_trend(Trend(
        title="Old travel news", description="Stale.", category="travel",
        created_at=today - timedelta(days=2),
    ))
    return memory_storage


class TestTrends:

    def test_anonymous_lists_todays_shared_trends_newest_first(self, client, stored_trends):
        response = client.get("/api/trends")

        body = response.get_json()
        assert response.status_code == 200
        assert body["count"] == 3
        assert [t["title"] for t in body["trends"]] == [
            "AI travel planners",
            "Index funds for teens",
            "Slow travel in the Balkans",
        ]

    def test_category_filter(self, client, stored_trends):
        response = client.get("/api/trends?category=finance")

        assert [t["title"] for t in response.get_json()["trends"]] == ["Index funds for teens"]

    def test_category_all_lists_everything(self, client, stored_trends):
        assert client.get("/api/trends?category=all").get_json()["count"] == 3

    def test_search_is_case_insensitive_on_title(self, client, stored_trends):
        response = client.get("/api/trends?q=TRAVEL")

        titles = [t["title"] for t in response.get_json()["trends"]]
        assert titles == ["AI travel planners", "Slow travel in the Balkans"]

    def test_search_and_category_combine(self, client, stored_trends):
        response = client.get("/api/trends?q=travel&category=tech")

        assert [t["title"] for t in response.get_json()["trends"]] == ["AI travel planners"]

    def test_unknown_category_is_400(self, client, stored_trends):
        response = client.get("/api/trends?category=sports")
        assert response.status_code == 400

    def test_user_token_lists_own_trends(self, client, user_headers, stored_trends):
        response = client.get("/api/trends", headers=user_headers)

        assert [t["title"] for t in response.get_json()["trends"]] == ["My saved trend"]

    def test_invalid_user_token_is_401(self, client, stored_trends):
        response = client.get("/api/trends", headers={"Authorization": "Bearer unknown"})
        assert response.status_code == 401


# =============================================================================
# Test Subscription Endpoints
# =============================================================================

class TestSubreddits:

    def test_requires_user_token(self, client):
        assert client.get("/api/subreddits").status_code == 401
        assert client.get("/api/subreddits", headers={"Authorization": "Bearer unknown"}).status_code == 401

    def test_add_and_list(self, client, user_headers):
        response = client.post("/api/subreddits", json={"subreddit": "r/startups"}, headers=user_headers)

        assert response.status_code == 201
        assert response.get_json()["subreddit"]["subreddit"] == "startups"

        listed = client.get("/api/subreddits", headers=user_headers).get_json()["subreddits"]
        assert [s["subreddit"] for s in listed] == ["startups"]
        assert listed[0]["user_id"] == CONFIG["user_id"]

    def test_add_invalid_name_is_400(self, client, user_headers):
        response = client.post("/api/subreddits", json={"subreddit": "not a subreddit"}, headers=user_headers)
        assert response.status_code == 400

    def test_add_missing_name_is_400(self, client, user_headers):
        response = client.post("/api/subreddits", json={}, headers=user_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [{"subreddit": 123}, {"subreddit": ["startups"]}, ["startups"]])
    def test_add_non_string_name_is_400(self, client, user_headers, memory_storage, payload):
        """
        GIVEN: A body whose subreddit is not a string, or a body that is not an object
        WHEN: POST /api/subreddits
        THEN: 400 with a JSON error and nothing is stored
        """
        response = client.post("/api/subreddits", json=payload, headers=user_headers)

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert memory_storage.list_subscriptions(CONFIG["user_id"]) == []

    def test_pause_subscription(self, client, user_headers, subscribed_storage):
        subscription = subscribed_storage.list_subscriptions(CONFIG["user_id"])[0]

        response = client.patch(f"/api/subreddits/{subscription.id}", json={"active": False}, headers=user_headers)

        assert response.status_code == 200
        assert response.get_json()["subreddit"]["active"] is False
        assert len(subscribed_storage.list_active_subscriptions()) == 1

    def test_patch_requires_boolean(self, client, user_headers, subscribed_storage):
        subscription = subscribed_storage.list_subscriptions(CONFIG["user_id"])[0]

        response = client.patch(f"/api/subreddits/{subscription.id}", json={"active": "no"}, headers=user_headers)

        assert response.status_code == 400

    def test_patch_non_object_body_is_400(self, client, user_headers, subscribed_storage):
        subscription = subscribed_storage.list_subscriptions(CONFIG["user_id"])[0]

        response = client.patch(f"/api/subreddits/{subscription.id}", json=[False], headers=user_headers)

        assert response.status_code == 400
        assert subscription.active is True

    def test_cannot_touch_other_users_subscription(self, client, user_headers, memory_storage):
        other = memory_storage.add_subscription(CONFIG["other_user_id"], "SaaS")

        assert client.patch(f"/api/subreddits/{other.id}", json={"active": False}, headers=user_headers).status_code == 404
        assert client.delete(f"/api/subreddits/{other.id}", headers=user_headers).status_code == 404
        assert memory_storage.list_active_subscriptions()[0].id == other.id

    def test_delete_subscription(self, client, user_headers, subscribed_storage):
        subscription = subscribed_storage.list_subscriptions(CONFIG["user_id"])[0]

        response = client.delete(f"/api/subreddits/{subscription.id}", headers=user_headers)

        assert response.status_code == 200
        assert len(subscribed_storage.list_subscriptions(CONFIG["user_id"])) == 1


# =============================================================================
# Test Feed
# =============================================================================

class TestFeed:

    def test_feed_is_scoped_and_annotated(self, client, user_headers, memory_storage):
        now = datetime.now(timezone.utc)
        memory_storage.insert_item(IngestedItem(
            user_id=CONFIG["user_id"], subreddit="startups", title="Mine",
            url="https://example.com/1", created_utc=now - timedelta(hours=2),
        ))
        memory_storage.insert_item(IngestedItem(
            user_id=CONFIG["other_user_id"], subreddit="startups", title="Theirs",
            url="https://example.com/2", created_utc=now,
        ))

        response = client.get("/api/feed", headers=user_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert [p["title"] for p in body["posts"]] == ["Mine"]
        assert body["posts"][0]["created_ago"] == "2h ago"

    def test_bad_limit_is_400(self, client, user_headers):
        response = client.get("/api/feed?limit=lots", headers=user_headers)
        assert response.status_code == 400


# =============================================================================
# Test time_ago
# =============================================================================

class TestTimeAgo:

    NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(seconds=30), "just now"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=3), "3h ago"),
        (timedelta(days=2), "2d ago"),
    ])
    def test_buckets(self, delta, expected):
        assert time_ago(self.NOW - delta, self.NOW) == expected

    def test_none_is_unknown(self):
        assert time_ago(None, self.NOW) == "unknown"

    def test_naive_datetime_treated_as_utc(self):
        assert time_ago(datetime(2025, 6, 1, 11, 0), self.NOW) == "1h ago"
