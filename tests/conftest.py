"""
Pytest Configuration and Fixtures

This module provides:
- Timestamped result file generation
- Shared fixtures for all tests (fake source, summarizer, storage)
- Test category organization
"""

import pytest
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tests.test_config import CONFIG, TEST_DATA, TEST_CATEGORIES, reddit_child

from nichetrack.errors import FetchError
from nichetrack.models.post import RedditPost
from nichetrack.models.subscription import Subscription
from nichetrack.pipeline import IngestionContext
from nichetrack.services.summarizer import AISummarizer, TrendAnalysis
from nichetrack.sources.base import ContentSource
from nichetrack.storage.supabase_store import MockSupabaseStorage


# =============================================================================
# TEST RESULT FILE CONFIGURATION
# =============================================================================

RESULTS_DIR = PROJECT_ROOT / "test_results"


def get_result_filename() -> str:
    """Generate timestamped result filename."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"test_results_{timestamp}.txt"


class TestResultCollector:
    """Collects test results for formatted output."""

    __test__ = False

    def __init__(self):
        self.results: List[Dict[str, Any]] = []
        self.start_time: datetime = None
        self.end_time: datetime = None

    def add_result(self, nodeid: str, outcome: str, duration: float):
        filename = nodeid.split("::")[0].split("/")[-1]
        category = filename.replace("test_", "", 1).replace(".py", "")
        self.results.append({
            "nodeid": nodeid,
            "category": category,
            "outcome": outcome,
            "duration": duration,
        })

    def get_summary(self) -> Dict[str, int]:
        return {
            "total": len(self.results),
            "passed": sum(1 for r in self.results if r["outcome"] == "passed"),
            "failed": sum(1 for r in self.results if r["outcome"] == "failed"),
            "skipped": sum(1 for r in self.results if r["outcome"] == "skipped"),
        }

    def format_report(self) -> str:
        summary = self.get_summary()
        lines = [
            "=" * 80,
            "NICHETRACK - TEST RESULTS REPORT",
            "=" * 80,
            f"Run Date:     {self.start_time.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Total Tests:  {summary['total']}",
            f"Passed:       {summary['passed']}",
            f"Failed:       {summary['failed']}",
            f"Skipped:      {summary['skipped']}",
            "",
        ]

        categories: Dict[str, List[Dict[str, Any]]] = {}
        for result in self.results:
            categories.setdefault(result["category"], []).append(result)

        for category, results in sorted(categories.items()):
            info = TEST_CATEGORIES.get(category, {"name": category.replace("_", " ").title()})
            passed = sum(1 for r in results if r["outcome"] == "passed")
            lines.append(f"{info['name']}: {passed}/{len(results)} passed")
            for protection in info.get("protects_against", []):
                lines.append(f"    protects against: {protection}")
            for r in results:
                if r["outcome"] == "failed":
                    lines.append(f"    FAILED {r['nodeid']}")

        lines.append("=" * 80)
        return "\n".join(lines)


_collector = TestResultCollector()


def pytest_configure(config):
    """Register custom markers and start the collector."""
    config.addinivalue_line("markers", "config_validation: Configuration validation tests")
    config.addinivalue_line("markers", "source_resilience: Per-subreddit error isolation tests")
    config.addinivalue_line("markers", "duplicates: No-dedup behavior tests")
    config.addinivalue_line("markers", "cli_behavior: CLI interface tests")
    _collector.start_time = datetime.now()


def pytest_runtest_logreport(report):
    """Called after each test phase."""
    if report.when == "call":
        _collector.add_result(report.nodeid, report.outcome, report.duration)


def pytest_sessionfinish(session, exitstatus):
    """Save the formatted report after all tests complete."""
    _collector.end_time = datetime.now()
    if not _collector.results:
        return
    RESULTS_DIR.mkdir(exist_ok=True)
    (RESULTS_DIR / get_result_filename()).write_text(_collector.format_report(), encoding="utf-8")


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeSource(ContentSource):
    """
    In-memory content source.

    posts_by_subreddit maps a subreddit to the children its listing returns;
    failing maps a subreddit to the exception fetch_top_posts raises.
    """

    def __init__(self, posts_by_subreddit=None, failing=None, comments=None):
        self.posts_by_subreddit = posts_by_subreddit or {}
        self.failing = failing or {}
        self.comments = list(TEST_DATA["comments"]) if comments is None else comments
        self.fetch_calls: List[str] = []

    @property
    def name(self) -> str:
        return "fake"

    def fetch_top_posts(self, subreddit, limit, time_window="day"):
        self.fetch_calls.append(subreddit)
        if subreddit in self.failing:
            raise self.failing[subreddit]
        children = self.posts_by_subreddit.get(subreddit, [])
        if not children:
            raise FetchError(f"No top posts for r/{subreddit}", subreddit=subreddit)
        return [RedditPost.from_listing_child(child, subreddit) for child in children[:limit]]

    def fetch_top_comments(self, post, limit):
        return self.comments[:limit]


@pytest.fixture
def fake_source():
    """Source with two posts for r/startups and r/Entrepreneur."""
    return FakeSource(posts_by_subreddit={
        "startups": [reddit_child("s1"), reddit_child("s2")],
        "Entrepreneur": [reddit_child("e1", subreddit="Entrepreneur")],
    })


@pytest.fixture
def fake_summarizer():
    """Summarizer mock returning a fixed summary when comments exist and a fixed trend."""
    summarizer = Mock(spec=AISummarizer)
    summarizer.is_available.return_value = True
    summarizer.summarize_post.side_effect = (
        lambda title, comments: TEST_DATA["summary"] if comments else None
    )
    summarizer.classify_trend.return_value = TrendAnalysis(**TEST_DATA["trend"])
    return summarizer


@pytest.fixture
def memory_storage():
    """Empty in-memory storage that knows the test user's token."""
    return MockSupabaseStorage(tokens={CONFIG["user_token"]: CONFIG["user_id"]})


@pytest.fixture
def sample_subscriptions():
    """Entrepreneur and startups for the test user."""
    return [Subscription(**data) for data in TEST_DATA["subscriptions"]]


@pytest.fixture
def ingestion_context(fake_source, fake_summarizer, memory_storage):
    return IngestionContext(source=fake_source, storage=memory_storage, summarizer=fake_summarizer)
