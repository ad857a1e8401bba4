"""
NicheTrack Pipeline - Core execution logic.

This module orchestrates one ingestion run:

    Subscriptions → (per subscription) Fetch → Enrich → Persist → Report

Steps:
1. Load every active (user, subreddit) subscription once
2. Run the per-subscription pipeline for each pair on a thread pool
3. Per subscription: fetch top posts, insert each post, then summarize
   its top comments and attach the summary with a follow-up update
4. Collect one outcome per subscription into the run report

Design principles:
- Error isolation: every exception is caught at the subscription boundary
  and turned into a failure record; no subscription affects another
- No dedup: re-running within the same window stores the posts again
- Dry-run support: fetch and summarize without writes (`--dry-run`)
- Clients are injected through IngestionContext, never module globals
"""

import logging
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from nichetrack.config import (
    COMMENTS_PER_POST,
    FALLBACK_SUBREDDIT,
    FALLBACK_USER_ID,
    MAX_WORKERS,
    POSTS_PER_SUBREDDIT,
    SUMMARIZE_POSTS,
    TOP_TIME_WINDOW,
)
from nichetrack.errors import ConfigError, UpstreamShapeError, classify_error, describe_error
from nichetrack.models.ingested_item import IngestedItem
from nichetrack.models.post import RedditPost
from nichetrack.models.subscription import Subscription
from nichetrack.services.summarizer import AISummarizer
from nichetrack.sources.base import ContentSource
from nichetrack.sources.reddit import RedditSource
from nichetrack.storage.base import Storage
from nichetrack.storage.supabase_store import SupabaseStorage, create_supabase_client

logger = logging.getLogger(__name__)


# =============================================================================
# Pipeline Result Data Structures
# =============================================================================

@dataclass
class ProcessingOutcome:
    """Result of running the pipeline for a single subscription."""
    user_id: str
    subreddit: str
    success: bool
    posts_fetched: int = 0
    item_ids: List[str] = field(default_factory=list)
    summaries: int = 0
    stage: Optional[str] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    def fail(self, exc: BaseException) -> None:
        """Record a failure. The first failure's stage and reason are kept."""
        self.success = False
        if self.error is None:
            self.stage = classify_error(exc)
            self.error = describe_error(exc)

    def to_dict(self) -> dict:
        data = {
            "user_id": self.user_id,
            "subreddit": self.subreddit,
            "success": self.success,
            "posts_fetched": self.posts_fetched,
            "items_stored": len(self.item_ids),
            "item_ids": list(self.item_ids),
            "summaries": self.summaries,
            "duration_ms": round(self.duration_ms, 1),
        }
        if not self.success:
            data["stage"] = self.stage
            data["error"] = self.error
        return data


@dataclass
class RunReport:
    """Complete result of an ingestion run."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[ProcessingOutcome] = field(default_factory=list)
    dry_run: bool = False

    # Run-level notes (e.g. subscription store unreachable)
    warnings: List[str] = field(default_factory=list)

    @property
    def processed(self) -> List[str]:
        """Subreddits whose pipeline succeeded."""
        return [o.subreddit for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[str]:
        """Subreddits whose pipeline failed."""
        return [o.subreddit for o in self.outcomes if not o.success]

    @property
    def items_stored(self) -> int:
        return sum(len(o.item_ids) for o in self.outcomes)

    @property
    def duration_seconds(self) -> float:
        """Total run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> dict:
        """JSON body returned by the trigger endpoint."""
        return {
            "success": True,
            "processed": self.processed,
            "failed": self.failed,
            "failures": [
                {"user_id": o.user_id, "subreddit": o.subreddit, "stage": o.stage, "error": o.error}
                for o in self.outcomes if not o.success
            ],
            "results": [o.to_dict() for o in self.outcomes],
            "items_stored": self.items_stored,
            "dry_run": self.dry_run,
            "warnings": list(self.warnings),
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
        }

    def to_summary(self) -> str:
        """Generate a human-readable summary."""
        lines = [
            "=" * 60,
            "INGESTION RUN SUMMARY",
            "=" * 60,
            f"Started:  {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Duration: {self.duration_seconds:.2f}s",
            f"Mode:     {'DRY RUN' if self.dry_run else 'LIVE'}",
            "",
            "Subscriptions:",
        ]

        if not self.outcomes:
            lines.append("  (none)")

        for o in self.outcomes:
            status = "✓" if o.success else "✗"
            lines.append(
                f"  {status} r/{o.subreddit} [{o.user_id}]: {o.posts_fetched} posts, "
                f"{len(o.item_ids)} stored, {o.summaries} summarized ({o.duration_ms:.0f}ms)"
            )
            if o.error:
                lines.append(f"      {o.stage} error: {o.error}")

        lines.extend([
            "",
            f"Succeeded: {len(self.processed)}",
            f"Failed:    {len(self.failed)}",
            f"Stored:    {self.items_stored}" if not self.dry_run else "Stored:    SKIPPED (dry-run mode)",
        ])

        if self.warnings:
            lines.extend(["", "Warnings:"])
            for warning in self.warnings[:5]:  # Show first 5
                lines.append(f"  - {warning}")

        lines.append("=" * 60)
        return "\n".join(lines)


# =============================================================================
# Pipeline Configuration
# =============================================================================

@dataclass
class PipelineConfig:
    """
    Configuration for an ingestion run.

    CLI arguments override config file defaults.
    """
    limit_per_subreddit: int = POSTS_PER_SUBREDDIT
    time_window: str = TOP_TIME_WINDOW
    comments_per_post: int = COMMENTS_PER_POST
    summarize: bool = SUMMARIZE_POSTS
    max_workers: int = MAX_WORKERS
    dry_run: bool = False
    verbose: bool = False

    # Used when the subscription store cannot be read (empty = none)
    fallback_subreddit: str = FALLBACK_SUBREDDIT
    fallback_user_id: str = FALLBACK_USER_ID

    @classmethod
    def from_args(cls, args) -> "PipelineConfig":
        """Create config from argparse namespace."""
        return cls(
            limit_per_subreddit=getattr(args, "limit_per_subreddit", None) or POSTS_PER_SUBREDDIT,
            time_window=getattr(args, "time_window", None) or TOP_TIME_WINDOW,
            summarize=SUMMARIZE_POSTS and not getattr(args, "no_summary", False),
            max_workers=getattr(args, "workers", None) or MAX_WORKERS,
            dry_run=bool(getattr(args, "dry_run", False)),
            verbose=bool(getattr(args, "verbose", False)),
        )


@dataclass
class IngestionContext:
    """
    Clients one run depends on.

    Built once at process start and passed to every pipeline.
    summarizer is None when summarization is disabled.
    """
    source: ContentSource
    storage: Storage
    summarizer: Optional[AISummarizer] = None


def build_context(storage: Storage = None, summarize: bool = SUMMARIZE_POSTS) -> IngestionContext:
    """
    Wire the production clients from config.

    Raises:
        ConfigError: Supabase is not configured and no storage was passed.
    """
    if storage is None:
        storage = SupabaseStorage(create_supabase_client())
    return IngestionContext(
        source=RedditSource(),
        storage=storage,
        summarizer=AISummarizer() if summarize else None,
    )


# =============================================================================
# Pipeline Class
# =============================================================================

class IngestionPipeline:
    """
    Main pipeline for fetching, summarizing and storing subreddit posts.

    Usage:
        context = build_context()
        pipeline = IngestionPipeline(context, PipelineConfig(dry_run=True))
        report = pipeline.run()
        print(report.to_summary())
    """

    def __init__(self, context: IngestionContext, config: PipelineConfig = None):
        """
        Initialize the pipeline.

        Args:
            context: Injected source, storage and summarizer.
            config: Pipeline configuration. Defaults to PipelineConfig().
        """
        self.context = context
        self.config = config or PipelineConfig()

    def load_subscriptions(self, report: RunReport = None) -> List[Subscription]:
        """
        Load every active subscription.

        Never raises: if the store fails, the condition is logged and the
        run continues with the fallback subreddit, or with nothing.
        """
        try:
            subscriptions = self.context.storage.list_active_subscriptions()
            logger.info("Loaded %d active subscriptions from %s", len(subscriptions), self.context.storage.name)
            return subscriptions
        except Exception as e:
            message = f"Could not load subscriptions: {describe_error(e)}"
            logger.error(message)
            if report is not None:
                report.warnings.append(message)

        if self.config.fallback_subreddit:
            logger.warning("Falling back to r/%s", self.config.fallback_subreddit)
            try:
                return [Subscription(user_id=self.config.fallback_user_id, subreddit=self.config.fallback_subreddit)]
            except ValueError as e:
                logger.error("Fallback subreddit is invalid: %s", e)
        return []

    def process_subscription(self, subscription: Subscription) -> ProcessingOutcome:
        """
        Run fetch → enrich → persist for one subscription.

        Never raises. Per-post errors do not stop the remaining posts; the
        outcome is marked failed with the first error's stage and reason.
        """
        outcome = ProcessingOutcome(
            user_id=subscription.user_id,
            subreddit=subscription.subreddit,
            success=True,
        )
        start = time.monotonic()

        try:
            posts = self.context.source.fetch_top_posts(
                subscription.subreddit,
                self.config.limit_per_subreddit,
                self.config.time_window,
            )
            outcome.posts_fetched = len(posts)

            for post in posts:
                try:
                    self._ingest_post(subscription, post, outcome)
                except Exception as e:
                    logger.warning("[%s] post %s failed: %s", subscription.subreddit, post.reddit_id, describe_error(e))
                    outcome.fail(e)

        except Exception as e:
            outcome.fail(e)
            if self.config.verbose and classify_error(e) == "internal":
                logger.debug(traceback.format_exc())

        outcome.duration_ms = (time.monotonic() - start) * 1000

        if outcome.success:
            logger.info(
                "[%s] done: %d posts, %d stored, %d summarized",
                subscription.subreddit, outcome.posts_fetched, len(outcome.item_ids), outcome.summaries,
            )
        else:
            logger.warning("[%s] failed at %s: %s", subscription.subreddit, outcome.stage, outcome.error)
        return outcome

    def _ingest_post(self, subscription: Subscription, post: RedditPost, outcome: ProcessingOutcome) -> None:
        """Insert one post, then summarize it and attach the summary."""
        try:
            item = IngestedItem.from_post(subscription.user_id, post)
        except ValueError as e:
            raise UpstreamShapeError(str(e), subreddit=subscription.subreddit) from e

        if not self.config.dry_run:
            self.context.storage.insert_item(item)
            outcome.item_ids.append(item.id)

        summarizer = self.context.summarizer
        if not (self.config.summarize and summarizer is not None):
            return

        comments = self.context.source.fetch_top_comments(post, self.config.comments_per_post)
        summary = summarizer.summarize_post(post.title, comments)
        if summary is None:
            return

        outcome.summaries += 1
        if not self.config.dry_run:
            self.context.storage.update_item_summary(item.id, summary)

    def _safe_process(self, subscription: Subscription) -> ProcessingOutcome:
        try:
            return self.process_subscription(subscription)
        except Exception as e:
            outcome = ProcessingOutcome(user_id=subscription.user_id, subreddit=subscription.subreddit, success=False)
            outcome.fail(e)
            return outcome

    def run(self, subscriptions: List[Subscription] = None) -> RunReport:
        """
        Execute one ingestion run.

        Args:
            subscriptions: Explicit pairs to process. When None, active
                subscriptions are loaded from storage.

        Returns:
            RunReport with exactly one outcome per subscription, in input order.

        Raises:
            ConfigError: Summaries are enabled but the summarizer has no key.
                Raised before any subscription is fetched.
        """
        summarizer = self.context.summarizer
        if self.config.summarize and summarizer is not None and not summarizer.is_available():
            raise ConfigError("Summaries are enabled but OPENAI_API_KEY is not set", missing=["OPENAI_API_KEY"])

        report = RunReport(started_at=datetime.now(timezone.utc), dry_run=self.config.dry_run)

        if subscriptions is None:
            subscriptions = self.load_subscriptions(report)

        if not subscriptions:
            logger.info("No subscriptions to process")
            report.finished_at = datetime.now(timezone.utc)
            return report

        outcomes: List[Optional[ProcessingOutcome]] = [None] * len(subscriptions)
        workers = max(1, min(self.config.max_workers, len(subscriptions)))
        logger.info("Processing %d subscriptions with %d workers", len(subscriptions), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as executor:
            futures = {
                executor.submit(self._safe_process, subscription): index
                for index, subscription in enumerate(subscriptions)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    outcomes[index] = future.result()
                except Exception as e:
                    subscription = subscriptions[index]
                    outcome = ProcessingOutcome(user_id=subscription.user_id, subreddit=subscription.subreddit, success=False)
                    outcome.fail(e)
                    outcomes[index] = outcome

        report.outcomes = outcomes
        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Run finished in %.2fs: %d succeeded, %d failed",
            report.duration_seconds, len(report.processed), len(report.failed),
        )
        return report


# =============================================================================
# Convenience Functions
# =============================================================================

def run_pipeline(
    context: IngestionContext = None,
    limit_per_subreddit: int = None,
    time_window: str = None,
    summarize: bool = SUMMARIZE_POSTS,
    max_workers: int = None,
    dry_run: bool = False,
    verbose: bool = False,
    subscriptions: List[Subscription] = None,
) -> RunReport:
    """
    Run the pipeline with specified options.

    Convenience function for programmatic use. Builds the production
    context when none is given.
    """
    config = PipelineConfig(
        limit_per_subreddit=limit_per_subreddit or POSTS_PER_SUBREDDIT,
        time_window=time_window or TOP_TIME_WINDOW,
        summarize=summarize,
        max_workers=max_workers or MAX_WORKERS,
        dry_run=dry_run,
        verbose=verbose,
    )

    if context is None:
        context = build_context(summarize=summarize)

    pipeline = IngestionPipeline(context, config)
    return pipeline.run(subscriptions)
