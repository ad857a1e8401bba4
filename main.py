#!/usr/bin/env python3
"""
NicheTrack - Subreddit ingestion run.

Command-line entry point for running one ingestion pass:
  - Load every active subreddit subscription from Supabase
  - Fetch top posts for each subscription from Reddit
  - Summarize each post's top comments with OpenAI
  - Store posts and summaries in the user's feed
  - Print execution summary

Usage:
    python main.py                          # Run over all active subscriptions
    python main.py --dry-run                # Fetch and summarize only, no storage
    python main.py --limit-per-subreddit 3  # Limit posts per subreddit
    python main.py --verbose                # Show detailed progress

Examples:
    # Development run (dry-run for two subreddits, no summaries)
    python main.py --dry-run --subreddits startups Entrepreneur --user-id me --no-summary

    # Production run (what the scheduler executes)
    python main.py --limit-per-subreddit 5
"""

import argparse
import logging
import sys

from nichetrack.config import (
    COMMENTS_PER_POST,
    MAX_WORKERS,
    POSTS_PER_SUBREDDIT,
    TOP_TIME_WINDOW,
    VALID_TIME_WINDOWS,
    missing_run_credentials,
    print_config_summary,
    setup_logging,
    validate_config,
)
from nichetrack.errors import ConfigError
from nichetrack.models.subscription import Subscription
from nichetrack.pipeline import (
    IngestionPipeline,
    PipelineConfig,
    RunReport,
    build_context,
)
from nichetrack.storage import MockSupabaseStorage


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="nichetrack",
        description="Fetch, summarize, and store top subreddit posts for every subscription.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   Run over all active subscriptions
  %(prog)s --dry-run                         Fetch and summarize only, skip storage
  %(prog)s --limit-per-subreddit 3           Limit to 3 posts per subreddit
  %(prog)s --subreddits startups --user-id U Process one subreddit for user U
        """,
    )

    # Core options
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Fetch and summarize posts but skip storage (no writes)",
    )

    parser.add_argument(
        "--limit-per-subreddit", "-l",
        type=int,
        default=None,
        metavar="N",
        help=f"Maximum posts to fetch per subreddit (default: {POSTS_PER_SUBREDDIT})",
    )

    parser.add_argument(
        "--time-window", "-t",
        choices=list(VALID_TIME_WINDOWS),
        default=None,
        help=f"Reddit top-post window (default: {TOP_TIME_WINDOW})",
    )

    parser.add_argument(
        "--subreddits",
        nargs="+",
        metavar="SUBREDDIT",
        help="Process these subreddits instead of the stored subscriptions (requires --user-id)",
    )

    parser.add_argument(
        "--user-id",
        metavar="ID",
        help="Owner of the items stored for --subreddits",
    )

    parser.add_argument(
        "--no-summary",
        action="store_true",
        help=f"Skip comment summarization (otherwise {COMMENTS_PER_POST} comments per post)",
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        metavar="N",
        help=f"Subscriptions processed concurrently (default: {MAX_WORKERS})",
    )

    # Output options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed progress and debug info",
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only show errors and final summary",
    )

    # Info options
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


def show_config() -> None:
    """Display current configuration."""
    print("=" * 60)
    print("NicheTrack Configuration")
    print("=" * 60)
    print_config_summary()

    errors = validate_config()
    if errors:
        print("\nConfiguration warnings:")
        for error in errors:
            print(f"  ⚠️  {error}")
    else:
        print("\n✓ Configuration valid")
    print("=" * 60)


def print_report_summary(report: RunReport) -> None:
    """Print the run report summary."""
    print(report.to_summary())


def explicit_subscriptions(args) -> list:
    """Build subscriptions from --subreddits/--user-id, or None when not given."""
    if not args.subreddits:
        return None
    return [Subscription(user_id=args.user_id, subreddit=name) for name in args.subreddits]


def main(argv: list = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 = success, 1 = error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Handle --show-config
    if args.show_config:
        show_config()
        return 0

    if args.subreddits and not args.user_id:
        parser.error("--subreddits requires --user-id")

    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "ERROR"
    else:
        level = None
    setup_logging(level=level)

    # Print header (unless quiet)
    if not args.quiet:
        print("=" * 60)
        print("NicheTrack Ingestion")
        print("=" * 60)

        if args.dry_run:
            print("Mode: DRY RUN (no storage writes)")

        if args.verbose:
            print("\nConfiguration:")
            print_config_summary()
            print()

    config = PipelineConfig.from_args(args)

    try:
        subscriptions = explicit_subscriptions(args)
    except ValueError as e:
        print(f"\n❌ {e}")
        return 1

    # Show effective settings
    if not args.quiet:
        print("Settings:")
        print(f"  Limit per subreddit: {config.limit_per_subreddit}")
        print(f"  Time window: {config.time_window}")
        print(f"  Subreddits: {args.subreddits or 'stored subscriptions'}")
        print(f"  Summaries: {config.summarize}")
        print(f"  Workers: {config.max_workers}")
        print(f"  Dry run: {config.dry_run}")
        print()

    try:
        # A dry run over explicit subreddits never needs the datastore
        storage = MockSupabaseStorage() if config.dry_run and subscriptions else None

        missing = missing_run_credentials(summarize=config.summarize, needs_storage=storage is None)
        if missing:
            raise ConfigError(f"missing {', '.join(missing)}", missing=missing)

        context = build_context(storage=storage, summarize=config.summarize)

        pipeline = IngestionPipeline(context, config)
        report = pipeline.run(subscriptions)

        # Print summary
        if not args.quiet:
            print_report_summary(report)

        if report.failed:
            print(f"\n⚠️  {len(report.failed)} subreddit(s) failed: {', '.join(report.failed)}")
            return 1

        return 0

    except ConfigError as e:
        print(f"\n❌ Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Pipeline error: {e}")
        if args.verbose:
            logging.getLogger(__name__).exception("Pipeline error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
