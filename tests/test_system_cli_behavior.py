"""
CLI Behavior Tests

Verifies that command-line interface behaves correctly,
parses arguments properly, and produces expected outputs.

Test data and expected values are defined in tests/test_config.py.
Update that file to change test parameters without modifying this script.
"""

import pytest
from unittest.mock import patch, Mock

from main import create_parser, explicit_subscriptions, main
from nichetrack.config import missing_run_credentials
from nichetrack.errors import ConfigError
from nichetrack.pipeline import IngestionContext, PipelineConfig

# Import externalized test configuration
from tests.test_config import CONFIG, EXPECTED, MESSAGES

pytestmark = pytest.mark.cli_behavior


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep main() from reconfiguring the root logger during tests."""
    with patch("main.setup_logging"):
        yield


@pytest.fixture(autouse=True)
def configured_credentials():
    """Runs see every credential as set unless a test overrides the gate."""
    with patch("main.missing_run_credentials", return_value=[]):
        yield


class TestArgumentParsing:
    """Tests for correct argument parsing."""

    def test_dry_run_flag_parsed_correctly(self):
        """
        GIVEN: CLI invoked with --dry-run
        WHEN: Arguments are parsed
        THEN: dry_run is True
        """
        args = create_parser().parse_args(["--dry-run"])

        assert args.dry_run is True, "dry_run should be True"

    def test_dry_run_short_flag_parsed_correctly(self):
        args = create_parser().parse_args(["-n"])

        assert args.dry_run is True, "-n should set dry_run to True"

    def test_limit_per_subreddit_parsed_as_integer(self):
        args = create_parser().parse_args(["--limit-per-subreddit", "5"])

        assert args.limit_per_subreddit == 5
        assert isinstance(args.limit_per_subreddit, int)

    def test_subreddits_accept_multiple_names(self):
        args = create_parser().parse_args(["--subreddits", "startups", "r/SaaS", "--user-id", "u1"])

        assert args.subreddits == ["startups", "r/SaaS"]
        subscriptions = explicit_subscriptions(args)
        assert [s.subreddit for s in subscriptions] == ["startups", "SaaS"]
        assert {s.user_id for s in subscriptions} == {"u1"}

    def test_defaults_leave_config_values(self):
        args = create_parser().parse_args([])

        assert args.limit_per_subreddit is None
        assert args.time_window is None
        assert explicit_subscriptions(args) is None


class TestInvalidArguments:
    """Tests that invalid arguments are rejected by argparse."""

    @pytest.mark.parametrize("argv", [
        ["--limit-per-subreddit", "many"],
        ["--time-window", "fortnight"],
        ["--workers", "x"],
        ["--unknown-flag"],
    ])
    def test_invalid_argument_exits_with_usage_error(self, argv, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(argv)

        assert exc_info.value.code == EXPECTED["cli"]["exit_code_argparse_error"]

    def test_subreddits_without_user_id_is_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--subreddits", "startups"])

        assert exc_info.value.code == EXPECTED["cli"]["exit_code_argparse_error"]
        assert "--user-id" in capsys.readouterr().err

    def test_invalid_subreddit_name_returns_failure(self, capsys):
        exit_code = main(["--dry-run", "--subreddits", "not a name", "--user-id", "u1"])

        assert exit_code == EXPECTED["cli"]["exit_code_failure"]


class TestHelpText:
    """Tests that help output documents the flags."""

    def test_help_lists_flags(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--help"])

        assert exc_info.value.code == 0
        output = capsys.readouterr().out
        for flag in MESSAGES["cli_help"].values():
            assert flag in output

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--version"])

        assert "1.0.0" in capsys.readouterr().out


class TestConfigOverrides:
    """Tests that CLI flags reach PipelineConfig."""

    def test_flags_override_defaults(self):
        args = create_parser().parse_args(["-l", "3", "-t", "week", "--no-summary", "-w", "2", "-n"])

        config = PipelineConfig.from_args(args)

        assert config.limit_per_subreddit == 3
        assert config.time_window == "week"
        assert config.summarize is False
        assert config.max_workers == 2
        assert config.dry_run is True


class TestShowConfigBehavior:

    def test_show_config_does_not_run_pipeline(self, capsys):
        with patch("main.build_context") as mock_build:
            exit_code = main(["--show-config"])

        assert exit_code == EXPECTED["cli"]["exit_code_success"]
        mock_build.assert_not_called()
        assert "NicheTrack Configuration" in capsys.readouterr().out


class TestExitCodes:
    """Tests for correct exit codes."""

    def test_successful_run_returns_zero(self, ingestion_context, capsys):
        """
        GIVEN: Every requested subreddit succeeds
        WHEN: main() completes
        THEN: Returns exit code 0 and prints the summary
        """
        with patch("main.build_context", return_value=ingestion_context):
            exit_code = main(["--subreddits", "startups", "Entrepreneur", "--user-id", CONFIG["user_id"]])

        assert exit_code == EXPECTED["cli"]["exit_code_success"]
        output = capsys.readouterr().out
        assert MESSAGES["run_summary"]["header"] in output
        assert MESSAGES["run_summary"]["subscriptions_label"] in output
        assert MESSAGES["run_summary"]["duration_label"] in output

    def test_any_failed_subreddit_returns_nonzero(self, ingestion_context, capsys):
        with patch("main.build_context", return_value=ingestion_context):
            exit_code = main(["--subreddits", "startups", "SaaS", "--user-id", CONFIG["user_id"]])

        assert exit_code == EXPECTED["cli"]["exit_code_failure"]
        assert "SaaS" in capsys.readouterr().out

    def test_dry_run_with_explicit_subreddits_uses_memory_storage(self, fake_source, capsys):
        def build(storage=None, summarize=True):
            assert storage is not None
            assert storage.name == "mock"
            return IngestionContext(source=fake_source, storage=storage)

        with patch("main.build_context", side_effect=build):
            exit_code = main(["-n", "--no-summary", "--subreddits", "startups", "--user-id", "u1"])

        assert exit_code == 0

    def test_config_error_returns_failure(self, capsys):
        with patch("main.build_context", side_effect=ConfigError("Supabase is not configured: SUPABASE_URL")):
            exit_code = main([])

        assert exit_code == EXPECTED["cli"]["exit_code_failure"]
        assert "Configuration error" in capsys.readouterr().out

    def test_keyboard_interrupt_returns_130(self, capsys):
        pipeline = Mock()
        pipeline.run.side_effect = KeyboardInterrupt

        with patch("main.build_context"), patch("main.IngestionPipeline", return_value=pipeline):
            exit_code = main([])

        assert exit_code == 130

    def test_quiet_suppresses_summary(self, ingestion_context, capsys):
        with patch("main.build_context", return_value=ingestion_context):
            exit_code = main(["-q", "--subreddits", "startups", "--user-id", "u1"])

        assert exit_code == 0
        assert "INGESTION RUN SUMMARY" not in capsys.readouterr().out


class TestCredentialGate:
    """Tests that a run with missing credentials stops before any fetch."""

    def test_missing_openai_key_fails_before_fetch(self, fake_source, capsys):
        """
        GIVEN: Summaries are on and OPENAI_API_KEY is not set
        WHEN: main() runs a live pass
        THEN: Exit code 1, the missing name is printed, nothing is fetched
        """
        values = dict(CONFIG["credentials"], OPENAI_API_KEY="")
        gate = lambda summarize, needs_storage: missing_run_credentials(values, summarize, needs_storage)

        with patch("main.missing_run_credentials", side_effect=gate), \
                patch("main.build_context") as mock_build, \
                patch("nichetrack.pipeline.SUMMARIZE_POSTS", True):
            exit_code = main(["--subreddits", "startups", "--user-id", CONFIG["user_id"]])

        assert exit_code == EXPECTED["cli"]["exit_code_failure"]
        mock_build.assert_not_called()
        assert fake_source.fetch_calls == []
        output = capsys.readouterr().out
        assert "Configuration error" in output
        assert "OPENAI_API_KEY" in output

    def test_missing_supabase_fails_live_run(self, capsys):
        gate = lambda summarize, needs_storage: missing_run_credentials({}, summarize, needs_storage)

        with patch("main.missing_run_credentials", side_effect=gate), patch("main.build_context") as mock_build:
            exit_code = main(["--no-summary"])

        assert exit_code == EXPECTED["cli"]["exit_code_failure"]
        mock_build.assert_not_called()
        assert "SUPABASE_URL" in capsys.readouterr().out

    def test_dry_run_with_explicit_subreddits_needs_no_supabase(self, fake_source, capsys):
        gate = lambda summarize, needs_storage: missing_run_credentials({}, summarize, needs_storage)

        def build(storage=None, summarize=True):
            return IngestionContext(source=fake_source, storage=storage)

        with patch("main.missing_run_credentials", side_effect=gate), patch("main.build_context", side_effect=build):
            exit_code = main(["-n", "--no-summary", "--subreddits", "startups", "--user-id", "u1"])

        assert exit_code == EXPECTED["cli"]["exit_code_success"]
        assert fake_source.fetch_calls == ["startups"]
