"""Tests for GitHub issue fetching."""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from ticket_runner.github_api import GitHubIssueTracker, IssueFetchError, _gh_call


def _gh_error(stderr):
    return subprocess.CalledProcessError(1, ["gh"], output="", stderr=stderr)


class TestGhCall:
    """Tests for _gh_call retry behaviour."""

    def test_success_first_try(self):
        """Test a successful call runs once with the configured binary."""
        with patch("ticket_runner.github_api.run", return_value=Mock(stdout="{}")) as mock_run:
            _gh_call(["issue", "view", "1"], gh_bin="/usr/bin/gh", cwd=Path("/repo"))

        mock_run.assert_called_once_with(
            ["/usr/bin/gh", "issue", "view", "1"], cwd=Path("/repo"), timeout=120
        )

    def test_not_found_fails_fast(self):
        """Test non-transient errors are not retried."""
        error = _gh_error("GraphQL: Could not resolve to an issue (404)")
        with patch("ticket_runner.github_api.run", side_effect=error) as mock_run:
            with patch("ticket_runner.github_api.time.sleep") as mock_sleep:
                with pytest.raises(subprocess.CalledProcessError):
                    _gh_call(["issue", "view", "999"])

        assert mock_run.call_count == 1
        mock_sleep.assert_not_called()

    def test_transient_error_retried(self):
        """Test a network error is retried with backoff."""
        with patch(
            "ticket_runner.github_api.run",
            side_effect=[_gh_error("connection reset by peer"), Mock(stdout="{}")],
        ) as mock_run:
            with patch("ticket_runner.github_api.time.sleep") as mock_sleep:
                result = _gh_call(["issue", "view", "1"])

        assert result.stdout == "{}"
        assert mock_run.call_count == 2
        mock_sleep.assert_called_once_with(1)

    def test_rate_limit_without_reset_backs_off(self):
        """Test a rate limit without reset time waits with backoff then retries."""
        with patch(
            "ticket_runner.github_api.run",
            side_effect=[_gh_error("HTTP 429: too many requests"), Mock(stdout="{}")],
        ):
            with patch("ticket_runner.github_api.time.sleep") as mock_sleep:
                _gh_call(["issue", "view", "1"])

        mock_sleep.assert_called_once_with(60)

    def test_rate_limit_with_reset_waits_until(self):
        """Test a rate limit with reset time waits until the reset epoch."""
        stderr = "API rate limit exceeded. Resets at 2024-01-15 12:30:45 +0000 UTC"
        with patch(
            "ticket_runner.github_api.run",
            side_effect=[_gh_error(stderr), Mock(stdout="{}")],
        ):
            with patch("ticket_runner.github_api.wait_until") as mock_wait:
                _gh_call(["issue", "view", "1"])

        mock_wait.assert_called_once()
        assert mock_wait.call_args[0][0] > 0

    def test_gives_up_after_max_retries(self):
        """Test transient failures are re-raised after the last attempt."""
        with patch("ticket_runner.github_api.run", side_effect=_gh_error("timeout")) as mock_run:
            with patch("ticket_runner.github_api.time.sleep"):
                with pytest.raises(subprocess.CalledProcessError):
                    _gh_call(["issue", "view", "1"], max_retries=3)

        assert mock_run.call_count == 3


class TestGitHubIssueTracker:
    """Tests for GitHubIssueTracker.fetch."""

    @pytest.fixture
    def tracker(self):
        """Create a tracker for a fake repository."""
        return GitHubIssueTracker("gh", Path("/repo"))

    def test_fetch_title_and_body(self, tracker):
        """Test title and body are parsed from gh JSON."""
        stdout = '{"title": "Fix login", "body": "Steps to reproduce"}'
        with patch("ticket_runner.github_api.run", return_value=Mock(stdout=stdout)) as mock_run:
            details = tracker.fetch("42")

        assert details.title == "Fix login"
        assert details.body == "Steps to reproduce"
        assert mock_run.call_args[0][0] == ["gh", "issue", "view", "42", "--json", "title,body"]

    def test_null_body(self, tracker):
        """Test a null body becomes empty text."""
        with patch(
            "ticket_runner.github_api.run", return_value=Mock(stdout='{"title": "T", "body": null}')
        ):
            assert tracker.fetch("1").body == ""

    def test_empty_title(self, tracker):
        """Test an empty title is an error."""
        with patch(
            "ticket_runner.github_api.run", return_value=Mock(stdout='{"title": "", "body": "x"}')
        ):
            with pytest.raises(IssueFetchError, match="empty issue title"):
                tracker.fetch("1")

    def test_invalid_json(self, tracker):
        """Test unparsable output is an error."""
        with patch("ticket_runner.github_api.run", return_value=Mock(stdout="not json")):
            with pytest.raises(IssueFetchError, match="parse gh output"):
                tracker.fetch("1")

    def test_gh_failure(self, tracker):
        """Test a gh failure is wrapped with its stderr."""
        with patch(
            "ticket_runner.github_api.run",
            side_effect=_gh_error("GraphQL: Could not resolve to an issue"),
        ):
            with pytest.raises(IssueFetchError, match="Could not resolve"):
                tracker.fetch("999")

    def test_gh_missing(self, tracker):
        """Test a missing gh executable is wrapped."""
        with patch("ticket_runner.github_api.run", side_effect=FileNotFoundError("gh")):
            with pytest.raises(IssueFetchError, match="not found"):
                tracker.fetch("1")
