"""Tests for the Cursor Agent dialect."""

from datetime import datetime, timezone

from ticket_runner.agents import CursorAgentDialect


class TestCursorAgentDialect:
    """Tests for CursorAgentDialect."""

    def test_build_command(self):
        """Test the prompt is the final argument."""
        command = CursorAgentDialect().build_command("fix it", "cursor-agent", model="gpt-5")

        assert command.argv == [
            "cursor-agent",
            "--print",
            "--output-format",
            "json",
            "--force",
            "--model",
            "gpt-5",
            "fix it",
        ]
        assert command.stdin is None

    def test_never_limited(self):
        """Test limit vocabulary never triggers a retry."""
        output = "You hit your usage limit, resets at 5pm. quota exceeded. rate limit"

        assert CursorAgentDialect().is_usage_limited(output, 1) is False

    def test_estimate_wait_is_fallback(self):
        """Test the default estimator returns the fallback plan."""
        now = datetime(2026, 1, 2, 15, 0, tzinfo=timezone.utc)

        plan = CursorAgentDialect().estimate_wait("resets at 16:00", now, 120)

        assert plan.wait_seconds == 1800
