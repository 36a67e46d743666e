"""Tests for the Codex dialect."""

from datetime import datetime, timezone

import pytest

from ticket_runner.agents import CodexDialect


@pytest.fixture
def dialect():
    """Create a Codex dialect."""
    return CodexDialect()


class TestBuildCommand:
    """Tests for CodexDialect.build_command."""

    def test_prompt_is_last_argument(self, dialect):
        """Test the prompt is the final argument and stdin is unused."""
        command = dialect.build_command("fix it", "codex")

        assert command.argv == [
            "codex",
            "exec",
            "--json",
            "--dangerously-bypass-approvals-and-sandbox",
            "fix it",
        ]
        assert command.stdin is None

    def test_model_before_prompt(self, dialect):
        """Test the model flag precedes the prompt."""
        command = dialect.build_command("fix it", "codex", model="o3")

        assert command.argv[-3:] == ["--model", "o3", "fix it"]


class TestIsUsageLimited:
    """Tests for CodexDialect.is_usage_limited."""

    def test_error_event_code_with_exit_zero(self, dialect):
        """Test a structured error event wins over a zero exit code."""
        output = '{"type":"error","code":"usage_limit_reached"}'

        assert dialect.is_usage_limited(output, 0) is True

    def test_error_event_message_any_spacing(self, dialect):
        """Test the message check ignores case and spacing."""
        output = '{"type": "error", "message": "You have hit your Usage   Limit"}'

        assert dialect.is_usage_limited(output, 0) is True

    @pytest.mark.parametrize("code", ["usage_limit_info", "usage_limit_exceeded_docs"])
    def test_other_usage_limit_codes_ignored(self, dialect, code):
        """Test only usage_limit_reached counts among underscore codes."""
        output = f'{{"type": "error", "code": "{code}"}}'

        assert dialect.is_usage_limited(output, 0) is False

    def test_error_event_with_resets_at(self, dialect):
        """Test a resets_at field on an error event is enough."""
        output = '{"type": "error", "message": "try later", "resets_at": 1767369600}'

        assert dialect.is_usage_limited(output, 0) is True

    def test_non_error_event_ignored(self, dialect):
        """Test usage vocabulary in other event types does not count."""
        output = '{"type": "item.completed", "text": "usage_limit_reached resets_at"}'

        assert dialect.is_usage_limited(output, 0) is False

    def test_descriptive_text_with_exit_zero(self, dialect):
        """Test field names in ordinary output are ignored on success."""
        output = "Documented the usage_limit_reached code and the resets_at field."

        assert dialect.is_usage_limited(output, 0) is False

    def test_raw_text_with_context_on_failure(self, dialect):
        """Test raw limit text with a reset marker on a failed run."""
        output = "usage limit reached, resets_in_seconds: 120, http 429"

        assert dialect.is_usage_limited(output, 1) is True

    def test_raw_usage_limit_reached_on_failure(self, dialect):
        """Test the usage_limit_reached code alone on a failed run."""
        assert dialect.is_usage_limited("error: usage_limit_reached", 1) is True

    def test_raw_usage_limit_without_context(self, dialect):
        """Test "usage limit" without a supporting marker is not a limit."""
        assert dialect.is_usage_limited("see the usage limit docs", 1) is False

    def test_unrelated_failure(self, dialect):
        """Test ordinary failures are not limits."""
        assert dialect.is_usage_limited("stream disconnected", 1) is False

    def test_invalid_json_lines_skipped(self, dialect):
        """Test malformed JSON lines do not break scanning."""
        output = '{not json\n{"type":"error","code":"usage_limit_reached"}'

        assert dialect.is_usage_limited(output, 0) is True


class TestEstimateWait:
    """Tests for CodexDialect.estimate_wait."""

    def test_uses_resets_in_seconds(self, dialect):
        """Test the countdown field drives the wait."""
        now = datetime(2026, 1, 2, 15, 0, tzinfo=timezone.utc)

        plan = dialect.estimate_wait('{"type":"error","resets_in_seconds":60}', now, 120)

        assert plan.wait_seconds == 180
