"""Gemini CLI dialect.

With ``--output-format json`` the CLI prints a result object; quota errors set
``is_error`` and mention ``TerminalQuotaError`` with a relative reset such as
"resets after 2h30m".
"""

from __future__ import annotations

import re
from datetime import datetime

from ..constants import FALLBACK_WAIT_SECONDS
from ..models import WaitPlan
from ..rate_limit import iter_json_objects
from ..reset_time import estimate_from_reset_duration
from .base import AgentCommand, AgentDialect

SESSION_LIMIT_PATTERN = re.compile(
    r"(terminalquotaerror|quota\s+exceeded|rate\s+limit)",
    re.IGNORECASE | re.DOTALL,
)


class GeminiDialect(AgentDialect):
    """Dialect for the ``gemini`` CLI."""

    NAME = "gemini"
    DISPLAY_NAME = "Gemini"
    CLI_EXECUTABLE = "gemini"

    def build_command(self, prompt: str, binary: str, model: str | None = None) -> AgentCommand:
        """Build a ``gemini --yolo -p <prompt>`` command with JSON output."""
        argv = [binary, "--output-format", "json", "--yolo"]
        if model:
            argv.extend(["-m", model])
        argv.extend(["-p", prompt])
        return AgentCommand(argv=argv)

    def is_usage_limited(self, output: str, exit_code: int) -> bool:
        """Detect a quota error payload, or quota text on a failed run."""
        for payload in iter_json_objects(output):
            if payload.get("is_error") is not True:
                continue
            parts = [
                value for value in (payload.get("result"), payload.get("message"))
                if isinstance(value, str)
            ]
            if SESSION_LIMIT_PATTERN.search(" ".join(parts)):
                return True

        if exit_code == 0:
            return False
        return bool(SESSION_LIMIT_PATTERN.search(output))

    def estimate_wait(
        self,
        output: str,
        now: datetime,
        buffer_seconds: int,
        fallback_seconds: int = FALLBACK_WAIT_SECONDS,
    ) -> WaitPlan:
        """Wait for the relative duration named in the output."""
        return estimate_from_reset_duration(output, now, buffer_seconds, fallback_seconds)
