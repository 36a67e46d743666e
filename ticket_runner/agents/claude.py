"""Claude Code CLI dialect.

The prompt goes on stdin and output is plain text. A limit is reported as a
sentence such as "You've hit your usage limit · resets 4pm (UTC)".
"""

from __future__ import annotations

import re
from datetime import datetime

from ..constants import FALLBACK_WAIT_SECONDS
from ..models import WaitPlan
from ..reset_time import estimate_from_clock_time
from .base import AgentCommand, AgentDialect

SESSION_LIMIT_PATTERN = re.compile(
    r"(out of\s+(extra\s+)?usage|hit your\s+(usage\s+)?limit|exceeded.*(usage|limit)"
    r"|usage\s+limit|rate\s+limit).*resets?",
    re.IGNORECASE | re.DOTALL,
)


class ClaudeDialect(AgentDialect):
    """Dialect for the ``claude`` CLI."""

    NAME = "claude"
    DISPLAY_NAME = "Claude"
    CLI_EXECUTABLE = "claude"

    def build_command(self, prompt: str, binary: str, model: str | None = None) -> AgentCommand:
        """Build a non-interactive ``claude --print`` command reading the prompt from stdin."""
        argv = [
            binary,
            "--print",
            "--verbose",
            "--output-format",
            "text",
            "--dangerously-skip-permissions",
        ]
        if model:
            argv.extend(["--model", model])
        return AgentCommand(argv=argv, stdin=prompt)

    def is_usage_limited(self, output: str, exit_code: int) -> bool:
        """Match the limit sentence anywhere in the output; the exit code is ignored."""
        return bool(SESSION_LIMIT_PATTERN.search(output))

    def estimate_wait(
        self,
        output: str,
        now: datetime,
        buffer_seconds: int,
        fallback_seconds: int = FALLBACK_WAIT_SECONDS,
    ) -> WaitPlan:
        """Wait until the wall-clock reset time named in the output."""
        return estimate_from_clock_time(output, now, buffer_seconds, fallback_seconds)
