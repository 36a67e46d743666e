"""OpenAI Codex CLI dialect.

``codex exec --json`` emits one JSON event per line. Usage limits arrive as
an ``{"type": "error", ...}`` event carrying a ``usage_limit_reached`` code
and ``resets_at`` / ``resets_in_seconds`` fields.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from ..constants import FALLBACK_WAIT_SECONDS
from ..models import WaitPlan
from ..rate_limit import iter_json_objects
from ..reset_time import estimate_from_reset_timestamp
from .base import AgentCommand, AgentDialect

# Raw-text markers that confirm a "usage limit" mention on a failed run
LIMIT_CONTEXT_MARKERS = (
    "resets_at",
    "resets_in_seconds",
    "http 429",
    "too many requests",
    "hit your usage limit",
)

# Code or message text of a usage-limit error event
USAGE_LIMIT_PATTERN = re.compile(r"usage_limit_reached|usage\s+limit", re.IGNORECASE)


def _is_limit_event(payload: dict[str, Any]) -> bool:
    if payload.get("type") != "error":
        return False
    for key in ("code", "message"):
        value = payload.get(key)
        if isinstance(value, str) and USAGE_LIMIT_PATTERN.search(value):
            return True
    return "resets_at" in payload


class CodexDialect(AgentDialect):
    """Dialect for the ``codex`` CLI."""

    NAME = "codex"
    DISPLAY_NAME = "Codex"
    CLI_EXECUTABLE = "codex"

    def build_command(self, prompt: str, binary: str, model: str | None = None) -> AgentCommand:
        """Build a ``codex exec --json`` command with the prompt as the final argument."""
        argv = [binary, "exec", "--json", "--dangerously-bypass-approvals-and-sandbox"]
        if model:
            argv.extend(["--model", model])
        argv.append(prompt)
        return AgentCommand(argv=argv)

    def is_usage_limited(self, output: str, exit_code: int) -> bool:
        """Detect a usage limit error event, or limit text on a failed run.

        An error event counts regardless of the exit code. Without one, a
        successful exit is never a limit, and a failed exit needs
        ``usage_limit_reached`` or "usage limit" next to a reset or HTTP 429
        marker.
        """
        if any(_is_limit_event(payload) for payload in iter_json_objects(output)):
            return True
        if exit_code == 0:
            return False

        lower = output.lower()
        if "usage_limit_reached" in lower:
            return True
        if "usage limit" in lower:
            return any(marker in lower for marker in LIMIT_CONTEXT_MARKERS)
        return False

    def estimate_wait(
        self,
        output: str,
        now: datetime,
        buffer_seconds: int,
        fallback_seconds: int = FALLBACK_WAIT_SECONDS,
    ) -> WaitPlan:
        """Wait until ``resets_at``, or for ``resets_in_seconds``."""
        return estimate_from_reset_timestamp(output, now, buffer_seconds, fallback_seconds)
