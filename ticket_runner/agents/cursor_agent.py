"""Cursor Agent CLI dialect."""

from __future__ import annotations

from .base import AgentCommand, AgentDialect


class CursorAgentDialect(AgentDialect):
    """Dialect for the ``cursor-agent`` CLI.

    Cursor does not report usage limits in a recognisable form, so every
    non-zero exit is treated as an ordinary failure.
    """

    NAME = "cursor-agent"
    DISPLAY_NAME = "Cursor Agent"
    CLI_EXECUTABLE = "cursor-agent"

    def build_command(self, prompt: str, binary: str, model: str | None = None) -> AgentCommand:
        argv = [binary, "--print", "--output-format", "json", "--force"]
        if model:
            argv.extend(["--model", model])
        argv.append(prompt)
        return AgentCommand(argv=argv)

    def is_usage_limited(self, output: str, exit_code: int) -> bool:
        return False
