"""Base class for coding-agent CLI dialects.

A dialect knows three things about one agent CLI: how to pass it a prompt,
how it reports a provider usage limit, and how it says when that limit
resets.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ..constants import FALLBACK_WAIT_SECONDS
from ..models import WaitPlan
from ..reset_time import fallback_plan


@dataclass(frozen=True)
class AgentCommand:
    """Process arguments for one agent invocation.

    Attributes:
        argv: Executable followed by its arguments
        stdin: Text written to the process stdin, or None for no input

    """

    argv: list[str]
    stdin: str | None = None


class AgentDialect(ABC):
    """Behaviour specific to one coding-agent CLI.

    Subclasses must define:
    - NAME: Identifier used on the command line and in config
    - DISPLAY_NAME: Human readable name for logs and commit trailers
    - CLI_EXECUTABLE: Default executable name
    - build_command(): Command construction
    - is_usage_limited(): Usage limit detection

    Subclasses override estimate_wait() when the agent reports a reset time.
    """

    NAME: str
    DISPLAY_NAME: str
    CLI_EXECUTABLE: str

    @abstractmethod
    def build_command(self, prompt: str, binary: str, model: str | None = None) -> AgentCommand:
        """Build the command that runs the agent on prompt.

        Args:
            prompt: Full prompt text
            binary: Executable to run
            model: Optional model override

        Returns:
            AgentCommand ready for the invoker

        """

    @abstractmethod
    def is_usage_limited(self, output: str, exit_code: int) -> bool:
        """Return True if the agent stopped because of a provider usage limit.

        Args:
            output: Combined stdout and stderr of the invocation
            exit_code: Process exit code

        """

    def estimate_wait(
        self,
        output: str,
        now: datetime,
        buffer_seconds: int,
        fallback_seconds: int = FALLBACK_WAIT_SECONDS,
    ) -> WaitPlan:
        """Compute how long to wait before retrying after a usage limit."""
        return fallback_plan(now, fallback_seconds)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
