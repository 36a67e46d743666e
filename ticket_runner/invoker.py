"""Agent process execution.

Runs an agent command in the repository root and streams its combined
stdout and stderr to the console and to a per-issue log file while
capturing it for classification.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import BinaryIO, TextIO

from .agents import AgentCommand
from .models import InvocationResult

logger = logging.getLogger(__name__)


class AgentInvocationError(RuntimeError):
    """Raised when the agent cannot be started or its log cannot be written."""

    pass


class AgentInvoker:
    """Launch agent processes and tee their output."""

    def __init__(self, cwd: Path, console: TextIO | None = None) -> None:
        """Initialize the invoker.

        Args:
            cwd: Working directory for the agent (the repository root)
            console: Stream that receives live output (defaults to stdout)

        """
        self.cwd = cwd
        self.console = console if console is not None else sys.stdout


    def run(self, command: AgentCommand, log_path: Path) -> InvocationResult:
        """Run the agent to completion.

        The log file is truncated first and receives the raw output bytes.
        The prompt, if any, is fed on stdin from a helper thread so a child
        that prints before reading all of its input cannot deadlock. A
        non-zero exit code is returned as data, not raised.

        Args:
            command: Command built by the agent dialect
            log_path: Per-issue log file

        Returns:
            InvocationResult with exit code and full combined output

        Raises:
            AgentInvocationError: If the process cannot start or the log
                cannot be created, written or flushed

        """
        executable = command.argv[0]
        try:
            log_file = open(log_path, "wb")
        except OSError as e:
            raise AgentInvocationError(f"create log file {log_path}: {e}") from e

        with log_file:
            try:
                proc = subprocess.Popen(
                    command.argv,
                    cwd=self.cwd,
                    stdin=subprocess.PIPE if command.stdin is not None else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                )
            except FileNotFoundError as e:
                raise AgentInvocationError(
                    f"start {executable}: not found. Is '{executable}' installed?"
                ) from e
            except OSError as e:
                raise AgentInvocationError(f"start {executable}: {e}") from e

            logger.debug(f"Started {executable} (pid {proc.pid}), logging to {log_path}")

            feeder: threading.Thread | None = None
            if command.stdin is not None:
                assert proc.stdin is not None
                feeder = threading.Thread(
                    target=_feed_stdin,
                    args=(proc.stdin, command.stdin.encode("utf-8"), executable),
                    daemon=True,
                )
                feeder.start()

            assert proc.stdout is not None
            captured: list[str] = []
            try:
                for raw in proc.stdout:
                    log_file.write(raw)
                    line = raw.decode("utf-8", errors="replace")
                    captured.append(line)
                    self.console.write(line)
                    self.console.flush()
                log_file.flush()
                os.fsync(log_file.fileno())
            except OSError as e:
                proc.kill()
                proc.wait()
                raise AgentInvocationError(f"write log file {log_path}: {e}") from e
            finally:
                proc.stdout.close()
                if feeder is not None:
                    feeder.join()

            exit_code = proc.wait()

        logger.debug(f"{executable} exited with code {exit_code}")
        return InvocationResult(exit_code=exit_code, output="".join(captured))


def _feed_stdin(stream: BinaryIO, data: bytes, executable: str) -> None:
    """Write data to the child's stdin and close it, tolerating an early exit."""
    try:
        stream.write(data)
    except BrokenPipeError:
        logger.debug(f"{executable} closed stdin before reading the full prompt")
    finally:
        try:
            stream.close()
        except BrokenPipeError:
            logger.debug(f"{executable} closed stdin before the prompt was flushed")
