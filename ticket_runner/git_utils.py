"""Git utility functions for repository inspection.

Provides helpers for:
- Repository root discovery
- Working tree and HEAD inspection
- Commit subject listing and commit-everything
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    """Raised when a git command fails."""

    pass


def run(
    cmd: list[str],
    cwd: Path | None = None,
    capture_output: bool = True,
    check: bool = True,
    timeout: int | None = None,
) -> subprocess.CompletedProcess:
    """Run a subprocess command with consistent error handling.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory (defaults to current)
        capture_output: Whether to capture stdout/stderr
        check: Whether to raise on non-zero exit
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess instance

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded

    """
    logger.debug(f"Running command: {' '.join(cmd)}")
    return subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=capture_output,
        text=True,
        check=check,
        timeout=timeout,
        stdin=subprocess.DEVNULL,
    )


def get_repo_root(start_path: Path | None = None) -> Path:
    """Find the git repository root directory.

    Args:
        start_path: Starting path for search (defaults to cwd)

    Returns:
        Path to repository root

    Raises:
        GitError: If not in a git repository

    """
    if start_path is None:
        start_path = Path.cwd()

    try:
        result = run(["git", "rev-parse", "--show-toplevel"], cwd=start_path)
    except FileNotFoundError as e:
        raise GitError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise GitError("Must run inside a git repository") from e
    return Path(result.stdout.strip())


class GitRepository:
    """Read and commit operations on one working tree."""

    def __init__(self, repo_root: Path) -> None:
        """Initialize the repository wrapper.

        Args:
            repo_root: Root of the working tree

        """
        self.repo_root = repo_root

    def _git(self, *args: str) -> str:
        """Run a git command in the repository and return trimmed stdout.

        Raises:
            GitError: If git cannot be started or exits non-zero

        """
        try:
            result = run(["git", *args], cwd=self.repo_root)
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            output = ((e.stdout or "") + (e.stderr or "")).strip()
            raise GitError(f"git {' '.join(args)}: {output or e}") from e
        return result.stdout.strip()

    def is_dirty(self) -> bool:
        """Return True if there are staged, unstaged or untracked changes."""
        return self._git("status", "--porcelain") != ""

    def head_id(self) -> str:
        """Return the commit id of HEAD."""
        return self._git("rev-parse", "HEAD")

    def head_subject(self) -> str:
        """Return the subject line of the HEAD commit."""
        return self._git("log", "-1", "--pretty=format:%s")

    def commit_subjects_between(self, start: str, end: str) -> list[str]:
        """Return subjects of commits reachable from end but not from start."""
        output = self._git("log", "--pretty=format:%s", f"{start}..{end}")
        return output.split("\n") if output else []

    def commit_all(self, message: str) -> None:
        """Stage every change and commit it, skipping hooks.

        Raises:
            GitError: If staging or committing fails

        """
        self._git("add", "-A")
        self._git("commit", "--no-verify", "-m", message)
        logger.debug(f"Committed: {message.splitlines()[0] if message else ''}")
