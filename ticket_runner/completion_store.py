"""Durable record of completed issues.

The completion file holds one issue id per line. Marking an issue done
appends a line; resets rewrite the whole file atomically in sorted order.
An empty file means "nothing completed yet"; an unreadable file is an error.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


class CompletionStoreError(Exception):
    """Raised when the completion file cannot be read or written."""

    pass


def sort_issue_ids(ids: set[str] | list[str]) -> list[str]:
    """Sort ids numerically when all are integers, lexicographically otherwise."""
    values = list(ids)
    if all(value.isascii() and value.isdecimal() for value in values):
        return sorted(values, key=int)
    return sorted(values)


def write_secure(path: Path, content: str) -> None:
    """Write content to file using an atomic replace.

    Args:
        path: Destination file path
        content: Content to write

    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(temp_path, path)
        logger.debug(f"Wrote {len(content)} bytes to {path}")
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class CompletionStore:
    """Set of completed issue ids backed by a line-oriented file."""

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Completion file location

        """
        self.path = path
        self._done: set[str] = set()

    @classmethod
    def open(cls, path: Path) -> CompletionStore:
        """Create the completion file if needed and load it.

        Raises:
            CompletionStoreError: If the file cannot be created or read

        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
        except OSError as e:
            raise CompletionStoreError(f"create done file {path}: {e}") from e

        store = cls(path)
        store.load()
        return store

    def load(self) -> set[str]:
        """Reload completed ids from disk.

        Returns:
            Set of completed ids

        Raises:
            CompletionStoreError: If the file cannot be read

        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CompletionStoreError(f"read done file {self.path}: {e}") from e

        self._done = {line.strip() for line in text.split("\n") if line.strip()}
        logger.debug(f"Loaded {len(self._done)} completed issue(s) from {self.path}")
        return set(self._done)

    def contains(self, issue_id: str) -> bool:
        """Return True if issue_id is recorded as completed."""
        return issue_id in self._done

    def __contains__(self, issue_id: object) -> bool:
        return issue_id in self._done

    def __len__(self) -> int:
        return len(self._done)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())

    def ids(self) -> list[str]:
        """Return completed ids in sorted order."""
        return sort_issue_ids(self._done)

    def mark_done(self, issue_id: str) -> None:
        """Record issue_id as completed.

        Does no I/O when the id is already present.

        Raises:
            CompletionStoreError: If the append fails

        """
        if issue_id in self._done:
            return

        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(f"{issue_id}\n")
        except OSError as e:
            raise CompletionStoreError(f"write done file {self.path}: {e}") from e

        self._done.add(issue_id)
        logger.debug(f"Marked #{issue_id} completed")

    def reset_one(self, issue_id: str) -> bool:
        """Forget a single completion and rewrite the file.

        Returns:
            True if the id was recorded before the reset

        Raises:
            CompletionStoreError: If the rewrite fails

        """
        existed = issue_id in self._done
        self._done.discard(issue_id)
        self._rewrite()
        return existed

    def reset_all(self) -> None:
        """Forget every completion.

        Raises:
            CompletionStoreError: If the rewrite fails

        """
        self._done.clear()
        self._rewrite()

    def _rewrite(self) -> None:
        ids = self.ids()
        content = "".join(f"{issue_id}\n" for issue_id in ids)
        try:
            write_secure(self.path, content)
        except OSError as e:
            raise CompletionStoreError(f"rewrite done file {self.path}: {e}") from e
