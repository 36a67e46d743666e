"""GitHub issue access using the gh CLI.

Provides:
- Rate-limited gh calls with retry on transient failures
- Issue title/body fetching
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
import time
from pathlib import Path

from .constants import DEFAULT_GH_BIN
from .git_utils import run
from .models import IssueDetails
from .rate_limit import detect_rate_limit, wait_until

logger = logging.getLogger(__name__)

NON_TRANSIENT_PATTERNS = [
    r"403|forbidden|permission denied",
    r"404|not found|could not resolve to an",
    r"400|bad request",
    r"401|unauthorized",
    r"invalid argument",
]


class IssueFetchError(RuntimeError):
    """Raised when issue metadata cannot be fetched."""

    pass


def _gh_call(
    args: list[str],
    gh_bin: str = DEFAULT_GH_BIN,
    cwd: Path | None = None,
    max_retries: int = 3,
) -> subprocess.CompletedProcess:
    """Call gh CLI with rate limit handling.

    Rate limits are waited out and retried; errors that cannot succeed on
    retry (not found, permission, bad request) are raised immediately.

    Args:
        args: Arguments to pass to gh
        gh_bin: gh executable
        cwd: Working directory (selects the repository)
        max_retries: Maximum attempts for transient failures

    Returns:
        CompletedProcess instance

    Raises:
        subprocess.CalledProcessError: If the command keeps failing
        FileNotFoundError: If gh is not installed

    """
    for attempt in range(max_retries):
        try:
            return run([gh_bin] + args, cwd=cwd, timeout=120)
        except subprocess.CalledProcessError as e:
            stderr = e.stderr if e.stderr else ""

            is_rate_limited, reset_epoch = detect_rate_limit(stderr)
            if is_rate_limited:
                if reset_epoch > 0:
                    wait_until(reset_epoch, "GitHub API rate limit")
                else:
                    wait_seconds = min(60 * (2**attempt), 300)
                    logger.warning(f"Rate limited but no reset time, waiting {wait_seconds}s")
                    time.sleep(wait_seconds)
                continue

            if any(re.search(pattern, stderr, re.IGNORECASE) for pattern in NON_TRANSIENT_PATTERNS):
                logger.debug(f"Non-transient gh error: {stderr[:200]}")
                raise

            if attempt == max_retries - 1:
                raise

            wait_seconds = 2**attempt
            logger.warning(f"gh call failed (attempt {attempt + 1}), retrying in {wait_seconds}s")
            time.sleep(wait_seconds)

    raise RuntimeError("gh call failed after all retries")


class GitHubIssueTracker:
    """Fetch issue metadata from the repository's GitHub remote."""

    def __init__(self, gh_bin: str = DEFAULT_GH_BIN, repo_root: Path | None = None) -> None:
        """Initialize the tracker.

        Args:
            gh_bin: gh executable
            repo_root: Repository whose remote identifies the GitHub project

        """
        self.gh_bin = gh_bin
        self.repo_root = repo_root

    def fetch(self, issue_id: str) -> IssueDetails:
        """Fetch the title and body of an issue.

        Args:
            issue_id: Issue number

        Returns:
            IssueDetails with a non-empty title

        Raises:
            IssueFetchError: If gh fails, its output is not valid JSON, or
                the issue has no title

        """
        args = ["issue", "view", issue_id, "--json", "title,body"]
        try:
            result = _gh_call(args, gh_bin=self.gh_bin, cwd=self.repo_root)
        except FileNotFoundError as e:
            raise IssueFetchError(f"{self.gh_bin} not found. Is the GitHub CLI installed?") from e
        except subprocess.CalledProcessError as e:
            output = (e.stderr or e.stdout or "").strip()
            raise IssueFetchError(f"{self.gh_bin} {' '.join(args)}: {output or e}") from e
        except subprocess.TimeoutExpired as e:
            raise IssueFetchError(f"{self.gh_bin} timed out fetching issue #{issue_id}") from e

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise IssueFetchError(f"parse gh output: {e}") from e
        if not isinstance(data, dict):
            raise IssueFetchError("parse gh output: expected a JSON object")

        title = data.get("title") or ""
        if not title:
            raise IssueFetchError("empty issue title from gh")
        return IssueDetails(title=title, body=data.get("body") or "")
