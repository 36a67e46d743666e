"""Issue queue loading.

Issues come from exactly one source, in priority order: a single ``--issue``
id, a comma-separated ``--issues`` list, or the issues file. Ids are
validated and de-duplicated while keeping first-seen order.
"""

from __future__ import annotations

import re
from pathlib import Path

from .config import ConfigurationError

ISSUE_ID_PATTERN = re.compile(r"^\d+$")


def is_valid_issue_id(value: str) -> bool:
    """Return True if value is a bare decimal issue number."""
    return bool(ISSUE_ID_PATTERN.match(value))


def parse_issue_csv(value: str) -> list[str]:
    """Parse a comma-separated issue list.

    Args:
        value: Text such as ``"12, 15,12"``

    Returns:
        Unique issue ids in first-seen order

    Raises:
        ConfigurationError: If an entry is not numeric or no ids are present

    """
    issues: list[str] = []
    seen: set[str] = set()
    for part in value.split(","):
        issue_id = part.strip()
        if not issue_id:
            continue
        if not is_valid_issue_id(issue_id):
            raise ConfigurationError(f'invalid issue in --issues: "{issue_id}"')
        if issue_id in seen:
            continue
        issues.append(issue_id)
        seen.add(issue_id)

    if not issues:
        raise ConfigurationError("no issues found in --issues")
    return issues


def read_issues_file(path: Path) -> list[str]:
    """Read issue ids from a queue file.

    Blank lines and lines starting with ``#`` are ignored. Only the first
    whitespace-separated field of a line is used, so trailing notes such as
    ``42  fix login`` are allowed.

    Args:
        path: Issues file

    Returns:
        Unique issue ids in file order

    Raises:
        ConfigurationError: If the file is missing, unreadable, holds an
            invalid id, or holds no ids at all

    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(f"issue file not found: {path} (or pass --issues)")
    except OSError as e:
        raise ConfigurationError(f"read issues file: {e}") from e

    issues: list[str] = []
    seen: set[str] = set()
    for lineno, raw in enumerate(text.split("\n"), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        issue_id = line.split()[0]
        if not is_valid_issue_id(issue_id):
            raise ConfigurationError(f'invalid issue id at {path}:{lineno}: "{issue_id}"')
        if issue_id in seen:
            continue
        issues.append(issue_id)
        seen.add(issue_id)

    if not issues:
        raise ConfigurationError(f"no issue ids found in {path}")
    return issues


def load_issues(
    issues_file: Path,
    single_issue: str | None = None,
    issues_csv: str | None = None,
) -> list[str]:
    """Resolve the issue queue for a run.

    Args:
        issues_file: Fallback queue file
        single_issue: One issue id, takes precedence over everything else
        issues_csv: Comma-separated ids, takes precedence over the file

    Returns:
        Issue ids to process in order

    Raises:
        ConfigurationError: If the selected source is invalid

    """
    if single_issue:
        if not is_valid_issue_id(single_issue):
            raise ConfigurationError(f'invalid issue: "{single_issue}"')
        return [single_issue]
    if issues_csv:
        return parse_issue_csv(issues_csv)
    return read_issues_file(issues_file)
