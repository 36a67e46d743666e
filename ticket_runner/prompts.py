"""Prompt and commit message templates.

Contains templates for:
- The default issue implementation prompt
- Work-in-progress commits made when a usage limit interrupts an agent
- Fallback commits made when an agent edits files without committing
"""

from __future__ import annotations

import re
from pathlib import Path

from .config import ConfigurationError
from .models import IssueDetails

DEFAULT_PROMPT_TEMPLATE = """You are implementing a fix or feature for GitHub issue #{{ISSUE_NUMBER}}.

## Issue: {{ISSUE_TITLE}}

{{ISSUE_BODY}}

## Instructions

1. Read and understand the issue above thoroughly.
2. Study existing code and related files before making changes.
3. Implement the fix or feature completely. No TODO placeholders.
4. Run the appropriate quality checks and tests for files you modified.
5. Fix any failing tests or lint issues.
6. Create a git commit with either:
   - "fix: <description> (closes #{{ISSUE_NUMBER}})" for bug fixes
   - "feat: <description> (closes #{{ISSUE_NUMBER}})" for features
7. Do not push to remote. Commit locally only.
"""

WIP_COMMIT_MESSAGE = """wip: partial work on #{issue_id} - {title} (session limit hit)

{trailer}"""

FALLBACK_COMMIT_MESSAGE = """feat: implement #{issue_id} - {title}

Closes #{issue_id}

{trailer}"""

PLACEHOLDER_PATTERN = re.compile(r"\{\{(ISSUE_NUMBER|ISSUE_TITLE|ISSUE_BODY)\}\}")


def load_prompt_template(path: Path | None) -> str:
    """Read a prompt template, or return the built-in one when path is None.

    Raises:
        ConfigurationError: If the template file cannot be read

    """
    if path is None:
        return DEFAULT_PROMPT_TEMPLATE
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(f"prompt template not found: {path}")
    except OSError as e:
        raise ConfigurationError(f"read prompt template: {e}") from e


def build_prompt(template: str, issue_id: str, details: IssueDetails) -> str:
    """Fill ``{{ISSUE_NUMBER}}``, ``{{ISSUE_TITLE}}`` and ``{{ISSUE_BODY}}`` in template.

    Substitution is a single pass, so placeholders that appear inside the
    issue title or body are left as written.
    """
    values = {
        "ISSUE_NUMBER": issue_id,
        "ISSUE_TITLE": details.title,
        "ISSUE_BODY": details.body,
    }
    return PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], template)


def _trailer(agent_display_name: str) -> str:
    return f"Generated-By: ticket-runner ({agent_display_name})"


def get_wip_commit_message(issue_id: str, title: str, agent_display_name: str) -> str:
    """Get the commit message for partial work saved at a usage limit."""
    return WIP_COMMIT_MESSAGE.format(
        issue_id=issue_id, title=title, trailer=_trailer(agent_display_name)
    )


def get_fallback_commit_message(issue_id: str, title: str, agent_display_name: str) -> str:
    """Get the commit message used when the runner commits on the agent's behalf.

    Args:
        issue_id: Issue number
        title: Issue title
        agent_display_name: Agent that produced the changes

    Returns:
        Commit message with a ``Closes #<id>`` line

    """
    return FALLBACK_COMMIT_MESSAGE.format(
        issue_id=issue_id, title=title, trailer=_trailer(agent_display_name)
    )
