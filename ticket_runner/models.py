"""Pydantic models for the ticket runner.

Defines data structures for:
- Issue metadata fetched from the tracker
- Agent invocation results and wait plans
- Per-issue outcomes and run summaries
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class IssueResult(str, Enum):
    """Terminal result of processing one issue."""

    SUCCESS = "success"
    FAILED = "failed"
    RETRY = "retry"


class FailureKind(str, Enum):
    """Why an issue failed."""

    ISSUE_FETCH = "issue_fetch"
    GIT_STATE = "git_state"
    INVOCATION = "invocation"
    AGENT_ERROR = "agent_error"
    NO_CHANGES = "no_changes"
    COMPLETION_STORE = "completion_store"


class CommitAuthor(str, Enum):
    """Who produced the commit for a successful issue."""

    AGENT = "agent"
    RUNNER = "runner"


class IssueDetails(BaseModel):
    """Title and body of a GitHub issue."""

    title: str
    body: str = ""


class WaitPlan(BaseModel):
    """How long to wait before retrying after a usage limit."""

    model_config = ConfigDict(frozen=True)

    wait_seconds: int = Field(ge=0)
    resume_at: datetime


class InvocationResult(BaseModel):
    """Exit code and combined output of one agent invocation."""

    exit_code: int
    output: str = ""


class IssueOutcome(BaseModel):
    """Result of one attempt at an issue."""

    issue_id: str
    result: IssueResult
    failure: FailureKind | None = None
    reason: str = ""
    log_path: Path | None = None
    committed_by: CommitAuthor | None = None
    skipped: bool = False
    warnings: list[str] = Field(default_factory=list)
    wait_plan: WaitPlan | None = None


class RunSummary(BaseModel):
    """Aggregate counts for a full run."""

    succeeded: int = 0
    failed: int = 0
    retries: int = 0
    outcomes: list[IssueOutcome] = Field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """Process exit code for this run (1 if any issue failed)."""
        return 1 if self.failed else 0
