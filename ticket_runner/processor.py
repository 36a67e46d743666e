"""State machine that processes one issue attempt.

State flow for a single attempt:
  FETCH_METADATA      (gh issue view)
    -> PREFLIGHT      (dry-run / completed skip, clean tree, record HEAD)
    -> INVOKE         (build prompt, run the agent)
    -> CLASSIFY       (usage limit? exit code?)
    -> WAIT_FOR_RESET (commit partial work, sleep until the limit resets)
    -> FINALIZE       (compare HEAD, fallback commit, mark complete)
  Terminal: SUCCESS | FAILED | RETRY

RETRY is terminal for one attempt only; the run driver calls ``process``
again for the same issue.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Protocol

from .agents import AgentCommand, AgentDialect
from .completion_store import CompletionStore, CompletionStoreError
from .config import RunnerConfig
from .git_utils import GitError, GitRepository
from .github_api import IssueFetchError
from .invoker import AgentInvocationError
from .models import (
    CommitAuthor,
    FailureKind,
    InvocationResult,
    IssueDetails,
    IssueOutcome,
    IssueResult,
    WaitPlan,
)
from .prompts import build_prompt, get_fallback_commit_message, get_wip_commit_message
from .rate_limit import wait_for_reset

logger = logging.getLogger(__name__)

RULE = "-" * 60


class IssueTracker(Protocol):
    """Source of issue metadata."""

    def fetch(self, issue_id: str) -> IssueDetails: ...


class Invoker(Protocol):
    """Runs agent commands."""

    def run(self, command: AgentCommand, log_path: Path) -> InvocationResult: ...


class ProcessingState(str, Enum):
    """States of one issue attempt."""

    FETCH_METADATA = "fetch_metadata"
    PREFLIGHT = "preflight"
    INVOKE = "invoke"
    CLASSIFY = "classify"
    WAIT_FOR_RESET = "wait_for_reset"
    FINALIZE = "finalize"
    SUCCESS = "success"
    FAILED = "failed"
    RETRY = "retry"


TERMINAL_STATES: frozenset[ProcessingState] = frozenset(
    [ProcessingState.SUCCESS, ProcessingState.FAILED, ProcessingState.RETRY]
)

ALLOWED_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.FETCH_METADATA: frozenset(
        [ProcessingState.PREFLIGHT, ProcessingState.FAILED]
    ),
    ProcessingState.PREFLIGHT: frozenset(
        [ProcessingState.INVOKE, ProcessingState.SUCCESS, ProcessingState.FAILED]
    ),
    ProcessingState.INVOKE: frozenset([ProcessingState.CLASSIFY, ProcessingState.FAILED]),
    ProcessingState.CLASSIFY: frozenset(
        [ProcessingState.WAIT_FOR_RESET, ProcessingState.FINALIZE, ProcessingState.FAILED]
    ),
    ProcessingState.WAIT_FOR_RESET: frozenset([ProcessingState.RETRY]),
    ProcessingState.FINALIZE: frozenset([ProcessingState.SUCCESS, ProcessingState.FAILED]),
}

_RESULT_BY_STATE = {
    ProcessingState.SUCCESS: IssueResult.SUCCESS,
    ProcessingState.FAILED: IssueResult.FAILED,
    ProcessingState.RETRY: IssueResult.RETRY,
}


def is_terminal_state(state: ProcessingState) -> bool:
    """Return True if this state ends the attempt."""
    return state in TERMINAL_STATES


def validate_transition(from_state: ProcessingState, to_state: ProcessingState) -> bool:
    """Return True if moving from from_state to to_state is legal."""
    return to_state in ALLOWED_TRANSITIONS.get(from_state, frozenset())


def issue_mentioned_in_subjects(subjects: list[str], issue_id: str) -> bool:
    """Return True if any subject mentions ``#<issue_id>`` as a whole number.

    Only the right-hand side is guarded: ``#42`` does not match ``#420``,
    while ``1#42`` still matches.
    """
    if not issue_id:
        return False
    pattern = re.compile(rf"#{re.escape(issue_id)}(?!\d)")
    return any(pattern.search(subject) for subject in subjects)


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


@dataclass
class InvocationRecord:
    """Working state for one attempt at an issue."""

    issue_id: str
    position: int
    total: int
    details: IssueDetails | None = None
    start_head: str = ""
    end_head: str = ""
    log_path: Path | None = None
    invocation: InvocationResult | None = None
    wait_plan: WaitPlan | None = None
    failure: FailureKind | None = None
    reason: str = ""
    committed_by: CommitAuthor | None = None
    skipped: bool = False
    warnings: list[str] = field(default_factory=list)

    def fail(self, kind: FailureKind, reason: str) -> ProcessingState:
        """Record a failure and return the FAILED state."""
        self.failure = kind
        self.reason = reason
        logger.error(f"FAILED: {reason}")
        return ProcessingState.FAILED

    def to_outcome(self, state: ProcessingState) -> IssueOutcome:
        return IssueOutcome(
            issue_id=self.issue_id,
            result=_RESULT_BY_STATE[state],
            failure=self.failure,
            reason=self.reason,
            log_path=self.log_path,
            committed_by=self.committed_by,
            skipped=self.skipped,
            warnings=list(self.warnings),
            wait_plan=self.wait_plan,
        )


class IssueProcessor:
    """Drive one issue through fetch, agent invocation and bookkeeping.

    Collaborators are passed in so tests can replace the tracker, the
    repository, the invoker, the clock and the sleep function.
    """

    def __init__(
        self,
        config: RunnerConfig,
        agent: AgentDialect,
        store: CompletionStore,
        repo: GitRepository,
        tracker: IssueTracker,
        invoker: Invoker,
        prompt_template: str,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the processor.

        Args:
            config: Run configuration
            agent: Dialect of the agent being driven
            store: Completion store shared with the run driver
            repo: Repository the agent works in
            tracker: Issue metadata source
            invoker: Agent process runner
            prompt_template: Template text with ``{{ISSUE_*}}`` placeholders
            clock: Returns the current UTC time
            sleep: Blocks for a number of seconds

        """
        self.config = config
        self.agent = agent
        self.store = store
        self.repo = repo
        self.tracker = tracker
        self.invoker = invoker
        self.prompt_template = prompt_template
        self.clock = clock
        self.sleep = sleep

        self._handlers: dict[ProcessingState, Callable[[InvocationRecord], ProcessingState]] = {
            ProcessingState.FETCH_METADATA: self._fetch_metadata,
            ProcessingState.PREFLIGHT: self._preflight,
            ProcessingState.INVOKE: self._invoke,
            ProcessingState.CLASSIFY: self._classify,
            ProcessingState.WAIT_FOR_RESET: self._wait_for_reset,
            ProcessingState.FINALIZE: self._finalize,
        }

    @property
    def agent_name(self) -> str:
        return self.agent.DISPLAY_NAME

    def process(self, issue_id: str, position: int = 1, total: int = 1) -> IssueOutcome:
        """Run one attempt at an issue.

        Args:
            issue_id: Validated numeric issue id
            position: 1-based position of the issue in the queue
            total: Queue length

        Returns:
            IssueOutcome whose result is SUCCESS, FAILED or RETRY

        """
        record = InvocationRecord(issue_id=issue_id, position=position, total=total)
        state = ProcessingState.FETCH_METADATA

        while not is_terminal_state(state):
            next_state = self._handlers[state](record)
            if not validate_transition(state, next_state):
                raise RuntimeError(f"Invalid transition {state.value} -> {next_state.value}")
            logger.debug(f"#{issue_id}: {state.value} -> {next_state.value}")
            state = next_state

        return record.to_outcome(state)

    def _fetch_metadata(self, record: InvocationRecord) -> ProcessingState:
        try:
            record.details = self.tracker.fetch(record.issue_id)
        except IssueFetchError as e:
            return record.fail(
                FailureKind.ISSUE_FETCH, f"unable to fetch issue #{record.issue_id}: {e}"
            )

        logger.info(RULE, extra={"color": "blue"})
        logger.info(
            f"[{record.position}/{record.total}] Issue #{record.issue_id}: {record.details.title}",
            extra={"color": "blue"},
        )
        logger.info(RULE, extra={"color": "blue"})
        return ProcessingState.PREFLIGHT

    def _preflight(self, record: InvocationRecord) -> ProcessingState:
        issue_id = record.issue_id
        completed = self.store.contains(issue_id)

        if self.config.dry_run:
            record.skipped = True
            if completed:
                logger.info(
                    f"[DRY RUN] Already completed #{issue_id}, would skip",
                    extra={"color": "green"},
                )
            else:
                logger.info(
                    f"[DRY RUN] Would process issue #{issue_id}", extra={"color": "yellow"}
                )
            return ProcessingState.SUCCESS

        if completed and not self.config.force:
            record.skipped = True
            logger.info(
                f"Already completed #{issue_id}, skipping (use --force to reprocess)",
                extra={"color": "green"},
            )
            return ProcessingState.SUCCESS

        try:
            dirty = self.repo.is_dirty()
        except GitError as e:
            return record.fail(FailureKind.GIT_STATE, f"cannot determine git status: {e}")
        if dirty:
            return record.fail(
                FailureKind.GIT_STATE,
                "uncommitted changes detected. Commit or stash before running.",
            )

        try:
            record.start_head = self.repo.head_id()
        except GitError as e:
            return record.fail(FailureKind.GIT_STATE, f"cannot determine pre-run git HEAD: {e}")

        return ProcessingState.INVOKE

    def _invoke(self, record: InvocationRecord) -> ProcessingState:
        assert record.details is not None
        prompt = build_prompt(self.prompt_template, record.issue_id, record.details)
        binary = self.config.binary_for(self.agent.NAME, self.agent.CLI_EXECUTABLE)
        command = self.agent.build_command(prompt, binary, self.config.model)
        record.log_path = self.config.log_dir / f"{record.issue_id}.log"

        logger.info(
            f"Starting {self.agent_name} for issue #{record.issue_id}...",
            extra={"color": "yellow"},
        )
        logger.info(f"Log: {record.log_path}")

        try:
            record.invocation = self.invoker.run(command, record.log_path)
        except AgentInvocationError as e:
            return record.fail(
                FailureKind.INVOCATION,
                f"{self.agent.NAME} invocation failed for #{record.issue_id}: {e}",
            )
        return ProcessingState.CLASSIFY

    def _classify(self, record: InvocationRecord) -> ProcessingState:
        assert record.invocation is not None and record.details is not None
        output = record.invocation.output
        exit_code = record.invocation.exit_code

        if self.agent.is_usage_limited(output, exit_code):
            try:
                dirty = self.repo.is_dirty()
            except GitError as e:
                return record.fail(
                    FailureKind.GIT_STATE, f"cannot determine git status after limit: {e}"
                )
            if dirty:
                logger.warning("Session limit hit mid-work. Committing partial progress...")
                message = get_wip_commit_message(
                    record.issue_id, record.details.title, self.agent_name
                )
                try:
                    self.repo.commit_all(message)
                except GitError as e:
                    return record.fail(
                        FailureKind.GIT_STATE, f"could not commit partial progress: {e}"
                    )

            record.wait_plan = self.agent.estimate_wait(
                output,
                self.clock(),
                self.config.wait_buffer_seconds,
                self.config.fallback_wait_seconds,
            )
            return ProcessingState.WAIT_FOR_RESET

        if exit_code != 0:
            record.fail(
                FailureKind.AGENT_ERROR,
                f"{self.agent.NAME} exited with code {exit_code} for issue #{record.issue_id}",
            )
            logger.error(f"Check log: {record.log_path}")
            return ProcessingState.FAILED

        return ProcessingState.FINALIZE

    def _wait_for_reset(self, record: InvocationRecord) -> ProcessingState:
        assert record.wait_plan is not None
        wait_for_reset(
            record.wait_plan,
            sleep=self.sleep,
            interval=self.config.countdown_interval_seconds,
        )
        return ProcessingState.RETRY

    def _finalize(self, record: InvocationRecord) -> ProcessingState:
        assert record.details is not None
        issue_id = record.issue_id

        try:
            record.end_head = self.repo.head_id()
        except GitError as e:
            return record.fail(FailureKind.GIT_STATE, f"cannot determine post-run git HEAD: {e}")

        if record.end_head != record.start_head:
            return self._finish_agent_commit(record)

        try:
            dirty = self.repo.is_dirty()
        except GitError as e:
            return record.fail(FailureKind.GIT_STATE, f"cannot determine post-run git status: {e}")

        if not dirty:
            record.fail(FailureKind.NO_CHANGES, f"no changes produced for issue #{issue_id}")
            logger.error(
                f"{self.agent_name} ran but made no modifications. Check log: {record.log_path}"
            )
            return ProcessingState.FAILED

        logger.warning(
            f"{self.agent_name} did not commit. Uncommitted changes found, committing now."
        )
        message = get_fallback_commit_message(issue_id, record.details.title, self.agent_name)
        try:
            self.repo.commit_all(message)
        except GitError as e:
            return record.fail(FailureKind.GIT_STATE, f"fallback commit failed for #{issue_id}: {e}")

        if not self._mark_completed(record):
            return ProcessingState.FAILED
        record.committed_by = CommitAuthor.RUNNER
        logger.info(f"SUCCESS: Issue #{issue_id} committed by runner", extra={"color": "green"})
        return ProcessingState.SUCCESS

    def _finish_agent_commit(self, record: InvocationRecord) -> ProcessingState:
        issue_id = record.issue_id

        try:
            subjects = self.repo.commit_subjects_between(record.start_head, record.end_head)
        except GitError as e:
            logger.debug(f"Could not list new commit subjects: {e}")
            subjects = []

        try:
            head_subject = self.repo.head_subject()
        except GitError:
            head_subject = ""

        if not self._mark_completed(record):
            return ProcessingState.FAILED
        record.committed_by = CommitAuthor.AGENT

        logger.info(
            f"SUCCESS: Issue #{issue_id} committed by {self.agent_name}",
            extra={"color": "green"},
        )
        if head_subject.strip():
            logger.info(f"Commit: {head_subject}", extra={"color": "green"})

        if not issue_mentioned_in_subjects(subjects, issue_id):
            warning = f"new commit(s) do not mention #{issue_id} in subject lines."
            record.warnings.append(warning)
            logger.warning(f"WARNING: {warning}")
        return ProcessingState.SUCCESS

    def _mark_completed(self, record: InvocationRecord) -> bool:
        try:
            self.store.mark_done(record.issue_id)
        except CompletionStoreError as e:
            record.fail(
                FailureKind.COMPLETION_STORE,
                f"could not mark #{record.issue_id} completed: {e}",
            )
            return False
        return True
