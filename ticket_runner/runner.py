"""Run driver for a queue of issues.

Provides:
- Wiring of the real collaborators from a RunnerConfig
- The sequential run loop (retry on usage limits, stop on first failure)
- Status listing and completion resets
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from .agents import AgentDialect, get_agent
from .completion_store import CompletionStore, CompletionStoreError
from .config import ConfigurationError, RunnerConfig
from .git_utils import GitRepository
from .github_api import GitHubIssueTracker
from .invoker import AgentInvoker
from .models import IssueResult, RunSummary
from .processor import IssueProcessor, utc_now
from .prompts import load_prompt_template

logger = logging.getLogger(__name__)

BANNER_RULE = "=" * 60


class TicketRunner:
    """Process issues one at a time until the queue is done or one fails."""

    def __init__(
        self,
        config: RunnerConfig,
        agent: AgentDialect,
        store: CompletionStore,
        processor: IssueProcessor,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Run configuration
            agent: Dialect of the agent being driven
            store: Completion store
            processor: Processor for single issue attempts

        """
        self.config = config
        self.agent = agent
        self.store = store
        self.processor = processor

    @classmethod
    def from_config(
        cls,
        config: RunnerConfig,
        repo_root: Path,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> TicketRunner:
        """Build a runner with real git, gh and process collaborators.

        Creates the log directory and the completion file if needed.

        Raises:
            ConfigurationError: If the log directory, completion file or
                prompt template cannot be prepared

        """
        try:
            config.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"create log dir {config.log_dir}: {e}") from e

        assert config.done_file is not None
        try:
            store = CompletionStore.open(config.done_file)
        except CompletionStoreError as e:
            raise ConfigurationError(str(e)) from e

        agent = get_agent(config.agent)
        processor = IssueProcessor(
            config=config,
            agent=agent,
            store=store,
            repo=GitRepository(repo_root),
            tracker=GitHubIssueTracker(config.gh_bin, repo_root),
            invoker=AgentInvoker(repo_root),
            prompt_template=load_prompt_template(config.prompt_template),
            clock=clock,
            sleep=sleep,
        )
        return cls(config, agent, store, processor)

    def banner(self, issues: list[str]) -> None:
        """Log the agent and queue progress before a run."""
        completed = sum(1 for issue_id in issues if self.store.contains(issue_id))
        blue = {"color": "blue"}
        logger.info(BANNER_RULE, extra=blue)
        logger.info("Ticket Runner", extra=blue)
        logger.info(BANNER_RULE, extra=blue)
        logger.info(f"Agent: {self.agent.DISPLAY_NAME}", extra=blue)
        if self.config.model:
            logger.info(f"Model override: {self.config.model}", extra=blue)
        logger.info(
            f"Total: {len(issues)} | Completed: {completed} | Remaining: {len(issues) - completed}",
            extra=blue,
        )
        logger.info(BANNER_RULE, extra=blue)

    def run(self, issues: list[str]) -> RunSummary:
        """Process issues in order.

        An issue that hits a usage limit is retried until it succeeds or
        fails. The run stops at the first failed issue.

        Args:
            issues: Validated, de-duplicated issue ids

        Returns:
            RunSummary with counts and every attempt's outcome

        """
        self.banner(issues)
        summary = RunSummary()
        total = len(issues)

        for position, issue_id in enumerate(issues, start=1):
            outcome = self.processor.process(issue_id, position, total)
            summary.outcomes.append(outcome)
            while outcome.result == IssueResult.RETRY:
                summary.retries += 1
                logger.info(
                    f"Retrying issue #{issue_id} after session limit reset...",
                    extra={"color": "blue"},
                )
                outcome = self.processor.process(issue_id, position, total)
                summary.outcomes.append(outcome)

            if outcome.result == IssueResult.SUCCESS:
                summary.succeeded += 1
                continue

            summary.failed += 1
            logger.error(f"Stopping due to failure on issue #{issue_id}")
            break

        logger.info(BANNER_RULE, extra={"color": "blue"})
        logger.info(f"Succeeded: {summary.succeeded}", extra={"color": "green"})
        logger.info(f"Failed: {summary.failed}", extra={"color": "red"})
        logger.info(BANNER_RULE, extra={"color": "blue"})
        return summary

    def status(self, issues: list[str]) -> dict[str, bool]:
        """Log and return the completion status of each issue."""
        logger.info("Completion status:", extra={"color": "blue"})
        statuses: dict[str, bool] = {}
        for issue_id in issues:
            done = self.store.contains(issue_id)
            statuses[issue_id] = done
            if done:
                logger.info(f"  #{issue_id} done", extra={"color": "green"})
            else:
                logger.info(f"  #{issue_id} pending", extra={"color": "yellow"})
        return statuses

    def reset(self, issue_id: str | None = None) -> None:
        """Forget one completion, or all of them when issue_id is None.

        Raises:
            CompletionStoreError: If the completion file cannot be rewritten

        """
        if issue_id is None:
            self.store.reset_all()
            logger.info("Reset all completion tracking", extra={"color": "green"})
            return
        self.store.reset_one(issue_id)
        logger.info(f"Reset completion for issue #{issue_id}", extra={"color": "green"})
