"""Command-line interface for ticket-runner.

Runs the configured coding agent over the issue queue, or reports and
resets completion tracking.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click

from ticket_runner import __version__
from ticket_runner.agents import SUPPORTED_AGENTS
from ticket_runner.completion_store import CompletionStoreError
from ticket_runner.config import ConfigurationError, load_config
from ticket_runner.console import setup_logging, should_use_color
from ticket_runner.git_utils import GitError, get_repo_root
from ticket_runner.issue_list import is_valid_issue_id, load_issues
from ticket_runner.runner import TicketRunner

EPILOG = """\b
Examples:
  ticket-runner                          Process issues from .ticket-runner/issues.txt
  ticket-runner --issues 12,15,18        Process an explicit list
  ticket-runner --issue 42               Re-run one issue even if completed
  ticket-runner --agent codex --model o3 Use Codex with a model override
  ticket-runner --status                 Show done/pending per issue
  ticket-runner --reset                  Forget all completions
  ticket-runner --reset 42               Forget one completion
"""


def _validate_issue(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not is_valid_issue_id(value):
        raise click.BadParameter(f"issue must be numeric, got {value!r}")
    return value


def _validate_reset(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if value.lower() == "all":
        return "all"
    if not is_valid_issue_id(value):
        raise click.BadParameter(f"reset target must be numeric or 'all', got {value!r}")
    return value


def _build_overrides(
    *,
    dry_run: bool,
    force: bool,
    agent: str | None,
    model: str | None,
    issues_file: Path | None,
    log_dir: Path | None,
    done_file: Path | None,
    prompt_template: Path | None,
    wait_buffer_sec: int | None,
    gh_bin: str | None,
    binaries: dict[str, str | None],
) -> dict[str, Any]:
    """Collect command-line values; unset options stay None so they do not override."""
    return {
        "dry_run": dry_run or None,
        "force": force or None,
        "agent": agent,
        "model": model,
        "issues_file": issues_file,
        "log_dir": log_dir,
        "done_file": done_file,
        "prompt_template": prompt_template,
        "wait_buffer_seconds": wait_buffer_sec,
        "gh_bin": gh_bin,
        "binaries": {name: path for name, path in binaries.items() if path},
    }


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=EPILOG,
)
@click.version_option(version=__version__, prog_name="ticket-runner")
@click.option("--dry-run", is_flag=True, help="Show what would be processed without running the agent.")
@click.option("--issue", callback=_validate_issue, metavar="ID", help="Process only this issue (forces re-run).")
@click.option("--force", is_flag=True, help="Reprocess issues that are already completed.")
@click.option("--status", is_flag=True, help="Show completion status for the issue queue.")
@click.option(
    "--reset",
    is_flag=False,
    flag_value="all",
    default=None,
    callback=_validate_reset,
    metavar="[ID]",
    help="Reset completion tracking for one issue, or all issues when no ID is given.",
)
@click.option("--issues", "issues_csv", metavar="CSV", help="Comma-separated issue ids (e.g. 12,15,18).")
@click.option(
    "--issues-file",
    type=click.Path(path_type=Path),
    help="Issue queue file (default: .ticket-runner/issues.txt).",
)
@click.option(
    "--prompt-template",
    type=click.Path(path_type=Path),
    help="Prompt template with {{ISSUE_NUMBER}}, {{ISSUE_TITLE}} and {{ISSUE_BODY}} placeholders.",
)
@click.option(
    "--agent",
    type=click.Choice(SUPPORTED_AGENTS, case_sensitive=False),
    help="Agent CLI to drive (default: claude).",
)
@click.option("--model", help="Model override passed to the agent CLI.")
@click.option("--log-dir", type=click.Path(path_type=Path), help="Per-issue log directory (default: .ticket-runs).")
@click.option(
    "--done-file",
    type=click.Path(path_type=Path),
    help="Completion tracking file (default: <log-dir>/.completed).",
)
@click.option("--claude-bin", help="Claude executable (default: claude).")
@click.option("--codex-bin", help="Codex executable (default: codex).")
@click.option("--gemini-bin", help="Gemini executable (default: gemini).")
@click.option("--cursor-bin", help="Cursor Agent executable (default: cursor-agent).")
@click.option("--gh-bin", help="GitHub CLI executable (default: gh).")
@click.option(
    "--wait-buffer-sec",
    type=click.IntRange(min=0),
    help="Extra seconds to wait after a usage limit resets (default: 120).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="YAML config file (default: .ticket-runner/config.yaml when present).",
)
@click.option("--no-color", is_flag=True, help="Disable colored output.")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
def cli(
    dry_run: bool,
    issue: str | None,
    force: bool,
    status: bool,
    reset: str | None,
    issues_csv: str | None,
    issues_file: Path | None,
    prompt_template: Path | None,
    agent: str | None,
    model: str | None,
    log_dir: Path | None,
    done_file: Path | None,
    claude_bin: str | None,
    codex_bin: str | None,
    gemini_bin: str | None,
    cursor_bin: str | None,
    gh_bin: str | None,
    wait_buffer_sec: int | None,
    config_path: Path | None,
    no_color: bool,
    verbose: bool,
) -> None:
    """Run a coding agent over GitHub issues, one commit per issue.

    Each issue is fetched with gh, handed to the agent, and marked complete
    once a commit exists. Usage limits are waited out and retried; the run
    stops at the first failed issue.
    """
    overrides = _build_overrides(
        dry_run=dry_run,
        force=force or issue is not None,
        agent=agent,
        model=model,
        issues_file=issues_file,
        log_dir=log_dir,
        done_file=done_file,
        prompt_template=prompt_template,
        wait_buffer_sec=wait_buffer_sec,
        gh_bin=gh_bin,
        binaries={
            "claude": claude_bin,
            "codex": codex_bin,
            "gemini": gemini_bin,
            "cursor-agent": cursor_bin,
        },
    )

    try:
        repo_root = get_repo_root()
        config = load_config(repo_root, overrides, config_path)
        setup_logging(verbose, should_use_color(no_color or not config.color))
        runner = TicketRunner.from_config(config, repo_root)

        if reset is not None:
            runner.reset(None if reset == "all" else reset)
            return

        issues = load_issues(config.issues_file, single_issue=issue, issues_csv=issues_csv)
        if status:
            runner.status(issues)
            return

        summary = runner.run(issues)
    except (ConfigurationError, GitError, CompletionStoreError) as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    if summary.exit_code:
        sys.exit(summary.exit_code)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
