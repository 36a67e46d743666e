"""Runner configuration.

Provides:
- RunnerConfig, the validated settings for one run
- YAML config file loading with CLI overrides layered on top
- Resolution of repository-relative paths
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .agents import SUPPORTED_AGENTS
from .constants import (
    COUNTDOWN_INTERVAL_SECONDS,
    DEFAULT_AGENT,
    DEFAULT_CONFIG_FILE,
    DEFAULT_GH_BIN,
    DEFAULT_ISSUES_FILE,
    DEFAULT_LOG_DIR,
    DEFAULT_PROMPT_TEMPLATE,
    DEFAULT_WAIT_BUFFER_SECONDS,
    DONE_FILE_NAME,
    FALLBACK_WAIT_SECONDS,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when runner configuration is missing or invalid."""

    pass


class RunnerConfig(BaseModel):
    """Settings for a ticket-runner invocation.

    Path fields are absolute once the config has been produced by
    ``load_config``; ``prompt_template`` is None when the built-in prompt
    should be used.
    """

    agent: str = DEFAULT_AGENT
    model: str | None = None
    dry_run: bool = False
    force: bool = False
    color: bool = True

    wait_buffer_seconds: int = Field(default=DEFAULT_WAIT_BUFFER_SECONDS, ge=0)
    fallback_wait_seconds: int = Field(default=FALLBACK_WAIT_SECONDS, gt=0)
    countdown_interval_seconds: int = Field(default=COUNTDOWN_INTERVAL_SECONDS, gt=0)

    issues_file: Path = Path(DEFAULT_ISSUES_FILE)
    log_dir: Path = Path(DEFAULT_LOG_DIR)
    done_file: Path | None = None
    prompt_template: Path | None = None

    binaries: dict[str, str] = Field(default_factory=dict)
    gh_bin: str = DEFAULT_GH_BIN

    @field_validator("agent")
    @classmethod
    def _validate_agent(cls, value: str) -> str:
        agent = value.strip().lower()
        if agent not in SUPPORTED_AGENTS:
            raise ValueError(
                f"invalid agent {value!r} (expected {', '.join(SUPPORTED_AGENTS)})"
            )
        return agent

    @field_validator("binaries")
    @classmethod
    def _validate_binaries(cls, value: dict[str, str]) -> dict[str, str]:
        unknown = sorted(set(value) - set(SUPPORTED_AGENTS))
        if unknown:
            raise ValueError(f"unknown agent(s) in binaries: {', '.join(unknown)}")
        return value

    def binary_for(self, agent: str, default: str) -> str:
        """Return the configured executable for an agent, or its default name."""
        return self.binaries.get(agent) or default


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values in override take precedence and nested dicts are merged
    recursively. None values in override never replace a base value.

    Args:
        base: Base dictionary
        override: Override dictionary (values take precedence)

    Returns:
        Merged dictionary

    """
    result = base.copy()

    for key, value in override.items():
        if value is None:
            continue

        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from path.

    Raises:
        ConfigurationError: If the file cannot be read or is not a mapping

    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}")
    except PermissionError:
        raise ConfigurationError(f"Permission denied reading: {path}")

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Configuration in {path} must be a mapping")
    return content


def resolve_path(repo_root: Path, value: Path | str) -> Path:
    """Return value as an absolute path, joining relative paths onto repo_root."""
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return repo_root / path


def _apply_repo_defaults(config: RunnerConfig, repo_root: Path) -> RunnerConfig:
    issues_file = resolve_path(repo_root, config.issues_file)
    log_dir = resolve_path(repo_root, config.log_dir)

    if config.done_file is None:
        done_file = log_dir / DONE_FILE_NAME
    else:
        done_file = resolve_path(repo_root, config.done_file)

    if config.prompt_template is not None:
        prompt_template: Path | None = resolve_path(repo_root, config.prompt_template)
    else:
        candidate = repo_root / DEFAULT_PROMPT_TEMPLATE
        prompt_template = candidate if candidate.is_file() else None

    return config.model_copy(
        update={
            "issues_file": issues_file,
            "log_dir": log_dir,
            "done_file": done_file,
            "prompt_template": prompt_template,
        }
    )


def load_config(
    repo_root: Path,
    overrides: dict[str, Any] | None = None,
    config_path: Path | None = None,
) -> RunnerConfig:
    """Build the run configuration.

    Priority order: CLI overrides > config file > built-in defaults. The
    default config file (``.ticket-runner/config.yaml``) is optional; an
    explicitly given ``config_path`` must exist.

    Args:
        repo_root: Repository root that relative paths are resolved against
        overrides: Values from the command line (None entries are ignored)
        config_path: Explicit config file path

    Returns:
        Validated RunnerConfig with absolute paths

    Raises:
        ConfigurationError: If the config file or any value is invalid

    """
    data: dict[str, Any] = {}

    if config_path is not None:
        data = _load_yaml(resolve_path(repo_root, config_path))
    else:
        default_path = repo_root / DEFAULT_CONFIG_FILE
        if default_path.exists():
            logger.debug(f"Loading config from {default_path}")
            data = _load_yaml(default_path)

    data = _deep_merge(data, overrides or {})

    try:
        config = RunnerConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return _apply_repo_defaults(config, repo_root)
