"""Tests for runner configuration loading."""

from pathlib import Path

import pytest

from ticket_runner.config import ConfigurationError, RunnerConfig, _deep_merge, load_config


def _write_config(repo, text):
    path = repo / ".ticket-runner" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_nested_merge_skips_none(self):
        """Test nested dicts merge and None values never override."""
        base = {"agent": "codex", "binaries": {"codex": "/opt/codex"}}
        override = {"agent": None, "binaries": {"claude": "/opt/claude"}}

        assert _deep_merge(base, override) == {
            "agent": "codex",
            "binaries": {"codex": "/opt/codex", "claude": "/opt/claude"},
        }


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_resolved_against_repo(self, tmp_path):
        """Test default paths are anchored at the repository root."""
        config = load_config(tmp_path)

        assert config.agent == "claude"
        assert config.wait_buffer_seconds == 120
        assert config.fallback_wait_seconds == 1800
        assert config.issues_file == tmp_path / ".ticket-runner" / "issues.txt"
        assert config.log_dir == tmp_path / ".ticket-runs"
        assert config.done_file == tmp_path / ".ticket-runs" / ".completed"
        assert config.prompt_template is None

    def test_default_prompt_template_used_when_present(self, tmp_path):
        """Test the conventional template is picked up if it exists."""
        template = tmp_path / ".ticket-runner" / "prompt.tmpl"
        template.parent.mkdir()
        template.write_text("Do #{{ISSUE_NUMBER}}")

        assert load_config(tmp_path).prompt_template == template

    def test_done_file_follows_log_dir(self, tmp_path):
        """Test the completion file defaults into an overridden log dir."""
        config = load_config(tmp_path, {"log_dir": Path("runs")})

        assert config.done_file == tmp_path / "runs" / ".completed"

    def test_absolute_paths_kept(self, tmp_path):
        """Test absolute paths are not re-anchored."""
        done = tmp_path / "elsewhere" / "done.txt"

        config = load_config(tmp_path / "repo", {"done_file": done})

        assert config.done_file == done

    def test_yaml_file_then_overrides(self, tmp_path):
        """Test the config file applies and CLI values take precedence."""
        _write_config(
            tmp_path,
            "agent: codex\nmodel: o3\nwait_buffer_seconds: 30\nbinaries:\n  codex: /opt/codex\n",
        )

        config = load_config(tmp_path, {"agent": "gemini", "model": None})

        assert config.agent == "gemini"
        assert config.model == "o3"
        assert config.wait_buffer_seconds == 30
        assert config.binary_for("codex", "codex") == "/opt/codex"
        assert config.binary_for("gemini", "gemini") == "gemini"

    def test_explicit_config_must_exist(self, tmp_path):
        """Test a missing explicit config file is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path, config_path=Path("custom.yaml"))

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is an error."""
        _write_config(tmp_path, "agent: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(tmp_path)

    def test_non_mapping_yaml(self, tmp_path):
        """Test a YAML list is rejected."""
        _write_config(tmp_path, "- claude\n")

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_config(tmp_path)

    def test_invalid_agent(self, tmp_path):
        """Test an unknown agent is rejected."""
        with pytest.raises(ConfigurationError, match="invalid agent"):
            load_config(tmp_path, {"agent": "copilot"})

    def test_negative_buffer(self, tmp_path):
        """Test the wait buffer must be non-negative."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path, {"wait_buffer_seconds": -1})

    def test_unknown_binary_key(self, tmp_path):
        """Test binaries only accept supported agents."""
        _write_config(tmp_path, "binaries:\n  copilot: /opt/copilot\n")

        with pytest.raises(ConfigurationError, match="unknown agent"):
            load_config(tmp_path)


class TestRunnerConfig:
    """Tests for RunnerConfig."""

    def test_agent_normalised(self):
        """Test agent names are case-insensitive."""
        assert RunnerConfig(agent="Cursor-Agent").agent == "cursor-agent"
