"""Tests for agents_config module."""

import pytest
from unittest.mock import patch

from prdflow.lib.agents_config import (
    AgentsConfig,
    load_agents_config,
    get_stage_command,
    check_stage_binary,
    DEFAULT_STAGE_COMMANDS,
)


class TestLoadAgentsConfig:
    """Tests for load_agents_config()."""

    def test_returns_defaults_when_no_project_dir(self):
        config = load_agents_config(None)
        assert config.stages == DEFAULT_STAGE_COMMANDS

    def test_returns_defaults_when_file_missing(self, tmp_path):
        config = load_agents_config(tmp_path)
        assert config.stages == DEFAULT_STAGE_COMMANDS

    def test_loads_custom_config(self, tmp_path):
        (tmp_path / "agents.yaml").write_text(
            "stages:\n"
            "  execute: codex exec -C {repo} {prompt}\n"
        )
        config = load_agents_config(tmp_path)
        assert config.stages["execute"] == "codex exec -C {repo} {prompt}"
        assert config.stages["clarify"] == DEFAULT_STAGE_COMMANDS["clarify"]

    def test_ignores_unknown_stage(self, tmp_path, caplog):
        (tmp_path / "agents.yaml").write_text("stages:\n  review: custom\n")
        config = load_agents_config(tmp_path)
        assert "review" not in config.stages
        assert "Ignoring unknown stage 'review'" in caplog.text

    def test_handles_invalid_yaml(self, tmp_path):
        (tmp_path / "agents.yaml").write_text("stages: [unclosed\n")
        config = load_agents_config(tmp_path)
        assert config.stages == DEFAULT_STAGE_COMMANDS


class TestGetStageCommand:
    """Tests for get_stage_command()."""

    def test_prompt_via_stdin_when_not_in_template(self):
        result = get_stage_command(AgentsConfig(), "clarify", {"prompt": "test"})
        assert result.cmd == ["claude", "--print"]
        assert result.prompt_via_stdin is True
        assert result.get_stdin_input("test") == "test"

    def test_prompt_and_repo_substituted(self):
        config = AgentsConfig(stages={"execute": "codex exec -C {repo} {prompt}"})
        result = get_stage_command(config, "execute", {"prompt": "do stuff", "repo": "/tmp/repo"})
        assert result.cmd == ["codex", "exec", "-C", "/tmp/repo", "do stuff"]
        assert result.prompt_via_stdin is False
        assert result.get_stdin_input("do stuff") is None

    def test_prompt_with_special_characters(self):
        config = AgentsConfig(stages={"execute": "agent {prompt}"})
        prompt = 'fix the "quoted" string and \'this\' too'
        result = get_stage_command(config, "execute", {"prompt": prompt})
        assert prompt in result.cmd

    def test_raises_on_unknown_stage(self):
        with pytest.raises(ValueError, match="Unknown stage"):
            get_stage_command(AgentsConfig(), "nonexistent", {})


class TestCheckStageBinary:

    @patch("prdflow.lib.agents_config.shutil.which", return_value="/usr/bin/claude")
    def test_found(self, mock_which):
        assert check_stage_binary(AgentsConfig(), "clarify") is True
        mock_which.assert_called_once_with("claude")

    @patch("prdflow.lib.agents_config.shutil.which", return_value=None)
    def test_missing(self, mock_which):
        assert check_stage_binary(AgentsConfig(), "clarify") is False

    def test_unknown_stage(self):
        assert check_stage_binary(AgentsConfig(), "nope") is False
