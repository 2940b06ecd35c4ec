"""
Agent command configuration.

Loads agents.yaml to determine which CLI command drafts each artifact.
If no config file exists, every stage uses `claude --print`.

Templates support {prompt} and {repo} substitution. If {prompt} is absent
from a template, the prompt is passed via stdin.

Example agents.yaml:

    stages:
      clarify: claude --print
      execute: codex exec -C {repo} {prompt}
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

AGENTS_CONFIG_FILENAME = "agents.yaml"

# Ordered by workflow sequence.
DEFAULT_STAGE_COMMANDS = {
    # Feature request -> clarifying questions JSON
    "clarify": "claude --print",
    # Requirements -> three mockup options JSON
    "mockups": "claude --print",
    # Requirements -> type declarations JSON
    "types": "claude --print",
    # PRD + relevant files -> parent tasks JSON
    "parent_tasks": "claude --print",
    # Parent tasks -> sub-tasks JSON
    "sub_tasks": "claude --print",
    # One sub-task -> code changes in the repo
    "execute": "claude --print --permission-mode acceptEdits",
}

_PLACEHOLDER = "__PROMPT_PLACEHOLDER__"


@dataclass
class AgentsConfig:
    """Agent configuration from agents.yaml."""
    stages: dict[str, str] = field(default_factory=lambda: DEFAULT_STAGE_COMMANDS.copy())


def load_agents_config(project_dir: Path | None) -> AgentsConfig:
    """Load agents.yaml and return AgentsConfig.

    If project_dir is None or the file doesn't exist, returns defaults.
    """
    if project_dir is None:
        return AgentsConfig()

    config_path = project_dir / AGENTS_CONFIG_FILENAME
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return AgentsConfig()

    stages = DEFAULT_STAGE_COMMANDS.copy()
    if isinstance(data, dict) and isinstance(data.get("stages"), dict):
        for stage, command in data["stages"].items():
            if stage not in DEFAULT_STAGE_COMMANDS:
                logger.warning(f"Ignoring unknown stage '{stage}' in {config_path}")
                continue
            stages[stage] = str(command)
    return AgentsConfig(stages=stages)


@dataclass
class StageCommand:
    """Result of building a stage command."""
    cmd: list[str]
    prompt_via_stdin: bool

    def get_stdin_input(self, prompt: str) -> str | None:
        return prompt if self.prompt_via_stdin else None


def get_stage_command(
    config: AgentsConfig,
    stage: str,
    context: dict[str, str] | None = None,
) -> StageCommand:
    """Build command list for a stage with variable substitution.

    Raises:
        ValueError: If stage is unknown.

    Example:
        >>> get_stage_command(AgentsConfig(), "clarify", {"prompt": "hi"}).cmd
        ['claude', '--print']
    """
    if stage not in config.stages:
        raise ValueError(f"Unknown stage: {stage}")

    cmd_template = config.stages[stage]
    prompt_via_stdin = "{prompt}" not in cmd_template

    # Keep the prompt out of shlex so quotes inside it survive
    prompt_value = None
    if context and "prompt" in context:
        prompt_value = context["prompt"]
        cmd_template = cmd_template.replace("{prompt}", _PLACEHOLDER)

    if context:
        for key, value in context.items():
            if key != "prompt":
                cmd_template = cmd_template.replace(f"{{{key}}}", str(value))

    remaining_vars = re.findall(r'\{(\w+)\}', cmd_template)
    if remaining_vars:
        logger.error(f"Stage '{stage}' has unsubstituted variables: {remaining_vars}")

    cmd = shlex.split(cmd_template)
    if prompt_value is not None:
        cmd = [prompt_value if arg == _PLACEHOLDER else arg for arg in cmd]

    return StageCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin)


def check_stage_binary(config: AgentsConfig, stage: str) -> bool:
    """True if the binary of a stage's command is on PATH."""
    parts = shlex.split(config.stages.get(stage, ""))
    return bool(parts) and shutil.which(parts[0]) is not None
