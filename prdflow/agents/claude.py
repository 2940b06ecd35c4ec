"""
Agent invocation for drafting artifacts.

Runs the stage command from agents.yaml with a rendered prompt and extracts
the JSON payload from the response. Used when a command is given --draft.
"""

import json
import logging
import os
import re
import subprocess
from pathlib import Path

from prdflow.errors import WorkflowError
from prdflow.lib.agents_config import AgentsConfig, get_stage_command
from prdflow.lib.validate import validate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class AgentError(WorkflowError):
    """The agent could not be run or returned unusable output."""
    pass


def run_agent(
    config: AgentsConfig,
    stage: str,
    prompt: str,
    cwd: Path | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> tuple[bool, str]:
    """Run the agent for a stage and return (success, response).

    The JSON wrapper of `--output-format json` is unwrapped when present.
    """
    context = {"prompt": prompt}
    if cwd is not None:
        context["repo"] = str(cwd)
    stage_cmd = get_stage_command(config, stage, context)

    # Remove ANTHROPIC_API_KEY so Claude uses OAuth
    env = {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}

    logger.debug(f"[AGENT] {stage}: {stage_cmd.cmd[0]} (stdin={stage_cmd.prompt_via_stdin})")
    try:
        result = subprocess.run(
            stage_cmd.cmd,
            input=stage_cmd.get_stdin_input(prompt),
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except subprocess.TimeoutExpired:
        return False, f"Agent timed out after {timeout}s"
    except FileNotFoundError:
        return False, f"Agent CLI not found: {stage_cmd.cmd[0]}"

    if result.returncode != 0:
        error_msg = result.stderr.strip() or result.stdout.strip() or "(no output)"
        return False, f"Agent failed (exit {result.returncode}): {error_msg}"

    output = result.stdout.strip()
    try:
        wrapper = json.loads(output)
        if isinstance(wrapper, dict) and isinstance(wrapper.get("result"), str):
            return True, wrapper["result"]
    except json.JSONDecodeError:
        pass

    return True, output


def strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences from text if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines and lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def extract_json(text: str) -> str:
    """Extract a JSON object from text that may have prose around it.

    Returns "" if no JSON object is found.
    """
    text = text.strip()

    fence_match = re.search(r'```(?:json)?\s*\n(\{[\s\S]*?\})\s*\n```', text)
    if fence_match:
        return fence_match.group(1)

    lines = text.split('\n')
    json_start = None
    brace_count = 0

    for i, line in enumerate(lines):
        stripped = line.strip()
        if json_start is None and stripped.startswith('{'):
            json_start = i
            brace_count = 0

        if json_start is not None:
            brace_count += stripped.count('{') - stripped.count('}')
            if brace_count == 0:
                return '\n'.join(lines[json_start:i + 1])

    return ""


def draft_json(
    config: AgentsConfig,
    stage: str,
    prompt: str,
    schema_name: str,
    cwd: Path | None = None,
) -> dict:
    """Run a drafting stage and return its schema-validated JSON payload.

    Raises:
        AgentError: agent failed or returned no JSON
        ValidationError: payload doesn't match schema_name
    """
    ok, response = run_agent(config, stage, prompt, cwd=cwd)
    if not ok:
        raise AgentError(response)

    json_str = extract_json(strip_markdown_fences(response))
    if not json_str:
        raise AgentError(f"Agent returned no JSON for stage '{stage}'")

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise AgentError(f"Agent returned invalid JSON for stage '{stage}': {e}") from None

    validate(data, schema_name)
    return data
