"""Helpers shared by command modules."""

import logging

from prdflow.lib.agents_config import AgentsConfig, check_stage_binary, load_agents_config

logger = logging.getLogger(__name__)


def agents_for(enabled: bool, project_config, stage: str) -> AgentsConfig | None:
    """Agent config when drafting is requested, else None."""
    if not enabled:
        return None
    agents = load_agents_config(project_config.root)
    if not check_stage_binary(agents, stage):
        logger.warning(f"Agent binary for stage '{stage}' not found on PATH: {agents.stages[stage]}")
    return agents
