"""
Stage prompts for prdflow's agent calls.

Each drafting stage has one Markdown template under prdflow/prompts/:
clarify (questions for a raw request), mockups (three UI options), types
(shared type declarations), parent_tasks and sub_tasks (the two halves of
task generation) and execute (one sub-task run by the supervisor).

Templates are filled with str.format(), so the JSON examples they show the
agent write literal braces as {{ and }}. HTML comments are notes for
template authors and are removed before the agent sees the prompt.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["PromptError", "PROMPT_NAMES", "load_prompt", "render_prompt", "clear_cache", "PROMPTS_DIR"]

PROMPT_NAMES = ("clarify", "mockups", "types", "parent_tasks", "sub_tasks", "execute")

_AUTHOR_NOTE = re.compile(r'<!--.*?-->\s*', re.DOTALL)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


class PromptError(Exception):
    """A stage template is missing or was rendered without its inputs."""


@lru_cache(maxsize=len(PROMPT_NAMES))
def load_prompt(name: str) -> str:
    """Read a stage template with author notes removed.

    Raises:
        PromptError: no template exists for the stage
    """
    prompt_path = PROMPTS_DIR / f"{name}.md"

    if not prompt_path.exists():
        raise PromptError(
            f"No prompt for stage '{name}'. "
            f"Expected file: {prompt_path}"
        )

    logger.debug(f"Loading prompt for stage {name}")
    return _AUTHOR_NOTE.sub('', prompt_path.read_text()).lstrip()


def render_prompt(name: str, **kwargs) -> str:
    """
    Fill a stage template with the feature's inputs.

    Raises:
        PromptError: template missing, or a placeholder it uses was not passed

    Example:
        render_prompt('clarify', request='Add CSV export', feature='csv-export')
    """
    template = load_prompt(name)

    try:
        return template.format(**kwargs)
    except KeyError as e:
        raise PromptError(
            f"Prompt '{name}' needs {e}; got {sorted(kwargs)}"
        ) from e


def clear_cache():
    """Forget loaded templates so edits on disk are picked up."""
    load_prompt.cache_clear()
