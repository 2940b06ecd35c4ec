"""Git operations for prdflow.

Return type conventions:
- Functions returning GitResult: caller must check .success before using output.
  Examples: stage_all(), commit()
- Functions returning parsed values return empty values on failure.
  Examples: list_tracked_files() -> [], get_head_sha() -> ""
"""

from prdflow.git.runner import GitResult, run_git
from prdflow.git.status import (
    get_staged_files,
    list_tracked_files,
    get_head_sha,
)
from prdflow.git.commit import (
    stage_all,
    unstage_paths,
    commit,
)

__all__ = [
    "GitResult",
    "run_git",
    # status
    "get_staged_files",
    "list_tracked_files",
    "get_head_sha",
    # commit
    "stage_all",
    "unstage_paths",
    "commit",
]
