"""Git status and index queries."""

from pathlib import Path

from prdflow.git.runner import run_git


def get_staged_files(repo: Path) -> list[str]:
    result = run_git(["diff", "--cached", "--name-only"], repo)
    if not result.success:
        return []
    return [f.strip() for f in result.stdout.splitlines() if f.strip()]


def list_tracked_files(repo: Path) -> list[str]:
    """Tracked plus untracked-but-not-ignored files. Empty list if not a repo."""
    result = run_git(["ls-files", "--cached", "--others", "--exclude-standard"], repo)
    if not result.success:
        return []
    return sorted({f.strip() for f in result.stdout.splitlines() if f.strip()})


def get_head_sha(repo: Path) -> str:
    result = run_git(["rev-parse", "HEAD"], repo)
    return result.stdout.strip() if result.success else ""
