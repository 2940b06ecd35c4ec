"""Git staging and commit operations."""

from pathlib import Path

from prdflow.git.runner import run_git, GitResult


def stage_all(repo: Path) -> GitResult:
    """Stage all changes (new, modified, deleted)."""
    return run_git(["add", "-A"], repo)


def unstage_paths(repo: Path, paths: list[str]) -> GitResult:
    """Drop paths from the index without failing on paths it doesn't hold."""
    return run_git(["rm", "-r", "--cached", "--ignore-unmatch", "--quiet", "--"] + paths, repo)


def commit(repo: Path, paragraphs: list[str]) -> GitResult:
    """Commit with one -m per paragraph: subject first, then body paragraphs."""
    args = ["commit"]
    for paragraph in paragraphs:
        args.extend(["-m", paragraph])
    return run_git(args, repo)
