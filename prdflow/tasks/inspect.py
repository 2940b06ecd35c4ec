"""
Codebase inspection for the task list generator.

Finds files in the target repo whose paths mention the feature's keywords.
The result seeds the Relevant Files index; it's a starting point for the
human, not an exhaustive dependency analysis.
"""

import logging
import re
from pathlib import Path

from prdflow import git
from prdflow.artifacts.prd import RequirementsDoc
from prdflow.tasks.tasklist import RelevantFile

logger = logging.getLogger(__name__)

MAX_RELEVANT_FILES = 20
MIN_KEYWORD_LEN = 3

_IGNORED_WORDS = {
    "the", "and", "for", "with", "that", "this", "from", "into", "must", "should",
    "will", "user", "users", "system", "feature", "able", "when", "each", "their",
    "other", "describe", "single", "core", "action", "sensible", "defaults", "need",
}


def extract_keywords(prd: RequirementsDoc) -> list[str]:
    """Keywords from the feature name and functional requirements, in first-seen order."""
    text = " ".join([prd.feature.replace("-", " ")] + prd.functional_requirements())
    seen: list[str] = []
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        if len(word) < MIN_KEYWORD_LEN or word in _IGNORED_WORDS or word in seen:
            continue
        seen.append(word)
    return seen


def _stem(word: str) -> str:
    for suffix in ("ing", "es", "s"):
        if word.endswith(suffix) and len(word) - len(suffix) >= MIN_KEYWORD_LEN:
            return word[: -len(suffix)]
    return word


def find_relevant_files(repo_path: Path, prd: RequirementsDoc, limit: int = MAX_RELEVANT_FILES) -> list[RelevantFile]:
    """Rank repo files by how many feature keywords their path contains."""
    files = git.list_tracked_files(repo_path)
    if not files:
        logger.warning(f"[TASKS] No files to inspect in {repo_path} (not a git repo?)")
        return []

    keywords = extract_keywords(prd)
    stems = {kw: _stem(kw) for kw in keywords}
    scored = []
    for path in files:
        lowered = path.lower()
        hits = [kw for kw in keywords if stems[kw] in lowered]
        if hits:
            scored.append((len(hits), path, hits))

    scored.sort(key=lambda item: (-item[0], item[1]))
    result = []
    for _, path, hits in scored[:limit]:
        kind = "Tests" if "test" in Path(path).name.lower() else "Matches"
        result.append(RelevantFile(path, f"{kind}: {', '.join(hits)}"))
    logger.info(f"[TASKS] Inspection found {len(result)} relevant file(s) for {prd.feature}")
    return result
