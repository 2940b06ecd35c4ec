"""
Structured commit messages for completed parent tasks.

Conventional-commit subject, a bullet list of the sub-tasks delivered, and a
trailer tying the commit to the task and its PRD:

    feat(log-reformatter): parse raw log lines

    - Implement the change: parse raw log lines
    - Add or update unit tests covering: parse raw log lines

    Related to Task 1.0 in 0001-prd-log-reformatter.md
"""

import re

from prdflow.tasks.tasklist import ParentTask

MAX_SUBJECT_LENGTH = 72

# First matching keyword decides the type; feat otherwise
_TYPE_KEYWORDS = [
    ("fix", ("fix", "bug", "repair", "correct")),
    ("test", ("test", "tests", "coverage")),
    ("docs", ("document", "documentation", "docs", "readme")),
    ("refactor", ("refactor", "restructure", "extract", "rename")),
    ("chore", ("review", "approve", "configure", "setup")),
]


def commit_type(title: str) -> str:
    words = set(re.findall(r"[a-z]+", title.lower()))
    for ctype, keywords in _TYPE_KEYWORDS:
        if words.intersection(keywords):
            return ctype
    return "feat"


def _description(title: str) -> str:
    text = title.removeprefix("Implement: ").strip().rstrip(".")
    text = text[:1].lower() + text[1:]
    return re.sub(r"\s+", " ", text)


def build_subject(parent: ParentTask, scope: str = "") -> str:
    prefix = f"{commit_type(parent.title)}({scope}): " if scope else f"{commit_type(parent.title)}: "
    subject = prefix + _description(parent.title)
    if len(subject) > MAX_SUBJECT_LENGTH:
        subject = subject[:MAX_SUBJECT_LENGTH - 3].rstrip() + "..."
    return subject


def build_commit_message(parent: ParentTask, prd_file: str, scope: str = "") -> list[str]:
    """Paragraphs for `git commit -m ... -m ...`: subject, bullets, trailer."""
    paragraphs = [build_subject(parent, scope)]
    bullets = [f"- {s.title}" for s in parent.subtasks]
    if bullets:
        paragraphs.append("\n".join(bullets))
    paragraphs.append(f"Related to Task {parent.number} in {prd_file}")
    return paragraphs
