"""
Task List Generator.

Two phases with a hard confirmation gate between them:

1. generate_parent_tasks: high-level parent tasks plus a Relevant Files
   index seeded by codebase inspection. Generation stops here.
2. expand: only after the user replies exactly "Go", every parent task is
   broken into sub-tasks. Task 0.0 (review the type definitions) leads the
   list unless the PRD records that types were omitted, in which case the
   literal omission line is written instead.
"""

import logging
from pathlib import Path
from typing import Optional

from prdflow import notifications
from prdflow.agents.claude import draft_json
from prdflow.errors import WorkflowError
from prdflow.lib.agents_config import AgentsConfig
from prdflow.lib.config import ProjectConfig, TaskListMeta, load_tasklist_meta, update_meta
from prdflow.lib.constants import GO_TOKEN
from prdflow.lib.naming import parse_prd_filename, tasklist_filename
from prdflow.lib.prompts import render_prompt
from prdflow.artifacts.prd import RequirementsDoc, parse_prd
from prdflow.tasks import inspect
from prdflow.tasks.tasklist import (
    ParentTask,
    RelevantFile,
    SubTask,
    TaskListDoc,
    TaskListError,
    add_relevant_file,
    parse_tasklist,
    write_tasklist,
)

logger = logging.getLogger(__name__)

PHASE_PARENTS = "parents"
PHASE_SUBTASKS = "subtasks"

TASK_ZERO_TITLE = "Review and approve type definitions"


class ConfirmationRequired(WorkflowError):
    """Sub-task generation was requested without the literal "Go"."""

    def __init__(self, received: str):
        self.received = received
        super().__init__(f"Sub-tasks are generated only after the reply '{GO_TOKEN}' (received {received!r})")


class AlreadyExpanded(WorkflowError):
    pass


def confirm_go(reply: Optional[str]) -> None:
    """Accept exactly "Go", ignoring surrounding whitespace.

    Raises:
        ConfirmationRequired: for anything else, including "go" and "Go!"
    """
    if (reply or "").strip() != GO_TOKEN:
        raise ConfirmationRequired(reply or "")


def _match_output_file(config: ProjectConfig, ref: str, pattern: str) -> Path:
    """Resolve a filename, path, sequence number or feature name to one file."""
    path = Path(ref)
    if path.is_absolute() and path.exists():
        return path
    direct = config.output_dir / path.name
    if direct.exists():
        return direct

    candidates = sorted(config.output_dir.glob(pattern)) if config.output_dir.exists() else []
    matches = []
    for c in candidates:
        if pattern.startswith("tasks-") != c.name.startswith("tasks-"):
            continue
        parsed = parse_prd_filename(c.name.removeprefix("tasks-"))
        if parsed and (ref == f"{parsed[0]:04d}" or ref == parsed[1]):
            matches.append(c)
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        names = ", ".join(m.name for m in matches)
        raise TaskListError(f"'{ref}' is ambiguous: {names}")
    raise TaskListError(f"No file matching '{ref}' in {config.output_dir}")


def resolve_prd(config: ProjectConfig, ref: str) -> Path:
    return _match_output_file(config, ref, "*-prd-*.md")


def resolve_tasklist(config: ProjectConfig, ref: str) -> Path:
    return _match_output_file(config, ref, "tasks-*-prd-*.md")


def tasklist_state_dir(config: ProjectConfig, tasklist_path: Path) -> Path:
    return config.tasklists_dir / tasklist_path.stem


def load_meta(config: ProjectConfig, tasklist_path: Path) -> TaskListMeta:
    meta_dir = tasklist_state_dir(config, tasklist_path)
    if not (meta_dir / "meta.env").exists():
        raise TaskListError(f"{tasklist_path.name} has no workflow state; was it generated with 'prd tasks generate'?")
    return load_tasklist_meta(meta_dir)


def _load_prd(path: Path) -> RequirementsDoc:
    parsed = parse_prd_filename(path.name)
    if parsed is None:
        raise TaskListError(f"{path.name} is not a saved PRD (expected NNNN-prd-<feature>.md)")
    return parse_prd(path.read_text(), parsed[1])


def _default_notes(config: ProjectConfig) -> list[str]:
    return [
        "Unit tests should sit next to the code they test.",
        f"Run the full verification suite (`{config.verify_command}`) before each parent task is committed.",
        "Mark each sub-task [x] as soon as it is finished, then wait for approval before the next one.",
    ]


def generate_parent_tasks(
    config: ProjectConfig,
    prd_ref: str,
    agents: Optional[AgentsConfig] = None,
) -> tuple[Path, TaskListDoc]:
    """Phase 1: write the task list with parent tasks only.

    Raises:
        TaskListError: PRD not found, or a task list already exists for it
    """
    prd_path = resolve_prd(config, prd_ref)
    prd = _load_prd(prd_path)
    out_path = config.output_dir / tasklist_filename(prd_path.name)
    if out_path.exists():
        raise TaskListError(f"{out_path.name} already exists")

    relevant = inspect.find_relevant_files(config.repo_path, prd)

    if agents is not None:
        prompt = render_prompt(
            "parent_tasks",
            prd_file=prd_path.name,
            prd=prd_path.read_text(),
            relevant_files="\n".join(f"- {f.path}" for f in relevant) or "(none found)",
        )
        drafted = draft_json(agents, "parent_tasks", prompt, "tasks", cwd=config.repo_path)
        titles = [p["title"] for p in drafted["parents"]]
        known = {f.path for f in relevant}
        for f in drafted.get("relevant_files", []):
            if f["path"] not in known:
                relevant.append(RelevantFile(f["path"], f.get("note", "")))
                known.add(f["path"])
    else:
        titles = [f"Implement: {req}" for req in prd.functional_requirements()]
        if not titles:
            raise TaskListError(f"{prd_path.name} has no numbered functional requirements")

    doc = TaskListDoc(
        feature=prd.feature,
        prd_file=prd_path.name,
        relevant_files=relevant,
        notes=_default_notes(config),
        parents=[ParentTask(number=f"{i}.0", title=t) for i, t in enumerate(titles, 1)],
    )
    write_tasklist(doc, out_path)

    meta_dir = tasklist_state_dir(config, out_path)
    meta_dir.mkdir(parents=True, exist_ok=True)
    update_meta(meta_dir, {
        "TASKLIST_FILE": out_path.name,
        "PRD_FILE": prd_path.name,
        "PHASE": PHASE_PARENTS,
    })
    logger.info(f"[TASKS] {out_path.name}: {len(doc.parents)} parent task(s), awaiting '{GO_TOKEN}'")
    notifications.notify_go_required(out_path.name)
    return out_path, doc


def _task_zero(types_file: Optional[str]) -> ParentTask:
    target = f"`{types_file}`" if types_file else "the type definitions"
    subtasks = [
        f"Review {target} against the PRD's functional requirements",
        "Confirm every relationship between types is a structural reference, not an ID",
        "Record approval of the type definitions before starting task 1.0",
    ]
    return ParentTask(
        number="0.0",
        title=TASK_ZERO_TITLE,
        subtasks=[SubTask(number=f"0.{i}", title=t) for i, t in enumerate(subtasks, 1)],
    )


def _standard_subtasks(parent: ParentTask) -> list[str]:
    subject = parent.title.removeprefix("Implement: ").rstrip(".")
    return [
        f"Implement the change: {subject}",
        f"Add or update unit tests covering: {subject}",
        "Update the Relevant Files index with every file created or modified",
    ]


def expand(
    config: ProjectConfig,
    tasklist_ref: str,
    reply: Optional[str],
    agents: Optional[AgentsConfig] = None,
) -> tuple[Path, TaskListDoc]:
    """Phase 2: expand every parent task into sub-tasks after "Go".

    Raises:
        ConfirmationRequired: reply is not exactly "Go"
        AlreadyExpanded: sub-tasks were already generated
    """
    confirm_go(reply)
    path = resolve_tasklist(config, tasklist_ref)
    meta = load_meta(config, path)
    doc = parse_tasklist(path)
    if meta.phase == PHASE_SUBTASKS or doc.expanded:
        raise AlreadyExpanded(f"{path.name} already has sub-tasks")

    prd_path = resolve_prd(config, meta.prd_file)
    prd = _load_prd(prd_path)
    parents = [p for p in doc.parents if p.number != "0.0"]

    if agents is not None:
        prompt = render_prompt(
            "sub_tasks",
            prd_file=prd_path.name,
            prd=prd_path.read_text(),
            parents="\n".join(f"{p.number} {p.title}" for p in parents),
        )
        drafted = draft_json(agents, "sub_tasks", prompt, "tasks", cwd=config.repo_path)
        if len(drafted["parents"]) != len(parents):
            raise TaskListError(
                f"Drafted sub-tasks cover {len(drafted['parents'])} parent(s), expected {len(parents)}"
            )
        sub_titles = [p.get("subtasks") or _standard_subtasks(parent) for p, parent in zip(drafted["parents"], parents)]
    else:
        sub_titles = [_standard_subtasks(p) for p in parents]

    for parent, titles in zip(parents, sub_titles):
        parent.subtasks = [SubTask(number=f"{parent.index}.{i}", title=t) for i, t in enumerate(titles, 1)]

    # The PRD's recorded storage decision, read from front matter or marker text
    if prd.requires_persistence:
        doc.parents = [_task_zero(prd.types_file)] + parents
        doc.task_zero_omitted = False
    else:
        doc.parents = parents
        doc.task_zero_omitted = True

    write_tasklist(doc, path)
    update_meta(meta.dir, {"PHASE": PHASE_SUBTASKS, "STATUS": "ready"})
    _, total = doc.counts()
    logger.info(f"[TASKS] {path.name}: expanded into {total} sub-task(s)")
    return path, doc


def add_file(config: ProjectConfig, tasklist_ref: str, file_path: str, note: str = "") -> bool:
    """Append to the Relevant Files index; returns False if already listed."""
    path = resolve_tasklist(config, tasklist_ref)
    added = add_relevant_file(path, file_path, note)
    if added:
        logger.info(f"[TASKS] {path.name}: added relevant file {file_path}")
    return added
