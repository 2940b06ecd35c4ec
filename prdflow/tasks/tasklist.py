"""
Task list markdown parser and writer.

A task list is a two-level checklist under "## Tasks", preceded by an
append-only "## Relevant Files" index:

    # Tasks: <feature>

    PRD: `0001-prd-<feature>.md`

    ## Relevant Files

    - `path/to/file.py` - why it matters

    ### Notes

    - ...

    ## Tasks

    - [ ] 1.0 Parent task
      - [ ] 1.1 Sub-task

Completion flags are updated by editing single lines in place, so hand edits
elsewhere in the file survive.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from prdflow.errors import WorkflowError
from prdflow.lib.constants import TASK_ZERO_OMITTED_MARKER

TITLE_RE = re.compile(r'^#\s+Tasks:\s*(.+?)\s*$')
PRD_RE = re.compile(r'^PRD:\s*`([^`]+)`\s*$')
SECTION_RE = re.compile(r'^(#{2,3})\s+(.+?)\s*$')
FILE_RE = re.compile(r'^-\s+`([^`]+)`(?:\s+-\s+(.*?))?\s*$')
PARENT_RE = re.compile(r'^- \[([ xX])\] (\d+)\.0\s+(.+?)\s*$')
SUB_RE = re.compile(r'^\s+- \[([ xX])\] (\d+\.\d+)\s+(.+?)\s*$')

RELEVANT_FILES_HEADING = "Relevant Files"
NOTES_HEADING = "Notes"
TASKS_HEADING = "Tasks"


class TaskListError(WorkflowError):
    pass


@dataclass
class SubTask:
    number: str  # "1.2"
    title: str
    done: bool = False
    line_number: int = 0


@dataclass
class ParentTask:
    number: str  # "1.0"
    title: str
    done: bool = False
    line_number: int = 0
    subtasks: list[SubTask] = field(default_factory=list)

    @property
    def index(self) -> int:
        return int(self.number.split(".")[0])

    @property
    def subtasks_complete(self) -> bool:
        return bool(self.subtasks) and all(s.done for s in self.subtasks)


@dataclass
class RelevantFile:
    path: str
    note: str = ""


@dataclass
class TaskListDoc:
    feature: str
    prd_file: str
    relevant_files: list[RelevantFile] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    parents: list[ParentTask] = field(default_factory=list)
    task_zero_omitted: bool = False

    @property
    def expanded(self) -> bool:
        return any(p.subtasks for p in self.parents)

    def parent(self, number: str) -> ParentTask:
        wanted = number if "." in number else f"{number}.0"
        for p in self.parents:
            if p.number == wanted:
                return p
        raise TaskListError(f"No parent task {number}")

    def find_subtask(self, number: str) -> tuple[ParentTask, SubTask]:
        for p in self.parents:
            for s in p.subtasks:
                if s.number == number:
                    return p, s
        raise TaskListError(f"No sub-task {number}")

    def counts(self) -> tuple[int, int]:
        """(done, total) over sub-tasks."""
        subs = [s for p in self.parents for s in p.subtasks]
        return sum(1 for s in subs if s.done), len(subs)


def parse_tasklist_text(text: str) -> TaskListDoc:
    doc = TaskListDoc(feature="", prd_file="")
    section = None
    current: Optional[ParentTask] = None

    for lineno, line in enumerate(text.splitlines(), 1):
        title = TITLE_RE.match(line)
        if title:
            doc.feature = title.group(1)
            continue
        prd = PRD_RE.match(line)
        if prd and section is None:
            doc.prd_file = prd.group(1)
            continue
        heading = SECTION_RE.match(line)
        if heading:
            section = heading.group(2)
            continue

        if section == RELEVANT_FILES_HEADING:
            m = FILE_RE.match(line)
            if m:
                doc.relevant_files.append(RelevantFile(m.group(1), m.group(2) or ""))
        elif section == NOTES_HEADING:
            if line.startswith("- "):
                doc.notes.append(line[2:].strip())
        elif section == TASKS_HEADING:
            if line.strip() == TASK_ZERO_OMITTED_MARKER:
                doc.task_zero_omitted = True
                continue
            parent = PARENT_RE.match(line)
            if parent:
                current = ParentTask(
                    number=f"{parent.group(2)}.0",
                    title=parent.group(3),
                    done=parent.group(1).lower() == "x",
                    line_number=lineno,
                )
                doc.parents.append(current)
                continue
            sub = SUB_RE.match(line)
            if sub:
                if current is None:
                    raise TaskListError(f"Line {lineno}: sub-task {sub.group(2)} has no parent task")
                current.subtasks.append(SubTask(
                    number=sub.group(2),
                    title=sub.group(3),
                    done=sub.group(1).lower() == "x",
                    line_number=lineno,
                ))

    return doc


def parse_tasklist(path: Path) -> TaskListDoc:
    if not path.exists():
        raise TaskListError(f"Task list not found: {path}")
    return parse_tasklist_text(path.read_text())


def _box(done: bool) -> str:
    return "[x]" if done else "[ ]"


def render_tasklist(doc: TaskListDoc) -> str:
    lines = [
        f"# Tasks: {doc.feature}",
        "",
        f"PRD: `{doc.prd_file}`",
        "",
        f"## {RELEVANT_FILES_HEADING}",
        "",
    ]
    for f in doc.relevant_files:
        lines.append(f"- `{f.path}` - {f.note}" if f.note else f"- `{f.path}`")
    if doc.relevant_files:
        lines.append("")

    lines.extend([f"### {NOTES_HEADING}", ""])
    lines.extend(f"- {note}" for note in doc.notes)
    if doc.notes:
        lines.append("")

    lines.extend([f"## {TASKS_HEADING}", ""])
    if doc.task_zero_omitted:
        lines.extend([TASK_ZERO_OMITTED_MARKER, ""])
    for p in doc.parents:
        lines.append(f"- {_box(p.done)} {p.number} {p.title}")
        for s in p.subtasks:
            lines.append(f"  - {_box(s.done)} {s.number} {s.title}")
    return "\n".join(lines) + "\n"


def write_tasklist(doc: TaskListDoc, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_tasklist(doc))


def next_subtask(doc: TaskListDoc) -> Optional[tuple[ParentTask, SubTask]]:
    """First incomplete sub-task in document order, or None."""
    for p in doc.parents:
        for s in p.subtasks:
            if not s.done:
                return p, s
    return None


def _set_flag(path: Path, pattern: re.Pattern, number: str, number_group: str) -> bool:
    lines = path.read_text().splitlines()
    for i, line in enumerate(lines):
        m = pattern.match(line)
        if m and f"{m.group(2)}{number_group}" == number:
            lines[i] = line.replace("[ ]", "[x]", 1)
            path.write_text("\n".join(lines) + "\n")
            return True
    return False


def mark_subtask_done(path: Path, number: str) -> bool:
    """Mark sub-task `number` ("1.2") complete. Returns True if updated."""
    return _set_flag(path, SUB_RE, number, "")


def mark_parent_done(path: Path, number: str) -> bool:
    """Mark parent task `number` ("1.0") complete. Returns True if updated."""
    return _set_flag(path, PARENT_RE, number, ".0")


def add_relevant_file(path: Path, file_path: str, note: str = "") -> bool:
    """Append an entry to the Relevant Files index.

    Existing entries are never removed or rewritten; a path already listed is
    left alone. Returns True if an entry was added.
    """
    file_path = file_path.strip()
    if not file_path or "`" in file_path or "\n" in file_path:
        raise TaskListError(f"Invalid relevant file path: {file_path!r}")

    lines = path.read_text().splitlines()
    start = None
    end = len(lines)
    for i, line in enumerate(lines):
        heading = SECTION_RE.match(line)
        if heading and heading.group(2) == RELEVANT_FILES_HEADING:
            start = i
        elif heading and start is not None:
            end = i
            break
    if start is None:
        raise TaskListError(f"{path.name} has no '{RELEVANT_FILES_HEADING}' section")

    last_entry = start + 1
    for i in range(start + 1, end):
        m = FILE_RE.match(lines[i])
        if m:
            if m.group(1) == file_path:
                return False
            last_entry = i + 1

    entry = f"- `{file_path}` - {note.strip()}" if note.strip() else f"- `{file_path}`"
    if last_entry == start + 1:
        # First entry: keep a blank line under the heading and before the next section
        new_lines = lines[:start + 1] + ["", entry, ""] + [l for l in lines[start + 1:end] if l.strip()] + lines[end:]
    else:
        new_lines = lines[:last_entry] + [entry] + lines[last_entry:]
    path.write_text("\n".join(new_lines) + "\n")
    return True
