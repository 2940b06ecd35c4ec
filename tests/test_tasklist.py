"""Tests for the task list markdown parser and writer."""

import pytest

from prdflow.lib.constants import TASK_ZERO_OMITTED_MARKER
from prdflow.tasks.tasklist import (
    ParentTask,
    RelevantFile,
    SubTask,
    TaskListDoc,
    TaskListError,
    add_relevant_file,
    mark_parent_done,
    mark_subtask_done,
    next_subtask,
    parse_tasklist,
    parse_tasklist_text,
    render_tasklist,
    write_tasklist,
)

SAMPLE = """\
# Tasks: log-reformatter

PRD: `0001-prd-log-reformatter.md`

## Relevant Files

- `src/reformat.py` - Matches: reformat
- `tests/test_reformat.py`

### Notes

- Unit tests sit next to the code.

## Tasks

Task 0.0 omitted - no storage requirements for this feature

- [x] 1.0 Parse raw log lines
  - [x] 1.1 Implement the parser
  - [x] 1.2 Add unit tests
- [ ] 2.0 Write normalized output
  - [x] 2.1 Implement the writer
  - [ ] 2.2 Add unit tests
"""


@pytest.fixture
def sample_path(tmp_path):
    path = tmp_path / "tasks-0001-prd-log-reformatter.md"
    path.write_text(SAMPLE)
    return path


class TestParse:

    def test_header(self):
        doc = parse_tasklist_text(SAMPLE)
        assert doc.feature == "log-reformatter"
        assert doc.prd_file == "0001-prd-log-reformatter.md"
        assert doc.task_zero_omitted

    def test_relevant_files_and_notes(self):
        doc = parse_tasklist_text(SAMPLE)
        assert doc.relevant_files == [
            RelevantFile("src/reformat.py", "Matches: reformat"),
            RelevantFile("tests/test_reformat.py", ""),
        ]
        assert doc.notes == ["Unit tests sit next to the code."]

    def test_two_level_hierarchy(self):
        doc = parse_tasklist_text(SAMPLE)
        assert [p.number for p in doc.parents] == ["1.0", "2.0"]
        assert doc.parents[0].done
        assert doc.parents[0].subtasks_complete
        assert [s.number for s in doc.parents[1].subtasks] == ["2.1", "2.2"]
        assert doc.counts() == (3, 4)
        assert doc.expanded

    def test_orphan_subtask(self):
        with pytest.raises(TaskListError, match="has no parent task"):
            parse_tasklist_text("## Tasks\n\n  - [ ] 1.1 Orphan\n")

    def test_missing_file(self, tmp_path):
        with pytest.raises(TaskListError, match="not found"):
            parse_tasklist(tmp_path / "nope.md")

    def test_lookup(self):
        doc = parse_tasklist_text(SAMPLE)
        assert doc.parent("2").title == "Write normalized output"
        parent, sub = doc.find_subtask("2.2")
        assert parent.number == "2.0" and sub.title == "Add unit tests"
        with pytest.raises(TaskListError):
            doc.find_subtask("3.1")


class TestRender:

    def test_round_trip(self):
        doc = parse_tasklist_text(SAMPLE)
        assert render_tasklist(doc) == SAMPLE

    def test_parents_only(self, tmp_path):
        doc = TaskListDoc(
            feature="x", prd_file="0002-prd-x.md",
            parents=[ParentTask("1.0", "First"), ParentTask("2.0", "Second")],
        )
        path = tmp_path / "out" / "tasks-0002-prd-x.md"
        write_tasklist(doc, path)
        text = path.read_text()
        assert "- [ ] 1.0 First\n- [ ] 2.0 Second\n" in text
        assert TASK_ZERO_OMITTED_MARKER not in text
        assert not parse_tasklist(path).expanded

    def test_task_zero_first(self):
        doc = TaskListDoc(feature="x", prd_file="p.md", parents=[
            ParentTask("0.0", "Review and approve type definitions", subtasks=[SubTask("0.1", "Review")]),
            ParentTask("1.0", "Build", subtasks=[SubTask("1.1", "Do")]),
        ])
        tasks = render_tasklist(doc).split("## Tasks\n\n")[1]
        assert tasks.startswith("- [ ] 0.0 Review and approve type definitions\n  - [ ] 0.1 Review\n")


class TestNextSubtask:

    def test_first_incomplete_in_order(self):
        parent, sub = next_subtask(parse_tasklist_text(SAMPLE))
        assert (parent.number, sub.number) == ("2.0", "2.2")

    def test_none_when_done(self):
        text = SAMPLE.replace("[ ] 2.2", "[x] 2.2")
        assert next_subtask(parse_tasklist_text(text)) is None


class TestFlagUpdates:

    def test_mark_subtask_done_edits_one_line(self, sample_path):
        assert mark_subtask_done(sample_path, "2.2") is True
        text = sample_path.read_text()
        assert "  - [x] 2.2 Add unit tests" in text
        assert "- [ ] 2.0 Write normalized output" in text
        assert text == SAMPLE.replace("[ ] 2.2", "[x] 2.2")

    def test_mark_parent_done(self, sample_path):
        assert mark_parent_done(sample_path, "2.0") is True
        assert "- [x] 2.0 Write normalized output" in sample_path.read_text()

    def test_unknown_number(self, sample_path):
        assert mark_subtask_done(sample_path, "9.9") is False
        assert sample_path.read_text() == SAMPLE

    def test_hand_edits_preserved(self, sample_path):
        sample_path.write_text(SAMPLE + "\n<!-- reviewer: looks good -->\n")
        mark_subtask_done(sample_path, "2.2")
        assert "<!-- reviewer: looks good -->" in sample_path.read_text()


class TestAddRelevantFile:

    def test_appends_after_last_entry(self, sample_path):
        assert add_relevant_file(sample_path, "src/writer.py", "Output writer") is True
        doc = parse_tasklist(sample_path)
        assert [f.path for f in doc.relevant_files] == [
            "src/reformat.py", "tests/test_reformat.py", "src/writer.py",
        ]
        assert doc.relevant_files[2].note == "Output writer"

    def test_existing_entries_never_rewritten(self, sample_path):
        assert add_relevant_file(sample_path, "src/reformat.py", "different note") is False
        assert sample_path.read_text() == SAMPLE

    def test_first_entry_in_empty_index(self, tmp_path):
        path = tmp_path / "t.md"
        write_tasklist(TaskListDoc(feature="x", prd_file="p.md", notes=["n"],
                                   parents=[ParentTask("1.0", "A")]), path)
        add_relevant_file(path, "a.py")
        text = path.read_text()
        assert "## Relevant Files\n\n- `a.py`\n\n### Notes" in text
        assert parse_tasklist(path).relevant_files == [RelevantFile("a.py", "")]

    def test_rejects_backticks(self, sample_path):
        with pytest.raises(TaskListError, match="Invalid relevant file path"):
            add_relevant_file(sample_path, "a`b.py")

    def test_missing_section(self, tmp_path):
        path = tmp_path / "t.md"
        path.write_text("# Tasks: x\n\n## Tasks\n")
        with pytest.raises(TaskListError, match="no 'Relevant Files' section"):
            add_relevant_file(path, "a.py")
