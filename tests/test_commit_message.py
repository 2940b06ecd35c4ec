"""Tests for structured commit messages."""

import pytest

from prdflow.tasks.commit_message import build_commit_message, build_subject, commit_type
from prdflow.tasks.tasklist import ParentTask, SubTask


class TestCommitType:

    @pytest.mark.parametrize("title,expected", [
        ("Implement: Parse raw log lines", "feat"),
        ("Fix timestamp parsing for UTC offsets", "fix"),
        ("Add tests for the writer", "test"),
        ("Update README usage section", "docs"),
        ("Refactor the line parser", "refactor"),
        ("Review and approve type definitions", "chore"),
    ])
    def test_keywords(self, title, expected):
        assert commit_type(title) == expected


class TestBuildSubject:

    def test_scope_and_lowercased_description(self):
        parent = ParentTask("1.0", "Implement: The system must read a log file.")
        assert build_subject(parent, "log-reformatter") == \
            "feat(log-reformatter): the system must read a log file"

    def test_no_scope(self):
        assert build_subject(ParentTask("1.0", "Parse lines")) == "feat: parse lines"

    def test_truncated(self):
        subject = build_subject(ParentTask("1.0", "Parse " + "very " * 30 + "long lines"), "x")
        assert len(subject) <= 72
        assert subject.endswith("...")


class TestBuildCommitMessage:

    def test_paragraphs(self):
        parent = ParentTask("2.0", "Write normalized output", subtasks=[
            SubTask("2.1", "Implement the writer"),
            SubTask("2.2", "Add unit tests"),
        ])
        message = build_commit_message(parent, "0001-prd-log-reformatter.md", "log-reformatter")
        assert message == [
            "feat(log-reformatter): write normalized output",
            "- Implement the writer\n- Add unit tests",
            "Related to Task 2.0 in 0001-prd-log-reformatter.md",
        ]

    def test_without_subtasks(self):
        message = build_commit_message(ParentTask("1.0", "Parse"), "0001-prd-x.md")
        assert message == ["feat: parse", "Related to Task 1.0 in 0001-prd-x.md"]
