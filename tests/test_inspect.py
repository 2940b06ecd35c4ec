"""Tests for codebase inspection."""

from pathlib import Path
from unittest.mock import patch

from prdflow.artifacts.prd import RequirementsDoc
from prdflow.tasks.inspect import extract_keywords, find_relevant_files


def make_prd(feature="log-reformatter", requirements=None):
    reqs = requirements or ["The system must parse log lines", "The system must write formatted output"]
    return RequirementsDoc(
        feature=feature,
        title="x",
        ui="headless",
        storage="none",
        sections={"functional_requirements": "\n".join(f"{i}. {r}" for i, r in enumerate(reqs, 1))},
    )


class TestExtractKeywords:

    def test_feature_name_first_then_requirements(self):
        assert extract_keywords(make_prd()) == [
            "log", "reformatter", "parse", "lines", "write", "formatted", "output",
        ]

    def test_short_and_filler_words_dropped(self):
        keywords = extract_keywords(make_prd(feature="ui", requirements=["The user must be able to go"]))
        assert keywords == []


class TestFindRelevantFiles:

    @patch("prdflow.tasks.inspect.git.list_tracked_files")
    def test_ranked_by_hits(self, mock_files):
        mock_files.return_value = [
            "README.md",
            "src/log_parser.py",
            "src/log_lines_writer.py",
            "tests/test_log_parser.py",
        ]
        files = find_relevant_files(Path("/repo"), make_prd())
        assert [f.path for f in files] == [
            "src/log_lines_writer.py",
            "src/log_parser.py",
            "tests/test_log_parser.py",
        ]
        assert files[0].note == "Matches: log, lines, write"
        assert files[2].note.startswith("Tests: ")

    @patch("prdflow.tasks.inspect.git.list_tracked_files")
    def test_limit(self, mock_files):
        mock_files.return_value = [f"src/log_{i}.py" for i in range(30)]
        assert len(find_relevant_files(Path("/repo"), make_prd(), limit=5)) == 5

    @patch("prdflow.tasks.inspect.git.list_tracked_files", return_value=[])
    def test_not_a_repo(self, mock_files, caplog):
        assert find_relevant_files(Path("/repo"), make_prd()) == []
        assert "No files to inspect" in caplog.text
