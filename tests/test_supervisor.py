"""Tests for the task execution supervisor."""

from unittest.mock import MagicMock, patch
import subprocess

import pytest

from prdflow.agents.claude import AgentError
from prdflow.errors import WorkflowError
from prdflow.git.runner import GitResult
from prdflow.lib.agents_config import AgentsConfig
from prdflow.tasks.generator import expand, generate_parent_tasks
from prdflow.tasks.supervisor import AwaitingApproval, Supervisor, VerificationFailed
from prdflow.tasks.tasklist import TaskListError, parse_tasklist

PASSED = MagicMock(returncode=0, stdout="======== 6 passed in 0.12s ========\n", stderr="")
FAILED = MagicMock(
    returncode=1,
    stdout="FAILED tests/test_parse.py::test_blank_line - AssertionError: assert None\n"
           "======== 1 failed, 5 passed in 0.12s ========\n",
    stderr="",
)


@pytest.fixture(autouse=True)
def no_repo_files():
    with patch("prdflow.tasks.inspect.git.list_tracked_files", return_value=[]):
        yield


@pytest.fixture
def mock_git():
    with patch("prdflow.tasks.supervisor.git") as mock_git:
        mock_git.stage_all.return_value = GitResult(0, "", "")
        mock_git.unstage_paths.return_value = GitResult(0, "", "")
        mock_git.get_staged_files.return_value = ["src/parse.py"]
        mock_git.commit.return_value = GitResult(0, "", "")
        mock_git.get_head_sha.return_value = "abc1234def"
        yield mock_git


@pytest.fixture
def mock_verify():
    with patch("prdflow.tasks.supervisor.subprocess.run", return_value=PASSED) as mock_run:
        yield mock_run


@pytest.fixture
def tasklist(project, make_prd):
    make_prd(1, "log-reformatter")
    generate_parent_tasks(project, "0001")
    path, _ = expand(project, "0001", "Go")
    return path


def work_through(sup, count):
    """Start, complete and approve `count` sub-tasks; returns the last approval."""
    result = None
    for _ in range(count):
        sup.start_next()
        sup.complete_current()
        result = sup.approve()
    return result


class TestConstruction:

    def test_parent_phase_refused(self, project, make_prd):
        make_prd(1, "log-reformatter")
        generate_parent_tasks(project, "0001")
        with pytest.raises(TaskListError, match="reply 'Go'"):
            Supervisor(project, "0001")


class TestSubtaskGate:

    def test_one_subtask_at_a_time(self, project, tasklist):
        sup = Supervisor(project, "0001")
        parent, sub = sup.start_next()
        assert (parent.number, sub.number) == ("1.0", "1.1")
        assert sup.fsm.state == "working"
        with pytest.raises(WorkflowError, match="in progress"):
            sup.start_next()

    def test_done_marks_and_blocks(self, project, tasklist, no_notifications):
        sup = Supervisor(project, "0001")
        sup.start_next()
        sub = sup.complete_current()
        assert sub.number == "1.1" and sub.done
        assert "  - [x] 1.1 " in tasklist.read_text()
        assert "Sub-task 1.1 complete" in no_notifications.call_args[0][1]

        # A fresh invocation sees the gate
        with pytest.raises(AwaitingApproval) as exc_info:
            Supervisor(project, "0001").start_next()
        assert exc_info.value.subtask == "1.1"

    def test_approve_releases_gate(self, project, tasklist):
        sup = Supervisor(project, "0001")
        sup.start_next()
        sup.complete_current()
        result = Supervisor(project, "0001").approve()
        assert result.subtask.number == "1.1"
        assert not result.parent_completed
        _, sub = Supervisor(project, "0001").start_next()
        assert sub.number == "1.2"

    def test_done_without_running(self, project, tasklist):
        with pytest.raises(WorkflowError, match="No sub-task in progress"):
            Supervisor(project, "0001").complete_current()

    def test_approve_without_completion(self, project, tasklist):
        sup = Supervisor(project, "0001")
        sup.start_next()
        with pytest.raises(WorkflowError, match="Nothing is awaiting approval"):
            sup.approve()


class TestParentCompletion:

    def test_verified_commit_then_parent_marked(self, project, tasklist, mock_git, mock_verify):
        sup = Supervisor(project, "0001")
        result = work_through(sup, 3)

        assert result.parent_completed
        assert result.commit_sha == "abc1234def"
        assert result.report.passed
        mock_verify.assert_called_once()
        assert mock_verify.call_args[0][0] == ["pytest", "-q"]

        paragraphs = mock_git.commit.call_args[0][1]
        assert paragraphs[0].startswith("feat(log-reformatter): ")
        assert paragraphs[1].count("\n") == 2
        assert paragraphs[-1] == "Related to Task 1.0 in 0001-prd-log-reformatter.md"

        doc = parse_tasklist(tasklist)
        assert doc.parents[0].done
        assert not doc.parents[1].done
        assert sup.fsm.state == "ready"
        assert (sup.meta.dir / "verify.log").exists()

    def test_failure_halts_without_marking_parent(self, project, tasklist, mock_git, mock_verify, no_notifications):
        mock_verify.return_value = FAILED
        sup = Supervisor(project, "0001")
        work_through(sup, 2)
        sup.start_next()
        sup.complete_current()
        with pytest.raises(VerificationFailed) as exc_info:
            sup.approve()

        report = exc_info.value.report
        assert report.failures[0].name == "test_blank_line"
        assert exc_info.value.parent == "1.0"
        mock_git.commit.assert_not_called()
        assert not parse_tasklist(tasklist).parents[0].done
        assert no_notifications.call_args[0][2] == "critical"

        fresh = Supervisor(project, "0001")
        assert fresh.fsm.state == "verification_failed"
        assert fresh.last_report().summary == "1 failed, 5 passed in 0.12s"
        assert fresh.status()["halted_on"] == "1.0"

    def test_no_automatic_retry(self, project, tasklist, mock_git, mock_verify):
        mock_verify.return_value = FAILED
        sup = Supervisor(project, "0001")
        with pytest.raises(VerificationFailed):
            work_through(sup, 3)

        with pytest.raises(VerificationFailed):
            Supervisor(project, "0001").start_next()
        assert mock_verify.call_count == 1

    def test_explicit_retry_after_fix(self, project, tasklist, mock_git, mock_verify):
        mock_verify.return_value = FAILED
        with pytest.raises(VerificationFailed):
            work_through(Supervisor(project, "0001"), 3)

        mock_verify.return_value = PASSED
        sup = Supervisor(project, "0001")
        parent, report, sha = sup.retry_verification()
        assert parent.number == "1.0"
        assert report.passed
        assert sha == "abc1234def"
        assert parse_tasklist(tasklist).parents[0].done
        assert sup.fsm.state == "ready"
        assert Supervisor(project, "0001").meta.verify_task == ""

    def test_retry_with_nothing_pending(self, project, tasklist):
        with pytest.raises(WorkflowError, match="No completed parent task"):
            Supervisor(project, "0001").retry_verification()

    def test_hand_completed_parent_must_be_verified(self, project, tasklist):
        tasklist.write_text(tasklist.read_text()
                            .replace("[ ] 1.1", "[x] 1.1")
                            .replace("[ ] 1.2", "[x] 1.2")
                            .replace("[ ] 1.3", "[x] 1.3"))
        with pytest.raises(WorkflowError, match="complete but not verified"):
            Supervisor(project, "0001").start_next()

    def test_finishes_after_last_parent(self, project, tasklist, mock_git, mock_verify):
        sup = Supervisor(project, "0001")
        result = work_through(sup, 6)
        assert result.finished
        assert sup.fsm.state == "done"
        assert sup.start_next() is None
        assert mock_git.commit.call_count == 2
        assert sup.status()["parents_done"] == 2

    def test_auto_commit_disabled(self, project, tasklist, mock_git, mock_verify):
        project.auto_commit = False
        result = work_through(Supervisor(project, "0001"), 3)
        assert result.commit_sha == ""
        mock_git.stage_all.assert_not_called()
        assert parse_tasklist(tasklist).parents[0].done


class TestCommitParent:

    def test_temp_artifacts_removed_from_tree_and_index(self, project, tasklist, mock_git):
        project.temp_artifacts = ["*.orig", "scratch"]
        (project.repo_path / "parse.py.orig").write_text("old")
        (project.repo_path / "scratch").mkdir()
        (project.repo_path / "scratch" / "notes.txt").write_text("x")

        sup = Supervisor(project, "0001")
        removed = sup.remove_temp_artifacts()
        assert removed == ["parse.py.orig", "scratch"]
        assert not (project.repo_path / "parse.py.orig").exists()
        assert not (project.repo_path / "scratch").exists()
        mock_git.unstage_paths.assert_called_once_with(project.repo_path, removed)

    def test_nothing_staged(self, project, tasklist, mock_git):
        mock_git.get_staged_files.return_value = []
        sup = Supervisor(project, "0001")
        assert sup.commit_parent(sup.doc().parents[0]) == ""
        mock_git.commit.assert_not_called()

    def test_commit_failure(self, project, tasklist, mock_git):
        mock_git.commit.return_value = GitResult(1, "", "nothing added")
        sup = Supervisor(project, "0001")
        with pytest.raises(WorkflowError, match="git commit failed: nothing added"):
            sup.commit_parent(sup.doc().parents[0])


class TestRunVerification:

    @patch("prdflow.tasks.supervisor.subprocess.run")
    def test_timeout(self, mock_run, project, tasklist):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="pytest", timeout=60, output=b"partial")
        report = Supervisor(project, "0001").run_verification()
        assert report.timed_out
        assert not report.passed
        assert "partial" in report.raw_output

    @patch("prdflow.tasks.supervisor.subprocess.run", side_effect=FileNotFoundError)
    def test_command_missing(self, mock_run, project, tasklist):
        report = Supervisor(project, "0001").run_verification()
        assert report.returncode == 127
        assert "Command not found: pytest" in report.raw_output


class TestExecute:

    @patch("prdflow.tasks.supervisor.run_agent", return_value=(True, "done"))
    def test_hands_subtask_to_agent(self, mock_agent, project, tasklist):
        sup = Supervisor(project, "0001", agents=AgentsConfig())
        sup.start_next(execute=True)
        stage, prompt = mock_agent.call_args[0][1], mock_agent.call_args[0][2]
        assert stage == "execute"
        assert "Sub-task: 1.1 Implement the change" in prompt
        assert sup.fsm.state == "working"

    @patch("prdflow.tasks.supervisor.run_agent", return_value=(False, "Agent CLI not found: claude"))
    def test_agent_failure(self, mock_agent, project, tasklist):
        sup = Supervisor(project, "0001", agents=AgentsConfig())
        with pytest.raises(AgentError, match="not found"):
            sup.start_next(execute=True)
