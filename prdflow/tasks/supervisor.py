"""
Task Execution Supervisor.

Works through a task list one sub-task at a time:

    prd run      -> start the next sub-task (ready -> working)
    prd done     -> mark it [x] and wait    (working -> awaiting_approval)
    prd approve  -> release the gate        (awaiting_approval -> ready)

When the approved sub-task was the last one of its parent, the verification
suite runs. On success, changes are staged, temporary artifacts removed, a
structured commit made, and only then is the parent marked [x]. On failure
the parent stays incomplete and the supervisor halts until the user asks
for `prd verify`.
"""

import json
import logging
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from prdflow import git, notifications
from prdflow.agents.claude import AgentError, run_agent
from prdflow.errors import WorkflowError
from prdflow.lib.agents_config import AgentsConfig
from prdflow.lib.config import ProjectConfig, update_meta
from prdflow.lib.prompts import render_prompt
from prdflow.lib.verify_parse import VerificationReport, parse_verification_output
from prdflow.tasks.commit_message import build_commit_message
from prdflow.tasks.generator import PHASE_SUBTASKS, load_meta, resolve_tasklist
from prdflow.tasks.tasklist import (
    ParentTask,
    SubTask,
    TaskListDoc,
    TaskListError,
    mark_parent_done,
    mark_subtask_done,
    next_subtask,
    parse_tasklist,
)
from prdflow.workflow.fsm import ExecutionFSM

logger = logging.getLogger(__name__)

LAST_VERIFICATION = "last_verification.json"
VERIFY_LOG = "verify.log"


class AwaitingApproval(WorkflowError):
    """The previous sub-task hasn't been approved yet."""

    def __init__(self, subtask: str):
        self.subtask = subtask
        super().__init__(f"Sub-task {subtask} is awaiting approval; run 'prd approve' first")


class VerificationFailed(WorkflowError):
    """Verification failed for a parent task; execution is halted."""

    def __init__(self, parent: str, report: VerificationReport):
        self.parent = parent
        self.report = report
        super().__init__(f"Verification failed for task {parent}: {report.summary}")


@dataclass
class ApprovalResult:
    subtask: SubTask
    parent: ParentTask
    parent_completed: bool = False
    commit_sha: str = ""
    report: Optional[VerificationReport] = None
    finished: bool = False  # Every task in the list is complete


class Supervisor:
    """Execution state for one expanded task list."""

    def __init__(self, config: ProjectConfig, tasklist_ref: str, agents: Optional[AgentsConfig] = None):
        self.config = config
        self.agents = agents
        self.path = resolve_tasklist(config, tasklist_ref)
        self.meta = load_meta(config, self.path)
        if self.meta.phase != PHASE_SUBTASKS:
            raise TaskListError(
                f"{self.path.name} has parent tasks only; reply 'Go' with 'prd tasks go' to generate sub-tasks"
            )
        self.fsm = ExecutionFSM(self.meta.dir)

    @property
    def repo(self) -> Path:
        return self.config.repo_path

    def doc(self) -> TaskListDoc:
        return parse_tasklist(self.path)

    def _set_meta(self, updates: dict[str, Optional[str]]) -> None:
        update_meta(self.meta.dir, updates)
        for key, value in updates.items():
            if key == "CURRENT_TASK":
                self.meta.current_task = value or ""
            elif key == "VERIFY_TASK":
                self.meta.verify_task = value or ""

    def _refuse_if_blocked(self) -> None:
        state = self.fsm.state
        if state == "awaiting_approval":
            raise AwaitingApproval(self.meta.current_task)
        if state == "verification_failed":
            report = self.last_report()
            raise VerificationFailed(self.meta.verify_task, report or VerificationReport("", 1, summary="see verify.log"))
        if state == "working":
            raise WorkflowError(f"Sub-task {self.meta.current_task} is in progress; mark it with 'prd done'")
        if state == "verifying":
            raise WorkflowError(f"Verification of task {self.meta.verify_task or '?'} was interrupted; run 'prd verify'")

    def start_next(self, execute: bool = False) -> Optional[tuple[ParentTask, SubTask]]:
        """Start the first incomplete sub-task. None when everything is done.

        With execute=True the sub-task prompt is handed to the 'execute' agent
        stage; its output doesn't change state, the human still runs 'prd done'.

        Raises:
            AwaitingApproval: the previous sub-task isn't approved
            VerificationFailed: a parent's verification failed and wasn't retried
        """
        if self.fsm.state == "done":
            return None
        self._refuse_if_blocked()

        doc = self.doc()
        for parent in doc.parents:
            if parent.subtasks_complete and not parent.done:
                raise WorkflowError(f"Task {parent.number} is complete but not verified; run 'prd verify'")

        found = next_subtask(doc)
        if found is None:
            self.fsm.finish()
            self._set_meta({"CURRENT_TASK": None})
            return None

        parent, sub = found
        self.fsm.start_subtask()
        self._set_meta({"CURRENT_TASK": sub.number})
        logger.info(f"[EXEC] {self.path.name}: started {sub.number} {sub.title}")

        if execute:
            self._execute(doc, parent, sub)
        return parent, sub

    def _execute(self, doc: TaskListDoc, parent: ParentTask, sub: SubTask) -> str:
        if self.agents is None:
            raise AgentError("No agent configuration loaded")
        prompt = render_prompt(
            "execute",
            tasklist_file=self.path.name,
            prd_file=doc.prd_file,
            parent=f"{parent.number} {parent.title}",
            subtask=f"{sub.number} {sub.title}",
            relevant_files="\n".join(f"- {f.path}" for f in doc.relevant_files) or "(none yet)",
        )
        ok, output = run_agent(self.agents, "execute", prompt, cwd=self.repo, timeout=self.config.verify_timeout)
        if not ok:
            raise AgentError(output)
        return output

    def complete_current(self) -> SubTask:
        """Mark the current sub-task [x] and block for approval."""
        if self.fsm.state != "working":
            raise WorkflowError(f"No sub-task in progress (state: {self.fsm.state}); start one with 'prd run'")
        number = self.meta.current_task
        _, sub = self.doc().find_subtask(number)
        if not mark_subtask_done(self.path, number):
            raise TaskListError(f"Could not mark sub-task {number} in {self.path.name}")
        self.fsm.complete_subtask()
        notifications.notify_awaiting_approval(self.path.name, number)
        sub.done = True
        return sub

    def approve(self) -> ApprovalResult:
        """Release the approval gate; completes the parent when it was the last sub-task.

        Raises:
            VerificationFailed: the parent's verification failed (state is halted)
        """
        if self.fsm.state != "awaiting_approval":
            raise WorkflowError(f"Nothing is awaiting approval (state: {self.fsm.state})")
        number = self.meta.current_task
        self.fsm.approve_subtask()
        self._set_meta({"CURRENT_TASK": None})

        parent, sub = self.doc().find_subtask(number)
        result = ApprovalResult(subtask=sub, parent=parent)
        logger.info(f"[EXEC] {self.path.name}: approved {number}")

        if parent.subtasks_complete and not parent.done:
            self.fsm.start_verification()
            result.report, result.commit_sha = self._verify_and_commit(parent)
            result.parent_completed = True

        if next_subtask(self.doc()) is None:
            self.fsm.finish()
            result.finished = True
        return result

    def retry_verification(self) -> tuple[ParentTask, VerificationReport, str]:
        """Re-run verification for a parent that failed or was interrupted. Explicit only."""
        state = self.fsm.state
        if state == "verification_failed":
            self.fsm.retry_verification()
            number = self.meta.verify_task
        elif state == "verifying":
            number = self.meta.verify_task
        elif state == "ready":
            pending = [p for p in self.doc().parents if p.subtasks_complete and not p.done]
            if not pending:
                raise WorkflowError("No completed parent task is waiting for verification")
            number = pending[0].number
            self.fsm.start_verification()
        else:
            raise WorkflowError(f"Cannot verify while {state}")

        parent = self.doc().parent(number)
        report, sha = self._verify_and_commit(parent)
        if next_subtask(self.doc()) is None:
            self.fsm.finish()
        return parent, report, sha

    def _verify_and_commit(self, parent: ParentTask) -> tuple[VerificationReport, str]:
        """Run from 'verifying'. Leaves 'ready' on success, 'verification_failed' otherwise."""
        self._set_meta({"VERIFY_TASK": parent.number})
        report = self.run_verification()
        self._save_report(report)

        if not report.passed:
            self.fsm.verification_failed()
            logger.warning(f"[EXEC] {self.path.name}: task {parent.number} halted: {report.summary}")
            notifications.notify_verification_failed(self.path.name, parent.number, report.summary)
            raise VerificationFailed(parent.number, report)

        sha = self.commit_parent(parent) if self.config.auto_commit else ""
        if not mark_parent_done(self.path, parent.number):
            raise TaskListError(f"Could not mark task {parent.number} in {self.path.name}")
        self.fsm.verification_passed()
        self._set_meta({"VERIFY_TASK": None})
        notifications.notify_parent_committed(self.path.name, parent.number)
        return report, sha

    def run_verification(self) -> VerificationReport:
        """Run the full verification suite in the repo."""
        command = self.config.verify_command
        cmd = shlex.split(command)
        logger.info(f"[EXEC] Running: {command}")
        start = time.time()
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.repo),
                capture_output=True,
                text=True,
                timeout=self.config.verify_timeout,
            )
        except subprocess.TimeoutExpired as e:
            stdout = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            return parse_verification_output(command, -1, stdout, "", timed_out=True)
        except FileNotFoundError:
            return parse_verification_output(command, 127, "", f"Command not found: {cmd[0]}")

        logger.info(f"[EXEC] Verification exit {result.returncode} in {time.time() - start:.1f}s")
        (self.meta.dir / VERIFY_LOG).write_text(
            f"=== STDOUT ===\n{result.stdout}\n\n=== STDERR ===\n{result.stderr}\n"
        )
        return parse_verification_output(command, result.returncode, result.stdout, result.stderr)

    def _save_report(self, report: VerificationReport) -> None:
        (self.meta.dir / LAST_VERIFICATION).write_text(json.dumps(report.to_dict(), indent=2))

    def last_report(self) -> Optional[VerificationReport]:
        path = self.meta.dir / LAST_VERIFICATION
        if not path.exists():
            return None
        try:
            return VerificationReport.from_dict(json.loads(path.read_text()))
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load {path}: {e}")
            return None

    def remove_temp_artifacts(self) -> list[str]:
        """Delete TEMP_ARTIFACTS matches from the working tree and the index."""
        matched: list[str] = []
        for pattern in self.config.temp_artifacts:
            for path in sorted(self.repo.glob(pattern)):
                rel = str(path.relative_to(self.repo))
                if rel.startswith(".git/") or rel in matched:
                    continue
                matched.append(rel)
        if not matched:
            return []

        result = git.unstage_paths(self.repo, matched)
        if not result.success:
            raise WorkflowError(f"Failed to unstage temporary files: {result.stderr.strip()}")
        for rel in matched:
            path = self.repo / rel
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        logger.info(f"[EXEC] Removed {len(matched)} temporary artifact(s): {', '.join(matched)}")
        return matched

    def commit_parent(self, parent: ParentTask) -> str:
        """Stage, drop temporary artifacts, commit. Returns the new HEAD sha."""
        staged = git.stage_all(self.repo)
        if not staged.success:
            raise WorkflowError(f"git add failed: {staged.stderr.strip()}")
        self.remove_temp_artifacts()

        if not git.get_staged_files(self.repo):
            logger.warning(f"[EXEC] Task {parent.number}: nothing to commit")
            return ""

        message = build_commit_message(parent, self.meta.prd_file, scope=self.doc().feature)
        result = git.commit(self.repo, message)
        if not result.success:
            raise WorkflowError(f"git commit failed: {result.stderr.strip() or result.stdout.strip()}")
        sha = git.get_head_sha(self.repo)
        logger.info(f"[EXEC] Committed task {parent.number}: {message[0]} ({sha[:8]})")
        return sha

    def status(self) -> dict:
        doc = self.doc()
        done, total = doc.counts()
        return {
            "tasklist": self.path.name,
            "prd": doc.prd_file,
            "state": self.fsm.state,
            "current": self.meta.current_task,
            "halted_on": self.meta.verify_task if self.fsm.state == "verification_failed" else "",
            "done": done,
            "total": total,
            "parents_done": sum(1 for p in doc.parents if p.done),
            "parents_total": len(doc.parents),
        }
