#!/usr/bin/env python3
"""prd CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from prdflow.errors import WorkflowError
from prdflow.lib.config import load_project_config
from prdflow.lib.constants import EXIT_ERROR, EXIT_FAILED
from prdflow.lib.locking import LockTimeout
from prdflow.lib.naming import InvalidFeatureName
from prdflow.lib.prompts import PromptError
from prdflow.lib.validate import ValidationError
from prdflow.lib.verify_parse import format_report
from prdflow.tasks.supervisor import VerificationFailed
from prdflow.commands import new as cmd_new_module
from prdflow.commands import answer as cmd_answer_module
from prdflow.commands import artifacts as cmd_artifacts_module
from prdflow.commands import prd as cmd_prd_module
from prdflow.commands import status as cmd_status_module
from prdflow.commands import tasks as cmd_tasks_module
from prdflow.commands import execute as cmd_execute_module

logger = logging.getLogger(__name__)


def get_project_config(args):
    """Load prdflow.env from --root (default: current directory)."""
    return load_project_config(Path(args.root) if args.root else Path.cwd())


def _dispatch(func, args) -> int:
    project_config = get_project_config(args)
    try:
        return func(args, project_config)
    except VerificationFailed as e:
        print(f"ERROR: {e}")
        print()
        print(format_report(e.report))
        print()
        print("Execution is halted. Fix the failure, then run 'prd verify'.")
        return EXIT_FAILED
    except (WorkflowError, ValidationError, InvalidFeatureName, PromptError, LockTimeout) as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR


def _add_tasklist_arg(parser):
    parser.add_argument('tasklist', help='Task list file, PRD number (0001) or feature name')


def main():
    parser = argparse.ArgumentParser(prog='prd', description='PRD authoring workflow')
    parser.add_argument('--root', '-C', help='Project root containing prdflow.env (default: cwd)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # prd new
    p_new = subparsers.add_parser('new', help='Start a feature: write its clarifying questions')
    p_new.add_argument('request', nargs='+', help='Feature request, e.g. "I need a CLI that reformats log files"')
    p_new.add_argument('--name', '-n', help='Feature name (kebab-case, derived from the request if omitted)')
    p_new.add_argument('--draft', action='store_true', help='Draft questions with the clarify agent')
    p_new.set_defaults(func=cmd_new_module.cmd_new)

    # prd questions show
    p_questions = subparsers.add_parser('questions', help='Clarifying questions')
    q_sub = p_questions.add_subparsers(dest='questions_command', required=True)
    p_q_show = q_sub.add_parser('show', help='Show questions and answers')
    p_q_show.add_argument('feature')
    p_q_show.set_defaults(func=cmd_answer_module.cmd_questions_show)

    # prd answer
    p_answer = subparsers.add_parser('answer', help='Answer one clarifying question')
    p_answer.add_argument('feature')
    p_answer.add_argument('question', help='Question ID (Q3) or number (3)')
    p_answer.add_argument('choice', nargs='+', help="Letter (B), letter with detail ('D: weekly'), or free text")
    p_answer.set_defaults(func=cmd_answer_module.cmd_answer)

    # prd mockups
    p_mockups = subparsers.add_parser('mockups', help='Propose three UI mockups, or record them as omitted')
    p_mockups.add_argument('feature')
    p_mockups.add_argument('--select', '-s', metavar='LETTER', help='Select option A, B or C')
    p_mockups.add_argument('--draft', action='store_true', help='Draft mockups with the mockups agent')
    p_mockups.set_defaults(func=cmd_artifacts_module.cmd_mockups)

    # prd types
    p_types = subparsers.add_parser('types', help='Propose type definitions, or record them as omitted')
    p_types.add_argument('feature')
    p_types.add_argument('--from', dest='from_file', metavar='FILE', help='YAML file with type declarations')
    p_types.add_argument('--draft', action='store_true', help='Draft declarations with the types agent')
    p_types.add_argument('--approve', action='store_true', help='Approve the proposed types')
    p_types.set_defaults(func=cmd_artifacts_module.cmd_types)

    # prd draft / save
    p_draft = subparsers.add_parser('draft', help='Assemble the PRD draft')
    p_draft.add_argument('feature')
    p_draft.set_defaults(func=cmd_prd_module.cmd_draft)

    p_save = subparsers.add_parser('save', help='Number and save the PRD')
    p_save.add_argument('feature')
    p_save.set_defaults(func=cmd_prd_module.cmd_save)

    # prd status / list
    p_status = subparsers.add_parser('status', help='Show feature status')
    p_status.add_argument('feature')
    p_status.set_defaults(func=cmd_status_module.cmd_status)

    p_list = subparsers.add_parser('list', help='List features')
    p_list.set_defaults(func=cmd_status_module.cmd_list)

    # prd tasks ...
    p_tasks = subparsers.add_parser('tasks', help='Task lists')
    t_sub = p_tasks.add_subparsers(dest='tasks_command', required=True)

    p_t_gen = t_sub.add_parser('generate', help='Phase 1: parent tasks from a saved PRD')
    p_t_gen.add_argument('prd', help='PRD file, number (0001) or feature name')
    p_t_gen.add_argument('--draft', action='store_true', help='Draft parent tasks with the parent_tasks agent')
    p_t_gen.set_defaults(func=cmd_tasks_module.cmd_tasks_generate)

    p_t_go = t_sub.add_parser('go', help="Phase 2: sub-tasks, after replying 'Go'")
    _add_tasklist_arg(p_t_go)
    p_t_go.add_argument('reply', nargs='*', help="Must be exactly 'Go'")
    p_t_go.add_argument('--draft', action='store_true', help='Draft sub-tasks with the sub_tasks agent')
    p_t_go.set_defaults(func=cmd_tasks_module.cmd_tasks_go)

    p_t_show = t_sub.add_parser('show', help='Show a task list')
    _add_tasklist_arg(p_t_show)
    p_t_show.set_defaults(func=cmd_tasks_module.cmd_tasks_show)

    p_t_status = t_sub.add_parser('status', help='Show execution state')
    _add_tasklist_arg(p_t_status)
    p_t_status.set_defaults(func=cmd_execute_module.cmd_exec_status)

    p_t_files = t_sub.add_parser('files', help='Relevant Files index')
    f_sub = p_t_files.add_subparsers(dest='files_command', required=True)
    p_f_add = f_sub.add_parser('add', help='Append a file to the index')
    _add_tasklist_arg(p_f_add)
    p_f_add.add_argument('path')
    p_f_add.add_argument('note', nargs='*', help='Why the file matters')
    p_f_add.set_defaults(func=cmd_tasks_module.cmd_tasks_files_add)

    # prd run / done / approve / verify
    p_run = subparsers.add_parser('run', help='Start the next sub-task')
    _add_tasklist_arg(p_run)
    p_run.add_argument('--execute', action='store_true', help='Hand the sub-task to the execute agent')
    p_run.set_defaults(func=cmd_execute_module.cmd_run)

    p_done = subparsers.add_parser('done', help='Mark the current sub-task complete and wait for approval')
    _add_tasklist_arg(p_done)
    p_done.set_defaults(func=cmd_execute_module.cmd_done)

    p_approve = subparsers.add_parser('approve', help='Approve the completed sub-task')
    _add_tasklist_arg(p_approve)
    p_approve.set_defaults(func=cmd_execute_module.cmd_approve)

    p_verify = subparsers.add_parser('verify', help='Re-run verification for a halted parent task')
    _add_tasklist_arg(p_verify)
    p_verify.set_defaults(func=cmd_execute_module.cmd_verify)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    return _dispatch(args.func, args)


if __name__ == '__main__':
    sys.exit(main())
