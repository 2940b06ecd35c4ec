"""
prd run / done / approve / verify - Supervised task execution.
"""

from prdflow.commands.common import agents_for
from prdflow.lib.constants import EXIT_OK
from prdflow.lib.verify_parse import format_report
from prdflow.tasks.supervisor import Supervisor


def _supervisor(args, project_config) -> Supervisor:
    agents = agents_for(getattr(args, "execute", False), project_config, "execute")
    return Supervisor(project_config, args.tasklist, agents=agents)


def cmd_run(args, project_config) -> int:
    sup = _supervisor(args, project_config)
    started = sup.start_next(execute=args.execute)
    if started is None:
        print(f"All tasks in {sup.path.name} are complete.")
        return EXIT_OK

    parent, sub = started
    print(f"Task {parent.number}: {parent.title}")
    print(f"Working on {sub.number}: {sub.title}")
    print()
    print(f"When finished: prd done {sup.path.name}")
    return EXIT_OK


def cmd_done(args, project_config) -> int:
    sup = _supervisor(args, project_config)
    sub = sup.complete_current()
    print(f"[x] {sub.number} {sub.title}")
    print()
    print(f"Awaiting approval. Review the change, then: prd approve {sup.path.name}")
    return EXIT_OK


def _print_parent_completed(parent, report, sha: str) -> None:
    print()
    print(f"Task {parent.number} complete: {report.summary}")
    if sha:
        print(f"  Committed {sha[:12]}")


def cmd_approve(args, project_config) -> int:
    sup = _supervisor(args, project_config)
    result = sup.approve()
    print(f"Approved {result.subtask.number} {result.subtask.title}")
    if result.parent_completed:
        _print_parent_completed(result.parent, result.report, result.commit_sha)
    if result.finished:
        print()
        print(f"All tasks in {sup.path.name} are complete.")
    else:
        print()
        print(f"Next: prd run {sup.path.name}")
    return EXIT_OK


def cmd_verify(args, project_config) -> int:
    """Re-run verification on explicit request after a failure."""
    sup = _supervisor(args, project_config)
    parent, report, sha = sup.retry_verification()
    _print_parent_completed(parent, report, sha)
    return EXIT_OK


def cmd_exec_status(args, project_config) -> int:
    sup = _supervisor(args, project_config)
    status = sup.status()
    print(f"Task list: {status['tasklist']}")
    print(f"State:     {status['state']}")
    if status["current"]:
        print(f"Current:   {status['current']}")
    print(f"Sub-tasks: {status['done']}/{status['total']}")
    print(f"Parents:   {status['parents_done']}/{status['parents_total']}")
    if status["halted_on"]:
        report = sup.last_report()
        print()
        print(f"Halted on task {status['halted_on']}:")
        if report:
            print(format_report(report))
        print()
        print(f"Fix the failure, then: prd verify {status['tasklist']}")
    return EXIT_OK
