"""
prd tasks - Generate and inspect task lists.

  prd tasks generate <prd>     Phase 1: parent tasks only
  prd tasks go <tasklist> Go   Phase 2: sub-tasks, only after the literal "Go"
  prd tasks show <tasklist>
  prd tasks files add <tasklist> <path> [note]
"""

from prdflow.commands.common import agents_for
from prdflow.lib.constants import EXIT_OK, GO_TOKEN, TASK_ZERO_OMITTED_MARKER
from prdflow.tasks import generator
from prdflow.tasks.tasklist import parse_tasklist


def cmd_tasks_generate(args, project_config) -> int:
    agents = agents_for(args.draft, project_config, "parent_tasks")
    path, doc = generator.generate_parent_tasks(project_config, args.prd, agents=agents)

    print(f"Wrote {path}")
    print()
    for parent in doc.parents:
        print(f"  {parent.number} {parent.title}")
    print()
    print(f"Relevant files: {len(doc.relevant_files)}")
    print()
    print(f"I have generated the high-level tasks based on the PRD. "
          f"Ready to generate the sub-tasks? Respond with '{GO_TOKEN}' to proceed.")
    print(f"  prd tasks go {path.name} {GO_TOKEN}")
    return EXIT_OK


def cmd_tasks_go(args, project_config) -> int:
    reply = " ".join(args.reply)
    agents = agents_for(args.draft, project_config, "sub_tasks")
    path, doc = generator.expand(project_config, args.tasklist, reply, agents=agents)

    _, total = doc.counts()
    print(f"Generated {total} sub-task(s) in {path.name}")
    if doc.task_zero_omitted:
        print(f"  {TASK_ZERO_OMITTED_MARKER}")
    print()
    print(f"Next: prd run {path.name}")
    return EXIT_OK


def cmd_tasks_show(args, project_config) -> int:
    path = generator.resolve_tasklist(project_config, args.tasklist)
    meta = generator.load_meta(project_config, path)
    doc = parse_tasklist(path)
    done, total = doc.counts()

    print(f"Task list: {path.name}")
    print(f"PRD:       {doc.prd_file}")
    print(f"Phase:     {meta.phase}")
    if total:
        print(f"Progress:  {done}/{total} sub-tasks")
    print()
    if doc.task_zero_omitted:
        print(TASK_ZERO_OMITTED_MARKER)
    for parent in doc.parents:
        print(f"[{'x' if parent.done else ' '}] {parent.number} {parent.title}")
        for sub in parent.subtasks:
            current = "  <-" if sub.number == meta.current_task else ""
            print(f"    [{'x' if sub.done else ' '}] {sub.number} {sub.title}{current}")
    if doc.relevant_files:
        print()
        print("Relevant files:")
        for f in doc.relevant_files:
            print(f"  {f.path}" + (f" - {f.note}" if f.note else ""))
    return EXIT_OK


def cmd_tasks_files_add(args, project_config) -> int:
    note = " ".join(args.note)
    if generator.add_file(project_config, args.tasklist, args.path, note):
        print(f"Added {args.path}")
    else:
        print(f"{args.path} is already listed")
    return EXIT_OK
