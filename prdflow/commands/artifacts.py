"""
prd mockups / prd types - Resolve the optional artifacts.

Each command either proposes its artifact or, when the recorded decision
says it isn't needed, records that it was omitted.
"""

from pathlib import Path

from prdflow import orchestrator
from prdflow.artifacts.types_doc import load_declarations_file
from prdflow.commands.common import agents_for
from prdflow.lib.constants import EXIT_ERROR, EXIT_OK
from prdflow.lib.naming import mockups_filename, types_filename
from prdflow.workflow.state_machine import get_state


def _print_next(project_config, feature: str) -> None:
    state = get_state(orchestrator.feature_dir(project_config, feature))
    print(f"Next: {orchestrator.next_step(feature, state)}")


def cmd_mockups(args, project_config) -> int:
    if args.select:
        option = orchestrator.select_mockup(project_config, args.feature, args.select)
        print(f"Selected mockup {option.letter}: {option.title}")
        _print_next(project_config, args.feature)
        return EXIT_OK

    agents = agents_for(args.draft, project_config, "mockups")
    options = orchestrator.resolve_mockups(project_config, args.feature, agents=agents)
    if not options:
        print(f"'{args.feature}' is headless: UI mockups omitted")
    else:
        print(f"Proposed {len(options)} mockups: {project_config.output_dir / mockups_filename(args.feature)}")
        for option in options:
            print(f"  {option.letter}) {option.title} - {option.summary}")
    _print_next(project_config, args.feature)
    return EXIT_OK


def cmd_types(args, project_config) -> int:
    if args.approve:
        if args.from_file:
            print("ERROR: --approve and --from cannot be combined")
            return EXIT_ERROR
        types = orchestrator.approve_types(project_config, args.feature)
        print(f"Approved {len(types.declarations)} type definition(s)")
        _print_next(project_config, args.feature)
        return EXIT_OK

    declarations = load_declarations_file(Path(args.from_file)) if args.from_file else None
    agents = agents_for(args.draft, project_config, "types")
    types = orchestrator.resolve_types(project_config, args.feature, declarations=declarations, agents=agents)
    if types is None:
        print(f"'{args.feature}' stores no data: type definitions omitted")
    else:
        print(f"Proposed types: {project_config.output_dir / types_filename(args.feature)}")
        for decl in types.declarations:
            print(f"  {decl.kind:<10} {decl.name}")
        print()
        print("Review the file, then approve it (or re-run with a new --from file).")
    _print_next(project_config, args.feature)
    return EXIT_OK
