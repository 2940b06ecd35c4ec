"""
prd draft / prd save - Assemble and number the requirements document.
"""

from prdflow import orchestrator
from prdflow.lib.constants import EXIT_OK


def cmd_draft(args, project_config) -> int:
    doc = orchestrator.draft_requirements(project_config, args.feature)
    draft = orchestrator.feature_dir(project_config, args.feature) / orchestrator.PRD_DRAFT
    print(f"Drafted PRD for '{doc.feature}' (ui: {doc.ui}, storage: {doc.storage})")
    print(f"  Draft: {draft}")
    print(f"  {len(doc.functional_requirements())} functional requirement(s)")
    print()
    print(f"Next: prd save {args.feature}")
    return EXIT_OK


def cmd_save(args, project_config) -> int:
    path = orchestrator.save_requirements(project_config, args.feature)
    print(f"Saved {path}")
    print()
    print(f"Next: prd tasks generate {path.name}")
    return EXIT_OK
