"""
prd status / prd list - Show feature progress.
"""

from prdflow import orchestrator
from prdflow.errors import FeatureNotFound
from prdflow.lib.config import list_features, load_feature_meta
from prdflow.lib.constants import EXIT_OK
from prdflow.workflow.state_machine import parse_state


def cmd_status(args, project_config) -> int:
    fdir = orchestrator.feature_dir(project_config, args.feature)
    if not (fdir / "meta.env").exists():
        raise FeatureNotFound(args.feature)
    meta = load_feature_meta(fdir)
    doc = orchestrator.load_answers(project_config, args.feature)

    print(f"Feature: {meta.name}")
    print(f"Status:  {meta.status}")
    print(f"Created: {meta.created}")
    print(f"Request: {doc.request}")
    answered = len(doc.questions) - len(doc.pending)
    print(f"Answers: {answered}/{len(doc.questions)}{' (locked)' if doc.locked else ''}")
    if meta.ui:
        print(f"UI:      {meta.ui}" + (f" (mockup {meta.mockup_choice})" if meta.mockup_choice else ""))
    if meta.storage:
        print(f"Storage: {meta.storage}")
    if meta.prd_file:
        print(f"PRD:     {meta.prd_file}")

    hint = orchestrator.next_step(meta.name, parse_state(meta.status))
    if hint:
        print()
        print(f"Next: {hint}")
    return EXIT_OK


def cmd_list(args, project_config) -> int:
    features = list_features(project_config)
    if not features:
        print("No features. Start one with: prd new <request>")
        return EXIT_OK

    print(f"{'FEATURE':<32} {'STATUS':<22} PRD")
    print("-" * 72)
    for meta in features:
        print(f"{meta.name:<32} {meta.status:<22} {meta.prd_file or '-'}")
    print()
    counter = orchestrator.sequence_counter(project_config)
    print(f"Next PRD number: {counter.peek():04d}")
    return EXIT_OK
