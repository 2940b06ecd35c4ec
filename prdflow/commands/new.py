"""
prd new - Start a feature from a one-line request.

Writes <feature>-questions.md; nothing else is produced before it exists.
"""

from prdflow import orchestrator
from prdflow.commands.common import agents_for
from prdflow.lib.constants import EXIT_OK
from prdflow.lib.naming import questions_filename


def cmd_new(args, project_config) -> int:
    """Create the clarifying questions for a feature request."""
    request = " ".join(args.request)
    agents = agents_for(args.draft, project_config, "clarify")

    doc = orchestrator.intake(project_config, request, feature=args.name, agents=agents)

    print(f"Feature '{doc.feature}' started")
    print(f"  Questions: {project_config.output_dir / questions_filename(doc.feature)}")
    print(f"  {len(doc.questions)} questions to answer")
    print()
    print(f"Next: prd questions show {doc.feature}")
    return EXIT_OK
