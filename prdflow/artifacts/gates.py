"""
Classification gates.

Whether a feature has a user interface and whether it persists data are
human decisions recorded as answers to the two gate questions. Nothing here
infers them from prose.
"""

from prdflow.errors import WorkflowError
from prdflow.lib.constants import GATE_DECISIONS, GATE_STORAGE, GATE_UI, STORAGE_PERSISTENT, UI_INTERACTIVE
from prdflow.artifacts.questions import ClarifyingQuestionsDoc


class UndecidedGate(WorkflowError):
    """A gate question is missing or unanswered."""

    def __init__(self, feature: str, gate: str):
        self.gate = gate
        super().__init__(f"The '{gate}' decision for '{feature}' has not been recorded yet")


def recorded_decision(answers: ClarifyingQuestionsDoc, gate: str) -> str:
    """Return the decision value recorded for a gate.

    Raises:
        UndecidedGate: no gate question, unanswered, or an option without a decision
    """
    question = answers.gate_question(gate)
    decision = question.decision() if question else None
    if decision not in GATE_DECISIONS[gate]:
        raise UndecidedGate(answers.feature, gate)
    return decision


def has_user_interface(answers: ClarifyingQuestionsDoc) -> bool:
    """Drives whether mockup generation runs."""
    return recorded_decision(answers, GATE_UI) == UI_INTERACTIVE


def requires_persistence(answers: ClarifyingQuestionsDoc) -> bool:
    """Drives whether a type definitions document is produced."""
    return recorded_decision(answers, GATE_STORAGE) == STORAGE_PERSISTENT
