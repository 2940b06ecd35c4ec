"""Feature state facade over the FSM in fsm.py.

Provides:
- FeatureState enum for type safety
- transition() mapping a destination state to the FSM trigger
- Convenience functions for state queries

Usage:
    from prdflow.workflow.state_machine import transition, FeatureState

    transition(feature_dir, FeatureState.MOCKUPS_OMITTED, reason="headless")
"""

import logging
from enum import Enum
from pathlib import Path

from transitions import MachineError

from prdflow.errors import WorkflowError
from prdflow.workflow.fsm import FeatureFSM, FEATURE_TRIGGER_FOR

logger = logging.getLogger(__name__)


class FeatureState(Enum):
    """All feature states. Values match FSM state strings."""

    REQUESTED = "requested"
    QUESTIONS_DRAFTED = "questions_drafted"
    QUESTIONS_ANSWERED = "questions_answered"

    MOCKUPS_PROPOSED = "mockups_proposed"
    MOCKUP_SELECTED = "mockup_selected"
    MOCKUPS_OMITTED = "mockups_omitted"

    TYPES_PROPOSED = "types_proposed"
    TYPES_APPROVED = "types_approved"
    TYPES_OMITTED = "types_omitted"

    REQUIREMENTS_DRAFTED = "requirements_drafted"
    REQUIREMENTS_SAVED = "requirements_saved"


class InvalidTransition(WorkflowError):
    """Raised when attempting an invalid state transition."""

    def __init__(self, from_state: str, to_state: FeatureState, feature: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.feature = feature
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state.value}"
            + (f" (feature: {feature})" if feature else "")
        )


def parse_state(status_str: str | None) -> FeatureState | None:
    """Parse a status string into FeatureState. None if unknown."""
    if status_str is None:
        return None
    for state in FeatureState:
        if state.value == status_str:
            return state
    return None


def transition(feature_dir: Path, to_state: FeatureState, reason: str = "") -> None:
    """Transition a feature to a new state with validation.

    There is no force option: no step may be skipped and no state re-entered.

    Raises:
        InvalidTransition: If the transition is not allowed
    """
    feature = feature_dir.name
    reason_str = f" ({reason})" if reason else ""

    fsm = FeatureFSM(feature_dir)
    current_state = fsm.state

    trigger = FEATURE_TRIGGER_FOR.get((current_state, to_state.value))
    if trigger is None:
        raise InvalidTransition(current_state, to_state, feature)

    try:
        logger.info(f"[STATE] {feature}: {current_state} -> {to_state.value}{reason_str}")
        getattr(fsm, trigger)()
    except MachineError as e:
        raise InvalidTransition(current_state, to_state, feature) from e


def get_state(feature_dir: Path) -> FeatureState | None:
    """Get current feature state, None if unknown."""
    return parse_state(FeatureFSM(feature_dir).state)


def can_transition(feature_dir: Path, to_state: FeatureState) -> bool:
    """Check if a transition to the given state is valid."""
    current_state = FeatureFSM(feature_dir).state
    return (current_state, to_state.value) in FEATURE_TRIGGER_FOR


def require_state(feature_dir: Path, *allowed: FeatureState, action: str = "") -> FeatureState:
    """Return the current state, or raise WorkflowError if it isn't one of allowed."""
    current = get_state(feature_dir)
    if current not in allowed:
        expected = ", ".join(s.value for s in allowed)
        what = f" to {action}" if action else ""
        raise WorkflowError(
            f"Feature '{feature_dir.name}' is {current.value if current else 'unknown'}; "
            f"needs to be {expected}{what}"
        )
    return current
