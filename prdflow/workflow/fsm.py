"""Feature and task-execution state machines using the transitions library.

Each machine persists its state as STATUS in a meta.env file, so every
human checkpoint is simply the end of one CLI invocation.

Usage:
    from prdflow.workflow.fsm import FeatureFSM

    fsm = FeatureFSM(feature_dir)
    fsm.draft_questions()  # requested -> questions_drafted
    fsm.answer_questions()  # -> questions_answered
"""

import logging
from pathlib import Path
from typing import Callable

from transitions import Machine

from prdflow.lib import envparse

logger = logging.getLogger(__name__)


FEATURE_STATES = [
    "requested",
    "questions_drafted",
    "questions_answered",
    "mockups_proposed",
    "mockup_selected",
    "mockups_omitted",
    "types_proposed",
    "types_approved",
    "types_omitted",
    "requirements_drafted",
    "requirements_saved",
]

# Forward-only. Each trigger becomes a method on the FSM.
FEATURE_TRANSITIONS = [
    {"trigger": "draft_questions", "source": "requested", "dest": "questions_drafted"},
    {"trigger": "answer_questions", "source": "questions_drafted", "dest": "questions_answered"},

    # UI gate
    {"trigger": "propose_mockups", "source": "questions_answered", "dest": "mockups_proposed"},
    {"trigger": "select_mockup", "source": "mockups_proposed", "dest": "mockup_selected"},
    {"trigger": "omit_mockups", "source": "questions_answered", "dest": "mockups_omitted"},

    # Storage gate
    {"trigger": "propose_types", "source": ["mockup_selected", "mockups_omitted"], "dest": "types_proposed"},
    {"trigger": "approve_types", "source": "types_proposed", "dest": "types_approved"},
    {"trigger": "omit_types", "source": ["mockup_selected", "mockups_omitted"], "dest": "types_omitted"},

    {"trigger": "draft_requirements", "source": ["types_approved", "types_omitted"], "dest": "requirements_drafted"},
    {"trigger": "save_requirements", "source": "requirements_drafted", "dest": "requirements_saved"},
]

FEATURE_TERMINAL_STATES = {"requirements_saved"}


EXECUTION_STATES = [
    "ready",
    "working",
    "awaiting_approval",
    "verifying",
    "verification_failed",
    "done",
]

EXECUTION_TRANSITIONS = [
    {"trigger": "start_subtask", "source": "ready", "dest": "working"},
    {"trigger": "complete_subtask", "source": "working", "dest": "awaiting_approval"},
    {"trigger": "approve_subtask", "source": "awaiting_approval", "dest": "ready"},

    # Parent completion
    {"trigger": "start_verification", "source": "ready", "dest": "verifying"},
    {"trigger": "verification_passed", "source": "verifying", "dest": "ready"},
    {"trigger": "verification_failed", "source": "verifying", "dest": "verification_failed"},
    # Only on explicit user request, never automatic
    {"trigger": "retry_verification", "source": "verification_failed", "dest": "verifying"},

    {"trigger": "finish", "source": "ready", "dest": "done"},
]


def _build_trigger_lookup(transitions: list[dict]) -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name. First trigger wins."""
    lookup: dict[tuple[str, str], str] = {}
    for t in transitions:
        sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
        for source in sources:
            lookup.setdefault((source, t["dest"]), t["trigger"])
    return lookup


FEATURE_TRIGGER_FOR = _build_trigger_lookup(FEATURE_TRANSITIONS)
EXECUTION_TRIGGER_FOR = _build_trigger_lookup(EXECUTION_TRANSITIONS)


class PersistentFSM:
    """State machine whose state lives in <meta_dir>/meta.env as STATUS.

    - Loads the initial state from meta.env
    - Persists every state change
    - Logs all transitions
    """

    STATES: list[str] = []
    TRANSITIONS: list[dict] = []
    INITIAL = ""
    LABEL = "FSM"

    def __init__(self, meta_dir: Path, on_transition: Callable[[str, str, str], None] | None = None):
        self.meta_dir = meta_dir
        self.name = meta_dir.name
        self.on_transition = on_transition

        initial = self._load_state()
        if initial not in self.STATES:
            logger.warning(f"[{self.LABEL}] {self.name}: Unknown state '{initial}', defaulting to '{self.INITIAL}'")
            initial = self.INITIAL

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def meta_path(self) -> Path:
        return self.meta_dir / "meta.env"

    def _load_state(self) -> str:
        if not self.meta_path.exists():
            return self.INITIAL
        return envparse.load_env(self.meta_path).get("STATUS", self.INITIAL)

    def _save_state(self) -> None:
        envparse.update_env(self.meta_path, {"STATUS": self.state})

    def on_state_change(self, event) -> None:
        """Persist and log after any transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[{self.LABEL}] {self.name}: {from_state} -> {to_state} ({trigger})")

        self._save_state()

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        return self.machine.get_triggers(self.state)


class FeatureFSM(PersistentFSM):
    """Per-feature authoring state: questions through saved PRD."""

    STATES = FEATURE_STATES
    TRANSITIONS = FEATURE_TRANSITIONS
    INITIAL = "requested"
    LABEL = "FSM"

    @property
    def is_terminal(self) -> bool:
        return self.state in FEATURE_TERMINAL_STATES


class ExecutionFSM(PersistentFSM):
    """Per-task-list execution state for the supervisor."""

    STATES = EXECUTION_STATES
    TRANSITIONS = EXECUTION_TRANSITIONS
    INITIAL = "ready"
    LABEL = "EXEC"
