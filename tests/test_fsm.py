"""Tests for prdflow.workflow.fsm module."""

import pytest
from transitions import MachineError

from prdflow.workflow.fsm import (
    FeatureFSM,
    ExecutionFSM,
    FEATURE_STATES,
    FEATURE_TRANSITIONS,
    FEATURE_TRIGGER_FOR,
    EXECUTION_STATES,
    EXECUTION_TRIGGER_FOR,
)


class TestFSMStates:
    """Tests for FSM state definitions."""

    def test_feature_states_defined(self):
        expected = [
            "requested", "questions_drafted", "questions_answered",
            "mockups_proposed", "mockup_selected", "mockups_omitted",
            "types_proposed", "types_approved", "types_omitted",
            "requirements_drafted", "requirements_saved",
        ]
        assert FEATURE_STATES == expected

    def test_every_transition_references_known_states(self):
        for t in FEATURE_TRANSITIONS:
            sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
            for s in sources:
                assert s in FEATURE_STATES
            assert t["dest"] in FEATURE_STATES

    def test_no_transition_returns_to_requested(self):
        """Feature lifecycle is forward-only."""
        assert all(dest != "requested" for (_, dest) in FEATURE_TRIGGER_FOR)

    def test_execution_states_defined(self):
        assert set(EXECUTION_STATES) == {
            "ready", "working", "awaiting_approval", "verifying", "verification_failed", "done",
        }


class TestFeatureFSM:
    """Basic FeatureFSM functionality."""

    @pytest.fixture
    def feature_dir(self, tmp_path):
        feature_dir = tmp_path / "csv-export"
        feature_dir.mkdir()
        (feature_dir / "meta.env").write_text('NAME="csv-export"\nSTATUS="requested"\n')
        return feature_dir

    def test_initial_state_from_file(self, feature_dir):
        assert FeatureFSM(feature_dir).state == "requested"

    def test_missing_meta_defaults_to_requested(self, tmp_path):
        assert FeatureFSM(tmp_path).state == "requested"

    def test_unknown_state_defaults_to_requested(self, tmp_path):
        (tmp_path / "meta.env").write_text('STATUS="bogus_state"\n')
        assert FeatureFSM(tmp_path).state == "requested"

    def test_state_persisted_to_file(self, feature_dir):
        fsm = FeatureFSM(feature_dir)
        fsm.draft_questions()
        content = (feature_dir / "meta.env").read_text()
        assert 'STATUS="questions_drafted"' in content
        assert 'NAME="csv-export"' in content

    def test_headless_no_storage_path(self, feature_dir):
        fsm = FeatureFSM(feature_dir)
        fsm.draft_questions()
        fsm.answer_questions()
        fsm.omit_mockups()
        fsm.omit_types()
        fsm.draft_requirements()
        fsm.save_requirements()
        assert fsm.state == "requirements_saved"
        assert fsm.is_terminal

    def test_ui_with_storage_path(self, feature_dir):
        fsm = FeatureFSM(feature_dir)
        fsm.draft_questions()
        fsm.answer_questions()
        fsm.propose_mockups()
        fsm.select_mockup()
        fsm.propose_types()
        fsm.approve_types()
        fsm.draft_requirements()
        assert fsm.state == "requirements_drafted"
        assert not fsm.is_terminal

    def test_cannot_skip_questions(self, feature_dir):
        fsm = FeatureFSM(feature_dir)
        with pytest.raises(MachineError):
            fsm.omit_mockups()
        assert fsm.state == "requested"

    def test_cannot_draft_before_types_resolved(self, feature_dir):
        fsm = FeatureFSM(feature_dir)
        fsm.draft_questions()
        fsm.answer_questions()
        fsm.omit_mockups()
        assert not fsm.can("draft_requirements")
        assert set(fsm.get_available_triggers()) == {"propose_types", "omit_types"}

    def test_on_transition_callback(self, feature_dir):
        calls = []
        fsm = FeatureFSM(feature_dir, on_transition=lambda f, t, trig: calls.append((f, t, trig)))
        fsm.draft_questions()
        assert calls == [("requested", "questions_drafted", "draft_questions")]


class TestExecutionFSM:
    """Supervisor execution machine."""

    def test_subtask_cycle(self, tmp_path):
        fsm = ExecutionFSM(tmp_path)
        fsm.start_subtask()
        fsm.complete_subtask()
        assert fsm.state == "awaiting_approval"
        fsm.approve_subtask()
        assert fsm.state == "ready"

    def test_cannot_start_while_awaiting_approval(self, tmp_path):
        fsm = ExecutionFSM(tmp_path)
        fsm.start_subtask()
        fsm.complete_subtask()
        assert not fsm.can("start_subtask")

    def test_verification_failure_halts(self, tmp_path):
        fsm = ExecutionFSM(tmp_path)
        fsm.start_verification()
        fsm.verification_failed()
        assert fsm.state == "verification_failed"
        assert fsm.get_available_triggers() == ["retry_verification"]

    def test_no_automatic_retry_path(self):
        """verification_failed is only left through an explicit retry."""
        leaving = [dest for (src, dest) in EXECUTION_TRIGGER_FOR if src == "verification_failed"]
        assert leaving == ["verifying"]

    def test_state_reloaded(self, tmp_path):
        fsm = ExecutionFSM(tmp_path)
        fsm.start_subtask()
        assert ExecutionFSM(tmp_path).state == "working"
