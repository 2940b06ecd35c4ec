"""
Document Workflow Orchestrator.

Drives one feature from a free-form request to a saved, numbered PRD:

    intake -> answers -> [mockups | omitted] -> [types | omitted] -> draft -> save

Every step checks the feature state first and advances it through the FSM,
so a step can only run after the one before it has finished.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from prdflow.agents.claude import draft_json
from prdflow.errors import FeatureInProgress, FeatureNotFound, WorkflowError
from prdflow.lib.agents_config import AgentsConfig
from prdflow.lib.config import ProjectConfig, load_feature_meta, update_meta
from prdflow.lib.constants import GATE_STORAGE, GATE_UI
from prdflow.lib.locking import feature_lock
from prdflow.lib.naming import (
    derive_feature_name,
    mockups_filename,
    prd_filename,
    questions_filename,
    types_filename,
    validate_feature_name,
)
from prdflow.lib.prompts import render_prompt
from prdflow.lib.sequence import SequenceCounter
from prdflow.artifacts import gates, mockups, prd, questions, types_doc
from prdflow.artifacts.questions import ClarifyingQuestionsDoc
from prdflow.workflow.fsm import FeatureFSM
from prdflow.workflow.state_machine import FeatureState, get_state, require_state, transition

logger = logging.getLogger(__name__)

ARCHIVE_DIRNAME = "_archive"
PRD_DRAFT = "prd-draft.md"


def feature_dir(config: ProjectConfig, feature: str) -> Path:
    return config.features_dir / feature


def sequence_counter(config: ProjectConfig) -> SequenceCounter:
    """The project's PRD counter, seeded from PRDs already in the output dir."""
    return SequenceCounter(config.state_dir / "sequence", seed_dir=config.output_dir)


def _existing_feature_dir(config: ProjectConfig, feature: str) -> Path:
    fdir = feature_dir(config, feature)
    if not (fdir / "meta.env").exists():
        raise FeatureNotFound(feature)
    return fdir


def load_answers(config: ProjectConfig, feature: str) -> ClarifyingQuestionsDoc:
    fdir = _existing_feature_dir(config, feature)
    doc = questions.load_questions(fdir)
    if doc is None:
        raise WorkflowError(f"No clarifying questions recorded for '{feature}'")
    return doc


def _archive_instance(config: ProjectConfig, fdir: Path) -> Path:
    """Move a finished instance's state aside so a new instance can start."""
    meta = load_feature_meta(fdir)
    suffix = f"{meta.sequence:04d}" if meta.sequence else datetime.now().strftime("%Y%m%d%H%M%S")
    dest = config.features_dir / ARCHIVE_DIRNAME / f"{fdir.name}-{suffix}"
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(fdir), str(dest))
    logger.info(f"Archived finished instance of {fdir.name} to {dest}")
    return dest


def intake(
    config: ProjectConfig,
    request: str,
    feature: Optional[str] = None,
    agents: Optional[AgentsConfig] = None,
) -> ClarifyingQuestionsDoc:
    """Turn a feature request into a clarifying-questions document.

    Nothing else is produced for a feature before this document exists.

    Raises:
        InvalidFeatureName: feature (or the derived name) isn't kebab-case
        FeatureInProgress: the feature's current instance is unfinished
    """
    request = (request or "").strip()
    if not request:
        raise WorkflowError("Feature request cannot be empty")
    name = validate_feature_name(feature) if feature else derive_feature_name(request)
    fdir = feature_dir(config, name)

    with feature_lock(config.state_dir, name):
        if (fdir / "meta.env").exists():
            fsm = FeatureFSM(fdir)
            if fsm.is_terminal:
                _archive_instance(config, fdir)
            elif fsm.state != FeatureState.REQUESTED.value:
                raise FeatureInProgress(name, fsm.state)

        # An instance left in "requested" by a failed draft is simply restarted
        fdir.mkdir(parents=True, exist_ok=True)
        update_meta(fdir, {
            "NAME": name,
            "STATUS": FeatureState.REQUESTED.value,
            "CREATED_AT": datetime.now().isoformat(),
        })

        if agents is not None:
            prompt = render_prompt("clarify", feature=name, request=request)
            drafted = draft_json(agents, "clarify", prompt, "questions", cwd=config.repo_path)
            raw_questions = drafted["questions"]
        else:
            raw_questions = questions.standard_questions()

        doc = questions.build_questions_doc(name, request, raw_questions)
        questions.save_questions(doc, fdir, config.output_dir / questions_filename(name))
        transition(fdir, FeatureState.QUESTIONS_DRAFTED, reason=f"{len(doc.questions)} questions")

    return doc


def answer(config: ProjectConfig, feature: str, question_id: str, choice: str) -> questions.Question:
    """Record one answer; the final answer locks the document and records the gates."""
    fdir = _existing_feature_dir(config, feature)
    with feature_lock(config.state_dir, feature):
        doc = load_answers(config, feature)
        if get_state(fdir) != FeatureState.QUESTIONS_DRAFTED or doc.locked:
            raise questions.QuestionsLocked(feature)

        question = questions.record_answer(doc, question_id, choice)
        # Decisions are read before the lock reaches disk; UndecidedGate leaves the answer unsaved
        decisions = None
        if doc.locked:
            decisions = {
                "UI": gates.recorded_decision(doc, GATE_UI),
                "STORAGE": gates.recorded_decision(doc, GATE_STORAGE),
            }
        questions.save_questions(doc, fdir, config.output_dir / questions_filename(feature))

        if decisions:
            update_meta(fdir, decisions)
            transition(fdir, FeatureState.QUESTIONS_ANSWERED, reason="all questions answered")
    return question


def _goal(doc: ClarifyingQuestionsDoc) -> str:
    for q in doc.questions:
        if q.section == "goals" and q.is_answered:
            return q.answer_content()
    return doc.request


def resolve_mockups(
    config: ProjectConfig,
    feature: str,
    agents: Optional[AgentsConfig] = None,
) -> list[mockups.UiMockupOption]:
    """Propose exactly three mockups, or record that they are omitted.

    Headless features get no mockup artifact and an empty list back.
    Proposed mockups may be regenerated until one is selected.
    """
    fdir = _existing_feature_dir(config, feature)
    current = require_state(
        fdir, FeatureState.QUESTIONS_ANSWERED, FeatureState.MOCKUPS_PROPOSED, action="propose mockups",
    )
    doc = load_answers(config, feature)

    if not gates.has_user_interface(doc):
        transition(fdir, FeatureState.MOCKUPS_OMITTED, reason="headless")
        return []

    info = mockups.FrameworkDetector().detect(config.repo_path)
    if agents is not None:
        prompt = render_prompt(
            "mockups", feature=feature, request=doc.request, goal=_goal(doc),
            framework=info.framework, styling=info.styling,
        )
        drafted = draft_json(agents, "mockups", prompt, "mockups", cwd=config.repo_path)
        options = mockups.options_from_draft(drafted, info)
    else:
        options = mockups.generate_mockups(feature, _goal(doc), info)

    mockups.save_mockups(options, info, feature, fdir, config.output_dir / mockups_filename(feature))
    if current != FeatureState.MOCKUPS_PROPOSED:
        transition(fdir, FeatureState.MOCKUPS_PROPOSED, reason=f"{info.framework}/{info.styling}")
    return options


def select_mockup(config: ProjectConfig, feature: str, letter: str) -> mockups.UiMockupOption:
    fdir = _existing_feature_dir(config, feature)
    require_state(fdir, FeatureState.MOCKUPS_PROPOSED, action="select a mockup")
    options, info, _ = mockups.load_mockups(fdir)
    option = mockups.find_option(options, letter)
    mockups.save_mockups(options, info, feature, fdir, config.output_dir / mockups_filename(feature), option.letter)
    update_meta(fdir, {"MOCKUP_CHOICE": option.letter})
    transition(fdir, FeatureState.MOCKUP_SELECTED, reason=f"option {option.letter}")
    return option


def resolve_types(
    config: ProjectConfig,
    feature: str,
    declarations: Optional[list[types_doc.TypeDecl]] = None,
    agents: Optional[AgentsConfig] = None,
) -> Optional[types_doc.TypeDefinitionsDoc]:
    """Propose type definitions, or record that they are omitted.

    Features without storage get no types file and None back. Proposed
    types may be regenerated until approved.
    """
    fdir = _existing_feature_dir(config, feature)
    current = require_state(
        fdir,
        FeatureState.MOCKUP_SELECTED,
        FeatureState.MOCKUPS_OMITTED,
        FeatureState.TYPES_PROPOSED,
        action="resolve type definitions",
    )
    doc = load_answers(config, feature)

    if not gates.requires_persistence(doc):
        transition(fdir, FeatureState.TYPES_OMITTED, reason="no storage")
        return None

    if declarations is None:
        if agents is None:
            raise WorkflowError(
                f"Feature '{feature}' persists data: give declarations with --from FILE or use --draft"
            )
        answered = "\n".join(f"- {q.text} {q.answer_content()}" for q in doc.questions if q.is_answered)
        prompt = render_prompt("types", feature=feature, request=doc.request, answers=answered)
        drafted = draft_json(agents, "types", prompt, "types", cwd=config.repo_path)
        declarations = types_doc.parse_declarations(drafted)

    types = types_doc.generate_types(feature, declarations, config.serialization_artifact)
    types_doc.save_types(types, fdir, config.output_dir / types_filename(feature))
    if current != FeatureState.TYPES_PROPOSED:
        transition(fdir, FeatureState.TYPES_PROPOSED, reason=f"{len(types.declarations)} types")
    return types


def approve_types(config: ProjectConfig, feature: str) -> types_doc.TypeDefinitionsDoc:
    fdir = _existing_feature_dir(config, feature)
    require_state(fdir, FeatureState.TYPES_PROPOSED, action="approve types")
    types = types_doc.load_types(fdir)
    if types is None:
        raise WorkflowError(f"No proposed types found for '{feature}'")
    types.approved = True
    types_doc.save_types(types, fdir, config.output_dir / types_filename(feature))
    transition(fdir, FeatureState.TYPES_APPROVED, reason="approved by user")
    return types


def _mockup_summary(fdir: Path, feature: str) -> tuple[str, str]:
    options, info, selected = mockups.load_mockups(fdir)
    if not selected:
        raise WorkflowError(f"No mockup selected for '{feature}'")
    option = mockups.find_option(options, selected)
    text = (
        f"Selected layout: Option {option.letter} - {option.title} "
        f"({info.framework}, {info.styling} styling).\n\n"
        f"{option.summary} See `{mockups_filename(feature)}` for the markup."
    )
    return text, option.letter


def draft_requirements(config: ProjectConfig, feature: str) -> prd.RequirementsDoc:
    """Assemble the PRD draft from answers and the resolved artifacts.

    The draft lives in the state directory and may be re-drafted until saved.
    """
    fdir = _existing_feature_dir(config, feature)
    current = require_state(
        fdir,
        FeatureState.TYPES_APPROVED,
        FeatureState.TYPES_OMITTED,
        FeatureState.REQUIREMENTS_DRAFTED,
        action="draft requirements",
    )
    doc = load_answers(config, feature)
    ui = gates.recorded_decision(doc, GATE_UI)
    storage = gates.recorded_decision(doc, GATE_STORAGE)

    mockup_summary = mockup_letter = None
    if gates.has_user_interface(doc):
        mockup_summary, mockup_letter = _mockup_summary(fdir, feature)

    types_summary = types_file = None
    if gates.requires_persistence(doc):
        types = types_doc.load_types(fdir)
        if types is None or not types.approved:
            raise WorkflowError(f"Types for '{feature}' are not approved")
        types_file = types_filename(feature)
        types_summary = types_doc.summarize_types(types, types_file)

    requirements = prd.assemble_requirements_doc(
        doc, ui, storage,
        mockup_summary=mockup_summary,
        mockup=mockup_letter,
        types_summary=types_summary,
        types_file=types_file,
    )
    (fdir / PRD_DRAFT).write_text(prd.render_prd(requirements))
    if current != FeatureState.REQUIREMENTS_DRAFTED:
        transition(fdir, FeatureState.REQUIREMENTS_DRAFTED)
    return requirements


def save_requirements(
    config: ProjectConfig,
    feature: str,
    counter: Optional[SequenceCounter] = None,
) -> Path:
    """Number the drafted PRD and write it to the output directory.

    The number is reserved here, not at draft time, so abandoned drafts
    never consume one.
    """
    fdir = _existing_feature_dir(config, feature)
    with feature_lock(config.state_dir, feature):
        require_state(fdir, FeatureState.REQUIREMENTS_DRAFTED, action="save requirements")
        draft_path = fdir / PRD_DRAFT
        if not draft_path.exists():
            raise WorkflowError(f"PRD draft for '{feature}' is missing; run 'prd draft {feature}'")
        requirements = prd.parse_prd(draft_path.read_text(), feature)

        counter = counter or sequence_counter(config)
        requirements.sequence = counter.reserve()
        filename = prd_filename(requirements.sequence, feature)
        path = config.output_dir / filename
        if path.exists():
            raise WorkflowError(f"{filename} already exists")

        config.output_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(prd.render_prd(requirements))
        update_meta(fdir, {"PRD_FILE": filename, "SEQUENCE": str(requirements.sequence)})
        transition(fdir, FeatureState.REQUIREMENTS_SAVED, reason=filename)

    logger.info(f"Saved {filename}")
    return path


NEXT_STEP = {
    FeatureState.REQUESTED: "prd new (re-run intake)",
    FeatureState.QUESTIONS_DRAFTED: "prd answer {feature} <question> <choice>",
    FeatureState.QUESTIONS_ANSWERED: "prd mockups {feature}",
    FeatureState.MOCKUPS_PROPOSED: "prd mockups {feature} --select <A|B|C>",
    FeatureState.MOCKUP_SELECTED: "prd types {feature}",
    FeatureState.MOCKUPS_OMITTED: "prd types {feature}",
    FeatureState.TYPES_PROPOSED: "prd types {feature} --approve",
    FeatureState.TYPES_APPROVED: "prd draft {feature}",
    FeatureState.TYPES_OMITTED: "prd draft {feature}",
    FeatureState.REQUIREMENTS_DRAFTED: "prd save {feature}",
    FeatureState.REQUIREMENTS_SAVED: "prd tasks generate <prd-file>",
}


def next_step(feature: str, state: Optional[FeatureState]) -> str:
    if state is None:
        return ""
    return NEXT_STEP[state].format(feature=feature)
