"""
Clarifying questions for a feature request.

Every feature starts here: no other artifact is produced before the question
list exists. Each question has lettered options, a recommended option and a
rationale, and names the PRD section its answer feeds.

Questions are stored as a JSON + markdown pair:
  <state>/features/<feature>/questions.json
  <output>/<feature>-questions.md
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from prdflow.errors import WorkflowError
from prdflow.lib.constants import (
    GATE_DECISIONS,
    GATE_STORAGE,
    GATE_UI,
    STORAGE_NONE,
    STORAGE_PERSISTENT,
    UI_HEADLESS,
    UI_INTERACTIVE,
)
from prdflow.lib.validate import validate, validate_before_write

logger = logging.getLogger(__name__)

QUESTIONS_JSON = "questions.json"

_CHOICE_RE = re.compile(r"^([A-Za-z])(?:\s*[)\].:-]\s*(.*)|)$", re.DOTALL)


class QuestionsLocked(WorkflowError):
    """All questions were answered; the document no longer changes."""

    def __init__(self, feature: str):
        super().__init__(f"Questions for '{feature}' are fully answered and locked")


class UnknownQuestion(WorkflowError):
    pass


class InvalidAnswer(WorkflowError):
    pass


@dataclass
class Option:
    letter: str
    text: str
    decision: Optional[str] = None  # Gate decision recorded when chosen
    free_text: bool = False  # "Other" option, needs a description


@dataclass
class Question:
    id: str
    text: str
    options: list[Option]
    recommended: str
    rationale: str
    section: str  # PRD section key the answer feeds
    gate: Optional[str] = None  # ui / storage
    answer: Optional[str] = None  # Chosen letter
    answer_text: Optional[str] = None  # Free text, or detail for an "Other" option
    answered_at: Optional[str] = None

    @property
    def is_answered(self) -> bool:
        return self.answer is not None or bool(self.answer_text)

    def option(self, letter: str) -> Optional[Option]:
        for opt in self.options:
            if opt.letter == letter.upper():
                return opt
        return None

    def answer_content(self) -> str:
        """The answer as prose for the PRD."""
        opt = self.option(self.answer) if self.answer else None
        if opt is None:
            return self.answer_text or ""
        if opt.free_text:
            return self.answer_text or ""
        if self.answer_text:
            return f"{opt.text} ({self.answer_text})"
        return opt.text

    def decision(self) -> Optional[str]:
        """Recorded gate decision, or None if unanswered / not a gate."""
        if not self.gate or not self.answer:
            return None
        opt = self.option(self.answer)
        return opt.decision if opt else None


@dataclass
class ClarifyingQuestionsDoc:
    feature: str
    request: str
    created: str
    questions: list[Question] = field(default_factory=list)
    locked: bool = False

    @property
    def is_complete(self) -> bool:
        return all(q.is_answered for q in self.questions)

    @property
    def pending(self) -> list[Question]:
        return [q for q in self.questions if not q.is_answered]

    def get(self, question_id: str) -> Question:
        """Find a question by ID ("Q3") or position ("3")."""
        wanted = question_id.strip().upper()
        if wanted.isdigit():
            wanted = f"Q{int(wanted)}"
        for q in self.questions:
            if q.id == wanted:
                return q
        raise UnknownQuestion(f"No question '{question_id}' for feature '{self.feature}'")

    def gate_question(self, gate: str) -> Optional[Question]:
        for q in self.questions:
            if q.gate == gate:
                return q
        return None

    def answers(self) -> dict[str, Question]:
        """Answered questions keyed by ID."""
        return {q.id: q for q in self.questions if q.is_answered}

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClarifyingQuestionsDoc":
        questions = []
        for q in data.get("questions", []):
            q = dict(q)
            q["options"] = [Option(**o) for o in q.get("options", [])]
            questions.append(Question(**q))
        return cls(
            feature=data["feature"],
            request=data.get("request", ""),
            created=data.get("created", ""),
            questions=questions,
            locked=data.get("locked", False),
        )


def _opt(letter: str, text: str, decision: str = None, free_text: bool = False) -> dict:
    return {"letter": letter, "text": text, "decision": decision, "free_text": free_text}


def gate_questions() -> list[dict]:
    """The two classification questions. Their answers are human decisions."""
    return [
        {
            "text": "Does this feature have a user interface?",
            "options": [
                _opt("A", "Yes - users interact with screens or visual components", UI_INTERACTIVE),
                _opt("B", "No - it is a CLI, API or background job", UI_HEADLESS),
            ],
            "recommended": "A",
            "rationale": "Three UI mockups are proposed only for features with a user interface; "
                         "choose B for command line tools, APIs and background jobs.",
            "section": "design",
            "gate": GATE_UI,
        },
        {
            "text": "Does this feature need to store or persist data?",
            "options": [
                _opt("A", "Yes - it creates or updates stored records", STORAGE_PERSISTENT),
                _opt("B", "No - it works only on transient input and output", STORAGE_NONE),
            ],
            "recommended": "B",
            "rationale": "Type definitions are drafted only when data is persisted; "
                         "they must be reviewed before any implementation task.",
            "section": "technical",
            "gate": GATE_STORAGE,
        },
    ]


def standard_questions() -> list[dict]:
    """The standard question bank, gates last."""
    other = "Other (describe)"
    return [
        {
            "text": "What is the primary goal of this feature?",
            "options": [
                _opt("A", "Automate a task users currently do by hand"),
                _opt("B", "Reduce errors or inconsistencies in an existing workflow"),
                _opt("C", "Provide a capability users do not have today"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "C",
            "rationale": "Framing the goal as a user outcome keeps the requirements free of implementation detail.",
            "section": "goals",
        },
        {
            "text": "Who is the primary user of this feature?",
            "options": [
                _opt("A", "End users of the product"),
                _opt("B", "Internal operators or administrators"),
                _opt("C", "Developers integrating with the system"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "A",
            "rationale": "Naming one primary user makes the user stories concrete.",
            "section": "introduction",
        },
        {
            "text": "What is the minimum set of actions the feature must support?",
            "options": [
                _opt("A", "A single core action with sensible defaults"),
                _opt("B", "A core action plus configuration options"),
                _opt("C", "A complete create, read, update and delete workflow"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "A",
            "rationale": "A single core action is the smallest scope a junior developer can implement and verify.",
            "section": "functional_requirements",
        },
        {
            "text": "Which user story best captures the main use?",
            "options": [
                _opt("A", "As a user, I want to complete the task in one step so that I save time"),
                _opt("B", "As a user, I want to review results before they are applied so that I stay in control"),
                _opt("C", "As an administrator, I want to configure the behaviour so that it fits my team"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "B",
            "rationale": "Reviewable results reduce the cost of mistakes in a first version.",
            "section": "user_stories",
        },
        {
            "text": "How should invalid input or failures be handled?",
            "options": [
                _opt("A", "Fail fast with a clear error message"),
                _opt("B", "Skip invalid items and report them at the end"),
                _opt("C", "Attempt automatic recovery and log a warning"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "A",
            "rationale": "Failing fast is the simplest behaviour to specify and to test.",
            "section": "functional_requirements",
        },
        {
            "text": "What should this feature explicitly NOT do?",
            "options": [
                _opt("A", "Change existing data formats"),
                _opt("B", "Add new external integrations"),
                _opt("C", "Provide administration or configuration screens"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "B",
            "rationale": "External integrations are the most common source of scope creep.",
            "section": "non_goals",
        },
        {
            "text": "How will we know the feature is successful?",
            "options": [
                _opt("A", "Time to complete the task drops measurably"),
                _opt("B", "Related errors and support requests drop"),
                _opt("C", "A target share of users adopts the feature"),
                _opt("D", other, free_text=True),
            ],
            "recommended": "A",
            "rationale": "Task time is measurable before and after release without new tooling.",
            "section": "success_metrics",
        },
        {
            "text": "Is anything about this feature still undecided?",
            "options": [
                _opt("A", "No, the scope is settled"),
                _opt("B", "Yes (describe what is still open)", free_text=True),
            ],
            "recommended": "A",
            "rationale": "Open points are carried into the PRD so they are resolved before implementation.",
            "section": "open_questions",
        },
    ] + gate_questions()


def is_well_formed_gate(question: dict) -> bool:
    """Every option records one of the gate's decisions, and each decision is reachable."""
    allowed = GATE_DECISIONS.get(question.get("gate"))
    if allowed is None:
        return False
    decisions = {o.get("decision") for o in question.get("options", [])}
    return decisions == set(allowed)


def ensure_gate_questions(questions: list[dict]) -> list[dict]:
    """Keep one well-formed question per gate; the standard one replaces anything else."""
    kept: list[dict] = []
    seen: set[str] = set()
    for q in questions:
        gate = q.get("gate")
        if gate is None:
            kept.append(q)
        elif gate in seen or not is_well_formed_gate(q):
            logger.warning(f"Dropping drafted '{gate}' classification question: {q.get('text', '')!r}")
        else:
            seen.add(gate)
            kept.append(q)

    missing = [g for g in gate_questions() if g["gate"] not in seen]
    if missing:
        logger.info(f"Adding {len(missing)} classification question(s) to drafted list")
    return kept + missing


def build_questions_doc(feature: str, request: str, questions: list[dict]) -> ClarifyingQuestionsDoc:
    """Build a document from raw question dicts, numbering them Q1..Qn."""
    data = {
        "feature": feature,
        "request": request,
        "created": datetime.now().isoformat(),
        "locked": False,
        "questions": [],
    }
    for i, q in enumerate(ensure_gate_questions(questions), 1):
        entry = {
            "id": f"Q{i}",
            "text": q["text"],
            "options": [
                {
                    "letter": o["letter"],
                    "text": o["text"],
                    "decision": o.get("decision"),
                    "free_text": o.get("free_text", False),
                }
                for o in q["options"]
            ],
            "recommended": q["recommended"],
            "rationale": q["rationale"],
            "section": q["section"],
            "gate": q.get("gate"),
            "answer": None,
            "answer_text": None,
            "answered_at": None,
        }
        data["questions"].append(entry)

    validate(data, "questions")
    doc = ClarifyingQuestionsDoc.from_dict(data)
    for q in doc.questions:
        if q.option(q.recommended) is None:
            raise InvalidAnswer(f"{q.id}: recommended option '{q.recommended}' is not one of its options")
    return doc


def record_answer(doc: ClarifyingQuestionsDoc, question_id: str, choice: str) -> Question:
    """Record one answer. Locks the document once every question is answered.

    choice is a letter ("B"), a letter with detail ("D: weekly export") for
    "Other" options, or free text for non-gate questions.

    Raises:
        QuestionsLocked: the document is already complete
        InvalidAnswer: the choice doesn't fit the question
    """
    if doc.locked:
        raise QuestionsLocked(doc.feature)

    question = doc.get(question_id)
    choice = (choice or "").strip()
    if not choice:
        raise InvalidAnswer("Answer cannot be empty")

    letter, detail = None, ""
    match = _CHOICE_RE.match(choice)
    if match and question.option(match.group(1)):
        letter = match.group(1).upper()
        detail = (match.group(2) or "").strip()

    if letter:
        opt = question.option(letter)
        if opt.free_text and not detail:
            raise InvalidAnswer(f"{question.id}: option {letter} needs a description, e.g. '{letter}: ...'")
        question.answer = letter
        question.answer_text = detail or None
    elif question.gate:
        letters = "/".join(o.letter for o in question.options)
        raise InvalidAnswer(f"{question.id} is a classification question: answer with one of {letters}")
    else:
        question.answer = None
        question.answer_text = choice

    question.answered_at = datetime.now().isoformat()
    if doc.is_complete:
        doc.locked = True
        logger.info(f"All questions answered for {doc.feature}; locking")
    return question


def save_questions(doc: ClarifyingQuestionsDoc, feature_dir: Path, markdown_path: Path) -> None:
    """Validate and write the JSON sidecar and the markdown document."""
    feature_dir.mkdir(parents=True, exist_ok=True)
    data = doc.to_dict()
    json_path = feature_dir / QUESTIONS_JSON
    validate_before_write(data, "questions", json_path)
    json_path.write_text(json.dumps(data, indent=2))

    markdown_path.parent.mkdir(parents=True, exist_ok=True)
    markdown_path.write_text(render_questions_markdown(doc))


def load_questions(feature_dir: Path) -> Optional[ClarifyingQuestionsDoc]:
    path = feature_dir / QUESTIONS_JSON
    if not path.exists():
        return None
    try:
        return ClarifyingQuestionsDoc.from_dict(json.loads(path.read_text()))
    except (json.JSONDecodeError, TypeError, KeyError) as e:
        logger.warning(f"Failed to load questions {path}: {e}")
        return None


def render_questions_markdown(doc: ClarifyingQuestionsDoc) -> str:
    status = "answered" if doc.locked else f"{len(doc.pending)} pending"
    lines = [
        f"# Clarifying Questions: {doc.feature}",
        "",
        f"**Feature request:** {doc.request}",
        f"**Created:** {doc.created}",
        f"**Status:** {status}",
        "",
        f"Answer each question with its letter, e.g. `prd answer {doc.feature} Q1 B`.",
        "",
    ]

    for q in doc.questions:
        lines.append(f"## {q.id}. {q.text}")
        lines.append("")
        for opt in q.options:
            suffix = " _(recommended)_" if opt.letter == q.recommended else ""
            lines.append(f"- **{opt.letter})** {opt.text}{suffix}")
        lines.append("")
        lines.append(f"**Recommended:** {q.recommended}")
        lines.append(f"**Rationale:** {q.rationale}")
        if q.answer:
            detail = f" - {q.answer_text}" if q.answer_text else ""
            lines.append(f"**Answer:** {q.answer}) {q.option(q.answer).text}{detail}")
        elif q.answer_text:
            lines.append(f"**Answer:** {q.answer_text}")
        else:
            lines.append("**Answer:** _pending_")
        lines.append("")

    return "\n".join(lines)
