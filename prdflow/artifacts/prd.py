"""
Requirements documents (PRDs).

A PRD has YAML front matter recording the two gate decisions and nine
sections in a fixed order. Technical Considerations may be left out of a
hand-written PRD; the generated ones always carry it. When an optional artifact was skipped, the body of
the section it would have filled is exactly the corresponding marker string,
which downstream tooling reads.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from prdflow.errors import WorkflowError
from prdflow.lib import frontmatter
from prdflow.lib.constants import (
    OPTIONAL_PRD_SECTIONS,
    PRD_SECTION_KEYS,
    PRD_SECTIONS,
    STORAGE_NONE,
    STORAGE_PERSISTENT,
    TYPES_OMITTED_MARKER,
    UI_HEADLESS,
    UI_INTERACTIVE,
    UI_OMITTED_MARKER,
)
from prdflow.artifacts.questions import ClarifyingQuestionsDoc

logger = logging.getLogger(__name__)

HEADING_FOR = dict(PRD_SECTIONS)
KEY_FOR = {heading: key for key, heading in PRD_SECTIONS}

_SECTION_RE = re.compile(r"^## (?P<heading>.+?)\s*$", re.MULTILINE)
_TITLE_RE = re.compile(r"^# (?P<title>.+?)\s*$", re.MULTILINE)


class PrdFormatError(WorkflowError):
    """A PRD is missing sections, has them out of order, or has an inconsistent marker."""
    pass


@dataclass
class RequirementsDoc:
    feature: str
    title: str
    ui: str  # interactive | headless
    storage: str  # persistent | none
    sections: dict[str, str] = field(default_factory=dict)
    sequence: Optional[int] = None
    request: str = ""
    mockup: Optional[str] = None  # Selected mockup letter
    types_file: Optional[str] = None

    def section(self, key: str) -> str:
        return self.sections.get(key, "")

    @property
    def has_user_interface(self) -> bool:
        return self.ui == UI_INTERACTIVE

    @property
    def requires_persistence(self) -> bool:
        return self.storage == STORAGE_PERSISTENT

    def functional_requirements(self) -> list[str]:
        """Numbered requirement lines, without their numbers."""
        reqs = []
        for line in self.section("functional_requirements").splitlines():
            m = re.match(r"^\s*\d+\.\s+(.*\S)", line)
            if m:
                reqs.append(m.group(1))
        return reqs


def _bullets(items: list[str], empty: str) -> str:
    if not items:
        return empty
    return "\n".join(f"- {item}" for item in items)


def _answers_for(answers: ClarifyingQuestionsDoc, section: str) -> list[str]:
    return [
        q.answer_content()
        for q in answers.questions
        if q.section == section and not q.gate and q.is_answered and q.answer_content()
    ]


def _capitalized(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def assemble_requirements_doc(
    answers: ClarifyingQuestionsDoc,
    ui: str,
    storage: str,
    mockup_summary: Optional[str] = None,
    mockup: Optional[str] = None,
    types_summary: Optional[str] = None,
    types_file: Optional[str] = None,
) -> RequirementsDoc:
    """Merge answers and the optional artifacts into the nine sections.

    ui/storage are the recorded gate decisions. A mockup summary is required
    for interactive features and a types summary for persistent ones.
    """
    if not answers.locked:
        raise WorkflowError(f"Questions for '{answers.feature}' are not fully answered")
    if ui not in (UI_INTERACTIVE, UI_HEADLESS):
        raise WorkflowError(f"Unknown ui decision '{ui}'")
    if storage not in (STORAGE_PERSISTENT, STORAGE_NONE):
        raise WorkflowError(f"Unknown storage decision '{storage}'")

    request = answers.request.strip()
    intro = [request]
    users = _answers_for(answers, "introduction")
    if users:
        intro.append("")
        intro.append(f"Primary users: {'; '.join(users)}.")

    requirements = [_capitalized(r) for r in _answers_for(answers, "functional_requirements")]
    if not requirements:
        requirements = [f"The system must deliver the requested capability: {request}"]
    numbered = "\n".join(f"{i}. {r}" for i, r in enumerate(requirements, 1))

    if ui == UI_INTERACTIVE:
        if not mockup_summary:
            raise WorkflowError(f"Feature '{answers.feature}' has a user interface but no selected mockup")
        design = mockup_summary
    else:
        design = UI_OMITTED_MARKER

    if storage == STORAGE_PERSISTENT:
        if not types_summary:
            raise WorkflowError(f"Feature '{answers.feature}' persists data but has no approved types")
        technical = types_summary
    else:
        technical = TYPES_OMITTED_MARKER

    sections = {
        "introduction": "\n".join(intro),
        "goals": _bullets([_capitalized(g) for g in _answers_for(answers, "goals")], "- Deliver the requested capability"),
        "user_stories": _bullets(_answers_for(answers, "user_stories"), "- As a user, I want this feature so that my task is simpler"),
        "functional_requirements": numbered,
        "non_goals": _bullets(_answers_for(answers, "non_goals"), "- Nothing beyond the requirements above"),
        "design": design,
        "technical": technical,
        "success_metrics": _bullets(_answers_for(answers, "success_metrics"), "- The feature is used as intended"),
        "open_questions": _bullets(_answers_for(answers, "open_questions"), "- None"),
    }

    doc = RequirementsDoc(
        feature=answers.feature,
        title=answers.feature.replace("-", " ").title(),
        ui=ui,
        storage=storage,
        sections=sections,
        request=request,
        mockup=mockup,
        types_file=types_file,
    )
    check_markers(doc)
    return doc


def check_markers(doc: RequirementsDoc) -> None:
    """Decisions and marker sections must agree.

    Raises:
        PrdFormatError: a skipped artifact without its marker, or a marker
            on a feature whose decision says the artifact exists
    """
    design = doc.section("design").strip()
    technical = doc.section("technical").strip()

    if doc.ui == UI_HEADLESS and design != UI_OMITTED_MARKER:
        raise PrdFormatError(f"Design Considerations must be exactly '{UI_OMITTED_MARKER}' for a headless feature")
    if doc.ui == UI_INTERACTIVE and design == UI_OMITTED_MARKER:
        raise PrdFormatError("Design Considerations says the UI was omitted, but the feature is interactive")

    if doc.storage == STORAGE_NONE and technical != TYPES_OMITTED_MARKER:
        raise PrdFormatError(f"Technical Considerations must be exactly '{TYPES_OMITTED_MARKER}' without storage")
    if doc.storage == STORAGE_PERSISTENT and technical == TYPES_OMITTED_MARKER:
        raise PrdFormatError("Technical Considerations says types were omitted, but the feature persists data")


def front_matter(doc: RequirementsDoc) -> dict:
    meta = {"feature": doc.feature}
    if doc.sequence is not None:
        meta["sequence"] = f"{doc.sequence:04d}"
    meta["ui"] = doc.ui
    meta["storage"] = doc.storage
    if doc.mockup:
        meta["mockup"] = doc.mockup
    if doc.types_file:
        meta["types"] = doc.types_file
    return meta


def render_prd(doc: RequirementsDoc) -> str:
    check_markers(doc)
    lines = [f"# PRD: {doc.title}", ""]
    for key, heading in PRD_SECTIONS:
        if key in OPTIONAL_PRD_SECTIONS and key not in doc.sections:
            continue
        lines.append(f"## {heading}")
        lines.append("")
        lines.append(doc.section(key).strip())
        lines.append("")
    return frontmatter.join(front_matter(doc), "\n".join(lines))


def parse_prd(text: str, feature: Optional[str] = None) -> RequirementsDoc:
    """Parse a PRD file back into a RequirementsDoc.

    Decisions come from front matter when present; otherwise they are read
    from the marker text of the Design and Technical sections.

    Raises:
        PrdFormatError: malformed front matter, missing required sections, or
            sections out of order
    """
    try:
        meta, body = frontmatter.split(text)
    except frontmatter.FrontMatterError as e:
        raise PrdFormatError(str(e)) from None

    title_match = _TITLE_RE.search(body)
    title = title_match.group("title") if title_match else ""
    if title.startswith("PRD: "):
        title = title[len("PRD: "):]

    sections: dict[str, str] = {}
    order: list[str] = []
    matches = list(_SECTION_RE.finditer(body))
    for i, m in enumerate(matches):
        key = KEY_FOR.get(m.group("heading"))
        if key is None:
            continue
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        sections[key] = body[m.end():end].strip()
        order.append(key)

    missing = [HEADING_FOR[k] for k in PRD_SECTION_KEYS if k not in sections and k not in OPTIONAL_PRD_SECTIONS]
    if missing:
        raise PrdFormatError(f"PRD is missing sections: {', '.join(missing)}")
    if order != [k for k in PRD_SECTION_KEYS if k in sections]:
        raise PrdFormatError("PRD sections are out of order")

    ui = meta.get("ui")
    if ui is None:
        ui = UI_HEADLESS if sections["design"] == UI_OMITTED_MARKER else UI_INTERACTIVE
    storage = meta.get("storage")
    if storage is None:
        # Without the marker, types were not ruled out
        storage = STORAGE_NONE if sections.get("technical") == TYPES_OMITTED_MARKER else STORAGE_PERSISTENT

    sequence = meta.get("sequence")
    doc = RequirementsDoc(
        feature=meta.get("feature") or feature or "",
        title=title,
        ui=str(ui),
        storage=str(storage),
        sections=sections,
        sequence=int(sequence) if sequence is not None else None,
        mockup=meta.get("mockup"),
        types_file=meta.get("types"),
    )
    check_markers(doc)
    return doc
