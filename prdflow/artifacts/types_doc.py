"""
TypeScript type definitions for features that persist data.

The document's first line is always the serialization directive. Types refer
to each other structurally (a field holds the referenced type itself); a field
that names another declared type by identifier is rejected. Identifier-based
DTOs belong in the separate serialization artifact, which is never produced
here.

Declarations come from a YAML file or an agent draft, both shaped like:

    types:
      - name: LogEntry
        kind: interface
        group: Core Domain Types
        doc: A single parsed log line
        fields:
          - {name: level, type: Severity}
          - {name: source, type: LogSource, comment: Strong reference}
      - name: Severity
        kind: enum
        members: [Info, Warning, Error]
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from prdflow.errors import WorkflowError
from prdflow.lib.constants import DEFAULT_SERIALIZATION_ARTIFACT
from prdflow.lib.validate import validate, validate_before_write

logger = logging.getLogger(__name__)

TYPES_JSON = "types.json"

DIRECTIVE_TEMPLATE = "// Do not reference by ID. Create DTOs for serialization in {artifact}"

BANNER = "// " + "=" * 76

_ID_SUFFIX_RE = re.compile(r"^(?P<base>.+?)(?:_ids?|Ids?|IDs?)$")
_TYPE_TOKEN_RE = re.compile(r"\b[A-Z][A-Za-z0-9]*\b")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Names that may appear in field types without being declared
BUILTIN_TYPES = {
    "Array", "Date", "Map", "Set", "Record", "Partial", "Readonly",
    "ReadonlyArray", "Promise", "Uint8Array",
}


class IdentifierReferenceError(WorkflowError):
    """A field references another declared type by identifier."""

    def __init__(self, owner: str, field_name: str, target: str):
        self.owner = owner
        self.field_name = field_name
        self.target = target
        super().__init__(
            f"{owner}.{field_name} references {target} by ID; "
            f"use a structural reference ({target} or {target}[]) instead"
        )


@dataclass
class FieldDecl:
    name: str
    type: str
    optional: bool = False
    comment: str = ""


@dataclass
class TypeDecl:
    name: str
    kind: str  # interface | enum
    group: str = "Core Domain Types"
    doc: str = ""
    fields: list[FieldDecl] = field(default_factory=list)
    members: list[str] = field(default_factory=list)


@dataclass
class TypeDefinitionsDoc:
    feature: str
    title: str
    declarations: list[TypeDecl]
    serialization_artifact: str = DEFAULT_SERIALIZATION_ARTIFACT
    approved: bool = False

    @property
    def directive(self) -> str:
        return directive_line(self.serialization_artifact)

    @property
    def type_names(self) -> list[str]:
        return [d.name for d in self.declarations]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["types"] = data.pop("declarations")
        return data


def directive_line(serialization_artifact: str = DEFAULT_SERIALIZATION_ARTIFACT) -> str:
    return DIRECTIVE_TEMPLATE.format(artifact=serialization_artifact)


def parse_declarations(data: dict) -> list[TypeDecl]:
    """Validate raw declarations and build TypeDecl objects."""
    validate(data, "types")
    declarations = []
    seen = set()
    for raw in data["types"]:
        if raw["name"] in seen:
            raise WorkflowError(f"Type '{raw['name']}' is declared more than once")
        seen.add(raw["name"])
        declarations.append(TypeDecl(
            name=raw["name"],
            kind=raw["kind"],
            group=raw.get("group") or "Core Domain Types",
            doc=raw.get("doc", ""),
            fields=[FieldDecl(**f) for f in raw.get("fields", [])],
            members=list(raw.get("members", [])),
        ))
    return declarations


def load_declarations_file(path: Path) -> list[TypeDecl]:
    """Load declarations from a YAML (or JSON) file."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise WorkflowError(f"Invalid YAML in {path}: {e}") from None
    if not isinstance(data, dict):
        raise WorkflowError(f"{path}: expected a mapping with a 'types' list")
    return parse_declarations(data)


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


def _strip_common_prefix(target: str, owner: str) -> Optional[str]:
    """Drop the CamelCase prefix target shares with owner ("AiReportBlast" -> "Blast")."""
    target_parts = _CAMEL_BOUNDARY_RE.split(target)
    owner_parts = _CAMEL_BOUNDARY_RE.split(owner)
    i = 0
    while i < min(len(target_parts), len(owner_parts)) - 1 and target_parts[i] == owner_parts[i]:
        i += 1
    if i == 0:
        return None
    return "".join(target_parts[i:])


def identifier_target(field_name: str, owner: str, declared: list[str]) -> Optional[str]:
    """Return the declared type a field names by identifier, or None.

    Only "<type>Id", "<type>Ids" and "<type>_id" style names naming another
    type match. A type's own key ("id", or "orderId" on Order) never does.
    """
    match = _ID_SUFFIX_RE.match(field_name)
    if not match:
        return None
    base = _normalize(match.group("base"))
    for target in declared:
        if target == owner:
            continue
        if base == _normalize(target):
            return target
        stripped = _strip_common_prefix(target, owner)
        if stripped and base == _normalize(stripped):
            return target
    return None


def check_structural_references(declarations: list[TypeDecl]) -> None:
    """Enforce that declared types never reference each other by identifier.

    Raises:
        IdentifierReferenceError: on the first offending field
    """
    declared = [d.name for d in declarations]
    known = set(declared) | BUILTIN_TYPES
    for decl in declarations:
        for f in decl.fields:
            target = identifier_target(f.name, decl.name, declared)
            if target:
                raise IdentifierReferenceError(decl.name, f.name, target)
            for token in _TYPE_TOKEN_RE.findall(f.type):
                if token not in known:
                    logger.warning(f"{decl.name}.{f.name}: type '{token}' is not declared in this document")


def generate_types(
    feature: str,
    declarations: list[TypeDecl],
    serialization_artifact: str = DEFAULT_SERIALIZATION_ARTIFACT,
    title: Optional[str] = None,
) -> TypeDefinitionsDoc:
    """Build a type definitions document after checking the reference invariant."""
    if not declarations:
        raise WorkflowError(f"No type declarations given for '{feature}'")
    check_structural_references(declarations)
    return TypeDefinitionsDoc(
        feature=feature,
        title=title or f"{feature.replace('-', ' ').title()} - Type Definitions",
        declarations=declarations,
        serialization_artifact=serialization_artifact,
    )


def _render_doc_comment(text: str, indent: str = "") -> list[str]:
    lines = [f"{indent}/**"]
    for line in text.strip().splitlines():
        lines.append(f"{indent} * {line}".rstrip())
    lines.append(f"{indent} */")
    return lines


def _render_decl(decl: TypeDecl) -> list[str]:
    lines = _render_doc_comment(decl.doc) if decl.doc else []
    if decl.kind == "enum":
        lines.append(f"export enum {decl.name} {{")
        for member in decl.members:
            lines.append(f"  {member} = '{member}',")
    else:
        lines.append(f"export interface {decl.name} {{")
        for f in decl.fields:
            opt = "?" if f.optional else ""
            comment = f" // {f.comment}" if f.comment else ""
            lines.append(f"  {f.name}{opt}: {f.type};{comment}")
    lines.append("}")
    return lines


def _serialization_notes(doc: TypeDefinitionsDoc) -> list[str]:
    example = next((d for d in doc.declarations if d.kind == "interface"), None)
    lines = [
        "/**",
        " * SERIALIZATION NOTES:",
        " *",
        " * These types use strong object references. When serializing to JSON",
        " * create DTOs that replace nested objects with ID references.",
        f" * The DTOs are defined separately in {doc.serialization_artifact}.",
    ]
    if example is not None:
        lines.extend([
            " *",
            f" * Example: {example.name}DTO mirrors {example.name} with each",
            " * referenced object replaced by its identifier.",
        ])
    lines.append(" */")
    return lines


def render_types(doc: TypeDefinitionsDoc) -> str:
    """Render the document; the directive is always the first line."""
    lines = [doc.directive, f"// {doc.title}", ""]

    group = None
    for decl in doc.declarations:
        if decl.group != group:
            group = decl.group
            lines.extend([BANNER, f"// {group}", BANNER, ""])
        lines.extend(_render_decl(decl))
        lines.append("")

    lines.extend(_serialization_notes(doc))
    return "\n".join(lines) + "\n"


def save_types(doc: TypeDefinitionsDoc, feature_dir: Path, output_path: Path) -> None:
    """Write the JSON sidecar and the .ts document."""
    data = doc.to_dict()
    json_path = feature_dir / TYPES_JSON
    validate_before_write(data, "types", json_path)
    json_path.write_text(json.dumps(data, indent=2))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_types(doc))
    logger.info(f"Wrote {output_path.name} ({len(doc.declarations)} types)")


def load_types(feature_dir: Path) -> Optional[TypeDefinitionsDoc]:
    path = feature_dir / TYPES_JSON
    if not path.exists():
        return None
    data = json.loads(path.read_text())
    return TypeDefinitionsDoc(
        feature=data["feature"],
        title=data["title"],
        declarations=parse_declarations({"types": data["types"]}),
        serialization_artifact=data.get("serialization_artifact", DEFAULT_SERIALIZATION_ARTIFACT),
        approved=data.get("approved", False),
    )


def summarize_types(doc: TypeDefinitionsDoc, types_file: str) -> str:
    """Technical Considerations text for a PRD with approved types."""
    lines = [
        f"Approved type definitions are in `{types_file}`. Types reference each other "
        f"structurally; serialization DTOs belong in `{doc.serialization_artifact}`.",
        "",
    ]
    for decl in doc.declarations:
        kind = "enum" if decl.kind == "enum" else "interface"
        summary = f" - {decl.doc.strip().splitlines()[0]}" if decl.doc.strip() else ""
        lines.append(f"- `{decl.name}` ({kind}){summary}")
    return "\n".join(lines)
