"""
JSON Schema checks for prdflow documents.

Two kinds of data pass through here. Agent drafts (clarifying questions,
mockup options, type declarations, parent and sub-task lists) are checked
as soon as they are parsed out of the agent's reply, so a bad draft never
becomes an artifact. The JSON sidecars stored next to the Markdown artifacts
(questions.json, mockups.json, types.json) are checked again on every write
and every load.
"""

import json
from pathlib import Path

import jsonschema

# One schema file per document kind, under prdflow/schemas/
SCHEMA_NAMES = ("questions", "mockups", "types", "tasks")


class ValidationError(Exception):
    """A draft or sidecar does not match its document schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        location = f" at {path}" if path else ""
        super().__init__(f"[{schema_name}] {message}{location}")


_schema_cache: dict[str, dict] = {}


def _schemas_dir() -> Path:
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    if schema_name not in SCHEMA_NAMES:
        raise ValidationError(schema_name, f"Unknown document kind; expected one of {', '.join(SCHEMA_NAMES)}")
    if schema_name not in _schema_cache:
        schema_path = _schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
        _schema_cache[schema_name] = json.loads(schema_path.read_text())
    return _schema_cache[schema_name]


def validate(data: dict, schema_name: str) -> None:
    """
    Check a draft or sidecar against its document schema.

    Args:
        data: Parsed JSON payload
        schema_name: One of SCHEMA_NAMES

    Raises:
        ValidationError: naming the first offending field, "(root)" when
            the payload itself is the problem
    """
    schema = _load_schema(schema_name)

    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else "(root)"
        raise ValidationError(schema_name, e.message, path) from None


def validate_before_write(data: dict, schema_name: str, filepath: Path) -> None:
    """Check a sidecar before it replaces the one at filepath.

    The artifact on disk is left untouched when the check fails.
    """
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(
            schema_name,
            f"Refusing to write {filepath.name}: {e}"
        ) from None
