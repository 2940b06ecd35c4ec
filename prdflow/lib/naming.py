"""
Filename conventions for generated documents.

Filenames are the only identity mechanism: a document stays the same entity
across edits as long as its filename is unchanged.
"""

import re

from .constants import FEATURE_NAME_PATTERN, MAX_FEATURE_NAME_LEN

PRD_FILENAME_RE = re.compile(r'^(\d{4,})-prd-([a-z0-9]+(?:-[a-z0-9]+)*)\.md$')

_STOP_WORDS = {
    "a", "an", "the", "i", "we", "you", "need", "needs", "want", "wants",
    "would", "like", "to", "that", "which", "for", "of", "and", "or", "with",
    "please", "can", "could", "should", "some", "new", "our", "my", "is", "be",
    "it", "in", "on", "add", "build", "create", "make",
}


class InvalidFeatureName(ValueError):
    pass


def validate_feature_name(name: str) -> str:
    """Return name if it is valid kebab-case, else raise InvalidFeatureName."""
    if not FEATURE_NAME_PATTERN.match(name or ""):
        raise InvalidFeatureName(
            f"Invalid feature name '{name}': use lowercase letters, digits and single hyphens"
        )
    if len(name) > MAX_FEATURE_NAME_LEN:
        raise InvalidFeatureName(f"Feature name too long ({len(name)} > {MAX_FEATURE_NAME_LEN})")
    return name


def derive_feature_name(request: str, max_words: int = 4) -> str:
    """Derive a kebab-case feature name from free-form request text.

    "I need a CLI that reformats log files" -> "cli-reformats-log-files"
    """
    words = re.findall(r'[a-z0-9]+', request.lower())
    significant = [w for w in words if w not in _STOP_WORDS]
    if not significant:
        significant = words
    if not significant:
        raise InvalidFeatureName("Cannot derive a feature name from an empty request")
    name = "-".join(significant[:max_words])
    return name[:MAX_FEATURE_NAME_LEN].rstrip("-")


def format_sequence(n: int) -> str:
    """Zero-pad a sequence number to 4 digits."""
    if n < 1:
        raise ValueError(f"Sequence numbers start at 1, got {n}")
    return f"{n:04d}"


def questions_filename(feature: str) -> str:
    return f"{feature}-questions.md"


def mockups_filename(feature: str) -> str:
    return f"{feature}-mockups.md"


def types_filename(feature: str) -> str:
    return f"{feature}-types.ts"


def prd_filename(sequence: int, feature: str) -> str:
    return f"{format_sequence(sequence)}-prd-{feature}.md"


def tasklist_filename(prd_file: str) -> str:
    """Task lists embed the full PRD filename, including its number prefix."""
    return f"tasks-{prd_file}"


def parse_prd_filename(filename: str) -> tuple[int, str] | None:
    """Return (sequence, feature) for a PRD filename, or None."""
    match = PRD_FILENAME_RE.match(filename)
    if not match:
        return None
    return int(match.group(1)), match.group(2)
