"""YAML front matter for markdown documents.

Recorded decisions (ui, storage) travel in the PRD's front matter so that
downstream tooling does not have to re-parse prose.
"""

import yaml

DELIMITER = "---"


class FrontMatterError(ValueError):
    pass


def split(text: str) -> tuple[dict, str]:
    """Split a document into (metadata, body). No front matter gives ({}, text)."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        return {}, text

    for i in range(1, len(lines)):
        if lines[i].strip() == DELIMITER:
            raw = "".join(lines[1:i])
            try:
                data = yaml.safe_load(raw) or {}
            except yaml.YAMLError as e:
                raise FrontMatterError(f"Invalid front matter: {e}") from e
            if not isinstance(data, dict):
                raise FrontMatterError("Front matter must be a mapping")
            return data, "".join(lines[i + 1:]).lstrip("\n")

    raise FrontMatterError("Unterminated front matter block")


def join(metadata: dict, body: str) -> str:
    """Prefix body with a front matter block. Empty metadata returns body as-is."""
    if not metadata:
        return body
    dumped = yaml.safe_dump(metadata, sort_keys=False, default_flow_style=False).strip()
    return f"{DELIMITER}\n{dumped}\n{DELIMITER}\n\n{body}"
