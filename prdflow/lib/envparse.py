"""
Safe .env file parser.

Parses KEY=value files (prdflow.env, meta.env) without shell execution.
Rejects dangerous patterns that could enable injection.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',          # AND chaining
    r'\|\|',        # OR chaining
    r'\|',          # pipe
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _unquote(value: str) -> str:
    if len(value) >= 2:
        if (value.startswith('"') and value.endswith('"')) or \
           (value.startswith("'") and value.endswith("'")):
            return value[1:-1]
    return value


def _check_value(value: str, lineno: int | None = None) -> None:
    where = f"Line {lineno}: " if lineno is not None else ""
    for pattern in FORBIDDEN_PATTERNS:
        if re.search(pattern, value):
            raise ValueError(f"{where}Forbidden pattern in value")
    if '\n' in value or '"' in value:
        raise ValueError(f"{where}Value must be a single line without double quotes")


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    result = {}
    path = Path(filepath)

    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")

    for lineno, line in enumerate(path.read_text().splitlines(), 1):
        line = line.strip()

        # Skip empty and comments
        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = _unquote(value.strip())

        if not KEY_PATTERN.match(key):
            raise ValueError(f"Line {lineno}: Invalid key '{key}'")

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise ValueError(f"Line {lineno}: Forbidden pattern in value")

        result[key] = value

    return result


def write_env(filepath: str | Path, values: dict[str, str]) -> None:
    """Write a dict as a quoted KEY="value" file, keys in insertion order."""
    lines = []
    for key, value in values.items():
        if not KEY_PATTERN.match(key):
            raise ValueError(f"Invalid key '{key}'")
        value = str(value)
        _check_value(value)
        lines.append(f'{key}="{value}"')
    Path(filepath).write_text("\n".join(lines) + "\n")


def update_env(filepath: str | Path, updates: dict[str, str | None]) -> dict[str, str]:
    """Merge updates into an env file. A None value removes the key.

    Creates the file when it doesn't exist. Returns the resulting values.
    """
    path = Path(filepath)
    values = load_env(path) if path.exists() else {}
    for key, value in updates.items():
        if value is None:
            values.pop(key, None)
        else:
            values[key] = str(value)
    write_env(path, values)
    return values
