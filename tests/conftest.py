"""Shared fixtures: a project directory and saved PRDs to generate tasks from."""

from unittest.mock import patch

import pytest

from prdflow.artifacts.prd import RequirementsDoc, render_prd
from prdflow.lib.config import load_project_config
from prdflow.lib.constants import PRD_SECTION_KEYS, TYPES_OMITTED_MARKER, UI_OMITTED_MARKER
from prdflow.lib.naming import prd_filename, types_filename


@pytest.fixture(autouse=True)
def no_notifications():
    """Keep notify-send quiet; tests assert on the mock when they care."""
    with patch("prdflow.notifications.notify") as mock_notify:
        yield mock_notify


@pytest.fixture
def project(tmp_path):
    (tmp_path / "prdflow.env").write_text(
        'PROJECT_NAME="logtool"\n'
        'VERIFY_COMMAND="pytest -q"\n'
        'VERIFY_TIMEOUT="60"\n'
    )
    return load_project_config(tmp_path)


def write_prd(config, sequence, feature, storage="none", requirements=None):
    """Write a saved PRD to the output directory and return its path."""
    if requirements is None:
        requirements = ["The system must parse raw log lines", "The system must write normalized output"]
    sections = {key: "- placeholder" for key in PRD_SECTION_KEYS}
    sections["functional_requirements"] = "\n".join(f"{i}. {r}" for i, r in enumerate(requirements, 1))
    sections["design"] = UI_OMITTED_MARKER
    types_file = None
    if storage == "persistent":
        types_file = types_filename(feature)
        sections["technical"] = f"Approved type definitions are in `{types_file}`."
    else:
        sections["technical"] = TYPES_OMITTED_MARKER

    doc = RequirementsDoc(
        feature=feature,
        title=feature.replace("-", " ").title(),
        ui="headless",
        storage=storage,
        sections=sections,
        sequence=sequence,
        types_file=types_file,
    )
    config.output_dir.mkdir(parents=True, exist_ok=True)
    path = config.output_dir / prd_filename(sequence, feature)
    path.write_text(render_prd(doc))
    return path


@pytest.fixture
def make_prd(project):
    def _make(sequence, feature, storage="none", requirements=None):
        return write_prd(project, sequence, feature, storage, requirements)
    return _make
