"""
Configuration loaders for prdflow.

Loads project configuration from prdflow.env and per-feature / per-task-list
metadata from meta.env files in the state directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import envparse
from .constants import DEFAULT_SERIALIZATION_ARTIFACT, STATE_DIRNAME

logger = logging.getLogger(__name__)

PROJECT_ENV_FILENAME = "prdflow.env"


@dataclass
class ProjectConfig:
    """Project-level configuration from prdflow.env"""
    name: str
    root: Path
    repo_path: Path  # Code under development, inspected for relevant files
    output_dir: Path  # Where every generated document lives
    verify_command: str  # Full verification suite, run before each parent commit
    verify_timeout: int
    temp_artifacts: list[str] = field(default_factory=list)  # Globs removed before commit
    serialization_artifact: str = DEFAULT_SERIALIZATION_ARTIFACT
    auto_commit: bool = True

    @property
    def state_dir(self) -> Path:
        return self.output_dir / STATE_DIRNAME

    @property
    def features_dir(self) -> Path:
        return self.state_dir / "features"

    @property
    def tasklists_dir(self) -> Path:
        return self.state_dir / "tasklists"


@dataclass
class FeatureMeta:
    """Feature metadata from meta.env"""
    name: str
    status: str
    created: str
    dir: Path
    ui: str = ""  # interactive / headless once decided
    storage: str = ""  # persistent / none once decided
    mockup_choice: str = ""
    prd_file: str = ""
    sequence: int | None = None


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_project_config(root: Path) -> ProjectConfig:
    """Load prdflow.env from root and return ProjectConfig.

    A missing file means all defaults, with the project named after root.
    """
    root = root.resolve()
    env_path = root / PROJECT_ENV_FILENAME
    env = envparse.load_env(env_path) if env_path.exists() else {}
    if not env:
        logger.debug(f"No {PROJECT_ENV_FILENAME} in {root}, using defaults")

    repo_path = Path(env.get("REPO_PATH", "."))
    output_dir = Path(env.get("OUTPUT_DIR", "tasks"))
    return ProjectConfig(
        name=env.get("PROJECT_NAME", root.name),
        root=root,
        repo_path=repo_path if repo_path.is_absolute() else (root / repo_path).resolve(),
        output_dir=output_dir if output_dir.is_absolute() else root / output_dir,
        verify_command=env.get("VERIFY_COMMAND", "pytest"),
        verify_timeout=int(env.get("VERIFY_TIMEOUT", "900")),
        temp_artifacts=_split_list(env.get("TEMP_ARTIFACTS", "")),
        serialization_artifact=env.get("SERIALIZATION_ARTIFACT", DEFAULT_SERIALIZATION_ARTIFACT),
        auto_commit=env.get("AUTO_COMMIT", "true").lower() == "true",
    )


def load_feature_meta(feature_dir: Path) -> FeatureMeta:
    """Load meta.env of a feature and return FeatureMeta."""
    env = envparse.load_env(feature_dir / "meta.env")
    sequence = env.get("SEQUENCE")
    return FeatureMeta(
        name=env["NAME"],
        status=env.get("STATUS", "requested"),
        created=env.get("CREATED_AT", ""),
        dir=feature_dir,
        ui=env.get("UI", ""),
        storage=env.get("STORAGE", ""),
        mockup_choice=env.get("MOCKUP_CHOICE", ""),
        prd_file=env.get("PRD_FILE", ""),
        sequence=int(sequence) if sequence else None,
    )


def update_meta(meta_dir: Path, updates: dict[str, str | None]) -> dict[str, str]:
    """Update keys in meta_dir/meta.env. None removes a key."""
    return envparse.update_env(meta_dir / "meta.env", updates)


def list_features(config: ProjectConfig) -> list[FeatureMeta]:
    """List every feature with state, skipping the archive."""
    if not config.features_dir.exists():
        return []

    features = []
    for d in sorted(config.features_dir.iterdir()):
        if d.is_dir() and not d.name.startswith("_") and (d / "meta.env").exists():
            try:
                features.append(load_feature_meta(d))
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping invalid feature state {d.name}: {e}")

    return features


@dataclass
class TaskListMeta:
    """Task list metadata from meta.env"""
    name: str  # Task list filename
    prd_file: str
    phase: str  # parents | subtasks
    status: str  # Execution FSM state
    dir: Path
    current_task: str = ""
    verify_task: str = ""


def load_tasklist_meta(meta_dir: Path) -> TaskListMeta:
    """Load meta.env of a task list and return TaskListMeta."""
    env = envparse.load_env(meta_dir / "meta.env")
    return TaskListMeta(
        name=env["TASKLIST_FILE"],
        prd_file=env.get("PRD_FILE", ""),
        phase=env.get("PHASE", "parents"),
        status=env.get("STATUS", "ready"),
        dir=meta_dir,
        current_task=env.get("CURRENT_TASK", ""),
        verify_task=env.get("VERIFY_TASK", ""),
    )
