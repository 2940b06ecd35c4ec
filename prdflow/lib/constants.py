"""Shared constants for prdflow."""

import re

# Feature names are lowercase kebab-case
FEATURE_NAME_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
MAX_FEATURE_NAME_LEN = 48

# Literal markers consumed by downstream tooling. Do not reword.
UI_OMITTED_MARKER = "UI mockup omitted - headless feature"
TYPES_OMITTED_MARKER = "Types omitted - no storage requirements"
TASK_ZERO_OMITTED_MARKER = "Task 0.0 omitted - no storage requirements for this feature"

# Confirmation token required between task-list phases
GO_TOKEN = "Go"

# Recorded gate decisions
UI_INTERACTIVE = "interactive"
UI_HEADLESS = "headless"
STORAGE_PERSISTENT = "persistent"
STORAGE_NONE = "none"

# Fixed PRD section order: (key, heading)
PRD_SECTIONS = [
    ("introduction", "Introduction/Overview"),
    ("goals", "Goals"),
    ("user_stories", "User Stories"),
    ("functional_requirements", "Functional Requirements"),
    ("non_goals", "Non-Goals (Out of Scope)"),
    ("design", "Design Considerations"),
    ("technical", "Technical Considerations"),
    ("success_metrics", "Success Metrics"),
    ("open_questions", "Open Questions"),
]
PRD_SECTION_KEYS = [key for key, _ in PRD_SECTIONS]

GATE_UI = "ui"
GATE_STORAGE = "storage"

# Every gate option records exactly one of its gate's decisions
GATE_DECISIONS = {
    GATE_UI: (UI_INTERACTIVE, UI_HEADLESS),
    GATE_STORAGE: (STORAGE_PERSISTENT, STORAGE_NONE),
}

# Sections a hand-written PRD may leave out
OPTIONAL_PRD_SECTIONS = {"technical"}

DEFAULT_SERIALIZATION_ARTIFACT = "serializations.ts"

# Exactly this many mockup options per UI feature
MOCKUP_OPTION_COUNT = 3

STATE_DIRNAME = ".prdflow"

# Exit codes for cmd_* functions
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2
