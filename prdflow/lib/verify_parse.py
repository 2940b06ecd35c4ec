"""
Parse verification-suite output into structured failures.

Supports pytest and Jest output; anything else is kept as truncated raw
output. The parsed result is stored next to the task list's state so the
failure can be shown again after the supervisor halts.
"""

import re
from dataclasses import asdict, dataclass, field

MAX_RAW = 2000
MAX_LISTED = 10


@dataclass
class FailureInfo:
    """A single failing test or collection error."""
    name: str
    file: str | None = None
    line: int | None = None
    message: str = ""
    kind: str = "test"  # test | collection


@dataclass
class VerificationReport:
    command: str
    returncode: int
    failures: list[FailureInfo] = field(default_factory=list)
    summary: str = ""
    raw_output: str = ""
    timed_out: bool = False

    @property
    def passed(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationReport":
        data = dict(data)
        data["failures"] = [FailureInfo(**f) for f in data.get("failures", [])]
        return cls(**data)


_PYTEST_FAILED_RE = re.compile(r'^(?:FAILED|ERROR)\s+([^:\s]+)::(\S+)(?:\s+-\s+(.+))?$', re.MULTILINE)
_PYTEST_LOCATION_RE = re.compile(r'^([^\s:]+\.py):(\d+):', re.MULTILINE)
_PYTEST_ASSERT_RE = re.compile(r'^E\s+(?:AssertionError:\s*)?(.+)$', re.MULTILINE)
_PYTEST_SUMMARY_RE = re.compile(r'^=+ (.*(?:passed|failed|error).*?) =+$', re.MULTILINE)
_JEST_FAILED_RE = re.compile(r'^\s*●\s+(.+?)\s*$', re.MULTILINE)
_JEST_LOCATION_RE = re.compile(r'\(([^\s():]+\.[jt]sx?):(\d+):\d+\)')
_JEST_SUMMARY_RE = re.compile(r'^Tests:\s+(.+)$', re.MULTILINE)


def _truncate(s: str, max_len: int = MAX_RAW) -> str:
    """Keep the end of the output, where errors usually are."""
    s = s.strip()
    if len(s) <= max_len:
        return s
    return "...(truncated)\n" + s[-max_len:].strip()


def _parse_pytest(combined: str) -> tuple[list[FailureInfo], str]:
    file_to_line: dict[str, int] = {}
    for m in _PYTEST_LOCATION_RE.finditer(combined):
        file_to_line[m.group(1)] = int(m.group(2))
    assertions = [m.group(1).strip() for m in _PYTEST_ASSERT_RE.finditer(combined)]

    failures = []
    for m in _PYTEST_FAILED_RE.finditer(combined):
        path, name, message = m.groups()
        if not message and assertions:
            message = assertions.pop(0)
        failures.append(FailureInfo(name=name, file=path, line=file_to_line.get(path), message=message or ""))

    if not failures and "ERROR collecting" in combined:
        missing = re.search(r"ModuleNotFoundError: No module named ['\"]([^'\"]+)['\"]", combined)
        message = f"Missing module: {missing.group(1)}" if missing else "Collection error"
        failures.append(FailureInfo(name="collection", kind="collection", message=message))

    summaries = _PYTEST_SUMMARY_RE.findall(combined)
    return failures, summaries[-1] if summaries else ""


def _parse_jest(combined: str) -> tuple[list[FailureInfo], str]:
    failures = []
    for m in _JEST_FAILED_RE.finditer(combined):
        name = m.group(1)
        tail = combined[m.end():m.end() + 1500]
        loc = _JEST_LOCATION_RE.search(tail)
        message = next((l.strip() for l in tail.splitlines() if l.strip()), "")
        failures.append(FailureInfo(
            name=name,
            file=loc.group(1) if loc else None,
            line=int(loc.group(2)) if loc else None,
            message=message[:200],
        ))
    summary = _JEST_SUMMARY_RE.search(combined)
    return failures, summary.group(1).strip() if summary else ""


def parse_verification_output(command: str, returncode: int, stdout: str, stderr: str,
                              timed_out: bool = False) -> VerificationReport:
    """Build a report from a finished verification run."""
    combined = f"{stdout}\n{stderr}"
    report = VerificationReport(
        command=command,
        returncode=returncode,
        raw_output=_truncate(combined),
        timed_out=timed_out,
    )
    if timed_out:
        report.summary = "Verification timed out"
        return report

    failures, summary = _parse_pytest(combined)
    if not failures:
        failures, summary = _parse_jest(combined)
    report.failures = failures

    if report.passed:
        report.summary = summary or "Verification passed"
    elif failures:
        report.summary = summary or f"{len(failures)} failure(s)"
    else:
        report.summary = summary or f"Verification failed (exit {returncode}, unparsed output)"
    return report


def format_report(report: VerificationReport) -> str:
    """Human-readable failure summary."""
    lines = [f"{report.summary} ({report.command})"]
    for f in report.failures[:MAX_LISTED]:
        loc = f" at {f.file}:{f.line}" if f.file and f.line else (f" in {f.file}" if f.file else "")
        lines.append(f"  - {f.name}{loc}")
        if f.message:
            msg = f.message if len(f.message) <= 150 else f.message[:150] + "..."
            lines.append(f"      {msg}")
    if len(report.failures) > MAX_LISTED:
        lines.append(f"  - ... and {len(report.failures) - MAX_LISTED} more")
    if not report.failures and report.raw_output and not report.passed:
        lines.append("")
        lines.append(report.raw_output)
    return "\n".join(lines)
