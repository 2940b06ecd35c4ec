"""
PRD sequence numbering.

Numbers are scoped to requirements documents only; question files and task
lists derive their names from the feature or PRD they belong to.

The counter is an explicit object persisted in <state>/sequence and guarded
by a file lock. It is seeded once from existing PRD filenames when the
counter file doesn't exist yet, so numbers are never reused.
"""

import logging
from pathlib import Path
from typing import Iterable

from .locking import file_lock
from .naming import parse_prd_filename

logger = logging.getLogger(__name__)


def assign_sequence_number(existing: Iterable[int]) -> int:
    """Return the next unused sequence number: one past the highest, starting at 1."""
    highest = 0
    for n in existing:
        if n < 1:
            logger.warning(f"[SEQ] Ignoring invalid sequence number {n}")
            continue
        highest = max(highest, n)
    return highest + 1


def scan_prd_numbers(output_dir: Path) -> list[int]:
    """Collect sequence numbers from PRD filenames in output_dir."""
    if not output_dir.exists():
        return []

    nums = []
    for f in output_dir.glob("*-prd-*.md"):
        if f.name.startswith("tasks-"):
            continue
        parsed = parse_prd_filename(f.name)
        if parsed:
            nums.append(parsed[0])
        else:
            logger.warning(f"[SEQ] Malformed PRD filename ignored: {f.name}")
    return nums


class SequenceCounter:
    """Strictly increasing PRD counter backed by a single integer file."""

    def __init__(self, counter_file: Path, seed_dir: Path | None = None, lock_timeout: float = 30):
        self.counter_file = counter_file
        self.seed_dir = seed_dir
        self.lock_timeout = lock_timeout
        self.lock_file = counter_file.with_suffix(".lock")

    def _read(self) -> int:
        if not self.counter_file.exists():
            seeded = max(scan_prd_numbers(self.seed_dir), default=0) if self.seed_dir else 0
            if seeded:
                logger.info(f"[SEQ] Seeding counter from existing PRDs: last={seeded}")
            return seeded
        text = self.counter_file.read_text().strip()
        try:
            return int(text) if text else 0
        except ValueError:
            raise ValueError(f"Corrupt sequence counter {self.counter_file}: {text!r}") from None

    def last(self) -> int:
        """Last assigned number (0 if none)."""
        return self._read()

    def peek(self) -> int:
        """Number the next reserve() would return, without reserving it."""
        return assign_sequence_number([self._read()])

    def reserve(self) -> int:
        """Assign and persist the next number."""
        with file_lock(self.lock_file, self.lock_timeout, "sequence counter lock"):
            current = self._read()
            if self.seed_dir:
                # A PRD may have been written by hand since the last reservation
                current = max([current] + scan_prd_numbers(self.seed_dir))
            n = assign_sequence_number([current])
            self.counter_file.parent.mkdir(parents=True, exist_ok=True)
            self.counter_file.write_text(f"{n}\n")
        logger.info(f"[SEQ] Reserved {n:04d}")
        return n
