"""
Progress ledger (progress.txt).

Append-only, human-readable record of what every iteration did. The full
text is handed to the agent on each iteration so it can learn from earlier
attempts, and it survives across runs. Nothing here ever rewrites or
truncates the file.

Line format:
    2026-01-31 14:02:11 - PASSED: auth-001 - Add login (branch: feat/auth-001)
    2026-01-31 14:09:40 - ALL COMPLETE (4 stories)
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Outcome(str, Enum):
    LOOP_STARTED = "LOOP STARTED"
    LOOP_ABORTED = "LOOP ABORTED"
    STARTED = "STARTED"
    SCAFFOLD = "SCAFFOLD"
    PASSED = "PASSED"
    FAILED = "FAILED"
    PENDING_MERGE = "PENDING MERGE"
    ALL_COMPLETE = "ALL COMPLETE"


class ProgressEntry(NamedTuple):
    timestamp: str
    outcome: Outcome
    story_id: Optional[str]
    text: str


def format_entry(
    timestamp: str,
    outcome: Outcome,
    story_id: Optional[str] = None,
    title: Optional[str] = None,
    detail: Optional[str] = None,
) -> str:
    """Render one ledger line (without trailing newline)."""
    line = f"{timestamp} - {outcome.value}"
    if story_id:
        line += f": {story_id}"
        if title:
            line += f" - {title}"
    elif title:
        line += f": {title}"
    if detail:
        line += f" ({detail})"
    return line


def parse_line(line: str) -> Optional[ProgressEntry]:
    """Parse a ledger line back into an entry. Free-form lines return None.

    Agents append their own notes to the ledger too, so anything that does
    not start with a timestamp and a known keyword is simply skipped.
    """
    if len(line) < 22 or line[19:22] != " - ":
        return None
    timestamp, rest = line[:19], line[22:]
    try:
        datetime.strptime(timestamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None

    # Longest keywords first so "PENDING MERGE" is not read as something shorter
    for outcome in sorted(Outcome, key=lambda o: len(o.value), reverse=True):
        if rest.startswith(outcome.value):
            tail = rest[len(outcome.value):]
            story_id = None
            if tail.startswith(": "):
                story_id = tail[2:].split(" ", 1)[0]
            return ProgressEntry(timestamp, outcome, story_id, rest)
    return None


class ProgressLedger:
    """Append-only progress file."""

    def __init__(self, path: Path, clock: Optional[Callable[[], datetime]] = None):
        self.path = path
        self._clock = clock or datetime.now

    def _timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def append(
        self,
        outcome: Outcome,
        story_id: Optional[str] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> str:
        """Append one entry and return the line written."""
        line = format_entry(self._timestamp(), outcome, story_id, title, detail)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a") as f:
            f.write(line + "\n")
        logger.debug(f"ledger: {line}")
        return line

    def loop_started(self, max_iterations: int, merge_enabled: bool) -> str:
        detail = f"max {max_iterations}, auto-merge: {str(merge_enabled).lower()}"
        return self.append(Outcome.LOOP_STARTED, detail=detail)

    def loop_aborted(self, reason: str) -> str:
        return self.append(Outcome.LOOP_ABORTED, detail=reason)

    def all_complete(self, total: int) -> str:
        return self.append(Outcome.ALL_COMPLETE, detail=f"{total} stories")

    def read(self) -> str:
        """Full ledger text, or an empty string before the first entry."""
        if not self.path.exists():
            return ""
        return self.path.read_text()

    def entries(self) -> list[ProgressEntry]:
        return [e for e in (parse_line(l) for l in self.read().splitlines()) if e]

    def tail(self, count: int = 10) -> list[str]:
        lines = [l for l in self.read().splitlines() if l.strip()]
        return lines[-count:] if count > 0 else []

    @contextmanager
    def preserved(self):
        """Keep the ledger intact across a block that resets the working tree.

        Discarding a failed story resets tracked files and cleans untracked
        ones, which would take progress.txt back with it. Whatever the ledger
        held on entry is put back on exit.
        """
        saved = self.read()
        try:
            yield
        finally:
            if saved and self.read() != saved:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(saved)
