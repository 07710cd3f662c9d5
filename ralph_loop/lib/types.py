"""
Shared data types for ralph_loop.

Dataclasses used by both the port adapters and the workflow modules live
here to avoid circular imports.
"""

from dataclasses import dataclass
from typing import NamedTuple


# PR states as reported by the code host (upper case, gh's spelling)
PR_STATE_OPEN = "OPEN"
PR_STATE_MERGED = "MERGED"
PR_STATE_CLOSED = "CLOSED"
PR_STATE_UNKNOWN = "UNKNOWN"

MERGEABLE_CLEAN = "MERGEABLE"
MERGEABLE_CONFLICTING = "CONFLICTING"
MERGEABLE_UNKNOWN = "UNKNOWN"


@dataclass
class PullRequest:
    """A pull request correlated 1:1 with a story via its head branch."""
    number: int
    url: str
    branch: str
    title: str = ""


class PRStatus(NamedTuple):
    """Observed PR state. The poller reads it, the code host owns it."""
    state: str  # OPEN, MERGED, CLOSED, UNKNOWN
    mergeable: str = MERGEABLE_UNKNOWN  # MERGEABLE, CONFLICTING, UNKNOWN
    error: str | None = None

    @property
    def is_conflicting(self) -> bool:
        return self.state == PR_STATE_OPEN and self.mergeable == MERGEABLE_CONFLICTING


@dataclass
class AgentResult:
    """Outcome of one blocking agent (or scaffold) process.

    Advisory only: whether the story passed is decided by the backlog.
    """
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out
