"""
Capability ports consumed by the loop.

Each external system is reached through a narrow interface so the
orchestration logic runs against fakes in tests and against the git/gh/agent
CLIs in production:

- VersionControl: the local clone (adapter: ralph_loop.git.repo.GitRepo)
- CodeHost: pull requests (adapter: ralph_loop.lib.github.GitHubHost)
- Agent: the coding agent (adapter: ralph_loop.agents.claude.ClaudeAgent)
- Scaffolder: named boilerplate generators (adapter: ClaudeScaffolder)
"""

from pathlib import Path
from typing import Protocol

from ralph_loop.lib.types import AgentResult, PRStatus, PullRequest


class VersionControl(Protocol):
    """Clone-local git operations. Methods raise GitError unless noted."""

    def is_dirty(self) -> bool: ...

    def fetch(self, prune: bool = False) -> None: ...

    def checkout(self, branch: str) -> None: ...

    def pull_ff(self, branch: str) -> None: ...

    def local_branch_exists(self, branch: str) -> bool: ...

    def remote_branch_exists(self, branch: str) -> bool: ...

    def create_branch(self, branch: str) -> None: ...

    def delete_local_branch(self, branch: str) -> bool:
        """Returns False instead of raising when the branch is already gone."""
        ...

    def delete_remote_branch(self, branch: str) -> bool:
        """Returns False instead of raising when the branch is already gone."""
        ...

    def stage_all(self) -> None: ...

    def has_staged_changes(self) -> bool: ...

    def staged_files(self) -> list[str]: ...

    def commit(self, message: str) -> None: ...

    def push(self, branch: str) -> None: ...

    def discard_changes(self) -> bool: ...

    def last_commit_summary(self) -> str: ...


class CodeHost(Protocol):
    """Pull-request operations against the remote code host."""

    def create_pr(self, branch: str, base: str, title: str, body: str) -> PullRequest:
        """Raises CodeHostError on failure."""
        ...

    def find_pr(self, branch: str) -> PullRequest | None: ...

    def enable_auto_merge(self, number: int) -> bool: ...

    def merge_now(self, number: int) -> tuple[bool, str]:
        """Immediate squash merge. Returns (ok, gh output for diagnostics)."""
        ...

    def get_status(self, number: int) -> PRStatus: ...

    def list_open_prs(self, base: str) -> list[PullRequest]: ...

    def checks_status(self, number: int) -> str:
        """One of "pass", "fail", "pending", "unknown"."""
        ...


class Agent(Protocol):
    """Single blocking invocation of the coding agent."""

    def invoke(self, prompt: str, cwd: Path) -> AgentResult: ...


class Scaffolder(Protocol):
    """Named, best-effort boilerplate generator."""

    def scaffold(self, skill: str, feature: str, cwd: Path) -> AgentResult: ...
