"""GitRepo: the VersionControl port backed by the git CLI."""

import logging
from pathlib import Path

from ralph_loop.git.runner import GitError
from ralph_loop.git import branch as git_branch
# The package re-exports the commit() function under the submodule's name
from ralph_loop.git.commit import commit, has_staged_changes, reset_worktree, stage_all
from ralph_loop.git import remote as git_remote
from ralph_loop.git import status as git_status

logger = logging.getLogger(__name__)


class GitRepo:
    """A local clone with a single configured remote."""

    def __init__(self, path: Path, remote: str = "origin"):
        self.path = path
        self.remote = remote

    def is_dirty(self) -> bool:
        return git_status.has_uncommitted_changes(self.path)

    def fetch(self, prune: bool = False) -> None:
        git_remote.fetch(self.path, self.remote, prune=prune).raise_for_status("fetch")

    def checkout(self, branch: str) -> None:
        git_remote.checkout_branch(self.path, branch).raise_for_status(f"checkout {branch}")

    def pull_ff(self, branch: str) -> None:
        git_remote.pull_ff_only(self.path, self.remote, branch).raise_for_status(f"pull {branch}")

    def local_branch_exists(self, branch: str) -> bool:
        return git_branch.branch_exists(self.path, branch)

    def remote_branch_exists(self, branch: str) -> bool:
        return git_branch.remote_branch_exists(self.path, branch, self.remote)

    def create_branch(self, branch: str) -> None:
        git_branch.create_and_checkout(self.path, branch).raise_for_status(f"checkout -b {branch}")

    def delete_local_branch(self, branch: str) -> bool:
        result = git_branch.delete_local_branch(self.path, branch)
        if not result.success:
            logger.debug(f"Local branch {branch} not deleted: {result.stderr.strip()}")
        return result.success

    def delete_remote_branch(self, branch: str) -> bool:
        result = git_remote.delete_remote_branch(self.path, self.remote, branch)
        if not result.success:
            logger.debug(f"Remote branch {branch} not deleted: {result.stderr.strip()}")
        return result.success

    def stage_all(self) -> None:
        stage_all(self.path).raise_for_status("add -A")

    def has_staged_changes(self) -> bool:
        return has_staged_changes(self.path)

    def staged_files(self) -> list[str]:
        return git_status.get_staged_files(self.path)

    def commit(self, message: str) -> None:
        commit(self.path, message).raise_for_status("commit")

    def push(self, branch: str) -> None:
        git_remote.push_set_upstream(self.path, self.remote, branch).raise_for_status(
            f"push {branch}"
        )

    def discard_changes(self) -> bool:
        return reset_worktree(self.path)

    def last_commit_summary(self) -> str:
        return git_branch.get_log_oneline(self.path, 1)


__all__ = ["GitRepo", "GitError"]
