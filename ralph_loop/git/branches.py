"""
Per-story branch lifecycle.

Branch names are derived from story ids, which are never reused, so deleting
a same-named branch in force mode can only destroy a stale attempt at the
same story.
"""

import logging

from ralph_loop.git.runner import GitError
from ralph_loop.ports import VersionControl

logger = logging.getLogger(__name__)


class BranchConflict(Exception):
    """A branch for this story already exists and force mode is off."""

    def __init__(self, branch: str, where: str):
        self.branch = branch
        self.where = where  # "local" or "remote"
        if where == "remote":
            hint = f"A PR may already exist for this story. Check: gh pr list --head {branch}"
        else:
            hint = f"Delete it (git branch -D {branch}) or resume it (git checkout {branch})"
        super().__init__(f"Branch {branch} already exists ({where}). {hint}")


def branch_name_for(story_id: str, prefix: str = "feat/") -> str:
    """Deterministic branch name for a story."""
    return f"{prefix}{story_id}"


class BranchManager:
    """Creates, syncs and removes story branches against one main line."""

    def __init__(self, vcs: VersionControl, main_branch: str = "main"):
        self.vcs = vcs
        self.main_branch = main_branch

    def sync(self) -> None:
        """Fetch and fast-forward the local main line.

        Raises GitError if any step fails: a story must never start from a
        stale or diverged main.
        """
        self.vcs.fetch()
        self.vcs.checkout(self.main_branch)
        self.vcs.pull_ff(self.main_branch)

    def create_branch(self, name: str, force_recreate: bool = False) -> None:
        """Create `name` from the current main and switch to it.

        Raises:
            BranchConflict: if the branch exists locally or on the remote and
                force_recreate is False.
        """
        if self.vcs.local_branch_exists(name):
            if not force_recreate:
                raise BranchConflict(name, "local")
            logger.info(f"Deleting stale local branch {name}")
            self.vcs.delete_local_branch(name)

        if self.vcs.remote_branch_exists(name):
            if not force_recreate:
                raise BranchConflict(name, "remote")
            logger.info(f"Deleting stale remote branch {name}")
            self.vcs.delete_remote_branch(name)

        self.vcs.create_branch(name)

    def cleanup_after_merge(self, name: str) -> None:
        """Remove local and remote copies of a merged branch.

        Idempotent: every step tolerates the branch already being gone.
        """
        for step, action in (
            ("checkout", lambda: self.vcs.checkout(self.main_branch)),
            ("pull", lambda: self.vcs.pull_ff(self.main_branch)),
        ):
            try:
                action()
            except GitError as e:
                logger.warning(f"cleanup {step} of {self.main_branch} failed: {e}")

        self.vcs.delete_local_branch(name)
        self.vcs.delete_remote_branch(name)

        try:
            self.vcs.fetch(prune=True)
        except GitError as e:
            logger.warning(f"fetch --prune failed: {e}")

    def discard(self, name: str) -> None:
        """Throw away a failed story: uncommitted work, checkout, local branch.

        Afterwards no local branch called `name` exists.
        """
        if not self.vcs.discard_changes():
            logger.warning(f"Could not fully reset working tree on {name}")
        self.return_to_main()
        if self.vcs.local_branch_exists(name) and not self.vcs.delete_local_branch(name):
            logger.warning(f"Failed to delete local branch {name}")

    def return_to_main(self) -> bool:
        """Best-effort checkout of the main line. Returns True on success."""
        try:
            self.vcs.checkout(self.main_branch)
            return True
        except GitError as e:
            logger.warning(f"Could not return to {self.main_branch}: {e}")
            return False
