"""Git operations for ralph_loop.

The function modules wrap single git commands; GitRepo composes them into
the VersionControl port used by the loop.

Return type conventions:
- Functions returning GitResult: Caller must check .success (or call
  .raise_for_status()) before using output.
  Examples: fetch(), push_set_upstream(), commit()
- Functions returning bool: True on success/condition met, False otherwise.
  Examples: has_uncommitted_changes(), branch_exists()
- Functions returning parsed values (str, list): Return empty on failure.
  Examples: get_staged_files() -> [], get_log_oneline() -> ""
"""

from ralph_loop.git.runner import GitError, GitResult, run_git
from ralph_loop.git.status import (
    has_uncommitted_changes,
    get_staged_files,
)
from ralph_loop.git.branch import (
    branch_exists,
    remote_branch_exists,
    create_and_checkout,
    delete_local_branch,
    get_log_oneline,
)
from ralph_loop.git.commit import (
    stage_all,
    has_staged_changes,
    commit,
    reset_worktree,
)
from ralph_loop.git.remote import (
    fetch,
    pull_ff_only,
    push_set_upstream,
    delete_remote_branch,
    checkout_branch,
)
from ralph_loop.git.repo import GitRepo

__all__ = [
    # runner
    "GitError",
    "GitResult",
    "run_git",
    # status
    "has_uncommitted_changes",
    "get_staged_files",
    # branch
    "branch_exists",
    "remote_branch_exists",
    "create_and_checkout",
    "delete_local_branch",
    "get_log_oneline",
    # commit
    "stage_all",
    "has_staged_changes",
    "commit",
    "reset_worktree",
    # remote
    "fetch",
    "pull_ff_only",
    "push_set_upstream",
    "delete_remote_branch",
    "checkout_branch",
    # port adapter
    "GitRepo",
]
