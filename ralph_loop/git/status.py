"""Git status operations."""

from pathlib import Path

from ralph_loop.git.runner import run_git


def has_uncommitted_changes(worktree: Path) -> bool:
    """Check for staged or unstaged changes to tracked files.

    Untracked files are not counted: they cannot be misattributed to a
    story commit until someone stages them.
    """
    unstaged = run_git(["diff", "--quiet"], worktree)
    staged = run_git(["diff", "--cached", "--quiet"], worktree)
    # exit 0 = clean, exit 1 = has changes
    return unstaged.returncode != 0 or staged.returncode != 0


def get_staged_files(worktree: Path) -> list[str]:
    """Get names of staged files, in git's order. Empty on failure."""
    result = run_git(["diff", "--cached", "--name-only"], worktree)
    if not result.success:
        return []
    return [f.strip() for f in result.stdout.splitlines() if f.strip()]
