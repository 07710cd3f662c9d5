"""Git commit operations."""

from pathlib import Path

from ralph_loop.git.runner import run_git, GitResult


def stage_all(worktree: Path) -> GitResult:
    """Stage all changes (new, modified, deleted)."""
    return run_git(["add", "-A"], worktree)


def has_staged_changes(worktree: Path) -> bool:
    """True if the index differs from HEAD."""
    result = run_git(["diff", "--cached", "--quiet"], worktree)
    return result.returncode == 1


def commit(worktree: Path, message: str) -> GitResult:
    """Create a commit with the given message."""
    return run_git(["commit", "-m", message], worktree)


def reset_worktree(worktree: Path) -> bool:
    """
    Reset uncommitted changes in worktree.

    Discards all staged and unstaged changes, removes untracked files.
    Returns True if successful.
    """
    reset = run_git(["reset", "--hard", "HEAD"], worktree)
    if not reset.success:
        return False

    clean = run_git(["clean", "-fd"], worktree)
    return clean.success
