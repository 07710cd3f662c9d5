"""Git branch operations."""

from pathlib import Path

from ralph_loop.git.runner import run_git, GitResult


def branch_exists(repo: Path, branch: str) -> bool:
    """Check if a local branch exists."""
    result = run_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], repo)
    return result.success


def remote_branch_exists(repo: Path, branch: str, remote: str = "origin") -> bool:
    """Check the local remote-tracking ref for a branch (no network)."""
    result = run_git(
        ["show-ref", "--verify", "--quiet", f"refs/remotes/{remote}/{branch}"], repo
    )
    return result.success


def create_and_checkout(repo: Path, branch: str) -> GitResult:
    """Create a branch from HEAD and switch to it."""
    return run_git(["checkout", "-b", branch], repo)


def delete_local_branch(repo: Path, branch: str) -> GitResult:
    """Force-delete a local branch (unmerged work is discarded)."""
    return run_git(["branch", "-D", branch], repo)


def get_log_oneline(worktree: Path, count: int = 1) -> str:
    """Get the last `count` commits as one-line summaries."""
    result = run_git(["log", f"-{count}", "--pretty=format:%h %s"], worktree, timeout=10)
    return result.stdout.strip()
