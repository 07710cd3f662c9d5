"""Git remote operations."""

from pathlib import Path

from ralph_loop.git.runner import run_git, GitResult, NETWORK_TIMEOUT


def fetch(repo: Path, remote: str = "origin", prune: bool = False) -> GitResult:
    """Fetch from remote."""
    args = ["fetch", remote]
    if prune:
        args.append("--prune")
    return run_git(args, repo, timeout=NETWORK_TIMEOUT)


def pull_ff_only(repo: Path, remote: str, branch: str) -> GitResult:
    """Pull with fast-forward only (no merge commits)."""
    return run_git(["pull", "--ff-only", remote, branch], repo, timeout=NETWORK_TIMEOUT)


def push_set_upstream(worktree: Path, remote: str, branch: str) -> GitResult:
    """Push and set upstream tracking."""
    return run_git(["push", "-u", remote, branch], worktree, timeout=NETWORK_TIMEOUT)


def delete_remote_branch(repo: Path, remote: str, branch: str) -> GitResult:
    """Delete a branch on the remote."""
    return run_git(["push", remote, "--delete", branch], repo, timeout=NETWORK_TIMEOUT)


def checkout_branch(repo: Path, branch: str) -> GitResult:
    """Checkout a branch."""
    return run_git(["checkout", branch], repo)
