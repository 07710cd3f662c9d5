"""
GitHub integration via the gh CLI.

GitHubHost implements the CodeHost port. Every call runs gh in the project
root with a timeout; gh failures come back as False / UNKNOWN status rather
than exceptions, except create_pr which raises CodeHostError so the
publisher can record the story as pending.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import NamedTuple, Optional

from ralph_loop.lib.types import (
    MERGEABLE_UNKNOWN,
    PR_STATE_UNKNOWN,
    PRStatus,
    PullRequest,
)

logger = logging.getLogger(__name__)


# Timeout for GitHub CLI operations (seconds)
GH_TIMEOUT_SECONDS = 30

PR_LIST_FIELDS = "number,url,title,headRefName"
PR_LIST_LIMIT = 200

CHECKS_PASS = "pass"
CHECKS_FAIL = "fail"
CHECKS_PENDING = "pending"
CHECKS_UNKNOWN = "unknown"


class CodeHostError(Exception):
    """A code host operation that must succeed did not."""


class GhResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def run_gh(args: list[str], cwd: Path, timeout: int = GH_TIMEOUT_SECONDS) -> GhResult:
    """Run gh with args. Timeouts and a missing binary become failed results."""
    try:
        result = subprocess.run(
            ["gh", *args],
            capture_output=True,
            text=True,
            cwd=str(cwd),
            timeout=timeout,
        )
        return GhResult(result.returncode, result.stdout, result.stderr)
    except subprocess.TimeoutExpired:
        return GhResult(-1, "", "GitHub operation timed out")
    except FileNotFoundError:
        return GhResult(127, "", "GitHub CLI (gh) not found")


def parse_pr_number(url: str) -> Optional[int]:
    """https://github.com/o/r/pull/42 -> 42"""
    if not url:
        return None
    try:
        return int(url.strip().rstrip("/").split("/")[-1])
    except ValueError:
        return None


def _pr_from_json(item: dict) -> PullRequest:
    return PullRequest(
        number=int(item["number"]),
        url=item.get("url", ""),
        branch=item.get("headRefName", ""),
        title=item.get("title", ""),
    )


def summarize_checks(states: list[str]) -> str:
    """Collapse individual check states into pass / fail / pending / unknown."""
    normalized = [s.upper() for s in states if s]
    if not normalized:
        return CHECKS_UNKNOWN
    if all(s == "SUCCESS" for s in normalized):
        return CHECKS_PASS
    if any(s in ("FAILURE", "ERROR", "CANCELLED", "TIMED_OUT") for s in normalized):
        return CHECKS_FAIL
    if any(s in ("PENDING", "QUEUED", "IN_PROGRESS") for s in normalized):
        return CHECKS_PENDING
    return CHECKS_UNKNOWN


def check_gh_available(cwd: Path | None = None) -> tuple[bool, str]:
    """Check gh CLI is installed and authenticated.

    Returns: (ok, error_message)
    """
    cwd = cwd or Path.cwd()
    result = run_gh(["--version"], cwd, timeout=5)
    if result.returncode == 127:
        return False, "GitHub CLI (gh) not found\n  Install: https://cli.github.com/"
    if not result.success:
        return False, "GitHub CLI (gh) not installed\n  Install: https://cli.github.com/"

    result = run_gh(["auth", "status"], cwd, timeout=10)
    if not result.success:
        return False, "GitHub CLI not authenticated\n  Run: gh auth login"
    return True, ""


class GitHubHost:
    """CodeHost adapter over gh."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path

    def _gh(self, *args: str) -> GhResult:
        return run_gh(list(args), self.repo_path)

    def create_pr(self, branch: str, base: str, title: str, body: str) -> PullRequest:
        result = self._gh(
            "pr", "create",
            "--base", base,
            "--head", branch,
            "--title", title,
            "--body", body,
        )
        if not result.success:
            # A PR for this branch from an earlier attempt is reused
            if "already exists" in result.stderr:
                existing = self.find_pr(branch)
                if existing:
                    logger.info(f"Reusing existing PR #{existing.number} for {branch}")
                    return existing
            raise CodeHostError(f"Failed to create PR: {result.stderr.strip()}")

        url = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
        number = parse_pr_number(url)
        if number is None:
            raise CodeHostError(f"Could not read PR number from gh output: {result.stdout.strip()!r}")
        return PullRequest(number=number, url=url, branch=branch, title=title)

    def find_pr(self, branch: str) -> PullRequest | None:
        result = self._gh(
            "pr", "list",
            "--head", branch,
            "--state", "open",
            "--json", PR_LIST_FIELDS,
        )
        if not result.success:
            return None
        try:
            items = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            return None
        return _pr_from_json(items[0]) if items else None

    def enable_auto_merge(self, number: int) -> bool:
        result = self._gh("pr", "merge", str(number), "--auto", "--squash", "--delete-branch")
        if not result.success:
            logger.info(f"Auto-merge unavailable for PR #{number}: {result.stderr.strip()}")
        return result.success

    def merge_now(self, number: int) -> tuple[bool, str]:
        result = self._gh("pr", "merge", str(number), "--squash", "--delete-branch")
        output = (result.stdout + result.stderr).strip()
        return result.success, output

    def get_status(self, number: int) -> PRStatus:
        result = self._gh("pr", "view", str(number), "--json", "state,mergeable")
        if not result.success:
            return PRStatus(PR_STATE_UNKNOWN, MERGEABLE_UNKNOWN, error=result.stderr.strip())
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return PRStatus(PR_STATE_UNKNOWN, MERGEABLE_UNKNOWN, error="Invalid JSON from gh")
        return PRStatus(
            state=(data.get("state") or PR_STATE_UNKNOWN).upper(),
            mergeable=(data.get("mergeable") or MERGEABLE_UNKNOWN).upper(),
        )

    def list_open_prs(self, base: str) -> list[PullRequest]:
        """Open PRs targeting base, oldest (lowest number) first."""
        result = self._gh(
            "pr", "list",
            "--base", base,
            "--state", "open",
            "--json", PR_LIST_FIELDS,
            "--limit", str(PR_LIST_LIMIT),
        )
        if not result.success:
            logger.warning(f"Could not list open PRs: {result.stderr.strip()}")
            return []
        try:
            items = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            return []
        return sorted((_pr_from_json(i) for i in items), key=lambda pr: pr.number)

    def checks_status(self, number: int) -> str:
        result = self._gh("pr", "checks", str(number), "--json", "state")
        if not result.stdout.strip():
            return CHECKS_UNKNOWN
        # gh pr checks exits non-zero while checks fail or are pending, so the
        # JSON is read regardless of the exit code
        try:
            checks = json.loads(result.stdout)
        except json.JSONDecodeError:
            return CHECKS_UNKNOWN
        return summarize_checks([c.get("state", "") for c in checks])
