"""
Merge every open PR that targets the main line, oldest first.

All story PRs target main directly (no stacked branches), so no rebasing or
base updates are needed between merges. Used to drain PRs that the loop
left pending.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from ralph_loop.git.runner import GitError
from ralph_loop.lib.github import CHECKS_FAIL, CHECKS_PASS, CHECKS_PENDING
from ralph_loop.lib.types import PullRequest
from ralph_loop.ports import CodeHost, VersionControl

logger = logging.getLogger(__name__)

CI_WAIT_SECONDS = 300
CI_POLL_INTERVAL = 10

# Substring of gh's merge error -> advice
FAILURE_HINTS = [
    ("conflict", "Merge conflict - resolve manually: gh pr checkout {number}"),
    ("check", "CI checks must pass first. Use --wait or wait for CI to complete."),
    ("review", "PR requires review approval."),
    ("protected", "Branch protection rules prevent merge."),
]


def failure_hint(output: str, number: int) -> str:
    lowered = output.lower()
    for needle, hint in FAILURE_HINTS:
        if needle in lowered:
            return hint.format(number=number)
    return output.strip()


@dataclass
class MergeStackResult:
    total: int = 0
    merged: list[int] = field(default_factory=list)
    failed: list[tuple[int, str]] = field(default_factory=list)  # (number, reason)
    remaining_open: int = 0


class MergeStack:
    def __init__(
        self,
        host: CodeHost,
        vcs: VersionControl,
        main_branch: str,
        ci_timeout: int = CI_WAIT_SECONDS,
        ci_interval: int = CI_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.vcs = vcs
        self.main_branch = main_branch
        self.ci_timeout = ci_timeout
        self.ci_interval = ci_interval
        self._sleep = sleep

    def plan(self) -> list[PullRequest]:
        return self.host.list_open_prs(self.main_branch)

    def wait_for_ci(self, number: int) -> str:
        """Returns "pass", "fail", "timeout" or "unknown" (no checks: proceed)."""
        waited = 0
        while waited < self.ci_timeout:
            status = self.host.checks_status(number)
            if status == CHECKS_PASS:
                print("  ✓ CI passed")
                return CHECKS_PASS
            if status == CHECKS_FAIL:
                print("  ✗ CI failed - skipping")
                return CHECKS_FAIL
            if status != CHECKS_PENDING:
                print("  No checks or unknown status, proceeding...")
                return status
            print(f"  Checks pending... ({waited}s / {self.ci_timeout}s)")
            self._sleep(self.ci_interval)
            waited += self.ci_interval
        print("  ✗ Timed out waiting for CI - skipping")
        return "timeout"

    def run(self, prs: list[PullRequest], wait_for_ci: bool = False) -> MergeStackResult:
        result = MergeStackResult(total=len(prs))

        for pr in prs:
            print(f"→ PR #{pr.number}: {pr.title}")

            if wait_for_ci:
                print("  Waiting for CI checks...")
                ci = self.wait_for_ci(pr.number)
                if ci == CHECKS_FAIL:
                    result.failed.append((pr.number, "CI failed"))
                    print()
                    continue
                if ci == "timeout":
                    result.failed.append((pr.number, "CI timeout"))
                    print()
                    continue

            print("  Merging...")
            ok, output = self.host.merge_now(pr.number)
            if ok:
                print("  ✓ Merged and branch deleted")
                result.merged.append(pr.number)
            else:
                hint = failure_hint(output, pr.number)
                print("  ✗ Merge failed")
                print(f"    {hint}")
                result.failed.append((pr.number, hint))
            print()

        self.sync_local()
        result.remaining_open = len(self.host.list_open_prs(self.main_branch))
        return result

    def sync_local(self):
        """Best-effort: prune, return to main, fast-forward."""
        print("→ Syncing local repository...")
        for step, action in (
            ("fetch", lambda: self.vcs.fetch(prune=True)),
            ("checkout", lambda: self.vcs.checkout(self.main_branch)),
            ("pull", lambda: self.vcs.pull_ff(self.main_branch)),
        ):
            try:
                action()
            except GitError as e:
                logger.warning(f"merge-stack {step} failed: {e}")
