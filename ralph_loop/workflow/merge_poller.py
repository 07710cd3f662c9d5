"""
Bounded wait for a pull request to merge.

The only explicit wait loop in the system. Auto-merge is armed first so
that, if we give up, the PR still merges on its own once CI is green.

Total wall time is bounded by timeout + poll_interval: the loop checks
elapsed time before each poll and sleeps at most one interval after it.
"""

import logging
import time
from enum import Enum
from typing import Callable

from ralph_loop.git.branches import BranchManager
from ralph_loop.lib.types import PR_STATE_CLOSED, PR_STATE_MERGED, PullRequest
from ralph_loop.ports import CodeHost

logger = logging.getLogger(__name__)


class MergeOutcome(str, Enum):
    MERGED = "merged"
    CLOSED = "closed"
    CONFLICTING = "conflicting"
    TIMEOUT = "timeout"


class MergePoller:
    def __init__(
        self,
        host: CodeHost,
        branches: BranchManager,
        poll_interval: int = 15,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.branches = branches
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def auto_merge(self, pr: PullRequest, branch: str, timeout: int) -> MergeOutcome:
        """Arm auto-merge (or merge directly) and wait up to `timeout` seconds.

        On MERGED the local and remote branch are cleaned up. On TIMEOUT the
        PR and branch are left alone with auto-merge armed.
        """
        print("  Enabling auto-merge...")
        if self.host.enable_auto_merge(pr.number):
            print("  ✓ Auto-merge enabled")
        else:
            print("  Auto-merge not available, attempting direct merge...")
            merged, output = self.host.merge_now(pr.number)
            if merged:
                print("  ✓ Merged directly")
                self.branches.cleanup_after_merge(branch)
                return MergeOutcome.MERGED
            logger.info(f"Direct merge of PR #{pr.number} failed: {output}")
            print("  ✗ Direct merge failed (CI may be required)")

        return self.wait_for_merge(pr, branch, timeout)

    def wait_for_merge(self, pr: PullRequest, branch: str, timeout: int) -> MergeOutcome:
        print(f"  Waiting for merge (timeout: {timeout}s)...")
        start = self._clock()

        while self._clock() - start < timeout:
            status = self.host.get_status(pr.number)

            if status.state == PR_STATE_MERGED:
                print("  ✓ PR merged successfully")
                self.branches.cleanup_after_merge(branch)
                return MergeOutcome.MERGED
            if status.state == PR_STATE_CLOSED:
                print("  ✗ PR was closed without merging")
                return MergeOutcome.CLOSED
            if status.is_conflicting:
                print("  ✗ PR has merge conflicts")
                return MergeOutcome.CONFLICTING

            if status.error:
                logger.debug(f"PR #{pr.number} status unavailable: {status.error}")
            elapsed = int(self._clock() - start)
            print(f"  Waiting... ({elapsed}s / {timeout}s)")
            self._sleep(self.poll_interval)

        print(f"  Timeout waiting for merge. PR #{pr.number} stays open with auto-merge enabled.")
        return MergeOutcome.TIMEOUT
