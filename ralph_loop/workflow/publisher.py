"""
Publish a committed story branch: push it and open (or reuse) its PR.

A push failure is story-local: nothing left the machine. A PR failure after
a successful push is only "pending": the work is on the remote and a human
(or a later run) can open the PR.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ralph_loop.backlog.models import Story
from ralph_loop.git.runner import GitError
from ralph_loop.lib.github import CodeHostError
from ralph_loop.lib.types import PullRequest
from ralph_loop.ports import CodeHost, VersionControl
from ralph_loop.workflow.compose import compose_pr_title

logger = logging.getLogger(__name__)

PUBLISHED = "published"
PR_PENDING = "pr_pending"
PUBLISH_FAILED = "failed"


@dataclass
class PublishResult:
    status: str  # published, pr_pending, failed
    pr: Optional[PullRequest] = None
    error: str = ""
    reused: bool = False


class Publisher:
    def __init__(self, vcs: VersionControl, host: CodeHost, main_branch: str):
        self.vcs = vcs
        self.host = host
        self.main_branch = main_branch

    def publish(self, branch: str, story: Story, body: str) -> PublishResult:
        try:
            self.vcs.push(branch)
        except GitError as e:
            logger.error(f"Push of {branch} failed: {e}")
            return PublishResult(PUBLISH_FAILED, error=str(e))
        print(f"  ✓ Pushed {branch}")

        existing = self.host.find_pr(branch)
        if existing:
            print(f"  ✓ Reusing PR #{existing.number}: {existing.url}")
            return PublishResult(PUBLISHED, pr=existing, reused=True)

        try:
            pr = self.host.create_pr(branch, self.main_branch, compose_pr_title(story), body)
        except CodeHostError as e:
            logger.warning(f"PR creation failed for {branch}: {e}")
            print(f"  Warning: PR creation failed, branch {branch} is pushed")
            return PublishResult(PR_PENDING, error=str(e))

        print(f"  ✓ PR created: {pr.url}")
        return PublishResult(PUBLISHED, pr=pr)
