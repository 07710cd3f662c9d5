"""Tests for the publisher and the quality gate verifier."""

import json

from fakes import FakeHost, FakeVCS, git_failure
from ralph_loop.backlog.models import Story
from ralph_loop.backlog.store import BacklogStore
from ralph_loop.lib.types import PullRequest
from ralph_loop.workflow.publisher import PR_PENDING, PUBLISH_FAILED, PUBLISHED, Publisher
from ralph_loop.workflow.verifier import QualityGateVerifier

STORY = Story(id="a-001", title="Do A", priority=1)


class TestPublisher:
    """Push, then open or reuse the PR."""

    def test_push_and_create(self):
        vcs, host = FakeVCS(), FakeHost()
        result = Publisher(vcs, host, "main").publish("feat/a-001", STORY, "body")
        assert result.status == PUBLISHED
        assert vcs.pushed == ["feat/a-001"]
        assert result.pr.branch == "feat/a-001"
        assert result.pr.title == "feat(a-001): do a"
        assert host.last_body == "body"

    def test_push_failure(self):
        vcs, host = FakeVCS(), FakeHost()
        vcs.fail["push"] = git_failure("push", "rejected")
        result = Publisher(vcs, host, "main").publish("feat/a-001", STORY, "body")
        assert result.status == PUBLISH_FAILED
        assert "rejected" in result.error
        assert host.prs == {}

    def test_pr_failure_is_pending(self):
        vcs, host = FakeVCS(), FakeHost()
        host.create_error = "HTTP 502"
        result = Publisher(vcs, host, "main").publish("feat/a-001", STORY, "body")
        assert result.status == PR_PENDING
        assert result.status != PUBLISHED
        assert vcs.pushed == ["feat/a-001"]

    def test_reuses_open_pr(self):
        vcs, host = FakeVCS(), FakeHost()
        existing = PullRequest(7, "https://github.com/acme/app/pull/7", "feat/a-001")
        host.prs["feat/a-001"] = existing
        result = Publisher(vcs, host, "main").publish("feat/a-001", STORY, "body")
        assert result.pr is existing
        assert result.reused


def write_prd(path, passes):
    path.write_text(json.dumps({"userStories": [
        {"id": "a-001", "title": "A", "priority": 1, "passes": passes},
    ]}))


class TestQualityGateVerifier:
    """Only passes == true on disk counts."""

    def test_passes(self, tmp_path):
        write_prd(tmp_path / "prd.json", True)
        assert QualityGateVerifier(BacklogStore(tmp_path / "prd.json")).verify("a-001") is True

    def test_not_passed(self, tmp_path):
        write_prd(tmp_path / "prd.json", False)
        assert QualityGateVerifier(BacklogStore(tmp_path / "prd.json")).verify("a-001") is False

    def test_unknown_story(self, tmp_path):
        write_prd(tmp_path / "prd.json", True)
        assert QualityGateVerifier(BacklogStore(tmp_path / "prd.json")).verify("b-001") is False

    def test_corrupted_backlog(self, tmp_path):
        (tmp_path / "prd.json").write_text("{ half written")
        assert QualityGateVerifier(BacklogStore(tmp_path / "prd.json")).verify("a-001") is False

    def test_missing_backlog(self, tmp_path):
        assert QualityGateVerifier(BacklogStore(tmp_path / "prd.json")).verify("a-001") is False
