"""Tests for ralph_loop.lib.github module."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from ralph_loop.lib.github import (
    CHECKS_FAIL,
    CHECKS_PASS,
    CHECKS_PENDING,
    CHECKS_UNKNOWN,
    GH_TIMEOUT_SECONDS,
    CodeHostError,
    GhResult,
    GitHubHost,
    check_gh_available,
    parse_pr_number,
    run_gh,
    summarize_checks,
)
from ralph_loop.lib.types import PR_STATE_MERGED, PR_STATE_UNKNOWN

REPO = Path("/repo")


def gh(returncode=0, stdout="", stderr=""):
    return GhResult(returncode, stdout, stderr)


class TestRunGh:
    @patch("ralph_loop.lib.github.subprocess.run")
    def test_passes_args_and_timeout(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")
        result = run_gh(["pr", "list"], REPO)
        assert result.success
        assert mock_run.call_args[0][0] == ["gh", "pr", "list"]
        assert mock_run.call_args[1]["timeout"] == GH_TIMEOUT_SECONDS
        assert mock_run.call_args[1]["cwd"] == "/repo"

    @patch("ralph_loop.lib.github.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="gh", timeout=30)
        result = run_gh(["pr", "view", "1"], REPO)
        assert result.returncode == -1
        assert "timed out" in result.stderr

    @patch("ralph_loop.lib.github.subprocess.run")
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        assert run_gh(["--version"], REPO).returncode == 127


class TestParsePrNumber:
    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/acme/app/pull/42", 42),
        ("https://github.com/acme/app/pull/42/\n", 42),
        ("", None),
        ("not a url", None),
    ])
    def test_parse(self, url, expected):
        assert parse_pr_number(url) == expected


class TestSummarizeChecks:
    def test_all_success(self):
        assert summarize_checks(["SUCCESS", "success"]) == CHECKS_PASS

    def test_failure_wins_over_pending(self):
        assert summarize_checks(["PENDING", "FAILURE"]) == CHECKS_FAIL

    def test_pending(self):
        assert summarize_checks(["SUCCESS", "IN_PROGRESS"]) == CHECKS_PENDING

    def test_empty(self):
        assert summarize_checks([]) == CHECKS_UNKNOWN

    def test_skipped_only_is_unknown(self):
        assert summarize_checks(["SKIPPED"]) == CHECKS_UNKNOWN


class TestCheckGhAvailable:
    @patch("ralph_loop.lib.github.run_gh")
    def test_not_installed(self, mock_gh):
        mock_gh.return_value = gh(127, stderr="not found")
        ok, msg = check_gh_available(REPO)
        assert not ok
        assert "not found" in msg

    @patch("ralph_loop.lib.github.run_gh")
    def test_not_authenticated(self, mock_gh):
        mock_gh.side_effect = [gh(0, "gh version 2.40"), gh(1, stderr="not logged in")]
        ok, msg = check_gh_available(REPO)
        assert not ok
        assert "gh auth login" in msg

    @patch("ralph_loop.lib.github.run_gh")
    def test_ok(self, mock_gh):
        mock_gh.return_value = gh(0)
        assert check_gh_available(REPO) == (True, "")


class TestCreatePr:
    """PR creation and reuse."""

    @patch("ralph_loop.lib.github.run_gh")
    def test_parses_url_from_last_line(self, mock_gh):
        mock_gh.return_value = gh(0, "Creating pull request...\nhttps://github.com/acme/app/pull/7\n")
        pr = GitHubHost(REPO).create_pr("feat/a-001", "main", "feat(a-001): x", "body")
        assert pr.number == 7
        assert pr.url == "https://github.com/acme/app/pull/7"
        assert pr.branch == "feat/a-001"
        args = mock_gh.call_args[0][0]
        assert args[:2] == ["pr", "create"]
        assert args[args.index("--base") + 1] == "main"
        assert args[args.index("--head") + 1] == "feat/a-001"

    @patch("ralph_loop.lib.github.run_gh")
    def test_reuses_existing(self, mock_gh):
        existing = [{"number": 3, "url": "https://github.com/acme/app/pull/3",
                     "title": "t", "headRefName": "feat/a-001"}]
        mock_gh.side_effect = [
            gh(1, stderr='a pull request for branch "feat/a-001" already exists'),
            gh(0, json.dumps(existing)),
        ]
        pr = GitHubHost(REPO).create_pr("feat/a-001", "main", "t", "b")
        assert pr.number == 3

    @patch("ralph_loop.lib.github.run_gh")
    def test_failure_raises(self, mock_gh):
        mock_gh.return_value = gh(1, stderr="HTTP 422")
        with pytest.raises(CodeHostError, match="HTTP 422"):
            GitHubHost(REPO).create_pr("feat/a-001", "main", "t", "b")

    @patch("ralph_loop.lib.github.run_gh")
    def test_unparseable_output_raises(self, mock_gh):
        mock_gh.return_value = gh(0, "")
        with pytest.raises(CodeHostError):
            GitHubHost(REPO).create_pr("feat/a-001", "main", "t", "b")


class TestPrQueries:
    @patch("ralph_loop.lib.github.run_gh")
    def test_get_status_upper_cases(self, mock_gh):
        mock_gh.return_value = gh(0, json.dumps({"state": "merged", "mergeable": "unknown"}))
        status = GitHubHost(REPO).get_status(5)
        assert status.state == PR_STATE_MERGED
        assert status.error is None

    @patch("ralph_loop.lib.github.run_gh")
    def test_get_status_failure(self, mock_gh):
        mock_gh.return_value = gh(1, stderr="Could not resolve")
        status = GitHubHost(REPO).get_status(5)
        assert status.state == PR_STATE_UNKNOWN
        assert status.error == "Could not resolve"

    @patch("ralph_loop.lib.github.run_gh")
    def test_conflicting_status(self, mock_gh):
        mock_gh.return_value = gh(0, json.dumps({"state": "OPEN", "mergeable": "CONFLICTING"}))
        assert GitHubHost(REPO).get_status(5).is_conflicting

    @patch("ralph_loop.lib.github.run_gh")
    def test_list_open_prs_oldest_first(self, mock_gh):
        items = [
            {"number": 12, "url": "u12", "title": "b", "headRefName": "feat/b"},
            {"number": 9, "url": "u9", "title": "a", "headRefName": "feat/a"},
        ]
        mock_gh.return_value = gh(0, json.dumps(items))
        prs = GitHubHost(REPO).list_open_prs("main")
        assert [p.number for p in prs] == [9, 12]

    @patch("ralph_loop.lib.github.run_gh")
    def test_list_open_prs_failure_is_empty(self, mock_gh):
        mock_gh.return_value = gh(1, stderr="boom")
        assert GitHubHost(REPO).list_open_prs("main") == []

    @patch("ralph_loop.lib.github.run_gh")
    def test_auto_merge_flags(self, mock_gh):
        mock_gh.return_value = gh(0)
        assert GitHubHost(REPO).enable_auto_merge(4) is True
        assert mock_gh.call_args[0][0] == ["pr", "merge", "4", "--auto", "--squash", "--delete-branch"]

    @patch("ralph_loop.lib.github.run_gh")
    def test_merge_now_returns_output(self, mock_gh):
        mock_gh.return_value = gh(1, "", "Pull request is not mergeable: merge conflict")
        ok, output = GitHubHost(REPO).merge_now(4)
        assert ok is False
        assert "not mergeable" in output

    @patch("ralph_loop.lib.github.run_gh")
    def test_checks_read_despite_exit_code(self, mock_gh):
        mock_gh.return_value = gh(8, json.dumps([{"state": "PENDING"}, {"state": "SUCCESS"}]))
        assert GitHubHost(REPO).checks_status(4) == CHECKS_PENDING
