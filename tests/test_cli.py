"""Tests for the ralph CLI and its commands."""

import argparse
import json
from unittest.mock import MagicMock, patch

import pytest

from fakes import FakeHost, make_config
from ralph_loop.backlog.store import BacklogStore
from ralph_loop.cli import build_parser, cmd_run, main
from ralph_loop.commands import merge_stack as merge_stack_cmd
from ralph_loop.commands import once as once_cmd
from ralph_loop.commands import run as run_cmd
from ralph_loop.lib.constants import EXIT_CONFIG, EXIT_ERROR, EXIT_LOCKED, EXIT_SUCCESS
from ralph_loop.lib.types import PullRequest
from ralph_loop.runner.context import ensure_state_dir
from ralph_loop.runner.locking import run_lock
from ralph_loop.workflow.engine import DirtyWorkingTree, IterationResult, Summary
from ralph_loop.workflow.state_machine import IterationState


@pytest.fixture
def ralph_dir(tmp_path):
    config = make_config(tmp_path)
    config.prd_file.write_text(json.dumps({"userStories": [
        {"id": "a-001", "title": "First", "priority": 1, "passes": False},
        {"id": "b-001", "title": "Second", "priority": 2, "passes": True},
    ]}))
    return config.ralph_dir


class TestParser:
    """Argument parsing."""

    def test_run_defaults(self):
        args = build_parser().parse_args(["run"])
        assert args.max_iterations == 10
        assert args.no_merge is False
        assert args.merge_timeout is None
        assert args.ralph_dir == "scripts/ralph"
        assert args.func is cmd_run

    def test_run_options(self):
        args = build_parser().parse_args(["-d", "ops/ralph", "run", "3", "--no-merge", "--merge-timeout", "90"])
        assert (args.ralph_dir, args.max_iterations, args.no_merge, args.merge_timeout) == ("ops/ralph", 3, True, 90)

    def test_once_merge_flag(self):
        assert build_parser().parse_args(["once", "--merge"]).merge is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestPassCommand:
    def test_marks_story(self, ralph_dir, capsys):
        assert main(["--ralph-dir", str(ralph_dir), "pass", "a-001"]) == EXIT_SUCCESS
        assert BacklogStore(ralph_dir / "prd.json").is_passed("a-001")
        assert "a-001: First marked as passed" in capsys.readouterr().out

    def test_unknown_story(self, ralph_dir, capsys):
        assert main(["--ralph-dir", str(ralph_dir), "pass", "z-999"]) == EXIT_ERROR
        assert "Story not found" in capsys.readouterr().out

    def test_invalid_id(self, ralph_dir, capsys):
        assert main(["--ralph-dir", str(ralph_dir), "pass", "../etc"]) == EXIT_ERROR
        assert "Invalid story id" in capsys.readouterr().out


class TestStatusCommand:
    def test_shows_progress(self, ralph_dir, capsys):
        assert main(["--ralph-dir", str(ralph_dir), "status"]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "[ ] a-001: First" in out
        assert "[✓] b-001: Second" in out
        assert "Progress: 1 / 2 stories complete" in out
        assert "Next story: a-001 (priority 1) -> feat/a-001" in out

    def test_invalid_backlog(self, ralph_dir, capsys):
        (ralph_dir / "prd.json").write_text("[]")
        assert main(["--ralph-dir", str(ralph_dir), "status"]) == EXIT_ERROR
        assert "ERROR:" in capsys.readouterr().out

    def test_lists_each_schema_problem(self, ralph_dir, capsys):
        (ralph_dir / "prd.json").write_text(json.dumps({"userStories": [
            {"id": "a-001", "title": "First", "passes": False},
            {"id": "b-001", "title": "", "priority": 2, "passes": True},
        ]}))
        assert main(["--ralph-dir", str(ralph_dir), "status"]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert "does not match the prd schema:" in out
        assert "  - $.userStories[0]: 'priority' is a required property" in out
        assert "  - $.userStories[1].title:" in out

    def test_missing_ralph_dir(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--ralph-dir", str(tmp_path / "nope"), "status"])
        assert exc_info.value.code == EXIT_CONFIG

    def test_bad_env_file(self, ralph_dir):
        (ralph_dir / "ralph.env").write_text("MAIN_BRANCH=$(whoami)\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["--ralph-dir", str(ralph_dir), "status"])
        assert exc_info.value.code == EXIT_CONFIG


class TestPrerequisites:
    @patch("ralph_loop.cli.check_gh_available")
    @patch("ralph_loop.cli.check_binary_available")
    def test_reports_every_problem(self, mock_binary, mock_gh, ralph_dir, capsys):
        mock_binary.return_value = False
        mock_gh.return_value = (False, "GitHub CLI not authenticated\n  Run: gh auth login")
        with pytest.raises(SystemExit) as exc_info:
            main(["--ralph-dir", str(ralph_dir), "run"])
        assert exc_info.value.code == EXIT_CONFIG
        out = capsys.readouterr().out
        assert "ERROR: claude CLI not found" in out
        assert "ERROR: GitHub CLI not authenticated" in out
        assert "CLAUDE.md not found" in out


def run_args(**kw):
    values = dict(max_iterations=2, no_merge=False, merge_timeout=None)
    values.update(kw)
    return argparse.Namespace(**values)


class TestRunCommand:
    """Exit codes of `ralph run` (flow and adapters patched out)."""

    @pytest.fixture
    def config(self, tmp_path, ralph_dir):
        return make_config(tmp_path)

    @patch("ralph_loop.commands.run.build_controller")
    @patch("ralph_loop.commands.run.ralph_loop")
    def test_success(self, mock_flow, mock_build, config, capsys):
        mock_build.return_value = MagicMock(store=BacklogStore(config.prd_file))
        mock_flow.return_value = Summary(completed=["a-001"], open_pr_count=0)
        assert run_cmd.cmd_run(run_args(no_merge=True), config) == EXIT_SUCCESS
        assert mock_flow.call_args[1] == {"merge_enabled": False, "merge_timeout": config.merge_timeout}
        out = capsys.readouterr().out
        assert "Completed: 1 / 2" in out
        assert "• a-001" in out

    @patch("ralph_loop.commands.run.build_controller")
    @patch("ralph_loop.commands.run.ralph_loop")
    def test_aborted_run_exits_nonzero(self, mock_flow, mock_build, config):
        mock_build.return_value = MagicMock(store=BacklogStore(config.prd_file))
        mock_flow.return_value = Summary(aborted=True, stopped_reason="sync with main failed")
        assert run_cmd.cmd_run(run_args(), config) == EXIT_ERROR

    @patch("ralph_loop.commands.run.build_controller")
    @patch("ralph_loop.commands.run.ralph_loop")
    def test_dirty_tree(self, mock_flow, mock_build, config, capsys):
        mock_flow.side_effect = DirtyWorkingTree()
        assert run_cmd.cmd_run(run_args(), config) == EXIT_ERROR
        assert "uncommitted changes" in capsys.readouterr().out

    @patch("ralph_loop.commands.run.ralph_loop")
    def test_second_loop_is_locked_out(self, mock_flow, config):
        with run_lock(ensure_state_dir(config.ralph_dir)):
            assert run_cmd.cmd_run(run_args(), config) == EXIT_LOCKED
        mock_flow.assert_not_called()


class TestMergeStackCommand:
    @patch("ralph_loop.commands.merge_stack.check_gh_available")
    @patch("ralph_loop.commands.merge_stack.GitHubHost")
    def test_dry_run_merges_nothing(self, mock_host_cls, mock_gh, tmp_path, capsys):
        host = FakeHost()
        host.open_prs = [PullRequest(4, "u4", "feat/a-001", "feat(a-001): first")]
        host.merge_now_ok = True
        mock_host_cls.return_value = host
        mock_gh.return_value = (True, "")
        args = argparse.Namespace(dry_run=True, wait=False)
        assert merge_stack_cmd.cmd_merge_stack(args, make_config(tmp_path)) == EXIT_SUCCESS
        assert host.merged == []
        assert "1. Squash merge PR #4: feat(a-001): first" in capsys.readouterr().out

    @patch("ralph_loop.commands.merge_stack.check_gh_available")
    def test_gh_missing(self, mock_gh, tmp_path):
        mock_gh.return_value = (False, "GitHub CLI (gh) not found")
        args = argparse.Namespace(dry_run=False, wait=False)
        assert merge_stack_cmd.cmd_merge_stack(args, make_config(tmp_path)) == EXIT_ERROR


class TestOnceCommand:
    """Output of `ralph once` (flow and adapters patched out)."""

    @pytest.fixture
    def config(self, tmp_path, ralph_dir):
        return make_config(tmp_path)

    @pytest.fixture
    def controller(self, config):
        controller = MagicMock(store=BacklogStore(config.prd_file))
        controller.vcs.last_commit_summary.return_value = "abc1234 feat(a-001): first"
        return controller

    @patch("ralph_loop.commands.once.build_controller")
    @patch("ralph_loop.commands.once.ralph_once")
    def test_reports_story_commit_and_next_steps(self, mock_flow, mock_build, config, controller, capsys):
        mock_build.return_value = controller
        pr = PullRequest(101, "https://github.com/acme/app/pull/101", "feat/a-001", "feat(a-001): first")
        mock_flow.return_value = IterationResult("a-001", "First", IterationState.DONE, "feat/a-001", pr=pr)
        args = argparse.Namespace(merge=False, merge_timeout=None)
        assert once_cmd.cmd_once(args, config) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Commit:\n  abc1234 feat(a-001): first" in out
        assert "Next Steps" in out
        assert "  https://github.com/acme/app/pull/101" in out
        assert "gh pr merge --squash --delete-branch" in out

    @patch("ralph_loop.commands.once.build_controller")
    @patch("ralph_loop.commands.once.ralph_once")
    def test_aborted_sync_is_not_a_story_failure(self, mock_flow, mock_build, config, controller, capsys):
        mock_build.return_value = controller
        mock_flow.return_value = IterationResult(
            "a-001", "First", IterationState.FAILED, "feat/a-001",
            reason="sync with main failed: offline", abort_run=True,
        )
        args = argparse.Namespace(merge=True, merge_timeout=None)
        assert once_cmd.cmd_once(args, config) == EXIT_ERROR
        out = capsys.readouterr().out
        assert "ERROR: sync with main failed: offline" in out
        assert "Story did not pass" not in out
