"""Tests for ralph_loop.lib.config and ralph_loop.lib.envparse modules."""

from pathlib import Path
from unittest.mock import patch

import pytest

from ralph_loop.lib.config import load_config
from ralph_loop.lib.constants import DEFAULT_MERGE_TIMEOUT
from ralph_loop.lib.envparse import parse_env


class TestParseEnv:
    """Safe KEY=value parsing."""

    def test_basic_and_quoted(self):
        env = parse_env('A=1\nB="two words"\nC=\'x\'\n')
        assert env == {"A": "1", "B": "two words", "C": "x"}

    def test_comments_and_blank_lines(self):
        env = parse_env("# comment\n\nMAIN_BRANCH=develop # inline\n")
        assert env == {"MAIN_BRANCH": "develop"}

    def test_export_prefix(self):
        assert parse_env("export REMOTE=upstream\n") == {"REMOTE": "upstream"}

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="no '='"):
            parse_env("JUSTAKEY\n")

    def test_lowercase_key_rejected(self):
        with pytest.raises(ValueError, match="Invalid key"):
            parse_env("lower=1\n")

    @pytest.mark.parametrize("value", ["$(whoami)", "`id`", "a;b", "a && b", "a | b", "${HOME}"])
    def test_forbidden_patterns(self, value):
        with pytest.raises(ValueError, match="Forbidden pattern"):
            parse_env(f"X={value}\n")


class TestLoadConfig:
    """Config resolution from ralph.env and the environment."""

    @pytest.fixture
    def ralph_dir(self, tmp_path):
        d = tmp_path / "scripts" / "ralph"
        d.mkdir(parents=True)
        return d

    def test_defaults(self, ralph_dir, tmp_path):
        config = load_config(ralph_dir, environ={})
        assert config.project_root == tmp_path.resolve()
        assert config.prd_file == ralph_dir.resolve() / "prd.json"
        assert config.progress_file == ralph_dir.resolve() / "progress.txt"
        assert config.policy_file == ralph_dir.resolve() / "CLAUDE.md"
        assert config.main_branch == "main"
        assert config.branch_prefix == "feat/"
        assert config.merge_timeout == DEFAULT_MERGE_TIMEOUT
        assert config.agent_timeout == 0

    def test_env_file_overrides(self, ralph_dir):
        (ralph_dir / "ralph.env").write_text(
            "MAIN_BRANCH=develop\nMERGE_TIMEOUT=120\nBRANCH_PREFIX=story/\nPROJECT_ROOT=.\n"
        )
        config = load_config(ralph_dir, environ={})
        assert config.main_branch == "develop"
        assert config.merge_timeout == 120
        assert config.branch_prefix == "story/"
        assert config.project_root == ralph_dir.resolve()

    def test_process_env_wins_for_main_branch(self, ralph_dir):
        (ralph_dir / "ralph.env").write_text("MAIN_BRANCH=develop\n")
        config = load_config(ralph_dir, environ={"RALPH_MAIN_BRANCH": "trunk"})
        assert config.main_branch == "trunk"

    def test_invalid_int_falls_back_with_warning(self, ralph_dir, caplog):
        (ralph_dir / "ralph.env").write_text("MERGE_TIMEOUT=soon\n")
        config = load_config(ralph_dir, environ={})
        assert config.merge_timeout == DEFAULT_MERGE_TIMEOUT
        assert "Invalid MERGE_TIMEOUT" in caplog.text

    def test_poll_interval_minimum(self, ralph_dir, caplog):
        (ralph_dir / "ralph.env").write_text("POLL_INTERVAL=0\n")
        config = load_config(ralph_dir, environ={})
        assert config.poll_interval == 15
        assert "below minimum" in caplog.text

    def test_bad_syntax_raises(self, ralph_dir):
        (ralph_dir / "ralph.env").write_text("MAIN_BRANCH=$(git branch)\n")
        with pytest.raises(ValueError):
            load_config(ralph_dir, environ={})

    @patch("ralph_loop.lib.config.envparse.load_env")
    def test_absolute_prd_path_kept(self, mock_load_env, ralph_dir):
        mock_load_env.return_value = {"PRD_FILE": "/srv/backlog/prd.json"}
        config = load_config(ralph_dir, environ={})
        assert config.prd_file == Path("/srv/backlog/prd.json")
