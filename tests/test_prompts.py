"""Tests for the prompts module."""

import pytest

from ralph_loop.lib.prompts import (
    load_prompt,
    render_prompt,
    build_section,
    clear_cache,
    PromptError,
)


class TestLoadPrompt:
    """Tests for load_prompt function."""

    def test_load_existing_prompt(self):
        clear_cache()
        content = load_prompt("implement")
        assert "{story_id}" in content
        assert "{progress_section}" in content

    def test_html_comments_stripped(self):
        clear_cache()
        content = load_prompt("implement")
        assert "<!--" not in content
        assert "-->" not in content
        assert content.startswith("{policy}")

    def test_load_nonexistent_prompt_raises(self):
        clear_cache()
        with pytest.raises(PromptError) as exc_info:
            load_prompt("nonexistent_prompt_xyz")
        assert "not found" in str(exc_info.value)


class TestRenderPrompt:
    """Tests for render_prompt function."""

    def test_scaffold(self):
        assert render_prompt("scaffold", skill="ios-feature", feature="auth-login").strip() == "/ios-feature auth-login"

    def test_missing_variable(self):
        with pytest.raises(PromptError, match="Missing required variable"):
            render_prompt("scaffold", skill="x")

    def test_braces_in_values_kept(self):
        text = render_prompt(
            "implement",
            policy="Use {curly} braces",
            story_id="a-001",
            story_json='{"id": "a-001"}',
            prd_path="prd.json",
            progress_path="progress.txt",
            progress_section="",
        )
        assert "Use {curly} braces" in text
        assert '{"id": "a-001"}' in text


class TestBuildSection:
    def test_with_content(self):
        assert build_section("line\n\n", "## H") == "## H\n\nline\n"

    def test_empty_with_message(self):
        assert build_section("  ", "## H", empty_msg="(none)") == "## H\n\n(none)\n"

    def test_empty_without_message(self):
        assert build_section(None, "## H") == ""
