"""Tests for ralph_loop.workflow.compose module."""

from ralph_loop.backlog.models import Story
from ralph_loop.workflow.compose import (
    PR_FOOTER,
    commit_summary,
    compose_commit_message,
    compose_pr_body,
    compose_pr_title,
)


def make_story(**kw):
    data = dict(
        id="auth-001",
        title="Add Login Form",
        priority=1,
        description="Users sign in with email and password.",
        acceptance_criteria=["Form validates email", "Errors are shown inline"],
        test_criteria=["login_form_test covers invalid email"],
    )
    data.update(kw)
    return Story(**data)


class TestCommitMessage:
    """Commit message layout."""

    def test_summary_line(self):
        assert commit_summary(make_story()) == "feat(auth-001): add login form"

    def test_full_layout(self):
        message = compose_commit_message(make_story(notes="Reuses the session helper."), ["a.py", "b.py"], iteration=3)
        assert message == (
            "feat(auth-001): add login form\n"
            "\n"
            "Users sign in with email and password.\n"
            "\n"
            "Acceptance Criteria:\n"
            "- Form validates email\n"
            "- Errors are shown inline\n"
            "\n"
            "Files changed (2):\n"
            "a.py\n"
            "b.py\n"
            "\n"
            "Notes: Reuses the session helper.\n"
            "\n"
            "Story-ID: auth-001\n"
            "Ralph-Iteration: 3\n"
        )

    def test_deterministic(self):
        story = make_story()
        files = [f"src/f{i}.py" for i in range(5)]
        assert compose_commit_message(story, files, 1) == compose_commit_message(story, files, 1)

    def test_iteration_trailer_omitted_when_none(self):
        message = compose_commit_message(make_story(), ["a.py"], iteration=None)
        assert "Ralph-Iteration" not in message
        assert message.endswith("Story-ID: auth-001\n")

    def test_file_list_capped(self):
        files = [f"src/f{i:02d}.py" for i in range(25)]
        message = compose_commit_message(make_story(), files, 1)
        assert "Files changed (25):" in message
        assert "src/f19.py" in message
        assert "src/f20.py" not in message
        assert "... and 5 more" in message

    def test_long_criterion_wrapped_with_indent(self):
        long = " ".join(["word"] * 40)
        message = compose_commit_message(make_story(acceptance_criteria=[long]), [], 1)
        lines = message.splitlines()
        start = lines.index("Acceptance Criteria:")
        assert lines[start + 1].startswith("- word")
        assert lines[start + 2].startswith("  word")
        assert all(len(l) <= 100 for l in lines)

    def test_optional_blocks_skipped(self):
        story = Story(id="x-001", title="Bare", priority=1)
        assert compose_commit_message(story, [], 2) == (
            "feat(x-001): bare\n\nStory-ID: x-001\nRalph-Iteration: 2\n"
        )


class TestPrText:
    """PR title and body."""

    def test_title_matches_summary(self):
        story = make_story()
        assert compose_pr_title(story) == commit_summary(story)

    def test_body_sections_in_order(self):
        body = compose_pr_body(make_story(notes="n"), ["a.py"], iteration=2)
        order = ["## Summary", "## Acceptance Criteria", "## Test Criteria", "## Files", "## Notes",
                 "**Story ID:** `auth-001`", "**Ralph Iteration:** 2", PR_FOOTER]
        positions = [body.index(marker) for marker in order]
        assert positions == sorted(positions)
        assert "- [x] Form validates email" in body
        assert "- a.py" in body

    def test_summary_falls_back_to_title(self):
        body = compose_pr_body(make_story(description=""), [])
        assert body.startswith("## Summary\n\nAdd Login Form\n")

    def test_body_without_iteration(self):
        body = compose_pr_body(make_story(), [], iteration=None)
        assert "Ralph Iteration" not in body
        assert body.endswith(PR_FOOTER + "\n")

    def test_body_file_cap(self):
        body = compose_pr_body(make_story(), [f"f{i}" for i in range(23)], max_files=20)
        assert "- f19" in body
        assert "- f20" not in body
        assert "... and 3 more" in body
