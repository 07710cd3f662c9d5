"""
Commit message and pull request text for a finished story.

Pure functions: the same story, file list and iteration always produce the
same bytes. Nothing here touches git or the network.
"""

import textwrap
from typing import Optional

from ralph_loop.backlog.models import Story
from ralph_loop.lib.constants import COMMIT_WRAP_WIDTH, MAX_CHANGED_FILES_SHOWN

__all__ = [
    "compose_commit_message",
    "compose_pr_title",
    "compose_pr_body",
    "commit_summary",
]

NOTES_PREFIX = "Notes: "
PR_FOOTER = "🤖 Generated by Ralph"


def _wrap(text: str, width: int, subsequent_indent: str = "") -> list[str]:
    """Wrap each existing line separately; blank lines are kept."""
    out = []
    for line in text.splitlines():
        if not line.strip():
            out.append("")
            continue
        out.extend(textwrap.wrap(
            line,
            width=width,
            subsequent_indent=subsequent_indent,
            break_long_words=False,
            break_on_hyphens=False,
        ) or [""])
    return out


def _file_lines(changed_files: list[str], max_files: int, bullet: str = "") -> list[str]:
    shown = [f"{bullet}{f}" for f in changed_files[:max_files]]
    hidden = len(changed_files) - max_files
    if hidden > 0:
        shown.append(f"... and {hidden} more")
    return shown


def commit_summary(story: Story) -> str:
    """Conventional-commit subject line: feat(<id>): <lowercased title>"""
    return f"feat({story.id}): {story.title.lower()}"


def compose_commit_message(
    story: Story,
    changed_files: list[str],
    iteration: Optional[int] = None,
    max_files: int = MAX_CHANGED_FILES_SHOWN,
    width: int = COMMIT_WRAP_WIDTH,
) -> str:
    """Full commit message for a passed story.

    Layout:
        feat(<id>): <title>

        <description, wrapped>

        Acceptance Criteria:
        - ...

        Files changed (N):
        path/one
        ... and K more

        Notes: ...

        Story-ID: <id>
        Ralph-Iteration: <n>
    """
    blocks = [[commit_summary(story)]]

    if story.description.strip():
        blocks.append(_wrap(story.description.strip(), width))

    if story.acceptance_criteria:
        lines = ["Acceptance Criteria:"]
        for criterion in story.acceptance_criteria:
            lines.extend(_wrap(f"- {criterion}", width, subsequent_indent="  "))
        blocks.append(lines)

    if changed_files:
        blocks.append(
            [f"Files changed ({len(changed_files)}):"] + _file_lines(changed_files, max_files)
        )

    if story.notes and story.notes.strip():
        notes = _wrap(story.notes.strip(), width - len(NOTES_PREFIX))
        blocks.append([NOTES_PREFIX + notes[0]] + notes[1:])

    trailer = [f"Story-ID: {story.id}"]
    if iteration is not None:
        trailer.append(f"Ralph-Iteration: {iteration}")
    blocks.append(trailer)

    return "\n\n".join("\n".join(block) for block in blocks) + "\n"


def compose_pr_title(story: Story) -> str:
    return commit_summary(story)


def compose_pr_body(
    story: Story,
    changed_files: list[str],
    iteration: Optional[int] = None,
    max_files: int = MAX_CHANGED_FILES_SHOWN,
) -> str:
    """Markdown PR description. Acceptance criteria are rendered as checked boxes."""
    sections = [
        "## Summary\n\n" + (story.description.strip() or story.title),
    ]

    criteria = "\n".join(f"- [x] {c}" for c in story.acceptance_criteria)
    sections.append("## Acceptance Criteria" + (f"\n\n{criteria}" if criteria else ""))

    if story.test_criteria:
        sections.append("## Test Criteria\n\n" + "\n".join(f"- {c}" for c in story.test_criteria))

    if changed_files:
        sections.append("## Files\n\n" + "\n".join(_file_lines(changed_files, max_files, bullet="- ")))

    if story.notes and story.notes.strip():
        sections.append("## Notes\n\n" + story.notes.strip())

    footer = ["---", f"**Story ID:** `{story.id}`"]
    if iteration is not None:
        footer.append(f"**Ralph Iteration:** {iteration}")
    sections.append("\n".join(footer))
    sections.append(PR_FOOTER)

    return "\n\n".join(sections) + "\n"
