"""
Backlog store over prd.json.

prd.json is the single source of truth for what remains. The agent edits it
while the loop is blocked on the agent process, so nothing is cached: every
query re-reads and re-validates the file.

Format:
  {
    "projectName": "...",
    "description": "...",
    "userStories": [{"id": ..., "title": ..., "priority": 1, "passes": false, ...}]
  }
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from ralph_loop.backlog.models import Backlog, Story
from ralph_loop.lib.validate import check_before_write, load_checked

logger = logging.getLogger(__name__)

SCHEMA_NAME = "prd"


class BacklogError(Exception):
    """prd.json is unusable (duplicate ids, unknown story, ...)."""


class BacklogStore:
    """Read access to prd.json plus the single permitted write (passes -> true)."""

    def __init__(self, path: Path):
        self.path = path

    def _read_raw(self) -> dict:
        data = load_checked(self.path, SCHEMA_NAME)
        seen = set()
        for raw in data["userStories"]:
            if raw["id"] in seen:
                raise BacklogError(f"Duplicate story id in {self.path}: {raw['id']}")
            seen.add(raw["id"])
        return data

    def load(self) -> Backlog:
        data = self._read_raw()
        return Backlog(
            project_name=data.get("projectName", ""),
            description=data.get("description", ""),
            stories=[Story.from_dict(s) for s in data["userStories"]],
        )

    def list_stories(self) -> list[Story]:
        """All stories in declaration order."""
        return self.load().stories

    def get_story(self, story_id: str) -> Optional[Story]:
        for story in self.list_stories():
            if story.id == story_id:
                return story
        return None

    def remaining_stories(self, exclude: Iterable[str] = ()) -> list[Story]:
        """Incomplete stories in selection order (priority, then declaration)."""
        skip = set(exclude)
        pending = [s for s in self.list_stories() if not s.passes and s.id not in skip]
        # sorted() is stable, so equal priorities keep declaration order
        return sorted(pending, key=lambda s: s.priority)

    def next_story(self, exclude: Iterable[str] = ()) -> Optional[Story]:
        """Lowest-priority story with passes == false, or None when done.

        `exclude` holds ids already attempted in this run; a story that failed
        or is waiting on its PR is not picked again until the next run.
        """
        remaining = self.remaining_stories(exclude)
        return remaining[0] if remaining else None

    def remaining_count(self) -> int:
        return len(self.remaining_stories())

    def total_count(self) -> int:
        return len(self.list_stories())

    def completed_count(self) -> int:
        return sum(1 for s in self.list_stories() if s.passes)

    def is_passed(self, story_id: str) -> bool:
        """Read the passes flag straight from disk. Unknown ids read as False."""
        story = self.get_story(story_id)
        return bool(story and story.passes)

    def mark_passed(self, story_id: str) -> Story:
        """Set passes to true for one story.

        This is the agent's (or an operator's) write. Only the `passes` key
        of that one story changes; everything else in the file, including
        fields this package does not know about, is written back untouched.
        There is deliberately no way to set passes back to false.

        Raises:
            BacklogError: if the story does not exist
        """
        data = self._read_raw()
        for raw in data["userStories"]:
            if raw["id"] == story_id:
                if raw.get("passes") is True:
                    return Story.from_dict(raw)
                raw["passes"] = True
                self._write_raw(data)
                logger.info(f"Marked {story_id} as passed")
                return Story.from_dict(raw)
        raise BacklogError(f"Story not found: {story_id}")

    def _write_raw(self, data: dict) -> None:
        check_before_write(data, SCHEMA_NAME, self.path)
        # Write-then-rename so a crash never leaves a truncated backlog
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".prd-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(json.dumps(data, indent=2) + "\n")
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
