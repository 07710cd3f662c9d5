"""
Data models for the backlog.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Story:
    """A unit of work from prd.json.

    Field names are snake_case here; the persisted format uses the camelCase
    names (see from_dict/to_dict). `passes` is written by the agent, never
    by the loop.
    """
    id: str                                    # e.g. auth-login-001
    title: str
    priority: int                              # lower value runs first
    passes: bool = False
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    test_criteria: list[str] = field(default_factory=list)
    test_files: list[str] = field(default_factory=list)
    files_to_create: list[str] = field(default_factory=list)  # advisory only
    scaffold_skill: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Story":
        return cls(
            id=data["id"],
            title=data["title"],
            priority=data["priority"],
            passes=bool(data.get("passes", False)),
            description=data.get("description") or "",
            acceptance_criteria=list(data.get("acceptanceCriteria") or []),
            test_criteria=list(data.get("testCriteria") or []),
            test_files=list(data.get("testFiles") or []),
            files_to_create=list(data.get("filesToCreate") or []),
            scaffold_skill=data.get("scaffoldSkill") or None,
            notes=data.get("notes") or None,
        )

    def to_dict(self) -> dict:
        """Persisted (camelCase) form, used when handing the story to the agent."""
        data = {
            "id": self.id,
            "title": self.title,
            "priority": self.priority,
            "description": self.description,
            "acceptanceCriteria": list(self.acceptance_criteria),
            "testCriteria": list(self.test_criteria),
            "testFiles": list(self.test_files),
            "filesToCreate": list(self.files_to_create),
            "passes": self.passes,
        }
        if self.scaffold_skill:
            data["scaffoldSkill"] = self.scaffold_skill
        if self.notes:
            data["notes"] = self.notes
        return data


@dataclass
class Backlog:
    """The whole prd.json document."""
    project_name: str
    description: str
    stories: list[Story] = field(default_factory=list)
