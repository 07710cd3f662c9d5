"""
JSON Schema checks for the backlog.

prd.json is edited by hand and by the agent between iterations, so it is
checked on every read and again before the loop writes it back. Every
schema problem is collected, not just the first, each labelled with the
JSON path of the offending value.
"""

import json
from functools import lru_cache
from pathlib import Path

from jsonschema.validators import validator_for

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


class ValidationError(Exception):
    """A document could not be loaded or does not match its schema."""

    def __init__(self, schema_name: str, message: str, problems: list[str] | None = None):
        self.schema_name = schema_name
        self.problems = problems or []
        super().__init__(f"{schema_name}: {message}")


def json_path(parts) -> str:
    """Render a jsonschema path deque as `$.userStories[2].priority`."""
    path = "$"
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


@lru_cache(maxsize=None)
def schema_validator(schema_name: str):
    schema_file = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_file.exists():
        raise ValidationError(schema_name, f"Schema file not found: {schema_file}")
    schema = json.loads(schema_file.read_text())
    cls = validator_for(schema)
    cls.check_schema(schema)
    return cls(schema)


def schema_problems(data, schema_name: str) -> list[str]:
    errors = schema_validator(schema_name).iter_errors(data)
    found = [(json_path(e.absolute_path), e.message) for e in errors]
    return [f"{where}: {message}" for where, message in sorted(found)]


def check(data, schema_name: str) -> None:
    problems = schema_problems(data, schema_name)
    if problems:
        noun = "problem" if len(problems) == 1 else "problems"
        raise ValidationError(
            schema_name, f"{len(problems)} schema {noun}: " + "; ".join(problems), problems
        )


def load_checked(filepath: Path, schema_name: str) -> dict:
    """Read a JSON file and check it, raising ValidationError on any defect."""
    if not filepath.exists():
        raise ValidationError(schema_name, f"File not found: {filepath}")
    try:
        data = json.loads(filepath.read_text())
    except json.JSONDecodeError as e:
        raise ValidationError(schema_name, f"Invalid JSON in {filepath}: {e}") from None
    check(data, schema_name)
    return data


def check_before_write(data: dict, schema_name: str, filepath: Path) -> None:
    problems = schema_problems(data, schema_name)
    if problems:
        raise ValidationError(
            schema_name,
            f"Refusing to write invalid data to {filepath}: " + "; ".join(problems),
            problems,
        )
