"""
Safe .env file parser for ralph.env.

Parses KEY=value files without shell execution. ralph.env often starts life
as a copy of a shell snippet, so a leading `export ` is accepted, but anything
that would need a shell to evaluate is rejected.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',          # AND chaining
    r'\|',          # pipe / OR chaining
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    # Unquoted values may carry a trailing " # comment"
    return value.split(" #", 1)[0].rstrip()


def parse_env(text: str, source: str = "<string>") -> dict[str, str]:
    """
    Parse env-file content into a dict.

    Raises:
        ValueError: if syntax invalid or forbidden pattern found
    """
    result = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if line.startswith("export "):
            line = line[len("export "):].lstrip()

        if '=' not in line:
            raise ValueError(f"{source}:{lineno}: Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = _unquote(value.strip())

        if not KEY_PATTERN.match(key):
            raise ValueError(f"{source}:{lineno}: Invalid key '{key}'")

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise ValueError(f"{source}:{lineno}: Forbidden pattern in value of {key}")

        result[key] = value

    return result


def load_env(filepath: Path, required: bool = True) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    A missing file yields {} when required is False.

    Raises:
        FileNotFoundError: if file doesn't exist and is required
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Env file not found: {path}")
        return {}

    return parse_env(path.read_text(), source=str(path))
