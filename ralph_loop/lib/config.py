"""
Configuration loader for ralph_loop.

Settings come from <ralph_dir>/ralph.env (optional), with RALPH_MAIN_BRANCH
from the process environment taking precedence for the main line.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from . import envparse
from .constants import (
    DEFAULT_AGENT_TIMEOUT,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_MERGE_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REMOTE,
    MAX_CHANGED_FILES_SHOWN,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "ralph.env"


@dataclass
class RalphConfig:
    """Run-wide settings, resolved once at startup."""
    ralph_dir: Path
    project_root: Path
    prd_file: Path
    progress_file: Path
    policy_file: Path  # CLAUDE.md: the policy preamble handed to the agent
    main_branch: str
    remote: str
    branch_prefix: str
    merge_timeout: int
    poll_interval: int
    agent_timeout: int  # 0 = unbounded
    max_changed_files: int


def _int_setting(env: dict, key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {key}={raw!r} in {CONFIG_FILENAME}, using {default}")
        return default
    if value < minimum:
        logger.warning(f"{key}={value} below minimum {minimum}, using {default}")
        return default
    return value


def _resolve(base: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (base / path)


def load_config(ralph_dir: Path, environ: Mapping[str, str] | None = None) -> RalphConfig:
    """Load ralph.env from ralph_dir and return RalphConfig.

    Raises:
        ValueError: if ralph.env has invalid syntax
    """
    environ = os.environ if environ is None else environ
    ralph_dir = ralph_dir.resolve()
    env = envparse.load_env(ralph_dir / CONFIG_FILENAME, required=False)

    # scripts/ralph/ lives two levels below the project root
    project_root = _resolve(ralph_dir, env.get("PROJECT_ROOT", "../..")).resolve()

    main_branch = environ.get("RALPH_MAIN_BRANCH") or env.get("MAIN_BRANCH") or DEFAULT_MAIN_BRANCH

    return RalphConfig(
        ralph_dir=ralph_dir,
        project_root=project_root,
        prd_file=_resolve(ralph_dir, env.get("PRD_FILE", "prd.json")),
        progress_file=_resolve(ralph_dir, env.get("PROGRESS_FILE", "progress.txt")),
        policy_file=_resolve(ralph_dir, env.get("POLICY_FILE", "CLAUDE.md")),
        main_branch=main_branch,
        remote=env.get("REMOTE", DEFAULT_REMOTE),
        branch_prefix=env.get("BRANCH_PREFIX", DEFAULT_BRANCH_PREFIX),
        merge_timeout=_int_setting(env, "MERGE_TIMEOUT", DEFAULT_MERGE_TIMEOUT),
        poll_interval=_int_setting(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL, minimum=1),
        agent_timeout=_int_setting(env, "AGENT_TIMEOUT", DEFAULT_AGENT_TIMEOUT),
        max_changed_files=_int_setting(env, "MAX_CHANGED_FILES", MAX_CHANGED_FILES_SHOWN, minimum=1),
    )
