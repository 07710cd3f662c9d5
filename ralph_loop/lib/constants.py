"""Shared constants for ralph_loop."""

import re

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_LOCKED = 3

# Story ids become branch names, so they must be ref-safe
STORY_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')

DEFAULT_BRANCH_PREFIX = "feat/"
DEFAULT_MAIN_BRANCH = "main"
DEFAULT_REMOTE = "origin"
DEFAULT_RALPH_DIR = "scripts/ralph"

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MERGE_TIMEOUT = 600
DEFAULT_POLL_INTERVAL = 15

# 0 means the agent is trusted to exit on its own
DEFAULT_AGENT_TIMEOUT = 0

# Changed-file lists in commit messages and PR bodies are capped here
MAX_CHANGED_FILES_SHOWN = 20

# Wrap widths for commit message sections (keep bodies readable in git log)
COMMIT_WRAP_WIDTH = 100

# Pause between loop iterations
ITERATION_PAUSE_SECONDS = 2
