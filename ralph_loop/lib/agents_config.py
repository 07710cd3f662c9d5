"""
Agent command configuration.

Loads agents.yaml from the ralph directory to decide which CLI runs for each
stage. Without a config file the defaults below are used.

STAGE COMMAND TEMPLATES
=======================

Each stage maps to a CLI command template. Templates support substitution
using {variable_name} syntax:

- {prompt}: The prompt text. If present in the template it is passed as a CLI
  argument. If absent, the prompt goes to the process on stdin, which is the
  default and the safe choice for long multi-line prompts.
- {project_root}: Directory the agent works in.

Example agents.yaml:

    stages:
      implement: claude --dangerously-skip-permissions --print --model opus
      scaffold: claude --dangerously-skip-permissions --print
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "agents.yaml"

DEFAULT_STAGE_COMMANDS = {
    "implement": "claude --dangerously-skip-permissions --print",
    # One story per invocation. Prompt (policy + story + ledger) on stdin.

    "scaffold": "claude --dangerously-skip-permissions --print",
    # "/<skill> <feature>" on stdin. Best-effort.
}

_PROMPT_PLACEHOLDER = "__PROMPT_PLACEHOLDER__"


@dataclass
class AgentsConfig:
    """Agent configuration from agents.yaml."""
    stages: dict[str, str] = field(default_factory=lambda: DEFAULT_STAGE_COMMANDS.copy())


def load_agents_config(ralph_dir: Optional[Path]) -> AgentsConfig:
    """Load agents.yaml and return AgentsConfig.

    If ralph_dir is None or the file doesn't exist, returns defaults. A file
    that fails to parse is reported and ignored.
    """
    if ralph_dir is None:
        return AgentsConfig()

    config_path = ralph_dir / CONFIG_FILENAME
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return AgentsConfig()

    stages = DEFAULT_STAGE_COMMANDS.copy()
    if isinstance(data, dict) and isinstance(data.get("stages"), dict):
        for stage, command in data["stages"].items():
            if not isinstance(command, str) or not command.strip():
                logger.warning(f"Ignoring empty command for stage '{stage}' in {config_path}")
                continue
            stages[stage] = command
    return AgentsConfig(stages=stages)


@dataclass
class StageCommand:
    """Result of building a stage command."""
    cmd: list[str]  # Command ready for subprocess
    prompt_via_stdin: bool  # True if prompt should be passed via stdin

    def get_stdin_input(self, prompt: str) -> str | None:
        """Return prompt if it should be passed via stdin, else None."""
        return prompt if self.prompt_via_stdin else None


def get_stage_command(
    config: AgentsConfig,
    stage: str,
    context: dict[str, str] | None = None,
) -> StageCommand:
    """Build command list for a stage with variable substitution.

    Raises:
        ValueError: If stage is unknown.

    Example:
        >>> config = AgentsConfig({"implement": "agent run -C {project_root} {prompt}"})
        >>> get_stage_command(config, "implement", {"project_root": "/src", "prompt": "do it"}).cmd
        ['agent', 'run', '-C', '/src', 'do it']
    """
    if stage not in config.stages:
        raise ValueError(f"Unknown stage: {stage}")

    cmd_template = config.stages[stage]
    prompt_via_stdin = "{prompt}" not in cmd_template

    # Pull the prompt out before shlex parsing to avoid quote issues
    prompt_value = None
    if context and "prompt" in context:
        prompt_value = context["prompt"]
        cmd_template = cmd_template.replace("{prompt}", _PROMPT_PLACEHOLDER)

    if context:
        for key, value in context.items():
            if key != "prompt":
                cmd_template = cmd_template.replace(f"{{{key}}}", str(value))

    remaining_vars = re.findall(r'\{(\w+)\}', cmd_template)
    if remaining_vars:
        logger.error(
            f"Stage '{stage}' has unsubstituted variables: {remaining_vars}. "
            f"Template: {cmd_template}"
        )

    cmd = shlex.split(cmd_template)
    if prompt_value is not None:
        cmd = [prompt_value if arg == _PROMPT_PLACEHOLDER else arg for arg in cmd]

    return StageCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin)


def get_stage_binary(config: AgentsConfig, stage: str) -> str:
    """Get the binary name for a stage (first element of command)."""
    if stage not in config.stages:
        raise ValueError(f"Unknown stage: {stage}")
    parts = shlex.split(config.stages[stage])
    return parts[0] if parts else ""


def check_binary_available(binary: str) -> bool:
    """Check if a binary is available in PATH."""
    return shutil.which(binary) is not None
