"""
Claude CLI integration.

ClaudeAgent runs the implementation stage: the rendered prompt goes in on
stdin and the call blocks until the process exits. ClaudeScaffolder runs a
scaffold skill ("/<skill> <feature>") the same way. Neither parses output;
whether a story is done is decided by prd.json, not by what the agent says.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ralph_loop.lib.agents_config import AgentsConfig, get_stage_command
from ralph_loop.lib.prompts import render_prompt
from ralph_loop.lib.types import AgentResult

logger = logging.getLogger(__name__)

# Characters of stdout/stderr kept on the result
OUTPUT_TAIL_CHARS = 4000


def _tail(text: str, limit: int = OUTPUT_TAIL_CHARS) -> str:
    return text[-limit:] if text and len(text) > limit else (text or "")


def run_stage(
    config: AgentsConfig,
    stage: str,
    prompt: str,
    cwd: Path,
    timeout: int = 0,
    log_file: Optional[Path] = None,
) -> AgentResult:
    """Run one stage command to completion.

    timeout <= 0 means wait indefinitely. A missing binary or OS error comes
    back as a failed AgentResult rather than an exception.
    """
    stage_cmd = get_stage_command(config, stage, {"prompt": prompt, "project_root": str(cwd)})
    logger.info(f"Running {stage}: {' '.join(stage_cmd.cmd[:3])} ...")

    try:
        result = subprocess.run(
            stage_cmd.cmd,
            cwd=str(cwd),
            input=stage_cmd.get_stdin_input(prompt),
            capture_output=True,
            text=True,
            timeout=timeout if timeout and timeout > 0 else None,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
        logger.warning(f"{stage} timed out after {timeout}s")
        return AgentResult(exit_code=-1, stdout=_tail(stdout), stderr="Timeout expired", timed_out=True)
    except FileNotFoundError:
        return AgentResult(exit_code=127, stderr=f"{stage_cmd.cmd[0]} not found on PATH")
    except OSError as e:
        return AgentResult(exit_code=126, stderr=str(e))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        log_file.write_text(
            f"=== COMMAND ===\n{' '.join(stage_cmd.cmd)}\n\n"
            f"=== EXIT CODE ===\n{result.returncode}\n\n"
            f"=== STDOUT ===\n{result.stdout}\n\n"
            f"=== STDERR ===\n{result.stderr}\n"
        )

    return AgentResult(
        exit_code=result.returncode,
        stdout=_tail(result.stdout),
        stderr=_tail(result.stderr),
    )


class ClaudeAgent:
    """Implementation agent (Agent port)."""

    def __init__(self, config: AgentsConfig, timeout: int = 0, log_dir: Optional[Path] = None):
        self.config = config
        self.timeout = timeout
        self.log_dir = log_dir

    def invoke(self, prompt: str, cwd: Path) -> AgentResult:
        log_file = self.log_dir / "implement.log" if self.log_dir else None
        return run_stage(self.config, "implement", prompt, cwd, self.timeout, log_file)


class ClaudeScaffolder:
    """Scaffold skill runner (Scaffolder port)."""

    def __init__(self, config: AgentsConfig, timeout: int = 0, log_dir: Optional[Path] = None):
        self.config = config
        self.timeout = timeout
        self.log_dir = log_dir

    def scaffold(self, skill: str, feature: str, cwd: Path) -> AgentResult:
        prompt = render_prompt("scaffold", skill=skill, feature=feature)
        log_file = self.log_dir / "scaffold.log" if self.log_dir else None
        return run_stage(self.config, "scaffold", prompt, cwd, self.timeout, log_file)
