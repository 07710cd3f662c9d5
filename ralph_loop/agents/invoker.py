"""
Agent and scaffold invocation for one story.

The agent's only meaningful "return value" is the change it makes to
prd.json. The AgentResult coming back from here is logged and otherwise
ignored; the verifier reads the backlog afterwards.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from ralph_loop.backlog.models import Story
from ralph_loop.lib.ledger import Outcome, ProgressLedger
from ralph_loop.lib.prompts import build_section, render_prompt
from ralph_loop.lib.types import AgentResult
from ralph_loop.ports import Agent, Scaffolder

logger = logging.getLogger(__name__)

_TRAILING_NUMBER = re.compile(r"-[0-9]*$")


def feature_name_for(story_id: str) -> str:
    """auth-login-001 -> auth-login"""
    return _TRAILING_NUMBER.sub("", story_id)


def build_agent_prompt(
    story: Story,
    policy: str,
    progress: str,
    prd_path: Path,
    progress_path: Path,
) -> str:
    return render_prompt(
        "implement",
        policy=policy.rstrip(),
        story_id=story.id,
        story_json=json.dumps(story.to_dict(), indent=2),
        prd_path=str(prd_path),
        progress_path=str(progress_path),
        progress_section=build_section(
            progress,
            "## Progress So Far",
            empty_msg="(no earlier progress recorded)",
        ),
    )


def invoke_scaffold(
    scaffolder: Scaffolder,
    ledger: ProgressLedger,
    skill: Optional[str],
    story_id: str,
    cwd: Path,
) -> bool:
    """Run the story's scaffold skill, if it has one.

    Best-effort: any failure is a warning and the iteration carries on with
    the implementation. Returns True when the scaffold ran cleanly or there
    was nothing to run.
    """
    if not skill:
        return True

    feature = feature_name_for(story_id)
    ledger.append(Outcome.SCAFFOLD, story_id, f"{skill} {feature}")

    try:
        result = scaffolder.scaffold(skill, feature, cwd)
    except OSError as e:
        logger.warning(f"Scaffold skill {skill} could not start: {e}")
        print(f"  Warning: scaffold skill failed, continuing with implementation")
        return False

    if not result.success:
        logger.warning(f"Scaffold skill {skill} exited {result.exit_code}: {result.stderr.strip()[:200]}")
        print(f"  Warning: scaffold skill failed, continuing with implementation")
        return False
    return True


def invoke_agent(
    agent: Agent,
    ledger: ProgressLedger,
    story: Story,
    policy_file: Path,
    prd_path: Path,
    cwd: Path,
) -> AgentResult:
    """Hand one story to the agent and block until it exits."""
    ledger.append(Outcome.STARTED, story.id, story.title)

    policy = policy_file.read_text() if policy_file.exists() else ""
    prompt = build_agent_prompt(story, policy, ledger.read(), prd_path, ledger.path)

    try:
        result = agent.invoke(prompt, cwd)
    except OSError as e:
        logger.error(f"Agent could not start for {story.id}: {e}")
        return AgentResult(exit_code=126, stderr=str(e))

    if result.timed_out:
        logger.warning(f"Agent timed out on {story.id}")
    elif not result.success:
        logger.warning(f"Agent exited {result.exit_code} on {story.id}")
    else:
        logger.info(f"Agent finished {story.id}")
    return result
