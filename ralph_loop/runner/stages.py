"""
Stage execution framework.

A stage handler runs one step of an iteration and returns the state the
iteration moves to next. Story-local failures are raised as StageError;
run_stage records timing and outcome on the RunContext either way.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from ralph_loop.runner.context import RunContext


@dataclass
class StageError(Exception):
    """A stage failed; the story fails, the run continues."""
    stage: str
    message: str
    details: Optional[dict] = None

    def __str__(self):
        return f"[{self.stage}] {self.message}"


def run_stage(ctx: RunContext, story_id: str, stage_name: str, stage_fn: Callable[[], object]):
    """
    Run a single stage with timing and error handling.

    Returns whatever stage_fn returns. StageError is recorded and re-raised.
    """
    ctx.log(f"{story_id}: starting stage {stage_name}")
    start = time.time()

    try:
        result = stage_fn()
    except StageError as e:
        duration = time.time() - start
        ctx.record_stage(story_id, stage_name, "failed", duration, e.message)
        ctx.log(f"{story_id}: stage {stage_name} failed: {e.message}")
        raise

    duration = time.time() - start
    ctx.record_stage(story_id, stage_name, "passed", duration)
    ctx.log(f"{story_id}: stage {stage_name} passed ({duration:.2f}s)")
    return result
