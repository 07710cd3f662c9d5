"""Prefect wrappers for the loop.

Wraps the controller with @flow/@task to get:
- Automatic retry of the main-line sync (network hiccups on fetch/pull)
- One task run per iteration, visible in the Prefect UI when a server is
  configured (the sync task runs nested inside it)

Nothing is cached: every sync and iteration must really run.

The controller itself stays plain Python; tests drive it directly.
"""

from typing import Optional

from prefect import flow, task
from prefect.cache_policies import NO_CACHE

from ralph_loop.backlog.models import Story
from ralph_loop.workflow.engine import IterationResult, LoopController, Summary


@task(
    retries=2,
    retry_delay_seconds=10,
    cache_policy=NO_CACHE,
    name="sync_main",
    description="Fetch and fast-forward the main line"
)
def task_sync_main(controller: LoopController):
    """Sync with Prefect retry handling.

    A GitError that survives the retries ends the run.
    """
    controller.branches.sync()


@task(
    cache_policy=NO_CACHE,
    name="iteration",
    description="Run one story through the iteration pipeline"
)
def task_iteration(
    controller: LoopController,
    number: Optional[int],
    story: Story,
    merge_enabled: bool,
    merge_timeout: int,
    force_recreate: bool,
    unattended: bool,
) -> IterationResult:
    return controller.run_iteration(
        number=number,
        story=story,
        merge_enabled=merge_enabled,
        merge_timeout=merge_timeout,
        force_recreate=force_recreate,
        unattended=unattended,
    )


@flow(name="ralph_loop")
def ralph_loop(
    controller: LoopController,
    max_iterations: int,
    merge_enabled: bool = True,
    merge_timeout: Optional[int] = None,
) -> Summary:
    """Loop mode under Prefect."""
    controller.sync_main = lambda: task_sync_main(controller)
    return controller.run(
        max_iterations,
        merge_enabled=merge_enabled,
        merge_timeout=merge_timeout,
        iteration_runner=lambda **kw: task_iteration(controller, **kw),
    )


@flow(name="ralph_once")
def ralph_once(
    controller: LoopController,
    merge_enabled: bool = False,
    merge_timeout: Optional[int] = None,
) -> Optional[IterationResult]:
    """Single-iteration mode under Prefect."""
    controller.sync_main = lambda: task_sync_main(controller)
    return controller.run_once(merge_enabled=merge_enabled, merge_timeout=merge_timeout)
