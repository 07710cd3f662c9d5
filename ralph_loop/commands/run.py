"""
ralph run - Loop over the backlog, one story per iteration.
"""

import logging

from ralph_loop.agents.claude import ClaudeAgent, ClaudeScaffolder
from ralph_loop.backlog.store import BacklogStore
from ralph_loop.git.repo import GitRepo
from ralph_loop.lib.agents_config import load_agents_config
from ralph_loop.lib.config import RalphConfig
from ralph_loop.lib.constants import EXIT_ERROR, EXIT_LOCKED, EXIT_SUCCESS
from ralph_loop.lib.github import GitHubHost
from ralph_loop.lib.ledger import ProgressLedger
from ralph_loop.runner.context import RunContext
from ralph_loop.runner.locking import LockTimeout, run_lock
from ralph_loop.workflow.engine import DirtyWorkingTree, LoopController, Summary, banner
from ralph_loop.workflow.flow import ralph_loop

logger = logging.getLogger(__name__)


def build_controller(ctx: RunContext) -> LoopController:
    """Wire the production adapters (git, gh, claude) into a controller."""
    config = ctx.config
    agents_config = load_agents_config(config.ralph_dir)
    return LoopController(
        ctx=ctx,
        store=BacklogStore(config.prd_file),
        ledger=ProgressLedger(config.progress_file),
        vcs=GitRepo(config.project_root, remote=config.remote),
        host=GitHubHost(config.project_root),
        agent=ClaudeAgent(agents_config, timeout=config.agent_timeout, log_dir=ctx.run_dir),
        scaffolder=ClaudeScaffolder(agents_config, timeout=config.agent_timeout, log_dir=ctx.run_dir),
    )


def print_summary(summary: Summary, store: BacklogStore, progress_path) -> None:
    banner("Summary")

    stories = store.list_stories()
    done = sum(1 for s in stories if s.passes)
    print(f"Completed: {done} / {len(stories)}\n")

    if summary.completed:
        print("✓ Completed stories:")
        for story_id in summary.completed:
            print(f"  • {story_id}")
        print()

    if summary.failed or summary.pending_merge:
        print("✗ Failed/pending stories:")
        for story_id in summary.failed:
            print(f"  • {story_id}")
        for story_id in summary.pending_merge:
            print(f"  • {story_id} (merge pending)")
        print()

    if summary.remaining:
        print("Remaining stories:")
        for story_id, title in summary.remaining:
            print(f"  ○ {story_id}: {title}")
        print()

    if summary.open_pr_count:
        print(f"Open PRs: {summary.open_pr_count} (will auto-merge when CI passes)")
        print("  gh pr list\n")

    if summary.stopped_reason:
        print(f"Stopped early: {summary.stopped_reason}\n")

    print(f"Progress log: {progress_path}\n")


def cmd_run(args, config: RalphConfig) -> int:
    merge_enabled = not args.no_merge
    merge_timeout = args.merge_timeout if args.merge_timeout is not None else config.merge_timeout

    banner(f"Ralph Loop - Max iterations: {args.max_iterations}")
    print(f"  Auto-merge: {str(merge_enabled).lower()}")
    if merge_enabled:
        print(f"  Merge timeout: {merge_timeout}s")
    print()

    ctx = RunContext.create(config, "run")
    try:
        with run_lock(ctx.state_dir):
            controller = build_controller(ctx)
            summary = ralph_loop(
                controller,
                args.max_iterations,
                merge_enabled=merge_enabled,
                merge_timeout=merge_timeout,
            )
    except LockTimeout as e:
        print(f"ERROR: {e}")
        print("  Another ralph run is active in this clone.")
        return EXIT_LOCKED
    except DirtyWorkingTree as e:
        print(f"\nERROR: {e}")
        return EXIT_ERROR

    print_summary(summary, controller.store, config.progress_file)
    return EXIT_ERROR if summary.aborted else EXIT_SUCCESS
