"""
ralph once - Run a single iteration on the next story and stop.

No force mode: if a branch for the story already exists the attempt aborts
with a hint. The story branch stays checked out afterwards: the commit for
review on success, the attempt for debugging on failure.
"""

from ralph_loop.lib.config import RalphConfig
from ralph_loop.lib.constants import EXIT_ERROR, EXIT_LOCKED, EXIT_SUCCESS
from ralph_loop.runner.context import RunContext
from ralph_loop.runner.locking import LockTimeout, run_lock
from ralph_loop.workflow.engine import DirtyWorkingTree, banner
from ralph_loop.workflow.flow import ralph_once
from ralph_loop.workflow.state_machine import IterationState
from ralph_loop.commands.run import build_controller
from ralph_loop.commands.status import print_stories


def print_next_steps(result, merge: bool):
    print()
    banner("Next Steps")
    if merge:
        print("Continue with next story:")
        print("  ralph once --merge")
        return
    if result.pr:
        print("Review the PR:")
        print(f"  {result.pr.url}\n")
    print("Merge when ready:")
    print("  gh pr merge --squash --delete-branch\n")
    print("Or merge all open PRs:")
    print("  ralph merge-stack\n")
    print("Continue with next story (after merging):")
    print("  ralph once")


def cmd_once(args, config: RalphConfig) -> int:
    merge_timeout = args.merge_timeout if args.merge_timeout is not None else config.merge_timeout

    banner("Ralph Single Iteration")
    if args.merge:
        print("  (Auto-merge enabled)")
    print()

    ctx = RunContext.create(config, "once")
    try:
        with run_lock(ctx.state_dir):
            controller = build_controller(ctx)
            print_stories(controller.store)
            result = ralph_once(controller, merge_enabled=args.merge, merge_timeout=merge_timeout)
    except LockTimeout as e:
        print(f"ERROR: {e}")
        return EXIT_LOCKED
    except DirtyWorkingTree as e:
        print(f"\nERROR: {e}")
        return EXIT_ERROR

    if result is None:
        return EXIT_SUCCESS

    if result.abort_run:
        print(f"\nERROR: {result.reason}")
        return EXIT_ERROR

    if result.state == IterationState.FAILED:
        banner("✗ Story did not pass")
        print(f"Reason: {result.reason}")
        return EXIT_ERROR

    if result.state == IterationState.PENDING_MERGE:
        banner("Story committed, merge pending")
        if result.pr:
            print(f"PR will merge when CI passes: {result.pr.url}")
        else:
            print(f"Branch {result.branch} is pushed; open the PR manually.")
    else:
        banner("✓ Story Complete")

    print(f"\nBranch: {result.branch}")
    if result.pr:
        print(f"PR:     {result.pr.url}")
    last = controller.vcs.last_commit_summary()
    if last:
        print(f"\nCommit:\n  {last}")

    store = controller.store
    remaining = store.remaining_stories()
    print(f"\nProgress: {store.completed_count()} / {store.total_count()} complete")
    if remaining:
        print(f"Next story: {remaining[0].id}: {remaining[0].title}")

    print_next_steps(result, args.merge)
    return EXIT_SUCCESS
