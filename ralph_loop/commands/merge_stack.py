"""
ralph merge-stack - Merge all open PRs targeting main, oldest first.
"""

from ralph_loop.git.branch import get_log_oneline
from ralph_loop.git.repo import GitRepo
from ralph_loop.lib.config import RalphConfig
from ralph_loop.lib.constants import EXIT_ERROR, EXIT_SUCCESS
from ralph_loop.lib.github import GitHubHost, check_gh_available
from ralph_loop.workflow.engine import banner
from ralph_loop.workflow.merge_stack import MergeStack


def cmd_merge_stack(args, config: RalphConfig) -> int:
    banner("Merge Stack")
    if args.dry_run:
        print("  (Dry Run - No Changes)")
    if args.wait:
        print("  (Will wait for CI)")
    print()

    ok, error = check_gh_available(config.project_root)
    if not ok:
        print(f"ERROR: {error}")
        return EXIT_ERROR

    stack = MergeStack(
        GitHubHost(config.project_root),
        GitRepo(config.project_root, remote=config.remote),
        config.main_branch,
    )

    print(f"→ Fetching open PRs targeting {config.main_branch}...")
    prs = stack.plan()
    if not prs:
        print(f"\nNo open PRs found targeting {config.main_branch}.")
        return EXIT_SUCCESS

    print(f"\nOpen PRs ({len(prs)}):")
    for pr in prs:
        print(f"  #{pr.number} {pr.title}")
    print()

    if args.dry_run:
        banner("Merge Plan")
        for step, pr in enumerate(prs, 1):
            print(f"  {step}. Squash merge PR #{pr.number}: {pr.title}")
            print("     Delete branch after merge\n")
        print("Run without --dry-run to execute.")
        return EXIT_SUCCESS

    banner("Merging PRs")
    result = stack.run(prs, wait_for_ci=args.wait)

    banner("Summary")
    print(f"Merged: {len(result.merged)} of {result.total} PRs")
    if result.failed:
        print("\nFailed PRs:")
        for number, reason in result.failed:
            print(f"  - #{number} ({reason})")

    log = get_log_oneline(config.project_root, len(result.merged) + 2)
    if log:
        print(f"\nRecent commits on {config.main_branch}:")
        print(log)

    if result.remaining_open:
        print(f"\nRemaining open PRs: {result.remaining_open}")
        print("  gh pr list")
    return EXIT_ERROR if result.failed else EXIT_SUCCESS
