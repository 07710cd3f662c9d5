#!/usr/bin/env python3
"""Ralph CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from ralph_loop.lib.agents_config import (
    check_binary_available,
    get_stage_binary,
    load_agents_config,
)
from ralph_loop.lib.config import RalphConfig, load_config
from ralph_loop.lib.constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RALPH_DIR,
    EXIT_CONFIG,
)
from ralph_loop.lib.github import check_gh_available
from ralph_loop.commands import merge_stack as cmd_merge_stack_module
from ralph_loop.commands import once as cmd_once_module
from ralph_loop.commands import pass_story as cmd_pass_module
from ralph_loop.commands import run as cmd_run_module
from ralph_loop.commands import status as cmd_status_module


def get_config(args) -> RalphConfig:
    """Load ralph.env from --ralph-dir, exiting on bad syntax."""
    ralph_dir = Path(args.ralph_dir)
    if not ralph_dir.is_dir():
        print(f"ERROR: Ralph directory not found: {ralph_dir}")
        sys.exit(EXIT_CONFIG)
    try:
        return load_config(ralph_dir)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(EXIT_CONFIG)


def check_prerequisites(config: RalphConfig) -> list[str]:
    """Everything the loop needs before touching git. Returns error messages."""
    errors = []

    agents_config = load_agents_config(config.ralph_dir)
    binary = get_stage_binary(agents_config, "implement")
    if not check_binary_available(binary):
        errors.append(f"{binary} CLI not found")

    ok, gh_error = check_gh_available(config.project_root)
    if not ok:
        errors.append(gh_error)

    if not config.prd_file.exists():
        errors.append(f"prd.json not found at {config.prd_file}")
    if not config.policy_file.exists():
        errors.append(f"CLAUDE.md not found at {config.policy_file}")
    return errors


def _prepare(args) -> RalphConfig:
    config = get_config(args)
    errors = check_prerequisites(config)
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        sys.exit(EXIT_CONFIG)
    return config


def cmd_run(args):
    config = _prepare(args)
    return cmd_run_module.cmd_run(args, config)


def cmd_once(args):
    config = _prepare(args)
    return cmd_once_module.cmd_once(args, config)


def cmd_status(args):
    config = get_config(args)
    return cmd_status_module.cmd_status(args, config)


def cmd_pass(args):
    config = get_config(args)
    return cmd_pass_module.cmd_pass(args, config)


def cmd_merge_stack(args):
    config = get_config(args)
    return cmd_merge_stack_module.cmd_merge_stack(args, config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='ralph', description='Ralph autonomous development loop')
    parser.add_argument('--ralph-dir', '-d', default=DEFAULT_RALPH_DIR,
                        help=f'Directory holding prd.json, progress.txt and CLAUDE.md (default: {DEFAULT_RALPH_DIR})')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # ralph run
    p_run = subparsers.add_parser('run', help='Loop over the backlog, one story per iteration')
    p_run.add_argument('max_iterations', nargs='?', type=int, default=DEFAULT_MAX_ITERATIONS,
                       help=f'Maximum iterations (default: {DEFAULT_MAX_ITERATIONS})')
    p_run.add_argument('--no-merge', action='store_true', help='Create PRs but do not merge them')
    p_run.add_argument('--merge-timeout', type=int, help='Seconds to wait for each merge')
    p_run.set_defaults(func=cmd_run)

    # ralph once
    p_once = subparsers.add_parser('once', help='Run a single iteration and stop')
    p_once.add_argument('--merge', action='store_true', help='Auto-merge the PR after creation')
    p_once.add_argument('--merge-timeout', type=int, help='Seconds to wait for the merge')
    p_once.set_defaults(func=cmd_once)

    # ralph status
    p_status = subparsers.add_parser('status', help='Show backlog progress')
    p_status.set_defaults(func=cmd_status)

    # ralph pass
    p_pass = subparsers.add_parser('pass', help='Mark a story as passed in prd.json')
    p_pass.add_argument('story_id', help='Story ID (e.g., auth-login-001)')
    p_pass.set_defaults(func=cmd_pass)

    # ralph merge-stack
    p_stack = subparsers.add_parser('merge-stack', help='Merge all open PRs targeting main, oldest first')
    p_stack.add_argument('--dry-run', action='store_true', help='Show what would be merged')
    p_stack.add_argument('--wait', action='store_true', help='Wait for CI checks before each merge')
    p_stack.set_defaults(func=cmd_merge_stack)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
