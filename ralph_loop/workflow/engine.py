"""Loop controller: drives stories through the iteration pipeline.

One iteration handles exactly one story:

    syncing -> branching -> scaffolding -> invoking -> verifying
            -> committing -> publishing -> merging -> done
    any active state -> failed
    publishing | merging -> pending_merge

Each state has one handler returning a StepResult that names the next state.
Story-local problems are raised as StageError and end the iteration in
`failed`; they never stop the run. The only fatal condition is a dirty
working tree at start (and a main line that cannot be synced, since no
later iteration could start from a known-good base).

The controller is plain Python. workflow/flow.py wraps it in Prefect.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, NamedTuple, Optional

from ralph_loop.agents.invoker import invoke_agent, invoke_scaffold
from ralph_loop.backlog.models import Story
from ralph_loop.backlog.store import BacklogStore
from ralph_loop.git.branches import BranchConflict, BranchManager, branch_name_for
from ralph_loop.git.runner import GitError
from ralph_loop.lib.constants import ITERATION_PAUSE_SECONDS
from ralph_loop.lib.ledger import Outcome, ProgressLedger
from ralph_loop.lib.types import PullRequest
from ralph_loop.notifications import notify_all_complete, notify_failed, notify_pending_merge
from ralph_loop.ports import Agent, CodeHost, Scaffolder, VersionControl
from ralph_loop.runner.context import RunContext
from ralph_loop.runner.stages import StageError, run_stage
from ralph_loop.workflow.compose import (
    commit_summary,
    compose_commit_message,
    compose_pr_body,
)
from ralph_loop.workflow.fsm import IterationFSM
from ralph_loop.workflow.merge_poller import MergeOutcome, MergePoller
from ralph_loop.workflow.publisher import PR_PENDING, PUBLISH_FAILED, Publisher
from ralph_loop.workflow.state_machine import IterationState, transition
from ralph_loop.workflow.verifier import QualityGateVerifier

logger = logging.getLogger(__name__)

BANNER_RULE = "━" * 43

STEP_LABELS = {
    IterationState.SYNCING: "Syncing with {main}...",
    IterationState.BRANCHING: "Creating branch {branch}...",
    IterationState.SCAFFOLDING: "Running scaffold skill...",
    IterationState.INVOKING: "Implementing story (TDD)...",
    IterationState.VERIFYING: "Verifying quality checks...",
    IterationState.COMMITTING: "Committing changes...",
    IterationState.PUBLISHING: "Pushing and creating PR...",
    IterationState.MERGING: "Auto-merging PR...",
}
STEP_ORDER = list(STEP_LABELS)


class DirtyWorkingTree(Exception):
    """Uncommitted changes at start; changes could not be attributed to a story."""

    def __init__(self):
        super().__init__(
            "You have uncommitted changes. Please commit or stash them first.\n"
            "  git status        # See what's changed\n"
            "  git stash         # Temporarily save changes\n"
            "  git checkout .    # Discard changes"
        )


def banner(title: str):
    print(BANNER_RULE)
    print(f"  {title}")
    print(BANNER_RULE)


class StepResult(NamedTuple):
    """What a stage handler decided: where the iteration goes next."""
    next_state: IterationState
    detail: str = ""


@dataclass
class Iteration:
    """Mutable state of one story attempt."""
    number: Optional[int]  # None in single-iteration mode (no trailer)
    story: Story
    branch: str
    merge_enabled: bool
    merge_timeout: int
    force_recreate: bool
    unattended: bool  # loop mode: discard failed work, always end on main
    branch_created: bool = False
    committed: bool = False
    merged: bool = False
    abort_run: bool = False
    changed_files: list[str] = field(default_factory=list)
    pr: Optional[PullRequest] = None
    reason: str = ""


@dataclass
class IterationResult:
    story_id: str
    title: str
    state: IterationState
    branch: str
    pr: Optional[PullRequest] = None
    reason: str = ""
    abort_run: bool = False


@dataclass
class Summary:
    """Advisory end-of-run report. prd.json stays the source of truth."""
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    pending_merge: list[str] = field(default_factory=list)
    remaining: list[tuple[str, str]] = field(default_factory=list)
    iterations_run: int = 0
    open_pr_count: Optional[int] = None
    all_complete: bool = False
    aborted: bool = False
    stopped_reason: str = ""

    def record(self, result: IterationResult):
        if result.abort_run:
            # The story was never attempted
            return
        if result.state == IterationState.DONE:
            self.completed.append(result.story_id)
        elif result.state == IterationState.PENDING_MERGE:
            self.pending_merge.append(result.story_id)
        else:
            self.failed.append(result.story_id)

    def to_dict(self) -> dict:
        return asdict(self)


IterationRunner = Callable[..., Optional[IterationResult]]


class LoopController:
    """Runs up to N iterations, one story each, against injected ports."""

    def __init__(
        self,
        ctx: RunContext,
        store: BacklogStore,
        ledger: ProgressLedger,
        vcs: VersionControl,
        host: CodeHost,
        agent: Agent,
        scaffolder: Scaffolder,
        sleep: Callable[[float], None] = time.sleep,
        poller_clock: Callable[[], float] = time.monotonic,
        notifications: bool = True,
    ):
        config = ctx.config
        self.ctx = ctx
        self.config = config
        self.store = store
        self.ledger = ledger
        self.vcs = vcs
        self.host = host
        self.agent = agent
        self.scaffolder = scaffolder
        self.branches = BranchManager(vcs, config.main_branch)
        self.verifier = QualityGateVerifier(store)
        self.publisher = Publisher(vcs, host, config.main_branch)
        self.poller = MergePoller(
            host, self.branches, config.poll_interval, clock=poller_clock, sleep=sleep,
        )
        self._sleep = sleep
        self.notifications = notifications
        # Replaced by a retried Prefect task in workflow/flow.py
        self.sync_main: Callable[[], None] = self.branches.sync

        self._handlers = {
            IterationState.SYNCING: self._sync,
            IterationState.BRANCHING: self._branch,
            IterationState.SCAFFOLDING: self._scaffold,
            IterationState.INVOKING: self._invoke,
            IterationState.VERIFYING: self._verify,
            IterationState.COMMITTING: self._commit,
            IterationState.PUBLISHING: self._publish,
            IterationState.MERGING: self._merge,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def check_clean(self) -> None:
        """Raises DirtyWorkingTree if tracked files have uncommitted changes."""
        if self.vcs.is_dirty():
            raise DirtyWorkingTree()

    def run(
        self,
        max_iterations: int,
        merge_enabled: bool = True,
        merge_timeout: Optional[int] = None,
        iteration_runner: Optional[IterationRunner] = None,
    ) -> Summary:
        """Loop mode: up to max_iterations stories, force-recreating branches."""
        merge_timeout = self.config.merge_timeout if merge_timeout is None else merge_timeout
        iteration_runner = iteration_runner or self.run_iteration

        self.check_clean()
        self.ledger.loop_started(max_iterations, merge_enabled)
        self.ctx.log(f"Loop started: max_iterations={max_iterations} merge={merge_enabled}")

        summary = Summary()
        attempted: set[str] = set()

        for i in range(1, max_iterations + 1):
            banner(f"Iteration {i} of {max_iterations}")

            remaining = self.store.remaining_count()
            total = self.store.total_count()
            print(f"Progress: {total - remaining} / {total} stories complete")

            if remaining == 0:
                print("\n✓ All stories complete!")
                self.ledger.all_complete(total)
                summary.all_complete = True
                if self.notifications:
                    notify_all_complete(total)
                break

            story = self.store.next_story(exclude=attempted)
            if story is None:
                summary.stopped_reason = "every remaining story was already attempted in this run"
                print(f"\nNo more stories to attempt in this run ({remaining} remaining).")
                break

            attempted.add(story.id)
            result = iteration_runner(
                number=i,
                story=story,
                merge_enabled=merge_enabled,
                merge_timeout=merge_timeout,
                force_recreate=True,
                unattended=True,
            )
            summary.iterations_run += 1
            if result is None:
                continue
            summary.record(result)

            if result.abort_run:
                summary.aborted = True
                summary.stopped_reason = result.reason
                break

            if i < max_iterations:
                self._sleep(ITERATION_PAUSE_SECONDS)

        self.branches.return_to_main()
        self._fill_summary(summary)
        self.ctx.write_result(summary.to_dict())
        return summary

    def run_once(
        self,
        merge_enabled: bool = False,
        merge_timeout: Optional[int] = None,
    ) -> Optional[IterationResult]:
        """Single-iteration mode.

        No force: an existing branch for the story aborts the attempt. The
        story branch stays checked out afterwards, for review on success and
        for debugging on failure. Returns None when the backlog is already
        complete.
        """
        merge_timeout = self.config.merge_timeout if merge_timeout is None else merge_timeout
        self.check_clean()

        story = self.store.next_story()
        if story is None:
            print("✓ All stories complete!")
            return None

        banner(story.id)
        print(f"Title:       {story.title}")
        if story.description:
            print(f"Description: {story.description}")
        if story.scaffold_skill:
            print(f"Scaffold:    {story.scaffold_skill}")
        print(f"Branch:      {self._branch_for(story)} → {self.config.main_branch}")

        result = self.run_iteration(
            number=None,
            story=story,
            merge_enabled=merge_enabled,
            merge_timeout=merge_timeout,
            force_recreate=False,
            unattended=False,
        )
        summary = Summary(iterations_run=1, aborted=result.abort_run)
        summary.record(result)
        if result.abort_run:
            summary.stopped_reason = result.reason
        self.ctx.write_result(summary.to_dict())
        return result

    # ------------------------------------------------------------------
    # One iteration
    # ------------------------------------------------------------------

    def _branch_for(self, story: Story) -> str:
        return branch_name_for(story.id, self.config.branch_prefix)

    def run_iteration(
        self,
        number: Optional[int],
        story: Story,
        merge_enabled: bool,
        merge_timeout: int,
        force_recreate: bool,
        unattended: bool,
    ) -> IterationResult:
        it = Iteration(
            number=number,
            story=story,
            branch=self._branch_for(story),
            merge_enabled=merge_enabled,
            merge_timeout=merge_timeout,
            force_recreate=force_recreate,
            unattended=unattended,
        )
        print(f"\n→ Story: {story.id} - {story.title}")
        if story.scaffold_skill:
            print(f"→ Scaffold skill: {story.scaffold_skill}")

        fsm = IterationFSM(
            story.id,
            on_transition=lambda src, dst, trig: self.ctx.log(f"{story.id}: {src} -> {dst} ({trig})"),
        )
        total_steps = len(STEP_ORDER) if merge_enabled else len(STEP_ORDER) - 1
        state = IterationState.SYNCING

        while not state.is_terminal:
            self._print_step(state, it, total_steps)
            handler = self._handlers[state]
            try:
                step = run_stage(self.ctx, story.id, state.value, lambda: handler(it))
            except StageError as e:
                it.reason = e.message
                step = StepResult(IterationState.FAILED, e.message)
            if step.detail and step.next_state != IterationState.FAILED:
                logger.debug(f"{story.id}: {state.value}: {step.detail}")
            transition(fsm, step.next_state, reason=step.detail)
            state = step.next_state

        return self._finish(it, state)

    def _print_step(self, state: IterationState, it: Iteration, total: int):
        label = STEP_LABELS[state].format(main=self.config.main_branch, branch=it.branch)
        print(f"\n→ Step {STEP_ORDER.index(state) + 1}/{total}: {label}")

    # Stage handlers ---------------------------------------------------

    def _sync(self, it: Iteration) -> StepResult:
        try:
            self.sync_main()
        except GitError as e:
            it.abort_run = True
            raise StageError("syncing", f"sync with {self.config.main_branch} failed: {e}")
        print("✓ Synced")
        return StepResult(IterationState.BRANCHING)

    def _branch(self, it: Iteration) -> StepResult:
        try:
            self.branches.create_branch(it.branch, force_recreate=it.force_recreate)
        except BranchConflict as e:
            raise StageError("branching", str(e))
        except GitError as e:
            raise StageError("branching", f"could not create {it.branch}: {e}")
        it.branch_created = True
        print(f"✓ Created branch {it.branch}")
        return StepResult(IterationState.SCAFFOLDING)

    def _scaffold(self, it: Iteration) -> StepResult:
        if not it.story.scaffold_skill:
            print("No scaffold skill specified, skipping...")
            return StepResult(IterationState.INVOKING, "no scaffold skill")
        ok = invoke_scaffold(
            self.scaffolder, self.ledger, it.story.scaffold_skill, it.story.id, self.config.project_root,
        )
        return StepResult(IterationState.INVOKING, "scaffolded" if ok else "scaffold failed")

    def _invoke(self, it: Iteration) -> StepResult:
        result = invoke_agent(
            self.agent,
            self.ledger,
            it.story,
            self.config.policy_file,
            self.config.prd_file,
            self.config.project_root,
        )
        # Exit code is advisory; only the backlog decides
        return StepResult(IterationState.VERIFYING, f"agent exit {result.exit_code}")

    def _verify(self, it: Iteration) -> StepResult:
        if not self.verifier.verify(it.story.id):
            print("✗ Story did not pass quality checks")
            raise StageError("verifying", "quality checks")
        print("✓ Story passed quality checks")
        return StepResult(IterationState.COMMITTING)

    def _commit(self, it: Iteration) -> StepResult:
        self.ledger.append(Outcome.PASSED, it.story.id, it.story.title, f"branch: {it.branch}")
        try:
            self.vcs.stage_all()
            if not self.vcs.has_staged_changes():
                print("No changes to commit")
                return StepResult(IterationState.DONE, "nothing to commit")
            it.changed_files = self.vcs.staged_files()
            message = compose_commit_message(
                it.story, it.changed_files, it.number, self.config.max_changed_files,
            )
            self.vcs.commit(message)
        except GitError as e:
            raise StageError("committing", f"commit failed: {e}")
        it.committed = True
        print(f"✓ Committed: {commit_summary(it.story)}")
        return StepResult(IterationState.PUBLISHING)

    def _publish(self, it: Iteration) -> StepResult:
        body = compose_pr_body(it.story, it.changed_files, it.number, self.config.max_changed_files)
        result = self.publisher.publish(it.branch, it.story, body)

        if result.status == PUBLISH_FAILED:
            raise StageError("publishing", f"push failed: {result.error}")
        if result.status == PR_PENDING:
            it.reason = "PR creation failed"
            return StepResult(IterationState.PENDING_MERGE, result.error)

        it.pr = result.pr
        if not it.merge_enabled:
            return StepResult(IterationState.DONE, "merge disabled")
        return StepResult(IterationState.MERGING)

    def _merge(self, it: Iteration) -> StepResult:
        outcome = self.poller.auto_merge(it.pr, it.branch, it.merge_timeout)
        if outcome == MergeOutcome.MERGED:
            it.merged = True
            return StepResult(IterationState.DONE, "merged")
        if outcome == MergeOutcome.TIMEOUT:
            it.reason = "merge timeout"
            return StepResult(IterationState.PENDING_MERGE, "merge timeout")
        if outcome == MergeOutcome.CLOSED:
            raise StageError("merging", "PR closed without merging")
        raise StageError("merging", "PR has merge conflicts")

    # Terminal handling ------------------------------------------------

    def _finish(self, it: Iteration, state: IterationState) -> IterationResult:
        story = it.story

        if state == IterationState.DONE:
            if it.merged:
                print(f"\n→ Story {story.id} complete and merged")
            elif not it.committed:
                # Nothing was produced on the branch
                self.branches.discard(it.branch)
            elif it.unattended:
                self.branches.return_to_main()

        elif state == IterationState.PENDING_MERGE:
            where = it.pr.url if it.pr else f"branch {it.branch}"
            print(f"\n→ Story {story.id}: {it.reason}, {where}")
            if it.unattended:
                # The story commit carries progress.txt; leave it before appending
                self._back_to_fresh_main()
            self.ledger.append(Outcome.PENDING_MERGE, story.id, story.title, f"{it.reason}: {where}")
            if self.notifications:
                notify_pending_merge(story.id, it.pr.url if it.pr else "")

        elif it.abort_run:
            self.ledger.loop_aborted(it.reason)
            print(f"\n✗ Run aborted: {it.reason}")

        else:
            self._handle_failure(it)
            if self.notifications:
                notify_failed(story.id, it.reason)

        return IterationResult(
            story_id=story.id,
            title=story.title,
            state=state,
            branch=it.branch,
            pr=it.pr,
            reason=it.reason,
            abort_run=it.abort_run,
        )

    def _handle_failure(self, it: Iteration):
        story = it.story
        if not it.committed and it.branch_created and it.unattended:
            # Uncommitted agent work is thrown away; the ledger is not
            with self.ledger.preserved():
                self.branches.discard(it.branch)
            print("Cleaned up, continuing with next story...")
        elif not it.committed and it.branch_created:
            print(f"\nYou're on branch: {it.branch}")
            print("Debug commands:")
            print("  git status              # See changes")
            print("  git diff                # Review changes")
            print("To retry this story:")
            print(f"  git checkout {self.config.main_branch}")
            print(f"  git branch -D {it.branch}")
        elif it.committed and it.unattended:
            # Work is committed on the branch; keep it and move on
            self.branches.return_to_main()

        self.ledger.append(Outcome.FAILED, story.id, detail=it.reason)

    def _back_to_fresh_main(self):
        if not self.branches.return_to_main():
            return
        try:
            self.vcs.pull_ff(self.config.main_branch)
        except GitError as e:
            logger.warning(f"Pull of {self.config.main_branch} failed: {e}")

    def _fill_summary(self, summary: Summary):
        summary.remaining = [(s.id, s.title) for s in self.store.remaining_stories()]
        summary.open_pr_count = len(self.host.list_open_prs(self.config.main_branch))
