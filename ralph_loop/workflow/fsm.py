"""Per-iteration state machine using the transitions library.

One IterationFSM lives for exactly one story attempt. States follow the
pipeline order; `done`, `failed` and `pending_merge` are terminal.

Usage:
    from ralph_loop.workflow.fsm import IterationFSM

    fsm = IterationFSM("auth-001")
    fsm.synced()     # syncing -> branching
    fsm.branched()   # branching -> scaffolding
"""

import logging
from typing import Callable

from transitions import Machine

logger = logging.getLogger(__name__)


STATES = [
    "syncing",
    "branching",
    "scaffolding",
    "invoking",
    "verifying",
    "committing",
    "publishing",
    "merging",
    "done",
    "failed",
    "pending_merge",
]

TERMINAL_STATES = {"done", "failed", "pending_merge"}

# States from which the story can still fail
_ACTIVE = [s for s in STATES if s not in TERMINAL_STATES]

TRANSITIONS = [
    # Happy path
    {"trigger": "synced", "source": "syncing", "dest": "branching"},
    {"trigger": "branched", "source": "branching", "dest": "scaffolding"},
    {"trigger": "scaffolded", "source": "scaffolding", "dest": "invoking"},
    {"trigger": "invoked", "source": "invoking", "dest": "verifying"},
    {"trigger": "verified", "source": "verifying", "dest": "committing"},
    {"trigger": "committed", "source": "committing", "dest": "publishing"},
    {"trigger": "published", "source": "publishing", "dest": "merging"},
    {"trigger": "merged", "source": "merging", "dest": "done"},

    # Shortcuts to done
    {"trigger": "nothing_to_commit", "source": "committing", "dest": "done"},
    {"trigger": "skip_merge", "source": "publishing", "dest": "done"},

    # Work is on the remote but not on main yet
    {"trigger": "pend", "source": "publishing", "dest": "pending_merge"},
    {"trigger": "pend", "source": "merging", "dest": "pending_merge"},

    # Story-local failure from any active state
    {"trigger": "fail", "source": _ACTIVE, "dest": "failed"},
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
        for source in sources:
            key = (source, t["dest"])
            if key not in lookup:  # First trigger wins for a given source->dest
                lookup[key] = t["trigger"]
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


class IterationFSM:
    """State machine for one story attempt.

    Holds no persistent state; transitions are logged and optionally
    reported through on_transition(from_state, to_state, trigger).
    """

    def __init__(self, story_id: str, on_transition: Callable[[str, str, str], None] | None = None):
        self.story_id = story_id
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="syncing",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] {self.story_id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can(self, trigger: str) -> bool:
        return trigger in self.machine.get_triggers(self.state)
