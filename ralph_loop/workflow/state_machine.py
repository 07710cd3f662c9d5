"""Destination-based API over the iteration FSM.

Stage handlers say where the iteration goes next (an IterationState); this
module finds the trigger for that move and fires it, so handlers never
reference trigger names.

Usage:
    from ralph_loop.workflow.state_machine import IterationState, transition

    transition(fsm, IterationState.BRANCHING)
"""

import logging
from enum import Enum

from transitions import MachineError

from ralph_loop.workflow.fsm import TERMINAL_STATES, TRIGGER_FOR, IterationFSM

logger = logging.getLogger(__name__)


class IterationState(Enum):
    SYNCING = "syncing"
    BRANCHING = "branching"
    SCAFFOLDING = "scaffolding"
    INVOKING = "invoking"
    VERIFYING = "verifying"
    COMMITTING = "committing"
    PUBLISHING = "publishing"
    MERGING = "merging"

    # Terminal
    DONE = "done"
    FAILED = "failed"
    PENDING_MERGE = "pending_merge"

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_STATES


class InvalidTransition(Exception):
    """Raised when attempting an invalid state transition."""

    def __init__(self, from_state: str, to_state: IterationState, story_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.story_id = story_id
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state.value}"
            + (f" (story: {story_id})" if story_id else "")
        )


def transition(fsm: IterationFSM, to_state: IterationState, reason: str = "") -> None:
    """Move the FSM to to_state.

    Raises:
        InvalidTransition: If no trigger leads from the current state to to_state
    """
    current = fsm.state
    trigger = TRIGGER_FOR.get((current, to_state.value))
    if trigger is None:
        raise InvalidTransition(current, to_state, fsm.story_id)

    if reason:
        logger.debug(f"[STATE] {fsm.story_id}: {current} -> {to_state.value} ({reason})")
    try:
        getattr(fsm, trigger)()
    except MachineError as e:
        raise InvalidTransition(current, to_state, fsm.story_id) from e
