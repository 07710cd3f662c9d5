"""Tests for ralph_loop.workflow.state_machine module."""

import pytest

from ralph_loop.workflow.fsm import IterationFSM
from ralph_loop.workflow.state_machine import (
    InvalidTransition,
    IterationState,
    transition,
)


class TestIterationState:
    def test_terminal_flags(self):
        terminal = {s for s in IterationState if s.is_terminal}
        assert terminal == {IterationState.DONE, IterationState.FAILED, IterationState.PENDING_MERGE}


class TestTransition:
    """Destination-based transitions."""

    def test_moves_by_destination(self):
        fsm = IterationFSM("a-001")
        transition(fsm, IterationState.BRANCHING)
        transition(fsm, IterationState.SCAFFOLDING)
        assert fsm.state == "scaffolding"

    def test_failure_from_anywhere_active(self):
        fsm = IterationFSM("a-001")
        transition(fsm, IterationState.BRANCHING)
        transition(fsm, IterationState.FAILED, reason="branch exists")
        assert fsm.state == "failed"

    def test_nothing_to_commit_goes_to_done(self):
        fsm = IterationFSM("a-001")
        for state in [IterationState.BRANCHING, IterationState.SCAFFOLDING, IterationState.INVOKING,
                      IterationState.VERIFYING, IterationState.COMMITTING]:
            transition(fsm, state)
        transition(fsm, IterationState.DONE)
        assert fsm.state == "done"

    def test_invalid_transition(self):
        fsm = IterationFSM("a-001")
        with pytest.raises(InvalidTransition) as exc_info:
            transition(fsm, IterationState.MERGING)
        assert "syncing -> merging" in str(exc_info.value)
        assert "a-001" in str(exc_info.value)

    def test_terminal_is_final(self):
        fsm = IterationFSM("a-001")
        transition(fsm, IterationState.FAILED)
        with pytest.raises(InvalidTransition):
            transition(fsm, IterationState.BRANCHING)
