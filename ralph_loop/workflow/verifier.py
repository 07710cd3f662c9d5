"""
Quality gate: second half of two-phase verification.

The agent claims completion by flipping `passes` in prd.json. The loop
never takes the agent's exit code or output as evidence; it reads the flag
back from disk after the agent has exited. Anything short of a readable
backlog with passes == true for this story is a failure.
"""

import logging

from ralph_loop.backlog.store import BacklogError, BacklogStore
from ralph_loop.lib.validate import ValidationError

logger = logging.getLogger(__name__)


class QualityGateVerifier:
    def __init__(self, store: BacklogStore):
        self.store = store

    def verify(self, story_id: str) -> bool:
        try:
            story = self.store.get_story(story_id)
        except (ValidationError, BacklogError, OSError) as e:
            logger.warning(f"Backlog unreadable while verifying {story_id}: {e}")
            return False

        if story is None:
            logger.warning(f"Story {story_id} disappeared from the backlog")
            return False
        if not story.passes:
            logger.info(f"{story_id}: passes is still false")
            return False
        return True
