"""
ralph pass <story-id> - Mark a story as passed in prd.json.

For agents and operators. The loop itself never calls this: it only reads
the flag back.
"""

from ralph_loop.backlog.store import BacklogError, BacklogStore
from ralph_loop.lib.config import RalphConfig
from ralph_loop.lib.constants import EXIT_ERROR, EXIT_SUCCESS, STORY_ID_PATTERN
from ralph_loop.lib.validate import ValidationError


def cmd_pass(args, config: RalphConfig) -> int:
    story_id = args.story_id
    if not STORY_ID_PATTERN.match(story_id):
        print(f"ERROR: Invalid story id: {story_id}")
        return EXIT_ERROR

    store = BacklogStore(config.prd_file)
    try:
        story = store.mark_passed(story_id)
    except (BacklogError, ValidationError) as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR

    print(f"✓ {story.id}: {story.title} marked as passed")
    print(f"  Remaining: {store.remaining_count()} / {store.total_count()}")
    return EXIT_SUCCESS
