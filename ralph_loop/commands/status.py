"""
ralph status - Show backlog progress and recent ledger entries.
"""

from ralph_loop.backlog.store import BacklogError, BacklogStore
from ralph_loop.git.branches import branch_name_for
from ralph_loop.lib.config import RalphConfig
from ralph_loop.lib.constants import EXIT_ERROR, EXIT_SUCCESS
from ralph_loop.lib.ledger import ProgressLedger
from ralph_loop.lib.validate import ValidationError

LEDGER_TAIL = 10


def print_stories(store: BacklogStore):
    print("Stories:")
    for story in store.list_stories():
        mark = "✓" if story.passes else " "
        print(f"  [{mark}] {story.id}: {story.title}")
    print()


def cmd_status(args, config: RalphConfig) -> int:
    store = BacklogStore(config.prd_file)
    try:
        backlog = store.load()
    except ValidationError as e:
        if e.problems:
            print(f"ERROR: {config.prd_file} does not match the {e.schema_name} schema:")
            for problem in e.problems:
                print(f"  - {problem}")
        else:
            print(f"ERROR: {e}")
        return EXIT_ERROR
    except BacklogError as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR

    if backlog.project_name:
        print(f"Project: {backlog.project_name}")
    print(f"Main branch: {config.main_branch}\n")

    print_stories(store)

    total = len(backlog.stories)
    done = sum(1 for s in backlog.stories if s.passes)
    print(f"Progress: {done} / {total} stories complete")

    nxt = store.next_story()
    if nxt:
        print(f"Next story: {nxt.id} (priority {nxt.priority}) -> {branch_name_for(nxt.id, config.branch_prefix)}")
    else:
        print("All stories complete.")

    tail = ProgressLedger(config.progress_file).tail(LEDGER_TAIL)
    if tail:
        print(f"\nRecent progress ({config.progress_file.name}):")
        for line in tail:
            print(f"  {line}")
    return EXIT_SUCCESS
