"""
Backlog module for ralph_loop.

Loads stories from prd.json and answers "what is next" and "is it done".
"""

from ralph_loop.backlog.models import Backlog, Story
from ralph_loop.backlog.store import BacklogError, BacklogStore

__all__ = [
    "Backlog",
    "Story",
    "BacklogError",
    "BacklogStore",
]
