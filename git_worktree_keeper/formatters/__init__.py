"""Formatting utilities for git-worktree-keeper.

- date: ages and timestamps
- status: derived worktree status
"""

# Date formatters
from .date import format_age, format_timestamp

# Status formatters
from .status import format_status

__all__ = [
    # Date
    "format_age",
    "format_timestamp",
    # Status
    "format_status",
]
