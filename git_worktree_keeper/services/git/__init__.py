"""Git-related services for git-worktree-keeper."""

from .operations import GitOperations
from .worktrees import WorktreeService

__all__ = [
    "GitOperations",
    "WorktreeService",
]
