"""Data models for git-worktree-keeper."""

from .worktree import (
    WorktreeStatus,
    WorktreeRecord,
    WorktreeEntry,
    WorktreeInfo,
    derive_status,
)
from .process import ProcessCandidate, ReapResult

__all__ = [
    "WorktreeStatus",
    "WorktreeRecord",
    "WorktreeEntry",
    "WorktreeInfo",
    "derive_status",
    "ProcessCandidate",
    "ReapResult",
]
