"""Shared constants for git-worktree-keeper."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Columns of `wt list`
LIST_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("name", "Name"),
    ColumnDefinition("branch", "Branch"),
    ColumnDefinition("base", "Base"),
    ColumnDefinition("last_commit", "Last Commit"),
    ColumnDefinition("status", "Status"),
]

# Columns of the `wt prune` candidate table
PRUNE_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("name", "Name"),
    ColumnDefinition("branch", "Branch"),
    ColumnDefinition("status", "Status"),
    ColumnDefinition("age", "Age (days)"),
]

# Columns of the git registry table printed after `wt list`
GIT_WORKTREE_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("path", "Path"),
    ColumnDefinition("branch", "Branch"),
    ColumnDefinition("head", "HEAD"),
    ColumnDefinition("notes", "Notes"),
]


# Markers in instructional documents
CONTEXT_SENTINEL = "<!-- WORKTREE-CONTEXT-INJECTED -->"
MAP_START_MARKER = "<!-- WORKTREE-MAP-START -->"
MAP_END_MARKER = "<!-- WORKTREE-MAP-END -->"

MAP_TABLE_HEADER = "| Branch | Base | Path | Status |"
MAP_TABLE_DIVIDER = "|--------|------|------|--------|"
MAP_TABLE_EMPTY_ROW = "| _(none)_ | | | |"

# Rule file written into each worktree to warn on edits outside it
BOUNDARY_RULE_PATH = ".claude/hookify.worktree-boundary.local.md"

# Sidecar written by the dev-server launcher: {"service": port}
PORTS_FILENAME = ".ports.json"

# Lock directory contents
LOCK_PID_FILENAME = "pid"

# Seconds a lock directory without a pid file is presumed mid-acquisition
LOCK_PID_GRACE_SECONDS = 5

# Timestamp format of the `created` field
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# Rich color names per derived worktree status
STATUS_COLORS = {
    "active": "green",
    "stale": "yellow",
    "broken": "red",
    "unknown": "dim",
}
