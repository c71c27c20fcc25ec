"""Display and formatting service for worktree information"""
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typing import List
from git_worktree_keeper.models.worktree import WorktreeEntry, WorktreeInfo
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.constants import GIT_WORKTREE_COLUMNS, LIST_COLUMNS, PRUNE_COLUMNS
from git_worktree_keeper.formatters import format_age, format_status, format_timestamp

console = Console()
logger = get_logger(__name__)


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False):
        self.verbose = verbose
        self.debug_mode = debug

    def display_worktree_table(self, entries: List[WorktreeEntry]) -> None:
        """Display the inventory of managed worktrees."""
        if not entries:
            console.print("No worktrees.")
            return

        table = Table(title="Worktrees")
        for col in LIST_COLUMNS:
            table.add_column(col.label, min_width=col.width or None, overflow="fold")
        if self.verbose:
            table.add_column("Created")

        for entry in entries:
            # Match LIST_COLUMNS order: Name, Branch, Base, Last Commit, Status
            row = [
                escape(entry.name),
                escape(entry.branch),
                escape(entry.base_branch),
                entry.last_commit,
                format_status(entry.status),
            ]
            if self.verbose:
                row.append(format_timestamp(entry.record.created if entry.record else None))
            table.add_row(*row)

        console.print(table)

    def display_prune_candidates(self, entries: List[WorktreeEntry]) -> None:
        """Display the worktrees offered for removal."""
        table = Table(title="Prune candidates")
        for col in PRUNE_COLUMNS:
            table.add_column(col.label, min_width=col.width or None, overflow="fold")

        for entry in entries:
            table.add_row(
                escape(entry.name),
                escape(entry.branch),
                format_status(entry.status),
                format_age(entry.age_days),
            )

        console.print(table)

    def display_git_worktrees(self, infos: List[WorktreeInfo]) -> None:
        """Display git's registry, flagging worktrees wt does not manage."""
        if not infos:
            return

        table = Table(title="Git worktrees")
        for col in GIT_WORKTREE_COLUMNS:
            table.add_column(col.label, overflow="fold")

        for info in infos:
            notes = info.notes
            if info.is_orphaned:
                notes = f"[red]{escape(notes)}[/red]"
            elif notes and not info.is_main:
                notes = f"[yellow]{escape(notes)}[/yellow]"
            table.add_row(
                escape(info.path),
                escape(info.branch_name or "(detached)"),
                info.short_sha,
                notes,
            )

        console.print()
        console.print(table)
