"""Tests for formatters and table display"""
from datetime import datetime, timezone

from git_worktree_keeper.formatters import format_age, format_status, format_timestamp
from git_worktree_keeper.models.worktree import WorktreeEntry, WorktreeInfo, WorktreeRecord, WorktreeStatus
from git_worktree_keeper.services.display_service import DisplayService


def make_entry(name, status, age_days=None):
    record = WorktreeRecord(
        branch=name,
        base_branch="main",
        created=datetime(2025, 2, 3, 4, 5, tzinfo=timezone.utc),
        main_repo="/repo",
    )
    return WorktreeEntry(
        name=name,
        path=f"/repo/.worktrees/{name}",
        record=record,
        has_git_link=True,
        last_commit="2 days ago",
        age_days=age_days,
        status=status,
    )


class TestFormatters:
    """Test display formatting helpers."""

    def test_format_status(self):
        assert format_status(WorktreeStatus.ACTIVE) == "[green]active[/green]"
        assert format_status(WorktreeStatus.BROKEN) == "[red]broken[/red]"

    def test_format_age(self):
        assert format_age(12) == "12"
        assert format_age(None) == "-"

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2025, 2, 3, 4, 5)) == "2025-02-03 04:05"
        assert format_timestamp(None) == "-"


class TestDisplayService:
    """Test rendered tables."""

    def test_worktree_table(self, capsys):
        DisplayService(verbose=True).display_worktree_table([
            make_entry("feat-a", WorktreeStatus.ACTIVE),
            make_entry("feat-b", WorktreeStatus.STALE),
        ])
        out = capsys.readouterr().out
        assert "feat-a" in out
        assert "stale" in out
        assert "2025-02-03" in out

    def test_empty_table(self, capsys):
        DisplayService().display_worktree_table([])
        assert "No worktrees." in capsys.readouterr().out

    def test_prune_candidates(self, capsys):
        DisplayService().display_prune_candidates([make_entry("old", WorktreeStatus.STALE, age_days=30)])
        out = capsys.readouterr().out
        assert "old" in out
        assert "30" in out

    def test_git_worktrees(self, capsys):
        DisplayService().display_git_worktrees([
            WorktreeInfo("/r", "main", "a" * 40, is_main=True, is_orphaned=False),
            WorktreeInfo("/x", "side", "b" * 40, is_main=False, is_orphaned=False),
            WorktreeInfo("/r/.worktrees/y", "", "c" * 40, is_main=False, is_orphaned=True, is_managed=True),
        ])
        out = capsys.readouterr().out
        assert "Git worktrees" in out
        assert "aaaaaaa" in out
        assert "(detached)" in out
        assert "not managed by wt" in out
        assert "orphaned" in out

    def test_git_worktrees_empty(self, capsys):
        DisplayService().display_git_worktrees([])
        assert capsys.readouterr().out == ""
