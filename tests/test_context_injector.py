"""Tests for isolation context injection and the main worktree table"""
from datetime import datetime, timezone

from git_worktree_keeper.constants import CONTEXT_SENTINEL, MAP_END_MARKER, MAP_START_MARKER
from git_worktree_keeper.models.worktree import WorktreeEntry, WorktreeRecord, WorktreeStatus
from git_worktree_keeper.services.context_injector import (
    build_map_table,
    inject_worktree_context,
    regenerate_main_table,
    write_boundary_rule,
)


def make_entry(name, status=WorktreeStatus.ACTIVE, with_record=True):
    record = None
    if with_record:
        record = WorktreeRecord(
            branch=name,
            base_branch="main",
            created=datetime(2025, 1, 1, tzinfo=timezone.utc),
            main_repo="/repo",
            status=status,
        )
    return WorktreeEntry(
        name=name,
        path=f"/repo/.worktrees/{name}",
        record=record,
        has_git_link=True,
        status=status,
    )


def inject(doc, branch="feat-x"):
    return inject_worktree_context(doc, "proj", branch, "main", "/repo/.worktrees/feat-x", "/repo")


class TestInjectWorktreeContext:
    """Test the per-worktree isolation notice."""

    def test_creates_document(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        assert inject(doc) is True

        content = doc.read_text()
        assert CONTEXT_SENTINEL in content
        assert "| Branch | `feat-x` |" in content
        assert "`wt merge feat-x`" in content

    def test_appends_to_existing(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text("# Project\n")
        inject(doc)
        assert doc.read_text().startswith("# Project\n")

    def test_idempotent(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text("# Project\r\n")
        inject(doc)
        first = doc.read_bytes()

        assert inject(doc, branch="other") is False
        assert doc.read_bytes() == first


class TestBuildMapTable:
    """Test table rows."""

    def test_placeholder_when_empty(self):
        assert build_map_table([])[-1] == "| _(none)_ | | | |"

    def test_entries_without_record_skipped(self):
        rows = build_map_table([make_entry("a"), make_entry("junk", with_record=False)])
        assert rows[2:] == ["| `a` | `main` | `.worktrees/a` | active |"]


class TestRegenerateMainTable:
    """Test the table between the map markers of the main document."""

    def test_preserves_content_outside_markers(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        before = f"# Title\r\nIntro\r\n{MAP_START_MARKER}\r\nold row\r\n{MAP_END_MARKER}\r\nTail without newline"
        doc.write_bytes(before.encode())

        assert regenerate_main_table(doc, [make_entry("a")]) is True

        after = doc.read_bytes().decode()
        assert after.startswith(f"# Title\r\nIntro\r\n{MAP_START_MARKER}\r\n")
        assert after.endswith(f"{MAP_END_MARKER}\r\nTail without newline")
        assert "old row" not in after
        assert "| `a` | `main` | `.worktrees/a` | active |\r\n" in after

    def test_replaces_previous_table(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text(f"{MAP_START_MARKER}\n{MAP_END_MARKER}\n")

        regenerate_main_table(doc, [make_entry("a"), make_entry("b")])
        regenerate_main_table(doc, [make_entry("b")])

        content = doc.read_text()
        assert "`a`" not in content
        assert content.count("`b`") == 1

    def test_no_markers_is_noop(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text("# Nothing here\n")

        assert regenerate_main_table(doc, [make_entry("a")]) is False
        assert doc.read_text() == "# Nothing here\n"

    def test_start_marker_only_is_noop(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text(f"{MAP_START_MARKER}\nstuff\n")

        assert regenerate_main_table(doc, []) is False
        assert doc.read_text() == f"{MAP_START_MARKER}\nstuff\n"

    def test_end_before_start_is_noop(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_text(f"{MAP_END_MARKER}\n{MAP_START_MARKER}\n")
        assert regenerate_main_table(doc, []) is False

    def test_missing_document(self, temp_dir):
        assert regenerate_main_table(temp_dir / "CLAUDE.md", []) is False
        assert not (temp_dir / "CLAUDE.md").exists()


class TestBoundaryRule:
    """Test the boundary guard rule file."""

    def test_write_boundary_rule(self, temp_dir):
        rule = write_boundary_rule(temp_dir)
        assert rule == temp_dir / ".claude" / "hookify.worktree-boundary.local.md"
        assert f'pattern: "{temp_dir}"' in rule.read_text()


class TestNonUtf8Documents:
    """Documents in other encodings are handled byte for byte."""

    def test_inject_appends_after_latin1_bytes(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_bytes(b"caf\xe9 notes\n")

        assert inject(doc) is True
        assert inject(doc) is False

        content = doc.read_bytes()
        assert content.startswith(b"caf\xe9 notes\n")
        assert CONTEXT_SENTINEL.encode() in content

    def test_table_keeps_latin1_bytes_outside_markers(self, temp_dir):
        doc = temp_dir / "CLAUDE.md"
        doc.write_bytes(
            b"caf\xe9\n" + MAP_START_MARKER.encode() + b"\n" + MAP_END_MARKER.encode() + b"\nna\xefve\n"
        )

        assert regenerate_main_table(doc, [make_entry("a")]) is True

        content = doc.read_bytes()
        assert content.startswith(b"caf\xe9\n")
        assert content.endswith(MAP_END_MARKER.encode() + b"\nna\xefve\n")
        assert b"| `a` | `main` | `.worktrees/a` | active |" in content
