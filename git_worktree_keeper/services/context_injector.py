"""Isolation notices in the instructional documents of worktrees and the main repo."""

from pathlib import Path
from typing import Iterable, List, Union

from git_worktree_keeper.constants import (
    BOUNDARY_RULE_PATH,
    CONTEXT_SENTINEL,
    MAP_END_MARKER,
    MAP_START_MARKER,
    MAP_TABLE_DIVIDER,
    MAP_TABLE_EMPTY_ROW,
    MAP_TABLE_HEADER,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.worktree import WorktreeEntry
from git_worktree_keeper.services.metadata_store import atomic_write_text

logger = get_logger(__name__)

PathLike = Union[str, Path]

WORKTREE_CONTEXT_TEMPLATE = """
{sentinel}
## Worktree Context -- READ THIS FIRST

**You are in a worktree.** This is an isolated workspace.

| Field | Value |
|-------|-------|
| Project | `{project}` |
| Branch | `{branch}` |
| Base branch | `{base}` |
| Worktree path | `{worktree_path}` |
| Main repo | `{repo_root}` |

### Hard Rules
1. **Stay in this directory.** Do not `cd` to the main repo or other worktrees.
2. **Do not switch branches.** Never `git checkout` or `git switch`.
3. **Do not read/modify files in other worktrees.** Those are other sessions' workspaces.
4. **PRs target `{base}`.**
5. **Do not create new branches** without explicit user instruction.
6. **Verify at session start:** `pwd && git branch --show-current`
7. **Do not modify this section.** It is auto-generated.

### Lifecycle
Tell the user to run these from the **main repo terminal** (not from within this worktree):
- `wt rebase {branch}` - rebase onto latest `{base}`
- `wt merge {branch}` - merge into `{base}` and optionally clean up
- `wt done {branch}` - remove worktree, delete branch, checkout `{base}`
"""

BOUNDARY_RULE_TEMPLATE = """---
name: worktree-boundary-guard
enabled: true
event: file
conditions:
  - field: file_path
    operator: not_contains
    pattern: "{worktree_path}"
action: warn
---
You are editing a file outside your worktree boundary (`{worktree_path}`).
You should only edit files within this worktree. If you need to edit files elsewhere, ask the user first.
"""


# Documents are not guaranteed to be UTF-8; undecodable bytes survive a
# read/write cycle as surrogates
DOCUMENT_ERRORS = "surrogateescape"


def _read_exact(path: Path) -> str:
    # newline="" keeps CRLF and friends untouched
    with open(path, encoding="utf-8", errors=DOCUMENT_ERRORS, newline="") as handle:
        return handle.read()


def inject_worktree_context(
    document: PathLike,
    project: str,
    branch: str,
    base: str,
    worktree_path: PathLike,
    repo_root: PathLike,
) -> bool:
    """Append the isolation notice to a worktree's document, once.

    Returns:
        False if the sentinel was already present and nothing was written
    """
    doc = Path(document)
    if doc.is_file() and CONTEXT_SENTINEL in _read_exact(doc):
        logger.debug(f"Context already injected into {doc}")
        return False

    block = WORKTREE_CONTEXT_TEMPLATE.format(
        sentinel=CONTEXT_SENTINEL,
        project=project,
        branch=branch,
        base=base,
        worktree_path=worktree_path,
        repo_root=repo_root,
    )
    with open(doc, "a", encoding="utf-8", errors=DOCUMENT_ERRORS, newline="") as handle:
        handle.write(block)
    logger.debug(f"Injected worktree context into {doc}")
    return True


def build_map_table(entries: Iterable[WorktreeEntry], worktrees_dir: str = ".worktrees") -> List[str]:
    """Rows of the main document's worktree table; records are required."""
    lines = [MAP_TABLE_HEADER, MAP_TABLE_DIVIDER]
    for entry in entries:
        if entry.record is None:
            continue
        record = entry.record
        lines.append(
            f"| `{record.branch}` | `{record.base_branch}` | "
            f"`{worktrees_dir}/{entry.name}` | {record.status.value} |"
        )
    if len(lines) == 2:
        lines.append(MAP_TABLE_EMPTY_ROW)
    return lines


def regenerate_main_table(
    document: PathLike,
    entries: Iterable[WorktreeEntry],
    worktrees_dir: str = ".worktrees",
) -> bool:
    """Replace the worktree table between the map markers of the main document.

    Only the lines strictly between the start and end marker lines change;
    everything else, line endings included, is written back as read.

    Returns:
        False when the document or either marker is missing (opt-in feature)
    """
    doc = Path(document)
    if not doc.is_file():
        return False

    content = _read_exact(doc)
    lines = content.splitlines(keepends=True)

    start = next((i for i, line in enumerate(lines) if MAP_START_MARKER in line), None)
    if start is None:
        return False
    end = next((i for i in range(start + 1, len(lines)) if MAP_END_MARKER in lines[i]), None)
    if end is None:
        logger.warning(f"{doc} has {MAP_START_MARKER} but no {MAP_END_MARKER} after it; not updating")
        return False

    # Table rows follow the line ending style of the start marker line
    start_line = lines[start]
    newline = start_line[len(start_line.rstrip("\r\n")):] or "\n"

    table = [line + newline for line in build_map_table(entries, worktrees_dir)]
    updated = "".join(lines[: start + 1] + table + lines[end:])

    if updated != content:
        atomic_write_text(doc, updated, errors=DOCUMENT_ERRORS)
        logger.debug(f"Regenerated worktree map in {doc}")
    return True


def write_boundary_rule(worktree_path: PathLike) -> Path:
    """Write the rule that warns agents editing files outside their worktree."""
    rule_file = Path(worktree_path) / BOUNDARY_RULE_PATH
    rule_file.parent.mkdir(parents=True, exist_ok=True)
    rule_file.write_text(BOUNDARY_RULE_TEMPLATE.format(worktree_path=worktree_path), encoding="utf-8")
    return rule_file
