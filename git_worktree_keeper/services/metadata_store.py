"""Persistence of the per-worktree metadata sidecar."""

import json
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from git_worktree_keeper.exceptions import MetadataError, MetadataNotFoundError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.worktree import DEFAULT_BASE_BRANCH, WorktreeRecord

logger = get_logger(__name__)


def atomic_write_text(file_path: Path, content: str, errors: str = "strict") -> None:
    """Write content to a file via a temp file in the same directory and a rename.

    Readers see either the previous file or the complete new one, never a
    partial write.
    """
    # Use PID to avoid temp file collisions between processes
    tmp_file = file_path.with_name(f"{file_path.name}.tmp.{os.getpid()}")
    try:
        with open(tmp_file, "w", encoding="utf-8", errors=errors, newline="") as handle:
            handle.write(content)
        os.replace(tmp_file, file_path)
    finally:
        if tmp_file.exists():
            try:
                tmp_file.unlink()
            except OSError as e:
                logger.debug(f"Could not remove temp file {tmp_file}: {e}")


class MetadataStore:
    """Reads and writes ``WorktreeRecord`` sidecars inside worktree directories."""

    def __init__(self, filename: str = ".worktree.json", default_base_branch: str = DEFAULT_BASE_BRANCH):
        self.filename = filename
        self.default_base_branch = default_base_branch

    def path_for(self, worktree_path: Union[str, Path]) -> Path:
        return Path(worktree_path) / self.filename

    def exists(self, worktree_path: Union[str, Path]) -> bool:
        return self.path_for(worktree_path).is_file()

    def write(self, worktree_path: Union[str, Path], record: WorktreeRecord) -> None:
        """Persist a record atomically."""
        target = self.path_for(worktree_path)
        atomic_write_text(target, record.model_dump_json(indent=2) + "\n")
        logger.debug(f"Wrote metadata {target}")

    def read(self, worktree_path: Union[str, Path]) -> WorktreeRecord:
        """Load and validate a record.

        Raises:
            MetadataNotFoundError: no sidecar in ``worktree_path``
            MetadataError: the sidecar is not a valid record
        """
        source = self.path_for(worktree_path)
        try:
            raw = source.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise MetadataNotFoundError(str(worktree_path))
        except OSError as e:
            raise MetadataError(str(source), str(e))

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataError(str(source), f"invalid JSON ({e.msg})")
        if not isinstance(data, dict):
            raise MetadataError(str(source), "expected a JSON object")

        if not data.get("base_branch"):
            data["base_branch"] = self.default_base_branch

        try:
            return WorktreeRecord.model_validate(data)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise MetadataError(str(source), f"invalid fields: {fields}")

    def read_optional(self, worktree_path: Union[str, Path]) -> Optional[WorktreeRecord]:
        """Tolerant read: ``None`` when the sidecar is missing or unreadable."""
        try:
            return self.read(worktree_path)
        except MetadataNotFoundError:
            return None
        except MetadataError as e:
            logger.warning(str(e))
            return None
