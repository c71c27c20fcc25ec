"""Worktree registry and inventory service for git-worktree-keeper."""

import os
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING, Union

import git

from git_worktree_keeper.models.worktree import WorktreeEntry, WorktreeInfo, derive_status
from git_worktree_keeper.services.git.operations import GitOperations, describe_git_error
from git_worktree_keeper.services.metadata_store import MetadataStore
from git_worktree_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_worktree_keeper.config import Config

logger = get_logger(__name__)

PathLike = Union[str, Path]


def has_git_link(path: PathLike) -> bool:
    """A linked worktree has a ``.git`` file; a plain checkout a ``.git`` directory."""
    return (Path(path) / ".git").exists()


def parse_worktree_porcelain(output: str) -> List[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or: detached)
        prunable <reason>               (git 2.31+, directory gone)
        (blank line between worktrees)
    """
    worktree_list: List[WorktreeInfo] = []
    current: Dict[str, Any] = {}

    def flush() -> None:
        path = current.get("path")
        if path:
            worktree_list.append(WorktreeInfo(
                path=path,
                branch_name=current.get("branch", ""),
                commit_sha=current.get("HEAD", ""),
                # The main working tree is always listed first
                is_main=not worktree_list,
                is_orphaned=current.get("prunable", False) or not os.path.isdir(path),
            ))

    for line in output.splitlines():
        line = line.strip()
        if not line:
            flush()
            current = {}
            continue

        key, _, value = line.partition(" ")
        if key == "worktree":
            current["path"] = value
        elif key == "HEAD":
            current["HEAD"] = value
        elif key == "branch":
            current["branch"] = value[len("refs/heads/"):] if value.startswith("refs/heads/") else value
        elif key == "prunable":
            current["prunable"] = True

    # Last entry when there is no trailing blank line
    flush()
    return worktree_list


class WorktreeService:
    """Service for the worktrees of one main repository.

    Covers git's own worktree registry (list, remove, prune) and the
    inventory of managed worktree directories under the worktrees dir.
    """

    def __init__(
        self,
        repo_path: PathLike,
        config: Union["Config", dict],
        git_ops: Optional[GitOperations] = None,
        store: Optional[MetadataStore] = None,
    ):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the main repository root
            config: Configuration dictionary or Config object
            git_ops: Git operations bound to the same repository
            store: Metadata store for the worktree sidecars
        """
        self.repo_path = Path(repo_path)
        self.config = config
        self.git_ops = git_ops or GitOperations(repo_path, config)
        self.store = store or MetadataStore(
            config.get("metadata_filename", ".worktree.json"),
            config.get("default_base_branch", "main"),
        )
        self.stale_days = config.get("stale_days", 7)

    def _get_repo(self) -> git.Repo:
        return git.Repo(str(self.repo_path))

    @property
    def worktrees_root(self) -> Path:
        return self.repo_path / self.config.get("worktrees_dir", ".worktrees")

    def path_for(self, name: str) -> Path:
        return self.worktrees_root / name

    def get_worktree_info(self) -> List[WorktreeInfo]:
        """Every worktree git has registered, main working tree first.

        Entries outside the worktrees dir and entries whose directory is
        gone are flagged, since ``list`` only inventories the worktrees dir.
        """
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            logger.warning(f"Could not list git worktrees: {describe_git_error(e)}")
            return []

        managed_root = self.worktrees_root.resolve()
        worktree_list = parse_worktree_porcelain(output)
        for info in worktree_list:
            info.is_managed = Path(info.path).resolve().parent == managed_root
            logger.debug(f"  {info}")
        return worktree_list

    def inspect(self, worktree_path: PathLike) -> WorktreeEntry:
        """Read one worktree directory: tolerant metadata, age and derived status."""
        path = Path(worktree_path)
        record = self.store.read_optional(path)
        linked = has_git_link(path)

        age_days: Optional[int] = None
        last_commit = "-"
        if linked:
            epoch = self.git_ops.last_commit_epoch(path)
            if epoch is not None:
                age_days = max(0, int((time.time() - epoch) // 86400))
                last_commit = self.git_ops.last_commit_relative(path)

        return WorktreeEntry(
            name=path.name,
            path=str(path),
            record=record,
            has_git_link=linked,
            last_commit=last_commit,
            age_days=age_days,
            status=derive_status(record, linked, age_days, self.stale_days),
        )

    def scan(self) -> List[WorktreeEntry]:
        """Inventory every worktree directory, sorted by name.

        Hidden entries (the merge lock, editor droppings) are not worktrees.
        """
        root = self.worktrees_root
        if not root.is_dir():
            return []
        entries = []
        for child in sorted(root.iterdir()):
            if child.name.startswith(".") or not child.is_dir():
                continue
            entries.append(self.inspect(child))
        return entries

    def remove_worktree(self, path: PathLike) -> None:
        """Remove a worktree, falling back to deleting the directory and pruning.

        The fallback covers broken leftovers that git no longer recognizes.
        """
        try:
            self._get_repo().git.worktree("remove", str(path), "--force")
            logger.info(f"Removed worktree at {path}")
            return
        except git.exc.GitCommandError as e:
            logger.debug(f"git worktree remove failed for {path}: {describe_git_error(e)}")

        shutil.rmtree(path, ignore_errors=True)
        self.prune_worktrees()
        logger.info(f"Deleted worktree directory {path}")

    def prune_worktrees(self) -> bool:
        """Prune git's records of worktrees whose directories are gone."""
        try:
            self._get_repo().git.worktree("prune")
            logger.info("Pruned orphaned worktree metadata")
            return True
        except git.exc.GitCommandError as e:
            logger.error(f"Failed to prune worktrees: {describe_git_error(e)}")
            return False
