"""Core functionality for git-worktree-keeper"""

from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from rich.console import Console
from rich.markup import escape

from git_worktree_keeper.config import Config
from git_worktree_keeper.exceptions import (
    InvalidNameError,
    MergeConflictError,
    MetadataNotFoundError,
    NestedWorktreeError,
    AlreadyExistsError,
    DirtyWorktreeError,
    GitOperationError,
    ProcessTerminationDeclinedError,
    RebaseConflictError,
    WorktreeNotFoundError,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.worktree import WorktreeEntry, WorktreeRecord, WorktreeStatus
from git_worktree_keeper.services.confirmer import Confirmer, ConsoleConfirmer
from git_worktree_keeper.services.context_injector import (
    inject_worktree_context,
    regenerate_main_table,
    write_boundary_rule,
)
from git_worktree_keeper.services.dev_servers import DevServerStopper
from git_worktree_keeper.services.display_service import DisplayService
from git_worktree_keeper.services.git import GitOperations, WorktreeService
from git_worktree_keeper.services.lock import DirectoryLock, Lock
from git_worktree_keeper.services.metadata_store import MetadataStore
from git_worktree_keeper.services.process_reaper import ProcessInspector, ProcessReaper, PsutilInspector
from git_worktree_keeper.services.repo_locator import locate_main_repo, worktree_toplevel
from git_worktree_keeper.services.workspace_setup import (
    ensure_gitignored,
    propagate_shared_config,
    run_bootstrap,
)

console = Console()
logger = get_logger(__name__)

PRUNE_MODES = ("interactive", "stale", "all")


class WorktreeKeeper:
    """Lifecycle of the worktrees of one main repository.

    Every operation works from the main repository root resolved from
    ``cwd``, so it behaves the same whether invoked from the main checkout
    or from inside one of its worktrees.
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        config: Union[Config, dict],
        confirmer: Optional[Confirmer] = None,
        inspector: Optional[ProcessInspector] = None,
        lock_factory: Optional[Callable[[Path], Lock]] = None,
    ):
        """Initialize WorktreeKeeper.

        Args:
            cwd: Working directory the command was invoked from
            config: Configuration dict or Config object
            confirmer: Source of operator answers (terminal prompts by default)
            inspector: Process inspection backend (psutil by default)
            lock_factory: Builds the merge lock from its path
        """
        if isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config

        self.cwd = Path(cwd)
        self.repo_root = locate_main_repo(self.cwd)
        logger.debug(f"Main repository: {self.repo_root}")

        self.confirmer = confirmer or ConsoleConfirmer()
        self.inspector = inspector or PsutilInspector()
        self.lock_factory = lock_factory or DirectoryLock

        self.store = MetadataStore(self.config.metadata_filename, self.config.default_base_branch)
        self.git_ops = GitOperations(self.repo_root, self.config)
        self.worktrees = WorktreeService(self.repo_root, self.config, self.git_ops, self.store)
        self.display = DisplayService(self.config.verbose, self.config.debug)
        self.reaper = ProcessReaper(
            self.inspector,
            self.confirmer,
            agent_signatures=self.config.agent_signatures,
            dev_server_stopper=DevServerStopper(self.inspector, self.confirmer),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def validate_name(self, name: str) -> None:
        """A name must work both as a branch name and as a single directory name."""
        if not name:
            raise InvalidNameError(name, "empty")
        if "/" in name:
            raise InvalidNameError(name, "not a flat name (it must not contain '/')")
        if name.startswith("."):
            raise InvalidNameError(name, "reserved (names must not start with '.')")
        if not GitOperations.is_valid_branch_name(name):
            raise InvalidNameError(name)

    def _resolve_target(self, name: Optional[str]) -> Tuple[str, Path]:
        """Find the worktree named ``name``, or the one containing ``cwd``.

        Raises:
            WorktreeNotFoundError: no directory for ``name``
            MetadataNotFoundError: no name given and ``cwd`` is not in a managed worktree
        """
        if name:
            self.validate_name(name)
            path = self.worktrees.path_for(name)
            if not path.is_dir():
                raise WorktreeNotFoundError(name, str(path))
            return name, path

        toplevel = worktree_toplevel(self.cwd)
        if toplevel == self.repo_root or not self.store.exists(toplevel):
            raise MetadataNotFoundError(str(self.cwd))
        return toplevel.name, toplevel

    def _show_uncommitted(self, name: str, path: Path) -> None:
        console.print(f"[yellow]Warning: Worktree '{name}' has uncommitted changes:[/yellow]")
        console.print(escape(self.git_ops.short_status(path)))
        console.print()

    def _remove(self, name: str, path: Path) -> None:
        self.worktrees.remove_worktree(path)
        console.print(f"Removed worktree '{name}'.")

    def _delete_branch(self, branch: str, prefix: str = "") -> None:
        if self.git_ops.delete_branch(branch):
            console.print(f"{prefix}Deleted branch '{branch}'.")
        else:
            console.print(f"{prefix}[yellow]Warning: Could not delete branch '{branch}'.[/yellow]")

    def refresh_map(self) -> bool:
        """Regenerate the worktree table of the main repository's document."""
        document = self.repo_root / self.config.context_document
        return regenerate_main_table(document, self.worktrees.scan(), self.config.worktrees_dir)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, name: str, base: Optional[str] = None) -> Path:
        """Create worktree ``name`` on a branch of the same name.

        Args:
            name: Worktree, branch and directory name
            base: Start point; ``None`` or ``"HEAD"`` means the main checkout's branch

        Returns:
            Path of the new worktree
        """
        self.validate_name(name)

        if worktree_toplevel(self.cwd) != self.repo_root:
            raise NestedWorktreeError(str(self.repo_root))

        ensure_gitignored(self.repo_root, self.git_ops, self.config.worktrees_dir)

        worktree_path = self.worktrees.path_for(name)
        if worktree_path.exists():
            healthy = self.worktrees.inspect(worktree_path).is_healthy
            if healthy:
                console.print(f"Worktree '{name}' already exists at {worktree_path}")
                console.print(f"  Branch: {self.git_ops.current_branch(worktree_path)}")
            else:
                console.print(
                    f"[yellow]Worktree '{name}' exists but appears broken (missing .git or metadata).[/yellow]"
                )
            if not self.confirmer.confirm("Remove and recreate?", default=False):
                raise AlreadyExistsError(name, str(worktree_path), broken=not healthy)
            console.print("Removing existing worktree...")
            self.worktrees.remove_worktree(worktree_path)

        if base is None or base == "HEAD":
            start_point = "HEAD"
            base_branch = self.git_ops.current_branch()
        else:
            start_point = base
            base_branch = base

        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        console.print(f"Creating worktree '{name}' from '{base_branch}'...")
        self.git_ops.add_worktree(worktree_path, name, start_point)

        record = WorktreeRecord.new(name, base_branch, str(self.repo_root))
        self.store.write(worktree_path, record)
        console.print(f"  Created {self.config.metadata_filename}")

        propagate_shared_config(self.repo_root, worktree_path, self.config)

        document_name = self.config.context_document
        if inject_worktree_context(
            worktree_path / document_name,
            self.repo_root.name,
            name,
            base_branch,
            worktree_path,
            self.repo_root,
        ):
            console.print(f"  Injected worktree context into {document_name}")
            if self.git_ops.is_tracked(worktree_path, document_name):
                self.git_ops.skip_worktree(worktree_path, document_name)

        write_boundary_rule(worktree_path)
        console.print("  Generated boundary guard rule")

        self.refresh_map()

        if self.config.bootstrap:
            run_bootstrap(worktree_path)

        console.print()
        console.print(f"[green]Worktree '{name}' ready at: {worktree_path}[/green]")
        console.print(f"[dim]cd \"$(wt path {name})\"[/dim]")
        return worktree_path

    def list(self) -> List[WorktreeEntry]:
        """Print the managed worktrees, then every worktree git has registered."""
        if not self.worktrees.worktrees_root.is_dir():
            console.print(f"No {self.config.worktrees_dir}/ directory found.")
            entries = []
        else:
            entries = self.worktrees.scan()
            self.display.display_worktree_table(entries)
        self.display.display_git_worktrees(self.worktrees.get_worktree_info())
        return entries

    def merge(self, name: Optional[str] = None) -> bool:
        """Merge a worktree's branch into its base branch in the main checkout.

        Serialized across invocations by the merge lock, which is released on
        every exit path.

        Returns:
            True if the branch was merged, False if the operator declined
        """
        name, worktree_path = self._resolve_target(name)
        record = self.store.read(worktree_path)

        lock = self.lock_factory(self.worktrees.worktrees_root / self.config.lock_name)
        lock.acquire(self.config.lock_wait_seconds)
        try:
            return self._merge_locked(name, worktree_path, record)
        finally:
            lock.release()

    def _merge_locked(self, name: str, worktree_path: Path, record: WorktreeRecord) -> bool:
        branch = record.branch
        base_branch = record.base_branch

        console.print(f"Merging worktree '{name}' (branch: {branch}) into '{base_branch}'")
        console.print()

        if self.git_ops.has_uncommitted_changes(worktree_path):
            self._show_uncommitted(name, worktree_path)
            if not self.confirmer.confirm(
                "Continue? Uncommitted changes will NOT be merged.", default=False
            ):
                console.print("Aborted.")
                return False

        console.print("Changes to merge:")
        console.print("---")
        commits = self.git_ops.commits_between(base_branch, branch)
        if not commits:
            console.print("  No new commits to merge.")
            if not self.confirmer.confirm("Continue anyway?", default=False):
                console.print("Aborted.")
                return False
        else:
            for line in commits:
                console.print(escape(line))
            console.print()
            stat = self.git_ops.diff_stat(base_branch, branch)
            if stat:
                console.print(escape(stat))
        console.print()

        if not self.confirmer.confirm(f"Proceed with merge into '{base_branch}'?", default=False):
            console.print("Aborted.")
            return False

        self.git_ops.checkout(base_branch)
        if not self.git_ops.merge(branch):
            raise MergeConflictError(branch, base_branch, str(self.repo_root), name)

        console.print()
        console.print(f"[green]Merged '{branch}' into '{base_branch}' successfully.[/green]")

        console.print()
        if self.confirmer.confirm(f"Clean up worktree '{name}'?", default=True):
            try:
                self.reaper.find_and_stop(worktree_path, name, forced=False)
            except ProcessTerminationDeclinedError as e:
                console.print(f"[yellow]Warning: {e} Worktree kept.[/yellow]")
            else:
                self._remove(name, worktree_path)
                if self.confirmer.confirm(f"Delete branch '{branch}'?", default=True):
                    self._delete_branch(branch)
            self.refresh_map()

        console.print()
        console.print(f"Done. Branch '{base_branch}' in {self.repo_root}")
        return True

    def rebase(self, name: Optional[str] = None) -> bool:
        """Rebase a worktree's branch onto the latest base branch.

        Returns:
            True if the branch is now on top of the base, False if declined
        """
        name, worktree_path = self._resolve_target(name)
        record = self.store.read(worktree_path)
        branch = record.branch
        base_branch = record.base_branch

        console.print(f"Rebasing worktree '{name}' (branch: {branch}) onto '{base_branch}'")
        console.print()

        if self.git_ops.has_uncommitted_changes(worktree_path):
            console.print(escape(self.git_ops.short_status(worktree_path)))
            raise DirtyWorktreeError(name, "rebasing")

        # Prefer the remote base for the latest state
        target = base_branch
        remote_ref = f"{self.git_ops.remote_name}/{base_branch}"
        if self.git_ops.has_ref(remote_ref):
            console.print(f"Fetching latest from {self.git_ops.remote_name}...")
            if self.git_ops.fetch(base_branch):
                target = remote_ref
            else:
                console.print(f"[yellow]Warning: fetch failed, rebasing onto local '{base_branch}'.[/yellow]")

        if not self.git_ops.commits_between("HEAD", target, worktree_path):
            console.print(f"Branch '{branch}' is already up to date with '{target}'.")
            return True

        commits = self.git_ops.commits_between(target, "HEAD", worktree_path)
        if commits:
            console.print(f"Commits to rebase onto '{target}':")
            for line in commits:
                console.print(escape(line))
        else:
            console.print(f"No local commits; '{branch}' will fast-forward to '{target}'.")
        console.print()

        if not self.confirmer.confirm("Proceed with rebase?", default=False):
            console.print("Aborted.")
            return False

        if not self.git_ops.rebase(worktree_path, target):
            raise RebaseConflictError(branch, str(worktree_path))

        console.print()
        console.print(f"[green]Rebased '{branch}' onto '{target}' successfully.[/green]")
        return True

    def cleanup(self, name: Optional[str] = None) -> bool:
        """Remove a worktree after confirmation, optionally deleting its branch.

        Raises:
            ProcessTerminationDeclinedError: agent sessions were left running;
                the worktree is not removed
        """
        name, worktree_path = self._resolve_target(name)
        record = self.store.read_optional(worktree_path)

        if self.git_ops.has_uncommitted_changes(worktree_path):
            self._show_uncommitted(name, worktree_path)
            question = f"Remove worktree '{name}' with uncommitted changes? This is irreversible."
        else:
            question = f"Remove worktree '{name}'?"

        if not self.confirmer.confirm(question, default=False):
            console.print("Aborted.")
            return False

        self.reaper.find_and_stop(worktree_path, name, forced=False)
        self._remove(name, worktree_path)

        if record is not None:
            if self.confirmer.confirm(f"Also delete branch '{record.branch}'?", default=False):
                self._delete_branch(record.branch)

        self.refresh_map()
        return True

    def done(self, name: Optional[str] = None) -> bool:
        """Finish a merged worktree: remove it, delete its branches, update the base."""
        name, worktree_path = self._resolve_target(name)
        record = self.store.read_optional(worktree_path)
        branch = record.branch if record else name
        base_branch = record.base_branch if record else self.config.default_base_branch

        if self.git_ops.has_uncommitted_changes(worktree_path):
            self._show_uncommitted(name, worktree_path)
            if not self.confirmer.confirm(
                "Continue? Uncommitted changes will be lost.", default=False
            ):
                console.print("Aborted.")
                return False

        console.print(f"Finishing worktree '{name}' (branch: {branch}, base: {base_branch})")
        console.print()

        self.reaper.find_and_stop(worktree_path, name, forced=True)
        self._remove(name, worktree_path)

        if self.git_ops.delete_branch(branch):
            console.print(f"Deleted local branch '{branch}'.")

        remote = self.git_ops.remote_name
        if self.git_ops.has_remote_branch(branch):
            if self.confirmer.confirm(f"Delete remote branch '{remote}/{branch}'?", default=True):
                if self.git_ops.delete_remote_branch(branch):
                    console.print(f"Deleted remote branch '{branch}'.")
                else:
                    console.print("[yellow]Warning: Could not delete remote branch.[/yellow]")

        console.print()
        try:
            self.git_ops.checkout(base_branch)
        except GitOperationError as e:
            console.print(f"[yellow]Warning: {e}[/yellow]")
        else:
            if not self.git_ops.pull():
                console.print(f"[yellow]Warning: Could not pull '{base_branch}'.[/yellow]")
        console.print()

        self.refresh_map()
        console.print(f"Done. You're on '{base_branch}' at {self.repo_root}")
        return True

    def prune(self, mode: str = "interactive") -> int:
        """Batch-remove worktrees.

        Args:
            mode: ``interactive`` offers every worktree, ``stale`` only stale
                and broken ones, ``all`` removes every worktree without asking

        Returns:
            Number of worktrees removed
        """
        if mode not in PRUNE_MODES:
            raise ValueError(f"Unknown prune mode '{mode}', expected one of {', '.join(PRUNE_MODES)}")

        entries = self.worktrees.scan()
        if mode == "stale":
            candidates = [
                e for e in entries if e.status in (WorktreeStatus.STALE, WorktreeStatus.BROKEN)
            ]
        else:
            candidates = entries

        if not candidates:
            console.print("No worktrees to prune.")
            self.worktrees.prune_worktrees()
            return 0

        console.print()
        console.print(f"Worktrees to prune ({mode} mode):")
        self.display.display_prune_candidates(candidates)
        console.print()

        approve_all = mode == "all"
        removed = 0
        for entry in candidates:
            if not approve_all:
                answer = self.confirmer.choose(
                    f"Remove '{entry.name}' (branch: {entry.branch}, status: {entry.status.value})?",
                    ["y", "n", "a"],
                    default="n",
                )
                if answer == "a":
                    approve_all = True
                elif answer != "y":
                    console.print("  Skipped.")
                    continue

            worktree_path = Path(entry.path)
            try:
                self.reaper.find_and_stop(worktree_path, entry.name, forced=approve_all)
            except ProcessTerminationDeclinedError:
                console.print(f"  Skipped '{entry.name}' (processes still running).")
                continue

            self.worktrees.remove_worktree(worktree_path)
            console.print(f"  Removed worktree '{entry.name}'.")

            if entry.record is not None:
                if approve_all or self.confirmer.confirm(
                    f"  Delete branch '{entry.branch}'?", default=False
                ):
                    self._delete_branch(entry.branch, prefix="  ")

            removed += 1

        self.worktrees.prune_worktrees()
        self.refresh_map()

        console.print()
        console.print(f"Pruned {removed} worktree(s). Git worktree refs cleaned.")
        return removed

    def path(self, name: str) -> Path:
        """Directory of worktree ``name``."""
        self.validate_name(name)
        worktree_path = self.worktrees.path_for(name)
        if not worktree_path.is_dir():
            raise WorktreeNotFoundError(name, str(worktree_path))
        return worktree_path
