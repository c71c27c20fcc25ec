"""Custom exceptions for git-worktree-keeper"""

from typing import List, Optional


class WorktreeKeeperError(Exception):
    """Base exception for all git-worktree-keeper errors."""
    pass


class GitOperationError(WorktreeKeeperError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class NotARepositoryError(WorktreeKeeperError):
    """Exception raised when a path has no git working tree ancestry."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not inside a git repository: {path}")


class NestedWorktreeError(WorktreeKeeperError):
    """Exception raised when creating a worktree from inside another worktree."""

    def __init__(self, repo_root: str):
        self.repo_root = repo_root
        super().__init__(f"You are inside a worktree. Run wt from the main repo: {repo_root}")


class InvalidNameError(WorktreeKeeperError):
    """Exception raised when a worktree name cannot double as branch and directory name."""

    def __init__(self, name: str, reason: str = "not a valid branch name"):
        self.name = name
        self.reason = reason
        super().__init__(f"'{name}' is {reason}")


class AlreadyExistsError(WorktreeKeeperError):
    """Exception raised when a worktree with the same name is already present."""

    def __init__(self, name: str, path: str, broken: bool = False):
        self.name = name
        self.path = path
        self.broken = broken
        state = "exists but appears broken" if broken else "already exists"
        super().__init__(f"Worktree '{name}' {state} at {path}")


class WorktreeNotFoundError(WorktreeKeeperError):
    """Exception raised when a worktree directory does not exist."""

    def __init__(self, name: str, path: Optional[str] = None, message: Optional[str] = None):
        self.name = name
        self.path = path
        if message is None:
            message = f"Worktree '{name}' not found"
            if path:
                message += f" at {path}"
        super().__init__(message)


class MetadataNotFoundError(WorktreeNotFoundError):
    """Exception raised when a directory has no worktree metadata sidecar."""

    def __init__(self, path: str):
        super().__init__("", path, f"Not a managed worktree (no metadata found in {path})")


class MetadataError(WorktreeKeeperError):
    """Exception raised when a metadata sidecar cannot be decoded."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Invalid worktree metadata in {path}: {message}")


class DirtyWorktreeError(WorktreeKeeperError):
    """Exception raised when uncommitted changes block an operation."""

    def __init__(self, name: str, operation: str):
        self.name = name
        self.operation = operation
        super().__init__(
            f"Uncommitted changes in worktree '{name}'. Commit or stash changes before {operation}."
        )


class LockTimeoutError(WorktreeKeeperError):
    """Exception raised when the merge lock could not be acquired in time."""

    def __init__(self, lock_path: str, holder_pid: Optional[int], waited: int):
        self.lock_path = lock_path
        self.holder_pid = holder_pid
        self.waited = waited
        holder = f"PID {holder_pid}" if holder_pid is not None else "an unknown process"
        super().__init__(f"Could not acquire lock after {waited}s (held by {holder})")


class ConflictError(WorktreeKeeperError):
    """Base for conflicts left in git's native conflicted state."""

    def __init__(self, message: str, recovery: Optional[List[str]] = None):
        self.recovery = recovery or []
        super().__init__(message)


class MergeConflictError(ConflictError):
    """Exception raised when merging a worktree branch produced conflicts."""

    def __init__(self, branch: str, base_branch: str, repo_path: str, name: str):
        self.branch = branch
        self.base_branch = base_branch
        self.repo_path = repo_path
        super().__init__(
            f"Merge of '{branch}' into '{base_branch}' failed. Resolve conflicts in {repo_path}, then run:",
            [f"wt cleanup {name}"],
        )


class RebaseConflictError(ConflictError):
    """Exception raised when rebasing a worktree branch stopped on a conflict."""

    def __init__(self, branch: str, worktree_path: str):
        self.branch = branch
        self.worktree_path = worktree_path
        super().__init__(
            f"Rebase conflict on '{branch}'. Resolve in: {worktree_path}",
            [
                f"git -C {worktree_path} rebase --continue",
                f"git -C {worktree_path} rebase --abort",
            ],
        )


class ProcessTerminationDeclinedError(WorktreeKeeperError):
    """Exception raised when the operator refuses to stop agent sessions."""

    def __init__(self, name: str, pids: List[int]):
        self.name = name
        self.pids = pids
        super().__init__(
            f"Agent sessions still running in worktree '{name}' "
            f"(PIDs {', '.join(str(p) for p in pids)}). Close them manually, then re-run."
        )


class DependencyMissingError(WorktreeKeeperError):
    """Exception raised when a required external tool is not installed."""

    def __init__(self, tool: str, hint: Optional[str] = None):
        self.tool = tool
        error_msg = f"'{tool}' is required but not installed"
        if hint:
            error_msg += f". {hint}"
        super().__init__(error_msg)
