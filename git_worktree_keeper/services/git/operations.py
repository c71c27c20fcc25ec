"""Git operations service"""

from pathlib import Path
from typing import List, Optional, TYPE_CHECKING, Union

import git
from rich.console import Console
from rich.markup import escape

from git_worktree_keeper.exceptions import GitOperationError
from git_worktree_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_worktree_keeper.config import Config

console = Console()
logger = get_logger(__name__)

PathLike = Union[str, Path]


def describe_git_error(e: git.exc.GitCommandError) -> str:
    """Readable one-line summary of a failed git command."""
    stderr = (e.stderr if hasattr(e, "stderr") and e.stderr else "").strip()
    status = e.status if hasattr(e, "status") else "unknown"
    # GitPython prefixes stderr with "stderr: '" and quotes it
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip().strip("'").strip()
    if stderr:
        return f"exit {status}: {stderr}"
    return f"exit code {status}"


class GitOperations:
    """Service for Git operations on the main repository and its worktrees."""

    def __init__(self, repo_path: PathLike, config: Union["Config", dict]):
        """Initialize the service.

        Args:
            repo_path: Path to the main repository root
            config: Configuration dictionary or Config object
        """
        self.repo_path = str(repo_path)
        self.config = config
        self.remote_name = config.get("remote_name", "origin")

    def _get_repo(self, path: Optional[PathLike] = None) -> git.Repo:
        """Open the main repository, or the worktree at ``path``.

        GitPython repos are lightweight - they don't clone, just open the existing repo.
        """
        return git.Repo(str(path) if path is not None else self.repo_path)

    @staticmethod
    def is_valid_branch_name(name: str) -> bool:
        """Check a name with ``git check-ref-format --branch``."""
        try:
            git.Git().check_ref_format("--branch", name)
            return True
        except git.exc.GitCommandError:
            return False

    def branch_exists(self, branch_name: str) -> bool:
        """Check if a local branch exists."""
        try:
            self._get_repo().git.show_ref("--verify", "--quiet", f"refs/heads/{branch_name}")
            return True
        except git.exc.GitCommandError:
            return False

    def has_ref(self, ref: str) -> bool:
        """Check if any ref (e.g. ``origin/main``) resolves."""
        try:
            self._get_repo().git.rev_parse("--verify", "--quiet", ref)
            return True
        except git.exc.GitCommandError:
            return False

    def current_branch(self, path: Optional[PathLike] = None) -> str:
        """Current branch, or the short commit sha in detached HEAD state."""
        repo = self._get_repo(path)
        try:
            return repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return repo.git.rev_parse("--short", "HEAD")

    def add_worktree(self, worktree_path: PathLike, branch_name: str, start_point: str) -> None:
        """Create a linked worktree, creating the branch from ``start_point`` if needed."""
        repo = self._get_repo()
        try:
            if self.branch_exists(branch_name):
                repo.git.worktree("add", str(worktree_path), branch_name)
            else:
                repo.git.worktree("add", "-b", branch_name, str(worktree_path), start_point)
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree add", branch_name, describe_git_error(e))
        logger.info(f"Added worktree {worktree_path} on {branch_name}")

    def has_uncommitted_changes(self, worktree_path: PathLike) -> bool:
        """Staged or unstaged changes to tracked files. Untracked files do not count."""
        try:
            return self._get_repo(worktree_path).is_dirty(
                index=True, working_tree=True, untracked_files=False
            )
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            return False

    def short_status(self, worktree_path: PathLike) -> str:
        try:
            return self._get_repo(worktree_path).git.status("--short")
        except (git.exc.GitCommandError, git.exc.InvalidGitRepositoryError) as e:
            logger.debug(f"Could not get status of {worktree_path}: {e}")
            return ""

    def commits_between(self, since: str, until: str, path: Optional[PathLike] = None) -> List[str]:
        """One-line summaries of commits in ``until`` but not in ``since``."""
        try:
            output = self._get_repo(path).git.log("--oneline", f"{since}..{until}")
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not list commits {since}..{until}: {e}")
            return []
        return [line for line in output.splitlines() if line.strip()]

    def diff_stat(self, since: str, until: str) -> str:
        try:
            return self._get_repo().git.diff("--stat", f"{since}..{until}")
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not diff {since}..{until}: {e}")
            return ""

    def checkout(self, branch_name: str) -> None:
        """Check out a branch in the main repository."""
        try:
            self._get_repo().git.checkout(branch_name)
        except git.exc.GitCommandError as e:
            raise GitOperationError("checkout", branch_name, describe_git_error(e))

    def merge_in_progress(self) -> bool:
        """A stopped merge leaves MERGE_HEAD behind until it is committed or aborted."""
        return self.has_ref("MERGE_HEAD")

    def merge(self, branch_name: str) -> bool:
        """Merge a branch into the main checkout. False on conflict.

        A conflicted merge is left in place for the operator to resolve.

        Raises:
            GitOperationError: If git refused to start the merge at all
        """
        try:
            output = self._get_repo().git.merge("--no-edit", branch_name)
        except git.exc.GitCommandError as e:
            if not self.merge_in_progress():
                raise GitOperationError("merge", branch_name, describe_git_error(e))
            if e.stdout:
                console.print(escape(str(e.stdout).strip()))
            logger.warning(f"Merge of {branch_name} stopped on conflicts: {describe_git_error(e)}")
            return False
        if output:
            console.print(f"[dim]{escape(output)}[/dim]")
        return True

    def fetch(self, branch_name: str) -> bool:
        """Fetch one branch from the remote. False on failure."""
        try:
            self._get_repo().git.fetch(self.remote_name, branch_name)
            return True
        except git.exc.GitCommandError as e:
            logger.debug(f"Fetch of {self.remote_name}/{branch_name} failed: {describe_git_error(e)}")
            return False

    def rebase(self, worktree_path: PathLike, target: str) -> bool:
        """Rebase the worktree's branch onto ``target``. False on conflict.

        A stopped rebase is left in git's conflict state.
        """
        try:
            output = self._get_repo(worktree_path).git.rebase(target)
        except git.exc.GitCommandError as e:
            logger.warning(f"Rebase onto {target} failed: {describe_git_error(e)}")
            return False
        if output:
            console.print(f"[dim]{escape(output)}[/dim]")
        return True

    def last_commit_epoch(self, worktree_path: PathLike) -> Optional[int]:
        """Committer timestamp of HEAD in a worktree, None if unavailable."""
        try:
            output = self._get_repo(worktree_path).git.log("-1", "--format=%ct")
            return int(output.strip())
        except (git.exc.GitCommandError, git.exc.InvalidGitRepositoryError,
                git.exc.NoSuchPathError, ValueError) as e:
            logger.debug(f"Could not read last commit of {worktree_path}: {e}")
            return None

    def last_commit_relative(self, worktree_path: PathLike) -> str:
        """Relative age of HEAD in a worktree, e.g. ``3 days ago``."""
        try:
            return self._get_repo(worktree_path).git.log("-1", "--format=%cr").strip() or "-"
        except (git.exc.GitCommandError, git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            return "-"

    def delete_branch(self, branch_name: str) -> bool:
        """Delete a local branch, forcing it when it has unmerged commits."""
        repo = self._get_repo()
        try:
            repo.git.branch("-d", branch_name)
            return True
        except git.exc.GitCommandError as e:
            logger.debug(f"Safe delete of {branch_name} failed, forcing: {describe_git_error(e)}")
        try:
            repo.git.branch("-D", branch_name)
            return True
        except git.exc.GitCommandError as e:
            logger.warning(f"Could not delete branch {branch_name}: {describe_git_error(e)}")
            return False

    def has_remote_branch(self, branch_name: str) -> bool:
        """Check the remote itself (not the local tracking refs) for a branch."""
        try:
            self._get_repo().git.ls_remote("--exit-code", "--heads", self.remote_name, branch_name)
            return True
        except git.exc.GitCommandError:
            return False

    def delete_remote_branch(self, branch_name: str) -> bool:
        try:
            self._get_repo().git.push(self.remote_name, "--delete", branch_name)
            return True
        except git.exc.GitCommandError as e:
            logger.debug(f"Remote delete of {branch_name} failed: {describe_git_error(e)}")
            return False

    def pull(self) -> bool:
        try:
            output = self._get_repo().git.pull()
        except git.exc.GitCommandError as e:
            logger.debug(f"Pull failed: {describe_git_error(e)}")
            return False
        if output:
            console.print(f"[dim]{escape(output)}[/dim]")
        return True

    def is_ignored(self, relative_path: str) -> bool:
        """Check if a path is matched by the repository's ignore rules."""
        try:
            self._get_repo().git.check_ignore("-q", relative_path)
            return True
        except git.exc.GitCommandError:
            return False

    def is_tracked(self, worktree_path: PathLike, relative_path: str) -> bool:
        try:
            self._get_repo(worktree_path).git.ls_files("--error-unmatch", relative_path)
            return True
        except git.exc.GitCommandError:
            return False

    def skip_worktree(self, worktree_path: PathLike, relative_path: str) -> bool:
        """Hide local edits of a tracked file from status and diff."""
        try:
            self._get_repo(worktree_path).git.update_index("--skip-worktree", relative_path)
            return True
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not mark {relative_path} skip-worktree: {describe_git_error(e)}")
            return False
