"""Resolution of the main repository root from any path inside it."""

import shutil
from pathlib import Path
from typing import Union

import git

from git_worktree_keeper.exceptions import DependencyMissingError, NotARepositoryError
from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _require_git() -> None:
    if shutil.which("git") is None:
        raise DependencyMissingError("git", "Install git and make sure it is on PATH")


def _open_repo(path: PathLike) -> git.Repo:
    _require_git()
    try:
        repo = git.Repo(str(path), search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
        logger.debug(f"No git repository at {path}: {e}")
        raise NotARepositoryError(str(path)) from e
    if repo.bare:
        repo.close()
        raise NotARepositoryError(str(path))
    return repo


def is_inside_work_tree(path: PathLike) -> bool:
    """Check whether a path lies inside a git working tree."""
    try:
        repo = _open_repo(path)
    except NotARepositoryError:
        return False
    try:
        return repo.git.rev_parse("--is-inside-work-tree").strip() == "true"
    except git.exc.GitCommandError:
        return False
    finally:
        repo.close()


def worktree_toplevel(path: PathLike) -> Path:
    """Top level of the working tree containing ``path``.

    For a path inside a linked worktree this is the worktree itself, not the
    main repository.
    """
    repo = _open_repo(path)
    try:
        return Path(repo.git.rev_parse("--show-toplevel").strip()).resolve()
    except git.exc.GitCommandError as e:
        raise NotARepositoryError(str(path)) from e
    finally:
        repo.close()


def locate_main_repo(path: PathLike) -> Path:
    """Resolve the root of the main repository, even from inside a worktree.

    Linked worktrees share one common git directory with the main checkout;
    its parent is the main root. If that candidate does not validate as a
    working tree root (e.g. a bare common directory), the top level of
    ``path`` itself is returned.

    Raises:
        NotARepositoryError: ``path`` has no git ancestry
        DependencyMissingError: git is not installed
    """
    toplevel = worktree_toplevel(path)
    repo = git.Repo(str(toplevel))
    try:
        common_dir = repo.git.rev_parse("--git-common-dir").strip()
    except git.exc.GitCommandError as e:
        logger.debug(f"Could not resolve common git dir for {toplevel}: {e}")
        return toplevel
    finally:
        repo.close()

    # Relative output is relative to the directory git ran in, the top level
    common_path = Path(common_dir)
    if not common_path.is_absolute():
        common_path = toplevel / common_path
    candidate = common_path.resolve().parent

    try:
        candidate_repo = git.Repo(str(candidate))
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        logger.debug(f"{candidate} is not a repository, using {toplevel}")
        return toplevel
    try:
        main_root = Path(candidate_repo.git.rev_parse("--show-toplevel").strip()).resolve()
    except git.exc.GitCommandError:
        logger.debug(f"{candidate} has no working tree, using {toplevel}")
        return toplevel
    finally:
        candidate_repo.close()

    logger.debug(f"Main repository for {path}: {main_root}")
    return main_root
