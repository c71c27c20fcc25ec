"""Preparing a fresh worktree: ignore rules, shared configuration, dependencies."""

import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, TYPE_CHECKING, Union

from rich.console import Console

from git_worktree_keeper.exceptions import DependencyMissingError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.services.git.operations import GitOperations

if TYPE_CHECKING:
    from git_worktree_keeper.config import Config

console = Console()
logger = get_logger(__name__)

PathLike = Union[str, Path]


def ensure_gitignored(repo_root: PathLike, git_ops: GitOperations, worktrees_dir: str = ".worktrees") -> bool:
    """Add the worktrees directory to ``.gitignore`` unless already ignored.

    Returns:
        True if ``.gitignore`` was modified
    """
    # Trailing slash so directory-only patterns match before the directory exists
    if git_ops.is_ignored(f"{worktrees_dir}/"):
        return False

    gitignore = Path(repo_root) / ".gitignore"
    block = f"# Git worktrees managed by wt\n{worktrees_dir}/\n"
    if gitignore.is_file():
        existing = gitignore.read_text(encoding="utf-8")
        if f"{worktrees_dir}/" in existing.splitlines():
            return False
        separator = "\n" if existing.endswith("\n") or not existing else "\n\n"
        gitignore.write_text(existing + separator + block, encoding="utf-8")
    else:
        gitignore.write_text(block, encoding="utf-8")
    console.print(f"Added {worktrees_dir}/ to .gitignore")
    return True


def _symlink(target: Path, link: Path) -> None:
    # Equivalent of ln -sfn: replace whatever is at the link path
    if link.is_symlink() or link.is_file():
        link.unlink()
    elif link.is_dir():
        shutil.rmtree(link)
    link.symlink_to(target)


def propagate_shared_config(
    repo_root: PathLike, worktree_path: PathLike, config: Union["Config", dict]
) -> List[str]:
    """Share configuration from the main repo with a new worktree.

    Shared directories are symlinked so edits apply everywhere; settings files
    are copied because they are expected to diverge per worktree; env files
    are symlinked since they are gitignored and never checked out.

    Returns:
        Relative paths that were linked or copied
    """
    repo_root = Path(repo_root)
    worktree_path = Path(worktree_path)
    done: List[str] = []

    config_dir_name = config.get("shared_config_dir", ".claude")
    source_dir = repo_root / config_dir_name
    if source_dir.is_dir():
        target_dir = worktree_path / config_dir_name
        target_dir.mkdir(parents=True, exist_ok=True)

        for name in config.get("shared_config_links", []):
            if (source_dir / name).is_dir():
                _symlink((source_dir / name).resolve(), target_dir / name)
                done.append(f"{config_dir_name}/{name}")
                console.print(f"  Symlinked {config_dir_name}/{name}")

        for name in config.get("shared_config_copies", []):
            if (source_dir / name).is_file():
                shutil.copy2(source_dir / name, target_dir / name)
                done.append(f"{config_dir_name}/{name}")
                console.print(f"  Copied {config_dir_name}/{name}")

    for env_file in config.get("env_files", []):
        if (repo_root / env_file).is_file():
            _symlink((repo_root / env_file).resolve(), worktree_path / env_file)
            done.append(env_file)
            console.print(f"  Symlinked {env_file}")

    return done


def detect_bootstrap_command(path: PathLike) -> Optional[List[str]]:
    """Pick the install/build command for a project from its manifest files."""
    path = Path(path)

    def has(name: str) -> bool:
        return (path / name).exists()

    if has("package.json"):
        if has("bun.lock") or has("bun.lockb"):
            return ["bun", "install"]
        if has("package-lock.json"):
            return ["npm", "install"]
        if has("yarn.lock"):
            return ["yarn", "install"]
        if has("pnpm-lock.yaml"):
            return ["pnpm", "install"]
        return ["npm", "install"]
    if has("Cargo.toml"):
        return ["cargo", "build"]
    if has("requirements.txt"):
        return ["pip", "install", "-r", "requirements.txt"]
    if has("pyproject.toml"):
        if has("uv.lock"):
            return ["uv", "sync"]
        if has("poetry.lock"):
            return ["poetry", "install"]
        return None
    if has("go.mod"):
        return ["go", "mod", "download"]
    return None


def _run(command: List[str], cwd: Path) -> None:
    if shutil.which(command[0]) is None:
        raise DependencyMissingError(command[0])
    subprocess.run(command, cwd=str(cwd), check=True, env=os.environ.copy())


def run_bootstrap(path: PathLike) -> bool:
    """Run the detected project setup step. Failures are only warnings.

    Returns:
        True if a command ran and succeeded
    """
    command = detect_bootstrap_command(path)
    if command is None:
        logger.debug(f"No bootstrap step detected for {path}")
        return False

    label = " ".join(command)
    console.print(f"Running {label}...")
    try:
        _run(command, Path(path))
    except DependencyMissingError as e:
        console.print(f"[yellow]Warning: {e}; skipping {label}[/yellow]")
        return False
    except (subprocess.CalledProcessError, OSError) as e:
        console.print(f"[yellow]Warning: {label} failed ({e})[/yellow]")
        return False
    return True
