"""Pytest fixtures for git-worktree-keeper tests"""
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import git
import pytest

from git_worktree_keeper.config import Config
from git_worktree_keeper.core import WorktreeKeeper
from git_worktree_keeper.services.process_reaper import is_path_under


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolved so paths compare equal to what git reports (macOS /private)
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository on main with .worktrees/ already ignored."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()
    repo.config_writer().set_value("commit", "gpgsign", "false").release()

    (repo_path / "README.md").write_text("# Test Repository\n")
    (repo_path / ".gitignore").write_text(".worktrees/\n")
    repo.git.add("README.md", ".gitignore")
    repo.git.commit("-m", "Initial commit")

    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def repo_path(git_repo):
    return Path(git_repo.working_dir)


@pytest.fixture
def config():
    """Configuration that never runs install steps."""
    return Config(bootstrap=False, lock_wait_seconds=1)


def commit_file(path, filename: str, content: str, message: str, date: Optional[str] = None) -> None:
    """Write and commit a file in a repository or worktree using the git CLI.

    Args:
        date: Optional raw git date (``"<epoch> +0000"``) for author and committer
    """
    repo = git.Repo(str(path))
    try:
        (Path(path) / filename).write_text(content)
        repo.git.add(filename)
        if date:
            with repo.git.custom_environment(GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date):
                repo.git.commit("-m", message)
        else:
            repo.git.commit("-m", message)
    finally:
        repo.close()


class ScriptedConfirmer:
    """Confirmer answering from a script; falls back to each prompt's default.

    ``confirm`` consumes booleans, ``choose`` consumes letters. Every prompt
    is recorded in ``prompts``.
    """

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.prompts: List[str] = []

    def confirm(self, message: str, default: bool = False) -> bool:
        self.prompts.append(message)
        if self.answers:
            return bool(self.answers.pop(0))
        return default

    def choose(self, message, choices, default):
        self.prompts.append(message)
        if self.answers:
            return self.answers.pop(0)
        return default


@dataclass
class FakeProcess:
    pid: int
    name: str
    cwd: Optional[str] = None
    command_line: str = ""
    open_files: List[str] = field(default_factory=list)
    alive: bool = True


class FakeInspector:
    """In-memory ProcessInspector."""

    def __init__(self, processes=None, listening: Optional[Dict[int, int]] = None):
        self.processes = {p.pid: p for p in (processes or [])}
        self.listening = dict(listening or {})
        self.terminated: List[int] = []

    def add(self, process: FakeProcess) -> FakeProcess:
        self.processes[process.pid] = process
        return process

    def list_pids(self):
        return [pid for pid, p in self.processes.items() if p.alive]

    def working_directory_of(self, pid):
        process = self.processes.get(pid)
        return process.cwd if process else None

    def open_files_under(self, path):
        return {
            pid
            for pid, p in self.processes.items()
            if p.alive and any(is_path_under(f, path) for f in p.open_files)
        }

    def command_line_of(self, pid):
        process = self.processes.get(pid)
        return process.command_line if process else ""

    def name_of(self, pid):
        process = self.processes.get(pid)
        return process.name if process else "?"

    def is_alive(self, pid):
        process = self.processes.get(pid)
        return bool(process and process.alive)

    def terminate(self, pid):
        self.terminated.append(pid)
        process = self.processes.get(pid)
        if process is None or not process.alive:
            return False
        process.alive = False
        return True

    def listening_pid(self, port):
        return self.listening.get(port)


@pytest.fixture
def confirmer():
    return ScriptedConfirmer()


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def make_keeper(repo_path, config, inspector):
    """Build a WorktreeKeeper for the test repository.

    Usage: ``make_keeper(answers=[True, False], cwd=some_path)``
    """
    def _make(answers=None, cwd=None, lock_factory=None, **overrides):
        cfg = Config.from_dict({**config.to_dict(), **overrides}) if overrides else config
        return WorktreeKeeper(
            cwd or repo_path,
            cfg,
            confirmer=ScriptedConfirmer(answers),
            inspector=inspector,
            lock_factory=lock_factory,
        )
    return _make


@pytest.fixture
def keeper(make_keeper):
    return make_keeper()


@pytest.fixture
def origin(git_repo, temp_dir):
    """Bare repository registered as ``origin``, with main pushed and tracked."""
    origin_path = temp_dir / "origin.git"
    bare = git.Repo.init(origin_path, bare=True)
    git_repo.create_remote("origin", str(origin_path))
    git_repo.git.push("-u", "origin", "main")
    yield bare
    bare.close()


def push_from_clone(origin_repo, clone_path, filename: str, content: str, message: str) -> None:
    """Advance origin's main from a separate clone, leaving the local main behind."""
    clone = git.Repo.clone_from(origin_repo.git_dir, clone_path, branch="main")
    try:
        clone.config_writer().set_value("user", "name", "Other User").release()
        clone.config_writer().set_value("user", "email", "other@example.com").release()
        clone.config_writer().set_value("commit", "gpgsign", "false").release()
        commit_file(clone_path, filename, content, message)
        clone.git.push("origin", "main")
    finally:
        clone.close()
