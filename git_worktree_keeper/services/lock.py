"""Directory-based advisory lock guarding merges into a shared base branch."""

import os
import shutil
import time
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

import psutil
from rich.console import Console

from git_worktree_keeper.constants import LOCK_PID_FILENAME, LOCK_PID_GRACE_SECONDS
from git_worktree_keeper.exceptions import LockTimeoutError
from git_worktree_keeper.logging_config import get_logger

console = Console()
logger = get_logger(__name__)


def is_process_alive(pid: int) -> bool:
    """Check if a process is alive by PID."""
    try:
        return psutil.pid_exists(pid)
    except (ValueError, OverflowError):
        return False


class Lock(Protocol):
    """Mutual exclusion across independent invocations."""

    def acquire(self, max_wait_seconds: int = 10) -> None:
        ...

    def release(self) -> None:
        ...

    def __enter__(self) -> "Lock":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


class DirectoryLock:
    """Lock whose existence is a directory holding the holder's pid.

    ``os.mkdir`` either creates the directory or fails, so creation is the
    mutex. A lock whose recorded holder is gone is reclaimed immediately.

    Args:
        lock_path: Directory used as the lock
        is_alive: Liveness check for the recorded holder pid
        sleep: Called between polls, once per second of waiting
    """

    def __init__(
        self,
        lock_path: Union[str, Path],
        is_alive: Callable[[int], bool] = is_process_alive,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.lock_path = Path(lock_path)
        self.is_alive = is_alive
        self.sleep = sleep
        self.held = False

    @property
    def pid_file(self) -> Path:
        return self.lock_path / LOCK_PID_FILENAME

    def holder_pid(self, lock_dir: Optional[Path] = None) -> Optional[int]:
        """PID recorded in the lock, or None if missing or unreadable."""
        pid_file = (lock_dir or self.lock_path) / LOCK_PID_FILENAME
        try:
            return int(pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _is_abandoned(self, pid: Optional[int], lock_dir: Optional[Path] = None) -> bool:
        if pid is not None:
            return not self.is_alive(pid)
        # No pid yet: the holder may be between mkdir and writing it
        try:
            age = time.time() - (lock_dir or self.lock_path).stat().st_mtime
        except FileNotFoundError:
            return False
        return age > LOCK_PID_GRACE_SECONDS

    def _reclaim(self, dead_pid: Optional[int]) -> bool:
        """Take an abandoned lock out of the way.

        The lock is renamed aside before anything is deleted, so a lock that
        another caller reclaimed and re-acquired in the meantime is noticed
        (its pid differs from ``dead_pid``) and put back instead of removed.

        Returns:
            True if the abandoned lock was removed
        """
        aside = self.lock_path.with_name(f"{self.lock_path.name}.stale.{os.getpid()}")
        shutil.rmtree(aside, ignore_errors=True)
        try:
            os.rename(self.lock_path, aside)
        except FileNotFoundError:
            # Already reclaimed by someone else
            return False

        moved_pid = self.holder_pid(aside)
        if moved_pid != dead_pid or not self._is_abandoned(moved_pid, aside):
            try:
                os.rename(aside, self.lock_path)
            except OSError as e:
                logger.warning(f"Could not restore lock {self.lock_path} taken by PID {moved_pid}: {e}")
            return False

        shutil.rmtree(aside, ignore_errors=True)
        if dead_pid is not None:
            console.print(f"Removing stale lock (PID {dead_pid} no longer running)")
        else:
            console.print("Removing stale lock")
        return True

    def acquire(self, max_wait_seconds: int = 10) -> None:
        """Acquire the lock, polling once per second while a live holder has it.

        Raises:
            LockTimeoutError: the lock is still held after ``max_wait_seconds``
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        waited = 0

        while True:
            try:
                os.mkdir(self.lock_path)
            except FileExistsError:
                pass
            else:
                self.pid_file.write_text(f"{os.getpid()}\n")
                self.held = True
                logger.debug(f"Acquired lock {self.lock_path}")
                return

            pid = self.holder_pid()
            if self._is_abandoned(pid):
                self._reclaim(pid)
                # Either way the lock directory changed hands; look again
                pid = self.holder_pid()
                if pid is None or self._is_abandoned(pid):
                    continue

            if waited >= max_wait_seconds:
                raise LockTimeoutError(str(self.lock_path), pid, waited)
            if waited == 0:
                holder = f"PID {pid}" if pid is not None else "another process"
                console.print(f"Waiting for lock (held by {holder})...")
            self.sleep(1)
            waited += 1

    def release(self) -> None:
        """Remove the lock unconditionally."""
        shutil.rmtree(self.lock_path, ignore_errors=True)
        self.held = False
        logger.debug(f"Released lock {self.lock_path}")

    def __enter__(self) -> "DirectoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
