"""Tests for the merge lock"""
import os
import time

import pytest

from git_worktree_keeper.exceptions import LockTimeoutError
from git_worktree_keeper.services.lock import DirectoryLock, is_process_alive


class FakeSleep:
    """Records sleeps instead of blocking."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def lock_path(temp_dir):
    return temp_dir / ".worktrees" / ".merge.lock"


class TestDirectoryLock:
    """Test mutual exclusion through lock directories."""

    def test_acquire_writes_pid(self, lock_path):
        lock = DirectoryLock(lock_path)
        lock.acquire()

        assert lock.held is True
        assert lock.holder_pid() == os.getpid()

        lock.release()
        assert not lock_path.exists()
        assert lock.held is False

    def test_second_acquirer_times_out(self, lock_path):
        """A lock held by a live process is never taken over."""
        first = DirectoryLock(lock_path)
        first.acquire()

        sleep = FakeSleep()
        second = DirectoryLock(lock_path, is_alive=lambda pid: True, sleep=sleep)
        with pytest.raises(LockTimeoutError) as exc_info:
            second.acquire(max_wait_seconds=1)

        assert exc_info.value.holder_pid == os.getpid()
        assert exc_info.value.waited == 1
        assert sleep.calls == [1]
        assert first.holder_pid() == os.getpid()
        first.release()

    def test_times_out_after_max_wait_polls(self, lock_path):
        lock_path.mkdir(parents=True)
        (lock_path / "pid").write_text("4242\n")

        sleep = FakeSleep()
        lock = DirectoryLock(lock_path, is_alive=lambda pid: True, sleep=sleep)
        with pytest.raises(LockTimeoutError):
            lock.acquire(max_wait_seconds=3)
        assert len(sleep.calls) == 3

    def test_dead_holder_reclaimed_without_waiting(self, lock_path, capsys):
        lock_path.mkdir(parents=True)
        (lock_path / "pid").write_text("4242\n")

        sleep = FakeSleep()
        lock = DirectoryLock(lock_path, is_alive=lambda pid: False, sleep=sleep)
        lock.acquire(max_wait_seconds=5)

        assert sleep.calls == []
        assert lock.holder_pid() == os.getpid()
        assert "Removing stale lock (PID 4242 no longer running)" in capsys.readouterr().out
        lock.release()

    def test_concurrent_reclaim_keeps_single_holder(self, lock_path):
        """A reclaimer that lost the race must not remove the winner's new lock."""
        lock_path.mkdir(parents=True)
        (lock_path / "pid").write_text("999999\n")

        first = DirectoryLock(lock_path, is_alive=lambda pid: False, sleep=FakeSleep())

        def second_is_alive(pid):
            if pid == 999999:
                # The other caller reclaims and takes the lock between our
                # liveness check and our reclaim
                if not first.held:
                    first.acquire(0)
                return False
            return True

        second = DirectoryLock(lock_path, is_alive=second_is_alive, sleep=FakeSleep())
        with pytest.raises(LockTimeoutError) as exc_info:
            second.acquire(0)

        assert first.held is True
        assert second.held is False
        assert exc_info.value.holder_pid == os.getpid()
        assert first.holder_pid() == os.getpid()
        assert [p.name for p in lock_path.parent.iterdir()] == [".merge.lock"]
        first.release()

    def test_missing_pid_treated_as_held_while_fresh(self, lock_path):
        lock_path.mkdir(parents=True)

        lock = DirectoryLock(lock_path, sleep=FakeSleep())
        with pytest.raises(LockTimeoutError) as exc_info:
            lock.acquire(max_wait_seconds=1)
        assert exc_info.value.holder_pid is None

    def test_missing_pid_reclaimed_when_old(self, lock_path):
        lock_path.mkdir(parents=True)
        past = time.time() - 60
        os.utime(lock_path, (past, past))

        sleep = FakeSleep()
        lock = DirectoryLock(lock_path, sleep=sleep)
        lock.acquire(max_wait_seconds=1)

        assert sleep.calls == []
        assert lock.holder_pid() == os.getpid()
        lock.release()

    def test_context_manager_releases_on_error(self, lock_path):
        with pytest.raises(RuntimeError):
            with DirectoryLock(lock_path):
                assert lock_path.is_dir()
                raise RuntimeError("boom")
        assert not lock_path.exists()

    def test_release_is_unconditional(self, lock_path):
        lock_path.mkdir(parents=True)
        (lock_path / "pid").write_text("4242\n")

        DirectoryLock(lock_path).release()
        assert not lock_path.exists()


class TestIsProcessAlive:
    """Test PID liveness checks."""

    def test_own_pid_is_alive(self):
        assert is_process_alive(os.getpid()) is True

    def test_invalid_pid(self):
        assert is_process_alive(-1) is False
