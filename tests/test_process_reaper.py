"""Tests for process discovery and termination"""
import json
import os
from unittest.mock import Mock

import pytest

from conftest import FakeInspector, FakeProcess, ScriptedConfirmer
from git_worktree_keeper.exceptions import ProcessTerminationDeclinedError
from git_worktree_keeper.services.dev_servers import DevServerStopper, read_ports
from git_worktree_keeper.services.process_reaper import ProcessReaper, is_path_under


@pytest.fixture
def worktree(temp_dir):
    path = temp_dir / ".worktrees" / "feat-x"
    path.mkdir(parents=True)
    return path


def make_reaper(inspector, answers=None, **kwargs):
    kwargs.setdefault("protected_pids", set())
    return ProcessReaper(inspector, ScriptedConfirmer(answers), **kwargs)


class TestIsPathUnder:
    """Test path containment."""

    def test_same_path(self, worktree):
        assert is_path_under(worktree, worktree) is True

    def test_child(self, worktree):
        assert is_path_under(worktree / "src" / "app.py", worktree) is True

    def test_sibling_with_common_prefix(self, worktree):
        assert is_path_under(str(worktree) + "-2", worktree) is False


class TestFindCandidates:
    """Test candidate discovery."""

    def test_by_cwd_and_open_files(self, worktree, temp_dir):
        inspector = FakeInspector([
            FakeProcess(10, "vite", cwd=str(worktree / "web")),
            FakeProcess(11, "tail", cwd=str(temp_dir), open_files=[str(worktree / "log.txt")]),
            FakeProcess(12, "bash", cwd=str(temp_dir)),
        ])
        pids = [c.pid for c in make_reaper(inspector).find_candidates(worktree)]
        assert pids == [10, 11]

    def test_deduplicated(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "vim", cwd=str(worktree), open_files=[str(worktree / "a.py")]),
        ])
        assert [c.pid for c in make_reaper(inspector).find_candidates(worktree)] == [10]

    def test_protected_pids_excluded(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "wt", cwd=str(worktree)),
            FakeProcess(11, "zsh", cwd=str(worktree), open_files=[str(worktree / "x")]),
        ])
        reaper = make_reaper(inspector, protected_pids={10, 11})
        assert reaper.find_candidates(worktree) == []

    def test_own_process_protected_by_default(self, worktree):
        inspector = FakeInspector([FakeProcess(os.getpid(), "python", cwd=str(worktree))])
        reaper = ProcessReaper(inspector, ScriptedConfirmer())
        assert reaper.find_candidates(worktree) == []

    def test_agent_sessions_flagged(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "node", cwd=str(worktree), command_line="node /usr/bin/Claude --resume"),
            FakeProcess(11, "node", cwd=str(worktree), command_line="node server.js"),
        ])
        flags = {c.pid: c.is_agent_session for c in make_reaper(inspector).find_candidates(worktree)}
        assert flags == {10: True, 11: False}


class TestFindAndStop:
    """Test the termination protocol."""

    def test_forced_kills_everything_without_prompts(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "vite", cwd=str(worktree)),
            FakeProcess(11, "claude", cwd=str(worktree)),
        ])
        reaper = make_reaper(inspector)

        result = reaper.find_and_stop(worktree, "feat-x", forced=True)

        assert sorted(result.killed) == [10, 11]
        assert reaper.confirmer.prompts == []

    def test_declined_ordinary_process_is_skipped(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "vite", cwd=str(worktree)),
            FakeProcess(11, "tsc", cwd=str(worktree)),
        ])
        reaper = make_reaper(inspector, answers=[False, True])

        result = reaper.find_and_stop(worktree, "feat-x", forced=False)

        assert result.skipped == [10]
        assert result.killed == [11]
        assert inspector.terminated == [11]
        assert reaper.confirmer.prompts[0].strip() == "Kill vite (PID 10)?"

    def test_declined_agents_raise_before_any_kill(self, worktree):
        inspector = FakeInspector([
            FakeProcess(10, "vite", cwd=str(worktree)),
            FakeProcess(11, "claude", cwd=str(worktree)),
        ])
        reaper = make_reaper(inspector, answers=[False])

        with pytest.raises(ProcessTerminationDeclinedError) as exc_info:
            reaper.find_and_stop(worktree, "feat-x", forced=False)

        assert exc_info.value.pids == [11]
        assert inspector.terminated == []

    def test_confirmed_agents_killed(self, worktree):
        inspector = FakeInspector([FakeProcess(11, "claude", cwd=str(worktree))])
        reaper = make_reaper(inspector, answers=[True])

        result = reaper.find_and_stop(worktree, "feat-x", forced=False)

        assert result.killed == [11]
        assert reaper.confirmer.prompts == ["Kill agent sessions? They may have in-flight work."]

    def test_already_exited_counts_as_handled(self, worktree):
        inspector = FakeInspector([FakeProcess(10, "vite", cwd=str(worktree))])
        inspector.terminate = Mock(return_value=False)
        reaper = make_reaper(inspector)

        result = reaper.find_and_stop(worktree, "feat-x", forced=True)
        assert result.handled == 1

    def test_nothing_running(self, worktree):
        result = make_reaper(FakeInspector()).find_and_stop(worktree, "feat-x", forced=False)
        assert result.handled == 0

    def test_dev_server_stopper_runs_when_not_forced(self, worktree):
        stopper = Mock()
        reaper = make_reaper(FakeInspector(), dev_server_stopper=stopper)

        reaper.find_and_stop(worktree, "feat-x", forced=False)
        stopper.stop.assert_called_once_with(worktree, "feat-x")

        stopper.reset_mock()
        reaper.find_and_stop(worktree, "feat-x", forced=True)
        stopper.stop.assert_not_called()

    def test_dev_server_stopper_failure_ignored(self, worktree):
        stopper = Mock()
        stopper.stop.side_effect = RuntimeError("port lookup failed")
        reaper = make_reaper(FakeInspector(), dev_server_stopper=stopper)

        assert reaper.find_and_stop(worktree, "feat-x", forced=False).handled == 0


class TestDevServers:
    """Test stopping dev servers through .ports.json."""

    def test_read_ports(self, worktree):
        (worktree / ".ports.json").write_text(json.dumps({"web": 3001, "api": "8001", "bad": "x"}))
        assert read_ports(worktree) == {"web": 3001, "api": 8001}

    def test_read_ports_missing_or_invalid(self, worktree):
        assert read_ports(worktree) == {}
        (worktree / ".ports.json").write_text("{oops")
        assert read_ports(worktree) == {}

    def test_stop_confirmed_servers(self, worktree):
        (worktree / ".ports.json").write_text(json.dumps({"web": 3001, "api": 8001}))
        inspector = FakeInspector(
            [FakeProcess(20, "node"), FakeProcess(21, "uvicorn")],
            listening={3001: 20, 8001: 21},
        )
        confirmer = ScriptedConfirmer([True, False])

        killed = DevServerStopper(inspector, confirmer).stop(worktree, "feat-x")

        assert killed == 1
        assert inspector.terminated == [20]
        assert confirmer.prompts[0] == "Kill web (PID 20, port :3001)?"

    def test_stop_skips_ports_nobody_listens_on(self, worktree):
        (worktree / ".ports.json").write_text(json.dumps({"web": 3001}))
        confirmer = ScriptedConfirmer()

        assert DevServerStopper(FakeInspector(), confirmer).stop(worktree, "feat-x") == 0
        assert confirmer.prompts == []
