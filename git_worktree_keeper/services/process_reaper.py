"""Discovery and termination of processes working inside a worktree."""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Set, Union

import psutil
from rich.console import Console
from rich.markup import escape

from git_worktree_keeper.exceptions import ProcessTerminationDeclinedError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.process import ProcessCandidate, ReapResult
from git_worktree_keeper.services.confirmer import Confirmer

console = Console()
logger = get_logger(__name__)


def is_path_under(path: Union[str, Path], root: Union[str, Path]) -> bool:
    """True if ``path`` is ``root`` or lies below it (after resolving symlinks)."""
    child = os.path.realpath(str(path))
    parent = os.path.realpath(str(root))
    return child == parent or child.startswith(parent.rstrip(os.sep) + os.sep)


class ProcessInspector(Protocol):
    """Read and signal OS processes."""

    def list_pids(self) -> List[int]:
        ...

    def working_directory_of(self, pid: int) -> Optional[str]:
        ...

    def open_files_under(self, path: str) -> Set[int]:
        ...

    def command_line_of(self, pid: int) -> str:
        ...

    def name_of(self, pid: int) -> str:
        ...

    def is_alive(self, pid: int) -> bool:
        ...

    def terminate(self, pid: int) -> bool:
        ...

    def listening_pid(self, port: int) -> Optional[int]:
        ...


class PsutilInspector:
    """ProcessInspector backed by psutil.

    Processes that vanish or deny access while being inspected are skipped.
    """

    def list_pids(self) -> List[int]:
        return psutil.pids()

    def working_directory_of(self, pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).cwd()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return None

    def open_files_under(self, path: str) -> Set[int]:
        pids: Set[int] = set()
        for proc in psutil.process_iter():
            try:
                files = proc.open_files()
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            if any(is_path_under(f.path, path) for f in files):
                pids.add(proc.pid)
        return pids

    def command_line_of(self, pid: int) -> str:
        try:
            return " ".join(psutil.Process(pid).cmdline())
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return ""

    def name_of(self, pid: int) -> str:
        try:
            return psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return "?"

    def is_alive(self, pid: int) -> bool:
        return psutil.pid_exists(pid)

    def terminate(self, pid: int) -> bool:
        """Send SIGTERM. False if the process had already exited."""
        try:
            psutil.Process(pid).terminate()
            return True
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            logger.warning(f"Permission denied terminating PID {pid}")
            return False

    def listening_pid(self, port: int) -> Optional[int]:
        try:
            connections = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            logger.debug("Listing sockets requires elevated privileges")
            return None
        for conn in connections:
            if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port == port:
                return conn.pid
        return None


class ProcessReaper:
    """Stops the processes of a worktree before it is removed.

    Ordinary processes are killed outright when forced, otherwise offered one
    at a time. Agent sessions are never killed without confirmation unless
    forced; refusing that confirmation raises
    ``ProcessTerminationDeclinedError`` before anything has been killed.
    """

    def __init__(
        self,
        inspector: ProcessInspector,
        confirmer: Confirmer,
        agent_signatures: Iterable[str] = ("claude",),
        protected_pids: Optional[Iterable[int]] = None,
        dev_server_stopper=None,
    ):
        self.inspector = inspector
        self.confirmer = confirmer
        self.agent_signatures = [s.lower() for s in agent_signatures]
        if protected_pids is None:
            # This process and the shell that launched it
            protected_pids = {os.getpid(), os.getppid()}
        self.protected_pids = set(protected_pids)
        self.dev_server_stopper = dev_server_stopper

    def is_agent_session(self, name: str, command_line: str) -> bool:
        haystack = f"{name} {command_line}".lower()
        return any(sig in haystack for sig in self.agent_signatures)

    def find_candidates(self, worktree_path: Union[str, Path]) -> List[ProcessCandidate]:
        """Processes whose cwd or open files lie under the worktree."""
        root = os.path.realpath(str(worktree_path))

        pids: Set[int] = set()
        for pid in self.inspector.list_pids():
            if pid in self.protected_pids:
                continue
            cwd = self.inspector.working_directory_of(pid)
            if cwd and is_path_under(cwd, root):
                pids.add(pid)

        # Processes that cd'd elsewhere after opening files
        pids |= self.inspector.open_files_under(root)
        pids -= self.protected_pids

        candidates = []
        for pid in sorted(pids):
            if not self.inspector.is_alive(pid):
                continue
            name = self.inspector.name_of(pid)
            command_line = self.inspector.command_line_of(pid)
            candidates.append(
                ProcessCandidate(
                    pid=pid,
                    name=name,
                    command_line=command_line,
                    is_agent_session=self.is_agent_session(name, command_line),
                )
            )
        logger.debug(f"Found {len(candidates)} processes in {root}")
        return candidates

    def _kill(self, candidate: ProcessCandidate, result: ReapResult, label: str = "") -> None:
        if self.inspector.terminate(candidate.pid):
            console.print(f"  Killed {label or candidate.name} (PID {candidate.pid})")
        else:
            console.print(f"  PID {candidate.pid} already exited.")
        result.killed.append(candidate.pid)

    def find_and_stop(self, worktree_path: Union[str, Path], name: str, forced: bool) -> ReapResult:
        """Stop every process working inside ``worktree_path``.

        Raises:
            ProcessTerminationDeclinedError: agent sessions are running and the
                operator declined to kill them
        """
        if not forced and self.dev_server_stopper is not None:
            try:
                self.dev_server_stopper.stop(worktree_path, name)
            except Exception as e:
                logger.debug(f"Dev server stop failed for {name}: {e}")

        result = ReapResult()
        candidates = self.find_candidates(worktree_path)
        if not candidates:
            return result

        agents = [c for c in candidates if c.is_agent_session]
        others = [c for c in candidates if not c.is_agent_session]

        if agents and not forced:
            console.print()
            console.print(f"[yellow]⚠  Active agent sessions in worktree '{name}':[/yellow]")
            for candidate in agents:
                console.print(f"  PID {candidate.pid}: {escape(candidate.describe())}")
            console.print()
            if not self.confirmer.confirm(
                "Kill agent sessions? They may have in-flight work.", default=False
            ):
                raise ProcessTerminationDeclinedError(name, [c.pid for c in agents])

        for candidate in others:
            if forced or self.confirmer.confirm(
                f"  Kill {candidate.name} (PID {candidate.pid})?", default=False
            ):
                self._kill(candidate, result)
            else:
                console.print("  Skipped.")
                result.skipped.append(candidate.pid)

        for candidate in agents:
            self._kill(candidate, result, label="agent session")

        return result
