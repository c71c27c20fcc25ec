"""Stopping dev servers through the port allocation sidecar of a worktree.

The port allocator writes ``.ports.json`` (``{"service": port}``) into each
worktree it launches servers for. Stopping those servers by port is gentler
than discovering them by working directory, so the reaper asks here first.
"""

import json
from pathlib import Path
from typing import Dict, Union

from rich.console import Console

from git_worktree_keeper.constants import PORTS_FILENAME
from git_worktree_keeper.logging_config import get_logger

console = Console()
logger = get_logger(__name__)


def read_ports(worktree_path: Union[str, Path]) -> Dict[str, int]:
    """Allocated ports of a worktree; empty when none are recorded."""
    ports_file = Path(worktree_path) / PORTS_FILENAME
    try:
        data = json.loads(ports_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Ignoring unreadable {ports_file}: {e}")
        return {}
    if not isinstance(data, dict):
        return {}

    ports = {}
    for service, port in data.items():
        try:
            ports[str(service)] = int(port)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric port for {service}: {port!r}")
    return ports


class DevServerStopper:
    """Offers to kill the processes listening on a worktree's allocated ports."""

    def __init__(self, inspector, confirmer):
        self.inspector = inspector
        self.confirmer = confirmer

    def stop(self, worktree_path: Union[str, Path], name: str) -> int:
        """Returns the number of servers killed. Never raises for missing data."""
        killed = 0
        for service, port in read_ports(worktree_path).items():
            pid = self.inspector.listening_pid(port)
            if pid is None:
                continue
            if not self.confirmer.confirm(f"Kill {service} (PID {pid}, port :{port})?", default=False):
                continue
            if self.inspector.terminate(pid):
                console.print(f"  Killed {service} (PID {pid}).")
                killed += 1
            else:
                console.print(f"  Failed to kill {service} (PID {pid}).")
        if killed:
            logger.info(f"Stopped {killed} dev server(s) for {name}")
        return killed
