"""Process models used by the process reaper."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ProcessCandidate:
    """A process found working inside a worktree."""

    pid: int
    name: str
    command_line: str
    is_agent_session: bool = False

    def describe(self, width: int = 80) -> str:
        """Short one-line description for prompts."""
        text = self.command_line or self.name
        return text[:width]


@dataclass
class ReapResult:
    """Outcome of stopping the processes of a worktree."""

    killed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    @property
    def handled(self) -> int:
        return len(self.killed) + len(self.skipped)
