"""Operator confirmation, kept apart from the decisions that need it."""

from typing import Protocol, Sequence

from rich.console import Console
from rich.markup import escape

console = Console()


class Confirmer(Protocol):
    """Obtains yes/no and multiple-choice answers from the operator."""

    def confirm(self, message: str, default: bool = False) -> bool:
        ...

    def choose(self, message: str, choices: Sequence[str], default: str) -> str:
        ...


class ConsoleConfirmer:
    """Prompts on the terminal.

    End of input (non-interactive stdin) counts as the default answer, which
    for every destructive prompt is "no".
    """

    def __init__(self, console_: Console = console):
        self.console = console_

    def _ask(self, prompt: str) -> str:
        try:
            return self.console.input(escape(prompt)).strip().lower()
        except EOFError:
            self.console.print()
            return ""

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        response = self._ask(f"{message} {hint} ")
        if not response:
            return default
        return response in ("y", "yes")

    def choose(self, message: str, choices: Sequence[str], default: str) -> str:
        """Single-letter choice; anything unrecognized is the default."""
        hint = "/".join(c.upper() if c == default else c for c in choices)
        response = self._ask(f"{message} [{hint}] ")
        if response[:1] in choices:
            return response[:1]
        return default
