"""Status formatting utilities."""

from git_worktree_keeper.constants import STATUS_COLORS
from git_worktree_keeper.models.worktree import WorktreeStatus


def format_status(status: WorktreeStatus) -> str:
    """
    Format worktree status as colored rich markup.

    Args:
        status: Derived worktree status

    Returns:
        Markup such as ``[green]active[/green]``
    """
    color = STATUS_COLORS.get(status.value)
    if not color:
        return status.value
    return f"[{color}]{status.value}[/{color}]"
