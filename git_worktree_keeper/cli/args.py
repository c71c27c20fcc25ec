"""Command-line argument parsing for git-worktree-keeper."""

import argparse
import sys
from typing import List, Optional

from git_worktree_keeper.__version__ import __version__

COMMANDS = {"create", "list", "ls", "merge", "rebase", "cleanup", "rm", "done", "prune", "path", "help"}

# Global options that consume the following argument
VALUE_OPTIONS = {"--stale-days", "--lock-wait", "--base-default"}


def normalize_argv(argv: List[str]) -> List[str]:
    """Turn the create shorthands into an explicit ``create`` command.

    ``wt <name> [base]`` and ``wt -- <name> [base]`` both mean
    ``wt create <name> [base]``; the latter allows names that collide
    with a command.
    """
    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            args[i] = "create"
            return args
        if arg in VALUE_OPTIONS:
            i += 2
            continue
        if arg.startswith("-"):
            i += 1
            continue
        if arg not in COMMANDS:
            args.insert(i, "create")
        return args
    return args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wt",
        description="Isolated git worktrees for concurrent coding sessions",
        epilog="Worktrees live in .worktrees/<name> of the main repository, "
        "each on a branch of the same name.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--version", action="version", version=f"git-worktree-keeper {__version__}")
    parser.add_argument(
        "--stale-days", type=int, default=7, metavar="N",
        help="Days without a commit until a worktree is stale (default: 7)",
    )
    parser.add_argument(
        "--lock-wait", type=int, default=10, metavar="N",
        help="Seconds to wait for the merge lock (default: 10)",
    )
    parser.add_argument(
        "--base-default", default="main", metavar="BRANCH",
        help="Base branch assumed for worktrees without metadata (default: main)",
    )
    parser.add_argument(
        "--no-bootstrap", action="store_true",
        help="Skip the project install step after creating a worktree",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = subparsers.add_parser("create", help="Create a worktree (also: wt <name> [base])")
    create.add_argument("name", help="Worktree and branch name")
    create.add_argument("base", nargs="?", help="Base branch (default: current branch)")
    create.set_defaults(operation="create")

    listing = subparsers.add_parser("list", aliases=["ls"], help="List worktrees with status")
    listing.set_defaults(operation="list")

    merge = subparsers.add_parser("merge", help="Merge a worktree into its base branch")
    merge.add_argument("name", nargs="?", help="Worktree name (default: current worktree)")
    merge.set_defaults(operation="merge")

    rebase = subparsers.add_parser("rebase", help="Rebase a worktree onto its latest base branch")
    rebase.add_argument("name", nargs="?", help="Worktree name (default: current worktree)")
    rebase.set_defaults(operation="rebase")

    cleanup = subparsers.add_parser("cleanup", aliases=["rm"], help="Remove a worktree")
    cleanup.add_argument("name", nargs="?", help="Worktree name (default: current worktree)")
    cleanup.set_defaults(operation="cleanup")

    done = subparsers.add_parser(
        "done", help="Post-merge: remove worktree and branch, checkout base and pull"
    )
    done.add_argument("name", nargs="?", help="Worktree name (default: current worktree)")
    done.set_defaults(operation="done")

    prune = subparsers.add_parser("prune", help="Batch-remove worktrees")
    mode = prune.add_mutually_exclusive_group()
    mode.add_argument(
        "--stale", dest="mode", action="store_const", const="stale",
        help="Only offer stale and broken worktrees",
    )
    mode.add_argument(
        "--all", dest="mode", action="store_const", const="all",
        help="Remove every worktree without asking",
    )
    prune.set_defaults(operation="prune", mode="interactive")

    path = subparsers.add_parser("path", help="Print the directory of a worktree")
    path.add_argument("name", help="Worktree name")
    path.set_defaults(operation="path")

    help_parser = subparsers.add_parser("help", help="Show this help")
    help_parser.set_defaults(operation="help")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    if argv is None:
        argv = sys.argv[1:]
    return build_parser().parse_args(normalize_argv(argv))
