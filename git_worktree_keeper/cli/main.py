"""Command-line interface for git-worktree-keeper"""

import argparse
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from git_worktree_keeper.cli.args import build_parser, parse_args
from git_worktree_keeper.config import Config
from git_worktree_keeper.core import WorktreeKeeper
from git_worktree_keeper.exceptions import WorktreeKeeperError
from git_worktree_keeper.logging_config import setup_logging

console = Console()
err_console = Console(stderr=True)


def run_command(keeper: WorktreeKeeper, args: argparse.Namespace) -> int:
    """Dispatch a parsed command to the keeper. Returns the exit code."""
    operation = args.operation
    if operation == "create":
        keeper.create(args.name, args.base)
    elif operation == "list":
        keeper.list()
    elif operation == "merge":
        keeper.merge(args.name)
    elif operation == "rebase":
        keeper.rebase(args.name)
    elif operation == "cleanup":
        keeper.cleanup(args.name)
    elif operation == "done":
        keeper.done(args.name)
    elif operation == "prune":
        keeper.prune(args.mode)
    elif operation == "path":
        # Plain stdout so `cd "$(wt path name)"` works
        print(keeper.path(args.name))
    else:
        raise ValueError(f"Unknown command: {operation}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        operation = getattr(parsed_args, "operation", None)
        if operation in (None, "help"):
            build_parser().print_help()
            return 0 if operation == "help" else 1

        config = Config(
            stale_days=parsed_args.stale_days,
            lock_wait_seconds=parsed_args.lock_wait,
            default_base_branch=parsed_args.base_default,
            bootstrap=not parsed_args.no_bootstrap,
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
        )

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {escape(str(value))}")

        keeper = WorktreeKeeper(os.getcwd(), config)
        return run_command(keeper, parsed_args)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        if isinstance(e, WorktreeKeeperError):
            for line in getattr(e, "recovery", []):
                err_console.print(f"  {escape(line)}")
        if parsed_args is not None and parsed_args.debug:
            err_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
