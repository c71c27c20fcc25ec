"""Logging configuration for git-worktree-keeper"""
import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_PREFIX = 'git_worktree_keeper.'
LOG_DIR = Path.home() / '.git-worktree-keeper'
LOG_FILENAME = 'git-worktree-keeper.log'

DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '[%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LevelColorFormatter(logging.Formatter):
    """Colors the level name when stderr is a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color and sys.stderr.isatty():
            # Work on a copy so the file handler still sees the plain name
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


class GitCommandFilter(logging.Filter):
    """Drops GitPython's per-command chatter from a handler."""

    def filter(self, record):
        return not (record.name == 'git' or record.name.startswith('git.'))


def level_for(verbose: bool, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def setup_logging(verbose: bool = False, debug: bool = False,
                  log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Configure logging for the application.

    The console always goes to stderr so that stdout stays clean for
    ``wt path``. With ``debug`` every record, including each git command
    GitPython runs, is also written to a log file that is replaced on
    every run.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages and write the log file
        log_dir: Where to put the log file (defaults to ~/.git-worktree-keeper)

    Returns:
        Path of the log file, or None when not in debug mode
    """
    level = level_for(verbose, debug)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_file = None
    if debug:
        log_dir = Path(log_dir) if log_dir else LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / LOG_FILENAME
        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=DEBUG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.addFilter(GitCommandFilter())
        console_handler.setFormatter(LevelColorFormatter(fmt=DEBUG_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(LevelColorFormatter(fmt=CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    # GitPython logs every invocation at DEBUG under "git"
    logging.getLogger('git').setLevel(logging.DEBUG if debug else logging.WARNING)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance
    """
    # "services." stays so services.git.* never nests under GitPython's "git"
    if name.startswith(PACKAGE_PREFIX):
        name = name[len(PACKAGE_PREFIX):]
    return logging.getLogger(name)
