"""Version of git-worktree-keeper."""

from importlib.metadata import PackageNotFoundError, version

try:
    # Written by setuptools_scm at build time
    from git_worktree_keeper._version import __version__
except ImportError:
    try:
        __version__ = version("git-worktree-keeper")
    except PackageNotFoundError:
        __version__ = "0.0.0+unknown"
