"""Services used by the worktree lifecycle manager."""

from .confirmer import Confirmer, ConsoleConfirmer
from .display_service import DisplayService
from .lock import DirectoryLock, Lock
from .metadata_store import MetadataStore
from .process_reaper import ProcessInspector, ProcessReaper, PsutilInspector

__all__ = [
    "Confirmer",
    "ConsoleConfirmer",
    "DisplayService",
    "DirectoryLock",
    "Lock",
    "MetadataStore",
    "ProcessInspector",
    "ProcessReaper",
    "PsutilInspector",
]
