"""Worktree data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from git_worktree_keeper.constants import TIMESTAMP_FORMAT

DEFAULT_BASE_BRANCH = "main"


class WorktreeStatus(Enum):
    """Status of a managed worktree."""
    ACTIVE = "active"
    STALE = "stale"
    BROKEN = "broken"
    UNKNOWN = "unknown"


class WorktreeRecord(BaseModel):
    """Metadata sidecar persisted in every managed worktree.

    Older or partial records decode with defaults: a missing ``status`` is
    ``active``, a missing ``base_branch`` is the default base branch, and a
    missing ``created`` stays ``None``. Unrecognized status strings decode to
    ``unknown`` instead of failing.
    """

    model_config = ConfigDict(extra="ignore")

    branch: str = Field(min_length=1)
    base_branch: str = DEFAULT_BASE_BRANCH
    created: Optional[datetime] = None
    main_repo: str = Field(min_length=1)
    status: WorktreeStatus = WorktreeStatus.ACTIVE

    @classmethod
    def new(cls, branch: str, base_branch: str, main_repo: str) -> "WorktreeRecord":
        """Create the initial record written when a worktree is created."""
        return cls(
            branch=branch,
            base_branch=base_branch,
            created=datetime.now(timezone.utc),
            main_repo=main_repo,
            status=WorktreeStatus.ACTIVE,
        )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value):
        if value is None:
            return WorktreeStatus.ACTIVE
        if isinstance(value, WorktreeStatus):
            return value
        try:
            return WorktreeStatus(str(value).strip().lower())
        except ValueError:
            return WorktreeStatus.UNKNOWN

    @field_validator("created")
    @classmethod
    def _normalize_created(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored with second precision, so normalize on the way in as well
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(microsecond=0)

    @field_serializer("created")
    def _serialize_created(self, value: Optional[datetime]) -> Optional[str]:
        return value.strftime(TIMESTAMP_FORMAT) if value else None

    @field_serializer("status")
    def _serialize_status(self, value: WorktreeStatus) -> str:
        return value.value


@dataclass
class WorktreeEntry:
    """A subdirectory of the worktrees directory as seen at read time."""

    name: str
    path: str
    record: Optional[WorktreeRecord]
    has_git_link: bool  # .git file or directory present
    last_commit: str = "-"  # Relative date of the last commit
    age_days: Optional[int] = None
    status: WorktreeStatus = WorktreeStatus.UNKNOWN

    @property
    def branch(self) -> str:
        return self.record.branch if self.record else "-"

    @property
    def base_branch(self) -> str:
        return self.record.base_branch if self.record else "-"

    @property
    def is_healthy(self) -> bool:
        """Healthy means both a valid record and a git linkage are present."""
        return self.record is not None and self.has_git_link


def derive_status(
    record: Optional[WorktreeRecord],
    has_git_link: bool,
    age_days: Optional[int],
    stale_days: int,
) -> WorktreeStatus:
    """Compute the live status of a worktree.

    Structural problems win over age: a directory lacking either its record
    or its git linkage is broken. Otherwise a last commit older than
    ``stale_days`` makes it stale; else the persisted status applies.
    """
    if record is None or not has_git_link:
        return WorktreeStatus.BROKEN
    if age_days is not None and age_days > stale_days:
        return WorktreeStatus.STALE
    return record.status


@dataclass
class WorktreeInfo:
    """A worktree as registered with git, whether or not wt created it."""

    path: str
    branch_name: str  # Empty when detached
    commit_sha: str
    is_main: bool  # The main working tree
    is_orphaned: bool  # Registered, but the directory is gone
    is_managed: bool = False  # Lives under the worktrees dir

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:7] if self.commit_sha else "-"

    @property
    def notes(self) -> str:
        """Why this registry entry deserves attention, comma separated."""
        notes = []
        if self.is_main:
            notes.append("main")
        elif not self.is_managed:
            notes.append("not managed by wt")
        if self.is_orphaned:
            notes.append("orphaned (run wt prune)")
        return ", ".join(notes)

    def __str__(self) -> str:
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch_name or '(detached)'} @ {self.path}{main_marker} [{status}]"
