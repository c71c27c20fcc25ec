"""Configuration handling for git-worktree-keeper"""

from dataclasses import dataclass, field, fields
from typing import List


@dataclass
class Config:
    """Configuration for git-worktree-keeper with validation."""

    # Layout inside the main repository
    worktrees_dir: str = ".worktrees"
    metadata_filename: str = ".worktree.json"
    lock_name: str = ".merge.lock"

    # Merge lock
    lock_wait_seconds: int = 10

    # Worktrees without a commit for longer than this are stale
    stale_days: int = 7

    # Branch defaults
    default_base_branch: str = "main"
    remote_name: str = "origin"

    # Instructional document that receives the isolation context
    context_document: str = "CLAUDE.md"

    # Command-line fragments identifying interactive agent sessions
    agent_signatures: List[str] = field(default_factory=lambda: ["claude"])

    # Shared configuration propagated into new worktrees
    shared_config_dir: str = ".claude"
    shared_config_links: List[str] = field(
        default_factory=lambda: ["hooks", "commands", "templates", "skills", "agents"]
    )
    shared_config_copies: List[str] = field(
        default_factory=lambda: ["settings.json", "settings.local.json"]
    )
    env_files: List[str] = field(
        default_factory=lambda: [".env", ".env.local", ".env.development", ".env.development.local"]
    )

    # Execution modes
    bootstrap: bool = True  # Run the project install step after create
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_stale_days()
        self._validate_lock_wait()
        self._validate_default_base_branch()
        self._validate_worktrees_dir()
        self._validate_agent_signatures()

    def _validate_stale_days(self):
        """Validate stale_days is positive."""
        if self.stale_days <= 0:
            raise ValueError(f"stale_days must be positive, got {self.stale_days}")

    def _validate_lock_wait(self):
        """Validate lock_wait_seconds is not negative."""
        if self.lock_wait_seconds < 0:
            raise ValueError(f"lock_wait_seconds cannot be negative, got {self.lock_wait_seconds}")

    def _validate_default_base_branch(self):
        """Validate default_base_branch is not empty."""
        if not self.default_base_branch or not self.default_base_branch.strip():
            raise ValueError("default_base_branch cannot be empty")
        self.default_base_branch = self.default_base_branch.strip()

    def _validate_worktrees_dir(self):
        """Validate worktrees_dir is a single relative directory name."""
        name = self.worktrees_dir.strip().rstrip("/")
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"worktrees_dir must be a directory name, got '{self.worktrees_dir}'")
        self.worktrees_dir = name

    def _validate_agent_signatures(self):
        """Validate agent_signatures is a non-empty list of strings."""
        if not isinstance(self.agent_signatures, list):
            raise ValueError("agent_signatures must be a list")
        self.agent_signatures = [s.strip().lower() for s in self.agent_signatures if s.strip()]
        if not self.agent_signatures:
            raise ValueError("agent_signatures cannot be empty")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
