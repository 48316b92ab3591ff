from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class InstallStatus(Enum):
    """Outcome of an install run."""

    APPLIED = "applied"  # Staged files were applied to the install directory
    MISSING_CRITICAL = "missing_critical"  # Halted before apply, staging kept
    CANCELLED = "cancelled"  # Caller discarded the staging session


@dataclass
class InstallResult:
    """
    Result of applying a staging session.

    backup_dir is always None for modpack installs; only self-update backs up.
    """

    backup_dir: Optional[Path] = None
    installer_path: Optional[Path] = None
    installer_args: list[str] = field(default_factory=list)
    missing_installers: list[str] = field(default_factory=list)
    applied: list[Path] = field(default_factory=list)


@dataclass
class InstallOutcome:
    status: InstallStatus
    staging_dir: Path
    missing_critical: list[str] = field(default_factory=list)
    missing_installers: list[str] = field(default_factory=list)
    result: Optional[InstallResult] = None

    @property
    def needs_decision(self) -> bool:
        """True when the caller must choose to proceed or cancel."""
        return self.status is InstallStatus.MISSING_CRITICAL
