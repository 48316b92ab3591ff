from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import msgspec


class RemoteVersionInfo(msgspec.Struct, omit_defaults=True):
    """Remote version descriptor (launcher-version.json)."""

    version: Optional[str] = None
    release_zip: Optional[str] = None
    date: Optional[str] = None
    published_at: Optional[str] = None

    @property
    def release_date(self) -> Optional[str]:
        return self.date or self.published_at


class AppVersionMarker(msgspec.Struct):
    """Application version marker (app_version.json)."""

    version: Optional[str] = None


class UpdateStatus(Enum):
    NO_UPDATE = "no_update"
    NO_PACKAGE = "no_package"
    DOWNLOAD_FAILED = "download_failed"
    EXTRACT_FAILED = "extract_failed"
    READY = "ready"  # Package downloaded and extracted, waiting for apply
    APPLIED = "applied"
    APPLY_FAILED = "apply_failed"


# Reason strings reported alongside a status
REASON_NO_REMOTE = "no_remote"
REASON_NO_REMOTE_VERSION = "no_remote_version"
REASON_NO_ZIP = "no_zip"
REASON_ZIP_DOWNLOAD_FAILED = "zip_download_failed"
REASON_ZIP_EXTRACT_FAILED = "zip_extract_failed"
REASON_DISABLED = "disabled"


@dataclass
class UpdateCheckResult:
    status: UpdateStatus
    local_version: Optional[str] = None
    remote_version: Optional[str] = None
    release_date: Optional[str] = None
    reason: Optional[str] = None
    package_url: Optional[str] = None
    tmp_base: Optional[Path] = None
    tmp_zip_path: Optional[Path] = None
    extracted_dir: Optional[Path] = None
    error: Optional[str] = None

    @property
    def update_available(self) -> bool:
        return self.status is not UpdateStatus.NO_UPDATE

    @property
    def ready_to_apply(self) -> bool:
        return self.status is UpdateStatus.READY and self.extracted_dir is not None


@dataclass
class ApplyUpdateResult:
    ok: bool
    backup_dir: Optional[Path] = None
    error: Optional[str] = None
    wrote_version_file: bool = False
    copied_files: int = 0
    removed_files: int = 0
