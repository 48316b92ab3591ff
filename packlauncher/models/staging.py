"""
Staging checkpoint models.

The checkpoint (meta.json) is written at the root of a staging directory once
all downloads are done. The downloads themselves sit in its files/ folder,
apart from the checkpoint and any scratch folders. The checkpoint is the only
thing apply needs, so an apply can be retried from the staging directory alone.
"""

from pathlib import Path
from typing import Any, Optional

import msgspec

from packlauncher.utils.constants import STAGING_META_FILENAME, Category
from packlauncher.utils.exception import StagingError


class FileMeta(msgspec.Struct, rename="camel"):
    """A file placed into the staging area."""

    name: str
    category: Category
    # Relative to the staging directory
    tmp_name: str
    resolved_url: str
    installer_args: list[str] = msgspec.field(default_factory=list)
    original: dict[str, Any] = msgspec.field(default_factory=dict)
    sha256: Optional[str] = None


class StagingCheckpoint(msgspec.Struct, rename="camel"):
    manifest_url: str
    version_id: str
    files_meta: list[FileMeta] = msgspec.field(default_factory=list)
    missing_installers: list[str] = msgspec.field(default_factory=list)
    missing_critical: list[str] = msgspec.field(default_factory=list)
    selected_installer_name: Optional[str] = None


def checkpoint_path(staging_dir: Path) -> Path:
    return staging_dir / STAGING_META_FILENAME


def write_checkpoint(staging_dir: Path, checkpoint: StagingCheckpoint) -> Path:
    """
    Persist the checkpoint into the staging directory.

    :raises StagingError: if the file cannot be written
    """
    path = checkpoint_path(staging_dir)
    try:
        path.write_bytes(msgspec.json.format(msgspec.json.encode(checkpoint), indent=2))
    except OSError as e:
        raise StagingError(f"Failed to write staging checkpoint {path}: {e}") from e
    return path


def read_checkpoint(staging_dir: Path) -> StagingCheckpoint:
    """
    Load the checkpoint of a staging directory.

    :raises StagingError: if it is missing or malformed
    """
    path = checkpoint_path(staging_dir)
    try:
        return msgspec.json.decode(path.read_bytes(), type=StagingCheckpoint)
    except FileNotFoundError as e:
        raise StagingError(f"No staging checkpoint at {path}") from e
    except (OSError, msgspec.DecodeError) as e:
        raise StagingError(f"Unreadable staging checkpoint {path}: {e}") from e
