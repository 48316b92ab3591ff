"""ZIP archive helpers shared by modpack apply and self-update.

This module provides:
- extract_zip: validated extraction with progress reporting
- Utility functions: validate_zip_integrity, find_archive_root, list_tree
"""

import os
import shutil
import time
from pathlib import Path
from typing import Callable, Optional
from zipfile import BadZipFile, ZipFile

from loguru import logger

__all__ = [
    "extract_zip",
    "validate_zip_integrity",
    "find_archive_root",
    "list_tree",
    "BadZipFile",
]


def _safe_destination(target_path: Path, member_name: str) -> Path:
    """Resolve an archive member below target_path.

    Raises:
        BadZipFile: If the member would land outside target_path
    """
    destination = (target_path / member_name).resolve()
    root = target_path.resolve()
    if destination != root and root not in destination.parents:
        raise BadZipFile(f"Archive member escapes extraction folder: {member_name}")
    return destination


def extract_zip(
    zip_path: str | Path,
    target_path: str | Path,
    overwrite_all: bool = True,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> int:
    """Extract a ZIP archive into target_path.

    Args:
        zip_path: Path to ZIP file to extract
        target_path: Destination directory for extraction, created if missing
        overwrite_all: Whether to overwrite existing files (default: True)
        progress_callback: Optional callback function(current, total)

    Returns:
        Number of files written.

    Raises:
        BadZipFile: If the archive is invalid or a member escapes target_path
        OSError: If a file cannot be written
    """
    start = time.perf_counter()
    target = Path(target_path)
    target.mkdir(parents=True, exist_ok=True)
    written = 0

    with ZipFile(zip_path) as zipobj:
        file_list = zipobj.infolist()
        total_files = len(file_list)
        update_interval = max(1, total_files // 100)

        for i, zip_info in enumerate(file_list):
            dst = _safe_destination(target, zip_info.filename)

            if zip_info.is_dir():
                dst.mkdir(parents=True, exist_ok=True)
            else:
                dst.parent.mkdir(parents=True, exist_ok=True)
                if dst.exists() and not overwrite_all:
                    continue
                with zipobj.open(zip_info) as src, open(dst, "wb") as out_file:
                    shutil.copyfileobj(src, out_file)
                written += 1

            if progress_callback and (
                i % update_interval == 0 or i == total_files - 1
            ):
                progress_callback(i + 1, total_files)

    elapsed = time.perf_counter() - start
    logger.info(
        f"Extracted {written} files from {zip_path} to {target} in {elapsed:.2f} seconds"
    )
    return written


def validate_zip_integrity(zip_path: str | Path) -> tuple[bool, str]:
    """Validate ZIP file integrity.

    Tests the ZIP file for corruption and checks if it's a valid archive.

    Returns:
        Tuple of (is_valid, error_message). If valid, error_message is empty.
    """
    try:
        with ZipFile(zip_path) as zipobj:
            corruption_info = zipobj.testzip()
            if corruption_info is not None:
                return False, f"ZIP file corrupted at: {corruption_info}"
        logger.debug(f"ZIP file validated successfully: {zip_path}")
        return True, ""
    except BadZipFile as e:
        logger.error(f"Invalid ZIP file: {e}")
        return False, f"Invalid ZIP file: {str(e)}"
    except OSError as e:
        logger.error(f"Failed to validate ZIP: {e}")
        return False, f"Error validating ZIP: {str(e)}"


def find_archive_root(extracted_dir: Path, subfolder: str) -> Path:
    """Return extracted_dir/subfolder if it is a directory, else extracted_dir."""
    candidate = extracted_dir / subfolder
    if candidate.is_dir():
        return candidate
    return extracted_dir


def list_tree(root: Path) -> list[Path]:
    """All files below root as paths relative to it, sorted per folder."""
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            files.append((Path(dirpath) / filename).relative_to(root))
    return files
