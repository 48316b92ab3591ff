import hashlib
import os
import platform
import shutil
import sys
from datetime import datetime
from errno import EACCES
from pathlib import Path
from re import sub
from stat import S_IRWXG, S_IRWXO, S_IRWXU
from typing import Any, Callable
from urllib.parse import unquote, urlparse

from loguru import logger


def rmtree(path: str | Path, **kwargs: Any) -> bool:
    """Wrapper for improved rmtree error handling.
    Checks if the path exists and is a directory before attempting to delete it.
    OSErrors are logged instead of raised.

    :param path: Path to directory to be deleted.
    :type path: str | Path
    :param kwargs: Additional keyword arguments to pass to shutil.rmtree.
    :return: True if the directory was successfully deleted, False otherwise.
    """
    if isinstance(path, str):
        path = Path(path)

    if not path.exists():
        logger.warning(f"Tried to delete directory that does not exist: {path}")
        return False

    if not path.is_dir():
        logger.error(f"rmtree path is not a directory: {path}")
        return False

    handler_key = "onexc" if sys.version_info >= (3, 12) else "onerror"
    kwargs.setdefault(handler_key, _retry_with_chmod)
    try:
        shutil.rmtree(path, **kwargs)
    except OSError as e:
        if sys.platform == "win32":
            error_code = e.winerror
        else:
            error_code = e.errno
        logger.error(
            f"Failed to remove directory {path}: {e.strerror} occurred at {e.filename} with error code {error_code}"
        )
        return False

    return True


def attempt_chmod(
    func: Callable[[str], Any], path: str, excinfo: BaseException
) -> bool:
    if excinfo is not None and isinstance(excinfo, OSError):
        if (
            func in (os.rmdir, os.remove, os.unlink, os.listdir)
            and excinfo.errno == EACCES
        ):
            os.chmod(path, S_IRWXU | S_IRWXG | S_IRWXO)  # 0777
            try:
                func(path)
                return True
            except OSError as e:
                logger.warning(
                    f"attempt_chmod for {func.__name__} double failure at {path}: {e}"
                )
                return False

    return False


def _retry_with_chmod(func: Callable[[str], Any], path: str, exc: Any) -> None:
    # onerror passes an exc_info tuple, onexc the exception itself
    excvalue = exc[1] if isinstance(exc, tuple) else exc
    if not attempt_chmod(func, path, excvalue):
        raise excvalue


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def sanitize_filename(filename: str) -> str:
    # Remove forbidden characters for all platforms
    forbidden_chars = r'[<>:"/\\|?*\0]'
    sanitized_filename = sub(forbidden_chars, "", filename)

    # Windows filenames shouldn't end with a space or period
    sanitized_filename = sanitized_filename.rstrip(". ")

    # Never resolve to the current or parent directory
    if sanitized_filename in ("", ".", ".."):
        return ""

    return sanitized_filename


def has_scheme(url: str) -> bool:
    return bool(urlparse(url).scheme)


def url_basename(url: str) -> str:
    """Last path segment of a URL, URL-decoded, without query or fragment."""
    path = urlparse(url).path
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def format_file_size(size_in_bytes: int) -> str:
    """Format bytes to a human-readable string."""
    if size_in_bytes < 1024:
        return f"{size_in_bytes} B"
    elif size_in_bytes < 1024 * 1024:
        return f"{size_in_bytes / 1024:.1f} KB"
    elif size_in_bytes < 1024 * 1024 * 1024:
        return f"{size_in_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_in_bytes / (1024 * 1024 * 1024):.2f} GB"


def timestamp_slug(moment: datetime | None = None) -> str:
    """Filesystem-safe timestamp, e.g. 2024-05-01_13-45-10."""
    return (moment or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")


def format_release_date(value: str | None) -> str | None:
    """
    Render an ISO-8601 date from a version descriptor for display.

    Unparseable values are returned unchanged.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M")


def default_minecraft_path() -> Path:
    """
    Default game installation folder for the current platform.

    - Windows: %APPDATA%/.minecraft
    - macOS: ~/Library/Application Support/minecraft
    - others: ~/.minecraft
    """
    home = Path.home()
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / ".minecraft"
    if system == "Darwin":
        return home / "Library" / "Application Support" / "minecraft"
    return home / ".minecraft"
