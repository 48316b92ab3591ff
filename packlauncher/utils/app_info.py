import sys
from pathlib import Path
from tempfile import gettempdir

import msgspec
from loguru import logger
from platformdirs import PlatformDirs

from packlauncher.models.update import AppVersionMarker
from packlauncher.utils.constants import APP_VERSION_FILENAME, USER_VERSION_FILENAME

UNKNOWN_VERSION = "Unknown version"


def read_version_marker(path: Path) -> str | None:
    """
    Read the version of an app_version.json style marker.

    :return: the version string, or None if the file is missing or unreadable
    """
    if not path.is_file():
        return None
    try:
        marker = msgspec.json.decode(path.read_bytes(), type=AppVersionMarker)
    except (OSError, msgspec.DecodeError) as e:
        logger.warning(f"Unreadable version marker {path}: {e}")
        return None
    return marker.version or None


class AppInfo:
    """
    Singleton class that provides information about the application and its related directories.

    The directories are determined using the `platformdirs` package, ensuring
    platform-specific conventions are adhered to.

    Examples:
        >>> print(AppInfo().app_name)
        >>> print(AppInfo().app_storage_folder)
    """

    _instance: "None | AppInfo" = None

    def __new__(cls) -> "AppInfo":
        if not cls._instance:
            cls._instance = super(AppInfo, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_is_initialized") and self._is_initialized:
            return

        # Frozen builds run next to their executable; from source the
        # application folder is the repository root
        if getattr(sys, "frozen", False) or "__compiled__" in globals():
            self._application_folder = Path(sys.executable).resolve().parent
        else:
            self._application_folder = Path(__file__).resolve().parents[2]

        self._app_name = "PackLauncher"

        platform_dirs = PlatformDirs(appname=self._app_name, appauthor=False)
        self._app_storage_folder: Path = Path(platform_dirs.user_data_dir)
        self._user_log_folder: Path = Path(platform_dirs.user_log_dir)

        self._backup_folder: Path = self._app_storage_folder / "backups"
        self._settings_file: Path = self._app_storage_folder / "settings.json"
        self._staging_root: Path = Path(gettempdir())

        self._app_storage_folder.mkdir(parents=True, exist_ok=True)
        self._user_log_folder.mkdir(parents=True, exist_ok=True)

        self._is_initialized: bool = True

    @property
    def app_name(self) -> str:
        return self._app_name

    @property
    def app_version(self) -> str:
        """
        Installed application version.

        Read from app_version.json in the application folder, falling back to
        launcher-version.json in the user data folder.
        """
        version = read_version_marker(
            self._application_folder / APP_VERSION_FILENAME
        ) or read_version_marker(self._app_storage_folder / USER_VERSION_FILENAME)
        return version or UNKNOWN_VERSION

    @property
    def application_folder(self) -> Path:
        """
        Get the path to the folder the application files live in.

        This is the target of self-updates.
        """
        return self._application_folder

    @property
    def app_storage_folder(self) -> Path:
        """
        Get the path to the folder where user-specific data for the application is stored.
        """
        return self._app_storage_folder

    @property
    def user_log_folder(self) -> Path:
        return self._user_log_folder

    @property
    def backup_folder(self) -> Path:
        """
        Get the path to the folder holding self-update backup snapshots.
        """
        return self._backup_folder

    @property
    def app_settings_file(self) -> Path:
        return self._settings_file

    @property
    def staging_root(self) -> Path:
        """
        Get the folder under which install staging sessions are created.
        """
        return self._staging_root
