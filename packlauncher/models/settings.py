import json
import os
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.constants import (
    DEFAULT_INDEX_URL,
    DEFAULT_MODPACK_RAW_BASE,
    DEFAULT_REPO_BRANCH,
    DEFAULT_REPO_NAME,
    DEFAULT_REPO_OWNER,
    DOWNLOAD_TIMEOUT,
    GITHUB_RAW_BASE,
)

GITHUB_TOKEN_ENV = "PACKLAUNCHER_GITHUB_TOKEN"
DISABLE_UPDATER_ENV = "PACKLAUNCHER_DISABLE_UPDATER"


class Settings:
    def __init__(self, settings_file: Optional[Path] = None) -> None:
        self._settings_file = settings_file or AppInfo().app_settings_file
        self._debug_file = AppInfo().app_storage_folder / "DEBUG"

        # Modpacks
        self.index_url: str = DEFAULT_INDEX_URL
        self.modpack_repo_raw_base: str = DEFAULT_MODPACK_RAW_BASE
        self.install_path: str = ""
        self.selected_installer_name: str = ""

        # Launcher self-update
        self.check_for_update_startup: bool = True
        self.launcher_repo_owner: str = DEFAULT_REPO_OWNER
        self.launcher_repo_name: str = DEFAULT_REPO_NAME
        self.launcher_repo_branch: str = DEFAULT_REPO_BRANCH
        self.remove_obsolete_on_update: bool = False
        # Default (-1) means keep every backup snapshot
        self.max_backups: int = -1

        # Network
        self.request_timeout: int = DOWNLOAD_TIMEOUT

        # Authentication
        self.github_token: str = ""

        # Advanced
        self.debug_logging_enabled: bool = False

        # Installed heuristics: "<manifest url>#<version id>" keys
        self.installed_versions: list[str] = []

    @property
    def launcher_raw_base(self) -> str:
        return (
            f"{GITHUB_RAW_BASE}/{self.launcher_repo_owner}"
            f"/{self.launcher_repo_name}/{self.launcher_repo_branch}"
        )

    @property
    def effective_github_token(self) -> Optional[str]:
        """Token from the environment, else from settings, else None."""
        return os.getenv(GITHUB_TOKEN_ENV) or self.github_token or None

    @property
    def updater_disabled(self) -> bool:
        return bool(os.getenv(DISABLE_UPDATER_ENV))

    @staticmethod
    def installed_key(manifest_url: str, version_id: str) -> str:
        return f"{manifest_url}#{version_id}"

    def is_marked_installed(self, manifest_url: str, version_id: str) -> bool:
        return self.installed_key(manifest_url, version_id) in self.installed_versions

    def mark_installed(self, manifest_url: str, version_id: str) -> None:
        key = self.installed_key(manifest_url, version_id)
        if key not in self.installed_versions:
            self.installed_versions.append(key)

    def load(self) -> None:
        if self._debug_file.exists() and self._debug_file.is_file():
            self.debug_logging_enabled = True
        else:
            self.debug_logging_enabled = False

        try:
            with open(str(self._settings_file), "r") as file:
                data = json.load(file)
                self._from_dict(data)
        except FileNotFoundError:
            self.save()
        except JSONDecodeError:
            raise

    def save(self) -> None:
        if self.debug_logging_enabled:
            self._debug_file.touch(exist_ok=True)
        else:
            self._debug_file.unlink(missing_ok=True)

        self._settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(str(self._settings_file), "w") as file:
            json.dump(self._to_dict(), file, indent=4)

    def _from_dict(self, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            if key.startswith("_") or not hasattr(self, key):
                continue
            current = getattr(self, key)
            if current is not None and value is not None and type(current) is not type(value):
                logger.warning(
                    f"Ignoring setting {key}: expected {type(current).__name__}, got {type(value).__name__}"
                )
                continue
            setattr(self, key, value)

    def _to_dict(self, skip_private: bool = True) -> Dict[str, Any]:
        data = {}
        for key, value in self.__dict__.items():
            if skip_private and key.startswith("_"):
                continue
            data[key] = value
        return data
