from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from packlauncher.controllers.manifest_resolver import (
    declared_installer_names,
    load_manifest,
    preferred_installer,
    select_version,
)
from packlauncher.models.manifest import Manifest, ModpackIndexEntry, Version
from packlauncher.models.settings import Settings
from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.constants import DISCOVERY_FOLDERS, LOCAL_INDEX_CANDIDATES, Category
from packlauncher.utils.exception import FetchError, ManifestError
from packlauncher.utils.fetcher import fetch_json
from packlauncher.utils.json_utils import decode_lenient
from packlauncher.utils.repo_lister import list_manifest_folder


@dataclass
class LoadedModpack:
    """A manifest ready to install, with the defaults a UI would preselect."""

    manifest: Manifest
    manifest_url: str
    version: Version
    installer_names: list[str] = field(default_factory=list)
    selected_installer_name: Optional[str] = None
    installed: bool = False


class IndexController:
    """
    Loads the modpack index and the manifests it points to.
    """

    def __init__(self, settings: Settings, local_root: Optional[Path] = None) -> None:
        self.settings = settings
        self.local_root = local_root or AppInfo().application_folder

    def load_index(self) -> list[ModpackIndexEntry]:
        """
        Load index.json remotely, falling back to local copies.

        An unavailable index yields an empty list.
        """
        url = self.settings.index_url
        try:
            entries = fetch_json(
                url,
                type=list[ModpackIndexEntry],
                credentials=self.settings.effective_github_token,
                timeout=self.settings.request_timeout,
            )
            logger.info(f"Loaded {len(entries)} modpacks from {url}")
            return entries
        except (FetchError, ManifestError) as e:
            logger.warning(f"Failed to load remote modpack index {url}: {e}")

        for candidate in LOCAL_INDEX_CANDIDATES:
            path = self.local_root / candidate
            if not path.is_file():
                continue
            try:
                entries = decode_lenient(
                    path.read_bytes(), type=list[ModpackIndexEntry], source=str(path)
                )
            except (OSError, ManifestError) as e:
                logger.warning(f"Failed to load local modpack index {path}: {e}")
                continue
            logger.info(f"Loaded {len(entries)} modpacks from local index {path}")
            return entries

        logger.warning("No modpack index could be loaded, the modpack list is empty")
        return []

    def list_installers(self, manifest_url: str, version: Version) -> list[str]:
        """
        Installer names for the loader choice.

        The repository's installers folder is listed first; declared installer
        entries are the fallback.
        """
        listed = list_manifest_folder(
            manifest_url,
            DISCOVERY_FOLDERS[Category.INSTALLER],
            credentials=self.settings.effective_github_token,
        )
        if listed:
            logger.info(f"Found {len(listed)} installers in the repository")
            return [item.name for item in listed]
        names = declared_installer_names(version)
        if not names:
            logger.warning("No installers declared in the manifest")
        return names

    def load_modpack(
        self, manifest_path: str, version_id: Optional[str] = None
    ) -> LoadedModpack:
        """
        Load a manifest and preselect its version and loader installer.

        :raises ManifestError: if the manifest cannot be loaded or lacks the version
        """
        manifest, manifest_url = load_manifest(
            manifest_path,
            self.settings.modpack_repo_raw_base,
            credentials=self.settings.effective_github_token,
            local_root=self.local_root,
        )
        version = select_version(manifest, version_id)
        installer_names = self.list_installers(manifest_url, version)
        installed = self.settings.is_marked_installed(manifest_url, version.id)
        logger.info(
            f"Modpack {manifest.display_name} version {version.id}: installed={installed}"
        )
        return LoadedModpack(
            manifest=manifest,
            manifest_url=manifest_url,
            version=version,
            installer_names=installer_names,
            selected_installer_name=preferred_installer(installer_names),
            installed=installed,
        )
