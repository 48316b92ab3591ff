import hashlib
import io
import zipfile
from pathlib import Path
from typing import Any, Generator, Optional
from unittest.mock import patch

import pytest
from PySide6.QtCore import QCoreApplication

from packlauncher.models.settings import DISABLE_UPDATER_ENV, GITHUB_TOKEN_ENV, Settings
from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.exception import NotFoundError
from packlauncher.utils.fetcher import FetchProgress, FetchProgressCallback
from packlauncher.utils.json_utils import decode_lenient
from packlauncher.utils.repo_lister import RepoFile

MANIFEST_URL = "https://raw.githubusercontent.com/org/packs/main/survival/manifest.json"
PACK_BASE = "https://raw.githubusercontent.com/org/packs/main/survival"


@pytest.fixture(autouse=True)
def isolated_app_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Point the AppInfo singleton at a temporary folder so that tests never
    touch the real settings, logs or backups.
    """
    storage = tmp_path / "app_storage"
    storage.mkdir()
    app_info = AppInfo()
    monkeypatch.setattr(app_info, "_app_storage_folder", storage)
    monkeypatch.setattr(app_info, "_user_log_folder", storage / "logs")
    monkeypatch.setattr(app_info, "_backup_folder", storage / "backups")
    monkeypatch.setattr(app_info, "_settings_file", storage / "settings.json")
    monkeypatch.setattr(app_info, "_staging_root", tmp_path / "staging_root")
    monkeypatch.delenv(GITHUB_TOKEN_ENV, raising=False)
    monkeypatch.delenv(DISABLE_UPDATER_ENV, raising=False)
    return storage


@pytest.fixture(scope="function")
def qapp() -> Generator[QCoreApplication, None, None]:
    """Create a QCoreApplication instance for Qt tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(settings_file=tmp_path / "settings.json")


def sha256_of(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def make_zip(entries: dict[str, bytes]) -> bytes:
    """Build an in-memory ZIP archive from name -> content."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


class FakeRemote:
    """
    In-memory stand-in for the network side of the install pipeline.

    files maps URLs to bodies; listings maps "owner/repo/path" to the
    entries a directory listing returns.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.listings: dict[str, list[RepoFile]] = {}
        self.requested: list[str] = []
        self.listed: list[str] = []

    def add_manifest(self, manifest: dict[str, Any], url: str = MANIFEST_URL) -> None:
        import json

        self.files[url] = json.dumps(manifest).encode("utf-8")

    def add_listing(self, folder: str, names: list[str]) -> None:
        """Register a listing of PACK_BASE/folder; each name must be in files."""
        self.listings[f"org/packs/survival/{folder}"] = [
            RepoFile(name=name, download_url=f"{PACK_BASE}/{folder}/{name}")
            for name in names
        ]

    def fetch(
        self,
        url: str,
        credentials: Optional[str] = None,
        on_progress: Optional[FetchProgressCallback] = None,
        timeout: float = 0,
    ) -> bytes:
        self.requested.append(url)
        if url not in self.files:
            raise NotFoundError(f"Not found: {url}", url, 404)
        content = self.files[url]
        if on_progress is not None:
            on_progress(FetchProgress(received_bytes=len(content), total_bytes=len(content)))
        return content

    def fetch_json(
        self,
        url: str,
        type: Any = Any,
        credentials: Optional[str] = None,
        timeout: float = 0,
    ) -> Any:
        return decode_lenient(self.fetch(url), type=type, source=url)

    def list_files(
        self,
        owner: str,
        repo: str,
        dir_path: str,
        credentials: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: float = 0,
    ) -> list[RepoFile]:
        key = f"{owner}/{repo}/{dir_path}"
        self.listed.append(key)
        return list(self.listings.get(key, []))


@pytest.fixture
def remote() -> Generator[FakeRemote, None, None]:
    """Patch the install pipeline's network access with a FakeRemote."""
    fake = FakeRemote()
    module = "packlauncher.controllers.install_controller"
    with patch(f"{module}.fetch", side_effect=fake.fetch), patch(
        f"{module}.fetch_json", side_effect=fake.fetch_json
    ), patch(f"{module}.list_files", side_effect=fake.list_files):
        yield fake
