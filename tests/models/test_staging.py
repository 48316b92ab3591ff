import json
from pathlib import Path

import pytest

from packlauncher.models.staging import (
    FileMeta,
    StagingCheckpoint,
    checkpoint_path,
    read_checkpoint,
    write_checkpoint,
)
from packlauncher.utils.constants import Category
from packlauncher.utils.exception import StagingError


def _checkpoint() -> StagingCheckpoint:
    return StagingCheckpoint(
        manifest_url="https://raw.githubusercontent.com/org/packs/main/manifest.json",
        version_id="1.0",
        files_meta=[
            FileMeta(
                name="forge.jar",
                category=Category.INSTALLER,
                tmp_name="forge.jar",
                resolved_url="https://x/forge.jar",
                installer_args=["--installClient", "%INSTALL_DIR%"],
                original={"url": "https://x/forge.jar", "category": "installers"},
            )
        ],
        missing_critical=["b.jar"],
        selected_installer_name="forge.jar",
    )


class TestCheckpoint:
    """Tests for the staging checkpoint file."""

    def test_written_as_camel_case_json(self, tmp_path: Path) -> None:
        path = write_checkpoint(tmp_path, _checkpoint())

        assert path == checkpoint_path(tmp_path) == tmp_path / "meta.json"
        data = json.loads(path.read_text())
        assert data["manifestUrl"].endswith("manifest.json")
        assert data["missingCritical"] == ["b.jar"]
        meta = data["filesMeta"][0]
        assert meta["tmpName"] == "forge.jar"
        assert meta["category"] == "installers"
        assert meta["installerArgs"] == ["--installClient", "%INSTALL_DIR%"]

    def test_read_back(self, tmp_path: Path) -> None:
        write_checkpoint(tmp_path, _checkpoint())

        checkpoint = read_checkpoint(tmp_path)

        assert checkpoint == _checkpoint()
        assert checkpoint.files_meta[0].category is Category.INSTALLER

    def test_missing_checkpoint(self, tmp_path: Path) -> None:
        with pytest.raises(StagingError, match="No staging checkpoint"):
            read_checkpoint(tmp_path)

    def test_malformed_checkpoint(self, tmp_path: Path) -> None:
        checkpoint_path(tmp_path).write_text('{"versionId": 1}')
        with pytest.raises(StagingError, match="Unreadable"):
            read_checkpoint(tmp_path)

    def test_unwritable_staging_dir(self, tmp_path: Path) -> None:
        with pytest.raises(StagingError):
            write_checkpoint(tmp_path / "missing", _checkpoint())
