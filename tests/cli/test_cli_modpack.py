"""
Tests for the modpack CLI commands.
"""

from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from packlauncher.cli.main import cli
from packlauncher.controllers.index_controller import LoadedModpack
from packlauncher.models.install import InstallOutcome, InstallResult, InstallStatus
from packlauncher.models.manifest import Manifest, ModpackIndexEntry, Version
from packlauncher.utils.exception import ManifestError

MODULE = "packlauncher.cli.modpack"
MANIFEST_URL = "https://raw.githubusercontent.com/org/packs/main/survival/manifest.json"


@pytest.fixture(autouse=True)
def no_logging_setup() -> Generator[MagicMock, None, None]:
    with patch("packlauncher.cli.main.setup_logging") as setup_logging:
        yield setup_logging


@pytest.fixture
def settings() -> Generator[MagicMock, None, None]:
    mock_settings = MagicMock()
    mock_settings.install_path = ""
    with patch(f"{MODULE}.load_settings", return_value=mock_settings):
        yield mock_settings


def _loaded() -> LoadedModpack:
    version = Version(id="1.0")
    return LoadedModpack(
        manifest=Manifest(name="Survival", versions=[version]),
        manifest_url=MANIFEST_URL,
        version=version,
        installer_names=["fabric.jar", "forge.jar"],
        selected_installer_name="forge.jar",
    )


class TestListCommands:
    """Tests for list-packs and list-installers."""

    def test_list_packs(self, settings: MagicMock) -> None:
        entries = [ModpackIndexEntry(name="Survival", manifest="survival/manifest.json")]
        with patch(f"{MODULE}.IndexController") as index_controller:
            index_controller.return_value.load_index.return_value = entries
            result = CliRunner().invoke(cli, ["list-packs", "--index-url", "https://x/index.json"])

        assert result.exit_code == 0
        assert "Survival\tsurvival/manifest.json" in result.output
        assert settings.index_url == "https://x/index.json"

    def test_list_packs_empty(self, settings: MagicMock) -> None:
        with patch(f"{MODULE}.IndexController") as index_controller:
            index_controller.return_value.load_index.return_value = []
            result = CliRunner().invoke(cli, ["list-packs"])

        assert result.exit_code == 0
        assert "No modpacks available." in result.output

    def test_list_installers_marks_selection(self, settings: MagicMock) -> None:
        with patch(f"{MODULE}.IndexController") as index_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            result = CliRunner().invoke(cli, ["list-installers", "survival/manifest.json"])

        assert result.exit_code == 0
        assert "Survival 1.0" in result.output
        assert "* forge.jar" in result.output
        assert "  fabric.jar" in result.output

    def test_list_installers_error(self, settings: MagicMock) -> None:
        with patch(f"{MODULE}.IndexController") as index_controller:
            index_controller.return_value.load_modpack.side_effect = ManifestError("no manifest")
            result = CliRunner().invoke(cli, ["list-installers", "missing.json"])

        assert result.exit_code == 1
        assert "no manifest" in result.output


class TestInstallCommand:
    """Tests for the install command."""

    def _invoke(self, tmp_path: Path, *extra: str, input: str | None = None) -> object:
        return CliRunner().invoke(
            cli,
            ["install", "survival/manifest.json", "--install-path", str(tmp_path), "--quiet", *extra],
            input=input,
        )

    def test_applied(self, settings: MagicMock, tmp_path: Path) -> None:
        result_obj = InstallResult(applied=[tmp_path / "mods" / "a.jar", tmp_path / "mods" / "b.jar"])
        outcome = InstallOutcome(
            status=InstallStatus.APPLIED, staging_dir=tmp_path / "s", result=result_obj
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            result = self._invoke(tmp_path, "--no-run-installer")

        assert result.exit_code == 0, result.output
        assert "Applied 2 files." in result.output
        call = install_controller.return_value.install.call_args
        assert call.args == (MANIFEST_URL, "1.0", tmp_path)
        assert call.kwargs["selected_installer_name"] == "forge.jar"
        settings.save.assert_called_once()

    def test_explicit_installer_choice(self, settings: MagicMock, tmp_path: Path) -> None:
        outcome = InstallOutcome(
            status=InstallStatus.APPLIED, staging_dir=tmp_path / "s", result=InstallResult()
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            self._invoke(tmp_path, "--installer", "fabric.jar")

        call = install_controller.return_value.install.call_args
        assert call.kwargs["selected_installer_name"] == "fabric.jar"

    def test_missing_critical_cancelled(self, settings: MagicMock, tmp_path: Path) -> None:
        staging_dir = tmp_path / "staging"
        outcome = InstallOutcome(
            status=InstallStatus.MISSING_CRITICAL,
            staging_dir=staging_dir,
            missing_critical=["a.jar"],
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            result = self._invoke(tmp_path, "--cancel-on-missing")

        assert result.exit_code == 1
        assert "Missing critical files: a.jar" in result.output
        assert "Installation cancelled" in result.output
        install_controller.return_value.cleanup_staging.assert_called_once()
        assert install_controller.return_value.cleanup_staging.call_args.args == (staging_dir,)
        install_controller.return_value.apply_staged.assert_not_called()
        settings.save.assert_not_called()

    def test_missing_critical_proceed(self, settings: MagicMock, tmp_path: Path) -> None:
        staging_dir = tmp_path / "staging"
        outcome = InstallOutcome(
            status=InstallStatus.MISSING_CRITICAL,
            staging_dir=staging_dir,
            missing_critical=["a.jar"],
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            install_controller.return_value.apply_staged.return_value = InstallResult(
                applied=[tmp_path / "mods" / "b.jar"]
            )
            result = self._invoke(tmp_path, "--proceed-on-missing", "--no-run-installer")

        assert result.exit_code == 0, result.output
        assert "Applied 1 files." in result.output
        assert install_controller.return_value.apply_staged.call_args.args == (
            staging_dir,
            tmp_path,
        )

    def test_missing_critical_prompts(self, settings: MagicMock, tmp_path: Path) -> None:
        outcome = InstallOutcome(
            status=InstallStatus.MISSING_CRITICAL,
            staging_dir=tmp_path / "staging",
            missing_critical=["a.jar"],
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            result = self._invoke(tmp_path, input="n\n")

        assert result.exit_code == 1
        assert "Continue and install only what was downloaded?" in result.output
        install_controller.return_value.cleanup_staging.assert_called_once()

    def test_runs_selected_installer(self, settings: MagicMock, tmp_path: Path) -> None:
        installer = tmp_path / "launcher_installers" / "forge.jar"
        outcome = InstallOutcome(
            status=InstallStatus.APPLIED,
            staging_dir=tmp_path / "s",
            result=InstallResult(installer_path=installer, installer_args=["--installClient"]),
        )
        with patch(f"{MODULE}.IndexController") as index_controller, patch(
            f"{MODULE}.InstallController"
        ) as install_controller, patch(
            f"{MODULE}.run_platform_installer", return_value=0
        ) as run_installer:
            index_controller.return_value.load_modpack.return_value = _loaded()
            install_controller.return_value.install.return_value = outcome
            result = self._invoke(tmp_path, "--run-installer")

        assert result.exit_code == 0, result.output
        run_installer.assert_called_once_with(installer, tmp_path, ["--installClient"])

    def test_manifest_error(self, settings: MagicMock, tmp_path: Path) -> None:
        with patch(f"{MODULE}.IndexController") as index_controller:
            index_controller.return_value.load_modpack.side_effect = ManifestError(
                "Version 9 not found"
            )
            result = self._invoke(tmp_path, "--version", "9")

        assert result.exit_code == 1
        assert "Error: Version 9 not found" in result.output


class TestStagingCommands:
    """Tests for apply-staged, cleanup and run-installer."""

    def test_apply_staged(self, settings: MagicMock, tmp_path: Path) -> None:
        staging_dir = tmp_path / "staging"
        staging_dir.mkdir()
        with patch(f"{MODULE}.InstallController") as install_controller:
            install_controller.return_value.apply_staged.return_value = InstallResult()
            result = CliRunner().invoke(
                cli,
                ["apply-staged", str(staging_dir), "--install-path", str(tmp_path), "--quiet"],
            )

        assert result.exit_code == 0, result.output
        assert "Applied 0 files." in result.output
        settings.save.assert_called_once()

    def test_cleanup_lists_pending(self, tmp_path: Path) -> None:
        with patch(f"{MODULE}.pending_staging_dirs", return_value=[tmp_path / "a"]):
            result = CliRunner().invoke(cli, ["cleanup"])

        assert result.exit_code == 0
        assert str(tmp_path / "a") in result.output

    def test_cleanup_nothing_pending(self) -> None:
        with patch(f"{MODULE}.pending_staging_dirs", return_value=[]):
            result = CliRunner().invoke(cli, ["cleanup"])

        assert "No staging directories pending." in result.output

    def test_cleanup_all(self, tmp_path: Path) -> None:
        pending = [tmp_path / "a", tmp_path / "b"]
        with patch(f"{MODULE}.pending_staging_dirs", return_value=pending), patch(
            f"{MODULE}.InstallController"
        ) as install_controller:
            result = CliRunner().invoke(cli, ["cleanup", "--all"])

        assert result.exit_code == 0
        cleaned = [c.args[0] for c in install_controller.return_value.cleanup_staging.call_args_list]
        assert cleaned == pending

    def test_run_installer_passes_arguments(self, settings: MagicMock, tmp_path: Path) -> None:
        installer = tmp_path / "forge.jar"
        installer.write_bytes(b"")
        with patch(f"{MODULE}.run_platform_installer", return_value=0) as run_installer:
            result = CliRunner().invoke(
                cli,
                ["run-installer", str(installer), "--install-path", str(tmp_path), "--installClient"],
            )

        assert result.exit_code == 0, result.output
        run_installer.assert_called_once_with(installer, tmp_path, ["--installClient"])

    def test_run_installer_failure_exit_code(self, settings: MagicMock, tmp_path: Path) -> None:
        installer = tmp_path / "forge.jar"
        installer.write_bytes(b"")
        with patch(f"{MODULE}.run_platform_installer", return_value=2):
            result = CliRunner().invoke(
                cli, ["run-installer", str(installer), "--install-path", str(tmp_path)]
            )

        assert result.exit_code == 1
        assert "exited with code 2" in result.output
