"""
Modpack subcommands: browse the index, install a pack and manage staging.

The install command is the headless counterpart of the launcher's install
button. When critical files could not be downloaded, the user decides
whether to apply what was downloaded, either interactively or through
--proceed-on-missing/--cancel-on-missing.
"""

from pathlib import Path
from typing import Optional

import click

from packlauncher.cli.common import load_settings, progress_printer, resolve_install_path
from packlauncher.controllers.index_controller import IndexController
from packlauncher.controllers.install_controller import (
    InstallController,
    pending_staging_dirs,
)
from packlauncher.models.install import InstallResult, InstallStatus
from packlauncher.utils.exception import PackLauncherError
from packlauncher.utils.installer_runner import run_platform_installer

INSTALL_PATH_OPTION = click.option(
    "--install-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Game installation folder (defaults to the configured or platform .minecraft).",
)


@click.command("list-packs")
@click.option("--index-url", default=None, help="Override the modpack index URL.")
def list_packs(index_url: Optional[str]) -> None:
    """List the modpacks of the index."""
    settings = load_settings()
    if index_url:
        settings.index_url = index_url
    entries = IndexController(settings).load_index()
    if not entries:
        click.echo("No modpacks available.", err=True)
        return
    for entry in entries:
        click.echo(f"{entry.display_name}\t{entry.manifest_path or ''}")


@click.command("list-installers")
@click.argument("manifest")
@click.option("--version", "version_id", default=None, help="Manifest version id.")
def list_installers(manifest: str, version_id: Optional[str]) -> None:
    """List loader installers of MANIFEST (index path or URL).

    The preselected installer is marked with "*".
    """
    settings = load_settings()
    try:
        loaded = IndexController(settings).load_modpack(manifest, version_id)
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    click.echo(
        f"{loaded.manifest.display_name} {loaded.version.id}"
        f"{' (installed)' if loaded.installed else ''}"
    )
    for name in loaded.installer_names:
        marker = "*" if name == loaded.selected_installer_name else " "
        click.echo(f"{marker} {name}")


def _report_result(result: InstallResult) -> None:
    click.echo(f"Applied {len(result.applied)} files.")
    if result.missing_installers:
        click.echo(
            f"Missing optional files: {', '.join(result.missing_installers)}", err=True
        )
    if result.installer_path:
        click.echo(f"Loader installer: {result.installer_path}")


def _maybe_run_installer(
    result: InstallResult, install_path: Path, run_installer: Optional[bool]
) -> None:
    if result.installer_path is None:
        return
    if run_installer is None:
        run_installer = click.confirm(
            "A mod loader installer was placed. Run it now?", default=True
        )
    if not run_installer:
        return
    try:
        code = run_platform_installer(
            result.installer_path, install_path, result.installer_args
        )
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    if code != 0:
        raise click.ClickException(f"Installer exited with code {code}")


@click.command("install")
@click.argument("manifest")
@click.option("--version", "version_id", default=None, help="Manifest version id (default: recommended).")
@INSTALL_PATH_OPTION
@click.option("--installer", "installer_name", default=None, help="Loader installer to select.")
@click.option(
    "--proceed-on-missing/--cancel-on-missing",
    "proceed_on_missing",
    default=None,
    help="Decision when critical files are missing (prompts when omitted).",
)
@click.option(
    "--run-installer/--no-run-installer",
    "run_installer",
    default=None,
    help="Run the selected loader installer after applying (prompts when omitted).",
)
@click.option("--quiet", is_flag=True, help="Suppress progress output.")
def install(
    manifest: str,
    version_id: Optional[str],
    install_path: Optional[Path],
    installer_name: Optional[str],
    proceed_on_missing: Optional[bool],
    run_installer: Optional[bool],
    quiet: bool,
) -> None:
    """Install a modpack version from MANIFEST (index path or URL).

    Examples:

    \b
      packlauncher install packs/survival/manifest.json
      packlauncher install https://raw.githubusercontent.com/org/repo/main/manifest.json \\
          --version 1.2 --install-path ~/.minecraft --cancel-on-missing
    """
    settings = load_settings()
    target = resolve_install_path(settings, install_path)
    on_progress = progress_printer(quiet)

    try:
        loaded = IndexController(settings).load_modpack(manifest, version_id)
        controller = InstallController(settings)
        outcome = controller.install(
            loaded.manifest_url,
            loaded.version.id,
            target,
            selected_installer_name=installer_name or loaded.selected_installer_name,
            on_progress=on_progress,
        )

        if outcome.status is InstallStatus.MISSING_CRITICAL:
            click.echo(
                f"Missing critical files: {', '.join(outcome.missing_critical)}", err=True
            )
            proceed = proceed_on_missing
            if proceed is None:
                proceed = click.confirm(
                    "Continue and install only what was downloaded?", default=False
                )
            if not proceed:
                controller.cleanup_staging(outcome.staging_dir, on_progress=on_progress)
                raise click.ClickException("Installation cancelled (missing critical files).")
            result = controller.apply_staged(
                outcome.staging_dir, target, on_progress=on_progress
            )
        else:
            result = outcome.result
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    if result is None:
        raise click.ClickException("Install finished without a result.")

    settings.save()
    _report_result(result)
    _maybe_run_installer(result, target, run_installer)


@click.command("apply-staged")
@click.argument(
    "staging_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@INSTALL_PATH_OPTION
@click.option(
    "--run-installer/--no-run-installer",
    "run_installer",
    default=False,
    show_default=True,
    help="Run the selected loader installer after applying.",
)
@click.option("--quiet", is_flag=True, help="Suppress progress output.")
def apply_staged(
    staging_dir: Path,
    install_path: Optional[Path],
    run_installer: bool,
    quiet: bool,
) -> None:
    """Apply a kept staging directory to the installation folder."""
    settings = load_settings()
    target = resolve_install_path(settings, install_path)
    try:
        result = InstallController(settings).apply_staged(
            staging_dir, target, on_progress=progress_printer(quiet)
        )
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    settings.save()
    _report_result(result)
    _maybe_run_installer(result, target, run_installer)


@click.command("cleanup")
@click.argument(
    "staging_dirs", nargs=-1, type=click.Path(file_okay=False, path_type=Path)
)
@click.option("--all", "all_pending", is_flag=True, help="Discard every kept staging directory.")
def cleanup(staging_dirs: tuple[Path, ...], all_pending: bool) -> None:
    """Discard staging directories without applying them.

    Without arguments the kept staging directories are only listed.
    """
    targets = list(staging_dirs)
    if all_pending:
        targets.extend(pending_staging_dirs())
    if not targets:
        pending = pending_staging_dirs()
        if not pending:
            click.echo("No staging directories pending.")
        for path in pending:
            click.echo(str(path))
        return
    controller = InstallController()
    for path in targets:
        controller.cleanup_staging(path)
        click.echo(f"Removed {path}")


@click.command("run-installer", context_settings={"ignore_unknown_options": True})
@click.argument(
    "installer", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@INSTALL_PATH_OPTION
@click.argument("installer_args", nargs=-1, type=click.UNPROCESSED)
def run_installer_command(
    installer: Path, install_path: Optional[Path], installer_args: tuple[str, ...]
) -> None:
    """Run a loader INSTALLER with optional INSTALLER_ARGS."""
    settings = load_settings()
    target = resolve_install_path(settings, install_path)
    try:
        code = run_platform_installer(installer, target, list(installer_args))
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    if code != 0:
        raise click.ClickException(f"Installer exited with code {code}")
    click.echo("Installer finished.")
