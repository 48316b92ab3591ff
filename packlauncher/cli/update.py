"""
Self-update subcommands.

check-update reports whether a newer launcher is published; self-update
downloads it and copies it over the application folder.
"""

from typing import Optional

import click

from packlauncher.cli.common import load_settings, progress_printer
from packlauncher.controllers.update_controller import UpdateController
from packlauncher.models.update import (
    REASON_NO_ZIP,
    REASON_ZIP_DOWNLOAD_FAILED,
    REASON_ZIP_EXTRACT_FAILED,
    UpdateCheckResult,
    UpdateStatus,
)
from packlauncher.utils.exception import PackLauncherError
from packlauncher.utils.generic import format_release_date

MANUAL_UPDATE_REASONS = (REASON_NO_ZIP, REASON_ZIP_DOWNLOAD_FAILED, REASON_ZIP_EXTRACT_FAILED)


def _describe(result: UpdateCheckResult) -> str:
    local = result.local_version or "unknown"
    if not result.update_available:
        if result.reason:
            return f"No update information ({result.reason}). Installed: {local}"
        return f"Launcher is up to date ({local})."
    released = format_release_date(result.release_date)
    when = f", released {released}" if released else ""
    return f"Update available: {local} -> {result.remote_version}{when}"


@click.command("check-update")
def check_update() -> None:
    """Check whether a newer launcher version is published."""
    settings = load_settings()
    controller = UpdateController(settings)
    try:
        result = controller.check_for_update()
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e
    controller.cleanup_temp(result)
    click.echo(_describe(result))


@click.command("self-update")
@click.option(
    "--remove-obsolete/--keep-obsolete",
    "remove_obsolete",
    default=None,
    help="Delete application files absent from the update (defaults to the setting).",
)
@click.option("--yes", is_flag=True, help="Apply without asking for confirmation.")
@click.option("--quiet", is_flag=True, help="Suppress progress output.")
def self_update(remove_obsolete: Optional[bool], yes: bool, quiet: bool) -> None:
    """Download and apply a newer launcher version.

    The launcher has to be restarted afterwards.
    """
    settings = load_settings()
    controller = UpdateController(settings)
    on_progress = progress_printer(quiet)

    try:
        check = controller.check_for_update(on_progress=on_progress)
    except PackLauncherError as e:
        raise click.ClickException(str(e)) from e

    try:
        click.echo(_describe(check))
        if check.reason in MANUAL_UPDATE_REASONS:
            raise click.ClickException(
                f"The update could not be prepared automatically ({check.reason}). "
                f"Download it manually from {controller.repository_url}"
            )
        if check.status is not UpdateStatus.READY or check.extracted_dir is None:
            return
        if not yes and not click.confirm(
            f"Apply launcher update {check.remote_version}? Launcher files will be overwritten.",
            default=True,
        ):
            click.echo("Update skipped.")
            return
        try:
            applied = controller.apply_update(
                check.extracted_dir,
                remote_version=check.remote_version,
                remove_obsolete=remove_obsolete,
                on_progress=on_progress,
            )
        except PackLauncherError as e:
            raise click.ClickException(str(e)) from e
    finally:
        controller.cleanup_temp(check)

    if not applied.ok:
        backup = f" A backup is kept at {applied.backup_dir}." if applied.backup_dir else ""
        raise click.ClickException(
            f"The update could not be applied automatically: {applied.error}.{backup} "
            f"Download it manually from {controller.repository_url}"
        )
    click.echo(
        f"Updated to {check.remote_version}: {applied.copied_files} files copied, "
        f"{applied.removed_files} removed. Restart the launcher."
    )
