"""
Main CLI entry point for PackLauncher.

This module defines the Click command group and registers all subcommands.
"""

import os

import click

from packlauncher.cli.modpack import (
    apply_staged,
    cleanup,
    install,
    list_installers,
    list_packs,
    run_installer_command,
)
from packlauncher.cli.update import check_update, self_update
from packlauncher.models.settings import DISABLE_UPDATER_ENV
from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.logging_config import setup_logging


@click.group()
@click.version_option(version=AppInfo().app_version, prog_name="PackLauncher")
@click.option("--debug", is_flag=True, help="Write DEBUG level messages to the log file.")
@click.option("--verbose", is_flag=True, help="Also print INFO level messages to stderr.")
@click.option(
    "--disable-updater",
    is_flag=True,
    help=f"Disable launcher update checks (same as the {DISABLE_UPDATER_ENV} env var).",
)
def cli(debug: bool, verbose: bool, disable_updater: bool) -> None:
    """PackLauncher - modpack installer and launcher updater

    Headless tools to install modpacks from a repository manifest into a
    game folder, and to update the launcher itself.
    """
    if disable_updater:
        os.environ[DISABLE_UPDATER_ENV] = "1"
    setup_logging(debug=debug, stderr_level="INFO" if verbose else "WARNING")


# Register subcommands
cli.add_command(list_packs)
cli.add_command(list_installers)
cli.add_command(install)
cli.add_command(apply_staged)
cli.add_command(cleanup)
cli.add_command(run_installer_command)
cli.add_command(check_update)
cli.add_command(self_update)


if __name__ == "__main__":
    cli()
