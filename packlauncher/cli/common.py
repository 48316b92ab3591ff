"""Helpers shared by the CLI subcommands."""

from pathlib import Path
from typing import Callable, Optional

import click

from packlauncher.models.progress import ProgressEvent, Stage
from packlauncher.models.settings import Settings
from packlauncher.utils.generic import default_minecraft_path, format_file_size


def load_settings() -> Settings:
    settings = Settings()
    settings.load()
    return settings


def resolve_install_path(settings: Settings, install_path: Optional[Path]) -> Path:
    """Explicit option, else the configured path, else the platform default."""
    if install_path is not None:
        return install_path
    if settings.install_path:
        return Path(settings.install_path)
    return default_minecraft_path()


def progress_printer(quiet: bool) -> Optional[Callable[[ProgressEvent], None]]:
    """Progress sink echoing one line per file event to stderr."""
    if quiet:
        return None

    def on_progress(event: ProgressEvent) -> None:
        if event.stage in (Stage.DOWNLOAD_PROGRESS, Stage.UPDATE_EXTRACT):
            return
        if event.stage == Stage.UPDATE_DOWNLOAD:
            if event.total_bytes and event.downloaded_bytes == event.total_bytes:
                click.echo(
                    f"[update-download] {event.current_file} {format_file_size(event.total_bytes)}",
                    err=True,
                )
            return
        parts = [f"[{event.stage}]"]
        if event.file_index is not None and event.file_count is not None:
            parts.append(f"({event.file_index}/{event.file_count})")
        if event.current_file:
            parts.append(event.current_file)
        if event.status:
            parts.append(event.status)
        click.echo(" ".join(parts), err=True)

    return on_progress
