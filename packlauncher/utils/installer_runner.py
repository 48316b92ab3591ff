import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from packlauncher.utils.exception import InstallerLaunchError


def find_java() -> Optional[str]:
    """
    Locate a java executable, preferring JAVA_HOME over PATH.
    """
    executable = "java.exe" if sys.platform == "win32" else "java"
    java_home = os.getenv("JAVA_HOME")
    if java_home:
        candidate = Path(java_home) / "bin" / executable
        if candidate.is_file():
            return str(candidate)
        logger.warning(f"JAVA_HOME is set but {candidate} does not exist")
    return shutil.which("java")


def build_installer_command(
    installer_path: Path, args: Sequence[str] = ()
) -> list[str]:
    """
    Command line that launches an installer.

    Java archives run through ``java -jar``; anything else is executed directly.
    """
    if installer_path.suffix.lower() == ".jar":
        java = find_java()
        if java is None:
            raise InstallerLaunchError(
                f"Cannot run {installer_path.name}: no java executable found in JAVA_HOME or PATH"
            )
        return [java, "-jar", str(installer_path), *args]
    return [str(installer_path), *args]


def run_platform_installer(
    installer_path: Path | str,
    install_path: Path | str,
    args: Sequence[str] = (),
) -> int:
    """
    Run a loader installer and wait for it to exit.

    :param installer_path: the staged installer, usually in launcher_installers
    :param install_path: working directory, the game installation folder
    :param args: installer arguments with placeholders already substituted
    :return: the installer's exit code
    :raises InstallerLaunchError: if the process cannot be spawned
    """
    installer_path = Path(installer_path)
    if not installer_path.is_file():
        raise InstallerLaunchError(f"Installer not found: {installer_path}")

    command = build_installer_command(installer_path, args)
    logger.info(f"Launching installer: {command} (cwd={install_path})")
    try:
        completed = subprocess.run(command, cwd=str(install_path), check=False)
    except OSError as e:
        logger.error(f"Failed to launch installer {installer_path}: {e}")
        raise InstallerLaunchError(
            f"Failed to launch installer {installer_path.name}: {e}"
        ) from e

    if completed.returncode != 0:
        logger.warning(
            f"Installer {installer_path.name} exited with code {completed.returncode}"
        )
    else:
        logger.info(f"Installer {installer_path.name} finished successfully")
    return completed.returncode
