"""Qt thread wrappers around the install pipeline.

A UI shell runs installs through these workers so that downloads and file
operations never block its event loop. Progress events are re-emitted as
Qt signals; the pipeline itself knows nothing about Qt.
"""

from pathlib import Path
from typing import Optional

from loguru import logger
from PySide6.QtCore import QThread, Signal

from packlauncher.controllers.install_controller import InstallController
from packlauncher.models.install import InstallOutcome, InstallStatus
from packlauncher.models.progress import ProgressEvent
from packlauncher.utils.exception import PackLauncherError


class InstallWorker(QThread):
    """Run InstallController.install in a separate thread.

    Signals:
        progress: Emitted with each ProgressEvent
        finished: Emitted with the InstallOutcome, or None on failure
        error: Emitted with an error message when the install raised
    """

    progress = Signal(object)
    finished = Signal(object)
    error = Signal(str)

    def __init__(
        self,
        controller: InstallController,
        manifest_url: str,
        version_id: Optional[str],
        install_path: Path,
        credentials: Optional[str] = None,
        selected_installer_name: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.manifest_url = manifest_url
        self.version_id = version_id
        self.install_path = install_path
        self.credentials = credentials
        self.selected_installer_name = selected_installer_name

    def _on_progress(self, event: ProgressEvent) -> None:
        self.progress.emit(event)

    def run(self) -> None:
        try:
            outcome = self.controller.install(
                self.manifest_url,
                self.version_id,
                self.install_path,
                credentials=self.credentials,
                selected_installer_name=self.selected_installer_name,
                on_progress=self._on_progress,
            )
        except PackLauncherError as e:
            logger.error(f"Install of {self.manifest_url} failed: {e}")
            self.error.emit(str(e))
            self.finished.emit(None)
            return
        self.finished.emit(outcome)


class ApplyStagedWorker(QThread):
    """Resolve a missing-critical decision in a separate thread.

    With proceed=True the staging directory is applied, otherwise it is
    discarded and a CANCELLED outcome is reported.
    """

    progress = Signal(object)
    finished = Signal(object)
    error = Signal(str)

    def __init__(
        self,
        controller: InstallController,
        staging_dir: Path,
        install_path: Path,
        proceed: bool,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.staging_dir = staging_dir
        self.install_path = install_path
        self.proceed = proceed

    def _on_progress(self, event: ProgressEvent) -> None:
        self.progress.emit(event)

    def run(self) -> None:
        if not self.proceed:
            self.controller.cleanup_staging(self.staging_dir, on_progress=self._on_progress)
            self.finished.emit(
                InstallOutcome(status=InstallStatus.CANCELLED, staging_dir=self.staging_dir)
            )
            return
        try:
            result = self.controller.apply_staged(
                self.staging_dir, self.install_path, on_progress=self._on_progress
            )
        except PackLauncherError as e:
            logger.error(f"Applying {self.staging_dir} failed: {e}")
            self.error.emit(str(e))
            self.finished.emit(None)
            return
        self.finished.emit(
            InstallOutcome(
                status=InstallStatus.APPLIED,
                staging_dir=self.staging_dir,
                missing_installers=list(result.missing_installers),
                result=result,
            )
        )
