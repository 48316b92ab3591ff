from pathlib import Path
from typing import Optional

from loguru import logger
from PySide6.QtCore import QThread, Signal

from packlauncher.controllers.update_controller import UpdateController
from packlauncher.models.progress import ProgressEvent
from packlauncher.utils.exception import PackLauncherError


class UpdateCheckWorker(QThread):
    """Check for a launcher update, downloading and extracting it when newer.

    Signals:
        progress: Emitted with each ProgressEvent
        finished: Emitted with the UpdateCheckResult, or None on failure
    """

    progress = Signal(object)
    finished = Signal(object)

    def __init__(self, controller: UpdateController) -> None:
        super().__init__()
        self.controller = controller

    def run(self) -> None:
        try:
            result = self.controller.check_for_update(on_progress=self.progress.emit)
        except PackLauncherError as e:
            logger.error(f"Update check failed: {e}")
            self.finished.emit(None)
            return
        self.finished.emit(result)


class UpdateApplyWorker(QThread):
    """Apply an extracted update over the application folder.

    Signals:
        progress: Emitted with each ProgressEvent
        finished: Emitted with the ApplyUpdateResult, or None on failure
    """

    progress = Signal(object)
    finished = Signal(object)

    def __init__(
        self,
        controller: UpdateController,
        extracted_dir: Path,
        remote_version: Optional[str],
        target_dir: Optional[Path] = None,
        remove_obsolete: Optional[bool] = None,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.extracted_dir = extracted_dir
        self.remote_version = remote_version
        self.target_dir = target_dir
        self.remove_obsolete = remove_obsolete

    def _on_progress(self, event: ProgressEvent) -> None:
        self.progress.emit(event)

    def run(self) -> None:
        try:
            result = self.controller.apply_update(
                self.extracted_dir,
                target_dir=self.target_dir,
                remote_version=self.remote_version,
                remove_obsolete=self.remove_obsolete,
                on_progress=self._on_progress,
            )
        except PackLauncherError as e:
            logger.error(f"Applying update failed: {e}")
            self.finished.emit(None)
            return
        self.finished.emit(result)
