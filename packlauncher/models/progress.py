"""
Progress events emitted by the install pipeline and the self-updater.

Events are delivered to a sink callback registered by the caller. The stream
is append-only; consumers should ignore stages they do not recognise.
"""

from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from loguru import logger


class Stage:
    START = "start"
    DOWNLOAD = "download"
    DOWNLOAD_PROGRESS = "download-progress"
    DOWNLOAD_FAILED = "download-failed"
    DISCOVER = "discover"
    CHECKPOINT = "checkpoint"
    MISSING_CRITICAL = "missing-critical"
    APPLY = "apply"
    APPLY_FILE = "apply-file"
    CLEANUP = "cleanup"
    DONE = "done"
    UPDATE_CHECK = "update-check"
    UPDATE_DOWNLOAD = "update-download"
    UPDATE_EXTRACT = "update-extract"
    UPDATE_BACKUP = "update-backup"
    UPDATE_APPLY = "update-apply"
    UPDATE_DONE = "update-done"


@dataclass
class ProgressEvent:
    stage: str
    current_file: Optional[str] = None
    file_index: Optional[int] = None
    file_count: Optional[int] = None
    downloaded_bytes: Optional[int] = None
    total_bytes: Optional[int] = None
    status: Optional[str] = None

    @property
    def percent(self) -> Optional[float]:
        """Download percentage, or None when the total is unknown."""
        if not self.total_bytes or self.downloaded_bytes is None:
            return None
        return min(100.0, (self.downloaded_bytes / self.total_bytes) * 100.0)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape with camelCase keys and unset fields omitted."""
        keys = {
            "stage": "stage",
            "current_file": "currentFile",
            "file_index": "fileIndex",
            "file_count": "fileCount",
            "downloaded_bytes": "downloadedBytes",
            "total_bytes": "totalBytes",
            "status": "status",
        }
        return {keys[k]: v for k, v in asdict(self).items() if v is not None}


ProgressSink = Callable[[ProgressEvent], None]


def emit_progress(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """
    Deliver an event to the sink, if any.

    A failing sink never interrupts the operation that reports progress.
    """
    if sink is None:
        return
    try:
        sink(event)
    except Exception as e:
        logger.warning(f"Progress sink raised on stage '{event.stage}': {e}")
