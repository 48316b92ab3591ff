class PackLauncherError(Exception):
    """Base exception for launcher errors."""

    pass


class FetchError(PackLauncherError):
    """Raised when a remote resource could not be retrieved."""

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NotFoundError(FetchError):
    """
    Raised when the remote resource does not exist (HTTP 404).
    Never retried.
    """

    pass


class TransportError(FetchError):
    """
    Raised when a network/timeout error or a bad status persisted
    after the buffered retry.
    """

    pass


class ChecksumMismatchError(PackLauncherError):
    """Raised when downloaded content does not match its declared sha256."""

    def __init__(self, name: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {name}: expected {expected}, got {actual}"
        )
        self.name = name
        self.expected = expected
        self.actual = actual


class ManifestError(PackLauncherError):
    """
    Raised when a manifest or modpack index cannot be fetched, decoded,
    or does not contain the requested version.
    """

    pass


class StagingError(PackLauncherError):
    """Raised when the staging directory cannot be created or written."""

    pass


class OperationInProgressError(PackLauncherError):
    """Raised when an install or self-update is already running."""

    pass


class InstallerLaunchError(PackLauncherError):
    """Raised when a platform installer process cannot be spawned."""

    pass


class UpdateError(PackLauncherError):
    """Base exception for self-update errors."""

    pass


class UpdateDownloadError(UpdateError):
    """Raised when no update package could be downloaded."""

    pass


class UpdateExtractionError(UpdateError):
    """Raised when the update package cannot be extracted."""

    pass


class UpdateApplyError(UpdateError):
    """Raised when copying the update over the application fails."""

    pass
