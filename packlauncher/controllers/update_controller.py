"""
Self-update of the launcher's own application folder.

The remote repository publishes launcher-version.json. When it names a newer
version, an update package is downloaded, extracted and normalized so that
the application files sit at the root of the extraction folder. Applying the
update backs up the application folder, copies the package over it and
finally rewrites app_version.json.

Apply has no rollback: on failure the backup is left for manual recovery.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import msgspec
from loguru import logger

from packlauncher.models.progress import ProgressEvent, ProgressSink, Stage, emit_progress
from packlauncher.models.settings import DISABLE_UPDATER_ENV, Settings
from packlauncher.models.update import (
    REASON_DISABLED,
    REASON_NO_REMOTE,
    REASON_NO_REMOTE_VERSION,
    REASON_NO_ZIP,
    REASON_ZIP_DOWNLOAD_FAILED,
    REASON_ZIP_EXTRACT_FAILED,
    ApplyUpdateResult,
    AppVersionMarker,
    RemoteVersionInfo,
    UpdateCheckResult,
    UpdateStatus,
)
from packlauncher.utils.app_info import AppInfo, read_version_marker
from packlauncher.utils.constants import (
    APP_VERSION_FILENAME,
    BACKUP_PREFIX,
    DEFAULT_REPO_BRANCH,
    DEFAULT_REPO_NAME,
    DEFAULT_REPO_OWNER,
    DOWNLOAD_TIMEOUT,
    GITHUB_RAW_BASE,
    GITHUB_WEB_BASE,
    REMOTE_VERSION_FILENAME,
    UPDATE_PRESERVE_NAMES,
    USER_VERSION_FILENAME,
)
from packlauncher.utils.exception import (
    FetchError,
    ManifestError,
    UpdateApplyError,
    UpdateDownloadError,
    UpdateExtractionError,
)
from packlauncher.utils.fetcher import FetchProgress, fetch, fetch_json
from packlauncher.utils.generic import has_scheme, timestamp_slug, url_basename
from packlauncher.utils.operation_guard import SELF_UPDATE, OperationGuard, operation_guard
from packlauncher.utils.versioning import is_newer
from packlauncher.utils.zip_extractor import (
    BadZipFile,
    extract_zip,
    list_tree,
    validate_zip_integrity,
)

UPDATE_TMP_PREFIX = "packlauncher_update_"
EXTRACTED_DIRNAME = "extracted"
WRITE_TEST_FILENAME = ".packlauncher_write_test.tmp"


def get_local_version(app_root: Path, user_data: Path) -> Optional[str]:
    """
    Installed version from app_root/app_version.json, else
    user_data/launcher-version.json, else None.
    """
    return read_version_marker(app_root / APP_VERSION_FILENAME) or read_version_marker(
        user_data / USER_VERSION_FILENAME
    )


def normalize_extracted_structure(extract_path: Path) -> Path:
    """
    Promote the contents of a lone top-level directory to extract_path.

    Repository archives nest everything under "{repo}-{branch}/". The
    unwrapping repeats while the root holds exactly one directory.

    Raises:
        UpdateExtractionError: If nothing was extracted
    """
    if not extract_path.is_dir():
        raise UpdateExtractionError(f"Extracted path does not exist: {extract_path}")

    children = list(extract_path.iterdir())
    if not children:
        raise UpdateExtractionError("No files extracted from update package")

    while len(children) == 1 and children[0].is_dir():
        wrapper = children[0]
        logger.debug(f"Unwrapping '{wrapper.name}' in {extract_path}")
        # Renamed first so an inner entry with the wrapper's name cannot collide
        parked = wrapper.rename(extract_path / f".unwrap_{os.getpid()}_{wrapper.name}")
        for item in list(parked.iterdir()):
            shutil.move(str(item), str(extract_path / item.name))
        parked.rmdir()
        children = list(extract_path.iterdir())
        if not children:
            raise UpdateExtractionError("Update package contains only empty folders")

    logger.debug(f"Normalized update root: {[c.name for c in children]}")
    return extract_path


def is_protected(relative: str) -> bool:
    """True for preserved names and anything nested under them."""
    return any(
        relative == name or relative.startswith(f"{name}/")
        for name in UPDATE_PRESERVE_NAMES
    )


def is_version_marker(relative: str) -> bool:
    return relative.lower() == APP_VERSION_FILENAME.lower()


class UpdateController:
    """
    Checks for and applies launcher self-updates.

    :param settings: optional settings providing the repository coordinates,
        token, timeout and backup retention
    :param app_root: application folder to update
    :param user_data: folder holding the fallback launcher-version.json
    :param backup_root: folder receiving Backup_<timestamp> snapshots
    :param tmp_root: folder under which update downloads are extracted
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        app_root: Optional[Path] = None,
        user_data: Optional[Path] = None,
        backup_root: Optional[Path] = None,
        tmp_root: Optional[Path] = None,
        guard: OperationGuard = operation_guard,
    ) -> None:
        self.settings = settings
        self.app_root = app_root or AppInfo().application_folder
        self.user_data = user_data or AppInfo().app_storage_folder
        self.backup_root = backup_root or AppInfo().backup_folder
        self.tmp_root = tmp_root or Path(tempfile.gettempdir())
        self.guard = guard

        if settings is not None:
            self.owner = settings.launcher_repo_owner
            self.repo = settings.launcher_repo_name
            self.branch = settings.launcher_repo_branch
        else:
            self.owner = DEFAULT_REPO_OWNER
            self.repo = DEFAULT_REPO_NAME
            self.branch = DEFAULT_REPO_BRANCH

    @property
    def raw_base(self) -> str:
        return f"{GITHUB_RAW_BASE}/{self.owner}/{self.repo}/{self.branch}"

    @property
    def remote_version_url(self) -> str:
        return f"{self.raw_base}/{REMOTE_VERSION_FILENAME}"

    @property
    def repository_url(self) -> str:
        """Page users are sent to when an update has to be fetched manually."""
        return f"{GITHUB_WEB_BASE}/{self.owner}/{self.repo}"

    @property
    def _credentials(self) -> Optional[str]:
        if self.settings is not None:
            return self.settings.effective_github_token
        return None

    @property
    def _timeout(self) -> float:
        if self.settings is not None:
            return self.settings.request_timeout
        return DOWNLOAD_TIMEOUT

    @property
    def disabled(self) -> bool:
        return bool(os.getenv(DISABLE_UPDATER_ENV))

    # -- check ----------------------------------------------------------

    def package_candidates(self, remote: RemoteVersionInfo) -> list[str]:
        """
        Update package URLs, in the order they are tried.

        An explicit release_zip wins. Otherwise the branch archive, then
        release assets guessed from the version tag, with and without "v".
        """
        if remote.release_zip:
            release_zip = remote.release_zip.strip()
            if has_scheme(release_zip):
                return [release_zip]
            return [f"{self.raw_base}/{release_zip.lstrip('/')}"]

        if not self.owner or not self.repo:
            return []

        candidates = []
        if self.branch:
            candidates.append(
                f"{GITHUB_WEB_BASE}/{self.owner}/{self.repo}/archive/refs/heads/{quote(self.branch)}.zip"
            )
        if remote.version:
            for tag in (f"v{remote.version}", remote.version):
                candidates.append(
                    f"{GITHUB_WEB_BASE}/{self.owner}/{self.repo}/releases/download/"
                    f"{quote(tag)}/{self.repo}-{quote(remote.version)}.zip"
                )
        return candidates

    def check_for_update(
        self,
        app_root: Optional[Path] = None,
        user_data: Optional[Path] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> UpdateCheckResult:
        """
        Compare versions and, when newer, download and extract the update.

        Every outcome is reported through the result's status and reason.

        :raises OperationInProgressError: if a self-update is already running
        """
        with self.guard.hold(SELF_UPDATE):
            return self._check_for_update(
                app_root or self.app_root, user_data or self.user_data, on_progress
            )

    def _check_for_update(
        self,
        app_root: Path,
        user_data: Path,
        on_progress: Optional[ProgressSink],
    ) -> UpdateCheckResult:
        if self.disabled:
            logger.info(f"Update check disabled by {DISABLE_UPDATER_ENV}")
            return UpdateCheckResult(status=UpdateStatus.NO_UPDATE, reason=REASON_DISABLED)

        emit_progress(on_progress, ProgressEvent(stage=Stage.UPDATE_CHECK))
        local_version = get_local_version(app_root, user_data)
        logger.info(f"Local launcher version: {local_version}")

        try:
            remote = fetch_json(
                self.remote_version_url,
                type=RemoteVersionInfo,
                credentials=self._credentials,
                timeout=self._timeout,
            )
        except (FetchError, ManifestError) as e:
            logger.warning(f"Could not fetch {self.remote_version_url}: {e}")
            return UpdateCheckResult(
                status=UpdateStatus.NO_UPDATE,
                local_version=local_version,
                reason=REASON_NO_REMOTE,
                error=str(e),
            )

        if not remote.version:
            logger.warning(f"{self.remote_version_url} does not name a version")
            return UpdateCheckResult(
                status=UpdateStatus.NO_UPDATE,
                local_version=local_version,
                reason=REASON_NO_REMOTE_VERSION,
            )

        result = UpdateCheckResult(
            status=UpdateStatus.NO_UPDATE,
            local_version=local_version,
            remote_version=remote.version,
            release_date=remote.release_date,
        )
        if not is_newer(remote.version, local_version):
            logger.info(f"Launcher is up to date (remote {remote.version})")
            return result

        logger.info(f"Launcher update available: {local_version} -> {remote.version}")
        candidates = self.package_candidates(remote)
        if not candidates:
            logger.warning("No update package URL could be built")
            result.status = UpdateStatus.NO_PACKAGE
            result.reason = REASON_NO_ZIP
            return result

        result.tmp_base = self._create_temp_dir()
        try:
            result.package_url, result.tmp_zip_path = self._download_package(
                candidates, result.tmp_base, on_progress
            )
        except UpdateDownloadError as e:
            logger.error(f"Update download failed: {e}")
            result.status = UpdateStatus.DOWNLOAD_FAILED
            result.reason = REASON_ZIP_DOWNLOAD_FAILED
            result.error = str(e)
            return result

        try:
            result.extracted_dir = self._extract_package(
                result.tmp_zip_path, result.tmp_base, on_progress
            )
        except UpdateExtractionError as e:
            logger.error(f"Update extraction failed: {e}")
            result.status = UpdateStatus.EXTRACT_FAILED
            result.reason = REASON_ZIP_EXTRACT_FAILED
            result.error = str(e)
            return result

        result.status = UpdateStatus.READY
        return result

    def _create_temp_dir(self) -> Path:
        self.tmp_root.mkdir(parents=True, exist_ok=True)
        return Path(
            tempfile.mkdtemp(prefix=f"{UPDATE_TMP_PREFIX}{timestamp_slug()}_", dir=self.tmp_root)
        )

    def _download_package(
        self,
        candidates: list[str],
        tmp_base: Path,
        on_progress: Optional[ProgressSink],
    ) -> tuple[str, Path]:
        """
        Download the first candidate that succeeds.

        Raises:
            UpdateDownloadError: If every candidate fails
        """
        errors = []
        for index, url in enumerate(candidates, start=1):
            name = url_basename(url) or "update.zip"

            def report(progress: FetchProgress) -> None:
                emit_progress(
                    on_progress,
                    ProgressEvent(
                        stage=Stage.UPDATE_DOWNLOAD,
                        current_file=name,
                        file_index=index,
                        file_count=len(candidates),
                        downloaded_bytes=progress.received_bytes,
                        total_bytes=progress.total_bytes,
                    ),
                )

            logger.info(f"Downloading update package from {url}")
            try:
                content = fetch(
                    url,
                    credentials=self._credentials,
                    on_progress=report,
                    timeout=self._timeout,
                )
            except FetchError as e:
                logger.warning(f"Update package not available at {url}: {e}")
                errors.append(f"{url}: {e}")
                continue

            zip_path = tmp_base / name
            try:
                zip_path.write_bytes(content)
            except OSError as e:
                raise UpdateDownloadError(f"Cannot write {zip_path}: {e}") from e
            logger.info(f"Downloaded update package ({len(content)} bytes) to {zip_path}")
            return url, zip_path

        raise UpdateDownloadError("; ".join(errors) or "no candidates")

    def _extract_package(
        self,
        zip_path: Path,
        tmp_base: Path,
        on_progress: Optional[ProgressSink],
    ) -> Path:
        """
        Raises:
            UpdateExtractionError: If the package is invalid or cannot be extracted
        """
        is_valid, error = validate_zip_integrity(zip_path)
        if not is_valid:
            raise UpdateExtractionError(error)

        extract_path = tmp_base / EXTRACTED_DIRNAME

        def report(current: int, total: int) -> None:
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.UPDATE_EXTRACT,
                    current_file=zip_path.name,
                    file_index=current,
                    file_count=total,
                ),
            )

        try:
            extract_zip(zip_path, extract_path, progress_callback=report)
        except (BadZipFile, OSError) as e:
            raise UpdateExtractionError(f"Failed to extract {zip_path}: {e}") from e
        return normalize_extracted_structure(extract_path)

    # -- apply ----------------------------------------------------------

    def apply_update(
        self,
        extracted_dir: Path,
        target_dir: Optional[Path] = None,
        remote_version: Optional[str] = None,
        remove_obsolete: Optional[bool] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> ApplyUpdateResult:
        """
        Copy an extracted update over the application folder.

        :param extracted_dir: normalized extraction folder
        :param target_dir: application folder, defaults to app_root
        :param remote_version: version written to app_version.json afterwards
        :param remove_obsolete: delete files absent from the update, defaults
            to the remove_obsolete_on_update setting
        :raises OperationInProgressError: if a self-update is already running
        """
        with self.guard.hold(SELF_UPDATE):
            return self._apply_update(
                Path(extracted_dir),
                Path(target_dir) if target_dir else self.app_root,
                remote_version,
                self._remove_obsolete_default() if remove_obsolete is None else remove_obsolete,
                on_progress,
            )

    def _remove_obsolete_default(self) -> bool:
        return bool(self.settings and self.settings.remove_obsolete_on_update)

    def _apply_update(
        self,
        extracted_dir: Path,
        target_dir: Path,
        remote_version: Optional[str],
        remove_obsolete: bool,
        on_progress: Optional[ProgressSink],
    ) -> ApplyUpdateResult:
        if not self.test_write_access(target_dir):
            return ApplyUpdateResult(
                ok=False, error=f"No write access to {target_dir}"
            )

        emit_progress(on_progress, ProgressEvent(stage=Stage.UPDATE_BACKUP, status=str(target_dir)))
        backup_dir = self.create_backup(target_dir)
        result = ApplyUpdateResult(ok=False, backup_dir=backup_dir)

        files = list_tree(extracted_dir)
        package_paths = {path.as_posix() for path in files}
        logger.info(f"Applying {len(files)} update files to {target_dir}")
        try:
            self._copy_package(extracted_dir, files, target_dir, result, on_progress)
        except UpdateApplyError as e:
            logger.error(f"Update of {target_dir} stopped: {e}")
            result.error = str(e)
            if backup_dir is not None:
                logger.warning(f"Application backup kept at {backup_dir}")
            return result

        if remote_version:
            result.wrote_version_file = self.write_version_marker(target_dir, remote_version)

        if remove_obsolete:
            result.removed_files = self.remove_obsolete_files(target_dir, package_paths)

        if self.settings is not None:
            self.cleanup_old_backups(self.settings.max_backups)

        result.ok = True
        emit_progress(
            on_progress,
            ProgressEvent(stage=Stage.UPDATE_DONE, file_count=result.copied_files, status="ok"),
        )
        logger.info(
            f"Update applied: {result.copied_files} copied, {result.removed_files} removed, "
            f"marker written: {result.wrote_version_file}"
        )
        return result

    @staticmethod
    def _copy_package(
        extracted_dir: Path,
        files: list[Path],
        target_dir: Path,
        result: ApplyUpdateResult,
        on_progress: Optional[ProgressSink],
    ) -> None:
        """
        Copy every package file except the version marker over target_dir.

        Raises:
            UpdateApplyError: On the first file that cannot be copied
        """
        for index, relative in enumerate(files, start=1):
            if is_version_marker(relative.as_posix()):
                logger.debug(f"Not copying {relative}, the marker is written last")
                continue
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.UPDATE_APPLY,
                    current_file=relative.as_posix(),
                    file_index=index,
                    file_count=len(files),
                ),
            )
            destination = target_dir / relative
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(extracted_dir / relative, destination)
            except OSError as e:
                raise UpdateApplyError(f"Failed to copy {relative}: {e}") from e
            result.copied_files += 1

    @staticmethod
    def test_write_access(target_dir: Path) -> bool:
        """Test if write access is available in the application folder."""
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            test_file = target_dir / WRITE_TEST_FILENAME
            test_file.write_text("test")
            test_file.unlink()
            return True
        except OSError as write_err:
            logger.error(f"Write access test failed for {target_dir}: {write_err}")
            return False

    def create_backup(self, target_dir: Path) -> Optional[Path]:
        """
        Copy the application folder to backup_root/Backup_<timestamp>.

        Failure only logs a warning.
        """
        backup_dir = self.backup_root / f"{BACKUP_PREFIX}{timestamp_slug()}"
        suffix = 1
        while backup_dir.exists():
            backup_dir = self.backup_root / f"{BACKUP_PREFIX}{timestamp_slug()}_{suffix}"
            suffix += 1

        # Never copy the backup folder into itself
        ignore = None
        try:
            backup_relative = self.backup_root.resolve().relative_to(target_dir.resolve())
            top_level = backup_relative.parts[0] if backup_relative.parts else None
            if top_level:
                ignore = shutil.ignore_patterns(top_level)
        except ValueError:
            pass

        logger.info(f"Backing up {target_dir} to {backup_dir}")
        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
            shutil.copytree(target_dir, backup_dir, symlinks=True, ignore=ignore)
        except (OSError, shutil.Error) as e:
            logger.warning(f"Backup of {target_dir} failed, continuing without it: {e}")
            return None
        return backup_dir

    @staticmethod
    def write_version_marker(target_dir: Path, version: str) -> bool:
        marker = target_dir / APP_VERSION_FILENAME
        try:
            marker.write_bytes(
                msgspec.json.format(
                    msgspec.json.encode(AppVersionMarker(version=str(version))), indent=2
                )
            )
        except OSError as e:
            logger.warning(f"Failed to write {marker}: {e}")
            return False
        logger.info(f"Wrote {marker} with version {version}")
        return True

    @staticmethod
    def remove_obsolete_files(target_dir: Path, package_paths: set[str]) -> int:
        """
        Delete files of target_dir that the update package does not contain.

        Preserved names and everything under them are kept. Folders left
        empty are removed afterwards.
        """
        removed = 0
        for relative in list_tree(target_dir):
            key = relative.as_posix()
            if key in package_paths or is_protected(key):
                continue
            try:
                (target_dir / relative).unlink()
                removed += 1
                logger.debug(f"Removed obsolete file {key}")
            except OSError as e:
                logger.warning(f"Failed to remove obsolete file {key}: {e}")

        for dirpath, _dirnames, _filenames in os.walk(target_dir, topdown=False):
            directory = Path(dirpath)
            if directory == target_dir:
                continue
            if is_protected(directory.relative_to(target_dir).as_posix()):
                continue
            try:
                if not any(directory.iterdir()):
                    directory.rmdir()
            except OSError as e:
                logger.debug(f"Could not prune {directory}: {e}")

        logger.info(f"Removed {removed} obsolete files from {target_dir}")
        return removed

    def cleanup_old_backups(self, keep: int) -> int:
        """
        Clean up old backups, keeping only the most recent ``keep``.

        :param keep: number of snapshots to keep, -1 keeps all
        :return: number of snapshots removed
        """
        if keep < 0:
            return 0
        try:
            backups = sorted(
                (p for p in self.backup_root.glob(f"{BACKUP_PREFIX}*") if p.is_dir()),
                key=lambda p: p.name,
                reverse=True,
            )
        except OSError as e:
            logger.warning(f"Failed to list backups in {self.backup_root}: {e}")
            return 0

        if len(backups) <= keep:
            logger.debug(f"Backup count ({len(backups)}) is within limit ({keep})")
            return 0

        removed = 0
        for backup in backups[keep:]:
            try:
                shutil.rmtree(backup)
                removed += 1
                logger.info(f"Removed old backup: {backup.name}")
            except OSError as e:
                logger.warning(f"Failed to remove old backup {backup.name}: {e}")
        return removed

    @staticmethod
    def cleanup_temp(result: UpdateCheckResult) -> None:
        """Remove the download folder of a check result."""
        if result.tmp_base is not None and result.tmp_base.exists():
            shutil.rmtree(result.tmp_base, ignore_errors=True)

    # -- combined -------------------------------------------------------

    def self_update(
        self,
        remove_obsolete: Optional[bool] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> tuple[UpdateCheckResult, Optional[ApplyUpdateResult]]:
        """
        Check, download and apply an update to app_root in one go.

        Relaunching the application afterwards is up to the caller.
        """
        with self.guard.hold(SELF_UPDATE):
            check = self._check_for_update(self.app_root, self.user_data, on_progress)
            if not check.ready_to_apply or check.extracted_dir is None:
                self.cleanup_temp(check)
                return check, None
            extracted_dir = check.extracted_dir
            try:
                applied = self._apply_update(
                    extracted_dir,
                    self.app_root,
                    check.remote_version,
                    self._remove_obsolete_default() if remove_obsolete is None else remove_obsolete,
                    on_progress,
                )
            finally:
                self.cleanup_temp(check)
            check.status = UpdateStatus.APPLIED if applied.ok else UpdateStatus.APPLY_FAILED
            return check, applied

