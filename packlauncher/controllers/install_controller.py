"""
Download, reconcile and apply a modpack version into a game installation.

install() downloads every declared file of a version into a fresh staging
directory, adds undeclared assets found in the manifest's repository folders
and writes a checkpoint (meta.json). When critical assets are missing the
staging directory is handed back to the caller, who either applies what was
downloaded (apply_staged) or discards it (cleanup_staging). Otherwise the
staged files are applied right away.

Apply is best-effort: a file that cannot be placed is logged and skipped,
and nothing is rolled back.
"""

import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

import msgspec
from loguru import logger

from packlauncher.controllers.manifest_resolver import (
    resolve_file_url,
    select_version,
    staging_name,
)
from packlauncher.models.install import InstallOutcome, InstallResult, InstallStatus
from packlauncher.models.manifest import DeclaredFile, Manifest, Version
from packlauncher.models.progress import ProgressEvent, ProgressSink, Stage, emit_progress
from packlauncher.models.settings import Settings
from packlauncher.models.staging import (
    FileMeta,
    StagingCheckpoint,
    checkpoint_path,
    read_checkpoint,
    write_checkpoint,
)
from packlauncher.utils.app_info import AppInfo
from packlauncher.utils.constants import (
    CATEGORY_TARGET_DIRS,
    DISCOVERY_FOLDERS,
    DOWNLOAD_TIMEOUT,
    INSTALL_DIR_PLACEHOLDERS,
    INSTALLERS_DIR,
    MODS_DIR,
    RESOURCEPACKS_DIR,
    SHADERPACKS_DIR,
    STAGED_FILES_DIR,
    STAGING_PREFIX,
    Category,
)
from packlauncher.utils.exception import (
    ChecksumMismatchError,
    FetchError,
    ManifestError,
    StagingError,
)
from packlauncher.utils.fetcher import FetchProgress, fetch, fetch_json
from packlauncher.utils.generic import remove_path, rmtree, sanitize_filename, sha256_hex
from packlauncher.utils.operation_guard import INSTALL, OperationGuard, operation_guard
from packlauncher.utils.repo_lister import RepoContext, list_files, repo_context_from_url
from packlauncher.utils.zip_extractor import BadZipFile, extract_zip, find_archive_root


def substitute_install_dir(args: list[str], install_path: Path) -> list[str]:
    """Replace %INSTALL_DIR% style placeholders in installer arguments."""
    substituted = []
    for arg in args:
        for placeholder in INSTALL_DIR_PLACEHOLDERS:
            arg = arg.replace(placeholder, str(install_path))
        substituted.append(arg)
    return substituted


def pending_staging_dirs(staging_root: Optional[Path] = None) -> list[Path]:
    """Staging directories that still hold a checkpoint, oldest first."""
    root = staging_root or AppInfo().staging_root
    if not root.is_dir():
        return []
    return sorted(
        (
            path
            for path in root.glob(f"{STAGING_PREFIX}*")
            if path.is_dir() and checkpoint_path(path).is_file()
        ),
        key=lambda path: path.stat().st_mtime,
    )


class _StagingSession:
    """Bookkeeping for one install run."""

    def __init__(self, staging_dir: Path) -> None:
        self.staging_dir = staging_dir
        self.files_meta: list[FileMeta] = []
        self.missing_installers: list[str] = []
        self.missing_critical: list[str] = []

    def has_staged(self, name: str, category: Category) -> bool:
        return any(
            meta.name == name and meta.category is category for meta in self.files_meta
        )

    def next_tmp_name(self, name: str) -> str:
        """Staging-relative path for the next download, unique within the session."""
        return f"{STAGED_FILES_DIR}/{len(self.files_meta) + 1:03d}_{name}"

    def record_missing(self, name: str, critical: bool) -> None:
        if critical:
            self.missing_critical.append(name)
        else:
            self.missing_installers.append(name)


class InstallController:
    """
    Runs modpack installs into a game installation folder.

    :param settings: optional settings; credentials, timeouts and installed
        markers are taken from it
    :param staging_root: folder under which staging directories are created
    :param guard: process-wide operation guard
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        staging_root: Optional[Path] = None,
        guard: OperationGuard = operation_guard,
    ) -> None:
        self.settings = settings
        self.staging_root = staging_root or AppInfo().staging_root
        self.guard = guard

    # -- entry points ---------------------------------------------------

    def install(
        self,
        manifest_url: str,
        version_id: Optional[str],
        install_path: Path | str,
        credentials: Optional[str] = None,
        selected_installer_name: Optional[str] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> InstallOutcome:
        """
        Download a manifest version and apply it unless critical files are missing.

        :raises ManifestError: if the manifest cannot be loaded or lacks the version
        :raises StagingError: if the staging directory cannot be written
        :raises OperationInProgressError: if another install is running
        """
        install_path = Path(install_path)
        if credentials is None and self.settings is not None:
            credentials = self.settings.effective_github_token

        with self.guard.hold(INSTALL):
            emit_progress(on_progress, ProgressEvent(stage=Stage.START, status=manifest_url))
            manifest = self._load_manifest(manifest_url, credentials)
            version = select_version(manifest, version_id)
            logger.info(
                f"Installing {manifest.display_name} version {version.id} into {install_path}"
            )

            session = _StagingSession(self._create_staging_dir())
            self._download_declared(
                session, version, manifest_url, credentials, on_progress
            )
            self._discover_repo_extras(
                session, version, manifest_url, credentials, on_progress
            )

            checkpoint = StagingCheckpoint(
                manifest_url=manifest_url,
                version_id=version.id,
                files_meta=session.files_meta,
                missing_installers=session.missing_installers,
                missing_critical=session.missing_critical,
                selected_installer_name=selected_installer_name,
            )
            write_checkpoint(session.staging_dir, checkpoint)
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.CHECKPOINT,
                    file_count=len(session.files_meta),
                    status=str(session.staging_dir),
                ),
            )

            if session.missing_critical:
                logger.warning(
                    f"Missing critical files, waiting for a decision: {session.missing_critical}"
                )
                emit_progress(
                    on_progress,
                    ProgressEvent(
                        stage=Stage.MISSING_CRITICAL,
                        file_count=len(session.missing_critical),
                        status=", ".join(session.missing_critical),
                    ),
                )
                return InstallOutcome(
                    status=InstallStatus.MISSING_CRITICAL,
                    staging_dir=session.staging_dir,
                    missing_critical=list(session.missing_critical),
                    missing_installers=list(session.missing_installers),
                )

            result = self._apply(session.staging_dir, install_path, on_progress)
            return InstallOutcome(
                status=InstallStatus.APPLIED,
                staging_dir=session.staging_dir,
                missing_installers=list(result.missing_installers),
                result=result,
            )

    def apply_staged(
        self,
        staging_dir: Path | str,
        install_path: Path | str,
        on_progress: Optional[ProgressSink] = None,
    ) -> InstallResult:
        """
        Apply a staging directory, e.g. after the caller chose to proceed
        despite missing critical files.

        :raises StagingError: if the staging directory has no readable checkpoint
        :raises OperationInProgressError: if another install is running
        """
        with self.guard.hold(INSTALL):
            return self._apply(Path(staging_dir), Path(install_path), on_progress)

    def cleanup_staging(
        self, staging_dir: Path | str, on_progress: Optional[ProgressSink] = None
    ) -> None:
        """Discard a staging directory without applying it."""
        staging_dir = Path(staging_dir)
        logger.info(f"Discarding staging directory {staging_dir}")
        if staging_dir.exists():
            rmtree(staging_dir)
        emit_progress(on_progress, ProgressEvent(stage=Stage.CLEANUP, status=str(staging_dir)))

    # -- download -------------------------------------------------------

    def _load_manifest(self, manifest_url: str, credentials: Optional[str]) -> Manifest:
        try:
            return fetch_json(
                manifest_url,
                type=Manifest,
                credentials=credentials,
                timeout=self._timeout,
            )
        except FetchError as e:
            raise ManifestError(f"Cannot load manifest {manifest_url}: {e}") from e

    @property
    def _timeout(self) -> float:
        if self.settings is not None:
            return self.settings.request_timeout
        return DOWNLOAD_TIMEOUT

    def _create_staging_dir(self) -> Path:
        prefix = f"{STAGING_PREFIX}{int(time.time() * 1000)}_"
        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
            staging_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=self.staging_root))
        except OSError as e:
            raise StagingError(
                f"Cannot create staging directory in {self.staging_root}: {e}"
            ) from e
        logger.debug(f"Created staging directory {staging_dir}")
        return staging_dir

    def _download_declared(
        self,
        session: _StagingSession,
        version: Version,
        manifest_url: str,
        credentials: Optional[str],
        on_progress: Optional[ProgressSink],
    ) -> None:
        context = repo_context_from_url(manifest_url)
        file_count = len(version.files)
        for index, declared in enumerate(version.files, start=1):
            category = declared.kind
            label = self._declared_label(declared)
            url = resolve_file_url(declared, manifest_url, context)
            if url is None:
                logger.warning(f"Manifest entry {label} declares no url, path or file")
                session.record_missing(label, category.is_critical)
                continue
            try:
                name = staging_name(declared, url)
            except ManifestError as e:
                logger.warning(str(e))
                session.record_missing(label, category.is_critical)
                continue
            if session.has_staged(name, category):
                logger.warning(f"Skipping duplicate declared {category.value} file {name}")
                continue

            self._stage_file(
                session,
                name=name,
                url=url,
                category=category,
                credentials=credentials,
                expected_sha256=declared.expected_sha256,
                installer_args=list(declared.installer_args),
                original=_declared_original(declared),
                critical=category.is_critical,
                file_index=index,
                file_count=file_count,
                on_progress=on_progress,
            )

    def _discover_repo_extras(
        self,
        session: _StagingSession,
        version: Version,
        manifest_url: str,
        credentials: Optional[str],
        on_progress: Optional[ProgressSink],
    ) -> None:
        context = repo_context_from_url(manifest_url)
        if context is None:
            logger.debug(f"No repository context for {manifest_url}, skipping discovery")
            return

        claimed = {declared.kind for declared in version.files}
        for category, folder in DISCOVERY_FOLDERS.items():
            if category is not Category.INSTALLER and category in claimed:
                logger.debug(f"Manifest declares {category.value}, not probing {folder}")
                continue
            self._discover_folder(
                session, context, category, folder, credentials, on_progress
            )

    def _discover_folder(
        self,
        session: _StagingSession,
        context: RepoContext,
        category: Category,
        folder: str,
        credentials: Optional[str],
        on_progress: Optional[ProgressSink],
    ) -> None:
        folder_path = context.folder(folder)
        emit_progress(on_progress, ProgressEvent(stage=Stage.DISCOVER, status=folder_path))
        listing = list_files(
            context.owner, context.repo, folder_path, credentials=credentials, ref=context.ref
        )
        for index, repo_file in enumerate(listing, start=1):
            name = sanitize_filename(repo_file.name)
            if not name or session.has_staged(name, category):
                continue
            logger.info(f"Discovered {name} in {context.org_repo}/{folder_path}")
            self._stage_file(
                session,
                name=name,
                url=repo_file.download_url,
                category=category,
                credentials=credentials,
                expected_sha256=None,
                installer_args=[],
                original={"name": repo_file.name, "download_url": repo_file.download_url},
                critical=category is Category.MOD,
                file_index=index,
                file_count=len(listing),
                on_progress=on_progress,
            )

    def _stage_file(
        self,
        session: _StagingSession,
        name: str,
        url: str,
        category: Category,
        credentials: Optional[str],
        expected_sha256: Optional[str],
        installer_args: list[str],
        original: dict[str, Any],
        critical: bool,
        file_index: int,
        file_count: int,
        on_progress: Optional[ProgressSink],
    ) -> None:
        """
        Download one file into the staging directory and record it.

        Acquisition failures are recorded as missing; only a failure to write
        the staging directory propagates.
        """
        emit_progress(
            on_progress,
            ProgressEvent(
                stage=Stage.DOWNLOAD,
                current_file=name,
                file_index=file_index,
                file_count=file_count,
            ),
        )

        def report(progress: FetchProgress) -> None:
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.DOWNLOAD_PROGRESS,
                    current_file=name,
                    file_index=file_index,
                    file_count=file_count,
                    downloaded_bytes=progress.received_bytes,
                    total_bytes=progress.total_bytes,
                ),
            )

        try:
            content = fetch(url, credentials=credentials, on_progress=report, timeout=self._timeout)
            if expected_sha256:
                actual = sha256_hex(content)
                if actual != expected_sha256:
                    raise ChecksumMismatchError(name, expected_sha256, actual)
        except (FetchError, ChecksumMismatchError) as e:
            logger.error(f"Failed to acquire {name} ({category.value}) from {url}: {e}")
            session.record_missing(name, critical)
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.DOWNLOAD_FAILED,
                    current_file=name,
                    file_index=file_index,
                    file_count=file_count,
                    status=str(e),
                ),
            )
            return

        tmp_name = session.next_tmp_name(name)
        target = session.staging_dir / tmp_name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise StagingError(f"Cannot write {target}: {e}") from e

        session.files_meta.append(
            FileMeta(
                name=name,
                category=category,
                tmp_name=tmp_name,
                resolved_url=url,
                installer_args=installer_args,
                original=original,
                sha256=expected_sha256,
            )
        )
        logger.debug(f"Staged {name} ({len(content)} bytes)")

    @staticmethod
    def _declared_label(declared: DeclaredFile) -> str:
        return declared.name or declared.source or "<unnamed>"

    # -- apply ----------------------------------------------------------

    def _apply(
        self,
        staging_dir: Path,
        install_path: Path,
        on_progress: Optional[ProgressSink],
    ) -> InstallResult:
        checkpoint = read_checkpoint(staging_dir)
        emit_progress(
            on_progress,
            ProgressEvent(
                stage=Stage.APPLY,
                file_count=len(checkpoint.files_meta),
                status=str(install_path),
            ),
        )

        for folder in (MODS_DIR, SHADERPACKS_DIR, RESOURCEPACKS_DIR, INSTALLERS_DIR):
            (install_path / folder).mkdir(parents=True, exist_ok=True)
        self._clear_mods(install_path / MODS_DIR)

        selected = (checkpoint.selected_installer_name or "").lower()
        result = InstallResult(missing_installers=list(checkpoint.missing_installers))
        file_count = len(checkpoint.files_meta)

        for index, meta in enumerate(checkpoint.files_meta, start=1):
            emit_progress(
                on_progress,
                ProgressEvent(
                    stage=Stage.APPLY_FILE,
                    current_file=meta.name,
                    file_index=index,
                    file_count=file_count,
                ),
            )
            staged = staging_dir / meta.tmp_name
            if not staged.exists():
                logger.warning(f"Staged file {staged} is gone, skipping {meta.name}")
                continue
            try:
                placed = self._apply_file(staged, meta, install_path, staging_dir)
            except (OSError, shutil.Error, BadZipFile) as e:
                logger.error(f"Failed to apply {meta.name} ({meta.category.value}): {e}")
                continue
            result.applied.extend(placed)

            if (
                meta.category is Category.INSTALLER
                and selected
                and meta.name.lower() == selected
                and placed
            ):
                result.installer_path = placed[0]
                result.installer_args = substitute_install_dir(
                    meta.installer_args, install_path
                )
                logger.info(f"Selected installer placed at {result.installer_path}")

        if selected and result.installer_path is None:
            logger.warning(
                f"Selected installer {checkpoint.selected_installer_name} was not staged"
            )

        logger.info(f"Removing staging directory {staging_dir}")
        rmtree(staging_dir)
        emit_progress(on_progress, ProgressEvent(stage=Stage.CLEANUP, status=str(staging_dir)))

        if self.settings is not None:
            self.settings.mark_installed(checkpoint.manifest_url, checkpoint.version_id)

        emit_progress(
            on_progress,
            ProgressEvent(stage=Stage.DONE, file_count=len(result.applied), status="ok"),
        )
        logger.info(
            f"Applied {len(result.applied)} files to {install_path}; "
            f"missing installers: {result.missing_installers}"
        )
        return result

    @staticmethod
    def _clear_mods(mods_dir: Path) -> None:
        entries = list(mods_dir.iterdir())
        logger.warning(f"Clearing {len(entries)} entries from {mods_dir}")
        for entry in entries:
            try:
                remove_path(entry)
            except OSError as e:
                logger.error(f"Failed to remove {entry}: {e}")

    def _apply_file(
        self, staged: Path, meta: FileMeta, install_path: Path, staging_dir: Path
    ) -> list[Path]:
        """
        Place one staged file and return the paths it produced.

        The staged file is copied, never moved, so the staging directory can
        be applied again until it is deleted.
        """
        category = meta.category
        target_dir = install_path / CATEGORY_TARGET_DIRS[category]

        if category is Category.MOD and staged.suffix.lower() == ".zip":
            return self._apply_mods_archive(staged, target_dir, staging_dir)

        destination = target_dir / meta.name
        if category in (Category.SHADER, Category.RESOURCEPACK):
            if destination.exists():
                logger.info(f"{destination} already exists, discarding the downloaded copy")
                return []
        elif category is Category.UNCLASSIFIED:
            logger.warning(
                f"{meta.name} has no known category, placing it in {INSTALLERS_DIR}"
            )

        _copy_replace(staged, destination)
        logger.debug(f"Placed {meta.name} at {destination}")
        return [destination]

    @staticmethod
    def _apply_mods_archive(archive: Path, mods_dir: Path, staging_dir: Path) -> list[Path]:
        scratch = Path(tempfile.mkdtemp(prefix="extract_", dir=staging_dir))
        try:
            extract_zip(archive, scratch)
            source_root = find_archive_root(scratch, MODS_DIR)
            placed = []
            for entry in source_root.iterdir():
                destination = mods_dir / entry.name
                _copy_replace(entry, destination)
                placed.append(destination)
            logger.info(f"Copied {len(placed)} entries from {archive.name} into {mods_dir}")
            return placed
        finally:
            shutil.rmtree(scratch, ignore_errors=True)


def _copy_replace(source: Path, destination: Path) -> None:
    if destination.exists() or destination.is_symlink():
        if destination.is_dir() and not source.is_dir():
            remove_path(destination)
        elif source.is_dir() and not destination.is_dir():
            remove_path(destination)
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


def _declared_original(declared: DeclaredFile) -> dict[str, Any]:
    return msgspec.to_builtins(declared)
