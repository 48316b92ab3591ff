"""
Manifest loading and declared-file resolution.

A manifest lives in a repository and refers to its files either by absolute
URL or relative to its own location. Relative references and the
{{ORG_REPO}} placeholder are resolved against the manifest URL.
"""

from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urljoin

from loguru import logger

from packlauncher.models.manifest import DeclaredFile, Manifest, Version
from packlauncher.utils.constants import (
    MANIFEST_BRANCHES,
    ORG_REPO_PLACEHOLDERS,
    PREFERRED_INSTALLER_PATTERNS,
    Category,
)
from packlauncher.utils.exception import FetchError, ManifestError
from packlauncher.utils.fetcher import fetch_json
from packlauncher.utils.generic import has_scheme, sanitize_filename, url_basename
from packlauncher.utils.json_utils import decode_lenient
from packlauncher.utils.repo_lister import RepoContext, repo_context_from_url


def substitute_org_repo(raw: str, context: Optional[RepoContext]) -> str:
    """Replace every ORG_REPO placeholder with owner/repo of the context."""
    if context is None:
        return raw
    for placeholder in ORG_REPO_PLACEHOLDERS:
        raw = raw.replace(placeholder, context.org_repo)
    return raw


def resolve_file_url(
    declared: DeclaredFile,
    manifest_url: str,
    context: Optional[RepoContext] = None,
) -> Optional[str]:
    """
    Absolute download URL of a declared file.

    :param declared: the manifest entry
    :param manifest_url: URL the manifest was loaded from
    :param context: repository context of manifest_url, derived when omitted
    :return: the URL, or None when the entry declares no location
    """
    raw = declared.source
    if not raw:
        return None
    if context is None:
        context = repo_context_from_url(manifest_url)
    if any(placeholder in raw for placeholder in ORG_REPO_PLACEHOLDERS):
        if context is None:
            logger.warning(
                f"Cannot substitute ORG_REPO in {raw}: {manifest_url} has no repository context"
            )
        raw = substitute_org_repo(raw, context)
    if has_scheme(raw):
        return raw
    return urljoin(manifest_url, raw)


def staging_name(declared: DeclaredFile, resolved_url: str) -> str:
    """
    File name used in the staging directory and the install directory.

    The declared name wins over the URL basename. Path separators and
    forbidden characters are stripped so the name stays inside its folder.
    """
    candidate = declared.name or url_basename(resolved_url)
    # Only the last path component of a declared name is kept
    candidate = candidate.replace("\\", "/").rsplit("/", 1)[-1]
    name = sanitize_filename(candidate)
    if not name:
        raise ManifestError(f"Cannot derive a file name for {resolved_url}")
    return name


def manifest_candidate_urls(manifest_path: str, raw_base: str) -> list[str]:
    """Remote URLs tried for a manifest path, in order."""
    if has_scheme(manifest_path):
        return [manifest_path]
    relative = manifest_path.lstrip("/")
    return [f"{raw_base.rstrip('/')}/{branch}/{relative}" for branch in MANIFEST_BRANCHES]


def load_manifest(
    manifest_path: str,
    raw_base: str,
    credentials: Optional[str] = None,
    local_root: Optional[Path] = None,
) -> tuple[Manifest, str]:
    """
    Load a manifest, trying the main branch, then master, then a local copy.

    :param manifest_path: path inside the modpack repository, or an absolute URL
    :param raw_base: raw-content URL of the repository, without branch
    :param credentials: optional GitHub token
    :param local_root: folder holding local fallbacks (the application folder)
    :return: the manifest and the location it was loaded from
    :raises ManifestError: if no location yields a valid manifest
    """
    tried: list[str] = []
    for url in manifest_candidate_urls(manifest_path, raw_base):
        tried.append(url)
        try:
            manifest = fetch_json(url, type=Manifest, credentials=credentials)
        except (FetchError, ManifestError) as e:
            logger.warning(f"Could not load manifest from {url}: {e}")
            continue
        logger.info(f"Manifest {manifest.display_name} loaded from {url}")
        return manifest, url

    if local_root is not None and not has_scheme(manifest_path):
        local_file = local_root / manifest_path.lstrip("/")
        tried.append(str(local_file))
        if local_file.is_file():
            manifest = decode_lenient(
                local_file.read_bytes(), type=Manifest, source=str(local_file)
            )
            logger.info(f"Manifest {manifest.display_name} loaded from {local_file}")
            return manifest, local_file.resolve().as_uri()

    raise ManifestError(f"No manifest found at any of: {', '.join(tried)}")


def select_version(manifest: Manifest, version_id: Optional[str] = None) -> Version:
    """
    The requested version, else the recommended one, else the first.

    :raises ManifestError: if the manifest has no versions or lacks version_id
    """
    if not manifest.versions:
        raise ManifestError(f"Manifest {manifest.display_name} declares no versions")
    if version_id:
        version = manifest.get_version(version_id)
        if version is None:
            raise ManifestError(
                f"Version {version_id} not found in manifest {manifest.display_name}"
            )
        return version
    if manifest.recommended:
        version = manifest.get_version(manifest.recommended)
        if version is not None:
            return version
        logger.warning(
            f"Recommended version {manifest.recommended} is not declared, using the first version"
        )
    return manifest.versions[0]


def preferred_installer(names: Iterable[str]) -> Optional[str]:
    """First name matching forge, else fabric, else the first name."""
    candidates = list(names)
    if not candidates:
        return None
    for pattern in PREFERRED_INSTALLER_PATTERNS:
        for name in candidates:
            if pattern in name.lower():
                return name
    return candidates[0]


def declared_installer_names(version: Version) -> list[str]:
    """Names of the installer entries a version declares."""
    names = []
    for declared in version.files:
        if declared.kind is not Category.INSTALLER:
            continue
        name = declared.name or (url_basename(declared.source) if declared.source else "")
        if name:
            names.append(name)
    return names
