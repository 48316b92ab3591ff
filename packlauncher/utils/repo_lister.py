"""
Repository directory listing through the GitHub contents API.

Listing is best-effort: any failure yields an empty list so that asset
discovery can never abort an install.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlparse

import requests
from loguru import logger

from packlauncher.utils.constants import (
    API_TIMEOUT,
    GITHUB_API_BASE,
    GITHUB_RAW_BASE,
)
from packlauncher.utils.fetcher import build_headers, is_success

GITHUB_JSON_ACCEPT = "application/vnd.github+json"


@dataclass(frozen=True)
class RepoContext:
    """
    Repository coordinates derived from a raw-content manifest URL.

    base_path is the manifest's folder inside the repository ("" at the root).
    """

    owner: str
    repo: str
    ref: str
    base_path: str = ""

    @property
    def org_repo(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def raw_base(self) -> str:
        return f"{GITHUB_RAW_BASE}/{self.owner}/{self.repo}/{self.ref}"

    def folder(self, name: str) -> str:
        """Path of a conventional folder next to the manifest."""
        if self.base_path:
            return f"{self.base_path}/{name}"
        return name


@dataclass(frozen=True)
class RepoFile:
    name: str
    download_url: str


def repo_context_from_url(url: str) -> Optional[RepoContext]:
    """
    Interpret ``url`` as {host}/{owner}/{repo}/{ref}/{remainder...}.

    :param url: manifest URL, typically on raw.githubusercontent.com
    :return: the repository context, or None if the URL does not fit
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) < 4:
        return None
    owner, repo, ref, *remainder = segments
    return RepoContext(
        owner=owner, repo=repo, ref=ref, base_path="/".join(remainder[:-1])
    )


def list_files(
    owner: str,
    repo: str,
    dir_path: str,
    credentials: Optional[str] = None,
    ref: Optional[str] = None,
    timeout: float = API_TIMEOUT,
) -> list[RepoFile]:
    """
    List the files (not directories) of a repository folder.

    :param owner: repository owner or organization
    :param repo: repository name
    :param dir_path: folder path inside the repository
    :param credentials: optional GitHub token
    :param ref: optional branch, tag or commit
    :return: file entries, empty on any failure
    """
    url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}/contents/{quote(dir_path.strip('/'))}"
    params = {"ref": ref} if ref else None
    try:
        response = requests.get(
            url,
            headers=build_headers(credentials, accept=GITHUB_JSON_ACCEPT),
            params=params,
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.warning(f"Directory listing failed for {owner}/{repo}/{dir_path}: {e}")
        return []

    if not is_success(response.status_code):
        logger.debug(
            f"Directory listing for {owner}/{repo}/{dir_path} returned HTTP {response.status_code}"
        )
        return []

    try:
        payload = response.json()
    except ValueError as e:
        logger.warning(f"Directory listing for {owner}/{repo}/{dir_path} is not JSON: {e}")
        return []

    if not isinstance(payload, list):
        return []

    files = [
        RepoFile(name=str(entry["name"]), download_url=str(entry["download_url"]))
        for entry in payload
        if isinstance(entry, dict)
        and entry.get("type") == "file"
        and entry.get("name")
        and entry.get("download_url")
    ]
    logger.debug(f"Listed {len(files)} files in {owner}/{repo}/{dir_path}")
    return files


def list_manifest_folder(
    manifest_url: str, folder: str, credentials: Optional[str] = None
) -> list[RepoFile]:
    """
    List a conventional folder next to a manifest, e.g. its "installers".

    Returns an empty list when the manifest URL carries no repository context.
    """
    context = repo_context_from_url(manifest_url)
    if context is None:
        logger.debug(f"No repository context for {manifest_url}")
        return []
    return list_files(
        context.owner,
        context.repo,
        context.folder(folder),
        credentials=credentials,
        ref=context.ref,
    )
