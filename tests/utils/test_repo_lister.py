from unittest.mock import Mock, patch

import requests

from packlauncher.utils.repo_lister import (
    RepoContext,
    RepoFile,
    list_files,
    list_manifest_folder,
    repo_context_from_url,
)


def _listing_response(payload: object, status_code: int = 200) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestRepoContextFromUrl:
    """Tests for repo_context_from_url."""

    def test_nested_manifest(self) -> None:
        context = repo_context_from_url(
            "https://raw.githubusercontent.com/org/packs/main/survival/manifest.json"
        )
        assert context == RepoContext(
            owner="org", repo="packs", ref="main", base_path="survival"
        )
        assert context.org_repo == "org/packs"
        assert context.raw_base == "https://raw.githubusercontent.com/org/packs/main"
        assert context.folder("mods") == "survival/mods"

    def test_manifest_at_repository_root(self) -> None:
        context = repo_context_from_url(
            "https://raw.githubusercontent.com/org/packs/main/manifest.json"
        )
        assert context is not None
        assert context.base_path == ""
        assert context.folder("mods") == "mods"

    def test_too_short_or_relative_url(self) -> None:
        assert repo_context_from_url("https://example.com/manifest.json") is None
        assert repo_context_from_url("packs/manifest.json") is None
        assert repo_context_from_url("file:///opt/app/manifest.json") is None


class TestListFiles:
    """Tests for list_files."""

    def test_returns_only_files(self) -> None:
        payload = [
            {"type": "file", "name": "a.jar", "download_url": "https://x/a.jar"},
            {"type": "dir", "name": "sub", "download_url": None},
            {"type": "file", "name": "b.jar", "download_url": None},
        ]
        with patch(
            "packlauncher.utils.repo_lister.requests.get",
            return_value=_listing_response(payload),
        ) as get:
            files = list_files("org", "packs", "survival/mods", ref="main")

        assert files == [RepoFile(name="a.jar", download_url="https://x/a.jar")]
        assert get.call_args.args[0] == (
            "https://api.github.com/repos/org/packs/contents/survival/mods"
        )
        assert get.call_args.kwargs["params"] == {"ref": "main"}

    def test_missing_folder_is_empty(self) -> None:
        with patch(
            "packlauncher.utils.repo_lister.requests.get",
            return_value=_listing_response({"message": "Not Found"}, 404),
        ):
            assert list_files("org", "packs", "shaders") == []

    def test_network_error_is_empty(self) -> None:
        with patch(
            "packlauncher.utils.repo_lister.requests.get",
            side_effect=requests.ConnectionError("offline"),
        ):
            assert list_files("org", "packs", "mods") == []

    def test_non_list_payload_is_empty(self) -> None:
        """Test that listing a file path (an object payload) yields nothing."""
        with patch(
            "packlauncher.utils.repo_lister.requests.get",
            return_value=_listing_response({"type": "file", "name": "a.jar"}),
        ):
            assert list_files("org", "packs", "mods/a.jar") == []

    def test_invalid_json_is_empty(self) -> None:
        response = _listing_response(None)
        response.json.side_effect = ValueError("no json")
        with patch("packlauncher.utils.repo_lister.requests.get", return_value=response):
            assert list_files("org", "packs", "mods") == []


def test_list_manifest_folder_uses_manifest_location() -> None:
    with patch("packlauncher.utils.repo_lister.list_files", return_value=[]) as listing:
        list_manifest_folder(
            "https://raw.githubusercontent.com/org/packs/dev/survival/manifest.json",
            "installers",
            credentials="secret",
        )

    listing.assert_called_once_with(
        "org", "packs", "survival/installers", credentials="secret", ref="dev"
    )


def test_list_manifest_folder_without_context() -> None:
    with patch("packlauncher.utils.repo_lister.list_files") as listing:
        assert list_manifest_folder("file:///opt/manifest.json", "installers") == []
    listing.assert_not_called()
