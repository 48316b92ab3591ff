from typing import Any

import pytest

from packlauncher.models.manifest import Manifest
from packlauncher.utils.exception import ManifestError
from packlauncher.utils.json_utils import decode_lenient, sanitize_json_text


class TestSanitizeJsonText:
    """Tests for sanitize_json_text."""

    def test_strips_line_and_block_comments(self) -> None:
        text = '{\n  // a comment\n  "a": 1, /* inline */ "b": 2\n}'
        assert sanitize_json_text(text) == '{\n\n  "a": 1,  "b": 2\n}'

    def test_strips_trailing_commas(self) -> None:
        assert sanitize_json_text('{"a": [1, 2,], }') == '{"a": [1, 2]}'

    def test_keeps_urls_inside_strings(self) -> None:
        text = '{"url": "https://example.com/a.jar"}'
        assert sanitize_json_text(text) == text

    def test_strips_bom(self) -> None:
        assert sanitize_json_text('\ufeff{"a": 1}') == '{"a": 1}'


class TestDecodeLenient:
    """Tests for decode_lenient."""

    def test_strict_document(self) -> None:
        assert decode_lenient(b'{"a": 1}') == {"a": 1}

    def test_hand_edited_document(self) -> None:
        data = b"""{
            // versions of the pack
            "versions": [
                {"id": "1.0", "files": [],},
            ],
        }"""
        manifest = decode_lenient(data, type=Manifest)
        assert manifest.versions[0].id == "1.0"

    def test_document_with_bom(self) -> None:
        data = '\ufeff{"a": 1}'.encode("utf-8")
        result: Any = decode_lenient(data)
        assert result == {"a": 1}

    def test_unrecoverable_document_raises(self) -> None:
        with pytest.raises(ManifestError, match="JSON parse error after sanitize"):
            decode_lenient(b"{not json", source="manifest.json")

    def test_wrong_structure_raises(self) -> None:
        with pytest.raises(ManifestError, match="Invalid document structure"):
            decode_lenient(b'{"versions": "nope"}', type=Manifest)
