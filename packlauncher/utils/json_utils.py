"""
Lenient JSON decoding for hand-edited repository documents.

Manifests and the modpack index are edited by hand in the repository, so they
regularly carry comments or trailing commas. Documents are decoded strictly
first and only sanitized when that fails.
"""

import re
from typing import Any, Type, TypeVar

import msgspec
from loguru import logger

from packlauncher.utils.exception import ManifestError

T = TypeVar("T")

BOM_PATTERN = re.compile("^\\ufeff")
LINE_COMMENT_PATTERN = re.compile(r"(^|\n)\s*//.*(?=\n|$)")
BLOCK_COMMENT_PATTERN = re.compile(r"/\*[\s\S]*?\*/")
TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")
SNIPPET_LENGTH = 512


def sanitize_json_text(text: str) -> str:
    """
    Strip a BOM, whole-line // comments, /* */ comments and trailing commas.
    """
    text = BOM_PATTERN.sub("", text)
    text = LINE_COMMENT_PATTERN.sub("\n", text)
    text = BLOCK_COMMENT_PATTERN.sub("", text)
    text = TRAILING_COMMA_PATTERN.sub(r"\1", text)
    return text.strip()


def decode_lenient(
    data: bytes | str, type: Type[T] = Any, source: str = "<document>"  # type: ignore[assignment]
) -> T:
    """
    Decode JSON into ``type``, retrying once on a sanitized copy.

    :param data: raw document
    :param type: msgspec target type
    :param source: URL or path used in log and error messages
    :raises ManifestError: if the document is not valid JSON after sanitizing,
        or does not match ``type``
    """
    try:
        return msgspec.json.decode(data, type=type)
    except msgspec.ValidationError as e:
        raise ManifestError(f"Invalid document structure in {source}: {e}") from e
    except msgspec.DecodeError as e:
        logger.warning(f"JSON decode failed for {source}, sanitizing: {e}")

    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    try:
        result = msgspec.json.decode(sanitize_json_text(text), type=type)
    except msgspec.ValidationError as e:
        raise ManifestError(f"Invalid document structure in {source}: {e}") from e
    except msgspec.DecodeError as e:
        snippet = text[:SNIPPET_LENGTH].replace("\n", "\\n")
        raise ManifestError(
            f"JSON parse error after sanitize in {source}: {e}. Snippet: {snippet}"
        ) from e
    logger.debug(f"Decoded {source} after sanitizing")
    return result
