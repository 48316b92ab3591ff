"""
Scrubbing of log messages before they reach a loguru sink: usernames in
home-directory paths and GitHub credentials are masked.
"""

import re

# GitHub personal access tokens, classic and fine-grained
_GITHUB_TOKEN_PATTERN = re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b")
_AUTH_HEADER_PATTERN = re.compile(r"(token|Bearer)\s+[A-Za-z0-9_\-\.]{8,}", re.IGNORECASE)


def obfuscate_message(
    message: str, anonymize_path: bool = True, redact_tokens: bool = True
) -> str:
    """
    Return message with user paths and credentials masked.

    Home-directory paths lose the username and GitHub tokens, including
    "token ..." authorization values, become <redacted>.
    """
    if anonymize_path:
        message = _anonymize_path(message)
    if redact_tokens:
        message = _redact_tokens(message)

    return message


def _anonymize_path(message: str) -> str:
    """Replace the username segment of Windows, macOS and Linux home paths."""
    # C:\Users\<name>\ keeps the drive letter
    message = re.sub(r"([A-Z]:\\Users\\)[^\\]+\\", r"\1...\\", message)
    # macOS
    message = re.sub(r"/Users/[^/]+/", r"/Users/../", message)
    # Linux
    message = re.sub(r"/home/[^/]+/", r"/home/../", message)

    return message


def _redact_tokens(message: str) -> str:
    message = _GITHUB_TOKEN_PATTERN.sub("<redacted>", message)
    return _AUTH_HEADER_PATTERN.sub(r"\1 <redacted>", message)
