"""
Ordinal version comparison for launcher version strings.

Versions are compared component by component on their dot-separated numeric
parts. Missing components count as zero and a component without leading
digits counts as zero too, so "1.2" == "1.2.0" and "1.10.0" > "1.9.9".
Pre-release tags and build metadata carry no special meaning.
"""

import re

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


def _component_value(component: str) -> int:
    match = _LEADING_INT.match(component)
    if match is None:
        return 0
    return int(match.group(0))


def version_components(value: str) -> list[int]:
    """
    Split a version string into its numeric components.

    >>> version_components("1.10.3")
    [1, 10, 3]
    >>> version_components("2.x")
    [2, 0]
    """
    return [_component_value(part) for part in str(value).split(".")]


def compare_versions(a: str | None, b: str | None) -> int:
    """
    Compare two version strings.

    :param a: left-hand version
    :param b: right-hand version
    :return: 1 if a > b, -1 if a < b, 0 if equal or if either side is empty
    """
    if not a or not b:
        return 0
    left = version_components(a)
    right = version_components(b)
    for index in range(max(len(left), len(right))):
        na = left[index] if index < len(left) else 0
        nb = right[index] if index < len(right) else 0
        if na > nb:
            return 1
        if na < nb:
            return -1
    return 0


def is_newer(remote: str | None, local: str | None) -> bool:
    """True when remote is strictly newer than local (missing local is 0.0.0)."""
    return compare_versions(remote, local or "0.0.0") > 0
