from packlauncher.utils.versioning import compare_versions, is_newer, version_components


def test_version_components() -> None:
    assert version_components("1.10.3") == [1, 10, 3]
    assert version_components("2.x") == [2, 0]
    assert version_components("3.1-beta") == [3, 1]


def test_compare_versions_numeric_not_lexicographic() -> None:
    assert compare_versions("1.10.0", "1.9.9") == 1
    assert compare_versions("1.9.9", "1.10.0") == -1


def test_compare_versions_missing_components_are_zero() -> None:
    assert compare_versions("1.2", "1.2.0") == 0
    assert compare_versions("1.2.0.1", "1.2") == 1


def test_compare_versions_empty_side_is_equal() -> None:
    assert compare_versions("", "1.0") == 0
    assert compare_versions("1.0", None) == 0


def test_is_newer() -> None:
    assert is_newer("1.0.1", "1.0.0") is True
    assert is_newer("1.0.0", "1.0.0") is False
    assert is_newer("0.9", "1.0") is False


def test_is_newer_without_local_version() -> None:
    """A missing local version counts as 0.0.0."""
    assert is_newer("0.0.1", None) is True
    assert is_newer("0.0.0", None) is False
