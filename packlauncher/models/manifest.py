from typing import Optional, Union

import msgspec

from packlauncher.utils.constants import Category


class DeclaredFile(msgspec.Struct, omit_defaults=True, rename={"installer_args": "installerArgs"}):
    """A file entry of a manifest version."""

    url: Optional[str] = None
    path: Optional[str] = None
    file: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    sha256: Optional[str] = None
    installer_args: list[str] = msgspec.field(default_factory=list)

    def __post_init__(self) -> None:
        # Aliases collapse to one Category at decode time
        self.category = Category.parse(self.category)

    @property
    def source(self) -> Optional[str]:
        """The declared location: url, else path, else file."""
        return self.url or self.path or self.file

    @property
    def kind(self) -> Category:
        return Category(self.category)

    @property
    def expected_sha256(self) -> Optional[str]:
        if not self.sha256:
            return None
        return self.sha256.strip().lower()


class Version(msgspec.Struct, omit_defaults=True):
    # Hand-edited manifests may use bare numbers
    id: Union[str, int]
    files: list[DeclaredFile] = msgspec.field(default_factory=list)

    def __post_init__(self) -> None:
        self.id = str(self.id)


class Manifest(msgspec.Struct, omit_defaults=True):
    versions: list[Version] = msgspec.field(default_factory=list)
    id: Optional[str] = None
    name: Optional[str] = None
    recommended: Optional[Union[str, int]] = None

    def __post_init__(self) -> None:
        if self.recommended is not None:
            self.recommended = str(self.recommended)

    @property
    def display_name(self) -> str:
        return self.name or self.id or "modpack"

    def get_version(self, version_id: str) -> Optional[Version]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None


class ModpackIndexEntry(msgspec.Struct, omit_defaults=True):
    """An entry of the modpack index (index.json)."""

    id: Optional[str] = None
    name: Optional[str] = None
    manifest: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None

    @property
    def manifest_path(self) -> Optional[str]:
        return self.manifest or self.path or self.url

    @property
    def display_name(self) -> str:
        return self.name or self.id or self.manifest_path or "modpack"
