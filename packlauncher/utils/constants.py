from enum import Enum


class Category(str, Enum):
    INSTALLER = "installers"
    MOD = "mods"
    SHADER = "shaders"
    RESOURCEPACK = "resourcepacks"
    UNCLASSIFIED = "unclassified"

    @classmethod
    def parse(cls, raw: str | None) -> "Category":
        """
        Map a manifest category string to a Category.

        Matching is case-insensitive and goes through CATEGORY_ALIASES.
        Unknown or missing values are UNCLASSIFIED.
        """
        if not raw:
            return cls.UNCLASSIFIED
        return CATEGORY_ALIASES.get(str(raw).strip().lower(), cls.UNCLASSIFIED)

    @property
    def is_critical(self) -> bool:
        return self in CRITICAL_CATEGORIES


CATEGORY_ALIASES: dict[str, Category] = {
    "installers": Category.INSTALLER,
    "installer": Category.INSTALLER,
    "mods": Category.MOD,
    "mod": Category.MOD,
    "shaders": Category.SHADER,
    "shader": Category.SHADER,
    "shaderpacks": Category.SHADER,
    "resourcepacks": Category.RESOURCEPACK,
    "resourcepack": Category.RESOURCEPACK,
    "texturepacks": Category.RESOURCEPACK,
    "textures": Category.RESOURCEPACK,
}

CRITICAL_CATEGORIES = frozenset(
    {Category.MOD, Category.SHADER, Category.RESOURCEPACK}
)

# Repository folders scanned for assets that the manifest does not declare
DISCOVERY_FOLDERS: dict[Category, str] = {
    Category.INSTALLER: "installers",
    Category.MOD: "mods",
    Category.SHADER: "shaders",
    Category.RESOURCEPACK: "resourcepacks",
}

# Install directory layout
MODS_DIR = "mods"
SHADERPACKS_DIR = "shaderpacks"
RESOURCEPACKS_DIR = "resourcepacks"
INSTALLERS_DIR = "launcher_installers"

CATEGORY_TARGET_DIRS: dict[Category, str] = {
    Category.INSTALLER: INSTALLERS_DIR,
    Category.MOD: MODS_DIR,
    Category.SHADER: SHADERPACKS_DIR,
    Category.RESOURCEPACK: RESOURCEPACKS_DIR,
    Category.UNCLASSIFIED: INSTALLERS_DIR,
}

# Staging
STAGING_PREFIX = "packlauncher_install_"
STAGING_META_FILENAME = "meta.json"
# Downloads live below this folder of a staging directory, apart from meta.json
STAGED_FILES_DIR = "files"

# Placeholders
ORG_REPO_PLACEHOLDERS = ("{{ORG_REPO}}", "{ORG_REPO}", "%ORG_REPO%")
INSTALL_DIR_PLACEHOLDERS = ("%INSTALL_DIR%", "${INSTALL_DIR}", "{INSTALL_DIR}")

# Network
GITHUB_API_BASE = "https://api.github.com"
GITHUB_WEB_BASE = "https://github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
DOWNLOAD_CHUNK_SIZE = 131072  # 128KB
API_TIMEOUT = 15
DOWNLOAD_TIMEOUT = 30
MANIFEST_BRANCHES = ("main", "master")

# Self-update
APP_VERSION_FILENAME = "app_version.json"
USER_VERSION_FILENAME = "launcher-version.json"
REMOTE_VERSION_FILENAME = "launcher-version.json"
UPDATE_PRESERVE_NAMES = frozenset(
    {APP_VERSION_FILENAME, "user_data", "node_modules", ".git"}
)
BACKUP_PREFIX = "Backup_"
DEFAULT_REPO_OWNER = "Pimpoli"
DEFAULT_REPO_NAME = "MultiGameInc-Launcher"
DEFAULT_REPO_BRANCH = "main"
DEFAULT_INDEX_URL = (
    "https://raw.githubusercontent.com/Pimpoli/LauncherModPack/main/index.json"
)

# Preferred loader installers, in order
PREFERRED_INSTALLER_PATTERNS = ("forge", "fabric")
# Repository hosting modpack manifests, without the branch
DEFAULT_MODPACK_RAW_BASE = "https://raw.githubusercontent.com/Pimpoli/LauncherModPack"
# Local fallbacks for index.json, relative to the application folder
LOCAL_INDEX_CANDIDATES = ("index.json", "assets/index.json")
