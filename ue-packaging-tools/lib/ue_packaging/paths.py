#!/usr/bin/env python3
"""
UE Packaging Tools - Path Resolution

Computes the engine root, project/plugin root, archive root and output
directory from optional inputs and defaults.

Every value is resolved in the same priority order:
explicit flag > environment / engine association lookup > hard-coded fallback.
"""

import configparser
import json
import logging
import os
import platform
import re
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import (
    EngineNotFoundError,
    PathNotFoundError,
    UnsupportedPlatformError,
    ValidationError,
)
from .settings import ENV_ARCHIVE_ROOT, ENV_ENGINE_ROOT, ENV_PROJECT_DIR, get_env_path

logger = logging.getLogger(__name__)

PROJECT_EXTENSION = ".uproject"
PLUGIN_EXTENSION = ".uplugin"

TARGET_TYPES = ("game", "client", "server")

# UAT platform name -> archive directory name
_PLATFORM_DIRS = {
    "win64": "Windows",
    "windows": "Windows",
    "mac": "Mac",
    "linux": "Linux",
    "linuxarm64": "LinuxArm64",
}

_TARGET_SUFFIXES = {
    "game": "",
    "client": "Client",
    "server": "Server",
}

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)")


def get_host_platform() -> str:
    """
    Get the UAT platform name of the machine running the build.

    Returns:
        "Win64", "Mac" or "Linux"
    """
    system = platform.system()
    if system == "Windows":
        return "Win64"
    if system == "Darwin":
        return "Mac"
    if system == "Linux":
        return "Linux"
    raise UnsupportedPlatformError(f"Unsupported host platform: {system}")


def is_guid_association(association: str) -> bool:
    """Source builds are registered under a GUID such as {6A3B...}."""
    return association.startswith("{") and association.endswith("}")


def normalize_engine_version(value: str) -> str:
    """
    Reduce a version string to the major.minor form used for engine lookups.

    "5.3.2" -> "5.3", "UE_5.3" -> "5.3". GUID associations pass through.
    """
    value = value.strip()
    if is_guid_association(value):
        return value
    if value.upper().startswith("UE_"):
        value = value[3:]
    match = _VERSION_RE.match(value)
    if match:
        return f"{match.group(1)}.{match.group(2)}"
    return value


def read_engine_version(engine_root: Path) -> Optional[str]:
    """
    Read major.minor from Engine/Build/Build.version.

    Returns:
        Version string or None if the file is missing or unreadable
    """
    version_file = Path(engine_root) / "Engine" / "Build" / "Build.version"
    if not version_file.is_file():
        return None
    try:
        payload = json.loads(version_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    major = payload.get("MajorVersion")
    minor = payload.get("MinorVersion")
    if major is None or minor is None:
        return None
    return f"{major}.{minor}"


def find_project_root(
    start_dir: Optional[Path] = None, extension: str = PROJECT_EXTENSION
) -> Optional[Path]:
    """
    Find a project root by searching for a descriptor file upward from start_dir.

    Args:
        start_dir: Starting directory for search (defaults to cwd)
        extension: Descriptor extension to look for (.uproject or .uplugin)

    Returns:
        Path to the directory containing the descriptor, or None if not found
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = Path(start_dir).resolve()

    while True:
        try:
            if any(current.glob(f"*{extension}")):
                return current
        except OSError:
            pass

        parent = current.parent
        if parent == current:
            return None
        current = parent


def resolve_project_root(
    explicit: Optional[Path] = None, extension: str = PROJECT_EXTENSION
) -> Path:
    """
    Resolve the project (or plugin) root directory.

    Priority:
    1. explicit path
    2. UE_PROJECT_DIR environment variable (projects only)
    3. first ancestor of cwd holding a descriptor
    4. cwd

    Returns:
        Existing directory path
    """
    root = explicit
    if root is None and extension == PROJECT_EXTENSION:
        root = get_env_path(ENV_PROJECT_DIR)
    if root is None:
        root = find_project_root(Path.cwd(), extension) or Path.cwd()

    root = Path(root).expanduser().resolve()
    if not root.is_dir():
        raise PathNotFoundError(f"Project root not found: {root}")
    return root


def resolve_archive_root(explicit: Optional[Path], project_root: Path) -> Path:
    """
    Resolve the directory packaged builds are archived under.

    Priority: explicit path, UE_ARCHIVE_ROOT, then <project_root>/Build.
    The directory is not required to exist yet.
    """
    root = explicit or get_env_path(ENV_ARCHIVE_ROOT)
    if root is None:
        root = Path(project_root) / "Build"
    return Path(root).expanduser().resolve()


def get_platform_directory_name(platform_name: str) -> str:
    """Map a UAT platform name (Win64, Linux, ...) to its archive directory name."""
    return _PLATFORM_DIRS.get(platform_name.lower(), platform_name)


def get_output_directory(archive_root: Path, platform_name: str, target_type: str) -> Path:
    """
    Get the directory UAT archives a packaged build into.

    Args:
        archive_root: Archive root passed to -archivedirectory
        platform_name: UAT platform (Win64, Mac, Linux, LinuxArm64)
        target_type: "game", "client" or "server"

    Returns:
        e.g. <archive_root>/Windows, <archive_root>/LinuxServer
    """
    suffix = _TARGET_SUFFIXES.get(target_type.lower())
    if suffix is None:
        raise ValidationError(
            f"Unknown target type '{target_type}' (expected one of: {', '.join(TARGET_TYPES)})"
        )
    return Path(archive_root) / f"{get_platform_directory_name(platform_name)}{suffix}"


def get_plugin_output_directory(
    archive_root: Path, plugin_name: str, engine_version: str
) -> Path:
    """Plugins are packaged per engine version: <archive_root>/<version>/<plugin>."""
    return Path(archive_root) / engine_version / plugin_name


def _is_engine_root(path: Path) -> bool:
    try:
        return (path / "Engine").is_dir()
    except OSError:
        return False


def _read_registry_value(hive_name: str, key_path: str, value_name: str) -> Optional[str]:
    """Read a string value from the Windows registry, None on any other OS."""
    try:
        import winreg
    except ImportError:
        return None

    try:
        hive = getattr(winreg, hive_name)
        with winreg.OpenKey(hive, key_path) as key:
            value, _ = winreg.QueryValueEx(key, value_name)
            return str(value)
    except OSError:
        return None


def _registry_candidates(association: str) -> Iterator[Path]:
    # Source builds registered by UnrealVersionSelector
    value = _read_registry_value(
        "HKEY_CURRENT_USER", r"Software\Epic Games\Unreal Engine\Builds", association
    )
    if value:
        yield Path(value)

    # Launcher installs
    if not is_guid_association(association):
        value = _read_registry_value(
            "HKEY_LOCAL_MACHINE",
            rf"SOFTWARE\EpicGames\Unreal Engine\{association}",
            "InstalledDirectory",
        )
        if value:
            yield Path(value)


def get_install_ini_path(host_platform: str) -> Optional[Path]:
    """Location of the engine registration file on non-Windows hosts."""
    if host_platform == "Mac":
        return Path.home() / "Library" / "Application Support" / "Epic" / "UnrealEngine" / "Install.ini"
    if host_platform == "Linux":
        return Path.home() / ".config" / "Epic" / "UnrealEngine" / "Install.ini"
    return None


def _install_ini_candidates(association: str, host_platform: str) -> Iterator[Path]:
    ini_path = get_install_ini_path(host_platform)
    if ini_path is None or not ini_path.is_file():
        return

    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    try:
        parser.read(ini_path, encoding="utf-8")
    except configparser.Error as e:
        logger.warning(f"Could not parse {ini_path}: {e}")
        return

    if not parser.has_section("Installations"):
        return

    wanted = association.strip("{}").lower()
    for key, value in parser.items("Installations"):
        if key.strip("{}").lower() == wanted and value.strip():
            yield Path(value.strip())


def get_launcher_manifest_path(host_platform: str) -> Optional[Path]:
    """Location of LauncherInstalled.dat, written by the Epic Games Launcher."""
    if host_platform == "Win64":
        program_data = os.environ.get("ProgramData", "C:\\ProgramData")
        return Path(program_data) / "Epic" / "UnrealEngineLauncher" / "LauncherInstalled.dat"
    if host_platform == "Mac":
        return (
            Path.home() / "Library" / "Application Support" / "Epic"
            / "UnrealEngineLauncher" / "LauncherInstalled.dat"
        )
    return None


def _launcher_manifest_candidates(version: str, host_platform: str) -> Iterator[Path]:
    manifest = get_launcher_manifest_path(host_platform)
    if manifest is None or not manifest.is_file():
        return

    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {manifest}: {e}")
        return

    app_name = f"UE_{version}"
    for entry in data.get("InstallationList", []):
        if entry.get("AppName") == app_name and entry.get("InstallLocation"):
            yield Path(entry["InstallLocation"])


def _get_fallback_search_roots(host_platform: str) -> List[Path]:
    """Common engine installation parents."""
    if host_platform == "Win64":
        program_files = os.environ.get("ProgramFiles", "C:\\Program Files")
        return [
            Path(program_files) / "Epic Games",
            Path("D:\\Epic Games"),
            Path("E:\\Epic Games"),
            Path("C:\\Epic Games"),
        ]
    if host_platform == "Mac":
        return [Path("/Users/Shared/Epic Games")]
    return [
        Path.home() / "UnrealEngine",
        Path("/opt/unreal-engine"),
    ]


def _fallback_candidates(version: str, host_platform: str) -> Iterator[Path]:
    for base_path in _get_fallback_search_roots(host_platform):
        yield base_path / f"UE_{version}"


def find_source_engine_root(start_dir: Path) -> Optional[Path]:
    """
    Find the engine a project lives inside of.

    Projects with an empty EngineAssociation belong to the engine source tree
    they sit in; walk upward looking for Engine/Build/Build.version.
    """
    current = Path(start_dir).resolve()
    while True:
        if (current / "Engine" / "Build" / "Build.version").is_file():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _engine_candidates(key: str, host_platform: str) -> Iterator[Path]:
    if host_platform == "Win64":
        yield from _registry_candidates(key)
    else:
        yield from _install_ini_candidates(key, host_platform)

    if not is_guid_association(key):
        yield from _launcher_manifest_candidates(key, host_platform)
        yield from _fallback_candidates(key, host_platform)


def _check_engine_root(path: Path, source: str) -> Path:
    path = Path(path).expanduser()
    if not _is_engine_root(path):
        raise EngineNotFoundError(f"Engine root from {source} has no Engine directory: {path}")
    return path.resolve()


def resolve_engine_root(
    explicit: Optional[Path] = None,
    engine_version: Optional[str] = None,
    association: Optional[str] = None,
    project_root: Optional[Path] = None,
    host_platform: Optional[str] = None,
) -> Path:
    """
    Locate the engine installation to build with.

    Priority:
    1. explicit path (--engine-root)
    2. UE_ENGINE_ROOT environment variable
    3. registry (Windows) or Install.ini (Mac/Linux) entry for the version
       or association, then the launcher manifest
    4. the engine source tree containing the project, when the association is empty
    5. default install locations for the version

    Args:
        explicit: Engine root given on the command line
        engine_version: Requested engine version, overrides association
        association: EngineAssociation read from the descriptor
        project_root: Project directory, used for source-tree projects
        host_platform: UAT host platform name (defaults to the running OS)

    Returns:
        Path to the engine root (the directory containing Engine/)
    """
    if explicit:
        return _check_engine_root(explicit, "--engine-root")

    env_root = get_env_path(ENV_ENGINE_ROOT)
    if env_root:
        return _check_engine_root(env_root, ENV_ENGINE_ROOT)

    if host_platform is None:
        host_platform = get_host_platform()

    key = normalize_engine_version(engine_version or association or "")
    if key:
        for candidate in _engine_candidates(key, host_platform):
            logger.debug(f"Trying engine candidate {candidate}")
            if _is_engine_root(candidate):
                logger.info(f"Found engine {key} at {candidate}")
                return candidate.resolve()
        raise EngineNotFoundError(f"Unreal Engine {key} not found")

    if project_root is not None:
        source_root = find_source_engine_root(project_root)
        if source_root:
            logger.info(f"Using engine source tree at {source_root}")
            return source_root

    raise EngineNotFoundError(
        "No engine version known: pass --engine-root or --engine-version, "
        f"or set {ENV_ENGINE_ROOT}"
    )


def find_runuat(engine_root: Path, host_platform: Optional[str] = None) -> Path:
    """
    Find the RunUAT build tool inside an engine installation.

    Returns:
        Path to RunUAT.bat (Windows) or RunUAT.sh (Mac/Linux)
    """
    if host_platform is None:
        host_platform = get_host_platform()

    script_name = "RunUAT.bat" if host_platform == "Win64" else "RunUAT.sh"
    runuat_path = Path(engine_root) / "Engine" / "Build" / "BatchFiles" / script_name
    if not runuat_path.is_file():
        raise EngineNotFoundError(f"RunUAT not found: {runuat_path}")
    return runuat_path
