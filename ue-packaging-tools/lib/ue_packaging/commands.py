#!/usr/bin/env python3
"""
UE Packaging Tools - Command Construction

Builds argument lists for RunUAT (BuildCookRun, BuildPlugin) and for the
itch.io butler uploader. Nothing here runs a process.
"""

import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import PublishNotAllowedError, ToolNotFoundError, ValidationError
from .paths import TARGET_TYPES
from .settings import ENV_BUTLER_PATH, get_env_path

CONFIGURATIONS = ("Debug", "DebugGame", "Development", "Test", "Shipping")

# Files UAT stages that players never need
DEFAULT_IGNORE_PATTERNS = (
    "*.pdb",
    "*.debug",
    "*.sym",
    "Manifest_*.txt",
)

_BUTLER_TARGET_RE = re.compile(r"^[\w.-]+/[\w.-]+$")

_CHANNEL_PLATFORMS = {
    "win64": "windows",
    "windows": "windows",
    "mac": "mac",
    "linux": "linux",
    "linuxarm64": "linux-arm64",
}


def normalize_configuration(value: str) -> str:
    """Case-insensitive match against the engine's build configurations."""
    for name in CONFIGURATIONS:
        if name.lower() == value.strip().lower():
            return name
    raise ValidationError(
        f"Unknown configuration '{value}' (expected one of: {', '.join(CONFIGURATIONS)})"
    )


def normalize_target_type(value: str) -> str:
    target_type = value.strip().lower()
    if target_type not in TARGET_TYPES:
        raise ValidationError(
            f"Unknown target type '{value}' (expected one of: {', '.join(TARGET_TYPES)})"
        )
    return target_type


def default_target_name(project_name: str, target_type: str) -> str:
    """Name of the default target UBT generates for a project."""
    suffix = {"game": "", "client": "Client", "server": "Server"}[normalize_target_type(target_type)]
    return f"{project_name}{suffix}"


def default_channel(platform_name: str, target_type: str = "game") -> str:
    """
    Default butler channel for a build.

    itch.io tags channels containing windows/mac/linux with the matching OS.
    """
    channel = _CHANNEL_PLATFORMS.get(platform_name.lower(), platform_name.lower())
    target_type = normalize_target_type(target_type)
    if target_type != "game":
        channel = f"{channel}-{target_type}"
    return channel


def validate_publish(configuration: str, allow_non_shipping: bool = False) -> None:
    """
    Refuse to publish anything but a Shipping build unless explicitly allowed.

    Raises:
        PublishNotAllowedError: configuration is not Shipping and no override
    """
    if normalize_configuration(configuration) != "Shipping" and not allow_non_shipping:
        raise PublishNotAllowedError(
            f"Refusing to publish a {configuration} build; "
            "use --allow-non-shipping to publish it anyway"
        )


def find_butler(explicit: Optional[Path] = None) -> Path:
    """
    Locate the butler executable.

    Priority: explicit path, BUTLER_PATH, then PATH.
    """
    path = explicit or get_env_path(ENV_BUTLER_PATH)
    if path is not None:
        path = Path(path).expanduser()
        if not path.is_file():
            raise ToolNotFoundError(f"butler not found: {path}")
        return path

    found = shutil.which("butler")
    if not found:
        raise ToolNotFoundError(
            f"butler not found on PATH; install it or set {ENV_BUTLER_PATH}"
        )
    return Path(found)


@dataclass
class BuildCookRunCommand:
    """
    RunUAT BuildCookRun invocation for packaging a project.
    """

    runuat: Union[Path, str]
    project_file: Union[Path, str]
    platform: str
    archive_dir: Union[Path, str]
    configuration: str = "Development"
    target_type: str = "game"
    target: Optional[str] = None
    clean: bool = False
    pak: bool = True
    compressed: bool = True
    prereqs: bool = False
    distribution: bool = False
    nodebuginfo: bool = False
    maps: List[str] = field(default_factory=list)
    extra_args: List[str] = field(default_factory=list)

    def build_args(self) -> List[str]:
        """
        Build the complete RunUAT command line.

        Returns:
            Argument list, executable first
        """
        configuration = normalize_configuration(self.configuration)
        target_type = normalize_target_type(self.target_type)

        args = [
            str(self.runuat),
            "BuildCookRun",
            f"-project={self.project_file}",
            "-noP4",
            "-utf8output",
            "-unattended",
            f"-platform={self.platform}",
            "-build",
            "-cook",
            "-stage",
            "-package",
            "-archive",
            f"-archivedirectory={self.archive_dir}",
        ]

        if target_type == "server":
            args += ["-server", "-noclient", f"-serverconfig={configuration}"]
        else:
            if target_type == "client":
                args.append("-client")
            args.append(f"-clientconfig={configuration}")

        if self.target:
            args.append(f"-target={self.target}")
        if self.clean:
            args.append("-clean")
        if self.pak:
            args.append("-pak")
        if self.compressed:
            args.append("-compressed")
        if self.prereqs:
            args.append("-prereqs")
        if self.distribution:
            args.append("-distribution")
        if self.nodebuginfo:
            args.append("-nodebuginfo")

        if self.maps:
            args.append(f"-map={'+'.join(self.maps)}")
        else:
            args.append("-allmaps")

        args.extend(self.extra_args)
        return args


@dataclass
class BuildPluginCommand:
    """RunUAT BuildPlugin invocation for packaging a plugin."""

    runuat: Union[Path, str]
    plugin_file: Union[Path, str]
    package_dir: Union[Path, str]
    target_platforms: Sequence[str] = ()
    strict_includes: bool = False
    extra_args: List[str] = field(default_factory=list)

    def build_args(self) -> List[str]:
        args = [
            str(self.runuat),
            "BuildPlugin",
            f"-Plugin={self.plugin_file}",
            f"-Package={self.package_dir}",
            "-Rocket",
        ]
        if self.target_platforms:
            args.append(f"-TargetPlatforms={'+'.join(self.target_platforms)}")
        if self.strict_includes:
            args.append("-StrictIncludes")
        args.extend(self.extra_args)
        return args


@dataclass
class ButlerPushCommand:
    """butler push invocation uploading a directory to an itch.io channel."""

    butler: Union[Path, str]
    source_dir: Union[Path, str]
    target: str
    channel: str
    ignore: Sequence[str] = DEFAULT_IGNORE_PATTERNS
    identity: Optional[Union[Path, str]] = None
    user_version: Optional[str] = None

    def build_args(self) -> List[str]:
        if not _BUTLER_TARGET_RE.match(self.target or ""):
            raise ValidationError(
                f"Invalid butler target '{self.target}' (expected user/game)"
            )
        if not self.channel or ":" in self.channel:
            raise ValidationError(f"Invalid channel '{self.channel}'")

        args = [
            str(self.butler),
            "push",
            str(self.source_dir),
            f"{self.target}:{self.channel}",
        ]
        for pattern in self.ignore:
            args += ["--ignore", pattern]
        if self.identity:
            args += ["--identity", str(self.identity)]
        if self.user_version:
            args += ["--userversion", self.user_version]
        return args
