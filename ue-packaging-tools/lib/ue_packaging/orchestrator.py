#!/usr/bin/env python3
"""
UE Packaging Tools - Build Orchestration

Sequences path resolution, descriptor lookup, the RunUAT invocation and the
optional butler upload. Every step either succeeds or raises PackagingError.
"""

import contextlib
import dataclasses
import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .commands import (
    DEFAULT_IGNORE_PATTERNS,
    BuildCookRunCommand,
    BuildPluginCommand,
    ButlerPushCommand,
    default_channel,
    default_target_name,
    find_butler,
    normalize_configuration,
    normalize_target_type,
    validate_publish,
)
from .descriptor import Descriptor, find_plugin_descriptor, find_project_descriptor
from .errors import PathNotFoundError, ToolFailedError, ToolNotFoundError, ValidationError
from .paths import (
    PLUGIN_EXTENSION,
    PROJECT_EXTENSION,
    find_runuat,
    get_host_platform,
    get_output_directory,
    get_plugin_output_directory,
    is_guid_association,
    normalize_engine_version,
    read_engine_version,
    resolve_archive_root,
    resolve_engine_root,
    resolve_project_root,
)
from .settings import ENV_BUTLER_TARGET, get_env, load_project_settings, pick

logger = logging.getLogger(__name__)


@dataclass
class PublishOptions:
    """Where and how to upload a packaged build."""

    target: Optional[str] = None
    channel: Optional[str] = None
    ignore: List[str] = field(default_factory=list)
    identity: Optional[Path] = None
    user_version: Optional[str] = None
    butler: Optional[Path] = None
    allow_non_shipping: bool = False


@dataclass
class ProjectBuildOptions:
    project_root: Optional[Path] = None
    project_name: Optional[str] = None
    target: Optional[str] = None
    target_type: Optional[str] = None
    configuration: Optional[str] = None
    platform: Optional[str] = None
    archive_root: Optional[Path] = None
    engine_root: Optional[Path] = None
    engine_version: Optional[str] = None
    clean: bool = False
    pak: bool = True
    prereqs: bool = False
    distribution: bool = False
    nodebuginfo: bool = False
    maps: List[str] = field(default_factory=list)
    extra_args: List[str] = field(default_factory=list)
    publish: Optional[PublishOptions] = None
    dry_run: bool = False


@dataclass
class PluginBuildOptions:
    plugin_root: Optional[Path] = None
    plugin_name: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    archive_root: Optional[Path] = None
    engine_root: Optional[Path] = None
    engine_version: Optional[str] = None
    strict_includes: bool = False
    zip: bool = False
    extra_args: List[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class PackageResult:
    """What a packaging run produced."""

    descriptor: Descriptor
    engine_root: Path
    output_dir: Path
    commands: List[List[str]] = field(default_factory=list)
    archive_file: Optional[Path] = None


@contextlib.contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    """Change into path for the duration of the block; always change back."""
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(previous)


def format_command(args: Sequence[str]) -> str:
    if os.name == "nt":
        return subprocess.list2cmdline(args)
    return shlex.join(args)


def run_tool(args: Sequence[str], cwd: Optional[Path] = None, dry_run: bool = False) -> int:
    """
    Run an external tool, streaming its output to the console.

    Args:
        args: Command line, executable first
        cwd: Working directory for the child process
        dry_run: Only log the command

    Returns:
        0 on success

    Raises:
        ToolNotFoundError: the executable could not be started
        ToolFailedError: the tool exited non-zero
    """
    tool = Path(args[0]).name
    logger.info(f"{'[dry-run] ' if dry_run else ''}Running: {format_command(args)}")
    if dry_run:
        return 0

    try:
        result = subprocess.run(list(args), cwd=cwd)
    except OSError as e:
        raise ToolNotFoundError(f"Could not start {tool}: {e}") from e

    if result.returncode != 0:
        raise ToolFailedError(tool, result.returncode)

    logger.info(f"{tool} completed successfully")
    return 0


def _resolve_butler(options: PublishOptions, dry_run: bool) -> Path:
    try:
        return find_butler(options.butler)
    except ToolNotFoundError:
        if not dry_run:
            raise
        logger.warning("butler not found; dry run continues with 'butler'")
        return Path("butler")


def _resolve_butler_target(options: PublishOptions, settings: Dict[str, Any]) -> str:
    target = pick(options.target, get_env(ENV_BUTLER_TARGET), settings.get("butler_target"))
    if not target:
        raise ValidationError(
            f"No upload target: pass --butler-target user/game or set {ENV_BUTLER_TARGET}"
        )
    return target


def prepare_publish(
    options: PublishOptions,
    configuration: str,
    platform: Optional[str] = None,
    target_type: str = "game",
    settings: Optional[Dict[str, Any]] = None,
    dry_run: bool = False,
) -> ButlerPushCommand:
    """
    Resolve and check everything an upload needs except the directory itself.

    Args:
        options: Upload target and identity
        configuration: Build configuration being published
        platform: UAT platform of the build, used for the default channel
        target_type: game/client/server, used for the default channel
        settings: Project settings from Packaging.ini
        dry_run: Tolerate a missing butler executable

    Returns:
        ButlerPushCommand with an empty source_dir
    """
    validate_publish(configuration, options.allow_non_shipping)
    settings = settings or {}

    target = _resolve_butler_target(options, settings)
    channel = pick(
        options.channel,
        settings.get("channel"),
        default=default_channel(platform or get_host_platform(), target_type),
    )
    ignore = list(DEFAULT_IGNORE_PATTERNS)
    for pattern in list(settings.get("ignore", [])) + list(options.ignore):
        if pattern not in ignore:
            ignore.append(pattern)

    command = ButlerPushCommand(
        butler=_resolve_butler(options, dry_run),
        source_dir="",
        target=target,
        channel=channel,
        ignore=ignore,
        identity=options.identity,
        user_version=options.user_version,
    )
    # Raises on a malformed target or channel
    command.build_args()
    return command


def publish(
    options: PublishOptions,
    source_dir: Path,
    configuration: str,
    platform: Optional[str] = None,
    target_type: str = "game",
    settings: Optional[Dict[str, Any]] = None,
    dry_run: bool = False,
    command: Optional[ButlerPushCommand] = None,
) -> List[str]:
    """
    Upload a packaged build with butler.

    Args:
        options: Upload target and identity
        source_dir: Directory to push
        configuration: Build configuration of source_dir
        platform: UAT platform of the build, used for the default channel
        target_type: game/client/server, used for the default channel
        settings: Project settings from Packaging.ini
        dry_run: Only log the command
        command: Result of prepare_publish, when already resolved

    Returns:
        The butler command line
    """
    validate_publish(configuration, options.allow_non_shipping)

    source_dir = Path(source_dir)
    if not dry_run and not source_dir.is_dir():
        raise PathNotFoundError(f"Nothing to publish, directory not found: {source_dir}")

    if command is None:
        command = prepare_publish(
            options, configuration, platform, target_type, settings, dry_run
        )
    command = dataclasses.replace(command, source_dir=source_dir)
    args = command.build_args()

    logger.info(f"Publishing {source_dir} to {command.target}:{command.channel}")
    run_tool(args, dry_run=dry_run)
    return args


def _default_target(descriptor: Descriptor, target_type: str) -> Optional[str]:
    """
    Client/server target for a code project, if the project declares one.

    UAT picks the game target on its own; client and server targets must
    exist as Source/<Name><Type>.Target.cs.
    """
    if target_type == "game" or not descriptor.modules:
        return None
    name = default_target_name(descriptor.name, target_type)
    if not (descriptor.root / "Source" / f"{name}.Target.cs").is_file():
        logger.debug(f"No {name}.Target.cs in {descriptor.root / 'Source'}")
        return None
    return name


def package_project(options: ProjectBuildOptions) -> PackageResult:
    """
    Build, cook, stage and archive a project, then optionally publish it.

    Returns:
        PackageResult describing the output directory and commands run
    """
    project_root = resolve_project_root(options.project_root, PROJECT_EXTENSION)
    settings = load_project_settings(project_root)
    host_platform = get_host_platform()

    configuration = normalize_configuration(
        pick(options.configuration, settings.get("configuration"), default="Development")
    )
    target_type = normalize_target_type(
        pick(options.target_type, settings.get("target_type"), default="game")
    )
    platform = pick(options.platform, settings.get("platform"), default=host_platform)

    # Fail on a rejected upload before spending time on the build
    push_command = None
    if options.publish:
        push_command = prepare_publish(
            options.publish,
            configuration,
            platform=platform,
            target_type=target_type,
            settings=settings,
            dry_run=options.dry_run,
        )

    descriptor = find_project_descriptor(project_root, options.project_name)
    logger.info(f"Project: {descriptor.path}")

    engine_root = resolve_engine_root(
        explicit=options.engine_root,
        engine_version=pick(options.engine_version, settings.get("engine_version")),
        association=descriptor.engine_association,
        project_root=project_root,
        host_platform=host_platform,
    )
    runuat = find_runuat(engine_root, host_platform)

    archive_root = resolve_archive_root(options.archive_root, project_root)
    output_dir = get_output_directory(archive_root, platform, target_type)

    command = BuildCookRunCommand(
        runuat=runuat,
        project_file=descriptor.path,
        platform=platform,
        archive_dir=archive_root,
        configuration=configuration,
        target_type=target_type,
        target=options.target or _default_target(descriptor, target_type),
        clean=options.clean,
        pak=options.pak,
        prereqs=options.prereqs,
        distribution=options.distribution,
        nodebuginfo=options.nodebuginfo,
        maps=list(options.maps),
        extra_args=list(options.extra_args),
    )
    args = command.build_args()

    logger.info(f"Packaging {descriptor.name} ({configuration} {platform} {target_type})")
    if not options.dry_run:
        archive_root.mkdir(parents=True, exist_ok=True)
    with working_directory(project_root):
        run_tool(args, dry_run=options.dry_run)

    result = PackageResult(
        descriptor=descriptor,
        engine_root=engine_root,
        output_dir=output_dir,
        commands=[args],
    )
    logger.info(f"Output: {output_dir}")

    if options.publish:
        result.commands.append(
            publish(
                options.publish,
                output_dir,
                configuration,
                platform=platform,
                target_type=target_type,
                settings=settings,
                dry_run=options.dry_run,
                command=push_command,
            )
        )

    return result


def _plugin_engine_label(
    engine_version: Optional[str], engine_root: Path, descriptor: Descriptor
) -> str:
    if engine_version:
        return normalize_engine_version(engine_version)
    version = read_engine_version(engine_root)
    if version:
        return version
    association = descriptor.engine_association
    if association and not is_guid_association(association):
        return normalize_engine_version(association)
    return "Custom"


def package_plugin(options: PluginBuildOptions) -> PackageResult:
    """
    Package a plugin with RunUAT BuildPlugin, optionally zipping the result.

    Returns:
        PackageResult describing the package directory and commands run
    """
    plugin_root = resolve_project_root(options.plugin_root, PLUGIN_EXTENSION)
    settings = load_project_settings(plugin_root)
    host_platform = get_host_platform()

    descriptor = find_plugin_descriptor(plugin_root, options.plugin_name)
    logger.info(f"Plugin: {descriptor.path}")

    engine_version = pick(options.engine_version, settings.get("engine_version"))
    engine_root = resolve_engine_root(
        explicit=options.engine_root,
        engine_version=engine_version,
        association=descriptor.engine_association,
        project_root=plugin_root,
        host_platform=host_platform,
    )
    runuat = find_runuat(engine_root, host_platform)
    version_label = _plugin_engine_label(engine_version, engine_root, descriptor)

    # BuildPlugin rejects package directories inside the plugin itself
    archive_root = resolve_archive_root(options.archive_root, plugin_root.parent)
    package_dir = get_plugin_output_directory(archive_root, descriptor.name, version_label)

    platforms = list(options.platforms)
    if not platforms:
        platforms = [settings.get("platform") or host_platform]

    command = BuildPluginCommand(
        runuat=runuat,
        plugin_file=descriptor.path,
        package_dir=package_dir,
        target_platforms=platforms,
        strict_includes=options.strict_includes,
        extra_args=list(options.extra_args),
    )
    args = command.build_args()

    logger.info(f"Building plugin {descriptor.name} for Unreal Engine {version_label}")
    if not options.dry_run:
        if package_dir.exists():
            shutil.rmtree(package_dir)
        package_dir.parent.mkdir(parents=True, exist_ok=True)
    with working_directory(plugin_root):
        run_tool(args, dry_run=options.dry_run)

    result = PackageResult(
        descriptor=descriptor,
        engine_root=engine_root,
        output_dir=package_dir,
        commands=[args],
    )

    if options.zip:
        result.archive_file = archive_root / f"{descriptor.name}_ue{version_label}.zip"
        if options.dry_run:
            logger.info(f"[dry-run] Would pack {package_dir} into {result.archive_file}")
        else:
            shutil.make_archive(
                str(result.archive_file.with_suffix("")),
                "zip",
                root_dir=package_dir.parent,
                base_dir=package_dir.name,
            )
            logger.info(f"Files packed into {result.archive_file}")

    logger.info(f"Output: {package_dir}")
    return result
