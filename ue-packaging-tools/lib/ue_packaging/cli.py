#!/usr/bin/env python3
"""
UE Packaging Tools - Command Line Entry Points

ue-package-project, ue-package-plugin and ue-publish. Each parses its
arguments, runs the orchestrator and turns PackagingError into an exit code.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from .commands import CONFIGURATIONS, normalize_configuration, normalize_target_type
from .errors import PackagingError
from .orchestrator import (
    PluginBuildOptions,
    ProjectBuildOptions,
    PublishOptions,
    package_plugin,
    package_project,
    publish,
)
from .paths import (
    PROJECT_EXTENSION,
    TARGET_TYPES,
    get_host_platform,
    get_output_directory,
    resolve_archive_root,
    resolve_project_root,
)
from .settings import load_project_settings, pick

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        format="[%(levelname)s] %(message)s",
        level=logging.DEBUG if verbose else logging.INFO,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--archive-root",
        type=Path,
        default=None,
        help="Directory to archive packaged builds under (default: UE_ARCHIVE_ROOT or <root>/Build)"
    )

    parser.add_argument(
        "--engine-root",
        type=Path,
        default=None,
        help="Engine installation directory (default: UE_ENGINE_ROOT or engine association lookup)"
    )

    parser.add_argument(
        "--engine-version",
        default=None,
        help="Engine version to look up, e.g. 5.3 (overrides the descriptor's association)"
    )

    parser.add_argument(
        "--uat-arg",
        action="append",
        default=[],
        dest="uat_args",
        metavar="ARG",
        help="Extra argument passed to RunUAT as is (repeatable; write --uat-arg=-flag)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the commands without running them"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )


def _add_publish_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("publishing")

    group.add_argument(
        "--butler",
        type=Path,
        default=None,
        help="Path to the butler executable (default: BUTLER_PATH or PATH lookup)"
    )

    group.add_argument(
        "--butler-target",
        default=None,
        help="itch.io upload target as user/game (default: BUTLER_TARGET)"
    )

    group.add_argument(
        "--channel",
        default=None,
        help="Channel to push to (default: derived from platform, e.g. windows, linux-server)"
    )

    group.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Extra pattern for butler to skip (repeatable)"
    )

    group.add_argument(
        "--identity",
        type=Path,
        default=None,
        help="butler credentials file (default: butler's own login)"
    )

    group.add_argument(
        "--user-version",
        default=None,
        help="Version string shown to players"
    )

    group.add_argument(
        "--allow-non-shipping",
        action="store_true",
        help="Allow publishing a build that is not Shipping"
    )


def _publish_options(args: argparse.Namespace) -> PublishOptions:
    return PublishOptions(
        target=args.butler_target,
        channel=args.channel,
        ignore=list(args.ignore),
        identity=args.identity,
        user_version=args.user_version,
        butler=args.butler,
        allow_non_shipping=args.allow_non_shipping,
    )


def _run(func: Callable[[], object]) -> None:
    try:
        func()
    except PackagingError as e:
        logger.error(str(e))
        sys.exit(e.exit_code)
    sys.exit(0)


def build_project_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="package-project",
        description="Package an Unreal Engine project with RunUAT BuildCookRun and optionally publish it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Package the project in the current directory for the host platform
  python package-project.py

  # Shipping server build for Linux
  python package-project.py --project-root /path/to/Project --configuration Shipping \\
      --platform Linux --target-type server

  # Package and push to itch.io
  python package-project.py --configuration Shipping --publish --butler-target studio/mygame

  # Show the RunUAT command only
  python package-project.py --dry-run

  # Pass extra flags straight to RunUAT
  python package-project.py --uat-arg=-iterate --uat-arg=-CrashReporter

Environment Variables:
  UE_PROJECT_DIR  - Project root when --project-root is not given
  UE_ENGINE_ROOT  - Engine root when --engine-root is not given
  UE_ARCHIVE_ROOT - Archive root when --archive-root is not given
  BUTLER_PATH     - butler executable
  BUTLER_TARGET   - itch.io upload target (user/game)
        """
    )

    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Directory containing the .uproject (default: UE_PROJECT_DIR or search from current dir)"
    )

    parser.add_argument(
        "--project-name",
        default=None,
        help="Project name, required when the directory holds several .uproject files"
    )

    parser.add_argument(
        "--target",
        default=None,
        help="Build target name (default: <Project>Client/<Project>Server when that target exists, else chosen by UAT)"
    )

    parser.add_argument(
        "--target-type",
        choices=TARGET_TYPES,
        default=None,
        help="Kind of target to package (default: game)"
    )

    parser.add_argument(
        "--configuration",
        type=str,
        default=None,
        help=f"Build configuration: {', '.join(CONFIGURATIONS)} (default: Development)"
    )

    parser.add_argument(
        "--platform",
        default=None,
        help="Target platform, e.g. Win64, Linux, Mac (default: host platform)"
    )

    parser.add_argument("--clean", action="store_true", help="Rebuild from scratch")
    parser.add_argument("--no-pak", action="store_true", help="Stage loose files instead of a .pak")
    parser.add_argument("--prereqs", action="store_true", help="Include the prerequisites installer")
    parser.add_argument("--distribution", action="store_true", help="Mark the build for distribution")
    parser.add_argument("--nodebuginfo", action="store_true", help="Do not stage debug symbols")

    parser.add_argument(
        "--map",
        action="append",
        default=[],
        dest="maps",
        help="Map to cook (repeatable, default: all maps)"
    )

    parser.add_argument(
        "--publish",
        action="store_true",
        help="Upload the packaged build with butler after packaging"
    )

    _add_common_arguments(parser)
    _add_publish_arguments(parser)
    return parser


def main_package_project(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for packaging a project."""
    args = build_project_parser().parse_args(argv)
    configure_logging(args.verbose)

    options = ProjectBuildOptions(
        project_root=args.project_root,
        project_name=args.project_name,
        target=args.target,
        target_type=args.target_type,
        configuration=args.configuration,
        platform=args.platform,
        archive_root=args.archive_root,
        engine_root=args.engine_root,
        engine_version=args.engine_version,
        clean=args.clean,
        pak=not args.no_pak,
        prereqs=args.prereqs,
        distribution=args.distribution,
        nodebuginfo=args.nodebuginfo,
        maps=args.maps,
        extra_args=args.uat_args,
        publish=_publish_options(args) if args.publish else None,
        dry_run=args.dry_run,
    )
    _run(lambda: package_project(options))


def build_plugin_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="package-plugin",
        description="Package an Unreal Engine plugin with RunUAT BuildPlugin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Package the plugin in the current directory for engine 5.3
  python package-plugin.py --engine-version 5.3

  # Several target platforms, zipped for distribution
  python package-plugin.py --platform Win64 --platform Linux --zip
        """
    )

    parser.add_argument(
        "--plugin-root",
        type=Path,
        default=None,
        help="Directory containing the .uplugin (default: search from current dir)"
    )

    parser.add_argument(
        "--plugin-name",
        default=None,
        help="Plugin name, required when the directory holds several .uplugin files"
    )

    parser.add_argument(
        "--platform",
        action="append",
        default=[],
        dest="platforms",
        help="Target platform (repeatable, default: host platform)"
    )

    parser.add_argument(
        "--strict-includes",
        action="store_true",
        help="Compile without PCHs to catch missing includes"
    )

    parser.add_argument(
        "--zip",
        action="store_true",
        help="Pack the result into <archive-root>/<Plugin>_ue<version>.zip"
    )

    _add_common_arguments(parser)
    return parser


def main_package_plugin(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for packaging a plugin."""
    args = build_plugin_parser().parse_args(argv)
    configure_logging(args.verbose)

    options = PluginBuildOptions(
        plugin_root=args.plugin_root,
        plugin_name=args.plugin_name,
        platforms=args.platforms,
        archive_root=args.archive_root,
        engine_root=args.engine_root,
        engine_version=args.engine_version,
        strict_includes=args.strict_includes,
        zip=args.zip,
        extra_args=args.uat_args,
        dry_run=args.dry_run,
    )
    _run(lambda: package_plugin(options))


def build_publish_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="publish-build",
        description="Upload an already packaged build to itch.io with butler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Push the Shipping Windows build of the current project
  python publish-build.py --configuration Shipping --platform Win64 --butler-target studio/mygame

  # Push an arbitrary directory to a beta channel
  python publish-build.py --source Build/Windows --configuration Shipping \\
      --butler-target studio/mygame --channel windows-beta
        """
    )

    parser.add_argument(
        "--source",
        type=Path,
        default=None,
        help="Directory to upload (default: the project's archive output directory)"
    )

    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Project root used to find the default source and settings"
    )

    parser.add_argument(
        "--configuration",
        default=None,
        help="Configuration the build was made with (default: Development)"
    )

    parser.add_argument(
        "--platform",
        default=None,
        help="Platform the build was made for (default: host platform)"
    )

    parser.add_argument(
        "--target-type",
        choices=TARGET_TYPES,
        default=None,
        help="Kind of target the build contains (default: game)"
    )

    parser.add_argument(
        "--archive-root",
        type=Path,
        default=None,
        help="Archive root the build was written to"
    )

    parser.add_argument("--dry-run", action="store_true", help="Print the butler command without running it")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    _add_publish_arguments(parser)
    return parser


def _publish_existing(args: argparse.Namespace) -> None:
    project_root = resolve_project_root(args.project_root, PROJECT_EXTENSION)
    settings = load_project_settings(project_root)

    configuration = normalize_configuration(
        pick(args.configuration, settings.get("configuration"), default="Development")
    )
    target_type = normalize_target_type(
        pick(args.target_type, settings.get("target_type"), default="game")
    )
    platform = pick(args.platform, settings.get("platform")) or get_host_platform()

    source = args.source
    if source is None:
        archive_root = resolve_archive_root(args.archive_root, project_root)
        source = get_output_directory(archive_root, platform, target_type)

    publish(
        _publish_options(args),
        source,
        configuration,
        platform=platform,
        target_type=target_type,
        settings=settings,
        dry_run=args.dry_run,
    )


def main_publish(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for uploading an existing build."""
    args = build_publish_parser().parse_args(argv)
    configure_logging(args.verbose)
    _run(lambda: _publish_existing(args))
