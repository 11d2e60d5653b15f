#!/usr/bin/env python3
"""
UE Packaging Tools

Locates an Unreal Engine project or plugin, packages it with RunUAT and
optionally publishes the result with butler.

Usage:
    import sys
    sys.path.insert(0, str(Path(__file__).parent.parent / "lib"))
    from ue_packaging import package_project, ProjectBuildOptions
"""

from .errors import PackagingError
from .descriptor import Descriptor, load_descriptor, locate_descriptor, require_descriptor
from .paths import (
    get_output_directory,
    resolve_archive_root,
    resolve_engine_root,
    resolve_project_root,
)
from .commands import (
    BuildCookRunCommand,
    BuildPluginCommand,
    ButlerPushCommand,
    validate_publish,
)
from .orchestrator import (
    PackageResult,
    PluginBuildOptions,
    ProjectBuildOptions,
    PublishOptions,
    package_plugin,
    package_project,
    prepare_publish,
    publish,
    working_directory,
)

__version__ = "0.1.0"

__all__ = [
    "PackagingError",
    "Descriptor",
    "load_descriptor",
    "locate_descriptor",
    "require_descriptor",
    "get_output_directory",
    "resolve_archive_root",
    "resolve_engine_root",
    "resolve_project_root",
    "BuildCookRunCommand",
    "BuildPluginCommand",
    "ButlerPushCommand",
    "validate_publish",
    "PackageResult",
    "PluginBuildOptions",
    "ProjectBuildOptions",
    "PublishOptions",
    "package_plugin",
    "package_project",
    "prepare_publish",
    "publish",
    "working_directory",
]
