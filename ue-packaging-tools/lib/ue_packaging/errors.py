#!/usr/bin/env python3
"""
UE Packaging Tools - Error Types

Every failure is fatal. Library code raises one of these; the CLI entry
points catch PackagingError, log the message and exit with ``exit_code``.
"""

from typing import Iterable


class PackagingError(Exception):
    """Base class for all packaging failures."""

    exit_code = 1


class ValidationError(PackagingError):
    """An argument or setting has an invalid value."""


class PathNotFoundError(PackagingError):
    """A required path does not exist on disk."""


class UnsupportedPlatformError(PackagingError):
    """The host OS is not one the engine toolchain runs on."""


class DescriptorError(PackagingError):
    """A descriptor file could not be read or parsed."""


class DescriptorNotFoundError(DescriptorError):
    """No descriptor file was found where one is required."""


class AmbiguousDescriptorError(DescriptorError):
    """Several descriptor files match and no name picks exactly one."""

    def __init__(self, directory, candidates: Iterable, name=None):
        self.directory = directory
        self.candidates = list(candidates)
        self.name = name
        names = ", ".join(p.name for p in self.candidates)
        if name:
            message = f"No descriptor named '{name}' in {directory} (found: {names})"
        else:
            message = (
                f"Multiple descriptors in {directory} (found: {names}); "
                "pass a name to pick one"
            )
        super().__init__(message)


class EngineNotFoundError(PackagingError):
    """No usable engine installation could be located."""


class PublishNotAllowedError(PackagingError):
    """Publishing was requested for a build that may not be published."""


class ToolNotFoundError(PackagingError):
    """An external executable is missing."""


class ToolFailedError(PackagingError):
    """An external tool exited with a non-zero status."""

    def __init__(self, tool: str, returncode: int):
        self.tool = tool
        self.returncode = returncode
        self.exit_code = returncode if returncode > 0 else 1
        super().__init__(f"{tool} failed (exit code {returncode})")
