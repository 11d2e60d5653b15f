#!/usr/bin/env python3
"""
UE Packaging Tools - Descriptor Discovery

Finds the single .uproject or .uplugin file that identifies what to build
and reads the metadata used for engine lookup.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import AmbiguousDescriptorError, DescriptorError, DescriptorNotFoundError
from .paths import PLUGIN_EXTENSION, PROJECT_EXTENSION

logger = logging.getLogger(__name__)


@dataclass
class Descriptor:
    """A parsed project or plugin descriptor."""

    path: Path
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.path.stem

    @property
    def root(self) -> Path:
        return self.path.parent

    @property
    def is_plugin(self) -> bool:
        return self.path.suffix.lower() == PLUGIN_EXTENSION

    @property
    def engine_association(self) -> str:
        """EngineAssociation for projects, EngineVersion for plugins."""
        key = "EngineVersion" if self.is_plugin else "EngineAssociation"
        value = self.data.get(key) or ""
        return str(value).strip()

    @property
    def modules(self) -> List[str]:
        modules = self.data.get("Modules") or []
        return [m["Name"] for m in modules if isinstance(m, dict) and m.get("Name")]


def list_descriptors(directory: Path, extension: str) -> List[Path]:
    """Descriptor files directly inside directory, sorted by name."""
    extension = extension.lower()
    try:
        return sorted(
            (p for p in Path(directory).iterdir() if p.is_file() and p.suffix.lower() == extension),
            key=lambda p: p.name.lower(),
        )
    except OSError:
        return []


def locate_descriptor(
    directory: Path, extension: str = PROJECT_EXTENSION, name: Optional[str] = None
) -> Optional[Path]:
    """
    Find the descriptor file in a directory.

    Args:
        directory: Directory to scan (not recursive)
        extension: ".uproject" or ".uplugin"
        name: Descriptor name (file stem), only consulted when several exist

    Returns:
        Path to the descriptor, or None if the directory holds none

    Raises:
        AmbiguousDescriptorError: several descriptors and name does not pick one
    """
    candidates = list_descriptors(directory, extension)

    if not candidates:
        return None

    if len(candidates) == 1:
        return candidates[0]

    if name:
        wanted = name.lower()
        if wanted.endswith(extension.lower()):
            wanted = wanted[: -len(extension)]
        matches = [p for p in candidates if p.stem.lower() == wanted]
        if len(matches) == 1:
            return matches[0]

    raise AmbiguousDescriptorError(directory, candidates, name)


def require_descriptor(
    directory: Path, extension: str = PROJECT_EXTENSION, name: Optional[str] = None
) -> Path:
    """Like locate_descriptor, but a missing descriptor is an error."""
    path = locate_descriptor(directory, extension, name)
    if path is None:
        raise DescriptorNotFoundError(f"No {extension} file found in {directory}")
    logger.debug(f"Using descriptor {path}")
    return path


def load_descriptor(path: Path) -> Descriptor:
    """
    Parse a descriptor file.

    Args:
        path: Path to .uproject or .uplugin file

    Returns:
        Descriptor with the parsed JSON
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DescriptorError(f"JSON parse error in {path.name}: {e}") from e
    except OSError as e:
        raise DescriptorError(f"Could not read {path}: {e}") from e

    if not isinstance(data, dict):
        raise DescriptorError(f"{path.name} does not contain a JSON object")

    modules = data.get("Modules")
    if modules is not None and not (
        isinstance(modules, list) and all(isinstance(m, dict) for m in modules)
    ):
        raise DescriptorError(f"{path.name}: Modules must be a list of objects")

    return Descriptor(path=path, data=data)


def find_project_descriptor(directory: Path, name: Optional[str] = None) -> Descriptor:
    return load_descriptor(require_descriptor(directory, PROJECT_EXTENSION, name))


def find_plugin_descriptor(directory: Path, name: Optional[str] = None) -> Descriptor:
    return load_descriptor(require_descriptor(directory, PLUGIN_EXTENSION, name))
