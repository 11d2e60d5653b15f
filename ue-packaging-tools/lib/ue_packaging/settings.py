#!/usr/bin/env python3
"""
UE Packaging Tools - Settings

Environment variables and the optional per-project ``Config/Packaging.ini``.

Precedence for every value: command-line flag > environment > ini > default.

Example Packaging.ini:

    [Packaging]
    Configuration=Shipping
    Platform=Win64
    TargetType=game
    EngineVersion=5.3

    [Publish]
    Target=studio/mygame
    Channel=windows-beta
    Ignore=*.pdb, Saved/*
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ValidationError

logger = logging.getLogger(__name__)

ENV_ENGINE_ROOT = "UE_ENGINE_ROOT"
ENV_PROJECT_DIR = "UE_PROJECT_DIR"
ENV_ARCHIVE_ROOT = "UE_ARCHIVE_ROOT"
ENV_BUTLER_PATH = "BUTLER_PATH"
ENV_BUTLER_TARGET = "BUTLER_TARGET"

SETTINGS_FILE = Path("Config") / "Packaging.ini"

# ini section -> {ini key: settings key}
_INI_KEYS = {
    "Packaging": {
        "Configuration": "configuration",
        "Platform": "platform",
        "TargetType": "target_type",
        "EngineVersion": "engine_version",
    },
    "Publish": {
        "Target": "butler_target",
        "Channel": "channel",
        "Ignore": "ignore",
    },
}


def get_env_path(name: str) -> Optional[Path]:
    """Return the environment variable as a Path, or None if unset or empty."""
    value = os.environ.get(name, "").strip()
    return Path(value) if value else None


def get_env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_project_settings(project_root: Path) -> Dict[str, Any]:
    """
    Read ``Config/Packaging.ini`` under project_root.

    Args:
        project_root: Project or plugin root directory

    Returns:
        Dictionary of settings keys to values; empty when the file is absent
    """
    ini_path = Path(project_root) / SETTINGS_FILE
    if not ini_path.is_file():
        return {}

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep UE-style CamelCase keys
    try:
        parser.read(ini_path, encoding="utf-8")
    except configparser.Error as e:
        raise ValidationError(f"Invalid settings file {ini_path}: {e}") from e

    settings: Dict[str, Any] = {}
    for section, keys in _INI_KEYS.items():
        if not parser.has_section(section):
            continue
        # Key lookup is case-insensitive like UE's own config files
        values = {k.lower(): v for k, v in parser.items(section)}
        for ini_key, settings_key in keys.items():
            value = values.get(ini_key.lower())
            if value is None or not value.strip():
                continue
            settings[settings_key] = (
                _split_list(value) if settings_key == "ignore" else value.strip()
            )

    logger.debug(f"Loaded settings from {ini_path}: {settings}")
    return settings


def pick(*values, default=None):
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return default
