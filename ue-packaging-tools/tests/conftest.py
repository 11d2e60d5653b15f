"""
Shared pytest configuration and fixtures for ue-packaging-tools tests.
"""

import pytest
import sys
import json
from pathlib import Path

# Add lib directory to Python path
PACKAGE_ROOT = Path(__file__).parent.parent
LIB_ROOT = PACKAGE_ROOT / "lib"
SCRIPTS_ROOT = PACKAGE_ROOT / "scripts"

if str(LIB_ROOT) not in sys.path:
    sys.path.insert(0, str(LIB_ROOT))

ENV_VARS = (
    "UE_ENGINE_ROOT",
    "UE_PROJECT_DIR",
    "UE_ARCHIVE_ROOT",
    "BUTLER_PATH",
    "BUTLER_TARGET",
)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """
    Isolate tests from the developer's environment.

    Clears the tool's environment variables and points HOME at an empty
    directory so Install.ini / launcher manifests are never picked up.
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def temp_uproject(tmp_path):
    """
    Create a temporary minimal .uproject structure.

    Returns:
        Path to the temporary project directory
    """
    project_dir = tmp_path / "TestProject"
    project_dir.mkdir()

    uproject = project_dir / "TestProject.uproject"
    uproject.write_text(json.dumps({
        "FileVersion": 3,
        "EngineAssociation": "5.3",
        "Modules": [
            {"Name": "TestProject", "Type": "Runtime", "LoadingPhase": "Default"}
        ],
        "Plugins": []
    }, indent=2), encoding='utf-8')

    (project_dir / "Config").mkdir()

    return project_dir


@pytest.fixture
def temp_uplugin(tmp_path):
    """
    Create a temporary plugin directory with a .uplugin descriptor.

    Returns:
        Path to the temporary plugin directory
    """
    plugin_dir = tmp_path / "Plugins" / "TestPlugin"
    plugin_dir.mkdir(parents=True)

    uplugin = plugin_dir / "TestPlugin.uplugin"
    uplugin.write_text(json.dumps({
        "FileVersion": 3,
        "Version": 1,
        "VersionName": "1.0",
        "FriendlyName": "Test Plugin",
        "EngineVersion": "5.3.0",
        "Modules": [
            {"Name": "TestPlugin", "Type": "Runtime", "LoadingPhase": "Default"}
        ]
    }, indent=2), encoding='utf-8')

    (plugin_dir / "Source").mkdir()
    (plugin_dir / "Resources").mkdir()

    return plugin_dir


def make_engine(root: Path, major: int = 5, minor: int = 3) -> Path:
    """Create the parts of an engine install the tools look at."""
    batch_files = root / "Engine" / "Build" / "BatchFiles"
    batch_files.mkdir(parents=True)
    (batch_files / "RunUAT.bat").write_text("@echo off\n", encoding='utf-8')
    (batch_files / "RunUAT.sh").write_text("#!/bin/sh\n", encoding='utf-8')
    (root / "Engine" / "Build" / "Build.version").write_text(json.dumps({
        "MajorVersion": major,
        "MinorVersion": minor,
        "PatchVersion": 0,
        "BranchName": f"++UE5+Release-{major}.{minor}"
    }), encoding='utf-8')
    return root


@pytest.fixture
def fake_engine(tmp_path):
    """
    Create a fake UE 5.3 installation.

    Returns:
        Path to the engine root (the directory containing Engine/)
    """
    return make_engine(tmp_path / "Epic Games" / "UE_5.3")


@pytest.fixture
def packaging_ini(temp_uproject):
    """Write a Config/Packaging.ini into the temporary project."""
    ini_path = temp_uproject / "Config" / "Packaging.ini"
    ini_path.write_text("""[Packaging]
Configuration=Shipping
Platform=Linux
TargetType=server

[Publish]
Target=studio/testgame
Channel=linux-beta
Ignore=*.log, Saved/*
""", encoding='utf-8')
    return ini_path
