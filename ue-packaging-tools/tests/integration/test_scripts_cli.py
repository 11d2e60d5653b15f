"""
Integration tests for the wrapper scripts.

Runs scripts/*.py in a subprocess and checks help output, dry-run commands
and exit codes.
"""

import pytest
import os
import subprocess
import sys
from pathlib import Path

SCRIPTS_ROOT = Path(__file__).parent.parent.parent / "scripts"
PROJECT_SCRIPT = SCRIPTS_ROOT / "package-project.py"
PLUGIN_SCRIPT = SCRIPTS_ROOT / "package-plugin.py"
PUBLISH_SCRIPT = SCRIPTS_ROOT / "publish-build.py"

pytestmark = pytest.mark.integration


def run_script(script, *args, env=None):
    full_env = os.environ.copy()
    for name in ("UE_ENGINE_ROOT", "UE_PROJECT_DIR", "UE_ARCHIVE_ROOT", "BUTLER_PATH", "BUTLER_TARGET"):
        full_env.pop(name, None)
    if env:
        full_env.update(env)

    return subprocess.run(
        [sys.executable, str(script), *[str(a) for a in args]],
        capture_output=True,
        text=True,
        timeout=30,
        env=full_env,
    )


class TestCLIHelp:
    """Test CLI help and usage output."""

    def test_project_help(self):
        result = run_script(PROJECT_SCRIPT, "--help")

        assert result.returncode == 0
        assert "BuildCookRun" in result.stdout
        for flag in ("--project-root", "--project-name", "--target", "--configuration",
                     "--platform", "--archive-root", "--engine-root", "--engine-version",
                     "--publish", "--butler-target", "--channel", "--identity",
                     "--allow-non-shipping", "--uat-arg"):
            assert flag in result.stdout
        assert "Examples:" in result.stdout

    def test_plugin_help(self):
        result = run_script(PLUGIN_SCRIPT, "--help")

        assert result.returncode == 0
        assert "--plugin-root" in result.stdout
        assert "--zip" in result.stdout

    def test_publish_help(self):
        result = run_script(PUBLISH_SCRIPT, "--help")

        assert result.returncode == 0
        assert "--source" in result.stdout
        assert "--user-version" in result.stdout


class TestPackageProjectScript:
    def test_dry_run(self, temp_uproject, fake_engine):
        result = run_script(
            PROJECT_SCRIPT,
            "--project-root", temp_uproject,
            "--engine-root", fake_engine,
            "--platform", "Win64",
            "--configuration", "Shipping",
            "--dry-run",
        )

        assert result.returncode == 0, result.stderr
        assert "[dry-run] Running:" in result.stderr
        assert "-clientconfig=Shipping" in result.stderr
        assert "Windows" in result.stderr

    def test_engine_from_environment(self, temp_uproject, fake_engine):
        result = run_script(
            PROJECT_SCRIPT,
            "--project-root", temp_uproject,
            "--dry-run",
            env={"UE_ENGINE_ROOT": str(fake_engine)},
        )

        assert result.returncode == 0, result.stderr

    def test_project_from_environment(self, temp_uproject, fake_engine):
        result = run_script(
            PROJECT_SCRIPT,
            "--engine-root", fake_engine,
            "--dry-run",
            env={"UE_PROJECT_DIR": str(temp_uproject)},
        )

        assert result.returncode == 0, result.stderr
        assert "TestProject.uproject" in result.stderr

    def test_ambiguous_descriptor(self, temp_uproject, fake_engine):
        (temp_uproject / "Other.uproject").write_text("{}")

        result = run_script(
            PROJECT_SCRIPT,
            "--project-root", temp_uproject,
            "--engine-root", fake_engine,
            "--dry-run",
        )

        assert result.returncode == 1
        assert "[ERROR]" in result.stderr

    def test_non_shipping_publish(self, temp_uproject, fake_engine):
        result = run_script(
            PROJECT_SCRIPT,
            "--project-root", temp_uproject,
            "--engine-root", fake_engine,
            "--publish",
            "--butler-target", "studio/testgame",
            "--dry-run",
        )

        assert result.returncode == 1
        assert "--allow-non-shipping" in result.stderr
        assert "Running:" not in result.stderr

    def test_missing_engine(self, temp_uproject, tmp_path):
        result = run_script(
            PROJECT_SCRIPT,
            "--project-root", temp_uproject,
            "--engine-root", tmp_path / "NoEngine",
            "--dry-run",
        )

        assert result.returncode == 1
        assert "Engine" in result.stderr


class TestPackagePluginScript:
    def test_dry_run(self, temp_uplugin, fake_engine):
        result = run_script(
            PLUGIN_SCRIPT,
            "--plugin-root", temp_uplugin,
            "--engine-root", fake_engine,
            "--platform", "Win64",
            "--platform", "Linux",
            "--dry-run",
        )

        assert result.returncode == 0, result.stderr
        assert "BuildPlugin" in result.stderr
        assert "-TargetPlatforms=Win64+Linux" in result.stderr

    def test_no_plugin(self, tmp_path, fake_engine):
        empty = tmp_path / "Empty"
        empty.mkdir()

        result = run_script(
            PLUGIN_SCRIPT,
            "--plugin-root", empty,
            "--engine-root", fake_engine,
            "--dry-run",
        )

        assert result.returncode == 1
        assert ".uplugin" in result.stderr


class TestPublishScript:
    def test_dry_run(self, tmp_path, temp_uproject):
        build_dir = tmp_path / "Windows"
        build_dir.mkdir()

        result = run_script(
            PUBLISH_SCRIPT,
            "--project-root", temp_uproject,
            "--source", build_dir,
            "--configuration", "Shipping",
            "--platform", "Win64",
            "--user-version", "1.0.3",
            "--dry-run",
            env={"BUTLER_TARGET": "studio/testgame"},
        )

        assert result.returncode == 0, result.stderr
        assert "studio/testgame:windows" in result.stderr
        assert "--userversion 1.0.3" in result.stderr

    def test_non_shipping(self, tmp_path, temp_uproject):
        result = run_script(
            PUBLISH_SCRIPT,
            "--project-root", temp_uproject,
            "--source", tmp_path,
            "--configuration", "Test",
            "--butler-target", "studio/testgame",
            "--dry-run",
        )

        assert result.returncode == 1
        assert "Refusing to publish a Test build" in result.stderr
