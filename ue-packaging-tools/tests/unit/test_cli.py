"""
Unit tests for the command line entry points and their exit codes.
"""

import logging
import pytest
from unittest.mock import patch

from ue_packaging.cli import (
    build_plugin_parser,
    build_project_parser,
    main_package_plugin,
    main_package_project,
    main_publish,
)
from ue_packaging.errors import ToolFailedError


def run_main(main, argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParsers:
    def test_project_defaults_are_unset(self):
        args = build_project_parser().parse_args([])

        # None lets Packaging.ini and built-in defaults apply later
        assert args.configuration is None
        assert args.platform is None
        assert args.target_type is None
        assert args.publish is False
        assert args.maps == []
        assert args.uat_args == []

    def test_repeatable_flags(self):
        args = build_project_parser().parse_args(
            ["--map", "A", "--map", "B", "--ignore", "*.log", "--ignore", "*.tmp"]
        )

        assert args.maps == ["A", "B"]
        assert args.ignore == ["*.log", "*.tmp"]

    def test_uat_args(self):
        args = build_project_parser().parse_args(["--uat-arg=-iterate", "--uat-arg=-CrashReporter"])

        assert args.uat_args == ["-iterate", "-CrashReporter"]
        assert build_plugin_parser().parse_args(["--uat-arg=-NoHostPlatform"]).uat_args == ["-NoHostPlatform"]

    def test_plugin_platforms(self):
        args = build_plugin_parser().parse_args(["--platform", "Win64", "--platform", "Linux"])

        assert args.platforms == ["Win64", "Linux"]

    def test_invalid_target_type(self):
        with pytest.raises(SystemExit) as exc_info:
            build_project_parser().parse_args(["--target-type", "editor"])

        assert exc_info.value.code == 2


class TestPackageProjectMain:
    def test_dry_run_succeeds(self, temp_uproject, fake_engine, caplog):
        caplog.set_level(logging.INFO)
        code = run_main(main_package_project, [
            "--project-root", str(temp_uproject),
            "--engine-root", str(fake_engine),
            "--dry-run",
        ])

        assert code == 0
        assert "BuildCookRun" in caplog.text

    def test_uat_args_reach_runuat(self, temp_uproject, fake_engine, caplog):
        caplog.set_level(logging.INFO)
        code = run_main(main_package_project, [
            "--project-root", str(temp_uproject),
            "--engine-root", str(fake_engine),
            "--uat-arg=-iterate",
            "--dry-run",
        ])

        assert code == 0
        assert "-allmaps -iterate" in caplog.text

    def test_bad_butler_target_exits_before_build(self, temp_uproject, fake_engine, caplog):
        with patch("ue_packaging.orchestrator.run_tool") as mock_run_tool:
            code = run_main(main_package_project, [
                "--project-root", str(temp_uproject),
                "--engine-root", str(fake_engine),
                "--configuration", "Shipping",
                "--publish",
                "--butler-target", "testgame",
                "--dry-run",
            ])

        assert code == 1
        assert "Invalid butler target" in caplog.text
        mock_run_tool.assert_not_called()

    def test_ambiguous_exits_one(self, temp_uproject, fake_engine, caplog):
        (temp_uproject / "Other.uproject").write_text("{}")

        code = run_main(main_package_project, [
            "--project-root", str(temp_uproject),
            "--engine-root", str(fake_engine),
            "--dry-run",
        ])

        assert code == 1
        assert "Multiple descriptors" in caplog.text

    def test_non_shipping_publish_exits_one(self, temp_uproject, fake_engine):
        with patch("ue_packaging.orchestrator.run_tool") as mock_run_tool:
            code = run_main(main_package_project, [
                "--project-root", str(temp_uproject),
                "--engine-root", str(fake_engine),
                "--publish",
                "--butler-target", "studio/testgame",
            ])

        assert code == 1
        mock_run_tool.assert_not_called()

    def test_missing_engine_exits_one(self, temp_uproject, caplog):
        code = run_main(main_package_project, [
            "--project-root", str(temp_uproject),
            "--engine-version", "9.9",
            "--dry-run",
        ])

        assert code == 1
        assert "9.9" in caplog.text

    def test_tool_failure_exit_code(self, temp_uproject, fake_engine):
        with patch("ue_packaging.orchestrator.run_tool", side_effect=ToolFailedError("RunUAT.sh", 3)):
            code = run_main(main_package_project, [
                "--project-root", str(temp_uproject),
                "--engine-root", str(fake_engine),
            ])

        assert code == 3

    def test_invalid_configuration(self, temp_uproject, fake_engine):
        code = run_main(main_package_project, [
            "--project-root", str(temp_uproject),
            "--engine-root", str(fake_engine),
            "--configuration", "Release",
            "--dry-run",
        ])

        assert code == 1


class TestPackagePluginMain:
    def test_dry_run_succeeds(self, temp_uplugin, fake_engine, caplog):
        caplog.set_level(logging.INFO)
        code = run_main(main_package_plugin, [
            "--plugin-root", str(temp_uplugin),
            "--engine-root", str(fake_engine),
            "--platform", "Win64",
            "--zip",
            "--dry-run",
        ])

        assert code == 0
        assert "BuildPlugin" in caplog.text
        assert "TestPlugin_ue5.3.zip" in caplog.text

    def test_uat_args_reach_runuat(self, temp_uplugin, fake_engine, caplog):
        caplog.set_level(logging.INFO)
        code = run_main(main_package_plugin, [
            "--plugin-root", str(temp_uplugin),
            "--engine-root", str(fake_engine),
            "--uat-arg=-NoHostPlatform",
            "--dry-run",
        ])

        assert code == 0
        assert "-NoHostPlatform" in caplog.text


class TestPublishMain:
    def test_non_shipping_blocked(self, temp_uproject):
        code = run_main(main_publish, [
            "--project-root", str(temp_uproject),
            "--butler-target", "studio/testgame",
            "--dry-run",
        ])

        assert code == 1

    def test_default_source(self, temp_uproject, caplog):
        caplog.set_level(logging.INFO)
        code = run_main(main_publish, [
            "--project-root", str(temp_uproject),
            "--configuration", "Shipping",
            "--platform", "Linux",
            "--target-type", "server",
            "--butler-target", "studio/testgame",
            "--dry-run",
        ])

        assert code == 0
        assert "LinuxServer" in caplog.text
        assert "studio/testgame:linux-server" in caplog.text

    def test_missing_source_exits_one(self, temp_uproject, tmp_path):
        code = run_main(main_publish, [
            "--project-root", str(temp_uproject),
            "--source", str(tmp_path / "missing"),
            "--configuration", "Shipping",
            "--butler-target", "studio/testgame",
        ])

        assert code == 1
