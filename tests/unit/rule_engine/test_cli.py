"""
Unit tests for the rule-engine CLI.

Runs the typer app in-process against config files in a temp directory.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from src import __version__
from src.rule_engine.cli import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Write a valid node configuration and return its path."""
    path = tmp_path / "node.json"
    path.write_text(
        json.dumps(
            {
                "direction": "FROM",
                "relationType": "Contains",
                "entityType": "DEVICE",
                "entityNamePattern": "${site}-${deviceName}",
                "entityTypePattern": "${profile}",
                "entityCacheExpiration": 60,
            }
        )
    )
    return path


class TestValidateCommand:
    def test_valid_config(self, config_file) -> None:
        result = runner.invoke(app, ["validate", str(config_file)])

        assert result.exit_code == 0
        assert "Relation Action Configuration" in result.output
        assert "entityNamePattern" in result.output
        assert "Resolved descriptor" not in result.output

    def test_descriptor_with_metadata(self, config_file) -> None:
        result = runner.invoke(
            app,
            [
                "validate",
                str(config_file),
                "-m",
                "site=north",
                "-m",
                "deviceName=sensor-1",
                "-m",
                "profile=thermostat",
            ],
        )

        assert result.exit_code == 0
        assert "Resolved descriptor" in result.output
        assert "north-sensor-1" in result.output
        assert "thermostat" in result.output
        assert "Warning" not in result.output

    def test_unresolved_placeholders_warn(self, config_file) -> None:
        result = runner.invoke(app, ["validate", str(config_file), "-m", "deviceName=sensor-1"])

        assert result.exit_code == 0
        assert "Warning" in result.output
        assert "profile, site" in result.output

    def test_missing_file(self, tmp_path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "absent.json")])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_config(self, tmp_path) -> None:
        path = tmp_path / "node.json"
        path.write_text(json.dumps({"entityNamePattern": "x"}))

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "CONFIG_MISSING" in result.output

    def test_malformed_metadata(self, config_file) -> None:
        result = runner.invoke(app, ["validate", str(config_file), "-m", "no-separator"])

        assert result.exit_code != 0


class TestVersionCommand:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output
