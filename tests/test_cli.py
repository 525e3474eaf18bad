"""Tests for the persistent-enum CLI."""

import importlib
import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from enum_models import ColorRow
from persistent_enum import acts_as_enum
from persistent_enum.cli import app
from persistent_enum.settings import clear_settings_cache

runner = CliRunner()

# The package re-exports the Typer app under the submodule's name
cli_module = importlib.import_module("persistent_enum.cli.app")


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep the CLI from reconfiguring structlog for the whole test session."""
    with patch.object(cli_module, "configure_logging") as configure:
        yield configure


class TestShow:
    def test_table_output(self, engine, db_url, insert_rows):
        insert_rows("colors", {"id": 1, "name": "Red", "hex": "#f00"}, {"id": 2, "name": "Green"})

        result = runner.invoke(app, ["show", "--table", "colors", "--database", db_url])

        assert result.exit_code == 0, result.output
        assert "Red" in result.output
        assert "#f00" in result.output

    def test_json_output(self, engine, db_url, insert_rows):
        insert_rows("colors", {"id": 1, "name": "Red", "hex": "#f00"})

        result = runner.invoke(app, ["show", "-t", "colors", "-d", db_url, "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["enum"] == "colors"
        assert payload["dummy"] is False
        assert payload["members"] == [{"ordinal": 1, "name": "Red", "active": True, "hex": "#f00"}]

    def test_custom_name_column(self, engine, db_url, insert_rows):
        insert_rows("codes", {"id": 3, "code": "X1", "description": "first"})

        result = runner.invoke(app, ["show", "-t", "codes", "-d", db_url, "--name-attr", "code", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["members"][0]["name"] == "X1"

    def test_show_does_not_write(self, engine, db_url):
        result = runner.invoke(app, ["show", "-t", "colors", "-d", db_url, "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["members"] == []

    def test_missing_table(self, engine, db_url):
        result = runner.invoke(app, ["show", "-t", "no_such_table", "-d", db_url])
        assert result.exit_code == 1
        assert "not available" in result.output


class TestSync:
    def test_sync_registered_model(self, engine):
        acts_as_enum(ColorRow, ["Red", "Green"], bind=engine)

        result = runner.invoke(app, ["sync", "enum_models:ColorRow", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["enum"] == "enum_models:ColorRow"
        assert [m["name"] for m in payload["members"]] == ["Red", "Green"]

    def test_sync_unknown_target(self):
        result = runner.invoke(app, ["sync", "no_such_module_xyz:Color"])
        assert result.exit_code == 1
        assert "UnresolvableEnumerationError" in result.output


class TestReloadAll:
    def test_reload_registered(self, engine):
        acts_as_enum(ColorRow, ["Red"], bind=engine)

        result = runner.invoke(app, ["reload-all", "--import", "enum_models"])

        assert result.exit_code == 0, result.output
        assert "Reinitialized (1)" in result.output
        assert "enum_models:ColorRow" in result.output

    def test_bad_import(self):
        result = runner.invoke(app, ["reload-all", "-i", "no_such_module_xyz"])
        assert result.exit_code == 1


class TestMisc:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("persistent-enum ")

    def test_config_json(self):
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0, result.output
        config = json.loads(result.stdout)
        assert config["maintenance_commands"] == ["alembic"]
        assert config["dummy_ordinal_start"] == 1_000_000_000

    def test_config_env(self, monkeypatch):
        monkeypatch.setenv("PERSISTENT_ENUM_MAINTENANCE_MODE", "true")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0, result.output
        assert "PERSISTENT_ENUM_MAINTENANCE_MODE=True" in result.output

    def test_callback_configures_logging(self, no_logging_setup):
        runner.invoke(app, ["config", "--json"])
        no_logging_setup.assert_called_once_with(level="INFO", json_format=False)

    def test_config_masks_database_password(self, monkeypatch):
        monkeypatch.setenv("PERSISTENT_ENUM_DATABASE_URL", "postgresql://enums:s3cret@db/enums")
        clear_settings_cache()

        text_result = runner.invoke(app, ["config"])
        json_result = runner.invoke(app, ["config", "--json"])

        assert "s3cret" not in text_result.output
        assert "postgresql://enums:***@db/enums" in text_result.output
        assert json.loads(json_result.stdout)["database_url"] == "postgresql://enums:***@db/enums"
