"""
Tests for the assetcache CLI.
"""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner, Result

from assetcache import __version__
from assetcache.cli.main import app
from assetcache.config import clear_settings_cache

runner = CliRunner()


@pytest.fixture
def db(temp_dir: Path, restore_root_logger: None) -> Generator[Path, None, None]:
    """Provide a database path and a quiet, isolated environment."""
    env_vars = {
        "ASSETCACHE_CACHE_DIR": str(temp_dir / "cache"),
        "ASSETCACHE_STORE_NAME": "CliStore",
        "ASSETCACHE_LOG_LEVEL": "WARNING",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield temp_dir / "cli.db"


def invoke(*args: str) -> Result:
    return runner.invoke(app, list(args))


def json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestInfoCommands:
    """Tests for commands that don't touch the store."""

    def test_version(self) -> None:
        """Test version prints the package version."""
        result = invoke("version")

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_config(self, db: Path) -> None:
        """Test config shows the resolved settings."""
        result = invoke("config")

        assert result.exit_code == 0
        assert "STORE_NAME" in result.stdout
        assert "CliStore" in result.stdout

    def test_config_invalid(self, db: Path) -> None:
        """Test invalid settings exit with an error."""
        with patch.dict(os.environ, {"ASSETCACHE_CACHE_CAPACITY": "0"}):
            result = invoke("config")

        assert result.exit_code == 1
        assert "invalid" in result.output.lower()

    def test_store_command_with_invalid_config(self, db: Path) -> None:
        """Test store commands refuse to run on invalid settings."""
        with patch.dict(os.environ, {"ASSETCACHE_STORE_NAME": "a/b"}):
            result = invoke("namespaces", "--db", str(db))

        assert result.exit_code == 1


class TestStoreCommands:
    """Tests for commands that read and write the store."""

    def test_init_and_namespaces(self, db: Path) -> None:
        """Test init declares namespaces and namespaces lists them."""
        result = invoke("init", "assets", "tickets", "--db", str(db))
        assert result.exit_code == 0
        assert "revision 1" in result.stdout

        result = invoke("namespaces", "--db", str(db))
        assert result.exit_code == 0
        assert "assets" in result.stdout
        assert "tickets" in result.stdout

    def test_default_database_location(self, db: Path, temp_dir: Path) -> None:
        """Test the store defaults to CACHE_DIR/STORE_NAME.db."""
        result = invoke("init", "assets")

        assert result.exit_code == 0
        assert (temp_dir / "cache" / "CliStore.db").exists()

    def test_put_get_delete(self, db: Path) -> None:
        """Test a record round-trips through put, get and delete."""
        invoke("init", "assets", "--db", str(db))

        result = invoke("put", "assets", '{"id": "a1", "model": "X1"}', "--db", str(db))
        assert result.exit_code == 0
        assert "assets/a1" in result.stdout

        result = invoke("get", "assets", "a1", "--db", str(db))
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"id": "a1", "model": "X1"}

        result = invoke("delete", "assets", "a1", "--db", str(db))
        assert result.exit_code == 0

        result = invoke("get", "assets", "a1", "--db", str(db))
        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_put_invalid_json(self, db: Path) -> None:
        """Test put rejects malformed JSON."""
        invoke("init", "assets", "--db", str(db))

        result = invoke("put", "assets", "{not json", "--db", str(db))

        assert result.exit_code == 1
        assert "invalid JSON" in result.output

    def test_put_record_without_id(self, db: Path) -> None:
        """Test put reports an invalid record."""
        invoke("init", "assets", "--db", str(db))

        result = invoke("put", "assets", '{"model": "X1"}', "--db", str(db))

        assert result.exit_code == 1
        assert "Record has no id" in result.output

    def test_undeclared_namespace(self, db: Path) -> None:
        """Test commands on an undeclared namespace fail."""
        invoke("init", "assets", "--db", str(db))

        result = invoke("get", "users", "u1", "--db", str(db))

        assert result.exit_code == 1
        assert "never declared" in result.output

    def test_load_and_dump(self, db: Path, temp_dir: Path) -> None:
        """Test a JSON array loads in one go and dumps page by page."""
        invoke("init", "assets", "--db", str(db))
        source = temp_dir / "assets.json"
        source.write_text(json.dumps([{"id": f"a{i}", "n": i} for i in range(5)]))

        result = invoke("load", "assets", str(source), "--db", str(db))
        assert result.exit_code == 0
        assert "Loaded 5 records" in result.stdout

        result = invoke("dump", "assets", "--page-size", "2", "--db", str(db))
        assert result.exit_code == 0
        assert [r["id"] for r in json_lines(result.stdout)] == ["a0", "a1"]

        result = invoke("dump", "assets", "--page-size", "2", "-p", "3", "--db", str(db))
        assert [r["id"] for r in json_lines(result.stdout)] == ["a4"]

    def test_load_json_lines(self, db: Path, temp_dir: Path) -> None:
        """Test JSON Lines input, blank lines ignored."""
        invoke("init", "tickets", "--db", str(db))
        source = temp_dir / "tickets.jsonl"
        source.write_text('{"id": 1, "title": "VPN"}\n\n{"id": 2, "title": "Printer"}\n')

        result = invoke("load", "tickets", str(source), "--db", str(db))

        assert result.exit_code == 0
        assert "Loaded 2 records" in result.stdout

    def test_load_is_all_or_nothing(self, db: Path, temp_dir: Path) -> None:
        """Test a bad record in the file loads nothing."""
        invoke("init", "assets", "--db", str(db))
        source = temp_dir / "assets.jsonl"
        source.write_text('{"id": "a1"}\n{"id": "a2"}\n{"name": "no id"}\n')

        result = invoke("load", "assets", str(source), "--db", str(db))
        assert result.exit_code == 1

        result = invoke("dump", "assets", "--db", str(db))
        assert json_lines(result.stdout) == []

    def test_load_malformed_file(self, db: Path, temp_dir: Path) -> None:
        """Test unparseable lines are reported."""
        invoke("init", "assets", "--db", str(db))
        source = temp_dir / "broken.jsonl"
        source.write_text('{"id": "a1"}\n{oops\n')

        result = invoke("load", "assets", str(source), "--db", str(db))

        assert result.exit_code == 1
        assert "invalid JSON" in result.output

    def test_clear(self, db: Path) -> None:
        """Test clear asks for confirmation unless --yes is given."""
        invoke("init", "assets", "--db", str(db))
        invoke("put", "assets", '{"id": "a1"}', "--db", str(db))

        result = runner.invoke(app, ["clear", "assets", "--db", str(db)], input="n\n")
        assert result.exit_code == 1
        assert invoke("get", "assets", "a1", "--db", str(db)).exit_code == 0

        result = invoke("clear", "assets", "--yes", "--db", str(db))
        assert result.exit_code == 0
        assert invoke("get", "assets", "a1", "--db", str(db)).exit_code == 1

    @pytest.mark.parametrize("command", ["get", "delete"])
    def test_empty_record_id(self, db: Path, command: str) -> None:
        """Test an empty id is reported without a traceback."""
        invoke("init", "assets", "--db", str(db))

        result = invoke(command, "assets", "", "--db", str(db))

        assert result.exit_code == 1
        assert "record id must not be empty" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_empty_namespace_name(self, db: Path) -> None:
        """Test init rejects an empty namespace name cleanly."""
        result = invoke("init", "assets", "", "--db", str(db))

        assert result.exit_code == 1
        assert "non-empty strings" in result.output
