"""
Tests for the command line interface
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from AdminKernel.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


def write_manifest(path, name, requires=(), entry="admin_entries:connect_books"):
    path.write_text(
        json.dumps({"name": name, "requires": list(requires), "entry": entry}),
        encoding="utf-8",
    )
    return str(path)


class TestOrder:
    def test_prints_load_order(self, runner, tmp_path, entry_package):
        books = write_manifest(tmp_path / "books.json", "books", ["genres"])
        genres = write_manifest(tmp_path / "genres.json", "genres")

        result = runner.invoke(cli, ["order", books, genres])

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["1. genres", "2. books"]

    def test_uses_config_manifests(self, runner, tmp_path, entry_package):
        genres = write_manifest(tmp_path / "genres.json", "genres")
        config_path = tmp_path / "adminkernel.yaml"
        config_path.write_text(
            yaml.safe_dump({"modules": {"manifests": [genres]}}), encoding="utf-8"
        )

        result = runner.invoke(cli, ["order", "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["1. genres"]

    def test_cycle_fails(self, runner, tmp_path, entry_package):
        a = write_manifest(tmp_path / "a.json", "a", ["b"])
        b = write_manifest(tmp_path / "b.json", "b", ["a"])

        result = runner.invoke(cli, ["order", a, b])

        assert result.exit_code == 1
        assert "a -> b -> a" in result.output

    def test_no_manifests(self, runner, tmp_path):
        result = runner.invoke(cli, ["order", "--config", str(tmp_path / "none.yaml")])

        assert result.exit_code == 0
        assert "没有模块清单" in result.output


class TestInit:
    def test_creates_config(self, runner, tmp_path):
        config_path = tmp_path / "config" / "adminkernel.yaml"

        result = runner.invoke(cli, ["init", "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        assert data["kernel"]["deferred_signals"] is True

    def test_existing_config_kept_when_declined(self, runner, tmp_path):
        config_path = tmp_path / "adminkernel.json"
        config_path.write_text("{}", encoding="utf-8")

        result = runner.invoke(cli, ["init", "--config", str(config_path)], input="n\n")

        assert result.exit_code == 0
        assert config_path.read_text(encoding="utf-8") == "{}"

    def test_force_overwrites(self, runner, tmp_path):
        config_path = tmp_path / "adminkernel.json"
        config_path.write_text("{}", encoding="utf-8")

        result = runner.invoke(cli, ["init", "--config", str(config_path), "--force"])

        assert result.exit_code == 0
        assert "kernel" in json.loads(config_path.read_text(encoding="utf-8"))


class TestRun:
    def test_startup_failure_exits_with_error(self, runner, tmp_path):
        config_path = tmp_path / "adminkernel.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "modules": {"manifests": [str(tmp_path / "missing.json")]},
                    "logging": {"level": "INFO", "file": str(tmp_path / "k.log")},
                }
            ),
            encoding="utf-8",
        )

        result = runner.invoke(cli, ["run", "--config", str(config_path)])

        assert result.exit_code == 1


def test_version(runner):
    result = runner.invoke(cli, ["version"])

    assert result.exit_code == 0
    assert result.output.startswith("AdminKernel v")
