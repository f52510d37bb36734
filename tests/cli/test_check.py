"""Tests for ``lockwise check`` command."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from lockwise.cli.main import cli

from .conftest import BASE_PACKAGES, write_project


def _lock(runner: CliRunner, project: Path) -> Path:
    result = runner.invoke(cli, ["lock", str(project)])
    assert result.exit_code == 0, result.output
    return project / "lockwise.lock"


class TestCheck:
    """Tests for validating an existing lockfile."""

    def test_valid_lockfile(self, runner: CliRunner, simple_project: Path) -> None:
        _lock(runner, simple_project)
        result = runner.invoke(cli, ["check", str(simple_project)])
        assert result.exit_code == 0
        assert "is valid" in result.output

    def test_no_lockfile(self, runner: CliRunner, simple_project: Path) -> None:
        result = runner.invoke(cli, ["check", str(simple_project)])
        assert result.exit_code == 2
        assert "no lockfile" in result.output

    def test_unreadable_lockfile(self, runner: CliRunner, simple_project: Path) -> None:
        (simple_project / "lockwise.lock").write_text("[]", encoding="utf-8")
        result = runner.invoke(cli, ["check", str(simple_project)])
        assert result.exit_code == 2

    def test_inconsistent_lockfile(self, runner: CliRunner, simple_project: Path) -> None:
        path = _lock(runner, simple_project)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["packages"] = [p for p in data["packages"] if p["name"] != "rack"]
        path.write_text(json.dumps(data), encoding="utf-8")

        result = runner.invoke(cli, ["check", str(simple_project)])
        assert result.exit_code == 1
        assert "Lockfile problems" in result.output
        assert "not in the lockfile" in result.output

    def test_manifest_dependency_missing(self, runner: CliRunner, simple_project: Path) -> None:
        _lock(runner, simple_project)
        packages = BASE_PACKAGES + [{"name": "json", "version": "2.0"}]
        write_project(simple_project, {"app": None, "tool": None, "json": None}, packages)

        result = runner.invoke(cli, ["check", str(simple_project)])
        assert result.exit_code == 1
        assert "missing package: json" in result.output

    def test_check_never_writes(self, runner: CliRunner, simple_project: Path) -> None:
        path = _lock(runner, simple_project)
        before = path.read_text(encoding="utf-8")
        runner.invoke(cli, ["check", str(simple_project)])
        assert path.read_text(encoding="utf-8") == before

    def test_group_selection(self, runner: CliRunner, simple_project: Path) -> None:
        _lock(runner, simple_project)
        dependencies = {"app": None, "tool": None, "rspec": {"groups": ["test"]}}
        write_project(simple_project, dependencies, BASE_PACKAGES)

        result = runner.invoke(cli, ["check", str(simple_project), "--group", "default"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(cli, ["check", str(simple_project), "--group", "test"])
        assert result.exit_code == 1
        assert "missing package: rspec" in result.output
