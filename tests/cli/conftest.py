"""Shared fixtures for CLI tests.

Provides helpers that write a project directory holding a manifest
(``lockwise.yaml``) and a package index (``index.yaml``), plus ready-made
projects for the common cases (resolvable, conflicting, platform specific).
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

REGISTRY_URL = "https://packages.example.com"

BASE_PACKAGES = [
    {"name": "app", "version": "1.0", "dependencies": {"rack": "~> 2.0"}},
    {"name": "rack", "version": "2.0.3"},
    {"name": "rack", "version": "2.0.5"},
    {"name": "rack", "version": "3.0"},
    {"name": "tool", "version": "0.4"},
]


def write_project(
    project: Path,
    dependencies: dict,
    packages: list[dict],
    platforms: list[str] | None = None,
) -> Path:
    """Write lockwise.yaml and index.yaml into *project*."""
    manifest = {
        "sources": [{"kind": "registry", "location": REGISTRY_URL}],
        "dependencies": dependencies,
    }
    if platforms:
        manifest["platforms"] = platforms
    (project / "lockwise.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")
    (project / "index.yaml").write_text(
        yaml.safe_dump({"packages": packages}), encoding="utf-8"
    )
    return project


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def simple_project(project_dir: Path) -> Path:
    """app -> rack, plus tool, all resolvable."""
    return write_project(project_dir, {"app": None, "tool": None}, BASE_PACKAGES)


@pytest.fixture
def conflicting_project(project_dir: Path) -> Path:
    """A root pin that a transitive requirement contradicts."""
    return write_project(
        project_dir,
        {"pkg-x": "= 1.0", "pkg-y": None},
        [
            {"name": "pkg-x", "version": "1.0"},
            {"name": "pkg-y", "version": "1.0", "dependencies": {"pkg-x": ">= 2.0"}},
        ],
    )
