"""Shared fixtures for lockwise tests."""

import pathlib

import pytest


@pytest.fixture
def project_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create an empty temporary project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project
