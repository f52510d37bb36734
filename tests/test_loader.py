"""Tests for manifest and index loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from lockwise.core.dependency import PURE, DependencyKind, Platform, Requirement, Source
from lockwise.exceptions import ConfigError, ParseError
from lockwise.loader import load_index, load_manifest, load_yaml, parse_index, parse_manifest

MANIFEST_TEXT = """\
sources:
  - {kind: registry, location: "https://packages.example.com"}
  - {kind: path, location: vendor/tool, digest: 9f2c41}
platforms:
  - pure
  - {name: x86_64-linux-musl, aliases: [x86_64-linux]}
dependencies:
  rack: "~> 2.0"
  rspec:
    kind: development
    groups: [test]
  tool:
    requirement: ">= 1.0"
    source: "path:vendor/tool"
    platforms: [x86_64-linux-musl]
"""

INDEX_TEXT = """\
packages:
  - name: rack
    version: "2.0.3"
    dependencies: {rack-test: ">= 0.6"}
  - name: tool
    version: "1.1.0"
    platform: x86_64-linux-musl
    source: "path:vendor/tool"
"""


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "lockwise.yaml"
    path.write_text(MANIFEST_TEXT, encoding="utf-8")
    return path


class TestManifest:
    """Tests for parse_manifest and load_manifest."""

    def test_sources_and_platforms(self, manifest_path: Path) -> None:
        manifest = load_manifest(manifest_path)
        assert [s.key for s in manifest.sources] == [
            "registry:https://packages.example.com",
            "path:vendor/tool",
        ]
        assert manifest.sources[1].digest == "9f2c41"
        assert manifest.platforms == (PURE, Platform("x86_64-linux-musl"))
        assert "x86_64-linux" in manifest.platforms[1].aliases

    def test_dependencies(self, manifest_path: Path) -> None:
        deps = {d.name: d for d in load_manifest(manifest_path).dependencies}
        assert deps["rack"].requirement == Requirement.parse("~> 2.0")
        assert deps["rspec"].kind is DependencyKind.DEVELOPMENT
        assert deps["rspec"].groups == ("test",)
        assert deps["tool"].source == Source("path", "vendor/tool", "9f2c41")
        assert deps["tool"].platforms == (Platform("x86_64-linux-musl"),)

    def test_list_form(self) -> None:
        manifest = parse_manifest({
            "dependencies": [{"name": "rack", "requirement": ">= 1"}, {"name": "tool"}],
        })
        assert [d.name for d in manifest.dependencies] == ["rack", "tool"]
        assert manifest.platforms == (PURE,)

    def test_duplicate_dependency(self) -> None:
        with pytest.raises(ConfigError, match="more than once"):
            parse_manifest({"dependencies": [{"name": "rack"}, {"name": "rack"}]})

    def test_undeclared_source(self) -> None:
        with pytest.raises(ConfigError, match="Unknown source"):
            parse_manifest({"dependencies": {"tool": {"source": "git:https://x"}}})

    def test_bad_requirement(self) -> None:
        with pytest.raises(ParseError):
            parse_manifest({"dependencies": {"rack": "=> 2"}})

    def test_bad_source_kind(self) -> None:
        with pytest.raises(ConfigError):
            parse_manifest({"sources": [{"kind": "ftp", "location": "x"}]})


class TestIndex:
    """Tests for parse_index and load_index."""

    def test_load_index(self, manifest_path: Path, tmp_path: Path) -> None:
        index_path = tmp_path / "index.yaml"
        index_path.write_text(INDEX_TEXT, encoding="utf-8")
        manifest = load_manifest(manifest_path)
        index = load_index(index_path, manifest)

        rack = index.specs_for("rack")[0]
        assert rack.source == manifest.sources[0]
        assert [d.name for d in rack.dependencies] == ["rack-test"]
        tool = index.specs_for("tool")[0]
        assert tool.source == manifest.sources[1]
        assert tool.platform == Platform("x86_64-linux-musl")

    def test_first_source_wins(self) -> None:
        manifest = parse_manifest({
            "sources": [
                {"location": "https://primary.example.com"},
                {"location": "https://mirror.example.com"},
            ]
        })
        index = parse_index(
            {
                "packages": [
                    {"name": "rack", "version": "2.0", "source": "registry:https://mirror.example.com"},
                    {"name": "rack", "version": "2.0"},
                ]
            },
            manifest,
        )
        assert [s.source.location for s in index.specs_for("rack")] == [
            "https://primary.example.com"
        ]
        assert len(index.shadowed) == 1

    def test_entry_needs_version(self) -> None:
        with pytest.raises(ConfigError, match="name and a version"):
            parse_index({"packages": [{"name": "rack"}]}, parse_manifest({}))

    def test_bad_version(self) -> None:
        with pytest.raises(ParseError):
            parse_index({"packages": [{"name": "rack", "version": "x.y"}]}, parse_manifest({}))

    def test_unquoted_version_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "index.yaml"
        path.write_text("packages:\n  - {name: rack, version: 1.10}\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="quoted string"):
            load_index(path, parse_manifest({}))

    def test_unquoted_requirement_rejected(self) -> None:
        with pytest.raises(ConfigError, match="quoted string"):
            parse_manifest({"dependencies": {"rack": {"requirement": 1.1}}})
        with pytest.raises(ConfigError):
            parse_manifest({"dependencies": {"rack": 2.0}})


class TestLoadYaml:
    """Tests for load_yaml error handling."""

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_yaml(path)

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read"):
            load_yaml(tmp_path / "absent.yaml")

    def test_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml(path) == {}
