"""Tests for catalog_update.catalog."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from catalog_update.catalog import (
    apply_updates,
    detect_indent,
    get_catalog,
    load_package_json,
    parse_catalog,
)
from catalog_update.models import SemverChange, UpdateCandidate

CandidateFactory = Callable[..., UpdateCandidate]


class TestParseCatalog:
    """Tests for parse_catalog()."""

    def test_caret_and_exact(self) -> None:
        """Caret ranges are stripped and remembered."""
        entries = parse_catalog({"react": "^19.0.0", "lodash": "4.17.21"})

        assert [e.name for e in entries] == ["react", "lodash"]
        react, lodash = entries
        assert react.current_version == "19.0.0"
        assert react.has_caret
        assert react.npm_name == "react"
        assert lodash.current_version == "4.17.21"
        assert not lodash.has_caret

    def test_alias(self) -> None:
        """npm: aliases query the aliased package."""
        (entry,) = parse_catalog({"vite": "npm:rolldown-vite@^7.3.1"})

        assert entry.name == "vite"
        assert entry.npm_name == "rolldown-vite"
        assert entry.is_alias
        assert entry.alias_name == "rolldown-vite"
        assert entry.current_version == "7.3.1"
        assert entry.has_caret

    def test_scoped_alias(self) -> None:
        """Scoped package names survive alias parsing."""
        (entry,) = parse_catalog({"types": "npm:@types/node@22.0.0"})

        assert entry.npm_name == "@types/node"
        assert entry.current_version == "22.0.0"

    def test_skips_prereleases(self) -> None:
        """Pre-release pins are dropped."""
        entries = parse_catalog({"@typescript/native-preview": "7.0.0-dev.20250101.1", "react": "19.0.0"})
        assert [e.name for e in entries] == ["react"]

    def test_skips_unparseable(self) -> None:
        """Ranges without a leading triple and non-string values are dropped."""
        entries = parse_catalog(
            {"a": "~1.2.3", "b": "latest", "c": ">=1.0.0", "d": 5, "e": "workspace:*", "f": "1.0.0"}
        )
        assert [e.name for e in entries] == ["f"]

    def test_empty(self) -> None:
        """An empty catalog parses to nothing."""
        assert parse_catalog({}) == []


class TestGetCatalog:
    """Tests for get_catalog()."""

    def test_top_level(self) -> None:
        """The top-level catalog is used first."""
        assert get_catalog({"catalog": {"a": "1.0.0"}}) == {"a": "1.0.0"}

    def test_workspaces_catalog(self) -> None:
        """Bun's workspaces.catalog is supported."""
        doc = {"workspaces": {"packages": ["packages/*"], "catalog": {"a": "1.0.0"}}}
        assert get_catalog(doc) == {"a": "1.0.0"}

    def test_missing(self) -> None:
        """Manifests without a catalog yield None."""
        assert get_catalog({"workspaces": ["packages/*"]}) is None
        assert get_catalog({}) is None


class TestDetectIndent:
    """Tests for detect_indent()."""

    def test_four_spaces(self) -> None:
        assert detect_indent('{\n    "a": 1\n}') == "    "

    def test_tabs(self) -> None:
        assert detect_indent('{\n\t"a": 1\n}') == "\t"

    def test_default(self) -> None:
        """Single-line documents fall back to two spaces."""
        assert detect_indent('{"a": 1}') == "  "


class TestApplyUpdates:
    """Tests for apply_updates()."""

    def test_rewrites_values(self, package_json: Path, make_candidate: CandidateFactory) -> None:
        """Updated values keep caret and alias form; other fields are untouched."""
        updates = [
            make_candidate("react", "19.0.0", "19.1.0", SemverChange.MINOR, has_caret=True),
            make_candidate(
                "vite",
                "7.0.0",
                "7.1.0",
                SemverChange.MINOR,
                npm_name="rolldown-vite",
                is_alias=True,
                alias_name="rolldown-vite",
            ),
        ]

        changed = apply_updates(package_json, updates)

        assert changed == ["react", "vite"]
        doc = load_package_json(package_json)
        assert doc["catalog"]["react"] == "^19.1.0"
        assert doc["catalog"]["vite"] == "npm:rolldown-vite@7.1.0"
        assert doc["catalog"]["react-dom"] == "^19.0.0"
        assert doc["name"] == "monorepo"

    def test_preserves_formatting(self, package_json: Path, make_candidate: CandidateFactory) -> None:
        """Key order, indentation and the trailing newline are kept."""
        before = json.loads(package_json.read_text())

        apply_updates(package_json, [make_candidate("@types/react", "19.0.1", "19.0.2")])

        text = package_json.read_text()
        assert text.endswith("}\n")
        assert '\n  "name"' in text
        assert list(json.loads(text)["catalog"]) == list(before["catalog"])

    def test_skips_unknown_names(self, package_json: Path, make_candidate: CandidateFactory) -> None:
        """Updates for names not in the catalog are ignored."""
        assert apply_updates(package_json, [make_candidate("not-in-catalog")]) == []

    def test_no_catalog(self, tmp_path: Path, make_candidate: CandidateFactory) -> None:
        """A manifest without a catalog is an error."""
        path = tmp_path / "package.json"
        path.write_text('{"name": "x"}\n')

        with pytest.raises(ValueError, match="No catalog"):
            apply_updates(path, [make_candidate("react")])
