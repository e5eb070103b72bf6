"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from catalog_update.config import Config
from catalog_update.models import SemverChange, UpdateCandidate


@pytest.fixture
def package_json(tmp_path: Path) -> Path:
    """Create a root package.json with a catalog."""
    doc = {
        "name": "monorepo",
        "private": True,
        "workspaces": ["packages/*"],
        "catalog": {
            "react": "^19.0.0",
            "react-dom": "^19.0.0",
            "@types/react": "19.0.1",
            "vite": "npm:rolldown-vite@7.0.0",
            "@typescript/native-preview": "7.0.0-dev.20250101.1",
        },
    }
    path = tmp_path / "package.json"
    path.write_text(json.dumps(doc, indent=2) + "\n")
    return path


@pytest.fixture
def make_candidate() -> Callable[..., UpdateCandidate]:
    """Factory for update candidates with sensible defaults."""

    def factory(
        name: str,
        current: str = "1.0.0",
        latest: str = "1.0.1",
        change_type: SemverChange = SemverChange.PATCH,
        **overrides: object,
    ) -> UpdateCandidate:
        fields: dict[str, object] = {
            "name": name,
            "raw": current,
            "npm_name": name,
            "current_version": current,
            "latest_version": latest,
            "change_type": change_type,
        }
        fields.update(overrides)
        return UpdateCandidate(**fields)

    return factory


@pytest.fixture
def config() -> Config:
    """A config with a small PR budget and default branch 'main'."""
    return Config(default_branch="main", max_open_prs=3)
