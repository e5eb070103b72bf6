"""Catalog reading, parsing and rewriting.

The catalog is the ``catalog`` field of the root package.json: a mapping
from dependency name to version spec that every workspace references with
``"catalog:"``. Bun also accepts the catalog nested under ``workspaces``
when that field is an object, so both locations are supported.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .models import CatalogEntry, UpdateCandidate
from .versions import is_prerelease_spec, parse_version

_ALIAS_RE = re.compile(r"^npm:(.+)@(.+)$")
_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)


def parse_catalog(catalog: Mapping[str, Any]) -> list[CatalogEntry]:
    """Parse catalog values into structured entries.

    Entries are skipped (not reported) when the spec pins a pre-release,
    is not a string, or does not start with a ``major.minor.patch`` triple
    once any ``^`` is removed. Surviving entries keep the catalog order.

    Examples:
        {"react": "^19.0.0"} → npm_name "react", current "19.0.0", caret
        {"vite": "npm:rolldown-vite@7.3.1"} → npm_name "rolldown-vite", alias
    """
    entries: list[CatalogEntry] = []

    for name, raw in catalog.items():
        if not isinstance(raw, str):
            continue
        # e.g. @typescript/native-preview pinned to 7.0.0-dev.20250101.1
        if is_prerelease_spec(raw):
            continue

        alias_match = _ALIAS_RE.match(raw)
        if alias_match:
            alias_name, alias_version = alias_match.groups()
            has_caret = alias_version.startswith("^")
            version = alias_version[1:] if has_caret else alias_version
            if parse_version(version) is None:
                continue
            entries.append(
                CatalogEntry(
                    name=name,
                    raw=raw,
                    npm_name=alias_name,
                    current_version=version,
                    has_caret=has_caret,
                    is_alias=True,
                    alias_name=alias_name,
                )
            )
            continue

        has_caret = raw.startswith("^")
        version = raw[1:] if has_caret else raw
        if parse_version(version) is None:
            continue
        entries.append(
            CatalogEntry(
                name=name,
                raw=raw,
                npm_name=name,
                current_version=version,
                has_caret=has_caret,
            )
        )

    return entries


def load_package_json(path: Path) -> dict[str, Any]:
    """Load and parse a package.json file."""
    return json.loads(path.read_text(encoding="utf-8"))


def get_catalog(doc: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the catalog mapping, or None if the manifest has none.

    Checks the top-level ``catalog`` field first, then
    ``workspaces.catalog``.
    """
    catalog = doc.get("catalog")
    if isinstance(catalog, dict):
        return catalog
    workspaces = doc.get("workspaces")
    if isinstance(workspaces, dict) and isinstance(workspaces.get("catalog"), dict):
        return workspaces["catalog"]
    return None


def detect_indent(text: str) -> str:
    """Return the indentation used by a JSON document (default two spaces)."""
    match = _INDENT_RE.search(text)
    return match.group(1) if match else "  "


def apply_updates(path: Path, updates: Iterable[UpdateCandidate]) -> list[str]:
    """Rewrite catalog values in package.json for the given updates.

    Key order and indentation are preserved; the file keeps its trailing
    newline. Updates whose name is missing from the catalog are skipped.

    Args:
        path: Path to the root package.json.
        updates: Candidates whose catalog value should become new_spec.

    Returns:
        Names of the entries that were changed.

    Raises:
        ValueError: If the manifest has no catalog.
    """
    text = path.read_text(encoding="utf-8")
    doc = json.loads(text)
    catalog = get_catalog(doc)
    if catalog is None:
        raise ValueError(f"No catalog found in {path}")

    changed: list[str] = []
    for update in updates:
        if update.name not in catalog:
            continue
        catalog[update.name] = update.new_spec
        changed.append(update.name)

    rendered = json.dumps(doc, indent=detect_indent(text), ensure_ascii=False)
    path.write_text(rendered + "\n", encoding="utf-8")
    return changed
