"""Turn catalog entries and registry results into update candidates."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .globs import GlobMatcher
from .groups import should_ignore
from .models import CatalogEntry, IgnoreRule, UpdateCandidate
from .versions import classify_change


def find_update_candidates(
    entries: Sequence[CatalogEntry],
    latest_versions: Mapping[str, str],
    ignore_rules: Sequence[IgnoreRule] = (),
    matcher: GlobMatcher | None = None,
) -> list[UpdateCandidate]:
    """Build the list of available, non-ignored updates.

    An entry becomes a candidate when the registry reported a latest
    version for it (keyed by catalog name), that version is not a
    pre-release, it is strictly newer than the current version, and no
    ignore rule suppresses the resulting change type. Entries the registry
    lookup failed for are silently skipped.

    Args:
        entries: Parsed catalog entries, in catalog order.
        latest_versions: Map of catalog name → latest version.
        ignore_rules: Rules that suppress matching updates.
        matcher: Glob matcher to reuse across calls.

    Returns:
        Candidates in catalog order.
    """
    matcher = matcher or GlobMatcher()
    candidates: list[UpdateCandidate] = []

    for entry in entries:
        latest = latest_versions.get(entry.name)
        if not latest or "-" in latest:
            continue

        change_type = classify_change(entry.current_version, latest)
        if change_type is None:
            continue

        if should_ignore(entry.name, change_type, ignore_rules, matcher):
            continue

        candidates.append(
            UpdateCandidate(
                **entry.model_dump(),
                latest_version=latest,
                change_type=change_type,
            )
        )

    return candidates
