"""Update pipeline: parse → query → classify → group → sync → open PRs.

This module orchestrates one catalog-update run:
1. Load the config file
2. Parse the catalog from the root package.json
3. Query the npm registry for the latest stable version of every entry
4. Classify updates by severity and drop the ignored ones
5. Fetch package metadata and GitHub release notes for the candidates
6. Assign candidates to groups
7. Close stale PRs and rebuild conflicting or outdated ones
8. Open one PR per group that doesn't have one, up to the PR limit

Steps 1-6 never touch the working tree, so a dry run stops after them.
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

from .catalog import get_catalog, load_package_json, parse_catalog
from .config import DEFAULT_CONFIG_PATH, Config, load_config
from .gate import AdmissionGate
from .git import branch_name, create_group_pr, get_existing_prs, sync_existing_prs
from .globs import GlobMatcher
from .groups import add_singleton_groups, assign_to_groups
from .models import CatalogEntry, GroupAssignment, UpdateCandidate, VersionReleaseNote
from .registry import RegistryClient
from .shell import fatal, step
from .updates import find_update_candidates


class UpdateData(BaseModel):
    """Everything gathered from the network for one run."""

    candidates: list[UpdateCandidate] = Field(default_factory=list)
    release_notes: dict[str, list[VersionReleaseNote]] = Field(default_factory=dict)


def load_run_config(config_path: Path) -> Config:
    step("Loading config")
    config = load_config(config_path).config
    print(f"  Branch prefix: {config.branch_prefix}")
    print(f"  Default branch: {config.default_branch}")
    print(f"  Package manager: {config.package_manager}")
    print(f"  Groups: {len(config.groups)}")
    print(f"  Ignore rules: {len(config.ignore)}")
    return config


def read_catalog(package_json: Path) -> list[CatalogEntry]:
    """Parse the catalog of the root package.json.

    Exits the process if package.json is missing or unreadable, or has no
    catalog.
    """
    step("Parsing catalog")
    if not package_json.exists():
        fatal(f"{package_json} not found")
    try:
        doc = load_package_json(package_json)
    except (OSError, ValueError) as exc:
        fatal(f"Could not read {package_json}: {exc}")

    catalog = get_catalog(doc)
    if catalog is None:
        fatal("No catalog found in package.json")

    entries = parse_catalog(catalog)
    print(f"  Found {len(entries)} catalog entries (skipped pre-release versions)")
    return entries


async def collect_updates(
    entries: Sequence[CatalogEntry],
    config: Config,
    github_token: str | None = None,
    matcher: GlobMatcher | None = None,
) -> UpdateData:
    """Query the registry, classify the updates and gather their release notes.

    All requests share one HTTP session and one admission gate, so
    ``config.concurrency`` bounds the whole run.
    """
    gate = AdmissionGate(config.concurrency)
    async with RegistryClient(gate, github_token=github_token) as client:
        step("Querying npm registry")
        latest_versions = await client.query_latest_versions(entries)
        print(f"  Got latest versions for {len(latest_versions)} packages")

        step("Finding available updates")
        candidates = find_update_candidates(entries, latest_versions, config.ignore, matcher)
        print(f"  Found {len(candidates)} packages with updates")
        if not candidates:
            return UpdateData()

        step("Fetching release notes")
        metadata = await client.query_package_metadata(candidates)
        print(f"  Found metadata for {len(metadata)}/{len(candidates)} packages")
        release_notes = await client.query_release_notes(candidates, metadata)
        print(f"  Found release notes for {len(release_notes)}/{len(candidates)} packages")

    return UpdateData(candidates=candidates, release_notes=release_notes)


def group_updates(
    candidates: Sequence[UpdateCandidate],
    config: Config,
    matcher: GlobMatcher | None = None,
) -> GroupAssignment:
    """Assign candidates to groups; anything unmatched gets its own group."""
    step("Grouping updates")
    groups = add_singleton_groups(assign_to_groups(candidates, config.groups, matcher), candidates)
    for name, updates in groups.items():
        types = ", ".join(dict.fromkeys(u.change_type.value for u in updates))
        print(f"  {name}: {', '.join(u.name for u in updates)} ({types})")
    return groups


def open_pull_requests(
    groups: GroupAssignment,
    config: Config,
    package_json: Path,
    release_notes: dict[str, list[VersionReleaseNote]],
) -> tuple[int, int, int]:
    """Sync existing PRs, then open PRs for the groups that lack one.

    Returns:
        Tuple of (created, attempted-to-create, rebuilt).
    """
    step("Checking existing PRs")
    existing = get_existing_prs(config.branch_prefix)
    print(f"  Found {len(existing)} existing catalog-update PRs")

    step("Syncing existing PRs")
    sync = sync_existing_prs(existing, groups, config, package_json, release_notes)
    print(f"  Closed {sync.closed_count}, rebuilt {sync.rebuilt_count}")

    existing_branches = {pr.head_ref_name for pr in existing}
    skipped = [g for g in groups if branch_name(config.branch_prefix, g) in existing_branches]
    open_count = len(existing) - sync.closed_count
    available = config.max_open_prs - open_count
    eligible = len(groups) - len(skipped)
    to_create = max(0, min(eligible, available))

    step("Creating PRs")
    print(f"  PR limit: {config.max_open_prs}, existing: {open_count}, available slots: {available}")
    print(f"  Groups with updates: {len(groups)}, already have PRs: {len(skipped)}, eligible: {eligible}")
    print(f"  PRs to create: {to_create}")

    created = 0
    for group, updates in groups.items():
        if open_count >= config.max_open_prs:
            print(f"\n  Reached PR limit ({config.max_open_prs}). Stopping.")
            break
        if branch_name(config.branch_prefix, group) in existing_branches:
            print(f'\n  Skipping "{group}": PR already exists')
            continue
        if create_group_pr(group, updates, config, package_json, release_notes):
            created += 1
            open_count += 1

    return created, to_create, sync.rebuilt_count


def run_update(config_path: str = DEFAULT_CONFIG_PATH, *, dry_run: bool = False) -> None:
    """Execute a full update run from the repository root.

    Args:
        config_path: Config file path, relative to the current directory.
        dry_run: If True, stop after printing the groups; nothing is
            pushed and no PR is touched.
    """
    root = Path.cwd()
    package_json = root / "package.json"

    print("Catalog Dependency Updater")
    print(f"Mode: {'DRY RUN' if dry_run else 'LIVE'}")
    print(f"Config: {config_path}")

    config = load_run_config(root / config_path)
    entries = read_catalog(package_json)

    matcher = GlobMatcher()
    data = asyncio.run(collect_updates(entries, config, os.environ.get("GITHUB_TOKEN"), matcher))
    if not data.candidates:
        print("\nNo updates available. Done!")
        return

    groups = group_updates(data.candidates, config, matcher)

    if dry_run:
        print(f"\n[DRY RUN] Would create {len(groups)} PRs for the above groups. Exiting.")
        return

    created, to_create, rebuilt = open_pull_requests(groups, config, package_json, data.release_notes)

    print(f"\n{'=' * 60}\nDone! Created {created}/{to_create} PRs, rebuilt {rebuilt} existing PRs.\n{'=' * 60}")

    failed = to_create - created
    if failed > 0:
        print(f"\n{failed} PR(s) failed to create.", file=sys.stderr)
        sys.exit(1)
