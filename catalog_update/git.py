"""Pull request management through git and the GitHub CLI.

Every group of updates lives on its own branch, ``<prefix>/<group>``, with
one PR against the default branch. PR bodies carry a hidden marker listing
the exact ``name@version`` set, so a later run can tell whether an open PR
still matches the updates available now.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .catalog import apply_updates
from .config import Config
from .models import ExistingPr, GroupAssignment, UpdateCandidate, VersionReleaseNote
from .release_notes import format_release_notes
from .shell import gh, git, run

logger = logging.getLogger(__name__)

LOCKFILES: dict[str, tuple[str, ...]] = {
    "bun": ("bun.lock", "bun.lockb"),
    "npm": ("package-lock.json",),
    "pnpm": ("pnpm-lock.yaml",),
    "yarn": ("yarn.lock",),
}

LOCKFILE_COMMANDS: dict[str, tuple[str, ...]] = {
    "bun": ("bun", "install", "--lockfile-only"),
    "npm": ("npm", "install", "--package-lock-only"),
    "pnpm": ("pnpm", "install", "--lockfile-only"),
    "yarn": ("yarn", "install", "--mode", "update-lockfile"),
}

ReleaseNotes = Mapping[str, Sequence[VersionReleaseNote]]


class SyncResult(BaseModel):
    """Outcome of reconciling open PRs with the current groups."""

    closed_count: int = 0
    rebuilt_count: int = 0


def branch_name(prefix: str, group: str) -> str:
    return f"{prefix}/{group}"


def update_marker(updates: Sequence[UpdateCandidate]) -> str:
    """Hidden HTML comment identifying the exact set of updates in a PR."""
    pins = ",".join(f"{u.name}@{u.latest_version}" for u in sorted(updates, key=lambda u: u.name))
    return f"<!-- catalog-update:{pins} -->"


def pr_title(group: str, updates: Sequence[UpdateCandidate]) -> str:
    """Build the PR title.

    Examples:
        one update → "chore(deps): update react to 19.1.0"
        a group → "chore(deps): update react (3 packages)"
    """
    if len(updates) == 1:
        return f"chore(deps): update {updates[0].name} to {updates[0].latest_version}"
    return f"chore(deps): update {group} ({len(updates)} packages)"


def pr_body(updates: Sequence[UpdateCandidate], release_notes: ReleaseNotes) -> str:
    """Build the PR body: a table of updates, the marker, then release notes."""
    lines = [
        "Updates the following catalog dependencies:",
        "",
        "| Package | Change | From | To |",
        "| --- | --- | --- | --- |",
    ]
    for u in updates:
        lines.append(f"| `{u.name}` | {u.change_type.value} | `{u.current_version}` | `{u.latest_version}` |")
    lines.extend(["", update_marker(updates)])
    lines.extend(format_release_notes(updates, release_notes))
    return "\n".join(lines)


def get_existing_prs(branch_prefix: str) -> list[ExistingPr]:
    """List open PRs whose head branch starts with ``<branch_prefix>/``.

    Returns an empty list if the gh CLI fails or returns garbage.
    """
    output = gh(
        "pr",
        "list",
        "--state",
        "open",
        "--json",
        "headRefName,number,mergeable,title,body",
        "--limit",
        "100",
        check=False,
    )
    if not output:
        return []

    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        logger.warning("Could not parse gh pr list output")
        return []

    prs: list[ExistingPr] = []
    for item in data if isinstance(data, list) else []:
        try:
            pr = ExistingPr(
                head_ref_name=item.get("headRefName", ""),
                number=item.get("number"),
                mergeable=item.get("mergeable") or "UNKNOWN",
                title=item.get("title") or "",
                body=item.get("body") or "",
            )
        except (AttributeError, ValidationError):
            continue
        if pr.head_ref_name.startswith(f"{branch_prefix}/"):
            prs.append(pr)
    return prs


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        detail = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
        return detail or f"{exc.cmd[0]} exited with status {exc.returncode}"
    return str(exc)


def _commit_updates(
    branch: str,
    updates: Sequence[UpdateCandidate],
    config: Config,
    package_json: Path,
    message: str,
) -> None:
    """Recreate branch from the default branch with the updates committed and pushed.

    Raises:
        subprocess.CalledProcessError: If any git or package manager
            command fails.
    """
    git("fetch", "origin", config.default_branch)
    git("checkout", "-B", branch, f"origin/{config.default_branch}")
    apply_updates(package_json, updates)

    run(*LOCKFILE_COMMANDS[config.package_manager])

    root = package_json.parent
    paths = [str(package_json)]
    paths.extend(str(root / f) for f in LOCKFILES[config.package_manager] if (root / f).exists())
    git("add", *paths)
    git("commit", "-m", message)
    git("push", "--force", "origin", branch)


def create_group_pr(
    group: str,
    updates: Sequence[UpdateCandidate],
    config: Config,
    package_json: Path,
    release_notes: ReleaseNotes,
) -> bool:
    """Open a PR for one group of updates.

    Failures are reported and turned into a False return so the other
    groups still get processed. The default branch is checked out again
    whatever happens.
    """
    branch = branch_name(config.branch_prefix, group)
    title = pr_title(group, updates)
    print(f"\n  {group}: {', '.join(u.name for u in updates)}")

    try:
        _commit_updates(branch, updates, config, package_json, title)
        url = gh(
            "pr",
            "create",
            "--base",
            config.default_branch,
            "--head",
            branch,
            "--title",
            title,
            "--body",
            pr_body(updates, release_notes),
        )
    except (subprocess.CalledProcessError, OSError, ValueError) as exc:
        logger.error("Failed to create PR for %s: %s", group, _describe_failure(exc))
        return False
    finally:
        git("checkout", "-f", config.default_branch, check=False)

    print(f"  Created {url}" if url else f"  Created PR for {branch}")
    return True


def _close_stale_pr(pr: ExistingPr) -> bool:
    try:
        gh(
            "pr",
            "close",
            str(pr.number),
            "--delete-branch",
            "--comment",
            "These catalog updates are no longer needed; closing.",
        )
    except subprocess.CalledProcessError as exc:
        logger.error("Failed to close PR #%d: %s", pr.number, _describe_failure(exc))
        return False
    print(f"  Closed #{pr.number} ({pr.head_ref_name}): no longer needed")
    return True


def _rebuild_pr(
    pr: ExistingPr,
    group: str,
    updates: Sequence[UpdateCandidate],
    config: Config,
    package_json: Path,
    release_notes: ReleaseNotes,
) -> bool:
    title = pr_title(group, updates)
    try:
        _commit_updates(pr.head_ref_name, updates, config, package_json, title)
        gh("pr", "edit", str(pr.number), "--title", title, "--body", pr_body(updates, release_notes))
    except (subprocess.CalledProcessError, OSError, ValueError) as exc:
        logger.error("Failed to rebuild PR #%d: %s", pr.number, _describe_failure(exc))
        return False
    finally:
        git("checkout", "-f", config.default_branch, check=False)
    print(f"  Rebuilt #{pr.number} ({pr.head_ref_name})")
    return True


def sync_existing_prs(
    existing_prs: Sequence[ExistingPr],
    groups: GroupAssignment,
    config: Config,
    package_json: Path,
    release_notes: ReleaseNotes,
) -> SyncResult:
    """Reconcile open PRs with the groups of this run.

    - A PR whose group has no updates anymore is closed and its branch
      deleted.
    - A PR that conflicts with the default branch, or whose update set
      differs from the group's current one, is rebuilt from scratch and
      its title and body refreshed.
    - Anything else is left alone.
    """
    result = SyncResult()
    prefix = f"{config.branch_prefix}/"

    for pr in existing_prs:
        group = pr.head_ref_name.removeprefix(prefix)
        updates = groups.get(group)

        if updates is None:
            if _close_stale_pr(pr):
                result.closed_count += 1
            continue

        outdated = update_marker(updates) not in pr.body
        if pr.mergeable == "CONFLICTING" or outdated:
            if _rebuild_pr(pr, group, updates, config, package_json, release_notes):
                result.rebuilt_count += 1

    return result
