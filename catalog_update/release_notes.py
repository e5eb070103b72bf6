"""Release-note selection and rendering for PR bodies.

For every update we surface the notes of each published version between
the current and the latest one (newest first, capped), so a PR that jumps
several releases shows what changed in all of them. Bodies are bounded
twice: each note is truncated on its own, and the notes for one package
stop rendering once their combined length would pass a second limit.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from functools import cmp_to_key

from pydantic import BaseModel, Field

from .models import PackageMetadata, ReleaseEntry, UpdateCandidate, VersionReleaseNote
from .versions import compare_versions, extract_version_from_tag, parse_version

RELEASE_NOTES_MAX_LENGTH = 2000
COMBINED_RELEASE_NOTES_MAX_LENGTH = 5000
MAX_INTERMEDIATE_VERSIONS = 10

_PACKAGE_TAG_RE = re.compile(r"^(.+)@\d+\.\d+\.\d+")


def get_intermediate_versions(
    published_versions: Iterable[str],
    current_version: str,
    latest_version: str,
    max_versions: int = MAX_INTERMEDIATE_VERSIONS,
) -> list[str]:
    """Return published versions with current < v <= latest, newest first.

    Pre-releases and unparseable versions are dropped and the result is
    capped at max_versions. If nothing qualifies, [latest_version] is
    returned so there is always at least one version to look up.

    Example:
        (["1.0.0", "1.1.0", "1.2.0"], "1.0.0", "1.2.0") → ["1.2.0", "1.1.0"]
    """
    intermediate = [
        v
        for v in published_versions
        if "-" not in v
        and parse_version(v) is not None
        and compare_versions(current_version, v) < 0
        and compare_versions(v, latest_version) <= 0
    ]
    intermediate.sort(key=cmp_to_key(lambda a, b: compare_versions(b, a)))
    intermediate = intermediate[:max_versions]

    if not intermediate:
        return [latest_version]
    return intermediate


class ReleaseIndex(BaseModel):
    """Releases of one repository, indexed by version.

    Monorepos that release packages independently tag them as
    ``<package>@<version>``; those land in ``packages`` keyed by
    (package, version). Everything else lands in ``generic``.
    """

    generic: dict[str, ReleaseEntry] = Field(default_factory=dict)
    packages: dict[tuple[str, str], ReleaseEntry] = Field(default_factory=dict)

    def lookup(self, npm_name: str, version: str) -> ReleaseEntry | None:
        """Find the release for a version, preferring the package's own tag."""
        return self.packages.get((npm_name, version)) or self.generic.get(version)


def index_releases(releases: Iterable[ReleaseEntry]) -> ReleaseIndex:
    """Index releases by the version parsed from their tag.

    Releases with an empty body or a tag that carries no version are
    skipped. Position in the listing is irrelevant.
    """
    index = ReleaseIndex()
    for release in releases:
        body = release.body.strip()
        if not body:
            continue
        version = extract_version_from_tag(release.tag)
        if not version:
            continue

        entry = ReleaseEntry(tag=release.tag, body=body, url=release.url)
        package_match = _PACKAGE_TAG_RE.match(release.tag)
        if package_match:
            index.packages[(package_match.group(1), version)] = entry
        else:
            index.generic[version] = entry
    return index


def truncate_note(body: str, url: str) -> str:
    """Cut a note body to RELEASE_NOTES_MAX_LENGTH with a link to the rest."""
    if len(body) <= RELEASE_NOTES_MAX_LENGTH:
        return body
    return f"{body[:RELEASE_NOTES_MAX_LENGTH]}\n\n…[full notes]({url})"


def resolve_release_notes(
    candidate: UpdateCandidate,
    metadata: PackageMetadata,
    index: ReleaseIndex,
) -> list[VersionReleaseNote]:
    """Collect the bounded notes for every intermediate version of an update.

    Versions without a matching release are skipped, so the result may be
    empty.
    """
    fallback_url = f"https://github.com/{metadata.repo.slug}/releases"
    versions = get_intermediate_versions(
        metadata.published_versions,
        candidate.current_version,
        candidate.latest_version,
    )

    notes: list[VersionReleaseNote] = []
    for version in versions:
        release = index.lookup(candidate.npm_name, version)
        if release is None:
            continue
        body = truncate_note(release.body, release.url or fallback_url)
        notes.append(VersionReleaseNote(version=version, body=body))
    return notes


def format_release_notes(
    updates: Sequence[UpdateCandidate],
    release_notes: Mapping[str, Sequence[VersionReleaseNote]],
) -> list[str]:
    """Render the "Release Notes" section of a PR body.

    Packages are listed alphabetically ignoring case, each in a collapsible
    block. With more than one version, every version gets its own nested
    block until the combined body length would pass
    COMBINED_RELEASE_NOTES_MAX_LENGTH; the remaining versions are
    summarised in a single line.

    Returns:
        Lines of markdown, or an empty list if no update has notes.
    """
    with_notes = sorted(
        (u for u in updates if release_notes.get(u.name)),
        key=lambda u: u.name.casefold(),
    )
    if not with_notes:
        return []

    lines: list[str] = ["", "## Release Notes", ""]

    for update in with_notes:
        notes = release_notes[update.name]
        summary = f"<b>{update.name}</b> ({update.current_version} → {update.latest_version})"

        if len(notes) == 1:
            lines.extend(
                ["<details>", f"<summary>{summary}</summary>", "", notes[0].body, "", "</details>", ""]
            )
            continue

        lines.extend(["<details>", f"<summary>{summary} — {len(notes)} releases</summary>", ""])

        total = 0
        for rendered, note in enumerate(notes):
            if total + len(note.body) > COMBINED_RELEASE_NOTES_MAX_LENGTH:
                remaining = len(notes) - rendered
                lines.extend([f"<p><i>…and {remaining} more release(s) not shown</i></p>", ""])
                break
            lines.extend(
                [
                    "<details>",
                    f"<summary><b>{note.version}</b></summary>",
                    "",
                    note.body,
                    "",
                    "</details>",
                    "",
                ]
            )
            total += len(note.body)

        lines.extend(["</details>", ""])

    return lines
