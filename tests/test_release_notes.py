"""Tests for catalog_update.release_notes."""

from __future__ import annotations

from collections.abc import Callable

from catalog_update.models import (
    GitHubRepo,
    PackageMetadata,
    ReleaseEntry,
    SemverChange,
    UpdateCandidate,
    VersionReleaseNote,
)
from catalog_update.release_notes import (
    COMBINED_RELEASE_NOTES_MAX_LENGTH,
    RELEASE_NOTES_MAX_LENGTH,
    format_release_notes,
    get_intermediate_versions,
    index_releases,
    resolve_release_notes,
    truncate_note,
)

CandidateFactory = Callable[..., UpdateCandidate]


class TestGetIntermediateVersions:
    """Tests for get_intermediate_versions()."""

    def test_range_newest_first(self) -> None:
        """Versions in (current, latest] are returned newest first."""
        published = ["1.0.0", "1.0.1", "1.1.0", "1.2.0", "2.0.0"]
        assert get_intermediate_versions(published, "1.0.0", "1.2.0") == ["1.2.0", "1.1.0", "1.0.1"]

    def test_drops_prereleases_and_invalid(self) -> None:
        published = ["1.1.0-beta.1", "1.1.0", "nightly", "1.0.5"]
        assert get_intermediate_versions(published, "1.0.0", "1.1.0") == ["1.1.0", "1.0.5"]

    def test_capped(self) -> None:
        """Only the newest max_versions are kept."""
        published = [f"1.0.{i}" for i in range(1, 30)]

        result = get_intermediate_versions(published, "1.0.0", "1.0.29")

        assert len(result) == 10
        assert result[0] == "1.0.29"
        assert result[-1] == "1.0.20"

    def test_custom_cap(self) -> None:
        assert get_intermediate_versions(["1.0.1", "1.0.2"], "1.0.0", "1.0.2", max_versions=1) == ["1.0.2"]

    def test_falls_back_to_latest(self) -> None:
        """With nothing in range, the latest version is still looked up."""
        assert get_intermediate_versions([], "1.0.0", "2.0.0") == ["2.0.0"]
        assert get_intermediate_versions(["0.9.0"], "1.0.0", "2.0.0") == ["2.0.0"]


class TestIndexReleases:
    """Tests for index_releases()."""

    def test_generic_and_package_tags(self) -> None:
        """Package-scoped tags are indexed separately from plain ones."""
        index = index_releases(
            [
                ReleaseEntry(tag="v1.0.0", body="generic", url="u1"),
                ReleaseEntry(tag="@scope/pkg@1.0.0", body="scoped", url="u2"),
            ]
        )

        assert index.generic["1.0.0"].body == "generic"
        assert index.packages[("@scope/pkg", "1.0.0")].body == "scoped"

    def test_skips_empty_and_versionless(self) -> None:
        index = index_releases(
            [
                ReleaseEntry(tag="v1.0.0", body="   \n"),
                ReleaseEntry(tag="nightly", body="notes"),
            ]
        )
        assert index.generic == {}
        assert index.packages == {}

    def test_bodies_are_stripped(self) -> None:
        index = index_releases([ReleaseEntry(tag="1.0.0", body="\n  notes \n")])
        assert index.generic["1.0.0"].body == "notes"

    def test_lookup_prefers_package_tag(self) -> None:
        """A package's own tag beats a generic tag for the same version."""
        index = index_releases(
            [
                ReleaseEntry(tag="v2.0.0", body="generic"),
                ReleaseEntry(tag="pkg@2.0.0", body="own"),
            ]
        )

        own = index.lookup("pkg", "2.0.0")
        other = index.lookup("other", "2.0.0")

        assert own is not None and own.body == "own"
        assert other is not None and other.body == "generic"
        assert index.lookup("pkg", "3.0.0") is None


class TestTruncateNote:
    """Tests for truncate_note()."""

    def test_short_body_unchanged(self) -> None:
        assert truncate_note("short", "https://x") == "short"

    def test_long_body_truncated(self) -> None:
        """Long bodies are cut and link to the full notes."""
        body = "x" * (RELEASE_NOTES_MAX_LENGTH + 10)

        result = truncate_note(body, "https://example.com/r")

        assert result == "x" * RELEASE_NOTES_MAX_LENGTH + "\n\n…[full notes](https://example.com/r)"


class TestResolveReleaseNotes:
    """Tests for resolve_release_notes()."""

    def test_collects_notes_for_range(self, make_candidate: CandidateFactory) -> None:
        """Every intermediate version with a release contributes a note."""
        candidate = make_candidate("pkg", "1.0.0", "1.2.0", SemverChange.MINOR)
        metadata = PackageMetadata(
            repo=GitHubRepo(owner="o", repo="r"),
            published_versions=["1.0.0", "1.1.0", "1.2.0"],
        )
        index = index_releases(
            [
                ReleaseEntry(tag="v1.2.0", body="one-two"),
                ReleaseEntry(tag="v1.1.0", body="one-one"),
            ]
        )

        notes = resolve_release_notes(candidate, metadata, index)

        assert notes == [
            VersionReleaseNote(version="1.2.0", body="one-two"),
            VersionReleaseNote(version="1.1.0", body="one-one"),
        ]

    def test_skips_versions_without_release(self, make_candidate: CandidateFactory) -> None:
        candidate = make_candidate("pkg", "1.0.0", "1.2.0", SemverChange.MINOR)
        metadata = PackageMetadata(repo=GitHubRepo(owner="o", repo="r"), published_versions=["1.1.0", "1.2.0"])
        index = index_releases([ReleaseEntry(tag="v1.1.0", body="one-one")])

        notes = resolve_release_notes(candidate, metadata, index)

        assert [n.version for n in notes] == ["1.1.0"]

    def test_truncation_falls_back_to_releases_page(self, make_candidate: CandidateFactory) -> None:
        """Without a release URL, the repository's releases page is linked."""
        candidate = make_candidate("pkg", "1.0.0", "1.0.1")
        metadata = PackageMetadata(repo=GitHubRepo(owner="o", repo="r"))
        index = index_releases([ReleaseEntry(tag="v1.0.1", body="y" * 3000)])

        (note,) = resolve_release_notes(candidate, metadata, index)

        assert note.body.endswith("[full notes](https://github.com/o/r/releases)")

    def test_uses_npm_name_for_package_tags(self, make_candidate: CandidateFactory) -> None:
        """Aliased entries match releases tagged with the real package name."""
        candidate = make_candidate("vite", "7.0.0", "7.0.1", npm_name="rolldown-vite")
        metadata = PackageMetadata(repo=GitHubRepo(owner="o", repo="r"), published_versions=["7.0.1"])
        index = index_releases(
            [
                ReleaseEntry(tag="rolldown-vite@7.0.1", body="rolldown"),
                ReleaseEntry(tag="vite@7.0.1", body="vite"),
            ]
        )

        (note,) = resolve_release_notes(candidate, metadata, index)

        assert note.body == "rolldown"


class TestFormatReleaseNotes:
    """Tests for format_release_notes()."""

    def test_no_notes(self, make_candidate: CandidateFactory) -> None:
        assert format_release_notes([make_candidate("a")], {}) == []

    def test_single_note(self, make_candidate: CandidateFactory) -> None:
        """One note renders as a single collapsible block."""
        update = make_candidate("react", "19.0.0", "19.0.1")
        notes = {"react": [VersionReleaseNote(version="19.0.1", body="Fixes")]}

        text = "\n".join(format_release_notes([update], notes))

        assert "## Release Notes" in text
        assert "<summary><b>react</b> (19.0.0 → 19.0.1)</summary>" in text
        assert "Fixes" in text
        assert "releases</summary>" not in text

    def test_multiple_notes_nested(self, make_candidate: CandidateFactory) -> None:
        """Several notes get one nested block per version."""
        update = make_candidate("vite", "7.0.0", "7.2.0", SemverChange.MINOR)
        notes = {
            "vite": [
                VersionReleaseNote(version="7.2.0", body="two"),
                VersionReleaseNote(version="7.1.0", body="one"),
            ]
        }

        text = "\n".join(format_release_notes([update], notes))

        assert "— 2 releases</summary>" in text
        assert "<summary><b>7.2.0</b></summary>" in text
        assert text.index("7.2.0</b>") < text.index("7.1.0</b>")

    def test_packages_sorted_by_name(self, make_candidate: CandidateFactory) -> None:
        updates = [make_candidate("zod"), make_candidate("axios")]
        notes = {
            "zod": [VersionReleaseNote(version="1.0.1", body="z")],
            "axios": [VersionReleaseNote(version="1.0.1", body="a")],
        }

        text = "\n".join(format_release_notes(updates, notes))

        assert text.index("<b>axios</b>") < text.index("<b>zod</b>")

    def test_sort_ignores_case(self, make_candidate: CandidateFactory) -> None:
        """Capitalised names sort among the lowercase ones, not before them."""
        updates = [make_candidate("Zod"), make_candidate("axios"), make_candidate("Babel")]
        notes = {u.name: [VersionReleaseNote(version="1.0.1", body=u.name)] for u in updates}

        text = "\n".join(format_release_notes(updates, notes))

        assert text.index("<b>axios</b>") < text.index("<b>Babel</b>") < text.index("<b>Zod</b>")

    def test_combined_length_cap(self, make_candidate: CandidateFactory) -> None:
        """Versions past the combined cap are summarised, not rendered."""
        update = make_candidate("big", "1.0.0", "1.0.4")
        body = "b" * RELEASE_NOTES_MAX_LENGTH
        notes = {"big": [VersionReleaseNote(version=f"1.0.{i}", body=body) for i in range(4, 0, -1)]}

        text = "\n".join(format_release_notes([update], notes))

        shown = COMBINED_RELEASE_NOTES_MAX_LENGTH // RELEASE_NOTES_MAX_LENGTH
        assert text.count(body) == shown
        assert f"…and {4 - shown} more release(s) not shown" in text
