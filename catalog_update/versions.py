"""Version parsing, ordering and change classification.

Only the leading ``major.minor.patch`` triple of a version string takes
part in ordering. Pre-release and build suffixes are ignored when parsing;
callers that must exclude pre-releases check for them separately (see
is_prerelease_spec and the hyphen checks in the registry and release-note
code).
"""

from __future__ import annotations

import re

import semver

from .models import SemverChange

_TRIPLE_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)")
_PRERELEASE_SPEC_RE = re.compile(r"\d-(?:dev|alpha|beta|rc|canary|next|preview)(?:[.\d]|$)")
_PACKAGE_TAG_RE = re.compile(r"@(\d+\.\d+\.\d+.*)$")
_PLAIN_TAG_RE = re.compile(r"^v?(\d+\.\d+\.\d+.*)$")


def parse_version(version: str) -> semver.Version | None:
    """Parse the leading ``major.minor.patch`` prefix of a version string.

    Anything after the triple is ignored, so "1.2.3-beta.1" parses the same
    as "1.2.3". Returns None when there is no such prefix.

    Examples:
        "1.2.3" → Version(1, 2, 3)
        "1.2" → None
    """
    match = _TRIPLE_RE.match(version)
    if not match:
        return None
    major, minor, patch = (int(g) for g in match.groups())
    return semver.Version(major, minor, patch)


def compare_versions(a: str, b: str) -> int:
    """Compare two versions on their (major, minor, patch) triple.

    Returns a negative number, zero or a positive number. If either side
    fails to parse the result is 0, so callers must filter invalid input
    before relying on the ordering.
    """
    pa = parse_version(a)
    pb = parse_version(b)
    if pa is None or pb is None:
        return 0
    return pa.compare(pb)


def classify_change(current: str, latest: str) -> SemverChange | None:
    """Classify the update from current to latest.

    The highest-order field that increased decides the severity. A
    decrease at a higher order means there is no update at all, whatever
    happens to the lower fields.

    Returns:
        The change severity, or None for equal versions, downgrades and
        unparseable input.
    """
    a = parse_version(current)
    b = parse_version(latest)
    if a is None or b is None:
        return None
    if b.major > a.major:
        return SemverChange.MAJOR
    if b.major < a.major:
        return None
    if b.minor > a.minor:
        return SemverChange.MINOR
    if b.minor < a.minor:
        return None
    if b.patch > a.patch:
        return SemverChange.PATCH
    return None


def is_prerelease_spec(raw: str) -> bool:
    """Return True if a catalog spec pins a pre-release.

    Matches a digit, a hyphen and one of the well-known pre-release labels,
    e.g. "7.0.0-dev.123", "1.0.0-beta.1" or "2.0.0-rc".
    """
    return _PRERELEASE_SPEC_RE.search(raw) is not None


def extract_version_from_tag(tag: str) -> str | None:
    """Parse a version from a GitHub release tag.

    Supported shapes are ``v1.2.3``, ``1.2.3``, ``name@1.2.3`` and
    ``@scope/name@1.2.3``. Pre-release suffixes are kept as-is.
    """
    at_match = _PACKAGE_TAG_RE.search(tag)
    if at_match:
        return at_match.group(1)
    plain_match = _PLAIN_TAG_RE.match(tag)
    if plain_match:
        return plain_match.group(1)
    return None
