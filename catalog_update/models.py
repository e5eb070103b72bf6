"""Data models for catalog-update.

These Pydantic models represent the core data structures that flow
through the update pipeline: catalog entries, update candidates, group
and ignore rules, package metadata and release notes.
"""

from __future__ import annotations

import enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SemverChange(str, enum.Enum):
    """Severity of a version bump."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    def __str__(self) -> str:
        return self.value


class CatalogEntry(BaseModel):
    """One dependency declared in the catalog.

    Attributes:
        name: Catalog key (the name workspaces depend on).
        raw: The raw catalog value, e.g. "^19.0.0" or "npm:rolldown-vite@7.3.1".
        npm_name: Package name to query on the registry. Differs from
                  name for ``npm:`` aliases.
        current_version: Version without any range prefix.
        has_caret: Whether the raw value used a ``^`` range.
        is_alias: Whether the raw value is an ``npm:`` alias.
        alias_name: The aliased package name, if is_alias.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    raw: str
    npm_name: str
    current_version: str
    has_caret: bool = False
    is_alias: bool = False
    alias_name: str | None = None


class UpdateCandidate(CatalogEntry):
    """A catalog entry with a newer version available.

    Attributes:
        latest_version: Latest stable version reported by the registry.
        change_type: Severity of the change from current_version.
    """

    latest_version: str
    change_type: SemverChange

    @property
    def new_spec(self) -> str:
        """Catalog value after the update, keeping alias and caret form."""
        version = f"^{self.latest_version}" if self.has_caret else self.latest_version
        if self.is_alias:
            return f"npm:{self.alias_name}@{version}"
        return version


class GroupDefinition(BaseModel):
    """A named batch of packages that should be updated in one PR.

    Attributes:
        name: Group name, also used for the PR branch.
        patterns: Glob patterns matched against catalog names.
        update_types: Severities the group accepts, or None for all.
    """

    name: str
    patterns: list[str] = Field(default_factory=list)
    update_types: list[SemverChange] | None = None


class IgnoreRule(BaseModel):
    """Suppresses updates for matching packages.

    Attributes:
        pattern: Glob pattern matched against catalog names.
        update_types: Severities to suppress, or None for all.
    """

    pattern: str
    update_types: list[SemverChange] | None = None


class GitHubRepo(BaseModel):
    """Owner/name pair of a GitHub repository."""

    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class PackageMetadata(BaseModel):
    """Registry metadata needed for release notes.

    Attributes:
        repo: Source repository on GitHub.
        published_versions: Every version ever published, including
                            pre-releases.
    """

    repo: GitHubRepo
    published_versions: list[str] = Field(default_factory=list)


class ReleaseEntry(BaseModel):
    """One GitHub release as returned by the releases API."""

    tag: str
    body: str = ""
    url: str = ""


class VersionReleaseNote(BaseModel):
    """Release notes for a single version, already bounded in length."""

    version: str
    body: str


class ExistingPr(BaseModel):
    """An open pull request created by a previous run."""

    head_ref_name: str
    number: int
    mergeable: Literal["MERGEABLE", "CONFLICTING", "UNKNOWN"] = "UNKNOWN"
    title: str = ""
    body: str = ""


GroupAssignment = dict[str, list[UpdateCandidate]]
