"""npm registry and GitHub releases client.

All lookups run concurrently on one event loop, bounded by an
AdmissionGate. A failed lookup (timeout, HTTP error, malformed payload)
only drops that one item from the results; it never aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Any

import aiohttp

from .gate import AdmissionGate
from .models import (
    CatalogEntry,
    GitHubRepo,
    PackageMetadata,
    ReleaseEntry,
    UpdateCandidate,
    VersionReleaseNote,
)
from .release_notes import index_releases, resolve_release_notes

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
GITHUB_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 15

_ABBREVIATED_METADATA = "application/vnd.npm.install-v1+json"
_GITHUB_URL_RE = re.compile(r"github\.com[/:]([\w.-]+)/([\w.-]+?)(?:\.git)?/?$")
_GITHUB_SHORTHAND_RE = re.compile(r"^(?:github:)?([\w.-]+)/([\w.-]+)$")

_LOOKUP_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValueError)


class RegistryError(Exception):
    """A registry or API request returned a non-success status."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"{url} returned HTTP {status}")
        self.url = url
        self.status = status


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def encode_package_name(name: str) -> str:
    """Encode a package name for a registry URL (``@scope/pkg`` → ``@scope%2fpkg``)."""
    return name.replace("/", "%2f")


def parse_github_repo(repository: Any) -> GitHubRepo | None:
    """Extract the GitHub owner/repo from a package.json ``repository`` field.

    Accepts the object form (``{"url": "git+https://github.com/o/r.git"}``),
    full URLs in any git flavour, and the ``github:o/r`` / ``o/r``
    shorthands. Returns None for anything not hosted on GitHub.
    """
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not isinstance(repository, str) or not repository:
        return None

    match = _GITHUB_URL_RE.search(repository) or _GITHUB_SHORTHAND_RE.match(repository)
    if not match:
        return None
    return GitHubRepo(owner=match.group(1), repo=match.group(2))


class RegistryClient:
    """Fetches latest versions, package metadata and release notes.

    Use as an async context manager so the HTTP session is closed::

        async with RegistryClient(AdmissionGate(10)) as client:
            latest = await client.query_latest_versions(entries)
    """

    def __init__(
        self,
        gate: AdmissionGate,
        *,
        github_token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        registry_url: str = NPM_REGISTRY_URL,
        github_api_url: str = GITHUB_API_URL,
    ) -> None:
        self._gate = gate
        self._github_token = github_token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._registry_url = registry_url.rstrip("/")
        self._github_api_url = github_api_url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None
        self._metadata_cache: dict[str, PackageMetadata | None] = {}

    async def start(self) -> aiohttp.ClientSession:
        """Open the HTTP session, or reopen it after close()."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> RegistryClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        """GET a URL inside the admission gate and decode the JSON body.

        Raises:
            RegistryError: On a non-2xx status.
            aiohttp.ClientError, asyncio.TimeoutError, ValueError: On
                transport failures, timeouts and undecodable bodies.
        """
        session = await self.start()
        async with self._gate:
            async with session.get(url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise RegistryError(url, response.status)
                return await response.json(content_type=None)

    # ------------------------------------------------------------------
    # Latest versions
    # ------------------------------------------------------------------

    async def fetch_latest_version(self, npm_name: str) -> str | None:
        """Return the ``latest`` dist-tag of a package if it is a stable release."""
        url = f"{self._registry_url}/{encode_package_name(npm_name)}"
        try:
            data = await self._get_json(url, {"Accept": _ABBREVIATED_METADATA})
        except RegistryError as exc:
            logger.warning("Failed to fetch %s (%s)", npm_name, exc.status)
            return None
        except _LOOKUP_ERRORS as exc:
            logger.warning("Error fetching %s: %s", npm_name, _describe(exc))
            return None

        dist_tags = data.get("dist-tags") if isinstance(data, dict) else None
        latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
        if not isinstance(latest, str) or not latest or "-" in latest:
            return None
        return latest

    async def query_latest_versions(self, entries: Sequence[CatalogEntry]) -> dict[str, str]:
        """Look up the latest stable version of every entry concurrently.

        Returns:
            Map of catalog name → latest version. Entries whose lookup
            failed are absent.
        """

        async def lookup(entry: CatalogEntry) -> tuple[str, str | None]:
            return entry.name, await self.fetch_latest_version(entry.npm_name)

        pairs = await asyncio.gather(*(lookup(entry) for entry in entries))
        return {name: latest for name, latest in pairs if latest}

    # ------------------------------------------------------------------
    # Package metadata
    # ------------------------------------------------------------------

    async def fetch_package_metadata(self, npm_name: str) -> PackageMetadata | None:
        """Return the GitHub repository and published versions of a package.

        Answers are cached per npm name for the lifetime of the client,
        so aliases of the same package cost one request. Failed requests
        are not cached.
        """
        if npm_name in self._metadata_cache:
            return self._metadata_cache[npm_name]

        url = f"{self._registry_url}/{encode_package_name(npm_name)}"
        try:
            data = await self._get_json(url, {"Accept": "application/json"})
        except (RegistryError, *_LOOKUP_ERRORS) as exc:
            logger.debug("No metadata for %s: %s", npm_name, _describe(exc))
            return None

        metadata: PackageMetadata | None = None
        if isinstance(data, dict):
            repo = parse_github_repo(data.get("repository"))
            if repo is None:
                logger.debug("No GitHub repository for %s", npm_name)
            else:
                versions = data.get("versions")
                published = list(versions) if isinstance(versions, dict) else []
                metadata = PackageMetadata(repo=repo, published_versions=published)

        self._metadata_cache[npm_name] = metadata
        return metadata

    async def query_package_metadata(
        self, candidates: Sequence[UpdateCandidate]
    ) -> dict[str, PackageMetadata]:
        """Fetch metadata for every candidate, once per distinct npm name.

        Returns:
            Map of catalog name → metadata for candidates that have a
            GitHub repository.
        """
        npm_names = list(dict.fromkeys(c.npm_name for c in candidates))
        fetched = await asyncio.gather(*(self.fetch_package_metadata(n) for n in npm_names))
        by_npm_name = dict(zip(npm_names, fetched))

        results: dict[str, PackageMetadata] = {}
        for candidate in candidates:
            metadata = by_npm_name.get(candidate.npm_name)
            if metadata is not None:
                results[candidate.name] = metadata
        return results

    # ------------------------------------------------------------------
    # Release notes
    # ------------------------------------------------------------------

    def _github_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._github_token:
            headers["Authorization"] = f"Bearer {self._github_token}"
        return headers

    async def fetch_releases(self, repo: GitHubRepo) -> list[ReleaseEntry] | None:
        """List the most recent releases (up to 100) of a repository."""
        url = f"{self._github_api_url}/repos/{repo.slug}/releases?per_page=100"
        try:
            data = await self._get_json(url, self._github_headers())
        except (RegistryError, *_LOOKUP_ERRORS) as exc:
            logger.debug("No releases for %s: %s", repo.slug, _describe(exc))
            return None
        if not isinstance(data, list):
            return None

        releases: list[ReleaseEntry] = []
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get("tag_name"), str):
                continue
            releases.append(
                ReleaseEntry(
                    tag=item["tag_name"],
                    body=item.get("body") or "",
                    url=item.get("html_url") or "",
                )
            )
        return releases

    async def query_release_notes(
        self,
        candidates: Sequence[UpdateCandidate],
        package_metadata: dict[str, PackageMetadata],
    ) -> dict[str, list[VersionReleaseNote]]:
        """Collect release notes for every candidate with known metadata.

        Candidates are grouped by repository so each repository's release
        list is fetched once, even for monorepos publishing many packages.

        Returns:
            Map of catalog name → notes, newest first. Candidates without
            any matching release are absent.
        """
        by_repo: dict[str, tuple[GitHubRepo, list[UpdateCandidate]]] = {}
        for candidate in candidates:
            metadata = package_metadata.get(candidate.name)
            if metadata is None:
                continue
            by_repo.setdefault(metadata.repo.slug, (metadata.repo, []))[1].append(candidate)

        async def notes_for_repo(
            repo: GitHubRepo, repo_candidates: list[UpdateCandidate]
        ) -> dict[str, list[VersionReleaseNote]]:
            releases = await self.fetch_releases(repo)
            if not releases:
                return {}
            index = index_releases(releases)
            found: dict[str, list[VersionReleaseNote]] = {}
            for candidate in repo_candidates:
                notes = resolve_release_notes(candidate, package_metadata[candidate.name], index)
                if notes:
                    found[candidate.name] = notes
            return found

        per_repo = await asyncio.gather(
            *(notes_for_repo(repo, members) for repo, members in by_repo.values())
        )
        results: dict[str, list[VersionReleaseNote]] = {}
        for found in per_repo:
            results.update(found)
        return results
