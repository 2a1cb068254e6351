"""
Repository Metadata Cache
=========================

TTL cache in front of GitHub for the data the labeling prompt needs:
the repository label catalog and one example issue per label.

Entries are JSON snapshots stored under
``repo:{owner/repo}:labels`` and ``repo:{owner/repo}:label:{name}:example``.
Empty results are never cached. A corrupt entry is replaced by one fresh
fetch from GitHub; an unreachable cache store degrades to direct fetches.
"""

import hashlib
import json
from dataclasses import asdict
from typing import List, Optional
from urllib.parse import urlparse

from issue_triage.config import Settings, settings as default_settings
from issue_triage.core import CacheStoreException
from issue_triage.infrastructure.cache import ICacheStore
from issue_triage.shared.infrastructure.logging import get_logger
from issue_triage.triage.application.interfaces import IGitHubClient
from issue_triage.triage.domain import IssueContext, RepositoryLabel

logger = get_logger(__name__)


def repository_key(url: Optional[str]) -> str:
    """
    Short repository identifier used in cache keys.

    Returns "owner/repo" for GitHub API and web URLs, a 16 character
    digest for anything else and "unknown" for an empty url.
    """
    if not url or not url.strip():
        return "unknown"

    parsed = urlparse(url.strip())
    parts = [p for p in parsed.path.split("/") if p]

    if parsed.netloc == "api.github.com" and len(parts) >= 3 and parts[0] == "repos":
        return f"{parts[1]}/{parts[2]}"
    if parsed.netloc in ("github.com", "www.github.com") and len(parts) >= 2:
        return f"{parts[0]}/{parts[1]}"

    return hashlib.sha256(url.encode()).hexdigest()[:16]


def _labels_key(repo: str) -> str:
    return f"repo:{repo}:labels"


def _example_key(repo: str, label_name: str) -> str:
    return f"repo:{repo}:label:{label_name}:example"


class MetadataCache:
    """Read-through cache for label catalogs and example issues."""

    def __init__(
        self,
        cache_store: ICacheStore,
        github_client: IGitHubClient,
        config: Optional[Settings] = None
    ):
        self._store = cache_store
        self._github = github_client
        self._settings = config or default_settings

    # ========== Label catalog ==========

    async def get_label_catalog(self, repository_url: Optional[str]) -> List[RepositoryLabel]:
        """Label catalog for a repository, served from cache when fresh."""
        if not repository_url:
            return []

        key = _labels_key(repository_key(repository_url))

        try:
            cached = await self._store.get(key)
        except CacheStoreException as e:
            logger.warning(
                "Cache store unavailable, fetching labels directly",
                extra={"key": key, "error": str(e)}
            )
            return await self._github.fetch_repository_labels(repository_url)

        if cached is not None:
            try:
                labels = [RepositoryLabel(**item) for item in json.loads(cached)]
                logger.debug("Label catalog cache hit", extra={"key": key, "count": len(labels)})
                return labels
            except (ValueError, TypeError) as e:
                logger.warning(
                    "Corrupt label catalog in cache, refetching",
                    extra={"key": key, "error": str(e)}
                )

        labels = await self._github.fetch_repository_labels(repository_url)
        if labels:
            payload = json.dumps([asdict(label) for label in labels])
            await self._put(key, payload, self._settings.label_catalog_ttl_seconds)
        return labels

    # ========== Example issues ==========

    async def get_example_issue_for_label(
        self,
        repository_url: Optional[str],
        label_name: str
    ) -> Optional[IssueContext]:
        """One example issue carrying the label, or None."""
        if not repository_url or not label_name:
            return None

        key = _example_key(repository_key(repository_url), label_name)

        try:
            cached = await self._store.get(key)
        except CacheStoreException as e:
            logger.warning(
                "Cache store unavailable, fetching example directly",
                extra={"key": key, "error": str(e)}
            )
            return await self._github.fetch_example_issue(repository_url, label_name)

        if cached is not None:
            try:
                return IssueContext(**json.loads(cached))
            except (ValueError, TypeError) as e:
                logger.warning(
                    "Corrupt example issue in cache, refetching",
                    extra={"key": key, "error": str(e)}
                )

        example = await self._github.fetch_example_issue(repository_url, label_name)
        if example is not None:
            await self._put(key, json.dumps(asdict(example)), self._settings.example_issue_ttl_seconds)
        return example

    async def _put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._store.set(key, value, ttl_seconds)
        except CacheStoreException as e:
            logger.warning("Failed to cache metadata", extra={"key": key, "error": str(e)})
