"""
Shared fixtures: settings for tests and in-memory stand-ins for Milvus,
Redis and GitHub.
"""

import math
from typing import Dict, List, Optional, Sequence

import pytest

from issue_triage.config import Settings
from issue_triage.core import CacheStoreException, VectorStoreException
from issue_triage.infrastructure.cache import ICacheStore
from issue_triage.infrastructure.llm import MockLLMClient
from issue_triage.infrastructure.vectorstore import (
    IVectorStore,
    Neighbor,
    issue_id_from_key,
    record_key,
)
from issue_triage.triage.application.interfaces import IGitHubClient
from issue_triage.triage.domain import IssueContext, RepositoryLabel


TEST_DIMENSION = 64


# ============================================================================
# In-memory fakes
# ============================================================================


class InMemoryVectorStore(IVectorStore):
    """Exact cosine k-NN over a dict. Records are keyed like the Milvus adapter."""

    def __init__(self):
        self.records: Dict[str, dict] = {}
        self.insert_calls: List[str] = []
        self.fail_search = False
        self.fail_insert = False

    async def initialize(self) -> None:
        return None

    async def insert(self, issue_id, embedding, title, body, labels, url) -> None:
        if self.fail_insert:
            raise VectorStoreException("insert unavailable")
        self.insert_calls.append(issue_id)
        self.records[record_key(issue_id)] = {
            "embedding": list(embedding),
            "title": title or "",
            "body": body or "",
            "url": url or "",
            "labels": ",".join(labels) if labels else "",
        }

    async def nearest_neighbors(self, query_embedding: Sequence[float], k: int) -> List[Neighbor]:
        if self.fail_search:
            raise VectorStoreException("search unavailable")
        scored = [
            Neighbor(record_id=key, distance=1.0 - _cosine(query_embedding, record["embedding"]))
            for key, record in self.records.items()
        ]
        scored.sort(key=lambda n: n.distance)
        return scored[:k]

    async def get_metadata(self, record_id: str) -> Optional[dict]:
        record = self.records.get(record_id)
        if record is None:
            return None
        return {field: record[field] for field in ("title", "body", "url", "labels")}

    async def get_document_count(self) -> int:
        return len(self.records)

    def stored_ids(self) -> List[str]:
        return [issue_id_from_key(key) for key in self.records]


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryCacheStore(ICacheStore):
    """Dict-backed key-value store that records writes and can be switched off."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.unavailable = False

    async def get(self, key: str) -> Optional[str]:
        if self.unavailable:
            raise CacheStoreException("connection refused")
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.unavailable:
            raise CacheStoreException("connection refused")
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def ping(self) -> bool:
        return not self.unavailable


class FakeGitHubClient(IGitHubClient):
    """Serves a fixed catalog and examples, counting origin fetches."""

    def __init__(
        self,
        labels: Optional[List[RepositoryLabel]] = None,
        examples: Optional[Dict[str, IssueContext]] = None
    ):
        self.labels = labels or []
        self.examples = examples or {}
        self.label_fetches = 0
        self.example_fetches: List[str] = []

    async def fetch_repository_labels(self, repository_url: str) -> List[RepositoryLabel]:
        self.label_fetches += 1
        return list(self.labels)

    async def fetch_example_issue(self, repository_url: str, label_name: str) -> Optional[IssueContext]:
        self.example_fetches.append(label_name)
        return self.examples.get(label_name)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        llm_provider="mock",
        embedding_dimension=TEST_DIMENSION,
        slack_webhook_url=None,
        grafana_host=None,
        grafana_api_key=None,
        grafana_instance_id=None,
    )


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def mock_llm() -> MockLLMClient:
    return MockLLMClient(dimension=TEST_DIMENSION, labels_response="bug, performance")
