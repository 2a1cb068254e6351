"""
Vector Store Infrastructure
============================

Milvus vector store holding the issue similarity corpus.

Every triaged issue is stored once as a record keyed by ``issue:<id>`` with
its title, body, url, comma-joined labels and embedding. Records never
expire; the corpus is only ever queried with k-nearest-neighbor searches.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
from typing import List, Optional, Sequence

from pymilvus import MilvusClient

from issue_triage.config import Settings, VECTOR_KEY_PREFIX, settings as default_settings
from issue_triage.core import VectorStoreException
from issue_triage.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

METADATA_FIELDS = ["title", "body", "url", "labels"]
# Reads must see records upserted by the previous request.
CONSISTENCY_LEVEL = "Strong"


@dataclass(frozen=True)
class Neighbor:
    """One k-NN hit: the record key and its cosine distance to the query."""
    record_id: str
    distance: float


def similarity_from_distance(distance: float) -> float:
    """Convert a cosine distance to a similarity fraction clamped to [0, 1]."""
    return min(1.0, max(0.0, 1.0 - distance))


def score_from_distance(distance: float) -> int:
    """Integer similarity percentage shown to users, rounded half up."""
    return int(math.floor((1.0 - distance) * 100 + 0.5))


def record_key(issue_id: str) -> str:
    return f"{VECTOR_KEY_PREFIX}{issue_id}"


def issue_id_from_key(key: str) -> str:
    if key.startswith(VECTOR_KEY_PREFIX):
        return key[len(VECTOR_KEY_PREFIX):]
    return key


class IVectorStore(ABC):
    """
    Interface for the similarity corpus.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the index if needed. Safe to call repeatedly."""

    @abstractmethod
    async def insert(
        self,
        issue_id: str,
        embedding: Sequence[float],
        title: Optional[str],
        body: Optional[str],
        labels: Optional[List[str]],
        url: Optional[str]
    ) -> None:
        """Store or overwrite the record for an issue."""

    @abstractmethod
    async def nearest_neighbors(self, query_embedding: Sequence[float], k: int) -> List[Neighbor]:
        """Return up to k neighbors ordered by ascending distance."""

    @abstractmethod
    async def get_metadata(self, record_id: str) -> Optional[dict]:
        """Return the stored fields of a record, or None when absent."""

    @abstractmethod
    async def get_document_count(self) -> int:
        """Get number of records in the corpus."""


class MilvusVectorStore(IVectorStore):
    """
    Milvus implementation of the similarity corpus.

    Works against Milvus Lite (a local file URI), a Milvus server or
    Zilliz Cloud. The collection uses the COSINE metric, for which Milvus
    reports cosine similarity; search results are converted to cosine
    distance before they leave this class.
    """

    def __init__(
        self,
        client: Optional[MilvusClient] = None,
        collection_name: Optional[str] = None,
        config: Optional[Settings] = None
    ):
        self._settings = config or default_settings
        self._collection_name = collection_name or self._settings.milvus_collection_name
        self._dimension = self._settings.embedding_dimension
        self._client = client
        self._initialized = False

    async def initialize(self) -> None:
        """Connect and create the collection if it doesn't exist."""
        if self._initialized:
            return

        try:
            if self._client is None:
                self._client = MilvusClient(
                    uri=self._settings.milvus_uri,
                    token=self._settings.milvus_token or ""
                )

            if self._client.has_collection(self._collection_name):
                logger.info(
                    "Vector index already exists",
                    extra={"collection": self._collection_name}
                )
            else:
                self._client.create_collection(
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    primary_field_name="id",
                    id_type="string",
                    max_length=256,
                    vector_field_name="embedding",
                    metric_type="COSINE",
                    auto_id=False,
                    consistency_level=CONSISTENCY_LEVEL
                )
                logger.info(
                    "Created vector index",
                    extra={"collection": self._collection_name, "dimension": self._dimension}
                )

            self._initialized = True

        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {str(e)}")

    async def _ensure_client(self) -> MilvusClient:
        if not self._initialized:
            await self.initialize()
        return self._client

    async def insert(
        self,
        issue_id: str,
        embedding: Sequence[float],
        title: Optional[str],
        body: Optional[str],
        labels: Optional[List[str]],
        url: Optional[str]
    ) -> None:
        """
        Upsert the record for an issue (last write wins).

        Raises:
            VectorStoreException: If the write fails
        """
        if len(embedding) != self._dimension:
            raise VectorStoreException(
                f"Embedding has {len(embedding)} dimensions, index expects {self._dimension}",
                {"issue_id": issue_id}
            )

        client = await self._ensure_client()
        record = {
            "id": record_key(issue_id),
            "embedding": [float(v) for v in embedding],
            "title": title or "",
            "body": body or "",
            "url": url or "",
            "labels": ",".join(labels) if labels else "",
        }

        try:
            client.upsert(collection_name=self._collection_name, data=[record])
        except Exception as e:
            raise VectorStoreException(f"Failed to store issue: {str(e)}", {"issue_id": issue_id})

        logger.info("Stored issue embedding", extra={"issue_id": issue_id})

    async def nearest_neighbors(self, query_embedding: Sequence[float], k: int) -> List[Neighbor]:
        """
        Search the corpus.

        Raises:
            VectorStoreException: If the search fails
        """
        client = await self._ensure_client()

        try:
            results = client.search(
                collection_name=self._collection_name,
                data=[[float(v) for v in query_embedding]],
                limit=k,
                search_params={"metric_type": "COSINE"},
                output_fields=[],
                consistency_level=CONSISTENCY_LEVEL
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}")

        neighbors = []
        if results and len(results) > 0:
            for hit in results[0]:
                neighbors.append(Neighbor(
                    record_id=str(hit["id"]),
                    distance=1.0 - float(hit["distance"])
                ))

        neighbors.sort(key=lambda n: n.distance)
        logger.debug("Nearest neighbor search", extra={"k": k, "found": len(neighbors)})
        return neighbors

    async def get_metadata(self, record_id: str) -> Optional[dict]:
        client = await self._ensure_client()

        try:
            rows = client.get(
                collection_name=self._collection_name,
                ids=[record_id],
                output_fields=METADATA_FIELDS,
                consistency_level=CONSISTENCY_LEVEL
            )
        except Exception as e:
            raise VectorStoreException(f"Failed to read record: {str(e)}", {"record_id": record_id})

        if not rows:
            logger.warning("No metadata found for record", extra={"record_id": record_id})
            return None

        row = rows[0]
        return {field: row.get(field, "") for field in METADATA_FIELDS}

    async def get_document_count(self) -> int:
        client = await self._ensure_client()
        try:
            stats = client.get_collection_stats(self._collection_name)
        except Exception as e:
            raise VectorStoreException(f"Failed to read collection stats: {str(e)}")
        return int(stats.get("row_count", 0))

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._initialized = False
