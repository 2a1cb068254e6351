"""
Semantic Cache Service
======================

Decides whether an incoming issue matches one that was already labeled and
keeps the similarity corpus current.

Two entry points:
- check() / find_high_confidence_match(): read-only, k=1 lookup used
  before labeling.
- find_similar_and_store(): search the corpus as it was before this issue,
  then store the issue so later searches can find it.
"""

from typing import List, Optional

from issue_triage.core import ApplicationException
from issue_triage.infrastructure.llm import ILLMClient
from issue_triage.infrastructure.vectorstore import (
    IVectorStore,
    Neighbor,
    issue_id_from_key,
    similarity_from_distance,
    score_from_distance,
)
from issue_triage.shared.infrastructure.grafana import get_grafana_exporter
from issue_triage.shared.infrastructure.logging import get_logger
from issue_triage.triage.domain import (
    Issue,
    SimilarIssue,
    SemanticCheckResult,
    issue_number_from_url,
)

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.92


def extract_labels(match: Optional[SimilarIssue]) -> List[str]:
    """
    Labels reusable from a match.

    Blank entries are dropped; a match without labels yields an empty list,
    which is still a valid cache-hit result.
    """
    if match is None or not match.issue.labels:
        return []
    return [label.strip() for label in match.issue.labels if label and label.strip()]


def parse_label_string(labels: Optional[str]) -> List[str]:
    if not labels or not labels.strip():
        return []
    return [label.strip() for label in labels.split(",") if label.strip()]


class SemanticCacheService:
    """
    Semantic cache over the issue corpus.

    Coordinates the embedding client and the vector store; holds no state
    of its own.
    """

    def __init__(self, llm_client: ILLMClient, vector_store: IVectorStore):
        self._llm = llm_client
        self._store = vector_store

    async def _embed(self, text: str) -> List[float]:
        result = await self._llm.generate_embedding(text)
        return list(result.embedding)

    async def _hydrate(self, neighbor: Neighbor) -> Optional[SimilarIssue]:
        metadata = await self._store.get_metadata(neighbor.record_id)
        if not metadata:
            return None

        issue_id = issue_id_from_key(neighbor.record_id)
        url = metadata.get("url") or None
        issue = Issue(
            id=int(issue_id) if issue_id.isdigit() else None,
            number=issue_number_from_url(url),
            title=metadata.get("title") or "Unknown Title",
            body=metadata.get("body") or "",
            labels=parse_label_string(metadata.get("labels")),
            html_url=url,
        )
        return SimilarIssue(
            issue_id=issue_id,
            issue=issue,
            distance=neighbor.distance,
            similarity=similarity_from_distance(neighbor.distance),
            score=score_from_distance(neighbor.distance),
        )

    async def check(self, input_text: str, threshold: float = DEFAULT_THRESHOLD) -> SemanticCheckResult:
        """
        Look for a stored issue at least `threshold` similar to the text.

        Never writes to the corpus.
        """
        try:
            embedding = await self._embed(input_text)
        except ApplicationException as e:
            return await self._record(SemanticCheckResult.lookup_failed(str(e)), threshold)

        if not embedding:
            return await self._record(SemanticCheckResult.lookup_failed("empty embedding"), threshold)

        try:
            neighbors = await self._store.nearest_neighbors(embedding, 1)
            match = await self._hydrate(neighbors[0]) if neighbors else None
        except ApplicationException as e:
            return await self._record(SemanticCheckResult.lookup_failed(str(e)), threshold)

        if match is not None and match.similarity >= threshold:
            return await self._record(SemanticCheckResult.hit(match), threshold)
        return await self._record(SemanticCheckResult.miss(match), threshold)

    async def _record(self, result: SemanticCheckResult, threshold: float) -> SemanticCheckResult:
        similarity = result.match.similarity if result.match else None

        if result.is_hit:
            logger.info(
                "CACHE_HIT: reusing labels from similar issue",
                extra={
                    "matched_issue": result.match.issue_id,
                    "similarity": round(similarity, 4),
                    "threshold": threshold
                }
            )
        elif result.error:
            logger.warning(
                "CACHE_LOOKUP_FAILED: falling back to label generation",
                extra={"error": result.error}
            )
        else:
            logger.info(
                "CACHE_MISS: no high-similarity match found",
                extra={"best_similarity": similarity, "threshold": threshold}
            )

        exporter = get_grafana_exporter()
        if exporter and exporter.is_enabled():
            await exporter.export_cache_outcome(result.status.value, similarity)

        return result

    async def find_high_confidence_match(
        self,
        input_text: str,
        threshold: float = DEFAULT_THRESHOLD
    ) -> Optional[SimilarIssue]:
        """Return the best match if it clears the threshold, else None."""
        result = await self.check(input_text, threshold)
        return result.match if result.is_hit else None

    async def find_similar_and_store(
        self,
        issue: Issue,
        labels: Optional[List[str]],
        k: int = 3
    ) -> List[SimilarIssue]:
        """
        Find up to k similar issues, then store this issue in the corpus.

        The search runs before the insert, so the issue cannot match itself
        in its own results. The insert happens whenever an embedding was
        produced, including when the search found nothing or failed.

        Returns:
            Matches ordered by descending similarity, excluding this issue
        """
        issue_id = issue.key

        try:
            embedding = await self._embed(issue.input_text)
        except ApplicationException as e:
            logger.error(
                "Failed to generate embedding, issue not stored",
                extra={"issue_id": issue_id, "error": str(e)}
            )
            return []

        if not embedding:
            logger.error("Empty embedding, issue not stored", extra={"issue_id": issue_id})
            return []

        similar: List[SimilarIssue] = []
        try:
            for neighbor in await self._store.nearest_neighbors(embedding, k):
                if issue_id_from_key(neighbor.record_id) == issue_id:
                    continue
                match = await self._hydrate(neighbor)
                if match is not None:
                    similar.append(match)
        except ApplicationException as e:
            logger.error(
                "Similarity search failed, storing issue anyway",
                extra={"issue_id": issue_id, "error": str(e)}
            )

        similar.sort(key=lambda s: s.similarity, reverse=True)

        try:
            await self._store.insert(
                issue_id,
                embedding,
                issue.title,
                issue.body,
                labels,
                issue.html_url
            )
        except ApplicationException as e:
            logger.error(
                "Failed to store issue in corpus",
                extra={"issue_id": issue_id, "error": str(e)}
            )

        logger.info(
            "Found similar issues and stored new issue",
            extra={
                "issue_id": issue_id,
                "similar_count": len(similar),
                "similar_ids": [s.issue_id for s in similar]
            }
        )
        return similar
