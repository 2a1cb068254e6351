"""
Triage Application Services
============================

Application services for issue labeling and summaries.

Orchestrates the semantic cache, repository metadata and LLM calls.
"""

import re
from typing import List, Optional

from issue_triage.config import DEFAULT_LABELS, Settings, TaskType, settings as default_settings
from issue_triage.infrastructure.llm import ILLMClient
from issue_triage.shared.infrastructure.logging import get_logger, log_latency
from issue_triage.triage.application.metadata_cache import MetadataCache
from issue_triage.triage.application.semantic_cache import SemanticCacheService, extract_labels
from issue_triage.triage.domain import (
    Issue,
    LabelPromptBuilder,
    LlmRoute,
    SemanticCheckStatus,
    SimilarIssue,
    SummaryPromptBuilder,
    TaskContext,
    TriageContext,
)

logger = get_logger(__name__)

LONG_CONTEXT_TOKENS = 8000
SUMMARY_MAX_LENGTH = 500
NO_SUMMARY = "No summary available."
SUMMARY_UNAVAILABLE = "Unable to generate summary at this time."

_SUMMARY_PREFIX = re.compile(r"^(Summary:|Here's a summary:|The summary is:)\s*")
_SUMMARY_SUFFIX = re.compile(r"\s*(\.|Summary complete\.?)$")


def estimate_tokens(text: Optional[str]) -> int:
    """Rough token count, four characters per token."""
    return len(text or "") // 4


def parse_labels(response: Optional[str]) -> List[str]:
    """Split a comma-separated LLM response into label names."""
    if not response or not response.strip():
        return []
    return [label.strip() for label in response.split(",") if label.strip()]


def clean_summary(response: Optional[str]) -> str:
    """Strip boilerplate from an LLM summary so it reads well in Slack."""
    if not response or not response.strip():
        return NO_SUMMARY

    cleaned = _SUMMARY_PREFIX.sub("", response.strip())
    cleaned = _SUMMARY_SUFFIX.sub("", cleaned).strip()

    if len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1].strip()

    if len(cleaned) > SUMMARY_MAX_LENGTH:
        cleaned = cleaned[:SUMMARY_MAX_LENGTH - 3] + "..."

    return cleaned or NO_SUMMARY


# ========== Model Routing ==========

class PromptRouter:
    """Chooses a model for each kind of LLM task."""

    def __init__(self, config: Optional[Settings] = None):
        self._settings = config or default_settings

    def route_for(self, task: TaskContext) -> LlmRoute:
        s = self._settings

        if task.task_type == TaskType.LABELING:
            route = LlmRoute(model=s.labeling_model, provider="openai", cost_weight=1.0)
        elif task.task_type == TaskType.SUMMARIZATION:
            if task.token_count > LONG_CONTEXT_TOKENS:
                route = LlmRoute(model=s.summary_long_model, provider="anthropic", cost_weight=0.8)
            else:
                route = LlmRoute(model=s.summary_model, provider="anthropic", cost_weight=0.2)
        elif task.cost_sensitivity < 0.3:
            route = LlmRoute(model=s.cheap_model, provider="openai", cost_weight=0.1)
        else:
            route = LlmRoute(model=s.default_model, provider="openai", cost_weight=1.0)

        logger.debug(
            "Routed LLM task",
            extra={
                "task_type": task.task_type,
                "token_count": task.token_count,
                "urgency": task.urgency,
                "cost_sensitivity": task.cost_sensitivity,
                "model": route.model,
                "provider": route.provider
            }
        )
        return route


# ========== Application Services ==========

class LabelingService:
    """
    Label generation with a semantic cache in front of the LLM.

    A sufficiently similar stored issue donates its labels; otherwise the
    labels are generated from the repository's catalog and examples.
    """

    def __init__(
        self,
        semantic_cache: SemanticCacheService,
        metadata_cache: MetadataCache,
        llm_client: ILLMClient,
        router: Optional[PromptRouter] = None,
        config: Optional[Settings] = None
    ):
        self._semantic_cache = semantic_cache
        self._metadata = metadata_cache
        self._llm = llm_client
        self._settings = config or default_settings
        self._router = router or PromptRouter(self._settings)

    async def generate_labels(self, issue: Issue, context: Optional[TriageContext] = None) -> List[str]:
        """
        Labels for an issue. Never raises; failures yield an empty list.

        When a context is given its cache_status is set to the check outcome.
        """
        try:
            result = await self._semantic_cache.check(
                issue.input_text,
                self._settings.semantic_cache_threshold
            )
            status = result.status
        except Exception as e:
            logger.warning(
                "Semantic cache check raised, generating labels",
                extra={"issue_id": issue.key, "error": str(e)}
            )
            result = None
            status = SemanticCheckStatus.LOOKUP_FAILED

        if context is not None:
            context.cache_status = status

        if result is not None and result.is_hit:
            labels = extract_labels(result.match)
            logger.info(
                "Reused labels from similar issue",
                extra={"issue_id": issue.key, "matched_issue": result.match.issue_id, "labels": labels}
            )
            return labels

        try:
            return await self._generate_with_llm(issue)
        except Exception as e:
            logger.error(
                "Label generation failed",
                extra={"issue_id": issue.key, "error": str(e)}
            )
            return []

    async def _generate_with_llm(self, issue: Issue) -> List[str]:
        catalog = await self._metadata.get_label_catalog(issue.repository_url)

        examples = {}
        for label in catalog:
            example = await self._metadata.get_example_issue_for_label(issue.repository_url, label.name)
            if example is not None:
                examples[label.name] = example

        prompt = LabelPromptBuilder.build_prompt(issue, catalog, examples, DEFAULT_LABELS)
        route = self._router.route_for(TaskContext(
            task_type=TaskType.LABELING,
            token_count=estimate_tokens(prompt)
        ))

        with log_latency(logger, "label_generation", issue_id=issue.key, model=route.model):
            response = await self._llm.chat_completion(
                messages=[{"role": "user", "content": prompt}],
                model=route.model,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.llm_max_tokens,
                operation="labeling"
            )

        labels = parse_labels(response.content)
        logger.info(
            "Generated labels",
            extra={
                "issue_id": issue.key,
                "labels": labels,
                "catalog_size": len(catalog),
                "examples": len(examples)
            }
        )
        return labels


class SummaryService:
    """Short maintainer-facing summaries of issues."""

    def __init__(
        self,
        llm_client: ILLMClient,
        router: Optional[PromptRouter] = None,
        config: Optional[Settings] = None
    ):
        self._llm = llm_client
        self._settings = config or default_settings
        self._router = router or PromptRouter(self._settings)

    async def _summarize(self, issue: Issue, prompt: str, operation: str) -> str:
        route = self._router.route_for(TaskContext(
            task_type=TaskType.SUMMARIZATION,
            token_count=estimate_tokens(prompt)
        ))
        response = await self._llm.chat_completion(
            messages=[{"role": "user", "content": prompt}],
            model=route.model,
            temperature=self._settings.llm_temperature,
            max_tokens=self._settings.llm_max_tokens,
            operation=operation
        )
        summary = clean_summary(response.content)
        logger.info("Generated summary", extra={"issue_id": issue.key, "model": route.model})
        return summary

    async def generate_summary(self, issue: Issue, labels: Optional[List[str]]) -> str:
        try:
            prompt = SummaryPromptBuilder.build_prompt(issue, labels or [])
            return await self._summarize(issue, prompt, "summary")
        except Exception as e:
            logger.error("Summary generation failed", extra={"issue_id": issue.key, "error": str(e)})
            return SUMMARY_UNAVAILABLE

    async def generate_summary_with_context(
        self,
        issue: Issue,
        labels: Optional[List[str]],
        similar_issues: Optional[List[SimilarIssue]]
    ) -> str:
        """Summary that mentions up to three similar issues; falls back to the plain summary."""
        try:
            prompt = SummaryPromptBuilder.build_prompt(issue, labels or [], similar_issues)
            return await self._summarize(issue, prompt, "summary_with_context")
        except Exception as e:
            logger.warning(
                "Contextual summary failed, falling back to basic summary",
                extra={"issue_id": issue.key, "error": str(e)}
            )
            return await self.generate_summary(issue, labels)
