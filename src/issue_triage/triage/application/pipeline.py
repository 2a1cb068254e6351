"""
Triage Pipeline
===============

Runs an issue through a fixed, ordered list of stages that share one
TriageContext:

    LabelingStage -> SimilaritySearchStage -> SummaryStage -> NotificationStage

A failing stage is logged and recorded on the context; the remaining
stages still run.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from issue_triage.config import Settings, settings as default_settings
from issue_triage.shared.infrastructure.logging import get_logger, log_latency
from issue_triage.triage.application.interfaces import INotifier
from issue_triage.triage.application.semantic_cache import SemanticCacheService
from issue_triage.triage.application.services import LabelingService, SummaryService
from issue_triage.triage.domain import Issue, TriageContext

logger = get_logger(__name__)


class TriageStage(ABC):
    """One step of the pipeline."""

    name = "stage"

    @abstractmethod
    async def run(self, issue: Issue, context: TriageContext) -> None:
        """Read from and write to the shared context."""


class LabelingStage(TriageStage):
    name = "labeling"

    def __init__(self, labeling_service: LabelingService):
        self._service = labeling_service

    async def run(self, issue: Issue, context: TriageContext) -> None:
        context.labels = await self._service.generate_labels(issue, context)


class SimilaritySearchStage(TriageStage):
    """Finds similar issues, then adds this issue to the corpus."""

    name = "similarity_search"

    def __init__(self, semantic_cache: SemanticCacheService, top_k: int = 3):
        self._cache = semantic_cache
        self._top_k = top_k

    async def run(self, issue: Issue, context: TriageContext) -> None:
        context.similar_issues = await self._cache.find_similar_and_store(
            issue,
            context.labels,
            self._top_k
        )


class SummaryStage(TriageStage):
    name = "summary"

    def __init__(self, summary_service: SummaryService):
        self._service = summary_service

    async def run(self, issue: Issue, context: TriageContext) -> None:
        context.summary = await self._service.generate_summary_with_context(
            issue,
            context.labels,
            context.similar_issues
        )


class NotificationStage(TriageStage):
    name = "notification"

    def __init__(self, notifier: INotifier):
        self._notifier = notifier

    async def run(self, issue: Issue, context: TriageContext) -> None:
        context.notified = await self._notifier.send_notification(
            issue,
            context.labels,
            context.similar_issues,
            context.summary
        )


class TriagePipeline:
    """Sequential stage runner. Built once at startup."""

    def __init__(self, stages: Sequence[TriageStage]):
        self._stages: List[TriageStage] = list(stages)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self._stages]

    async def process(self, issue: Issue) -> TriageContext:
        context = TriageContext()

        with log_latency(logger, "triage_pipeline", issue_id=issue.key):
            for stage in self._stages:
                try:
                    await stage.run(issue, context)
                except Exception as e:
                    logger.error(
                        "Pipeline stage failed",
                        extra={
                            "stage": stage.name,
                            "issue_id": issue.key,
                            "issue_title": issue.title,
                            "error": str(e)
                        },
                        exc_info=True
                    )
                    context.errors.append(f"{stage.name}: {e}")

        return context


def build_pipeline(
    labeling_service: LabelingService,
    semantic_cache: SemanticCacheService,
    summary_service: SummaryService,
    notifier: INotifier,
    config: Optional[Settings] = None
) -> TriagePipeline:
    config = config or default_settings
    return TriagePipeline([
        LabelingStage(labeling_service),
        SimilaritySearchStage(semantic_cache, config.similar_issues_top_k),
        SummaryStage(summary_service),
        NotificationStage(notifier),
    ])
