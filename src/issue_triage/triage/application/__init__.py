"""
Triage Application Layer
=========================

Application layer for the issue triage module.

Contains:
- Semantic cache and repository metadata cache
- Services: labeling, summaries, model routing
- Pipeline: ordered triage stages
- DTOs: Data transfer objects for API serialization
"""

from issue_triage.triage.application.dto import (
    GitHubIssuePayload,
    GitHubLabelPayload,
    GitHubRepositoryPayload,
    GitHubUserPayload,
    GitHubWebhookPayload,
    MatchRequest,
    MatchResponse,
    SimilarIssueInfo,
    WebhookResponse,
)
from issue_triage.triage.application.interfaces import IGitHubClient, INotifier
from issue_triage.triage.application.metadata_cache import MetadataCache, repository_key
from issue_triage.triage.application.semantic_cache import (
    DEFAULT_THRESHOLD,
    SemanticCacheService,
    extract_labels,
)
from issue_triage.triage.application.services import (
    LabelingService,
    PromptRouter,
    SummaryService,
    clean_summary,
    estimate_tokens,
    parse_labels,
)
from issue_triage.triage.application.pipeline import (
    LabelingStage,
    NotificationStage,
    SimilaritySearchStage,
    SummaryStage,
    TriagePipeline,
    TriageStage,
    build_pipeline,
)

__all__ = [
    # DTOs
    "GitHubIssuePayload",
    "GitHubLabelPayload",
    "GitHubRepositoryPayload",
    "GitHubUserPayload",
    "GitHubWebhookPayload",
    "MatchRequest",
    "MatchResponse",
    "SimilarIssueInfo",
    "WebhookResponse",
    # Interfaces
    "IGitHubClient",
    "INotifier",
    # Caches
    "MetadataCache",
    "repository_key",
    "DEFAULT_THRESHOLD",
    "SemanticCacheService",
    "extract_labels",
    # Services
    "LabelingService",
    "PromptRouter",
    "SummaryService",
    "clean_summary",
    "estimate_tokens",
    "parse_labels",
    # Pipeline
    "LabelingStage",
    "NotificationStage",
    "SimilaritySearchStage",
    "SummaryStage",
    "TriagePipeline",
    "TriageStage",
    "build_pipeline",
]
