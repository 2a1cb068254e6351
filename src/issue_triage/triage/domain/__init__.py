"""
Triage Domain Layer
===================

Domain layer for the issue triage module.

Contains:
- Entities: Issue, SimilarIssue, TriageContext, SemanticCheckResult
- Value Objects: RepositoryLabel, IssueContext, TaskContext, LlmRoute
- Prompt builders for labeling and summaries

This layer is framework-agnostic and contains pure business logic.
"""

from issue_triage.triage.domain.entities import (
    Issue,
    RepositoryLabel,
    IssueContext,
    SimilarIssue,
    SemanticCheckStatus,
    SemanticCheckResult,
    TriageContext,
    TaskContext,
    LlmRoute,
    LabelPromptBuilder,
    SummaryPromptBuilder,
    build_input_text,
    issue_number_from_url,
)

__all__ = [
    "Issue",
    "RepositoryLabel",
    "IssueContext",
    "SimilarIssue",
    "SemanticCheckStatus",
    "SemanticCheckResult",
    "TriageContext",
    "TaskContext",
    "LlmRoute",
    "LabelPromptBuilder",
    "SummaryPromptBuilder",
    "build_input_text",
    "issue_number_from_url",
]
