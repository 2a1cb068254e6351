"""
Triage Domain Entities
======================

Domain entities for the issue triage module.

Contains pure Python business objects for issues, similarity matches,
the per-request triage context and the prompt builders.
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


_ISSUE_NUMBER = re.compile(r"/issues/(\d+)")


def build_input_text(title: Optional[str], body: Optional[str]) -> str:
    """Text that gets embedded for an issue."""
    return f"Title: {title or ''}\nBody: {body or ''}"


def issue_number_from_url(url: Optional[str]) -> Optional[int]:
    if not url:
        return None
    match = _ISSUE_NUMBER.search(url)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class Issue:
    """
    An incoming issue report.

    Immutable for the duration of a pipeline run.
    """
    title: str
    body: str = ""
    labels: List[str] = field(default_factory=list)
    html_url: Optional[str] = None
    repository_url: Optional[str] = None
    id: Optional[int] = None
    number: Optional[int] = None
    state: Optional[str] = None

    @property
    def key(self) -> str:
        """
        Stable identifier used as the corpus key.

        GitHub's global id, then the issue number, then the number in the
        html url, then a digest of repository and title.
        """
        if self.id is not None:
            return str(self.id)
        if self.number is not None:
            return str(self.number)
        number = issue_number_from_url(self.html_url)
        if number is not None:
            return str(number)
        raw = f"{self.repository_url or ''}|{self.title or ''}"
        return hashlib.sha256(raw.encode()).hexdigest()[:16]

    @property
    def input_text(self) -> str:
        return build_input_text(self.title, self.body)


@dataclass(frozen=True)
class RepositoryLabel:
    """A label defined in the repository's label catalog."""
    name: str
    description: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class IssueContext:
    """Title and body of an example issue, used as LLM context."""
    title: str
    body: str = ""


@dataclass(frozen=True)
class SimilarIssue:
    """
    A previously stored issue paired with its closeness to the query.

    similarity is the clamped 0.0 to 1.0 fraction used for threshold
    comparisons; score is the rounded percentage shown to people.
    """
    issue_id: str
    issue: Issue
    distance: float
    similarity: float
    score: int


class SemanticCheckStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class SemanticCheckResult:
    """
    Outcome of a semantic cache check.

    MISS and LOOKUP_FAILED both send the caller down the label generation
    path; they are kept apart for logs and metrics.
    """
    status: SemanticCheckStatus
    match: Optional[SimilarIssue] = None
    error: Optional[str] = None

    @property
    def is_hit(self) -> bool:
        return self.status == SemanticCheckStatus.HIT and self.match is not None

    @classmethod
    def hit(cls, match: SimilarIssue) -> "SemanticCheckResult":
        return cls(SemanticCheckStatus.HIT, match=match)

    @classmethod
    def miss(cls, match: Optional[SimilarIssue] = None) -> "SemanticCheckResult":
        return cls(SemanticCheckStatus.MISS, match=match)

    @classmethod
    def lookup_failed(cls, error: str) -> "SemanticCheckResult":
        return cls(SemanticCheckStatus.LOOKUP_FAILED, error=error)


@dataclass
class TriageContext:
    """
    Mutable per-request state shared by the pipeline stages.

    Each stage reads what earlier stages wrote and adds its own output.
    """
    labels: List[str] = field(default_factory=list)
    similar_issues: List[SimilarIssue] = field(default_factory=list)
    summary: Optional[str] = None
    cache_status: Optional[SemanticCheckStatus] = None
    notified: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TaskContext:
    """Inputs to model routing."""
    task_type: str
    token_count: int = 0
    urgency: str = "normal"
    cost_sensitivity: float = 0.5


@dataclass(frozen=True)
class LlmRoute:
    """Model routing decision; cost_weight runs from 0.0 (cheapest) to 1.0."""
    model: str
    provider: str
    cost_weight: float


class LabelPromptBuilder:
    """
    Builds prompts for label generation.

    Following DRY principle - all prompt logic in one place.
    """

    HEADER = "You are an AI triage assistant. Read the following GitHub issue and return relevant labels.\n\n"

    @classmethod
    def format_labels(cls, labels: List[RepositoryLabel]) -> str:
        lines = ["Available labels in this repository:"]
        for label in labels:
            line = f"- {label.name}"
            if label.description:
                line += f": {label.description}"
            lines.append(line)
        return "\n".join(lines) + "\n"

    @classmethod
    def format_examples(cls, examples: dict) -> str:
        """Format {label name: IssueContext} as one example per label."""
        lines = ["Example issues for each label:"]
        for name, example in examples.items():
            line = f"- [{name}] {example.title}"
            if example.body:
                line += f" - {example.body[:300]}"
            lines.append(line)
        return "\n".join(lines) + "\n"

    @classmethod
    def build_prompt(
        cls,
        issue: Issue,
        catalog: List[RepositoryLabel],
        examples: dict,
        default_labels: List[str]
    ) -> str:
        parts = [cls.HEADER]

        if catalog:
            parts.append(cls.format_labels(catalog))
            parts.append("\nPlease select only from the labels listed above that are relevant to this issue.\n\n")
        else:
            quoted = ", ".join(f"'{name}'" for name in default_labels)
            parts.append(f"Available labels: [{quoted}]\n\n")

        if examples:
            parts.append(cls.format_examples(examples))
            parts.append("\nUse these examples to understand how each label is applied in this repository.\n\n")

        parts.append(
            "Issue to label:\n"
            "---\n"
            f"Title: {issue.title or ''}\n"
            f"Body: {issue.body or ''}\n"
            "---\n"
            "Return only a list of relevant labels as a comma-separated string."
        )
        return "".join(parts)


class SummaryPromptBuilder:
    """Builds prompts for issue summaries."""

    @classmethod
    def build_prompt(
        cls,
        issue: Issue,
        labels: List[str],
        similar_issues: Optional[List[SimilarIssue]] = None
    ) -> str:
        labels_context = ", ".join(labels) if labels else "none"

        similar_context = ""
        guideline = "- Avoid unnecessary details"
        if similar_issues:
            titles = [s.issue.title or "Unknown Issue" for s in similar_issues[:3]]
            similar_context = "\n\nSimilar Issues Found:\n" + "\n".join(f"- {t}" for t in titles)
            guideline = "- Consider the context of similar issues if relevant"

        return f"""You are an AI assistant helping with GitHub issue triage. Please provide a concise, professional summary of the following GitHub issue.

The summary should:
- Be 1-3 sentences maximum
- Focus on the core problem or request
- Be written in a clear, technical tone
{guideline}
- Help maintainers quickly understand the issue

Issue Details:
---
Title: {issue.title or 'No title'}
Body: {issue.body or 'No description provided'}
Generated Labels: {labels_context}{similar_context}
---

Provide only the summary, no additional text or formatting."""
