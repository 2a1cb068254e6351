"""
Triage Application DTOs
========================

Data Transfer Objects for Triage API layer.

Pydantic models for request/response validation. Webhook models accept
GitHub's full payload and keep only the fields triage uses.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

from issue_triage.triage.domain import Issue, SimilarIssue


# ========== GitHub Webhook DTOs ==========

class GitHubLabelPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class GitHubUserPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: Optional[str] = None
    id: Optional[int] = None


class GitHubRepositoryPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    full_name: Optional[str] = None
    html_url: Optional[str] = None
    url: Optional[str] = None


class GitHubIssuePayload(BaseModel):
    """The `issue` object of an `issues` webhook event."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    number: Optional[int] = None
    title: str = Field(default="", description="Issue title")
    body: Optional[str] = Field(default=None, description="Issue body (markdown)")
    state: Optional[str] = None
    html_url: Optional[str] = None
    url: Optional[str] = None
    repository_url: Optional[str] = None
    labels: List[GitHubLabelPayload] = Field(default_factory=list)
    user: Optional[GitHubUserPayload] = None

    @field_validator("title", mode="before")
    @classmethod
    def none_title_to_empty(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("labels", mode="before")
    @classmethod
    def none_labels_to_empty(cls, v):
        return v or []

    def to_domain(self, repository: Optional[GitHubRepositoryPayload] = None) -> Issue:
        """Convert to domain entity."""
        repository_url = self.repository_url
        if not repository_url and repository is not None:
            repository_url = repository.url or repository.html_url

        return Issue(
            id=self.id,
            number=self.number,
            title=self.title,
            body=self.body or "",
            labels=[label.name for label in self.labels if label.name],
            html_url=self.html_url,
            repository_url=repository_url,
            state=self.state,
        )


class GitHubWebhookPayload(BaseModel):
    """GitHub `issues` event payload."""
    model_config = ConfigDict(extra="ignore")

    action: str = Field(..., description="Event action, e.g. opened, edited, closed")
    issue: Optional[GitHubIssuePayload] = None
    repository: Optional[GitHubRepositoryPayload] = None
    sender: Optional[GitHubUserPayload] = None


# ========== Request DTOs ==========

class MatchRequest(BaseModel):
    """Request model for a read-only semantic cache lookup."""
    title: str = Field(..., min_length=1, description="Issue title")
    body: Optional[str] = Field(default="", description="Issue body")
    threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Minimum similarity; defaults to the configured threshold"
    )

    @field_validator("body")
    @classmethod
    def validate_body_length(cls, v: Optional[str]) -> Optional[str]:
        """Ensure body is not too long for the embedding model."""
        if v and len(v) > 30000:
            raise ValueError("Body too long (max 30000 characters)")
        return v


# ========== Response DTOs ==========

class SimilarIssueInfo(BaseModel):
    """A stored issue close to the query."""
    issue_id: str
    title: str
    url: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    similarity: float = Field(..., ge=0.0, le=1.0)
    score: int

    @classmethod
    def from_domain(cls, match: SimilarIssue) -> "SimilarIssueInfo":
        return cls(
            issue_id=match.issue_id,
            title=match.issue.title,
            url=match.issue.html_url,
            labels=list(match.issue.labels),
            similarity=match.similarity,
            score=match.score,
        )


class WebhookResponse(BaseModel):
    """Response model for the webhook endpoint."""
    status: str
    labels: List[str] = Field(default_factory=list)
    similar_issues: List[SimilarIssueInfo] = Field(default_factory=list)
    cache_outcome: Optional[str] = None
    summary: Optional[str] = None
    notified: bool = False
    errors: List[str] = Field(default_factory=list)


class MatchResponse(BaseModel):
    """Response model for semantic cache lookups."""
    status: str
    threshold: float
    match: Optional[SimilarIssueInfo] = None
    labels: List[str] = Field(default_factory=list)
