"""
Triage Application Interfaces
==============================

Ports to the outside world used by the application services.

Following Interface Segregation and Dependency Inversion principles.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from issue_triage.triage.domain import Issue, IssueContext, RepositoryLabel, SimilarIssue


class IGitHubClient(ABC):
    """Interface for repository metadata lookups."""

    @abstractmethod
    async def fetch_repository_labels(self, repository_url: str) -> List[RepositoryLabel]:
        """Fetch the repository's label catalog; [] on failure."""

    @abstractmethod
    async def fetch_example_issue(self, repository_url: str, label_name: str) -> Optional[IssueContext]:
        """Fetch one issue carrying the label; None on failure or no result."""


class INotifier(ABC):
    """Interface for triage notifications."""

    @abstractmethod
    async def send_notification(
        self,
        issue: Issue,
        labels: List[str],
        similar_issues: List[SimilarIssue],
        summary: Optional[str]
    ) -> bool:
        """Send one notification. Returns True when delivered."""
