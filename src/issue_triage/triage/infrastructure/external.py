"""
Triage External Service Adapters
==================================

Adapters for external services used by the triage module:
- GitHub REST API (label catalog and example issues)
- Slack incoming webhook (triage notifications)

Implements the interfaces defined in the application layer with httpx.
"""

from typing import Any, Dict, List, Optional

import httpx

from issue_triage.config import Settings, settings as default_settings
from issue_triage.core import GitHubException, NotificationException
from issue_triage.shared.infrastructure.logging import get_logger
from issue_triage.triage.application.interfaces import IGitHubClient, INotifier
from issue_triage.triage.application.metadata_cache import repository_key
from issue_triage.triage.domain import Issue, IssueContext, RepositoryLabel, SimilarIssue

logger = get_logger(__name__)

MAX_SIMILAR_IN_MESSAGE = 3


class GitHubClient(IGitHubClient):
    """
    GitHub REST client.

    Lookups never raise: failures are logged and reported as empty results,
    which the labeling prompt treats as "no repository context".
    """

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = config or default_settings
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
            if self._settings.github_token:
                headers["Authorization"] = f"Bearer {self._settings.github_token}"
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.github_timeout_seconds,
                headers=headers
            )
        return self._http_client

    def _api_base(self, repository_url: str) -> str:
        """Normalize web or API repository urls to the API form."""
        api_url = self._settings.github_api_url.rstrip("/")
        url = repository_url.rstrip("/")
        if url.startswith(api_url):
            return url

        repo = repository_key(url)
        if "/" in repo:
            return f"{api_url}/repos/{repo}"
        return url

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        """
        Raises:
            GitHubException: On transport errors, non-2xx responses or invalid JSON
        """
        try:
            client = await self._get_client()
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GitHubException(str(e), {"url": url})

    async def fetch_repository_labels(self, repository_url: str) -> List[RepositoryLabel]:
        if not repository_url:
            return []

        url = f"{self._api_base(repository_url)}/labels"
        try:
            data = await self._get_json(url, {"per_page": 100})
        except GitHubException as e:
            logger.error("Failed to fetch repository labels", extra={"url": url, "error": str(e)})
            return []

        labels = [
            RepositoryLabel(
                name=item["name"],
                description=item.get("description"),
                color=item.get("color")
            )
            for item in data or []
            if isinstance(item, dict) and item.get("name")
        ]
        logger.info("Fetched repository labels", extra={"url": url, "count": len(labels)})
        return labels

    async def fetch_example_issue(self, repository_url: str, label_name: str) -> Optional[IssueContext]:
        if not repository_url or not label_name:
            return None

        url = f"{self._api_base(repository_url)}/issues"
        params = {"labels": label_name, "state": "all", "per_page": 1}
        try:
            data = await self._get_json(url, params)
        except GitHubException as e:
            logger.error(
                "Failed to fetch example issue",
                extra={"url": url, "label": label_name, "error": str(e)}
            )
            return None

        if not data or not isinstance(data[0], dict):
            return None

        first = data[0]
        return IssueContext(title=first.get("title") or "", body=first.get("body") or "")

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class SlackNotifier(INotifier):
    """
    Slack incoming-webhook notifier.

    Each notification is attempted once. Failures are logged and reported
    as False; nothing is retried or raised.
    """

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = config or default_settings
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.slack_timeout_seconds
            )
        return self._http_client

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.slack_webhook_url)

    @staticmethod
    def compose_message(
        issue: Issue,
        labels: Optional[List[str]],
        similar_issues: Optional[List[SimilarIssue]],
        summary: Optional[str]
    ) -> str:
        """Render the notification as Slack mrkdwn."""
        parts = [":triangular_flag_on_post: *New GitHub Issue Received*\n\n"]

        title = issue.title or "Untitled Issue"
        if issue.html_url:
            parts.append(f"*:link: Title:* <{issue.html_url}|{title}>\n\n")
        else:
            parts.append(f"*:link: Title:* {title}\n\n")

        if labels:
            parts.append("*:label: Labels:* " + " · ".join(f"`{label}`" for label in labels) + "\n\n")

        if summary and summary.strip():
            parts.append("*:brain: AI Summary:*\n")
            for line in summary.strip().split("\n"):
                parts.append(f"> {line}\n")
            parts.append("\n")

        if similar_issues:
            lines = []
            for match in similar_issues[:MAX_SIMILAR_IN_MESSAGE]:
                number = match.issue.number if match.issue.number is not None else match.issue_id
                similar_title = match.issue.title or "Unknown Issue"
                link = f"<{match.issue.html_url}|#{number}>" if match.issue.html_url else f"#{number}"
                lines.append(f'• {link} – "{similar_title}" ({match.score}%)')
            parts.append("*:jigsaw: Similar Issues:*\n" + "\n".join(lines) + "\n\n")

        return "".join(parts)

    async def send_notification(
        self,
        issue: Issue,
        labels: List[str],
        similar_issues: List[SimilarIssue],
        summary: Optional[str]
    ) -> bool:
        """
        Send one notification.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        payload: Dict[str, Any] = {"text": self.compose_message(issue, labels, similar_issues, summary)}
        if self._settings.slack_channel:
            payload["channel"] = self._settings.slack_channel

        try:
            await self._post(payload)
        except NotificationException as e:
            logger.error(
                "Failed to send Slack notification",
                extra={"issue_id": issue.key, "error": e.message, **e.details}
            )
            return False

        logger.info("Slack notification sent", extra={"issue_id": issue.key})
        return True

    async def _post(self, payload: Dict[str, Any]) -> None:
        try:
            client = await self._get_client()
            response = await client.post(self._settings.slack_webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationException(str(e))

        if response.status_code != 200:
            raise NotificationException(
                "Slack webhook returned non-200",
                {"status_code": response.status_code}
            )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
