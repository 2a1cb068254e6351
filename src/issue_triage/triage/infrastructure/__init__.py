"""
Triage Infrastructure Layer
============================

Adapters for GitHub and Slack.
"""

from issue_triage.triage.infrastructure.external import GitHubClient, SlackNotifier

__all__ = ["GitHubClient", "SlackNotifier"]
