"""
Core Exceptions
================

Custom exceptions for the triage service.

Adapters raise these at the infrastructure boundary; application services
decide which of them degrade to a fallback and which are logged.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)


class CacheStoreException(ExternalServiceException):
    """Exception for metadata cache store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Cache Store", message, details)


class GitHubException(ExternalServiceException):
    """Exception for GitHub API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("GitHub", message, details)


class NotificationException(ExternalServiceException):
    """Exception for notification channel failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Slack", message, details)
