"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from issue_triage.core.exceptions import (
    ApplicationException,
    ValidationException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    VectorStoreException,
    CacheStoreException,
    GitHubException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "ValidationException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "VectorStoreException",
    "CacheStoreException",
    "GitHubException",
    "NotificationException",
]
