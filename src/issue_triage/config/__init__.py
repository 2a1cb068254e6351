"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="issue-triage", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== LLM Provider ==========
    llm_provider: str = Field(
        default="openai",
        description="LLM backend: openai (any OpenAI-compatible proxy such as LiteLLM), zai or mock"
    )
    llm_base_url: Optional[str] = Field(
        default="http://localhost:4000",
        description="Base URL of the OpenAI-compatible endpoint (LiteLLM proxy)"
    )
    llm_api_key: Optional[str] = Field(default=None, description="API key for the LLM endpoint")
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    zai_model: str = Field(default="glm-4.7", description="GLM model used when llm_provider is zai")
    zai_embedding_model: str = Field(default="embedding-3", description="Z.AI embedding model; set embedding_dimension to match (2048 for embedding-3)")
    llm_timeout_seconds: float = Field(default=60.0, description="Timeout for LLM calls", ge=1)

    # ========== Models ==========
    embedding_model: str = Field(default="text-embedding-3-small", description="Embedding model")
    embedding_dimension: int = Field(default=1536, description="Embedding vector dimension", ge=2)
    labeling_model: str = Field(default="gpt-4", description="Model used for label generation")
    summary_model: str = Field(
        default="us.anthropic.claude-3-haiku-20240307-v1:0",
        description="Model used for short summaries"
    )
    summary_long_model: str = Field(
        default="us.anthropic.claude-3-5-sonnet-20240620-v1:0",
        description="Model used for summaries of long issues"
    )
    default_model: str = Field(default="gpt-4", description="Model for unclassified tasks")
    cheap_model: str = Field(default="gpt-3.5-turbo", description="Model for cost-sensitive tasks")
    llm_temperature: float = Field(default=0.3, description="Default temperature for LLM", ge=0.0, le=1.0)
    llm_max_tokens: int = Field(default=500, description="Default max tokens for LLM generation", ge=1, le=8000)

    # ========== Vector Store (Milvus) ==========
    milvus_uri: str = Field(
        default="./issue_corpus.db",
        description="Milvus URI (a local file path uses Milvus Lite)"
    )
    milvus_token: Optional[str] = Field(default=None, description="Milvus / Zilliz Cloud token")
    milvus_collection_name: str = Field(default="issue_index", description="Milvus collection name")

    # ========== Metadata Cache (Redis) ==========
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    label_catalog_ttl_seconds: int = Field(default=3600, description="TTL of cached label catalogs", ge=1)
    example_issue_ttl_seconds: int = Field(default=1800, description="TTL of cached example issues", ge=1)

    # ========== Semantic Cache ==========
    semantic_cache_threshold: float = Field(
        default=0.92,
        description="Minimum similarity for reusing a stored issue's labels",
        ge=0.0,
        le=1.0
    )
    similar_issues_top_k: int = Field(default=3, description="Similar issues reported per issue", ge=1, le=20)

    # ========== GitHub ==========
    github_api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    github_token: Optional[str] = Field(default=None, description="GitHub token for API calls")
    github_timeout_seconds: float = Field(default=10.0, description="Timeout for GitHub calls", ge=0.1)

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(default=None, description="Slack webhook URL for notifications")
    slack_channel: Optional[str] = Field(default=None, description="Slack channel override")
    slack_timeout_seconds: float = Field(default=5.0, description="Timeout for Slack API calls", ge=0.1, le=30)

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(default=None, description="Grafana OTLP gateway URL")
    grafana_api_key: Optional[str] = Field(default=None, description="Grafana API key for OTLP authentication")
    grafana_instance_id: Optional[str] = Field(default=None, description="Grafana instance ID for OTLP authentication")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"openai", "zai", "mock"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

VECTOR_KEY_PREFIX = "issue:"

DEFAULT_LABELS = [
    "bug", "feature", "question", "documentation", "redis-cluster",
    "jedis", "lettuce", "performance", "regression"
]

TRIAGE_ACTIONS = {"opened", "reopened", "edited"}


class TaskType(str):
    """LLM task types used for model routing."""
    LABELING = "labeling"
    SUMMARIZATION = "summarization"
    UNKNOWN = "unknown"
