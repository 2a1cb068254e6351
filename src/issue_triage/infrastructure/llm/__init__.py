"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (OpenAI-compatible proxies such as LiteLLM, Z.AI)
providing a clean interface for embeddings and chat completions.

The application layer depends on ILLMClient only; the concrete provider is
chosen once at startup by create_llm_client().
"""

import hashlib
import math
import re
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI
from zai import ZaiClient

from issue_triage.config import Settings, settings as default_settings
from issue_triage.core import LLMException, ConfigurationException
from issue_triage.shared.infrastructure.grafana import get_grafana_exporter
from issue_triage.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release provider resources."""


async def _export_usage(result: ChatCompletionResult, operation: str) -> None:
    exporter = get_grafana_exporter()
    if exporter and exporter.is_enabled():
        await exporter.export_llm_metrics(
            model=result.model,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            latency_ms=result.latency_ms,
            operation=operation
        )


class OpenAILLMClient(ILLMClient):
    """
    OpenAI-compatible client.

    Points at a LiteLLM proxy by default, which routes model names such as
    "gpt-4" or Bedrock Claude ids to the matching provider.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[Settings] = None
    ):
        self._settings = config or default_settings
        self._client = AsyncOpenAI(
            api_key=api_key or self._settings.llm_api_key or "sk-no-key",
            base_url=base_url or self._settings.llm_base_url,
            timeout=self._settings.llm_timeout_seconds
        )
        self._model = self._settings.default_model
        self._embedding_model = self._settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text.

        Raises:
            LLMException: If the call fails or returns no vector
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

        if not response.data or not response.data[0].embedding:
            raise LLMException("Embedding response contained no vector")

        return EmbeddingResult(
            embedding=[float(v) for v in response.data[0].embedding],
            model=self._embedding_model
        )

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model name; defaults to the configured default model
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for metrics (labeling, summarization)

        Raises:
            LLMException: If completion fails
        """
        model = model or self._model
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}", {"model": model})

        if not response.choices:
            raise LLMException("Chat completion returned no choices", {"model": model})

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        usage = response.usage

        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )
        await _export_usage(result, operation)
        return result

    async def close(self) -> None:
        await self._client.close()


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    Ignores routed model names from other providers and always uses its
    configured GLM model.
    """

    def __init__(self, api_key: Optional[str] = None, config: Optional[Settings] = None):
        self._settings = config or default_settings
        self._api_key = api_key or self._settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = self._settings.zai_model
        self._embedding_model = self._settings.zai_embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        try:
            response = self._client.embeddings.create(
                model=self._embedding_model,
                input=text
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

        if not response.data or not response.data[0].embedding:
            raise LLMException("Embedding response contained no vector")

        return EmbeddingResult(
            embedding=[float(v) for v in response.data[0].embedding],
            model=self._embedding_model
        )

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        start_time = time.perf_counter()

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}", {"model": self._model})

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        content = response.choices[0].message.content or ""

        # Z.AI doesn't return token usage, so we estimate
        result = ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=len(str(messages)) // 4,
            completion_tokens=len(content) // 4,
            latency_ms=latency_ms
        )
        await _export_usage(result, operation)
        return result


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Embeddings are hashed bag-of-words vectors, so identical texts map to
    identical vectors and texts sharing most words land close together.
    """

    _TOKEN = re.compile(r"[a-z0-9]+")

    def __init__(self, dimension: Optional[int] = None, labels_response: str = "bug"):
        self._dimension = dimension or default_settings.embedding_dimension
        self._labels_response = labels_response

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        vector = [0.0] * self._dimension
        for token in self._TOKEN.findall(text.lower()):
            digest = hashlib.sha256(token.encode()).digest()
            bucket = int.from_bytes(digest[:4], "little") % self._dimension
            vector[bucket] += 1.0 if digest[4] % 2 == 0 else -1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm:
            vector = [v / norm for v in vector]
        return EmbeddingResult(embedding=vector, model="mock-embedding")

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        if operation == "labeling":
            content = self._labels_response
        else:
            content = "Mock summary of the reported issue."

        return ChatCompletionResult(
            content=content,
            model=model or "mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def create_llm_client(config: Optional[Settings] = None) -> ILLMClient:
    """Build the LLM client selected by settings.llm_provider."""
    config = config or default_settings

    if config.llm_provider == "mock":
        return MockLLMClient(dimension=config.embedding_dimension)
    if config.llm_provider == "zai":
        return ZAIILLMClient(config=config)
    return OpenAILLMClient(config=config)
