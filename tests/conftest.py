"""
Pytest Configuration and Fixture Library

Test infrastructure providing:
- Temporary data directories for the JSON documents
- Mock text-completion and embedding collaborators
- Stub keyword providers
- Reusable test data builders

Design Pattern: Test Data Builder + Fixture Factory
"""

import json
import os
from typing import Any, Callable, Optional, Sequence
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest

# Set test environment variables before importing any modules
os.environ.update(
    {
        "ENVIRONMENT": "development",
        "LLM_OPENAI_API_KEY": "test-key",
        "LLM_ANTHROPIC_API_KEY": "test-key",
        "MONITORING_LOG_LEVEL": "DEBUG",
    }
)

from config.settings import ClusterSettings, ResearchSettings
from core.enums import LLMProvider, SearchIntent, SearchVolume, TrendDirection
from core.models import KeywordCandidate, KeywordMetrics, TokenUsage
from infrastructure.embedding_client import AbstractEmbeddingClient
from infrastructure.keyword_providers import KeywordDataProvider
from infrastructure.llm_client import AbstractLLMClient, LLMResponse
from knowledge.cluster_store import TopicClusterStore
from knowledge.history_repository import PublishHistoryRepository

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as exercising several components")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")


# ============================================================================
# COLLABORATOR DOUBLES
# ============================================================================


def make_llm_response(payload: Any, total_tokens: int = 30) -> LLMResponse:
    """LLMResponse whose content is the JSON encoding of payload (strings pass through)."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return LLMResponse(
        content=content,
        model="gpt-test",
        usage=TokenUsage(prompt_tokens=20, completion_tokens=10, total_tokens=total_tokens),
        latency_ms=12.0,
        provider=LLMProvider.OPENAI,
    )


class StubKeywordProvider(KeywordDataProvider):
    """Keyword provider answering from a seed -> phrases mapping."""

    def __init__(
        self,
        suggestions: Optional[dict[str, Sequence[str]]] = None,
        *,
        name: str = "stub",
        available: bool = True,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.suggestions = suggestions or {}
        self.available = available
        self.error = error
        self.seeds_requested: list[str] = []

    def is_available(self) -> bool:
        return self.available

    async def get_keyword_suggestions(self, seed: str) -> list[KeywordCandidate]:
        self.seeds_requested.append(seed)
        if self.error is not None:
            raise self.error
        return [KeywordCandidate(keyword=k, source=self.name) for k in self.suggestions.get(seed, [])]


class FakeEmbeddingClient(AbstractEmbeddingClient):
    """
    Embedding client returning fixed vectors.

    Texts containing a registered marker word get that marker's vector;
    anything else gets the default vector.
    """

    model_name = "fake-embedding"

    def __init__(
        self,
        vectors: Optional[dict[str, Sequence[float]]] = None,
        default: Sequence[float] = (0.0, 0.0, 1.0),
        error: Optional[Exception] = None,
    ):
        self.vectors = vectors or {}
        self.default = default
        self.error = error
        self.calls: list[list[str]] = []
        self.closed = False

    def _vector_for(self, text: str) -> np.ndarray:
        lowered = text.lower()
        for marker, vector in self.vectors.items():
            if marker in lowered:
                return np.asarray(vector, dtype=np.float32)
        return np.asarray(self.default, dtype=np.float32)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self._vector_for(t) for t in texts]

    async def close(self) -> None:
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def llm_response() -> Callable[..., LLMResponse]:
    """Factory building LLMResponse objects from JSON-serializable payloads."""
    return make_llm_response


@pytest.fixture
def mock_llm_client():
    """Mock text-completion client; set complete.return_value / side_effect per test."""
    mock = Mock(spec=AbstractLLMClient)
    mock.complete = AsyncMock()
    mock.close = AsyncMock()
    mock.get_token_usage.return_value = TokenUsage(
        prompt_tokens=100, completion_tokens=50, total_tokens=150
    )
    return mock


@pytest.fixture
def research_settings() -> ResearchSettings:
    """Research settings without politeness delays."""
    return ResearchSettings(autocomplete_delay_seconds=0.0)


@pytest.fixture
def cluster_store(tmp_path) -> TopicClusterStore:
    """Keyword-overlap cluster store backed by a temporary document."""
    return TopicClusterStore(tmp_path / "topic-clusters.json", ClusterSettings())


@pytest.fixture
def history_repository(tmp_path) -> PublishHistoryRepository:
    """Publish history backed by a temporary document."""
    return PublishHistoryRepository(tmp_path / "history.json")


@pytest.fixture
def write_json(tmp_path) -> Callable[[str, Any], Any]:
    """Write a JSON document under the temporary directory and return its path."""

    def _write(name: str, data: Any):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def metrics_factory() -> Callable[..., KeywordMetrics]:
    """Builder for KeywordMetrics with neutral defaults."""

    def _create(
        keyword: str,
        volume: SearchVolume = SearchVolume.MEDIUM,
        difficulty: float = 50.0,
        trend: TrendDirection = TrendDirection.STABLE,
        intent: SearchIntent = SearchIntent.INFORMATIONAL,
        source: str = "gpt",
    ) -> KeywordMetrics:
        return KeywordMetrics(
            keyword=keyword,
            source=source,
            estimated_volume=volume,
            estimated_difficulty=difficulty,
            trend=trend,
            intent=intent,
        )

    return _create


@pytest.fixture
def stub_provider() -> type[StubKeywordProvider]:
    """StubKeywordProvider class, instantiated per test."""
    return StubKeywordProvider


@pytest.fixture
def fake_embeddings() -> type[FakeEmbeddingClient]:
    """FakeEmbeddingClient class, instantiated per test."""
    return FakeEmbeddingClient


# Prompt marker per reply shape; "title" last since other prompts show titles
_PROMPT_ROUTES = ("metrics", "classifications", "longTails", "results", "seeds", "title")


@pytest.fixture
def llm_router(mock_llm_client):
    """
    Route mock completions by the JSON field each prompt asks for.

    Values are a payload, an Exception to raise, or a list of those consumed
    one call at a time. Unrouted prompts raise AssertionError.
    """

    def _install(**routes):
        calls: list[str] = []

        def _complete(prompt, **kwargs):
            for name in _PROMPT_ROUTES:
                if f'"{name}"' not in prompt:
                    continue
                if name not in routes:
                    break
                calls.append(name)
                reply = routes[name]
                if isinstance(reply, list):
                    reply = reply.pop(0)
                if isinstance(reply, Exception):
                    raise reply
                return make_llm_response(reply)
            raise AssertionError(f"Unexpected prompt: {prompt[:80]}")

        mock_llm_client.complete.side_effect = _complete
        return calls

    return _install
