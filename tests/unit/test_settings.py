"""
Unit tests for environment-driven configuration.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from config.settings import (
    ClusterSettings,
    LLMSettings,
    Settings,
    StorageSettings,
    TopicSettings,
    get_settings,
)
from core.enums import LLMProvider


class TestDefaults:
    def test_cluster_thresholds_are_independent(self):
        settings = ClusterSettings()
        assert settings.jaccard_threshold == 0.3
        assert settings.embedding_threshold == 0.75
        assert settings.max_keywords == 30
        assert settings.max_merge_keywords == 10

    def test_storage_paths_live_under_data_dir(self):
        storage = StorageSettings(data_dir=Path("/srv/engine"))
        assert storage.clusters_path == Path("/srv/engine/topic-clusters.json")
        assert storage.history_path == Path("/srv/engine/history.json")
        assert storage.keyword_plans_path == Path("/srv/engine/keyword-plans.json")
        assert storage.lock_path.parent == Path("/srv/engine")

    def test_topic_source_order(self):
        assert TopicSettings().sources == ["rss", "openai", "fallback"]


class TestEnvironment:
    def test_nested_override(self, monkeypatch):
        monkeypatch.setenv("CLUSTER_JACCARD_THRESHOLD", "0.4")
        monkeypatch.setenv("RESEARCH_MAX_CANDIDATES", "12")
        settings = Settings(_env_file=None)
        assert settings.cluster.jaccard_threshold == 0.4
        assert settings.research.max_candidates == 12

    def test_manual_topic_alias(self, monkeypatch):
        monkeypatch.setenv("ARTICLE_TOPIC", "  Home Espresso Guide ")
        assert TopicSettings().manual_topic == "Home Espresso Guide"

    def test_blank_manual_topic_means_none(self, monkeypatch):
        monkeypatch.setenv("ARTICLE_TOPIC", "   ")
        assert TopicSettings().manual_topic is None

    def test_plain_provider_key_names(self, monkeypatch):
        monkeypatch.delenv("LLM_ANTHROPIC_API_KEY", raising=False)
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        settings = LLMSettings()
        assert settings.provider == LLMProvider.ANTHROPIC
        assert settings.active_api_key.get_secret_value() == "sk-ant"

    def test_threshold_out_of_range_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            ClusterSettings(jaccard_threshold=1.5)


class TestProduction:
    def test_production_requires_provider_key(self, monkeypatch):
        monkeypatch.delenv("LLM_OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None)

    def test_production_with_key(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings = Settings(_env_file=None)
        assert settings.is_production


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
