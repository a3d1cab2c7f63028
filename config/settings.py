"""
Configuration Management System
================================
Environment-driven configuration with type-safe validation and
hierarchical overrides through Pydantic.

Every field has a safe default so the engine can be constructed with an
empty environment; collaborators without credentials are simply disabled.

Architecture: Strategy Pattern + Singleton + Functional Composition
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.enums import LLMProvider


class LLMSettings(BaseSettings):
    """Text-completion collaborator configuration."""

    provider: LLMProvider = Field(default=LLMProvider.OPENAI)
    openai_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("LLM_OPENAI_API_KEY", "OPENAI_API_KEY")
    )
    anthropic_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("LLM_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY")
    )
    model: str = Field(default="gpt-4o")
    anthropic_model: str = Field(default="claude-haiku-4-5-20251001")

    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    creative_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    topic_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=100, le=128000)
    topic_max_tokens: int = Field(default=300, ge=50, le=4096)

    timeout: float = Field(default=60.0, ge=1.0, le=600.0)
    max_retries: int = Field(default=3, ge=1, le=10)

    model_config = SettingsConfigDict(
        env_prefix="LLM_", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    @property
    def active_api_key(self) -> Optional[SecretStr]:
        """Key of the configured provider, if any."""
        if self.provider == LLMProvider.ANTHROPIC:
            return self.anthropic_api_key
        return self.openai_api_key


class EmbeddingSettings(BaseSettings):
    """Embedding collaborator configuration (OpenAI embeddings API)."""

    enabled: bool = Field(default=True)
    model: str = Field(default="text-embedding-3-small")
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_", case_sensitive=False, extra="ignore")


class StorageSettings(BaseSettings):
    """Locations of the persisted JSON documents."""

    data_dir: Path = Field(default=Path("data"))
    history_file: str = Field(default="history.json")
    clusters_file: str = Field(default="topic-clusters.json")
    keyword_plans_file: str = Field(default="keyword-plans.json")
    lock_file: str = Field(default=".keyword-engine.lock")
    history_max_records: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(env_prefix="STORAGE_", case_sensitive=False, extra="ignore")

    @property
    def history_path(self) -> Path:
        return self.data_dir / self.history_file

    @property
    def clusters_path(self) -> Path:
        return self.data_dir / self.clusters_file

    @property
    def keyword_plans_path(self) -> Path:
        return self.data_dir / self.keyword_plans_file

    @property
    def lock_path(self) -> Path:
        return self.data_dir / self.lock_file


class ResearchSettings(BaseSettings):
    """Keyword research caps and provider politeness."""

    max_candidates: int = Field(default=30, ge=1, le=200)
    max_related_seeds: int = Field(default=3, ge=0, le=20)
    cannibalization_batch_size: int = Field(default=10, ge=1, le=100)
    max_secondary: int = Field(default=5, ge=0, le=5)
    long_tail_min_words: int = Field(default=4, ge=1)
    max_niche_seeds: int = Field(default=8, ge=1, le=50)

    autocomplete_batch_size: int = Field(default=3, ge=1, le=10)
    autocomplete_delay_seconds: float = Field(default=0.2, ge=0.0, le=10.0)
    autocomplete_timeout_seconds: float = Field(default=5.0, ge=0.5, le=60.0)

    model_config = SettingsConfigDict(env_prefix="RESEARCH_", case_sensitive=False, extra="ignore")


class ClusterSettings(BaseSettings):
    """
    Topic cluster classification thresholds.

    The Jaccard and embedding thresholds live on unrelated scales and
    are tuned independently.
    """

    jaccard_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    embedding_threshold: float = Field(default=0.75, ge=-1.0, le=1.0)
    max_keywords: int = Field(default=30, ge=1)
    max_merge_keywords: int = Field(default=10, ge=0)
    embedding_query_count: int = Field(default=5, ge=0)
    embedding_keyword_count: int = Field(default=10, ge=0)

    model_config = SettingsConfigDict(env_prefix="CLUSTER_", case_sensitive=False, extra="ignore")


class DiversitySettings(BaseSettings):
    """Topic diversity filter configuration."""

    similarity_threshold: float = Field(default=0.35, ge=0.0, le=1.0)
    lookback_days: int = Field(default=30, ge=0)
    lookback_count: int = Field(default=20, ge=0)
    max_candidates: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(env_prefix="DIVERSITY_", case_sensitive=False, extra="ignore")


class TopicSettings(BaseSettings):
    """Topic source ordering and feed configuration."""

    sources: list[Literal["rss", "openai", "fallback"]] = Field(
        default=["rss", "openai", "fallback"]
    )
    manual_topic: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TOPIC_MANUAL_TOPIC", "ARTICLE_TOPIC")
    )
    category: str = Field(default="all")
    custom_feeds: list[str] = Field(default_factory=list)

    feed_timeout_seconds: float = Field(default=10.0, ge=1.0, le=120.0)
    feed_items_per_feed: int = Field(default=10, ge=1)
    min_title_length: int = Field(default=10, ge=1)
    max_related_queries: int = Field(default=8, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="TOPIC_", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    @field_validator("manual_topic")
    @classmethod
    def blank_topic_is_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty override means no override."""
        if v is None:
            return None
        return v.strip() or None


class MonitoringSettings(BaseSettings):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="text")

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_", case_sensitive=False, extra="ignore"
    )


class Settings(BaseSettings):
    """
    Master configuration orchestrator.

    Implements hierarchical configuration composition with environment-specific
    overrides and runtime validation.
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    app_name: str = Field(default="Keyword Intelligence Engine")
    app_version: str = Field(default="1.0.0")

    # Component configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    research: ResearchSettings = Field(default_factory=ResearchSettings)
    cluster: ClusterSettings = Field(default_factory=ClusterSettings)
    diversity: DiversitySettings = Field(default_factory=DiversitySettings)
    topic: TopicSettings = Field(default_factory=TopicSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_production_credentials(self) -> "Settings":
        """Production runs must be able to reach the text-completion collaborator."""
        if self.environment == "production" and self.llm.active_api_key is None:
            raise ValueError(
                f"An API key for LLM provider '{self.llm.provider.value}' is required in production"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton factory for global settings access.

    Uses LRU cache to ensure single instance across application lifetime.

    Returns:
        Settings: Validated settings instance
    """
    return Settings()


__all__ = [
    "Settings",
    "LLMSettings",
    "EmbeddingSettings",
    "StorageSettings",
    "ResearchSettings",
    "ClusterSettings",
    "DiversitySettings",
    "TopicSettings",
    "MonitoringSettings",
    "get_settings",
]
