"""
Dependency Injection Container: Centralized Object Lifecycle Management

Wires the keyword intelligence engine's object graph with dependency-injector.
Every component is a singleton: the engine is single-writer by construction,
so exactly one cluster store and one history repository may exist per process.

Architecture: Container Pattern + Dependency Injection + Singleton Registry

Dependency Graph (DAG):
Settings -> Infrastructure -> Knowledge -> Execution -> Orchestration
"""

from typing import Optional

from dependency_injector import containers, providers
from loguru import logger

from config.settings import Settings, get_settings
from execution.cannibalization import CannibalizationDetector
from execution.keyword_planner import KeywordPlanner
from execution.keyword_researcher import KeywordResearcher
from infrastructure.embedding_client import AbstractEmbeddingClient, get_embedding_client
from infrastructure.instance_lock import InstanceLock
from infrastructure.keyword_providers import KeywordDataProvider, default_providers
from infrastructure.llm_client import AbstractLLMClient, get_llm_client
from infrastructure.monitoring import configure_logging
from intelligence.semantic_analyzer import SemanticAnalyzer, get_semantic_analyzer
from knowledge.cluster_store import TopicClusterStore
from knowledge.history_repository import PublishHistoryRepository
from orchestration.engine import KeywordIntelligenceEngine


class Container(containers.DeclarativeContainer):
    """
    Central dependency injection container.

    Collaborators without credentials resolve to None (embeddings) or raise
    MissingConfigurationError on first use (text completion).
    """

    # Configuration providers (singletons)
    config: providers.Singleton[Settings] = providers.Singleton(get_settings)

    # Infrastructure layer providers
    llm_client: providers.Singleton[AbstractLLMClient] = providers.Singleton(
        get_llm_client,
        settings=config.provided.llm,
    )

    embedding_client: providers.Singleton[Optional[AbstractEmbeddingClient]] = providers.Singleton(
        get_embedding_client,
        embedding_settings=config.provided.embedding,
        llm_settings=config.provided.llm,
    )

    instance_lock: providers.Singleton[InstanceLock] = providers.Singleton(
        InstanceLock,
        path=config.provided.storage.lock_path,
    )

    keyword_providers: providers.Singleton[list[KeywordDataProvider]] = providers.Singleton(
        default_providers,
        settings=config.provided.research,
    )

    # Intelligence layer providers
    semantic_analyzer: providers.Singleton[Optional[SemanticAnalyzer]] = providers.Singleton(
        get_semantic_analyzer,
        embedding_client=embedding_client,
    )

    # Knowledge layer providers
    cluster_store: providers.Singleton[TopicClusterStore] = providers.Singleton(
        TopicClusterStore,
        path=config.provided.storage.clusters_path,
        settings=config.provided.cluster,
        semantic_analyzer=semantic_analyzer,
    )

    history_repository: providers.Singleton[PublishHistoryRepository] = providers.Singleton(
        PublishHistoryRepository,
        path=config.provided.storage.history_path,
        max_records=config.provided.storage.history_max_records,
    )

    # Execution layer providers
    cannibalization_detector: providers.Singleton[CannibalizationDetector] = providers.Singleton(
        CannibalizationDetector,
        llm_client=llm_client,
        history_repository=history_repository,
        cluster_store=cluster_store,
        settings=config.provided.research,
        llm_settings=config.provided.llm,
    )

    keyword_researcher: providers.Singleton[KeywordResearcher] = providers.Singleton(
        KeywordResearcher,
        llm_client=llm_client,
        providers=keyword_providers,
        cannibalization_detector=cannibalization_detector,
        settings=config.provided.research,
        llm_settings=config.provided.llm,
    )

    keyword_planner: providers.Singleton[KeywordPlanner] = providers.Singleton(
        KeywordPlanner,
        researcher=keyword_researcher,
        cannibalization_detector=cannibalization_detector,
        output_path=config.provided.storage.keyword_plans_path,
    )

    # Orchestration layer providers
    engine: providers.Singleton[KeywordIntelligenceEngine] = providers.Singleton(
        KeywordIntelligenceEngine,
        settings=config,
        instance_lock=instance_lock,
        cluster_store=cluster_store,
        history_repository=history_repository,
        researcher=keyword_researcher,
        planner=keyword_planner,
        llm_client=llm_client,
        embedding_client=embedding_client,
    )


# Global container instance
container = Container()


class ContainerManager:
    """
    Container lifecycle manager.

    initialize() configures logging and builds the engine, which takes the
    instance lock; cleanup() closes the engine and releases the lock.
    """

    def __init__(self, target: Optional[Container] = None) -> None:
        self._container = target or container
        self._engine: Optional[KeywordIntelligenceEngine] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def initialize(self) -> KeywordIntelligenceEngine:
        """
        Build the engine and everything it depends on.

        Raises:
            InstanceLockedError: If another engine holds the data directory
            MissingConfigurationError: If the completion provider has no API key
        """
        if self._engine is not None:
            logger.warning("Container already initialized - skipping re-initialization")
            return self._engine

        configure_logging(self._container.config().monitoring)
        logger.info("Initializing dependency injection container")

        self._engine = self._container.engine()
        logger.info("✓ Keyword intelligence engine initialized")
        return self._engine

    async def cleanup(self) -> None:
        """Close the engine; safe to call more than once."""
        if self._engine is None:
            logger.debug("Container not initialized - skipping cleanup")
            return

        logger.info("Cleaning up dependency injection container")
        try:
            await self._engine.close()
        finally:
            self._engine = None
            self._container.reset_singletons()
        logger.info("✓ Container cleanup completed")


# Global container manager
container_manager = ContainerManager()


__all__ = [
    "Container",
    "ContainerManager",
    "container",
    "container_manager",
]
