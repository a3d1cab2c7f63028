"""
Keyword Intelligence Engine
===========================
Facade the content pipeline talks to. Owns the single-instance lock and
sequences the engine's components for one pipeline run:

    select_topic -> classify_topic -> build_keyword_plan
        -> (article published by the pipeline) -> record_published_article

plan_niche runs the standalone easy-to-rank report.

Architecture: Facade + explicit ownership of persisted state
"""

import random
from typing import Optional

from config.settings import Settings
from core.enums import PublishStatus
from core.models import (
    ClusterArticle,
    ClusterClassification,
    KeywordPlan,
    KeywordPlanReport,
    PublishRecord,
    SelectionResult,
    TokenUsage,
    TrendingTopic,
    utc_now,
)
from core.outcome import Outcome
from execution.keyword_planner import KeywordPlanner
from execution.keyword_researcher import KeywordResearcher
from infrastructure.embedding_client import AbstractEmbeddingClient
from infrastructure.instance_lock import InstanceLock
from infrastructure.llm_client import AbstractLLMClient
from infrastructure.monitoring import get_logger
from knowledge.cluster_store import TopicClusterStore
from knowledge.history_repository import PublishHistoryRepository
from orchestration.topic_selector import TopicSelector
from orchestration.topic_sources import build_topic_sources

log = get_logger("engine")


class KeywordIntelligenceEngine:
    """
    Single-writer facade over topic selection, clustering and keyword research.

    The instance lock is taken in the constructor; a second engine on the
    same data directory fails immediately with InstanceLockedError.
    """

    def __init__(
        self,
        settings: Settings,
        instance_lock: InstanceLock,
        cluster_store: TopicClusterStore,
        history_repository: PublishHistoryRepository,
        researcher: KeywordResearcher,
        planner: KeywordPlanner,
        llm_client: AbstractLLMClient,
        embedding_client: Optional[AbstractEmbeddingClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self.instance_lock = instance_lock.acquire()
        self.settings = settings
        self.cluster_store = cluster_store
        self.history_repository = history_repository
        self.researcher = researcher
        self.planner = planner
        self.llm_client = llm_client
        self.embedding_client = embedding_client
        self.rng = rng or random.Random()

        # State written by a previous run before the lock was taken
        self.cluster_store.reload()
        log.info(f"{settings.app_name} ready ({len(self.cluster_store)} clusters)")

    # =========================================================================
    # PIPELINE OPERATIONS
    # =========================================================================

    async def select_topic(self) -> SelectionResult:
        """Choose the next topic, honoring the diversity window and manual override."""
        diversity = self.settings.diversity
        recent = self.history_repository.load_recent(diversity.lookback_days, diversity.lookback_count)
        sources = build_topic_sources(self.settings.topic, self.llm_client, recent, self.settings.llm)
        selector = TopicSelector(
            sources,
            recent,
            diversity,
            manual_topic=self.settings.topic.manual_topic,
            rng=self.rng,
        )
        return await selector.select_topic()

    async def classify_topic(self, topic: TrendingTopic) -> Outcome[ClusterClassification]:
        """Place the topic in the cluster graph (embeddings, keyword overlap fallback)."""
        outcome = await self.cluster_store.classify_topic_with_embeddings(
            topic.title, topic.related_queries
        )
        classification = outcome.unwrap()
        log.info(
            f"Topic '{topic.title}' -> cluster {classification.cluster_id} "
            f"({classification.content_type.value}, new={classification.is_new})"
        )
        return outcome

    async def build_keyword_plan(self, topic: TrendingTopic) -> Outcome[KeywordPlan]:
        return await self.researcher.build_keyword_plan(topic.title, topic.related_queries)

    def record_published_article(
        self,
        classification: ClusterClassification,
        topic: TrendingTopic,
        article: ClusterArticle,
    ) -> bool:
        """
        Register a published article in its cluster and in the publish history.

        Takes the classification of the same run, so classification always
        happens before the append.

        Args:
            classification: Result of classify_topic for this run's topic
            topic: The selected topic
            article: Published article; its content type is taken from the classification

        Replaying the same slug changes nothing: neither the cluster nor the
        publish history gets a second entry.

        Returns:
            True if the article was added to the cluster
        """
        article = article.model_copy(update={"content_type": classification.content_type})
        added = self.cluster_store.add_article_to_cluster(classification.cluster_id, article)

        if self.history_repository.has_slug(article.slug):
            log.info(f"Publish of '{article.slug}' already recorded, history unchanged")
            return added

        self.history_repository.record_publish(
            PublishRecord(
                topic=topic.title,
                title=article.title,
                slug=article.slug,
                keywords=list(article.keywords),
                status=PublishStatus.PUBLISHED,
                post_url=article.url or None,
                cluster_id=classification.cluster_id,
                completed_at=utc_now(),
            )
        )
        return added

    async def plan_niche(self, niche: str) -> Outcome[KeywordPlanReport]:
        return await self.planner.plan_niche(niche)

    def get_token_usage(self) -> TokenUsage:
        return self.llm_client.get_token_usage()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def close(self) -> None:
        """Close collaborator clients and release the instance lock."""
        try:
            await self.llm_client.close()
            if self.embedding_client is not None:
                await self.embedding_client.close()
        finally:
            self.instance_lock.release()
            log.info("Engine closed")

    async def __aenter__(self) -> "KeywordIntelligenceEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["KeywordIntelligenceEngine"]
