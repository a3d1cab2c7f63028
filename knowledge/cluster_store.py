"""
Topic Cluster Store: Persistent Pillar/Cluster Graph

Owns the topic cluster document and every mutation of it:
- Keyword-overlap (Jaccard) classification of incoming topics
- Embedding classification with a full fallback to keyword overlap
- Article registration for internal linking
- Wholesale atomic rewrite of the document after each mutation

The store assumes a single writer; the engine's instance lock provides it.

Design Pattern: Repository Pattern over a JSON document
"""

from pathlib import Path
from typing import Optional, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from config.settings import ClusterSettings
from core.enums import ContentType
from core.models import ClusterArticle, ClusterClassification, TopicCluster
from core.outcome import Outcome
from intelligence.semantic_analyzer import SemanticAnalyzer
from intelligence.similarity import (
    extract_cluster_tokens,
    jaccard_similarity,
    unique_preserving_order,
)
from knowledge.json_store import load_json_document, save_json_document


class TopicClusterStore:
    """
    In-memory cluster collection mirrored to one JSON document.

    Clusters are kept in storage order; ties during classification go to
    the earliest cluster. Clusters are never deleted.
    """

    def __init__(
        self,
        path: Path,
        settings: Optional[ClusterSettings] = None,
        semantic_analyzer: Optional[SemanticAnalyzer] = None,
    ):
        """
        Initialize store and load the persisted clusters.

        Args:
            path: Cluster document location
            settings: Classification thresholds and caps
            semantic_analyzer: Embedding comparison layer (optional)
        """
        self.path = Path(path)
        self.settings = settings or ClusterSettings()
        self.semantic_analyzer = semantic_analyzer
        self._clusters: list[TopicCluster] = self._load()
        logger.debug(f"TopicClusterStore initialized with {len(self._clusters)} clusters")

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> list[TopicCluster]:
        document = load_json_document(self.path, default=[])
        if not isinstance(document, list):
            logger.warning(f"Cluster document {self.path} is not a list, starting fresh")
            return []

        clusters: list[TopicCluster] = []
        for entry in document:
            try:
                clusters.append(TopicCluster.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed cluster entry in {self.path}: {e}")
        if clusters:
            logger.info(f"Loaded {len(clusters)} topic clusters")
        else:
            logger.info("No existing topic clusters found, starting fresh")
        return clusters

    def reload(self) -> None:
        """Replace the in-memory clusters with the persisted document."""
        self._clusters = self._load()

    def _save(self) -> None:
        """Rewrite the whole document; failures are logged, never raised."""
        try:
            save_json_document(self.path, [c.to_json_dict() for c in self._clusters])
        except OSError:
            logger.exception(f"Failed to save topic clusters to {self.path}")
            return
        logger.debug(f"Saved {len(self._clusters)} topic clusters")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_clusters(self) -> list[TopicCluster]:
        return list(self._clusters)

    def get_cluster(self, cluster_id: str) -> Optional[TopicCluster]:
        return next((c for c in self._clusters if c.id == cluster_id), None)

    def get_cluster_articles(self, cluster_id: str) -> list[ClusterArticle]:
        """Articles of a cluster, used for internal linking; empty if unknown."""
        cluster = self.get_cluster(cluster_id)
        return list(cluster.articles) if cluster else []

    def all_articles(self) -> list[ClusterArticle]:
        """Every article of every cluster, in storage order."""
        return [article for cluster in self._clusters for article in cluster.articles]

    def __len__(self) -> int:
        return len(self._clusters)

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    @staticmethod
    def _topic_tokens(topic: str, related_queries: Sequence[str]) -> list[str]:
        tokens = extract_cluster_tokens(topic)
        for query in related_queries:
            tokens.extend(extract_cluster_tokens(query))
        return tokens

    def classify_topic(self, topic: str, related_queries: Sequence[str]) -> ClusterClassification:
        """
        Place a topic in the best overlapping cluster or open a new one.

        A cluster matches only when its keyword overlap strictly exceeds the
        Jaccard threshold.

        Args:
            topic: Topic title
            related_queries: Related search queries

        Returns:
            ClusterClassification for the topic
        """
        tokens = self._topic_tokens(topic, related_queries)

        best: Optional[TopicCluster] = None
        best_score = 0.0
        for cluster in self._clusters:
            score = jaccard_similarity(tokens, cluster.keywords)
            if score > self.settings.jaccard_threshold and (best is None or score > best_score):
                best, best_score = cluster, score

        if best is None:
            return self._create_cluster(topic, tokens)

        logger.info(
            f"Topic matched to existing cluster: '{best.pillar_topic}' (score: {best_score:.2f})"
        )
        return self._join_cluster(best, tokens)

    async def classify_topic_with_embeddings(
        self, topic: str, related_queries: Sequence[str]
    ) -> Outcome[ClusterClassification]:
        """
        Classify by embedding similarity, falling back to keyword overlap.

        With no clusters yet, or no embedding collaborator configured, the
        keyword-overlap result is returned directly. Any collaborator error
        yields a degraded outcome carrying the keyword-overlap result.

        Args:
            topic: Topic title
            related_queries: Related search queries

        Returns:
            Outcome wrapping the classification
        """
        if not self._clusters or self.semantic_analyzer is None:
            return Outcome.ok(self.classify_topic(topic, related_queries))

        candidate_text = " ".join(
            [topic, *related_queries[: self.settings.embedding_query_count]]
        )
        cluster_texts = [
            " ".join([c.pillar_topic, *c.keywords[: self.settings.embedding_keyword_count]])
            for c in self._clusters
        ]

        try:
            vectors = await self.semantic_analyzer.embed([candidate_text, *cluster_texts])
            match = self.semantic_analyzer.find_best_match(vectors[0], list(vectors[1:]))
        except Exception as e:
            logger.warning(f"Embedding classification failed, using keyword overlap: {e}")
            return Outcome.degraded(self.classify_topic(topic, related_queries), e)

        tokens = self._topic_tokens(topic, related_queries)
        if match is None or match[1] <= self.settings.embedding_threshold:
            best_score = match[1] if match else 0.0
            logger.info(f"No cluster above embedding threshold (best: {best_score:.2f})")
            return Outcome.ok(self._create_cluster(topic, tokens))

        index, score = match
        cluster = self._clusters[index]
        logger.info(
            f"Topic matched to existing cluster by embedding: "
            f"'{cluster.pillar_topic}' (similarity: {score:.2f})"
        )
        return Outcome.ok(self._join_cluster(cluster, tokens))

    def _join_cluster(self, cluster: TopicCluster, tokens: list[str]) -> ClusterClassification:
        # Pillar until an article of type pillar has actually been recorded
        content_type = ContentType.CLUSTER if cluster.has_pillar else ContentType.PILLAR

        new_keywords = [t for t in unique_preserving_order(tokens) if t not in cluster.keywords]
        if new_keywords:
            cluster.keywords = [
                *cluster.keywords,
                *new_keywords[: self.settings.max_merge_keywords],
            ]
            cluster.touch()
            self._save()

        return ClusterClassification(cluster_id=cluster.id, content_type=content_type, is_new=False)

    def _create_cluster(self, topic: str, tokens: list[str]) -> ClusterClassification:
        cluster = TopicCluster(
            pillar_topic=topic,
            keywords=unique_preserving_order(tokens)[: self.settings.max_keywords],
        )
        self._clusters.append(cluster)
        self._save()
        logger.info(
            f"Created new topic cluster: '{topic}' with {len(cluster.keywords)} keywords"
        )
        return ClusterClassification(
            cluster_id=cluster.id, content_type=ContentType.PILLAR, is_new=True
        )

    # =========================================================================
    # MUTATION
    # =========================================================================

    def add_article_to_cluster(self, cluster_id: str, article: ClusterArticle) -> bool:
        """
        Record a published article in its cluster.

        Idempotent by slug. Article keywords are merged lowercased without
        the keyword cap.

        Args:
            cluster_id: Target cluster
            article: Published article

        Returns:
            True if the article was added, False if unknown cluster or duplicate slug
        """
        cluster = self.get_cluster(cluster_id)
        if cluster is None:
            logger.warning(f"Cluster {cluster_id} not found, cannot add article")
            return False

        if any(a.slug == article.slug for a in cluster.articles):
            logger.info(f"Article '{article.title}' already in cluster")
            return False

        merged = list(cluster.keywords)
        for keyword in article.keywords:
            lowered = keyword.lower()
            if lowered not in merged:
                merged.append(lowered)

        cluster.articles = [*cluster.articles, article]
        cluster.keywords = merged
        cluster.touch()
        self._save()

        logger.info(f"Added article '{article.title}' to cluster '{cluster.pillar_topic}'")
        return True


__all__ = ["TopicClusterStore"]
