"""
Pipeline Topic Selector
=======================
Walks the configured topic sources in order and returns the first
candidate that passes the diversity filter.

States:
    MANUAL          operator override, no walk performed
    TRYING_SOURCE   fetching and filtering candidates of source i
    ACCEPTED        a candidate passed the diversity filter
    EXHAUSTED       every source failed; a random static topic is used

Diversity is a soft preference, availability a hard requirement: the
selector always returns a topic.
"""

import random
from typing import Optional, Sequence

from loguru import logger

from config.settings import DiversitySettings
from core.enums import SelectorState
from core.models import RecentArticle, RejectedTopic, SelectionResult, TrendingTopic
from intelligence.similarity import extract_keywords
from intelligence.topic_diversity import check_topic_similarity
from orchestration.topic_sources import TopicSource, fallback_topics


class TopicSelector:
    """State machine over an ordered list of topic sources."""

    def __init__(
        self,
        sources: Sequence[TopicSource],
        recent_history: Sequence[RecentArticle],
        diversity_settings: Optional[DiversitySettings] = None,
        manual_topic: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize selector.

        Args:
            sources: Topic sources in priority order
            recent_history: Articles inside the diversity lookback window
            diversity_settings: Similarity threshold and candidate cap
            manual_topic: Operator override, bypasses every source
            rng: Random generator for shuffling and the last-resort pick
        """
        self.sources = list(sources)
        self.recent_history = list(recent_history)
        self.settings = diversity_settings or DiversitySettings()
        self.manual_topic = manual_topic
        self.rng = rng or random.Random()
        self.state = SelectorState.TRYING_SOURCE

    def _transition(self, target: SelectorState) -> None:
        if not self.state.can_transition_to(target):
            raise RuntimeError(f"Illegal selector transition {self.state.value} -> {target.value}")
        self.state = target

    async def select_topic(self) -> SelectionResult:
        """
        Pick the topic for the next article.

        Returns:
            SelectionResult with the topic, its source, the final state and
            every candidate rejected by the diversity filter
        """
        if self.manual_topic:
            logger.info(f"Using manual topic: {self.manual_topic}")
            self.state = SelectorState.MANUAL
            queries = extract_keywords(self.manual_topic) or [self.manual_topic.lower()]
            return SelectionResult(
                topic=TrendingTopic(title=self.manual_topic, related_queries=queries),
                source="manual",
                state=self.state,
            )

        self.state = SelectorState.TRYING_SOURCE
        rejected: list[RejectedTopic] = []
        logger.info(f"Topic source priority: {' -> '.join(s.name for s in self.sources)}")

        for source in self.sources:
            self._transition(SelectorState.TRYING_SOURCE)
            try:
                candidates = await source.fetch_candidates()
            except Exception as e:
                logger.warning(f"Topic source '{source.name}' failed: {e}")
                continue

            candidates = candidates[: self.settings.max_candidates]
            self.rng.shuffle(candidates)

            for candidate in candidates:
                similarity = check_topic_similarity(
                    candidate.title,
                    candidate.related_queries,
                    self.recent_history,
                    self.settings.similarity_threshold,
                )
                if not similarity.is_too_similar:
                    self._transition(SelectorState.ACCEPTED)
                    logger.info(f"Selected {source.name} topic for article: {candidate.title}")
                    return SelectionResult(
                        topic=candidate, source=source.name, state=self.state, rejected=rejected
                    )
                rejected.append(
                    RejectedTopic(
                        title=candidate.title,
                        source=source.name,
                        similarity=similarity.highest_score,
                        most_similar_title=similarity.most_similar_title,
                    )
                )

            logger.info(f"All {source.name} candidates rejected by diversity filter")

        self._transition(SelectorState.EXHAUSTED)
        topic = self.rng.choice(fallback_topics())
        logger.warning(f"All configured sources failed, using fallback topic: {topic.title}")
        return SelectionResult(topic=topic, source="fallback", state=self.state, rejected=rejected)


__all__ = ["TopicSelector"]
