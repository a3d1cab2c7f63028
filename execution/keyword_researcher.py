"""
Keyword Research Engine
=======================

Aggregates keyword candidates from the registered providers, delegates
metric estimation and intent classification to the text-completion
collaborator, and assembles a ranked KeywordPlan.

Pipeline (build_keyword_plan):
1. Research: provider suggestions, deduplicated and capped, then metrics
2. Cannibalization: overlap with published content (fail-open)
3. Intent: search intent per keyword (defaults to informational)
4. Scoring: pure, local prioritization into primary and secondary keywords
5. Long-tails: autocomplete phrases plus collaborator suggestions

Only step 1 can fail the plan; every other step degrades to a documented
default.
"""

import asyncio
from collections import Counter
from typing import Optional, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from config.constants import KEYWORD_SYSTEM_PROMPT, PLAN_TREND_SCORES, PLAN_WEIGHTS, VOLUME_SCORES
from config.settings import LLMSettings, ResearchSettings
from core.enums import SearchIntent
from core.exceptions import NoKeywordsFoundError
from core.models import CannibalizationResult, KeywordCandidate, KeywordMetrics, KeywordPlan, TokenUsage
from core.outcome import Outcome
from execution.cannibalization import CannibalizationDetector
from execution.prompts import (
    intent_classification_prompt,
    keyword_metrics_prompt,
    long_tail_expansion_prompt,
    niche_expansion_prompt,
)
from infrastructure.keyword_providers import KeywordDataProvider
from infrastructure.llm_client import AbstractLLMClient, request_json_list
from intelligence.similarity import unique_preserving_order

# =========================================================================
# SCORING (pure functions)
# =========================================================================


def plan_score(candidate: KeywordMetrics, is_cannibalized: bool) -> float:
    """
    Balanced quality score of one candidate.

    score = volume*0.30 + (100 - difficulty)*0.25 + 70*0.20
            + trend*0.15 + (0 if cannibalized else 100)*0.10
    """
    return (
        VOLUME_SCORES[candidate.estimated_volume] * PLAN_WEIGHTS.VOLUME
        + (100 - candidate.estimated_difficulty) * PLAN_WEIGHTS.DIFFICULTY
        + PLAN_WEIGHTS.RELEVANCE_BASELINE * PLAN_WEIGHTS.RELEVANCE
        + PLAN_TREND_SCORES[candidate.trend] * PLAN_WEIGHTS.TREND
        + (0 if is_cannibalized else 100) * PLAN_WEIGHTS.CANNIBALIZATION
    )


def cannibalized_keywords(cannibalization: Sequence[CannibalizationResult]) -> set[str]:
    """Lowercased keywords flagged as cannibalized."""
    return {r.keyword.lower() for r in cannibalization if r.is_cannibalized}


def dominant_intent(keywords: Sequence[KeywordMetrics]) -> SearchIntent:
    """Majority intent; ties go to the intent tallied first."""
    counts = Counter(k.intent for k in keywords)
    best, best_count = SearchIntent.INFORMATIONAL, 0
    for intent, count in counts.items():
        if count > best_count:
            best, best_count = intent, count
    return best


def score_and_prioritize(
    candidates: Sequence[KeywordMetrics],
    cannibalization: Sequence[CannibalizationResult],
    max_secondary: int = 5,
) -> KeywordPlan:
    """
    Rank candidates into a keyword plan.

    The primary keyword is the best non-cannibalized candidate, or the
    overall best if every candidate is cannibalized. Secondary keywords are
    the next best non-cannibalized candidates. Deterministic: equal scores
    keep input order.

    Args:
        candidates: Keywords with metrics and intent
        cannibalization: Overlap results (matched case-insensitively)
        max_secondary: Number of secondary keywords

    Returns:
        KeywordPlan without long-tails

    Raises:
        NoKeywordsFoundError: If there are no candidates
    """
    if not candidates:
        raise NoKeywordsFoundError("Cannot build a keyword plan without candidates")

    flagged = cannibalized_keywords(cannibalization)
    scored = [
        (candidate, plan_score(candidate, candidate.keyword.lower() in flagged))
        for candidate in candidates
    ]
    scored.sort(key=lambda item: item[1], reverse=True)

    clean = [item for item in scored if item[0].keyword.lower() not in flagged]
    primary, primary_score = clean[0] if clean else scored[0]
    secondary = [c for c, _ in clean if c is not primary][:max_secondary]

    plan = KeywordPlan(
        primary=primary,
        secondary=secondary,
        intent_profile=dominant_intent([primary, *secondary]),
        cannibalization_report=list(cannibalization),
        score=primary_score,
    )
    logger.info(
        f"Keyword plan created | primary='{primary.keyword}' | secondary={len(secondary)} | "
        f"score={primary_score:.1f} | intent={plan.intent_profile.value}"
    )
    return plan


# =========================================================================
# KEYWORD RESEARCH ENGINE
# =========================================================================


class KeywordResearcher:
    """
    Keyword research engine.

    Architecture:
    - Functional core: scoring and prioritization are pure functions
    - Imperative shell: provider and collaborator I/O
    - Explicit recovery: every collaborator call returns an Outcome
    """

    def __init__(
        self,
        llm_client: AbstractLLMClient,
        providers: Sequence[KeywordDataProvider],
        cannibalization_detector: CannibalizationDetector,
        settings: Optional[ResearchSettings] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        """
        Initialize keyword researcher.

        Args:
            llm_client: Text-completion collaborator
            providers: Registered keyword suggestion providers, in query order
            cannibalization_detector: Overlap check against published content
            settings: Research caps
            llm_settings: Temperatures and token limits
        """
        self.llm_client = llm_client
        self.providers = list(providers)
        self.cannibalization_detector = cannibalization_detector
        self.settings = settings or ResearchSettings()
        self.llm_settings = llm_settings or LLMSettings()

        logger.info(f"Keyword researcher initialized with {len(self.providers)} providers")

    async def _request_list(self, prompt: str, field_name: str, temperature: float) -> list:
        return await request_json_list(
            self.llm_client,
            prompt,
            field_name,
            system_prompt=KEYWORD_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=self.llm_settings.max_tokens,
        )

    # =====================================================================
    # CANDIDATE GATHERING
    # =====================================================================

    async def _provider_suggestions(
        self, provider: KeywordDataProvider, seeds: Sequence[str]
    ) -> list[KeywordCandidate]:
        """One provider's suggestions, querying its seeds one after another."""
        suggestions: list[KeywordCandidate] = []
        for seed in seeds:
            try:
                suggestions.extend(await provider.get_keyword_suggestions(seed))
            except Exception as e:
                logger.warning(f"Provider '{provider.name}' failed for seed '{seed}': {e}")
        return suggestions

    async def _gather_suggestions(self, seeds: Sequence[str]) -> list[KeywordCandidate]:
        """Query the available providers concurrently; results keep provider then seed order."""
        available: list[KeywordDataProvider] = []
        for provider in self.providers:
            if not provider.is_available():
                logger.info(f"Provider '{provider.name}' not available, skipping")
                continue
            available.append(provider)

        results = await asyncio.gather(
            *(self._provider_suggestions(provider, seeds) for provider in available)
        )
        return [candidate for batch in results for candidate in batch]

    @staticmethod
    def _deduplicate(candidates: Sequence[KeywordCandidate]) -> list[KeywordCandidate]:
        """Case-insensitive dedupe keeping the first-seen source."""
        unique: dict[str, KeywordCandidate] = {}
        for candidate in candidates:
            unique.setdefault(candidate.dedupe_key, candidate)
        return list(unique.values())

    # =====================================================================
    # PUBLIC API
    # =====================================================================

    async def research_keywords(
        self, topic: str, related_queries: Sequence[str]
    ) -> Outcome[list[KeywordMetrics]]:
        """
        Gather candidates and estimate their metrics.

        Seeds are the topic plus the first few related queries. The candidate
        pool is deduplicated and hard-capped before the metrics call.

        Args:
            topic: Topic title
            related_queries: Related search queries

        Returns:
            Outcome with metrics, or failure if the metrics call failed
        """
        logger.info(f"Researching keywords for: '{topic}'")

        seeds = [topic, *related_queries[: self.settings.max_related_seeds]]
        unique = self._deduplicate(await self._gather_suggestions(seeds))
        logger.info(f"Collected {len(unique)} unique keyword suggestions")

        candidates = unique[: self.settings.max_candidates]
        if not candidates:
            logger.warning(f"No provider suggestions for '{topic}', estimating the topic alone")
            candidates = [KeywordCandidate(keyword=topic, source="topic")]
        sources = {c.dedupe_key: c.source for c in candidates}

        try:
            entries = await self._request_list(
                keyword_metrics_prompt([c.keyword for c in candidates], topic),
                "metrics",
                self.llm_settings.temperature,
            )
        except Exception as e:
            logger.error(f"Keyword metrics estimation failed for '{topic}': {e}")
            return Outcome.failure(e)

        metrics: list[KeywordMetrics] = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("keyword"), str):
                logger.warning(f"Skipping malformed metrics entry: {entry!r}")
                continue
            keyword = entry["keyword"]
            try:
                metrics.append(
                    KeywordMetrics(
                        keyword=keyword,
                        source=sources.get(keyword.strip().lower(), "gpt"),
                        estimated_volume=entry.get("estimatedVolume"),
                        estimated_difficulty=entry.get("estimatedDifficulty"),
                        trend=entry.get("trend"),
                    )
                )
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid metrics entry for {keyword!r}: {e}")

        if not metrics:
            return Outcome.failure(
                NoKeywordsFoundError(f"No usable keyword metrics for '{topic}'", topic=topic)
            )

        logger.info(f"Estimated metrics for {len(metrics)} keywords")
        return Outcome.ok(metrics)

    async def classify_intent(
        self, keywords: Sequence[KeywordMetrics]
    ) -> Outcome[list[KeywordMetrics]]:
        """
        Attach a search intent to every keyword.

        Unknown or missing intents become informational. On collaborator
        failure the input is returned unchanged as a degraded outcome.
        """
        if not keywords:
            return Outcome.ok([])

        logger.info(f"Classifying search intent for {len(keywords)} keywords")
        try:
            entries = await self._request_list(
                intent_classification_prompt([k.keyword for k in keywords]),
                "classifications",
                self.llm_settings.temperature,
            )
        except Exception as e:
            logger.warning(f"Intent classification failed, defaulting to informational: {e}")
            return Outcome.degraded(list(keywords), e)

        intents: dict[str, SearchIntent] = {}
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("keyword"), str):
                raw = entry.get("intent")
                intent = SearchIntent.parse(raw)
                if not isinstance(raw, str) or intent.value != raw.strip().lower():
                    logger.warning(f"Unrecognized intent {raw!r} for '{entry['keyword']}', using informational")
                intents.setdefault(entry["keyword"].strip().lower(), intent)

        return Outcome.ok(
            [k.with_intent(intents.get(k.dedupe_key, SearchIntent.INFORMATIONAL)) for k in keywords]
        )

    async def expand_long_tails(self, primary_keyword: str) -> Outcome[list[str]]:
        """
        Long-tail variations of the primary keyword.

        Autocomplete phrases of at least four words are combined with
        collaborator suggestions. Long-tails are an enhancement: a failed
        collaborator call degrades to the autocomplete phrases alone.
        """
        logger.info(f"Expanding long-tail keywords for: '{primary_keyword}'")

        autocomplete: list[str] = []
        for provider in self.providers:
            if not provider.is_available():
                continue
            try:
                suggestions = await provider.get_keyword_suggestions(primary_keyword)
            except Exception as e:
                logger.warning(f"Long-tail expansion from '{provider.name}' failed: {e}")
                continue
            autocomplete.extend(
                s.keyword
                for s in suggestions
                if len(s.keyword.split()) >= self.settings.long_tail_min_words
            )

        try:
            entries = await self._request_list(
                long_tail_expansion_prompt(primary_keyword, autocomplete),
                "longTails",
                self.llm_settings.creative_temperature,
            )
        except Exception as e:
            logger.warning(f"Long-tail expansion failed, keeping autocomplete phrases: {e}")
            return Outcome.degraded(unique_preserving_order(autocomplete), e)

        generated = [t.strip() for t in entries if isinstance(t, str) and t.strip()]
        long_tails = unique_preserving_order([*autocomplete, *generated])
        logger.info(f"Generated {len(long_tails)} long-tail variations")
        return Outcome.ok(long_tails)

    async def expand_niche_to_seeds(self, niche: str) -> Outcome[list[str]]:
        """Break a broad niche into at most max_niche_seeds seed topics."""
        logger.info(f"Expanding niche to seed topics: '{niche}'")
        try:
            entries = await self._request_list(
                niche_expansion_prompt(niche, self.settings.max_niche_seeds),
                "seeds",
                self.llm_settings.creative_temperature,
            )
        except Exception as e:
            logger.error(f"Niche expansion failed for '{niche}': {e}")
            return Outcome.failure(e)

        seeds = [s.strip() for s in entries if isinstance(s, str) and s.strip()]
        seeds = seeds[: self.settings.max_niche_seeds]
        logger.info(f"Generated {len(seeds)} seed topics from niche")
        return Outcome.ok(seeds)

    def score_and_prioritize(
        self,
        candidates: Sequence[KeywordMetrics],
        cannibalization: Sequence[CannibalizationResult],
    ) -> KeywordPlan:
        return score_and_prioritize(candidates, cannibalization, self.settings.max_secondary)

    async def build_keyword_plan(
        self, topic: str, related_queries: Sequence[str]
    ) -> Outcome[KeywordPlan]:
        """
        Full keyword planning pipeline.

        Args:
            topic: Topic title
            related_queries: Related search queries

        Returns:
            Outcome with the plan; failure only if research failed, degraded
            if any later step fell back to its default
        """
        logger.info(f"Building keyword plan for: '{topic}'")

        research = await self.research_keywords(topic, related_queries)
        if research.is_failure():
            return Outcome.failure(research.error)
        candidates = research.unwrap()

        cannibalization = await self.cannibalization_detector.check_cannibalization(candidates)
        classified = await self.classify_intent(candidates)

        plan = self.score_and_prioritize(classified.unwrap(), cannibalization.unwrap())

        long_tails = await self.expand_long_tails(plan.primary.keyword)
        plan = plan.with_long_tails(long_tails.unwrap())

        logger.info(
            f"Keyword plan complete | primary='{plan.primary.keyword}' | "
            f"secondary={len(plan.secondary)} | long_tails={len(plan.long_tails)} | "
            f"score={plan.score:.1f}"
        )

        degraded = [o.error for o in (cannibalization, classified, long_tails) if o.is_degraded()]
        if degraded:
            return Outcome.degraded(plan, degraded[0])
        return Outcome.ok(plan)

    def get_token_usage(self) -> TokenUsage:
        """Cumulative token usage of the text-completion collaborator."""
        return self.llm_client.get_token_usage()


__all__ = [
    "KeywordResearcher",
    "score_and_prioritize",
    "plan_score",
    "dominant_intent",
    "cannibalized_keywords",
]
