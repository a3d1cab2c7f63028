"""
Keyword Planner: Easy-to-Rank Niche Report
==========================================

Standalone research flow for a whole niche. Scores keywords with a
formula biased toward low difficulty ("easy wins"), kept deliberately
separate from the balanced keyword-plan score.

Pipeline:
1. Expand the niche into seed topics
2. Research every seed (failed seeds are skipped)
3. Deduplicate across seeds
4. Classify intent, check cannibalization
5. Score, rank and persist the report
"""

import math
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from config.constants import (
    EASY_RANK_TOP_N,
    EASY_RANK_TREND_SCORES,
    EASY_RANK_WEIGHTS,
    VOLUME_SCORES,
)
from core.exceptions import NoKeywordsFoundError
from core.models import CannibalizationResult, KeywordMetrics, KeywordPlanReport, ScoredKeyword
from core.outcome import Outcome
from execution.cannibalization import CannibalizationDetector
from execution.keyword_researcher import KeywordResearcher
from knowledge.json_store import save_json_document


def easy_to_rank_score(metrics: KeywordMetrics, is_cannibalized: bool) -> float:
    """
    Easy-to-rank score rounded to one decimal.

    easy = (100 - difficulty)*0.40 + volume*0.20 + trend*0.20
           + (0 if cannibalized else 100)*0.15 + intent_bonus*0.05
    """
    intent_bonus = (
        EASY_RANK_WEIGHTS.RESEARCH_INTENT_BONUS
        if metrics.intent.is_research_intent
        else EASY_RANK_WEIGHTS.OTHER_INTENT_BONUS
    )
    score = (
        (100 - metrics.estimated_difficulty) * EASY_RANK_WEIGHTS.DIFFICULTY
        + VOLUME_SCORES[metrics.estimated_volume] * EASY_RANK_WEIGHTS.VOLUME
        + EASY_RANK_TREND_SCORES[metrics.trend] * EASY_RANK_WEIGHTS.TREND
        + (0 if is_cannibalized else 100) * EASY_RANK_WEIGHTS.CANNIBALIZATION
        + intent_bonus * EASY_RANK_WEIGHTS.INTENT
    )
    # Half-up rounding
    return math.floor(score * 10 + 0.5) / 10


def score_for_easy_rank(
    candidates: Sequence[KeywordMetrics],
    cannibalization: Sequence[CannibalizationResult],
) -> list[ScoredKeyword]:
    """Score, sort descending (stable) and assign 1-based ranks."""
    by_keyword = {r.keyword.lower(): r for r in cannibalization}

    scored: list[ScoredKeyword] = []
    for candidate in candidates:
        result = by_keyword.get(candidate.keyword.lower())
        is_cannibalized = result.is_cannibalized if result else False
        scored.append(
            ScoredKeyword(
                keyword=candidate.keyword,
                easy_to_rank_score=easy_to_rank_score(candidate, is_cannibalized),
                estimated_volume=candidate.estimated_volume,
                estimated_difficulty=candidate.estimated_difficulty,
                trend=candidate.trend,
                intent=candidate.intent,
                source=candidate.source,
                is_cannibalized=is_cannibalized,
                suggested_long_tails=list(result.suggested_long_tails) if result else [],
            )
        )

    scored.sort(key=lambda s: s.easy_to_rank_score, reverse=True)
    return [s.model_copy(update={"rank": i}) for i, s in enumerate(scored, start=1)]


class KeywordPlanner:
    """Niche-wide easy-to-rank keyword report."""

    def __init__(
        self,
        researcher: KeywordResearcher,
        cannibalization_detector: CannibalizationDetector,
        output_path: Path,
    ):
        self.researcher = researcher
        self.cannibalization_detector = cannibalization_detector
        self.output_path = Path(output_path)

    async def plan_niche(self, niche: str) -> Outcome[KeywordPlanReport]:
        """
        Research a niche and persist the easy-to-rank report.

        Args:
            niche: Broad subject, e.g. "home espresso"

        Returns:
            Outcome with the report. Failure if the niche could not be expanded
            or no seed produced keywords; degraded if a later step fell back.
        """
        logger.info(f"Step 1: Expanding niche '{niche}' to seed topics")
        expansion = await self.researcher.expand_niche_to_seeds(niche)
        if expansion.is_failure():
            return Outcome.failure(expansion.error)
        seeds = expansion.unwrap()

        logger.info(f"Step 2: Researching keywords for {len(seeds)} seeds")
        collected: list[KeywordMetrics] = []
        for seed in seeds:
            research = await self.researcher.research_keywords(seed, [])
            if research.is_failure():
                logger.warning(f"Skipping seed '{seed}': {research.error}")
                continue
            collected.extend(research.unwrap())

        unique: dict[str, KeywordMetrics] = {}
        for metrics in collected:
            unique.setdefault(metrics.dedupe_key, metrics)
        keywords = list(unique.values())
        logger.info(f"Collected {len(keywords)} unique keywords")
        if not keywords:
            return Outcome.failure(
                NoKeywordsFoundError(f"No keywords found for niche '{niche}'", topic=niche)
            )

        logger.info("Step 3: Classifying search intent")
        classified = await self.researcher.classify_intent(keywords)

        logger.info("Step 4: Checking cannibalization")
        cannibalization = await self.cannibalization_detector.check_cannibalization(
            classified.unwrap()
        )

        logger.info("Step 5: Scoring keywords for easy-to-rank opportunities")
        scored = score_for_easy_rank(classified.unwrap(), cannibalization.unwrap())

        report = KeywordPlanReport(
            niche=niche,
            seed_topics_expanded=seeds,
            top_keywords=scored[:EASY_RANK_TOP_N],
            all_keywords=scored,
            cannibalization_report=[r for r in cannibalization.unwrap() if r.is_cannibalized],
            token_usage=self.researcher.get_token_usage(),
        )
        self._save(report)

        degraded = [o.error for o in (classified, cannibalization) if o.is_degraded()]
        if degraded:
            return Outcome.degraded(report, degraded[0])
        return Outcome.ok(report)

    def _save(self, report: KeywordPlanReport) -> None:
        try:
            save_json_document(self.output_path, report.to_json_dict())
        except OSError:
            logger.exception(f"Failed to save keyword plan to {self.output_path}")
            return
        logger.info(f"Full plan saved to {self.output_path}")


__all__ = ["KeywordPlanner", "easy_to_rank_score", "score_for_easy_rank"]
