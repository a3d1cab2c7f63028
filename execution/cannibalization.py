"""
Cannibalization Detector
========================
Checks candidate keywords against the already-published corpus so the
keyword plan does not target terms an existing article competes for.

The corpus merges the publish history with every cluster-store article,
deduplicated by slug. Only the first batch of candidates is sent to the
text-completion collaborator, in a single call; later candidates are
treated as non-cannibalized without a check. Failures fail open.
"""

from typing import Optional, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from config.constants import KEYWORD_SYSTEM_PROMPT
from config.settings import LLMSettings, ResearchSettings
from core.models import CannibalizationResult, ExistingArticle, KeywordMetrics
from core.outcome import Outcome
from execution.prompts import cannibalization_prompt
from infrastructure.llm_client import AbstractLLMClient, request_json_list
from knowledge.cluster_store import TopicClusterStore
from knowledge.history_repository import PublishHistoryRepository


class CannibalizationDetector:
    """Keyword overlap check against published content."""

    def __init__(
        self,
        llm_client: AbstractLLMClient,
        history_repository: PublishHistoryRepository,
        cluster_store: TopicClusterStore,
        settings: Optional[ResearchSettings] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self.llm_client = llm_client
        self.history_repository = history_repository
        self.cluster_store = cluster_store
        self.settings = settings or ResearchSettings()
        self.llm_settings = llm_settings or LLMSettings()

    def load_corpus(self) -> list[ExistingArticle]:
        """
        Existing articles from history then clusters, first slug occurrence wins.

        Returns:
            Deduplicated corpus entries
        """
        corpus: dict[str, ExistingArticle] = {}
        for entry in self.history_repository.corpus_entries():
            corpus.setdefault(entry.slug, entry)

        for article in self.cluster_store.all_articles():
            if article.title and article.slug:
                corpus.setdefault(
                    article.slug,
                    ExistingArticle(title=article.title, slug=article.slug, keywords=article.keywords),
                )

        logger.info(f"Loaded {len(corpus)} existing articles for cannibalization check")
        return list(corpus.values())

    async def check_cannibalization(
        self, candidates: Sequence[KeywordMetrics]
    ) -> Outcome[list[CannibalizationResult]]:
        """
        Flag candidates that overlap existing articles.

        Args:
            candidates: Keywords in arrival order

        Returns:
            One result per candidate, in candidate order. Degraded (all
            checked candidates clear) if the collaborator call failed.
        """
        logger.info("Checking keyword cannibalization")

        corpus = self.load_corpus()
        if not corpus:
            logger.info("No existing articles found, skipping cannibalization check")
            return Outcome.ok([CannibalizationResult.clear(c.keyword) for c in candidates])

        batch_size = self.settings.cannibalization_batch_size
        checked, unchecked = list(candidates[:batch_size]), list(candidates[batch_size:])

        error: Optional[Exception] = None
        try:
            entries = await request_json_list(
                self.llm_client,
                cannibalization_prompt([c.keyword for c in checked], corpus),
                "results",
                system_prompt=KEYWORD_SYSTEM_PROMPT,
                temperature=self.llm_settings.temperature,
                max_tokens=self.llm_settings.max_tokens,
            )
            by_keyword = self._index_results(entries)
            results = [
                by_keyword.get(c.keyword.lower(), CannibalizationResult.clear(c.keyword))
                for c in checked
            ]
        except Exception as e:
            logger.warning(f"Batched cannibalization check failed, treating all as non-cannibalized: {e}")
            error = e
            results = [CannibalizationResult.clear(c.keyword) for c in checked]

        results.extend(CannibalizationResult.clear(c.keyword) for c in unchecked)

        cannibalized = sum(1 for r in results if r.is_cannibalized)
        logger.info(f"Cannibalization check complete: {cannibalized}/{len(results)} keywords overlap")

        if error is not None:
            return Outcome.degraded(results, error)
        return Outcome.ok(results)

    @staticmethod
    def _index_results(entries: list) -> dict[str, CannibalizationResult]:
        indexed: dict[str, CannibalizationResult] = {}
        for entry in entries:
            try:
                result = CannibalizationResult.model_validate(entry)
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed cannibalization result: {e}")
                continue
            indexed.setdefault(result.keyword.lower(), result)
        return indexed


__all__ = ["CannibalizationDetector"]
