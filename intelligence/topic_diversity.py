"""
Topic Diversity Filter
======================
Rejects candidate topics that overlap too much with recently published
articles, so near-duplicate topics are not selected close together.
"""

from typing import Sequence

from loguru import logger

from core.models import RecentArticle, SimilarityResult
from intelligence.similarity import extract_keywords, jaccard_similarity


def _candidate_bag(title: str, queries: Sequence[str]) -> list[str]:
    return [*extract_keywords(title), *(q.lower() for q in queries)]


def check_topic_similarity(
    candidate_title: str,
    candidate_queries: Sequence[str],
    recent_history: Sequence[RecentArticle],
    threshold: float,
) -> SimilarityResult:
    """
    Compare a candidate against recent history by keyword overlap.

    The candidate bag is the title's keywords plus its lowercased related
    queries; each article's bag is its title keywords plus its stored
    keywords. The highest Jaccard score decides.

    Args:
        candidate_title: Proposed topic title
        candidate_queries: Related queries of the proposed topic
        recent_history: Articles inside the lookback window
        threshold: Scores at or above this mark the candidate as too similar

    Returns:
        SimilarityResult with the highest score and the closest title
    """
    if not recent_history:
        return SimilarityResult(is_too_similar=False, highest_score=0.0, most_similar_title="")

    candidate_words = _candidate_bag(candidate_title, candidate_queries)

    highest_score = 0.0
    most_similar_title = ""
    for article in recent_history:
        article_words = _candidate_bag(article.title, article.keywords)
        score = jaccard_similarity(candidate_words, article_words)
        if score > highest_score:
            highest_score = score
            most_similar_title = article.title

    result = SimilarityResult(
        is_too_similar=highest_score >= threshold,
        highest_score=highest_score,
        most_similar_title=most_similar_title,
    )
    if result.is_too_similar:
        logger.info(
            f"Topic rejected (similarity: {highest_score:.2f} >= {threshold}): "
            f"'{candidate_title}' too similar to '{most_similar_title}'"
        )
    return result


def get_recent_article_titles(history: Sequence[RecentArticle]) -> str:
    """Bulleted list of recent titles for prompt context; empty without history."""
    return "\n".join(f'- "{article.title}"' for article in history)


__all__ = ["check_topic_similarity", "get_recent_article_titles"]
