"""
Similarity Utilities
====================
Pure functions shared by the cluster store, the diversity filter and the
topic sources: stopword-filtered token extraction, Jaccard set overlap
and cosine similarity over dense vectors.
"""

import re
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from config.constants import CLUSTER_STOPWORDS, DIVERSITY_STOPWORDS
from core.exceptions import ValidationError

_HTML_TAG = re.compile(r"<[^>]*>")
_NON_WORD = re.compile(r"[^\w\s]")
_NON_KEYWORD = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")

MIN_TOKEN_LENGTH = 3


def extract_cluster_tokens(text: str) -> list[str]:
    """
    Tokens used to place a topic in a cluster.

    Punctuation is dropped (not split on), duplicates are kept in order.
    """
    cleaned = _NON_WORD.sub("", text.lower())
    return [
        word
        for word in _WHITESPACE.split(cleaned)
        if len(word) >= MIN_TOKEN_LENGTH and word not in CLUSTER_STOPWORDS
    ]


def extract_keywords(text: str, limit: Optional[int] = None) -> list[str]:
    """
    Unique keywords of a title or snippet, in first-seen order.

    HTML is stripped and punctuation other than hyphens splits words.
    """
    cleaned = _NON_KEYWORD.sub(" ", _HTML_TAG.sub("", text).lower())
    seen: dict[str, None] = {}
    for word in _WHITESPACE.split(cleaned):
        if len(word) >= MIN_TOKEN_LENGTH and word not in DIVERSITY_STOPWORDS:
            seen.setdefault(word, None)
    keywords = list(seen)
    return keywords[:limit] if limit is not None else keywords


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B| over the distinct elements; 0.0 when both are empty."""
    set_a, set_b = set(a), set(b)
    union = len(set_a | set_b)
    if union == 0:
        return 0.0
    return len(set_a & set_b) / union


def cosine_similarity(
    vec1: Union[Sequence[float], np.ndarray], vec2: Union[Sequence[float], np.ndarray]
) -> float:
    """
    Normalized dot product in [-1, 1]; 0.0 if either vector has zero norm.

    Raises:
        ValidationError: On dimension mismatch
    """
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.shape != b.shape:
        raise ValidationError(f"Vector shape mismatch: {a.shape} vs {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def unique_preserving_order(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


__all__ = [
    "extract_cluster_tokens",
    "extract_keywords",
    "jaccard_similarity",
    "cosine_similarity",
    "unique_preserving_order",
]
