"""
Semantic Analyzer
=================

Embedding-backed comparison layer used by the cluster store:
- Embedding generation through the embedding collaborator
- Cosine similarity between vectors
- Best-match search over candidate vectors

Embeddings are computed per comparison and not cached.
"""

from typing import Optional, Union

import numpy as np
from loguru import logger

from infrastructure.embedding_client import AbstractEmbeddingClient
from intelligence.similarity import cosine_similarity


class SemanticAnalyzer:
    """
    Thin semantic layer over an embedding client.

    Keeps vector math out of the stores so both classification paths
    read the same way.
    """

    def __init__(self, embedding_client: AbstractEmbeddingClient):
        """
        Initialize semantic analyzer with an embedding collaborator.

        Args:
            embedding_client: Client producing dense vectors
        """
        self.embedding_client = embedding_client
        logger.info(f"Semantic analyzer initialized: {embedding_client.model_name}")

    # =========================================================================
    # EMBEDDING GENERATION
    # =========================================================================

    async def embed(self, text: Union[str, list[str]]) -> Union[np.ndarray, list[np.ndarray]]:
        """
        Generate embeddings for one text or a batch.

        Args:
            text: Single text or list of texts

        Returns:
            Embedding vector(s) as numpy array(s)
        """
        if isinstance(text, str):
            return await self.embedding_client.embed(text)
        return await self.embedding_client.embed_batch(text)

    # =========================================================================
    # SIMILARITY OPERATIONS
    # =========================================================================

    def compute_similarity(self, vec1: np.ndarray, vec2: np.ndarray) -> float:
        """Cosine similarity between two vectors (-1 to 1)."""
        return cosine_similarity(vec1, vec2)

    def find_best_match(
        self,
        query_vector: np.ndarray,
        candidate_vectors: list[np.ndarray],
    ) -> Optional[tuple[int, float]]:
        """
        Find the candidate most similar to the query.

        Ties keep the earliest candidate.

        Returns:
            (index, similarity) of the best candidate, or None without candidates
        """
        best: Optional[tuple[int, float]] = None
        for idx, vector in enumerate(candidate_vectors):
            score = self.compute_similarity(query_vector, vector)
            if best is None or score > best[1]:
                best = (idx, score)
        return best


def get_semantic_analyzer(
    embedding_client: Optional[AbstractEmbeddingClient],
) -> Optional[SemanticAnalyzer]:
    """Semantic analyzer over the embedding client, or None when embeddings are unavailable."""
    if embedding_client is None:
        return None
    return SemanticAnalyzer(embedding_client)


__all__ = ["SemanticAnalyzer", "get_semantic_analyzer"]
