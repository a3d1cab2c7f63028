"""
Embedding Client
================
Dense-vector collaborator used only for cosine comparisons. Vectors are
returned to the caller and never persisted.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import numpy as np
import openai
from loguru import logger
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.settings import EmbeddingSettings, LLMSettings
from core.exceptions import EmbeddingGenerationError, ValidationError


class AbstractEmbeddingClient(ABC):
    """Text-to-vector collaborator."""

    model_name: str

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Embed several texts, preserving order."""

    async def embed(self, text: str) -> np.ndarray:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def close(self) -> None:
        """Release HTTP resources."""


class OpenAIEmbeddingClient(AbstractEmbeddingClient):
    """OpenAI embeddings API client."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "text-embedding-3-small",
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self.model_name = model_name
        self.max_retries = max_retries
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(timeout),
            max_retries=0,
        )

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise ValidationError("Cannot embed empty text")

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((openai.RateLimitError, openai.APIConnectionError)),
            reraise=True,
        )
        async def _execute():
            return await self.client.embeddings.create(model=self.model_name, input=texts)

        try:
            response = await _execute()
        except openai.OpenAIError as e:
            raise EmbeddingGenerationError(
                f"Embedding request failed: {e}",
                text_preview=texts[0],
                model_name=self.model_name,
                cause=e,
            ) from e

        ordered = sorted(response.data, key=lambda item: item.index)
        if len(ordered) != len(texts):
            raise EmbeddingGenerationError(
                f"Expected {len(texts)} embeddings, received {len(ordered)}",
                model_name=self.model_name,
            )

        logger.debug(f"Generated {len(ordered)} embeddings with {self.model_name}")
        return [np.asarray(item.embedding, dtype=np.float32) for item in ordered]

    async def close(self) -> None:
        await self.client.close()


def get_embedding_client(
    embedding_settings: EmbeddingSettings, llm_settings: LLMSettings
) -> Optional[AbstractEmbeddingClient]:
    """
    Build the embedding client, or None when embeddings are unavailable.

    Embeddings go through the OpenAI API and reuse its key regardless of
    the selected completion provider.
    """
    if not embedding_settings.enabled:
        logger.info("Embeddings disabled, cluster classification will use keyword overlap")
        return None
    if llm_settings.openai_api_key is None:
        logger.info("No OpenAI key configured, cluster classification will use keyword overlap")
        return None

    return OpenAIEmbeddingClient(
        llm_settings.openai_api_key.get_secret_value(),
        embedding_settings.model,
        timeout=embedding_settings.timeout,
        max_retries=llm_settings.max_retries,
    )


__all__ = ["AbstractEmbeddingClient", "OpenAIEmbeddingClient", "get_embedding_client"]
