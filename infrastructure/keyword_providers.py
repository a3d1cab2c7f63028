"""
Keyword Suggestion Providers
============================
Capability interface for keyword candidate sources plus the public
autocomplete implementation.

Providers are registered as an explicit list (see default_providers); the
research engine skips any provider that reports itself unavailable.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from loguru import logger

from config.constants import AUTOCOMPLETE_MODIFIERS, GOOGLE_AUTOCOMPLETE_URL
from config.settings import ResearchSettings
from core.exceptions import KeywordAPIError
from core.models import KeywordCandidate


class KeywordDataProvider(ABC):
    """Source of raw keyword candidates for a seed phrase."""

    name: str

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider can be queried (credentials, quota)."""

    @abstractmethod
    async def get_keyword_suggestions(self, seed: str) -> list[KeywordCandidate]:
        """
        Suggestions for a seed phrase.

        Raises:
            KeywordAPIError: If the provider cannot answer at all
        """


class GoogleAutocompleteProvider(KeywordDataProvider):
    """
    Public search autocomplete endpoint, no key required.

    One query per modifier template ("", "how to ", "best ", ...), issued
    in small concurrent batches with a politeness delay between batches.
    """

    name = "google_autocomplete"

    def __init__(
        self,
        settings: Optional[ResearchSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize provider.

        Args:
            settings: Batch size, delay and timeout
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.settings = settings or ResearchSettings()
        self._transport = transport

    def is_available(self) -> bool:
        return True

    async def get_keyword_suggestions(self, seed: str) -> list[KeywordCandidate]:
        logger.info(f"Fetching autocomplete suggestions for: '{seed}'")
        queries = [f"{modifier}{seed}" for modifier in AUTOCOMPLETE_MODIFIERS]
        seed_key = seed.lower().strip()
        batch_size = self.settings.autocomplete_batch_size

        seen: set[str] = set()
        suggestions: list[KeywordCandidate] = []

        async with httpx.AsyncClient(
            timeout=self.settings.autocomplete_timeout_seconds,
            transport=self._transport,
        ) as client:
            for start in range(0, len(queries), batch_size):
                batch = queries[start : start + batch_size]
                results = await asyncio.gather(
                    *(self._fetch_suggestions(client, q) for q in batch),
                    return_exceptions=True,
                )

                for query, result in zip(batch, results):
                    if isinstance(result, KeywordAPIError):
                        logger.warning(f"Autocomplete request failed for '{query}': {result.message}")
                        continue
                    if isinstance(result, BaseException):
                        raise result
                    for phrase in result:
                        normalized = phrase.lower().strip()
                        if not normalized or normalized == seed_key or normalized in seen:
                            continue
                        seen.add(normalized)
                        suggestions.append(KeywordCandidate(keyword=normalized, source=self.name))

                if start + batch_size < len(queries):
                    await asyncio.sleep(self.settings.autocomplete_delay_seconds)

        logger.info(f"Found {len(suggestions)} unique suggestions for '{seed}'")
        return suggestions

    async def _fetch_suggestions(self, client: httpx.AsyncClient, query: str) -> list[str]:
        """
        Fetch suggestions for one query.

        Response format: [query, [suggestion1, suggestion2, ...]]
        """
        try:
            response = await client.get(GOOGLE_AUTOCOMPLETE_URL, params={"client": "firefox", "q": query})
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as e:
            raise KeywordAPIError(
                f"Autocomplete returned HTTP {e.response.status_code}",
                api_name=self.name,
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise KeywordAPIError(f"Autocomplete request error: {e}", api_name=self.name, cause=e) from e
        except ValueError as e:
            raise KeywordAPIError(
                "Autocomplete returned a non-JSON body", api_name=self.name, cause=e
            ) from e

        if isinstance(payload, list) and len(payload) > 1 and isinstance(payload[1], list):
            return [item for item in payload[1] if isinstance(item, str)]
        return []


def default_providers(settings: Optional[ResearchSettings] = None) -> list[KeywordDataProvider]:
    """Registered keyword providers, in query order."""
    return [GoogleAutocompleteProvider(settings)]


__all__ = ["KeywordDataProvider", "GoogleAutocompleteProvider", "default_providers"]
