"""
Topic Sources
=============
Candidate topic producers walked in order by the topic selector:
- rss: category news feeds plus operator-configured feeds
- openai: one topic suggested by the text-completion collaborator
- fallback: the static topic pool

A source may raise; the selector logs the error and moves on.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import feedparser
import httpx
from loguru import logger

from config.constants import FALLBACK_TOPICS, FEED_USER_AGENT, FEEDS_BY_CATEGORY, TOPIC_SYSTEM_PROMPT
from config.settings import LLMSettings, TopicSettings
from core.exceptions import LLMInvalidResponseError
from core.models import RecentArticle, TrendingTopic
from execution.prompts import topic_suggestion_prompt
from infrastructure.llm_client import AbstractLLMClient, parse_json_response
from intelligence.similarity import extract_keywords, unique_preserving_order
from intelligence.topic_diversity import get_recent_article_titles

_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = re.compile(r"^[\s\-–—:]+|[\s\-–—:]+$")

# Keywords taken from each of title and summary before merging
_KEYWORDS_PER_TEXT = 10


def clean_title(title: str) -> str:
    """Strip HTML, normalize whitespace, trim leading and trailing dashes and colons."""
    cleaned = _WHITESPACE.sub(" ", _HTML_TAG.sub("", title))
    return _EDGE_PUNCTUATION.sub("", cleaned).strip()


def fallback_topics() -> list[TrendingTopic]:
    """The static topic pool."""
    return [
        TrendingTopic(title=title, related_queries=list(queries))
        for title, queries in FALLBACK_TOPICS
    ]


class TopicSource(ABC):
    """Producer of candidate topics."""

    name: str

    @abstractmethod
    async def fetch_candidates(self) -> list[TrendingTopic]:
        """Candidate topics in source order."""


# =============================================================================
# RSS FEEDS
# =============================================================================


class FeedTopicSource(TopicSource):
    """
    News feed headlines as topics.

    Feeds are fetched concurrently; a failed feed contributes nothing.
    """

    name = "rss"

    def __init__(
        self,
        settings: Optional[TopicSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or TopicSettings()
        self._transport = transport

    @property
    def category(self) -> str:
        category = self.settings.category
        return category if category in FEEDS_BY_CATEGORY else "general"

    def feed_urls(self) -> list[str]:
        """Category feeds, the first general feed for specific categories, then custom feeds."""
        category = self.category
        urls = list(FEEDS_BY_CATEGORY[category])
        if category != "general":
            urls.extend(FEEDS_BY_CATEGORY["general"][:1])
        if self.settings.custom_feeds:
            logger.info(f"Added {len(self.settings.custom_feeds)} custom feeds to pool")
            urls.extend(self.settings.custom_feeds)
        return urls

    async def fetch_candidates(self) -> list[TrendingTopic]:
        urls = self.feed_urls()
        logger.info(f"Fetching RSS topics from {len(urls)} feeds (category: {self.category})")

        async with httpx.AsyncClient(
            timeout=self.settings.feed_timeout_seconds,
            headers={"User-Agent": FEED_USER_AGENT},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            feeds = await asyncio.gather(*(self._fetch_entries(client, url) for url in urls))

        topics: list[TrendingTopic] = []
        seen_titles: set[str] = set()
        for entries in feeds:
            for entry in entries[: self.settings.feed_items_per_feed]:
                topic = self._entry_to_topic(entry, seen_titles)
                if topic is not None:
                    topics.append(topic)

        logger.info(f"Found {len(topics)} topics from RSS feeds")
        return topics

    async def _fetch_entries(self, client: httpx.AsyncClient, url: str) -> list[Any]:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"Failed to fetch RSS feed {url}: {e}")
            return []

        parsed = feedparser.parse(response.content)
        if parsed.bozo and not parsed.entries:
            logger.debug(f"Unparseable RSS feed {url}: {parsed.get('bozo_exception')}")
        return list(parsed.entries)

    def _entry_to_topic(self, entry: Any, seen_titles: set[str]) -> Optional[TrendingTopic]:
        title = clean_title(entry.get("title", "") or "")
        key = title.lower()
        if len(title) < self.settings.min_title_length or key in seen_titles:
            return None
        seen_titles.add(key)

        summary = entry.get("summary") or entry.get("description") or ""
        related = unique_preserving_order(
            [
                *extract_keywords(title, limit=_KEYWORDS_PER_TEXT),
                *extract_keywords(summary, limit=_KEYWORDS_PER_TEXT),
            ]
        )[: self.settings.max_related_queries]
        return TrendingTopic(title=title, related_queries=related, category=self.category)


# =============================================================================
# LLM SUGGESTION
# =============================================================================


class LLMTopicSource(TopicSource):
    """One topic proposed by the text-completion collaborator, steered away from recent titles."""

    name = "openai"

    def __init__(
        self,
        llm_client: AbstractLLMClient,
        recent_history: Sequence[RecentArticle] = (),
        settings: Optional[TopicSettings] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self.llm_client = llm_client
        self.recent_history = list(recent_history)
        self.settings = settings or TopicSettings()
        self.llm_settings = llm_settings or LLMSettings()

    async def fetch_candidates(self) -> list[TrendingTopic]:
        logger.info("Generating topic with the LLM")
        category = self.settings.category if self.settings.category != "all" else None
        response = await self.llm_client.complete(
            topic_suggestion_prompt(category, get_recent_article_titles(self.recent_history)),
            system_prompt=TOPIC_SYSTEM_PROMPT,
            temperature=self.llm_settings.topic_temperature,
            max_tokens=self.llm_settings.topic_max_tokens,
        )

        expected_format = '{"title": ..., "relatedQueries": [...]}'
        payload = parse_json_response(response.content, expected_format)
        title = payload.get("title") if isinstance(payload, dict) else None
        if not isinstance(title, str) or not title.strip():
            raise LLMInvalidResponseError(
                "Topic suggestion has no title",
                response_text=response.content,
                expected_format=expected_format,
            )

        queries = payload.get("relatedQueries")
        topic = TrendingTopic(
            title=title.strip(),
            related_queries=[q for q in queries if isinstance(q, str)] if isinstance(queries, list) else [],
            category=category,
        )
        logger.info(f"Generated LLM topic: {topic.title}")
        return [topic]


# =============================================================================
# STATIC POOL
# =============================================================================


class StaticFallbackSource(TopicSource):
    """The static topic pool as a regular source."""

    name = "fallback"

    async def fetch_candidates(self) -> list[TrendingTopic]:
        return fallback_topics()


def build_topic_sources(
    settings: TopicSettings,
    llm_client: Optional[AbstractLLMClient],
    recent_history: Sequence[RecentArticle],
    llm_settings: Optional[LLMSettings] = None,
) -> list[TopicSource]:
    """
    Topic sources in the configured order.

    The LLM source is left out when no text-completion client is configured.
    """
    sources: list[TopicSource] = []
    for name in settings.sources:
        if name == "rss":
            sources.append(FeedTopicSource(settings))
        elif name == "openai":
            if llm_client is None:
                logger.warning("LLM topic source configured without an LLM client, skipping")
                continue
            sources.append(LLMTopicSource(llm_client, recent_history, settings, llm_settings))
        elif name == "fallback":
            sources.append(StaticFallbackSource())
    return sources


__all__ = [
    "TopicSource",
    "FeedTopicSource",
    "LLMTopicSource",
    "StaticFallbackSource",
    "build_topic_sources",
    "clean_title",
    "fallback_topics",
]
