"""
Unit tests for the topic sources.

Feeds are served by httpx.MockTransport; no network access.
"""

from datetime import datetime, timezone

import httpx
import pytest

from config.constants import FALLBACK_TOPICS, FEEDS_BY_CATEGORY
from config.settings import TopicSettings
from core.exceptions import LLMInvalidResponseError
from core.models import RecentArticle
from orchestration.topic_sources import (
    FeedTopicSource,
    LLMTopicSource,
    StaticFallbackSource,
    build_topic_sources,
    clean_title,
    fallback_topics,
)

CUSTOM_FEED = "https://example.com/feed.xml"


def _rss(*items: tuple[str, str]) -> str:
    body = "".join(
        f"<item><title>{title}</title><description>{summary}</description></item>"
        for title, summary in items
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>Feed</title>{body}</channel></rss>'


class TestCleanTitle:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("<b>Solar</b>   panels\nget cheaper", "Solar panels get cheaper"),
            ("- Breaking: markets rally -", "Breaking: markets rally"),
            (": Heat pumps explained :", "Heat pumps explained"),
            ("Mid-size cars - a guide", "Mid-size cars - a guide"),
        ],
    )
    def test_clean_title(self, raw, expected):
        assert clean_title(raw) == expected


class TestFeedTopicSource:
    def test_general_category_uses_general_feeds_only(self):
        source = FeedTopicSource(TopicSettings(category="all"))
        assert source.category == "general"
        assert source.feed_urls() == list(FEEDS_BY_CATEGORY["general"])

    def test_specific_category_adds_first_general_feed_and_custom_feeds(self):
        source = FeedTopicSource(TopicSettings(category="science", custom_feeds=[CUSTOM_FEED]))
        assert source.feed_urls() == [
            *FEEDS_BY_CATEGORY["science"],
            FEEDS_BY_CATEGORY["general"][0],
            CUSTOM_FEED,
        ]

    @pytest.mark.asyncio
    async def test_headlines_become_topics(self):
        def handler(request: httpx.Request) -> httpx.Response:
            host = request.url.host
            if host == "www.sciencedaily.com":
                return httpx.Response(
                    200,
                    text=_rss(
                        ("Solar Panel Efficiency Breakthrough", "&lt;p&gt;Researchers report record output&lt;/p&gt;"),
                        ("Too short", "ignored"),
                    ),
                )
            if host == "www.newscientist.com":
                return httpx.Response(404)
            if host == "news.google.com":
                raise httpx.ConnectError("unreachable", request=request)
            return httpx.Response(
                200,
                text=_rss(
                    ("solar panel efficiency breakthrough", "duplicate"),
                    ("Ocean Currents Slowing Down", "Climate scientists warn"),
                ),
            )

        source = FeedTopicSource(
            TopicSettings(category="science", custom_feeds=[CUSTOM_FEED]),
            transport=httpx.MockTransport(handler),
        )

        topics = await source.fetch_candidates()

        assert [t.title for t in topics] == ["Solar Panel Efficiency Breakthrough", "Ocean Currents Slowing Down"]
        assert topics[0].related_queries == [
            "solar", "panel", "efficiency", "breakthrough", "researchers", "report", "record", "output",
        ]
        assert topics[1].related_queries == ["ocean", "currents", "slowing", "down", "climate", "scientists", "warn"]
        assert all(t.category == "science" for t in topics)

    @pytest.mark.asyncio
    async def test_items_per_feed_and_related_queries_are_capped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                text=_rss(
                    ("Alpha bravo charlie delta echo", "foxtrot golf hotel india juliet"),
                    ("Second headline of the feed", "summary"),
                ),
            )

        source = FeedTopicSource(
            TopicSettings(category="all", feed_items_per_feed=1, max_related_queries=3),
            transport=httpx.MockTransport(handler),
        )

        topics = await source.fetch_candidates()

        assert [t.title for t in topics] == ["Alpha bravo charlie delta echo"]
        assert topics[0].related_queries == ["alpha", "bravo", "charlie"]

    @pytest.mark.asyncio
    async def test_unparseable_feeds_contribute_nothing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not a feed")

        source = FeedTopicSource(TopicSettings(), transport=httpx.MockTransport(handler))

        assert await source.fetch_candidates() == []


class TestLLMTopicSource:
    @pytest.mark.asyncio
    async def test_suggestion_steers_away_from_recent_titles(self, mock_llm_client, llm_response):
        mock_llm_client.complete.return_value = llm_response(
            {"title": " Quantum Batteries ", "relatedQueries": ["solid state battery", 3]}
        )
        recent = [
            RecentArticle(title="Home Espresso Guide", created_at=datetime(2026, 10, 1, tzinfo=timezone.utc))
        ]

        topics = await LLMTopicSource(mock_llm_client, recent, TopicSettings(category="technology")).fetch_candidates()

        assert [(t.title, t.related_queries, t.category) for t in topics] == [
            ("Quantum Batteries", ["solid state battery"], "technology")
        ]
        prompt = mock_llm_client.complete.call_args.args[0]
        assert '- "Home Espresso Guide"' in prompt
        assert "Focus on the technology category." in prompt

    @pytest.mark.asyncio
    async def test_missing_title_raises(self, mock_llm_client, llm_response):
        mock_llm_client.complete.return_value = llm_response({"relatedQueries": ["x"]})

        with pytest.raises(LLMInvalidResponseError):
            await LLMTopicSource(mock_llm_client).fetch_candidates()

    @pytest.mark.asyncio
    async def test_non_list_queries_are_ignored(self, mock_llm_client, llm_response):
        mock_llm_client.complete.return_value = llm_response({"title": "Topic", "relatedQueries": "x"})

        topics = await LLMTopicSource(mock_llm_client).fetch_candidates()

        assert topics[0].related_queries == []
        assert topics[0].category is None


class TestStaticPool:
    @pytest.mark.asyncio
    async def test_fallback_source_serves_static_pool(self):
        topics = await StaticFallbackSource().fetch_candidates()
        assert [t.title for t in topics] == [title for title, _ in FALLBACK_TOPICS]
        assert topics == fallback_topics()


class TestBuildTopicSources:
    def test_configured_order(self, mock_llm_client):
        sources = build_topic_sources(
            TopicSettings(sources=["fallback", "openai", "rss"]), mock_llm_client, []
        )
        assert [s.name for s in sources] == ["fallback", "openai", "rss"]

    def test_llm_source_needs_client(self):
        sources = build_topic_sources(TopicSettings(), None, [])
        assert [s.name for s in sources] == ["rss", "fallback"]
