"""
Engine Integration Tests

Runs the keyword intelligence engine end to end against real stores in a
temporary data directory:
- Topic selection (manual override and diversity-filtered sources)
- Cluster classification and pillar/cluster progression
- Keyword planning with cannibalization against published content
- Publish recording and restart persistence
- Single-instance locking

Only the text-completion collaborator and keyword provider are doubles.
"""

import json
import random

import pytest
import pytest_asyncio
from dependency_injector import providers

from config.settings import (
    EmbeddingSettings,
    ResearchSettings,
    Settings,
    StorageSettings,
    TopicSettings,
)
from container import Container, ContainerManager
from core.enums import ContentType, SearchIntent, SelectorState
from core.exceptions import InstanceLockedError
from core.models import ClusterArticle, TrendingTopic

pytestmark = pytest.mark.integration

TOPIC = "Home Espresso Guide"
SUGGESTIONS = {TOPIC: ["espresso machine", "home espresso setup for beginners"]}

METRICS = {
    "metrics": [
        {"keyword": "espresso machine", "estimatedVolume": "high", "estimatedDifficulty": 70, "trend": "stable"},
        {
            "keyword": "home espresso setup for beginners",
            "estimatedVolume": "medium",
            "estimatedDifficulty": 20,
            "trend": "rising",
        },
    ]
}
CLASSIFICATIONS = {
    "classifications": [
        {"keyword": "espresso machine", "intent": "commercial"},
        {"keyword": "home espresso setup for beginners", "intent": "informational"},
    ]
}
LONG_TAILS = {"longTails": ["how to dial in espresso at home"]}

REMOTE_WORK = TrendingTopic(title="Remote Work Productivity Tips", related_queries=["remote work tools"])


def _settings(data_dir, topic: TopicSettings) -> Settings:
    return Settings(
        _env_file=None,
        storage=StorageSettings(data_dir=data_dir),
        embedding=EmbeddingSettings(enabled=False),
        research=ResearchSettings(autocomplete_delay_seconds=0.0),
        topic=topic,
    )


@pytest.fixture
def make_manager(mock_llm_client, stub_provider, tmp_path):
    def _make(topic: TopicSettings) -> ContainerManager:
        target = Container()
        target.config.override(providers.Object(_settings(tmp_path, topic)))
        target.llm_client.override(providers.Object(mock_llm_client))
        target.keyword_providers.override(providers.Object([stub_provider(SUGGESTIONS)]))
        return ContainerManager(target)

    return _make


@pytest_asyncio.fixture
async def manual_engine(make_manager):
    manager = make_manager(TopicSettings(manual_topic=TOPIC, sources=["fallback"]))
    engine = await manager.initialize()
    yield engine
    await manager.cleanup()


def _article(plan) -> ClusterArticle:
    return ClusterArticle(
        title="Home Espresso Setup for Beginners",
        slug="home-espresso-setup",
        url="https://blog.example.com/home-espresso-setup",
        keywords=[plan.primary.keyword, *(k.keyword for k in plan.secondary)],
    )


class TestPipelineRun:
    @pytest.mark.asyncio
    async def test_first_article_becomes_pillar(self, manual_engine, llm_router, tmp_path):
        calls = llm_router(metrics=METRICS, classifications=CLASSIFICATIONS, longTails=LONG_TAILS)

        selection = await manual_engine.select_topic()
        assert selection.state == SelectorState.MANUAL
        topic = selection.topic

        classification = (await manual_engine.classify_topic(topic)).unwrap()
        assert classification.is_new
        assert classification.content_type == ContentType.PILLAR

        outcome = await manual_engine.build_keyword_plan(topic)
        assert outcome.is_ok()
        plan = outcome.unwrap()
        assert plan.primary.keyword == "home espresso setup for beginners"
        assert [k.keyword for k in plan.secondary] == ["espresso machine"]
        assert plan.intent_profile == SearchIntent.INFORMATIONAL
        assert plan.long_tails == ["how to dial in espresso at home"]
        # Nothing published yet, so no cannibalization call
        assert calls == ["metrics", "classifications", "longTails"]

        assert manual_engine.record_published_article(classification, topic, _article(plan)) is True

        clusters = json.loads((tmp_path / "topic-clusters.json").read_text(encoding="utf-8"))
        assert clusters[0]["articles"][0]["contentType"] == "pillar"
        history = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
        assert history[0]["topic"] == TOPIC
        assert history[0]["clusterId"] == classification.cluster_id
        assert history[0]["postUrl"] == "https://blog.example.com/home-espresso-setup"
        assert history[0]["status"] == "published"

    @pytest.mark.asyncio
    async def test_follow_up_article_is_cluster_piece_and_avoids_cannibalization(
        self, manual_engine, llm_router
    ):
        llm_router(metrics=METRICS, classifications=CLASSIFICATIONS, longTails=LONG_TAILS)
        topic = (await manual_engine.select_topic()).topic
        first = (await manual_engine.classify_topic(topic)).unwrap()
        first_plan = (await manual_engine.build_keyword_plan(topic)).unwrap()
        manual_engine.record_published_article(first, topic, _article(first_plan))

        calls = llm_router(
            metrics=METRICS,
            results={
                "results": [
                    {
                        "keyword": "home espresso setup for beginners",
                        "overlappingArticles": [
                            {"title": "Home Espresso Setup for Beginners", "slug": "home-espresso-setup", "similarity": 0.92}
                        ],
                    }
                ]
            },
            classifications=CLASSIFICATIONS,
            longTails=LONG_TAILS,
        )

        second = (await manual_engine.classify_topic(topic)).unwrap()
        plan = (await manual_engine.build_keyword_plan(topic)).unwrap()

        assert second.cluster_id == first.cluster_id
        assert second.content_type == ContentType.CLUSTER
        assert plan.primary.keyword == "espresso machine"
        assert plan.secondary == []
        assert calls == ["metrics", "results", "classifications", "longTails"]

    @pytest.mark.asyncio
    async def test_replayed_publish_is_recorded_once(self, manual_engine, llm_router, tmp_path):
        llm_router(metrics=METRICS, classifications=CLASSIFICATIONS, longTails=LONG_TAILS)
        topic = (await manual_engine.select_topic()).topic
        classification = (await manual_engine.classify_topic(topic)).unwrap()
        article = _article((await manual_engine.build_keyword_plan(topic)).unwrap())

        assert manual_engine.record_published_article(classification, topic, article) is True
        assert manual_engine.record_published_article(classification, topic, article) is False

        history = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
        assert [r["slug"] for r in history] == ["home-espresso-setup"]
        clusters = json.loads((tmp_path / "topic-clusters.json").read_text(encoding="utf-8"))
        assert [a["slug"] for a in clusters[0]["articles"]] == ["home-espresso-setup"]

    @pytest.mark.asyncio
    async def test_token_usage_is_reported(self, manual_engine):
        assert manual_engine.get_token_usage().total_tokens == 150


class TestTopicSelection:
    @pytest.mark.asyncio
    async def test_recently_published_fallback_topic_is_skipped(self, make_manager):
        manager = make_manager(TopicSettings(sources=["fallback"]))
        engine = await manager.initialize()
        try:
            published = (await engine.classify_topic(REMOTE_WORK)).unwrap()
            engine.record_published_article(
                published,
                REMOTE_WORK,
                ClusterArticle(title="Remote Work Productivity Tips", slug="remote-work", keywords=["remote work tools"]),
            )

            for seed in range(5):
                engine.rng = random.Random(seed)
                selection = await engine.select_topic()
                assert selection.state == SelectorState.ACCEPTED
                assert selection.source == "fallback"
                assert selection.topic.title != "Remote Work Productivity Tips"
        finally:
            await manager.cleanup()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_state_survives_restart(self, make_manager, llm_router):
        llm_router(metrics=METRICS, classifications=CLASSIFICATIONS, longTails=LONG_TAILS)
        topic_settings = TopicSettings(manual_topic=TOPIC, sources=["fallback"])

        manager = make_manager(topic_settings)
        engine = await manager.initialize()
        topic = (await engine.select_topic()).topic
        classification = (await engine.classify_topic(topic)).unwrap()
        plan = (await engine.build_keyword_plan(topic)).unwrap()
        engine.record_published_article(classification, topic, _article(plan))
        await manager.cleanup()

        restarted = make_manager(topic_settings)
        engine = await restarted.initialize()
        try:
            again = (await engine.classify_topic(topic)).unwrap()
            assert again.cluster_id == classification.cluster_id
            assert again.content_type == ContentType.CLUSTER
            recent = engine.history_repository.load_recent(30, 20)
            assert [a.title for a in recent] == ["Home Espresso Setup for Beginners"]
        finally:
            await restarted.cleanup()

    @pytest.mark.asyncio
    async def test_concurrent_engine_is_refused(self, manual_engine, make_manager):
        with pytest.raises(InstanceLockedError):
            await make_manager(TopicSettings()).initialize()

    @pytest.mark.asyncio
    async def test_close_releases_lock(self, make_manager, tmp_path):
        engine = await make_manager(TopicSettings()).initialize()
        assert (tmp_path / ".keyword-engine.lock").exists()

        async with engine:
            pass

        assert not (tmp_path / ".keyword-engine.lock").exists()
