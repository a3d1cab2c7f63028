"""
Unit Tests for Domain Models, Enumerations and the Outcome Type
===============================================================

Covers boundary validation of collaborator output (clamping and
defaulting), the derived cannibalization flag, persisted JSON shapes and
the tri-state Outcome rails.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.enums import (
    ContentType,
    OutcomeStatus,
    SearchIntent,
    SearchVolume,
    SelectorState,
    TrendDirection,
)
from core.exceptions import (
    InstanceLockedError,
    KeywordAPIError,
    LLMRateLimitError,
    NoKeywordsFoundError,
    is_retryable,
)
from core.models import (
    CannibalizationResult,
    ClusterArticle,
    KeywordCandidate,
    KeywordMetrics,
    KeywordPlan,
    PublishRecord,
    SelectionResult,
    TokenUsage,
    TopicCluster,
    TrendingTopic,
    ensure_utc,
)
from core.outcome import Outcome


class TestKeywordMetricsValidation:
    """Out-of-domain collaborator values are clamped or defaulted, never rejected."""

    def test_valid_values_pass_through(self):
        metrics = KeywordMetrics(
            keyword="espresso grinder",
            estimated_volume="high",
            estimated_difficulty=35,
            trend="rising",
            intent="commercial",
        )
        assert metrics.estimated_volume == SearchVolume.HIGH
        assert metrics.estimated_difficulty == 35.0
        assert metrics.trend == TrendDirection.RISING
        assert metrics.intent == SearchIntent.COMMERCIAL

    @pytest.mark.parametrize("raw, expected", [(150, 100.0), (-20, 0.0), ("75", 75.0)])
    def test_difficulty_is_clamped(self, raw, expected):
        assert KeywordMetrics(keyword="k", estimated_difficulty=raw).estimated_difficulty == expected

    @pytest.mark.parametrize("raw", ["hard", None, float("nan"), True])
    def test_non_numeric_difficulty_defaults_to_fifty(self, raw):
        assert KeywordMetrics(keyword="k", estimated_difficulty=raw).estimated_difficulty == 50.0

    def test_unknown_enum_values_get_defaults(self):
        metrics = KeywordMetrics(
            keyword="k", estimated_volume="huge", trend="sideways", intent="curious"
        )
        assert metrics.estimated_volume == SearchVolume.LOW
        assert metrics.trend == TrendDirection.STABLE
        assert metrics.intent == SearchIntent.INFORMATIONAL

    def test_enum_parsing_is_case_insensitive(self):
        metrics = KeywordMetrics(keyword="k", estimated_volume=" Very_Low ", trend="DECLINING")
        assert metrics.estimated_volume == SearchVolume.VERY_LOW
        assert metrics.trend == TrendDirection.DECLINING

    def test_blank_keyword_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            KeywordCandidate(keyword="   ")

    def test_keyword_is_stripped_and_dedupe_key_lowercased(self):
        candidate = KeywordCandidate(keyword="  Home Espresso ")
        assert candidate.keyword == "Home Espresso"
        assert candidate.dedupe_key == "home espresso"

    def test_metrics_are_immutable(self):
        metrics = KeywordMetrics(keyword="k")
        with pytest.raises(PydanticValidationError):
            metrics.estimated_difficulty = 10

    def test_with_intent_returns_copy(self):
        metrics = KeywordMetrics(keyword="k")
        updated = metrics.with_intent(SearchIntent.TRANSACTIONAL)
        assert updated.intent == SearchIntent.TRANSACTIONAL
        assert metrics.intent == SearchIntent.INFORMATIONAL


class TestCannibalizationResult:
    def test_flag_is_derived_from_similarity(self):
        result = CannibalizationResult.model_validate(
            {
                "keyword": "espresso",
                "overlappingArticles": [{"title": "A", "slug": "a", "similarity": 0.8}],
            }
        )
        assert result.is_cannibalized is True

    def test_similarity_at_cutoff_is_not_cannibalized(self):
        result = CannibalizationResult.model_validate(
            {"keyword": "espresso", "overlappingArticles": [{"similarity": 0.6}]}
        )
        assert result.is_cannibalized is False

    def test_asserted_flag_is_ignored(self):
        result = CannibalizationResult.model_validate(
            {
                "keyword": "espresso",
                "isCannibalized": True,
                "overlappingArticles": [{"title": "A", "slug": "a", "similarity": 0.2}],
            }
        )
        assert result.is_cannibalized is False

    def test_similarity_is_clamped(self):
        result = CannibalizationResult.model_validate(
            {"keyword": "k", "overlappingArticles": [{"similarity": 1.7}, {"similarity": "x"}]}
        )
        assert [a.similarity for a in result.overlapping_articles] == [1.0, 0.0]

    def test_clear_result(self):
        result = CannibalizationResult.clear("espresso")
        assert result.is_cannibalized is False
        assert result.overlapping_articles == []
        assert result.suggested_long_tails == []

    def test_serialized_shape_carries_flag(self):
        data = CannibalizationResult.clear("espresso").to_json_dict()
        assert data["isCannibalized"] is False
        assert data["overlappingArticles"] == []
        assert data["suggestedLongTails"] == []


class TestPersistedShapes:
    def test_cluster_round_trips_camel_case(self):
        cluster = TopicCluster(
            pillar_topic="Home Espresso",
            keywords=["espresso"],
            articles=[ClusterArticle(title="Guide", slug="guide", content_type=ContentType.PILLAR)],
        )
        data = cluster.to_json_dict()

        assert {"id", "pillarTopic", "keywords", "articles", "createdAt", "updatedAt"} <= data.keys()
        assert data["articles"][0]["contentType"] == "pillar"
        assert TopicCluster.model_validate(data) == cluster

    def test_cluster_ids_are_unique(self):
        assert TopicCluster(pillar_topic="a").id != TopicCluster(pillar_topic="b").id
        assert TopicCluster(pillar_topic="a").id.startswith("cluster_")

    def test_has_pillar(self):
        cluster = TopicCluster(pillar_topic="t")
        assert cluster.has_pillar is False
        cluster.articles = [ClusterArticle(title="x", slug="x", content_type=ContentType.PILLAR)]
        assert cluster.has_pillar is True

    def test_touch_advances_updated_at(self):
        cluster = TopicCluster(
            pillar_topic="t", updated_at=datetime(2020, 1, 1, tzinfo=timezone.utc)
        )
        cluster.touch()
        assert cluster.updated_at.year >= 2026

    def test_publish_record_shape(self):
        data = PublishRecord(topic="t", title="T", slug="t", cluster_id="c1").to_json_dict()
        assert data["status"] == "published"
        assert data["clusterId"] == "c1"
        assert data["postUrl"] is None
        assert "createdAt" in data

    def test_naive_datetimes_are_utc(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert ensure_utc(naive).tzinfo == timezone.utc
        offset = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(offset).hour == 10

    def test_keyword_plan_with_long_tails_is_a_copy(self):
        plan = KeywordPlan(primary=KeywordMetrics(keyword="k"), score=50.0)
        extended = plan.with_long_tails(["a b c d"])
        assert extended.long_tails == ["a b c d"]
        assert plan.long_tails == []
        assert extended.all_keywords == ["k"]

    def test_keyword_plan_caps_secondary(self):
        with pytest.raises(PydanticValidationError):
            KeywordPlan(
                primary=KeywordMetrics(keyword="k"),
                secondary=[KeywordMetrics(keyword=f"s{i}") for i in range(6)],
                score=1.0,
            )

    def test_token_usage_addition(self):
        total = TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3) + TokenUsage(
            prompt_tokens=10, completion_tokens=20, total_tokens=30
        )
        assert (total.prompt_tokens, total.completion_tokens, total.total_tokens) == (11, 22, 33)

    def test_selection_passed_diversity(self):
        topic = TrendingTopic(title="t")
        assert SelectionResult(topic=topic, source="rss", state=SelectorState.ACCEPTED).passed_diversity
        assert not SelectionResult(
            topic=topic, source="fallback", state=SelectorState.EXHAUSTED
        ).passed_diversity


class TestEnums:
    def test_research_intents(self):
        assert SearchIntent.INFORMATIONAL.is_research_intent
        assert SearchIntent.COMMERCIAL.is_research_intent
        assert not SearchIntent.TRANSACTIONAL.is_research_intent
        assert not SearchIntent.NAVIGATIONAL.is_research_intent

    def test_selector_transitions(self):
        assert SelectorState.TRYING_SOURCE.can_transition_to(SelectorState.ACCEPTED)
        assert SelectorState.TRYING_SOURCE.can_transition_to(SelectorState.EXHAUSTED)
        assert not SelectorState.ACCEPTED.can_transition_to(SelectorState.TRYING_SOURCE)
        assert not SelectorState.MANUAL.can_transition_to(SelectorState.ACCEPTED)
        assert SelectorState.EXHAUSTED.is_terminal

    def test_parse_non_string_uses_default(self):
        assert SearchVolume.parse(42) == SearchVolume.LOW
        assert TrendDirection.parse(None, TrendDirection.RISING) == TrendDirection.RISING


class TestExceptions:
    def test_retryable_classification(self):
        assert is_retryable(LLMRateLimitError())
        assert is_retryable(KeywordAPIError(api_name="google_autocomplete"))
        assert not is_retryable(NoKeywordsFoundError(topic="t"))
        assert is_retryable(TimeoutError())
        assert not is_retryable(ValueError())

    def test_instance_locked_context(self):
        error = InstanceLockedError(lock_path="/tmp/x.lock", holder_pid=42)
        assert error.context == {"lock_path": "/tmp/x.lock", "holder_pid": 42}
        assert "42" in error.message
        assert error.to_dict()["error_code"] == "INSTANCE_LOCKED"


class TestOutcome:
    def test_ok(self):
        outcome = Outcome.ok(3)
        assert outcome.is_ok() and outcome.has_value()
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.unwrap() == 3
        assert outcome.error is None

    def test_degraded_keeps_value_and_error(self):
        error = RuntimeError("boom")
        outcome = Outcome.degraded([], error)
        assert outcome.is_degraded() and outcome.has_value()
        assert outcome.unwrap() == []
        assert outcome.error is error

    def test_failure_raises_on_unwrap(self):
        outcome = Outcome.failure(KeyError("missing"))
        assert outcome.is_failure() and not outcome.has_value()
        assert outcome.unwrap_or("default") == "default"
        with pytest.raises(KeyError):
            outcome.unwrap()

    def test_failure_requires_error(self):
        with pytest.raises(ValueError):
            Outcome(OutcomeStatus.FAILURE)

    def test_map_keeps_rail(self):
        error = RuntimeError("x")
        assert Outcome.ok(2).map(lambda x: x * 2) == Outcome.ok(4)
        assert Outcome.degraded(2, error).map(lambda x: x + 1) == Outcome.degraded(3, error)
        assert Outcome.failure(error).map(lambda x: x + 1).is_failure()

    def test_functor_laws(self):
        outcome = Outcome.ok(5)
        f, g = (lambda x: x + 1), (lambda x: x * 3)
        assert outcome.map(lambda x: x) == outcome
        assert outcome.map(f).map(g) == outcome.map(lambda x: g(f(x)))
