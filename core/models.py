"""
Domain Data Models
==================
Pydantic v2 schema definitions with:
- Boundary validation of collaborator output (clamp/default, never raise)
- camelCase aliases matching the persisted JSON documents
- Computed properties and derived fields
- Immutability where the domain requires it

Architecture: Domain-Driven Design + Value Objects
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional
from uuid import uuid4

from loguru import logger
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from config.constants import CANNIBALIZATION_THRESHOLD
from core.enums import (
    ContentType,
    PublishStatus,
    SearchIntent,
    SearchVolume,
    SelectorState,
    TrendDirection,
)

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_DIFFICULTY = 50.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class BaseModelConfig(BaseModel):
    """Base configuration for all models."""

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on field updates
        use_enum_values=False,  # Keep enum types (don't convert to strings)
        alias_generator=to_camel,  # JSON documents use camelCase keys
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the persisted (camelCase) key names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# KEYWORD MODELS
# =============================================================================


class KeywordCandidate(BaseModelConfig):
    """Raw keyword suggestion produced by a provider."""

    keyword: str = Field(..., min_length=1)
    source: str = Field(default="unknown")

    @field_validator("keyword")
    @classmethod
    def strip_keyword(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Keyword cannot be empty or whitespace")
        return v

    @property
    def dedupe_key(self) -> str:
        return self.keyword.lower()


class KeywordMetrics(KeywordCandidate):
    """
    Keyword candidate enriched with collaborator-estimated metrics.

    Invariant: every enum and numeric field is a member of its domain.
    Out-of-domain collaborator values are clamped or defaulted here and
    logged; construction never fails on them.
    """

    source: str = Field(default="gpt")
    estimated_volume: SearchVolume = Field(default=SearchVolume.LOW)
    estimated_difficulty: float = Field(default=DEFAULT_DIFFICULTY, ge=0.0, le=100.0)
    intent: SearchIntent = Field(default=SearchIntent.INFORMATIONAL)
    trend: TrendDirection = Field(default=TrendDirection.STABLE)

    model_config = ConfigDict(frozen=True)

    @field_validator("estimated_volume", mode="before")
    @classmethod
    def coerce_volume(cls, v: Any) -> SearchVolume:
        parsed = SearchVolume.parse(v)
        if not isinstance(v, SearchVolume) and parsed.value != str(v).strip().lower():
            logger.warning(f"Unrecognized volume {v!r}, defaulting to '{parsed.value}'")
        return parsed

    @field_validator("trend", mode="before")
    @classmethod
    def coerce_trend(cls, v: Any) -> TrendDirection:
        parsed = TrendDirection.parse(v)
        if not isinstance(v, TrendDirection) and parsed.value != str(v).strip().lower():
            logger.warning(f"Unrecognized trend {v!r}, defaulting to '{parsed.value}'")
        return parsed

    @field_validator("intent", mode="before")
    @classmethod
    def coerce_intent(cls, v: Any) -> SearchIntent:
        parsed = SearchIntent.parse(v)
        if not isinstance(v, SearchIntent) and parsed.value != str(v).strip().lower():
            logger.warning(f"Unrecognized intent {v!r}, defaulting to '{parsed.value}'")
        return parsed

    @field_validator("estimated_difficulty", mode="before")
    @classmethod
    def clamp_difficulty(cls, v: Any) -> float:
        try:
            if isinstance(v, bool):
                raise TypeError("boolean difficulty")
            value = float(v)
        except (TypeError, ValueError):
            logger.warning(f"Non-numeric difficulty {v!r}, defaulting to {DEFAULT_DIFFICULTY}")
            return DEFAULT_DIFFICULTY
        if math.isnan(value):
            logger.warning(f"Non-numeric difficulty {v!r}, defaulting to {DEFAULT_DIFFICULTY}")
            return DEFAULT_DIFFICULTY
        clamped = min(100.0, max(0.0, value))
        if clamped != value:
            logger.warning(f"Difficulty {value} out of range, clamped to {clamped}")
        return clamped

    def with_intent(self, intent: SearchIntent) -> "KeywordMetrics":
        return self.model_copy(update={"intent": intent})


# =============================================================================
# CANNIBALIZATION MODELS
# =============================================================================


def _clamp_similarity(v: Any) -> float:
    try:
        value = float(v)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


class OverlappingArticle(BaseModelConfig):
    """Existing article that competes with a candidate keyword."""

    title: str = ""
    slug: str = ""
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_keywords: list[str] = Field(default_factory=list)

    @field_validator("similarity", mode="before")
    @classmethod
    def clamp_similarity(cls, v: Any) -> float:
        clamped = _clamp_similarity(v)
        if isinstance(v, (int, float)) and not isinstance(v, bool) and clamped != v:
            logger.warning(f"Overlap similarity {v} out of range, clamped to {clamped}")
        return clamped


class CannibalizationResult(BaseModelConfig):
    """
    Overlap of one candidate keyword with the published corpus.

    `is_cannibalized` is derived locally from the overlap similarities;
    a flag asserted by the collaborator is never trusted.
    """

    keyword: str
    overlapping_articles: list[OverlappingArticle] = Field(default_factory=list)
    suggested_long_tails: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def discard_asserted_flag(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        flag_keys = {"isCannibalized", "is_cannibalized"} & data.keys()
        if not flag_keys:
            return data
        claimed = bool(data[next(iter(flag_keys))])
        data = {k: v for k, v in data.items() if k not in flag_keys}
        overlaps = data.get("overlappingArticles", data.get("overlapping_articles")) or []
        derived = any(
            _clamp_similarity(
                a.get("similarity") if isinstance(a, dict) else getattr(a, "similarity", 0)
            )
            > CANNIBALIZATION_THRESHOLD
            for a in overlaps
        )
        if claimed != derived:
            logger.warning(
                f"Collaborator flagged '{data.get('keyword')}' isCannibalized={claimed}, "
                f"overlap similarities imply {derived}"
            )
        return data

    @computed_field(alias="isCannibalized")
    @property
    def is_cannibalized(self) -> bool:
        """True iff some overlapping article exceeds the cannibalization cutoff."""
        return any(a.similarity > CANNIBALIZATION_THRESHOLD for a in self.overlapping_articles)

    @classmethod
    def clear(cls, keyword: str) -> "CannibalizationResult":
        """Result for a keyword with no known overlap."""
        return cls(keyword=keyword)


# =============================================================================
# KEYWORD PLAN
# =============================================================================


class KeywordPlan(BaseModelConfig):
    """
    Ranked keyword plan for one topic-research cycle.

    Immutable once built; long-tails are attached by producing a copy.
    """

    primary: KeywordMetrics
    secondary: list[KeywordMetrics] = Field(default_factory=list, max_length=5)
    long_tails: list[str] = Field(default_factory=list)
    intent_profile: SearchIntent = Field(default=SearchIntent.INFORMATIONAL)
    cannibalization_report: list[CannibalizationResult] = Field(default_factory=list)
    score: float

    model_config = ConfigDict(frozen=True)

    def with_long_tails(self, long_tails: list[str]) -> "KeywordPlan":
        return self.model_copy(update={"long_tails": list(long_tails)})

    @property
    def all_keywords(self) -> list[str]:
        return [self.primary.keyword, *(k.keyword for k in self.secondary)]


class ScoredKeyword(BaseModelConfig):
    """Row of the easy-to-rank keyword report."""

    rank: int = Field(default=0, ge=0)
    keyword: str
    easy_to_rank_score: float
    estimated_volume: SearchVolume
    estimated_difficulty: float
    trend: TrendDirection
    intent: SearchIntent
    source: str
    is_cannibalized: bool = False
    suggested_long_tails: list[str] = Field(default_factory=list)


class TokenUsage(BaseModelConfig):
    """Cumulative token consumption of the text-completion collaborator."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class KeywordPlanReport(BaseModelConfig):
    """Persisted output of the niche keyword planner."""

    generated_at: UtcDatetime = Field(default_factory=utc_now)
    niche: str
    seed_topics_expanded: list[str] = Field(default_factory=list)
    scoring_strategy: Literal["easy_to_rank"] = "easy_to_rank"
    top_keywords: list[ScoredKeyword] = Field(default_factory=list)
    all_keywords: list[ScoredKeyword] = Field(default_factory=list)
    cannibalization_report: list[CannibalizationResult] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


# =============================================================================
# TOPIC CLUSTER MODELS
# =============================================================================


class ClusterArticle(BaseModelConfig):
    """Published article recorded inside a topic cluster."""

    title: str
    slug: str
    url: str = ""
    published_at: UtcDatetime = Field(default_factory=utc_now)
    keywords: list[str] = Field(default_factory=list)
    content_type: ContentType = Field(default=ContentType.CLUSTER)


class TopicCluster(BaseModelConfig):
    """
    Persistent pillar/cluster theme.

    Articles accumulate for the lifetime of the cluster; clusters are
    never deleted.
    """

    id: str = Field(default_factory=lambda: TopicCluster.new_id())
    pillar_topic: str
    keywords: list[str] = Field(default_factory=list)
    articles: list[ClusterArticle] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    @staticmethod
    def new_id() -> str:
        return f"cluster_{int(utc_now().timestamp() * 1000)}_{uuid4().hex[:6]}"

    @property
    def has_pillar(self) -> bool:
        return any(a.content_type == ContentType.PILLAR for a in self.articles)

    def touch(self) -> None:
        self.updated_at = utc_now()


class ClusterClassification(BaseModelConfig):
    """Where a topic belongs in the cluster graph."""

    cluster_id: str
    content_type: ContentType
    is_new: bool

    model_config = ConfigDict(frozen=True)


# =============================================================================
# HISTORY & DIVERSITY MODELS
# =============================================================================


class RecentArticle(BaseModelConfig):
    """Recently published article used by the diversity filter."""

    title: str
    keywords: list[str] = Field(default_factory=list)
    created_at: UtcDatetime


class SimilarityResult(BaseModelConfig):
    """Outcome of a diversity check."""

    is_too_similar: bool
    highest_score: float = Field(ge=0.0, le=1.0)
    most_similar_title: str = ""

    model_config = ConfigDict(frozen=True)


class ExistingArticle(BaseModelConfig):
    """Corpus entry checked for keyword cannibalization."""

    title: str
    slug: str
    keywords: list[str] = Field(default_factory=list)


class PublishRecord(BaseModelConfig):
    """Entry of the publish history document."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    topic: str = ""
    title: str = ""
    slug: str = ""
    keywords: list[str] = Field(default_factory=list)
    word_count: int = Field(default=0, ge=0)
    status: PublishStatus = Field(default=PublishStatus.PUBLISHED)
    post_url: Optional[str] = None
    post_id: Optional[int] = None
    cluster_id: Optional[str] = None
    error: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    completed_at: Optional[UtcDatetime] = None


# =============================================================================
# TOPIC SELECTION MODELS
# =============================================================================


class TrendingTopic(BaseModelConfig):
    """Candidate topic proposed by a topic source."""

    title: str = Field(..., min_length=1)
    related_queries: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    traffic_volume: Optional[str] = None


class RejectedTopic(BaseModelConfig):
    """Candidate turned down by the diversity filter."""

    title: str
    source: str
    similarity: float
    most_similar_title: str = ""


class SelectionResult(BaseModelConfig):
    """Final state of one topic selection walk."""

    topic: TrendingTopic
    source: str
    state: SelectorState
    rejected: list[RejectedTopic] = Field(default_factory=list)

    @property
    def passed_diversity(self) -> bool:
        return self.state != SelectorState.EXHAUSTED


__all__ = [
    "BaseModelConfig",
    "utc_now",
    "ensure_utc",
    "KeywordCandidate",
    "KeywordMetrics",
    "OverlappingArticle",
    "CannibalizationResult",
    "KeywordPlan",
    "ScoredKeyword",
    "TokenUsage",
    "KeywordPlanReport",
    "ClusterArticle",
    "TopicCluster",
    "ClusterClassification",
    "RecentArticle",
    "SimilarityResult",
    "ExistingArticle",
    "PublishRecord",
    "TrendingTopic",
    "RejectedTopic",
    "SelectionResult",
]
