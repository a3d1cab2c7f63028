"""
System Constants & Invariants
==============================
Immutable domain constants defining scoring formulas, similarity
cutoffs, stopword vocabularies and the static topic pool.

Tunable thresholds (cluster, diversity, research caps) live in
config.settings; the values here are design constants.

Architecture: Value Objects + Namespace Organization
"""

from dataclasses import dataclass
from typing import Final

from core.enums import SearchIntent, SearchVolume, TrendDirection

# =============================================================================
# CANNIBALIZATION
# =============================================================================

# An overlapping article only cannibalizes a keyword strictly above this.
CANNIBALIZATION_THRESHOLD: Final[float] = 0.6


# =============================================================================
# KEYWORD PLAN SCORING (balanced quality)
# =============================================================================


@dataclass(frozen=True)
class PlanScoringWeights:
    """
    Weights of the balanced keyword-plan score.

    score = volume*0.30 + (100 - difficulty)*0.25 + relevance*0.20
            + trend*0.15 + non_cannibalized*0.10
    """

    VOLUME: float = 0.30
    DIFFICULTY: float = 0.25
    RELEVANCE: float = 0.20
    TREND: float = 0.15
    CANNIBALIZATION: float = 0.10

    # Every candidate comes from the same topic
    RELEVANCE_BASELINE: float = 70.0


PLAN_WEIGHTS: Final = PlanScoringWeights()

VOLUME_SCORES: Final[dict[SearchVolume, float]] = {
    SearchVolume.HIGH: 100.0,
    SearchVolume.MEDIUM: 70.0,
    SearchVolume.LOW: 40.0,
    SearchVolume.VERY_LOW: 15.0,
}

PLAN_TREND_SCORES: Final[dict[TrendDirection, float]] = {
    TrendDirection.RISING: 100.0,
    TrendDirection.STABLE: 60.0,
    TrendDirection.DECLINING: 20.0,
}


# =============================================================================
# EASY-TO-RANK SCORING (keyword planner report)
# =============================================================================


@dataclass(frozen=True)
class EasyRankWeights:
    """
    Weights of the easy-to-rank score; biased toward low difficulty.

    Kept separate from PlanScoringWeights: the two formulas serve
    different consumers.
    """

    DIFFICULTY: float = 0.40
    VOLUME: float = 0.20
    TREND: float = 0.20
    CANNIBALIZATION: float = 0.15
    INTENT: float = 0.05

    RESEARCH_INTENT_BONUS: float = 100.0
    OTHER_INTENT_BONUS: float = 50.0


EASY_RANK_WEIGHTS: Final = EasyRankWeights()

EASY_RANK_TREND_SCORES: Final[dict[TrendDirection, float]] = {
    TrendDirection.RISING: 100.0,
    TrendDirection.STABLE: 50.0,
    TrendDirection.DECLINING: 10.0,
}

EASY_RANK_TOP_N: Final[int] = 20


# =============================================================================
# STOPWORDS
# =============================================================================

# Cluster classification vocabulary
CLUSTER_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "can", "this", "that", "these", "those",
        "it", "its", "how", "what", "when", "where", "why", "which", "who",
        "not", "no", "nor", "from", "up", "about", "into", "over", "after",
    }
)  # fmt: skip

# Generic English and news filler
_GENERAL_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "as", "into", "through", "during", "before", "after", "above",
        "below", "between", "under", "again", "further", "then", "once", "here",
        "there", "when", "where", "why", "how", "all", "each", "few", "more",
        "most", "other", "some", "such", "no", "nor", "not", "only", "own",
        "same", "so", "than", "too", "very", "s", "t", "just", "don", "now",
        "and", "but", "or", "because", "until", "while", "this", "that", "these",
        "those", "it", "its", "what", "which", "who", "whom", "he", "she", "they",
        "we", "you", "i", "me", "my", "your", "his", "her", "their", "our",
        "says", "said", "new", "first", "last", "year", "years", "day", "days",
        "time", "week", "month", "get", "make", "go", "know", "take", "see",
        "come", "think", "look", "want", "give", "use", "find", "tell", "ask",
        "work", "seem", "feel", "try", "leave", "call", "good", "great", "big",
    }
)  # fmt: skip

# Listicle and comparison framing words that do not change the subject
COMPARISON_MODIFIER_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "vs", "versus", "alternative", "alternatives", "comparison", "compare",
        "pricing", "review", "reviews", "best", "top",
    }
)  # fmt: skip

# Diversity filter and topic-source keyword extraction
DIVERSITY_STOPWORDS: Final[frozenset[str]] = _GENERAL_STOPWORDS | COMPARISON_MODIFIER_STOPWORDS


# =============================================================================
# KEYWORD SUGGESTION PROVIDERS
# =============================================================================

GOOGLE_AUTOCOMPLETE_URL: Final[str] = "https://suggestqueries.google.com/complete/search"

# Query templates prepended to each seed
AUTOCOMPLETE_MODIFIERS: Final[tuple[str, ...]] = (
    "",
    "how to ",
    "best ",
    "vs ",
    "for ",
    "what is ",
)


# =============================================================================
# TOPIC SOURCES
# =============================================================================

FEED_USER_AGENT: Final[str] = "Mozilla/5.0 (compatible; KeywordEngine/1.0)"

FEEDS_BY_CATEGORY: Final[dict[str, tuple[str, ...]]] = {
    "general": (
        "https://news.google.com/rss?hl=en-US&gl=US&ceid=US:en",
        "https://feeds.bbci.co.uk/news/rss.xml",
        "https://www.reuters.com/rssFeed/topNews",
    ),
    "technology": (
        "https://feeds.feedburner.com/TechCrunch/",
        "https://www.theverge.com/rss/index.xml",
        "https://feeds.arstechnica.com/arstechnica/index",
        "https://www.wired.com/feed/rss",
    ),
    "business": (
        "https://feeds.nbcnews.com/nbcnews/public/business",
        "https://www.cnbc.com/id/100003114/device/rss/rss.html",
    ),
    "health": (
        "https://www.medicalnewstoday.com/newsfeeds/rss/medical-news.xml",
        "https://feeds.nbcnews.com/nbcnews/public/health",
    ),
    "science": (
        "https://www.sciencedaily.com/rss/all.xml",
        "https://www.newscientist.com/feed/home",
    ),
}

# Last-resort pool: (title, related queries)
FALLBACK_TOPICS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    (
        "AI in Healthcare 2026",
        (
            "artificial intelligence medical",
            "AI diagnosis",
            "machine learning healthcare",
            "AI drug discovery",
            "healthcare automation",
        ),
    ),
    (
        "Remote Work Productivity Tips",
        (
            "work from home tips",
            "remote work tools",
            "productivity apps",
            "home office setup",
            "virtual collaboration",
        ),
    ),
    (
        "Sustainable Living Guide",
        (
            "eco-friendly lifestyle",
            "reduce carbon footprint",
            "sustainable products",
            "green living tips",
            "zero waste",
        ),
    ),
    (
        "Personal Finance Strategies",
        (
            "budgeting tips",
            "investment strategies",
            "saving money",
            "financial planning",
            "passive income",
        ),
    ),
    (
        "Mental Health and Wellness",
        (
            "stress management",
            "mindfulness techniques",
            "anxiety relief",
            "self-care tips",
            "work life balance",
        ),
    ),
)


# =============================================================================
# LLM PROMPTING
# =============================================================================

KEYWORD_SYSTEM_PROMPT: Final[str] = "You are an expert SEO keyword researcher and analyst."

TOPIC_SYSTEM_PROMPT: Final[str] = (
    "You are an SEO expert and trend analyst. Generate a single trending topic "
    "that would make a great article for today."
)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Cannibalization
    "CANNIBALIZATION_THRESHOLD",
    # Scoring
    "PLAN_WEIGHTS",
    "VOLUME_SCORES",
    "PLAN_TREND_SCORES",
    "EASY_RANK_WEIGHTS",
    "EASY_RANK_TREND_SCORES",
    "EASY_RANK_TOP_N",
    # Vocabularies
    "CLUSTER_STOPWORDS",
    "COMPARISON_MODIFIER_STOPWORDS",
    "DIVERSITY_STOPWORDS",
    # Providers & sources
    "GOOGLE_AUTOCOMPLETE_URL",
    "AUTOCOMPLETE_MODIFIERS",
    "FEED_USER_AGENT",
    "FEEDS_BY_CATEGORY",
    "FALLBACK_TOPICS",
    # Prompting
    "KEYWORD_SYSTEM_PROMPT",
    "TOPIC_SYSTEM_PROMPT",
]
