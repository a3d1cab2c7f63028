"""
Keyword Research Prompts
========================
Prompt builders for every text-completion call the engine makes. Each
prompt asks for one JSON object whose shape is validated by the caller.
"""

from datetime import date
from typing import Optional, Sequence

from core.models import ExistingArticle


def _numbered(items: Sequence[str]) -> str:
    return "\n".join(f'{i}. "{item}"' for i, item in enumerate(items, start=1))


def keyword_metrics_prompt(keywords: Sequence[str], topic: str) -> str:
    """Volume, difficulty and trend estimates -> {"metrics": [...]}."""
    return f"""You are an SEO expert analyzing keyword metrics for the topic: "{topic}"

KEYWORDS TO ANALYZE:
{_numbered(keywords)}

For each keyword, estimate:
1. **estimatedVolume**: "high" (10k+/mo), "medium" (1k-10k), "low" (100-1k), or "very_low" (<100)
2. **estimatedDifficulty**: 0-100 score (higher = harder to rank). Consider domain authority needed, SERP competition, and the content quality bar.
3. **trend**: "rising" (growing search interest), "stable" (consistent), or "declining" (losing interest)

Generate a JSON response:
{{
  "metrics": [
    {{
      "keyword": "the keyword",
      "estimatedVolume": "medium",
      "estimatedDifficulty": 45,
      "trend": "stable"
    }}
  ]
}}

Respond ONLY with valid JSON, no additional text."""


def intent_classification_prompt(keywords: Sequence[str]) -> str:
    """Search intent per keyword -> {"classifications": [...]}."""
    return f"""You are an SEO expert classifying search intent for keywords.

KEYWORDS TO CLASSIFY:
{_numbered(keywords)}

Classify each keyword's primary search intent:
- **informational**: the user wants to learn something (how to, what is, guide, tutorial)
- **transactional**: the user wants to buy or act (buy, order, download, sign up)
- **navigational**: the user wants a specific site or page (brand name, login)
- **commercial**: the user is researching before a purchase (best, review, comparison, vs)

Generate a JSON response:
{{
  "classifications": [
    {{"keyword": "the keyword", "intent": "informational"}}
  ]
}}

Respond ONLY with valid JSON, no additional text."""


def long_tail_expansion_prompt(primary_keyword: str, existing_long_tails: Sequence[str]) -> str:
    """Additional long-tail variations -> {"longTails": [...]}."""
    existing = "\n".join(f'- "{k}"' for k in existing_long_tails) or "(none)"
    return f"""You are an SEO keyword research expert expanding long-tail variations.

PRIMARY KEYWORD: "{primary_keyword}"

EXISTING LONG-TAIL KEYWORDS (do NOT repeat these):
{existing}

Generate 8-12 additional long-tail keyword variations that:
1. Are 4-8 words long
2. Target specific user questions or needs
3. Have lower competition than the primary keyword
4. Would naturally fit into article content

Generate a JSON response:
{{
  "longTails": ["long tail keyword variation 1", "long tail keyword variation 2"]
}}

Respond ONLY with valid JSON, no additional text."""


def cannibalization_prompt(
    candidate_keywords: Sequence[str], existing_articles: Sequence[ExistingArticle]
) -> str:
    """Batched overlap check against the corpus -> {"results": [...]}."""
    corpus = "\n".join(
        f'{i}. Title: "{a.title}" | Slug: "{a.slug}" | Keywords: {", ".join(a.keywords)}'
        for i, a in enumerate(existing_articles, start=1)
    )
    return f"""You are an SEO expert analyzing keyword cannibalization risk.

CANDIDATE KEYWORDS:
{_numbered(candidate_keywords)}

EXISTING ARTICLES:
{corpus}

For each candidate keyword, decide whether it would compete with any existing article for the same search results. For each overlapping article give:
1. **similarity**: 0-1 score of how much the keyword overlaps with the article's target
2. **matchedKeywords**: which existing keywords overlap

A keyword counts as cannibalized only when some similarity is above 0.6. For cannibalized keywords suggest 2-3 long-tail alternatives that differentiate from the existing content.

Generate a JSON response:
{{
  "results": [
    {{
      "keyword": "candidate keyword",
      "overlappingArticles": [
        {{"title": "Existing article title", "slug": "existing-slug", "similarity": 0.7, "matchedKeywords": ["keyword1"]}}
      ],
      "suggestedLongTails": ["alternative 1", "alternative 2"]
    }}
  ]
}}

For keywords with no overlap, set overlappingArticles and suggestedLongTails to [].

Respond ONLY with valid JSON, no additional text."""


def niche_expansion_prompt(niche: str, max_seeds: int) -> str:
    """Broad niche to specific seed topics -> {"seeds": [...]}."""
    return f"""You are an SEO strategist planning content for the niche: "{niche}"

Break this niche into {max_seeds} specific seed topics suitable for keyword research. Each seed should:
1. Be 2-5 words long
2. Cover a distinct sub-area of the niche
3. Be searchable on its own

Generate a JSON response:
{{
  "seeds": ["seed topic 1", "seed topic 2"]
}}

Respond ONLY with valid JSON, no additional text."""


def topic_suggestion_prompt(
    category: Optional[str] = None,
    recent_titles: str = "",
    today: Optional[date] = None,
) -> str:
    """Single trending topic -> {"title": ..., "relatedQueries": [...]}."""
    today = today or date.today()
    if category and category != "all":
        category_context = f"Focus on the {category} category."
    else:
        category_context = "Consider general interest topics."

    prompt = f"""Generate a trending topic for an SEO article. {category_context} Today's date is {today:%A, %B %d, %Y}.

The topic should be currently relevant, specific enough to write about and have good search potential.

Respond in JSON format only:
{{
  "title": "The main topic title",
  "relatedQueries": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"]
}}"""
    if recent_titles:
        prompt += (
            "\n\nIMPORTANT: The following articles were recently published. "
            f"Generate a topic on a DIFFERENT sub-topic to ensure variety:\n{recent_titles}"
        )
    return prompt


__all__ = [
    "keyword_metrics_prompt",
    "intent_classification_prompt",
    "long_tail_expansion_prompt",
    "cannibalization_prompt",
    "niche_expansion_prompt",
    "topic_suggestion_prompt",
]
