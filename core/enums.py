"""
Domain Enumerations & Type Taxonomy
====================================
String enumerations for every closed domain the keyword engine works with.
Values match the wire strings exchanged with the text-completion collaborator
and persisted in the JSON data files.

Architecture: Type-Driven Design + ADT (Algebraic Data Types)
"""

from enum import Enum, IntEnum
from typing import Optional


class SearchIntent(str, Enum):
    """
    Search intent classification (Google's taxonomy).

    Drives the intent profile of a keyword plan and the intent bonus
    of the easy-to-rank report.
    """

    INFORMATIONAL = "informational"  # "how to", "what is"
    TRANSACTIONAL = "transactional"  # "buy", "download"
    NAVIGATIONAL = "navigational"  # Brand/product searches
    COMMERCIAL = "commercial"  # "best", "review", "vs"

    @property
    def is_research_intent(self) -> bool:
        """Intents that reward in-depth editorial content."""
        return self in {SearchIntent.INFORMATIONAL, SearchIntent.COMMERCIAL}

    @classmethod
    def parse(cls, value: object, default: Optional["SearchIntent"] = None) -> "SearchIntent":
        """Lenient conversion of collaborator output; unknown values map to the default."""
        return _parse_member(cls, value, default or cls.INFORMATIONAL)


class SearchVolume(str, Enum):
    """Estimated monthly search volume bucket."""

    HIGH = "high"  # 10k+/mo
    MEDIUM = "medium"  # 1k-10k
    LOW = "low"  # 100-1k
    VERY_LOW = "very_low"  # <100

    @classmethod
    def parse(cls, value: object, default: Optional["SearchVolume"] = None) -> "SearchVolume":
        return _parse_member(cls, value, default or cls.LOW)


class TrendDirection(str, Enum):
    """Direction of search interest over time."""

    RISING = "rising"
    STABLE = "stable"
    DECLINING = "declining"

    @classmethod
    def parse(cls, value: object, default: Optional["TrendDirection"] = None) -> "TrendDirection":
        return _parse_member(cls, value, default or cls.STABLE)


class ContentType(str, Enum):
    """
    Role of an article inside a topic cluster.

    A cluster has (softly) one pillar piece; every other article is
    a narrower cluster piece linking back to it.
    """

    PILLAR = "pillar"
    CLUSTER = "cluster"


class OutcomeStatus(str, Enum):
    """
    Result status of a collaborator-calling operation.

    Tri-state: clean success, success with a documented default, hard failure.
    """

    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILURE = "failure"

    @property
    def has_value(self) -> bool:
        """Degraded outcomes still carry a usable value."""
        return self in {OutcomeStatus.SUCCESS, OutcomeStatus.DEGRADED}


class SelectorState(str, Enum):
    """
    Topic selector lifecycle states.

    Finite state machine walked once per selection.
    """

    MANUAL = "manual"  # Operator override, no walk performed
    TRYING_SOURCE = "trying_source"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"  # Every source failed, static pool used

    @property
    def is_terminal(self) -> bool:
        """Check if this is a final state."""
        return self in {SelectorState.MANUAL, SelectorState.ACCEPTED, SelectorState.EXHAUSTED}

    def can_transition_to(self, target: "SelectorState") -> bool:
        """Validate state transition legality."""
        valid_transitions = {
            SelectorState.TRYING_SOURCE: {
                SelectorState.TRYING_SOURCE,
                SelectorState.ACCEPTED,
                SelectorState.EXHAUSTED,
            },
            SelectorState.MANUAL: set(),
            SelectorState.ACCEPTED: set(),
            SelectorState.EXHAUSTED: set(),
        }
        return target in valid_transitions.get(self, set())


class PublishStatus(str, Enum):
    """Status of a publish history record."""

    PUBLISHED = "published"
    FAILED = "failed"
    PENDING = "pending"


class LLMProvider(str, Enum):
    """Supported text-completion providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ErrorSeverity(IntEnum):
    """
    Error classification by impact severity.

    Reported with every application error and its log line.
    """

    CRITICAL = 5  # System failure, immediate intervention required
    ERROR = 4  # Operation failed, automatic retry possible
    WARNING = 3  # Degraded performance, monitoring needed
    INFO = 2  # Notable event, no action required
    DEBUG = 1  # Diagnostic information


def _parse_member(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default
