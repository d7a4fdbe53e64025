"""
Data model for adaptive examinations.

Items are immutable once created. Everything that changes during an exam
(administered ids, responses, counters, status) lives on the session, so a
single item pool can back any number of sessions.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .errors import InvalidConfigError


class Category(str, Enum):
    """Client-needs content domains used for content balancing."""

    MANAGEMENT_OF_CARE = "management-of-care"
    SAFETY_INFECTION = "safety-infection"
    HEALTH_PROMOTION = "health-promotion"
    PSYCHOSOCIAL = "psychosocial"
    BASIC_CARE = "basic-care"
    PHARMACOLOGICAL = "pharmacological"
    RISK_REDUCTION = "risk-reduction"
    PHYSIOLOGICAL_ADAPTATION = "physiological-adaptation"


class ItemType(str, Enum):
    """Interaction formats, roughly ordered by complexity."""

    MULTIPLE_CHOICE = "multiple-choice"
    SELECT_ALL = "select-all"
    ORDERED_RESPONSE = "ordered-response"
    CLOZE_DROPDOWN = "cloze-dropdown"
    HOT_SPOT = "hot-spot"
    MATRIX = "matrix"
    HIGHLIGHT = "highlight"
    BOW_TIE = "bow-tie"
    CASE_STUDY = "case-study"


class Difficulty(str, Enum):
    """Difficulty label stated by the item author."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    MAX_QUESTIONS_REACHED = "max_questions_reached"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.IN_PROGRESS


class StoppingReason(str, Enum):
    CONFIDENCE_INTERVAL = "confidence_interval"
    MAX_QUESTIONS = "max_questions"
    POOL_EXHAUSTED = "pool_exhausted"
    TIME_LIMIT = "time_limit"


class Determination(str, Enum):
    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class IRTParameters:
    """3PL item parameters.

    Attributes:
        a: Discrimination, typically [0.5, 2.5]. Higher = steeper curve.
        b: Difficulty in logits, typically [-3, +3].
        c: Guessing (lower asymptote), typically [0.0, 0.25].
    """

    a: float
    b: float
    c: float = 0.0


@dataclass(frozen=True)
class ItemMetadata:
    """Item description as supplied by the content source."""

    id: str
    category: Category
    item_type: ItemType
    difficulty: Difficulty = Difficulty.MEDIUM
    content: str = ""


@dataclass(frozen=True)
class Item:
    """A parameterized item in the pool.

    Attributes:
        id: Unique item identifier.
        category: Content domain.
        item_type: Interaction format.
        difficulty: Stated difficulty label.
        params: 3PL parameters used for estimation and selection.
        cognitive_level: Bloom's taxonomy level, 1-6.
        content: Optional display content.
    """

    id: str
    category: Category
    item_type: ItemType
    difficulty: Difficulty
    params: IRTParameters
    cognitive_level: int = 3
    content: str = ""


@dataclass(frozen=True)
class ResponseRecord:
    """One scored response in the session log."""

    item_id: str
    score: float
    time_spent: float
    theta_after: float
    se_after: float
    timestamp: float


@dataclass(frozen=True)
class SessionConfig:
    """Exam length, time and passing configuration.

    Attributes:
        min_items: Items that must be scored before a confidence stop.
        max_items: Hard cap on items administered.
        time_limit_minutes: Wall-clock budget for the whole attempt.
        passing_standard: Passing threshold on the theta (logit) scale.
    """

    min_items: int = 85
    max_items: int = 150
    time_limit_minutes: float = 300.0
    passing_standard: float = 0.0

    def __post_init__(self) -> None:
        if self.min_items < 0:
            raise InvalidConfigError(f"min_items must be >= 0, got {self.min_items}")
        if self.max_items < 1:
            raise InvalidConfigError(f"max_items must be >= 1, got {self.max_items}")
        if self.min_items > self.max_items:
            raise InvalidConfigError(
                f"min_items ({self.min_items}) exceeds max_items ({self.max_items})"
            )
        if not self.time_limit_minutes > 0:
            raise InvalidConfigError(
                f"time_limit_minutes must be positive, got {self.time_limit_minutes}"
            )
        if not math.isfinite(self.passing_standard):
            raise InvalidConfigError("passing_standard must be finite")

    @property
    def time_limit_seconds(self) -> float:
        return self.time_limit_minutes * 60.0


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of a session, returned to callers."""

    session_id: str
    config: SessionConfig
    theta: float
    standard_error: float
    confidence_interval: tuple[float, float]
    status: SessionStatus
    responses: tuple[ResponseRecord, ...]
    administered: tuple[str, ...]
    category_counts: Mapping[Category, int]
    item_type_counts: Mapping[ItemType, int]
    elapsed_seconds: float

    @property
    def items_administered(self) -> int:
        return len(self.administered)

    @property
    def questions_answered(self) -> int:
        return len(self.responses)


@dataclass(frozen=True)
class CategoryPerformance:
    """Score summary for one content domain or item type.

    ``correct`` sums partial-credit scores, so it may be fractional.
    """

    correct: float
    total: int
    percentage: int


@dataclass(frozen=True)
class TimeAnalysis:
    """Response-time summary over the scored items.

    Attributes:
        average_seconds: Mean time spent per item.
        fastest_seconds: Shortest non-zero time, 0.0 if none was recorded.
        slowest_seconds: Longest time spent on one item.
        total_seconds: Sum of per-item times.
        slow_misses: Items answered slowly and mostly wrong, in answer order.
    """

    average_seconds: float
    fastest_seconds: float
    slowest_seconds: float
    total_seconds: float
    slow_misses: tuple[str, ...] = ()


@dataclass(frozen=True)
class Result:
    """Final outcome of a terminated session.

    ``status`` says how the session stopped; ``final_determination`` is the
    reported pass/fail label. They differ in meaning for timed-out and
    max-length sessions, where the determination falls back to comparing
    theta with the passing standard directly.
    """

    theta: float
    standard_error: float
    confidence_interval: tuple[float, float]
    passing_probability: float
    percentile: float
    performance_level: str
    items_administered: int
    elapsed_seconds: float
    status: SessionStatus
    stopping_reason: StoppingReason
    final_determination: Determination
    category_performance: Mapping[Category, CategoryPerformance] = field(
        default_factory=lambda: MappingProxyType({})
    )
    item_type_distribution: Mapping[ItemType, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    item_type_performance: Mapping[ItemType, CategoryPerformance] = field(
        default_factory=lambda: MappingProxyType({})
    )
    difficulty_distribution: Mapping[Difficulty, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    strengths: tuple[Category, ...] = ()
    weaknesses: tuple[Category, ...] = ()
    timing: TimeAnalysis = TimeAnalysis(0.0, 0.0, 0.0, 0.0)

    @property
    def passed(self) -> bool:
        return self.final_determination is Determination.PASS

    @property
    def average_time_per_item(self) -> float:
        return self.timing.average_seconds
