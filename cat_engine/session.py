"""
Session controller for adaptive examinations.

Drives one examinee attempt through its lifecycle:

    start_session -> next_item -> process_response -> ... -> get_results

The item pool is shared and read-only here; every piece of mutable state
(administered ids, responses, counters, status) lives on ``ExamSession``,
which a single ``CATEngine`` owns exclusively.
"""

import logging
import math
import numbers
import secrets
import time
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Sequence, TypeVar

from .errors import (
    DuplicateResponseError,
    InvalidScoreError,
    SessionNotActiveError,
    UnknownItemError,
)
from .irt import (
    DEFAULT_SE,
    DEFAULT_THETA,
    AbilityEstimator,
    confidence_interval,
    passing_probability,
    percentile,
    performance_level,
)
from .models import (
    Category,
    CategoryPerformance,
    Item,
    ItemType,
    ResponseRecord,
    Result,
    SessionConfig,
    SessionState,
    SessionStatus,
    StoppingReason,
    TimeAnalysis,
)
from .pool import ItemPool
from .selection import ItemSelector
from .stopping import StoppingRule, final_determination

logger = logging.getLogger(__name__)

STRENGTH_PERCENTAGE = 70
WEAKNESS_PERCENTAGE = 50
# A response slower than this with a score below MISS_SCORE is a slow miss
SLOW_RESPONSE_SECONDS = 90.0
MISS_SCORE = 0.5

K = TypeVar("K")


@dataclass
class ExamSession:
    """Mutable state of one examinee attempt."""

    session_id: str
    config: SessionConfig
    started_at: float
    theta: float = DEFAULT_THETA
    standard_error: float = DEFAULT_SE
    status: SessionStatus = SessionStatus.IN_PROGRESS
    stopping_reason: StoppingReason | None = None
    responses: list[ResponseRecord] = field(default_factory=list)
    administered: list[str] = field(default_factory=list)
    used_ids: set[str] = field(default_factory=set)
    pending_ids: set[str] = field(default_factory=set)
    category_counts: Counter = field(default_factory=Counter)
    item_type_counts: Counter = field(default_factory=Counter)
    difficulty_counts: Counter = field(default_factory=Counter)
    finished_at: float | None = None
    result: Result | None = None

    @property
    def confidence_interval(self) -> tuple[float, float]:
        return confidence_interval(self.theta, self.standard_error)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.IN_PROGRESS


class CATEngine:
    """Computerized adaptive testing engine for one session at a time.

    Args:
        pool: Item pool; may be shared with other engines.
        selector: Next-item selector. Inject one with a seeded rng for
            reproducible sequences.
        stopping_rule: Termination rule.
        estimator: Ability estimator.
        clock: Monotonic time source for elapsed-time checks, in seconds.
        wall_clock: Time source for response timestamps.

    Usage:
        engine = CATEngine(pool)
        engine.start_session(SessionConfig(min_items=60, max_items=145))
        while (item := engine.next_item()) is not None:
            engine.process_response(item.id, score_answer(item), time_spent=42.0)
        result = engine.get_results()
    """

    def __init__(
        self,
        pool: ItemPool,
        selector: ItemSelector | None = None,
        stopping_rule: StoppingRule | None = None,
        estimator: AbilityEstimator | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.pool = pool
        self.selector = selector or ItemSelector()
        self.stopping_rule = stopping_rule or StoppingRule()
        self.estimator = estimator or AbilityEstimator()
        self.clock = clock
        self.wall_clock = wall_clock
        self._session: ExamSession | None = None

    @property
    def session(self) -> ExamSession | None:
        return self._session

    @property
    def state(self) -> SessionState | None:
        return self._snapshot() if self._session else None

    def start_session(self, config: SessionConfig | None = None) -> SessionState:
        """Start a fresh attempt, discarding any previous session.

        Args:
            config: Exam configuration; defaults apply when omitted.

        Returns:
            Initial snapshot: theta=0, SE=1, in_progress.
        """
        config = config or SessionConfig()
        self._session = ExamSession(
            session_id=f"cat_{secrets.token_hex(16)}",
            config=config,
            started_at=self.clock(),
        )
        logger.info(
            "Started session %s (min=%d, max=%d, limit=%.0fmin, standard=%.2f, pool=%d)",
            self._session.session_id,
            config.min_items,
            config.max_items,
            config.time_limit_minutes,
            config.passing_standard,
            len(self.pool),
        )
        return self._snapshot()

    def next_item(self) -> Item | None:
        """Select and administer the next item.

        Returns:
            The next item, or None once the session has stopped (or stops
            now because time ran out or the pool is exhausted).

        Raises:
            SessionNotActiveError: If no session has been started.
        """
        session = self._require_session()
        if not session.is_active:
            return None

        if self._elapsed() >= session.config.time_limit_seconds:
            self._finalize(SessionStatus.TIMED_OUT, StoppingReason.TIME_LIMIT)
            return None

        if len(session.administered) >= session.config.max_items:
            # Only reachable with unanswered items outstanding.
            return None

        candidates = self.pool.available(session.used_ids)
        if not candidates:
            if not session.pending_ids:
                self._finalize(SessionStatus.MAX_QUESTIONS_REACHED, StoppingReason.POOL_EXHAUSTED)
            return None

        item = self.selector.select(
            session.theta, candidates, session.category_counts, len(session.responses)
        )
        if item is None:
            return None

        session.used_ids.add(item.id)
        session.pending_ids.add(item.id)
        session.administered.append(item.id)
        return item

    def process_response(
        self, item_id: str, score: float, time_spent: float = 0.0
    ) -> SessionState | None:
        """Record a scored response and re-estimate ability.

        Args:
            item_id: Id of an item returned by ``next_item``.
            score: Score from the item-scoring collaborator, in [0, 1].
            time_spent: Seconds the examinee spent on the item.

        Returns:
            Updated snapshot, or None if the session has already ended.

        Raises:
            SessionNotActiveError: If no session has been started.
            InvalidScoreError: If score is not a number in [0, 1].
            UnknownItemError: If the item was never administered.
            DuplicateResponseError: If the item was already scored.
            ValueError: If time_spent is negative, NaN or not a number.
        """
        session = self._require_session()
        if not session.is_active:
            logger.warning(
                "Ignoring response for %s: session %s is %s",
                item_id,
                session.session_id,
                session.status.value,
            )
            return None

        if item_id not in session.used_ids:
            raise UnknownItemError(item_id, f"Item was not administered in this session: {item_id}")
        if item_id not in session.pending_ids:
            raise DuplicateResponseError(item_id)
        score = self._validate_score(score)
        time_spent = self._validate_time_spent(time_spent)

        item = self.pool.get(item_id)
        scored = [(self.pool.get(r.item_id).params, r.score) for r in session.responses]
        scored.append((item.params, score))

        estimate = self.estimator.estimate(scored, start_theta=session.theta)
        session.theta = estimate.theta
        session.standard_error = estimate.standard_error

        session.pending_ids.discard(item_id)
        session.responses.append(
            ResponseRecord(
                item_id=item_id,
                score=score,
                time_spent=time_spent,
                theta_after=estimate.theta,
                se_after=estimate.standard_error,
                timestamp=self.wall_clock(),
            )
        )
        session.category_counts[item.category] += 1
        session.item_type_counts[item.item_type] += 1
        session.difficulty_counts[item.difficulty] += 1

        logger.debug(
            "Session %s item %d (%s): score=%.2f theta=%.3f se=%.3f",
            session.session_id,
            len(session.responses),
            item_id,
            score,
            estimate.theta,
            estimate.standard_error,
        )

        decision = self.stopping_rule.evaluate(
            theta=session.theta,
            standard_error=session.standard_error,
            items_administered=len(session.responses),
            elapsed_seconds=self._elapsed(),
            min_items=session.config.min_items,
            max_items=session.config.max_items,
            time_limit_seconds=session.config.time_limit_seconds,
            passing_standard=session.config.passing_standard,
        )
        if decision.should_stop:
            self._finalize(decision.status, decision.reason)

        return self._snapshot()

    def get_results(self) -> Result | None:
        """Final result, or None while the session is still running."""
        if self._session is None or self._session.result is None:
            return None
        return self._session.result

    def remaining_time(self) -> float:
        """Seconds left before the time limit, never negative."""
        if self._session is None:
            return 0.0
        return max(0.0, self._session.config.time_limit_seconds - self._elapsed())

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    def _require_session(self) -> ExamSession:
        if self._session is None:
            raise SessionNotActiveError("No session started; call start_session() first")
        return self._session

    @staticmethod
    def _validate_score(score: object) -> float:
        if not isinstance(score, numbers.Real):
            raise InvalidScoreError(score)
        value = float(score)
        if not 0.0 <= value <= 1.0:
            raise InvalidScoreError(score)
        return value

    @staticmethod
    def _validate_time_spent(time_spent: object) -> float:
        if not isinstance(time_spent, numbers.Real):
            raise ValueError(f"time_spent must be a number, got {time_spent!r}")
        value = float(time_spent)
        if not (math.isfinite(value) and value >= 0):
            raise ValueError(f"time_spent must be finite and >= 0, got {time_spent!r}")
        return value

    def _elapsed(self) -> float:
        session = self._require_session()
        end = session.finished_at if session.finished_at is not None else self.clock()
        return end - session.started_at

    def _finalize(self, status: SessionStatus, reason: StoppingReason | None) -> None:
        session = self._require_session()
        session.status = status
        session.stopping_reason = reason
        session.finished_at = self.clock()
        session.result = self._build_result(session)
        logger.info(
            "Session %s finished: status=%s reason=%s determination=%s "
            "theta=%.3f se=%.3f items=%d",
            session.session_id,
            status.value,
            reason.value if reason else None,
            session.result.final_determination.value,
            session.theta,
            session.standard_error,
            len(session.responses),
        )

    def _build_result(self, session: ExamSession) -> Result:
        standard = session.config.passing_standard
        items = [self.pool.get(r.item_id) for r in session.responses]
        scores = [r.score for r in session.responses]

        performance = _performance_by((item.category for item in items), scores)
        type_performance = _performance_by((item.item_type for item in items), scores)
        strengths = tuple(
            c for c, p in performance.items() if p.percentage >= STRENGTH_PERCENTAGE
        )
        weaknesses = tuple(
            c for c, p in performance.items() if p.percentage < WEAKNESS_PERCENTAGE
        )

        return Result(
            theta=session.theta,
            standard_error=session.standard_error,
            confidence_interval=session.confidence_interval,
            passing_probability=passing_probability(
                session.theta, session.standard_error, standard
            ),
            percentile=percentile(session.theta),
            performance_level=performance_level(session.theta),
            items_administered=len(session.responses),
            elapsed_seconds=self._elapsed(),
            status=session.status,
            stopping_reason=session.stopping_reason or StoppingReason.CONFIDENCE_INTERVAL,
            final_determination=final_determination(session.status, session.theta, standard),
            category_performance=MappingProxyType(performance),
            item_type_distribution=MappingProxyType(dict(session.item_type_counts)),
            item_type_performance=MappingProxyType(type_performance),
            difficulty_distribution=MappingProxyType(dict(session.difficulty_counts)),
            strengths=strengths,
            weaknesses=weaknesses,
            timing=_time_analysis(session.responses),
        )

    def _snapshot(self) -> SessionState:
        session = self._require_session()
        category_counts: dict[Category, int] = dict(session.category_counts)
        item_type_counts: dict[ItemType, int] = dict(session.item_type_counts)
        return SessionState(
            session_id=session.session_id,
            config=session.config,
            theta=session.theta,
            standard_error=session.standard_error,
            confidence_interval=session.confidence_interval,
            status=session.status,
            responses=tuple(session.responses),
            administered=tuple(session.administered),
            category_counts=MappingProxyType(category_counts),
            item_type_counts=MappingProxyType(item_type_counts),
            elapsed_seconds=self._elapsed(),
        )


def _performance_by(keys: Iterable[K], scores: Sequence[float]) -> dict[K, CategoryPerformance]:
    """Score sums and percentages grouped by key, in first-seen order."""
    totals: Counter = Counter()
    earned: dict[K, float] = {}
    for key, score in zip(keys, scores):
        totals[key] += 1
        earned[key] = earned.get(key, 0.0) + score

    return {
        key: CategoryPerformance(
            correct=earned[key],
            total=total,
            percentage=round(earned[key] / total * 100),
        )
        for key, total in totals.items()
    }


def _time_analysis(responses: Sequence[ResponseRecord]) -> TimeAnalysis:
    times = [r.time_spent for r in responses]
    if not times:
        return TimeAnalysis(0.0, 0.0, 0.0, 0.0)

    recorded = [t for t in times if t > 0]
    return TimeAnalysis(
        average_seconds=sum(times) / len(times),
        fastest_seconds=min(recorded) if recorded else 0.0,
        slowest_seconds=max(times),
        total_seconds=sum(times),
        slow_misses=tuple(
            r.item_id
            for r in responses
            if r.time_spent > SLOW_RESPONSE_SECONDS and r.score < MISS_SCORE
        ),
    )
