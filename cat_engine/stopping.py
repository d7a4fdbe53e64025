"""
Stopping rule for adaptive examinations.

Checks, in order, after every scored response:
    1. Elapsed time >= time limit            -> timed_out
    2. Items administered >= max items       -> max_questions_reached
    3. Items administered < min items        -> continue
    4. SE <= 0.30 and the 95% CI lies wholly
       above the passing standard            -> passed
       below the passing standard            -> failed
    5. Otherwise                             -> continue
"""

from dataclasses import dataclass, field
from typing import Any

from .irt import confidence_interval
from .models import Determination, SessionStatus, StoppingReason

SE_THRESHOLD = 0.30


@dataclass(frozen=True)
class StoppingDecision:
    """Outcome of one stopping-rule evaluation.

    Attributes:
        should_stop: Whether the session must end now.
        status: Status the session moves to (in_progress when continuing).
        reason: Why it stops, or None when continuing.
        details: Diagnostics (SE, CI, counts) for logging.
    """

    should_stop: bool
    status: SessionStatus
    reason: StoppingReason | None = None
    details: dict[str, Any] = field(default_factory=dict)


class StoppingRule:
    def __init__(self, se_threshold: float = SE_THRESHOLD) -> None:
        self.se_threshold = se_threshold

    def evaluate(
        self,
        theta: float,
        standard_error: float,
        items_administered: int,
        elapsed_seconds: float,
        min_items: int,
        max_items: int,
        time_limit_seconds: float,
        passing_standard: float = 0.0,
    ) -> StoppingDecision:
        lower, upper = confidence_interval(theta, standard_error)
        details = {
            "theta": theta,
            "se": standard_error,
            "ci": (lower, upper),
            "items": items_administered,
            "elapsed": elapsed_seconds,
        }

        if elapsed_seconds >= time_limit_seconds:
            return StoppingDecision(
                True, SessionStatus.TIMED_OUT, StoppingReason.TIME_LIMIT, details
            )

        if items_administered >= max_items:
            return StoppingDecision(
                True,
                SessionStatus.MAX_QUESTIONS_REACHED,
                StoppingReason.MAX_QUESTIONS,
                details,
            )

        if items_administered < min_items:
            return StoppingDecision(False, SessionStatus.IN_PROGRESS, details=details)

        if standard_error <= self.se_threshold:
            if lower > passing_standard:
                return StoppingDecision(
                    True, SessionStatus.PASSED, StoppingReason.CONFIDENCE_INTERVAL, details
                )
            if upper < passing_standard:
                return StoppingDecision(
                    True, SessionStatus.FAILED, StoppingReason.CONFIDENCE_INTERVAL, details
                )

        return StoppingDecision(False, SessionStatus.IN_PROGRESS, details=details)


def final_determination(
    status: SessionStatus, theta: float, passing_standard: float
) -> Determination:
    """Reported pass/fail label for a terminated session.

    Confidence-based stops keep their verdict. Sessions cut short by time or
    length are judged by theta against the standard directly.
    """
    if status is SessionStatus.PASSED:
        return Determination.PASS
    if status is SessionStatus.FAILED:
        return Determination.FAIL
    return Determination.PASS if theta >= passing_standard else Determination.FAIL
