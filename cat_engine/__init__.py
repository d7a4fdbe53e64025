"""Adaptive examination engine: 3PL IRT with confidence-interval stopping."""

from .errors import (
    CATError,
    DuplicateResponseError,
    InvalidConfigError,
    InvalidScoreError,
    MissingCalibrationError,
    SessionNotActiveError,
    UnknownItemError,
)
from .irt import AbilityEstimate, AbilityEstimator, EAPEstimator
from .models import (
    Category,
    Determination,
    Difficulty,
    IRTParameters,
    Item,
    ItemMetadata,
    ItemType,
    Result,
    SessionState,
    SessionStatus,
    StoppingReason,
    TimeAnalysis,
)
from .parameters import CalibratedParameterProvider, HeuristicParameterProvider
from .pool import ItemPool
from .selection import ItemSelector
from .session import CATEngine, SessionConfig
from .stopping import StoppingRule

__all__ = [
    "AbilityEstimate",
    "AbilityEstimator",
    "CATEngine",
    "CATError",
    "CalibratedParameterProvider",
    "Category",
    "Determination",
    "Difficulty",
    "DuplicateResponseError",
    "EAPEstimator",
    "HeuristicParameterProvider",
    "IRTParameters",
    "InvalidConfigError",
    "InvalidScoreError",
    "Item",
    "ItemMetadata",
    "ItemPool",
    "ItemSelector",
    "ItemType",
    "MissingCalibrationError",
    "Result",
    "SessionConfig",
    "SessionNotActiveError",
    "SessionState",
    "SessionStatus",
    "StoppingReason",
    "StoppingRule",
    "TimeAnalysis",
    "UnknownItemError",
]
