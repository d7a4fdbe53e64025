"""
Item parameter providers.

The pool asks a provider for the (a, b, c) triple of every item it holds.
``HeuristicParameterProvider`` derives synthetic parameters from item
metadata and is the default; ``CalibratedParameterProvider`` serves triples
estimated elsewhere.
"""

import logging
import random
from typing import Iterable, Mapping, Protocol

from .errors import MissingCalibrationError
from .models import Difficulty, IRTParameters, ItemMetadata, ItemType

logger = logging.getLogger(__name__)

B_MIN, B_MAX = -3.0, 3.0
B_JITTER = 0.2
A_RANGE = (0.8, 2.0)

BASE_DIFFICULTY: dict[Difficulty, float] = {
    Difficulty.EASY: -1.5,
    Difficulty.MEDIUM: 0.0,
    Difficulty.HARD: 1.5,
}

TYPE_ADJUSTMENT: dict[ItemType, float] = {
    ItemType.MULTIPLE_CHOICE: -0.3,
    ItemType.SELECT_ALL: 0.3,
    ItemType.CLOZE_DROPDOWN: 0.4,
    ItemType.HOT_SPOT: 0.4,
    ItemType.ORDERED_RESPONSE: 0.5,
    ItemType.MATRIX: 0.5,
    ItemType.HIGHLIGHT: 0.6,
    ItemType.BOW_TIE: 0.8,
    ItemType.CASE_STUDY: 1.0,
}

# Single-best-answer items can be guessed; everything else much less so.
GUESSING_SINGLE_ANSWER = 0.2
GUESSING_OTHER = 0.1

COGNITIVE_LEVEL: dict[ItemType, int] = {
    ItemType.MULTIPLE_CHOICE: 3,
    ItemType.SELECT_ALL: 4,
    ItemType.ORDERED_RESPONSE: 4,
    ItemType.CLOZE_DROPDOWN: 3,
    ItemType.HOT_SPOT: 3,
    ItemType.MATRIX: 4,
    ItemType.HIGHLIGHT: 5,
    ItemType.BOW_TIE: 6,
    ItemType.CASE_STUDY: 6,
}


class ItemParameterProvider(Protocol):
    def parameters_for(self, metadata: ItemMetadata) -> IRTParameters: ...


def cognitive_level(metadata: ItemMetadata) -> int:
    """Bloom's taxonomy level (1-6) implied by an item's format."""
    if metadata.item_type is ItemType.MULTIPLE_CHOICE and metadata.difficulty is Difficulty.HARD:
        return 4
    return COGNITIVE_LEVEL.get(metadata.item_type, 3)


class HeuristicParameterProvider:
    """Synthetic 3PL parameters from difficulty label and item type.

    A stand-in for real calibration:
        b = base(difficulty) + adjustment(type) + U(-0.2, 0.2), clamped to [-3, 3]
        a = U(0.8, 2.0)
        c = 0.2 for multiple-choice, 0.1 otherwise

    Args:
        rng: Random source. Pass a seeded ``random.Random`` for
            reproducible parameters.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def parameters_for(self, metadata: ItemMetadata) -> IRTParameters:
        base = BASE_DIFFICULTY.get(metadata.difficulty, 0.0)
        adjustment = TYPE_ADJUSTMENT.get(metadata.item_type, 0.0)
        jitter = self.rng.uniform(-B_JITTER, B_JITTER)
        b = max(B_MIN, min(B_MAX, base + adjustment + jitter))

        a = self.rng.uniform(*A_RANGE)

        if metadata.item_type is ItemType.MULTIPLE_CHOICE:
            c = GUESSING_SINGLE_ANSWER
        else:
            c = GUESSING_OTHER

        return IRTParameters(a=a, b=b, c=c)


def validate_parameters(item_id: str, params: IRTParameters) -> IRTParameters:
    """Reject triples the 3PL model cannot use.

    Raises:
        ValueError: If a <= 0 or c is outside [0, 1).
    """
    if params.a <= 0:
        raise ValueError(f"Item {item_id}: discrimination must be positive, got {params.a}")
    if not 0.0 <= params.c < 1.0:
        raise ValueError(f"Item {item_id}: guessing must be in [0, 1), got {params.c}")
    return params


class CalibratedParameterProvider:
    """Serves externally calibrated parameters, keyed by item id.

    Args:
        calibrations: Mapping of item id to calibrated parameters.
        fallback: Provider used for items without a calibration. Without
            one, such items raise ``MissingCalibrationError``.
    """

    def __init__(
        self,
        calibrations: Mapping[str, IRTParameters],
        fallback: ItemParameterProvider | None = None,
    ) -> None:
        self.calibrations = {
            item_id: validate_parameters(item_id, params)
            for item_id, params in calibrations.items()
        }
        self.fallback = fallback

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, object]],
        fallback: ItemParameterProvider | None = None,
    ) -> "CalibratedParameterProvider":
        """Build from rows with ``id``, ``a``, ``b`` and optional ``c`` keys.

        Raises:
            ValueError: If a row is missing a required key or has a bad value.
        """
        calibrations: dict[str, IRTParameters] = {}
        for row in records:
            try:
                item_id = str(row["id"])
                params = IRTParameters(
                    a=float(row["a"]),  # type: ignore[arg-type]
                    b=float(row["b"]),  # type: ignore[arg-type]
                    c=float(row.get("c", 0.0)),  # type: ignore[arg-type]
                )
            except KeyError as exc:
                raise ValueError(f"Calibration record missing field {exc}: {row!r}") from exc
            calibrations[item_id] = params
        return cls(calibrations, fallback=fallback)

    def parameters_for(self, metadata: ItemMetadata) -> IRTParameters:
        params = self.calibrations.get(metadata.id)
        if params is not None:
            return params
        if self.fallback is None:
            raise MissingCalibrationError(metadata.id)
        logger.debug("No calibration for %s, using fallback provider", metadata.id)
        return self.fallback.parameters_for(metadata)

    def __len__(self) -> int:
        return len(self.calibrations)
