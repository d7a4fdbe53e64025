"""
Simulated examinees for demonstrating and checking engine behavior.

A simulated examinee with known true ability answers each item correctly
with probability P(true_theta) under the 3PL model, which lets the engine's
estimate be compared against the truth.
"""

import itertools
import random
from dataclasses import dataclass, field

from .irt import probability
from .models import Category, Difficulty, IRTParameters, ItemMetadata, ItemType, Result
from .parameters import HeuristicParameterProvider
from .pool import ItemPool
from .selection import ItemSelector
from .session import CATEngine, SessionConfig


@dataclass(frozen=True)
class SimulationStep:
    step: int
    item_id: str
    item_difficulty: float
    score: float
    estimated_theta: float
    standard_error: float


@dataclass
class SimulationReport:
    true_theta: float
    result: Result
    history: list[SimulationStep] = field(default_factory=list)

    @property
    def estimation_error(self) -> float:
        return abs(self.result.theta - self.true_theta)


class SimulatedExaminee:
    def __init__(self, true_theta: float, rng: random.Random | None = None) -> None:
        self.true_theta = true_theta
        self.rng = rng or random.Random()

    def answer(self, params: IRTParameters) -> float:
        """Bernoulli draw: 1.0 with probability P(true_theta), else 0.0."""
        return 1.0 if self.rng.random() < probability(self.true_theta, params) else 0.0


def build_synthetic_pool(size: int, rng: random.Random | None = None) -> ItemPool:
    """Pool of ``size`` items cycling through categories, types and labels."""
    rng = rng or random.Random()
    combos = itertools.cycle(
        itertools.product(list(Category), list(ItemType), list(Difficulty))
    )
    shuffled = list(itertools.islice(combos, size))
    rng.shuffle(shuffled)

    metadata = [
        ItemMetadata(
            id=f"sim_q{i}",
            category=category,
            item_type=item_type,
            difficulty=difficulty,
        )
        for i, (category, item_type, difficulty) in enumerate(shuffled)
    ]
    return ItemPool.from_metadata(metadata, HeuristicParameterProvider(rng))


def simulate_session(
    pool: ItemPool,
    true_theta: float,
    config: SessionConfig | None = None,
    seed: int | None = None,
) -> SimulationReport:
    """Run a complete session against a simulated examinee.

    Args:
        pool: Item pool to draw from. It is not modified.
        true_theta: The examinee's true ability.
        config: Session configuration.
        seed: Seeds both item selection and the examinee's answers.

    Returns:
        SimulationReport with the final result and per-item history.
    """
    rng = random.Random(seed)
    engine = CATEngine(pool, selector=ItemSelector(rng=rng))
    examinee = SimulatedExaminee(true_theta, rng)
    history: list[SimulationStep] = []

    engine.start_session(config)
    while (item := engine.next_item()) is not None:
        score = examinee.answer(item.params)
        state = engine.process_response(item.id, score)
        if state is None:
            break
        history.append(
            SimulationStep(
                step=len(history) + 1,
                item_id=item.id,
                item_difficulty=item.params.b,
                score=score,
                estimated_theta=state.theta,
                standard_error=state.standard_error,
            )
        )

    result = engine.get_results()
    if result is None:
        raise RuntimeError("Simulated session ended without a result")
    return SimulationReport(true_theta=true_theta, result=result, history=history)
