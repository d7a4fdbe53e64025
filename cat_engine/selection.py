"""
Next-item selection: maximum information with content balancing.

Each candidate is scored as

    information(theta) * (1 + 0.3 * bonus)
    bonus = max(0, (1/K - share of its category) * 2)

and the next item is drawn uniformly from the five best scores, which keeps
the sequence from being fully predictable between examinees.
"""

import logging
import random
from typing import Mapping, Sequence

from .irt import information
from .models import Category, Item

logger = logging.getLogger(__name__)

TOP_N = 5
BALANCE_WEIGHT = 0.3
BONUS_SCALE = 2.0


class ItemSelector:
    """Chooses the next item for a session.

    Args:
        rng: Random source for the top-N draw. Inject a seeded
            ``random.Random`` to pin the sequence in tests.
        top_n: Number of best candidates to draw from.
        balance_weight: Weight of the content-balance bonus.
        num_categories: Number of content domains (K).
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        top_n: int = TOP_N,
        balance_weight: float = BALANCE_WEIGHT,
        num_categories: int = len(Category),
    ) -> None:
        if top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")
        self.rng = rng or random.Random()
        self.top_n = top_n
        self.balance_weight = balance_weight
        self.num_categories = num_categories

    def content_bonus(
        self,
        item: Item,
        category_counts: Mapping[Category, int],
        total_administered: int,
    ) -> float:
        """Bonus for items whose category is under-represented so far."""
        ratio = category_counts.get(item.category, 0) / max(total_administered, 1)
        return max(0.0, (1.0 / self.num_categories - ratio) * BONUS_SCALE)

    def score(
        self,
        item: Item,
        theta: float,
        category_counts: Mapping[Category, int],
        total_administered: int,
    ) -> float:
        bonus = self.content_bonus(item, category_counts, total_administered)
        return information(theta, item.params) * (1.0 + self.balance_weight * bonus)

    def rank(
        self,
        theta: float,
        candidates: Sequence[Item],
        category_counts: Mapping[Category, int],
        total_administered: int,
    ) -> list[tuple[float, Item]]:
        """Candidates with their composite scores, best first."""
        scored = [
            (self.score(item, theta, category_counts, total_administered), item)
            for item in candidates
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return scored

    def select(
        self,
        theta: float,
        candidates: Sequence[Item],
        category_counts: Mapping[Category, int],
        total_administered: int,
    ) -> Item | None:
        """Select the next item.

        Args:
            theta: Current ability estimate.
            candidates: Items not yet administered in this session.
            category_counts: Items administered so far per category.
            total_administered: Items administered so far.

        Returns:
            The selected item, or None if no candidates remain.
        """
        if not candidates:
            return None

        top = self.rank(theta, candidates, category_counts, total_administered)[: self.top_n]
        score, item = top[self.rng.randrange(len(top))]
        logger.debug("Selected %s (score=%.4f) from top %d", item.id, score, len(top))
        return item
