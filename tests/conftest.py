"""Shared fixtures: hand-built items, pools and a controllable clock."""

import random
from typing import Callable

import pytest

from cat_engine.models import Category, Difficulty, IRTParameters, Item, ItemType
from cat_engine.pool import ItemPool

CATEGORIES = list(Category)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_item(
    item_id: str,
    b: float = 0.0,
    a: float = 1.0,
    c: float = 0.0,
    category: Category = Category.MANAGEMENT_OF_CARE,
    item_type: ItemType = ItemType.MULTIPLE_CHOICE,
) -> Item:
    return Item(
        id=item_id,
        category=category,
        item_type=item_type,
        difficulty=Difficulty.MEDIUM,
        params=IRTParameters(a=a, b=b, c=c),
    )


@pytest.fixture
def make_item() -> Callable[..., Item]:
    return build_item


@pytest.fixture
def make_pool() -> Callable[..., ItemPool]:
    """Pool of ``size`` identical-parameter items spread over all categories."""

    def factory(size: int, b: float = 0.0, a: float = 1.0, c: float = 0.0) -> ItemPool:
        pool = ItemPool()
        for i in range(size):
            pool.add_item(build_item(f"q{i}", b=b, a=a, c=c, category=CATEGORIES[i % len(CATEGORIES)]))
        return pool

    return factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)
