"""Tests for parameter providers and the item pool."""

import random

import pytest

from cat_engine.errors import MissingCalibrationError, UnknownItemError
from cat_engine.models import Category, Difficulty, IRTParameters, ItemMetadata, ItemType
from cat_engine.parameters import (
    BASE_DIFFICULTY,
    TYPE_ADJUSTMENT,
    CalibratedParameterProvider,
    HeuristicParameterProvider,
    cognitive_level,
)
from cat_engine.pool import ItemPool


def metadata(
    item_id: str = "q1",
    item_type: ItemType = ItemType.MULTIPLE_CHOICE,
    difficulty: Difficulty = Difficulty.MEDIUM,
    category: Category = Category.PHARMACOLOGICAL,
) -> ItemMetadata:
    return ItemMetadata(id=item_id, category=category, item_type=item_type, difficulty=difficulty)


# ---------------------------------------------------------------
# Heuristic parameters
# ---------------------------------------------------------------


class TestHeuristicParameters:
    def test_all_combinations_in_range(self):
        """b near base + type adjustment, a in [0.8, 2.0], c by format."""
        provider = HeuristicParameterProvider(random.Random(1))
        for item_type in ItemType:
            for difficulty in Difficulty:
                for _ in range(20):
                    params = provider.parameters_for(metadata(item_type=item_type, difficulty=difficulty))
                    center = BASE_DIFFICULTY[difficulty] + TYPE_ADJUSTMENT[item_type]
                    assert abs(params.b - center) <= 0.2 + 1e-12
                    assert -3.0 <= params.b <= 3.0
                    assert 0.8 <= params.a <= 2.0
                    expected_c = 0.2 if item_type is ItemType.MULTIPLE_CHOICE else 0.1
                    assert params.c == expected_c

    def test_base_difficulties(self):
        assert BASE_DIFFICULTY[Difficulty.EASY] == -1.5
        assert BASE_DIFFICULTY[Difficulty.MEDIUM] == 0.0
        assert BASE_DIFFICULTY[Difficulty.HARD] == 1.5

    def test_complex_formats_are_harder(self):
        """Recognition formats skew easier, case studies hardest."""
        assert TYPE_ADJUSTMENT[ItemType.MULTIPLE_CHOICE] < 0
        assert TYPE_ADJUSTMENT[ItemType.CASE_STUDY] == max(TYPE_ADJUSTMENT.values())
        assert (
            TYPE_ADJUSTMENT[ItemType.SELECT_ALL]
            < TYPE_ADJUSTMENT[ItemType.MATRIX]
            < TYPE_ADJUSTMENT[ItemType.BOW_TIE]
            < TYPE_ADJUSTMENT[ItemType.CASE_STUDY]
        )

    def test_identical_metadata_gets_distinct_parameters(self):
        provider = HeuristicParameterProvider(random.Random(5))
        first = provider.parameters_for(metadata("q1"))
        second = provider.parameters_for(metadata("q2"))
        assert first != second

    def test_seeded_provider_is_reproducible(self):
        rows = [metadata(f"q{i}", item_type=t) for i, t in enumerate(ItemType)]
        first, second = (HeuristicParameterProvider(random.Random(9)) for _ in range(2))
        assert [first.parameters_for(r) for r in rows] == [second.parameters_for(r) for r in rows]


class TestCognitiveLevel:
    def test_levels(self):
        assert cognitive_level(metadata(difficulty=Difficulty.HARD)) == 4
        assert cognitive_level(metadata(difficulty=Difficulty.EASY)) == 3
        assert cognitive_level(metadata(item_type=ItemType.HIGHLIGHT)) == 5
        assert cognitive_level(metadata(item_type=ItemType.BOW_TIE)) == 6
        assert cognitive_level(metadata(item_type=ItemType.CASE_STUDY)) == 6

    def test_levels_in_range(self):
        for item_type in ItemType:
            for difficulty in Difficulty:
                assert 1 <= cognitive_level(metadata(item_type=item_type, difficulty=difficulty)) <= 6


# ---------------------------------------------------------------
# Calibrated parameters
# ---------------------------------------------------------------


class TestCalibratedParameters:
    def test_serves_calibrated_triple(self):
        provider = CalibratedParameterProvider({"q1": IRTParameters(a=1.7, b=-0.4, c=0.15)})
        assert provider.parameters_for(metadata("q1")) == IRTParameters(a=1.7, b=-0.4, c=0.15)

    def test_missing_without_fallback_raises(self):
        provider = CalibratedParameterProvider({})
        with pytest.raises(MissingCalibrationError):
            provider.parameters_for(metadata("q1"))

    def test_missing_uses_fallback(self):
        provider = CalibratedParameterProvider(
            {}, fallback=HeuristicParameterProvider(random.Random(0))
        )
        params = provider.parameters_for(metadata("q1"))
        assert params.c == 0.2

    def test_from_records(self):
        provider = CalibratedParameterProvider.from_records(
            [
                {"id": "q1", "a": "1.2", "b": "0.3", "c": "0.1"},
                {"id": "q2", "a": 0.9, "b": -1.0},
            ]
        )
        assert len(provider) == 2
        assert provider.parameters_for(metadata("q1")) == IRTParameters(a=1.2, b=0.3, c=0.1)
        assert provider.parameters_for(metadata("q2")).c == 0.0

    def test_from_records_missing_field(self):
        with pytest.raises(ValueError, match="missing field"):
            CalibratedParameterProvider.from_records([{"id": "q1", "b": 0.0}])

    def test_rejects_invalid_parameters(self):
        with pytest.raises(ValueError, match="discrimination"):
            CalibratedParameterProvider({"q1": IRTParameters(a=0.0, b=0.0)})
        with pytest.raises(ValueError, match="guessing"):
            CalibratedParameterProvider({"q1": IRTParameters(a=1.0, b=0.0, c=1.0)})


# ---------------------------------------------------------------
# Item pool
# ---------------------------------------------------------------


class TestItemPool:
    def test_from_metadata_parameterizes_items(self):
        rows = [metadata(f"q{i}") for i in range(5)]
        pool = ItemPool.from_metadata(rows, HeuristicParameterProvider(random.Random(2)))
        assert len(pool) == 5
        assert "q3" in pool
        item = pool.get("q3")
        assert item.category is Category.PHARMACOLOGICAL
        assert item.cognitive_level == 3

    def test_provider_is_swappable(self):
        """A calibrated provider drives the pool without other changes."""
        calibrations = {"q1": IRTParameters(a=2.2, b=1.1, c=0.05)}
        pool = ItemPool.from_metadata([metadata("q1")], CalibratedParameterProvider(calibrations))
        assert pool.get("q1").params == calibrations["q1"]

    def test_duplicate_ids_rejected(self):
        pool = ItemPool()
        pool.add(metadata("q1"))
        with pytest.raises(ValueError, match="Duplicate"):
            pool.add(metadata("q1"))

    def test_unknown_item(self):
        with pytest.raises(UnknownItemError):
            ItemPool().get("missing")

    def test_available_excludes_used(self, make_pool):
        pool = make_pool(5)
        available = pool.available({"q0", "q2"})
        assert [item.id for item in available] == ["q1", "q3", "q4"]

    def test_items_are_immutable(self, make_pool):
        item = make_pool(1).get("q0")
        with pytest.raises(AttributeError):
            item.params = IRTParameters(a=1.0, b=0.0)  # type: ignore[misc]
