"""
Tests for the shortage classification policy.

All tests are pure; no database.
"""

from __future__ import annotations

from datetime import date

import pytest

from procurement_engine.core.exceptions import InvalidQuantityError
from procurement_engine.db.models.procurement import ShortageTier, Urgency
from procurement_engine.services.shortage import (
    bom_urgency,
    classify_shortage,
    demand_urgency,
    low_stock_urgency,
    target_build_quantity,
)

# =============================================================================
# classify_shortage
# =============================================================================


class TestClassifyShortage:

    @pytest.mark.parametrize(
        "required, available, shortfall",
        [(10, 4, 6), (10, 10, 0), (3, 50, 0), (0, 0, 0), (7, 0, 7)],
    )
    def test_shortfall_is_required_minus_available_floored_at_zero(self, required, available, shortfall):
        assert classify_shortage(required, available).shortfall == shortfall

    @pytest.mark.parametrize("required", [0, 1, 25])
    def test_nothing_on_hand_is_always_critical(self, required):
        assert classify_shortage(required, 0).tier == ShortageTier.CRITICAL

    def test_partial_stock_is_shortage(self):
        result = classify_shortage(10, 4)
        assert result.tier == ShortageTier.SHORTAGE
        assert result.has_shortfall

    def test_covered_demand_is_sufficient(self):
        result = classify_shortage(10, 12)
        assert result.tier == ShortageTier.SUFFICIENT
        assert not result.has_shortfall

    def test_reorder_level_marks_covered_stock_as_shortage(self):
        result = classify_shortage(5, 8, reorder_level=8)
        assert result.tier == ShortageTier.SHORTAGE
        assert result.shortfall == 0

    def test_reorder_level_below_stock_is_sufficient(self):
        assert classify_shortage(5, 8, reorder_level=7).tier == ShortageTier.SUFFICIENT

    def test_negative_stock_counts_as_none_on_hand(self):
        result = classify_shortage(4, -3)
        assert result.available == 0
        assert result.shortfall == 4
        assert result.tier == ShortageTier.CRITICAL

    def test_negative_requirement_raises(self):
        with pytest.raises(InvalidQuantityError):
            classify_shortage(-1, 5)


# =============================================================================
# Build target and urgency
# =============================================================================


class TestTargetBuildQuantity:

    def test_minimum_batch_applies_below_it(self):
        assert target_build_quantity(reorder_level=2, minimum_batch_size=5) == 5

    def test_reorder_level_applies_above_minimum(self):
        assert target_build_quantity(reorder_level=12, minimum_batch_size=5) == 12


class TestUrgency:

    def test_bom_urgency_never_below_high(self):
        assert bom_urgency(0) == Urgency.CRITICAL
        assert bom_urgency(-2) == Urgency.CRITICAL
        assert bom_urgency(1) == Urgency.HIGH
        assert bom_urgency(500) == Urgency.HIGH

    def test_demand_urgency_mirrors_tier(self):
        assert demand_urgency(ShortageTier.CRITICAL) == Urgency.CRITICAL
        assert demand_urgency(ShortageTier.SHORTAGE) == Urgency.HIGH

    def test_demand_urgency_escalates_close_installation(self):
        today = date(2026, 3, 2)
        assert demand_urgency(ShortageTier.SHORTAGE, date(2026, 3, 9), today) == Urgency.CRITICAL
        assert demand_urgency(ShortageTier.SHORTAGE, date(2026, 3, 10), today) == Urgency.HIGH

    @pytest.mark.parametrize(
        "on_hand, reorder_level, expected",
        [
            (0, 40, Urgency.CRITICAL),
            (9, 40, Urgency.CRITICAL),
            (10, 40, Urgency.HIGH),
            (20, 40, Urgency.MEDIUM),
            (30, 40, Urgency.LOW),
            (40, 40, Urgency.LOW),
        ],
    )
    def test_low_stock_urgency_by_share_of_reorder_level(self, on_hand, reorder_level, expected):
        assert low_stock_urgency(on_hand, reorder_level) == expected
