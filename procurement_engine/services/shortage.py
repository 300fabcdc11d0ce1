"""
Shortage classification policy.

Pure functions; no store access. Shared by the BOM sweep, the low-stock sweep
and the sales-order stock requirement path.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from procurement_engine.core.exceptions import InvalidQuantityError
from procurement_engine.db.models.procurement import ShortageTier, Urgency


@dataclass(frozen=True)
class ShortageAssessment:
    required: int
    available: int
    shortfall: int
    tier: ShortageTier

    @property
    def has_shortfall(self) -> bool:
        return self.shortfall > 0


# PUBLIC_INTERFACE
def classify_shortage(
    required: int, available: int, reorder_level: Optional[int] = None
) -> ShortageAssessment:
    """
    Classify a required/available pair.

    Parameters:
        required: quantity needed, must be >= 0
        available: quantity on hand; negative stock counts as none on hand
        reorder_level: when given (BOM-driven checks), stock at or below it is a shortage
    Returns:
        ShortageAssessment with shortfall = max(0, required - available) and its tier
    """
    if required < 0:
        raise InvalidQuantityError(f"Required quantity must not be negative (got {required})")
    available = max(0, available)
    shortfall = max(0, required - available)

    if available == 0:
        tier = ShortageTier.CRITICAL
    elif available < required:
        tier = ShortageTier.SHORTAGE
    elif reorder_level is not None and available <= reorder_level:
        tier = ShortageTier.SHORTAGE
    else:
        tier = ShortageTier.SUFFICIENT
    return ShortageAssessment(required=required, available=available, shortfall=shortfall, tier=tier)


# PUBLIC_INTERFACE
def target_build_quantity(reorder_level: int, minimum_batch_size: int) -> int:
    """Assembly build target that bottleneck components are sized against."""
    return max(reorder_level, minimum_batch_size)


def bom_urgency(available: int) -> Urgency:
    # A BOM shortage blocks a whole assembly, so it is never below high.
    return Urgency.CRITICAL if available <= 0 else Urgency.HIGH


def demand_urgency(
    tier: ShortageTier, installation_date: Optional[date] = None, today: Optional[date] = None
) -> Urgency:
    """
    Urgency for a sales-order shortage: mirrors the tier, escalated to critical
    when installation is due within a week.
    """
    urgency = Urgency.CRITICAL if tier == ShortageTier.CRITICAL else Urgency.HIGH
    if installation_date is not None and urgency != Urgency.CRITICAL:
        days_until = (installation_date - (today or date.today())).days
        if days_until <= 7:
            urgency = Urgency.CRITICAL
    return urgency


def low_stock_urgency(on_hand: int, reorder_level: int) -> Urgency:
    """Urgency by the share of the reorder level still on hand."""
    if on_hand <= 0 or reorder_level <= 0:
        return Urgency.CRITICAL
    percent = on_hand / reorder_level * 100
    if percent < 25:
        return Urgency.CRITICAL
    if percent < 50:
        return Urgency.HIGH
    if percent < 75:
        return Urgency.MEDIUM
    return Urgency.LOW
