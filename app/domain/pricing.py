"""Dynamic pricing engine.

Pure, deterministic fee computation for a print order. Given a shop's rate
table, the straight-line distance to the customer, the shop's recent order
load and the evaluation instant, it produces a fee breakdown.

Amounts are ``Decimal`` rupees. Every chargeable step is rounded to two
decimals (half up) in this order: subtotal, convenience fee, GST, total.
The engine performs no I/O; callers supply the recent-order count.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

from app.domain.entities import GeoPoint, PrintConfig, ShopPricing

EARTH_RADIUS_KM = 6371.0

CURRENCY = "INR"
PLATFORM_FEE = Decimal("2")
CONVENIENCE_FEE_RATE = Decimal("0.05")
GST_RATE = Decimal("0.18")

BASE_DISTANCE_KM = Decimal("2")
DISTANCE_RATE_PER_KM = Decimal("0.05")
MAX_DISTANCE_MULTIPLIER = Decimal("1.5")

MIN_SURGE = Decimal("1.0")
MAX_SURGE = Decimal("2.0")
SURGE_WINDOW_MINUTES = 60

# (minimum recent orders, bonus, label), highest threshold first
DEMAND_TIERS: tuple[tuple[int, Decimal, str], ...] = (
    (10, Decimal("0.5"), "Very high demand"),
    (5, Decimal("0.3"), "High demand"),
    (3, Decimal("0.1"), "Moderate demand"),
)
PEAK_HOUR_RANGES: tuple[tuple[int, int], ...] = ((10, 12), (15, 18))
PEAK_BONUS = Decimal("0.2")
WEEKDAY_PEAK_BONUS = Decimal("0.1")
PEAK_LABEL = "Peak hours"

_CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    """Round to two decimal places, half away from zero."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


# ============================================================================
# Distance
# ============================================================================


def haversine_km(origin: GeoPoint, destination: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(destination.lat - origin.lat)
    d_lng = math.radians(destination.lng - origin.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat))
        * math.cos(math.radians(destination.lat))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_multiplier(distance_km: float | Decimal) -> Decimal:
    """Price amplifier for distance beyond the included radius.

    Returns 1.0 within ``BASE_DISTANCE_KM``, then grows by 0.05 per extra
    kilometre, capped at ``MAX_DISTANCE_MULTIPLIER``.
    """
    distance = Decimal(str(distance_km))
    if distance <= BASE_DISTANCE_KM:
        return Decimal("1.0")
    multiplier = Decimal("1.0") + DISTANCE_RATE_PER_KM * (distance - BASE_DISTANCE_KM)
    return min(multiplier, MAX_DISTANCE_MULTIPLIER)


# ============================================================================
# Surge
# ============================================================================


@dataclass(frozen=True)
class SurgeBonus:
    """One additive contribution to the surge multiplier."""

    amount: Decimal
    label: str | None = None


def is_peak_hour(at: datetime) -> bool:
    return any(start <= at.hour <= end for start, end in PEAK_HOUR_RANGES)


def is_weekday(at: datetime) -> bool:
    return at.weekday() < 5


def _demand_bonus(recent_active_orders: int, at: datetime) -> SurgeBonus | None:
    for threshold, bonus, label in DEMAND_TIERS:
        if recent_active_orders >= threshold:
            return SurgeBonus(bonus, label)
    return None


def _peak_bonus(recent_active_orders: int, at: datetime) -> SurgeBonus | None:
    if is_peak_hour(at):
        return SurgeBonus(PEAK_BONUS, PEAK_LABEL)
    return None


def _weekday_peak_bonus(recent_active_orders: int, at: datetime) -> SurgeBonus | None:
    if is_peak_hour(at) and is_weekday(at):
        return SurgeBonus(WEEKDAY_PEAK_BONUS)
    return None


SurgeRule = Callable[[int, datetime], SurgeBonus | None]

# Evaluated in this order, summed, then capped once
SURGE_RULES: tuple[SurgeRule, ...] = (_demand_bonus, _peak_bonus, _weekday_peak_bonus)


def surge_multiplier(recent_active_orders: int, at: datetime) -> tuple[Decimal, str | None]:
    """Compute the demand/time-of-day surge multiplier.

    Args:
        recent_active_orders: Shop's PENDING/ACCEPTED/PRINTING orders created
            in the last ``SURGE_WINDOW_MINUTES``.
        at: Evaluation instant in the shop's local time.

    Returns:
        Tuple of (multiplier, reason). Reason is None when no surge applies.
    """
    surge = MIN_SURGE
    labels: list[str] = []
    for rule in SURGE_RULES:
        bonus = rule(recent_active_orders, at)
        if bonus is None:
            continue
        surge += bonus.amount
        if bonus.label:
            labels.append(bonus.label)

    surge = min(surge, MAX_SURGE)
    reason = " + ".join(labels) if surge > MIN_SURGE and labels else None
    return surge, reason


def surge_level(multiplier: Decimal) -> str:
    """Bucket a surge multiplier for display."""
    if multiplier >= Decimal("1.5"):
        return "high"
    if multiplier >= Decimal("1.2"):
        return "medium"
    return "low"


# ============================================================================
# Breakdown
# ============================================================================


@dataclass(frozen=True)
class PricingBreakdown:
    """Fee breakdown for a print order. Not persisted."""

    base_cost: Decimal
    distance_km: Decimal
    distance_multiplier: Decimal
    surge_multiplier: Decimal
    surge_reason: str | None
    subtotal: Decimal
    platform_fee: Decimal
    convenience_fee: Decimal
    gst: Decimal
    total: Decimal
    currency: str = CURRENCY

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseCost": float(self.base_cost),
            "distanceKm": float(self.distance_km),
            "distanceMultiplier": float(self.distance_multiplier),
            "surgeMultiplier": float(self.surge_multiplier),
            "surgeReason": self.surge_reason,
            "subtotal": float(self.subtotal),
            "platformFee": float(self.platform_fee),
            "convenienceFee": float(self.convenience_fee),
            "gst": float(self.gst),
            "total": float(self.total),
            "currency": self.currency,
        }


def calculate_price(
    pricing: ShopPricing,
    print_config: PrintConfig,
    distance_km: float | Decimal,
    recent_active_orders: int,
    at: datetime,
) -> PricingBreakdown:
    """Compute the fee breakdown for a print order.

    ``pages`` and ``copies`` are assumed to be at least 1; callers validate
    them before pricing.

    Args:
        pricing: Shop rate table.
        print_config: Requested print job.
        distance_km: Straight-line distance between customer and shop.
        recent_active_orders: Recent active order count for the shop.
        at: Evaluation instant in the shop's local time.

    Returns:
        PricingBreakdown with step-wise rounded amounts.
    """
    per_page_rate = pricing.per_page_rate(print_config.color, print_config.double_sided)
    base_cost = per_page_rate * print_config.pages * print_config.copies
    if print_config.wants_binding:
        base_cost += pricing.binding

    dist_multiplier = distance_multiplier(distance_km)
    surge, surge_reason = surge_multiplier(recent_active_orders, at)

    subtotal = round2(base_cost * dist_multiplier * surge)
    platform_fee = PLATFORM_FEE
    convenience_fee = round2(subtotal * CONVENIENCE_FEE_RATE)
    gst = round2((platform_fee + convenience_fee) * GST_RATE)
    total = round2(subtotal + platform_fee + convenience_fee + gst)

    return PricingBreakdown(
        base_cost=round2(base_cost),
        distance_km=round2(Decimal(str(distance_km))),
        distance_multiplier=round2(dist_multiplier),
        surge_multiplier=round2(surge),
        surge_reason=surge_reason,
        subtotal=subtotal,
        platform_fee=platform_fee,
        convenience_fee=convenience_fee,
        gst=gst,
        total=total,
    )
