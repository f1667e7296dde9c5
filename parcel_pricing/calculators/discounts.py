from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple, TypeVar

from parcel_pricing.engine.context import ZERO, qmoney

D = Decimal

SHAPE_PERCENTAGE = "percentage"
SHAPE_FIXED = "fixed"

SHAPE_ALIASES: Dict[str, str] = {
    "percentage": SHAPE_PERCENTAGE,
    "percent": SHAPE_PERCENTAGE,
    "fixed": SHAPE_FIXED,
    "fixed_amount": SHAPE_FIXED,
}

T = TypeVar("T")


def normalize_shape(raw: Any) -> str:
    s = str(raw or SHAPE_PERCENTAGE).strip().lower()
    return SHAPE_ALIASES.get(s, s)


def percent_of(amount: D, pct: D) -> D:
    return qmoney(amount * pct / D("100"))


def clamp_discount(amount: D, price: D) -> D:
    """Discount never negative and never larger than the price it reduces."""
    if price <= ZERO or amount <= ZERO:
        return ZERO
    return qmoney(min(amount, price))


def shaped_amount(price: D, shape: str, value: D, max_discount: Optional[D] = None) -> Tuple[D, Dict[str, Any]]:
    """
    percentage -> price * value / 100
    fixed      -> value
    Either can be capped by `max_discount`.
    """
    if shape == SHAPE_PERCENTAGE:
        amount = percent_of(price, value)
    elif shape == SHAPE_FIXED:
        amount = qmoney(value)
    else:
        return ZERO, {"reason": "unknown_shape", "shape": shape}

    meta: Dict[str, Any] = {"shape": shape, "value": str(value)}
    if max_discount is not None and amount > max_discount:
        amount = qmoney(max_discount)
        meta["capped_at"] = str(max_discount)
    return amount, meta


def select_tier(tiers: Sequence[T], value: D, key) -> Optional[T]:
    """Highest tier whose minimum (via `key`) is <= value."""
    chosen: Optional[T] = None
    chosen_min: Optional[D] = None
    for t in tiers:
        tmin = key(t)
        if value >= tmin and (chosen_min is None or tmin > chosen_min):
            chosen, chosen_min = t, tmin
    return chosen
