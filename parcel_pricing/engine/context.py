from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .seasons import season_for

D = Decimal

MONEY = D("0.01")
WEIGHT = D("0.001")
ZERO = D("0.00")

DEFAULT_VOLUMETRIC_DIVISOR = 5000

# Standard parcel envelope (cm); anything above is oversized
OVERSIZE_LIMITS_CM: Tuple[int, int, int] = (120, 80, 80)


def qmoney(x: Any) -> D:
    return D(str(x)).quantize(MONEY, rounding=ROUND_HALF_UP)


def qweight(x: Any) -> D:
    return D(str(x)).quantize(WEIGHT, rounding=ROUND_HALF_UP)


def to_decimal(v: Any) -> Optional[D]:
    if v is None:
        return None
    if isinstance(v, Decimal):
        return v
    return D(str(v))


# -----------------------------
# Enums
# -----------------------------


class ServiceType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"
    ECONOMY = "economy"
    PREMIUM = "premium"


SERVICE_TYPES: Tuple[str, ...] = tuple(s.value for s in ServiceType)


class CustomerTier(str, Enum):
    STANDARD = "standard"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


# -----------------------------
# Money / geometry
# -----------------------------


@dataclass(frozen=True)
class Money:
    currency: str
    amount: D

    def quantized(self) -> "Money":
        return Money(self.currency, qmoney(self.amount))

    def __str__(self) -> str:
        return f"{qmoney(self.amount)} {self.currency}"


@dataclass(frozen=True)
class Dimensions:
    length_cm: D
    width_cm: D
    height_cm: D

    @staticmethod
    def of(length: Any, width: Any, height: Any) -> "Dimensions":
        return Dimensions(D(str(length)), D(str(width)), D(str(height)))

    @property
    def volume_cm3(self) -> D:
        return self.length_cm * self.width_cm * self.height_cm

    def as_tuple(self) -> Tuple[D, D, D]:
        return (self.length_cm, self.width_cm, self.height_cm)

    def exceeds(self, limits: Tuple[Any, Any, Any]) -> bool:
        return any(v > D(str(lim)) for v, lim in zip(self.as_tuple(), limits))

    def to_dict(self) -> Dict[str, str]:
        return {
            "length": str(self.length_cm),
            "width": str(self.width_cm),
            "height": str(self.height_cm),
        }


@dataclass(frozen=True)
class WeightDetail:
    actual: D
    volumetric: D
    chargeable: D
    divisor: int = DEFAULT_VOLUMETRIC_DIVISOR

    @property
    def volumetric_applied(self) -> bool:
        return self.chargeable > self.actual

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actual": str(self.actual),
            "volumetric": str(self.volumetric),
            "chargeable": str(self.chargeable),
            "divisor": self.divisor,
            "volumetric_applied": self.volumetric_applied,
        }


# -----------------------------
# Customer snapshot
# -----------------------------


@dataclass(frozen=True)
class CustomerSnapshot:
    """Read-only view of a customer's history, fetched once per calculation."""

    customer_id: str
    tier: Optional[str] = None  # None = derive from history
    monthly_order_count: int = 0
    monthly_spend: D = ZERO
    lifetime_value: D = ZERO
    total_order_count: int = 0
    is_first_order: bool = False
    is_business: bool = False

    @property
    def is_returning(self) -> bool:
        return self.total_order_count > 0


# -----------------------------
# Rule context
# -----------------------------


@dataclass(frozen=True)
class RuleContext:
    """
    Immutable calculation context.

    Created once per calculation; enrichment goes through `with_()` which
    returns a new value.
    """

    weight_kg: D
    dimensions: Dimensions
    service_type: str
    zone_code: str
    base_price: D
    calculation_date: date
    currency: str = "PLN"
    carrier_code: Optional[str] = None
    customer: Optional[CustomerSnapshot] = None
    total_order_value: Optional[D] = None
    promo_codes: Tuple[str, ...] = ()
    quantity: int = 1
    volumetric_divisor: int = DEFAULT_VOLUMETRIC_DIVISOR

    def with_(self, **changes: Any) -> "RuleContext":
        return replace(self, **changes)

    def with_customer(self, customer: Optional[CustomerSnapshot]) -> "RuleContext":
        changes: Dict[str, Any] = {"customer": customer}
        if customer is not None and self.total_order_value is None:
            changes["total_order_value"] = customer.lifetime_value
        return replace(self, **changes)

    def with_base_price(self, base_price: Any) -> "RuleContext":
        return replace(self, base_price=qmoney(base_price))

    # --- derived values ---

    @property
    def volumetric_weight(self) -> D:
        return qweight(self.dimensions.volume_cm3 / D(self.volumetric_divisor))

    @property
    def chargeable_weight(self) -> D:
        return max(qweight(self.weight_kg), self.volumetric_weight)

    @property
    def weight_detail(self) -> WeightDetail:
        return WeightDetail(
            actual=qweight(self.weight_kg),
            volumetric=self.volumetric_weight,
            chargeable=self.chargeable_weight,
            divisor=self.volumetric_divisor,
        )

    @property
    def is_oversized(self) -> bool:
        return self.dimensions.exceeds(OVERSIZE_LIMITS_CM)

    @property
    def seasonal_period(self) -> str:
        return season_for(self.calculation_date)

    @property
    def customer_tier(self) -> str:
        if self.customer is not None and self.customer.tier:
            return self.customer.tier
        return CustomerTier.STANDARD.value

    @property
    def monthly_order_count(self) -> int:
        return self.customer.monthly_order_count if self.customer else 0

    @property
    def monthly_spend(self) -> D:
        return self.customer.monthly_spend if self.customer else ZERO

    def qualifies_for_volume_discount(self) -> bool:
        return self.monthly_order_count >= 10 and self.monthly_spend >= D("1000.00")

    def money(self, amount: Any) -> Money:
        return Money(self.currency, D(str(amount))).quantized()


# -----------------------------
# Engine output
# -----------------------------


@dataclass(frozen=True)
class DiscountLine:
    type: str
    source: str
    amount: D
    rule_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "source": self.source,
            "amount": str(qmoney(self.amount)),
        }
        if self.rule_id is not None:
            out["rule_id"] = self.rule_id
        if self.meta:
            out["meta"] = dict(self.meta)
        return out


@dataclass(frozen=True)
class RuleResult:
    currency: str
    original_price: D
    final_price: D
    total_discount: D
    weight: WeightDetail
    applied_rules: List[str] = field(default_factory=list)
    applied_promotions: List[str] = field(default_factory=list)
    discount_breakdown: List[DiscountLine] = field(default_factory=list)
    surcharges: List[DiscountLine] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    season: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    @staticmethod
    def error(
        ctx: RuleContext, errors: List[Dict[str, Any]], warnings: Optional[List[Dict[str, Any]]] = None
    ) -> "RuleResult":
        price = qmoney(ctx.base_price)
        return RuleResult(
            currency=ctx.currency,
            original_price=price,
            final_price=price,
            total_discount=ZERO,
            weight=ctx.weight_detail,
            errors=list(errors),
            warnings=list(warnings or []),
            season=ctx.seasonal_period,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "original_price": str(self.original_price),
            "final_price": str(self.final_price),
            "total_discount": str(self.total_discount),
            "applied_rules": list(self.applied_rules),
            "applied_promotions": list(self.applied_promotions),
            "discount_breakdown": [d.to_dict() for d in self.discount_breakdown],
            "surcharges": [s.to_dict() for s in self.surcharges],
            "weight": self.weight.to_dict(),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "season": self.season,
        }
