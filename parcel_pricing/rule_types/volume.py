from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from parcel_pricing.calculators.discounts import percent_of

from .base import D, STAGE_VOLUME, RuleOutcome, RuleSpec, as_decimal, register


@dataclass(frozen=True)
class VolumeTier:
    min_orders: int
    min_spend: D
    pct: D

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "VolumeTier":
        return VolumeTier(
            min_orders=int(d.get("min_orders", 0)),
            min_spend=as_decimal(d.get("min_spend"), D("0")),
            pct=as_decimal(d.get("pct"), D("0")),
        )


DEFAULT_VOLUME_TIERS: Tuple[VolumeTier, ...] = (
    VolumeTier(10, D("1000"), D("5")),
    VolumeTier(25, D("2500"), D("10")),
    VolumeTier(50, D("5000"), D("15")),
    VolumeTier(100, D("10000"), D("20")),
)


@register
@dataclass(frozen=True)
class VolumeDiscount(RuleSpec):
    """Monthly volume: both order count and spend must reach a tier."""

    kind = "volume"
    stage = STAGE_VOLUME
    line_type = "volume_discount"

    tiers: Tuple[VolumeTier, ...] = DEFAULT_VOLUME_TIERS

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        tiers = params.get("tiers")
        if not tiers:
            return {}
        return {"tiers": tuple(VolumeTier.from_dict(t) for t in tiers)}

    def evaluate(self, price, ctx) -> RuleOutcome:
        if ctx.customer is None:
            return RuleOutcome.skipped({"reason": "no_customer"})

        orders = ctx.monthly_order_count
        spend = ctx.monthly_spend
        best = None
        for t in self.tiers:
            if orders >= t.min_orders and spend >= t.min_spend:
                if best is None or t.pct > best.pct:
                    best = t

        if best is None or best.pct <= 0:
            return RuleOutcome.skipped({"reason": "no_matching_tier", "orders": orders, "spend": str(spend)})

        return RuleOutcome.applied(
            percent_of(price, best.pct),
            {"pct": str(best.pct), "orders": orders, "spend": str(spend), "tier_min_orders": best.min_orders},
        )
