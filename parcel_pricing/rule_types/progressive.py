from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from parcel_pricing.calculators.discounts import percent_of, select_tier

from .base import D, STAGE_PROGRESSIVE, RuleOutcome, RuleSpec, as_decimal, register


@dataclass(frozen=True)
class ProgressiveTier:
    min_value: D
    pct: D

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ProgressiveTier":
        return ProgressiveTier(min_value=as_decimal(d.get("min_value"), D("0")), pct=as_decimal(d.get("pct"), D("0")))


DEFAULT_PROGRESSIVE_TIERS: Tuple[ProgressiveTier, ...] = (
    ProgressiveTier(D("1000"), D("5")),
    ProgressiveTier(D("2000"), D("7.5")),
    ProgressiveTier(D("5000"), D("10")),
    ProgressiveTier(D("10000"), D("15")),
)


@register
@dataclass(frozen=True)
class ProgressiveDiscount(RuleSpec):
    """Percentage by cumulative order value."""

    kind = "progressive"
    stage = STAGE_PROGRESSIVE
    line_type = "progressive_discount"

    tiers: Tuple[ProgressiveTier, ...] = DEFAULT_PROGRESSIVE_TIERS

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        tiers = params.get("tiers")
        if not tiers:
            return {}
        return {"tiers": tuple(ProgressiveTier.from_dict(t) for t in tiers)}

    def evaluate(self, price, ctx) -> RuleOutcome:
        value = ctx.total_order_value
        if value is None:
            return RuleOutcome.skipped({"reason": "no_order_value"})

        tier = select_tier(self.tiers, value, key=lambda t: t.min_value)
        if tier is None or tier.pct <= 0:
            return RuleOutcome.skipped({"reason": "no_matching_tier", "value": str(value)})

        return RuleOutcome.applied(
            percent_of(price, tier.pct),
            {"pct": str(tier.pct), "order_value": str(value), "tier_min": str(tier.min_value)},
        )
