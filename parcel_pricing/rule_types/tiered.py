from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping

from parcel_pricing.calculators.discounts import percent_of

from .base import D, STAGE_CONTRACT, RuleOutcome, RuleSpec, as_decimal, register

DEFAULT_TIER_PCTS: Mapping[str, D] = MappingProxyType(
    {
        "bronze": D("5"),
        "silver": D("10"),
        "gold": D("15"),
        "platinum": D("20"),
    }
)


@register
@dataclass(frozen=True)
class TieredDiscount(RuleSpec):
    """Percentage by customer tier; runs after contract discounts."""

    kind = "customer_tier"
    stage = STAGE_CONTRACT
    stage_order = 1
    line_type = "tier_discount"

    tier_pcts: Mapping[str, D] = field(default_factory=lambda: DEFAULT_TIER_PCTS)

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        tiers = params.get("tiers")
        if not tiers:
            return {}
        return {"tier_pcts": MappingProxyType({str(k).lower(): as_decimal(v, D("0")) for k, v in tiers.items()})}

    def evaluate(self, price, ctx) -> RuleOutcome:
        if ctx.customer is None:
            return RuleOutcome.skipped({"reason": "no_customer"})

        tier = ctx.customer_tier
        pct = self.tier_pcts.get(tier, D("0"))
        if pct <= 0:
            return RuleOutcome.skipped({"reason": "tier_without_discount", "tier": tier})

        return RuleOutcome.applied(percent_of(price, pct), {"tier": tier, "pct": str(pct)})
