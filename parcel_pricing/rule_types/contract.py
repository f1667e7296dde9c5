from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

from parcel_pricing.calculators.discounts import SHAPE_PERCENTAGE, normalize_shape, select_tier, shaped_amount

from .base import D, STAGE_CONTRACT, RuleOutcome, RuleSpec, as_decimal, register

SHAPE_TIERED = "tiered"


@dataclass(frozen=True)
class ContractTier:
    min_value: D
    shape: str
    value: D

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ContractTier":
        return ContractTier(
            min_value=as_decimal(d.get("min_value"), D("0")),
            shape=normalize_shape(d.get("discount_type")),
            value=as_decimal(d.get("discount_value"), D("0")),
        )


@register
@dataclass(frozen=True)
class ContractDiscount(RuleSpec):
    """Negotiated customer pricing: percentage, fixed, or tiered by order value."""

    kind = "contract"
    stage = STAGE_CONTRACT
    stage_order = 0
    line_type = "contract_discount"
    default_priority = 50

    customer_ids: FrozenSet[str] = frozenset()  # empty = any customer
    discount_type: str = SHAPE_PERCENTAGE
    discount_value: D = D("0")
    tiers: Tuple[ContractTier, ...] = ()
    max_discount: Optional[D] = None

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        raw_type = str(params.get("discount_type") or SHAPE_PERCENTAGE).strip().lower()
        return {
            "customer_ids": frozenset(str(c) for c in params.get("customer_ids") or []),
            "discount_type": SHAPE_TIERED if raw_type == SHAPE_TIERED else normalize_shape(raw_type),
            "discount_value": as_decimal(params.get("discount_value"), D("0")),
            "tiers": tuple(ContractTier.from_dict(t) for t in params.get("tiers") or []),
            "max_discount": as_decimal(params.get("max_discount")),
        }

    def evaluate(self, price, ctx) -> RuleOutcome:
        if self.customer_ids:
            if ctx.customer is None:
                return RuleOutcome.skipped({"reason": "no_customer"})
            if ctx.customer.customer_id not in self.customer_ids:
                return RuleOutcome.skipped({"reason": "customer_not_covered"})

        if self.discount_type == SHAPE_TIERED:
            tier = select_tier(self.tiers, price, key=lambda t: t.min_value)
            if tier is None:
                return RuleOutcome.skipped({"reason": "no_matching_tier", "value": str(price)})
            amount, meta = shaped_amount(price, tier.shape, tier.value, self.max_discount)
            meta["tier_min"] = str(tier.min_value)
        else:
            amount, meta = shaped_amount(price, self.discount_type, self.discount_value, self.max_discount)

        if amount <= 0:
            return RuleOutcome.skipped({"reason": "zero_amount", **meta})
        return RuleOutcome.applied(amount, meta)
