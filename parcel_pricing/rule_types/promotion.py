from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from parcel_pricing.calculators.discounts import SHAPE_FIXED, SHAPE_PERCENTAGE, normalize_shape, shaped_amount
from parcel_pricing.engine.context import qmoney

from .base import D, STAGE_PROMOTION, RuleOutcome, RuleSpec, as_decimal, register

PROMO_PERCENTAGE = SHAPE_PERCENTAGE
PROMO_FIXED = SHAPE_FIXED
PROMO_BUY_X_GET_Y = "buy_x_get_y"
PROMO_FREE_SHIPPING = "free_shipping"

PROMOTION_TYPES = (PROMO_PERCENTAGE, PROMO_FIXED, PROMO_BUY_X_GET_Y, PROMO_FREE_SHIPPING)


@register
@dataclass(frozen=True)
class Promotion(RuleSpec):
    """
    Promotional pricing. Only the first eligible promotion (by priority,
    then id) is applied per calculation.

    When the caller supplies promo codes, only promotions carrying one of
    them are eligible; without codes every active promotion is.
    """

    kind = "promotion"
    stage = STAGE_PROMOTION
    line_type = "promotion"

    promotion_type: str = PROMO_PERCENTAGE
    discount_value: D = D("0")
    promo_code: Optional[str] = None
    max_discount_per_order: Optional[D] = None
    buy_quantity: int = 2
    get_quantity: int = 1
    get_discount_pct: D = D("100")
    usage_limit: Optional[int] = None
    usage_count: int = 0

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        raw = str(params.get("promotion_type") or PROMO_PERCENTAGE).strip().lower()
        code = params.get("promo_code")
        limit = params.get("usage_limit")
        return {
            "promotion_type": raw if raw in (PROMO_BUY_X_GET_Y, PROMO_FREE_SHIPPING) else normalize_shape(raw),
            "discount_value": as_decimal(params.get("discount_value"), D("0")),
            "promo_code": str(code).strip().upper() if code else None,
            "max_discount_per_order": as_decimal(params.get("max_discount_per_order")),
            "buy_quantity": int(params.get("buy_quantity", 2)),
            "get_quantity": int(params.get("get_quantity", 1)),
            "get_discount_pct": as_decimal(params.get("get_discount_pct"), D("100")),
            "usage_limit": int(limit) if limit is not None else None,
            "usage_count": int(params.get("usage_count", 0)),
        }

    @property
    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def ineligible_reason(self, ctx) -> Optional[str]:
        if self.usage_exhausted:
            return "usage_limit_reached"
        if ctx.promo_codes and self.promo_code not in ctx.promo_codes:
            return "promo_code_not_supplied"
        return None

    def _buy_x_get_y(self, price: D, quantity: int) -> tuple:
        if self.buy_quantity <= 0 or quantity <= 0:
            return D("0.00"), {"reason": "invalid_quantity"}
        free_items = min((quantity // self.buy_quantity) * self.get_quantity, quantity)
        unit_price = price / D(quantity)
        amount = qmoney(unit_price * D(free_items) * self.get_discount_pct / D("100"))
        return amount, {"quantity": quantity, "free_items": free_items, "unit_price": str(qmoney(unit_price))}

    def evaluate(self, price, ctx) -> RuleOutcome:
        reason = self.ineligible_reason(ctx)
        if reason:
            return RuleOutcome.skipped({"reason": reason})

        if self.promotion_type == PROMO_FREE_SHIPPING:
            amount, meta = qmoney(price), {"shape": PROMO_FREE_SHIPPING}
        elif self.promotion_type == PROMO_BUY_X_GET_Y:
            amount, meta = self._buy_x_get_y(price, ctx.quantity)
        else:
            amount, meta = shaped_amount(price, self.promotion_type, self.discount_value)

        if self.max_discount_per_order is not None and amount > self.max_discount_per_order:
            amount = qmoney(self.max_discount_per_order)
            meta["capped_at"] = str(self.max_discount_per_order)

        if self.promo_code:
            meta["promo_code"] = self.promo_code
        return RuleOutcome.applied(amount, meta)
