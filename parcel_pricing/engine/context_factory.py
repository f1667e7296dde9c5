from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Tuple

from parcel_pricing.core.logging_config import logger
from parcel_pricing.core.settings import settings

from .collaborators import CustomerHistoryLookup
from .context import (
    DEFAULT_VOLUMETRIC_DIVISOR,
    CustomerSnapshot,
    CustomerTier,
    Dimensions,
    RuleContext,
    qmoney,
    qweight,
    to_decimal,
)

D = Decimal

# (tier, min lifetime value, min monthly orders), best first; both must hold
TIER_THRESHOLDS: Tuple[Tuple[str, D, int], ...] = (
    (CustomerTier.PLATINUM.value, D("50000"), 100),
    (CustomerTier.GOLD.value, D("25000"), 50),
    (CustomerTier.SILVER.value, D("10000"), 20),
    (CustomerTier.BRONZE.value, D("2000"), 5),
)


def derive_tier(lifetime_value: D, monthly_orders: int) -> str:
    for tier, min_value, min_orders in TIER_THRESHOLDS:
        if lifetime_value >= min_value and monthly_orders >= min_orders:
            return tier
    return CustomerTier.STANDARD.value


def _codes(codes: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted({str(c).strip().upper() for c in codes if str(c).strip()}))


class ContextFactory:
    """
    Builds immutable RuleContexts.

    `today` is injected so calculations stay reproducible; the customer
    snapshot is fetched once per context.
    """

    def __init__(
        self,
        customers: Optional[CustomerHistoryLookup] = None,
        *,
        currency: Optional[str] = None,
        today: Callable[[], date] = date.today,
    ):
        self.customers = customers
        self.currency = currency or settings.DEFAULT_CURRENCY
        self.today = today

    def create(
        self,
        *,
        weight_kg: Any,
        length_cm: Any,
        width_cm: Any,
        height_cm: Any,
        service_type: str,
        zone_code: str,
        base_price: Any,
        carrier_code: Optional[str] = None,
        calculation_date: Optional[date] = None,
        currency: Optional[str] = None,
        promo_codes: Iterable[str] = (),
        quantity: int = 1,
        volumetric_divisor: int = DEFAULT_VOLUMETRIC_DIVISOR,
        total_order_value: Any = None,
    ) -> RuleContext:
        return RuleContext(
            weight_kg=qweight(weight_kg),
            dimensions=Dimensions.of(length_cm, width_cm, height_cm),
            service_type=str(service_type).strip().lower(),
            zone_code=str(zone_code).strip().lower(),
            base_price=qmoney(base_price),
            calculation_date=calculation_date or self.today(),
            currency=currency or self.currency,
            carrier_code=carrier_code.upper() if carrier_code else None,
            total_order_value=to_decimal(total_order_value),
            promo_codes=_codes(promo_codes),
            quantity=int(quantity),
            volumetric_divisor=int(volumetric_divisor),
        )

    def enrich(self, ctx: RuleContext, customer_id: Optional[str]) -> RuleContext:
        """Attach the customer's history; unknown customers leave ctx as-is."""
        if not customer_id or self.customers is None:
            return ctx

        snapshot = self.customers.customer_snapshot(customer_id)
        if snapshot is None:
            logger.bind(customer_id=customer_id).info("customer_history_not_found")
            return ctx

        if not snapshot.tier:
            snapshot = replace(
                snapshot, tier=derive_tier(snapshot.lifetime_value, snapshot.monthly_order_count)
            )
        return ctx.with_customer(snapshot)

    def create_for_customer(self, customer_id: Optional[str], **kwargs: Any) -> RuleContext:
        return self.enrich(self.create(**kwargs), customer_id)

    @staticmethod
    def qualifies_for_volume_discount(ctx: RuleContext) -> bool:
        return ctx.qualifies_for_volume_discount()


def snapshot_from_dict(d: dict) -> CustomerSnapshot:
    return CustomerSnapshot(
        customer_id=str(d["customer_id"]),
        tier=d.get("tier"),
        monthly_order_count=int(d.get("monthly_order_count", 0)),
        monthly_spend=D(str(d.get("monthly_spend", "0"))),
        lifetime_value=D(str(d.get("lifetime_value", "0"))),
        total_order_count=int(d.get("total_order_count", 0)),
        is_first_order=bool(d.get("is_first_order", int(d.get("total_order_count", 0)) == 0)),
        is_business=bool(d.get("is_business", False)),
    )
