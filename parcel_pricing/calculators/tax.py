from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from parcel_pricing.engine.context import qmoney


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: Decimal
    rate_pct: Decimal
    tax_amount: Decimal
    total: Decimal


def calc_tax(subtotal: Decimal, rate_pct: Decimal) -> TaxBreakdown:
    """Flat-rate tax on the post-discount subtotal."""
    sub = qmoney(Decimal(subtotal))
    rate = Decimal(rate_pct)
    tax_amount = qmoney(sub * rate / Decimal("100"))
    return TaxBreakdown(sub, rate, tax_amount, qmoney(sub + tax_amount))
