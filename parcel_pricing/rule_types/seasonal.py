from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping

from parcel_pricing.calculators.discounts import percent_of
from parcel_pricing.engine.seasons import (
    SEASON_BLACK_FRIDAY,
    SEASON_CHRISTMAS,
    SEASON_SUMMER,
    SEASON_WINTER,
)

from .base import D, STAGE_SEASONAL, RuleOutcome, RuleSpec, as_decimal, register

DEFAULT_SEASON_PCTS: Mapping[str, D] = MappingProxyType(
    {
        SEASON_BLACK_FRIDAY: D("25"),
        SEASON_CHRISTMAS: D("15"),
        SEASON_SUMMER: D("10"),
        SEASON_WINTER: D("5"),
    }
)


@register
@dataclass(frozen=True)
class SeasonalDiscount(RuleSpec):
    kind = "seasonal"
    stage = STAGE_SEASONAL
    line_type = "seasonal_discount"

    season: str = ""
    percentage: D = D("0")

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        season = str(params.get("season") or "").strip().lower()
        default = DEFAULT_SEASON_PCTS.get(season, D("0"))
        return {"season": season, "percentage": as_decimal(params.get("percentage"), default)}

    def evaluate(self, price, ctx) -> RuleOutcome:
        period = ctx.seasonal_period
        if period != self.season:
            return RuleOutcome.skipped({"reason": "season_mismatch", "season": period})
        if self.percentage <= 0:
            return RuleOutcome.skipped({"reason": "zero_percentage", "season": period})
        return RuleOutcome.applied(percent_of(price, self.percentage), {"season": period, "pct": str(self.percentage)})
