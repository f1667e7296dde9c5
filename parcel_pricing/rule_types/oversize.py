from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from parcel_pricing.engine.context import OVERSIZE_LIMITS_CM, qmoney

from .base import D, STAGE_SURCHARGE, Eligibility, RuleOutcome, RuleSpec, as_decimal, register


@register
@dataclass(frozen=True)
class OversizeSurcharge(RuleSpec):
    """
    Adjusts the base price (not a discount).

    `base_fee` when any dimension exceeds its limit, plus
    `volume_fee` x (volume / limit volume - 1) when the volume does too.
    """

    kind = "oversize_surcharge"
    stage = STAGE_SURCHARGE
    line_type = "oversize_surcharge"

    base_fee: D = D("10.00")
    volume_fee: D = D("10.00")
    limits_cm: Tuple[D, D, D] = tuple(D(v) for v in OVERSIZE_LIMITS_CM)  # type: ignore[assignment]

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if params.get("base_fee") is not None:
            out["base_fee"] = as_decimal(params["base_fee"])
        if params.get("volume_fee") is not None:
            out["volume_fee"] = as_decimal(params["volume_fee"])
        if params.get("limits_cm"):
            out["limits_cm"] = tuple(D(str(v)) for v in params["limits_cm"])
        return out

    @property
    def limit_volume(self) -> D:
        length, width, height = self.limits_cm
        return length * width * height

    def evaluate(self, price, ctx) -> RuleOutcome:
        dims = ctx.dimensions
        if not dims.exceeds(self.limits_cm):
            return RuleOutcome.skipped({"reason": "within_limits"})

        amount = self.base_fee
        meta: Dict[str, Any] = {"base_fee": str(self.base_fee)}

        volume = dims.volume_cm3
        if volume > self.limit_volume:
            ratio = volume / self.limit_volume
            extra = self.volume_fee * (ratio - D("1"))
            amount += extra
            meta["volume_ratio"] = str(ratio.quantize(D("0.0001")))
            meta["volume_fee"] = str(qmoney(extra))

        return RuleOutcome.applied(qmoney(amount), meta)


DEFAULT_OVERSIZE = OversizeSurcharge(eligibility=Eligibility(id="oversize_default", title="Oversize surcharge"))
