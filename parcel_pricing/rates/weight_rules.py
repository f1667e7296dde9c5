from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from parcel_pricing.core.errors import ConfigurationError
from parcel_pricing.engine.context import qmoney, to_decimal

D = Decimal

METHOD_FLAT = "flat"
METHOD_PER_KG = "per_kg"
METHOD_TIERED = "tiered"

# Names used by older rate tables
METHOD_ALIASES: Dict[str, str] = {
    "flat": METHOD_FLAT,
    "flat_rate": METHOD_FLAT,
    "fixed": METHOD_FLAT,
    "per_kg": METHOD_PER_KG,
    "tiered": METHOD_TIERED,
    "stepped": METHOD_TIERED,
    "per_kg_step": METHOD_TIERED,
}

WEIGHT_METHODS: Tuple[str, ...] = (METHOD_FLAT, METHOD_PER_KG, METHOD_TIERED)


@dataclass(frozen=True)
class WeightRule:
    """
    Rate row for one carrier/zone/service scope.

    Range is [weight_from, weight_to); weight_to None = unbounded.
    """

    id: str
    carrier_code: str
    zone_code: str
    service_type: str
    weight_from: D
    weight_to: Optional[D]
    method: str
    price: Optional[D] = None
    price_per_kg: Optional[D] = None
    threshold_weight: Optional[D] = None
    min_price: Optional[D] = None
    max_price: Optional[D] = None
    active: bool = True

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "WeightRule":
        raw_method = str(d.get("method") or METHOD_FLAT).strip().lower()
        return WeightRule(
            id=str(d["id"]),
            carrier_code=str(d["carrier"]).strip().upper(),
            zone_code=str(d["zone"]).strip().lower(),
            service_type=str(d.get("service_type") or "standard").strip().lower(),
            weight_from=D(str(d.get("weight_from", "0"))),
            weight_to=to_decimal(d.get("weight_to")),
            method=METHOD_ALIASES.get(raw_method, raw_method),
            price=to_decimal(d.get("price")),
            price_per_kg=to_decimal(d.get("price_per_kg")),
            threshold_weight=to_decimal(d.get("threshold_weight")),
            min_price=to_decimal(d.get("min_price")),
            max_price=to_decimal(d.get("max_price")),
            active=bool(d.get("active", True)),
        )

    @property
    def scope(self) -> Tuple[str, str, str]:
        return (self.carrier_code, self.zone_code, self.service_type)

    def contains(self, weight: D) -> bool:
        if weight < self.weight_from:
            return False
        return self.weight_to is None or weight < self.weight_to

    def price_for(self, weight: D) -> D:
        if self.method == METHOD_FLAT:
            amount = self._require(self.price, "price")
        elif self.method == METHOD_PER_KG:
            amount = weight * self._require(self.price_per_kg, "price_per_kg")
        elif self.method == METHOD_TIERED:
            base = self._require(self.price, "price")
            threshold = self.threshold_weight if self.threshold_weight is not None else self.weight_from
            if weight <= threshold:
                amount = base
            else:
                amount = base + (weight - threshold) * self._require(self.price_per_kg, "price_per_kg")
        else:
            raise ConfigurationError(
                f"Unknown calculation method: {self.method}",
                carrier=self.carrier_code,
                zone=self.zone_code,
                weight=weight,
                rule_id=self.id,
            )

        if self.min_price is not None and amount < self.min_price:
            amount = self.min_price
        if self.max_price is not None and amount > self.max_price:
            amount = self.max_price
        return qmoney(amount)

    def _require(self, value: Optional[D], name: str) -> D:
        if value is None:
            raise ConfigurationError(
                f"Weight rule {self.id} ({self.method}) is missing {name}",
                carrier=self.carrier_code,
                zone=self.zone_code,
                rule_id=self.id,
            )
        return value

    def describe_range(self) -> str:
        upper = "inf" if self.weight_to is None else str(self.weight_to)
        return f"[{self.weight_from}, {upper})"
