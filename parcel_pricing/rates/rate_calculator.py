from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from parcel_pricing.core.errors import CapacityError, ConfigurationError
from parcel_pricing.core.logging_config import logger
from parcel_pricing.engine.collaborators import WeightRuleLookup
from parcel_pricing.engine.context import Dimensions, WeightDetail, qweight, to_decimal

from .weight_rules import WeightRule
from .weights import chargeable_weight, divisor_for

D = Decimal


@dataclass(frozen=True)
class CarrierProfile:
    """What a carrier can physically carry, and where."""

    code: str
    name: str
    active: bool = True
    supported_zones: FrozenSet[str] = field(default_factory=frozenset)  # empty = all
    max_weight_kg: Optional[D] = None
    max_dimensions_cm: Optional[Tuple[D, D, D]] = None
    volumetric_divisor: Optional[int] = None
    sort_order: int = 0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CarrierProfile":
        dims = d.get("max_dimensions_cm")
        return CarrierProfile(
            code=str(d["code"]).strip().upper(),
            name=str(d.get("name") or d["code"]),
            active=bool(d.get("active", True)),
            supported_zones=frozenset(str(z).strip().lower() for z in d.get("supported_zones") or []),
            max_weight_kg=to_decimal(d.get("max_weight_kg")),
            max_dimensions_cm=tuple(D(str(v)) for v in dims) if dims else None,  # type: ignore[arg-type]
            volumetric_divisor=int(d["volumetric_divisor"]) if d.get("volumetric_divisor") is not None else None,
            sort_order=int(d.get("sort_order", 0)),
        )

    @property
    def divisor(self) -> int:
        if self.volumetric_divisor is not None:
            return self.volumetric_divisor
        return divisor_for(self.code)

    def supports_zone(self, zone_code: str) -> bool:
        return not self.supported_zones or str(zone_code).strip().lower() in self.supported_zones

    def can_handle_weight(self, weight_kg: D) -> bool:
        return self.max_weight_kg is None or weight_kg <= self.max_weight_kg

    def can_handle_dimensions(self, dimensions: Dimensions) -> bool:
        if not self.max_dimensions_cm:
            return True
        return not dimensions.exceeds(self.max_dimensions_cm)

    def check_capacity(self, zone_code: str, weight_kg: D, dimensions: Dimensions) -> None:
        """Raise CapacityError naming the first check this carrier fails."""
        if not self.active:
            raise CapacityError(f"Carrier {self.code} is not active", carrier=self.code, zone=zone_code)
        if not self.supports_zone(zone_code):
            raise CapacityError(
                f"Carrier {self.code} does not support zone {zone_code}", carrier=self.code, zone=zone_code
            )
        if not self.can_handle_weight(weight_kg):
            raise CapacityError(
                f"Weight {weight_kg} kg exceeds carrier limit {self.max_weight_kg} kg",
                carrier=self.code,
                zone=zone_code,
                weight=weight_kg,
                max_weight_kg=str(self.max_weight_kg),
            )
        if not self.can_handle_dimensions(dimensions):
            raise CapacityError(
                "Dimensions exceed carrier limit",
                carrier=self.code,
                zone=zone_code,
                weight=weight_kg,
                dimensions=dimensions.to_dict(),
                max_dimensions_cm=[str(v) for v in self.max_dimensions_cm or ()],
            )


@dataclass(frozen=True)
class BaseRate:
    carrier_code: str
    zone_code: str
    service_type: str
    price: D
    weight: WeightDetail
    rule_id: str
    method: str
    breakdown: List[Dict[str, Any]] = field(default_factory=list)


class RateCalculator:
    """
    Base carrier price from zone + service + chargeable weight.

    Exactly one weight rule must contain the chargeable weight; zero or
    several matches are configuration errors.
    """

    def __init__(self, weight_rules: WeightRuleLookup):
        self.weight_rules = weight_rules

    def find_rule(self, carrier_code: str, zone_code: str, service_type: str, weight: D) -> WeightRule:
        candidates: Sequence[WeightRule] = self.weight_rules.weight_rules_for(carrier_code, zone_code, service_type)
        matches = [r for r in candidates if r.active and r.contains(weight)]

        if not matches:
            raise ConfigurationError(
                f"No weight rule for {weight} kg ({carrier_code}/{zone_code}/{service_type})",
                carrier=carrier_code,
                zone=zone_code,
                weight=weight,
                service_type=service_type,
            )
        if len(matches) > 1:
            raise ConfigurationError(
                "Overlapping weight rules match the same weight",
                carrier=carrier_code,
                zone=zone_code,
                weight=weight,
                rule_id=",".join(sorted(r.id for r in matches)),
            )
        return matches[0]

    def calculate(
        self,
        carrier: CarrierProfile,
        zone_code: str,
        service_type: str,
        weight_kg: Any,
        dimensions: Dimensions,
    ) -> BaseRate:
        weight = chargeable_weight(weight_kg, dimensions, carrier.divisor, carrier_code=carrier.code)
        rule = self.find_rule(carrier.code, zone_code, service_type, weight.chargeable)
        price = rule.price_for(weight.chargeable)

        breakdown: List[Dict[str, Any]] = [
            {"label": "Base rate", "amount": str(price), "rule_id": rule.id, "method": rule.method}
        ]
        if weight.volumetric_applied:
            breakdown.append(
                {
                    "label": "Volumetric weight applied",
                    "detail": (
                        f"{qweight(weight.chargeable)} kg "
                        f"({dimensions.volume_cm3} cm3 / {weight.divisor})"
                    ),
                }
            )

        logger.bind(
            carrier=carrier.code,
            zone=zone_code,
            service_type=service_type,
            actual_weight=str(weight.actual),
            chargeable_weight=str(weight.chargeable),
            base_price=str(price),
            rule_id=rule.id,
        ).debug("base_rate_calculated")

        return BaseRate(
            carrier_code=carrier.code,
            zone_code=zone_code,
            service_type=service_type,
            price=price,
            weight=weight,
            rule_id=rule.id,
            method=rule.method,
            breakdown=breakdown,
        )
