from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from parcel_pricing.core.errors import ConfigurationError, ValidationError
from parcel_pricing.engine.context import ZERO, qmoney, to_decimal

D = Decimal

SERVICE_FLAT = "flat"
SERVICE_PERCENTAGE = "percentage"
SERVICE_PER_KG = "per_kg"
SERVICE_COD = "cod"

SERVICE_METHOD_ALIASES: Dict[str, str] = {
    "flat": SERVICE_FLAT,
    "flat_rate": SERVICE_FLAT,
    "percentage": SERVICE_PERCENTAGE,
    "per_kg": SERVICE_PER_KG,
    "cod": SERVICE_COD,
    "cod_percentage": SERVICE_COD,
}


@dataclass(frozen=True)
class AdditionalService:
    code: str
    name: str
    method: str
    flat_fee: D = ZERO
    percentage: D = ZERO
    price_per_kg: D = ZERO
    zones: FrozenSet[str] = field(default_factory=frozenset)  # empty = all
    active: bool = True

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AdditionalService":
        raw = str(d.get("method") or SERVICE_FLAT).strip().lower()
        return AdditionalService(
            code=str(d["code"]).strip().lower(),
            name=str(d.get("name") or d["code"]),
            method=SERVICE_METHOD_ALIASES.get(raw, raw),
            flat_fee=to_decimal(d.get("flat_fee")) or ZERO,
            percentage=to_decimal(d.get("percentage")) or ZERO,
            price_per_kg=to_decimal(d.get("price_per_kg")) or ZERO,
            zones=frozenset(str(z).strip().lower() for z in d.get("zones") or []),
            active=bool(d.get("active", True)),
        )

    @property
    def needs_declared_value(self) -> bool:
        return self.method in (SERVICE_PERCENTAGE, SERVICE_COD)

    def available_in(self, zone_code: str) -> bool:
        return self.active and (not self.zones or zone_code in self.zones)

    def price_for(self, *, declared_value: Optional[D], chargeable_weight: D) -> D:
        if self.method == SERVICE_FLAT:
            return qmoney(self.flat_fee)
        if self.method == SERVICE_PER_KG:
            return qmoney(chargeable_weight * self.price_per_kg)
        if self.method == SERVICE_PERCENTAGE:
            return qmoney((declared_value or ZERO) * self.percentage / D("100"))
        if self.method == SERVICE_COD:
            return qmoney(self.flat_fee + (declared_value or ZERO) * self.percentage / D("100"))
        raise ConfigurationError(f"Unknown service calculation method: {self.method}", service=self.code)


@dataclass(frozen=True)
class ServiceCharge:
    code: str
    name: str
    method: str
    amount: D

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "name": self.name, "method": self.method, "amount": str(self.amount)}


def price_services(
    codes: Sequence[str],
    catalog: Mapping[str, AdditionalService],
    *,
    zone_code: str,
    chargeable_weight: D,
    declared_value: Optional[D] = None,
    carrier_code: Optional[str] = None,
) -> List[ServiceCharge]:
    """
    Price each requested service on its own.

    Every unknown/unavailable code is collected before raising one
    ValidationError with the full list.
    """
    problems: List[Dict[str, Any]] = []
    resolved: List[AdditionalService] = []

    for raw in codes:
        code = str(raw).strip().lower()
        svc = catalog.get(code)
        if svc is None:
            problems.append({"field": "additional_services", "code": "UNKNOWN_SERVICE", "message": f"Unknown service: {code}"})
            continue
        if not svc.available_in(zone_code):
            problems.append(
                {
                    "field": "additional_services",
                    "code": "SERVICE_UNAVAILABLE",
                    "message": f"Service {code} not available in zone {zone_code}",
                }
            )
            continue
        if svc.needs_declared_value and declared_value is None:
            problems.append(
                {
                    "field": "declared_value",
                    "code": "DECLARED_VALUE_REQUIRED",
                    "message": f"Service {code} needs a declared value",
                }
            )
            continue
        resolved.append(svc)

    if problems:
        raise ValidationError(
            "Additional services could not be priced",
            violations=problems,
            carrier=carrier_code,
            zone=zone_code,
            weight=chargeable_weight,
        )

    return [
        ServiceCharge(
            code=svc.code,
            name=svc.name,
            method=svc.method,
            amount=svc.price_for(declared_value=declared_value, chargeable_weight=chargeable_weight),
        )
        for svc in resolved
    ]
