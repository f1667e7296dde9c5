from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

D = Decimal


@dataclass(frozen=True)
class ShipmentRequest:
    """
    One shipment to price. Values are kept as given; RequestValidator
    reports every problem at once before anything is computed.
    """

    weight_kg: Any
    length_cm: Any
    width_cm: Any
    height_cm: Any
    service_type: str = "standard"
    carrier_code: Optional[str] = None
    zone_code: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    currency: str = "PLN"
    customer_id: Optional[str] = None
    additional_services: Tuple[str, ...] = ()
    declared_value: Any = None
    promo_codes: Tuple[str, ...] = ()
    quantity: int = 1
    calculation_date: Optional[date] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ShipmentRequest":
        calc_date = d.get("calculation_date")
        if isinstance(calc_date, str):
            calc_date = date.fromisoformat(calc_date)
        return ShipmentRequest(
            weight_kg=d.get("weight_kg"),
            length_cm=d.get("length_cm"),
            width_cm=d.get("width_cm"),
            height_cm=d.get("height_cm"),
            service_type=str(d.get("service_type") or "standard"),
            carrier_code=d.get("carrier_code"),
            zone_code=d.get("zone_code"),
            postal_code=d.get("postal_code"),
            country_code=d.get("country_code"),
            lat=d.get("lat"),
            lng=d.get("lng"),
            currency=str(d.get("currency") or "PLN"),
            customer_id=d.get("customer_id"),
            additional_services=tuple(d.get("additional_services") or ()),
            declared_value=d.get("declared_value"),
            promo_codes=tuple(d.get("promo_codes") or ()),
            quantity=int(d.get("quantity") or 1),
            calculation_date=calc_date,
        )

    def for_carrier(self, carrier_code: str) -> "ShipmentRequest":
        return replace(self, carrier_code=carrier_code)
