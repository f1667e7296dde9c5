# parcel_pricing/schemas/pricing_input_v1.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from parcel_pricing.engine.request import ShipmentRequest

ServiceTypeV1 = Literal["standard", "express", "overnight", "economy", "premium"]


class ShipmentInputV1(BaseModel):
    """
    Allowlist of shipment fields. Anything not defined here is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    weight_kg: Decimal = Field(gt=0)
    length_cm: Decimal = Field(gt=0)
    width_cm: Decimal = Field(gt=0)
    height_cm: Decimal = Field(gt=0)
    service_type: ServiceTypeV1 = "standard"

    carrier_code: Optional[constr(strip_whitespace=True, min_length=1)] = None  # type: ignore
    zone_code: Optional[constr(strip_whitespace=True, min_length=1)] = None  # type: ignore
    postal_code: Optional[str] = None
    country_code: Optional[constr(strip_whitespace=True, min_length=2, max_length=2)] = None  # type: ignore
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)

    currency: constr(pattern=r"^[A-Z]{3}$") = "PLN"  # type: ignore
    customer_id: Optional[str] = None
    additional_services: List[str] = Field(default_factory=list)
    declared_value: Optional[Decimal] = Field(default=None, ge=0)
    promo_codes: List[str] = Field(default_factory=list)
    quantity: int = Field(default=1, ge=1)
    calculation_date: Optional[date] = None

    def to_request(self) -> ShipmentRequest:
        return ShipmentRequest(
            weight_kg=self.weight_kg,
            length_cm=self.length_cm,
            width_cm=self.width_cm,
            height_cm=self.height_cm,
            service_type=self.service_type,
            carrier_code=self.carrier_code,
            zone_code=self.zone_code,
            postal_code=self.postal_code,
            country_code=self.country_code,
            lat=self.lat,
            lng=self.lng,
            currency=self.currency,
            customer_id=self.customer_id,
            additional_services=tuple(self.additional_services),
            declared_value=self.declared_value,
            promo_codes=tuple(self.promo_codes),
            quantity=self.quantity,
            calculation_date=self.calculation_date,
        )


class CompareInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shipment: ShipmentInputV1
    include_carriers: Optional[List[str]] = None
    exclude_carriers: List[str] = Field(default_factory=list)
    include_inactive_carriers: bool = False


class BulkDiscountInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threshold: int = Field(ge=1)
    percentage: Decimal = Field(ge=0, le=100)


class BulkInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: List[ShipmentInputV1] = Field(min_length=1)
    stop_on_first_error: bool = False
    bulk_discount: Optional[BulkDiscountInputV1] = None
