from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Collection, List, Optional

from parcel_pricing.core.errors import ValidationError
from parcel_pricing.engine.context import SERVICE_TYPES
from parcel_pricing.engine.request import ShipmentRequest

from .common import RuleViolation, ValidationResult, _err

D = Decimal

SCOPE_REQUEST = "request"

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _positive(value: Any) -> Optional[bool]:
    """True/False for a parsable number, None when it is not a number at all."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return D(str(value)) > 0
    except (InvalidOperation, ValueError):
        return None


class RequestValidator:
    """Shape checks for a shipment request; reports the complete list."""

    def __init__(self, known_carriers: Optional[Collection[str]] = None):
        self.known_carriers = {c.upper() for c in known_carriers} if known_carriers is not None else None

    def validate(self, req: ShipmentRequest, *, require_carrier: bool = True) -> ValidationResult:
        errors: List[RuleViolation] = []

        def err(field: str, code: str, message: str) -> None:
            errors.append(_err(SCOPE_REQUEST, None, field, code, message))

        for name in ("weight_kg", "length_cm", "width_cm", "height_cm"):
            ok = _positive(getattr(req, name))
            if ok is None:
                err(name, "INVALID_NUMBER", f"{name} must be a number")
            elif not ok:
                err(name, "OUT_OF_RANGE", f"{name} must be greater than 0")

        if str(req.service_type).lower() not in SERVICE_TYPES:
            err("service_type", "UNKNOWN_SERVICE_TYPE", f"service_type must be one of {list(SERVICE_TYPES)}")

        has_zone = bool(req.zone_code and str(req.zone_code).strip())
        has_address = bool(req.postal_code or req.country_code)
        has_coords = req.lat is not None and req.lng is not None
        if req.zone_code is not None and not has_zone:
            err("zone_code", "EMPTY_VALUE", "zone_code cannot be empty")
        elif not (has_zone or has_address or has_coords):
            err("zone_code", "MISSING_FIELD", "zone_code, postal/country code or coordinates are required")

        if require_carrier:
            carrier = str(req.carrier_code or "").strip().upper()
            if not carrier:
                err("carrier_code", "MISSING_FIELD", "carrier_code is required")
            elif self.known_carriers is not None and carrier not in self.known_carriers:
                err("carrier_code", "UNKNOWN_CARRIER", f"Unknown carrier: {carrier}")

        if not _CURRENCY_RE.match(str(req.currency or "")):
            err("currency", "INVALID_CURRENCY", "currency must be a 3-letter code")

        if req.declared_value is not None:
            try:
                if D(str(req.declared_value)) < 0:
                    err("declared_value", "OUT_OF_RANGE", "declared_value cannot be negative")
            except (InvalidOperation, ValueError):
                err("declared_value", "INVALID_NUMBER", "declared_value must be a number")

        if req.quantity < 1:
            err("quantity", "OUT_OF_RANGE", "quantity must be >= 1")

        return ValidationResult.of(errors)

    def validate_or_raise(self, req: ShipmentRequest, *, require_carrier: bool = True) -> None:
        result = self.validate(req, require_carrier=require_carrier)
        if not result.ok:
            raise ValidationError(
                "Invalid shipment request",
                violations=result.errors,
                carrier=req.carrier_code,
                zone=req.zone_code,
            )
