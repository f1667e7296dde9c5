from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping, Optional

from parcel_pricing.core.errors import ConfigurationError
from parcel_pricing.engine.context import (
    DEFAULT_VOLUMETRIC_DIVISOR,
    Dimensions,
    WeightDetail,
    qweight,
)

D = Decimal

# cm3 per kg, per carrier
VOLUMETRIC_DIVISORS: Mapping[str, int] = MappingProxyType(
    {
        "INPOST": 5000,
        "DHL": 5000,
        "UPS": 5000,
        "DPD": 4000,
        "MEEST": 6000,
    }
)


def divisor_for(carrier_code: Optional[str]) -> int:
    return VOLUMETRIC_DIVISORS.get(str(carrier_code or "").strip().upper(), DEFAULT_VOLUMETRIC_DIVISOR)


def _check_divisor(divisor: Any, carrier_code: Optional[str] = None) -> D:
    try:
        d = D(str(divisor))
    except Exception as e:
        raise ConfigurationError(f"Invalid volumetric divisor: {divisor!r}", carrier=carrier_code) from e
    if d <= 0:
        raise ConfigurationError(f"Volumetric divisor must be > 0, got {divisor}", carrier=carrier_code)
    return d


def volumetric_weight(dimensions: Dimensions, divisor: Any, *, carrier_code: Optional[str] = None) -> D:
    """(L x W x H) / divisor, in kg."""
    return qweight(dimensions.volume_cm3 / _check_divisor(divisor, carrier_code))


def chargeable_weight(
    actual_kg: Any,
    dimensions: Dimensions,
    divisor: Any = DEFAULT_VOLUMETRIC_DIVISOR,
    *,
    carrier_code: Optional[str] = None,
) -> WeightDetail:
    actual = qweight(actual_kg)
    volumetric = volumetric_weight(dimensions, divisor, carrier_code=carrier_code)
    return WeightDetail(
        actual=actual,
        volumetric=volumetric,
        chargeable=max(actual, volumetric),
        divisor=int(_check_divisor(divisor, carrier_code)),
    )
