from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from parcel_pricing.core.logging_config import logger

from .countries import CountryZoneMapper
from .geo import zone_for_coordinates
from .models import PricingZone, ZoneType
from .postal_codes import DOMESTIC_COUNTRY, PostalCodeMapper, normalize_postal_code

SOURCE_POSTAL_CODE = "postal_code"
SOURCE_COUNTRY = "country"
SOURCE_COORDINATES = "coordinates"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class ZoneResolution:
    zone_code: str
    source: str
    country_code: Optional[str] = None
    postal_code: Optional[str] = None
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zone_code": self.zone_code,
            "source": self.source,
            "country_code": self.country_code,
            "postal_code": self.postal_code,
            "warnings": list(self.warnings),
        }


class ZoneResolver:
    """
    Postal code / country / coordinates -> exactly one zone code.

    Order: configured postal patterns, metro postal ranges, domestic
    country, country table. A postal-level match always outranks a
    country-level match. Bad input never raises; it falls back to the
    domestic zone with a warning.
    """

    def __init__(
        self,
        postal_codes: Optional[PostalCodeMapper] = None,
        countries: Optional[CountryZoneMapper] = None,
        zones: Sequence[PricingZone] = (),
    ):
        self.postal_codes = postal_codes or PostalCodeMapper()
        self.countries = countries or CountryZoneMapper()
        self.zones = sorted(
            (z for z in zones if z.active and z.postal_code_patterns),
            key=lambda z: (z.priority, z.code),
        )

    def resolve(
        self,
        *,
        postal_code: Optional[str] = None,
        country_code: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> ZoneResolution:
        country = str(country_code).strip().upper() if country_code else None

        if postal_code:
            normalized = normalize_postal_code(postal_code)
            pattern_zone = self._match_configured(normalized, country or DOMESTIC_COUNTRY)
            if pattern_zone is not None:
                return ZoneResolution(pattern_zone, SOURCE_POSTAL_CODE, country, normalized)

            effective_country = country or DOMESTIC_COUNTRY
            zone = self.postal_codes.zone_for(normalized, effective_country)
            if zone is not None:
                warnings: List[Dict[str, Any]] = []
                if not self.postal_codes.is_valid(normalized, effective_country):
                    warnings.append(
                        {
                            "code": "POSTAL_CODE_INVALID",
                            "message": f"Unparseable postal code {postal_code!r}; using domestic zone.",
                            "meta": {"postal_code": postal_code, "country": effective_country},
                        }
                    )
                return ZoneResolution(zone, SOURCE_POSTAL_CODE, effective_country, normalized, warnings)

        if country:
            return ZoneResolution(self.countries.zone_for(country), SOURCE_COUNTRY, country, postal_code)

        if lat is not None and lng is not None:
            return ZoneResolution(zone_for_coordinates(float(lat), float(lng)), SOURCE_COORDINATES)

        logger.bind(postal_code=postal_code, country=country_code).warning("zone_unresolved_fallback_domestic")
        return ZoneResolution(
            ZoneType.DOMESTIC.value,
            SOURCE_FALLBACK,
            warnings=[
                {
                    "code": "ZONE_UNRESOLVED",
                    "message": "No postal code, country or coordinates; using domestic zone.",
                    "meta": {},
                }
            ],
        )

    def zone_code(self, **kwargs: Any) -> str:
        return self.resolve(**kwargs).zone_code

    def _match_configured(self, normalized: str, country: str) -> Optional[str]:
        for z in self.zones:
            if z.countries and country not in z.countries:
                continue
            if z.matches_postal_code(normalized):
                return z.code
        return None
