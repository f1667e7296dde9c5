from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from .models import ZoneType, zone_priority

EU_WEST_COUNTRIES: FrozenSet[str] = frozenset(
    {"DE", "FR", "IT", "ES", "NL", "BE", "AT", "PT", "IE", "LU", "FI", "SE", "DK", "GB", "UK"}
)

EU_EAST_COUNTRIES: FrozenSet[str] = frozenset(
    {"CZ", "SK", "HU", "SI", "HR", "BG", "RO", "EE", "LV", "LT"}
)

EUROPE_NON_EU_COUNTRIES: FrozenSet[str] = frozenset(
    {
        "NO", "CH", "IS", "LI", "AD", "MC", "SM", "VA", "MT", "CY",
        "RS", "ME", "BA", "MK", "AL", "XK", "MD", "UA", "BY", "RU",
        "TR", "GE", "AM", "AZ",
    }
)

# Checked before the continental tables
ZONE_OVERRIDES: Mapping[str, str] = MappingProxyType(
    {
        "PL": ZoneType.DOMESTIC.value,
        "RU": ZoneType.WORLD.value,
        "BY": ZoneType.WORLD.value,
    }
)

WORLD_SAMPLE_COUNTRIES: Tuple[str, ...] = (
    "US", "CA", "AU", "JP", "CN", "IN", "BR", "AR", "ZA", "EG",
    "MX", "KR", "TH", "VN", "ID", "MY", "SG", "PH", "NZ", "IL",
)

CONTINENTS: Mapping[str, str] = MappingProxyType(
    {
        "US": "North America", "CA": "North America", "MX": "North America",
        "CN": "Asia", "JP": "Asia", "IN": "Asia", "KR": "Asia", "TH": "Asia",
        "VN": "Asia", "ID": "Asia", "MY": "Asia", "SG": "Asia", "PH": "Asia",
        "AU": "Oceania", "NZ": "Oceania",
        "BR": "South America", "AR": "South America",
        "ZA": "Africa", "EG": "Africa",
        "IL": "Middle East", "AE": "Middle East", "SA": "Middle East",
    }
)

COUNTRY_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "PL": "Poland", "DE": "Germany", "FR": "France", "GB": "United Kingdom",
        "UK": "United Kingdom", "IT": "Italy", "ES": "Spain", "NL": "Netherlands",
        "BE": "Belgium", "AT": "Austria", "CZ": "Czech Republic", "SK": "Slovakia",
        "HU": "Hungary", "US": "United States", "CA": "Canada", "AU": "Australia",
        "JP": "Japan", "CN": "China", "RU": "Russia", "UA": "Ukraine",
    }
)

DIFFICULT_COUNTRIES: FrozenSet[str] = frozenset({"RU", "BY", "CN", "IN", "BR"})


def _norm(country_code: str) -> str:
    return str(country_code or "").strip().upper()


class CountryZoneMapper:
    def zone_for(self, country_code: str) -> str:
        """Overrides first, then EU-west, EU-east, Europe non-EU; world otherwise."""
        c = _norm(country_code)
        if c in ZONE_OVERRIDES:
            return ZONE_OVERRIDES[c]
        if c in EU_WEST_COUNTRIES:
            return ZoneType.EU_WEST.value
        if c in EU_EAST_COUNTRIES:
            return ZoneType.EU_EAST.value
        if c in EUROPE_NON_EU_COUNTRIES:
            return ZoneType.EUROPE.value
        return ZoneType.WORLD.value

    @staticmethod
    def is_eu(country_code: str) -> bool:
        c = _norm(country_code)
        return c in EU_WEST_COUNTRIES or c in EU_EAST_COUNTRIES

    def is_european(self, country_code: str) -> bool:
        c = _norm(country_code)
        return c == "PL" or self.is_eu(c) or c in EUROPE_NON_EU_COUNTRIES

    def region(self, country_code: str) -> str:
        c = _norm(country_code)
        if c == "PL":
            return "Central Europe"
        if c in EU_WEST_COUNTRIES:
            return "Western Europe"
        if c in EU_EAST_COUNTRIES:
            return "Eastern Europe"
        if c in EUROPE_NON_EU_COUNTRIES:
            return "Europe (Non-EU)"
        return "International"

    def continent(self, country_code: str) -> str:
        c = _norm(country_code)
        if self.is_european(c):
            return "Europe"
        return CONTINENTS.get(c, "Unknown")

    @staticmethod
    def countries_for_zone(zone_code: str) -> Tuple[str, ...]:
        z = str(zone_code).strip().lower()
        if z in (ZoneType.LOCAL.value, ZoneType.DOMESTIC.value):
            return ("PL",)
        if z == ZoneType.EU_WEST.value:
            return tuple(sorted(EU_WEST_COUNTRIES))
        if z == ZoneType.EU_EAST.value:
            return tuple(sorted(EU_EAST_COUNTRIES))
        if z == ZoneType.EUROPE.value:
            return tuple(sorted(EUROPE_NON_EU_COUNTRIES))
        if z == ZoneType.WORLD.value:
            return WORLD_SAMPLE_COUNTRIES
        return ()

    def shipping_difficulty(self, country_code: str) -> int:
        """1 (domestic) .. 9 (sanctioned / hard customs)."""
        c = _norm(country_code)
        if c == "PL":
            return 1
        if c in EU_WEST_COUNTRIES:
            return 2
        if c in EU_EAST_COUNTRIES:
            return 3
        if c in EUROPE_NON_EU_COUNTRIES:
            return 6
        if c in DIFFICULT_COUNTRIES:
            return 9
        return 7

    def info(self, country_code: str) -> Dict[str, Any]:
        c = _norm(country_code)
        zone = self.zone_for(c)
        return {
            "country_code": c,
            "zone_code": zone,
            "zone_priority": zone_priority(zone),
            "is_eu": self.is_eu(c),
            "is_europe": self.is_european(c),
            "is_domestic": c == "PL",
            "region": self.region(c),
            "continent": self.continent(c),
            "country_name": COUNTRY_NAMES.get(c, c),
        }
