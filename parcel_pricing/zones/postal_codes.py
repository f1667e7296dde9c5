from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from parcel_pricing.core.logging_config import logger

from .models import ZoneType

DOMESTIC_COUNTRY = "PL"

_PL_CODE_RE = re.compile(r"^\d{5}$")

# Per-country format checks on the normalized code
POSTAL_CODE_FORMATS: Dict[str, re.Pattern] = {
    "PL": _PL_CODE_RE,
    "DE": re.compile(r"^\d{5}$"),
    "FR": re.compile(r"^\d{5}$"),
    "GB": re.compile(r"^[A-Z]{1,2}[0-9R][0-9A-Z]?[0-9][ABD-HJLNP-UW-Z]{2}$"),
    "UK": re.compile(r"^[A-Z]{1,2}[0-9R][0-9A-Z]?[0-9][ABD-HJLNP-UW-Z]{2}$"),
    "US": re.compile(r"^\d{5}(\d{4})?$"),
}


@dataclass(frozen=True)
class PostalRange:
    start: str
    end: str
    city: str
    slug: str
    voivodeship: str

    def contains(self, normalized_code: str) -> bool:
        return self.start <= normalized_code <= self.end


# Metro areas priced as the local zone
LOCAL_RANGES: Tuple[PostalRange, ...] = (
    PostalRange("00000", "05999", "Warszawa", "warszawa", "mazowieckie"),
    PostalRange("30000", "34999", "Kraków", "krakow", "małopolskie"),
    PostalRange("80000", "84999", "Gdańsk", "gdansk", "pomorskie"),
    PostalRange("50000", "54999", "Wrocław", "wroclaw", "dolnośląskie"),
    PostalRange("60000", "62999", "Poznań", "poznan", "wielkopolskie"),
    PostalRange("90000", "95999", "Łódź", "lodz", "łódzkie"),
)

VOIVODESHIP_RANGES: Tuple[Tuple[str, str, str], ...] = (
    ("00000", "19999", "mazowieckie"),
    ("20000", "24999", "lubelskie"),
    ("25000", "29999", "świętokrzyskie"),
    ("30000", "39999", "małopolskie"),
    ("40000", "49999", "śląskie"),
    ("50000", "59999", "dolnośląskie"),
    ("60000", "69999", "wielkopolskie"),
    ("70000", "79999", "zachodniopomorskie"),
    ("80000", "89999", "pomorskie"),
    ("90000", "99999", "łódzkie"),
)

UNKNOWN_VOIVODESHIP = "nieznane"
OTHER_CITY = "Inne"


def normalize_postal_code(postal_code: str) -> str:
    return str(postal_code or "").strip().upper().replace(" ", "").replace("-", "")


class PostalCodeMapper:
    """
    Maps postal codes to zones.

    Only Polish codes resolve at postal level; any other country returns
    None so the caller falls back to the country table.
    """

    def zone_for(self, postal_code: str, country_code: str = DOMESTIC_COUNTRY) -> Optional[str]:
        country = str(country_code or DOMESTIC_COUNTRY).strip().upper()
        if country != DOMESTIC_COUNTRY:
            return None

        code = normalize_postal_code(postal_code)
        if not _PL_CODE_RE.match(code):
            logger.bind(postal_code=postal_code, country=country).warning(
                "postal_code_invalid_fallback_domestic"
            )
            return ZoneType.DOMESTIC.value

        local = self.local_range_for(code)
        if local is not None:
            return ZoneType.LOCAL.value
        return ZoneType.DOMESTIC.value

    @staticmethod
    def local_range_for(normalized_code: str) -> Optional[PostalRange]:
        for r in LOCAL_RANGES:
            if r.contains(normalized_code):
                return r
        return None

    @staticmethod
    def is_valid(postal_code: str, country_code: str = DOMESTIC_COUNTRY) -> bool:
        code = normalize_postal_code(postal_code)
        country = str(country_code or DOMESTIC_COUNTRY).strip().upper()
        fmt = POSTAL_CODE_FORMATS.get(country)
        if fmt is not None:
            return fmt.match(code) is not None
        return 3 <= len(code) <= 10

    @staticmethod
    def voivodeship_for(normalized_code: str) -> str:
        for start, end, name in VOIVODESHIP_RANGES:
            if start <= normalized_code <= end:
                return name
        return UNKNOWN_VOIVODESHIP

    def info(self, postal_code: str, country_code: str = DOMESTIC_COUNTRY) -> Dict[str, Any]:
        country = str(country_code or DOMESTIC_COUNTRY).strip().upper()
        code = normalize_postal_code(postal_code)
        out: Dict[str, Any] = {
            "postal_code": postal_code,
            "normalized": code,
            "country_code": country,
            "is_valid": self.is_valid(code, country),
            "zone_code": self.zone_for(code, country),
        }
        if country == DOMESTIC_COUNTRY:
            local = self.local_range_for(code)
            if local is not None:
                out["city_info"] = {
                    "city": local.city,
                    "voivodeship": local.voivodeship,
                    "is_major_city": True,
                }
            else:
                out["city_info"] = {
                    "city": OTHER_CITY,
                    "voivodeship": self.voivodeship_for(code),
                    "is_major_city": False,
                }
        return out

    @staticmethod
    def local_zone_ranges() -> Dict[str, Tuple[str, str]]:
        return {r.slug: (r.start, r.end) for r in LOCAL_RANGES}
