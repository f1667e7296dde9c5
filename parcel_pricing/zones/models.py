from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple


class ZoneType(str, Enum):
    LOCAL = "local"
    DOMESTIC = "domestic"
    EU_WEST = "eu_west"
    EU_EAST = "eu_east"
    EUROPE = "europe"
    WORLD = "world"


ZONE_CODES: Tuple[str, ...] = tuple(z.value for z in ZoneType)

# Lower number = more specific zone
ZONE_PRIORITY: Mapping[str, int] = MappingProxyType(
    {
        ZoneType.LOCAL.value: 1,
        ZoneType.DOMESTIC.value: 2,
        ZoneType.EU_WEST.value: 3,
        ZoneType.EU_EAST.value: 4,
        ZoneType.EUROPE.value: 5,
        ZoneType.WORLD.value: 6,
    }
)

UNKNOWN_ZONE_PRIORITY = 10


def zone_priority(zone_code: str) -> int:
    return ZONE_PRIORITY.get(str(zone_code).strip().lower(), UNKNOWN_ZONE_PRIORITY)


@dataclass(frozen=True)
class PricingZone:
    code: str
    zone_type: ZoneType
    countries: FrozenSet[str] = field(default_factory=frozenset)
    postal_code_patterns: Tuple[str, ...] = ()
    active: bool = True
    priority: int = UNKNOWN_ZONE_PRIORITY

    def covers_country(self, country_code: str) -> bool:
        return str(country_code).strip().upper() in self.countries

    def matches_postal_code(self, normalized_code: str) -> bool:
        return any(re.match(p, normalized_code) for p in self.postal_code_patterns)
