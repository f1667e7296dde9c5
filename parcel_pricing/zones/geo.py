from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .models import ZoneType

EARTH_RADIUS_KM = 6371.0

# (lat_min, lat_max, lng_min, lng_max)
POLAND_BBOX: Tuple[float, float, float, float] = (49.0, 54.9, 14.1, 24.2)


@dataclass(frozen=True)
class MetroArea:
    name: str
    lat: float
    lng: float
    radius_km: float


LOCAL_METRO_AREAS: Tuple[MetroArea, ...] = (
    MetroArea("warszawa", 52.2297, 21.0122, 50),
    MetroArea("krakow", 50.0647, 19.9450, 30),
    MetroArea("gdansk", 54.3520, 18.6466, 25),
    MetroArea("wroclaw", 51.1079, 17.0385, 25),
    MetroArea("poznan", 52.4064, 16.9252, 25),
)


def haversine_km(from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> float:
    d_lat = math.radians(to_lat - from_lat)
    d_lng = math.radians(to_lng - from_lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(from_lat)) * math.cos(math.radians(to_lat)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def in_poland(lat: float, lng: float) -> bool:
    lat_min, lat_max, lng_min, lng_max = POLAND_BBOX
    return lat_min <= lat <= lat_max and lng_min <= lng <= lng_max


def metro_area_for(lat: float, lng: float) -> Optional[MetroArea]:
    for area in LOCAL_METRO_AREAS:
        if haversine_km(lat, lng, area.lat, area.lng) <= area.radius_km:
            return area
    return None


def zone_for_coordinates(lat: float, lng: float) -> str:
    if not in_poland(lat, lng):
        return ZoneType.WORLD.value
    if metro_area_for(lat, lng) is not None:
        return ZoneType.LOCAL.value
    return ZoneType.DOMESTIC.value


# -----------------------------
# Delivery time estimates
# -----------------------------

# zone -> carrier -> (min_days, max_days); "default" row per zone
DELIVERY_TIMES: Mapping[str, Mapping[str, Tuple[int, int]]] = MappingProxyType(
    {
        ZoneType.LOCAL.value: MappingProxyType({"inpost": (1, 2), "dhl": (1, 2), "default": (1, 3)}),
        ZoneType.DOMESTIC.value: MappingProxyType({"inpost": (1, 3), "dhl": (1, 3), "default": (2, 5)}),
        ZoneType.EU_WEST.value: MappingProxyType({"dhl": (2, 5), "default": (3, 7)}),
        ZoneType.EU_EAST.value: MappingProxyType({"dhl": (2, 4), "default": (3, 6)}),
        ZoneType.EUROPE.value: MappingProxyType({"dhl": (3, 7), "default": (5, 10)}),
        ZoneType.WORLD.value: MappingProxyType({"dhl": (5, 14), "default": (7, 21)}),
    }
)


def delivery_time(zone_code: str, carrier_code: str) -> Optional[Dict[str, Any]]:
    rows = DELIVERY_TIMES.get(str(zone_code).strip().lower())
    if rows is None:
        return None
    carrier = str(carrier_code or "").strip().lower()
    lo, hi = rows.get(carrier, rows["default"])
    return {"min": lo, "max": hi, "unit": "days"}
