from __future__ import annotations

from datetime import date
from types import MappingProxyType
from typing import Mapping, Tuple

SEASON_BLACK_FRIDAY = "black_friday"
SEASON_CHRISTMAS = "christmas"
SEASON_WINTER = "winter"
SEASON_SPRING = "spring"
SEASON_SUMMER = "summer"
SEASON_AUTUMN = "autumn"

VALID_SEASONS: Tuple[str, ...] = (
    SEASON_SPRING,
    SEASON_SUMMER,
    SEASON_AUTUMN,
    SEASON_WINTER,
    SEASON_CHRISTMAS,
    SEASON_BLACK_FRIDAY,
)

# Calendar windows as (month, day) pairs, checked in this order
SPECIAL_WINDOWS: Tuple[Tuple[str, Tuple[int, int], Tuple[int, int]], ...] = (
    (SEASON_BLACK_FRIDAY, (11, 24), (11, 30)),
    (SEASON_CHRISTMAS, (11, 20), (1, 7)),
)

QUARTER_SEASONS: Mapping[int, str] = MappingProxyType(
    {
        12: SEASON_WINTER,
        1: SEASON_WINTER,
        2: SEASON_WINTER,
        3: SEASON_SPRING,
        4: SEASON_SPRING,
        5: SEASON_SPRING,
        6: SEASON_SUMMER,
        7: SEASON_SUMMER,
        8: SEASON_SUMMER,
        9: SEASON_AUTUMN,
        10: SEASON_AUTUMN,
        11: SEASON_AUTUMN,
    }
)


def in_period(day: date, start: Tuple[int, int], end: Tuple[int, int]) -> bool:
    """
    Check if `day` falls within a (month, day) period.

    Handles year boundary crossings (e.g. Nov 20 to Jan 7).
    """
    start_md = start[0] * 100 + start[1]
    end_md = end[0] * 100 + end[1]
    day_md = day.month * 100 + day.day

    if start_md <= end_md:
        return start_md <= day_md <= end_md
    return day_md >= start_md or day_md <= end_md


def season_for(day: date) -> str:
    """
    Black Friday window wins over the Christmas window, which wins over the
    quarter-based season.
    """
    for name, start, end in SPECIAL_WINDOWS:
        if in_period(day, start, end):
            return name
    return QUARTER_SEASONS[day.month]
