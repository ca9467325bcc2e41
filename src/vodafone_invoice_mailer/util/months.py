from __future__ import annotations

from typing import Mapping, Optional


# Closed lookup table: the portal renders German month names with canonical capitalization.
GERMAN_MONTHS: Mapping[str, str] = {
    "Januar": "01",
    "Februar": "02",
    "März": "03",
    "April": "04",
    "Mai": "05",
    "Juni": "06",
    "Juli": "07",
    "August": "08",
    "September": "09",
    "Oktober": "10",
    "November": "11",
    "Dezember": "12",
}

# Inverse index (index 0 intentionally empty so MONTH_NAMES[2] == "Februar").
MONTH_NAMES: tuple[str, ...] = ("",) + tuple(GERMAN_MONTHS.keys())


def german_month(month: int) -> str:
    """
    Return the German month name for 1..12, or "" for anything else.
    """
    if 1 <= month <= 12:
        return MONTH_NAMES[month]
    return ""


def month_number(name: str) -> Optional[int]:
    num = GERMAN_MONTHS.get(name)
    if num is None:
        return None
    return int(num)
