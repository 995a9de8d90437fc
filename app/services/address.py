from __future__ import annotations

import re
from typing import Any, List, Mapping, Union

_LEADING_DIGIT = re.compile(r"^\d")

# display_name segments that are too broad to be useful as a label
_NOISE_TOKENS = ("south africa", "gauteng", "province")

MAX_LABEL_LENGTH = 35


def _first(address: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return ""


def _is_meaningful(part: str) -> bool:
    return bool(part) and not _LEADING_DIGIT.match(part) and len(part) > 2


def format_address(record: Union[Mapping[str, Any], str]) -> str:
    """Build a short "micro-location, city" label from a reverse-geocode body.

    ``record`` is the provider's JSON object (``display_name`` plus a
    structured ``address``); a bare string is treated as a display name.
    Structured fields win; the free-text display name is only parsed when
    they yield nothing.
    """
    if isinstance(record, str):
        return extract_micro_location(record)

    address: Mapping[str, Any] = record.get("address") or {}

    micro = _first(address, "neighbourhood", "hamlet", "locality")
    district = _first(address, "district", "subdistrict", "city_district")
    suburb = _first(address, "suburb", "quarter")
    city = _first(address, "city", "town", "village")

    parts: List[str] = []
    if micro:
        parts.append(micro)
    elif district:
        parts.append(district)
    elif suburb:
        parts.append(suburb)

    if city and city not in parts:
        if micro or district:
            parts.append(city)
        elif suburb and suburb != city:
            parts.append(city)
        elif not suburb:
            parts.append(city)

    if len(parts) >= 2:
        return f"{parts[0]}, {parts[1]}"
    if parts:
        return parts[0]
    return extract_micro_location(str(record.get("display_name") or ""))


def extract_micro_location(display_name: str) -> str:
    """Pick a specific/broader pair out of a comma separated display name.

    Expected shape: "house number, street, micro-location, district, city, province, country".
    House numbers, short fragments and province/country segments are dropped;
    of what remains, the third- and second-to-last segments are the pair.
    """
    parts = [part.strip() for part in display_name.split(",")]

    if len(parts) >= 3:
        meaningful = [
            part
            for part in parts
            if _is_meaningful(part) and not any(token in part.lower() for token in _NOISE_TOKENS)
        ]
        # the last meaningful segment is usually the city; pair the two before it
        if len(meaningful) >= 3:
            specific, broader = meaningful[-3], meaningful[-2]
        elif len(meaningful) == 2:
            specific, broader = meaningful
        else:
            specific = broader = ""
        if specific and broader and specific != broader:
            return f"{specific}, {broader}"

    if len(display_name) > MAX_LABEL_LENGTH:
        return display_name[:32] + "..."
    return display_name
