"""
Depot location vocabulary.

Locations follow ``<Depot>_<Zone><Index>[_S<slot>]``, e.g. ``Muttom_Stb05_S1``
(stabling bay 5, slot 1), ``Muttom_Clean01`` or ``Muttom_Entrance``. All
comparisons happen on the normalized form.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

_SEPARATORS = re.compile(r"[\s-]+")
_UNDERSCORES = re.compile(r"_+")
_STABLING = re.compile(r"^(?P<depot>[A-Za-z]+)_Stb(?P<bay>\d{2})_S(?P<slot>\d)$", re.IGNORECASE)
_BAY = re.compile(r"^(?P<depot>[A-Za-z]+)_(?P<kind>Clean|Inspect|Maint)(?P<index>\d{2})$", re.IGNORECASE)
_ENTRANCE = re.compile(r"^(?P<depot>[A-Za-z]+)_(?P<kind>Entrance)$", re.IGNORECASE)

STABLING = "Stabling"
ENTRANCE = "Entrance"


@dataclass(frozen=True)
class LocationInfo:
    raw: str
    value: str
    depot: str = ""
    kind: str = ""
    index: Optional[int] = None
    bay: Optional[int] = None
    slot: Optional[int] = None


def normalize_location(name: Optional[str]) -> str:
    """Canonical underscore form of a location name.

    Whitespace and hyphen runs become a single underscore, the first token is
    title-cased and the remaining tokens are kept as given, so applying it
    twice yields the same result.
    """
    if not name:
        return ""
    text = _SEPARATORS.sub("_", str(name).strip())
    text = _UNDERSCORES.sub("_", text)
    parts = [p for p in text.split("_") if p]
    if not parts:
        return ""
    parts[0] = parts[0][:1].upper() + parts[0][1:].lower()
    return "_".join(parts)


def location_key(name: Optional[str]) -> str:
    """Case-insensitive comparison key of a location name."""
    return normalize_location(name).lower()


def same_location(a: Optional[str], b: Optional[str]) -> bool:
    return location_key(a) == location_key(b)


def parse_location(name: Optional[str]) -> LocationInfo:
    value = normalize_location(name)
    raw = name or ""
    match = _STABLING.match(value)
    if match:
        return LocationInfo(
            raw=raw, value=value, depot=match.group("depot"), kind=STABLING,
            bay=int(match.group("bay")), slot=int(match.group("slot")),
        )
    match = _BAY.match(value)
    if match:
        return LocationInfo(
            raw=raw, value=value, depot=match.group("depot"), kind=match.group("kind").capitalize(),
            index=int(match.group("index")),
        )
    match = _ENTRANCE.match(value)
    if match:
        return LocationInfo(raw=raw, value=value, depot=match.group("depot"), kind=ENTRANCE)
    # Unknown pattern, still normalized
    return LocationInfo(raw=raw, value=value)


def is_stabling(name: Optional[str]) -> bool:
    return parse_location(name).kind == STABLING


def stabling_locations(depot: str, bays: int, slots_per_bay: int) -> List[str]:
    """All stabling slots of a depot in bay/slot order."""
    depot = normalize_location(depot)
    return [
        f"{depot}_Stb{bay:02d}_S{slot}"
        for bay in range(1, bays + 1)
        for slot in range(1, slots_per_bay + 1)
    ]
