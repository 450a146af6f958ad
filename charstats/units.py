"""Length-unit normalization.

Stats carry free-form unit suffixes (" ft", "cm", "miles"). For comparisons
every length is brought to centimeters. Matching is substring based and the
order of the checks below resolves ambiguity, so "mm" is tested before the
bare "m" and "mi" is excluded from it.

Known quirk: "km" contains a bare "m", so it resolves to meters (x100) and
the "km" check never fires. The order is kept as is; stored stats already
depend on it.
"""

from __future__ import annotations

import math
from typing import Optional

from .errors import InvalidMagnitude

CM_PER_UNIT = {
    "mm": 0.1,
    "cm": 1.0,
    "m": 100.0,
    "km": 100000.0,
    "in": 2.54,
    "ft": 30.48,
    "mi": 160934.0,
}


def length_unit(unit: str) -> Optional[str]:
    """Return the recognized length unit inside a unit string.

    Args:
        unit: Free-form unit suffix, e.g. " ft" or "Meters"

    Returns:
        One of the keys of ``CM_PER_UNIT``, or None when nothing matched
        (the value is then taken to be in centimeters already)
    """
    u = (unit or "").lower().strip()
    if "mm" in u:
        return "mm"
    if "cm" in u:
        return "cm"
    if "m" in u and "mm" not in u and "mi" not in u:
        return "m"
    if "km" in u:
        return "km"
    if "in" in u:
        return "in"
    if "ft" in u:
        return "ft"
    if "mi" in u:
        return "mi"
    return None


def normalize_length(value: float, unit: str) -> float:
    """Convert a length to centimeters.

    Args:
        value: Numeric magnitude
        unit: Free-form unit suffix; unrecognized or empty means centimeters

    Returns:
        The length in centimeters

    Raises:
        InvalidMagnitude: If the result is not positive, is NaN, or overflows
    """
    matched = length_unit(unit)
    factor = CM_PER_UNIT[matched] if matched else 1.0
    canonical = float(value) * factor
    if not 0 < canonical < math.inf:
        raise InvalidMagnitude(value, unit)
    return canonical
