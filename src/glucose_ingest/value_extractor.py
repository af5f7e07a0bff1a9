"""Numeric extraction from noisy glucose cells and the mg/dL unit policy."""

import math
import re
from typing import Dict, Optional

from glucose_ingest.interface.ingest_interface import (
    MMOL_THRESHOLD,
    MMOL_TO_MGDL,
    PLAUSIBLE_MAX_MGDL,
    PLAUSIBLE_MIN_MGDL,
    UnitPolicy,
)

_NON_NUMERIC = re.compile(r"[^0-9.]")
_DECIMAL_COMMA = re.compile(r"^\s*(\d+),(\d+)")


def extract(token: str) -> Optional[float]:
    """Pull a number out of text such as "112 mg/dL" or "6.2mmol/L".

    Every character other than a digit or a decimal point is dropped and the
    remainder parsed as a float.

    Returns:
        The parsed value, or None if no digits remain or the result is not finite
    """
    if token is None:
        return None
    digits = _NON_NUMERIC.sub("", token)
    if not any(ch.isdigit() for ch in digits):
        return None
    try:
        value = float(digits)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def mmol_to_mg_dl(mmol: float) -> float:
    """Convert mmol/L to mg/dL."""
    return mmol * MMOL_TO_MGDL


def mg_dl_to_mmol(mg_dl: float) -> float:
    """Convert mg/dL to mmol/L."""
    return mg_dl / MMOL_TO_MGDL


def normalize_to_mg_dl(value: float, mmol_threshold: float = MMOL_THRESHOLD) -> float:
    """Guess the unit of a bare number and return it in mg/dL.

    Values below the threshold are read as mmol/L. A genuine mg/dL reading
    under the threshold is misread unless the cell names its unit.
    """
    if value < mmol_threshold:
        return mmol_to_mg_dl(value)
    return value


def is_plausible(value: float) -> bool:
    """Physiological sanity range after unit normalisation."""
    return math.isfinite(value) and PLAUSIBLE_MIN_MGDL <= value <= PLAUSIBLE_MAX_MGDL


def default_unit_policy(value: float) -> Optional[float]:
    """Normalise to mg/dL and drop implausible results."""
    mg_dl = normalize_to_mg_dl(value)
    return mg_dl if is_plausible(mg_dl) else None


def make_unit_policy(mmol_threshold: float = MMOL_THRESHOLD) -> UnitPolicy:
    """Build a unit policy with a different mmol/L threshold.

    Args:
        mmol_threshold: Values strictly below this are treated as mmol/L

    Returns:
        Callable mapping an extracted value to mg/dL or None
    """
    if mmol_threshold == MMOL_THRESHOLD:
        return default_unit_policy

    def policy(value: float) -> Optional[float]:
        mg_dl = normalize_to_mg_dl(value, mmol_threshold)
        return mg_dl if is_plausible(mg_dl) else None

    return policy


def glucose_from_cell(
    cell: str,
    unit_policy: UnitPolicy = default_unit_policy,
    substitutions: Optional[Dict[str, float]] = None,
    decimal_comma: bool = False,
) -> Optional[float]:
    """Turn a glucose cell into a plausible mg/dL value.

    An explicit unit in the cell ("mmol/L" or "mg/dL") decides the unit;
    bare numbers go through the unit policy.

    Args:
        cell: Raw cell text
        unit_policy: Unit normalisation and plausibility gate
        substitutions: Lower-case text markers (e.g. "high") with fixed mg/dL values
        decimal_comma: Read "6,2" as 6.2 (for cells already split from their record)

    Returns:
        mg/dL value, or None when the cell holds no usable glucose value
    """
    if cell is None:
        return None
    text = cell.strip()
    if not text:
        return None
    if substitutions:
        marker = text.lower()
        if marker in substitutions:
            return substitutions[marker]
    if decimal_comma:
        text = _DECIMAL_COMMA.sub(r"\1.\2", text)
    value = extract(text)
    if value is None:
        return None

    lowered = text.lower()
    if "mmol" in lowered:
        value = mmol_to_mg_dl(value)
    elif "mg" not in lowered:
        return unit_policy(value)
    return value if is_plausible(value) else None
