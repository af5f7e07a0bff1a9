"""Token predicates used to assign roles to cells when column identity is unknown.

Each predicate takes one cell and trims it first. Callers scan a row left to
right; the first token matching a role takes it.
"""

import re

from glucose_ingest.interface.ingest_interface import MealRelation
from glucose_ingest.value_extractor import extract

_DATE = r"(?:\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}[/.-]\d{1,2}[/.-]\d{1,2})"
_TIME = r"(?:\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AaPp]\.?[Mm]\.?)?)"
_ISO_DATETIME = (
    r"(?:\d{4}-\d{1,2}-\d{1,2}[T ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?)"
)

DATE_PATTERN = re.compile(_DATE)
TIME_PATTERN = re.compile(_TIME)
DATETIME_PATTERN = re.compile(rf"{_DATE}\s+{_TIME}|{_ISO_DATETIME}")

GLUCOSE_UNIT_MARKERS = ("mg", "dl", "mmol")
GLUCOSE_MGDL_RANGE = (20.0, 600.0)
GLUCOSE_MMOL_RANGE = (1.0, 25.0)


def _clean(token: str) -> str:
    return token.strip().strip('"').strip() if token else ""


def looks_like_date(token: str) -> bool:
    return DATE_PATTERN.fullmatch(_clean(token)) is not None


def looks_like_time(token: str) -> bool:
    return TIME_PATTERN.fullmatch(_clean(token)) is not None


def looks_like_datetime(token: str) -> bool:
    """Date and time joined by whitespace, or an ISO date[T ]time literal."""
    return DATETIME_PATTERN.fullmatch(_clean(token)) is not None


def looks_like_glucose_value(token: str) -> bool:
    """A digit plus either a unit marker or a value in the mg/dL or mmol/L range."""
    text = _clean(token)
    if not any(ch.isdigit() for ch in text):
        return False
    lowered = text.lower()
    if any(marker in lowered for marker in GLUCOSE_UNIT_MARKERS):
        return True
    value = extract(text)
    if value is None:
        return False
    return (
        GLUCOSE_MGDL_RANGE[0] <= value <= GLUCOSE_MGDL_RANGE[1]
        or GLUCOSE_MMOL_RANGE[0] <= value <= GLUCOSE_MMOL_RANGE[1]
    )


def looks_like_temporal(token: str) -> bool:
    """Any of the date, time or date-time shapes."""
    return looks_like_datetime(token) or looks_like_date(token) or looks_like_time(token)


def classify_meal(text: str) -> MealRelation:
    """Map a free-text meal annotation to a MealRelation."""
    lowered = _clean(text).lower()
    if not lowered:
        return MealRelation.UNKNOWN
    if "before" in lowered or "pre-meal" in lowered or "pre meal" in lowered:
        return MealRelation.BEFORE_MEAL
    if "after" in lowered or "post-meal" in lowered or "post meal" in lowered:
        return MealRelation.AFTER_MEAL
    if "fasting" in lowered:
        return MealRelation.FASTING
    return MealRelation.UNKNOWN


def looks_like_meal_annotation(token: str) -> bool:
    return classify_meal(token) != MealRelation.UNKNOWN
