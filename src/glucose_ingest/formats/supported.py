"""Vendor profiles: detection keywords, header keywords and column conventions.

Each supported export convention is one VendorProfile record consumed by the
shared parsing pipeline; there are no per-vendor parser classes.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import Dict, Tuple

from glucose_ingest.interface.ingest_interface import ColumnMap, VendorFormat

NOON = time(12, 0, 0)
MIDNIGHT = time(0, 0, 0)

# Dexcom reports sensor out-of-range readings as text markers
DEXCOM_HIGH_GLUCOSE_DEFAULT = 401.0  # "High" = above 400 mg/dL
DEXCOM_LOW_GLUCOSE_DEFAULT = 39.0  # "Low" = below 40 mg/dL

# Header keywords per role for the generic header pass, highest priority first
GENERIC_ROLE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "combined_datetime": ("timestamp", "datetime", "date/time", "date time"),
    "date": ("date",),
    "time": ("time",),
    "glucose": ("glucose", "reading", "value"),
    "meal_annotation": ("meal", "event"),
}

DEFAULT_COLUMN_ORDER = ColumnMap(date=0, time=1, glucose=2)


@dataclass(frozen=True)
class VendorProfile:
    """Everything the pipeline needs to know about one export convention.

    Attributes:
        format: Format tag this profile describes
        detection_patterns: Lower-case substrings that identify the vendor
        header_keywords: Groups of lower-case alternatives; a header row must
            contain at least one alternative from every group
        column_aliases: Extra header keywords per role, tried before the generic ones
        default_columns: Positional fallback when a role stays unresolved
        date_only_time: Time of day given to timestamps that carry only a date
        day_first: Prefer day/month over month/day when both are <= 12
        value_substitutions: Lower-case text markers mapped to mg/dL values
    """
    format: VendorFormat
    detection_patterns: Tuple[str, ...] = ()
    header_keywords: Tuple[Tuple[str, ...], ...] = ()
    column_aliases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    default_columns: ColumnMap = DEFAULT_COLUMN_ORDER
    date_only_time: time = NOON
    day_first: bool = False
    value_substitutions: Dict[str, float] = field(default_factory=dict)

    @property
    def has_vendor_header(self) -> bool:
        return len(self.header_keywords) > 0

    def role_keywords(self, role: str) -> Tuple[str, ...]:
        """Header keywords for a role, vendor aliases first."""
        return self.column_aliases.get(role, ()) + GENERIC_ROLE_KEYWORDS.get(role, ())


AGAMATRIX_PROFILE = VendorProfile(
    format=VendorFormat.AGAMATRIX,
    detection_patterns=("agamatrix", "wavesense", "jazz wireless"),
    header_keywords=(("date",), ("time", "clock"), ("glucose", "reading")),
    column_aliases={"time": ("clock",)},
    date_only_time=MIDNIGHT,
)

FREESTYLE_LIBRE_PROFILE = VendorProfile(
    format=VendorFormat.FREESTYLE_LIBRE,
    detection_patterns=("freestyle", "libre", "abbott", "scan results"),
    header_keywords=(("timestamp",), ("glucose",)),
    column_aliases={
        "combined_datetime": ("device timestamp",),
        "glucose": ("historic glucose", "scan glucose"),
        "meal_annotation": ("notes",),
    },
)

ONETOUCH_PROFILE = VendorProfile(
    format=VendorFormat.ONETOUCH,
    detection_patterns=("onetouch", "lifescan", "verio", "ultra"),
    header_keywords=(("date",), ("result", "reading", "glucose")),
    column_aliases={"glucose": ("result",), "meal_annotation": ("tag",)},
)

DEXCOM_PROFILE = VendorProfile(
    format=VendorFormat.DEXCOM,
    detection_patterns=("dexcom", "glucose reading", "trend", "cgm"),
    header_keywords=(("timestamp",), ("glucose value",)),
    column_aliases={"glucose": ("glucose value",)},
    value_substitutions={"high": DEXCOM_HIGH_GLUCOSE_DEFAULT, "low": DEXCOM_LOW_GLUCOSE_DEFAULT},
)

CONTOUR_PROFILE = VendorProfile(
    format=VendorFormat.CONTOUR,
    detection_patterns=("contour", "ascensia", "bayer", "glucofacts"),
    header_keywords=(("date",), ("glucose", "reading", "result")),
    column_aliases={"glucose": ("result",), "meal_annotation": ("marker",)},
)

GENERIC_PROFILE = VendorProfile(format=VendorFormat.GENERIC)

UNKNOWN_PROFILE = VendorProfile(format=VendorFormat.UNKNOWN)

# Detection order matters: vendor groups before the generic vocabulary
VENDOR_PROFILES: Dict[VendorFormat, VendorProfile] = {
    VendorFormat.AGAMATRIX: AGAMATRIX_PROFILE,
    VendorFormat.FREESTYLE_LIBRE: FREESTYLE_LIBRE_PROFILE,
    VendorFormat.ONETOUCH: ONETOUCH_PROFILE,
    VendorFormat.DEXCOM: DEXCOM_PROFILE,
    VendorFormat.CONTOUR: CONTOUR_PROFILE,
    VendorFormat.GENERIC: GENERIC_PROFILE,
    VendorFormat.UNKNOWN: UNKNOWN_PROFILE,
}

FORMAT_DETECTION_PATTERNS: Dict[VendorFormat, Tuple[str, ...]] = {
    fmt: profile.detection_patterns
    for fmt, profile in VENDOR_PROFILES.items()
    if profile.detection_patterns
}

# Each group matches when all of its words are present
GENERIC_VOCABULARY: Tuple[Tuple[str, ...], ...] = (
    ("glucose",),
    ("date", "time"),
    ("mg/dl",),
    ("mmol",),
)
