"""
Shared Data Models for ScanTracker

This module contains all shared dataclasses and enums used throughout the
ScanTracker application, including the ingestion and derivation engine,
the report view API and the command line interface.

Unified data models provide:
- Immutable measurement records (a series is a tuple of frozen dataclasses)
- An explicit ``None`` variant for missing or non-numeric device values
- A single source of truth for reference thresholds and body-segment fractions
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# ============================================================================
# ENUMS
# ============================================================================


class Gender(Enum):
    """Gender used to select reference tables"""

    MALE = "male"
    FEMALE = "female"


class RangeMode(Enum):
    """Time-range selection modes"""

    ALL = "ALL"
    YEAR = "YEAR"
    ROLLING_3M = "3M"
    ROLLING_1Y = "1Y"


class Segment(Enum):
    """Body regions used by the segmental estimate"""

    TRUNK = "trunk"
    LEFT_ARM = "left_arm"
    LEFT_LEG = "left_leg"
    RIGHT_LEG = "right_leg"
    RIGHT_ARM = "right_arm"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class RawMeasurement:
    """One exported scan row.

    Every numeric field except ``weight`` may be ``None`` when the device left
    the column blank or exported something that is not a number.
    """

    timestamp: datetime
    date_label: str  # date portion of the export's date-time column
    weight: float  # kg
    body_fat_percent: Optional[float] = None
    body_fat_mass: Optional[float] = None  # kg, device may omit
    visceral_fat: Optional[float] = None  # level
    bmr: Optional[float] = None  # kcal
    skeletal_muscle_percent: Optional[float] = None
    skeletal_muscle_mass: Optional[float] = None  # kg, device may omit
    arm_muscle_pct: Optional[float] = None
    trunk_muscle_pct: Optional[float] = None
    leg_muscle_pct: Optional[float] = None
    sub_fat_percent: Optional[float] = None
    arm_fat_pct: Optional[float] = None
    trunk_fat_pct: Optional[float] = None
    leg_fat_pct: Optional[float] = None
    bmi: Optional[float] = None
    body_age: Optional[float] = None
    timezone: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class DerivedMeasurement:
    """A raw scan expanded into the full body composition decomposition.

    Raw fields that are not recomputed here (``weight``, ``bmi``, the regional
    percentages, ...) are reachable directly as attributes through ``raw``.
    """

    raw: RawMeasurement
    body_fat_mass: Optional[float]  # backfilled from percentage when missing
    skeletal_muscle_mass: Optional[float]  # backfilled from percentage when missing
    fat_free_mass: Optional[float]
    bone_mass: Optional[float]
    soft_lean_mass: Optional[float]
    tbw: Optional[float]  # total body water
    icw: Optional[float]  # intracellular water
    ecw: Optional[float]  # extracellular water
    protein: Optional[float]
    baseline_ffmi: Optional[float]  # height-free estimate from BMI
    ffmi: Optional[float]  # height adjusted when height is known

    def __getattr__(self, name):
        # Only reached when normal lookup fails
        if name == "raw":
            raise AttributeError(name)
        return getattr(self.raw, name)

    @property
    def water_ratio(self) -> Optional[float]:
        """ECW/TBW ratio, None when total body water is missing or zero."""
        if self.ecw is None or not self.tbw:
            return None
        return self.ecw / self.tbw


@dataclass(frozen=True)
class UserProfile:
    """User settings that affect derived values"""

    gender: Gender = Gender.MALE
    height_cm: Optional[float] = None  # positive, or None when unset

    def __post_init__(self):
        """Reject non-positive heights"""
        if self.height_cm is not None and self.height_cm <= 0:
            raise ValueError("height_cm must be positive or None")


@dataclass(frozen=True)
class ReferenceStandard:
    """Gender-keyed normal/elevated thresholds (OMRON reference table)"""

    body_fat_normal_top: float
    body_fat_high_top: float
    visceral_fat_normal_top: float
    visceral_fat_high_top: float
    skeletal_muscle_low_top: float
    skeletal_muscle_normal_top: float
    bmi_normal_top: float = 24.0


@dataclass(frozen=True)
class TimeRange:
    """Selected time window. ``year`` is only set for ``RangeMode.YEAR``."""

    mode: RangeMode = RangeMode.ALL
    year: Optional[int] = None

    def __str__(self):
        return str(self.year) if self.mode is RangeMode.YEAR else self.mode.value


@dataclass(frozen=True)
class SegmentMass:
    """Estimated tissue mass in one body region"""

    segment: Segment
    percent: Optional[float]  # regional percentage reported by the device
    mass_kg: Optional[float]


@dataclass(frozen=True)
class SegmentalBreakdown:
    """Muscle and fat distribution over the five body regions"""

    muscle: Tuple[SegmentMass, ...]
    fat: Tuple[SegmentMass, ...]


@dataclass(frozen=True)
class RecordClassification:
    """Categorical labels for one derived record"""

    ffmi_category: str
    ffmi_score: int  # ordinal band index, 0 when FFMI is missing
    bmi_category: str
    water_status: str
    body_fat_status: str
    bmi_status: str
    visceral_fat_status: str
    skeletal_muscle_status: str
    body_type: str  # overall verdict from BMI and body fat %


@dataclass(frozen=True)
class MetricChange:
    """Change of one metric between the first and latest record of a view"""

    first: Optional[float]
    latest: Optional[float]
    change: Optional[float]


@dataclass(frozen=True)
class StandardBar:
    """One row of the 'percent of standard' analysis"""

    name: str
    value: Optional[float]
    standard: float  # the 100% reference in kg
    percent_of_standard: Optional[float]
    normal_min: float
    normal_max: float
    band: str  # 'low', 'normal', 'high' or '-'


@dataclass(frozen=True)
class DerivedView:
    """Everything a presentation layer needs for the current selection"""

    profile: UserProfile
    time_range: TimeRange
    records: Tuple[DerivedMeasurement, ...]
    classifications: Tuple[RecordClassification, ...]
    first: Optional[DerivedMeasurement]
    latest: Optional[DerivedMeasurement]
    segments: Optional[SegmentalBreakdown]
    # Read-only: the same view object is shared by every cache hit
    changes: Mapping[str, MetricChange] = field(
        default_factory=lambda: MappingProxyType({})
    )
    standard_bars: Tuple[StandardBar, ...] = ()
    available_years: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.records


# ============================================================================
# CONSTANTS AND CONFIGURATIONS
# ============================================================================

# OMRON reference standards
REFERENCE_STANDARDS = {
    Gender.MALE: ReferenceStandard(
        body_fat_normal_top=20,
        body_fat_high_top=25,
        visceral_fat_normal_top=9,
        visceral_fat_high_top=14,
        skeletal_muscle_low_top=32.8,
        skeletal_muscle_normal_top=35.7,
    ),
    Gender.FEMALE: ReferenceStandard(
        body_fat_normal_top=30,
        body_fat_high_top=35,
        visceral_fat_normal_top=9,
        visceral_fat_high_top=14,
        skeletal_muscle_low_top=25.8,
        skeletal_muscle_normal_top=27.9,
    ),
}

# Share of total body weight per region. Sums to 0.94; head and neck are not
# modelled and the fractions are not renormalized.
SEGMENT_MASS_FRACTIONS = {
    Segment.TRUNK: 0.46,
    Segment.LEFT_ARM: 0.06,
    Segment.RIGHT_ARM: 0.06,
    Segment.LEFT_LEG: 0.18,
    Segment.RIGHT_LEG: 0.18,
}

# Order of the segmental output (top, then clockwise on a radar chart)
SEGMENT_ORDER = (
    Segment.TRUNK,
    Segment.LEFT_ARM,
    Segment.LEFT_LEG,
    Segment.RIGHT_LEG,
    Segment.RIGHT_ARM,
)

# Body-shaped grid layout: left leg, left arm, trunk, right arm, right leg
SEGMENT_GRID_ORDER = (
    Segment.LEFT_LEG,
    Segment.LEFT_ARM,
    Segment.TRUNK,
    Segment.RIGHT_ARM,
    Segment.RIGHT_LEG,
)
