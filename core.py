"""
Core ScanTracker Analysis Logic

This module contains the calculation logic and data processing functions for
ScanTracker. It turns an exported batch of bioelectrical-impedance scans into
fully derived, classified body composition records and is the computational
engine behind the report view API and the command line interface.

Sections:
- Ingestion of exported scan rows
- Derived body composition metrics
- FFMI normalization
- Classification against reference tables
- Segmental estimation
- Time-range selection
- Change tracking and standard reference bars
- Tabular output
"""

import dataclasses
import logging
import math
import os
import re
from datetime import timedelta

import numpy as np
import pandas as pd
from tabulate import tabulate

from shared_models import (
    REFERENCE_STANDARDS,
    SEGMENT_GRID_ORDER,
    SEGMENT_MASS_FRACTIONS,
    SEGMENT_ORDER,
    DerivedMeasurement,
    Gender,
    MetricChange,
    RangeMode,
    RawMeasurement,
    RecordClassification,
    Segment,
    SegmentalBreakdown,
    SegmentMass,
    StandardBar,
    TimeRange,
)

logger = logging.getLogger(__name__)

# Positional columns of the scale export. The trailing model id is kept for
# reference only.
CSV_COLUMNS = [
    "measured_at",
    "timezone",
    "weight",
    "body_fat_percent",
    "body_fat_mass",
    "visceral_fat",
    "bmr",
    "skeletal_muscle_percent",
    "skeletal_muscle_mass",
    "arm_muscle_pct",
    "trunk_muscle_pct",
    "leg_muscle_pct",
    "sub_fat_percent",
    "arm_fat_pct",
    "trunk_fat_pct",
    "leg_fat_pct",
    "bmi",
    "body_age",
    "model",
]
NUMERIC_COLUMNS = CSV_COLUMNS[2:18]
MIN_ROW_FIELDS = 5
DATE_TIME_FORMAT = "%Y/%m/%d %H:%M"

# Fixed empirical ratios of the body composition model
BONE_MASS_RATIO = 0.068  # of fat-free mass
TBW_RATIO = 0.732  # of fat-free mass
ICW_SHARE = 0.62  # of total body water
ECW_SHARE = 0.38  # of total body water

# FFMI bands as (exclusive upper bound, label); the last band is open ended
FFMI_BANDS = {
    Gender.MALE: [
        (16, "below average"),
        (18, "low muscle"),
        (20, "average"),
        (22, "above average"),
        (23, "notably high"),
        (26, "very high"),
        (28, "suspected enhancement"),
        (None, "natural limit"),
    ],
    Gender.FEMALE: [
        (13, "below average"),
        (15, "low muscle"),
        (17, "average"),
        (19, "above average"),
        (22, "very high"),
        (None, "natural limit"),
    ],
}

BMI_CATEGORIES = [
    (18.5, "underweight"),
    (24, "normal"),
    (27, "overweight"),
    (30, "mild obesity"),
    (35, "moderate obesity"),
    (None, "severe obesity"),
]

# ECW/TBW ratio bounds; dehydration is exclusive, the others inclusive
WATER_RATIO_DEHYDRATION = 0.360
WATER_RATIO_NORMAL_MAX = 0.390
WATER_RATIO_MILD_EDEMA_MAX = 0.400

# Body-type verdict; both cuts are strict lower bounds
BODY_TYPE_OBESE_BMI = 30
BODY_TYPE_OVERWEIGHT_BMI = 24
BODY_TYPE_EXCESS_FAT_PERCENT = 25

PLACEHOLDER = "-"

ROLLING_WINDOW_DAYS = {RangeMode.ROLLING_3M: 90, RangeMode.ROLLING_1Y: 365}

# Standard reference bars: 100% standard is the weight at BMI 22
DEFAULT_STANDARD_HEIGHT_CM = 173.6
STANDARD_BMI = 22
STANDARD_MUSCLE_RATIO = {Gender.MALE: 0.45, Gender.FEMALE: 0.39}
STANDARD_FAT_RATIO = {Gender.MALE: 0.15, Gender.FEMALE: 0.23}
STANDARD_BAR_CONFIGS = {
    "weight": {"low_normal": 85, "high_normal": 115},
    "muscle": {"low_normal": 90, "high_normal": 110},
    "fat": {"low_normal": 80, "high_normal": 160},
}

CHANGE_METRICS = [
    "weight",
    "body_fat_percent",
    "body_fat_mass",
    "skeletal_muscle_percent",
    "fat_free_mass",
    "visceral_fat",
    "bmi",
    "ffmi",
]


# ---------------------------------------------------------------------------
# CUSTOM EXCEPTIONS
# ---------------------------------------------------------------------------


class ScanTrackerError(ValueError):
    """Base class for caller input errors"""

    pass


class InvalidInputError(ScanTrackerError):
    """Raised when a setting such as gender or time range is not recognized"""

    pass


# ---------------------------------------------------------------------------
# INGESTION
# ---------------------------------------------------------------------------


def _optional(value):
    """Converts a parsed cell to float, or None when it is not a number."""
    if value is None or pd.isna(value):
        return None
    return float(value)


def _is_missing(value):
    if value is None:
        return True
    try:
        return bool(np.isnan(value))
    except TypeError:
        return False


def _parse_timestamp_fallback(text):
    """Parses any instant pandas understands into a naive timestamp."""
    timestamp = pd.to_datetime(text, errors="coerce")
    if pd.isna(timestamp):
        return pd.NaT
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert(None)
    return timestamp


def _split_rows(lines):
    rows = []
    for line_no, line in enumerate(lines, start=2):
        if not line.strip():
            continue
        fields = [cell.strip() for cell in line.replace('"', "").split(",")]
        if len(fields) < MIN_ROW_FIELDS:
            logger.warning(
                f"Dropping line {line_no}: {len(fields)} fields, need at least {MIN_ROW_FIELDS}"
            )
            continue
        fields = (fields + [""] * len(CSV_COLUMNS))[: len(CSV_COLUMNS)]
        rows.append([line_no] + fields)
    return rows


def parse_scan_csv(csv_text):
    """
    Parses exported scan text into raw measurements sorted by time.

    The export is quoted, comma-delimited text with a header row and one row per
    scan in the positional layout of ``CSV_COLUMNS``. Quotes are stripped before
    splitting. Numeric cells that do not parse become ``None``; a row without a
    numeric weight or a parseable date-time is dropped, as is any row with
    fewer than five fields.

    Args:
        csv_text (str): Full text of the export.

    Returns:
        tuple: RawMeasurement records in ascending timestamp order (stable for
               equal timestamps). Empty when nothing usable was found.
    """
    lines = (csv_text or "").strip().splitlines()
    rows = _split_rows(lines[1:])
    if not rows:
        logger.info("No scan rows found in export")
        return ()

    df = pd.DataFrame(rows, columns=["line_no"] + CSV_COLUMNS)
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df["timestamp"] = pd.to_datetime(
        df["measured_at"], format=DATE_TIME_FORMAT, errors="coerce"
    )
    unparsed = df["timestamp"].isna()
    if unparsed.any():
        df.loc[unparsed, "timestamp"] = [
            _parse_timestamp_fallback(text) for text in df.loc[unparsed, "measured_at"]
        ]

    valid = df["weight"].notna() & df["timestamp"].notna()
    for line_no in df.loc[~valid, "line_no"]:
        logger.warning(f"Dropping line {line_no}: missing weight or date")

    df = df[valid].sort_values("timestamp", kind="mergesort")

    series = tuple(
        RawMeasurement(
            timestamp=row["timestamp"].to_pydatetime(),
            date_label=row["measured_at"].split(" ")[0],
            timezone=row["timezone"] or None,
            model=row["model"] or None,
            weight=float(row["weight"]),
            **{col: _optional(row[col]) for col in NUMERIC_COLUMNS if col != "weight"},
        )
        for row in df.to_dict("records")
    )
    logger.info(
        f"Parsed {len(series)} scans from {len(lines) - 1} rows ({len(lines) - 1 - len(series)} skipped)"
    )
    return series


def load_scans_csv(csv_path):
    """
    Reads a scale export from disk and parses it.

    The file is read in full before parsing starts.

    Args:
        csv_path (str): Path to the exported CSV file.

    Returns:
        tuple: RawMeasurement records, see ``parse_scan_csv``.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    if not os.path.exists(csv_path):
        raise FileNotFoundError(f"Scan export not found: {csv_path}")

    logger.info(f"Loading scans from {csv_path}")
    # utf-8-sig drops the byte order mark some exports start with. Undecodable
    # bytes (e.g. a Big5 header) only reach the skipped header or cells that
    # then parse as missing.
    with open(csv_path, "r", encoding="utf-8-sig", errors="replace") as f:
        csv_text = f.read()
    return parse_scan_csv(csv_text)


# ---------------------------------------------------------------------------
# DERIVED METRICS
# ---------------------------------------------------------------------------


def backfill_mass(weight, mass, percent):
    """
    Returns the device mass, or weight * percent / 100 when the device omitted it.

    Args:
        weight (float): Total body weight in kg.
        mass (float or None): Mass reported by the device.
        percent (float or None): Matching percentage of body weight.

    Returns:
        float or None: The mass in kg, None when neither value is available.
    """
    if mass is not None:
        return mass
    if weight is None or percent is None:
        return None
    return weight * (percent / 100)


def calculate_baseline_ffmi(fat_free_mass, weight, bmi):
    """
    Estimates FFMI without a height, using BMI = weight / height_m^2.

    FFM * BMI / weight equals FFM / height_m^2. Returns 0 when weight or BMI is
    missing or non-positive, None when fat-free mass is unknown.
    """
    if fat_free_mass is None:
        return None
    if weight is not None and bmi is not None and weight > 0 and bmi > 0:
        return (fat_free_mass * bmi) / weight
    return 0.0


def derive_measurement(raw):
    """
    Expands one raw scan into the full body composition decomposition.

    The model uses fixed ratios of fat-free mass: bone mineral 6.8%, total body
    water 73.2% (62% intracellular, 38% extracellular); protein is what remains
    after water and bone. Missing inputs propagate as None.

    Args:
        raw (RawMeasurement): The scan to expand.

    Returns:
        DerivedMeasurement: Record with ``ffmi`` equal to the baseline estimate.
    """
    body_fat_mass = backfill_mass(raw.weight, raw.body_fat_mass, raw.body_fat_percent)
    skeletal_muscle_mass = backfill_mass(
        raw.weight, raw.skeletal_muscle_mass, raw.skeletal_muscle_percent
    )

    if body_fat_mass is None:
        fat_free_mass = bone_mass = soft_lean_mass = None
        tbw = icw = ecw = protein = None
    else:
        fat_free_mass = raw.weight - body_fat_mass
        bone_mass = fat_free_mass * BONE_MASS_RATIO
        soft_lean_mass = fat_free_mass - bone_mass
        tbw = fat_free_mass * TBW_RATIO
        icw = tbw * ICW_SHARE
        ecw = tbw * ECW_SHARE
        protein = fat_free_mass - tbw - bone_mass

    baseline_ffmi = calculate_baseline_ffmi(fat_free_mass, raw.weight, raw.bmi)

    return DerivedMeasurement(
        raw=raw,
        body_fat_mass=body_fat_mass,
        skeletal_muscle_mass=skeletal_muscle_mass,
        fat_free_mass=fat_free_mass,
        bone_mass=bone_mass,
        soft_lean_mass=soft_lean_mass,
        tbw=tbw,
        icw=icw,
        ecw=ecw,
        protein=protein,
        baseline_ffmi=baseline_ffmi,
        ffmi=baseline_ffmi,
    )


def derive_series(series):
    """Derives every record of a raw series, keeping its order."""
    return tuple(derive_measurement(raw) for raw in series)


# ---------------------------------------------------------------------------
# FFMI NORMALIZATION
# ---------------------------------------------------------------------------


def parse_height_cm(value):
    """
    Interprets a height setting.

    Args:
        value: Height in cm as a number or a string typed by the user.

    Returns:
        float or None: The height when it parses to a positive finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        height_cm = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(height_cm) or height_cm <= 0:
        return None
    return height_cm


def normalize_ffmi(record, height_cm):
    """
    Recomputes FFMI from a known height.

    Args:
        record (DerivedMeasurement): The derived scan.
        height_cm (float or None): Parsed height, see ``parse_height_cm``.

    Returns:
        DerivedMeasurement: Copy with ``ffmi = FFM / height_m^2`` when height is
        known, otherwise ``ffmi = baseline_ffmi``.
    """
    if height_cm is not None and record.fat_free_mass is not None:
        height_m = height_cm / 100
        ffmi = record.fat_free_mass / (height_m * height_m)
    else:
        ffmi = record.baseline_ffmi
    return dataclasses.replace(record, ffmi=ffmi)


def normalize_series(records, height_cm):
    return tuple(normalize_ffmi(record, height_cm) for record in records)


# ---------------------------------------------------------------------------
# CLASSIFICATION
# ---------------------------------------------------------------------------


def parse_gender(gender):
    """
    Converts a user-friendly gender string to a Gender.

    Args:
        gender (str or Gender): m, f, male, female (case insensitive).

    Returns:
        Gender: The parsed gender.

    Raises:
        InvalidInputError: If the gender string is not recognized.
    """
    if isinstance(gender, Gender):
        return gender
    gender_lower = str(gender).strip().lower()
    if gender_lower in ["m", "male"]:
        return Gender.MALE
    elif gender_lower in ["f", "female"]:
        return Gender.FEMALE
    else:
        raise InvalidInputError(
            f"Unrecognized gender: {gender}. Use 'm', 'f', 'male', or 'female'."
        )


def _lookup_band(value, bands):
    """Returns (label, 1-based index) of the first band whose bound exceeds value."""
    for index, (upper, label) in enumerate(bands, start=1):
        if upper is None or value < upper:
            return label, index
    # Unreachable while every table ends with an open band
    return bands[-1][1], len(bands)


def get_ffmi_band(ffmi, gender):
    """
    Maps FFMI to its gender-specific band.

    Args:
        ffmi (float or None): Fat-free mass index in kg/m^2.
        gender (Gender or str): Selects the band table.

    Returns:
        tuple: (label, score) where score is the 1-based band index, or
               (PLACEHOLDER, 0) when FFMI is missing.
    """
    if _is_missing(ffmi):
        return PLACEHOLDER, 0
    return _lookup_band(ffmi, FFMI_BANDS[parse_gender(gender)])


def get_ffmi_category(ffmi, gender):
    """Returns the FFMI band label, e.g. 'very high' for a male at 25.8."""
    return get_ffmi_band(ffmi, gender)[0]


def get_bmi_category(bmi):
    """BMI category, gender independent. Missing or zero BMI gives the placeholder."""
    if _is_missing(bmi) or bmi == 0:
        return PLACEHOLDER
    return _lookup_band(bmi, BMI_CATEGORIES)[0]


def get_water_status(ratio):
    """
    Classifies the extracellular water ratio (ECW/TBW).

    Returns:
        str: 'dehydration' below 0.360, 'normal' up to 0.390, 'mild edema' up to
             0.400, 'edema' above, and the placeholder for a missing or zero ratio.
    """
    if _is_missing(ratio) or ratio == 0:
        return PLACEHOLDER
    if ratio < WATER_RATIO_DEHYDRATION:
        return "dehydration"
    if ratio <= WATER_RATIO_NORMAL_MAX:
        return "normal"
    if ratio <= WATER_RATIO_MILD_EDEMA_MAX:
        return "mild edema"
    return "edema"


def get_reference_status(metric, value, gender):
    """
    Compares a value with the gender-keyed reference standard.

    Body fat %, BMI and visceral fat level are 'normal' below the normal-top
    threshold and 'elevated' from it on. Skeletal muscle % is 'low', 'normal'
    or 'high' around its low-top and normal-top thresholds.

    Args:
        metric (str): 'body_fat', 'bmi', 'visceral_fat' or 'skeletal_muscle'.
        value (float or None): The measured value.
        gender (Gender or str): Selects the reference table.

    Returns:
        str: The status, or the placeholder for a missing or zero value.

    Raises:
        ValueError: If the metric name is unknown.
    """
    standard = REFERENCE_STANDARDS[parse_gender(gender)]
    thresholds = {
        "body_fat": standard.body_fat_normal_top,
        "bmi": standard.bmi_normal_top,
        "visceral_fat": standard.visceral_fat_normal_top,
    }
    if metric != "skeletal_muscle" and metric not in thresholds:
        raise ValueError(f"Unknown reference metric: {metric}")

    if _is_missing(value) or value == 0:
        return PLACEHOLDER

    if metric == "skeletal_muscle":
        if value < standard.skeletal_muscle_low_top:
            return "low"
        if value < standard.skeletal_muscle_normal_top:
            return "normal"
        return "high"

    return "normal" if value < thresholds[metric] else "elevated"


def get_body_type(bmi, body_fat_percent):
    """
    Overall body-type verdict from BMI and body fat percentage.

    Unlike the band tables, the cuts here are exclusive lower bounds: BMI above
    30 is 'obese type'; BMI above 24 is 'excess fat' when body fat is above 25%
    and 'muscular overweight' otherwise; anything else is 'standard'.

    Args:
        bmi (float or None): Exported BMI.
        body_fat_percent (float or None): Exported body fat percentage.

    Returns:
        str: The verdict, or the placeholder when BMI is missing or zero, or when
             the verdict depends on a missing body fat percentage.
    """
    if _is_missing(bmi) or bmi == 0:
        return PLACEHOLDER
    if bmi > BODY_TYPE_OBESE_BMI:
        return "obese type"
    if bmi > BODY_TYPE_OVERWEIGHT_BMI:
        if _is_missing(body_fat_percent):
            return PLACEHOLDER
        if body_fat_percent > BODY_TYPE_EXCESS_FAT_PERCENT:
            return "excess fat"
        return "muscular overweight"
    return "standard"


def classify_measurement(record, gender):
    """
    Produces every categorical label for one derived record.

    Args:
        record (DerivedMeasurement): Record with its final (normalized) FFMI.
        gender (Gender or str): Gender for the gender-specific tables.

    Returns:
        RecordClassification: Labels for FFMI, BMI, water balance, the
        reference-standard statuses and the body-type verdict.
    """
    ffmi_category, ffmi_score = get_ffmi_band(record.ffmi, gender)
    return RecordClassification(
        ffmi_category=ffmi_category,
        ffmi_score=ffmi_score,
        bmi_category=get_bmi_category(record.bmi),
        water_status=get_water_status(record.water_ratio),
        body_fat_status=get_reference_status(
            "body_fat", record.body_fat_percent, gender
        ),
        bmi_status=get_reference_status("bmi", record.bmi, gender),
        visceral_fat_status=get_reference_status(
            "visceral_fat", record.visceral_fat, gender
        ),
        skeletal_muscle_status=get_reference_status(
            "skeletal_muscle", record.skeletal_muscle_percent, gender
        ),
        body_type=get_body_type(record.bmi, record.body_fat_percent),
    )


# ---------------------------------------------------------------------------
# SEGMENTAL ESTIMATION
# ---------------------------------------------------------------------------

# The export has whole-limb percentages only, so both sides share one value
SEGMENT_REGIONS = {
    Segment.TRUNK: "trunk",
    Segment.LEFT_ARM: "arm",
    Segment.RIGHT_ARM: "arm",
    Segment.LEFT_LEG: "leg",
    Segment.RIGHT_LEG: "leg",
}


def _segment_mass(weight, segment, percent):
    if weight is None or percent is None:
        return None
    return weight * SEGMENT_MASS_FRACTIONS[segment] * (percent / 100)


def estimate_segments(record):
    """
    Distributes regional muscle and fat percentages into absolute masses.

    Each region's mass is a fixed share of body weight (trunk 46%, each arm 6%,
    each leg 18%). The shares cover 94% of the body; head and neck are left out.
    Left and right sides of a limb pair mirror each other.

    Args:
        record: A RawMeasurement or DerivedMeasurement.

    Returns:
        SegmentalBreakdown: Muscle and fat masses in ``SEGMENT_ORDER``.
    """
    muscle = []
    fat = []
    for segment in SEGMENT_ORDER:
        region = SEGMENT_REGIONS[segment]
        muscle_pct = getattr(record, f"{region}_muscle_pct")
        fat_pct = getattr(record, f"{region}_fat_pct")
        muscle_kg = _segment_mass(record.weight, segment, muscle_pct)
        fat_kg = _segment_mass(record.weight, segment, fat_pct)
        muscle.append(SegmentMass(segment, muscle_pct, muscle_kg))
        fat.append(SegmentMass(segment, fat_pct, fat_kg))
    return SegmentalBreakdown(muscle=tuple(muscle), fat=tuple(fat))


def reorder_segments(masses, order=SEGMENT_GRID_ORDER):
    """Returns the same segment masses in a presentation order."""
    by_segment = {mass.segment: mass for mass in masses}
    return tuple(by_segment[segment] for segment in order)


# ---------------------------------------------------------------------------
# TIME-RANGE SELECTION
# ---------------------------------------------------------------------------


def parse_time_range(value):
    """
    Parses a time-range setting.

    Args:
        value: 'ALL' (or empty), a four-digit year, '3M', '1Y', or a TimeRange.

    Returns:
        TimeRange: The parsed selection.

    Raises:
        InvalidInputError: For any other value.
    """
    if isinstance(value, TimeRange):
        return value
    text = "" if value is None else str(value).strip().upper()
    if text in ("", "ALL"):
        return TimeRange(RangeMode.ALL)
    if text == RangeMode.ROLLING_3M.value:
        return TimeRange(RangeMode.ROLLING_3M)
    if text == RangeMode.ROLLING_1Y.value:
        return TimeRange(RangeMode.ROLLING_1Y)
    if re.fullmatch(r"\d{4}", text):
        return TimeRange(RangeMode.YEAR, int(text))
    raise InvalidInputError(
        f"Unrecognized time range: {value}. Use 'ALL', a year, '3M' or '1Y'."
    )


def select_time_range(records, time_range):
    """
    Filters an ordered series to a time range.

    Rolling windows end at the last timestamp of the given series, not at the
    current time, and include their lower bound.

    Args:
        records (tuple): Records sorted by timestamp.
        time_range (TimeRange or str): The selection.

    Returns:
        tuple: Order-preserving subsequence of ``records``.
    """
    time_range = parse_time_range(time_range)
    if time_range.mode is RangeMode.ALL:
        return tuple(records)
    if time_range.mode is RangeMode.YEAR:
        return tuple(r for r in records if r.timestamp.year == time_range.year)
    if not records:
        return ()
    cutoff = records[-1].timestamp - timedelta(
        days=ROLLING_WINDOW_DAYS[time_range.mode]
    )
    return tuple(r for r in records if r.timestamp >= cutoff)


def available_years(records):
    """Distinct calendar years present in a series, ascending."""
    return tuple(sorted({r.timestamp.year for r in records}))


# ---------------------------------------------------------------------------
# CHANGE TRACKING AND STANDARD REFERENCE BARS
# ---------------------------------------------------------------------------


def calculate_changes_since_start(records):
    """
    Computes the change of each tracked metric from the first to the last record.

    Args:
        records (tuple): The selected, ordered records.

    Returns:
        dict: metric name -> MetricChange. Empty for an empty series.
    """
    if not records:
        return {}
    first, latest = records[0], records[-1]
    changes = {}
    for metric in CHANGE_METRICS:
        start = getattr(first, metric)
        end = getattr(latest, metric)
        change = None if start is None or end is None else end - start
        changes[metric] = MetricChange(first=start, latest=end, change=change)
    return changes


def _standard_bar(name, value, standard):
    config = STANDARD_BAR_CONFIGS[name]
    low, high = config["low_normal"], config["high_normal"]
    if value is None or standard <= 0:
        percent, band = None, PLACEHOLDER
    else:
        percent = value / standard * 100
        if percent < low:
            band = "low"
        elif percent > high:
            band = "high"
        else:
            band = "normal"
    return StandardBar(
        name=name,
        value=value,
        standard=standard,
        percent_of_standard=percent,
        normal_min=standard * low / 100,
        normal_max=standard * high / 100,
        band=band,
    )


def compute_standard_bars(latest, profile):
    """
    Compares weight, skeletal muscle and fat mass with height-based standards.

    The 100% standard weight is the weight at BMI 22 for the profile height
    (173.6 cm when unset); the muscle and fat standards are gender-specific
    shares of it.

    Args:
        latest (DerivedMeasurement or None): The most recent record.
        profile (UserProfile): Gender and height.

    Returns:
        tuple: StandardBar for 'weight', 'muscle' and 'fat'; empty without a record.
    """
    if latest is None:
        return ()
    height_m = (profile.height_cm or DEFAULT_STANDARD_HEIGHT_CM) / 100
    standard_weight = height_m * height_m * STANDARD_BMI
    standard_muscle = standard_weight * STANDARD_MUSCLE_RATIO[profile.gender]
    standard_fat = standard_weight * STANDARD_FAT_RATIO[profile.gender]
    return (
        _standard_bar("weight", latest.weight, standard_weight),
        _standard_bar("muscle", latest.skeletal_muscle_mass, standard_muscle),
        _standard_bar("fat", latest.body_fat_mass, standard_fat),
    )


# ---------------------------------------------------------------------------
# TABULAR OUTPUT
# ---------------------------------------------------------------------------

DERIVED_COLUMNS = [
    "fat_free_mass",
    "bone_mass",
    "soft_lean_mass",
    "tbw",
    "icw",
    "ecw",
    "protein",
    "baseline_ffmi",
    "ffmi",
]


def measurements_to_dataframe(records):
    """
    Flattens derived records into a DataFrame, one row per scan.

    Missing values become NaN so the frame can be used with the usual pandas
    tooling.
    """
    columns = ["timestamp", "date_label"] + NUMERIC_COLUMNS + DERIVED_COLUMNS
    rows = [{col: getattr(record, col) for col in columns} for record in records]
    df = pd.DataFrame(rows, columns=columns)
    numeric = NUMERIC_COLUMNS + DERIVED_COLUMNS
    df[numeric] = df[numeric].astype(float)
    return df


def _fmt(value, spec=".1f", signed=False):
    if _is_missing(value):
        return "N/A"
    return format(value, ("+" if signed else "") + spec)


def create_scan_comparison_table(view):
    """
    Creates a comparison table of the selected scans with a Changes row at bottom.

    Args:
        view (DerivedView): The computed view.

    Returns:
        str: Pipe-formatted table.
    """
    if view.is_empty:
        return "No scan data available for comparison"

    headers = [
        "Date",
        "Weight",
        "BF%",
        "Fat",
        "FFM",
        "SMM%",
        "BMI",
        "FFMI",
        "FFMI band",
        "ECW/TBW",
    ]
    table_data = []
    for record, labels in zip(view.records, view.classifications):
        table_data.append(
            [
                record.date_label,
                _fmt(record.weight),
                _fmt(record.body_fat_percent),
                _fmt(record.body_fat_mass),
                _fmt(record.fat_free_mass),
                _fmt(record.skeletal_muscle_percent),
                _fmt(record.bmi),
                _fmt(record.ffmi, ".2f"),
                labels.ffmi_category,
                _fmt(record.water_ratio, ".3f"),
            ]
        )

    if len(view.records) > 1:
        changes = view.changes
        table_data.append(
            [
                "Changes",
                _fmt(changes["weight"].change, signed=True),
                _fmt(changes["body_fat_percent"].change, signed=True),
                _fmt(changes["body_fat_mass"].change, signed=True),
                _fmt(changes["fat_free_mass"].change, signed=True),
                _fmt(changes["skeletal_muscle_percent"].change, signed=True),
                _fmt(changes["bmi"].change, signed=True),
                _fmt(changes["ffmi"].change, ".2f", signed=True),
                "",
                "",
            ]
        )

    return tabulate(table_data, headers=headers, tablefmt="pipe")


def create_segment_table(breakdown, order=SEGMENT_GRID_ORDER):
    """Formats a segmental breakdown as a table, one row per body region."""
    headers = ["Segment", "Muscle %", "Muscle kg", "Fat %", "Fat kg"]
    rows = [
        [
            muscle.segment.value.replace("_", " "),
            _fmt(muscle.percent),
            _fmt(muscle.mass_kg),
            _fmt(fat.percent),
            _fmt(fat.mass_kg),
        ]
        for muscle, fat in zip(
            reorder_segments(breakdown.muscle, order),
            reorder_segments(breakdown.fat, order),
        )
    ]
    return tabulate(rows, headers=headers, tablefmt="pipe")
