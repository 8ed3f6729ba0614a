"""
Report View API Layer for ScanTracker

This module provides a clean, cacheable API layer that bridges the analysis
engine in ``core`` with presentation code (the CLI, or any chart or dashboard
front end). It replaces event-driven UI state with two pieces:

- ``compute_view``: a pure function from (series, time range, profile) to a
  fully derived ``DerivedView``, memoized on exactly those inputs
- ``ReportEngine``: holds the current immutable inputs, persists profile
  changes to an injected preference store and recomputes the view on demand

Memoization is an optimization only; a cache miss and a cache hit always
return equal views.
"""

import functools
import logging
from types import MappingProxyType
from typing import Optional, Tuple, Union

from core import (
    InvalidInputError,
    ScanTrackerError,
    available_years,
    calculate_changes_since_start,
    classify_measurement,
    compute_standard_bars,
    derive_series,
    estimate_segments,
    load_scans_csv,
    normalize_series,
    parse_gender,
    parse_height_cm,
    parse_scan_csv,
    parse_time_range,
    select_time_range,
)
from preferences import PreferenceStore, load_profile, save_profile
from shared_models import (
    DerivedView,
    Gender,
    RawMeasurement,
    TimeRange,
    UserProfile,
)

logger = logging.getLogger(__name__)

__all__ = [
    "InvalidInputError",
    "ReportEngine",
    "ScanTrackerError",
    "compute_view",
]

VIEW_CACHE_SIZE = 64


# ============================================================================
# CORE API FUNCTION
# ============================================================================


def compute_view(
    series: Tuple[RawMeasurement, ...],
    time_range: Union[TimeRange, str] = "ALL",
    profile: Optional[UserProfile] = None,
) -> DerivedView:
    """
    Compute the complete analytics view for the current inputs.

    Steps: derive every raw record, select the time range on the full derived
    series, normalize FFMI with the profile height, classify each selected
    record, then estimate segments, changes and standard bars from the first
    and latest selected records.

    Args:
        series: Raw measurements sorted by timestamp
        time_range: Selection mode or its string form ('ALL', '2024', '3M', '1Y')
        profile: Gender and height (defaults to male with no height)

    Returns:
        DerivedView: The view; ``is_empty`` is True when nothing was selected

    Raises:
        InvalidInputError: If the time range is not recognized
    """
    profile = profile or UserProfile()
    time_range = parse_time_range(time_range)
    return _cached_view(tuple(series), time_range, profile.height_cm, profile.gender)


@functools.lru_cache(maxsize=VIEW_CACHE_SIZE)
def _cached_view(
    series: Tuple[RawMeasurement, ...],
    time_range: TimeRange,
    height_cm: Optional[float],
    gender: Gender,
) -> DerivedView:
    logger.debug(
        f"Computing view: {len(series)} scans, range {time_range}, "
        f"height {height_cm}, gender {gender.value}"
    )
    profile = UserProfile(gender=gender, height_cm=height_cm)

    derived = derive_series(series)
    selected = select_time_range(derived, time_range)
    records = normalize_series(selected, height_cm)
    classifications = tuple(classify_measurement(r, gender) for r in records)

    first = records[0] if records else None
    latest = records[-1] if records else None

    return DerivedView(
        profile=profile,
        time_range=time_range,
        records=records,
        classifications=classifications,
        first=first,
        latest=latest,
        segments=estimate_segments(latest) if latest is not None else None,
        changes=MappingProxyType(calculate_changes_since_start(records)),
        standard_bars=compute_standard_bars(latest, profile),
        available_years=available_years(series),
    )


def clear_view_cache():
    """Drop all memoized views."""
    _cached_view.cache_clear()


# ============================================================================
# ENGINE
# ============================================================================


class ReportEngine:
    """
    Holds the current inputs and hands out the derived view.

    The profile is loaded from the preference store once at construction and
    written back whenever gender or height changes. Loading a new export
    replaces the whole series in one step; a failed or partial parse is never
    visible.
    """

    def __init__(
        self, store: PreferenceStore, time_range: Union[TimeRange, str] = "ALL"
    ):
        self._store = store
        self._profile = load_profile(store)
        self._time_range = parse_time_range(time_range)
        self._series: Tuple[RawMeasurement, ...] = ()
        logger.info(
            f"Engine ready (gender {self._profile.gender.value}, "
            f"height {self._profile.height_cm or 'unset'})"
        )

    @property
    def series(self) -> Tuple[RawMeasurement, ...]:
        return self._series

    @property
    def profile(self) -> UserProfile:
        return self._profile

    @property
    def time_range(self) -> TimeRange:
        return self._time_range

    @property
    def view(self) -> DerivedView:
        return compute_view(self._series, self._time_range, self._profile)

    def load_csv_text(self, csv_text: str) -> int:
        """Replace the series with the scans parsed from an export. Returns the count."""
        series = parse_scan_csv(csv_text)
        self._series = series
        return len(series)

    def load_csv_file(self, csv_path: str) -> int:
        """Replace the series with the scans of an export file. Returns the count."""
        series = load_scans_csv(csv_path)
        self._series = series
        return len(series)

    def set_gender(self, gender: Union[Gender, str]) -> None:
        """Change gender and persist it. Raises InvalidInputError for unknown values."""
        self._profile = UserProfile(
            gender=parse_gender(gender), height_cm=self._profile.height_cm
        )
        save_profile(self._store, self._profile)

    def set_height(self, height) -> None:
        """Change height and persist it; anything that is not a positive number clears it."""
        self._profile = UserProfile(
            gender=self._profile.gender, height_cm=parse_height_cm(height)
        )
        save_profile(self._store, self._profile)

    def set_time_range(self, time_range: Union[TimeRange, str]) -> None:
        self._time_range = parse_time_range(time_range)
