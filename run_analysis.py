#!/usr/bin/env python3
"""
ScanTracker - Main CLI Script

This is the main entry point for ScanTracker body composition analysis. It
reads a scale export, applies the saved gender and height preferences (or the
ones given on the command line, which are saved for next time) and prints the
derived report. The analysis itself lives in the core and report_api modules.
"""

import argparse
import logging
import os

from core import (
    PLACEHOLDER,
    InvalidInputError,
    create_scan_comparison_table,
    create_segment_table,
)
from preferences import JsonFilePreferenceStore
from report_api import ReportEngine

DEFAULT_PREFS_FILE = ".scantracker_prefs.json"


def main(argv=None):
    """Main CLI function with comprehensive argument parsing."""
    parser = argparse.ArgumentParser(
        description="ScanTracker body composition report from a scale export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py                              # Use example_scans.csv
  python run_analysis.py my_export.csv                # Use your own export
  python run_analysis.py my_export.csv --height 175   # FFMI from your height
  python run_analysis.py my_export.csv --range 1Y     # Last 365 days only

CSV format (header row is skipped, columns are positional):
  date-time, timezone, weight, body fat %, body fat mass, visceral fat, BMR,
  skeletal muscle %, skeletal muscle mass, arm/trunk/leg muscle %,
  subcutaneous fat %, arm/trunk/leg fat %, BMI, body age, model

Notes:
  - Gender and height are remembered in the preferences file
  - Blank body fat / skeletal muscle masses are filled in from the percentages
  - Without a height, FFMI is estimated from the exported BMI
        """,
    )

    parser.add_argument(
        "csv_file",
        nargs="?",
        default="example_scans.csv",
        help="Path to the exported CSV file (default: example_scans.csv)",
    )
    parser.add_argument(
        "--gender",
        "-g",
        help="Gender for the reference tables: male/female/m/f (saved)",
    )
    parser.add_argument(
        "--height",
        help="Height in cm for FFMI; pass an empty string to clear it (saved)",
    )
    parser.add_argument(
        "--range",
        "-r",
        dest="time_range",
        default="ALL",
        help="Time range: ALL, a year such as 2024, 3M or 1Y (default: ALL)",
    )
    parser.add_argument(
        "--prefs",
        default=DEFAULT_PREFS_FILE,
        help=f"Preferences file (default: {DEFAULT_PREFS_FILE})",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    # Validate the export exists
    if not os.path.exists(args.csv_file):
        print(f"Error: Scan export not found: {args.csv_file}")
        print()
        print("Please check the file path and try again.")
        return 1

    try:
        engine = ReportEngine(JsonFilePreferenceStore(args.prefs))
        if args.gender is not None:
            engine.set_gender(args.gender)
        if args.height is not None:
            engine.set_height(args.height)
        engine.set_time_range(args.time_range)
        engine.load_csv_file(args.csv_file)
    except InvalidInputError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nAnalysis interrupted by user.")
        return 1

    print_report(engine.view)
    return 0


def print_report(view):
    """Print the report for a computed view."""
    profile = view.profile
    print("ScanTracker Body Composition Report")
    print("=" * 40)
    print(f"  - Gender: {profile.gender.value}")
    if profile.height_cm:
        print(f"  - Height: {profile.height_cm:g} cm")
    else:
        print("  - Height: not set (FFMI estimated from BMI)")
    print(f"  - Range: {view.time_range}")
    if view.available_years:
        years = ", ".join(str(year) for year in view.available_years)
        print(f"  - Years available: {years}")
    print()

    if view.is_empty:
        print("No scan data in the selected range.")
        return

    print("--- Scans ---")
    print(create_scan_comparison_table(view))

    latest = view.latest
    labels = view.classifications[-1]
    print(f"\n--- Latest Scan ({latest.date_label}) ---")
    print(f"  - FFMI: {_fmt(latest.ffmi, '.1f')} ({labels.ffmi_category})")
    print(
        f"  - BMI: {_fmt(latest.bmi, '.1f')} "
        f"({labels.bmi_category}, {labels.bmi_status})"
    )
    print(
        f"  - Body fat: {_fmt(latest.body_fat_percent, '.1f')}% "
        f"({labels.body_fat_status})"
    )
    print(
        f"  - Visceral fat: {_fmt(latest.visceral_fat, '.1f')} "
        f"({labels.visceral_fat_status})"
    )
    print(
        f"  - Skeletal muscle: {_fmt(latest.skeletal_muscle_percent, '.1f')}% "
        f"({labels.skeletal_muscle_status})"
    )
    print(f"  - ECW/TBW: {_fmt(latest.water_ratio, '.3f')} ({labels.water_status})")
    print(f"  - Body type: {labels.body_type}")
    print(
        f"  - Water {_fmt(latest.tbw, '.1f')} kg, protein {_fmt(latest.protein, '.1f')} kg, "
        f"bone {_fmt(latest.bone_mass, '.1f')} kg, fat {_fmt(latest.body_fat_mass, '.1f')} kg"
    )

    print("\n--- Segmental Estimate ---")
    print(create_segment_table(view.segments))

    print("\n--- Percent of Standard ---")
    for bar in view.standard_bars:
        print(
            f"  - {bar.name.capitalize()}: {_fmt(bar.value, '.1f')} kg, "
            f"{_fmt(bar.percent_of_standard, '.0f')}% of standard "
            f"(normal {bar.normal_min:.1f}-{bar.normal_max:.1f} kg, {bar.band})"
        )


def _fmt(value, spec):
    return PLACEHOLDER if value is None else format(value, spec)


if __name__ == "__main__":
    exit(main())
