"""Shared fixtures for the ScanTracker test suite."""

from pathlib import Path

import pytest

from core import parse_scan_csv
from preferences import InMemoryPreferenceStore
from report_api import ReportEngine, clear_view_cache

EXAMPLE_CSV_PATH = Path(__file__).resolve().parents[1] / "example_scans.csv"

CSV_HEADER = (
    '"Date","TZ","Weight","BF%","BF kg","Visceral","BMR","SM%","SM kg",'
    '"Arm SM%","Trunk SM%","Leg SM%","Sub fat%","Arm fat%","Trunk fat%",'
    '"Leg fat%","BMI","Body age","Model"'
)


def make_row(
    when,
    weight="80.0",
    body_fat_percent="20.0",
    body_fat_mass="",
    skeletal_percent="35.0",
    skeletal_mass="",
    bmi="25.0",
):
    """One quoted export row with plausible regional values."""
    cells = [
        when,
        "Asia/Taipei",
        weight,
        body_fat_percent,
        body_fat_mass,
        "10.0",
        "1800",
        skeletal_percent,
        skeletal_mass,
        "33.0",
        "22.0",
        "48.0",
        "18.0",
        "21.0",
        "17.0",
        "20.0",
        bmi,
        "40",
        "HBF-702T",
    ]
    return ",".join(f'"{cell}"' for cell in cells)


def make_csv(*rows):
    return "\n".join([CSV_HEADER, *rows])


@pytest.fixture(autouse=True)
def fresh_view_cache():
    clear_view_cache()
    yield
    clear_view_cache()


@pytest.fixture
def demo_csv_text():
    return EXAMPLE_CSV_PATH.read_text(encoding="utf-8")


@pytest.fixture
def demo_series(demo_csv_text):
    return parse_scan_csv(demo_csv_text)


@pytest.fixture
def memory_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def demo_engine(memory_store, demo_csv_text):
    engine = ReportEngine(memory_store)
    engine.load_csv_text(demo_csv_text)
    return engine


@pytest.fixture
def build_row():
    return make_row


@pytest.fixture
def build_csv():
    return make_csv
