"""
Tests for parsing scale exports into raw measurements.

Covers column mapping, row dropping rules, missing-value handling and ordering.
"""

from datetime import datetime

import pytest

from core import load_scans_csv, parse_scan_csv


class TestDemoExport:
    """The bundled three-scan export"""

    def test_all_rows_parsed_in_order(self, demo_series):
        assert len(demo_series) == 3
        assert [m.date_label for m in demo_series] == [
            "2021/12/15",
            "2023/01/10",
            "2025/11/25",
        ]
        assert demo_series[0].timestamp == datetime(2021, 12, 15, 17, 25)

    def test_columns_map_to_fields(self, demo_series):
        latest = demo_series[-1]
        assert latest.weight == 99.5
        assert latest.body_fat_percent == 27.8
        assert latest.body_fat_mass == 27.7
        assert latest.visceral_fat == 21.0
        assert latest.bmr == 2063
        assert latest.skeletal_muscle_percent == 31.9
        assert latest.skeletal_muscle_mass == 31.7
        assert latest.arm_muscle_pct == 34.3
        assert latest.trunk_muscle_pct == 23.7
        assert latest.leg_muscle_pct == 49.2
        assert latest.sub_fat_percent == 20.4
        assert latest.arm_fat_pct == 22.2
        assert latest.trunk_fat_pct == 18.9
        assert latest.leg_fat_pct == 22.7
        assert latest.bmi == 33.1
        assert latest.body_age == 61
        assert latest.timezone == "Asia/Taipei"
        assert latest.model == "HBF-702T"

    def test_blank_masses_are_missing(self, demo_series):
        first = demo_series[0]
        assert first.body_fat_mass is None
        assert first.skeletal_muscle_mass is None

    def test_reparse_is_identical(self, demo_csv_text):
        assert parse_scan_csv(demo_csv_text) == parse_scan_csv(demo_csv_text)


class TestRowFiltering:
    """Rows that are dropped versus kept"""

    def test_empty_input(self):
        assert parse_scan_csv("") == ()
        assert parse_scan_csv(None) == ()

    def test_header_only(self, build_csv):
        assert parse_scan_csv(build_csv()) == ()

    def test_short_row_dropped(self, build_csv, build_row):
        text = build_csv(
            '"2024/01/01 08:00","Asia/Taipei","80.0"',
            build_row("2024/02/01 08:00"),
        )
        series = parse_scan_csv(text)
        assert [m.date_label for m in series] == ["2024/02/01"]

    def test_five_field_row_kept(self, build_csv):
        text = build_csv('"2024/01/01 08:00","Asia/Taipei","80.0","25.0","20.0"')
        (scan,) = parse_scan_csv(text)
        assert scan.weight == 80.0
        assert scan.body_fat_mass == 20.0
        assert scan.bmi is None
        assert scan.model is None

    def test_non_numeric_weight_dropped(self, build_csv, build_row):
        text = build_csv(
            build_row("2024/01/01 08:00", weight="--"),
            build_row("2024/01/02 08:00", weight=""),
            build_row("2024/01/03 08:00", weight="81.2"),
        )
        series = parse_scan_csv(text)
        assert [m.weight for m in series] == [81.2]

    def test_unparseable_date_dropped(self, build_csv, build_row):
        text = build_csv(
            build_row("not a date"),
            build_row("2024/01/03 08:00"),
        )
        assert len(parse_scan_csv(text)) == 1

    def test_fully_malformed_input(self):
        assert parse_scan_csv("a,b\nc,d\n\n,,") == ()

    def test_dropped_rows_are_logged(self, build_csv, build_row, caplog):
        text = build_csv(build_row("2024/01/01 08:00", weight="x"))
        with caplog.at_level("WARNING", logger="core"):
            parse_scan_csv(text)
        assert "Dropping line 2" in caplog.text


class TestValues:
    """Numeric and date parsing"""

    def test_non_numeric_secondary_field_is_missing(self, build_csv, build_row):
        text = build_csv(build_row("2024/01/01 08:00", bmi="n/a"))
        (scan,) = parse_scan_csv(text)
        assert scan.bmi is None
        assert scan.weight == 80.0

    def test_iso_timestamp_accepted(self, build_csv, build_row):
        text = build_csv(build_row("2024-03-01T08:30:00"))
        (scan,) = parse_scan_csv(text)
        assert scan.timestamp == datetime(2024, 3, 1, 8, 30)
        assert scan.date_label == "2024-03-01T08:30:00"

    def test_windows_line_endings(self, build_csv, build_row):
        text = build_csv(
            build_row("2024/01/01 08:00"), build_row("2024/01/02 08:00")
        ).replace("\n", "\r\n")
        assert len(parse_scan_csv(text)) == 2


class TestOrdering:
    """Output is sorted ascending by timestamp with a stable sort"""

    def test_sorted_ascending(self, build_csv, build_row):
        text = build_csv(
            build_row("2024/05/01 08:00", weight="79.0"),
            build_row("2023/05/01 08:00", weight="85.0"),
            build_row("2024/01/01 08:00", weight="82.0"),
        )
        series = parse_scan_csv(text)
        assert [m.weight for m in series] == [85.0, 82.0, 79.0]
        timestamps = [m.timestamp for m in series]
        assert timestamps == sorted(timestamps)

    def test_ties_keep_input_order(self, build_csv, build_row):
        text = build_csv(
            build_row("2024/05/01 08:00", weight="79.0"),
            build_row("2024/01/01 08:00", weight="90.0"),
            build_row("2024/05/01 08:00", weight="78.0"),
            build_row("2024/05/01 08:00", weight="77.0"),
        )
        series = parse_scan_csv(text)
        assert [m.weight for m in series] == [90.0, 79.0, 78.0, 77.0]


class TestLoadFromFile:
    def test_load_example_file(self, tmp_path, demo_csv_text):
        path = tmp_path / "export.csv"
        # Exports written by spreadsheet tools often start with a BOM
        path.write_text("\ufeff" + demo_csv_text, encoding="utf-8")
        assert len(load_scans_csv(str(path))) == 3

    def test_big5_header(self, tmp_path, demo_csv_text):
        path = tmp_path / "export.csv"
        header = '"測量日期","時區","體重(kg)","體脂肪率(%)"\n'.encode("big5")
        rows = demo_csv_text.split("\n", 1)[1].encode("ascii")
        path.write_bytes(header + rows)
        series = load_scans_csv(str(path))
        assert [m.weight for m in series] == [117.8, 102.1, 99.5]

    def test_big5_cell_becomes_missing(self, tmp_path, build_row):
        path = tmp_path / "export.csv"
        row = build_row("2024/01/01 08:00", bmi="無").encode("big5")
        path.write_bytes(b"header\n" + row)
        (scan,) = load_scans_csv(str(path))
        assert scan.weight == 80.0
        assert scan.bmi is None

    def test_engine_loads_non_utf8_export(self, tmp_path, memory_store, demo_csv_text):
        from report_api import ReportEngine

        path = tmp_path / "export.csv"
        path.write_bytes(demo_csv_text.encode("utf-8").replace(b"Measurement", b"\xb4\xfa"))
        engine = ReportEngine(memory_store)
        assert engine.load_csv_file(str(path)) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_scans_csv(str(tmp_path / "missing.csv"))
