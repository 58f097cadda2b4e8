"""
Tests for core/export.py — CSV/HTML/JSON serialisers and export errors.
"""

import json
import os
import re
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.export import (
    ExportError,
    NoTabularDataError,
    UnsupportedFormatError,
    convert_to_csv,
    export_report,
    generate_html,
)
from core.report_templates import get_template, process_template


@pytest.fixture
def class_report():
    data = {
        "class": {"name": "Form 3 East"},
        "students": [
            {"name": "Achieng", "student_id": "S1", "grades": [{"score": 90}, {"score": 80}]},
            {"name": "Baraka", "student_id": "S2", "grades": [{"score": 40}, {"score": 50}]},
        ],
    }
    return process_template(get_template("class_performance"), data)


@pytest.fixture
def attendance_report():
    data = {"attendance": [{"status": "present"}, {"status": "absent"}]}
    return process_template(get_template("attendance_summary"), data)


class TestConvertToCsv:
    """Header of first-row keys, quoted values."""

    def test_header_and_rows(self):
        rows = [{"name": "Achieng", "average": 85}, {"name": "Baraka", "average": 45}]
        assert convert_to_csv(rows) == 'name,average\n"Achieng","85"\n"Baraka","45"'

    def test_embedded_quotes_doubled(self):
        rows = [{"comment": 'Said "excellent" work'}]
        assert convert_to_csv(rows) == 'comment\n"Said ""excellent"" work"'

    def test_commas_stay_inside_field(self):
        rows = [{"name": "Otieno, Amina"}]
        assert convert_to_csv(rows) == 'name\n"Otieno, Amina"'

    def test_none_and_missing_are_empty(self):
        rows = [{"name": "A", "rank": None}, {"name": "B"}]
        assert convert_to_csv(rows) == 'name,rank\n"A",""\n"B",""'

    def test_zero_is_kept(self):
        rows = [{"score": 0}]
        assert convert_to_csv(rows) == 'score\n"0"'

    def test_empty(self):
        assert convert_to_csv([]) == ""


class TestCsvExport:
    """First table section to CSV."""

    def test_ranking_table_csv(self, class_report):
        artifact = export_report(class_report, "csv")
        lines = artifact["content"].split("\n")
        assert lines[0] == "name,student_id,average,letter_grade,rank"
        assert lines[1] == '"Achieng","S1","85","A","N/A"'
        assert artifact["mime_type"] == "text/csv"
        assert artifact["format"] == "csv"

    def test_no_table_raises(self, attendance_report):
        with pytest.raises(NoTabularDataError, match="No tabular data found for CSV export"):
            export_report(attendance_report, "csv")

    def test_alert_table_is_not_tabular(self, attendance_report):
        # alert_table rows exist but only subject/ranking tables export.
        attendance_report["sections"].append(
            {"id": "alerts", "type": "alert_table", "content": {"type": "alert_table", "data": [{"a": 1}]}}
        )
        with pytest.raises(NoTabularDataError):
            export_report(attendance_report, "csv")


class TestExcelExport:
    """Workbook descriptor."""

    def test_sheets(self, class_report):
        workbook = export_report(class_report, "excel")["content"]
        assert [s["name"] for s in workbook["sheets"]] == ["student_rankings"]
        assert workbook["sheets"][0]["data"][0]["name"] == "Achieng"
        assert workbook["metadata"]["title"] == "Class Performance Analysis"

    def test_no_table_raises(self, attendance_report):
        with pytest.raises(NoTabularDataError):
            export_report(attendance_report, "excel")

    def test_filename_extension(self, class_report):
        assert export_report(class_report, "excel")["filename"].endswith(".xlsx")


class TestHtmlExport:
    """Screen and print HTML."""

    def test_sections_rendered(self, class_report):
        content = export_report(class_report, "html")["content"]
        assert "<!DOCTYPE html>" in content
        assert "<title>Class Performance Analysis</title>" in content
        assert "Summary Statistics" in content
        assert "<td>Achieng</td>" in content
        assert "Top performing class: Form 3 East" in content
        assert "CONFIDENTIAL" in content

    def test_screen_vs_print_styles(self, class_report):
        screen = export_report(class_report, "html")["content"]
        printed = export_report(class_report, "html", {"for_print": True})["content"]
        assert "box-shadow" in screen
        assert "box-shadow" not in printed

    def test_values_escaped(self):
        processed = process_template(
            get_template("class_performance"),
            {"students": [{"name": "<b>Bold</b>", "student_id": "S9", "grades": [{"score": 50}]}]},
        )
        content = generate_html(processed)
        assert "&lt;b&gt;Bold&lt;/b&gt;" in content
        assert "<b>Bold</b>" not in content

    def test_unknown_section_as_json(self, attendance_report):
        content = export_report(attendance_report, "html")["content"]
        assert '<div class="section unknown">' in content

    def test_empty_table(self, attendance_report):
        content = export_report(attendance_report, "html")["content"]
        assert "No data available" in content


class TestPdfExport:
    """PDF staging is print-styled HTML."""

    def test_pdf_is_print_html(self, class_report):
        artifact = export_report(class_report, "pdf")
        assert artifact["mime_type"] == "application/pdf"
        assert "@page" in artifact["content"]
        assert "box-shadow" not in artifact["content"]
        assert artifact["filename"].endswith(".pdf")


class TestJsonExport:
    """Lossless apart from datetime serialisation."""

    def test_round_trip(self, class_report):
        content = export_report(class_report, "json")["content"]
        restored = json.loads(content)
        expected = {**class_report, "generated_at": class_report["generated_at"].isoformat()}
        assert restored == expected

    def test_indented(self, class_report):
        content = export_report(class_report, "json")["content"]
        assert content.startswith("{\n  ")


class TestExportReport:
    """Format resolution and artifact metadata."""

    def test_unsupported_format(self, class_report):
        with pytest.raises(UnsupportedFormatError, match="Unsupported export format: docx"):
            export_report(class_report, "docx")

    def test_errors_share_base(self):
        assert issubclass(UnsupportedFormatError, ExportError)
        assert issubclass(NoTabularDataError, ExportError)
        assert issubclass(ExportError, ValueError)

    def test_filename_pattern(self, class_report):
        filename = export_report(class_report, "json")["filename"]
        assert re.fullmatch(r"Class_Performance_Analysis_\d+\.json", filename)

    @pytest.mark.parametrize("fmt,mime", [
        ("pdf", "application/pdf"),
        ("excel", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
        ("csv", "text/csv"),
        ("html", "text/html"),
        ("json", "application/json"),
    ])
    def test_mime_types(self, class_report, fmt, mime):
        assert export_report(class_report, fmt)["mime_type"] == mime
