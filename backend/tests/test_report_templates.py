"""
Tests for core/report_templates.py — catalog lookup and section processing.
"""

import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.report_templates import (
    TemplateType,
    generate_data_hash,
    generate_section_content,
    get_template,
    list_templates,
    process_template,
)


def section_content(processed, section_id):
    return next(s["content"] for s in processed["sections"] if s["id"] == section_id)


@pytest.fixture
def student_data():
    return {
        "student": {"name": "Amina Otieno", "student_id": "S001", "class": "Form 2", "rank": 3},
        "grades": [
            {"subject_id": 1, "score": 78},
            {"subject_id": 1, "score": 82},
            {"subject_id": 2, "score": 35},
            {"subject_id": 3, "score": 64.5},
        ],
        "subjects": [
            {"id": 1, "name": "Mathematics"},
            {"id": 2, "name": "English"},
            {"id": 3, "name": "Biology"},
        ],
        "school": {"name": "Test School"},
        "period": "Term 1 2024",
        "trend_data": [{"date": "2024-01", "value": 70}, {"date": "2024-02", "value": 74}],
    }


@pytest.fixture
def class_data():
    return {
        "class": {"name": "Form 3 East", "teacher": "Mr. Kamau", "student_count": 3},
        "students": [
            {"name": "Achieng", "student_id": "S1", "grades": [{"score": 90}, {"score": 80}]},
            {"name": "Baraka", "student_id": "S2", "grades": [{"score": 40}, {"score": 50}]},
            {"name": "Chebet", "student_id": "S3", "grades": [{"score": 70}, {"score": 60}]},
        ],
        "grade_distribution": {"A": 1, "C": 1, "D": 1},
    }


class TestCatalog:
    """Template lookup."""

    def test_known_templates(self):
        assert get_template("student_progress")["title"] == "Student Progress Report"
        assert get_template(TemplateType.CLASS_PERFORMANCE)["title"] == "Class Performance Analysis"
        assert get_template("attendance_summary")["title"] == "Attendance Summary Report"

    def test_declared_type_without_template(self):
        assert get_template("grade_analysis") is None

    def test_unknown_type(self):
        assert get_template("nonexistent") is None

    def test_returns_copy(self):
        template = get_template("student_progress")
        template["sections"].clear()
        assert len(get_template("student_progress")["sections"]) == 8

    def test_section_order(self):
        ids = [s["id"] for s in get_template("class_performance")["sections"]]
        assert ids == [
            "header", "class_info", "performance_overview", "grade_distribution",
            "student_rankings", "subject_comparison", "insights", "footer",
        ]

    def test_list_templates(self):
        listing = {t["type"]: t["title"] for t in list_templates()}
        assert listing["student_progress"] == "Student Progress Report"
        assert listing["administrative"] is None
        assert len(listing) == len(TemplateType)


class TestStudentProgress:
    """Sections populated from a single student's data."""

    def test_header(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        header = section_content(processed, "header")
        assert header["school_name"] == "Test School"
        assert header["academic_period"] == "Term 1 2024"
        assert header["report_title"] == "Academic Report"

    def test_student_details(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        details = section_content(processed, "student_info")
        assert details["name"] == "Amina Otieno"
        assert details["admission_date"] == "N/A"

    def test_academic_summary(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        stats = section_content(processed, "academic_summary")["stats"]
        assert stats == {
            "average_grade": 65,
            "total_subjects": 3,
            "passed_subjects": 3,
            "rank": 3,
        }

    def test_subject_table(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        rows = section_content(processed, "subject_breakdown")["data"]
        assert rows == [
            {"subject": "Mathematics", "grade": 80, "letter_grade": "A", "status": "Pass", "assessments": 2},
            {"subject": "English", "grade": 35, "letter_grade": "F", "status": "Fail", "assessments": 1},
            {"subject": "Biology", "grade": 65, "letter_grade": "C", "status": "Pass", "assessments": 1},
        ]

    def test_line_chart_passes_data_through(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        chart = section_content(processed, "attendance_chart")
        assert chart["chart_type"] == "line"
        assert chart["config"]["title"] == "Performance Trend"
        assert chart["config"]["data"] == student_data["trend_data"]

    def test_bar_chart_defaults_to_empty(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        assert section_content(processed, "grade_trends")["config"]["data"] == []

    def test_recommendations_for_struggling_student(self, student_data):
        student_data["grades"] = [{"subject_id": 1, "score": 30}]
        processed = process_template(get_template("student_progress"), student_data)
        text = section_content(processed, "recommendations")["content"]
        assert text == "Immediate academic support required\nConsider additional tutoring sessions"

    def test_recommendations_for_excellent_student(self, student_data):
        student_data["grades"] = [{"subject_id": 1, "score": 92}]
        processed = process_template(get_template("student_progress"), student_data)
        text = section_content(processed, "recommendations")["content"]
        assert text.startswith("Excellent performance")

    def test_recommendations_middle_band_empty(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        assert section_content(processed, "recommendations")["content"] == ""

    def test_footer(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        footer = section_content(processed, "footer")
        assert footer["confidential"] is True
        assert footer["version"] == "1.0.0"


class TestClassPerformance:
    """Sections populated from a class roster."""

    def test_performance_overview(self, class_data):
        processed = process_template(get_template("class_performance"), class_data)
        stats = section_content(processed, "performance_overview")["stats"]
        assert stats == {
            "class_average": 65,
            "pass_rate": 100,
            "total_students": 3,
            "standard_deviation": 17,
        }

    def test_ranking_table_sorted(self, class_data):
        processed = process_template(get_template("class_performance"), class_data)
        rows = section_content(processed, "student_rankings")["data"]
        assert [r["name"] for r in rows] == ["Achieng", "Chebet", "Baraka"]
        assert [r["letter_grade"] for r in rows] == ["A", "C", "D"]
        assert rows[0]["rank"] == "N/A"

    def test_pie_chart(self, class_data):
        processed = process_template(get_template("class_performance"), class_data)
        chart = section_content(processed, "grade_distribution")
        assert chart["chart_type"] == "pie"
        assert chart["config"] == {"title": "Grade Distribution", "data": {"A": 1, "C": 1, "D": 1}}

    def test_insights_name_the_class(self, class_data):
        processed = process_template(get_template("class_performance"), class_data)
        text = section_content(processed, "insights")["content"]
        assert text == "Top performing class: Form 3 East (65.0% average)"

    def test_class_details(self, class_data):
        processed = process_template(get_template("class_performance"), class_data)
        details = section_content(processed, "class_info")
        assert details["teacher"] == "Mr. Kamau"
        assert details["subjects"] == []


class TestAttendanceSummary:
    """Attendance stats, alerts and the unhandled period section."""

    def test_attendance_stats(self):
        data = {"attendance": [{"status": "present"}] * 3 + [{"status": "absent"}]}
        processed = process_template(get_template("attendance_summary"), data)
        assert section_content(processed, "attendance_stats")["stats"] == {
            "attendance_rate": 75,
            "total_days": 4,
            "present_days": 3,
            "absent_days": 1,
        }

    def test_no_attendance_days(self):
        processed = process_template(get_template("attendance_summary"), {"attendance": []})
        assert section_content(processed, "attendance_stats")["stats"]["attendance_rate"] == 0

    def test_period_section_is_unknown(self):
        processed = process_template(get_template("attendance_summary"), {})
        assert section_content(processed, "period_info") == {
            "type": "unknown",
            "content": "Unknown section type",
        }

    def test_alert_table_defaults(self):
        data = {"risk_students": [{"name": "Baraka", "student_id": "S2"}]}
        processed = process_template(get_template("attendance_summary"), data)
        rows = section_content(processed, "risk_students")["data"]
        assert rows == [{
            "name": "Baraka",
            "student_id": "S2",
            "risk_level": "Medium",
            "issue": "Performance concern",
            "recommendation": "Monitor closely",
        }]


class TestProcessing:
    """Dispatch, defaults and metadata."""

    def test_unknown_section_type(self):
        content = generate_section_content({"id": "x", "type": "bogus"}, {})
        assert content == {"type": "unknown", "content": "Unknown section type"}

    def test_summary_with_unrecognised_id(self):
        content = generate_section_content({"id": "other", "type": "summary_stats"}, {"grades": [50]})
        assert content == {"type": "summary_stats", "stats": {}}

    def test_summary_without_data(self):
        processed = process_template(get_template("student_progress"), {})
        assert section_content(processed, "academic_summary")["stats"] == {}

    def test_unknown_chart_type(self):
        content = generate_section_content({"id": "c", "type": "chart", "chart_type": "radar"}, {})
        assert content == {"type": "chart", "chart_type": "radar", "config": {}}

    def test_unknown_text_block(self):
        content = generate_section_content({"id": "notes", "type": "text_block"}, {})
        assert content["content"] == "No content available"

    def test_none_data_uses_defaults(self):
        processed = process_template(get_template("student_progress"), None)
        assert section_content(processed, "header")["school_name"] == "School Management System"
        assert section_content(processed, "student_info")["name"] == "Unknown Student"

    def test_metadata(self, student_data):
        processed = process_template(get_template("student_progress"), student_data)
        assert isinstance(processed["generated_at"], datetime)
        assert processed["data_hash"] == generate_data_hash(student_data)
        assert processed["title"] == "Student Progress Report"

    def test_sections_keep_descriptor_fields(self, student_data):
        template = get_template("student_progress")
        processed = process_template(template, student_data)
        for descriptor, section in zip(template["sections"], processed["sections"]):
            assert {k: section[k] for k in descriptor} == descriptor
            assert "content" in section

    def test_template_not_mutated(self, student_data):
        template = get_template("student_progress")
        process_template(template, student_data)
        assert all("content" not in s for s in template["sections"])


class TestDataHash:
    """Short, deterministic fingerprint."""

    def test_deterministic(self, student_data):
        assert generate_data_hash(student_data) == generate_data_hash(dict(student_data))

    def test_length(self):
        assert len(generate_data_hash({"subject": "Mathematics"})) == 16

    def test_differs_on_prefix(self):
        assert generate_data_hash({"a": 1}) != generate_data_hash({"b": 1})
