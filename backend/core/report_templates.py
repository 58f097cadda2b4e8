"""
report_templates.py — Report template catalog and section processing.

A template is a title plus an ordered list of sections.  Processing a
template binds it to a caller-supplied ``data`` dict: each section is
dispatched on its type to a handler that reads only the keys it needs and
returns a small typed payload.

Recognised data keys:
  student, grades, subjects, students, attendance, class, school, period,
  risk_students, trend_data, subject_comparison, grade_distribution,
  report_title

Missing keys fall back to empty/zero defaults.  An unknown section type
yields a placeholder payload instead of failing the whole report.
"""

import base64
import copy
import json
import logging
import math
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.comparison import compare_class_performance
from core.grading import (
    EXCELLENT_FROM,
    MONITOR_BELOW,
    PASS_MARK,
    SUPPORT_BELOW,
    get_letter_grade,
)
from core.narrative import (
    RECOMMENDATIONS_EXCELLENT,
    RECOMMENDATIONS_MONITOR,
    RECOMMENDATIONS_SUPPORT,
)
from core.stats import class_metrics, extract_scores

logger = logging.getLogger(__name__)

GENERATOR_NAME = "School Management System"
GENERATOR_VERSION = "1.0.0"


class TemplateType(str, Enum):
    STUDENT_PROGRESS = "student_progress"
    CLASS_PERFORMANCE = "class_performance"
    ATTENDANCE_SUMMARY = "attendance_summary"
    GRADE_ANALYSIS = "grade_analysis"
    TEACHER_PERFORMANCE = "teacher_performance"
    SCHOOL_OVERVIEW = "school_overview"
    PARENT_REPORT = "parent_report"
    ADMINISTRATIVE = "administrative"


class SectionType(str, Enum):
    HEADER = "header"
    STUDENT_DETAILS = "student_details"
    CLASS_DETAILS = "class_details"
    SUMMARY_STATS = "summary_stats"
    SUBJECT_TABLE = "subject_table"
    RANKING_TABLE = "ranking_table"
    ALERT_TABLE = "alert_table"
    CHART = "chart"
    TEXT_BLOCK = "text_block"
    FOOTER = "footer"


class SummaryMode(str, Enum):
    """Which statistics a ``summary_stats`` section computes, keyed by section id."""
    ACADEMIC_SUMMARY = "academic_summary"
    PERFORMANCE_OVERVIEW = "performance_overview"
    ATTENDANCE_STATS = "attendance_stats"


class ChartType(str, Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"


TABLE_SECTION_TYPES = (SectionType.SUBJECT_TABLE.value, SectionType.RANKING_TABLE.value)


def _section(section_id: str, section_type: str, required: bool, chart_type: Optional[str] = None) -> Dict[str, Any]:
    section = {"id": section_id, "type": section_type, "required": required}
    if chart_type:
        section["chart_type"] = chart_type
    return section


# ── Template Catalog ────────────────────────────────────────────────

TEMPLATES: Dict[TemplateType, Dict[str, Any]] = {
    TemplateType.STUDENT_PROGRESS: {
        "title": "Student Progress Report",
        "sections": [
            _section("header", "header", True),
            _section("student_info", "student_details", True),
            _section("academic_summary", "summary_stats", True),
            _section("subject_breakdown", "subject_table", True),
            _section("attendance_chart", "chart", False, "line"),
            _section("grade_trends", "chart", False, "bar"),
            _section("recommendations", "text_block", False),
            _section("footer", "footer", True),
        ],
        "variables": ["student", "grades", "attendance", "period", "school"],
    },
    TemplateType.CLASS_PERFORMANCE: {
        "title": "Class Performance Analysis",
        "sections": [
            _section("header", "header", True),
            _section("class_info", "class_details", True),
            _section("performance_overview", "summary_stats", True),
            _section("grade_distribution", "chart", True, "pie"),
            _section("student_rankings", "ranking_table", True),
            _section("subject_comparison", "chart", False, "bar"),
            _section("insights", "text_block", True),
            _section("footer", "footer", True),
        ],
        "variables": ["class", "students", "grades", "subjects", "period", "school"],
    },
    TemplateType.ATTENDANCE_SUMMARY: {
        "title": "Attendance Summary Report",
        "sections": [
            _section("header", "header", True),
            # No handler exists for period_details; it renders as an unknown section.
            _section("period_info", "period_details", True),
            _section("attendance_stats", "summary_stats", True),
            _section("attendance_trends", "chart", True, "line"),
            _section("risk_students", "alert_table", True),
            _section("class_comparison", "chart", False, "bar"),
            _section("recommendations", "text_block", True),
            _section("footer", "footer", True),
        ],
        "variables": ["attendance", "students", "classes", "period", "school"],
    },
}


def get_template(template_type) -> Optional[Dict[str, Any]]:
    """Return a copy of the catalog template, or None if there is none."""
    try:
        key = TemplateType(template_type)
    except ValueError:
        return None
    template = TEMPLATES.get(key)
    return copy.deepcopy(template) if template else None


def list_templates() -> List[Dict[str, Any]]:
    return [
        {"type": t.value, "title": TEMPLATES[t]["title"] if t in TEMPLATES else None}
        for t in TemplateType
    ]


# ── Helpers ─────────────────────────────────────────────────────────

def _round_half_up(value: float) -> int:
    """Round halves upwards (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def _average_score(records) -> float:
    scores = extract_scores(records or [])
    return sum(scores) / len(scores) if scores else 0


def generate_data_hash(data: Dict[str, Any]) -> str:
    """Short fingerprint of the input data (not collision resistant)."""
    payload = json.dumps(data, separators=(",", ":"), default=str, ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")[:16]


# ── Section Handlers ────────────────────────────────────────────────

def _header(section, data, pass_mark):
    school = data.get("school") or {}
    return {
        "type": "header",
        "school_name": school.get("name") or GENERATOR_NAME,
        "school_logo": school.get("logo") or "/images/school-logo.png",
        "report_title": data.get("report_title") or "Academic Report",
        "generated_date": datetime.now().strftime("%d %B %Y"),
        "academic_period": data.get("period") or "Current Term",
    }


def _student_details(section, data, pass_mark):
    student = data.get("student") or {}
    return {
        "type": "student_details",
        "name": student.get("name") or "Unknown Student",
        "student_id": student.get("student_id") or "N/A",
        "class": student.get("class") or "N/A",
        "admission_date": student.get("admission_date") or "N/A",
        "parent_contact": student.get("parent_contact") or "N/A",
    }


def _class_details(section, data, pass_mark):
    cls = data.get("class") or {}
    return {
        "type": "class_details",
        "name": cls.get("name") or "Unknown Class",
        "teacher": cls.get("teacher") or "N/A",
        "student_count": cls.get("student_count") or 0,
        "subjects": cls.get("subjects") or [],
        "academic_year": cls.get("academic_year") or datetime.now().year,
    }


def _academic_summary(data, pass_mark) -> Dict[str, Any]:
    grades = data.get("grades")
    if grades is None:
        return {}
    metrics = class_metrics(grades, pass_mark=pass_mark)
    student = data.get("student") or {}
    return {
        "average_grade": _round_half_up(metrics["average"]),
        "total_subjects": len(data.get("subjects") or []),
        "passed_subjects": sum(1 for s in extract_scores(grades) if s >= pass_mark),
        "rank": student.get("rank") or "N/A",
    }


def _performance_overview(data, pass_mark) -> Dict[str, Any]:
    students = data.get("students")
    if students is None:
        return {}
    all_grades = [g for s in students for g in (s.get("grades") or [])]
    metrics = class_metrics(all_grades, pass_mark=pass_mark)
    return {
        "class_average": _round_half_up(metrics["average"]),
        "pass_rate": _round_half_up(metrics["pass_rate"]),
        "total_students": len(students),
        "standard_deviation": _round_half_up(metrics["standard_deviation"]),
    }


def _attendance_stats(data, pass_mark) -> Dict[str, Any]:
    attendance = data.get("attendance")
    if attendance is None:
        return {}
    total_days = len(attendance)
    present_days = sum(1 for a in attendance if a.get("status") == "present")
    rate = (present_days / total_days) * 100 if total_days else 0
    return {
        "attendance_rate": _round_half_up(rate),
        "total_days": total_days,
        "present_days": present_days,
        "absent_days": total_days - present_days,
    }


SUMMARY_BUILDERS: Dict[SummaryMode, Callable[[Dict[str, Any], float], Dict[str, Any]]] = {
    SummaryMode.ACADEMIC_SUMMARY: _academic_summary,
    SummaryMode.PERFORMANCE_OVERVIEW: _performance_overview,
    SummaryMode.ATTENDANCE_STATS: _attendance_stats,
}


def _summary_stats(section, data, pass_mark):
    try:
        mode = SummaryMode(section.get("id"))
    except ValueError:
        mode = None
    stats = SUMMARY_BUILDERS[mode](data, pass_mark) if mode else {}
    return {"type": "summary_stats", "stats": stats}


def _subject_table(section, data, pass_mark):
    grades = data.get("grades") or []
    rows = []
    for subject in data.get("subjects") or []:
        subject_grades = [g for g in grades if g.get("subject_id") == subject.get("id")]
        average = _average_score(subject_grades)
        rows.append({
            "subject": subject.get("name"),
            "grade": _round_half_up(average),
            "letter_grade": get_letter_grade(average),
            "status": "Pass" if average >= pass_mark else "Fail",
            "assessments": len(subject_grades),
        })
    return {"type": "subject_table", "data": rows}


def _ranking_table(section, data, pass_mark):
    rows = []
    for student in data.get("students") or []:
        average = _average_score(student.get("grades"))
        rows.append({
            "name": student.get("name"),
            "student_id": student.get("student_id"),
            "average": _round_half_up(average),
            "letter_grade": get_letter_grade(average),
            "rank": student.get("rank") or "N/A",
        })
    rows.sort(key=lambda r: r["average"], reverse=True)
    return {"type": "ranking_table", "data": rows}


def _alert_table(section, data, pass_mark):
    rows = [
        {
            "name": student.get("name"),
            "student_id": student.get("student_id"),
            "risk_level": student.get("risk_level") or "Medium",
            "issue": student.get("primary_issue") or "Performance concern",
            "recommendation": student.get("recommendation") or "Monitor closely",
        }
        for student in data.get("risk_students") or []
    ]
    return {"type": "alert_table", "data": rows}


# Charts are declarative: the caller pre-aggregates the data arrays.
CHART_BUILDERS: Dict[ChartType, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    ChartType.LINE: lambda data: {
        "title": "Performance Trend",
        "x_axis": "Time Period",
        "y_axis": "Score",
        "data": data.get("trend_data") or [],
    },
    ChartType.BAR: lambda data: {
        "title": "Subject Comparison",
        "x_axis": "Subjects",
        "y_axis": "Average Score",
        "data": data.get("subject_comparison") or [],
    },
    ChartType.PIE: lambda data: {
        "title": "Grade Distribution",
        "data": data.get("grade_distribution") or [],
    },
}


def _chart(section, data, pass_mark):
    chart_type = section.get("chart_type")
    try:
        config = CHART_BUILDERS[ChartType(chart_type)](data)
    except ValueError:
        config = {}
    return {"type": "chart", "chart_type": chart_type, "config": config}


def _recommendations(data, pass_mark) -> str:
    if data.get("student") is None:
        return ""
    average = _average_score(data.get("grades"))
    if average < SUPPORT_BELOW:
        lines = RECOMMENDATIONS_SUPPORT
    elif average < MONITOR_BELOW:
        lines = RECOMMENDATIONS_MONITOR
    elif average >= EXCELLENT_FROM:
        lines = RECOMMENDATIONS_EXCELLENT
    else:
        lines = []
    return "\n".join(lines)


def _insights(data, pass_mark) -> str:
    students = data.get("students")
    if students is None:
        return ""
    class_name = (data.get("class") or {}).get("name") or "class"
    all_grades = [g for s in students for g in (s.get("grades") or [])]
    analysis = compare_class_performance({class_name: all_grades}, pass_mark=pass_mark)
    return "\n".join(analysis["insights"])


TEXT_BLOCKS: Dict[str, Callable[[Dict[str, Any], float], str]] = {
    "recommendations": _recommendations,
    "insights": _insights,
}


def _text_block(section, data, pass_mark):
    builder = TEXT_BLOCKS.get(section.get("id"))
    return {
        "type": "text_block",
        "content": builder(data, pass_mark) if builder else "No content available",
    }


def _footer(section, data, pass_mark):
    return {
        "type": "footer",
        "generated_by": GENERATOR_NAME,
        "generated_at": datetime.now().strftime("%d %B %Y, %H:%M"),
        "version": GENERATOR_VERSION,
        "confidential": True,
    }


SECTION_HANDLERS: Dict[SectionType, Callable[..., Dict[str, Any]]] = {
    SectionType.HEADER: _header,
    SectionType.STUDENT_DETAILS: _student_details,
    SectionType.CLASS_DETAILS: _class_details,
    SectionType.SUMMARY_STATS: _summary_stats,
    SectionType.SUBJECT_TABLE: _subject_table,
    SectionType.RANKING_TABLE: _ranking_table,
    SectionType.ALERT_TABLE: _alert_table,
    SectionType.CHART: _chart,
    SectionType.TEXT_BLOCK: _text_block,
    SectionType.FOOTER: _footer,
}


# ── Processing ──────────────────────────────────────────────────────

def generate_section_content(
    section: Dict[str, Any],
    data: Dict[str, Any],
    pass_mark: float = PASS_MARK,
) -> Dict[str, Any]:
    try:
        handler = SECTION_HANDLERS[SectionType(section.get("type"))]
    except ValueError:
        logger.warning(
            "Unknown section type %r in section %r", section.get("type"), section.get("id")
        )
        return {"type": "unknown", "content": "Unknown section type"}
    return handler(section, data, pass_mark)


def process_template(
    template: Dict[str, Any],
    data: Dict[str, Any],
    pass_mark: float = PASS_MARK,
) -> Dict[str, Any]:
    """Populate every section of ``template`` from ``data``."""
    data = data or {}
    sections = [
        {**section, "content": generate_section_content(section, data, pass_mark)}
        for section in template.get("sections", [])
    ]
    logger.info("Processed template %r (%d sections)", template.get("title"), len(sections))
    return {
        **template,
        "sections": sections,
        "generated_at": datetime.now(),
        "data_hash": generate_data_hash(data),
    }
