"""
Analyze routes — statistics API endpoints.
"""

import os
from fastapi import APIRouter, HTTPException

from core.stats import class_metrics, correlation
from core.trends import trend_analysis
from core.comparison import (
    attendance_performance_correlation,
    comparative_analysis,
    compare_term_performance,
)
from core.grading import get_all_grade_thresholds

router = APIRouter()

PASS_MARK = float(os.getenv("PASS_MARK", "40"))


def _require(payload: dict, key: str):
    """Extract a required field from the request payload."""
    value = payload.get(key)
    if value is None:
        raise HTTPException(400, f"No '{key}' provided.")
    return value


def _pass_mark(payload: dict) -> float:
    try:
        return float(payload.get("pass_mark", PASS_MARK))
    except (TypeError, ValueError):
        raise HTTPException(400, "'pass_mark' must be a number.")


@router.post("/class-metrics")
async def metrics(payload: dict):
    """Mean, median, spread, quartiles, distributions and pass rate."""
    scores = _require(payload, "scores")
    return class_metrics(scores, pass_mark=_pass_mark(payload))


@router.post("/trend")
async def trend(payload: dict):
    """Moving averages, trend line, direction, forecast and seasonality."""
    series = _require(payload, "series")
    if not isinstance(series, list) or not all(isinstance(p, dict) and "value" in p for p in series):
        raise HTTPException(400, "'series' must be a list of {date, value} points.")
    try:
        return trend_analysis(series, window_size=int(payload.get("window_size", 3)))
    except (TypeError, ValueError):
        raise HTTPException(400, "Series values and 'window_size' must be numbers.")


@router.post("/correlation")
async def pearson(payload: dict):
    """Pearson correlation between two equal-length series."""
    xs = _require(payload, "xs")
    ys = _require(payload, "ys")
    if len(xs) != len(ys):
        raise HTTPException(400, "'xs' and 'ys' must have the same length.")
    return {"correlation": correlation(xs, ys)}


@router.post("/compare")
async def compare(payload: dict):
    """Per-group metrics, rankings by average and insights."""
    groups = _require(payload, "groups")
    return comparative_analysis(groups, pass_mark=_pass_mark(payload))


@router.post("/compare-terms")
async def compare_terms(payload: dict):
    """Per-term metrics, term trend and direction insight."""
    terms = _require(payload, "terms")
    return compare_term_performance(terms, pass_mark=_pass_mark(payload))


@router.post("/attendance-correlation")
async def attendance_correlation(payload: dict):
    """Attendance rate vs average grade correlation across students."""
    students = _require(payload, "students")
    return attendance_performance_correlation(students)


@router.get("/grades")
async def grades():
    """Grade scale used for letter grades."""
    return {"grades": get_all_grade_thresholds()}
