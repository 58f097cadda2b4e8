"""
grading.py — Letter grades, score buckets and reporting policy constants.

Every threshold used by the statistics and report engines lives here so that
callers can see (and override through keyword arguments) the defaults:

  Grade bands     A >= 80, B >= 70, C >= 60, D >= 40, else F
  Buckets         0-20, 21-40, 41-60, 61-80, 81-100 (upper edge inclusive)
  Pass mark       40
"""

from typing import Any, Dict, List, Optional


# Grade bands (min_score, label, description), ordered high to low.
GRADE_BANDS = [
    (80.0, "A", "Excellent"),
    (70.0, "B", "Very Good"),
    (60.0, "C", "Good"),
    (40.0, "D", "Satisfactory"),
    (float("-inf"), "F", "Needs Support"),
]

GRADE_LABELS = ["A", "B", "C", "D", "F"]

# Upper (inclusive) edges of the score buckets; anything above the last edge
# falls in the top bucket.
BUCKET_EDGES = [20, 40, 60, 80]
BUCKET_LABELS = ["0-20", "21-40", "41-60", "61-80", "81-100"]

PERCENTILE_POINTS = [10, 25, 50, 75, 90, 95, 99]

# Policy defaults
PASS_MARK = 40
TREND_CHANGE_THRESHOLD = 5.0
HIGH_VARIABILITY_STD = 20.0
SEASONALITY_MIN_POINTS = 12
FORECAST_PERIODS = 3
FORECAST_MIN_POINTS = 3
MIN_CORRELATION_POINTS = 3

# |r| lower bounds for correlation strength labels, strongest first.
CORRELATION_STRENGTHS = [
    (0.8, "very_strong"),
    (0.6, "strong"),
    (0.4, "moderate"),
    (0.2, "weak"),
]

# Student-average bands used by report recommendations.
SUPPORT_BELOW = 40
MONITOR_BELOW = 60
EXCELLENT_FROM = 80


def _to_score(score: Any) -> Optional[float]:
    if score is None:
        return None
    try:
        return float(score)
    except (TypeError, ValueError):
        return None


def get_letter_grade(score: Any) -> str:
    """Return the A-F letter for a score; unusable scores grade as F."""
    value = _to_score(score)
    if value is None or value != value:
        return "F"
    for min_score, label, _ in GRADE_BANDS:
        if value >= min_score:
            return label
    return "F"


def get_all_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full grade scale for legend/reference."""
    thresholds = []
    for idx, (min_score, label, desc) in enumerate(GRADE_BANDS):
        max_score = 100.0 if idx == 0 else GRADE_BANDS[idx - 1][0] - 0.01
        thresholds.append(
            {
                "min": max(min_score, 0.0),
                "max": round(max_score, 2),
                "label": label,
                "description": desc,
            }
        )
    return thresholds
