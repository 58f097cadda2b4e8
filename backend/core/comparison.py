"""
comparison.py — Comparative analysis and rule-based insights.

Compares groups of scores (subjects, classes, terms) by running
``class_metrics`` on each group, ranks them, and evaluates a small rule set:

  - best / most challenging group by average
  - groups whose standard deviation exceeds the variability threshold
  - term-over-term direction beyond the trend threshold
  - attendance vs performance correlation strength

Every rule threshold is a keyword argument defaulting to the constants in
``core.grading``.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping

from scipy import stats as sp_stats

from core.grading import (
    CORRELATION_STRENGTHS,
    HIGH_VARIABILITY_STD,
    MIN_CORRELATION_POINTS,
    PASS_MARK,
    TREND_CHANGE_THRESHOLD,
)
from core.narrative import (
    narrate_best_group,
    narrate_high_variability,
    narrate_most_challenging_group,
    narrate_negative_correlation,
    narrate_no_correlation,
    narrate_positive_correlation,
    narrate_term_declining,
    narrate_term_improving,
    narrate_term_stable,
    narrate_top_class,
)
from core.stats import class_metrics, correlation
from core.trends import trend_analysis

logger = logging.getLogger(__name__)


def _stats_per_group(groups: Mapping[str, Iterable[Any]], pass_mark: float) -> Dict[str, Dict[str, Any]]:
    return {
        str(label): class_metrics(scores or [], pass_mark=pass_mark)
        for label, scores in (groups or {}).items()
    }


# ── Group Comparison ────────────────────────────────────────────────

def group_insights(
    stats_by_label: Mapping[str, Dict[str, Any]],
    variability_threshold: float = HIGH_VARIABILITY_STD,
) -> List[str]:
    """Best/worst group and high-variability rules."""
    if not stats_by_label:
        return []

    ordered = sorted(stats_by_label.items(), key=lambda kv: kv[1]["average"], reverse=True)
    best_label, best_stats = ordered[0]
    worst_label, worst_stats = ordered[-1]

    insights = [
        narrate_best_group(best_label, best_stats["average"]),
        narrate_most_challenging_group(worst_label, worst_stats["average"]),
    ]

    high_variability = [
        label for label, s in ordered if s["standard_deviation"] > variability_threshold
    ]
    if high_variability:
        insights.append(narrate_high_variability(high_variability))
    return insights


def comparative_analysis(
    groups: Mapping[str, Iterable[Any]],
    variability_threshold: float = HIGH_VARIABILITY_STD,
    pass_mark: float = PASS_MARK,
) -> Dict[str, Any]:
    """Metrics per labelled group, ranked by average, with insights."""
    stats_by_label = _stats_per_group(groups, pass_mark)
    rankings = sorted(
        ({"label": label, "average": s["average"]} for label, s in stats_by_label.items()),
        key=lambda r: r["average"],
        reverse=True,
    )
    logger.debug("comparative_analysis over %d groups", len(stats_by_label))
    return {
        "stats_by_label": stats_by_label,
        "rankings": rankings,
        "insights": group_insights(stats_by_label, variability_threshold),
    }


def compare_class_performance(
    class_data: Mapping[str, Iterable[Any]],
    pass_mark: float = PASS_MARK,
) -> Dict[str, Any]:
    """Metrics per class plus the top-class insight."""
    class_stats = _stats_per_group(class_data, pass_mark)
    insights: List[str] = []
    if class_stats:
        # First class wins ties.
        top_name, top_stats = None, None
        for name, s in class_stats.items():
            if top_stats is None or s["average"] > top_stats["average"]:
                top_name, top_stats = name, s
        insights.append(narrate_top_class(top_name, top_stats["average"]))
    return {"class_stats": class_stats, "insights": insights}


# ── Term Comparison ─────────────────────────────────────────────────

def term_insights(
    term_stats: Mapping[str, Dict[str, Any]],
    trend_threshold: float = TREND_CHANGE_THRESHOLD,
) -> List[str]:
    """Direction of the last term against the first (in given order)."""
    if len(term_stats) < 2:
        return []
    averages = [s["average"] for s in term_stats.values()]
    improvement = averages[-1] - averages[0]
    if improvement > trend_threshold:
        return [narrate_term_improving()]
    if improvement < -trend_threshold:
        return [narrate_term_declining()]
    return [narrate_term_stable()]


def compare_term_performance(
    term_data: Mapping[str, Iterable[Any]],
    trend_threshold: float = TREND_CHANGE_THRESHOLD,
    pass_mark: float = PASS_MARK,
) -> Dict[str, Any]:
    """Metrics per term, a trend over the term averages, and the direction insight."""
    term_stats = _stats_per_group(term_data, pass_mark)
    series = [
        {"date": term, "value": term_stats[term]["average"]}
        for term in sorted(term_stats)
    ]
    return {
        "term_stats": term_stats,
        "trends": trend_analysis(series, trend_threshold=trend_threshold),
        "insights": term_insights(term_stats, trend_threshold),
    }


# ── Correlation Analysis ────────────────────────────────────────────

def interpret_correlation_strength(r: float) -> str:
    magnitude = abs(r)
    for lower_bound, label in CORRELATION_STRENGTHS:
        if magnitude >= lower_bound:
            return label
    return "very_weak"


def correlation_insights(r: float, variable1: str, variable2: str) -> List[str]:
    if r > 0.5:
        return narrate_positive_correlation(variable1, variable2)
    if r < -0.5:
        return [narrate_negative_correlation(variable1, variable2)]
    if abs(r) < 0.2:
        return [narrate_no_correlation(variable1, variable2)]
    return []


def correlation_p_value(r: float, n: int) -> float:
    """Two-sided significance of a Pearson r over n pairs (Student t)."""
    if n <= 2:
        return 1.0
    if abs(r) >= 1:
        return 0.0
    t_stat = r * math.sqrt((n - 2) / (1 - r * r))
    return float(2 * sp_stats.t.sf(abs(t_stat), n - 2))


def _positive_number(value: Any) -> float:
    try:
        v = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return v if v > 0 else 0.0


def attendance_performance_correlation(
    students: Iterable[Dict[str, Any]],
    min_points: int = MIN_CORRELATION_POINTS,
) -> Dict[str, Any]:
    """Correlate attendance rate with average grade across students."""
    scatter = []
    for student in students or []:
        attendance = _positive_number(student.get("attendance_rate"))
        performance = _positive_number(student.get("average_grade"))
        if attendance > 0 and performance > 0:
            scatter.append({"attendance": attendance, "performance": performance})

    if len(scatter) < min_points:
        return {"correlation": 0, "strength": "insufficient_data", "insights": []}

    r = correlation(
        [d["attendance"] for d in scatter],
        [d["performance"] for d in scatter],
    )
    return {
        "correlation": r,
        "strength": interpret_correlation_strength(r),
        "insights": correlation_insights(r, "attendance", "performance"),
        "scatter_data": scatter,
        "p_value": correlation_p_value(r, len(scatter)),
    }
