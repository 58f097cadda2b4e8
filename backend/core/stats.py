"""
stats.py — Descriptive statistics over lists of scores.

Computes:
- Class metrics (mean, median, population variance/std, range)
- Nearest-rank quartiles and percentiles
- Fixed-bucket score distribution and A-F grade distribution
- Pass rate against a configurable pass mark
- Pearson correlation (sum-based, zero-denominator guarded)

Inputs are plain lists of numbers or ``{"score": ...}`` records.  Anything
that is not a finite number is dropped, and an empty list resolves to a
zero-valued result instead of raising.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np

from core.grading import (
    BUCKET_EDGES,
    BUCKET_LABELS,
    GRADE_BANDS,
    GRADE_LABELS,
    PASS_MARK,
    PERCENTILE_POINTS,
)

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────

def _sanitize(obj):
    """Recursively coerce numpy scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    return obj


def _score_value(item: Any):
    """Pull the numeric value out of a score or score record."""
    if isinstance(item, dict):
        item = item.get("score")
    if item is None or isinstance(item, bool):
        return None
    try:
        v = float(item)
    except (TypeError, ValueError):
        return None
    return None if (math.isnan(v) or math.isinf(v)) else v


def extract_scores(values: Iterable[Any]) -> List[float]:
    """Keep only the finite numeric scores, in input order."""
    if not values:
        return []
    scores = []
    for item in values:
        v = _score_value(item)
        if v is not None:
            scores.append(v)
    return scores


def nearest_rank_floor(sorted_scores: Sequence[float], fraction: float) -> float:
    """Element at ``floor(n * fraction)`` of an ascending list (quartiles)."""
    if len(sorted_scores) == 0:
        return 0
    index = math.floor(len(sorted_scores) * fraction)
    if index >= len(sorted_scores):
        return 0
    return sorted_scores[index]


def nearest_rank_ceil_minus_one(sorted_scores: Sequence[float], percent: float) -> float:
    """Element at ``ceil(percent / 100 * n) - 1`` (clamped at 0) of an ascending list."""
    if len(sorted_scores) == 0:
        return 0
    index = max(0, math.ceil((percent / 100) * len(sorted_scores)) - 1)
    if index >= len(sorted_scores):
        return 0
    return sorted_scores[index]


def compute_mean(scores: Sequence[float]) -> float:
    return float(np.mean(scores)) if len(scores) > 0 else 0


def compute_median(sorted_scores: Sequence[float]) -> float:
    n = len(sorted_scores)
    if n == 0:
        return 0
    middle = n // 2
    if n % 2 == 0:
        return (sorted_scores[middle - 1] + sorted_scores[middle]) / 2
    return sorted_scores[middle]


def compute_variance(scores: Sequence[float]) -> float:
    """Population variance (divides by n, not n - 1)."""
    return float(np.var(scores)) if len(scores) > 0 else 0


def compute_pass_rate(scores: Sequence[float], pass_mark: float = PASS_MARK) -> float:
    if len(scores) == 0:
        return 0
    pass_count = int((np.asarray(scores) >= pass_mark).sum())
    return (pass_count / len(scores)) * 100


def compute_distribution(scores: Sequence[float]) -> Dict[str, int]:
    """Counts per fixed bucket; upper edges are inclusive."""
    idx = np.digitize(np.asarray(scores, dtype=float), BUCKET_EDGES, right=True)
    counts = np.bincount(idx, minlength=len(BUCKET_LABELS))
    return {label: int(c) for label, c in zip(BUCKET_LABELS, counts)}


def compute_grade_distribution(scores: Sequence[float]) -> Dict[str, int]:
    """A-F counts using the lower-inclusive grade bands."""
    # Ascending lower bounds (40, 60, 70, 80) map F..A onto 0..4.
    lower_bounds = sorted(b for b, _, _ in GRADE_BANDS if b != float("-inf"))
    idx = np.digitize(np.asarray(scores, dtype=float), lower_bounds, right=False)
    counts = np.bincount(idx, minlength=len(GRADE_LABELS))
    ascending_labels = list(reversed(GRADE_LABELS))
    return {label: int(counts[ascending_labels.index(label)]) for label in GRADE_LABELS}


def compute_percentiles(sorted_scores: Sequence[float]) -> Dict[str, float]:
    return {
        f"p{p}": nearest_rank_ceil_minus_one(sorted_scores, p)
        for p in PERCENTILE_POINTS
    }


def _empty_metrics() -> Dict[str, Any]:
    return {
        "average": 0,
        "median": 0,
        "standard_deviation": 0,
        "variance": 0,
        "range": {"min": 0, "max": 0},
        "quartiles": {"q1": 0, "q2": 0, "q3": 0},
        "distribution": {label: 0 for label in BUCKET_LABELS},
        "pass_rate": 0,
        "grade_distribution": {label: 0 for label in GRADE_LABELS},
        "percentiles": {f"p{p}": 0 for p in PERCENTILE_POINTS},
    }


# ── Class Metrics ───────────────────────────────────────────────────

def class_metrics(scores: Iterable[Any], pass_mark: float = PASS_MARK) -> Dict[str, Any]:
    """Compute the full metrics snapshot for a list of scores."""
    values = extract_scores(scores)
    if not values:
        return _empty_metrics()

    sorted_scores = sorted(values)
    variance = compute_variance(values)

    metrics = {
        "average": compute_mean(values),
        "median": compute_median(sorted_scores),
        "standard_deviation": math.sqrt(variance),
        "variance": variance,
        "range": {"min": sorted_scores[0], "max": sorted_scores[-1]},
        "quartiles": {
            "q1": nearest_rank_floor(sorted_scores, 0.25),
            "q2": compute_median(sorted_scores),
            "q3": nearest_rank_floor(sorted_scores, 0.75),
        },
        "distribution": compute_distribution(values),
        "pass_rate": compute_pass_rate(values, pass_mark),
        "grade_distribution": compute_grade_distribution(values),
        "percentiles": compute_percentiles(sorted_scores),
    }
    logger.debug("class_metrics over %d scores: mean=%.2f", len(values), metrics["average"])
    return _sanitize(metrics)


# ── Correlation ─────────────────────────────────────────────────────

def correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson correlation from raw sums.

    Returns 0.0 when the denominator vanishes (an empty or constant series).
    ``xs`` and ``ys`` must have the same length.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    n = len(x)
    # A constant series has no spread; rounding in the sums must not leak
    # a non-zero coefficient.
    if n == 0 or np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()
    sum_yy = (y * y).sum()

    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_xx - sum_x * sum_x) * (n * sum_yy - sum_y * sum_y)
    if not spread > 0:
        return 0.0
    return float(numerator / math.sqrt(spread))
