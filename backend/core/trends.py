"""
trends.py — Time-series trend analysis for performance data.

Given caller-ordered ``{"date", "value"}`` points this module produces:
- trailing moving averages
- an ordinary least-squares trend line over the point index
- a direction label from the first/last moving average
- a short linear forecast with decaying confidence
- volatility (population std of the raw values)
- month-of-year averages once enough points exist

Nothing is sorted internally; the x-axis is the position in the list, not
the date.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from core.grading import (
    FORECAST_MIN_POINTS,
    FORECAST_PERIODS,
    SEASONALITY_MIN_POINTS,
    TREND_CHANGE_THRESHOLD,
)
from core.stats import _sanitize, correlation

logger = logging.getLogger(__name__)


def _values(series: Sequence[Dict[str, Any]]) -> List[float]:
    # A null value adds nothing to the sums, same as 0.
    return [0.0 if point.get("value") is None else float(point["value"]) for point in series]


def _parse_date(value: Any):
    """UTC timestamp for an ISO string, date object or epoch-millisecond number."""
    if value is None or isinstance(value, bool):
        return pd.NaT
    if isinstance(value, (int, float, np.integer)):
        return pd.to_datetime(value, unit="ms", utc=True, errors="coerce")
    return pd.to_datetime(value, utc=True, errors="coerce")


def moving_averages(series: Sequence[Dict[str, Any]], window_size: int) -> List[Dict[str, Any]]:
    """Trailing mean for every index from ``window_size - 1`` onwards."""
    values = _values(series)
    if window_size <= 0 or len(values) < window_size:
        return []
    window_means = np.convolve(values, np.ones(window_size), mode="valid") / window_size
    result = []
    for offset, avg in enumerate(window_means):
        i = offset + window_size - 1
        result.append({
            "date": series[i].get("date"),
            "value": float(avg),
            "original_value": values[i],
        })
    return result


def trend_line(series: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Least-squares line of value against list index."""
    n = len(series)
    if n < 2:
        return None

    x = np.arange(n, dtype=float)
    y = np.asarray(_values(series), dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    denominator = n * sum_xx - sum_x * sum_x
    slope = float((n * sum_xy - sum_x * sum_y) / denominator) if denominator != 0 else 0.0
    intercept = float((sum_y - slope * sum_x) / n)

    return {
        "slope": slope,
        "intercept": intercept,
        "equation": f"y = {slope:.2f}x + {intercept:.2f}",
        "correlation": correlation(x, y),
    }


def _percent_change(first: float, last: float) -> float:
    if first == 0:
        return 0.0
    return ((last - first) / first) * 100


def trend_direction(
    averages: Sequence[Dict[str, Any]],
    threshold: float = TREND_CHANGE_THRESHOLD,
) -> str:
    if len(averages) < 2:
        return "stable"
    change = _percent_change(averages[0]["value"], averages[-1]["value"])
    if change > threshold:
        return "increasing"
    if change < -threshold:
        return "decreasing"
    return "stable"


def trend_strength(averages: Sequence[Dict[str, Any]]) -> float:
    if len(averages) < 2:
        return 0
    return abs(_percent_change(averages[0]["value"], averages[-1]["value"]))


def simple_forecast(
    series: Sequence[Dict[str, Any]],
    periods: int = FORECAST_PERIODS,
) -> Optional[List[Dict[str, Any]]]:
    """Project the trend line ``periods`` steps past the last point."""
    if len(series) < FORECAST_MIN_POINTS:
        return None
    line = trend_line(series)
    if not line:
        return None

    last_index = len(series) - 1
    forecast = []
    for i in range(1, periods + 1):
        projected = line["slope"] * (last_index + i) + line["intercept"]
        forecast.append({
            "period": i,
            "value": max(0, projected),
            "confidence": max(0.5, 1 - (i * 0.1)),
        })
    return forecast


def volatility(series: Sequence[Dict[str, Any]]) -> float:
    if len(series) < 2:
        return 0
    return float(np.std(_values(series)))


def seasonality(
    series: Sequence[Dict[str, Any]],
    min_points: int = SEASONALITY_MIN_POINTS,
) -> Optional[Dict[int, float]]:
    """Average value per calendar month (0 = January) once enough points exist."""
    if len(series) < min_points:
        return None
    # Labels that are not dates (e.g. "Term 1") carry no month.
    dates = pd.to_datetime(pd.Series([_parse_date(p.get("date")) for p in series]), utc=True)
    frame = pd.DataFrame({
        "month": dates.dt.month - 1,
        "value": _values(series),
    }).dropna(subset=["month"])
    monthly = frame.groupby("month")["value"].mean()
    return {int(month): float(avg) for month, avg in monthly.items()}


def trend_analysis(
    series: Sequence[Dict[str, Any]],
    window_size: int = 3,
    trend_threshold: float = TREND_CHANGE_THRESHOLD,
    forecast_periods: int = FORECAST_PERIODS,
    seasonality_min_points: int = SEASONALITY_MIN_POINTS,
) -> Dict[str, Any]:
    """Full trend report for a caller-ordered time series."""
    if not series or len(series) < window_size:
        return {
            "trend": "insufficient_data",
            "strength": 0,
            "moving_averages": [],
            "trend_line": None,
            "forecast": None,
        }

    averages = moving_averages(series, window_size)
    result = {
        "trend": trend_direction(averages, trend_threshold),
        "strength": trend_strength(averages),
        "moving_averages": averages,
        "trend_line": trend_line(series),
        "forecast": simple_forecast(series, forecast_periods),
        "volatility": volatility(series),
        "seasonality": seasonality(series, seasonality_min_points),
    }
    logger.debug(
        "trend_analysis over %d points (window=%d): %s",
        len(series), window_size, result["trend"],
    )
    return _sanitize(result)
