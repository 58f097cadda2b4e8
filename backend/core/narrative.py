"""
narrative.py — Template-based sentences for insights and recommendations.

Every function turns a few computed numbers into one human-readable line.
The wording is part of the report output, so keep it stable.
"""

from typing import List, Sequence


# ── Comparison Narratives ───────────────────────────────────────────

def narrate_best_group(label: str, average: float) -> str:
    return f"Best performing subject: {label} ({average:.1f}% average)"


def narrate_most_challenging_group(label: str, average: float) -> str:
    return f"Most challenging subject: {label} ({average:.1f}% average)"


def narrate_high_variability(labels: Sequence[str]) -> str:
    return f"High performance variability in: {', '.join(labels)}"


def narrate_top_class(class_name: str, average: float) -> str:
    return f"Top performing class: {class_name} ({average:.1f}% average)"


# ── Term Narratives ─────────────────────────────────────────────────

def narrate_term_improving() -> str:
    return "Overall performance improving across terms"


def narrate_term_declining() -> str:
    return "Performance declining - intervention needed"


def narrate_term_stable() -> str:
    return "Performance stable across terms"


# ── Correlation Narratives ──────────────────────────────────────────

def narrate_positive_correlation(variable1: str, variable2: str) -> List[str]:
    return [
        f"Strong positive relationship between {variable1} and {variable2}",
        f"Improving {variable1} likely to improve {variable2}",
    ]


def narrate_negative_correlation(variable1: str, variable2: str) -> str:
    return f"Strong negative relationship between {variable1} and {variable2}"


def narrate_no_correlation(variable1: str, variable2: str) -> str:
    return f"Little to no relationship between {variable1} and {variable2}"


# ── Student Recommendations ─────────────────────────────────────────

RECOMMENDATIONS_SUPPORT = [
    "Immediate academic support required",
    "Consider additional tutoring sessions",
]

RECOMMENDATIONS_MONITOR = [
    "Monitor progress closely",
    "Provide additional practice materials",
]

RECOMMENDATIONS_EXCELLENT = [
    "Excellent performance - maintain current approach",
    "Consider advanced learning opportunities",
]
