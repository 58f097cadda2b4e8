"""
Tests for core/grading.py — letter grades and the published scale.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.grading import get_all_grade_thresholds, get_letter_grade


class TestLetterGrade:

    @pytest.mark.parametrize("score,letter", [
        (100, "A"), (80, "A"), (79.99, "B"), (70, "B"), (60, "C"),
        (59.5, "D"), (40, "D"), (39.9, "F"), (0, "F"), (-3, "F"),
    ])
    def test_bands(self, score, letter):
        assert get_letter_grade(score) == letter

    def test_numeric_strings(self):
        assert get_letter_grade("85") == "A"

    @pytest.mark.parametrize("score", [None, "n/a", float("nan")])
    def test_unusable_scores_grade_f(self, score):
        assert get_letter_grade(score) == "F"


class TestThresholds:

    def test_scale(self):
        scale = get_all_grade_thresholds()
        assert scale[0] == {"min": 80.0, "max": 100.0, "label": "A", "description": "Excellent"}
        assert scale[-1]["min"] == 0.0
        assert scale[-1]["max"] == 39.99
