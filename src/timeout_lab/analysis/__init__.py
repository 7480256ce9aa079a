from __future__ import annotations

from timeout_lab.analysis.accuracy import ToleranceMiss, accuracy_grade, accuracy_table, tolerance_misses
from timeout_lab.analysis.compare import Regression, compare_sessions

__all__ = [
    "Regression",
    "ToleranceMiss",
    "accuracy_grade",
    "accuracy_table",
    "compare_sessions",
    "tolerance_misses",
]
