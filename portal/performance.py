# portal/performance.py
"""Grades and narrative remarks for a student's percentages."""
from __future__ import annotations

import math
from typing import List, Optional

GRADE_BANDS = [
    (90, "Outstanding"),
    (80, "Excellent"),
    (70, "Very Good"),
    (60, "Good"),
    (50, "Fair"),
]

# grade -> hex used by the dashboards
GRADE_COLORS = {
    "Outstanding": "#7c3aed",
    "Excellent": "#4f46e5",
    "Very Good": "#2563eb",
    "Good": "#16a34a",
    "Fair": "#ca8a04",
    "Needs Improvement": "#dc2626",
}

TREND_THRESHOLD = 5


def round_pct(value: float) -> int:
    """Round half up, so 62.5 shows as 63."""
    return int(math.floor(value + 0.5))


def performance_grade(pct: float) -> str:
    for floor, label in GRADE_BANDS:
        if pct >= floor:
            return label
    return "Needs Improvement"


def grade_color(pct: float) -> str:
    return GRADE_COLORS[performance_grade(pct)]


def performance_remarks(overall: float, latest: float, previous: Optional[float] = None) -> List[str]:
    remarks = []
    if overall >= 70:
        remarks.append("Demonstrates consistent academic excellence.")
    elif overall >= 50:
        remarks.append("Shows steady academic progress.")
    else:
        remarks.append("Has potential for improvement.")

    # zero counts as "no result" for either side
    if previous and latest:
        improvement = latest - previous
        if improvement > TREND_THRESHOLD:
            remarks.append("Shows significant improvement in recent performance.")
        elif improvement < -TREND_THRESHOLD:
            remarks.append("Recent performance indicates need for additional focus.")
        else:
            remarks.append("Maintains consistent performance level.")

    if latest < overall:
        remarks.append("Consider reviewing recent topics for better understanding.")
    elif latest > overall and latest > 70:
        remarks.append("Recent performance shows excellent progress.")
    return remarks


def trend(latest: float, previous: Optional[float]) -> str:
    if not previous:
        return "flat"
    if latest > previous:
        return "up"
    if latest < previous:
        return "down"
    return "flat"


def band(pct: float) -> str:
    if pct >= 75:
        return "green"
    if pct >= 50:
        return "yellow"
    return "red"
