# portal/student_filters.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

SORT_OPTIONS = {
    "name-asc": "Name (A-Z)",
    "name-desc": "Name (Z-A)",
    "latest_percentage-desc": "Latest % (High to Low)",
    "latest_percentage-asc": "Latest % (Low to High)",
    "overall_percentage-desc": "Overall % (High to Low)",
    "overall_percentage-asc": "Overall % (Low to High)",
    "admission_id-asc": "Admission ID (Ascending)",
    "admission_id-desc": "Admission ID (Descending)",
}

PERCENT_SORTS = ("latest_percentage", "overall_percentage")

SEARCH_FIELDS = {
    "student": ("name", "admission_id", "class_section"),
    "teacher": ("name", "teacher_id", "email"),
}


@dataclass
class StudentFilters:
    percentage_min: Optional[float] = None
    percentage_max: Optional[float] = None
    name_starts_with: str = ""
    name_ends_with: str = ""
    class_section: str = ""
    subject: str = ""
    exam: str = ""
    search_query: str = ""

    def __post_init__(self):
        self.name_starts_with = (self.name_starts_with or "").upper()
        self.name_ends_with = (self.name_ends_with or "").upper()

    def clear_percentage(self):
        self.percentage_min = None
        self.percentage_max = None


def _first_number(student: dict, keys) -> float:
    for k in keys:
        v = student.get(k)
        if v is not None and v == v:
            return float(v)
    return 0.0


def effective_percentage(student: dict, filters: StudentFilters) -> float:
    """
    Percentage used for range filters and percentage sorts. With a subject
    or exam selected, that figure wins when the student has one.
    """
    if filters.subject:
        keys = ("subject_percentage", "exam_percentage", "latest_percentage", "overall_percentage")
    elif filters.exam:
        keys = ("exam_percentage", "latest_percentage", "overall_percentage")
    else:
        keys = ("latest_percentage", "overall_percentage")
    return _first_number(student, keys)


def parse_sort(option: str):
    by, _, order = option.rpartition("-")
    return by, order or "asc"


def apply_filters_and_sort(students: List[dict], filters: StudentFilters, sort_by: str = "name",
                           order: str = "asc", user_type: str = "student") -> pd.DataFrame:
    if not students:
        return pd.DataFrame()
    df = pd.DataFrame(students)

    if filters.search_query.strip():
        term = filters.search_query.strip().lower()
        mask = pd.Series(False, index=df.index)
        for col in SEARCH_FIELDS.get(user_type, ("name",)):
            if col in df.columns:
                mask |= df[col].fillna("").astype(str).str.lower().str.contains(term, regex=False)
        df = df[mask]

    if user_type == "student":
        df = df.assign(effective_percentage=[effective_percentage(r, filters) for r in df.to_dict("records")])
        if filters.class_section and "class_section" in df.columns:
            df = df[df["class_section"] == filters.class_section]
        if filters.percentage_min is not None:
            df = df[df["effective_percentage"] >= filters.percentage_min]
        if filters.percentage_max is not None:
            df = df[df["effective_percentage"] <= filters.percentage_max]

    names = df["name"].fillna("").astype(str).str.upper() if "name" in df.columns else None
    if names is not None and filters.name_starts_with:
        df = df[names.str.startswith(filters.name_starts_with)]
        names = names[df.index]
    if names is not None and filters.name_ends_with:
        df = df[names.str.endswith(filters.name_ends_with)]

    key = sort_by
    if sort_by in PERCENT_SORTS and user_type == "student" and (filters.exam or filters.subject):
        key = "effective_percentage"
    if key in df.columns:
        if key in PERCENT_SORTS:
            df = df.assign(**{key: df[key].fillna(0)})
        sort_col = df[key].astype(str).str.lower() if key in ("name",) else df[key]
        df = df.loc[sort_col.sort_values(ascending=(order == "asc"), kind="mergesort").index]

    return df.reset_index(drop=True)


def rank(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out.insert(0, "rank", range(1, len(out) + 1))
    return out
