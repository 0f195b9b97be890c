# portal/marks_repo.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

import db
from portal.performance import round_pct
from portal.tables import DataError, Query, where

logger = logging.getLogger(__name__)

EXAM_TYPES = ["PA1", "PA2", "Half Yearly", "PA3", "PA4", "Annual"]
TERM_EXAMS = ("Half Yearly", "Annual")

ROMAN = {
    "I": 1, "II": 2, "III": 3, "IV": 4, "V": 5, "VI": 6,
    "VII": 7, "VIII": 8, "IX": 9, "X": 10, "XI": 11, "XII": 12,
}

MARKS_COLUMNS = ["Exam", "Subject", "Obtained", "Total", "Percentage", "Remarks", "Updated"]


class MarksError(Exception):
    """A student or class cannot be resolved for marks entry."""


@dataclass
class SubjectMark:
    subject_id: str
    subject_name: str
    marks_obtained: float = 0
    total_marks: float = 100
    remarks: str = ""
    mark_id: Optional[str] = None


# -------------------------
# Class helpers
# -------------------------
def parse_class_number(class_name) -> Optional[int]:
    if class_name is None:
        return None
    text = str(class_name).strip()
    if not text:
        return None
    head = text.split("-")[0].strip()
    digits = ""
    for ch in head:
        if not ch.isdigit():
            break
        digits += ch
    if digits:
        return int(digits)
    return ROMAN.get(head.upper())


def max_marks_for(class_name, exam_type: str) -> int:
    if exam_type in TERM_EXAMS:
        return 100
    n = parse_class_number(class_name)
    if n is not None:
        if n >= 9:
            return 40
        if 1 <= n <= 8:
            return 30
    return 100


def class_section_of(student: dict) -> str:
    class_name = str(student.get("class_name") or "")
    if "-" in class_name:
        return class_name
    return f"{class_name}-{student.get('section') or ''}"


def find_class_by_section(client, section: str) -> Optional[dict]:
    """
    Look a class up by its class_section label, loosening the match step by
    step: exact, case-insensitive, spaces as dashes, dashes as spaces, contains.
    """
    section = (section or "").strip()
    if not section:
        return None

    row = client.select_one("classes", where(class_section=section))
    if row:
        return row

    candidates = [section, "-".join(section.split()), section.replace("-", " "), f"%{section}%"]
    for pattern in candidates:
        rows = client.select("classes", Query().ilike("class_section", pattern).limit(1))
        if rows:
            return rows[0]
    logger.info("No class found for section %r", section)
    return None


def _ensure_class_id(client, student: dict) -> Optional[str]:
    if student.get("class_id"):
        return student["class_id"]
    found = find_class_by_section(client, class_section_of(student))
    if not found:
        return None
    client.update("students", {"class_id": found["id"]}, where(id=student["id"]))
    student["class_id"] = found["id"]
    return found["id"]


def find_student(client, admission_id: str) -> Optional[dict]:
    admission_id = (admission_id or "").strip()
    if not admission_id:
        return None
    student = client.select_one("students", where(admission_id=admission_id))
    if student is None:
        return None
    try:
        _ensure_class_id(client, student)
    except DataError as e:
        # marks can still be viewed; saving re-resolves the class
        logger.warning("Could not back-fill class_id for %s: %s", admission_id, e.message)
    return student


def can_manage(student: dict, assignments: Optional[Dict[str, List[str]]]) -> bool:
    if not assignments:
        return True
    return class_section_of(student) in assignments


# -------------------------
# Subjects & marks entry
# -------------------------
def subjects_for_student(client, student: dict,
                         assignments: Optional[Dict[str, List[str]]] = None) -> List[dict]:
    if not student.get("class_name"):
        raise MarksError("Student does not have a class assigned. Please update the student's class information first.")
    class_number = parse_class_number(student["class_name"])
    if class_number is None:
        raise MarksError(f"Invalid class format. Expected format: \"1-A\", \"2-B\", etc. Got: {student['class_name']}")

    subjects = [
        s for s in client.select("subjects", Query().order("name"))
        if (s.get("applicable_from_class") or 1) <= class_number <= (s.get("applicable_to_class") or 12)
    ]
    if assignments:
        taught = set(assignments.get(class_section_of(student), []))
        subjects = [s for s in subjects if s["name"] in taught or s.get("code") in taught]
    return subjects


def load_subject_marks(client, student: dict, exam_type: str, subjects: List[dict]) -> List[SubjectMark]:
    existing = {
        m["subject_id"]: m
        for m in client.select("marks", where(student_id=student["id"], exam_type=exam_type))
    }
    default_max = max_marks_for(student.get("class_name"), exam_type)
    out = []
    for s in subjects:
        m = existing.get(s["id"])
        out.append(SubjectMark(
            subject_id=s["id"],
            subject_name=s["name"],
            marks_obtained=m["marks_obtained"] if m and m["marks_obtained"] is not None else 0,
            total_marks=(m.get("total_marks") if m else None) or default_max,
            remarks=(m.get("remarks") if m else "") or "",
            mark_id=m["id"] if m else None,
        ))
    return out


def clamp_marks(value, maximum: float) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0
    if num != num:  # NaN
        return 0
    return min(maximum, max(0, num))


def save_marks(client, student: dict, exam_type: str, subject_marks: Iterable[SubjectMark],
               editor_id: Optional[str]) -> int:
    """
    Update existing marks (recording changed values in marks_history) and
    insert the rest. Returns the number of rows written.
    """
    written = 0
    for mark in subject_marks:
        now = db.now_iso()
        total = mark.total_marks or max_marks_for(student.get("class_name"), exam_type)
        obtained = clamp_marks(mark.marks_obtained, total)

        if mark.mark_id:
            old = client.select_one("marks", where(id=mark.mark_id), columns="marks_obtained")
            if old and old["marks_obtained"] != obtained:
                client.insert("marks_history", {
                    "mark_id": mark.mark_id,
                    "student_id": student["id"],
                    "subject_id": mark.subject_id,
                    "exam_type": exam_type,
                    "old_marks": old["marks_obtained"],
                    "new_marks": obtained,
                    "updated_by": editor_id,
                    "created_at": now,
                })
            client.update("marks", {
                "marks_obtained": obtained,
                "total_marks": total,
                "subject": mark.subject_name,
                "remarks": mark.remarks,
                "updated_by": editor_id,
                "updated_at": now,
            }, where(id=mark.mark_id))
        else:
            class_id = _ensure_class_id(client, student)
            if not class_id:
                raise MarksError(
                    f"No class found for {class_section_of(student)}. Please ensure the class exists in the database."
                )
            row = client.insert("marks", {
                "student_id": student["id"],
                "class_id": class_id,
                "subject_id": mark.subject_id,
                "subject": mark.subject_name,
                "exam_type": exam_type,
                "marks_obtained": obtained,
                "total_marks": total,
                "remarks": mark.remarks or "",
                "created_by": editor_id,
                "updated_by": editor_id,
                "created_at": now,
                "updated_at": now,
            })[0]
            mark.mark_id = row["id"]
        mark.marks_obtained = obtained
        written += 1

    logger.info("Saved %d %s marks for student %s", written, exam_type, student.get("admission_id"))
    return written


# -------------------------
# Aggregation
# -------------------------
def overall_percentage(subject_marks: Iterable[SubjectMark]) -> int:
    marks = list(subject_marks)
    possible = sum(m.total_marks or 0 for m in marks)
    if not marks or possible <= 0:
        return 0
    obtained = sum(m.marks_obtained or 0 for m in marks)
    return round_pct(obtained / possible * 100)


def _percent_by_student(rows: List[dict]) -> Dict[str, float]:
    sums: Dict[str, List[float]] = {}
    for r in rows:
        acc = sums.setdefault(r["student_id"], [0.0, 0.0])
        acc[0] += r.get("marks_obtained") or 0
        acc[1] += r.get("total_marks") or 0
    return {sid: got / total * 100 for sid, (got, total) in sums.items() if total > 0}


def exam_percentages(client, student_ids: List[str], exam_type: str) -> Dict[str, float]:
    if not student_ids:
        return {}
    rows = client.select(
        "marks", Query().in_("student_id", student_ids).eq("exam_type", exam_type),
        columns="student_id, marks_obtained, total_marks",
    )
    return _percent_by_student(rows)


def subject_percentages(client, student_ids: List[str], subject: str) -> Dict[str, float]:
    if not student_ids:
        return {}
    rows = client.select(
        "marks", Query().in_("student_id", student_ids).eq("subject", subject),
        columns="student_id, marks_obtained, total_marks",
    )
    return _percent_by_student(rows)


@dataclass
class MarksSummary:
    latest_exam: Optional[str] = None
    latest_percentage: float = 0
    overall_percentage: float = 0
    exams_count: int = 0
    exams: List[str] = field(default_factory=list)


def student_marks_summary(client, student_id: str) -> MarksSummary:
    rows = client.select("marks", where(student_id=student_id))
    if not rows:
        return MarksSummary()

    latest_row = max(rows, key=lambda r: r.get("updated_at") or r.get("created_at") or "")
    latest_exam = latest_row["exam_type"]
    latest = _percent_by_student([r for r in rows if r["exam_type"] == latest_exam]).get(student_id, 0)
    overall = _percent_by_student(rows).get(student_id, 0)
    exams = [e for e in EXAM_TYPES if any(r["exam_type"] == e for r in rows)]
    exams += sorted({r["exam_type"] for r in rows} - set(exams))
    return MarksSummary(
        latest_exam=latest_exam,
        latest_percentage=round(latest, 2),
        overall_percentage=round(overall, 2),
        exams_count=len(exams),
        exams=exams,
    )


def refresh_student_percentages(client, student_id: str) -> MarksSummary:
    summary = student_marks_summary(client, student_id)
    client.update("students", {
        "latest_percentage": summary.latest_percentage,
        "overall_percentage": summary.overall_percentage,
        "updated_at": db.now_iso(),
    }, where(id=student_id))
    return summary


def exam_breakdown(client, student_id: str) -> Dict[str, float]:
    """{exam_type: percentage} in exam calendar order, for the trend chart."""
    rows = client.select("marks", where(student_id=student_id))
    out = {}
    for exam in EXAM_TYPES:
        pct = _percent_by_student([r for r in rows if r["exam_type"] == exam]).get(student_id)
        if pct is not None:
            out[exam] = round(pct, 2)
    return out


def marks_frame(client, student_id: str) -> pd.DataFrame:
    rows = client.select("marks", where(student_id=student_id))
    if not rows:
        return pd.DataFrame(columns=MARKS_COLUMNS)
    df = pd.DataFrame(rows)
    df["percentage"] = (
        df["marks_obtained"].fillna(0) / df["total_marks"].where(df["total_marks"] > 0) * 100
    ).round(1)
    df["exam_order"] = df["exam_type"].map({e: i for i, e in enumerate(EXAM_TYPES)}).fillna(len(EXAM_TYPES))
    df = df.sort_values(["exam_order", "subject"]).reset_index(drop=True)
    out = df[["exam_type", "subject", "marks_obtained", "total_marks", "percentage", "remarks", "updated_at"]].copy()
    out.columns = MARKS_COLUMNS
    out["Remarks"] = out["Remarks"].fillna("")
    return out
