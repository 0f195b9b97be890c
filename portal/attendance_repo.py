# portal/attendance_repo.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

import pandas as pd

from portal.performance import round_pct
from portal.tables import DataError, where

logger = logging.getLogger(__name__)

STATUSES = ("present", "absent", "half_day")
STATUS_LABELS = {"present": "Present", "absent": "Absent", "half_day": "Half Day"}
HISTORY_DAYS = 10


def _iso(d) -> str:
    return d.isoformat() if isinstance(d, date) else str(d)


def load_class_students(client, class_section: str) -> List[dict]:
    return client.select(
        "students",
        where(class_section=class_section).order("name"),
        columns="id, admission_id, name, class_section",
    )


def load_day(client, class_section: str, day) -> Dict[str, dict]:
    rows = client.select("daily_attendance", where(class_section=class_section, date=_iso(day)))
    return {r["student_id"]: r for r in rows}


def status_of(records: Dict[str, dict], student_id: str) -> str:
    """Unmarked students show as present."""
    rec = records.get(student_id)
    return rec["status"] if rec and rec.get("status") else "present"


def mark(records: Dict[str, dict], student_id: str, status: str, day) -> Dict[str, dict]:
    if status not in STATUSES:
        raise ValueError(f"Invalid attendance status: {status}")
    updated = dict(records)
    updated[student_id] = {**records.get(student_id, {}), "student_id": student_id, "date": _iso(day), "status": status}
    return updated


def save_day(client, records: Dict[str, dict], day, teacher_id: Optional[str], class_section: str) -> int:
    saved = 0
    for rec in records.values():
        client.upsert("daily_attendance", {
            "student_id": rec["student_id"],
            "date": _iso(day),
            "status": rec["status"],
            "marked_by": teacher_id,
            "class_section": class_section,
            "remarks": rec.get("remarks"),
        }, on_conflict=["student_id", "date"])
        saved += 1
    logger.info("Saved attendance for %d students in %s on %s", saved, class_section, _iso(day))
    return saved


def day_stats(students: List[dict], records: Dict[str, dict]) -> dict:
    statuses = [r.get("status") for r in records.values()]
    total = len(students)
    present = statuses.count("present")
    return {
        "total": total,
        "marked": len(records),
        "present": present,
        "absent": statuses.count("absent"),
        "half_day": statuses.count("half_day"),
        "present_pct": round_pct(present / total * 100) if total > 0 else 0,
    }


def history(client, class_section: str, days: int = HISTORY_DAYS, today: Optional[date] = None) -> List[dict]:
    today = today or date.today()
    start = today - timedelta(days=days)
    return client.select(
        "daily_attendance",
        where(class_section=class_section).gte("date", start.isoformat()).order("date", desc=True),
    )


def history_frame(rows: List[dict], students: List[dict]) -> pd.DataFrame:
    """Date x student grid of status labels, newest date first."""
    if not rows:
        return pd.DataFrame()
    names = {s["id"]: s["name"] for s in students}
    df = pd.DataFrame(rows)
    df["student"] = df["student_id"].map(names).fillna(df["student_id"])
    df["status"] = df["status"].map(STATUS_LABELS).fillna(df["status"])
    grid = df.pivot_table(index="date", columns="student", values="status", aggfunc="first")
    return grid.sort_index(ascending=False).fillna("")


def attendance_percentage(client, student_id: str, days: int = 30, today: Optional[date] = None) -> int:
    today = today or date.today()
    start = today - timedelta(days=days)
    try:
        rows = client.select(
            "daily_attendance",
            where(student_id=student_id).gte("date", start.isoformat()),
            columns="status",
        )
    except DataError as e:
        logger.error("Error calculating attendance for %s: %s", student_id, e.message)
        return 0
    if not rows:
        return 0
    statuses = [r["status"] for r in rows]
    attended = statuses.count("present") + statuses.count("half_day") * 0.5
    return round_pct(attended / len(rows) * 100)
