# tests/test_attendance.py
from datetime import date

import pytest

from conftest import make_student
from portal import attendance_repo
from portal.tables import DataError

DAY = date(2024, 7, 15)


def _class(client):
    a = make_student(client, "S1", "Aarav")
    b = make_student(client, "S2", "Bela")
    c = make_student(client, "S3", "Chirag")
    make_student(client, "S4", "Other class", class_name="8")
    return [a, b, c]


def test_load_class_students_only_that_section(client):
    _class(client)
    names = [s["name"] for s in attendance_repo.load_class_students(client, "7-A")]
    assert names == ["Aarav", "Bela", "Chirag"]


def test_mark_returns_new_mapping():
    records = {}
    updated = attendance_repo.mark(records, "s1", "half_day", DAY)
    assert records == {}
    assert updated["s1"] == {"student_id": "s1", "date": "2024-07-15", "status": "half_day"}
    with pytest.raises(ValueError):
        attendance_repo.mark(updated, "s1", "late", DAY)


def test_unmarked_students_show_present():
    assert attendance_repo.status_of({}, "s1") == "present"
    assert attendance_repo.status_of({"s1": {"status": "absent"}}, "s1") == "absent"


def test_save_day_upserts_on_student_and_date(client):
    students = _class(client)
    records = {}
    for s, status in zip(students, ["present", "absent", "half_day"]):
        records = attendance_repo.mark(records, s["id"], status, DAY)
    assert attendance_repo.save_day(client, records, DAY, "teacher-1", "7-A") == 3

    records = attendance_repo.mark(records, students[1]["id"], "present", DAY)
    attendance_repo.save_day(client, records, DAY, "teacher-1", "7-A")

    loaded = attendance_repo.load_day(client, "7-A", DAY)
    assert len(loaded) == 3
    assert loaded[students[1]["id"]]["status"] == "present"
    assert loaded[students[0]["id"]]["marked_by"] == "teacher-1"
    assert len(client.select("daily_attendance")) == 3


def test_day_stats():
    students = [{"id": "a"}, {"id": "b"}, {"id": "c"}, {"id": "d"}]
    records = {
        "a": {"status": "present"},
        "b": {"status": "present"},
        "c": {"status": "half_day"},
    }
    stats = attendance_repo.day_stats(students, records)
    assert stats == {"total": 4, "marked": 3, "present": 2, "absent": 0, "half_day": 1, "present_pct": 50}
    assert attendance_repo.day_stats([], {})["present_pct"] == 0


def _record(client, student_id, day, status, class_section="7-A"):
    client.insert("daily_attendance", {
        "student_id": student_id, "date": day, "status": status, "class_section": class_section,
    })


def test_history_window_newest_first(client):
    _record(client, "s1", "2024-07-14", "present")
    _record(client, "s1", "2024-07-10", "absent")
    _record(client, "s1", "2024-07-01", "present")
    _record(client, "s2", "2024-07-12", "present", class_section="8-A")

    rows = attendance_repo.history(client, "7-A", today=DAY)
    assert [r["date"] for r in rows] == ["2024-07-14", "2024-07-10"]


def test_history_frame_pivots_dates_by_student():
    rows = [
        {"student_id": "s1", "date": "2024-07-14", "status": "present"},
        {"student_id": "s2", "date": "2024-07-14", "status": "half_day"},
        {"student_id": "s1", "date": "2024-07-13", "status": "absent"},
    ]
    grid = attendance_repo.history_frame(rows, [{"id": "s1", "name": "Aarav"}, {"id": "s2", "name": "Bela"}])
    assert list(grid.index) == ["2024-07-14", "2024-07-13"]
    assert grid.loc["2024-07-14", "Bela"] == "Half Day"
    assert grid.loc["2024-07-13", "Aarav"] == "Absent"
    assert grid.loc["2024-07-13", "Bela"] == ""
    assert attendance_repo.history_frame([], []).empty


def test_attendance_percentage_counts_half_days(client):
    _record(client, "s1", "2024-07-14", "present")
    _record(client, "s1", "2024-07-13", "half_day")
    _record(client, "s1", "2024-07-12", "absent")
    _record(client, "s1", "2024-07-11", "present")
    _record(client, "s1", "2024-05-01", "absent")  # outside 30 days

    assert attendance_repo.attendance_percentage(client, "s1", today=DAY) == 63
    assert attendance_repo.attendance_percentage(client, "nobody", today=DAY) == 0


def test_attendance_percentage_is_zero_on_error(client, monkeypatch):
    def broken(*args, **kwargs):
        raise DataError("timeout")

    monkeypatch.setattr(client, "select", broken)
    assert attendance_repo.attendance_percentage(client, "s1", today=DAY) == 0
