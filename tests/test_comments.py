# tests/test_comments.py
from datetime import datetime, timedelta, timezone

import pytest

import db
from conftest import make_student
from portal import comments_repo
from portal.comments_repo import RLS_MESSAGE, PermissionDenied
from portal.tables import DataError
from portal.users_repo import ValidationError

NOW = datetime(2024, 7, 15, 12, 0, 0)


@pytest.fixture
def people(client):
    teacher = client.insert("teachers", {"teacher_id": "T1", "name": "Meera"})[0]
    admin = client.insert("admins", {"email": "a@school.com", "name": "Principal"})[0]
    student = make_student(client, "S1")
    return {
        "teacher": {**teacher, "role": "teacher"},
        "admin": {**admin, "role": "admin"},
        "student": student,
    }


def _comment(client, student_id, by, role, text, created_at):
    client.insert("student_comments", {
        "student_id": student_id, "commented_by": by, "commenter_role": role,
        "comment_text": text, "created_at": created_at,
    })


def test_load_comments_window_and_names(client, people):
    sid = people["student"]["id"]
    _comment(client, sid, people["teacher"]["id"], "teacher", "Good work", "2024-07-14T09:00:00")
    _comment(client, sid, people["admin"]["id"], "admin", "Keep it up", "2024-07-10T09:00:00")
    _comment(client, sid, people["teacher"]["id"], "teacher", "Too old", "2024-06-20T09:00:00")
    _comment(client, sid, None, None, "Anonymous", "2024-07-12T09:00:00")

    comments = comments_repo.load_comments(client, sid, now=NOW)
    assert [c["comment_text"] for c in comments] == ["Good work", "Anonymous", "Keep it up"]
    assert comments[0]["commenter_name"] == "Meera"
    assert comments[1]["commenter_name"] is None
    assert comments[1]["commenter_role"] == "teacher"
    assert comments[2]["commenter_name"] == "Principal"


def test_add_comment_as_teacher(client, people):
    row = comments_repo.add_comment(client, people["teacher"], people["student"]["id"], "  Well done  ")
    assert row["comment_text"] == "Well done"
    assert row["commenter_role"] == "teacher"
    assert row["commented_by"] == people["teacher"]["id"]


def test_add_comment_checks(client, people):
    sid = people["student"]["id"]
    with pytest.raises(ValidationError):
        comments_repo.add_comment(client, people["teacher"], sid, "   ")
    with pytest.raises(PermissionDenied):
        comments_repo.add_comment(client, None, sid, "hi")
    with pytest.raises(PermissionDenied):
        comments_repo.add_comment(client, {"id": "x", "role": "student"}, sid, "hi")


def test_row_level_security_error_is_friendly(client, people, monkeypatch):
    def insert(table, rows):
        raise DataError('new row violates row-level security policy for table "student_comments"')

    monkeypatch.setattr(client, "insert", insert)
    with pytest.raises(PermissionDenied) as exc:
        comments_repo.add_comment(client, people["teacher"], people["student"]["id"], "hi")
    assert str(exc.value) == RLS_MESSAGE


def test_only_owner_can_delete(client, people):
    sid = people["student"]["id"]
    row = comments_repo.add_comment(client, people["admin"], sid, "note")
    with pytest.raises(PermissionDenied):
        comments_repo.delete_comment(client, people["teacher"], row)
    comments_repo.delete_comment(client, people["admin"], row)
    assert client.select("student_comments") == []


def test_list_commentable_students_for_teacher(client):
    make_student(client, "S1", "Aarav")
    make_student(client, "S2", "Bela", class_name="8")
    names = [s["name"] for s in comments_repo.list_commentable_students(client, "teacher", ["8-A"])]
    assert names == ["Bela"]
    assert len(comments_repo.list_commentable_students(client, "admin")) == 2


def test_search_students():
    students = [
        {"name": "Aarav", "admission_id": "SSA001", "class_section": "7-A"},
        {"name": "Bela", "admission_id": "SSA002", "class_section": "8-B"},
    ]
    assert comments_repo.search_students(students, "8-b") == [students[1]]
    assert comments_repo.search_students(students, "ssa00") == students
    assert comments_repo.search_students(students, "") == students


def test_comment_window_is_utc(client, people):
    sid = people["student"]["id"]
    now = datetime.now(timezone.utc)
    fresh = (now - timedelta(days=9, hours=23)).isoformat(timespec="seconds")
    stale = (now - timedelta(days=10, hours=1)).isoformat(timespec="seconds")
    _comment(client, sid, people["teacher"]["id"], "teacher", "Fresh", fresh)
    _comment(client, sid, people["teacher"]["id"], "teacher", "Stale", stale)
    comments_repo.add_comment(client, people["teacher"], sid, "Just now")

    assert db.now_iso().endswith("+00:00")
    texts = [c["comment_text"] for c in comments_repo.load_comments(client, sid)]
    assert texts == ["Just now", "Fresh"]


def test_comment_window_accepts_other_offsets(client, people):
    sid = people["student"]["id"]
    _comment(client, sid, people["teacher"]["id"], "teacher", "Edge", "2024-07-05T07:00:00+00:00")
    ist = timezone(timedelta(hours=5, minutes=30))
    comments = comments_repo.load_comments(client, sid, now=datetime(2024, 7, 15, 12, 0, tzinfo=ist))
    assert [c["comment_text"] for c in comments] == ["Edge"]
