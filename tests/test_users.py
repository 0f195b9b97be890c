# tests/test_users.py
import json

import pytest

import db
from auth import encode_password
from conftest import make_student
from portal import users_repo
from portal.tables import DataError, where
from portal.users_repo import ValidationError


def test_subjects_for_class_section():
    assert users_repo.subjects_for_class_section("3-A") == ["Hindi", "English", "Maths", "EVS", "Computer"]
    assert "Science" in users_repo.subjects_for_class_section("7-B")
    assert users_repo.subjects_for_class_section("10-A")[-1] == "AI"
    assert users_repo.subjects_for_class_section("12-A") == []
    assert users_repo.subjects_for_class_section("X-A") == []


def test_available_class_sections():
    students = [{"class_section": "7-B"}, {"class_section": "7-A"}, {"class_section": ""}, {"class_section": "7-A"}]
    assert users_repo.available_class_sections(students) == ["7-A", "7-B"]


def test_add_student_encodes_password_and_builds_section(client):
    row = users_repo.add_student(client, {
        "admission_id": " S200 ", "name": "New Kid", "password": "pw", "class_name": "5", "section": "B",
    })
    assert row["admission_id"] == "S200"
    assert row["class_section"] == "5-B"
    assert row["status"] == "active"
    assert row["password"] == encode_password("pw")


def test_add_student_requires_class_and_section(client):
    with pytest.raises(ValidationError):
        users_repo.add_student(client, {"admission_id": "S1", "name": "N", "password": "p", "class_name": "5"})


def test_insert_with_password_falls_back_to_hashed_password(client):
    conn = db.get_connection()
    conn.execute("CREATE TABLE legacy_users (id TEXT PRIMARY KEY, name TEXT, hashed_password TEXT, created_at TEXT)")
    conn.commit()
    conn.close()

    row = users_repo.insert_with_password(client, "legacy_users", {"name": "Old", "password": "cHc="})
    assert row["hashed_password"] == "cHc="


def test_insert_with_password_reraises_other_errors(client):
    with pytest.raises(DataError):
        users_repo.insert_with_password(client, "students", {"name": "No admission id", "password": "x"})


def test_add_teacher_writes_assignments(catalogue):
    teacher, warnings = users_repo.add_teacher(
        catalogue,
        {"teacher_id": "T100", "name": "Asha", "password": "pw", "email": "asha@school.com"},
        {"7-A": ["Maths", "Science"], "8-B": ["Maths"]},
        class_teacher_section="7-A",
    )
    assert warnings == []
    stored = catalogue.select_one("teachers", where(teacher_id="T100"))
    assert json.loads(stored["subjects"]) == ["MAT", "SCI"]
    assert len(catalogue.select("teacher_class_sections", where(teacher_id=teacher["id"]))) == 3
    assert users_repo.class_teacher_of(catalogue, teacher["id"]) == "7-A"
    assert users_repo.teacher_assignments(catalogue, "T100") == {"7-A": ["Maths", "Science"], "8-B": ["Maths"]}


@pytest.mark.parametrize("assignments, class_teacher", [
    ({}, None),
    ({"7-A": []}, None),
    ({"7-A": ["Maths"]}, "8-A"),
])
def test_add_teacher_validation(catalogue, assignments, class_teacher):
    with pytest.raises(ValidationError):
        users_repo.add_teacher(catalogue, {"teacher_id": "T1", "name": "N", "password": "p"}, assignments, class_teacher)
    assert catalogue.select("teachers") == []


def test_add_teacher_reports_followup_failures_as_warnings(catalogue, monkeypatch):
    real_insert = catalogue.insert

    def insert(table, rows):
        if table == "teacher_class_sections":
            raise DataError("permission denied")
        return real_insert(table, rows)

    monkeypatch.setattr(catalogue, "insert", insert)
    teacher, warnings = users_repo.add_teacher(
        catalogue, {"teacher_id": "T2", "name": "N", "password": "p"}, {"7-A": ["Maths"]}
    )
    assert teacher["teacher_id"] == "T2"
    assert warnings == ["Could not save class assignments: permission denied"]


def test_update_user_reencodes_password(client):
    s = make_student(client, "S1", password=encode_password("old"))
    updated = users_repo.update_user(client, "students", s["id"], {"password": "new", "name": "Renamed"})
    assert updated["password"] == encode_password("new")
    assert updated["name"] == "Renamed"

    kept = users_repo.update_user(client, "students", s["id"], {"password": "", "phone": "999"})
    assert kept["password"] == encode_password("new")


def test_delete_user_returns_email(client):
    s = make_student(client, "S1", email="s1@school.com")
    assert users_repo.delete_user(client, "students", s["id"]) == "s1@school.com"
    with pytest.raises(DataError):
        users_repo.delete_user(client, "students", s["id"])


def test_search_users():
    students = [
        {"name": "Aarav Gupta", "admission_id": "SSA001", "class_section": "7-A"},
        {"name": "Zoya Khan", "admission_id": "SSA004", "class_section": "9-A"},
    ]
    assert len(users_repo.search_users(students, "ssa", "students")) == 2
    assert users_repo.search_users(students, "9-a", "students")[0]["name"] == "Zoya Khan"
    teachers = [{"name": "Meera", "teacher_id": "T001", "email": "meera@school.com"}]
    assert users_repo.search_users(teachers, "MEERA@", "teachers") == teachers
    assert users_repo.search_users(teachers, "", "teachers") == teachers


def test_unknown_user_type(client):
    with pytest.raises(ValidationError):
        users_repo.list_users(client, "parents")
