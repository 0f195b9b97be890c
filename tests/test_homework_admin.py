# tests/test_homework_admin.py
from datetime import date

import pytest

import ensure_admin
from auth import sign_in
from portal import homework_repo
from portal.tables import where
from portal.users_repo import ValidationError

TEACHER = {"id": "teacher-1", "name": "Meena"}


def test_add_homework(client):
    hw = homework_repo.add_homework(client, TEACHER, {
        "title": " Fractions worksheet ", "class_section": "7-A",
        "subject": "Mathematics", "submission_date": date(2024, 7, 20),
    })
    assert hw["title"] == "Fractions worksheet"
    assert hw["submission_date"] == "2024-07-20"
    assert hw["created_by"] == "teacher-1"
    assert hw["status"] == "active"


def test_add_homework_requires_title_and_class(client):
    with pytest.raises(ValidationError):
        homework_repo.add_homework(client, TEACHER, {"title": "x", "class_section": ""})


def test_homework_for_class(client):
    for i in range(7):
        homework_repo.add_homework(client, TEACHER, {"title": f"Task {i}", "class_section": "7-A"})
    homework_repo.add_homework(client, TEACHER, {"title": "Other", "class_section": "8-B"})
    client.update("homework", {"status": "closed"}, where(title="Task 0"))

    items = homework_repo.homework_for(client, "7-A")
    assert len(items) == 5
    assert all(hw["class_section"] == "7-A" for hw in items)
    assert "Task 0" not in {hw["title"] for hw in homework_repo.homework_for(client, "7-A", limit=10)}


def test_ensure_admin_creates_then_resets(client):
    ensure_admin.ensure_admin(client, " Office@School.com ", "first")
    ensure_admin.ensure_admin(client, "office@school.com", "second", name="Office")
    admins = client.select("admins", where(email="office@school.com"))
    assert len(admins) == 1
    assert admins[0]["name"] == "Office"

    user, err = sign_in(client, "admin", "office@school.com", "second")
    assert err is None
    assert user["email"] == "office@school.com"
    user, err = sign_in(client, "admin", "office@school.com", "first")
    assert user is None and err


def test_ensure_admin_cli(client, monkeypatch):
    monkeypatch.setattr(ensure_admin, "get_tables", lambda: client)
    assert ensure_admin.main(["--email", "cli@school.com", "--password", "pw"]) == 0
    user, _ = sign_in(client, "admin", "cli@school.com", "pw")
    assert user["role"] == "admin"
