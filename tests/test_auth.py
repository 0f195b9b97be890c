# tests/test_auth.py
import pytest

from auth import encode_password, password_matches, sign_in, stored_password
from conftest import make_student
from portal.tables import DataError, where


def test_encode_password_is_base64():
    assert encode_password("123") == "MTIz"


@pytest.mark.parametrize("stored, raw, expected", [
    ("MTIz", "123", True),
    ("123", "123", True),       # plain-text rows
    ("MTIz", "124", False),
    (None, "123", False),
])
def test_password_matches(stored, raw, expected):
    assert password_matches(stored, raw) is expected


def test_stored_password_prefers_password_column():
    assert stored_password({"password": None, "hashed_password": "a", "hashedPassword": "b"}) == "a"
    assert stored_password({"hashedPassword": "b"}) == "b"
    assert stored_password({}) is None


def test_student_sign_in(client):
    make_student(client, "SSA010", password=encode_password("pw"))
    user, error = sign_in(client, "student", "  SSA010 ", "pw")
    assert error is None
    assert user["role"] == "student"
    assert user["logged_as"] == "student"
    assert "password" not in user


def test_student_wrong_password(client):
    make_student(client, "SSA010", password=encode_password("pw"))
    user, error = sign_in(client, "student", "SSA010", "nope")
    assert user is None
    assert error == "Invalid admission ID or password"


def test_teacher_sign_in_with_hashed_password_column(client):
    client.insert("teachers", {"teacher_id": "T050", "name": "T"})
    user, error = sign_in(client, "teacher", "T050", "x")
    assert error == "Invalid teacher ID or password"

    client.update("teachers", {"password": "x"}, where(teacher_id="T050"))
    user, error = sign_in(client, "teacher", "T050", "x")
    assert error is None and user["teacher_id"] == "T050"


def test_admin_email_is_normalised(client):
    client.insert("admins", {"email": "Head@School.com", "name": "Head", "password": encode_password("s3cret")})
    user, error = sign_in(client, "admin", "  HEAD@school.COM ", "s3cret")
    assert error is None
    assert user["name"] == "Head"


def test_admin_unknown_email(seeded):
    user, error = sign_in(seeded, "admin", "ghost@school.com", "admin123")
    assert user is None
    assert error == "Invalid email or password"


def test_seeded_accounts_can_sign_in(seeded):
    assert sign_in(seeded, "admin", "admin@school.com", "admin123")[1] is None
    assert sign_in(seeded, "teacher", "T001", "teacher123")[1] is None
    assert sign_in(seeded, "student", "SSA001", "student123")[1] is None


def test_missing_login_or_role(client):
    assert sign_in(client, "student", "  ", "pw") == (None, "Invalid credentials")
    assert sign_in(client, "principal", "X", "pw") == (None, "Invalid credentials")


def test_database_error_is_reported(client, monkeypatch):
    def broken(*args, **kwargs):
        raise DataError("connection refused")

    monkeypatch.setattr(client, "select", broken)
    assert sign_in(client, "teacher", "T001", "pw") == (None, "Database error occurred")


def test_session_helpers(monkeypatch):
    import auth

    monkeypatch.setattr(auth.st, "session_state", {})
    assert auth.current_user() is None
    auth.login_user({"id": "1", "role": "teacher"})
    assert auth.current_user()["role"] == "teacher"
    assert auth.require_role("teacher")["id"] == "1"
    auth.logout()
    assert auth.current_user() is None
