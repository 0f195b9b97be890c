# auth.py: sign-in against the students, teachers and admins tables
import base64
import logging

import streamlit as st

from portal.tables import DataError, Query, where

logger = logging.getLogger(__name__)

ROLES = ("student", "teacher", "admin")
PASSWORD_FIELDS = ("password", "hashed_password", "hashedPassword")

# role -> (table, login column, error shown on a failed match)
ROLE_LOOKUP = {
    "student": ("students", "admission_id", "Invalid admission ID or password"),
    "teacher": ("teachers", "teacher_id", "Invalid teacher ID or password"),
    "admin": ("admins", "email", "Invalid email or password"),
}


def encode_password(password: str) -> str:
    return base64.b64encode(password.encode("utf-8")).decode("ascii")


def stored_password(row):
    if not row:
        return None
    for field in PASSWORD_FIELDS:
        if row.get(field) is not None:
            return row[field]
    return None


def password_matches(stored, password: str) -> bool:
    """
    Stored values are base64 of the raw password; plain-text rows from
    older imports are accepted as well.
    """
    if stored is None:
        return False
    return stored == encode_password(password) or stored == password


def _public_user(row: dict, role: str) -> dict:
    user = {k: v for k, v in row.items() if k not in PASSWORD_FIELDS}
    user["role"] = role
    user["logged_as"] = role
    return user


def _mask(value) -> str:
    value = str(value or "")
    return f"{value[:2]}...({len(value)})"


def sign_in(client, role: str, login: str, password: str):
    """
    Returns (user, None) on success or (None, error message).
    """
    role = (role or "").strip().lower()
    login = (login or "").strip()
    if role not in ROLE_LOOKUP or not login:
        return None, "Invalid credentials"

    table, column, failure = ROLE_LOOKUP[role]
    if role == "admin":
        login = login.lower()

    try:
        row = client.select_one(table, where(**{column: login}))
        if row is None and role == "admin":
            # stored emails may differ in case
            matches = client.select(table, Query().ilike(column, login).limit(1))
            row = matches[0] if matches else None
    except DataError as e:
        logger.error("%s lookup failed for %s: %s", role, _mask(login), e.message)
        return None, "Database error occurred"

    if row is None:
        logger.info("Sign-in failed: no %s for %s", role, _mask(login))
        return None, failure
    if not password_matches(stored_password(row), password):
        logger.info("Sign-in failed: password mismatch for %s %s", role, _mask(login))
        return None, failure

    logger.info("Signed in %s %s", role, _mask(login))
    return _public_user(row, role), None


# -------------------------
# Session helpers
# -------------------------
def login_user(user: dict):
    st.session_state["user"] = user


def current_user():
    return st.session_state.get("user")


def logout():
    st.session_state.clear()


def require_role(role: str):
    """Stop the script run unless the signed-in user has ``role``."""
    user = current_user()
    if not user or user.get("role") != role:
        st.error(f"Please login as {role}")
        st.stop()
    return user
