# portal/users_repo.py
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from auth import encode_password
from portal.tables import DataError, Query, where

logger = logging.getLogger(__name__)

USER_TABLES = {"students": "students", "teachers": "teachers"}

SUBJECTS_PRIMARY = ["Hindi", "English", "Maths", "EVS", "Computer"]
SUBJECTS_MIDDLE = ["Hindi", "English", "Maths", "Computer", "S.St", "Science"]
SUBJECTS_SECONDARY = ["Hindi", "English", "Maths", "S.St", "Science", "AI"]

SEARCH_FIELDS = {
    "students": ("name", "admission_id", "class_section"),
    "teachers": ("name", "teacher_id", "email"),
}

_PASSWORD_COLUMN_ERROR = re.compile(r"Could not find the 'password' column|password.*column", re.IGNORECASE)


class ValidationError(ValueError):
    """Form input rejected before anything is written."""


def _table(user_type: str) -> str:
    try:
        return USER_TABLES[user_type]
    except KeyError:
        raise ValidationError(f"Unknown user type: {user_type}")


def list_users(client, user_type: str) -> List[dict]:
    return client.select(_table(user_type), Query().order("name"))


def available_class_sections(students: List[dict]) -> List[str]:
    return sorted({s.get("class_section") for s in students if s.get("class_section")})


def subjects_for_class_section(class_section: str) -> List[str]:
    """Default subject set offered for a class-section like "7-A"."""
    try:
        class_number = int(str(class_section).split("-")[0])
    except (TypeError, ValueError):
        return []
    if 1 <= class_number <= 5:
        return list(SUBJECTS_PRIMARY)
    if 6 <= class_number <= 8:
        return list(SUBJECTS_MIDDLE)
    if 9 <= class_number <= 10:
        return list(SUBJECTS_SECONDARY)
    return []


def insert_with_password(client, table: str, payload: dict) -> dict:
    """
    Insert a user row. Some deployments name the column hashed_password;
    when the insert fails on the password column the value is moved over
    and the insert is tried once more.
    """
    try:
        return client.insert(table, payload)[0]
    except DataError as e:
        if "password" not in payload or not _PASSWORD_COLUMN_ERROR.search(e.message):
            raise
        logger.warning("%s has no password column, retrying with hashed_password", table)
        retry = dict(payload)
        retry["hashed_password"] = retry.pop("password")
        return client.insert(table, retry)[0]


def _clean(form: dict) -> dict:
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in form.items() if v not in (None, "")}


def add_student(client, form: dict) -> dict:
    data = _clean(form)
    for field in ("admission_id", "name", "password"):
        if not data.get(field):
            raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required")
    class_name, section = data.get("class_name"), data.get("section")
    if not class_name or not section:
        raise ValidationError("Class and section are required")

    data["class_section"] = f"{class_name}-{section}"
    data.setdefault("status", "active")
    data["password"] = encode_password(data["password"])
    row = insert_with_password(client, "students", data)
    logger.info("Added student %s in %s", data["admission_id"], data["class_section"])
    return row


def _validate_assignments(assignments: Dict[str, List[str]], class_teacher_section: Optional[str]):
    if not assignments:
        raise ValidationError("Select at least one class-section")
    for cs, subjects in assignments.items():
        if not subjects:
            raise ValidationError(f"Select at least one subject for {cs}")
    if class_teacher_section and class_teacher_section not in assignments:
        raise ValidationError("Class teacher section must be one of the selected class-sections")


def add_teacher(client, form: dict, assignments: Dict[str, List[str]],
                class_teacher_section: Optional[str] = None):
    """
    Insert a teacher and its class/subject mappings.

    Returns (teacher_row, warnings). Once the teacher row exists, failures
    of the follow-up writes are collected as warnings and not rolled back.
    """
    data = _clean(form)
    for field in ("teacher_id", "name", "password"):
        if not data.get(field):
            raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required")
    _validate_assignments(assignments, class_teacher_section)

    data.setdefault("status", "active")
    data["password"] = encode_password(data["password"])
    teacher = insert_with_password(client, "teachers", data)
    warnings: List[str] = []

    subject_names = sorted({s for subs in assignments.values() for s in subs})
    try:
        catalogue = client.select("subjects", Query().in_("name", subject_names))
        codes = sorted({s["code"] for s in catalogue if s.get("code")})
        client.update("teachers", {"subjects": codes}, where(id=teacher["id"]))
        teacher["subjects"] = codes
    except DataError as e:
        warnings.append(f"Could not save subject codes: {e.message}")

    rows = [
        {"teacher_id": teacher["id"], "class_section": cs, "subject": subject}
        for cs, subjects in assignments.items()
        for subject in subjects
    ]
    try:
        client.insert("teacher_class_sections", rows)
    except DataError as e:
        warnings.append(f"Could not save class assignments: {e.message}")

    if class_teacher_section:
        try:
            client.upsert(
                "class_teachers",
                {"class_section": class_teacher_section, "teacher_id": teacher["id"]},
                on_conflict=["class_section"],
            )
        except DataError as e:
            warnings.append(f"Could not set class teacher: {e.message}")

    for w in warnings:
        logger.warning("add_teacher %s: %s", data["teacher_id"], w)
    logger.info("Added teacher %s with %d assignments", data["teacher_id"], len(rows))
    return teacher, warnings


def update_user(client, user_type: str, user_id: str, changes: dict) -> dict:
    values = dict(changes)
    values.pop("id", None)
    if values.get("password"):
        values["password"] = encode_password(values["password"])
    else:
        values.pop("password", None)
    if user_type == "students" and values.get("class_name") and values.get("section"):
        values["class_section"] = f"{values['class_name']}-{values['section']}"
    rows = client.update(_table(user_type), values, where(id=user_id))
    if not rows:
        raise DataError(f"No {user_type[:-1]} with id {user_id}", _table(user_type))
    return rows[0]


def delete_user(client, user_type: str, user_id: str) -> Optional[str]:
    """Delete a user and return its email (None when it had none)."""
    table = _table(user_type)
    row = client.select_one(table, where(id=user_id), columns="id, email")
    if row is None:
        raise DataError(f"No {user_type[:-1]} with id {user_id}", table)
    client.delete(table, where(id=user_id))
    logger.info("Deleted %s %s", user_type[:-1], user_id)
    return row.get("email")


def search_users(users: List[dict], query: str, user_type: str) -> List[dict]:
    term = (query or "").strip().lower()
    if not term:
        return list(users)
    fields = SEARCH_FIELDS.get(user_type, ("name",))
    return [u for u in users if any(term in str(u.get(f) or "").lower() for f in fields)]


def teacher_assignments(client, teacher_code: str) -> Dict[str, List[str]]:
    """
    {class_section: [subjects]} for the teacher whose login code is teacher_code.
    """
    teacher = client.select_one("teachers", where(teacher_id=teacher_code), columns="id")
    if teacher is None:
        return {}
    rows = client.select(
        "teacher_class_sections",
        where(teacher_id=teacher["id"]).order("class_section").order("subject"),
    )
    out: Dict[str, List[str]] = {}
    for r in rows:
        out.setdefault(r["class_section"], [])
        if r["subject"] not in out[r["class_section"]]:
            out[r["class_section"]].append(r["subject"])
    return out


def class_teacher_of(client, teacher_row_id: str) -> Optional[str]:
    rows = client.select("class_teachers", where(teacher_id=teacher_row_id).limit(1), columns="class_section")
    return rows[0]["class_section"] if rows else None
