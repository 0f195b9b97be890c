# portal/comments_repo.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from portal.tables import DataError, Query, where
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

COMMENT_WINDOW_DAYS = 10
COMMENTER_ROLES = ("admin", "teacher")
RLS_MESSAGE = (
    "You do not have permission to add comments for this student. "
    "Please ensure this student is in your assigned class."
)


class PermissionDenied(Exception):
    pass


def _commenter_id(row: dict) -> Optional[str]:
    value = row.get("commented_by") or row.get("commented_by_id")
    return str(value) if value else None


def load_comments(client, student_id: str, now: Optional[datetime] = None) -> List[dict]:
    """
    Comments on a student from the last COMMENT_WINDOW_DAYS days, newest
    first, each with ``commenter_name`` filled from teachers or admins.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    since = now - timedelta(days=COMMENT_WINDOW_DAYS)
    rows = client.select(
        "student_comments",
        where(student_id=student_id)
        .gte("created_at", since.isoformat(timespec="seconds"))
        .order("created_at", desc=True),
    )

    ids = sorted({cid for cid in (_commenter_id(r) for r in rows) if cid})
    names = {}
    if ids:
        for table in ("teachers", "admins"):
            for person in client.select(table, Query().in_("id", ids), columns="id, name"):
                names[person["id"]] = person["name"]

    out = []
    for r in rows:
        cid = _commenter_id(r)
        out.append({
            "id": r["id"],
            "comment_text": r.get("comment_text") or "",
            "commenter_role": r.get("commenter_role") or "teacher",
            "created_at": r.get("created_at"),
            "commented_by": cid,
            "commenter_name": names.get(cid) if cid else None,
        })
    return out


def add_comment(client, user: Optional[dict], student_id: str, text: str) -> dict:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Please enter a comment")
    if not user:
        raise PermissionDenied("Please log in to continue")
    role = user.get("role")
    if role not in COMMENTER_ROLES:
        raise PermissionDenied("You must be a teacher or admin to add comments")

    try:
        row = client.insert("student_comments", {
            "student_id": student_id,
            "commented_by": user["id"],
            "commenter_role": "admin" if role == "admin" else "teacher",
            "comment_text": text,
        })[0]
    except DataError as e:
        if "row-level security" in e.message:
            raise PermissionDenied(RLS_MESSAGE) from e
        raise
    logger.info("Comment added on student %s by %s %s", student_id, role, user["id"])
    return row


def delete_comment(client, user: Optional[dict], comment: dict) -> None:
    if not user:
        raise PermissionDenied("Please log in to delete comments")
    if user.get("id") != _commenter_id(comment):
        raise PermissionDenied("You can only delete your own comments")
    client.delete("student_comments", where(id=comment["id"]))


def list_commentable_students(client, user_role: str, class_sections: Optional[List[str]] = None) -> List[dict]:
    q = Query().order("name")
    if user_role == "teacher" and class_sections:
        q.in_("class_section", class_sections)
    return client.select("students", q, columns="id, admission_id, name, class_section")


def search_students(students: List[dict], term: str) -> List[dict]:
    term = (term or "").strip().lower()
    if not term:
        return list(students)
    return [
        s for s in students
        if any(term in str(s.get(f) or "").lower() for f in ("name", "admission_id", "class_section"))
    ]
