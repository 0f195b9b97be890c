# portal/homework_repo.py
from __future__ import annotations

from typing import List

from portal.tables import where
from portal.users_repo import ValidationError


def add_homework(client, teacher: dict, form: dict) -> dict:
    title = (form.get("title") or "").strip()
    class_section = (form.get("class_section") or "").strip()
    if not title or not class_section:
        raise ValidationError("Title and class-section are required")
    submission = form.get("submission_date")
    return client.insert("homework", {
        "title": title,
        "description": (form.get("description") or "").strip(),
        "subject": form.get("subject"),
        "class_section": class_section,
        "submission_date": submission.isoformat() if hasattr(submission, "isoformat") else submission,
        "created_by": teacher.get("id"),
        "status": "active",
    })[0]


def homework_for(client, class_section: str, limit: int = 5) -> List[dict]:
    return client.select(
        "homework",
        where(class_section=class_section, status="active").order("created_at", desc=True).limit(limit),
    )
