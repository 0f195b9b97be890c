# portal/notices_repo.py
from __future__ import annotations

import logging
from typing import List, Optional

import db
from portal.tables import DataError, Query, where
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")


def list_notices(client, active_only: bool = False) -> List[dict]:
    q = Query()
    if active_only:
        q.eq("is_active", True)
    return client.select("notices", q.order("created_at", desc=True))


def add_notice(client, title: str, content: str, priority: str = "medium",
               admin_id: Optional[str] = None, date: Optional[str] = None,
               target_audience: str = "all") -> dict:
    title, content = (title or "").strip(), (content or "").strip()
    if not title or not content:
        raise ValidationError("Title and content are required")
    priority = (priority or "medium").lower()
    if priority not in PRIORITIES:
        raise ValidationError(f"Priority must be one of {', '.join(PRIORITIES)}")

    now = db.now_iso()
    row = client.insert("notices", {
        "title": title,
        "content": content,
        "priority": priority,
        "target_audience": target_audience,
        "created_by": admin_id,
        "is_active": True,
        "date": date or now,
        "updated_at": now,
    })[0]
    logger.info("Notice added: %s", title)
    return row


def toggle_notice(client, notice_id: str, is_active: bool) -> dict:
    """Flip the notice's current ``is_active`` value."""
    rows = client.update("notices", {"is_active": not is_active, "updated_at": db.now_iso()}, where(id=notice_id))
    if not rows:
        raise DataError(f"Notice {notice_id} not found", "notices")
    return rows[0]


def delete_notice(client, notice_id: str) -> None:
    client.delete("notices", where(id=notice_id))
    logger.info("Notice deleted: %s", notice_id)
