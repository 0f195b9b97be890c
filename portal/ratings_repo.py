# portal/ratings_repo.py
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import db
from portal.tables import DataError, Query, where
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "data/images/Default.jpg"
DISPLAY_COUNT = 4
RATING_STATUSES = ("pending", "approved", "rejected")
REQUIRED_FIELDS = ("name", "email", "phone", "relationship")


def submit_rating(client, form: dict) -> dict:
    """
    Store a public rating as pending and return the testimonial to show
    right away on the submitter's page.
    """
    try:
        rating = int(form.get("rating") or 0)
    except (TypeError, ValueError):
        rating = 0
    if rating == 0:
        raise ValidationError("Please select a rating")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    data = {f: str(form.get(f) or "").strip() for f in REQUIRED_FIELDS}
    missing = [f for f in REQUIRED_FIELDS if not data[f]]
    if missing:
        raise ValidationError(f"Please fill in: {', '.join(missing)}")
    comment = str(form.get("comment") or "").strip()

    client.insert("public_ratings", {**data, "rating": rating, "comment": comment, "status": "pending"})
    logger.info("Public rating submitted (%d stars)", rating)
    return {
        "name": data["name"],
        "role": data["relationship"] or "Visitor",
        "content": comment or "Thank you for your feedback!",
        "rating": rating,
        "image": DEFAULT_IMAGE,
    }


def _testimonial(row: dict) -> dict:
    return {
        "id": row.get("id"),
        "name": row.get("name") or "Anonymous",
        "role": row.get("relationship") or "Visitor",
        "content": row.get("comment") or "Great school!",
        "rating": int(row.get("rating") or 0),
        "image": DEFAULT_IMAGE,
        "created_at": row.get("created_at"),
    }


def approved_testimonials(client) -> List[dict]:
    rows = client.select("public_ratings", where(status="approved").order("created_at", desc=True))
    return [_testimonial(r) for r in rows]


def rating_stats(testimonials: List[dict]) -> Tuple[int, float]:
    if not testimonials:
        return 0, 0.0
    return len(testimonials), sum(t["rating"] for t in testimonials) / len(testimonials)


def add_optimistic(state: dict, testimonial: dict) -> dict:
    """
    New state with the testimonial prepended and the running count and
    average updated from the previous values.
    """
    count = state.get("count", 0)
    average = state.get("average", 0.0)
    new_count = count + 1
    return {
        "testimonials": [testimonial] + list(state.get("testimonials", [])),
        "count": new_count,
        "average": (average * count + testimonial.get("rating", 0)) / new_count,
    }


def visible(testimonials: List[dict], display_count: int = DISPLAY_COUNT, show_all: bool = False) -> List[dict]:
    return list(testimonials) if show_all else list(testimonials)[:display_count]


# -------------------------
# Moderation
# -------------------------
def pending_ratings(client) -> List[dict]:
    return client.select("public_ratings", where(status="pending").order("created_at", desc=True))


def all_ratings(client, status: Optional[str] = None) -> List[dict]:
    q = Query().order("created_at", desc=True)
    if status:
        q.eq("status", status)
    return client.select("public_ratings", q)


def set_rating_status(client, rating_id: str, status: str) -> dict:
    if status not in RATING_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(RATING_STATUSES)}")
    rows = client.update("public_ratings", {"status": status}, where(id=rating_id))
    if not rows:
        raise DataError(f"Rating {rating_id} not found", "public_ratings")
    logger.info("Rating %s marked %s at %s", rating_id, status, db.now_iso())
    return rows[0]
