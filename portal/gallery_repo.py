# portal/gallery_repo.py
from __future__ import annotations

import logging
from typing import List, Optional

from portal.tables import DataError, Query, where
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

FALLBACK_URL = "https://www.ssaami.ac.in/home-photos/{i}-1024.jpeg"
FALLBACK_COUNT = 8


def default_images() -> List[dict]:
    return [
        {
            "id": f"default-{i}",
            "image_url": FALLBACK_URL.format(i=i),
            "title": f"School Photo {i}",
            "description": None,
            "display_order": i,
            "is_active": True,
        }
        for i in range(1, FALLBACK_COUNT + 1)
    ]


def list_images(client) -> List[dict]:
    return client.select("gallery_images", Query().order("display_order"))


def public_images(client) -> List[dict]:
    try:
        return client.select("gallery_images", where(is_active=True).order("display_order"))
    except DataError as e:
        logger.error("Error loading gallery images, using defaults: %s", e.message)
        return default_images()


def add_image(client, image_url: str, title: str, description: Optional[str] = None,
              admin_id: Optional[str] = None) -> dict:
    image_url, title = (image_url or "").strip(), (title or "").strip()
    if not image_url or not title:
        raise ValidationError("Image URL and title are required")
    return client.insert("gallery_images", {
        "image_url": image_url,
        "title": title,
        "description": (description or "").strip() or None,
        "display_order": 0,
        "is_active": True,
        "uploaded_by": admin_id,
    })[0]


def toggle_image(client, image_id: str, is_active: bool) -> dict:
    rows = client.update("gallery_images", {"is_active": not is_active}, where(id=image_id))
    if not rows:
        raise DataError(f"Image {image_id} not found", "gallery_images")
    return rows[0]


def delete_image(client, image_id: str) -> None:
    client.delete("gallery_images", where(id=image_id))
