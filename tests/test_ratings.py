# tests/test_ratings.py
import pytest

from portal import ratings_repo
from portal.users_repo import ValidationError

FORM = {
    "name": " Sunita ",
    "email": "sunita@example.com",
    "phone": "9000000001",
    "relationship": "Parent",
    "rating": 4,
    "comment": "",
}


def test_submit_rating_is_pending(client):
    shown = ratings_repo.submit_rating(client, FORM)
    stored = client.select("public_ratings")[0]
    assert stored["status"] == "pending"
    assert stored["name"] == "Sunita"
    assert stored["rating"] == 4
    assert shown["role"] == "Parent"
    assert shown["content"] == "Thank you for your feedback!"
    assert shown["image"] == ratings_repo.DEFAULT_IMAGE


def test_submit_rating_requires_a_rating(client):
    with pytest.raises(ValidationError, match="Please select a rating"):
        ratings_repo.submit_rating(client, {**FORM, "rating": 0})
    with pytest.raises(ValidationError):
        ratings_repo.submit_rating(client, {**FORM, "rating": 6})
    with pytest.raises(ValidationError):
        ratings_repo.submit_rating(client, {**FORM, "email": "  "})
    assert client.select("public_ratings") == []


def test_approved_testimonials_newest_first(client):
    client.insert("public_ratings", [
        {"name": "Old", "rating": 3, "status": "approved", "created_at": "2024-01-01T00:00:00"},
        {"name": "New", "rating": 5, "relationship": "Alumni", "comment": "Loved it",
         "status": "approved", "created_at": "2024-06-01T00:00:00"},
        {"name": "Hidden", "rating": 1, "status": "pending", "created_at": "2024-07-01T00:00:00"},
    ])
    items = ratings_repo.approved_testimonials(client)
    assert [t["name"] for t in items] == ["New", "Old"]
    assert items[0]["role"] == "Alumni" and items[0]["content"] == "Loved it"
    assert items[1]["role"] == "Visitor" and items[1]["content"] == "Great school!"


def test_rating_stats_and_optimistic_update():
    testimonials = [{"rating": 5}, {"rating": 3}]
    count, average = ratings_repo.rating_stats(testimonials)
    assert (count, average) == (2, 4.0)
    assert ratings_repo.rating_stats([]) == (0, 0.0)

    state = ratings_repo.add_optimistic({"testimonials": testimonials, "count": count, "average": average},
                                        {"name": "N", "rating": 1})
    assert state["count"] == 3
    assert state["average"] == pytest.approx(3.0)
    assert state["testimonials"][0]["name"] == "N"


def test_visible():
    items = list(range(6))
    assert ratings_repo.visible(items) == [0, 1, 2, 3]
    assert ratings_repo.visible(items, show_all=True) == items


def test_moderation(client):
    ratings_repo.submit_rating(client, FORM)
    pending = ratings_repo.pending_ratings(client)
    assert len(pending) == 1
    ratings_repo.set_rating_status(client, pending[0]["id"], "approved")
    assert ratings_repo.pending_ratings(client) == []
    assert len(ratings_repo.approved_testimonials(client)) == 1
    with pytest.raises(ValidationError):
        ratings_repo.set_rating_status(client, pending[0]["id"], "spam")
