# tests/conftest.py
import pytest

import db
from portal.tables import SQLiteTables


@pytest.fixture(autouse=True)
def use_temp_db(monkeypatch, tmp_path):
    # every test gets its own fresh database file
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "school.db"))
    db.init_db()
    yield


@pytest.fixture
def client():
    return SQLiteTables()


@pytest.fixture
def seeded(client):
    db.seed_demo_data()
    return client


@pytest.fixture
def catalogue(client):
    """Classes and subjects only, no people."""
    db.seed_classes_and_subjects()
    return client


def make_student(client, admission_id="S100", name="Test Student", class_name="7", section="A", **extra):
    row = {
        "admission_id": admission_id,
        "name": name,
        "class_name": class_name,
        "section": section,
        "class_section": f"{class_name}-{section}",
        "status": "active",
    }
    row.update(extra)
    return client.insert("students", row)[0]
