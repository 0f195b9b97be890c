# tests/test_marks.py
import pytest

from conftest import make_student
from portal import marks_repo
from portal.marks_repo import MarksError, SubjectMark
from portal.tables import where


@pytest.mark.parametrize("name, expected", [
    ("7", 7), ("7-A", 7), ("10", 10), ("VII", 7), ("xii", 12), ("", None), (None, None), ("Nursery", None),
])
def test_parse_class_number(name, expected):
    assert marks_repo.parse_class_number(name) == expected


@pytest.mark.parametrize("class_name, exam, expected", [
    ("9", "PA1", 40),
    ("10", "PA3", 40),
    ("3", "PA2", 30),
    ("8-B", "PA4", 30),
    ("9", "Half Yearly", 100),
    ("3", "Annual", 100),
    ("LKG", "PA1", 100),
])
def test_max_marks_for(class_name, exam, expected):
    assert marks_repo.max_marks_for(class_name, exam) == expected


def test_class_section_of():
    assert marks_repo.class_section_of({"class_name": "7-A", "section": "B"}) == "7-A"
    assert marks_repo.class_section_of({"class_name": "7", "section": "B"}) == "7-B"


def test_find_class_by_section_loosens_match(catalogue):
    exact = marks_repo.find_class_by_section(catalogue, "7-A")
    assert exact["class_section"] == "7-A"
    assert marks_repo.find_class_by_section(catalogue, "7-a")["id"] == exact["id"]
    assert marks_repo.find_class_by_section(catalogue, "7 A")["id"] == exact["id"]
    assert marks_repo.find_class_by_section(catalogue, "  ") is None
    assert marks_repo.find_class_by_section(catalogue, "42-Z") is None


def test_find_student_backfills_class_id(catalogue):
    make_student(catalogue, "S1", class_name="7", section="A")
    student = marks_repo.find_student(catalogue, " S1 ")
    assert student["class_id"]
    stored = catalogue.select_one("students", where(admission_id="S1"))
    assert stored["class_id"] == student["class_id"]
    assert marks_repo.find_student(catalogue, "missing") is None


def test_can_manage():
    student = {"class_name": "7", "section": "A"}
    assert marks_repo.can_manage(student, None)
    assert marks_repo.can_manage(student, {"7-A": ["Maths"]})
    assert not marks_repo.can_manage(student, {"8-A": ["Maths"]})


def test_subjects_for_student_by_class_range(catalogue):
    names = [s["name"] for s in marks_repo.subjects_for_student(catalogue, {"class_name": "3", "section": "A"})]
    assert names == sorted(["Hindi", "English", "Maths", "EVS", "Computer"])
    names = [s["name"] for s in marks_repo.subjects_for_student(catalogue, {"class_name": "9", "section": "A"})]
    assert "AI" in names and "EVS" not in names


def test_subjects_for_teacher_are_limited_to_assignments(catalogue):
    student = {"class_name": "7", "section": "A"}
    subjects = marks_repo.subjects_for_student(catalogue, student, {"7-A": ["Maths", "SCI"]})
    assert [s["name"] for s in subjects] == ["Maths", "Science"]


def test_subjects_for_student_without_class(catalogue):
    with pytest.raises(MarksError):
        marks_repo.subjects_for_student(catalogue, {"class_name": ""})
    with pytest.raises(MarksError):
        marks_repo.subjects_for_student(catalogue, {"class_name": "Nursery"})


@pytest.mark.parametrize("value, expected", [(25, 25), (-3, 0), (45, 40), ("abc", 0), (None, 0), ("12.5", 12.5)])
def test_clamp_marks(value, expected):
    assert marks_repo.clamp_marks(value, 40) == expected


def test_save_marks_inserts_then_updates_with_history(catalogue):
    student = make_student(catalogue, "S1", class_name="9", section="A")
    subjects = marks_repo.subjects_for_student(catalogue, student)
    marks = marks_repo.load_subject_marks(catalogue, student, "PA1", subjects)
    assert all(m.total_marks == 40 and m.marks_obtained == 0 and m.mark_id is None for m in marks)

    marks[0].marks_obtained = 35
    marks[1].marks_obtained = 99  # clamped to 40
    assert marks_repo.save_marks(catalogue, student, "PA1", marks, "teacher-1") == len(marks)
    assert student["class_id"]

    reloaded = marks_repo.load_subject_marks(catalogue, student, "PA1", subjects)
    assert reloaded[0].marks_obtained == 35
    assert reloaded[1].marks_obtained == 40
    assert all(m.mark_id for m in reloaded)
    assert catalogue.select("marks_history") == []

    reloaded[0].marks_obtained = 30
    marks_repo.save_marks(catalogue, student, "PA1", reloaded, "teacher-1")
    history = catalogue.select("marks_history")
    assert len(history) == 1
    assert history[0]["old_marks"] == 35
    assert history[0]["new_marks"] == 30
    assert history[0]["updated_by"] == "teacher-1"


def test_save_marks_without_class_raises(client):
    student = make_student(client, "S1", class_name="7", section="A")
    with pytest.raises(MarksError):
        marks_repo.save_marks(client, student, "PA1", [SubjectMark("sub-1", "Maths", 10, 30)], None)


def test_overall_percentage():
    marks = [SubjectMark("a", "A", 20, 30), SubjectMark("b", "B", 25, 30)]
    assert marks_repo.overall_percentage(marks) == 75
    assert marks_repo.overall_percentage([]) == 0


def _mark(client, student_id, subject, exam, got, total, updated_at):
    client.insert("marks", {
        "student_id": student_id, "subject": subject, "exam_type": exam,
        "marks_obtained": got, "total_marks": total, "updated_at": updated_at,
    })


def test_exam_and_subject_percentages(client):
    _mark(client, "s1", "Maths", "PA1", 15, 30, "2024-01-01")
    _mark(client, "s1", "Hindi", "PA1", 30, 30, "2024-01-01")
    _mark(client, "s2", "Maths", "PA1", 0, 0, "2024-01-01")
    _mark(client, "s2", "Maths", "PA2", 27, 30, "2024-02-01")

    assert marks_repo.exam_percentages(client, ["s1", "s2"], "PA1") == {"s1": 75.0}
    assert marks_repo.subject_percentages(client, ["s1", "s2"], "Maths") == {"s1": 50.0, "s2": 90.0}
    assert marks_repo.exam_percentages(client, [], "PA1") == {}


def test_student_marks_summary(client):
    _mark(client, "s1", "Maths", "PA1", 20, 30, "2024-01-01T10:00:00")
    _mark(client, "s1", "Hindi", "PA1", 10, 30, "2024-01-01T10:00:00")
    _mark(client, "s1", "Maths", "PA2", 29, 30, "2024-03-01T10:00:00")

    summary = marks_repo.student_marks_summary(client, "s1")
    assert summary.latest_exam == "PA2"
    assert summary.latest_percentage == 96.67
    assert summary.overall_percentage == 65.56
    assert summary.exams_count == 2
    assert summary.exams == ["PA1", "PA2"]

    empty = marks_repo.student_marks_summary(client, "nobody")
    assert empty.latest_exam is None and empty.exams_count == 0


def test_refresh_student_percentages(client):
    student = make_student(client, "S1")
    _mark(client, student["id"], "Maths", "PA1", 15, 30, "2024-01-01")
    marks_repo.refresh_student_percentages(client, student["id"])
    stored = client.select_one("students", where(id=student["id"]))
    assert stored["latest_percentage"] == 50
    assert stored["overall_percentage"] == 50


def test_marks_frame_orders_by_exam_calendar(client):
    _mark(client, "s1", "Maths", "Annual", 80, 100, "2024-03-01")
    _mark(client, "s1", "Maths", "PA1", 15, 30, "2024-01-01")
    df = marks_repo.marks_frame(client, "s1")
    assert list(df["Exam"]) == ["PA1", "Annual"]
    assert list(df["Percentage"]) == [50.0, 80.0]
    assert marks_repo.marks_frame(client, "nobody").empty


def test_exam_breakdown(client):
    _mark(client, "s1", "Maths", "PA2", 15, 30, "2024-02-01")
    _mark(client, "s1", "Maths", "PA1", 30, 30, "2024-01-01")
    assert marks_repo.exam_breakdown(client, "s1") == {"PA1": 100.0, "PA2": 50.0}
