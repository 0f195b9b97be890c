# portal/teacher_dashboard.py
import logging
from datetime import date

import pandas as pd
import plotly.express as px
import streamlit as st

from portal import attendance_repo, comments_repo, homework_repo, marks_repo, users_repo
from portal.comments_repo import PermissionDenied
from portal.marks_repo import EXAM_TYPES, MarksError
from portal.student_filters import SORT_OPTIONS, StudentFilters, apply_filters_and_sort, parse_sort, rank
from portal.tables import DataError
from portal.ui_theme import (
    comment_block, empty_state, end_card, grouped_sidebar, metric_row, notify, page_header, render_card,
)
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

_GROUPS = {
    "Classroom": [("Attendance", "📅"), ("Marks", "📝"), ("Homework", "📚")],
    "Students": [("Ranking", "🏆"), ("Comments", "💬")],
}


# --------------------------
# Attendance
# --------------------------
def render_attendance(client, user, assignments):
    render_card("📅 Daily Attendance", "Unmarked students are saved as present")
    if not assignments:
        empty_state("No class-sections are assigned to you yet.")
        end_card()
        return

    c1, c2 = st.columns(2)
    class_section = c1.selectbox("Class-Section", sorted(assignments), key="att_cs")
    day = c2.date_input("Date", value=date.today(), max_value=date.today(), key="att_date")

    students = attendance_repo.load_class_students(client, class_section)
    if not students:
        empty_state(f"No students in {class_section}.")
        end_card()
        return

    state_key = f"att_{class_section}_{day.isoformat()}"
    if state_key not in st.session_state:
        st.session_state[state_key] = attendance_repo.load_day(client, class_section, day)
    records = st.session_state[state_key]

    for s in students:
        current = attendance_repo.status_of(records, s["id"])
        col_name, col_status = st.columns([3, 2])
        col_name.write(f"**{s['name']}** · {s['admission_id']}")
        choice = col_status.radio(
            "Status", attendance_repo.STATUSES, horizontal=True, label_visibility="collapsed",
            index=attendance_repo.STATUSES.index(current),
            format_func=lambda v: attendance_repo.STATUS_LABELS[v], key=f"{state_key}_{s['id']}",
        )
        if choice != current or s["id"] not in records:
            records = attendance_repo.mark(records, s["id"], choice, day)
    st.session_state[state_key] = records

    stats = attendance_repo.day_stats(students, records)
    metric_row([
        ("Students", stats["total"]), ("Present", stats["present"]), ("Absent", stats["absent"]),
        ("Half Day", stats["half_day"]), ("Present %", f"{stats['present_pct']}%"),
    ])

    if st.button("💾 Save Attendance", key="att_save"):
        try:
            saved = attendance_repo.save_day(client, records, day, user["id"], class_section)
            notify(f"Attendance saved successfully ({saved} students)")
            del st.session_state[state_key]
        except DataError as e:
            notify(f"Failed to save attendance: {e.message}", "error")

    with st.expander("🗓️ Last 10 days"):
        try:
            rows = attendance_repo.history(client, class_section)
        except DataError as e:
            notify("Failed to load attendance history", "error")
            logger.error("history %s: %s", class_section, e.message)
            rows = []
        grid = attendance_repo.history_frame(rows, students)
        if grid.empty:
            empty_state("No attendance recorded in the last 10 days.")
        else:
            st.dataframe(grid, use_container_width=True)
    end_card()


# --------------------------
# Marks (shared with admin)
# --------------------------
def render_marks_entry(client, user, assignments=None, key="marks"):
    render_card("📝 Marks Entry", "Search a student by admission ID")
    c1, c2 = st.columns([2, 1])
    admission_id = c1.text_input("Admission ID", key=f"{key}_adm")
    exam_type = c2.selectbox("Exam", EXAM_TYPES, key=f"{key}_exam")
    if not admission_id.strip():
        end_card()
        return

    try:
        student = marks_repo.find_student(client, admission_id)
    except DataError as e:
        notify(e.message or "Error searching for student", "error")
        end_card()
        return
    if student is None:
        notify("Student not found", "error")
        end_card()
        return
    if not marks_repo.can_manage(student, assignments):
        notify("You do not have permission to manage marks for this student", "error")
        end_card()
        return

    st.markdown(f"**{student['name']}** · Class {marks_repo.class_section_of(student)}")
    try:
        subjects = marks_repo.subjects_for_student(client, student, assignments)
        subject_marks = marks_repo.load_subject_marks(client, student, exam_type, subjects)
    except MarksError as e:
        notify(str(e), "error")
        end_card()
        return
    except DataError as e:
        notify(f"Error loading subjects: {e.message}", "error")
        end_card()
        return
    if not subject_marks:
        empty_state("No subjects available for this student.")
        end_card()
        return

    df = pd.DataFrame([{
        "Subject": m.subject_name, "Obtained": float(m.marks_obtained),
        "Max": float(m.total_marks), "Remarks": m.remarks,
    } for m in subject_marks])
    edited = st.data_editor(
        df, hide_index=True, use_container_width=True, key=f"{key}_editor_{student['id']}_{exam_type}",
        disabled=["Subject", "Max"],
        column_config={"Obtained": st.column_config.NumberColumn("Obtained", min_value=0, step=0.5)},
    )
    for m, (_, row) in zip(subject_marks, edited.iterrows()):
        m.marks_obtained = marks_repo.clamp_marks(row["Obtained"], m.total_marks)
        m.remarks = row["Remarks"] or ""
    st.metric("Overall", f"{marks_repo.overall_percentage(subject_marks)}%")

    if st.button("💾 Save Marks", key=f"{key}_save"):
        try:
            marks_repo.save_marks(client, student, exam_type, subject_marks, user.get("id"))
            marks_repo.refresh_student_percentages(client, student["id"])
            notify("Marks saved successfully")
        except (MarksError, DataError) as e:
            notify(getattr(e, "message", None) or str(e) or "Error saving marks", "error")
    end_card()


# --------------------------
# Ranking
# --------------------------
def _filter_controls(students, key, subjects):
    sort_key = st.selectbox("Sort by", list(SORT_OPTIONS), index=2, format_func=SORT_OPTIONS.get, key=f"{key}_sort")
    c1, c2, c3 = st.columns(3)
    class_section = c1.selectbox("Class-Section", [""] + users_repo.available_class_sections(students),
                                 format_func=lambda v: v or "All", key=f"{key}_cs")
    subject = c2.selectbox("Subject", [""] + subjects, format_func=lambda v: v or "All", key=f"{key}_subj")
    exam = c3.selectbox("Exam", [""] + EXAM_TYPES, format_func=lambda v: v or "All", key=f"{key}_exam")
    c4, c5, c6, c7 = st.columns(4)
    pmin = c4.number_input("Min %", 0.0, 100.0, 0.0, key=f"{key}_min")
    pmax = c5.number_input("Max %", 0.0, 100.0, 100.0, key=f"{key}_max")
    starts = c6.text_input("Name starts with", key=f"{key}_starts")
    ends = c7.text_input("Name ends with", key=f"{key}_ends")
    search = st.text_input("Search", key=f"{key}_search", placeholder="Name, admission ID or class")
    filters = StudentFilters(
        percentage_min=pmin if pmin > 0 else None,
        percentage_max=pmax if pmax < 100 else None,
        name_starts_with=starts, name_ends_with=ends,
        class_section=class_section, subject=subject, exam=exam, search_query=search,
    )
    return filters, parse_sort(sort_key)


def render_ranking(client, students, key="rank"):
    render_card("🏆 Student Ranking")
    if not students:
        empty_state("No students to rank.")
        end_card()
        return
    subjects = sorted({s["name"] for s in client.select("subjects")})
    filters, (sort_by, order) = _filter_controls(students, key, subjects)

    ids = [s["id"] for s in students]
    enriched = [dict(s) for s in students]
    try:
        if filters.exam:
            pct = marks_repo.exam_percentages(client, ids, filters.exam)
            for s in enriched:
                s["exam_percentage"] = pct.get(s["id"])
        if filters.subject:
            pct = marks_repo.subject_percentages(client, ids, filters.subject)
            for s in enriched:
                s["subject_percentage"] = pct.get(s["id"])
    except DataError as e:
        notify(f"Failed to load exam percentages: {e.message}", "error")

    df = apply_filters_and_sort(enriched, filters, sort_by, order)
    if df.empty:
        empty_state("No students match the filters.")
    else:
        shown = rank(df)[["rank", "admission_id", "name", "class_section", "effective_percentage"]]
        shown = shown.rename(columns={"effective_percentage": "percentage"})
        st.dataframe(shown, hide_index=True, use_container_width=True)
        fig = px.bar(shown.head(15), x="name", y="percentage", color="class_section", title="Top students")
        st.plotly_chart(fig, use_container_width=True)
    end_card()


# --------------------------
# Comments (shared with admin)
# --------------------------
def render_comments(client, user, class_sections=None, key="cm"):
    render_card("💬 Student Comments", "Comments from the last 10 days")
    try:
        students = comments_repo.list_commentable_students(client, user["role"], class_sections)
    except DataError as e:
        notify("Failed to load students", "error")
        logger.error("comment students: %s", e.message)
        end_card()
        return
    term = st.text_input("Search students", key=f"{key}_search")
    students = comments_repo.search_students(students, term)
    if not students:
        empty_state("No students found.")
        end_card()
        return
    student = st.selectbox(
        "Student", students, key=f"{key}_student",
        format_func=lambda s: f"{s['name']} · {s['admission_id']} · {s.get('class_section') or ''}",
    )

    with st.form(f"{key}_form", clear_on_submit=True):
        text = st.text_area("Add a comment")
        if st.form_submit_button("Post Comment"):
            try:
                comments_repo.add_comment(client, user, student["id"], text)
                notify("Comment added successfully")
            except (ValidationError, PermissionDenied) as e:
                notify(str(e), "error")
            except DataError as e:
                notify(e.message or "Failed to add comment", "error")

    try:
        comments = comments_repo.load_comments(client, student["id"])
    except DataError as e:
        notify(f"Failed to load comments: {e.message}", "error")
        comments = []
    for c in comments:
        comment_block(c)
        if c["commented_by"] == user.get("id"):
            if st.button("🗑️ Delete", key=f"{key}_del_{c['id']}"):
                try:
                    comments_repo.delete_comment(client, user, c)
                    notify("Comment deleted successfully")
                    st.rerun()
                except PermissionDenied as e:
                    notify(str(e), "error")
                except DataError as e:
                    notify(e.message or "Failed to delete comment", "error")
    end_card()


# --------------------------
# Homework
# --------------------------
def render_homework(client, user, assignments):
    render_card("📚 Homework")
    if not assignments:
        empty_state("No class-sections are assigned to you yet.")
        end_card()
        return
    with st.form("hw_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        class_section = c1.selectbox("Class-Section", sorted(assignments))
        subject = c2.selectbox("Subject", sorted({s for subs in assignments.values() for s in subs}))
        title = st.text_input("Title")
        description = st.text_area("Description")
        due = st.date_input("Submission date", value=date.today())
        if st.form_submit_button("Post Homework"):
            try:
                homework_repo.add_homework(client, user, {
                    "title": title, "description": description, "subject": subject,
                    "class_section": class_section, "submission_date": due,
                })
                notify("Homework posted")
            except ValidationError as e:
                notify(str(e), "error")
            except DataError as e:
                notify(f"Failed to post homework: {e.message}", "error")

    for cs in sorted(assignments):
        try:
            items = homework_repo.homework_for(client, cs)
        except DataError as e:
            notify(f"Failed to load homework for {cs}: {e.message}", "error")
            continue
        if items:
            st.markdown(f"**{cs}**")
            st.dataframe(
                pd.DataFrame(items)[["title", "subject", "submission_date", "created_at"]],
                hide_index=True, use_container_width=True,
            )
    end_card()


def render_teacher_dashboard(client, user):
    page_header("👩‍🏫 Teacher Dashboard", f"{user.get('name', '')} · {user.get('teacher_id', '')}")
    try:
        assignments = users_repo.teacher_assignments(client, user.get("teacher_id"))
        class_teacher = users_repo.class_teacher_of(client, user["id"])
    except DataError as e:
        notify(f"Could not load your assignments: {e.message}", "error")
        assignments, class_teacher = {}, None
    if class_teacher:
        st.caption(f"Class teacher of {class_teacher}")

    choice = grouped_sidebar(_GROUPS, default="Attendance", state_key="selected_menu_teacher")
    try:
        if choice == "Attendance":
            render_attendance(client, user, assignments)
        elif choice == "Marks":
            render_marks_entry(client, user, assignments)
        elif choice == "Homework":
            render_homework(client, user, assignments)
        elif choice == "Ranking":
            students = [s for s in users_repo.list_users(client, "students") if s.get("class_section") in assignments]
            render_ranking(client, students)
        elif choice == "Comments":
            render_comments(client, user, sorted(assignments))
    except DataError as e:
        notify(f"Could not load {choice.lower()}: {e.message}", "error")
