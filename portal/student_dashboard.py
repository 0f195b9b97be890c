# portal/student_dashboard.py
import logging

import pandas as pd
import plotly.express as px
import streamlit as st
from openai import OpenAIError

from portal import attendance_repo, comments_repo, homework_repo, marks_repo
from portal.openai_client import ask_tutor, make_openai_client, openai_available, study_plan
from portal.performance import band, grade_color, performance_grade, performance_remarks, trend
from portal.public_pages import render_notice_board
from portal.tables import DataError
from portal.ui_theme import (
    badge, comment_block, empty_state, end_card, grouped_sidebar, metric_row, notify, page_header, render_card,
)

logger = logging.getLogger(__name__)

_GROUPS = {
    "My School": [("Overview", "🏠"), ("Marks", "📊"), ("Comments", "💬")],
    "Learning": [("Homework", "📚"), ("Notices", "📢"), ("AI Tutor", "🤖")],
}

TREND_ICONS = {"up": "⬆️", "down": "⬇️", "flat": "➖"}


def _previous_percentage(breakdown: dict, latest_exam):
    exams = list(breakdown)
    if latest_exam not in exams:
        return None
    idx = exams.index(latest_exam)
    return breakdown[exams[idx - 1]] if idx > 0 else None


def render_profile(student):
    render_card("👤 Profile")
    c1, c2 = st.columns([1, 3])
    with c1:
        if student.get("profile_photo"):
            st.image(student["profile_photo"], width=120)
        else:
            st.markdown("### 🎓")
    with c2:
        st.markdown(f"### {student.get('name', '')}")
        st.write(f"Admission ID: **{student.get('admission_id', '')}**")
        st.write(f"Class: **{marks_repo.class_section_of(student)}**")
        details = [
            ("Father", student.get("father_name")), ("Mother", student.get("mother_name")),
            ("Email", student.get("email")), ("Phone", student.get("phone")),
            ("Blood group", student.get("blood_group")), ("DOB", student.get("dob")),
        ]
        st.caption(" · ".join(f"{k}: {v}" for k, v in details if v))
    end_card()


def render_overview(client, student):
    render_profile(student)
    summary = marks_repo.student_marks_summary(client, student["id"])
    breakdown = marks_repo.exam_breakdown(client, student["id"])
    attendance_pct = attendance_repo.attendance_percentage(client, student["id"])

    metric_row([
        ("Attendance (30 days)", f"{attendance_pct}%"),
        ("Exams taken", summary.exams_count),
        ("Overall", f"{summary.overall_percentage}%"),
        (f"Latest ({summary.latest_exam or '-'})", f"{summary.latest_percentage}%"),
    ])

    render_card("📈 Performance Summary")
    if not summary.exams_count:
        empty_state("No marks recorded yet.")
        end_card()
        return
    previous = _previous_percentage(breakdown, summary.latest_exam)
    grade = performance_grade(summary.overall_percentage)
    direction = trend(summary.latest_percentage, previous)
    st.markdown(
        f"<span style='color:{grade_color(summary.overall_percentage)};font-size:1.4rem;font-weight:700'>{grade}</span> "
        f"{badge(f'Latest {summary.latest_percentage}%', band(summary.latest_percentage))} {TREND_ICONS[direction]}",
        unsafe_allow_html=True,
    )
    for remark in performance_remarks(summary.overall_percentage, summary.latest_percentage, previous):
        st.write(f"• {remark}")
    if len(breakdown) > 1:
        df = pd.DataFrame({"Exam": list(breakdown), "Percentage": list(breakdown.values())})
        st.plotly_chart(px.line(df, x="Exam", y="Percentage", markers=True, title="Exam trend"),
                        use_container_width=True)
    end_card()


def render_marks(client, student):
    render_card("📊 My Marks")
    df = marks_repo.marks_frame(client, student["id"])
    if df.empty:
        empty_state("No marks recorded yet.")
        end_card()
        return
    exams = [e for e in marks_repo.EXAM_TYPES if e in set(df["Exam"])]
    exams = exams or sorted(set(df["Exam"]))
    exam = st.selectbox("Exam", exams, index=len(exams) - 1)
    view = df[df["Exam"] == exam]
    st.dataframe(view.drop(columns=["Exam"]), hide_index=True, use_container_width=True)
    fig = px.bar(view, x="Subject", y="Percentage", range_y=[0, 100], title=f"{exam} by subject")
    st.plotly_chart(fig, use_container_width=True)
    end_card()


def render_student_comments(client, student):
    render_card("💬 Teacher Comments", "From the last 10 days")
    try:
        comments = comments_repo.load_comments(client, student["id"])
    except DataError as e:
        logger.error("Error loading comments: %s", e.message)
        comments = []
    if not comments:
        empty_state("No comments in the last 10 days.")
    for c in comments:
        comment_block(c)
    end_card()


def render_student_homework(client, student):
    render_card("📚 Homework")
    items = homework_repo.homework_for(client, marks_repo.class_section_of(student))
    if not items:
        empty_state("No homework posted for your class.")
    for hw in items:
        st.markdown(f"**{hw['title']}** · {hw.get('subject') or ''}")
        st.caption(f"Submit by {hw.get('submission_date') or '-'}")
        if hw.get("description"):
            st.write(hw["description"])
        st.divider()
    end_card()


def render_ai_tutor(client, student):
    render_card("🤖 AI Tutor", "Ask a question about any subject")
    if not openai_available():
        empty_state("The AI tutor is not configured for this school.")
        end_card()
        return
    ai = make_openai_client()
    if "ai_tutor_history" not in st.session_state:
        st.session_state.ai_tutor_history = []
    for msg in st.session_state.ai_tutor_history:
        with st.chat_message(msg["role"]):
            st.write(msg["content"])

    question = st.chat_input("Type your question")
    if question:
        try:
            answer = ask_tutor(ai, question, st.session_state.ai_tutor_history[-6:])
        except OpenAIError:
            notify("The AI tutor is unavailable right now. Please try again later.", "error")
        else:
            st.session_state.ai_tutor_history += [
                {"role": "user", "content": question},
                {"role": "assistant", "content": answer},
            ]
            st.rerun()

    if st.button("🧭 Suggest a study plan from my marks"):
        df = marks_repo.marks_frame(client, student["id"])
        by_subject = df.groupby("Subject")["Percentage"].mean().to_dict() if not df.empty else {}
        summary = marks_repo.student_marks_summary(client, student["id"])
        try:
            st.markdown(study_plan(ai, by_subject, summary.latest_exam))
        except OpenAIError:
            notify("Could not generate a study plan right now.", "error")
    end_card()


def render_student_dashboard(client, user):
    page_header("🎓 Student Dashboard", f"{user.get('name', '')} · {user.get('admission_id', '')}")
    choice = grouped_sidebar(_GROUPS, default="Overview", state_key="selected_menu_student")
    try:
        if choice == "Overview":
            render_overview(client, user)
        elif choice == "Marks":
            render_marks(client, user)
        elif choice == "Comments":
            render_student_comments(client, user)
        elif choice == "Homework":
            render_student_homework(client, user)
        elif choice == "Notices":
            render_notice_board(client)
        elif choice == "AI Tutor":
            render_ai_tutor(client, user)
    except DataError as e:
        notify(f"Could not load {choice.lower()}: {e.message}", "error")
