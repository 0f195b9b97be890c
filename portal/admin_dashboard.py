# portal/admin_dashboard.py
import logging

import pandas as pd
import plotly.express as px
import streamlit as st

from portal import gallery_repo, notices_repo, ratings_repo, users_repo
from portal.marks_repo import parse_class_number
from portal.tables import DataError
from portal.teacher_dashboard import render_comments, render_marks_entry, render_ranking
from portal.ui_theme import badge, empty_state, end_card, metric_row, notify, page_header, render_card, stars
from portal.users_repo import ValidationError

logger = logging.getLogger(__name__)

CLASS_OPTIONS = [str(n) for n in range(1, 11)]
SECTION_OPTIONS = ["A", "B", "C", "D"]
STUDENT_COLUMNS = ["admission_id", "name", "class_section", "email", "phone", "status", "latest_percentage"]
TEACHER_COLUMNS = ["teacher_id", "name", "email", "phone", "subjects", "status"]


# --------------------------
# Users
# --------------------------
def _add_student_form(client):
    with st.form("add_student", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        admission_id = c1.text_input("Admission ID")
        name = c2.text_input("Name")
        password = c3.text_input("Password", type="password")
        class_name = c1.selectbox("Class", CLASS_OPTIONS)
        section = c2.selectbox("Section", SECTION_OPTIONS)
        email = c3.text_input("Email")
        phone = c1.text_input("Phone")
        father = c2.text_input("Father's name")
        mother = c3.text_input("Mother's name")
        if st.form_submit_button("➕ Add Student"):
            try:
                users_repo.add_student(client, {
                    "admission_id": admission_id, "name": name, "password": password,
                    "class_name": class_name, "section": section, "email": email, "phone": phone,
                    "father_name": father, "mother_name": mother,
                })
                notify("Student added successfully")
            except ValidationError as e:
                notify(str(e), "error")
            except DataError as e:
                notify(f"Failed to add student: {e.message}", "error")


def _add_teacher_form(client):
    all_sections = [f"{c}-{s}" for c in CLASS_OPTIONS for s in SECTION_OPTIONS[:2]]
    st.markdown("**Add Teacher**")
    c1, c2, c3 = st.columns(3)
    teacher_id = c1.text_input("Teacher ID", key="nt_id")
    name = c2.text_input("Name", key="nt_name")
    password = c3.text_input("Password", type="password", key="nt_pw")
    email = c1.text_input("Email", key="nt_email")
    phone = c2.text_input("Phone", key="nt_phone")

    selected = st.multiselect("Class-sections", all_sections, key="nt_sections")
    assignments = {}
    for cs in selected:
        assignments[cs] = st.multiselect(
            f"Subjects for {cs}", users_repo.subjects_for_class_section(cs), key=f"nt_subj_{cs}"
        )
    class_teacher = st.selectbox("Class teacher of", [""] + selected, format_func=lambda v: v or "None",
                                 key="nt_ct")

    if st.button("➕ Add Teacher", key="nt_submit"):
        try:
            _, warnings = users_repo.add_teacher(client, {
                "teacher_id": teacher_id, "name": name, "password": password, "email": email, "phone": phone,
            }, assignments, class_teacher or None)
        except ValidationError as e:
            notify(str(e), "error")
            return
        except DataError as e:
            notify(f"Failed to add teacher: {e.message}", "error")
            return
        for w in warnings:
            notify(w, "warning")
        notify("Teacher added successfully")


def _edit_user(client, user_type, row):
    with st.expander(f"✏️ Edit {row['name']}"):
        with st.form(f"edit_{user_type}_{row['id']}"):
            name = st.text_input("Name", value=row.get("name") or "")
            email = st.text_input("Email", value=row.get("email") or "")
            phone = st.text_input("Phone", value=row.get("phone") or "")
            status = st.selectbox("Status", ["active", "inactive"],
                                  index=0 if (row.get("status") or "active") == "active" else 1)
            password = st.text_input("New password (leave blank to keep)", type="password")
            changes = {"name": name, "email": email, "phone": phone, "status": status, "password": password}
            if user_type == "students":
                cls = str(parse_class_number(row.get("class_name")) or 1)
                changes["class_name"] = st.selectbox("Class", CLASS_OPTIONS,
                                                     index=CLASS_OPTIONS.index(cls) if cls in CLASS_OPTIONS else 0)
                sec = row.get("section") or "A"
                changes["section"] = st.selectbox("Section", SECTION_OPTIONS,
                                                  index=SECTION_OPTIONS.index(sec) if sec in SECTION_OPTIONS else 0)
            c1, c2 = st.columns(2)
            save = c1.form_submit_button("💾 Save")
            delete = c2.form_submit_button("🗑️ Delete")
        if save:
            try:
                users_repo.update_user(client, user_type, row["id"], changes)
                notify("User updated")
                st.rerun()
            except DataError as e:
                notify(f"Failed to update: {e.message}", "error")
        if delete:
            try:
                email = users_repo.delete_user(client, user_type, row["id"])
                notify(f"Deleted {row['name']}" + (f" ({email})" if email else ""))
                st.rerun()
            except DataError as e:
                notify(f"Failed to delete: {e.message}", "error")


def render_users(client):
    render_card("👥 Users")
    user_type = st.radio("Manage", ["students", "teachers"], horizontal=True,
                         format_func=str.title, key="users_type")
    try:
        users = users_repo.list_users(client, user_type)
    except DataError as e:
        notify(f"Failed to load {user_type}: {e.message}", "error")
        users = []

    query = st.text_input("Search", key="users_search",
                          placeholder="Name, admission ID, class" if user_type == "students" else "Name, teacher ID, email")
    shown = users_repo.search_users(users, query, user_type)
    if user_type == "students":
        sections = users_repo.available_class_sections(users)
        cs = st.selectbox("Class-section", [""] + sections, format_func=lambda v: v or "All", key="users_cs")
        if cs:
            shown = [u for u in shown if u.get("class_section") == cs]

    if shown:
        cols = STUDENT_COLUMNS if user_type == "students" else TEACHER_COLUMNS
        df = pd.DataFrame(shown)
        st.dataframe(df[[c for c in cols if c in df.columns]], hide_index=True, use_container_width=True)
        st.caption(f"{len(shown)} of {len(users)} {user_type}")
        for row in shown[:25]:
            _edit_user(client, user_type, row)
    else:
        empty_state(f"No {user_type} found.")

    st.divider()
    if user_type == "students":
        _add_student_form(client)
    else:
        _add_teacher_form(client)
    end_card()


# --------------------------
# Gallery
# --------------------------
def render_gallery_admin(client, user):
    render_card("🖼️ Gallery", "Images shown on the public home page")
    with st.form("add_image", clear_on_submit=True):
        url = st.text_input("Image URL")
        title = st.text_input("Title")
        description = st.text_area("Description")
        if st.form_submit_button("➕ Add Image"):
            try:
                gallery_repo.add_image(client, url, title, description, user.get("id"))
                notify("Image added")
            except ValidationError as e:
                notify(str(e), "error")
            except DataError as e:
                notify(f"Failed to add image: {e.message}", "error")

    try:
        images = gallery_repo.list_images(client)
    except DataError as e:
        notify(f"Failed to load gallery images: {e.message}", "error")
        images = []
    if not images:
        empty_state("No gallery images yet.")
    cols = st.columns(3)
    for i, img in enumerate(images):
        with cols[i % 3]:
            st.image(img["image_url"], caption=img.get("title"), use_container_width=True)
            active = bool(img.get("is_active"))
            c1, c2 = st.columns(2)
            if c1.button("Hide" if active else "Show", key=f"img_toggle_{img['id']}"):
                try:
                    gallery_repo.toggle_image(client, img["id"], active)
                    st.rerun()
                except DataError as e:
                    notify(f"Failed to update image: {e.message}", "error")
            if c2.button("Delete", key=f"img_del_{img['id']}"):
                try:
                    gallery_repo.delete_image(client, img["id"])
                    notify("Image deleted")
                    st.rerun()
                except DataError as e:
                    notify(f"Failed to delete image: {e.message}", "error")
    end_card()


# --------------------------
# Notices
# --------------------------
def render_notices_admin(client, user):
    render_card("📢 Notices")
    with st.form("add_notice", clear_on_submit=True):
        title = st.text_input("Title")
        content = st.text_area("Content")
        c1, c2 = st.columns(2)
        priority = c1.selectbox("Priority", notices_repo.PRIORITIES, index=1)
        day = c2.date_input("Date")
        if st.form_submit_button("➕ Add Notice"):
            try:
                notices_repo.add_notice(client, title, content, priority, user.get("id"),
                                        date=day.isoformat() if day else None)
                notify("Notice added successfully")
            except ValidationError as e:
                notify(str(e), "error")
            except DataError as e:
                notify(f"Failed to add notice: {e.message}", "error")

    try:
        notices = notices_repo.list_notices(client)
    except DataError as e:
        notify(f"Failed to load notices: {e.message}", "error")
        notices = []
    for n in notices:
        active = bool(n.get("is_active"))
        c1, c2, c3 = st.columns([6, 1, 1])
        c1.markdown(
            f"**{n['title']}** {badge('Active' if active else 'Hidden', 'green' if active else 'red')} "
            f"{badge(n.get('priority') or 'medium')}",
            unsafe_allow_html=True,
        )
        c1.caption(n.get("content") or "")
        if c2.button("Toggle", key=f"notice_toggle_{n['id']}"):
            try:
                notices_repo.toggle_notice(client, n["id"], active)
                notify("Notice status updated")
                st.rerun()
            except DataError as e:
                notify(f"Failed to update notice: {e.message}", "error")
        if c3.button("Delete", key=f"notice_del_{n['id']}"):
            try:
                notices_repo.delete_notice(client, n["id"])
                notify("Notice deleted")
                st.rerun()
            except DataError as e:
                notify(f"Failed to delete notice: {e.message}", "error")
    end_card()


# --------------------------
# Ratings moderation
# --------------------------
def _moderate(client, rating_id, status):
    try:
        ratings_repo.set_rating_status(client, rating_id, status)
    except (ValidationError, DataError) as e:
        notify(getattr(e, "message", None) or str(e), "error")
        return
    st.session_state.pop("testimonials", None)
    st.rerun()


def render_ratings_admin(client):
    render_card("⭐ Public Ratings", "Approve ratings before they appear on the home page")
    status = st.selectbox("Show", ["pending", "approved", "rejected", ""], format_func=lambda v: v.title() or "All")
    try:
        rows = ratings_repo.all_ratings(client, status or None)
        approved = ratings_repo.approved_testimonials(client)
    except DataError as e:
        notify(f"Failed to load ratings: {e.message}", "error")
        rows, approved = [], []
    count, average = ratings_repo.rating_stats(approved)
    metric_row([("Approved", count), ("Average", f"{average:.1f}"), ("Listed", len(rows))])

    if approved:
        dist = pd.DataFrame(approved)["rating"].value_counts().sort_index().reset_index()
        dist.columns = ["Stars", "Count"]
        st.plotly_chart(px.bar(dist, x="Stars", y="Count", title="Approved ratings"), use_container_width=True)

    if not rows:
        empty_state("No ratings here.")
    for r in rows:
        c1, c2, c3 = st.columns([6, 1, 1])
        c1.markdown(f"{stars(r['rating'])} **{r.get('name') or 'Anonymous'}** · {r.get('relationship') or ''}",
                    unsafe_allow_html=True)
        c1.caption(r.get("comment") or "")
        if r.get("status") != "approved" and c2.button("Approve", key=f"rate_ok_{r['id']}"):
            _moderate(client, r["id"], "approved")
        if r.get("status") != "rejected" and c3.button("Reject", key=f"rate_no_{r['id']}"):
            _moderate(client, r["id"], "rejected")
    end_card()


def render_admin_dashboard(client, user):
    page_header("👑 Admin Dashboard", user.get("email", ""))
    tabs = st.tabs(["👥 Users", "📝 Marks", "🏆 Ranking", "💬 Comments", "🖼️ Gallery", "📢 Notices", "⭐ Ratings"])
    sections = [
        ("users", lambda: render_users(client)),
        ("marks", lambda: render_marks_entry(client, user, key="admin_marks")),
        ("ranking", lambda: render_ranking(client, users_repo.list_users(client, "students"), key="admin_rank")),
        ("comments", lambda: render_comments(client, user, key="admin_cm")),
        ("gallery", lambda: render_gallery_admin(client, user)),
        ("notices", lambda: render_notices_admin(client, user)),
        ("ratings", lambda: render_ratings_admin(client)),
    ]
    for tab, (label, render) in zip(tabs, sections):
        with tab:
            try:
                render()
            except DataError as e:
                notify(f"Could not load {label}: {e.message}", "error")
