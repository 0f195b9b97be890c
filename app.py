import logging

import streamlit as st

import db
from auth import ROLES, current_user, login_user, logout, sign_in
from portal.settings import get_flag, get_setting, setup_logging
from portal.tables import DataError, SQLiteTables, get_tables
from portal.ui_theme import apply_theme

setup_logging()
logger = logging.getLogger(__name__)

SCHOOL_NAME = get_setting("SCHOOL_NAME")
LOGIN_LABELS = {"student": "Admission ID", "teacher": "Teacher ID", "admin": "Email"}

st.set_page_config(page_title=SCHOOL_NAME, page_icon="🏫", layout="wide")
apply_theme()


# =========================
# 1️⃣ Data backend
# =========================
@st.cache_resource(show_spinner=False)
def _prepare_backend():
    client = get_tables()
    if isinstance(client, SQLiteTables):
        db.bootstrap(seed=get_flag("SEED_DEMO_DATA"))
        logger.info("SQLite database ready at %s", db.DB_PATH)
    return client


# =========================
# 2️⃣ Login
# =========================
def render_login(client):
    st.markdown(f"<h2 style='text-align:center'>🏫 {SCHOOL_NAME}</h2>", unsafe_allow_html=True)
    _, middle, _ = st.columns([1, 2, 1])
    with middle:
        role = st.radio("Login as", ROLES, horizontal=True, format_func=str.title, key="login_role")
        with st.form("login_form", clear_on_submit=False):
            login = st.text_input(LOGIN_LABELS[role])
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Log In")

    if submitted:
        user, error = sign_in(client, role, login, password)
        if user:
            login_user(user)
            st.rerun()
        else:
            st.error(f"❌ {error}")


# =========================
# 3️⃣ Role-based Dashboards
# =========================
def main():
    try:
        client = _prepare_backend()
    except DataError as e:
        st.error(f"Could not connect to the school database: {e.message}")
        st.stop()

    user = current_user()
    if not user:
        from portal.public_pages import render_public_pages

        with st.sidebar:
            render_login(client)
        render_public_pages(client)
        return

    st.sidebar.markdown(f"**{user.get('name') or user.get('email', '')}** · {user['role'].title()}")
    if st.sidebar.button("🚪 Logout", key="logout"):
        logout()
        st.rerun()

    role = user["role"]
    if role == "admin":
        from portal.admin_dashboard import render_admin_dashboard
        render_admin_dashboard(client, user)
    elif role == "teacher":
        from portal.teacher_dashboard import render_teacher_dashboard
        render_teacher_dashboard(client, user)
    elif role == "student":
        from portal.student_dashboard import render_student_dashboard
        render_student_dashboard(client, user)
    else:
        st.error("Unknown role")


main()
