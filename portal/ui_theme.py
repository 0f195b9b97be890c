# portal/ui_theme.py
import html

import streamlit as st

# =============================
# School theme (blue + yellow)
# =============================
_UI_CSS = """
<style>
:root{
  --bg: #f5f7fb;
  --card: #ffffff;
  --text: #1f2937;
  --muted: #6b7280;
  --brand: #2563eb;
  --brand-2: #fcd116;
  --ok: #16a34a;
  --warn: #ca8a04;
  --danger: #dc2626;
  --shadow: 0 6px 20px rgba(37,99,235,.10);
  --radius: 14px;
}
[data-testid="stAppViewContainer"]{ background: var(--bg); }
.school-header{
  display:flex; align-items:center; justify-content:space-between;
  padding: 14px 18px; border-radius: var(--radius); margin-bottom: 14px;
  background: linear-gradient(90deg, var(--brand), #1e40af); color: #fff;
  border-bottom: 4px solid var(--brand-2);
}
.school-header .title{ font-size: 1.3rem; font-weight: 700; }
.school-header .who{ font-size: .9rem; opacity: .9; }

.card{
  border-radius: var(--radius); background: var(--card);
  border: 1px solid rgba(37,99,235,.10); box-shadow: var(--shadow);
  padding: 18px 16px; margin-bottom: 12px;
}
.card-title{ font-size: 1.1rem; font-weight: 700; color: var(--brand); margin-bottom: .2rem; }
.card-subtle{ color: var(--muted); font-size: .92rem; margin-bottom: .6rem; }

.metric{ background: var(--card); border: 1px solid rgba(37,99,235,.12); padding: 14px;
         border-radius: 12px; text-align: center; box-shadow: var(--shadow); }
.metric .value{ font-size: 1.6rem; font-weight: 700; color: var(--text); }
.metric .label{ color: var(--muted); font-size: .85rem; margin-top: 4px; }

.badge{ display:inline-block; padding: .15rem .55rem; border-radius: 999px; font-size: .78rem; font-weight: 600; }
.badge-green{ background: rgba(22,163,74,.12); color: var(--ok); }
.badge-yellow{ background: rgba(202,138,4,.14); color: var(--warn); }
.badge-red{ background: rgba(220,38,38,.12); color: var(--danger); }
.badge-blue{ background: rgba(37,99,235,.12); color: var(--brand); }

.comment{ border-left: 4px solid var(--brand); padding: .5rem .8rem; margin: .4rem 0;
          background: var(--card); border-radius: 8px; }
.comment.admin{ border-left-color: var(--brand-2); }
.comment .meta{ color: var(--muted); font-size: .8rem; }

.stars{ color: var(--brand-2); letter-spacing: 2px; }

.stButton>button, .stFormSubmitButton>button{
  border-radius: 10px !important; font-weight: 600 !important;
  background: var(--brand) !important; color: #fff !important; border: none !important;
}
.stButton>button:hover, .stFormSubmitButton>button:hover{ filter: brightness(1.08); }
</style>
"""

BADGE_CLASSES = {"green": "badge-green", "yellow": "badge-yellow", "red": "badge-red"}


def apply_theme():
    """Apply the global CSS theme."""
    st.markdown(_UI_CSS, unsafe_allow_html=True)


# =============================
# UI Helpers
# =============================
def page_header(title: str, who: str = ""):
    st.markdown(
        f"<div class='school-header'><div class='title'>{html.escape(title)}</div>"
        f"<div class='who'>{html.escape(who)}</div></div>",
        unsafe_allow_html=True,
    )


def render_card(title: str, subtitle: str = None):
    st.markdown(f"<div class='card'><div class='card-title'>{html.escape(title)}</div>", unsafe_allow_html=True)
    if subtitle:
        st.markdown(f"<div class='card-subtle'>{html.escape(subtitle)}</div>", unsafe_allow_html=True)


def end_card():
    st.markdown("</div>", unsafe_allow_html=True)


def metric_row(metrics: list):
    """metrics = [(label, value)]"""
    cols = st.columns(len(metrics))
    for col, (label, value) in zip(cols, metrics):
        col.markdown(
            f"<div class='metric'><div class='value'>{value}</div><div class='label'>{html.escape(str(label))}</div></div>",
            unsafe_allow_html=True,
        )


def badge(text: str, color: str = "blue") -> str:
    return f"<span class='badge {BADGE_CLASSES.get(color, 'badge-blue')}'>{html.escape(str(text))}</span>"


def stars(rating: int) -> str:
    rating = max(0, min(5, int(rating or 0)))
    return f"<span class='stars'>{'★' * rating}{'☆' * (5 - rating)}</span>"


def comment_block(comment: dict):
    role = comment.get("commenter_role") or "teacher"
    who = comment.get("commenter_name") or ("Admin" if role == "admin" else "Teacher")
    st.markdown(
        f"<div class='comment {role}'><div>{html.escape(comment.get('comment_text') or '')}</div>"
        f"<div class='meta'>{html.escape(who)} · {role.title()} · {html.escape(str(comment.get('created_at') or ''))}</div></div>",
        unsafe_allow_html=True,
    )


def empty_state(msg="No records found."):
    st.info(msg)


def notify(message: str, kind: str = "success"):
    """Toast for success/info, error box for failures."""
    if kind == "error":
        st.error(message)
    elif kind == "warning":
        st.warning(message)
    else:
        st.toast(message, icon="✅" if kind == "success" else "ℹ️")


def grouped_sidebar(menu_dict, default=None, state_key="selected_menu"):
    """menu_dict = {section: [(label, icon), ...]}; returns the selected label."""
    if state_key not in st.session_state:
        st.session_state[state_key] = default or list(menu_dict.values())[0][0][0]

    for section, items in menu_dict.items():
        st.sidebar.markdown(f"**{section}**")
        for label, icon in items:
            if st.sidebar.button(f"{icon} {label}", key=f"nav_{state_key}_{label}", use_container_width=True):
                st.session_state[state_key] = label
    return st.session_state[state_key]
