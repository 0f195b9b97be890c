# portal/public_pages.py
import streamlit as st

from portal import gallery_repo, notices_repo, ratings_repo
from portal.tables import DataError
from portal.ui_theme import badge, empty_state, end_card, notify, render_card, stars
from portal.users_repo import ValidationError

PRIORITY_COLORS = {"high": "red", "medium": "yellow", "low": "green"}
RELATIONSHIPS = ["Parent", "Student", "Alumni", "Visitor", "Other"]


def render_gallery(client):
    render_card("📸 Gallery", "Moments from our campus")
    images = gallery_repo.public_images(client)
    if not images:
        empty_state("No photos yet.")
    cols = st.columns(4)
    for i, img in enumerate(images):
        with cols[i % 4]:
            st.image(img["image_url"], caption=img.get("title") or "", use_container_width=True)
    end_card()


def render_notice_board(client, limit=None):
    render_card("📢 Notices")
    try:
        notices = notices_repo.list_notices(client, active_only=True)
    except DataError as e:
        notify(f"Failed to load notices: {e.message}", "error")
        notices = []
    if not notices:
        empty_state("No notices right now.")
    for n in notices[:limit] if limit else notices:
        priority = n.get("priority") or "medium"
        st.markdown(
            f"**{n['title']}** {badge(priority.title(), PRIORITY_COLORS.get(priority, 'blue'))}",
            unsafe_allow_html=True,
        )
        st.caption(str(n.get("date") or n.get("created_at") or "")[:10])
        st.write(n.get("content") or "")
        st.divider()
    end_card()


def _testimonial_state(client):
    if "testimonials" not in st.session_state:
        try:
            items = ratings_repo.approved_testimonials(client)
        except DataError as e:
            notify(f"Failed to load ratings: {e.message}", "error")
            items = []
        count, average = ratings_repo.rating_stats(items)
        st.session_state.testimonials = {"testimonials": items, "count": count, "average": average}
    return st.session_state.testimonials


def render_rating_form(client):
    with st.form("public_rating_form", clear_on_submit=True):
        st.markdown("#### ⭐ Rate our school")
        rating = st.radio("Rating", [0, 1, 2, 3, 4, 5], horizontal=True,
                          format_func=lambda r: "Select" if r == 0 else "★" * r)
        c1, c2 = st.columns(2)
        name = c1.text_input("Name")
        email = c2.text_input("Email")
        phone = c1.text_input("Phone")
        relationship = c2.selectbox("Relationship", RELATIONSHIPS)
        comment = st.text_area("Comment")
        submitted = st.form_submit_button("Submit Rating")

    if submitted:
        try:
            shown = ratings_repo.submit_rating(client, {
                "rating": rating, "name": name, "email": email, "phone": phone,
                "relationship": relationship, "comment": comment,
            })
        except ValidationError as e:
            notify(str(e), "error")
            return
        except DataError as e:
            notify(f"Failed to submit rating. Please try again. ({e.message})", "error")
            return
        st.session_state.testimonials = ratings_repo.add_optimistic(_testimonial_state(client), shown)
        notify("Thank you for your feedback! Your rating has been submitted.")


def render_testimonials(client):
    render_card("💬 What people say")
    state = _testimonial_state(client)
    show_all = st.session_state.get("show_all_ratings", False)

    if state["count"]:
        st.markdown(
            f"{stars(round(state['average']))} **{state['average']:.1f}/5** average from {state['count']} ratings",
            unsafe_allow_html=True,
        )
    shown = ratings_repo.visible(state["testimonials"], show_all=show_all)
    if not shown:
        empty_state("No testimonials yet. Be the first to rate us!")
    cols = st.columns(2)
    for i, t in enumerate(shown):
        with cols[i % 2]:
            st.markdown(f"{stars(t['rating'])}", unsafe_allow_html=True)
            st.write(f"“{t['content']}”")
            st.caption(f"{t['name']} · {t['role']}")

    total = len(state["testimonials"])
    if total > ratings_repo.DISPLAY_COUNT:
        label = "Show fewer" if show_all else f"View All {total} Ratings"
        if st.button(label, key="toggle_all_ratings"):
            st.session_state.show_all_ratings = not show_all
            st.rerun()
    end_card()
    render_rating_form(client)


def render_public_pages(client):
    tabs = st.tabs(["🏫 Home", "📸 Gallery", "📢 Notices", "⭐ Testimonials"])
    with tabs[0]:
        render_notice_board(client, limit=3)
    with tabs[1]:
        render_gallery(client)
    with tabs[2]:
        render_notice_board(client)
    with tabs[3]:
        render_testimonials(client)
