# portal/openai_client.py
from __future__ import annotations

import logging
from typing import List, Optional

import streamlit as st
from openai import OpenAI, OpenAIError

from portal.settings import get_setting

logger = logging.getLogger(__name__)

TUTOR_PROMPT = "You are a helpful AI Tutor for school students. Keep answers short and clear."
STUDY_PLAN_PROMPT = (
    "You are a school mentor. Given a student's marks summary, suggest a short, "
    "encouraging study plan with at most five bullet points."
)


def openai_available() -> bool:
    return bool(get_setting("OPENAI_API_KEY"))


@st.cache_resource(show_spinner=False)
def make_openai_client() -> OpenAI:
    """
    Key resolution follows settings.get_setting:
    st.secrets["api_keys"]["openai_api_key"], flat secrets, then OPENAI_API_KEY.
    """
    api_key = get_setting("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("Missing OpenAI API key (set OPENAI_API_KEY).")
    return OpenAI(api_key=api_key)


def _chat(client: OpenAI, system: str, user: str, history: Optional[List[dict]] = None) -> str:
    messages = [{"role": "system", "content": system}]
    messages += history or []
    messages.append({"role": "user", "content": user})
    try:
        completion = client.chat.completions.create(
            model=get_setting("OPENAI_MODEL"),
            messages=messages,
        )
    except OpenAIError as e:
        logger.error("OpenAI request failed: %s", e)
        raise
    return completion.choices[0].message.content or ""


def ask_tutor(client: OpenAI, question: str, history: Optional[List[dict]] = None) -> str:
    return _chat(client, TUTOR_PROMPT, question, history)


def study_plan(client: OpenAI, subject_percentages: dict, latest_exam: Optional[str]) -> str:
    lines = [f"{subject}: {pct:.0f}%" for subject, pct in subject_percentages.items()]
    summary = "\n".join(lines) or "No marks yet."
    return _chat(client, STUDY_PLAN_PROMPT, f"Latest exam: {latest_exam or 'n/a'}\n{summary}")
