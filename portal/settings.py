# portal/settings.py
"""
Configuration lookup for the portal.

Resolution order for every key:
1) st.secrets[section][key]      (nested, e.g. [supabase] url = "...")
2) st.secrets[key] / st.secrets[KEY]
3) os.environ[KEY]               (.env is loaded on import when present)
4) the default passed by the caller
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

DEFAULTS = {
    "SCHOOL_BACKEND": "sqlite",
    "SCHOOL_DB_PATH": os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "school.db"),
    "SCHOOL_NAME": "Shakti Shanti Academy",
    "OPENAI_MODEL": "gpt-4o-mini",
    "LOG_LEVEL": "INFO",
    "SEED_DEMO_DATA": "true",
}

# nested secrets sections a key may live under
SECTIONS = {
    "SUPABASE_URL": ("supabase", "url"),
    "SUPABASE_KEY": ("supabase", "key"),
    "OPENAI_API_KEY": ("api_keys", "openai_api_key"),
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _get_secret(key: str) -> Optional[str]:
    """
    Safely read a flat key from st.secrets; None when no secrets file exists.
    """
    try:
        return st.secrets[key]
    except Exception:
        return None


def _get_nested_secret(section: str, key: str) -> Optional[str]:
    try:
        section_dict = st.secrets.get(section, None)
        if section_dict is not None:
            return section_dict.get(key)
    except Exception:
        return None
    return None


def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    if key in SECTIONS:
        value = _get_nested_secret(*SECTIONS[key])
        if value:
            return value

    for candidate in (key, key.lower()):
        value = _get_secret(candidate)
        if value:
            return value

    value = os.getenv(key)
    if value:
        return value

    return default if default is not None else DEFAULTS.get(key)


def get_flag(key: str) -> bool:
    return str(get_setting(key) or "").strip().lower() in ("1", "true", "yes", "on")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls only adjust the level."""
    level_name = (level or get_setting("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)
    root.setLevel(level_name)
