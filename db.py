"""Supabase client factory and environment config. Shared client is cached via Streamlit."""
import os

import streamlit as st
from dotenv import load_dotenv
from supabase import create_client, Client

from engine import POLL_INTERVAL_SECONDS
from src.controller import ExamFeed
from src.database import DatabaseClient

load_dotenv()


def poll_interval() -> float:
    """Seconds between exam list refreshes (EXAMS_POLL_SECONDS)."""
    raw = os.environ.get("EXAMS_POLL_SECONDS")
    try:
        value = float(raw) if raw else POLL_INTERVAL_SECONDS
    except ValueError:
        raise ValueError(f"EXAMS_POLL_SECONDS must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError("EXAMS_POLL_SECONDS must be greater than 0")
    return value


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


@st.cache_resource
def get_supabase() -> Client:
    """Read/write client shared by every visitor. Never signs in."""
    return _env_client()


def get_supabase_uncached() -> Client:
    """For scripts and per-session admin auth (no shared session)."""
    return _env_client()


def get_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())


def get_admin_database() -> DatabaseClient:
    """Fresh client so one admin's auth session never leaks to other visitors."""
    return DatabaseClient(get_supabase_uncached())


@st.cache_resource
def get_exam_feed() -> ExamFeed:
    """One exam list subscription for the whole app process, shared by every session."""
    feed = ExamFeed(get_database())
    feed.refresh()
    feed.start(poll_interval())
    return feed
