"""ExamDesk — exam listing, registration, online tests and admin."""
import logging
import sys
from datetime import datetime, time
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_admin_database, get_database, get_exam_feed, poll_interval
from src.controller import (
    ONLINE_TEST_PAGE,
    AdminDesk,
    ExamBoard,
    ExamForm,
    exam_link,
    format_date,
    read_exam_params,
)
from src.questions import display_questions, has_online_exam, parse_options

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

PAGES = ["Exams", ONLINE_TEST_PAGE, "Admin"]

st.set_page_config(page_title="ExamDesk", layout="wide")
st.sidebar.title("ExamDesk")
# Allow URL to open a specific page (e.g. a shared online test link)
default_page = st.query_params.get("page", "Exams")
if default_page not in PAGES:
    default_page = "Exams"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")


def show(feedback):
    if feedback is None:
        return
    if feedback.is_error:
        st.error(feedback.message)
    else:
        st.success(feedback.message)


def go_to_test(exam, name="", email=""):
    st.query_params.clear()
    st.query_params.update({"page": ONLINE_TEST_PAGE, "examId": exam["id"]})
    if name:
        st.query_params["name"] = name
    if email:
        st.query_params["email"] = email
    st.rerun()


def get_board() -> ExamBoard:
    if "board" not in st.session_state:
        # sessions share one feed; nothing per session needs stopping
        st.session_state["board"] = ExamBoard(get_database(), feed=get_exam_feed())
    return st.session_state["board"]


# ----- Exams -----
if page == "Exams":
    st.header("Exams")
    try:
        board = get_board()
    except Exception as e:
        st.error(f"Could not connect. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()

    if board.registration_exam is not None:
        exam = board.registration_exam
        with st.form("register_form"):
            st.subheader(f"Register: {exam.get('title') or 'Untitled exam'}")
            full_name = st.text_input("Full name")
            email = st.text_input("Email")
            phone = st.text_input("Phone (optional)")
            col1, col2 = st.columns(2)
            submitted = col1.form_submit_button("Register", type="primary")
            cancelled = col2.form_submit_button("Cancel")
        if cancelled:
            board.close_registration()
            st.rerun()
        if submitted:
            feedback = board.register(full_name, email, phone)
            if board.test_exam is not None and not feedback.is_error:
                # the success notice is shown by the Online Test page
                go_to_test(board.test_exam, board.prefill_name, board.prefill_email)
            show(feedback)

    col1, col2 = st.columns([3, 1])
    query = col1.text_input("Search", placeholder="Title, subject or description")
    subject = col2.selectbox("Subject", ["all"] + board.subjects(),
                             format_func=lambda s: "All subjects" if s == "all" else s)

    @st.fragment(run_every=poll_interval())
    def listing():
        # resubscribes after a polling error ended the feed
        board.start(poll_interval())
        if board.load_error:
            st.error(board.load_error)
            return
        if not board.loaded:
            st.info("Loading exams...")
            return
        exams = board.filter_exams(query, subject)
        if not exams:
            st.info("No exams match your search.")
            return
        for exam in exams:
            with st.container(border=True):
                st.caption(f"{exam.get('subject') or 'General'} · {format_date(exam.get('date'))}")
                st.subheader(exam.get("title") or "Untitled exam")
                st.write(exam.get("description") or "No description provided.")
                st.caption(f"Duration: {exam.get('duration') or 'N/A'}")
                c1, c2, c3 = st.columns(3)
                if c1.button("Register", key=f"reg_{exam['id']}"):
                    board.open_registration(exam)
                    st.rerun()
                online = has_online_exam(exam)
                if c2.button("Start Exam" if online else "No Online Questions",
                             key=f"start_{exam['id']}", disabled=not online):
                    feedback = board.open_test(exam)
                    if feedback is None:
                        go_to_test(exam)
                    show(feedback)
                if exam.get("download_link"):
                    c3.link_button("Download", exam["download_link"])

    listing()

# ----- Online Test -----
elif page == ONLINE_TEST_PAGE:
    params = read_exam_params(st.query_params)
    try:
        board = get_board()
    except Exception as e:
        st.error(f"Could not connect. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()

    current = board.test_exam
    if current is None or current.get("id") != params["exam_id"]:
        feedback = board.load_exam(params["exam_id"])
        if feedback is not None:
            show(feedback)
            st.stop()
    exam = board.test_exam
    questions = display_questions(exam)
    show(board.pop_notice())

    st.header(exam.get("title") or "Online Exam")
    st.caption(f"{exam.get('subject') or 'General'} · Duration: {exam.get('duration') or 'N/A'}")
    st.caption(f"Share: {exam_link(exam)}")

    with st.form("online_exam_form"):
        name = st.text_input("Your name", value=params["name"] or board.prefill_name)
        email = st.text_input("Your email", value=params["email"] or board.prefill_email)
        selections = {}
        for idx, q in enumerate(questions):
            st.markdown(f"**{idx + 1}. {q.text}**")
            st.caption(f"{q.points} point(s)")
            selections[idx] = st.radio(
                "Choose one:",
                range(len(q.options)),
                format_func=lambda i, opts=q.options: opts[i],
                index=None,
                key=f"answer_{exam['id']}_{idx}",
                label_visibility="collapsed",
            )
        submitted = st.form_submit_button("Submit exam", type="primary")

    if submitted:
        feedback, result = board.submit_attempt(name, email, selections)
        show(feedback)
        if result is not None:
            st.metric("Score", f"{result.score} / {result.total}", f"{result.percentage:.0f}%")

# ----- Admin -----
elif page == "Admin":
    st.header("Admin")
    if "admin" not in st.session_state:
        try:
            desk = AdminDesk(get_admin_database(), feed=get_exam_feed())
            desk.watch_auth()
        except Exception as e:
            st.error(f"Could not connect. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
            st.stop()
        st.session_state["admin"] = desk
    desk = st.session_state["admin"]

    if not desk.signed_in:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in", type="primary"):
                feedback = desk.login(email, password)
                if feedback is None:
                    st.rerun()
                show(feedback)
        st.stop()

    if st.sidebar.button("Sign out"):
        show(desk.logout())
        st.session_state.pop("exam_form", None)
        st.rerun()

    form_state = st.session_state.setdefault("exam_form", ExamForm())
    editing = desk.editing_id is not None
    st.subheader("Edit Exam" if editing else "Create Exam")

    n_questions = st.number_input("Online questions", min_value=0, max_value=100,
                                  value=len(form_state.questions), step=1)
    with st.form("exam_form"):
        title = st.text_input("Title", value=form_state.title)
        subject = st.text_input("Subject", value=form_state.subject)
        when = form_state.date or datetime.now()
        c1, c2 = st.columns(2)
        day = c1.date_input("Date", value=when.date())
        at = c2.time_input("Time", value=when.time().replace(microsecond=0))
        duration = st.text_input("Duration", value=form_state.duration, placeholder="e.g. 90 minutes")
        description = st.text_area("Description", value=form_state.description)
        download_link = st.text_input("Download link (optional)", value=form_state.download_link)

        rows = []
        for i in range(int(n_questions)):
            prev = form_state.questions[i] if i < len(form_state.questions) else {}
            with st.expander(f"Question {i + 1}", expanded=not prev):
                text = st.text_area("Question", value=prev.get("text", ""), key=f"q_text_{i}")
                options = st.text_area("Options (one per line)", value=prev.get("options", ""), key=f"q_opts_{i}")
                c1, c2 = st.columns(2)
                correct = c1.number_input("Correct option # (1-based)", min_value=1, step=1,
                                          value=int(prev.get("correctIndex", 0)) + 1, key=f"q_correct_{i}")
                points = c2.number_input("Points", value=float(prev.get("points", 1)), step=1.0, key=f"q_points_{i}")
            rows.append({
                "text": text,
                "options": parse_options(options),
                "correctIndex": int(correct) - 1,
                "points": int(points) if float(points).is_integer() else points,
            })

        c1, c2 = st.columns(2)
        saved = c1.form_submit_button("Save exam", type="primary")
        cancelled = c2.form_submit_button("Cancel edit", disabled=not editing)

    if cancelled:
        st.session_state["exam_form"] = ExamForm()
        show(desk.cancel_edit())
    if saved:
        form = ExamForm(
            title=title,
            subject=subject,
            date=datetime.combine(day, at or time()),
            duration=duration,
            description=description,
            download_link=download_link,
            questions=rows,
        )
        feedback = desk.save_exam(form)
        if not feedback.is_error:
            st.session_state["exam_form"] = ExamForm()
        show(feedback)

    st.divider()
    st.subheader("Exams")
    if desk.list_error:
        st.error(desk.list_error)
    elif not desk.exams:
        st.info("No exams yet.")
    for exam in desk.exams:
        with st.container(border=True):
            st.write(f"**{exam.get('title') or 'Untitled'}**")
            n = len(display_questions(exam))
            st.caption(f"{exam.get('subject') or 'General'} · {format_date(exam.get('date'))} · {n} online question(s)")
            c1, c2 = st.columns(2)
            if c1.button("Edit", key=f"edit_{exam['id']}"):
                st.session_state["exam_form"] = desk.begin_edit(exam)
                st.rerun()
            confirm = c2.checkbox("Confirm delete", key=f"confirm_{exam['id']}")
            if c2.button("Delete", key=f"delete_{exam['id']}", disabled=not confirm):
                show(desk.delete_exam(exam))
