"""
Page controllers. All mutable page state (exam cache, selected exam, candidate
prefill, admin edit mode) lives on these objects, which are kept in Streamlit's
session_state and handed to the UI code.

Each action returns a Feedback for the UI to show next to the control that
triggered it. Backend failures are logged and turned into a message; nothing
is retried.
"""
import logging
import sys
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from engine import NO_QUESTIONS_MESSAGE, POLL_INTERVAL_SECONDS
from src.engine import ExamResult, score_attempt
from src.questions import (
    QuestionBankError,
    build_question_bank,
    display_questions,
    has_online_exam,
    normalize_question,
)

logger = logging.getLogger(__name__)

ONLINE_TEST_PAGE = "Online Test"
LISTING_ERROR = "Could not load exams. Check Supabase config and table policies."


@dataclass(frozen=True)
class Feedback:
    message: str
    is_error: bool = False


def _with_error(message: str, error: Exception) -> str:
    detail = str(error).strip()
    return f"{message} {detail}" if detail else message


def _search_key(value) -> str:
    return str(value or "").lower().strip()


def format_date(value) -> str:
    """Card/list date label in local time; "No date" when missing or unparseable."""
    dt = local_date(value)
    if dt is None:
        return "No date"
    return dt.strftime("%b %d, %Y %H:%M")


def local_date(value) -> Optional[datetime]:
    """parse_date, with offset-aware values moved to local wall-clock time."""
    dt = parse_date(value)
    if dt is not None and dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt


def parse_date(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def exam_link(exam: Mapping, name: str = "", email: str = "") -> str:
    """Query string opening the standalone online test for `exam`."""
    params = {"page": ONLINE_TEST_PAGE, "examId": exam["id"]}
    if name:
        params["name"] = name
    if email:
        params["email"] = email
    return "?" + urlencode(params)


def read_exam_params(params: Mapping) -> Dict[str, str]:
    """Inverse of exam_link. Missing values come back as ''."""
    return {
        "exam_id": (params.get("examId") or "").strip(),
        "name": params.get("name") or "",
        "email": params.get("email") or "",
    }


# ============= Candidate side =============

class ExamFeed:
    """Last-seen exam list kept current by one subscription.

    A single feed is shared by every session of the app process, so the number
    of polling subscriptions does not grow with visitors.
    """

    def __init__(self, repo):
        self.repo = repo
        self._lock = threading.RLock()
        self._exams: List[Dict] = []
        self.loaded = False
        self.error: Optional[Exception] = None
        self._unsubscribe = None
        self._ended = False

    @property
    def exams(self) -> List[Dict]:
        with self._lock:
            return list(self._exams)

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def apply_snapshot(self, exams: List[Dict]) -> None:
        """Replace the cached list wholesale; no merging with the previous one."""
        with self._lock:
            self._exams = list(exams)
            self.loaded = True
            self.error = None

    def fail(self, error: Exception) -> None:
        logger.error(f"Exam listing failed: {error}")
        with self._lock:
            self.error = error

    def _subscription_failed(self, error: Exception) -> None:
        # the poller has already exited; the next start() subscribes again
        with self._lock:
            self.fail(error)
            self._unsubscribe = None
            self._ended = True

    def refresh(self) -> None:
        try:
            self.apply_snapshot(self.repo.list_exams())
        except Exception as e:
            self.fail(e)

    def start(self, interval: float = POLL_INTERVAL_SECONDS) -> None:
        with self._lock:
            if self._unsubscribe is None:
                self._ended = False
                unsubscribe = self.repo.subscribe_exams(self.apply_snapshot, self._subscription_failed, interval)
                if not self._ended:
                    self._unsubscribe = unsubscribe

    def stop(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()


class ExamBoard:
    """Exam listing, registration and online test state for one visitor.

    Without a `feed` the board owns a private one; with a shared feed, `stop`
    leaves the shared subscription running.
    """

    def __init__(self, repo, feed: Optional[ExamFeed] = None):
        self.repo = repo
        self._owns_feed = feed is None
        self.feed = feed if feed is not None else ExamFeed(repo)

        self.registration_exam: Optional[Dict] = None
        self.test_exam: Optional[Dict] = None
        self.prefill_name = ""
        self.prefill_email = ""
        self.last_result: Optional[ExamResult] = None
        self.notice: Optional[Feedback] = None

    # ---- listing ----

    @property
    def exams(self) -> List[Dict]:
        return self.feed.exams

    @property
    def loaded(self) -> bool:
        return self.feed.loaded

    @property
    def load_error(self) -> Optional[str]:
        error = self.feed.error
        return _with_error(LISTING_ERROR, error) if error is not None else None

    def apply_snapshot(self, exams: List[Dict]) -> None:
        self.feed.apply_snapshot(exams)

    def fail(self, error: Exception) -> None:
        self.feed.fail(error)

    def refresh(self) -> None:
        self.feed.refresh()

    def start(self, interval: float = POLL_INTERVAL_SECONDS) -> None:
        self.feed.start(interval)

    def stop(self) -> None:
        if self._owns_feed:
            self.feed.stop()

    def subjects(self) -> List[str]:
        return sorted({e["subject"] for e in self.exams if e.get("subject")}, key=str.lower)

    def filter_exams(self, query: str = "", subject: str = "all") -> List[Dict]:
        """Substring search over title/description/subject, plus exact subject filter."""
        q = _search_key(query)
        matches = []
        for exam in self.exams:
            hit = (q in _search_key(exam.get("title"))
                   or q in _search_key(exam.get("description"))
                   or q in _search_key(exam.get("subject")))
            if hit and (subject == "all" or exam.get("subject") == subject):
                matches.append(exam)
        return matches

    def find_exam(self, exam_id: str) -> Optional[Dict]:
        return next((e for e in self.exams if e.get("id") == exam_id), None)

    # ---- registration ----

    def open_registration(self, exam: Dict) -> None:
        self.registration_exam = exam

    def close_registration(self) -> None:
        self.registration_exam = None

    def register(self, full_name: str, email: str, phone: str = "") -> Feedback:
        exam = self.registration_exam
        if exam is None:
            return Feedback("No exam selected.", True)
        full_name, email, phone = (full_name or "").strip(), (email or "").strip(), (phone or "").strip()
        if not full_name or not email:
            return Feedback("Name and email are required.", True)
        try:
            self.repo.create_registration({
                "exam_id": exam["id"],
                "exam_title": exam.get("title") or "",
                "full_name": full_name,
                "email": email,
                "phone": phone,
            })
        except Exception as e:
            logger.error(f"Registration failed for exam {exam.get('id')}: {e}")
            return Feedback(_with_error("Failed to save registration.", e), True)

        self.close_registration()
        self.close_test()
        self.prefill_name, self.prefill_email = "", ""
        self.notice = None
        if has_online_exam(exam) and self.open_test(exam) is None:
            self.prefill_name, self.prefill_email = full_name, email
            # shown on the test page, which replaces the registration form
            self.notice = Feedback("Registration saved successfully.")
            return self.notice
        return Feedback("Registration completed. " + NO_QUESTIONS_MESSAGE)

    def pop_notice(self) -> Optional[Feedback]:
        notice, self.notice = self.notice, None
        return notice

    # ---- online test ----

    def open_test(self, exam: Dict) -> Optional[Feedback]:
        """Select `exam` for testing. Returns Feedback only when it cannot be taken."""
        if not display_questions(exam):
            return Feedback(NO_QUESTIONS_MESSAGE, True)
        self.test_exam = exam
        self.last_result = None
        return None

    def close_test(self) -> None:
        self.test_exam = None
        self.last_result = None

    def load_exam(self, exam_id: str) -> Optional[Feedback]:
        """Standalone test page: fetch and select one exam by id."""
        if not exam_id:
            return Feedback("Missing examId in URL.", True)
        try:
            exam = self.repo.get_exam(exam_id)
        except Exception as e:
            logger.error(f"Could not load exam {exam_id}: {e}")
            return Feedback(_with_error("Could not load exam. Check Supabase config and table policies.", e), True)
        if exam is None:
            return Feedback("Exam not found.", True)
        return self.open_test(exam)

    def submit_attempt(
        self,
        candidate_name: str,
        candidate_email: str,
        selections: Mapping[int, Optional[int]],
    ) -> Tuple[Feedback, Optional[ExamResult]]:
        """
        Grade and persist the current test.

        Args:
            candidate_name: Required
            candidate_email: Required
            selections: {question position: selected option index or None}

        Returns:
            (feedback, result) - result is None when nothing was submitted
        """
        exam = self.test_exam
        if exam is None:
            return Feedback("No exam selected.", True), None
        candidate_name = (candidate_name or "").strip()
        candidate_email = (candidate_email or "").strip()
        if not candidate_name or not candidate_email:
            return Feedback("Name and email are required.", True), None

        questions = display_questions(exam)
        answers = {i: sel for i, sel in selections.items() if sel is not None}
        if any(i not in answers for i in range(len(questions))):
            return Feedback("Please answer every question before submitting.", True), None

        result = score_attempt(questions, answers)
        row = {
            "exam_id": exam["id"],
            "exam_title": exam.get("title") or "",
            "candidate_name": candidate_name,
            "candidate_email": candidate_email,
        }
        row.update(result.as_dict())
        try:
            self.repo.create_attempt(row)
        except Exception as e:
            logger.error(f"Attempt submission failed for exam {exam['id']}: {e}")
            return Feedback(_with_error("Could not submit attempt. Please try again.", e), True), None

        logger.info("Attempt saved: exam=%s score=%s/%s", exam["id"], result.score, result.total)
        self.last_result = result
        return Feedback(f"Result: {result.score} / {result.total}"), result


# ============= Admin side =============

@dataclass
class ExamForm:
    """Authoring form values. `questions` rows use text/options/correctIndex/points."""
    title: str = ""
    subject: str = ""
    date: object = None
    duration: str = ""
    description: str = ""
    download_link: str = ""
    questions: List[Dict] = field(default_factory=list)


def _user_id(user):
    if user is None:
        return None
    return getattr(user, "id", None) or user


def question_rows(exam: Mapping) -> List[Dict]:
    """Stored questions as builder rows (options one per line) for editing."""
    rows = []
    for raw in exam.get("questions") or []:
        q = normalize_question(raw)
        correct = q.correct_index if isinstance(q.correct_index, int) else 0
        rows.append({
            "text": q.text,
            "options": "\n".join(q.options),
            "correctIndex": correct,
            "points": q.points,
        })
    return rows


class AdminDesk:
    """Auth gate, exam list and authoring form state for the admin page."""

    def __init__(self, repo, feed: Optional[ExamFeed] = None):
        self.repo = repo
        self._owns_feed = feed is None
        self.feed = feed if feed is not None else ExamFeed(repo)
        self.user = None
        self.editing_id: Optional[str] = None
        self._watching = False
        self._auth_unsubscribe = None

    @property
    def exams(self) -> List[Dict]:
        return self.feed.exams if self.signed_in else []

    @property
    def list_error(self) -> Optional[str]:
        error = self.feed.error
        if not self.signed_in or error is None:
            return None
        return _with_error("Could not load exams list. Check table policies.", error)

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    # ---- auth ----

    def login(self, email: str, password: str) -> Optional[Feedback]:
        email = (email or "").strip()
        if not email or not password:
            return Feedback("Email and password are required.", True)
        try:
            user = self.repo.sign_in(email, password)
        except Exception as e:
            logger.error(f"Login failed for {email}: {e}")
            return Feedback("Login failed. Check credentials.", True)
        self.set_user(user)
        return None

    def logout(self) -> Optional[Feedback]:
        try:
            self.repo.sign_out()
        except Exception as e:
            logger.error(f"Logout failed: {e}")
            return Feedback("Logout failed.", True)
        self.set_user(None)
        return None

    def watch_auth(self) -> None:
        """Follow the backend's auth state so sign in/out elsewhere gates this desk too."""
        if self._auth_unsubscribe is None:
            self._auth_unsubscribe = self.repo.on_auth_change(self.set_user)

    def set_user(self, user, interval: float = POLL_INTERVAL_SECONDS) -> None:
        """Auth state change: a user opens the admin panel, None closes it."""
        same = _user_id(user) == _user_id(self.user)
        self.user = user
        if user is not None:
            if not (same and self._watching):
                self.watch(interval)
            return
        self.stop()
        self.editing_id = None

    # ---- exam list ----

    def watch(self, interval: float = POLL_INTERVAL_SECONDS) -> None:
        if self._owns_feed:
            self.feed.stop()
        else:
            # shared feed may be up to one interval old
            self.feed.refresh()
        self.feed.start(interval)
        self._watching = True

    def stop(self) -> None:
        """Stop following the list; a shared feed keeps running for other sessions."""
        if self._owns_feed:
            self.feed.stop()
        self._watching = False

    def close(self) -> None:
        self.stop()
        if self._auth_unsubscribe is not None:
            self._auth_unsubscribe()
            self._auth_unsubscribe = None

    # ---- authoring ----

    def begin_edit(self, exam: Mapping) -> ExamForm:
        self.editing_id = exam["id"]
        return ExamForm(
            title=exam.get("title") or "",
            subject=exam.get("subject") or "",
            date=local_date(exam.get("date")),
            duration=exam.get("duration") or "",
            description=exam.get("description") or "",
            download_link=exam.get("download_link") or "",
            questions=question_rows(exam),
        )

    def cancel_edit(self) -> Feedback:
        self.editing_id = None
        return Feedback("Edit canceled.")

    def save_exam(self, form: ExamForm) -> Feedback:
        title = form.title.strip()
        subject = form.subject.strip()
        duration = form.duration.strip()
        description = form.description.strip()
        if not title or not subject or form.date in (None, "") or not duration or not description:
            return Feedback("Please fill all required fields.", True)

        when = parse_date(form.date)
        if when is None:
            return Feedback("Invalid date value.", True)
        if when.tzinfo is None:
            # form values are local wall-clock time
            when = when.astimezone()

        try:
            questions = build_question_bank(form.questions)
        except QuestionBankError as e:
            return Feedback(str(e), True)

        payload = {
            "title": title,
            "subject": subject,
            "date": when.isoformat(),
            "duration": duration,
            "description": description,
            "download_link": form.download_link.strip(),
            "questions": questions,
        }
        try:
            if self.editing_id:
                self.repo.update_exam(self.editing_id, payload)
                message = "Exam updated successfully."
            else:
                self.repo.create_exam(payload)
                message = "Exam created successfully."
        except Exception as e:
            logger.error(f"Save failed: {e}")
            return Feedback(_with_error("Save failed. Check auth/table policies.", e), True)

        self.editing_id = None
        self.feed.refresh()
        return Feedback(message)

    def delete_exam(self, exam: Mapping) -> Feedback:
        try:
            self.repo.delete_exam(exam["id"])
        except Exception as e:
            logger.error(f"Delete failed for exam {exam.get('id')}: {e}")
            return Feedback(_with_error("Failed to delete exam.", e), True)
        if self.editing_id == exam["id"]:
            self.editing_id = None
        self.feed.refresh()
        return Feedback("Exam deleted successfully.")
