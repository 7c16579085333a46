import sys
from pathlib import Path

import pytest

path = Path(__file__).resolve().parent
if str(path) not in sys.path:
    sys.path.insert(0, str(path))


class FakeUser:
    def __init__(self, user_id, email):
        self.id = user_id
        self.email = email


class FakeRepo:
    """In-memory stand-in for DatabaseClient. Pushes a fresh snapshot to every
    subscriber after each exam write, the way the live feed does."""

    def __init__(self, exams=None):
        self._exams = [dict(e) for e in (exams or [])]
        self.registrations = []
        self.attempts = []
        self.fail_on = set()
        self.listeners = []
        self.auth_listeners = []
        self.unsubscribed = 0
        self.password = "secret"
        self._next_id = 100

    def _check(self, op):
        if op in self.fail_on:
            raise RuntimeError(f"{op} permission denied")

    def _push(self):
        for on_change, _ in list(self.listeners):
            on_change(self.list_exams())

    def list_exams(self):
        self._check("list")
        return sorted((dict(e) for e in self._exams), key=lambda e: e.get("date") or "", reverse=True)

    def get_exam(self, exam_id):
        self._check("get")
        return next((dict(e) for e in self._exams if e["id"] == exam_id), None)

    def subscribe_exams(self, on_change, on_error, interval=5.0):
        entry = (on_change, on_error)
        self.listeners.append(entry)
        try:
            on_change(self.list_exams())
        except Exception as e:
            on_error(e)

        def unsubscribe():
            if entry in self.listeners:
                self.listeners.remove(entry)
                self.unsubscribed += 1

        return unsubscribe

    def create_exam(self, payload):
        self._check("create")
        self._next_id += 1
        exam = dict(payload, id=f"exam-{self._next_id}")
        self._exams.append(exam)
        self._push()
        return exam["id"]

    def update_exam(self, exam_id, payload):
        self._check("update")
        for exam in self._exams:
            if exam["id"] == exam_id:
                exam.update(payload)
        self._push()

    def delete_exam(self, exam_id):
        self._check("delete")
        self._exams = [e for e in self._exams if e["id"] != exam_id]
        self._push()

    def create_registration(self, row):
        self._check("register")
        self.registrations.append(dict(row))
        return f"reg-{len(self.registrations)}"

    def create_attempt(self, row):
        self._check("attempt")
        self.attempts.append(dict(row))
        return f"att-{len(self.attempts)}"

    def sign_in(self, email, password):
        if password != self.password:
            raise RuntimeError("Invalid login credentials")
        user = FakeUser("u-1", email)
        for cb in list(self.auth_listeners):
            cb(user)
        return user

    def sign_out(self):
        self._check("sign_out")
        for cb in list(self.auth_listeners):
            cb(None)

    def on_auth_change(self, callback):
        self.auth_listeners.append(callback)
        return lambda: self.auth_listeners.remove(callback)


SAMPLE_EXAM = {
    "id": "exam-1",
    "title": "Algebra Midterm",
    "subject": "Mathematics",
    "date": "2026-03-10T09:00:00+00:00",
    "duration": "90 minutes",
    "description": "Linear equations and factoring",
    "download_link": "",
    "questions": [
        {"text": "Pick B", "options": ["A", "B", "C"], "correctIndex": 1, "points": 2},
        {"text": "Pick X", "options": ["X", "Y"], "correctIndex": 0, "points": 1},
    ],
}

PAPER_ONLY_EXAM = {
    "id": "exam-2",
    "title": "Chemistry Final",
    "subject": "Chemistry",
    "date": "2026-05-01T09:00:00+00:00",
    "duration": "2 hours",
    "description": "Paper exam only",
    "download_link": "https://example.org/chem.pdf",
    "questions": [],
}


@pytest.fixture
def sample_exam():
    return {**SAMPLE_EXAM, "questions": [dict(q) for q in SAMPLE_EXAM["questions"]]}


@pytest.fixture
def repo(sample_exam):
    return FakeRepo([sample_exam, dict(PAPER_ONLY_EXAM)])
