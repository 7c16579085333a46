"""DatabaseClient against a recording stand-in for the Supabase client."""
import pytest

from src.database import DatabaseClient


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.calls = [("table", table)]

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        self.client.queries.append(self.calls)
        if self.client.error:
            raise self.client.error
        return FakeResponse(self.client.data)


class FakeAuthResponse:
    def __init__(self, user):
        self.user = user


class FakeSubscription:
    def __init__(self):
        self.cancelled = False

    def unsubscribe(self):
        self.cancelled = True


class FakeAuth:
    def __init__(self):
        self.signed_in = None
        self.listeners = []
        self.subscription = FakeSubscription()

    def sign_in_with_password(self, credentials):
        if credentials["password"] != "pw":
            raise RuntimeError("Invalid login credentials")
        self.signed_in = {"id": "u-1", "email": credentials["email"]}
        return FakeAuthResponse(self.signed_in)

    def sign_out(self):
        self.signed_in = None

    def get_user(self):
        if self.signed_in is None:
            return None
        return FakeAuthResponse(self.signed_in)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return self.subscription


class FakeSupabase:
    def __init__(self, data=None, error=None):
        self.data = data if data is not None else []
        self.error = error
        self.queries = []
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)


def test_list_exams_orders_by_date_desc():
    client = FakeSupabase(data=[{"id": "e1"}])
    assert DatabaseClient(client).list_exams() == [{"id": "e1"}]
    calls = client.queries[0]
    assert calls[0] == ("table", "exams")
    assert ("order", ("date",), {"desc": True}) in calls


def test_list_exams_none_data_is_empty():
    client = FakeSupabase()
    client.data = None
    assert DatabaseClient(client).list_exams() == []


def test_get_exam_found_and_missing():
    client = FakeSupabase(data=[{"id": "e1", "title": "T"}])
    db = DatabaseClient(client)
    assert db.get_exam("e1")["title"] == "T"
    assert ("eq", ("id", "e1"), {}) in client.queries[0]
    client.data = []
    assert db.get_exam("nope") is None


def test_create_exam_returns_assigned_id():
    client = FakeSupabase(data=[{"id": "new-id"}])
    exam_id = DatabaseClient(client).create_exam({"title": "T", "questions": []})
    assert exam_id == "new-id"
    assert ("insert", ({"title": "T", "questions": []},), {}) in client.queries[0]


def test_update_and_delete_filter_by_id():
    client = FakeSupabase()
    db = DatabaseClient(client)
    db.update_exam("e1", {"title": "New"})
    db.delete_exam("e2")
    update, delete = client.queries
    assert ("update", ({"title": "New"},), {}) in update
    assert ("eq", ("id", "e1"), {}) in update
    assert ("delete", (), {}) in delete
    assert ("eq", ("id", "e2"), {}) in delete


def test_registration_and_attempt_tables():
    client = FakeSupabase(data=[{"id": "r1"}])
    db = DatabaseClient(client)
    assert db.create_registration({"exam_id": "e1"}) == "r1"
    assert db.create_attempt({"exam_id": "e1"}) == "r1"
    assert client.queries[0][0] == ("table", "registrations")
    assert client.queries[1][0] == ("table", "attempts")


def test_backend_errors_propagate():
    client = FakeSupabase(error=RuntimeError("JWT expired"))
    db = DatabaseClient(client)
    with pytest.raises(RuntimeError, match="JWT expired"):
        db.list_exams()
    with pytest.raises(RuntimeError):
        db.create_attempt({"exam_id": "e1"})
    with pytest.raises(RuntimeError):
        db.delete_exam("e1")


def test_auth_round_trip():
    client = FakeSupabase()
    db = DatabaseClient(client)
    assert db.current_user() is None
    user = db.sign_in("admin@example.org", "pw")
    assert user["email"] == "admin@example.org"
    assert db.current_user() == user
    db.sign_out()
    assert db.current_user() is None


def test_sign_in_failure_raises():
    with pytest.raises(RuntimeError):
        DatabaseClient(FakeSupabase()).sign_in("admin@example.org", "wrong")


def test_on_auth_change_passes_user_or_none():
    client = FakeSupabase()
    seen = []
    unsubscribe = DatabaseClient(client).on_auth_change(seen.append)
    listener = client.auth.listeners[0]
    listener("SIGNED_IN", FakeAuthResponse({"id": "u-1"}))
    listener("SIGNED_OUT", None)
    assert seen == [{"id": "u-1"}, None]
    unsubscribe()
    assert client.auth.subscription.cancelled
