"""Polling subscription: full snapshots, change-only delivery, error ends the feed."""
import threading
import time

from src.realtime import subscribe


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class Source:
    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0
        self.lock = threading.Lock()

    def fetch(self):
        with self.lock:
            self.calls += 1
            item = self.snapshots[min(self.calls, len(self.snapshots)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


def test_first_snapshot_delivered_then_only_changes():
    source = Source([[{"id": "a"}], [{"id": "a"}], [{"id": "a"}, {"id": "b"}], [{"id": "a"}, {"id": "b"}]])
    seen = []
    unsubscribe = subscribe(source.fetch, seen.append, lambda e: None, interval=0.01)
    try:
        assert _wait_for(lambda: source.calls >= 5)
    finally:
        unsubscribe()
    assert seen == [[{"id": "a"}], [{"id": "a"}, {"id": "b"}]]


def test_empty_first_snapshot_is_still_delivered():
    source = Source([[]])
    seen = []
    unsubscribe = subscribe(source.fetch, seen.append, lambda e: None, interval=0.01)
    try:
        assert _wait_for(lambda: seen == [[]])
    finally:
        unsubscribe()


def test_fetch_error_reported_once_and_polling_stops():
    boom = RuntimeError("permission denied")
    source = Source([[{"id": "a"}], boom])
    seen, errors = [], []
    unsubscribe = subscribe(source.fetch, seen.append, errors.append, interval=0.01)
    assert _wait_for(lambda: errors)
    time.sleep(0.05)
    unsubscribe()
    assert errors == [boom]
    assert seen == [[{"id": "a"}]]
    assert source.calls == 2


def test_unsubscribe_stops_delivery_and_is_idempotent():
    counter = {"n": 0}

    def fetch():
        counter["n"] += 1
        return [counter["n"]]

    seen = []
    unsubscribe = subscribe(fetch, seen.append, lambda e: None, interval=0.01)
    assert _wait_for(lambda: len(seen) >= 2)
    unsubscribe()
    unsubscribe()
    time.sleep(0.05)
    settled = len(seen)
    time.sleep(0.05)
    assert len(seen) == settled
