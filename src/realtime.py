"""
Polling subscription to a collection snapshot.

`subscribe` stands in for a push listener: it delivers the first snapshot and
every later snapshot that differs from the last one delivered, always as a
full replacement. A failed fetch is reported once and ends the subscription.
"""
import logging
import threading
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class _Poller:
    def __init__(self, fetch, on_change, on_error, interval: float):
        self.fetch = fetch
        self.on_change = on_change
        self.on_error = on_error
        self.interval = interval
        self._stop = threading.Event()
        self._last = None
        self._delivered = False
        self.thread = threading.Thread(target=self._run, name="snapshot-poller", daemon=True)

    def _run(self):
        while not self._stop.is_set():
            try:
                snapshot = self.fetch()
            except Exception as e:
                if self._stop.is_set():
                    return
                logger.error(f"Snapshot fetch failed: {e}")
                self.on_error(e)
                return
            if self._stop.is_set():
                return
            if not self._delivered or snapshot != self._last:
                self._last = snapshot
                self._delivered = True
                self.on_change(snapshot)
            self._stop.wait(self.interval)

    def stop(self):
        self._stop.set()


def subscribe(
    fetch: Callable[[], List[Any]],
    on_change: Callable[[List[Any]], None],
    on_error: Callable[[Exception], None],
    interval: float = 5.0,
) -> Callable[[], None]:
    """
    Poll `fetch` every `interval` seconds on a daemon thread.

    Returns:
        unsubscribe() - stops polling; safe to call more than once
    """
    poller = _Poller(fetch, on_change, on_error, interval)
    poller.thread.start()
    return poller.stop
