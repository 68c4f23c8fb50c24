"""
Background expiry for conversation sessions.

Sessions age from their creation time only. A sweep removes every session
older than ``max_age``; a daemon thread repeats the sweep every ``interval``
until cancelled.
"""

import logging
import threading
from datetime import timedelta

from .session_store import Clock, SessionStore, parse_instant, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=7)
DEFAULT_SWEEP_INTERVAL = timedelta(hours=1)


class ExpirySweeper:
    def __init__(
        self,
        store: SessionStore,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.max_age = max_age
        self.interval = interval
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._thread_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_sweep(self) -> int:
        """Remove sessions older than max_age. Returns the number removed."""
        now = parse_instant(self._clock())
        removed = 0

        for session_id, session in self.store.snapshot():
            try:
                created_at = parse_instant(getattr(session, "created_at", None))
                age = now - created_at
            except (ValueError, TypeError, OverflowError, OSError) as e:
                logger.warning("Skipping session %s with bad created_at: %s", session_id, e)
                continue

            # Strictly older than max_age; a session exactly at the boundary stays.
            if age > self.max_age and self.store.delete(session_id):
                removed += 1

        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed

    def start(self) -> None:
        with self._thread_lock:
            if self.running:
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._loop,
                args=(self._stop_event,),
                name="session-sweeper",
                daemon=True,
            )
            self._thread.start()
        logger.info(
            "Session sweeper started (interval=%ss, max_age=%ss)",
            int(self.interval.total_seconds()), int(self.max_age.total_seconds()),
        )

    def cancel(self) -> None:
        """Stop the recurring sweep. Safe to call when never started or already stopped."""
        with self._thread_lock:
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
            logger.info("Session sweeper cancelled")

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval.total_seconds()):
            self._tick()

    def _tick(self) -> None:
        try:
            self.run_sweep()
        except Exception:
            logger.exception("Session sweep failed; will retry next interval")
