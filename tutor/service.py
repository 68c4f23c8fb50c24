"""Conversation session service: store, expiry sweeper and shutdown in one object."""

import logging
from datetime import timedelta

from .session_store import (
    Clock,
    ConversationConfig,
    Session,
    SessionStore,
    SessionSummary,
    utc_now,
)
from .sweeper import DEFAULT_MAX_AGE, DEFAULT_SWEEP_INTERVAL, ExpirySweeper

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        clock: Clock = utc_now,
    ):
        self.store = SessionStore(clock=clock)
        self.sweeper = ExpirySweeper(
            self.store, max_age=max_age, interval=sweep_interval, clock=clock,
        )

    # ── Session operations ─────────────────────────────────────────────────

    def create_session(
        self,
        config: ConversationConfig,
        owner_id: str,
        *,
        opening_message: str = "",
        cached_context: str = "",
    ) -> Session:
        return self.store.create(
            config, owner_id,
            opening_message=opening_message,
            cached_context=cached_context,
        )

    def get_session(self, session_id: str) -> Session | None:
        return self.store.get(session_id)

    def append_message(self, session_id: str, role: str, content: str) -> Session | None:
        return self.store.append_message(session_id, role, content)

    def delete_session(self, session_id: str) -> bool:
        return self.store.delete(session_id)

    def list_sessions(self, owner_id: str) -> list[SessionSummary]:
        return self.store.list_by_owner(owner_id)

    @property
    def session_count(self) -> int:
        return len(self.store)

    # ── Lifecycle ──────────────────────────────────────────────────────────

    def run_sweep(self) -> int:
        return self.sweeper.run_sweep()

    def start(self) -> None:
        self.sweeper.start()

    def shutdown(self) -> None:
        """Cancel the sweeper and drop every session. Idempotent, never raises."""
        logger.info("Cleaning up conversation resources...")
        try:
            self.sweeper.cancel()
        except Exception:
            logger.exception("Error cleaning up conversation resources")
        finally:
            try:
                cleared = self.store.clear()
                if cleared:
                    logger.info("Cleared %d conversations from memory", cleared)
            except Exception:
                logger.exception("Error clearing conversation store")
