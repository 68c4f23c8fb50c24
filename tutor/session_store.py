"""In-memory session store for multi-turn conversation practice."""

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ROLES = ("user", "system")
_PREVIEW_CHARS = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value) -> datetime:
    """Coerce a stored timestamp into an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), epoch seconds and
    ISO-8601 strings. Raises ValueError or TypeError for anything else.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool) or value is None:
        raise TypeError(f"not a timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip())
    else:
        raise TypeError(f"not a timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class Message:
    role: str  # "user" | "system"
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ConversationConfig:
    topic: str
    difficulty_level: str = "intermediate"
    focus_areas: tuple[str, ...] = ()
    participant_count: int = 2
    include_slang: bool = False


@dataclass
class Session:
    id: str
    owner_id: str
    topic: str
    difficulty_level: str
    focus_areas: tuple[str, ...]
    participant_count: int
    include_slang: bool
    created_at: datetime
    messages: list[Message] = field(default_factory=list)
    cached_context: str = ""


@dataclass
class SessionSummary:
    id: str
    topic: str
    difficulty_level: str
    created_at: datetime
    message_count: int
    preview: str


class SessionStore:
    """Thread-safe map of live sessions keyed by id.

    Lookups never refresh a session's age: expiry is driven purely by
    ``created_at``. Unknown ids are reported as ``None``/``False`` rather
    than raised.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(
        self,
        config: ConversationConfig,
        owner_id: str,
        opening_message: str = "",
        cached_context: str = "",
    ) -> Session:
        now = self._clock()
        with self._lock:
            session_id = self._new_id(now)
            while session_id in self._sessions:
                session_id = self._new_id(now)
            session = Session(
                id=session_id,
                owner_id=owner_id,
                topic=config.topic,
                difficulty_level=config.difficulty_level,
                focus_areas=tuple(config.focus_areas),
                participant_count=config.participant_count,
                include_slang=config.include_slang,
                created_at=now,
                messages=[Message(role="system", content=opening_message, timestamp=now)],
                cached_context=cached_context,
            )
            self._sessions[session_id] = session
        logger.debug("Created session %s for owner=%s", session_id, owner_id)
        return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def append_message(self, session_id: str, role: str, content: str) -> Session | None:
        """Append a message to a session. Ownership must already be checked."""
        if role not in ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        message = Message(role=role, content=content, timestamp=self._clock())
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.messages.append(message)
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_by_owner(self, owner_id: str) -> list[SessionSummary]:
        with self._lock:
            owned = [
                _summarize(s) for s in self._sessions.values()
                if s.owner_id == owner_id
            ]
        owned.sort(key=_sort_key, reverse=True)
        return owned

    def clear(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        return count

    def restore(self, session: Session) -> None:
        """Insert a pre-built session as-is, keeping its id and created_at."""
        with self._lock:
            self._sessions[session.id] = session

    def snapshot(self) -> list[tuple[str, Session]]:
        with self._lock:
            return list(self._sessions.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    @staticmethod
    def _new_id(now: datetime) -> str:
        return f"conv_{int(now.timestamp() * 1000)}_{secrets.token_hex(6)}"


def _summarize(session: Session) -> SessionSummary:
    messages = session.messages or []
    first = messages[0].content if messages else ""
    return SessionSummary(
        id=session.id,
        topic=session.topic,
        difficulty_level=session.difficulty_level,
        created_at=session.created_at,
        message_count=len(messages),
        preview=(first or "")[:_PREVIEW_CHARS] + "...",
    )


_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(summary: SessionSummary) -> datetime:
    # Unparsable timestamps sort last in newest-first order.
    try:
        return parse_instant(summary.created_at)
    except (ValueError, TypeError, OverflowError, OSError):
        return _EARLIEST
