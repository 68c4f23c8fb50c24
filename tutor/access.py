"""
Tier-based access control: per-tier limits, the user directory and a
windowed per-key rate limiter.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class AccessTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


_TIER_RANK = {AccessTier.FREE: 0, AccessTier.BASIC: 1, AccessTier.PREMIUM: 2}

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


@dataclass(frozen=True)
class TierLimits:
    max_participants: int
    max_context_items: int
    continue_context_items: int
    max_history_messages: int
    difficulties: tuple[str, ...]
    corrections: bool
    alternatives: bool
    slang: bool
    context_queries_per_minute: int
    api_requests_per_window: int
    conversation_requests_per_minute: int
    max_exercises: int


TIER_LIMITS: dict[AccessTier, TierLimits] = {
    AccessTier.FREE: TierLimits(
        max_participants=1,
        max_context_items=5,
        continue_context_items=5,
        max_history_messages=2,
        difficulties=("beginner",),
        corrections=False,
        alternatives=False,
        slang=False,
        context_queries_per_minute=2,
        api_requests_per_window=20,
        conversation_requests_per_minute=5,
        max_exercises=3,
    ),
    AccessTier.BASIC: TierLimits(
        max_participants=2,
        max_context_items=20,
        continue_context_items=10,
        max_history_messages=5,
        difficulties=("beginner", "intermediate"),
        corrections=True,
        alternatives=False,
        slang=False,
        context_queries_per_minute=5,
        api_requests_per_window=100,
        conversation_requests_per_minute=10,
        max_exercises=5,
    ),
    AccessTier.PREMIUM: TierLimits(
        max_participants=3,
        max_context_items=50,
        continue_context_items=20,
        max_history_messages=10,
        difficulties=DIFFICULTY_LEVELS,
        corrections=True,
        alternatives=True,
        slang=True,
        context_queries_per_minute=20,
        api_requests_per_window=300,
        conversation_requests_per_minute=20,
        max_exercises=10,
    ),
}


def limits_for(tier: AccessTier) -> TierLimits:
    return TIER_LIMITS[AccessTier(tier)]


def has_access(tier: AccessTier, required: AccessTier) -> bool:
    """True when ``tier`` is at least ``required`` (free < basic < premium)."""
    return _TIER_RANK[AccessTier(tier)] >= _TIER_RANK[AccessTier(required)]


@dataclass(frozen=True)
class ExerciseType:
    id: str
    name: str
    description: str
    min_tier: AccessTier


EXERCISE_TYPES: tuple[ExerciseType, ...] = (
    ExerciseType("vocabulary_matching", "Vocabulary Matching",
                 "Match Spanish words with their English translations", AccessTier.FREE),
    ExerciseType("multiple_choice", "Multiple Choice",
                 "Select the correct answer from multiple options", AccessTier.FREE),
    ExerciseType("fill_in_blank", "Fill in the Blank",
                 "Complete sentences by filling in missing words", AccessTier.BASIC),
    ExerciseType("sentence_construction", "Sentence Construction",
                 "Build correct Spanish sentences from given words", AccessTier.BASIC),
    ExerciseType("translation", "Translation Exercise",
                 "Translate full sentences between Spanish and English", AccessTier.PREMIUM),
    ExerciseType("conversation_practice", "Conversation Practice",
                 "Practice realistic conversations with feedback", AccessTier.PREMIUM),
    ExerciseType("error_correction", "Error Correction",
                 "Find and correct errors in Spanish text", AccessTier.PREMIUM),
    ExerciseType("listening_comprehension", "Listening Comprehension",
                 "Answer questions based on Spanish audio passages", AccessTier.PREMIUM),
)


def exercise_types_for(tier: AccessTier) -> list[ExerciseType]:
    return [t for t in EXERCISE_TYPES if has_access(tier, t.min_tier)]


def exercise_type_allowed(tier: AccessTier, type_id: str) -> bool:
    return any(t.id == type_id for t in exercise_types_for(tier))


def parse_user_tiers(raw: str | None) -> dict[str, AccessTier]:
    """Parse ``"alice:premium,bob:basic"`` into a user → tier mapping."""
    tiers: dict[str, AccessTier] = {}
    if not raw:
        return tiers
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        user_id, _, tier = entry.partition(":")
        try:
            tiers[user_id.strip()] = AccessTier(tier.strip().lower())
        except ValueError:
            logger.warning("Ignoring USER_TIERS entry with unknown tier: %r", entry)
    return tiers


@dataclass
class User:
    id: str
    tier: AccessTier
    name: str | None = None


class UserDirectory:
    """In-memory user → tier registry. Unknown users are treated as free tier."""

    def __init__(self, tiers: dict[str, AccessTier] | None = None):
        self._users: dict[str, User] = {
            user_id: User(id=user_id, tier=tier) for user_id, tier in (tiers or {}).items()
        }
        self._lock = threading.Lock()

    def register(self, user_id: str, tier: AccessTier = AccessTier.FREE, name: str | None = None) -> User:
        user = User(id=user_id, tier=AccessTier(tier), name=name)
        with self._lock:
            self._users[user_id] = user
        logger.info("Registered user %s with %s tier", user_id, user.tier.value)
        return user

    def update_tier(self, user_id: str, tier: AccessTier) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            user.tier = AccessTier(tier)
        logger.info("Updated user %s to %s tier", user_id, AccessTier(tier).value)
        return True

    def remove(self, user_id: str) -> bool:
        with self._lock:
            removed = self._users.pop(user_id, None) is not None
        if removed:
            logger.info("Removed user %s", user_id)
        return removed

    def get(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def tier_of(self, user_id: str) -> AccessTier:
        user = self.get(user_id)
        return user.tier if user else AccessTier.FREE


class RateLimitExceeded(Exception):
    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class RateLimiter:
    """Sliding-window request counter keyed by user or client address.

    Keys with no hits inside the window are dropped at most once per window,
    so the table only holds recently active keys.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def hit(self, key: str, limit: int) -> int:
        """Record one request for ``key``; raise RateLimitExceeded when over ``limit``.

        Returns the number of requests left in the current window.
        """
        now = self._clock()
        with self._lock:
            if now - self._last_prune >= self.window_seconds:
                self._prune_idle(now)
            # Prune old entries
            timestamps = [t for t in self._hits.get(key, ()) if now - t < self.window_seconds]
            if len(timestamps) >= limit:
                if timestamps:
                    self._hits[key] = timestamps
                else:
                    self._hits.pop(key, None)
                oldest = timestamps[0] if timestamps else now
                retry_after = self.window_seconds - (now - oldest)
                raise RateLimitExceeded(
                    "Rate limit exceeded. Try again shortly.",
                    retry_after=max(0.0, retry_after),
                )
            timestamps.append(now)
            self._hits[key] = timestamps
            return limit - len(timestamps)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def _prune_idle(self, now: float) -> None:
        idle = [k for k, ts in self._hits.items() if not ts or now - ts[-1] >= self.window_seconds]
        for k in idle:
            del self._hits[k]
        self._last_prune = now
        if idle:
            logger.debug("Dropped %d idle rate-limit keys", len(idle))
