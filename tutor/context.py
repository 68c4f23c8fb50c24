"""
Context provider: turns library records into markdown reference material
for the tutor prompt.

Applies tier restrictions to every request, enforces a per-user query
budget and caches formatted context for a configurable TTL.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

from .access import AccessTier, RateLimiter, RateLimitExceeded, limits_for
from .library import GrammarRule, Library, VocabularyItem

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 15 * 60
_CACHE_MAX_SIZE = 256
_QUERY_WINDOW_SECONDS = 60.0


class ContextType(str, Enum):
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    MIXED = "mixed"
    CONVERSATION = "conversation"
    EXERCISE = "exercise"


class ContextError(Exception):
    """Raised when context cannot be built from the library."""


@dataclass
class ContextOptions:
    context_type: ContextType = ContextType.VOCABULARY
    categories: list[str] = field(default_factory=list)
    difficulty_level: str | None = None
    search_term: str | None = None
    max_items: int = 10
    include_examples: bool = True
    access_tier: AccessTier = AccessTier.FREE
    user_id: str | None = None
    disable_cache: bool = False
    include_exercises: bool = False

    def cache_key(self) -> str:
        return ":".join([
            "context",
            ContextType(self.context_type).value,
            AccessTier(self.access_tier).value,
            ",".join(sorted(self.categories)),
            self.difficulty_level or "all",
            self.search_term or "all",
            str(self.max_items),
            "1" if self.include_examples else "0",
            "1" if self.include_exercises else "0",
        ])

    def apply_tier_restrictions(self) -> "ContextOptions":
        cap = limits_for(self.access_tier).max_context_items
        if self.max_items > cap:
            self.max_items = cap
            logger.debug("maxItems limited to %d for %s tier", cap, AccessTier(self.access_tier).value)
        if self.access_tier == AccessTier.FREE:
            self.include_exercises = False
        return self


class ContextProvider:
    def __init__(
        self,
        library: Library,
        *,
        enable_caching: bool = True,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        rate_limits_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.library = library
        self.enable_caching = enable_caching
        self.cache_ttl = cache_ttl
        self.rate_limits_enabled = rate_limits_enabled
        self._clock = clock
        self._cache: OrderedDict[str, tuple[float, str]] = OrderedDict()
        self._cache_lock = threading.Lock()
        self._query_limiter = RateLimiter(_QUERY_WINDOW_SECONDS, clock=clock)

    def get_context(self, options: ContextOptions) -> str:
        t0 = time.perf_counter()
        options.apply_tier_restrictions()

        if options.user_id and self.rate_limits_enabled:
            limit = limits_for(options.access_tier).context_queries_per_minute
            try:
                self._query_limiter.hit(f"{options.user_id}:query", limit)
            except RateLimitExceeded:
                logger.warning(
                    "Context rate limit exceeded user=%s tier=%s limit=%d",
                    options.user_id, AccessTier(options.access_tier).value, limit,
                )
                raise

        use_cache = self.enable_caching and not options.disable_cache
        key = options.cache_key()
        if use_cache:
            cached = self._cache_get(key)
            if cached is not None:
                logger.debug("Context cache hit %s", key)
                return cached

        try:
            context = "\n\n".join(self._build_parts(options))
        except Exception as e:
            logger.exception("Error generating %s context", ContextType(options.context_type).value)
            raise ContextError(f"Failed to generate context: {e}") from e

        if use_cache:
            self._cache_put(key, context)

        logger.debug(
            "Generated %s context: %d chars in %.1fms",
            ContextType(options.context_type).value, len(context), (time.perf_counter() - t0) * 1000,
        )
        return context

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def _build_parts(self, options: ContextOptions) -> list[str]:
        ctype = ContextType(options.context_type)
        if ctype == ContextType.GRAMMAR:
            return [self._grammar_context(options)]
        if ctype == ContextType.MIXED:
            return [self._vocabulary_context(options), self._grammar_context(options)]
        if ctype == ContextType.CONVERSATION:
            if options.access_tier == AccessTier.FREE:
                logger.warning("Free tier requested conversation context; serving vocabulary")
                return [self._vocabulary_context(options)]
            return [CONVERSATION_TEMPLATES_NOTICE]
        if ctype == ContextType.EXERCISE:
            if options.access_tier != AccessTier.PREMIUM:
                logger.warning(
                    "%s tier requested exercise context; serving vocabulary",
                    AccessTier(options.access_tier).value,
                )
                return [self._vocabulary_context(options)]
            with_exercises = replace(options, include_exercises=True)
            return [self._grammar_context(with_exercises), self._vocabulary_context(options)]
        return [self._vocabulary_context(options)]

    def _vocabulary_context(self, options: ContextOptions) -> str:
        items: list[VocabularyItem] = []
        for category in options.categories or [None]:
            remaining = options.max_items - len(items)
            if remaining <= 0:
                break
            page = self.library.vocabulary(
                category=category,
                difficulty_level=options.difficulty_level,
                search_term=options.search_term,
                limit=remaining,
            )
            items.extend(page.items)
        return format_vocabulary(items, include_examples=options.include_examples)

    def _grammar_context(self, options: ContextOptions) -> str:
        items: list[GrammarRule] = []
        for category in options.categories or [None]:
            remaining = options.max_items - len(items)
            if remaining <= 0:
                break
            page = self.library.grammar(
                category=category,
                difficulty_level=options.difficulty_level,
                search_term=options.search_term,
                limit=remaining,
            )
            items.extend(page.items)
        return format_grammar(
            items,
            include_examples=options.include_examples,
            include_exercises=options.include_exercises,
        )

    def _cache_get(self, key: str) -> str | None:
        now = self._clock()
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return value

    def _cache_put(self, key: str, value: str) -> None:
        with self._cache_lock:
            self._cache[key] = (self._clock() + self.cache_ttl, value)
            self._cache.move_to_end(key)
            if len(self._cache) > _CACHE_MAX_SIZE:
                self._cache.popitem(last=False)


# ── Formatting ──────────────────────────────────────────────────────────────

CONVERSATION_TEMPLATES_NOTICE = (
    "# Spanish Conversation Templates\n\n"
    "Conversation templates are only available for Basic and Premium tier users."
)


def _capitalize(s: str) -> str:
    return s[:1].upper() + s[1:]


def format_category(category: str) -> str:
    """``verb_tense`` → ``Verb Tense``."""
    return " ".join(_capitalize(word) for word in category.split("_"))


def _group_by_category(items):
    groups: dict[str, list] = {}
    for item in items:
        groups.setdefault(item.category, []).append(item)
    return groups


def _format_examples(examples) -> list[str]:
    lines = []
    for ex in examples:
        lines.append(f"- Spanish: {ex.spanish}\n")
        lines.append(f"  English: {ex.english}\n")
        if ex.explanation:
            lines.append(f"  Explanation: {ex.explanation}\n")
        lines.append("\n")
    return lines


def format_vocabulary(items: list[VocabularyItem], include_examples: bool = True) -> str:
    if not items:
        return "No vocabulary items found."

    parts = ["# Spanish Vocabulary Reference\n\n"]
    for category, group in _group_by_category(items).items():
        parts.append(f"## {_capitalize(category)}\n\n")
        for item in group:
            parts.append(f"### {item.word}\n")
            parts.append(f"- **Translation:** {item.translation}\n")
            parts.append(f"- **Difficulty:** {item.difficulty_level}\n")
            if item.notes:
                parts.append(f"- **Notes:** {item.notes}\n")
            if include_examples and item.usage_examples:
                parts.append("\n**Examples:**\n")
                parts.extend(_format_examples(item.usage_examples))
            parts.append("\n")
    return "".join(parts)


def format_grammar(
    items: list[GrammarRule],
    include_examples: bool = True,
    include_exercises: bool = False,
) -> str:
    if not items:
        return "No grammar rules found."

    parts = ["# Spanish Grammar Reference\n\n"]
    for category, group in _group_by_category(items).items():
        parts.append(f"## {format_category(category)}\n\n")
        for rule in group:
            parts.append(f"### {rule.title}\n")
            parts.append(f"- **Difficulty:** {rule.difficulty_level}\n\n")
            parts.append(f"{rule.explanation}\n\n")
            if include_examples and rule.examples:
                parts.append("**Examples:**\n")
                parts.extend(_format_examples(rule.examples))
            if include_exercises and rule.exercise_templates:
                parts.append("**Exercises:**\n")
                for exercise in rule.exercise_templates:
                    parts.append(f"- {exercise.title}: {exercise.instructions}\n")
                parts.append("\n")
            if rule.tags:
                parts.append(f"**Tags:** {', '.join(rule.tags)}\n\n")
    return "".join(parts)
