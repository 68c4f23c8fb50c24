"""
Spanish vocabulary and grammar library.

Stands in for the document database: records are held in memory and queried
with exact-match filters, a free-text search term and offset/limit paging.
Records can be loaded from a JSON file shaped as
``{"vocabulary": [...], "grammar": [...]}``; keys may be camelCase or
snake_case. Malformed records are skipped.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WordCategory(str, Enum):
    NOUN = "noun"
    VERB = "verb"
    ADJECTIVE = "adjective"
    ADVERB = "adverb"
    PREPOSITION = "preposition"
    CONJUNCTION = "conjunction"
    PRONOUN = "pronoun"
    INTERJECTION = "interjection"
    ARTICLE = "article"
    OTHER = "other"


class GrammarCategory(str, Enum):
    VERB_TENSE = "verb_tense"
    VERB_CONJUGATION = "verb_conjugation"
    PRONOUNS = "pronouns"
    ARTICLES = "articles"
    PREPOSITIONS = "prepositions"
    ADJECTIVES = "adjectives"
    ADVERBS = "adverbs"
    SENTENCE_STRUCTURE = "sentence_structure"
    QUESTIONS = "questions"
    NEGATION = "negation"
    OTHER = "other"


# ── Records ─────────────────────────────────────────────────────────────────

@dataclass
class UsageExample:
    spanish: str
    english: str
    explanation: str | None = None


@dataclass
class VocabularyItem:
    word: str
    translation: str
    category: str
    difficulty_level: str
    notes: str | None = None
    usage_examples: list[UsageExample] = field(default_factory=list)


@dataclass
class ExerciseTemplate:
    title: str
    instructions: str
    difficulty: str
    examples: list[str] = field(default_factory=list)


@dataclass
class GrammarRule:
    title: str
    category: str
    explanation: str
    difficulty_level: str
    examples: list[UsageExample] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    related_vocabulary: list[str] = field(default_factory=list)
    exercise_templates: list[ExerciseTemplate] = field(default_factory=list)


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


# ── Library ─────────────────────────────────────────────────────────────────

class Library:
    def __init__(
        self,
        vocabulary: list[VocabularyItem] | None = None,
        grammar: list[GrammarRule] | None = None,
    ):
        self._vocabulary = list(vocabulary or [])
        self._grammar = list(grammar or [])

    def __len__(self) -> int:
        return len(self._vocabulary) + len(self._grammar)

    def vocabulary(
        self,
        category: str | None = None,
        difficulty_level: str | None = None,
        search_term: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Page[VocabularyItem]:
        items = self._vocabulary
        if category:
            items = [i for i in items if i.category == category]
        if difficulty_level:
            items = [i for i in items if i.difficulty_level == difficulty_level]
        if search_term:
            term = search_term.lower()
            items = [
                i for i in items
                if term in i.word.lower() or term in i.translation.lower()
            ]
        return _paginate(items, limit, offset)

    def grammar(
        self,
        category: str | None = None,
        difficulty_level: str | None = None,
        search_term: str | None = None,
        limit: int = 5,
        offset: int = 0,
    ) -> Page[GrammarRule]:
        items = self._grammar
        if category:
            items = [i for i in items if i.category == category]
        if difficulty_level:
            items = [i for i in items if i.difficulty_level == difficulty_level]
        if search_term:
            term = search_term.lower()
            items = [
                i for i in items
                if term in i.title.lower() or term in i.explanation.lower()
            ]
        return _paginate(items, limit, offset)

    @classmethod
    def load(cls, path: str | Path) -> "Library":
        """Load records from a JSON file, skipping malformed entries."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Library file not found: {path}")

        raw = json.loads(path.read_text(encoding="utf-8"))
        library = cls()

        for i, entry in enumerate(raw.get("vocabulary") or []):
            try:
                library._vocabulary.append(_vocabulary_from_dict(entry))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping vocabulary record %d: %s", i, e)

        for i, entry in enumerate(raw.get("grammar") or []):
            try:
                library._grammar.append(_grammar_from_dict(entry))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping grammar record %d: %s", i, e)

        logger.info(
            "Loaded %d vocabulary items and %d grammar rules from %s",
            len(library._vocabulary), len(library._grammar), path,
        )
        return library

    @classmethod
    def sample(cls) -> "Library":
        return cls(vocabulary=list(SAMPLE_VOCABULARY), grammar=list(SAMPLE_GRAMMAR))


# ── Helpers ─────────────────────────────────────────────────────────────────

def _paginate(items: list[T], limit: int, offset: int) -> Page[T]:
    offset = max(0, offset)
    limit = max(0, limit)
    return Page(items=items[offset:offset + limit], total=len(items), limit=limit, offset=offset)


def _pick(d: dict, snake: str, camel: str, default=None):
    if snake in d:
        return d[snake]
    return d.get(camel, default)


def _example_from_dict(d: dict) -> UsageExample:
    return UsageExample(
        spanish=d["spanish"],
        english=d["english"],
        explanation=d.get("explanation"),
    )


def _vocabulary_from_dict(d: dict) -> VocabularyItem:
    difficulty = _pick(d, "difficulty_level", "difficultyLevel")
    if difficulty is None:
        raise KeyError("difficulty_level")
    return VocabularyItem(
        word=d["word"],
        translation=d["translation"],
        category=d["category"],
        difficulty_level=difficulty,
        notes=d.get("notes"),
        usage_examples=[
            _example_from_dict(e) for e in (_pick(d, "usage_examples", "usageExamples") or [])
        ],
    )


def _grammar_from_dict(d: dict) -> GrammarRule:
    difficulty = _pick(d, "difficulty_level", "difficultyLevel")
    if difficulty is None:
        raise KeyError("difficulty_level")
    templates = _pick(d, "exercise_templates", "exerciseTemplates") or []
    return GrammarRule(
        title=d["title"],
        category=d["category"],
        explanation=d["explanation"],
        difficulty_level=difficulty,
        examples=[_example_from_dict(e) for e in d.get("examples") or []],
        tags=list(d.get("tags") or []),
        related_vocabulary=list(_pick(d, "related_vocabulary", "relatedVocabulary") or []),
        exercise_templates=[
            ExerciseTemplate(
                title=t["title"],
                instructions=t["instructions"],
                difficulty=t.get("difficulty", difficulty),
                examples=list(t.get("examples") or []),
            )
            for t in templates
        ],
    )


# ── Sample data ─────────────────────────────────────────────────────────────

SAMPLE_VOCABULARY = [
    VocabularyItem(
        word="hola",
        translation="hello",
        category="greeting",
        difficulty_level="beginner",
        usage_examples=[
            UsageExample(spanish="¡Hola! ¿Cómo estás?", english="Hello! How are you?"),
            UsageExample(spanish="Hola a todos.", english="Hello everyone."),
        ],
    ),
    VocabularyItem(
        word="adiós",
        translation="goodbye",
        category="greeting",
        difficulty_level="beginner",
        usage_examples=[
            UsageExample(spanish="Adiós, hasta mañana.", english="Goodbye, see you tomorrow."),
            UsageExample(spanish="Le dije adiós a mi amigo.", english="I said goodbye to my friend."),
        ],
    ),
    VocabularyItem(
        word="gracias",
        translation="thank you",
        category="greeting",
        difficulty_level="beginner",
        usage_examples=[
            UsageExample(spanish="Muchas gracias por tu ayuda.", english="Thank you very much for your help."),
            UsageExample(spanish="Gracias por venir.", english="Thank you for coming."),
        ],
    ),
    VocabularyItem(
        word="hablar",
        translation="to speak",
        category="verb",
        difficulty_level="beginner",
        usage_examples=[
            UsageExample(spanish="Me gusta hablar español.", english="I like to speak Spanish."),
            UsageExample(spanish="¿Puedes hablar más despacio?", english="Can you speak more slowly?"),
        ],
    ),
]

SAMPLE_GRAMMAR = [
    GrammarRule(
        title="Present Tense Conjugation",
        category="verb_tense",
        difficulty_level="beginner",
        explanation=(
            "In Spanish, verbs in the present tense change their endings based on the subject. "
            "Regular -ar verbs follow a pattern: -o, -as, -a, -amos, -áis, -an."
        ),
        examples=[
            UsageExample(spanish="Yo hablo español.", english="I speak Spanish."),
            UsageExample(spanish="Tú hablas muy rápido.", english="You speak very fast."),
            UsageExample(spanish="Ella habla tres idiomas.", english="She speaks three languages."),
        ],
        tags=["verbs", "present tense", "conjugation"],
        exercise_templates=[
            ExerciseTemplate(
                title="Conjugate -ar verbs",
                instructions="Fill in the present tense form of the verb in parentheses.",
                difficulty="beginner",
                examples=["Nosotros ___ (hablar) español.", "Tú ___ (cantar) muy bien."],
            ),
        ],
    ),
    GrammarRule(
        title="Gender Agreement",
        category="adjectives",
        difficulty_level="beginner",
        explanation=(
            "In Spanish, adjectives must agree in gender and number with the nouns they modify. "
            "Masculine adjectives typically end in -o, while feminine adjectives end in -a."
        ),
        examples=[
            UsageExample(spanish="El libro rojo", english="The red book"),
            UsageExample(spanish="La casa roja", english="The red house"),
            UsageExample(spanish="Los libros rojos", english="The red books"),
        ],
        tags=["adjectives", "gender", "agreement"],
    ),
]
