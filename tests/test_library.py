import json

import pytest

from tutor.library import Library


@pytest.fixture
def library():
    return Library.sample()


def test_sample_library_contents(library):
    assert len(library) == 6
    words = [i.word for i in library.vocabulary(limit=10).items]
    assert words == ["hola", "adiós", "gracias", "hablar"]


def test_vocabulary_filters(library):
    assert [i.word for i in library.vocabulary(category="verb").items] == ["hablar"]
    assert library.vocabulary(difficulty_level="advanced").total == 0
    assert [i.word for i in library.vocabulary(search_term="THANK").items] == ["gracias"]


def test_vocabulary_paging(library):
    page = library.vocabulary(limit=2, offset=1)
    assert [i.word for i in page.items] == ["adiós", "gracias"]
    assert page.total == 4
    assert page.has_more
    assert not library.vocabulary(limit=2, offset=2).has_more


def test_grammar_filters(library):
    assert [r.title for r in library.grammar(category="adjectives").items] == ["Gender Agreement"]
    assert library.grammar(search_term="-ar verbs").items[0].category == "verb_tense"
    assert library.grammar(limit=1).has_more


def test_load_accepts_camel_and_snake_case(tmp_path):
    data = {
        "vocabulary": [
            {
                "word": "comer",
                "translation": "to eat",
                "category": "verb",
                "difficultyLevel": "beginner",
                "usageExamples": [{"spanish": "Quiero comer.", "english": "I want to eat."}],
            },
            {"word": "broken"},
        ],
        "grammar": [
            {
                "title": "Preterite",
                "category": "verb_tense",
                "explanation": "Completed past actions.",
                "difficulty_level": "intermediate",
                "exercise_templates": [{"title": "Fill in", "instructions": "Conjugate the verb."}],
            },
        ],
    }
    path = tmp_path / "library.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    library = Library.load(path)
    assert len(library) == 2
    item = library.vocabulary().items[0]
    assert item.usage_examples[0].english == "I want to eat."
    rule = library.grammar().items[0]
    assert rule.exercise_templates[0].difficulty == "intermediate"


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Library.load(tmp_path / "nope.json")
