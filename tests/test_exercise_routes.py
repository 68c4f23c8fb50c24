from conftest import auth_headers

TYPES = "/api/exercise/types"
GENERATE = "/api/exercise/generate"

EXERCISES_JSON = '{"exercises": [{"id": "1", "instruction": "Match", "answer": "hello"}]}'


def _generate(client, user="alice", **overrides):
    body = {"type": "vocabulary_matching", "difficulty_level": "beginner", "count": 2}
    body.update(overrides)
    return client.post(GENERATE, json=body, headers=auth_headers(user))


def test_types_follow_tier(client):
    resp = client.get(TYPES, headers=auth_headers("alice"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["tier"] == "free"
    assert [t["id"] for t in body["exercise_types"]] == ["vocabulary_matching", "multiple_choice"]

    assert len(client.get(TYPES, headers=auth_headers("bob")).json()["exercise_types"]) == 4
    premium = client.get(TYPES, headers=auth_headers("carol")).json()["exercise_types"]
    assert len(premium) == 8
    assert {"id", "name", "description", "min_tier"} <= set(premium[0])


def test_types_require_auth(client):
    assert client.get(TYPES).status_code == 401


def test_generate_parses_fenced_reply(client, completion):
    completion.reply = "Here you go:\n```json\n" + EXERCISES_JSON + "\n```\n¡Suerte!"
    resp = _generate(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["exercise_set_id"].startswith("ex_")
    assert body["exercises"] == [{"id": "1", "instruction": "Match", "answer": "hello"}]
    assert body["metadata"] == {
        "type": "vocabulary_matching",
        "difficulty_level": "beginner",
        "count": 2,
        "time_limit": None,
        "tier": "free",
    }

    prompt = completion.calls[-1]["user_message"]
    assert 'Generate 2 Spanish language exercises of type "vocabulary_matching"' in prompt
    assert "valid JSON object" in prompt


def test_generate_parses_object_inside_prose(client, completion):
    completion.reply = "Claro. " + EXERCISES_JSON + " Espero que te sirva."
    resp = _generate(client)
    assert resp.status_code == 200
    assert resp.json()["exercises"][0]["id"] == "1"


def test_generate_ids_are_unique(client, completion):
    completion.reply = EXERCISES_JSON
    ids = {_generate(client).json()["exercise_set_id"] for _ in range(5)}
    assert len(ids) == 5


def test_generate_rejects_type_above_tier(client):
    resp = _generate(client, user="bob", type="translation")
    assert resp.status_code == 403
    assert resp.json()["detail"] == (
        'The exercise type "translation" is not available for your basic subscription tier'
    )
    assert _generate(client, user="alice", type="fill_in_blank").status_code == 403


def test_generate_caps_count_by_tier(client, completion):
    completion.reply = EXERCISES_JSON
    assert _generate(client, user="alice", count=10).json()["metadata"]["count"] == 3
    assert 'Generate 3 Spanish' in completion.calls[-1]["user_message"]
    assert _generate(client, user="bob", count=10).json()["metadata"]["count"] == 5
    assert _generate(client, user="carol", count=10).json()["metadata"]["count"] == 10


def test_generate_validation(client):
    assert _generate(client, type="crossword").status_code == 422
    assert _generate(client, count=0).status_code == 422
    assert _generate(client, count=11).status_code == 422
    assert _generate(client, difficulty_level="expert").status_code == 422
    assert _generate(client, specific_grammar=["a", "b", "c", "d", "e", "f"]).status_code == 422


def test_generate_invalid_reply_is_500(client, completion):
    completion.reply = "Lo siento, no puedo generar ejercicios ahora."
    resp = _generate(client)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to generate exercises. The server returned an invalid format."


def test_generate_completion_failure_is_500(client, completion):
    completion.fail = True
    resp = _generate(client)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to generate exercises. Please try again later."


def test_premium_context_carries_exercise_templates(client, completion):
    completion.reply = EXERCISES_JSON
    resp = _generate(
        client, user="carol", type="translation",
        focus_area="verb_tense", specific_vocabulary=["hablar"], specific_grammar=["present tense"],
    )
    assert resp.status_code == 200

    call = completion.calls[-1]
    assert call["context"].startswith("# Spanish Grammar Reference")
    assert "**Exercises:**" in call["context"]
    assert "Conjugate -ar verbs" in call["context"]
    assert 'focusing on "verb_tense"' in call["user_message"]
    assert "Include these specific vocabulary words: hablar" in call["user_message"]
    assert "Include these specific grammar concepts: present tense" in call["user_message"]


def test_free_context_is_vocabulary_only(client, completion):
    completion.reply = EXERCISES_JSON
    _generate(client, focus_area="greeting")
    context = completion.calls[-1]["context"]
    assert context.startswith("# Spanish Vocabulary Reference")
    assert "**Exercises:**" not in context
    assert "hablar" not in context
