from types import SimpleNamespace

import pytest
from openai import OpenAIError

from tutor import completion as completion_module
from tutor.completion import (
    EMPTY_RESPONSE_TEXT,
    CompletionClient,
    CompletionError,
    build_system_prompt,
)


def _response(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5),
    )


def _client_with(create, **kwargs):
    client = CompletionClient("sk-test", **kwargs)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(completion_module.time, "sleep", sleeps.append)
    return sleeps


def test_system_prompt_wraps_context():
    prompt = build_system_prompt("# Spanish Vocabulary Reference")
    assert prompt.startswith("You are a helpful Spanish language tutor.")
    assert prompt.endswith("help answer the user's question:\n\n# Spanish Vocabulary Reference")


def test_query_with_context_sends_system_and_user_messages():
    calls = []

    def create(**params):
        calls.append(params)
        return _response("  Hola means hello.  ")

    client = _client_with(create, model="gpt-test", max_tokens=300, temperature=0.2)
    result = client.query_with_context("What does hola mean?", "ctx")

    assert result.text == "Hola means hello."
    assert result.input_tokens == 12
    assert result.output_tokens == 5
    params = calls[0]
    assert params["model"] == "gpt-test"
    assert params["max_tokens"] == 300
    assert params["temperature"] == 0.2
    assert params["messages"][0] == {"role": "system", "content": build_system_prompt("ctx")}
    assert params["messages"][1] == {"role": "user", "content": "What does hola mean?"}


def test_per_call_overrides():
    calls = []

    def create(**params):
        calls.append(params)
        return _response("ok")

    client = _client_with(create)
    client.query_with_context("q", "ctx", temperature=0.0, max_tokens=2000)
    assert calls[0]["temperature"] == 0.0
    assert calls[0]["max_tokens"] == 2000


def test_empty_reply_gets_placeholder():
    client = _client_with(lambda **_: _response(None))
    assert client.query_with_context("q", "ctx").text == EMPTY_RESPONSE_TEXT


def test_retries_then_succeeds(no_sleep):
    attempts = {"n": 0}

    def create(**params):
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise OpenAIError("temporarily unavailable")
        return _response("¡Listo!")

    client = _client_with(create)
    assert client.query_with_context("q", "ctx").text == "¡Listo!"
    assert no_sleep == [2, 4]


def test_gives_up_after_retries(no_sleep):
    def create(**params):
        raise OpenAIError("down")

    client = _client_with(create, retries=2)
    with pytest.raises(CompletionError):
        client.query_with_context("q", "ctx")
    assert no_sleep == [2]
