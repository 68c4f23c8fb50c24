"""
Shared pytest configuration and fixtures.

Puts the project root on sys.path so `import api` and `import tutor` work
consistently, and provides a controllable clock, a fake completion client
and an app/client pair wired with both.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fastapi.testclient import TestClient  # noqa: E402

from api.main import create_app  # noqa: E402
from tutor.access import AccessTier  # noqa: E402
from tutor.completion import Completion, CompletionError  # noqa: E402
from tutor.config import Settings  # noqa: E402
from tutor.library import Library  # noqa: E402

API_KEY = "test-api-key"
ADMIN_KEY = "test-admin-key"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCompletion:
    """Records prompts and replies with canned text instead of calling the API."""

    def __init__(self, reply: str = "¡Hola! ¿Qué te gustaría comer hoy?"):
        self.reply = reply
        self.calls: list[dict] = []
        self.fail = False

    def query_with_context(self, user_message, context, *, temperature=None, max_tokens=None):
        self.calls.append({
            "user_message": user_message,
            "context": context,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.fail:
            raise CompletionError("model unavailable")
        return Completion(
            text=self.reply, model="fake", input_tokens=0, output_tokens=0, elapsed_ms=0.0,
        )


def auth_headers(user_id: str = "alice") -> dict[str, str]:
    return {"x-api-key": API_KEY, "x-user-id": user_id}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


def make_settings(**overrides) -> Settings:
    values = dict(
        openai_api_key=None,
        global_api_key=API_KEY,
        admin_api_key=ADMIN_KEY,
        user_tiers={
            "alice": AccessTier.FREE,
            "bob": AccessTier.BASIC,
            "carol": AccessTier.PREMIUM,
        },
        rate_limits_enabled=False,
        enable_context_cache=True,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(settings, completion, clock):
    app = create_app(settings, completion=completion, library=Library.sample(), clock=clock)
    with TestClient(app) as c:
        yield c
