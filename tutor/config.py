"""Application settings loaded from environment variables (and ``.env``)."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache

from dotenv import load_dotenv

from .access import AccessTier, parse_user_tiers

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7
    global_api_key: str = "default-api-key"
    admin_api_key: str | None = None
    user_tiers: dict[str, AccessTier] = field(default_factory=dict)
    library_path: str | None = None
    session_max_age_seconds: int = 7 * 24 * 60 * 60
    sweep_interval_seconds: int = 60 * 60
    context_cache_ttl_seconds: int = 15 * 60
    enable_context_cache: bool = True
    rate_limits_enabled: bool = True
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])

    @property
    def session_max_age(self) -> timedelta:
        return timedelta(seconds=self.session_max_age_seconds)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(seconds=self.sweep_interval_seconds)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "http://localhost:5173")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000")),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            global_api_key=os.getenv("GLOBAL_API_KEY", "default-api-key"),
            admin_api_key=os.getenv("ADMIN_API_KEY") or None,
            user_tiers=parse_user_tiers(os.getenv("USER_TIERS")),
            library_path=os.getenv("LIBRARY_PATH") or None,
            session_max_age_seconds=int(os.getenv("SESSION_MAX_AGE_SECONDS", str(7 * 24 * 60 * 60))),
            sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600")),
            context_cache_ttl_seconds=int(os.getenv("CONTEXT_CACHE_TTL_SECONDS", "900")),
            enable_context_cache=_env_bool("ENABLE_CONTEXT_CACHE", True),
            rate_limits_enabled=_env_bool("RATE_LIMITS_ENABLED", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
