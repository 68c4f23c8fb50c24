"""FastAPI application for the Spanish tutor API."""

import logging
import math
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutor.access import RateLimiter, RateLimitExceeded, UserDirectory
from tutor.completion import CompletionClient
from tutor.config import Settings, get_settings
from tutor.context import ContextProvider
from tutor.library import Library
from tutor.service import ConversationService
from tutor.session_store import Clock, utc_now

from .conversation_routes import router as conversation_router
from .exercise_routes import router as exercise_router
from .routes import router

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)

API_WINDOW_SECONDS = 15 * 60
MINUTE = 60


def _load_library(settings: Settings) -> Library:
    if settings.library_path:
        logger.info("Loading library from %s...", settings.library_path)
        return Library.load(settings.library_path)
    logger.info("No LIBRARY_PATH set, using built-in sample library")
    return Library.sample()


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=429,
        content={"detail": str(exc)},
        headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
    )


def create_app(
    settings: Settings | None = None,
    *,
    completion=None,
    library: Library | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        lib = library if library is not None else _load_library(settings)
        app.state.settings = settings
        app.state.context_provider = ContextProvider(
            lib,
            enable_caching=settings.enable_context_cache,
            cache_ttl=settings.context_cache_ttl_seconds,
            rate_limits_enabled=settings.rate_limits_enabled,
        )
        if completion is not None:
            app.state.completion = completion
        else:
            if not settings.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY is not set")
            app.state.completion = CompletionClient(
                settings.openai_api_key,
                model=settings.llm_model,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
            )
        app.state.users = UserDirectory(settings.user_tiers)
        app.state.api_limiter = RateLimiter(API_WINDOW_SECONDS)
        app.state.conversation_limiter = RateLimiter(MINUTE)
        app.state.admin_limiter = RateLimiter(MINUTE)

        service = ConversationService(
            max_age=settings.session_max_age,
            sweep_interval=settings.sweep_interval,
            clock=clock or utc_now,
        )
        app.state.conversations = service
        app.state.started_at = time.monotonic()

        service.start()
        logger.info("Ready: %d library records, model=%s", len(lib), settings.llm_model)
        try:
            yield
        finally:
            service.shutdown()

    app = FastAPI(title="Spanish Tutor API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    app.include_router(router)
    app.include_router(conversation_router)
    app.include_router(exercise_router)
    return app


app = create_app()
