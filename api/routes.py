"""API routes: health, user administration, context retrieval and direct queries."""

import logging
import time
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from tutor.access import AccessTier, User, limits_for
from tutor.completion import CompletionError
from tutor.context import ContextError, ContextOptions, ContextType
from tutor.library import GrammarCategory, WordCategory

from .deps import get_current_user, require_admin, require_tier
from .models import (
    AdvancedQueryRequest,
    ContextResponse,
    HealthResponse,
    QueryRequest,
    QueryResponse,
    RegisterUserRequest,
    UpdateTierRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

DEFAULT_MAX_ITEMS = 10
PREMIUM_QUERY_ITEMS = 50


# ── Health ─────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    return HealthResponse(
        status="ok",
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        timestamp=datetime.now(timezone.utc),
        active_sessions=request.app.state.conversations.session_count,
    )


# ── Users ──────────────────────────────────────────────────────────────────

@router.post("/users", status_code=201, dependencies=[Depends(require_admin)])
def register_user(req: RegisterUserRequest, request: Request):
    settings = request.app.state.settings
    user = request.app.state.users.register(req.user_id, req.tier, name=req.name)
    return {
        "message": "User registered successfully",
        "user_id": user.id,
        "tier": user.tier.value,
        "api_key": settings.global_api_key,
        "usage": "Include both x-api-key and x-user-id headers in your requests",
    }


@router.put("/users/{user_id}/tier", dependencies=[Depends(require_admin)])
def update_user_tier(user_id: str, req: UpdateTierRequest, request: Request):
    if not request.app.state.users.update_tier(user_id, req.tier):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User tier updated successfully", "user_id": user_id, "tier": req.tier.value}


# ── Context ────────────────────────────────────────────────────────────────

@router.get("/context/categories")
def context_categories(user: User = Depends(get_current_user)):
    return {
        "categories": {
            "vocabulary": [c.value for c in WordCategory if c is not WordCategory.OTHER],
            "grammar": [c.value for c in GrammarCategory if c is not GrammarCategory.OTHER],
        }
    }


def _fetch_context(request: Request, options: ContextOptions) -> str:
    try:
        return request.app.state.context_provider.get_context(options)
    except ContextError:
        logger.exception("Context retrieval failed for user=%s", options.user_id)
        raise HTTPException(status_code=500, detail="Failed to retrieve context. Please try again later.")


@router.get("/context/advanced", response_model=ContextResponse)
def advanced_context(
    request: Request,
    context_type: ContextType = Query(ContextType.MIXED, alias="type"),
    categories: list[str] = Query([]),
    difficulty_level: Literal["beginner", "intermediate", "advanced"] | None = None,
    max_items: int = Query(PREMIUM_QUERY_ITEMS, ge=1, le=50),
    search_term: str | None = Query(None, min_length=1, max_length=100),
    user: User = Depends(require_tier(AccessTier.PREMIUM)),
):
    options = ContextOptions(
        context_type=context_type,
        categories=categories,
        difficulty_level=difficulty_level,
        search_term=search_term,
        max_items=max_items,
        include_examples=True,
        access_tier=user.tier,
        user_id=user.id,
    )
    context = _fetch_context(request, options)
    return ContextResponse(
        context=context,
        metadata={"length": len(context), "tier": user.tier.value, "is_premium": True},
    )


@router.get("/context", response_model=ContextResponse)
def get_context(
    request: Request,
    context_type: Literal["vocabulary", "grammar", "mixed"] = Query("vocabulary", alias="type"),
    categories: list[str] = Query([]),
    difficulty_level: Literal["beginner", "intermediate", "advanced"] | None = None,
    max_items: int = Query(DEFAULT_MAX_ITEMS, ge=1, le=50),
    include_examples: bool = True,
    search_term: str | None = Query(None, min_length=1, max_length=100),
    user: User = Depends(get_current_user),
):
    max_allowed = limits_for(user.tier).max_context_items
    options = ContextOptions(
        context_type=ContextType(context_type),
        categories=categories,
        difficulty_level=difficulty_level,
        search_term=search_term,
        max_items=min(max_items, max_allowed),
        include_examples=include_examples,
        access_tier=user.tier,
        user_id=user.id,
    )
    context = _fetch_context(request, options)
    return ContextResponse(
        context=context,
        metadata={"length": len(context), "tier": user.tier.value, "max_allowed": max_allowed},
    )


# ── Queries ────────────────────────────────────────────────────────────────

def _answer(
    request: Request,
    req: QueryRequest,
    user: User,
    max_items: int,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    options = ContextOptions(
        context_type=ContextType(req.context_type),
        categories=req.categories,
        difficulty_level=req.difficulty_level,
        max_items=max_items,
        include_examples=req.include_examples,
        access_tier=user.tier,
        user_id=user.id,
    )
    context = _fetch_context(request, options)

    t0 = time.perf_counter()
    try:
        completion = request.app.state.completion.query_with_context(
            req.query, context, temperature=temperature, max_tokens=max_tokens,
        )
    except CompletionError:
        logger.exception("Query failed for user=%s", user.id)
        raise HTTPException(status_code=500, detail="Failed to answer query. Please try again later.")

    logger.info(
        "query user=%s tier=%s context=%d chars total=%.0fms",
        user.id, user.tier.value, len(context), (time.perf_counter() - t0) * 1000,
    )
    return completion.text


@router.post("/query", response_model=QueryResponse)
def query(req: QueryRequest, request: Request, user: User = Depends(get_current_user)):
    max_items = req.max_items or DEFAULT_MAX_ITEMS
    # Premium users get priority access to larger contexts
    if user.tier == AccessTier.PREMIUM:
        max_items = max(max_items, PREMIUM_QUERY_ITEMS)
    text = _answer(request, req, user, max_items)
    return QueryResponse(response=text, user={"tier": user.tier.value, "id": user.id})


@router.post("/query/advanced", response_model=QueryResponse)
def advanced_query(
    req: AdvancedQueryRequest,
    request: Request,
    user: User = Depends(require_tier(AccessTier.PREMIUM)),
):
    text = _answer(
        request, req, user,
        max_items=req.max_items or PREMIUM_QUERY_ITEMS,
        temperature=req.temperature,
        max_tokens=req.max_tokens,
    )
    return QueryResponse(
        response=text,
        user={"tier": user.tier.value, "id": user.id},
        advanced={"temperature": req.temperature, "max_tokens": req.max_tokens},
    )
