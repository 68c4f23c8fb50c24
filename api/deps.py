"""Request dependencies: API-key authentication, tier checks and rate limits."""

import logging

from fastapi import Depends, Header, HTTPException, Request

from tutor.access import AccessTier, User, has_access, limits_for

logger = logging.getLogger(__name__)

ADMIN_REQUESTS_PER_MINUTE = 5


def _enforce_rate_limit(request: Request, limiter_name: str, key: str, limit: int) -> None:
    if not request.app.state.settings.rate_limits_enabled:
        return
    limiter = getattr(request.app.state, limiter_name)
    # RateLimitExceeded is turned into a 429 by the app-level handler.
    limiter.hit(key, limit)


def get_current_user(
    request: Request,
    x_api_key: str | None = Header(None),
    x_user_id: str | None = Header(None),
) -> User:
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user ID")
    if x_api_key != request.app.state.settings.global_api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")

    users = request.app.state.users
    user = users.get(x_user_id) or User(id=x_user_id, tier=users.tier_of(x_user_id))

    _enforce_rate_limit(
        request, "api_limiter", user.id, limits_for(user.tier).api_requests_per_window,
    )
    return user


def conversation_user(request: Request, user: User = Depends(get_current_user)) -> User:
    _enforce_rate_limit(
        request, "conversation_limiter", user.id,
        limits_for(user.tier).conversation_requests_per_minute,
    )
    return user


def require_tier(required: AccessTier):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_access(user.tier, required):
            raise HTTPException(
                status_code=403,
                detail=f"This endpoint requires {required.value} tier access",
            )
        return user

    return dependency


def require_admin(request: Request, x_admin_key: str | None = Header(None)) -> None:
    client_ip = request.client.host if request.client else "unknown"
    _enforce_rate_limit(request, "admin_limiter", client_ip, ADMIN_REQUESTS_PER_MINUTE)

    admin_key = request.app.state.settings.admin_api_key
    if not admin_key or x_admin_key != admin_key:
        logger.warning("Rejected admin request from %s", client_ip)
        raise HTTPException(status_code=403, detail="Admin API key required")
