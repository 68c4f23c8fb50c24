"""Exercise generation routes, gated by tier."""

import logging
import secrets
import time

from fastapi import APIRouter, Depends, HTTPException, Request

from tutor.access import User, exercise_type_allowed, exercise_types_for, limits_for
from tutor.completion import CompletionError
from tutor.context import ContextError, ContextOptions, ContextType
from tutor.prompts import exercise_prompt, parse_exercise_reply

from .deps import get_current_user
from .models import ExerciseSetResponse, GenerateExerciseRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exercise")


def _exercise_set_id() -> str:
    return f"ex_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


@router.get("/types")
def exercise_types(user: User = Depends(get_current_user)):
    return {
        "exercise_types": [
            {"id": t.id, "name": t.name, "description": t.description, "min_tier": t.min_tier.value}
            for t in exercise_types_for(user.tier)
        ],
        "tier": user.tier.value,
    }


@router.post("/generate", response_model=ExerciseSetResponse)
def generate_exercises(
    req: GenerateExerciseRequest,
    request: Request,
    user: User = Depends(get_current_user),
):
    if not exercise_type_allowed(user.tier, req.type):
        raise HTTPException(
            status_code=403,
            detail=f'The exercise type "{req.type}" is not available for your {user.tier.value} subscription tier',
        )

    count = min(req.count, limits_for(user.tier).max_exercises)
    options = ContextOptions(
        context_type=ContextType.EXERCISE,
        categories=[req.focus_area] if req.focus_area else [],
        difficulty_level=req.difficulty_level,
        max_items=count,
        include_examples=True,
        include_exercises=True,
        access_tier=user.tier,
        user_id=user.id,
    )
    prompt = exercise_prompt(
        req.type, count, req.difficulty_level,
        focus_area=req.focus_area,
        vocabulary=req.specific_vocabulary,
        grammar=req.specific_grammar,
    )

    t0 = time.perf_counter()
    try:
        context = request.app.state.context_provider.get_context(options)
        reply = request.app.state.completion.query_with_context(prompt, context)
    except (ContextError, CompletionError):
        logger.exception("Error generating exercises for user=%s", user.id)
        raise HTTPException(status_code=500, detail="Failed to generate exercises. Please try again later.")

    try:
        exercises = parse_exercise_reply(reply.text)
    except ValueError:
        logger.error("Unparsable exercise reply for user=%s: %.200s", user.id, reply.text)
        raise HTTPException(
            status_code=500,
            detail="Failed to generate exercises. The server returned an invalid format.",
        )

    logger.info(
        "exercises user=%s tier=%s type=%s count=%d total=%.0fms",
        user.id, user.tier.value, req.type, count, (time.perf_counter() - t0) * 1000,
    )
    return ExerciseSetResponse(
        exercise_set_id=_exercise_set_id(),
        exercises=exercises,
        metadata={
            "type": req.type,
            "difficulty_level": req.difficulty_level,
            "count": count,
            "time_limit": req.time_limit,
            "tier": user.tier.value,
        },
    )
