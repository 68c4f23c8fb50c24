"""Conversation practice routes with tiered access control."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request

from tutor.access import AccessTier, User, has_access, limits_for
from tutor.completion import CompletionError
from tutor.context import ContextError, ContextOptions, ContextType
from tutor.prompts import (
    continue_prompt,
    correction_extras,
    render_history,
    start_prompt,
    topics_for_tier,
)
from tutor.session_store import ConversationConfig, Message, Session, utc_now

from .deps import conversation_user
from .models import (
    ContinueConversationRequest,
    ContinueConversationResponse,
    ConversationDetail,
    ConversationDetailResponse,
    ConversationHistoryResponse,
    ConversationInfo,
    ConversationSummaryResponse,
    DeleteConversationResponse,
    MessageResponse,
    StartConversationRequest,
    StartConversationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversation")


def _owned_session(request: Request, conversation_id: str, user: User) -> Session:
    session = request.app.state.conversations.get_session(conversation_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if session.owner_id != user.id:
        raise HTTPException(status_code=403, detail="You do not have access to this conversation")
    return session


@router.get("/topics")
def list_topics(user: User = Depends(conversation_user)):
    return {"topics": topics_for_tier(user.tier), "tier": user.tier.value}


@router.post("/start", response_model=StartConversationResponse)
def start_conversation(
    req: StartConversationRequest,
    request: Request,
    user: User = Depends(conversation_user),
):
    limits = limits_for(user.tier)
    if req.difficulty_level not in limits.difficulties:
        raise HTTPException(
            status_code=403,
            detail=(
                f"{user.tier.value.capitalize()} tier users can only access "
                f"{' and '.join(limits.difficulties)}-level conversations"
            ),
        )

    config = ConversationConfig(
        topic=req.topic,
        difficulty_level=req.difficulty_level,
        focus_areas=tuple(req.focus_areas),
        participant_count=min(req.participant_count, limits.max_participants),
        include_slang=req.include_slang,
    )
    context_size = min(req.context_size, limits.max_context_items)
    options = ContextOptions(
        context_type=ContextType.CONVERSATION,
        categories=list(req.focus_areas),
        difficulty_level=req.difficulty_level,
        max_items=context_size,
        include_examples=True,
        access_tier=user.tier,
        user_id=user.id,
    )

    t0 = time.perf_counter()
    try:
        context = request.app.state.context_provider.get_context(options)
        opening = request.app.state.completion.query_with_context(
            start_prompt(config, slang_allowed=limits.slang), context,
        )
    except (ContextError, CompletionError):
        logger.exception("Error starting conversation for user=%s", user.id)
        raise HTTPException(status_code=500, detail="Failed to start conversation. Please try again later.")

    session = request.app.state.conversations.create_session(
        config, user.id, opening_message=opening.text, cached_context=context,
    )
    logger.info(
        "conversation started id=%s user=%s tier=%s topic=%r total=%.0fms",
        session.id, user.id, user.tier.value, config.topic, (time.perf_counter() - t0) * 1000,
    )

    return StartConversationResponse(
        conversation_id=session.id,
        conversation=ConversationInfo(
            topic=session.topic,
            difficulty_level=session.difficulty_level,
            initial_message=opening.text,
            participant_count=session.participant_count,
        ),
        metadata={
            "tier": user.tier.value,
            "focus_areas": list(session.focus_areas),
            "include_slang": session.include_slang,
            "max_context_size": context_size,
        },
    )


@router.post("/continue", response_model=ContinueConversationResponse)
def continue_conversation(
    req: ContinueConversationRequest,
    request: Request,
    user: User = Depends(conversation_user),
):
    conversations = request.app.state.conversations
    session = _owned_session(request, req.conversation_id, user)

    # The user turn is stored only once the model has answered it.
    pending = Message(role="user", content=req.user_message, timestamp=utc_now())
    limits = limits_for(user.tier)
    history = render_history(list(session.messages) + [pending], limits.max_history_messages)
    extras = correction_extras(user.tier, req.include_corrections, req.include_alternatives)

    try:
        context = session.cached_context or request.app.state.context_provider.get_context(
            ContextOptions(
                context_type=ContextType.CONVERSATION,
                categories=list(session.focus_areas),
                difficulty_level=session.difficulty_level,
                max_items=limits.continue_context_items,
                include_examples=True,
                access_tier=user.tier,
                user_id=user.id,
            )
        )
        reply = request.app.state.completion.query_with_context(
            continue_prompt(session, history, extras), context,
        )
    except (ContextError, CompletionError):
        logger.exception("Error continuing conversation %s", req.conversation_id)
        raise HTTPException(status_code=500, detail="Failed to continue conversation. Please try again later.")

    # Deleted or swept while waiting on the model.
    if conversations.append_message(req.conversation_id, "user", req.user_message) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    session = conversations.append_message(req.conversation_id, "system", reply.text)
    if session is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ContinueConversationResponse(
        conversation_id=session.id,
        message=reply.text,
        message_count=len(session.messages),
        metadata={
            "tier": user.tier.value,
            "include_corrections": req.include_corrections,
            "include_alternatives": has_access(user.tier, AccessTier.PREMIUM) and req.include_alternatives,
        },
    )


@router.get("/history", response_model=ConversationHistoryResponse)
def conversation_history(request: Request, user: User = Depends(conversation_user)):
    summaries = request.app.state.conversations.list_sessions(user.id)
    return ConversationHistoryResponse(
        conversations=[
            ConversationSummaryResponse(
                id=s.id,
                topic=s.topic,
                difficulty_level=s.difficulty_level,
                created_at=s.created_at,
                message_count=s.message_count,
                preview=s.preview,
            )
            for s in summaries
        ],
        count=len(summaries),
        metadata={"tier": user.tier.value},
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(conversation_id: str, request: Request, user: User = Depends(conversation_user)):
    session = _owned_session(request, conversation_id, user)
    messages = list(session.messages)
    return ConversationDetailResponse(
        conversation=ConversationDetail(
            id=session.id,
            topic=session.topic,
            difficulty_level=session.difficulty_level,
            participant_count=session.participant_count,
            include_slang=session.include_slang,
            focus_areas=list(session.focus_areas),
            created_at=session.created_at,
            messages=[
                MessageResponse(role=m.role, content=m.content, timestamp=m.timestamp)
                for m in messages
            ],
            message_count=len(messages),
        ),
        metadata={"tier": user.tier.value},
    )


@router.delete("/{conversation_id}", response_model=DeleteConversationResponse)
def delete_conversation(conversation_id: str, request: Request, user: User = Depends(conversation_user)):
    _owned_session(request, conversation_id, user)
    if not request.app.state.conversations.delete_session(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return DeleteConversationResponse(success=True, message="Conversation deleted successfully")
