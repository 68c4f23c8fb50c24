"""Pydantic request/response schemas for the tutor API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from tutor.access import AccessTier

Difficulty = Literal["beginner", "intermediate", "advanced"]
BasicContextType = Literal["vocabulary", "grammar", "mixed"]
ExerciseTypeId = Literal[
    "vocabulary_matching",
    "fill_in_blank",
    "multiple_choice",
    "sentence_construction",
    "translation",
    "conversation_practice",
    "error_correction",
    "listening_comprehension",
]


# ── Requests ───────────────────────────────────────────────────────────────

class StartConversationRequest(BaseModel):
    topic: str = Field(..., min_length=2, max_length=100)
    difficulty_level: Difficulty = "intermediate"
    participant_count: int = Field(2, ge=1, le=3)
    include_slang: bool = False
    focus_areas: list[str] = Field(default_factory=list, max_length=3)
    context_size: int = Field(10, ge=1, le=50)


class ContinueConversationRequest(BaseModel):
    conversation_id: str
    user_message: str = Field(..., min_length=1, max_length=500)
    include_corrections: bool = True
    include_alternatives: bool = True


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=1000)
    context_type: BasicContextType = "vocabulary"
    categories: list[str] = Field(default_factory=list)
    difficulty_level: Difficulty | None = None
    max_items: int | None = Field(None, ge=1, le=50)
    include_examples: bool = True


class AdvancedQueryRequest(QueryRequest):
    temperature: float = Field(0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(2000, ge=1, le=4000)


class GenerateExerciseRequest(BaseModel):
    type: ExerciseTypeId
    difficulty_level: Difficulty = "intermediate"
    focus_area: str | None = Field(None, max_length=100)
    count: int = Field(5, ge=1, le=10)
    specific_vocabulary: list[str] = Field(default_factory=list, max_length=10)
    specific_grammar: list[str] = Field(default_factory=list, max_length=5)
    time_limit: int | None = Field(None, ge=0, le=3600)


class RegisterUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str | None = None
    tier: AccessTier = AccessTier.FREE


class UpdateTierRequest(BaseModel):
    tier: AccessTier


# ── Responses ──────────────────────────────────────────────────────────────

class MessageResponse(BaseModel):
    role: str
    content: str
    timestamp: datetime


class ConversationInfo(BaseModel):
    topic: str
    difficulty_level: str
    initial_message: str
    participant_count: int


class StartConversationResponse(BaseModel):
    conversation_id: str
    conversation: ConversationInfo
    metadata: dict


class ContinueConversationResponse(BaseModel):
    conversation_id: str
    message: str
    message_count: int
    metadata: dict


class ConversationDetail(BaseModel):
    id: str
    topic: str
    difficulty_level: str
    participant_count: int
    include_slang: bool
    focus_areas: list[str]
    created_at: datetime
    messages: list[MessageResponse]
    message_count: int


class ConversationDetailResponse(BaseModel):
    conversation: ConversationDetail
    metadata: dict


class ConversationSummaryResponse(BaseModel):
    id: str
    topic: str
    difficulty_level: str
    created_at: datetime
    message_count: int
    preview: str


class ConversationHistoryResponse(BaseModel):
    conversations: list[ConversationSummaryResponse]
    count: int
    metadata: dict


class DeleteConversationResponse(BaseModel):
    success: bool
    message: str


class ContextResponse(BaseModel):
    context: str
    metadata: dict


class QueryResponse(BaseModel):
    response: str
    user: dict
    advanced: dict | None = None


class HealthResponse(BaseModel):
    status: str
    uptime: float
    timestamp: datetime
    active_sessions: int


class ExerciseSetResponse(BaseModel):
    exercise_set_id: str
    exercises: Any
    metadata: dict
