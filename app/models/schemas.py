"""
Pydantic schemas for request/response validation.

The web client speaks camelCase JSON; every schema accepts and emits
camelCase aliases while exposing snake_case attributes to Python code.
"""
from pydantic import BaseModel, Field, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Enums (matching database enums)
class MessageSenderSchema(str, Enum):
    """Message author for API responses."""

    USER = "user"
    ASSISTANT = "assistant"


class InteractionTypeSchema(str, Enum):
    """Feature areas accepted by the tracking endpoint."""

    CHAT = "chat"
    PYQ = "pyq"
    MOCK_TEST = "mock_test"
    ESSAY = "essay"
    INTERVIEW = "interview"
    CURRENT_AFFAIRS = "current_affairs"
    FLASHCARD = "flashcard"
    NOTES = "notes"
    VOCABULARY = "vocabulary"
    FORMULA_SHEET = "formula_sheet"


class InteractionActionSchema(str, Enum):
    """Actions accepted by the tracking endpoint."""

    VIEW = "view"
    SEARCH = "search"
    ATTEMPT = "attempt"
    GENERATE = "generate"
    SAVE = "save"
    BOOKMARK = "bookmark"
    SUBMIT = "submit"
    ANALYZE = "analyze"
    EXPORT = "export"
    SHARE = "share"
    EDIT = "edit"
    DELETE = "delete"


# Chat Schemas
class ChatSettings(CamelModel):
    """Per-chat model settings."""

    language: str = "en"
    model: str = "sonar-pro"
    system_prompt: Optional[str] = None


class ChatMessageResponse(CamelModel):
    """A message together with its index in the chat."""

    index: int
    sender: MessageSenderSchema
    text: str
    language: Optional[str] = None
    model: Optional[str] = None
    tokens: Optional[int] = None
    bookmarked: bool = False
    truth_anchored: bool = False
    edited_at: Optional[datetime] = None
    timestamp: datetime


class ChatResponse(CamelModel):
    """Full chat with settings and ordered messages."""

    id: int
    name: str
    settings: ChatSettings
    messages: List[ChatMessageResponse] = []
    pinned: bool = False
    folder: Optional[str] = None
    tags: List[str] = []
    archived: bool = False
    is_active: bool = True
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime


class ChatEnvelope(CamelModel):
    chat: ChatResponse


class ChatListResponse(CamelModel):
    chats: List[ChatResponse]


class ChatCreateOrAppendRequest(CamelModel):
    """Create a chat (no chat_id) or append a user message to one."""

    chat_id: Optional[int] = None
    message: Optional[str] = None
    settings: Optional[ChatSettings] = None
    language: str = "en"


class ChatUpdateRequest(CamelModel):
    """Rename, replace settings, and/or append an assistant message."""

    name: Optional[str] = None
    settings: Optional[ChatSettings] = None
    message: Optional[str] = None
    language: str = "en"
    model: Optional[str] = None
    tokens: Optional[int] = None


class ChatRenameRequest(CamelModel):
    name: Optional[str] = None
    pinned: Optional[bool] = None


class ChatSummary(CamelModel):
    id: int
    name: str
    pinned: bool
    last_message_at: datetime
    created_at: datetime


class ChatRenameResponse(CamelModel):
    success: bool = True
    chat: ChatSummary


class ChatOrganizeRequest(CamelModel):
    """Only the fields present in the body are applied."""

    folder: Optional[str] = None
    tags: Optional[List[str]] = None
    archived: Optional[bool] = None


class MessageEnvelope(CamelModel):
    message: ChatMessageResponse


class MessageBookmarkRequest(CamelModel):
    bookmarked: StrictBool


class MessageEditRequest(CamelModel):
    text: Optional[str] = None


class SuccessResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None


# AI Schemas
class ChatStreamRequest(CamelModel):
    message: Optional[str] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    language: Optional[str] = "en"


class ChatCompletionRequest(ChatStreamRequest):
    input_type: Optional[str] = None


class ChatCompletionResponse(CamelModel):
    response: Optional[str] = None


class TranslateRequest(CamelModel):
    text: Optional[str] = None
    source_language: Optional[str] = None
    target_language: Optional[str] = None


class TranslateResponse(CamelModel):
    translated_text: str
    source_language: str
    target_language: str
    original_text: str
    provider: str


class VocabularyRequest(CamelModel):
    category: Optional[str] = None
    source_language: Optional[str] = None
    target_language: Optional[str] = None
    difficulty: str = "intermediate"
    count: int = Field(default=10, ge=1, le=50)


class VocabularyResponse(CamelModel):
    flashcards: List[Dict[str, Any]]
    category: str
    source_language: str
    target_language: str
    difficulty: str
    generated_at: datetime


class EssayRequest(CamelModel):
    essay_text: Optional[str] = None
    source_language: str = "en"
    target_language: str = "en"
    essay_type: Optional[str] = None
    word_limit: Optional[int] = None


class EssayResponse(CamelModel):
    enhanced_essay: str
    source_language: str
    target_language: str
    essay_type: Optional[str] = None
    word_limit: Optional[int] = None
    enhanced_at: datetime


class MockEvaluationRequest(CamelModel):
    exam_type: Optional[str] = None
    language: Optional[str] = None
    question_type: Optional[str] = None
    subject: Optional[str] = None
    answer_text: Optional[str] = None
    word_limit: Optional[int] = None


class MockEvaluationResponse(CamelModel):
    evaluation: str
    exam_type: str
    language: str
    question_type: str
    subject: str
    word_limit: Optional[int] = None
    evaluated_at: datetime


class MainsEvaluationRequest(CamelModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    subject: Optional[str] = None
    language: str = "en"


# Personalization Schemas
class TrackRequest(CamelModel):
    interaction_type: Optional[InteractionTypeSchema] = None
    feature: Optional[str] = None
    action: Optional[InteractionActionSchema] = None
    metadata: Dict[str, Any] = {}
    device_info: Dict[str, Any] = {}


class TrackResponse(CamelModel):
    success: bool = True
    interaction_id: int
    session_id: str
    is_guest: bool


# Health Schemas
class HealthCheckResponse(CamelModel):
    """Schema for health check response."""

    status: str
    database: str
    ai_providers: List[str]
    timestamp: datetime
