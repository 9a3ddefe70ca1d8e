"""Database and schema models for Indicore."""
from app.models.database_models import (
    User,
    Chat,
    ChatMessage,
    UserInteraction,
    PYQ,
    MessageSender,
    InteractionType,
    InteractionAction,
)
from app.models.schemas import (
    ChatSettings,
    ChatResponse,
    ChatMessageResponse,
    ChatListResponse,
    TrackRequest,
    TrackResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Chat",
    "ChatMessage",
    "UserInteraction",
    "PYQ",
    "MessageSender",
    "InteractionType",
    "InteractionAction",
    # Pydantic schemas
    "ChatSettings",
    "ChatResponse",
    "ChatMessageResponse",
    "ChatListResponse",
    "TrackRequest",
    "TrackResponse",
    "HealthCheckResponse",
]
