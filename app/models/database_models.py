"""
SQLAlchemy ORM models for the Indicore database.
Chats embed an ordered list of messages; interactions and PYQs carry
free-form JSON metadata.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    Enum as SQLEnum,
    JSON,
)
from sqlalchemy.orm import relationship, validates
import enum

from app.database import Base
from app.utils.helpers import utcnow


# Enums
class MessageSender(str, enum.Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class InteractionType(str, enum.Enum):
    """Feature area an interaction belongs to."""

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


class InteractionAction(str, enum.Enum):
    """What the user did within a feature."""

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


# Models
class User(Base):
    """User account (identity supplied by the web frontend)."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    total_questions = Column(Integer, default=0, nullable=False)
    session_questions = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Chat(Base):
    """A conversation owned by one user."""

    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Per-chat settings
    language = Column(String(10), default="en", nullable=False)
    model = Column(String(100), default="sonar-pro", nullable=False)
    system_prompt = Column(Text, nullable=True)

    # Organisation
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    pinned = Column(Boolean, default=False, nullable=False)
    folder = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=True)
    archived = Column(Boolean, default=False, nullable=False)

    last_message_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.position",
    )


class ChatMessage(Base):
    """A single message inside a chat, ordered by position."""

    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    sender = Column(SQLEnum(MessageSender), nullable=False)
    text = Column(Text, nullable=False)
    language = Column(String(10), nullable=True)
    model = Column(String(100), nullable=True)
    tokens = Column(Integer, nullable=True)
    bookmarked = Column(Boolean, default=False, nullable=False)
    truth_anchored = Column(Boolean, default=False, nullable=False)
    edited_at = Column(DateTime, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    chat = relationship("Chat", back_populates="messages")


class UserInteraction(Base):
    """A tracked user (or guest) action used for personalisation insights."""

    __tablename__ = "user_interactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    session_id = Column(String(64), nullable=False, index=True)
    interaction_type = Column(SQLEnum(InteractionType), nullable=False, index=True)
    feature = Column(String(100), nullable=False)
    action = Column(SQLEnum(InteractionAction), nullable=False, index=True)
    metadata_json = Column(JSON, nullable=True)  # topic, engagementScore, timeSpent, ...
    device_info = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)


class PYQ(Base):
    """Previous year exam question."""

    __tablename__ = "pyqs"

    id = Column(Integer, primary_key=True, index=True)
    exam = Column(String(50), nullable=False, index=True)
    level = Column(String(20), default="", nullable=False)  # Prelims, Mains, Interview or ''
    paper = Column(String(100), default="", nullable=False)
    year = Column(Integer, nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, default="", nullable=False)
    lang = Column(String(10), default="en", nullable=False, index=True)
    topic_tags = Column(JSON, nullable=True)
    keywords = Column(JSON, nullable=True)
    analysis = Column(Text, default="", nullable=False)
    theme = Column(String(255), default="", nullable=False, index=True)
    source_link = Column(String(512), default="", nullable=False)
    verified = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @validates("exam")
    def _normalize_exam(self, key, value):
        return (value or "").upper().strip()

    @validates("level", "paper", "question", "answer", "theme", "analysis")
    def _strip_text(self, key, value):
        return (value or "").strip()

    @validates("topic_tags", "keywords")
    def _clean_tags(self, key, value):
        return [str(tag).strip() for tag in (value or []) if str(tag).strip()]
