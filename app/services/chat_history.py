"""
Chat history persistence helpers.

Messages are addressed by their index in position order, matching what the
client sees.  Chats must be loaded with ``selectinload(Chat.messages)`` before
any helper here touches ``chat.messages``.
"""
import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.database_models import Chat, ChatMessage, MessageSender, User
from app.models.schemas import (
    ChatMessageResponse,
    ChatResponse,
    ChatSettings,
    ChatSummary,
)
from app.utils.helpers import utcnow
from app.utils.validation import ValidationError, validate_message

logger = logging.getLogger(__name__)

DEFAULT_CHAT_SYSTEM_PROMPT = (
    "You are a helpful Multilingual AI assistant. Your name is Indicore-Ai. "
    "Provide accurate, detailed, and well-structured responses."
)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def message_to_response(message: ChatMessage, index: int) -> ChatMessageResponse:
    return ChatMessageResponse(
        index=index,
        sender=message.sender.value,
        text=message.text,
        language=message.language,
        model=message.model,
        tokens=message.tokens,
        bookmarked=message.bookmarked,
        truth_anchored=message.truth_anchored,
        edited_at=message.edited_at,
        timestamp=message.timestamp,
    )


def chat_to_response(chat: Chat) -> ChatResponse:
    return ChatResponse(
        id=chat.id,
        name=chat.name,
        settings=ChatSettings(
            language=chat.language,
            model=chat.model,
            system_prompt=chat.system_prompt,
        ),
        messages=[message_to_response(m, i) for i, m in enumerate(chat.messages)],
        pinned=chat.pinned,
        folder=chat.folder,
        tags=list(chat.tags or []),
        archived=chat.archived,
        is_active=chat.is_active,
        last_message_at=chat.last_message_at,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )


def chat_to_summary(chat: Chat) -> ChatSummary:
    return ChatSummary(
        id=chat.id,
        name=chat.name,
        pinned=chat.pinned,
        last_message_at=chat.last_message_at,
        created_at=chat.created_at,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_chats(
    db: AsyncSession,
    user_id: str,
    archived: Optional[bool] = None,
    folder: Optional[str] = None,
    tag: Optional[str] = None,
) -> List[Chat]:
    """
    Active chats for *user_id*, pinned first then most recently used.

    ``archived=True`` returns archived chats only; anything else hides them.
    """
    query = (
        select(Chat)
        .options(selectinload(Chat.messages))
        .where(Chat.user_id == user_id, Chat.is_active.is_(True))
        .where(Chat.archived.is_(True) if archived else Chat.archived.is_(False))
    )
    if folder:
        query = query.where(Chat.folder == folder)
    query = query.order_by(Chat.pinned.desc(), Chat.last_message_at.desc(), Chat.id.desc())

    chats = list((await db.execute(query)).scalars().all())
    if tag:
        # Tags live in a JSON list; filtered here to stay dialect-neutral
        chats = [chat for chat in chats if tag in (chat.tags or [])]
    return chats[:settings.CHAT_LIST_LIMIT]


async def count_active_chats(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(Chat.id)).where(Chat.user_id == user_id, Chat.is_active.is_(True))
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def clean_user_message(text: Optional[str]) -> str:
    """Validated, sanitised user text; HTTP 400 when rejected."""
    try:
        return validate_message(text, settings.CHAT_MESSAGE_MAX_LENGTH)
    except ValidationError as exc:
        logger.info("Rejected chat message (%s)", exc.code)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def append_message(
    chat: Chat,
    sender: MessageSender,
    text: str,
    language: Optional[str] = None,
    model: Optional[str] = None,
    tokens: Optional[int] = None,
) -> ChatMessage:
    """Add a message after the current last one and bump the chat's activity time."""
    now = utcnow()
    position = max((m.position for m in chat.messages), default=-1) + 1
    message = ChatMessage(
        position=position,
        sender=sender,
        text=text,
        language=language,
        model=model,
        tokens=tokens,
        bookmarked=False,
        truth_anchored=False,
        timestamp=now,
    )
    chat.messages.append(message)
    chat.last_message_at = now
    chat.updated_at = now
    return message


def record_question(user: User) -> None:
    user.total_questions = (user.total_questions or 0) + 1
    user.session_questions = (user.session_questions or 0) + 1


def new_chat(
    user_id: str,
    name: str,
    settings_in: Optional[ChatSettings] = None,
) -> Chat:
    now = utcnow()
    chat_settings = settings_in or ChatSettings(system_prompt=DEFAULT_CHAT_SYSTEM_PROMPT)
    return Chat(
        user_id=user_id,
        name=name,
        language=chat_settings.language,
        model=chat_settings.model,
        system_prompt=chat_settings.system_prompt,
        is_active=True,
        pinned=False,
        archived=False,
        tags=[],
        messages=[],
        last_message_at=now,
        created_at=now,
        updated_at=now,
    )


def get_message_at(chat: Chat, index: int) -> ChatMessage:
    if index < 0 or index >= len(chat.messages):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return chat.messages[index]


def delete_message_at(chat: Chat, index: int) -> None:
    """Remove a message; activity time falls back to the new last message."""
    message = get_message_at(chat, index)
    chat.messages.remove(message)
    chat.last_message_at = chat.messages[-1].timestamp if chat.messages else utcnow()
    chat.updated_at = utcnow()
