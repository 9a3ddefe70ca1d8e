"""
Chat history endpoints.

Route summary
-------------
GET    /api/chat                          — list chats (archived / folder / tag filters)
POST   /api/chat                          — create chat, or append a user message (chatId)
GET    /api/chat/{chat_id}                — chat detail
PUT    /api/chat/{chat_id}                — rename / settings / append assistant message
DELETE /api/chat/{chat_id}                — soft delete
PUT    /api/chat/{chat_id}/update         — rename / pin (PATCH also accepted)
PATCH  /api/chat/{chat_id}/organize       — folder / tags / archived
GET    /api/chat/{chat_id}/messages/{i}   — one message
PATCH  /api/chat/{chat_id}/messages/{i}   — bookmark
PUT    /api/chat/{chat_id}/messages/{i}   — edit a user message
DELETE /api/chat/{chat_id}/messages/{i}   — delete a message
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_current_user_id, get_or_create_user, get_owned_chat
from app.models.database_models import Chat, MessageSender, User
from app.models.schemas import (
    ChatCreateOrAppendRequest,
    ChatEnvelope,
    ChatListResponse,
    ChatOrganizeRequest,
    ChatRenameRequest,
    ChatRenameResponse,
    ChatUpdateRequest,
    MessageBookmarkRequest,
    MessageEditRequest,
    MessageEnvelope,
    SuccessResponse,
)
from app.services.ai_providers import AIClient, get_ai_client
from app.services.chat_history import (
    append_message,
    chat_to_response,
    chat_to_summary,
    clean_user_message,
    count_active_chats,
    delete_message_at,
    get_message_at,
    list_chats,
    message_to_response,
    new_chat,
    record_question,
)
from app.services.chat_naming import DEFAULT_CHAT_NAME, generate_chat_name, is_generic_chat_name
from app.utils.helpers import utcnow
from app.utils.validation import ValidationError, validate_language

logger = logging.getLogger(__name__)

router = APIRouter()


def _language_or_400(code: Optional[str]) -> str:
    try:
        return validate_language(code)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

@router.get("", response_model=ChatListResponse)
async def get_chats(
    archived: bool = False,
    folder: Optional[str] = None,
    tag: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the user's active chats, pinned first."""
    chats = await list_chats(db, user_id, archived=archived, folder=folder, tag=tag)
    return ChatListResponse(chats=[chat_to_response(c) for c in chats])


@router.post("", response_model=ChatEnvelope)
async def create_or_append(
    body: ChatCreateOrAppendRequest,
    response: Response,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
    ai: AIClient = Depends(get_ai_client),
):
    """
    Without ``chatId`` create a chat (201), optionally seeded with the first
    user message; with ``chatId`` append a user message (200).
    """
    language = _language_or_400(body.language)

    if body.chat_id is None:
        text = clean_user_message(body.message) if body.message and body.message.strip() else None
        fallback_name = f"Chat {await count_active_chats(db, user.id) + 1}"
        name = fallback_name
        if text:
            generated = await generate_chat_name(ai, text, language)
            if generated != DEFAULT_CHAT_NAME:
                name = generated

        chat = new_chat(user.id, name, body.settings)
        if text:
            append_message(chat, MessageSender.USER, text, language=language)
            record_question(user)
        db.add(chat)
        await db.flush()

        logger.info("Created chat %d for user %s (%r)", chat.id, user.id, chat.name)
        response.status_code = status.HTTP_201_CREATED
        return ChatEnvelope(chat=chat_to_response(chat))

    chat = await get_owned_chat(body.chat_id, user.id, db)
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")
    text = clean_user_message(body.message)

    append_message(chat, MessageSender.USER, text, language=language)
    if is_generic_chat_name(chat.name) and len(chat.messages) == 1:
        generated = await generate_chat_name(ai, text, language)
        if generated != DEFAULT_CHAT_NAME:
            chat.name = generated
    record_question(user)
    await db.flush()

    return ChatEnvelope(chat=chat_to_response(chat))


# ---------------------------------------------------------------------------
# Single chat
# ---------------------------------------------------------------------------

@router.get("/{chat_id}", response_model=ChatEnvelope)
async def get_chat(chat: Chat = Depends(get_owned_chat)):
    return ChatEnvelope(chat=chat_to_response(chat))


@router.put("/{chat_id}", response_model=ChatEnvelope)
async def update_chat(
    body: ChatUpdateRequest,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    """Rename, replace settings and/or append an assistant reply."""
    if body.name and body.name.strip():
        chat.name = body.name.strip()[:settings.CHAT_NAME_MAX_LENGTH]
    if body.settings is not None:
        chat.language = body.settings.language
        chat.model = body.settings.model
        chat.system_prompt = body.settings.system_prompt
    if body.message:
        append_message(
            chat,
            MessageSender.ASSISTANT,
            body.message,
            language=body.language,
            model=body.model,
            tokens=body.tokens,
        )
    chat.updated_at = utcnow()
    await db.flush()
    return ChatEnvelope(chat=chat_to_response(chat))


@router.delete("/{chat_id}", response_model=SuccessResponse)
async def delete_chat(
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the chat disappears from listings but is kept."""
    chat.is_active = False
    chat.updated_at = utcnow()
    await db.flush()
    logger.info("Soft-deleted chat %d", chat.id)
    return SuccessResponse(message="Chat deleted successfully")


@router.api_route("/{chat_id}/update", methods=["PUT", "PATCH"], response_model=ChatRenameResponse)
async def rename_chat(
    body: ChatRenameRequest,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    """Rename and/or pin a chat."""
    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Chat name cannot be empty")
        if len(name) > settings.CHAT_NAME_MAX_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Chat name is too long (max {settings.CHAT_NAME_MAX_LENGTH} characters)",
            )
        chat.name = name
    if body.pinned is not None:
        chat.pinned = body.pinned

    chat.updated_at = utcnow()
    await db.flush()
    return ChatRenameResponse(success=True, chat=chat_to_summary(chat))


@router.patch("/{chat_id}/organize", response_model=ChatEnvelope)
async def organize_chat(
    body: ChatOrganizeRequest,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    """Set folder, tags or archived; omitted fields are left untouched."""
    fields = body.model_fields_set
    if "folder" in fields:
        chat.folder = body.folder
    if "tags" in fields:
        chat.tags = [tag.strip() for tag in (body.tags or []) if tag.strip()]
    if "archived" in fields:
        chat.archived = bool(body.archived)

    chat.updated_at = utcnow()
    await db.flush()
    return ChatEnvelope(chat=chat_to_response(chat))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@router.get("/{chat_id}/messages/{index}", response_model=MessageEnvelope)
async def get_message(index: int, chat: Chat = Depends(get_owned_chat)):
    return MessageEnvelope(message=message_to_response(get_message_at(chat, index), index))


@router.patch("/{chat_id}/messages/{index}", response_model=MessageEnvelope)
async def bookmark_message(
    index: int,
    body: MessageBookmarkRequest,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    message = get_message_at(chat, index)
    message.bookmarked = body.bookmarked
    await db.flush()
    return MessageEnvelope(message=message_to_response(message, index))


@router.put("/{chat_id}/messages/{index}", response_model=MessageEnvelope)
async def edit_message(
    index: int,
    body: MessageEditRequest,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    """Edit the text of a user message."""
    message = get_message_at(chat, index)
    if not body.text or not body.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="text is required")
    if message.sender != MessageSender.USER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only user messages can be edited")

    message.text = clean_user_message(body.text)
    message.edited_at = utcnow()
    chat.updated_at = message.edited_at
    await db.flush()
    return MessageEnvelope(message=message_to_response(message, index))


@router.delete("/{chat_id}/messages/{index}", response_model=SuccessResponse)
async def delete_message(
    index: int,
    chat: Chat = Depends(get_owned_chat),
    db: AsyncSession = Depends(get_db),
):
    delete_message_at(chat, index)
    await db.flush()
    return SuccessResponse()
