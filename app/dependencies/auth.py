"""
Authentication dependencies for FastAPI routes.

Extracts user identity from the X-User-Id header (set by the Next.js frontend).
Guest-capable routes use the optional variants and receive None.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.models.database_models import Chat, User

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if missing."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return x_user_id.strip()


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """Extract user ID if present, return None for guests."""
    return (x_user_id or "").strip() or None


async def _ensure_user(
    db: AsyncSession,
    user_id: str,
    email: Optional[str],
    name: Optional[str],
) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        if email:
            taken = await db.execute(select(User.id).where(User.email == email))
            if taken.scalar_one_or_none() is not None:
                logger.warning("Email %s already belongs to another user; %s gets a local address", email, user_id)
                email = None
        user = User(
            id=user_id,
            email=email or f"{user_id}@indicore.local",
            name=name,
        )
        db.add(user)
        await db.flush()
        logger.info("Created new user: id=%s email=%s", user_id, user.email)

    return user


async def get_or_create_user(
    user_id: str = Depends(get_current_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the user exists in the local users table. Creates if needed."""
    return await _ensure_user(db, user_id, x_user_email, x_user_name)


async def get_optional_user(
    user_id: Optional[str] = Depends(get_optional_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like get_or_create_user, but None for guests."""
    if user_id is None:
        return None
    return await _ensure_user(db, user_id, x_user_email, x_user_name)


async def get_owned_chat(
    chat_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Chat:
    """
    Load a chat (with messages) that belongs to the current user.
    Another user's chat is reported exactly like a missing one.
    """
    result = await db.execute(
        select(Chat)
        .options(selectinload(Chat.messages))
        .where(
            Chat.id == chat_id,
            Chat.user_id == user_id,
        )
    )
    chat = result.scalar_one_or_none()

    if chat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Chat not found",
        )

    return chat
