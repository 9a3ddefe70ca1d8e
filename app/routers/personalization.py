"""
Personalisation endpoints: dashboard insights and interaction tracking.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id, get_optional_user
from app.models.database_models import InteractionAction, InteractionType, User, UserInteraction
from app.models.schemas import TrackRequest, TrackResponse
from app.services.insights import collect_chat_insights, collect_user_insights, enrich_device_info
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_COOKIE = "sessionId"
SESSION_MAX_AGE = 30 * 24 * 60 * 60


@router.get("/chat-insights")
async def chat_insights(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Topic, timing and difficulty analytics over the last 30 days of chats."""
    summary = await collect_chat_insights(db, user_id)
    return {"success": True, **summary}


@router.get("/insights")
async def insights(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Interaction summary, topic frequency and study streak."""
    return {
        "success": True,
        "insights": await collect_user_insights(db, user_id),
        "generatedAt": utcnow(),
    }


@router.post("/track", response_model=TrackResponse)
async def track(
    body: TrackRequest,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
    user_agent: str = Header("", alias="User-Agent"),
    db: AsyncSession = Depends(get_db),
):
    """
    Record one interaction for the current user or a guest session.

    A new ``sessionId`` cookie (30 days, HttpOnly) is issued when absent.
    """
    if body.interaction_type is None or not (body.feature or "").strip() or body.action is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: interactionType, feature, action",
        )

    if not session_id:
        session_id = str(uuid.uuid4())
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=SESSION_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
        )

    interaction = UserInteraction(
        user_id=user.id if user else None,
        session_id=session_id,
        interaction_type=InteractionType(body.interaction_type.value),
        feature=body.feature.strip(),
        action=InteractionAction(body.action.value),
        metadata_json=dict(body.metadata),
        device_info=enrich_device_info(user_agent, body.device_info),
        timestamp=utcnow(),
    )
    db.add(interaction)
    await db.flush()

    logger.info(
        "Tracked %s/%s for %s",
        interaction.interaction_type.value,
        interaction.action.value,
        user.id if user else f"guest {session_id}",
    )
    return TrackResponse(
        success=True,
        interaction_id=interaction.id,
        session_id=session_id,
        is_guest=user is None,
    )
