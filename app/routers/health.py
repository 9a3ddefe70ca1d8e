"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging

from app.database import get_db
from app.models.schemas import HealthCheckResponse
from app.services.ai_providers import available_providers
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with database status and configured AI providers
    """
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        db_status = "error"

    providers = available_providers()

    overall_status = "healthy" if db_status == "ok" and providers else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        ai_providers=providers,
        timestamp=utcnow(),
    )
