"""
Previous-year-question endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.services.pyq_service import ArchiveQuery, SearchQuery, browse_archive, search_pyqs

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/archive")
async def archive(
    exam: str = "UPSC",
    subject: Optional[str] = None,
    theme: Optional[str] = None,
    tags: Optional[str] = None,
    from_year: int = Query(2000, alias="fromYear"),
    to_year: Optional[int] = Query(None, alias="toYear"),
    page: int = 1,
    limit: int = 20,
    summary_only: bool = Query(False, alias="summaryOnly"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Browse the archive with year/subject breakdowns.

    ``limit`` is clamped to 5..100; ``toYear`` defaults to the current year.
    """
    return await browse_archive(
        db,
        ArchiveQuery(
            exam=exam,
            subject=subject or theme,
            tags=tags,
            from_year=from_year,
            to_year=to_year,
            page=page,
            limit=limit,
            summary_only=summary_only,
        ),
    )


@router.get("/search")
async def search(
    exam: str = "UPSC",
    theme: str = "",
    from_year: Optional[int] = Query(None, alias="fromYear"),
    to_year: Optional[int] = Query(None, alias="toYear"),
    level: Optional[str] = None,
    paper: Optional[str] = None,
    limit: int = 200,
    db: AsyncSession = Depends(get_db),
):
    """Quality-filtered search with a decade-grouped text listing."""
    return await search_pyqs(
        db,
        SearchQuery(
            exam=exam,
            theme=theme,
            from_year=from_year,
            to_year=to_year,
            level=level,
            paper=paper,
            limit=limit,
        ),
    )
