"""
Previous-year-question archive queries.

Matching on free-text filters is case-insensitive and literal: user input is
LIKE-escaped before it reaches the database.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import PYQ
from app.utils.helpers import escape_like, utcnow

logger = logging.getLogger(__name__)

ARCHIVE_MIN_LIMIT = 5
ARCHIVE_MAX_LIMIT = 100
SEARCH_MAX_LIMIT = 500
MIN_QUESTION_LENGTH = 20
EARLIEST_YEAR = 1990


def _contains(column, value: str):
    return column.ilike(f"%{escape_like(value)}%", escape="\\")


def _tags_contain(value: str):
    return _contains(cast(PYQ.topic_tags, String), value)


def clamp_archive_limit(limit: int) -> int:
    return min(ARCHIVE_MAX_LIMIT, max(ARCHIVE_MIN_LIMIT, limit))


def is_verified(pyq: PYQ) -> bool:
    """Flagged verified, or sourced from an official ``.gov.in`` page."""
    return bool(pyq.verified) or ".gov.in" in (pyq.source_link or "")


def serialize_pyq(pyq: PYQ, full: bool = False) -> Dict[str, Any]:
    data = {
        "question": pyq.question,
        "answer": pyq.answer,
        "year": pyq.year,
        "paper": pyq.paper,
        "theme": pyq.theme,
        "topicTags": pyq.topic_tags or [],
        "exam": pyq.exam,
        "level": pyq.level,
    }
    if full:
        data.update({
            "id": pyq.id,
            "lang": pyq.lang,
            "keywords": pyq.keywords or [],
            "analysis": pyq.analysis,
            "sourceLink": pyq.source_link,
            "verified": pyq.verified,
        })
    return data


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ArchiveQuery:
    exam: str = "UPSC"
    subject: Optional[str] = None
    tags: Optional[str] = None
    from_year: int = 2000
    to_year: Optional[int] = None
    page: int = 1
    limit: int = 20
    summary_only: bool = False


def _archive_filters(query: ArchiveQuery) -> List[Any]:
    to_year = query.to_year if query.to_year is not None else utcnow().year
    filters: List[Any] = [
        _contains(PYQ.exam, query.exam),
        PYQ.year >= query.from_year,
        PYQ.year <= to_year,
    ]
    if query.subject:
        filters.append(or_(
            _contains(PYQ.theme, query.subject),
            _tags_contain(query.subject),
            _contains(PYQ.question, query.subject),
        ))
    if query.tags:
        tag_list = [tag.strip() for tag in query.tags.split(",") if tag.strip()]
        if tag_list:
            filters.append(or_(*[_tags_contain(tag) for tag in tag_list]))
    return filters


async def browse_archive(db: AsyncSession, query: ArchiveQuery) -> Dict[str, Any]:
    """
    One page of the archive plus year and subject breakdowns for the
    whole filtered set.
    """
    page = max(1, query.page)
    limit = clamp_archive_limit(query.limit)
    to_year = query.to_year if query.to_year is not None else utcnow().year
    filters = _archive_filters(query)

    total = (await db.execute(select(func.count(PYQ.id)).where(*filters))).scalar_one()

    year_rows = (
        await db.execute(
            select(PYQ.year, func.count(PYQ.id))
            .where(*filters)
            .group_by(PYQ.year)
            .order_by(PYQ.year.desc())
        )
    ).all()

    theme_rows = (
        await db.execute(select(PYQ.theme, func.count(PYQ.id)).where(*filters).group_by(PYQ.theme))
    ).all()
    subjects: Dict[str, int] = {}
    for theme, count in theme_rows:
        key = theme or "General"
        subjects[key] = subjects.get(key, 0) + count
    subject_breakdown = sorted(subjects.items(), key=lambda item: item[1], reverse=True)[:15]

    questions: List[Dict[str, Any]] = []
    if not query.summary_only:
        rows = (
            await db.execute(
                select(PYQ)
                .where(*filters)
                .order_by(PYQ.year.desc(), PYQ.id)
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()
        questions = [serialize_pyq(row) for row in rows]

    return {
        "archive": {
            "metadata": {
                "exam": query.exam,
                "fromYear": query.from_year,
                "toYear": to_year,
                "total": total,
                "page": page,
                "totalPages": max(1, math.ceil(total / limit)),
            },
            "yearBreakdown": [{"year": year, "count": count} for year, count in year_rows],
            "subjectBreakdown": [{"subject": subject, "count": count} for subject, count in subject_breakdown],
            "questions": questions,
        }
    }


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class SearchQuery:
    exam: str = "UPSC"
    theme: str = ""
    from_year: Optional[int] = None
    to_year: Optional[int] = None
    level: Optional[str] = None
    paper: Optional[str] = None
    limit: int = 200


def format_search_results(items: Sequence[PYQ]) -> str:
    """
    Plain-text listing grouped by decade (oldest decade first) with
    verification badges and a closing summary line.
    """
    by_decade: "OrderedDict[int, List[str]]" = OrderedDict()
    verified_count = 0
    for pyq in items:
        official = ".gov.in" in (pyq.source_link or "")
        if is_verified(pyq):
            verified_count += 1

        label = f"{pyq.year or '—'} – "
        if pyq.paper:
            label += f"{pyq.paper} – "
        label += pyq.question
        if pyq.topic_tags:
            label += f" [Topic: {', '.join(pyq.topic_tags)}]"
        if not pyq.verified and not official:
            label += " ⚠️ (unverified)"
        elif official:
            label += " ✅"

        by_decade.setdefault((pyq.year or 0) // 10 * 10, []).append(label)

    lines: List[str] = []
    for decade in sorted(by_decade):
        lines.append(f"{decade}s:")
        lines.extend(f"- {row}" for row in by_decade[decade])
        lines.append("")

    total = len(items)
    unverified_count = total - verified_count
    if verified_count and unverified_count:
        lines.append(
            f"Total listed: {total} ({verified_count} ✅ verified, {unverified_count} ⚠️ unverified)"
        )
    elif verified_count:
        lines.append(f"Total listed: {total} (✅ All verified from official sources)")
    else:
        lines.append(f"Total listed: {total} (⚠️ All unverified - please verify before use)")
    return "\n".join(lines)


async def search_pyqs(db: AsyncSession, query: SearchQuery) -> Dict[str, Any]:
    """Filtered, quality-checked PYQs, verified first, with a formatted listing."""
    cap = min(query.limit if query.limit and query.limit > 0 else 200, SEARCH_MAX_LIMIT)
    latest_year = utcnow().year + 1

    filters: List[Any] = [
        PYQ.exam != "",
        func.length(PYQ.question) >= MIN_QUESTION_LENGTH,
        PYQ.year >= EARLIEST_YEAR,
        PYQ.year <= latest_year,
    ]
    if query.exam and query.exam.strip():
        filters.append(PYQ.exam == query.exam.upper().strip())
    if query.level and query.level.strip():
        filters.append(func.lower(PYQ.level) == query.level.strip().lower())
    if query.paper and query.paper.strip():
        filters.append(_contains(PYQ.paper, query.paper.strip()))
    if query.from_year is not None:
        filters.append(PYQ.year >= query.from_year)
    if query.to_year is not None:
        filters.append(PYQ.year <= query.to_year)
    if query.theme and query.theme.strip():
        theme = query.theme.strip()
        filters.append(or_(
            _tags_contain(theme),
            _contains(PYQ.question, theme),
            _contains(PYQ.theme, theme),
        ))

    rows = (
        await db.execute(
            select(PYQ)
            .where(*filters)
            .order_by(PYQ.verified.desc(), PYQ.analysis.desc(), PYQ.year.desc())
            .limit(cap)
        )
    ).scalars().all()

    items = sorted(rows, key=lambda pyq: (not is_verified(pyq), -(pyq.year or 0)))
    logger.info("PYQ search exam=%s theme=%r returned %d items", query.exam, query.theme, len(items))

    return {
        "ok": True,
        "count": len(items),
        "items": [serialize_pyq(pyq, full=True) for pyq in items],
        "formatted": format_search_results(items),
    }
