"""
Personalisation analytics over chat history and tracked interactions.

The aggregation helpers work on plain ``InsightRecord`` objects so they can be
exercised without a database; the ``collect_*`` / ``build_*`` coroutines load
rows for one user and feed them through.

Dates are bucketed by UTC calendar day and hours are UTC.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from collections import Counter, OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.database_models import (
    Chat,
    InteractionType,
    MessageSender,
    UserInteraction,
)
from app.utils.helpers import percentage, round_half_up, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "General Discussion"

# Checked in order; the first group with a matching keyword wins.
TOPIC_KEYWORDS = [
    ("Polity", ("polity", "constitution", "government", "federal")),
    ("History", ("history", "ancient", "medieval", "modern")),
    ("Geography", ("geography", "climate", "map")),
    ("Economics", ("economy", "economic", "finance", "gdp")),
    ("Science & Technology", ("science", "technology", "physics", "chemistry")),
    ("Environment", ("environment", "ecology", "biodiversity", "climate change")),
    ("Current Affairs", ("current affairs", "news", "recent")),
    ("Ethics", ("ethics", "integrity", "moral")),
    ("Essay Writing", ("essay", "writing")),
    ("Interview Prep", ("interview", "daf", "personality")),
]

_BEGINNER_RE = re.compile(r"^(what is|who is|when|where|define|explain\s+basic)", re.IGNORECASE)
_INTERMEDIATE_RE = re.compile(r"how|why|compare|difference|relate|application|example", re.IGNORECASE)
_ADVANCED_RE = re.compile(
    r"critically|analyze|evaluate|assess|implications|impact|significance|debate|argue",
    re.IGNORECASE,
)


@dataclasses.dataclass
class InsightRecord:
    """One data point for the chat-insights aggregation."""

    timestamp: datetime
    metadata: Dict[str, Any]


def classify_topic(text: Optional[str]) -> str:
    """Map free text to a study topic by keyword substring search."""
    if not text:
        return DEFAULT_TOPIC
    lowered = text.lower()
    for topic, keywords in TOPIC_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return topic
    return DEFAULT_TOPIC


def _user_texts(chat: Chat) -> List[str]:
    return [m.text for m in chat.messages if m.sender == MessageSender.USER and m.text]


def chat_to_record(chat: Chat) -> InsightRecord:
    """Describe a stored chat as an interaction record."""
    user_messages = [m for m in chat.messages if m.sender == MessageSender.USER]
    total = len(chat.messages)
    topic = classify_topic(user_messages[0].text) if user_messages else DEFAULT_TOPIC
    return InsightRecord(
        timestamp=chat.created_at,
        metadata={
            "topic": topic,
            "messageLength": sum(len(m.text or "") for m in user_messages),
            "responseLength": 0,
            "isPyqQuery": False,
            "isFollowUp": total > 2,
            "engagementScore": min(10, 5 + total // 2),
        },
    )


def interaction_to_record(interaction: UserInteraction) -> InsightRecord:
    return InsightRecord(timestamp=interaction.timestamp, metadata=dict(interaction.metadata_json or {}))


def metadata_topic(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    """Tracked topic, or None when the client sent something other than a non-empty string."""
    topic = (metadata or {}).get("topic")
    if isinstance(topic, str) and topic.strip():
        return topic
    return None


# ---------------------------------------------------------------------------
# Aggregation helpers
# ---------------------------------------------------------------------------

def calculate_streak(active_days: Iterable[date], today: Optional[date] = None) -> int:
    """
    Consecutive active days ending today or yesterday; 0 when the most recent
    active day is older than yesterday.
    """
    days = sorted(set(active_days), reverse=True)
    if not days:
        return 0
    today = today or utcnow().date()
    if days[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


def longest_streak(active_days: Iterable[date]) -> int:
    days = sorted(set(active_days))
    if not days:
        return 0
    longest = current = 1
    for older, newer in zip(days, days[1:]):
        current = current + 1 if (newer - older).days == 1 else 1
        longest = max(longest, current)
    return longest


def score_question(text: str, chat_message_count: int) -> int:
    """Complexity points for one user question."""
    if _BEGINNER_RE.search(text):
        score = 1
    elif _INTERMEDIATE_RE.search(text):
        score = 3
    elif _ADVANCED_RE.search(text):
        score = 7
    elif len(text) > 100:
        score = 4
    else:
        score = 2
    if chat_message_count > 4:
        score += 1
    return score


def analyze_difficulty(records: Sequence[InsightRecord], chats: Sequence[Chat]) -> Dict[str, Any]:
    """
    Estimate the user's level from question phrasing and the engagement trend
    between the older and newer halves of *records*.
    """
    if not records:
        return {"current": "beginner", "trend": "stable", "score": 0}

    complexity = 0
    question_count = 0
    for chat in chats:
        for text in _user_texts(chat):
            question_count += 1
            complexity += score_question(text.lower(), len(chat.messages))

    avg_complexity = complexity / question_count if question_count else 0
    if avg_complexity < 2.5:
        current = "beginner"
    elif avg_complexity < 5:
        current = "intermediate"
    else:
        current = "advanced"

    chronological = sorted(records, key=lambda r: r.timestamp)
    half = len(chronological) // 2
    older = chronological[:half]
    newer = chronological[half:]
    old_engagement = sum(_engagement(r) for r in older) / (len(older) or 1)
    recent_engagement = sum(_engagement(r) for r in newer) / (len(newer) or 1)

    if recent_engagement > old_engagement * 1.3:
        trend = "improving"
    elif recent_engagement < old_engagement * 0.7:
        trend = "declining"
    else:
        trend = "stable"

    return {
        "current": current,
        "trend": trend,
        "score": round_half_up(avg_complexity, 1),
        "details": {
            "avgComplexity": round_half_up(avg_complexity, 1),
            "totalQuestions": question_count,
            "oldEngagement": round_half_up(old_engagement, 1),
            "recentEngagement": round_half_up(recent_engagement, 1),
        },
    }


def _engagement(record: InsightRecord) -> float:
    value = record.metadata.get("engagementScore")
    return float(value) if isinstance(value, (int, float)) else 0.0


def _time_bucket(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def study_pattern(records: Sequence[InsightRecord]) -> Dict[str, Any]:
    distribution = OrderedDict((bucket, 0) for bucket in ("morning", "afternoon", "evening", "night"))
    for record in records:
        distribution[_time_bucket(record.timestamp.hour)] += 1

    morning, afternoon, evening, night = distribution.values()
    if morning > afternoon and morning > evening and morning > night:
        peak = "Morning"
    elif afternoon > evening and afternoon > night:
        peak = "Afternoon"
    elif evening > night:
        peak = "Evening"
    else:
        peak = "Night"

    daily = Counter(record.timestamp.date() for record in records)
    most_active = max(daily.items(), key=lambda item: item[1])[0] if daily else None
    return {
        "peakTime": peak,
        "distribution": dict(distribution),
        "mostActiveDay": most_active.isoformat() if most_active else None,
        "consistency": len(daily),
    }


def build_chat_insights(
    records: Sequence[InsightRecord],
    chats: Sequence[Chat],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Dashboard summary for *records* (tracked chat interactions plus stored
    chats), which must be ordered most recent first.
    """
    if not records:
        return {
            "hasData": False,
            "insights": {
                "totalConversations": 0,
                "topTopics": [],
                "recentTopics": [],
                "favoriteSubjects": [],
                "questionTypes": [],
                "studyPattern": None,
                "averageEngagement": 0,
            },
        }

    now = now or utcnow()
    total = len(records)
    topics = Counter(filter(None, (metadata_topic(r.metadata) for r in records)))

    top_topics = [
        {"topic": topic, "count": count, "percentage": percentage(count, total)}
        for topic, count in topics.most_common(5)
    ]

    recent_topics: List[str] = []
    for record in records:
        topic = metadata_topic(record.metadata)
        if topic and topic not in recent_topics:
            recent_topics.append(topic)
    recent_topics = recent_topics[:10]

    favorite_subjects = [
        {"subject": subject, "count": count, "engagement": "high"}
        for subject, count in topics.most_common()
        if count >= 3
    ][:5]

    pyq = follow_up = general = 0
    for record in records:
        if record.metadata.get("isPyqQuery"):
            pyq += 1
        elif record.metadata.get("isFollowUp"):
            follow_up += 1
        else:
            general += 1
    question_total = pyq + general + follow_up
    question_types = [
        {"type": "PYQ Queries", "count": pyq, "percentage": percentage(pyq, question_total)},
        {"type": "General Questions", "count": general, "percentage": percentage(general, question_total)},
        {"type": "Follow-ups", "count": follow_up, "percentage": percentage(follow_up, question_total)},
    ]

    active_days = {record.timestamp.date() for record in records}
    week_start = (now - timedelta(days=6)).date()

    return {
        "hasData": True,
        "insights": {
            "totalConversations": total,
            "topTopics": top_topics,
            "recentTopics": recent_topics,
            "favoriteSubjects": favorite_subjects,
            "questionTypes": question_types,
            "studyPattern": study_pattern(records),
            "averageEngagement": round_half_up(sum(_engagement(r) for r in records) / total, 1),
            "last7Days": len([day for day in active_days if day >= week_start]),
            "streak": calculate_streak(active_days, now.date()),
            "difficultyLevel": analyze_difficulty(records, chats),
        },
    }


# ---------------------------------------------------------------------------
# Database-backed builders
# ---------------------------------------------------------------------------

async def collect_chat_insights(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """Load the last window of chat activity for *user_id* and summarise it."""
    now = utcnow()
    cutoff = now - timedelta(days=settings.INSIGHTS_WINDOW_DAYS)

    interactions = (
        await db.execute(
            select(UserInteraction)
            .where(
                UserInteraction.user_id == user_id,
                UserInteraction.interaction_type == InteractionType.CHAT,
                UserInteraction.timestamp >= cutoff,
            )
            .order_by(UserInteraction.timestamp.desc())
            .limit(200)
        )
    ).scalars().all()

    chats = (
        await db.execute(
            select(Chat)
            .options(selectinload(Chat.messages))
            .where(Chat.user_id == user_id, Chat.is_active.is_(True), Chat.created_at >= cutoff)
            .order_by(Chat.created_at.desc())
            .limit(100)
        )
    ).scalars().all()

    records = [interaction_to_record(i) for i in interactions] + [chat_to_record(c) for c in chats]
    records.sort(key=lambda r: r.timestamp, reverse=True)
    logger.info(
        "Chat insights for %s: %d tracked interactions, %d chats",
        user_id,
        len(interactions),
        len(chats),
    )
    return build_chat_insights(records, chats, now)


def topic_frequency(interactions: Sequence[UserInteraction], limit: int = 20) -> List[Dict[str, Any]]:
    groups: Dict[str, List[UserInteraction]] = {}
    for interaction in interactions:
        topic = metadata_topic(interaction.metadata_json)
        if topic:
            groups.setdefault(topic, []).append(interaction)

    rows = []
    for topic, items in groups.items():
        rows.append({
            "topic": topic,
            "count": len(items),
            "avgEngagement": _average(_metadata_numbers(items, "engagementScore")),
            "lastInteraction": max(i.timestamp for i in items),
        })
    rows.sort(key=lambda row: row["count"], reverse=True)
    return rows[:limit]


def interaction_summary(interactions: Sequence[UserInteraction]) -> List[Dict[str, Any]]:
    groups: Dict[str, List[UserInteraction]] = {}
    for interaction in interactions:
        groups.setdefault(interaction.interaction_type.value, []).append(interaction)

    rows = [
        {
            "interactionType": kind,
            "count": len(items),
            "avgEngagement": _average(_metadata_numbers(items, "engagementScore")),
            "totalTimeSpent": sum(_metadata_numbers(items, "timeSpent")),
        }
        for kind, items in groups.items()
    ]
    rows.sort(key=lambda row: row["count"], reverse=True)
    return rows


def study_streak(timestamps: Iterable[datetime], today: Optional[date] = None) -> Dict[str, Any]:
    days = sorted({ts.date() for ts in timestamps}, reverse=True)
    if not days:
        return {"currentStreak": 0, "longestStreak": 0, "lastStudyDate": None, "totalStudyDays": 0}
    return {
        "currentStreak": calculate_streak(days, today),
        "longestStreak": longest_streak(days),
        "lastStudyDate": days[0].isoformat(),
        "totalStudyDays": len(days),
    }


def _metadata_numbers(items: Sequence[UserInteraction], key: str) -> List[float]:
    values = [(i.metadata_json or {}).get(key) for i in items]
    return [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]


def _average(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return round_half_up(sum(values) / len(values), 1)


def serialize_interaction(interaction: UserInteraction) -> Dict[str, Any]:
    return {
        "id": interaction.id,
        "interactionType": interaction.interaction_type.value,
        "feature": interaction.feature,
        "action": interaction.action.value,
        "metadata": interaction.metadata_json or {},
        "timestamp": interaction.timestamp,
    }


async def collect_user_insights(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """Topic frequency, per-feature summary, study streak and recent activity."""
    now = utcnow()
    window_start = now - timedelta(days=settings.INSIGHTS_WINDOW_DAYS)
    streak_start = now - timedelta(days=settings.STREAK_WINDOW_DAYS)

    interactions = (
        await db.execute(
            select(UserInteraction)
            .where(UserInteraction.user_id == user_id, UserInteraction.timestamp >= streak_start)
            .order_by(UserInteraction.timestamp.desc())
        )
    ).scalars().all()
    recent_window = [i for i in interactions if i.timestamp >= window_start]

    return {
        "topicFrequency": topic_frequency(recent_window),
        "interactionSummary": interaction_summary(recent_window),
        "studyStreak": study_streak((i.timestamp for i in interactions), now.date()),
        "recentActivity": [serialize_interaction(i) for i in interactions[:10]],
    }


# ---------------------------------------------------------------------------
# User-agent parsing
# ---------------------------------------------------------------------------

_TABLET_RE = re.compile(r"tablet|ipad|playbook|silk", re.IGNORECASE)
_MOBILE_RE = re.compile(
    r"mobile|iphone|ipod|android|blackberry|opera|mini|windows\sce|palm|smartphone|iemobile",
    re.IGNORECASE,
)


def detect_device(user_agent: str) -> str:
    if not user_agent:
        return "unknown"
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def detect_browser(user_agent: str) -> str:
    if not user_agent:
        return "unknown"
    for token in ("Chrome", "Safari", "Firefox", "Edge", "Opera"):
        if token in user_agent:
            return token
    return "unknown"


def detect_os(user_agent: str) -> str:
    if not user_agent:
        return "unknown"
    for token, name in (("Windows", "Windows"), ("Mac", "macOS"), ("Linux", "Linux"), ("Android", "Android")):
        if token in user_agent:
            return name
    if any(token in user_agent for token in ("iOS", "iPhone", "iPad")):
        return "iOS"
    return "unknown"


def enrich_device_info(user_agent: str, device_info: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Parsed user-agent fields, overridden by anything the client sent."""
    info = {
        "userAgent": user_agent,
        "device": detect_device(user_agent),
        "browser": detect_browser(user_agent),
        "os": detect_os(user_agent),
    }
    info.update(device_info or {})
    return info
