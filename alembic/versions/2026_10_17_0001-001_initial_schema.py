"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17

All 5 tables as defined in app/models/database_models.py:
users, chats, chat_messages, user_interactions, pyqs.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# SQLAlchemy Enum columns store member names
MESSAGE_SENDERS = ("USER", "ASSISTANT")
INTERACTION_TYPES = (
    "CHAT", "PYQ", "MOCK_TEST", "ESSAY", "INTERVIEW", "CURRENT_AFFAIRS",
    "FLASHCARD", "NOTES", "VOCABULARY", "FORMULA_SHEET",
)
INTERACTION_ACTIONS = (
    "VIEW", "SEARCH", "ATTEMPT", "GENERATE", "SAVE", "BOOKMARK",
    "SUBMIT", "ANALYZE", "EXPORT", "SHARE", "EDIT", "DELETE",
)


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    sa.Enum(*MESSAGE_SENDERS, name="messagesender").create(op.get_bind(), checkfirst=True)
    sa.Enum(*INTERACTION_TYPES, name="interactiontype").create(op.get_bind(), checkfirst=True)
    sa.Enum(*INTERACTION_ACTIONS, name="interactionaction").create(op.get_bind(), checkfirst=True)

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("total_questions", sa.Integer, server_default="0", nullable=False),
        sa.Column("session_questions", sa.Integer, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )

    # ── chats ─────────────────────────────────────────────────────────────
    op.create_table(
        "chats",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("language", sa.String(10), server_default="en", nullable=False),
        sa.Column("model", sa.String(100), server_default="sonar-pro", nullable=False),
        sa.Column("system_prompt", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False, index=True),
        sa.Column("pinned", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("folder", sa.String(255), nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("archived", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("last_message_at", sa.DateTime, server_default=sa.func.now(), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )

    # ── chat_messages ─────────────────────────────────────────────────────
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("chat_id", sa.Integer, sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("sender", sa.Enum(*MESSAGE_SENDERS, name="messagesender", create_type=False), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("language", sa.String(10), nullable=True),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("tokens", sa.Integer, nullable=True),
        sa.Column("bookmarked", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("truth_anchored", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("edited_at", sa.DateTime, nullable=True),
        sa.Column("timestamp", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )

    # ── user_interactions ─────────────────────────────────────────────────
    op.create_table(
        "user_interactions",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("session_id", sa.String(64), nullable=False, index=True),
        sa.Column("interaction_type", sa.Enum(*INTERACTION_TYPES, name="interactiontype", create_type=False), nullable=False, index=True),
        sa.Column("feature", sa.String(100), nullable=False),
        sa.Column("action", sa.Enum(*INTERACTION_ACTIONS, name="interactionaction", create_type=False), nullable=False, index=True),
        sa.Column("metadata_json", sa.JSON, nullable=True),
        sa.Column("device_info", sa.JSON, nullable=True),
        sa.Column("timestamp", sa.DateTime, server_default=sa.func.now(), nullable=False, index=True),
    )

    # ── pyqs ──────────────────────────────────────────────────────────────
    op.create_table(
        "pyqs",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("exam", sa.String(50), nullable=False, index=True),
        sa.Column("level", sa.String(20), server_default="", nullable=False),
        sa.Column("paper", sa.String(100), server_default="", nullable=False),
        sa.Column("year", sa.Integer, nullable=False, index=True),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, server_default="", nullable=False),
        sa.Column("lang", sa.String(10), server_default="en", nullable=False, index=True),
        sa.Column("topic_tags", sa.JSON, nullable=True),
        sa.Column("keywords", sa.JSON, nullable=True),
        sa.Column("analysis", sa.Text, server_default="", nullable=False),
        sa.Column("theme", sa.String(255), server_default="", nullable=False, index=True),
        sa.Column("source_link", sa.String(512), server_default="", nullable=False),
        sa.Column("verified", sa.Boolean, server_default=sa.false(), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("pyqs")
    op.drop_table("user_interactions")
    op.drop_table("chat_messages")
    op.drop_table("chats")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS interactionaction")
    op.execute("DROP TYPE IF EXISTS interactiontype")
    op.execute("DROP TYPE IF EXISTS messagesender")
