"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

BRANCHES = ("ТАШКЕНТ", "САМАРКАНД", "БУХАРА", "НАМАНГАН", "АНДИЖАН", "ФЕРГАНА", "НУКУС", "ШЫМКЕНТ")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Shared by several tables, so created once up front.
    bind = op.get_bind()
    postgresql.ENUM(*BRANCHES, name="branch_enum").create(bind, checkfirst=True)
    postgresql.ENUM("temporary", "saved", name="message_status").create(bind, checkfirst=True)
    branch_enum = postgresql.ENUM(*BRANCHES, name="branch_enum", create_type=False)
    message_status = postgresql.ENUM("temporary", "saved", name="message_status", create_type=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("login", sa.String(length=120), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("role", sa.Enum("admin", "user", name="role_enum"), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_login", "users", ["login"], unique=True)

    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=True),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("branch", branch_enum, nullable=True),
        sa.Column(
            "status",
            sa.Enum("NEW", "REGULAR", name="patient_status"),
            nullable=False,
            server_default="NEW",
        ),
        sa.Column("checkout_date", sa.String(length=32), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_patients_phone_status", "patients", ["phone_number", "status"])
    op.create_index(
        "uq_patients_regular_phone",
        "patients",
        ["phone_number"],
        unique=True,
        postgresql_where=sa.text("status = 'REGULAR'"),
    )

    op.create_table(
        "feedbacks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("category", sa.Enum("complaint", "suggestion", name="feedback_category"), nullable=False),
        sa.Column("status", sa.String(length=120), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("branch", branch_enum, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_feedbacks_status", "feedbacks", ["status"])
    op.create_index("ix_feedbacks_phone_number", "feedbacks", ["phone_number"])
    op.create_index("ix_feedbacks_created_at", "feedbacks", ["created_at"])
    op.create_index("ix_feedbacks_patient_id", "feedbacks", ["patient_id"])

    op.create_table(
        "call_statuses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "status",
            sa.Enum("no_answer", "wrong_number", "no_connection", "answered", name="call_outcome"),
            nullable=False,
        ),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("branch", branch_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_call_statuses_created_at", "call_statuses", ["created_at"])
    op.create_index("ix_call_statuses_patient_id", "call_statuses", ["patient_id"])

    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "category",
            sa.Enum("doctors", "nurses", "cleaning", "kitchen", "reception", name="rating_category"),
            nullable=False,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("branch", branch_enum, nullable=False),
        sa.Column(
            "feedback_id",
            sa.Integer(),
            sa.ForeignKey("feedbacks.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("score BETWEEN 2 AND 5", name="ck_ratings_score_range"),
    )
    op.create_index("ix_ratings_category_branch", "ratings", ["category", "branch"])
    op.create_index("ix_ratings_created_at", "ratings", ["created_at"])
    op.create_index("ix_ratings_patient_id", "ratings", ["patient_id"])

    op.create_table(
        "text_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sender", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", message_status, nullable=False, server_default="temporary"),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_text_messages_status", "text_messages", ["status"])

    op.create_table(
        "voice_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sender", sa.String(length=20), nullable=False),
        sa.Column("media_id", sa.String(length=120), nullable=True),
        sa.Column("message_type", sa.String(length=20), nullable=False, server_default="audio"),
        sa.Column("mime_type", sa.String(length=60), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("file_data", sa.LargeBinary(), nullable=True),
        sa.Column("status", message_status, nullable=False, server_default="temporary"),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_voice_messages_status", "voice_messages", ["status"])
    op.create_index("ix_voice_messages_media_id", "voice_messages", ["media_id"])

    op.create_table(
        "board_cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("card_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("list_id", sa.String(length=64), nullable=True),
        sa.Column("board_id", sa.String(length=64), nullable=True),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_login", sa.String(length=120), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("board_cards")
    op.drop_index("ix_voice_messages_media_id", table_name="voice_messages")
    op.drop_index("ix_voice_messages_status", table_name="voice_messages")
    op.drop_table("voice_messages")
    op.drop_index("ix_text_messages_status", table_name="text_messages")
    op.drop_table("text_messages")
    op.drop_table("ratings")
    op.drop_table("call_statuses")
    op.drop_table("feedbacks")
    op.drop_index("uq_patients_regular_phone", table_name="patients")
    op.drop_index("ix_patients_phone_status", table_name="patients")
    op.drop_table("patients")
    op.drop_index("ix_users_login", table_name="users")
    op.drop_table("users")
    for enum_name in (
        "message_status",
        "rating_category",
        "call_outcome",
        "feedback_category",
        "patient_status",
        "branch_enum",
        "role_enum",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
