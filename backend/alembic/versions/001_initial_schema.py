"""Initial schema — users, learning requests, bids, sessions, escrow, certificates, reviews, notifications.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("address", sa.String(42), nullable=False, unique=True),
        sa.Column("username", sa.String(50), nullable=True),
        sa.Column("token_balance", sa.Float, nullable=False, server_default="0"),
        sa.Column("rating_total", sa.Float, nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sessions_completed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("token_balance >= 0", name="ck_users_balance_non_negative"),
    )
    op.create_index("ix_users_address", "users", ["address"])

    op.create_table(
        "learning_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_address", sa.String(42), sa.ForeignKey("users.address"), nullable=False),
        sa.Column("skill_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("preferred_duration", sa.Integer, nullable=False),
        sa.Column("max_budget", sa.Float, nullable=False),
        sa.Column("preferred_schedule", sa.String(100), nullable=False, server_default="Flexible"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("selected_bid_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_learning_requests_owner_address", "learning_requests", ["owner_address"])

    op.create_table(
        "bids",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "learning_request_id", UUID(as_uuid=True),
            sa.ForeignKey("learning_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("tutor_address", sa.String(42), sa.ForeignKey("users.address"), nullable=False),
        sa.Column("proposed_rate", sa.Float, nullable=False),
        sa.Column("proposed_duration", sa.Integer, nullable=False),
        sa.Column("total_cost", sa.Float, nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("available_slots", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_bids_learning_request_id", "bids", ["learning_request_id"])
    op.create_index(
        "uq_bids_one_pending_per_tutor", "bids",
        ["learning_request_id", "tutor_address"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tutor_address", sa.String(42), sa.ForeignKey("users.address"), nullable=False),
        sa.Column("learner_address", sa.String(42), sa.ForeignKey("users.address"), nullable=False),
        sa.Column("skill_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer, nullable=False),
        sa.Column("token_amount", sa.Float, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="requested"),
        sa.Column("origin", sa.String(10), nullable=False, server_default="direct"),
        sa.Column("bid_id", UUID(as_uuid=True), sa.ForeignKey("bids.id"), nullable=True),
        sa.Column(
            "learning_request_id", UUID(as_uuid=True),
            sa.ForeignKey("learning_requests.id"), nullable=True,
        ),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("canceled_by", sa.String(42), nullable=True),
        sa.Column("learning_objectives", sa.JSON, nullable=False),
        sa.Column("session_notes", sa.Text, nullable=False, server_default=""),
        sa.Column("progress_tracking", sa.JSON, nullable=True),
        sa.Column("progress_version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("actual_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_sessions_tutor_address", "sessions", ["tutor_address"])
    op.create_index("ix_sessions_learner_address", "sessions", ["learner_address"])

    op.create_table(
        "token_transactions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), sa.ForeignKey("sessions.id"), nullable=False, unique=True),
        sa.Column("from_address", sa.String(42), nullable=False),
        sa.Column("to_address", sa.String(42), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="booking"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "certificates",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), sa.ForeignKey("sessions.id"), nullable=False, unique=True),
        sa.Column("recipient_address", sa.String(42), nullable=False),
        sa.Column("issuer_address", sa.String(42), nullable=False),
        sa.Column("skill_name", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("progress_achieved", sa.Integer, nullable=False),
        sa.Column("objectives_completed", sa.JSON, nullable=False),
        sa.Column("session_duration", sa.Integer, nullable=False),
        sa.Column("tutor_notes", sa.Text, nullable=True),
        sa.Column("token_id", sa.String(100), nullable=True),
        sa.Column("tx_hash", sa.String(100), nullable=True),
        sa.Column("metadata_uri", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("minted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_certificates_recipient_address", "certificates", ["recipient_address"])

    op.create_table(
        "reviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), sa.ForeignKey("sessions.id"), nullable=False),
        sa.Column("reviewer_address", sa.String(42), nullable=False),
        sa.Column("target_address", sa.String(42), nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("session_id", "reviewer_address", name="uq_review_per_reviewer"),
    )
    op.create_index("ix_reviews_session_id", "reviews", ["session_id"])

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("recipient_address", sa.String(42), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("read", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_recipient_address", "notifications", ["recipient_address"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("reviews")
    op.drop_table("certificates")
    op.drop_table("token_transactions")
    op.drop_table("sessions")
    op.drop_index("uq_bids_one_pending_per_tutor", table_name="bids")
    op.drop_table("bids")
    op.drop_table("learning_requests")
    op.drop_table("users")
