"""Session ORM — one booked tutoring session and its escrowed token amount.

Invariants:
    - status is written ONLY by services/session_lifecycle.py via status-guarded UPDATEs
    - status transitions follow core/session_transitions.TRANSITIONS (strictly forward)
    - progress_tracking is NULL until the session is started, then holds ProgressTracking.to_dict()
    - progress_version increments on every progress write (optimistic concurrency)

Design Decisions:
    - JSON column for progress_tracking: the record is always read and written whole
    - Addresses denormalized on the row: guards compare actor to tutor/learner without a JOIN
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, Float, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from skillloop.db.base import Base


class Session(Base):
    """Tutoring session aggregate — owns its progress record."""
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tutor_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("users.address"), nullable=False, index=True,
    )
    learner_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("users.address"), nullable=False, index=True,
    )
    skill_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    token_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="requested",
    )
    origin: Mapped[str] = mapped_column(
        String(10), nullable=False, default="direct",
    )
    bid_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("bids.id"), nullable=True,
    )
    learning_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("learning_requests.id"), nullable=True,
    )
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    canceled_by: Mapped[str | None] = mapped_column(String(42), nullable=True)
    learning_objectives: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    session_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    progress_tracking: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    progress_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    actual_start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    actual_end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
