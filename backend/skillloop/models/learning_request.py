"""LearningRequest ORM — a learner's open call for tutors to bid on.

Invariants:
    - status transitions: open -> in_progress | closed; in_progress -> closed; never reopens
    - selected_bid_id is set exactly once, by the accepting conditional update
    - bids are ordered by creation time

Design Decisions:
    - Bids in their own table (not an embedded array): each bid gets its own
      status-guarded UPDATE, so sibling rejection and acceptance cannot clobber each other
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from skillloop.db.base import Base


class LearningRequest(Base):
    __tablename__ = "learning_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("users.address"), nullable=False, index=True,
    )
    skill_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    preferred_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_budget: Mapped[float] = mapped_column(Float, nullable=False)
    preferred_schedule: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Flexible",
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="open",
    )
    selected_bid_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
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

    bids: Mapped[list["Bid"]] = relationship(
        "Bid", back_populates="learning_request",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="Bid.created_at",
    )
