"""Bid ORM — a tutor's proposal against a learning request.

Invariants:
    - total_cost == round(proposed_rate * proposed_duration / 60, 2), fixed at submission
    - status transitions: pending -> accepted | rejected | withdrawn (all terminal)
    - At most one bid per learning request ever reaches accepted
    - A tutor holds at most one pending bid per request (partial unique index)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Text, Integer, Float, DateTime, JSON, ForeignKey, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from skillloop.db.base import Base


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        Index(
            "uq_bids_one_pending_per_tutor",
            "learning_request_id", "tutor_address",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    learning_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("learning_requests.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    tutor_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("users.address"), nullable=False,
    )
    proposed_rate: Mapped[float] = mapped_column(Float, nullable=False)
    proposed_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    available_slots: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
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

    learning_request: Mapped["LearningRequest"] = relationship(
        "LearningRequest", back_populates="bids",
    )
