"""User ORM — wallet identity plus the token balance owned by the ledger.

Invariants:
    - address is unique and always lower-cased
    - token_balance is written ONLY by services/ledger.py (atomic UPDATE statements)
    - token_balance >= 0 is also a table CHECK constraint
    - rating is derived from rating_total / rating_count, never stored

Design Decisions:
    - Running total + count over a stored average: a review is one atomic increment,
      so concurrent reviews cannot lose an update
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, String, Integer, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from skillloop.db.base import Base


class User(Base):
    """Registered wallet — learner, tutor, or both."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_users_balance_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    address: Mapped[str] = mapped_column(
        String(42), nullable=False, unique=True, index=True,
    )
    username: Mapped[str | None] = mapped_column(String(50), nullable=True)
    token_balance: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
    )
    rating_total: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
    )
    rating_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    sessions_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def rating(self) -> float:
        if not self.rating_count:
            return 0.0
        return round(self.rating_total / self.rating_count, 1)
