"""Certificate ORM — completion record for one session, later mintable as an NFT.

Invariants:
    - At most one certificate per session (unique session_id)
    - status transitions: pending -> minting -> minted | failed, each guarded on its source
    - token_id / tx_hash / metadata_uri are set only by the minting UPDATE
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from skillloop.db.base import Base


class Certificate(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sessions.id"),
        nullable=False, unique=True,
    )
    recipient_address: Mapped[str] = mapped_column(
        String(42), nullable=False, index=True,
    )
    issuer_address: Mapped[str] = mapped_column(String(42), nullable=False)
    skill_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    progress_achieved: Mapped[int] = mapped_column(Integer, nullable=False)
    objectives_completed: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    session_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    tutor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    metadata_uri: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    minted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
