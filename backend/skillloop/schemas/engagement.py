"""Engagement Schemas — reviews, certificates and inbox notifications."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from skillloop.schemas.common import OrmResponse


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field("", max_length=2000)


class ReviewResponse(OrmResponse):
    id: UUID
    session_id: UUID
    reviewer_address: str
    target_address: str
    rating: int
    comment: str
    created_at: datetime


class CertificateResponse(OrmResponse):
    id: UUID
    session_id: UUID
    recipient_address: str
    issuer_address: str
    skill_name: str
    status: str
    progress_achieved: int
    objectives_completed: list[str]
    session_duration: int
    tutor_notes: str | None
    token_id: str | None
    tx_hash: str | None
    metadata_uri: str | None
    created_at: datetime
    minted_at: datetime | None


class NotificationResponse(OrmResponse):
    id: UUID
    type: str
    title: str
    message: str
    data: dict[str, Any]
    read: bool
    created_at: datetime
