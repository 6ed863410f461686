"""User Schemas — registration and public profile."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from skillloop.schemas.common import OrmResponse


class UserRegister(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=50)


class UserResponse(OrmResponse):
    id: UUID
    address: str
    username: str | None
    token_balance: float
    rating: float
    rating_count: int
    sessions_completed: int
    created_at: datetime
