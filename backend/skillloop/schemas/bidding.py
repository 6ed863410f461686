"""Bidding Schemas — learning requests, bids, and bid resolution.

Invariants:
    - LearningRequestCreate.max_budget > 0, preferred_duration 15–480 minutes
    - BidCreate is priced against the request budget in core/enforce_bidding, not here:
      an over-budget bid is a guard violation, not malformed input
    - BidResolution with action == accept requires start_time
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from skillloop.schemas.common import OrmResponse
from skillloop.schemas.session import SessionResponse


class LearningRequestCreate(BaseModel):
    skill_name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=5000)
    max_budget: float = Field(gt=0)
    preferred_duration: int = Field(ge=15, le=480)
    preferred_schedule: str | None = Field(None, max_length=100)

    @field_validator("skill_name", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty or whitespace")
        return v


class BidCreate(BaseModel):
    proposed_rate: float = Field(gt=0)
    proposed_duration: int = Field(ge=15, le=480)
    message: str = Field(min_length=1, max_length=2000)
    available_slots: list[str] = Field(default_factory=list)


class BidResolution(BaseModel):
    action: Literal["accept", "reject"]
    start_time: datetime | None = None

    @model_validator(mode="after")
    def validate_accept_fields(self):
        if self.action == "accept" and self.start_time is None:
            raise ValueError("accept requires start_time")
        return self


class BidResponse(OrmResponse):
    id: UUID
    learning_request_id: UUID
    tutor_address: str
    proposed_rate: float
    proposed_duration: int
    total_cost: float
    message: str
    available_slots: list[str]
    status: str
    created_at: datetime


class LearningRequestResponse(OrmResponse):
    id: UUID
    owner_address: str
    skill_name: str
    description: str
    preferred_duration: int
    max_budget: float
    preferred_schedule: str
    status: str
    selected_bid_id: UUID | None
    bids: list[BidResponse] = []
    created_at: datetime


class BidResolutionResponse(BaseModel):
    bid: BidResponse
    session: SessionResponse | None = None
