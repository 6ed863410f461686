"""Session Schemas — booking, transitions, progress and completion payloads.

Invariants:
    - SessionBook.duration: 15–480 minutes; tutor_address must be a wallet address
    - Reject / cancel bodies require a non-blank reason
    - Progress responses carry derived fields recomputed server-side, never echoed from input
    - SessionResponse.available_actions mirrors core/session_transitions, never a second rule set

Design Decisions:
    - hourly_rate range (5–20) checked in the lifecycle service: one source for the rule
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

from skillloop.core.domain_types import ParticipantRole, SessionStatus
from skillloop.core.session_transitions import allowed_actions
from skillloop.schemas.common import OrmResponse, Wallet


class SessionBook(BaseModel):
    tutor_address: Wallet
    skill_name: str = Field(min_length=1, max_length=100)
    start_time: datetime
    duration: int = Field(ge=15, le=480)
    hourly_rate: float = Field(gt=0)
    description: str = Field("", max_length=5000)


class SessionApprove(BaseModel):
    meeting_link: str | None = Field(None, max_length=500)


class SessionReason(BaseModel):
    """Reject / cancel body."""
    reason: str = Field(min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reason cannot be empty or whitespace")
        return v


class SessionComplete(BaseModel):
    final_notes: str | None = Field(None, max_length=5000)
    learner_engagement: int | None = Field(None, ge=1, le=5)
    objectives_achieved: list[str] | None = None


class SessionResponse(OrmResponse):
    id: UUID
    tutor_address: str
    learner_address: str
    skill_name: str
    description: str
    start_time: datetime
    end_time: datetime
    duration: int
    token_amount: float
    status: str
    origin: str
    bid_id: UUID | None
    learning_request_id: UUID | None
    meeting_link: str | None
    rejection_reason: str | None
    cancellation_reason: str | None
    canceled_by: str | None
    created_at: datetime

    @computed_field
    @property
    def available_actions(self) -> dict[str, list[str]]:
        """Next actions per participant role, derived from the transition table."""
        current = SessionStatus(self.status)
        return {
            role.value: [a.value for a in allowed_actions(current, role)]
            for role in (ParticipantRole.TUTOR, ParticipantRole.LEARNER)
        }


# --- Progress ----------------------------------------------------------------

class MilestoneUpdate(BaseModel):
    milestone_id: str = Field(min_length=1)
    completed: bool
    notes: str | None = Field(None, max_length=2000)


class MeetingDataUpdate(BaseModel):
    participants: list[str]
    attendance_rate: float = Field(ge=0, le=100)
    duration: int = Field(ge=0)
    recording_url: str | None = Field(None, max_length=500)


class NotesUpdate(BaseModel):
    notes: str = Field(max_length=10_000)


class MilestoneResponse(BaseModel):
    id: str
    title: str
    description: str
    target_time: int
    completed: bool
    completed_at: str | None = None
    notes: str | None = None


class ProgressResponse(BaseModel):
    milestones: list[MilestoneResponse]
    overall_progress: int
    can_complete: bool
    time_spent: int
    participant_count: int
    attendance_rate: float
    attendance_verified: bool
    meeting_recording_url: str | None = None
    learner_engagement: int = 0
    objectives_achieved: list[str] = []
    next_steps: str | None = None


class SessionProgressResponse(BaseModel):
    session_id: UUID
    status: str
    progress_tracking: ProgressResponse | None
    learning_objectives: list[str]
    session_notes: str
    actual_start_time: datetime | None
    actual_end_time: datetime | None


class CompletionResponse(BaseModel):
    session: SessionResponse
    certificate_id: UUID
    progress_achieved: int
