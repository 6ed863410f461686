"""Session Progress — milestones, meeting data and notes of an in-progress session.

Invariants:
    - Writes go through ProgressTracker (started-session guard + progress_version check)
    - Responses always carry server-recomputed derived fields
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.api.dependencies import get_actor, get_outbox
from skillloop.core.domain_types import WalletAddress
from skillloop.core.notification_events import EventOutbox
from skillloop.core.progress_tracking import ProgressTracking
from skillloop.infrastructure.database import get_db
from skillloop.models.session import Session as SessionModel
from skillloop.schemas.session import (
    MeetingDataUpdate, MilestoneUpdate, NotesUpdate, ProgressResponse,
    SessionProgressResponse,
)
from skillloop.services.progress_tracker import ProgressTracker

router = APIRouter(prefix="/api/v1/sessions/{session_id}/progress", tags=["progress"])


def _progress_response(session: SessionModel) -> SessionProgressResponse:
    progress = None
    if session.progress_tracking is not None:
        # recompute derived fields from the stored milestones
        record = ProgressTracking.from_dict(session.progress_tracking)
        progress = ProgressResponse(**record.to_dict())
    return SessionProgressResponse(
        session_id=session.id,
        status=session.status,
        progress_tracking=progress,
        learning_objectives=session.learning_objectives or [],
        session_notes=session.session_notes or "",
        actual_start_time=session.actual_start_time,
        actual_end_time=session.actual_end_time,
    )


@router.get("", response_model=SessionProgressResponse)
async def get_progress(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await ProgressTracker(db, outbox).get_progress(session_id)
    return _progress_response(session)


@router.put("/milestones", response_model=ProgressResponse)
async def update_milestone(
    session_id: UUID,
    body: MilestoneUpdate,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    progress = await ProgressTracker(db, outbox).update_milestone(
        session_id, actor, body.milestone_id, body.completed, body.notes,
    )
    return ProgressResponse(**progress.to_dict())


@router.put("/meeting", response_model=ProgressResponse)
async def update_meeting_data(
    session_id: UUID,
    body: MeetingDataUpdate,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    progress = await ProgressTracker(db, outbox).update_meeting_data(
        session_id, actor, body.participants, body.attendance_rate,
        body.duration, body.recording_url,
    )
    return ProgressResponse(**progress.to_dict())


@router.put("/notes", response_model=SessionProgressResponse)
async def update_notes(
    session_id: UUID,
    body: NotesUpdate,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await ProgressTracker(db, outbox).update_notes(session_id, actor, body.notes)
    return _progress_response(session)
