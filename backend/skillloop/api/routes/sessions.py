"""Sessions — direct booking and the session state machine over HTTP.

Invariants:
    - Every transition route is a thin call into SessionLifecycle: no status logic here
    - Transition routes schedule notification delivery only after the service committed
    - Listing is filtered by participant and/or status; reads are public
"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.api.dependencies import get_actor, get_outbox
from skillloop.core.domain_types import (
    SessionStatus, WalletAddress, normalize_address,
)
from skillloop.core.notification_events import EventOutbox
from skillloop.infrastructure.database import get_db
from skillloop.infrastructure.notifier import deliver_in_background
from skillloop.schemas.common import WALLET_PATTERN
from skillloop.schemas.session import (
    CompletionResponse, SessionApprove, SessionBook, SessionComplete,
    SessionReason, SessionResponse,
)
from skillloop.services.session_lifecycle import SessionLifecycle

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


@router.post(
    "", response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_session(
    body: SessionBook,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    """Book a tutor directly; the cost is held in escrow until the session resolves."""
    session = await SessionLifecycle(db, outbox).book(
        actor, WalletAddress(body.tutor_address), body.skill_name,
        body.start_time, body.duration, body.hourly_rate, body.description,
    )
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return session


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: SessionStatus | None = Query(None, alias="status"),
    participant: str | None = Query(None, pattern=WALLET_PATTERN),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await SessionLifecycle(db, outbox).list_sessions(
        normalize_address(participant) if participant else None,
        status_filter, limit, offset,
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await SessionLifecycle(db, outbox).get_session(session_id)


@router.post("/{session_id}/approve", response_model=SessionResponse)
async def approve_session(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    body: SessionApprove | None = None,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await SessionLifecycle(db, outbox).approve(
        session_id, actor, body.meeting_link if body else None,
    )
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return session


@router.post("/{session_id}/reject", response_model=SessionResponse)
async def reject_session(
    session_id: UUID,
    body: SessionReason,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await SessionLifecycle(db, outbox).reject(session_id, actor, body.reason)
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return session


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: UUID,
    body: SessionReason,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await SessionLifecycle(db, outbox).cancel(session_id, actor, body.reason)
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return session


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    session = await SessionLifecycle(db, outbox).start(session_id, actor)
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return session


@router.post("/{session_id}/complete", response_model=CompletionResponse)
async def complete_session(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    body: SessionComplete | None = None,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    """Release escrow to the tutor; gated on progress, attendance and time spent."""
    body = body or SessionComplete()
    session, certificate = await SessionLifecycle(db, outbox).complete(
        session_id, actor, body.final_notes, body.learner_engagement,
        body.objectives_achieved,
    )
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return CompletionResponse(
        session=SessionResponse.model_validate(session),
        certificate_id=certificate.id,
        progress_achieved=certificate.progress_achieved,
    )
