"""Learning Requests & Bids — the open request board and bid resolution.

Invariants:
    - Mutations act as the X-Wallet-Address caller; listing and reads are public
    - Notifications are drained from the outbox into a background task only after the
      service committed; a failed request never schedules delivery
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.api.dependencies import get_actor, get_outbox
from skillloop.core.domain_types import (
    BidAction, RequestStatus, WalletAddress, normalize_address,
)
from skillloop.core.notification_events import EventOutbox
from skillloop.infrastructure.database import get_db
from skillloop.infrastructure.notifier import deliver_in_background
from skillloop.schemas.bidding import (
    BidCreate, BidResolution, BidResolutionResponse, BidResponse,
    LearningRequestCreate, LearningRequestResponse,
)
from skillloop.schemas.common import WALLET_PATTERN
from skillloop.schemas.session import SessionResponse
from skillloop.services.bidding import BiddingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/learning-requests", tags=["learning-requests"])


@router.post(
    "", response_model=LearningRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_learning_request(
    body: LearningRequestCreate,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await BiddingEngine(db, outbox).create_request(
        actor, body.skill_name, body.description, body.max_budget,
        body.preferred_duration, body.preferred_schedule,
    )


@router.get("", response_model=list[LearningRequestResponse])
async def list_learning_requests(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: RequestStatus | None = Query(None, alias="status"),
    skill: str | None = Query(None, max_length=100),
    owner: str | None = Query(None, pattern=WALLET_PATTERN),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await BiddingEngine(db, outbox).list_requests(
        status_filter, skill, normalize_address(owner) if owner else None,
        limit, offset,
    )


@router.get("/{request_id}", response_model=LearningRequestResponse)
async def get_learning_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await BiddingEngine(db, outbox).get_request(request_id)


@router.post("/{request_id}/close", response_model=LearningRequestResponse)
async def close_learning_request(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    request = await BiddingEngine(db, outbox).close_request(request_id, actor)
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return request


# ─── Bids ────────────────────────────────────────────────────────

@router.post(
    "/{request_id}/bids", response_model=BidResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_bid(
    request_id: UUID,
    body: BidCreate,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    bid = await BiddingEngine(db, outbox).submit_bid(
        request_id, actor, body.proposed_rate, body.proposed_duration,
        body.message, body.available_slots,
    )
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return bid


@router.post(
    "/{request_id}/bids/{bid_id}/resolve", response_model=BidResolutionResponse,
)
async def resolve_bid(
    request_id: UUID,
    bid_id: UUID,
    body: BidResolution,
    background_tasks: BackgroundTasks,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    """Owner accepts (opens a confirmed session with escrow) or rejects a bid."""
    bid, session = await BiddingEngine(db, outbox).resolve_bid(
        request_id, bid_id, actor, BidAction(body.action), body.start_time,
    )
    background_tasks.add_task(deliver_in_background, outbox.drain())
    return BidResolutionResponse(
        bid=BidResponse.model_validate(bid),
        session=SessionResponse.model_validate(session) if session else None,
    )


@router.post("/{request_id}/bids/{bid_id}/withdraw", response_model=BidResponse)
async def withdraw_bid(
    request_id: UUID,
    bid_id: UUID,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await BiddingEngine(db, outbox).withdraw_bid(request_id, bid_id, actor)
