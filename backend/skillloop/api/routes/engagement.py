"""Reviews, Certificates & Notifications — what a session leaves behind once it is done.

Invariants:
    - Reviews: only participants of completed sessions, once each
    - Certificates: listed per wallet; minted only by their recipient, only while pending
    - Notifications: a wallet only sees and marks its own inbox
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.api.dependencies import get_actor, get_outbox
from skillloop.core.domain_types import (
    CertificateStatus, WalletAddress, normalize_address,
)
from skillloop.core.notification_events import EventOutbox
from skillloop.core.repository_protocols import CertificateMinter
from skillloop.infrastructure.database import get_db
from skillloop.infrastructure.minting import get_minter
from skillloop.schemas.engagement import (
    CertificateResponse, NotificationResponse, ReviewCreate, ReviewResponse,
)
from skillloop.services.certificates import CertificateIssuer
from skillloop.services.notifications import NotificationInbox
from skillloop.services.reviews import ReviewService
from skillloop.services.session_lifecycle import SessionLifecycle

reviews_router = APIRouter(prefix="/api/v1/sessions/{session_id}/reviews", tags=["reviews"])
certificates_router = APIRouter(prefix="/api/v1/certificates", tags=["certificates"])
notifications_router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


# ─── Reviews ─────────────────────────────────────────────────────

@reviews_router.post(
    "", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED,
)
async def submit_review(
    session_id: UUID,
    body: ReviewCreate,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    service = ReviewService(db, SessionLifecycle(db, outbox))
    return await service.submit_review(session_id, actor, body.rating, body.comment)


@reviews_router.get("", response_model=list[ReviewResponse])
async def list_reviews(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    outbox: EventOutbox = Depends(get_outbox),
):
    return await ReviewService(db, SessionLifecycle(db, outbox)).list_reviews(session_id)


# ─── Certificates ────────────────────────────────────────────────

@certificates_router.get("/wallet/{address}", response_model=list[CertificateResponse])
async def list_certificates(
    address: str,
    status_filter: CertificateStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    return await CertificateIssuer(db).list_for_wallet(
        normalize_address(address), status_filter,
    )


@certificates_router.get("/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(certificate_id: UUID, db: AsyncSession = Depends(get_db)):
    return await CertificateIssuer(db).get(certificate_id)


@certificates_router.post("/{certificate_id}/mint", response_model=CertificateResponse)
async def mint_certificate(
    certificate_id: UUID,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    minter: CertificateMinter = Depends(get_minter),
):
    return await CertificateIssuer(db).mint(certificate_id, actor, minter)


# ─── Notifications ───────────────────────────────────────────────

@notifications_router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationInbox(db).list_notifications(
        actor, unread_only, limit, offset,
    )


@notifications_router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationInbox(db).mark_read(notification_id, actor)
