"""Bidding Engine — learning requests, tutor bids, and bid resolution.

Invariants:
    - submit_bid guards come from core/enforce_bidding (open request, budget, one pending bid);
      the store re-checks both under the insert: an open-status guarded UPDATE on the
      request and a partial unique index on pending bids
    - accept is one unit of work: claim request (open -> in_progress), claim bid
      (pending -> accepted), reject pending siblings, open the session with escrow
    - Both claims are status-guarded UPDATEs: of two concurrent accepts on one request,
      exactly one matches; the other fails with GuardViolationError and rolls back
    - reject touches only the target bid — no ledger or request effect
    - A request never reopens

Design Decisions:
    - Session creation delegated to SessionLifecycle.open_session: one code path debits the
      learner and writes the escrow record, for both direct and bid-born sessions
    - Request claimed BEFORE the bid: the request row is the contention point for
      "at most one accepted bid per request"
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import (
    BidAction, BidStatus, NotificationType, RequestStatus, SessionOrigin,
    WalletAddress,
)
from skillloop.core.enforce_bidding import (
    check_bid_pending, check_request_open, compute_total_cost,
    validate_bid_submission,
)
from skillloop.core.errors import (
    AuthorizationError, ErrorContext, GuardViolationError,
    InsufficientBalanceError, ResourceNotFoundError, ValidationError,
)
from skillloop.core.notification_events import EventOutbox
from skillloop.infrastructure.database import atomic
from skillloop.models.bid import Bid
from skillloop.models.learning_request import LearningRequest
from skillloop.models.session import Session as SessionModel
from skillloop.services.ledger import LedgerService
from skillloop.services.session_lifecycle import SessionLifecycle
from skillloop.services.users import UserDirectory

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _guard(error: dict | None, context: ErrorContext | None = None) -> None:
    if error:
        raise GuardViolationError(error["message"], error["error_code"], context)


class BiddingEngine:
    """Learning request board and bid resolution."""

    def __init__(self, db: AsyncSession, outbox: EventOutbox):
        self.db = db
        self.outbox = outbox
        self.users = UserDirectory(db)
        self.ledger = LedgerService(db)
        self.lifecycle = SessionLifecycle(db, outbox)

    # ─── Requests ────────────────────────────────────────────────

    async def create_request(
        self,
        owner: WalletAddress,
        skill_name: str,
        description: str,
        max_budget: float,
        preferred_duration: int,
        preferred_schedule: str | None = None,
    ) -> LearningRequest:
        await self.users.require(owner)
        request = LearningRequest(
            owner_address=owner,
            skill_name=skill_name,
            description=description,
            max_budget=max_budget,
            preferred_duration=preferred_duration,
            preferred_schedule=preferred_schedule or "Flexible",
            status=RequestStatus.OPEN.value,
            bids=[],
        )
        async with atomic(self.db):
            self.db.add(request)
        logger.info(
            f"Learning request opened for {skill_name}",
            extra={"request_id": request.id, "wallet": owner},
        )
        return request

    async def get_request(self, request_id: UUID) -> LearningRequest:
        result = await self.db.execute(
            select(LearningRequest)
            .where(LearningRequest.id == request_id)
            .execution_options(populate_existing=True),
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise ResourceNotFoundError("LearningRequest", str(request_id))
        return request

    async def list_requests(
        self,
        status: RequestStatus | None = None,
        skill_name: str | None = None,
        owner: WalletAddress | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[LearningRequest]:
        query = select(LearningRequest).order_by(LearningRequest.created_at.desc())
        if status:
            query = query.where(LearningRequest.status == status.value)
        if skill_name:
            query = query.where(LearningRequest.skill_name.ilike(f"%{skill_name}%"))
        if owner:
            query = query.where(LearningRequest.owner_address == owner)
        result = await self.db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def close_request(
        self, request_id: UUID, actor: WalletAddress,
    ) -> LearningRequest:
        """Owner withdraws an open request; pending bids are rejected."""
        request = await self.get_request(request_id)
        if actor != request.owner_address:
            raise AuthorizationError("close this learning request")
        context = ErrorContext(request_id=str(request.id))
        _guard(check_request_open(RequestStatus(request.status)), context)

        async with atomic(self.db):
            await self._claim_request(request, RequestStatus.CLOSED)
            rejected = await self._reject_pending_bids(request, keep=None)

        self._notify_not_selected(request, rejected)
        await self.db.refresh(request)
        return request

    # ─── Bids ────────────────────────────────────────────────────

    async def submit_bid(
        self,
        request_id: UUID,
        tutor: WalletAddress,
        proposed_rate: float,
        proposed_duration: int,
        message: str,
        available_slots: list[str] | None = None,
    ) -> Bid:
        request = await self.get_request(request_id)
        await self.users.require(tutor)
        context = ErrorContext(request_id=str(request.id))
        _guard(
            validate_bid_submission(
                RequestStatus(request.status),
                WalletAddress(request.owner_address),
                tutor,
                proposed_rate * proposed_duration / 60,
                request.max_budget,
                [(WalletAddress(b.tutor_address), BidStatus(b.status)) for b in request.bids],
            ),
            context,
        )
        total_cost = compute_total_cost(proposed_rate, proposed_duration)

        bid = Bid(
            learning_request=request,
            tutor_address=tutor,
            proposed_rate=proposed_rate,
            proposed_duration=proposed_duration,
            total_cost=total_cost,
            message=message,
            available_slots=list(available_slots or []),
            status=BidStatus.PENDING.value,
        )
        try:
            async with atomic(self.db):
                await self._lock_open_request(request)
                self.db.add(bid)
                await self.db.flush()
        except IntegrityError as e:
            raise GuardViolationError(
                "You already have a pending bid for this request",
                "DUPLICATE_PENDING_BID",
                context,
            ) from e

        self.outbox.add(
            WalletAddress(request.owner_address), NotificationType.NEW_BID,
            "New Bid Received!",
            f"A tutor has submitted a bid for your {request.skill_name} learning request",
            learning_request_id=str(request.id), bid_id=str(bid.id),
            total_cost=total_cost,
        )
        logger.info(
            f"Bid submitted: {total_cost:g} SKL",
            extra={"request_id": request.id, "bid_id": bid.id, "wallet": tutor},
        )
        return bid

    async def resolve_bid(
        self,
        request_id: UUID,
        bid_id: UUID,
        actor: WalletAddress,
        action: BidAction,
        start_time: datetime | None = None,
    ) -> tuple[Bid, SessionModel | None]:
        """Owner accepts or rejects a pending bid. Returns (bid, session-if-accepted)."""
        request = await self.get_request(request_id)
        bid = _find_bid(request, bid_id)
        if actor != request.owner_address:
            raise AuthorizationError("resolve bids on this learning request")
        context = ErrorContext(request_id=str(request.id), bid_id=str(bid.id))
        _guard(check_bid_pending(BidStatus(bid.status)), context)

        if action is BidAction.REJECT:
            async with atomic(self.db):
                await self._claim_bid(bid, BidStatus.REJECTED, context)
            self.outbox.add(
                WalletAddress(bid.tutor_address), NotificationType.BID_REJECTED,
                "Bid Rejected",
                f"Your bid for {request.skill_name} has been rejected by the student.",
                learning_request_id=str(request.id), bid_id=str(bid.id),
            )
            return bid, None

        if start_time is None:
            raise ValidationError(
                "Session start time is required for acceptance", "start_time",
            )
        _guard(check_request_open(RequestStatus(request.status)), context)
        balance = await self.ledger.get_balance(actor)
        if balance < bid.total_cost:
            raise InsufficientBalanceError(balance, bid.total_cost, context)

        async with atomic(self.db):
            await self._claim_request(request, RequestStatus.IN_PROGRESS, bid.id)
            await self._claim_bid(bid, BidStatus.ACCEPTED, context)
            rejected = await self._reject_pending_bids(request, keep=bid.id)
            session = await self.lifecycle.open_session(
                SessionOrigin.BID,
                learner=actor,
                tutor=WalletAddress(bid.tutor_address),
                skill_name=request.skill_name,
                start_time=start_time,
                duration=bid.proposed_duration,
                amount=bid.total_cost,
                description=request.description,
                bid_id=bid.id,
                learning_request_id=request.id,
            )

        self._notify_not_selected(request, rejected)
        self.outbox.add(
            WalletAddress(bid.tutor_address), NotificationType.BID_ACCEPTED,
            "Bid Accepted!",
            f"Your bid for {request.skill_name} has been accepted! "
            f"Session scheduled for {start_time.date().isoformat()}.",
            learning_request_id=str(request.id), bid_id=str(bid.id),
            session_id=str(session.id),
        )
        logger.info(
            "Bid accepted",
            extra={"request_id": request.id, "bid_id": bid.id, "session_id": session.id},
        )
        return bid, session

    async def withdraw_bid(
        self, request_id: UUID, bid_id: UUID, actor: WalletAddress,
    ) -> Bid:
        request = await self.get_request(request_id)
        bid = _find_bid(request, bid_id)
        if actor != bid.tutor_address:
            raise AuthorizationError("withdraw this bid")
        context = ErrorContext(request_id=str(request.id), bid_id=str(bid.id))
        _guard(check_bid_pending(BidStatus(bid.status)), context)
        async with atomic(self.db):
            await self._claim_bid(bid, BidStatus.WITHDRAWN, context)
        return bid

    # ─── Internals ───────────────────────────────────────────────

    async def _claim_request(
        self,
        request: LearningRequest,
        target: RequestStatus,
        selected_bid_id: UUID | None = None,
    ) -> None:
        values = {"status": target.value, "updated_at": _now()}
        if selected_bid_id is not None:
            values["selected_bid_id"] = selected_bid_id
        result = await self.db.execute(
            update(LearningRequest)
            .where(
                LearningRequest.id == request.id,
                LearningRequest.status == RequestStatus.OPEN.value,
            )
            .values(**values)
        )
        if result.rowcount != 1:
            raise GuardViolationError(
                "Learning request is no longer open",
                "REQUEST_NOT_OPEN",
                ErrorContext(request_id=str(request.id)),
            )

    async def _lock_open_request(self, request: LearningRequest) -> None:
        """Touch the request under an open-status guard. The row lock orders a bid
        insert against a concurrent accept or close of the same request."""
        result = await self.db.execute(
            update(LearningRequest)
            .where(
                LearningRequest.id == request.id,
                LearningRequest.status == RequestStatus.OPEN.value,
            )
            .values(updated_at=_now())
        )
        if result.rowcount != 1:
            raise GuardViolationError(
                "Learning request is not open for bids",
                "REQUEST_NOT_OPEN",
                ErrorContext(request_id=str(request.id)),
            )

    async def _claim_bid(
        self, bid: Bid, target: BidStatus, context: ErrorContext,
    ) -> None:
        result = await self.db.execute(
            update(Bid)
            .where(Bid.id == bid.id, Bid.status == BidStatus.PENDING.value)
            .values(status=target.value, updated_at=_now())
        )
        if result.rowcount != 1:
            raise GuardViolationError("Bid is no longer pending", "BID_NOT_PENDING", context)

    async def _reject_pending_bids(
        self, request: LearningRequest, keep: UUID | None,
    ) -> list[Bid]:
        """Reject every pending bid except keep. Runs after the request claim, so it
        also catches bids committed after the request was first read."""
        query = select(Bid).where(
            Bid.learning_request_id == request.id,
            Bid.status == BidStatus.PENDING.value,
        )
        if keep is not None:
            query = query.where(Bid.id != keep)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        siblings = list(result.scalars().all())
        if not siblings:
            return []
        await self.db.execute(
            update(Bid)
            .where(
                Bid.id.in_([b.id for b in siblings]),
                Bid.status == BidStatus.PENDING.value,
            )
            .values(status=BidStatus.REJECTED.value, updated_at=_now())
        )
        return [b for b in siblings if b.status == BidStatus.REJECTED.value]

    def _notify_not_selected(
        self, request: LearningRequest, rejected: list[Bid],
    ) -> None:
        for bid in rejected:
            self.outbox.add(
                WalletAddress(bid.tutor_address), NotificationType.BID_REJECTED,
                "Bid Not Selected",
                f"Your bid for {request.skill_name} was not selected.",
                learning_request_id=str(request.id), bid_id=str(bid.id),
            )


def _find_bid(request: LearningRequest, bid_id: UUID) -> Bid:
    for bid in request.bids:
        if bid.id == bid_id:
            return bid
    raise ResourceNotFoundError("Bid", str(bid_id))
