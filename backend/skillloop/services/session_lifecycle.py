"""Session Lifecycle — orchestrates every session transition and its escrow resolution.

Invariants:
    - Legality comes ONLY from core/session_transitions.check_transition (no inline status checks)
    - All guards (role, state, completion gates) run before the first write
    - Each transition is one unit of work: status-guarded UPDATE, then at most one ledger
      settlement, then dependent records; commit or full rollback
    - The status UPDATE is the claim: a concurrent or retried call matches zero rows and
      fails with GuardViolationError, so escrow is never settled twice
    - Notifications are appended to the outbox and only delivered after commit

Design Decisions:
    - Status flip FIRST inside the transaction: the row lock it takes serializes competing
      transitions on PostgreSQL, and the losing transaction's WHERE no longer matches
    - Completion also pins progress_version, so a milestone toggled concurrently cannot
      slip under the 70% gate between check and flip
    - Bid-born sessions enter confirmed (tutor consented by bidding); direct bookings enter
      requested and need tutor approval
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import (
    NotificationType, ParticipantRole, RequestStatus, SessionAction,
    SessionOrigin, SessionStatus, WalletAddress,
)
from skillloop.core.enforce_bidding import (
    check_hourly_rate, compute_total_cost,
)
from skillloop.core.enforce_completion import validate_completion_prerequisites
from skillloop.core.errors import (
    AuthorizationError, CompletionGateError, ErrorContext,
    GuardViolationError, InsufficientBalanceError, ResourceNotFoundError,
    ValidationError,
)
from skillloop.core.notification_events import EventOutbox
from skillloop.core.progress_tracking import (
    ProgressTracking, apply_final_notes, generate_learning_objectives,
    initialize_progress,
)
from skillloop.core.session_transitions import (
    Transition, check_transition, entry_status, resolve_role,
)
from skillloop.infrastructure.database import atomic
from skillloop.models.certificate import Certificate
from skillloop.models.learning_request import LearningRequest
from skillloop.models.session import Session as SessionModel
from skillloop.services.certificates import CertificateIssuer
from skillloop.services.ledger import LedgerService
from skillloop.services.users import UserDirectory

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionLifecycle:
    """The session state machine. Sole writer of Session.status."""

    def __init__(self, db: AsyncSession, outbox: EventOutbox):
        self.db = db
        self.outbox = outbox
        self.ledger = LedgerService(db)
        self.users = UserDirectory(db)
        self.certificates = CertificateIssuer(db)

    # ─── Reads ───────────────────────────────────────────────────

    async def get_session(self, session_id: UUID) -> SessionModel:
        result = await self.db.execute(
            select(SessionModel).where(SessionModel.id == session_id),
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise ResourceNotFoundError("Session", str(session_id))
        return session

    async def list_sessions(
        self,
        participant: WalletAddress | None = None,
        status: SessionStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[SessionModel]:
        query = select(SessionModel).order_by(SessionModel.created_at.desc())
        if participant:
            query = query.where(or_(
                SessionModel.tutor_address == participant,
                SessionModel.learner_address == participant,
            ))
        if status:
            query = query.where(SessionModel.status == status.value)
        result = await self.db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def get_started_session(
        self, session_id: UUID, actor: WalletAddress, tutor_only: bool,
    ) -> tuple[SessionModel, ProgressTracking]:
        """Guard for progress updates: participant actor, in-progress session, record present."""
        session = await self.get_session(session_id)
        role = _role_of(session, actor)
        if role is ParticipantRole.OUTSIDER:
            raise AuthorizationError("update progress for this session")
        if tutor_only and role is not ParticipantRole.TUTOR:
            raise AuthorizationError("update milestones for this session")
        if (
            session.status != SessionStatus.IN_PROGRESS.value
            or session.progress_tracking is None
        ):
            raise GuardViolationError(
                "Session must be in progress to update progress",
                "SESSION_NOT_IN_PROGRESS",
                ErrorContext(session_id=str(session.id)),
            )
        return session, ProgressTracking.from_dict(session.progress_tracking)

    # ─── Creation ────────────────────────────────────────────────

    async def book(
        self,
        learner: WalletAddress,
        tutor: WalletAddress,
        skill_name: str,
        start_time: datetime,
        duration: int,
        hourly_rate: float,
        description: str = "",
    ) -> SessionModel:
        """Direct booking: escrow the cost and wait for tutor approval."""
        if learner == tutor:
            raise ValidationError("You cannot book a session with yourself", "tutor_address")
        error = check_hourly_rate(hourly_rate)
        if error:
            raise ValidationError(error["message"], "hourly_rate")
        await self.users.require(learner)
        await self.users.require(tutor)
        amount = compute_total_cost(hourly_rate, duration)
        balance = await self.ledger.get_balance(learner)
        if balance < amount:
            raise InsufficientBalanceError(balance, amount)

        async with atomic(self.db):
            session = await self.open_session(
                SessionOrigin.DIRECT, learner, tutor, skill_name,
                start_time, duration, amount, description,
            )

        self.outbox.add(
            tutor, NotificationType.SESSION_REQUEST,
            "New Session Request",
            f"A student wants to book a {skill_name} session with you",
            session_id=str(session.id), skill_name=skill_name,
            learner=learner,
        )
        return session

    async def open_session(
        self,
        origin: SessionOrigin,
        learner: WalletAddress,
        tutor: WalletAddress,
        skill_name: str,
        start_time: datetime,
        duration: int,
        amount: float,
        description: str = "",
        bid_id: UUID | None = None,
        learning_request_id: UUID | None = None,
    ) -> SessionModel:
        """Create the session row and escrow its amount. Caller owns the transaction."""
        session = SessionModel(
            tutor_address=tutor,
            learner_address=learner,
            skill_name=skill_name,
            description=description,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=duration),
            duration=duration,
            token_amount=amount,
            status=entry_status(origin).value,
            origin=origin.value,
            bid_id=bid_id,
            learning_request_id=learning_request_id,
        )
        self.db.add(session)
        await self.db.flush()
        await self.ledger.hold_in_escrow(session.id, learner, tutor, amount)
        logger.info(
            f"Session opened ({origin.value}) with {amount:g} SKL in escrow",
            extra={"session_id": session.id, "wallet": learner},
        )
        return session

    # ─── Transitions ─────────────────────────────────────────────

    async def approve(
        self, session_id: UUID, actor: WalletAddress, meeting_link: str | None = None,
    ) -> SessionModel:
        session = await self.get_session(session_id)
        transition = _check(SessionAction.APPROVE, session, actor)
        values = {"meeting_link": meeting_link} if meeting_link else {}
        async with atomic(self.db):
            await self._flip_status(session, transition, **values)

        self.outbox.add(
            WalletAddress(session.learner_address), NotificationType.SESSION_APPROVED,
            "Session Approved!",
            f"Your {session.skill_name} session has been approved",
            session_id=str(session.id), meeting_link=meeting_link,
        )
        return session

    async def reject(
        self, session_id: UUID, actor: WalletAddress, reason: str,
    ) -> SessionModel:
        session = await self.get_session(session_id)
        transition = _check(SessionAction.REJECT, session, actor, reason)
        async with atomic(self.db):
            await self._flip_status(session, transition, rejection_reason=reason)
            await self._settle(session, transition)

        self.outbox.add(
            WalletAddress(session.learner_address), NotificationType.SESSION_REJECTED,
            "Session Request Declined",
            f"Your {session.skill_name} session request was declined. "
            f"{session.token_amount:g} SKL tokens have been refunded.",
            session_id=str(session.id), reason=reason,
        )
        return session

    async def cancel(
        self, session_id: UUID, actor: WalletAddress, reason: str,
    ) -> SessionModel:
        session = await self.get_session(session_id)
        role = _role_of(session, actor)
        transition = _check(SessionAction.CANCEL, session, actor, reason)
        async with atomic(self.db):
            await self._flip_status(
                session, transition,
                cancellation_reason=reason, canceled_by=actor,
            )
            await self._settle(session, transition)
            await self._close_learning_request(session)

        other = (
            session.learner_address if role is ParticipantRole.TUTOR
            else session.tutor_address
        )
        self.outbox.add(
            WalletAddress(other), NotificationType.SESSION_CANCELED,
            "Session Canceled",
            f"Your {session.skill_name} session was canceled by the {role.value}. "
            f"{session.token_amount:g} SKL tokens were refunded to the learner.",
            session_id=str(session.id), reason=reason,
        )
        return session

    async def start(self, session_id: UUID, actor: WalletAddress) -> SessionModel:
        session = await self.get_session(session_id)
        transition = _check(SessionAction.START, session, actor)
        progress = initialize_progress(session.skill_name, session.duration)
        async with atomic(self.db):
            await self._flip_status(
                session, transition,
                progress_tracking=progress.to_dict(),
                progress_version=session.progress_version + 1,
                learning_objectives=generate_learning_objectives(session.skill_name),
                actual_start_time=_now(),
            )

        self.outbox.add(
            WalletAddress(session.learner_address), NotificationType.SESSION_STARTED,
            "Session Started!",
            f"Your {session.skill_name} session has begun. Join the meeting to start learning!",
            session_id=str(session.id), meeting_link=session.meeting_link,
        )
        return session

    async def complete(
        self,
        session_id: UUID,
        actor: WalletAddress,
        final_notes: str | None = None,
        learner_engagement: int | None = None,
        objectives_achieved: list[str] | None = None,
    ) -> tuple[SessionModel, Certificate]:
        """Release escrow to the tutor and issue the learner's certificate."""
        session = await self.get_session(session_id)
        transition = _check(SessionAction.COMPLETE, session, actor)
        progress = (
            ProgressTracking.from_dict(session.progress_tracking)
            if session.progress_tracking is not None else None
        )
        reason = validate_completion_prerequisites(progress, session.duration)
        if reason:
            raise CompletionGateError(reason, ErrorContext(session_id=str(session.id)))
        progress = apply_final_notes(
            progress, learner_engagement, final_notes, objectives_achieved,
        )
        notes = session.session_notes or ""
        if final_notes:
            notes = f"{notes}\n\nFinal Notes: {final_notes}".strip()

        async with atomic(self.db):
            await self._flip_status(
                session, transition,
                expected_progress_version=session.progress_version,
                progress_tracking=progress.to_dict(),
                progress_version=session.progress_version + 1,
                session_notes=notes,
                actual_end_time=_now(),
            )
            await self._settle(session, transition)
            certificate = await self.certificates.create(
                session.id,
                recipient=WalletAddress(session.learner_address),
                issuer=WalletAddress(session.tutor_address),
                skill_name=session.skill_name,
                progress_achieved=progress.overall_progress,
                objectives_completed=progress.objectives_achieved,
                duration=progress.time_spent,
                tutor_notes=final_notes,
            )
            await self.users.record_completion(
                WalletAddress(session.tutor_address),
                WalletAddress(session.learner_address),
            )
            await self._close_learning_request(session)

        self.outbox.add(
            WalletAddress(session.tutor_address), NotificationType.SESSION_COMPLETED,
            "Session Completed!",
            f"Your {session.skill_name} session is complete. {session.token_amount:g} "
            f"SKL tokens have been released to you. Progress achieved: "
            f"{progress.overall_progress}%",
            session_id=str(session.id), token_amount=session.token_amount,
        )
        self.outbox.add(
            WalletAddress(session.learner_address), NotificationType.CERTIFICATE_ISSUED,
            "Certificate Earned!",
            f"Congratulations! You've completed {session.skill_name} with "
            f"{progress.overall_progress}% progress. Your certificate is ready to mint!",
            session_id=str(session.id), certificate_id=str(certificate.id),
        )
        return session, certificate

    # ─── Internals ───────────────────────────────────────────────

    async def _flip_status(
        self,
        session: SessionModel,
        transition: Transition,
        expected_progress_version: int | None = None,
        **values,
    ) -> None:
        criteria = [
            SessionModel.id == session.id,
            SessionModel.status.in_([s.value for s in transition.sources]),
        ]
        if expected_progress_version is not None:
            criteria.append(SessionModel.progress_version == expected_progress_version)
        result = await self.db.execute(
            update(SessionModel)
            .where(*criteria)
            .values(status=transition.target.value, updated_at=_now(), **values)
        )
        if result.rowcount != 1:
            raise GuardViolationError(
                "Session changed while this request was processed; reload and retry",
                "STALE_SESSION_STATE",
                ErrorContext(session_id=str(session.id)),
            )
        logger.info(
            f"Session {transition.action.value}: -> {transition.target.value}",
            extra={"session_id": session.id},
        )

    async def _settle(self, session: SessionModel, transition: Transition) -> None:
        if transition.escrow is not None:
            await self.ledger.settle_escrow(session.id, transition.escrow)

    async def _close_learning_request(self, session: SessionModel) -> None:
        if session.learning_request_id is None:
            return
        await self.db.execute(
            update(LearningRequest)
            .where(
                LearningRequest.id == session.learning_request_id,
                LearningRequest.status == RequestStatus.IN_PROGRESS.value,
            )
            .values(status=RequestStatus.CLOSED.value, updated_at=_now())
        )


def _role_of(session: SessionModel, actor: WalletAddress) -> ParticipantRole:
    return resolve_role(
        actor,
        WalletAddress(session.tutor_address),
        WalletAddress(session.learner_address),
    )


def _check(
    action: SessionAction,
    session: SessionModel,
    actor: WalletAddress,
    reason: str | None = None,
) -> Transition:
    return check_transition(
        action, SessionStatus(session.status), _role_of(session, actor), reason,
        ErrorContext(session_id=str(session.id)),
    )
