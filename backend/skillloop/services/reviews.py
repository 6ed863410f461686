"""Review Service — post-completion ratings between session participants.

Invariants:
    - Only completed sessions are reviewable, and only by their tutor or learner
    - The target is always the other participant
    - One review per (session, reviewer): unique constraint backs the pre-check
    - The review row and the target's rating_total/count increment commit together
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import (
    ParticipantRole, SessionStatus, WalletAddress,
)
from skillloop.core.errors import (
    AuthorizationError, ErrorContext, GuardViolationError, ValidationError,
)
from skillloop.core.session_transitions import resolve_role
from skillloop.infrastructure.database import atomic
from skillloop.models.review import Review
from skillloop.services.session_lifecycle import SessionLifecycle
from skillloop.services.users import UserDirectory

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class ReviewService:

    def __init__(self, db: AsyncSession, lifecycle: SessionLifecycle):
        self.db = db
        self.lifecycle = lifecycle
        self.users = UserDirectory(db)

    async def submit_review(
        self,
        session_id: UUID,
        reviewer: WalletAddress,
        rating: int,
        comment: str = "",
    ) -> Review:
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}", "rating",
            )
        session = await self.lifecycle.get_session(session_id)
        context = ErrorContext(session_id=str(session.id))
        role = resolve_role(
            reviewer,
            WalletAddress(session.tutor_address),
            WalletAddress(session.learner_address),
        )
        if role is ParticipantRole.OUTSIDER:
            raise AuthorizationError("review this session", context)
        if session.status != SessionStatus.COMPLETED.value:
            raise GuardViolationError(
                "Only completed sessions can be reviewed", "SESSION_NOT_COMPLETED", context,
            )
        if await self._find(session.id, reviewer) is not None:
            raise _duplicate(context)

        target = (
            session.learner_address if role is ParticipantRole.TUTOR
            else session.tutor_address
        )
        review = Review(
            session_id=session.id,
            reviewer_address=reviewer,
            target_address=target,
            rating=rating,
            comment=comment,
        )
        try:
            async with atomic(self.db):
                self.db.add(review)
                await self.db.flush()
                await self.users.record_rating(WalletAddress(target), rating)
        except IntegrityError as e:
            raise _duplicate(context) from e
        logger.info(
            f"Review submitted: {rating}/5",
            extra={"session_id": session.id, "wallet": reviewer},
        )
        return review

    async def list_reviews(self, session_id: UUID) -> list[Review]:
        await self.lifecycle.get_session(session_id)
        result = await self.db.execute(
            select(Review)
            .where(Review.session_id == session_id)
            .order_by(Review.created_at),
        )
        return list(result.scalars().all())

    async def _find(self, session_id: UUID, reviewer: WalletAddress) -> Review | None:
        result = await self.db.execute(
            select(Review).where(
                Review.session_id == session_id,
                Review.reviewer_address == reviewer,
            ),
        )
        return result.scalar_one_or_none()


def _duplicate(context: ErrorContext) -> GuardViolationError:
    return GuardViolationError(
        "You have already reviewed this session", "DUPLICATE_REVIEW", context,
    )
