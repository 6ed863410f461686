"""Progress Tracker — milestone, meeting and notes updates on an in-progress session.

Invariants:
    - Every write goes through SessionLifecycle.get_started_session (participant, in-progress)
    - Milestones and notes are tutor-only; meeting data may come from either participant
    - Derived fields (overall_progress, can_complete, attendance_verified) are recomputed
      from the record, never accepted from the caller
    - Each save is an UPDATE guarded on status == in-progress AND the progress_version read

Design Decisions:
    - Optimistic version over row locks: two tutors' tabs toggling milestones at once
      lose at most one write, and that loser gets ConcurrencyError instead of a silent overwrite
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import SessionStatus, WalletAddress
from skillloop.core.errors import ConcurrencyError, ErrorContext
from skillloop.core.notification_events import EventOutbox
from skillloop.core.progress_tracking import (
    ProgressTracking, apply_meeting_data, apply_milestone_update,
)
from skillloop.infrastructure.database import atomic
from skillloop.models.session import Session as SessionModel
from skillloop.services.session_lifecycle import SessionLifecycle

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Writes the progress sub-record of started sessions."""

    def __init__(self, db: AsyncSession, outbox: EventOutbox):
        self.db = db
        self.lifecycle = SessionLifecycle(db, outbox)

    async def get_progress(self, session_id: UUID) -> SessionModel:
        return await self.lifecycle.get_session(session_id)

    async def update_milestone(
        self,
        session_id: UUID,
        actor: WalletAddress,
        milestone_id: str,
        completed: bool,
        notes: str | None = None,
    ) -> ProgressTracking:
        session, progress = await self.lifecycle.get_started_session(
            session_id, actor, tutor_only=True,
        )
        updated = apply_milestone_update(
            progress, milestone_id, completed, notes, datetime.now(timezone.utc),
        )
        await self._save(session, progress_tracking=updated.to_dict())
        logger.info(
            f"Milestone {milestone_id} completed={completed}, "
            f"progress {updated.overall_progress}%",
            extra={"session_id": session.id},
        )
        return updated

    async def update_meeting_data(
        self,
        session_id: UUID,
        actor: WalletAddress,
        participants: list[str],
        attendance_rate: float,
        duration: int,
        recording_url: str | None = None,
    ) -> ProgressTracking:
        session, progress = await self.lifecycle.get_started_session(
            session_id, actor, tutor_only=False,
        )
        updated = apply_meeting_data(
            progress, participants, attendance_rate, duration, recording_url,
        )
        await self._save(session, progress_tracking=updated.to_dict())
        return updated

    async def update_notes(
        self, session_id: UUID, actor: WalletAddress, notes: str,
    ) -> SessionModel:
        session, _ = await self.lifecycle.get_started_session(
            session_id, actor, tutor_only=True,
        )
        await self._save(session, session_notes=notes)
        return session

    async def _save(self, session: SessionModel, **values) -> None:
        expected = session.progress_version
        async with atomic(self.db):
            result = await self.db.execute(
                update(SessionModel)
                .where(
                    SessionModel.id == session.id,
                    SessionModel.status == SessionStatus.IN_PROGRESS.value,
                    SessionModel.progress_version == expected,
                )
                .values(
                    progress_version=expected + 1,
                    updated_at=datetime.now(timezone.utc),
                    **values,
                )
            )
            if result.rowcount != 1:
                raise ConcurrencyError(
                    "Session progress was modified concurrently; reload and retry",
                    ErrorContext(session_id=str(session.id)),
                )
