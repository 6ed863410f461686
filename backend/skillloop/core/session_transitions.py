"""Session Transition Table — the single source of truth for session state legality.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Every actor-initiated transition is declared once in TRANSITIONS; handlers never re-derive legality
    - Transitions only move forward; no transition targets a state it could have come from
    - Terminal sessions reject every action with GuardViolationError, before role checks
    - Each terminal transition names exactly one escrow resolution (release XOR refund)

Design Decisions:
    - Frozen dataclass rows over if/elif chains: the table is inspectable and testable as data
    - Entry state depends on origin: direct bookings wait for tutor approval, bid-born sessions
      start confirmed because the tutor already consented by bidding
    - Cancellation always refunds the learner, whoever cancels. A learner may also withdraw
      a booking the tutor has not answered yet, so no escrow waits on the tutor forever
"""

from dataclasses import dataclass
from enum import Enum

from skillloop.core.domain_types import (
    ParticipantRole, SessionAction, SessionOrigin, SessionStatus,
    TransactionStatus, WalletAddress,
)
from skillloop.core.errors import (
    AuthorizationError, ErrorContext, InvalidTransitionError, ValidationError,
)


class EscrowResolution(str, Enum):
    """Where the escrowed tokenAmount goes when a session terminates."""
    RELEASE_TO_TUTOR = "release_to_tutor"
    REFUND_TO_LEARNER = "refund_to_learner"

    @property
    def transaction_status(self) -> TransactionStatus:
        if self is EscrowResolution.RELEASE_TO_TUTOR:
            return TransactionStatus.COMPLETED
        return TransactionStatus.FAILED


@dataclass(frozen=True)
class Transition:
    action: SessionAction
    sources: frozenset[SessionStatus]
    target: SessionStatus
    allowed_roles: frozenset[ParticipantRole]
    escrow: EscrowResolution | None = None
    requires_reason: bool = False


_TUTOR = frozenset({ParticipantRole.TUTOR})
_PARTICIPANTS = frozenset({ParticipantRole.TUTOR, ParticipantRole.LEARNER})

TRANSITIONS: dict[SessionAction, Transition] = {
    SessionAction.APPROVE: Transition(
        SessionAction.APPROVE,
        frozenset({SessionStatus.REQUESTED}),
        SessionStatus.CONFIRMED,
        _TUTOR,
    ),
    SessionAction.REJECT: Transition(
        SessionAction.REJECT,
        frozenset({SessionStatus.REQUESTED}),
        SessionStatus.REJECTED,
        _TUTOR,
        escrow=EscrowResolution.REFUND_TO_LEARNER,
        requires_reason=True,
    ),
    SessionAction.CANCEL: Transition(
        SessionAction.CANCEL,
        frozenset({
            SessionStatus.REQUESTED, SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS,
        }),
        SessionStatus.CANCELED,
        _PARTICIPANTS,
        escrow=EscrowResolution.REFUND_TO_LEARNER,
        requires_reason=True,
    ),
    SessionAction.START: Transition(
        SessionAction.START,
        frozenset({SessionStatus.CONFIRMED}),
        SessionStatus.IN_PROGRESS,
        _TUTOR,
    ),
    SessionAction.COMPLETE: Transition(
        SessionAction.COMPLETE,
        frozenset({SessionStatus.IN_PROGRESS}),
        SessionStatus.COMPLETED,
        _TUTOR,
        escrow=EscrowResolution.RELEASE_TO_TUTOR,
    ),
}


def entry_status(origin: SessionOrigin) -> SessionStatus:
    """State a freshly created session enters, by origin."""
    if origin is SessionOrigin.BID:
        return SessionStatus.CONFIRMED
    return SessionStatus.REQUESTED


def resolve_role(
    actor: WalletAddress, tutor: WalletAddress, learner: WalletAddress,
) -> ParticipantRole:
    if actor == tutor:
        return ParticipantRole.TUTOR
    if actor == learner:
        return ParticipantRole.LEARNER
    return ParticipantRole.OUTSIDER


def check_transition(
    action: SessionAction,
    current: SessionStatus,
    role: ParticipantRole,
    reason: str | None = None,
    context: ErrorContext | None = None,
) -> Transition:
    """Look up the transition for action and enforce its guards.

    Raises GuardViolationError for terminal or wrong-state sessions,
    AuthorizationError for a disallowed role, ValidationError for a
    missing reason. Returns the table row.
    """
    transition = TRANSITIONS[action]
    if current.is_terminal:
        raise InvalidTransitionError(action.value, current.value, context)
    if role not in transition.allowed_roles:
        raise AuthorizationError(f"{action.value} this session", context)
    if current not in transition.sources:
        raise InvalidTransitionError(action.value, current.value, context)
    if transition.requires_reason and not (reason and reason.strip()):
        raise ValidationError(
            f"A reason is required to {action.value} a session", "reason", context,
        )
    return transition


def allowed_actions(
    current: SessionStatus, role: ParticipantRole,
) -> list[SessionAction]:
    """Actions the given role may take right now. Exposed on SessionResponse."""
    if current.is_terminal:
        return []
    return [
        t.action for t in TRANSITIONS.values()
        if current in t.sources and role in t.allowed_roles
    ]
