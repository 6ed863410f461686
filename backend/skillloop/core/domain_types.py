"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - SessionId, RequestId, BidId, CertificateId wrap UUIDs — never use bare UUID in domain logic
    - WalletAddress is always lower-cased before it reaches the core
    - All valid states encoded as Enums — no raw string matching
    - Terminal session states are exactly {completed, canceled, rejected}

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and compare equal to DB status strings without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

WalletAddress = NewType("WalletAddress", str)
SessionId = NewType("SessionId", UUID)
RequestId = NewType("RequestId", UUID)
BidId = NewType("BidId", UUID)
CertificateId = NewType("CertificateId", UUID)


# ─── Value Types ─────────────────────────────────────────────────

TokenAmount = NewType("TokenAmount", float)     # SKL, >= 0, 2 decimals
Percentage = NewType("Percentage", int)         # 0–100


def normalize_address(address: str) -> WalletAddress:
    return WalletAddress(address.strip().lower())


# ─── Enums ───────────────────────────────────────────────────────

class SessionStatus(str, Enum):
    """Session lifecycle states — maps to DB `status` column."""
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_SESSION_STATES


TERMINAL_SESSION_STATES = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.CANCELED,
    SessionStatus.REJECTED,
})


class SessionAction(str, Enum):
    """Actor-initiated session transitions."""
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    START = "start"
    COMPLETE = "complete"


class SessionOrigin(str, Enum):
    """How a session was created — decides its entry state."""
    DIRECT = "direct"
    BID = "bid"


class ParticipantRole(str, Enum):
    """Actor's role relative to a session."""
    TUTOR = "tutor"
    LEARNER = "learner"
    OUTSIDER = "outsider"


class RequestStatus(str, Enum):
    """Learning request states. Never reopens."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class BidAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class TransactionStatus(str, Enum):
    """Escrow record — leaves PENDING exactly once."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, Enum):
    BOOKING = "booking"


class CertificateStatus(str, Enum):
    PENDING = "pending"
    MINTING = "minting"
    MINTED = "minted"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Notification kinds emitted by the booking core."""
    NEW_BID = "new_bid"
    BID_ACCEPTED = "bid_accepted"
    BID_REJECTED = "bid_rejected"
    SESSION_REQUEST = "session_request"
    SESSION_APPROVED = "session_approved"
    SESSION_REJECTED = "session_rejected"
    SESSION_CANCELED = "session_canceled"
    SESSION_STARTED = "session_started"
    SESSION_COMPLETED = "session_completed"
    CERTIFICATE_ISSUED = "certificate_issued"
