"""Ledger Service — the only writer of token balances and escrow records.

Invariants:
    - debit is ONE statement: UPDATE ... SET balance = balance - a WHERE balance >= a
    - credit is ONE statement: UPDATE ... SET balance = balance + a
    - Balances are read via column selects, never from possibly-stale ORM identities
    - An escrow record leaves pending exactly once; settle_escrow claims it with a
      status-guarded UPDATE BEFORE moving any tokens
    - Never commits: callers own the unit of work (infrastructure.database.atomic)

Design Decisions:
    - Atomic counter statements over read-modify-write: two concurrent bookings cannot both
      pass the balance check, with no in-process locks
    - Escrow settlement lives here, not in the lifecycle: "which wallet gets the tokens" and
      "the record is now resolved" must be one inseparable step
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import (
    TransactionStatus, TransactionType, WalletAddress,
)
from skillloop.core.errors import (
    ErrorContext, GuardViolationError, InsufficientBalanceError,
    ResourceNotFoundError, ValidationError,
)
from skillloop.core.session_transitions import EscrowResolution
from skillloop.models.token_transaction import TokenTransaction
from skillloop.models.user import User

logger = logging.getLogger(__name__)


class LedgerService:
    """Atomic balance mutation and escrow bookkeeping."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_balance(self, address: WalletAddress) -> float:
        result = await self.db.execute(
            select(User.token_balance).where(User.address == address),
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise ResourceNotFoundError("User", address)
        return balance

    async def debit(self, address: WalletAddress, amount: float) -> None:
        """Check-and-decrement in one statement; InsufficientBalanceError otherwise."""
        _require_positive(amount)
        result = await self.db.execute(
            update(User)
            .where(User.address == address, User.token_balance >= amount)
            .values(token_balance=User.token_balance - amount)
        )
        if result.rowcount != 1:
            balance = await self.get_balance(address)
            raise InsufficientBalanceError(balance, amount)
        logger.info(
            "Debited learner", extra={"wallet": address, "amount": amount},
        )

    async def credit(self, address: WalletAddress, amount: float) -> None:
        _require_positive(amount)
        result = await self.db.execute(
            update(User)
            .where(User.address == address)
            .values(token_balance=User.token_balance + amount)
        )
        if result.rowcount != 1:
            raise ResourceNotFoundError("User", address)
        logger.info("Credited wallet", extra={"wallet": address, "amount": amount})

    # ─── Escrow ──────────────────────────────────────────────────

    async def hold_in_escrow(
        self,
        session_id: UUID,
        learner: WalletAddress,
        tutor: WalletAddress,
        amount: float,
    ) -> TokenTransaction:
        """Debit the learner and open the pending escrow record for session_id."""
        await self.debit(learner, amount)
        transaction = TokenTransaction(
            session_id=session_id,
            from_address=learner,
            to_address=tutor,
            amount=amount,
            type=TransactionType.BOOKING.value,
            status=TransactionStatus.PENDING.value,
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def settle_escrow(
        self, session_id: UUID, resolution: EscrowResolution,
    ) -> TokenTransaction:
        """Resolve the session's escrow exactly once: release to tutor or refund learner."""
        transaction = await self.get_escrow(session_id)
        claimed = await self.db.execute(
            update(TokenTransaction)
            .where(
                TokenTransaction.id == transaction.id,
                TokenTransaction.status == TransactionStatus.PENDING.value,
            )
            .values(
                status=resolution.transaction_status.value,
                resolved_at=datetime.now(timezone.utc),
            )
        )
        if claimed.rowcount != 1:
            raise GuardViolationError(
                "Escrow for this session is already settled",
                "ESCROW_ALREADY_SETTLED",
                ErrorContext(session_id=str(session_id)),
            )
        if resolution is EscrowResolution.RELEASE_TO_TUTOR:
            recipient = transaction.to_address
        else:
            recipient = transaction.from_address
        await self.credit(WalletAddress(recipient), transaction.amount)
        logger.info(
            f"Escrow settled: {resolution.value}",
            extra={"session_id": session_id, "amount": transaction.amount},
        )
        return transaction

    async def get_escrow(self, session_id: UUID) -> TokenTransaction:
        result = await self.db.execute(
            select(TokenTransaction).where(
                TokenTransaction.session_id == session_id,
            ),
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise ResourceNotFoundError("TokenTransaction", str(session_id))
        return transaction


def _require_positive(amount: float) -> None:
    if amount <= 0:
        raise ValidationError("Token amount must be positive", "amount")
