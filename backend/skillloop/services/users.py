"""User Directory — wallet registration, profiles, and aggregate counters.

Invariants:
    - register() is idempotent per address; only a NEW user receives the initial grant
    - Counters (sessions_completed, rating_total/count) change via atomic increments only
    - Never touches token_balance after creation — that column belongs to the ledger

Design Decisions:
    - Grant amount injected from settings by the route layer: tests pin it explicitly
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import WalletAddress
from skillloop.core.errors import ResourceNotFoundError
from skillloop.models.user import User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Registration and profile lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, address: WalletAddress) -> User | None:
        result = await self.db.execute(
            select(User).where(User.address == address),
        )
        return result.scalar_one_or_none()

    async def require(self, address: WalletAddress) -> User:
        user = await self.find(address)
        if user is None:
            raise ResourceNotFoundError("User", address)
        return user

    async def register(
        self,
        address: WalletAddress,
        username: str | None,
        initial_balance: float,
    ) -> tuple[User, bool]:
        """Return (user, created). Existing users are returned untouched."""
        existing = await self.find(address)
        if existing is not None:
            return existing, False
        user = User(
            address=address, username=username, token_balance=initial_balance,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # concurrent registration of the same wallet won the insert
            await self.db.rollback()
            return await self.require(address), False
        logger.info("Registered wallet", extra={"wallet": address})
        return user, True

    async def record_completion(self, *addresses: WalletAddress) -> None:
        await self.db.execute(
            update(User)
            .where(User.address.in_(addresses))
            .values(sessions_completed=User.sessions_completed + 1)
        )

    async def record_rating(self, address: WalletAddress, rating: int) -> None:
        result = await self.db.execute(
            update(User)
            .where(User.address == address)
            .values(
                rating_total=User.rating_total + rating,
                rating_count=User.rating_count + 1,
            )
        )
        if result.rowcount != 1:
            raise ResourceNotFoundError("User", address)
