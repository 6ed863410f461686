"""Users — wallet registration and public profiles.

Invariants:
    - POST /users registers the CALLER's wallet (X-Wallet-Address); 201 when new, 200 when known
    - Profiles are public reads
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.api.dependencies import get_actor
from skillloop.config import get_settings
from skillloop.core.domain_types import WalletAddress, normalize_address
from skillloop.infrastructure.database import get_db
from skillloop.schemas.user import UserRegister, UserResponse
from skillloop.services.users import UserDirectory

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", response_model=UserResponse)
async def register_user(
    response: Response,
    body: UserRegister | None = None,
    actor: WalletAddress = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    user, created = await UserDirectory(db).register(
        actor, body.username if body else None, get_settings().initial_token_balance,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return user


@router.get("/{address}", response_model=UserResponse)
async def get_user(address: str, db: AsyncSession = Depends(get_db)):
    return await UserDirectory(db).require(normalize_address(address))
