"""Request Dependencies — caller identity, per-request outbox, and service wiring.

Invariants:
    - The acting wallet comes ONLY from the X-Wallet-Address header set by the gateway
    - The header is validated and lower-cased before any service sees it
    - One EventOutbox per request; routes drain it into a background task after commit

Design Decisions:
    - Identity as a dependency, not middleware: read-only routes stay anonymous
"""

import re

from fastapi import Header

from skillloop.core.domain_types import WalletAddress, normalize_address
from skillloop.core.errors import ValidationError
from skillloop.core.notification_events import EventOutbox
from skillloop.infrastructure.observability import bind_wallet
from skillloop.schemas.common import WALLET_PATTERN

_WALLET_RE = re.compile(WALLET_PATTERN)


async def get_actor(
    x_wallet_address: str = Header(..., alias="X-Wallet-Address"),
) -> WalletAddress:
    """Authenticated caller's wallet address."""
    if not _WALLET_RE.match(x_wallet_address.strip()):
        raise ValidationError("Invalid wallet address", "X-Wallet-Address")
    actor = normalize_address(x_wallet_address)
    bind_wallet(actor)
    return actor


def get_outbox() -> EventOutbox:
    return EventOutbox()
