"""Boundary Protocols — contracts between core and the external collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Collaborators (notification transport, NFT minting) are reached only through these Protocols
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, tests pass plain fakes
    - Async in Protocol: implementations do IO; the pure guards never call them
"""

from dataclasses import dataclass
from typing import Any, Protocol

from skillloop.core.domain_types import CertificateId, WalletAddress


@dataclass(frozen=True)
class MintResult:
    token_id: str
    tx_hash: str
    metadata_uri: str


class NotificationSender(Protocol):
    """Fire-and-forget notification transport."""
    async def notify(
        self,
        user: WalletAddress,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any],
    ) -> None: ...


class CertificateMinter(Protocol):
    """External NFT minting — invoked only while the certificate is claimed (minting)."""
    async def mint(self, certificate_id: CertificateId) -> MintResult: ...
