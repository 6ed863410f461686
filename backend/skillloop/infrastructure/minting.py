"""Certificate Minting — default CertificateMinter used until the chain integration is wired.

Invariants:
    - Produces the same MintResult shape the on-chain minter will return
    - metadata_uri is derived from the certificate id and the configured base URL

Design Decisions:
    - Simulated token id / tx hash: contract calls are an external collaborator; the booking core
      only depends on the CertificateMinter Protocol
"""

import logging
import secrets

from skillloop.config import get_settings
from skillloop.core.domain_types import CertificateId
from skillloop.core.repository_protocols import CertificateMinter, MintResult

logger = logging.getLogger(__name__)


class SimulatedMinter:
    """Generates mint receipts locally."""

    def __init__(self, metadata_base_url: str):
        self._base_url = metadata_base_url.rstrip("/")

    async def mint(self, certificate_id: CertificateId) -> MintResult:
        result = MintResult(
            token_id=str(secrets.randbelow(1_000_000)),
            tx_hash=f"0x{secrets.token_hex(32)}",
            metadata_uri=f"{self._base_url}/{certificate_id}/metadata.json",
        )
        logger.info(
            f"Simulated mint of token {result.token_id}",
            extra={"certificate_id": certificate_id},
        )
        return result


def get_minter() -> CertificateMinter:
    """FastAPI dependency — overridden in tests and by the chain integration."""
    return SimulatedMinter(get_settings().certificate_metadata_base_url)
