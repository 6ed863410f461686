"""Certificate Issuer — completion certificates and their one-shot minting.

Invariants:
    - create() is called only from the completion transition, inside its unit of work
    - One certificate per session (unique constraint backs the exactly-once completion flip)
    - mint() claims the certificate (pending -> minting) and commits BEFORE calling the
      minter, so concurrent mints reach the collaborator at most once
    - The outcome (minted | failed) is written with an UPDATE guarded on status == minting
    - Only the recipient may mint their certificate

Design Decisions:
    - Collaborator failure is recorded as failed and committed BEFORE the error surfaces:
      the attempt is part of the certificate's history, not a rolled-back no-op
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import (
    CertificateId, CertificateStatus, WalletAddress,
)
from skillloop.core.errors import (
    AuthorizationError, ErrorContext, GuardViolationError, MintingError,
    ResourceNotFoundError,
)
from skillloop.core.repository_protocols import CertificateMinter
from skillloop.infrastructure.database import atomic
from skillloop.models.certificate import Certificate

logger = logging.getLogger(__name__)


class CertificateIssuer:
    """Issues completion certificates; mints them through the external minter."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        session_id: UUID,
        recipient: WalletAddress,
        issuer: WalletAddress,
        skill_name: str,
        progress_achieved: int,
        objectives_completed: list[str],
        duration: int,
        tutor_notes: str | None = None,
    ) -> Certificate:
        certificate = Certificate(
            session_id=session_id,
            recipient_address=recipient,
            issuer_address=issuer,
            skill_name=skill_name,
            status=CertificateStatus.PENDING.value,
            progress_achieved=progress_achieved,
            objectives_completed=list(objectives_completed),
            session_duration=duration,
            tutor_notes=tutor_notes,
        )
        self.db.add(certificate)
        await self.db.flush()
        return certificate

    async def get(self, certificate_id: UUID) -> Certificate:
        result = await self.db.execute(
            select(Certificate).where(Certificate.id == certificate_id),
        )
        certificate = result.scalar_one_or_none()
        if certificate is None:
            raise ResourceNotFoundError("Certificate", str(certificate_id))
        return certificate

    async def list_for_wallet(
        self, address: WalletAddress, status: CertificateStatus | None = None,
    ) -> list[Certificate]:
        query = (
            select(Certificate)
            .where(Certificate.recipient_address == address)
            .order_by(Certificate.created_at.desc())
        )
        if status:
            query = query.where(Certificate.status == status.value)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mint(
        self,
        certificate_id: UUID,
        actor: WalletAddress,
        minter: CertificateMinter,
    ) -> Certificate:
        certificate = await self.get(certificate_id)
        if actor != certificate.recipient_address:
            raise AuthorizationError("mint this certificate")
        if certificate.status != CertificateStatus.PENDING.value:
            raise GuardViolationError(
                "Certificate is not in pending status", "CERTIFICATE_NOT_PENDING",
            )
        context = ErrorContext(session_id=str(certificate.session_id))

        async with atomic(self.db):
            await self._move(
                certificate.id, CertificateStatus.PENDING, CertificateStatus.MINTING,
            )

        try:
            receipt = await minter.mint(CertificateId(certificate.id))
        except Exception as e:
            logger.error(
                f"Minting failed: {e}", extra={"certificate_id": certificate.id},
            )
            async with atomic(self.db):
                await self._move(
                    certificate.id, CertificateStatus.MINTING, CertificateStatus.FAILED,
                )
            raise MintingError(str(e), context) from e

        async with atomic(self.db):
            await self._move(
                certificate.id, CertificateStatus.MINTING, CertificateStatus.MINTED,
                token_id=receipt.token_id,
                tx_hash=receipt.tx_hash,
                metadata_uri=receipt.metadata_uri,
                minted_at=datetime.now(timezone.utc),
            )
        logger.info(
            "Certificate minted", extra={"certificate_id": certificate.id},
        )
        return certificate

    async def _move(
        self,
        certificate_id: UUID,
        source: CertificateStatus,
        target: CertificateStatus,
        **values,
    ) -> None:
        result = await self.db.execute(
            update(Certificate)
            .where(
                Certificate.id == certificate_id,
                Certificate.status == source.value,
            )
            .values(status=target.value, **values)
        )
        if result.rowcount != 1:
            raise GuardViolationError(
                f"Certificate is not in {source.value} status",
                f"CERTIFICATE_NOT_{source.name}",
            )
