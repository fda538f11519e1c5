"""SQL Envelope Repository — SQLAlchemy implementation of core EnvelopeRepository.

Invariants:
    - save_with_shares commits envelope + all shares in ONE transaction, or nothing
    - Reads use populate_existing so a retry never sees stale identity-map rows
    - compare_and_set_share_status is a single conditional UPDATE; True only when
      exactly one row moved from the expected status
    - A unique-constraint hit during CAS is a lost race, reported as False
    - Every other SQLAlchemyError leaves this module as DatabaseError

Design Decisions:
    - Conditional UPDATE ... WHERE status = expected instead of SELECT FOR UPDATE:
      works the same on PostgreSQL and SQLite
    - synchronize_session=False on the UPDATE: callers re-read instead of relying
      on in-session state
    - The UPDATE runs inside a SAVEPOINT: a claimant-uniqueness hit rolls back
      only the savepoint, so rows the caller already loaded stay usable
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lucky_money.core.domain_types import (
    EnvelopeId, EnvelopeToken, ShareId, ShareStatus, UserId,
)
from lucky_money.core.errors import DatabaseError
from lucky_money.core.repository_protocols import EnvelopeDraft, ShareDraft
from lucky_money.models.envelope import Envelope
from lucky_money.models.share import Share

logger = logging.getLogger(__name__)


class SqlEnvelopeRepository:
    """Envelope Store + Share Ledger over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_token(self, token: EnvelopeToken) -> Envelope | None:
        try:
            result = await self.db.execute(
                select(Envelope)
                .where(Envelope.token == token)
                .execution_options(populate_existing=True),
            )
        except SQLAlchemyError as e:
            logger.error(f"Envelope read failed: {e}", extra={"token": token})
            raise DatabaseError("Envelope read failed", "query") from e
        return result.scalar_one_or_none()

    async def save_with_shares(
        self, envelope: EnvelopeDraft, shares: list[ShareDraft],
    ) -> Envelope:
        """Insert the envelope and its shares atomically. Share ids follow list order."""
        row = Envelope(
            token=envelope.token,
            owner_id=envelope.owner_id,
            room_id=envelope.room_id,
            created_at=envelope.created_at,
            claim_expires_at=envelope.claim_expires_at,
            audit_expires_at=envelope.audit_expires_at,
        )
        row.shares = [
            Share(
                amount=share.amount,
                status=share.status.value,
                claimant_id=share.claimant_id,
                created_at=share.created_at,
                modified_at=share.created_at,
            )
            for share in shares
        ]
        self.db.add(row)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Envelope batch insert failed: {e}",
                extra={"token": envelope.token},
            )
            raise DatabaseError("Envelope batch insert failed", "commit") from e
        return row

    async def get_shares(self, envelope_id: EnvelopeId) -> list[Share]:
        """All shares of an envelope, ordered by id (creation order)."""
        try:
            result = await self.db.execute(
                select(Share)
                .where(Share.envelope_id == envelope_id)
                .order_by(Share.id)
                .execution_options(populate_existing=True),
            )
        except SQLAlchemyError as e:
            logger.error(f"Share read failed: {e}")
            raise DatabaseError("Share read failed", "query") from e
        return list(result.scalars().all())

    async def compare_and_set_share_status(
        self,
        share_id: ShareId,
        expected: ShareStatus,
        new: ShareStatus,
        claimant_id: UserId,
        modified_at: datetime,
    ) -> bool:
        stmt = (
            update(Share)
            .where(Share.id == share_id, Share.status == expected.value)
            .values(status=new.value, claimant_id=claimant_id, modified_at=modified_at)
            .execution_options(synchronize_session=False)
        )
        try:
            try:
                async with self.db.begin_nested():
                    result = await self.db.execute(stmt)
            except IntegrityError:
                # (envelope_id, claimant_id) already taken by a concurrent claim
                await self.db.commit()
                logger.warning(
                    "Share update hit claimant uniqueness",
                    extra={"share_id": share_id, "user_id": claimant_id},
                )
                return False
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Share update failed: {e}", extra={"share_id": share_id},
            )
            raise DatabaseError("Share status update failed", "update") from e
        return result.rowcount == 1
