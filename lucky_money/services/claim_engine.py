"""Claim Engine — atomically assigns one standby share of an envelope to a claimant.

Invariants:
    - Validate + assign run under the envelope's lock: linearizable per envelope
    - Every attempt re-reads the envelope and ALL of its shares before validating,
      so duplicate and remaining-share checks see the state the CAS acts on
    - A share moves WITHDRAW_STANDBY -> WITHDRAW_COMPLETED only via compare-and-set
    - CAS conflicts are retried (bounded, with backoff) and never reach the caller;
      only rule violations, exhaustion, storage or ConcurrencyError do

Design Decisions:
    - In-process lock + storage CAS: the lock removes contention inside one
      worker, the CAS and claimant unique constraint cover multiple workers
    - ClaimResult built from the selected row and `now`: the UPDATE was not
      synchronized into the session, so the row object is not re-read
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from lucky_money.core.domain_types import (
    EnvelopeToken, RoomId, ShareId, ShareStatus, UserId, as_utc,
)
from lucky_money.core.enforce_claim import select_standby_share, validate_claim
from lucky_money.core.errors import ConcurrencyError, ErrorContext, error_for_violation
from lucky_money.core.repository_protocols import Clock, EnvelopeRepository
from lucky_money.infrastructure.providers import SystemClock
from lucky_money.services.envelope_locks import EnvelopeLocks, envelope_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    """The share a successful claim was assigned."""
    id: ShareId
    status: ShareStatus
    amount: int
    created_at: datetime
    modified_at: datetime


class ClaimEngine:
    """Validates claim requests and assigns shares."""

    def __init__(
        self,
        repository: EnvelopeRepository,
        clock: Clock | None = None,
        locks: EnvelopeLocks | None = None,
        max_retries: int = 5,
        retry_base_delay_ms: int = 10,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.repository = repository
        self.clock = clock or SystemClock()
        self.locks = locks if locks is not None else envelope_locks
        self.max_retries = max_retries
        self.retry_base_delay_ms = retry_base_delay_ms

    async def claim(
        self,
        token: EnvelopeToken,
        claimant_id: UserId,
        room_id: RoomId,
        now: datetime | None = None,
    ) -> ClaimResult:
        """Claim one share of `token` for `claimant_id`.

        Raises EnvelopeNotFoundError, a RuleViolationError subclass,
        SharesExhaustedError, DatabaseError, or ConcurrencyError when every
        compare-and-set attempt lost.
        """
        now = now or self.clock.now()
        context = ErrorContext(token=token, user_id=claimant_id, room_id=room_id)

        async with self.locks.hold(token):
            for attempt in range(1, self.max_retries + 1):
                result = await self._attempt(token, claimant_id, room_id, now, context)
                if result is not None:
                    return result
                logger.warning(
                    "Share compare-and-set lost, retrying",
                    extra={"token": token, "user_id": claimant_id, "attempt": attempt},
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self._backoff_seconds(attempt))

        raise ConcurrencyError(
            f"Could not claim a share after {self.max_retries} attempts", context,
        )

    async def _attempt(
        self,
        token: EnvelopeToken,
        claimant_id: UserId,
        room_id: RoomId,
        now: datetime,
        context: ErrorContext,
    ) -> ClaimResult | None:
        """One validate + CAS round. None means the CAS lost and should retry."""
        envelope = await self.repository.get_by_token(token)
        shares = await self.repository.get_shares(envelope.id) if envelope else []

        violation = validate_claim(envelope, shares, claimant_id, room_id, now)
        if violation:
            logger.info(
                f"Claim rejected: {violation.message}",
                extra={
                    "token": token, "user_id": claimant_id,
                    "error_code": violation.kind.value,
                },
            )
            raise error_for_violation(violation, context)

        share = select_standby_share(shares)
        share_id, amount, created_at = share.id, share.amount, share.created_at

        swapped = await self.repository.compare_and_set_share_status(
            share_id,
            ShareStatus.WITHDRAW_STANDBY,
            ShareStatus.WITHDRAW_COMPLETED,
            claimant_id,
            now,
        )
        if not swapped:
            return None

        logger.info(
            f"Share claimed: {amount}",
            extra={"token": token, "user_id": claimant_id, "share_id": share_id},
        )
        return ClaimResult(
            id=share_id,
            status=ShareStatus.WITHDRAW_COMPLETED,
            amount=amount,
            created_at=as_utc(created_at),
            modified_at=as_utc(now),
        )

    def _backoff_seconds(self, attempt: int) -> float:
        return self.retry_base_delay_ms * (2 ** (attempt - 1)) / 1000
