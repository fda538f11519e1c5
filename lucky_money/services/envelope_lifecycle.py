"""Envelope Lifecycle — create an envelope with its deposit record and standby shares.

Invariants:
    - Envelope + deposit share + share_count standby shares persist as one unit
    - Storage failures propagate as DatabaseError, never swallowed
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from lucky_money.core.domain_types import EnvelopeToken, RoomId, UserId, as_utc
from lucky_money.core.plan_envelope import forfeited_remainder, plan_envelope
from lucky_money.core.repository_protocols import (
    Clock, EnvelopeRepository, TokenGenerator,
)
from lucky_money.infrastructure.providers import SystemClock, UuidTokenGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvelopeReceipt:
    token: EnvelopeToken
    owner_id: UserId
    created_at: datetime


class EnvelopeLifecycle:
    """Creates envelopes."""

    def __init__(
        self,
        repository: EnvelopeRepository,
        token_generator: TokenGenerator | None = None,
        clock: Clock | None = None,
    ):
        self.repository = repository
        self.token_generator = token_generator or UuidTokenGenerator()
        self.clock = clock or SystemClock()

    async def create(
        self,
        owner_id: UserId,
        room_id: RoomId,
        total_amount: int,
        share_count: int,
        now: datetime | None = None,
    ) -> EnvelopeReceipt:
        """Plan and persist a new envelope. Caller has validated the amounts."""
        now = now or self.clock.now()
        plan = plan_envelope(
            self.token_generator.new_token(),
            owner_id, room_id, total_amount, share_count, now,
        )
        envelope = await self.repository.save_with_shares(plan.envelope, plan.shares)
        logger.info(
            f"Envelope created: {share_count} share(s) of "
            f"{total_amount // share_count}, "
            f"{forfeited_remainder(total_amount, share_count)} forfeited",
            extra={
                "token": envelope.token, "user_id": owner_id, "room_id": room_id,
            },
        )
        return EnvelopeReceipt(
            token=envelope.token,
            owner_id=envelope.owner_id,
            created_at=as_utc(envelope.created_at),
        )
