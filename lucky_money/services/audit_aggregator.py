"""Audit Aggregator — owner-only, read-only view of an envelope's deposit and claims.

Invariants:
    - No state mutation, no locking
    - Rules checked before any share is read: exists -> owner -> audit window
"""

import logging
from datetime import datetime

from lucky_money.core.audit_summary import AuditView, summarize_shares, validate_lookup
from lucky_money.core.domain_types import EnvelopeToken, UserId
from lucky_money.core.errors import ErrorContext, error_for_violation
from lucky_money.core.repository_protocols import Clock, EnvelopeRepository
from lucky_money.infrastructure.providers import SystemClock

logger = logging.getLogger(__name__)


class AuditAggregator:
    """Builds AuditView for envelope owners."""

    def __init__(self, repository: EnvelopeRepository, clock: Clock | None = None):
        self.repository = repository
        self.clock = clock or SystemClock()

    async def lookup(
        self, token: EnvelopeToken, requester_id: UserId, now: datetime | None = None,
    ) -> AuditView:
        now = now or self.clock.now()
        envelope = await self.repository.get_by_token(token)

        violation = validate_lookup(envelope, requester_id, now)
        if violation:
            logger.info(
                f"Lookup rejected: {violation.message}",
                extra={
                    "token": token, "user_id": requester_id,
                    "error_code": violation.kind.value,
                },
            )
            raise error_for_violation(
                violation, ErrorContext(token=token, user_id=requester_id),
            )

        shares = await self.repository.get_shares(envelope.id)
        return summarize_shares(shares)
