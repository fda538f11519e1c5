"""In-memory EnvelopeRepository — satisfies the core Protocol for concurrency tests.

Behaves like the SQL repository where it matters:
    - reads return snapshots (copies), so a reader can hold stale rows
    - every call yields to the event loop, so concurrent claims interleave
    - compare-and-set checks the expected status AND claimant uniqueness per
      envelope, like the conditional UPDATE + unique constraint
    - `cas_conflicts` forces the next N compare-and-sets to lose
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from lucky_money.core.domain_types import ShareStatus
from lucky_money.core.errors import DatabaseError
from lucky_money.core.repository_protocols import EnvelopeDraft, ShareDraft

T0 = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeEnvelope:
    id: int
    token: str
    owner_id: int
    room_id: str
    created_at: datetime
    claim_expires_at: datetime
    audit_expires_at: datetime


@dataclass
class FakeShare:
    id: int
    envelope_id: int
    amount: int
    claimant_id: int | None
    status: str
    created_at: datetime
    modified_at: datetime


class FakeEnvelopeRepository:
    def __init__(self, cas_conflicts: int = 0):
        self.envelopes: dict[str, FakeEnvelope] = {}
        self.shares: dict[int, FakeShare] = {}
        self.cas_conflicts = cas_conflicts
        self.cas_calls = 0
        self.fail_saves = False

    async def get_by_token(self, token: str) -> FakeEnvelope | None:
        await asyncio.sleep(0)
        envelope = self.envelopes.get(token)
        return replace(envelope) if envelope else None

    async def save_with_shares(
        self, envelope: EnvelopeDraft, shares: list[ShareDraft],
    ) -> FakeEnvelope:
        await asyncio.sleep(0)
        if self.fail_saves:
            raise DatabaseError("disk full", "commit")
        row = FakeEnvelope(id=len(self.envelopes) + 1, **envelope.__dict__)
        self.envelopes[row.token] = row
        for draft in shares:
            share_id = len(self.shares) + 1
            self.shares[share_id] = FakeShare(
                id=share_id,
                envelope_id=row.id,
                amount=draft.amount,
                claimant_id=draft.claimant_id,
                status=draft.status.value,
                created_at=draft.created_at,
                modified_at=draft.created_at,
            )
        return replace(row)

    async def get_shares(self, envelope_id: int) -> list[FakeShare]:
        await asyncio.sleep(0)
        return [
            replace(share) for share in sorted(self.shares.values(), key=lambda s: s.id)
            if share.envelope_id == envelope_id
        ]

    async def compare_and_set_share_status(
        self,
        share_id: int,
        expected: ShareStatus,
        new: ShareStatus,
        claimant_id: int,
        modified_at: datetime,
    ) -> bool:
        await asyncio.sleep(0)
        self.cas_calls += 1
        if self.cas_conflicts > 0:
            self.cas_conflicts -= 1
            return False
        share = self.shares[share_id]
        if share.status != expected.value:
            return False
        if any(
            other.envelope_id == share.envelope_id and other.claimant_id == claimant_id
            for other in self.shares.values()
        ):
            return False
        share.status = new.value
        share.claimant_id = claimant_id
        share.modified_at = modified_at
        return True

    def shares_of(self, token: str) -> list[FakeShare]:
        envelope_id = self.envelopes[token].id
        return [s for s in self.shares.values() if s.envelope_id == envelope_id]


class FixedClock:
    """Clock pinned to a moment; tests move it explicitly."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


class SequentialTokens:
    def __init__(self, prefix: str = "tok"):
        self.prefix = prefix
        self.issued = 0

    def new_token(self) -> str:
        self.issued += 1
        return f"{self.prefix}{self.issued}"
