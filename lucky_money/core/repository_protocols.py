"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM rows and test fakes both satisfy
      EnvelopeLike/ShareLike without inheriting anything
    - Drafts are plain dataclasses: core decides what to persist, the repository
      decides how
    - Async in Protocol: boundary methods are async because implementations do IO,
      core functions that USE these protocols are never async themselves
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from lucky_money.core.domain_types import (
    EnvelopeId, EnvelopeToken, RoomId, ShareId, ShareStatus, UserId,
)


class EnvelopeLike(Protocol):
    """Structural contract for a persisted envelope."""
    id: EnvelopeId
    token: EnvelopeToken
    owner_id: UserId
    room_id: RoomId
    created_at: datetime
    claim_expires_at: datetime
    audit_expires_at: datetime


class ShareLike(Protocol):
    """Structural contract for a persisted share."""
    id: ShareId
    amount: int
    claimant_id: UserId | None
    status: str
    created_at: datetime
    modified_at: datetime


@dataclass(frozen=True)
class EnvelopeDraft:
    """An envelope the core has planned but storage has not yet written."""
    token: EnvelopeToken
    owner_id: UserId
    room_id: RoomId
    created_at: datetime
    claim_expires_at: datetime
    audit_expires_at: datetime


@dataclass(frozen=True)
class ShareDraft:
    """A share the core has planned; persisted in list order (ids ascend)."""
    amount: int
    status: ShareStatus
    claimant_id: UserId | None
    created_at: datetime


class EnvelopeRepository(Protocol):
    """Contract for envelope + share persistence — implemented by shell."""
    async def get_by_token(self, token: EnvelopeToken) -> EnvelopeLike | None: ...
    async def save_with_shares(
        self, envelope: EnvelopeDraft, shares: list[ShareDraft],
    ) -> EnvelopeLike: ...
    async def get_shares(self, envelope_id: EnvelopeId) -> list[ShareLike]: ...
    async def compare_and_set_share_status(
        self,
        share_id: ShareId,
        expected: ShareStatus,
        new: ShareStatus,
        claimant_id: UserId,
        modified_at: datetime,
    ) -> bool: ...


class TokenGenerator(Protocol):
    """Yields opaque, practically collision-free envelope tokens."""
    def new_token(self) -> EnvelopeToken: ...


class Clock(Protocol):
    """Wall-clock source, injected so tests can move time."""
    def now(self) -> datetime: ...
