"""Audit Summary — owner-only lookup rules and aggregation of an envelope's history.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Lookup rules run in order: exists -> owner -> audit window
    - withdraw_amount == sum of WITHDRAW_COMPLETED amounts <= deposited_amount

Design Decisions:
    - Summary built from whatever share snapshot storage returned; claims are
      atomic, so any snapshot is a valid serial point
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from lucky_money.core.domain_types import (
    FailureKind, ShareStatus, UserId, Violation, as_utc,
)
from lucky_money.core.enforce_claim import check_envelope_exists
from lucky_money.core.repository_protocols import EnvelopeLike, ShareLike


@dataclass(frozen=True)
class ClaimedShare:
    """One completed claim as reported to the owner."""
    claimant_id: UserId
    amount: int


@dataclass(frozen=True)
class AuditView:
    """Deposit/claim history of one envelope."""
    created_at: datetime
    deposited_amount: int
    withdraw_amount: int
    withdraw_completed: list[ClaimedShare] = field(default_factory=list)


def check_owner(envelope: EnvelopeLike, requester_id: UserId) -> Violation | None:
    if envelope.owner_id != requester_id:
        return Violation(
            FailureKind.FORBIDDEN,
            "Only the envelope owner can look it up.",
        )
    return None


def check_audit_window(envelope: EnvelopeLike, now: datetime) -> Violation | None:
    if as_utc(now) > as_utc(envelope.audit_expires_at):
        return Violation(FailureKind.EXPIRED, "Envelope lookup period has expired.")
    return None


def validate_lookup(
    envelope: EnvelopeLike | None, requester_id: UserId, now: datetime,
) -> Violation | None:
    """Run every lookup rule in order; first failure wins."""
    missing = check_envelope_exists(envelope)
    if missing:
        return missing
    return check_owner(envelope, requester_id) or check_audit_window(envelope, now)


def summarize_shares(shares: Sequence[ShareLike]) -> AuditView:
    """Aggregate the deposit record and every completed claim.

    Raises ValueError if the deposit record is missing, which only a corrupted
    envelope can produce.
    """
    deposit = next(
        (s for s in shares if s.status == ShareStatus.DEPOSIT_COMPLETED), None,
    )
    if deposit is None:
        raise ValueError("Envelope has no deposit record")

    completed = [
        ClaimedShare(claimant_id=s.claimant_id, amount=s.amount)
        for s in sorted(shares, key=lambda s: s.id)
        if s.status == ShareStatus.WITHDRAW_COMPLETED
    ]
    return AuditView(
        created_at=as_utc(deposit.created_at),
        deposited_amount=deposit.amount,
        withdraw_amount=sum(c.amount for c in completed),
        withdraw_completed=completed,
    )
