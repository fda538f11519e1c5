"""Claim Rule Enforcement — validates a claim request against an envelope snapshot.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return Violation on failure, None on success
    - Rules run in a fixed order and the first failure wins:
      exists -> room -> window -> not owner -> not duplicate -> standby left
    - "now == claim_expires_at" is still inside the window; only strictly after fails

Design Decisions:
    - Remaining shares are derived from the share rows passed in, never from a
      counter, so a re-read under the claim lock gives a consistent answer
    - select_standby_share picks the lowest id: deterministic, earliest created
"""

from datetime import datetime
from typing import Sequence

from lucky_money.core.domain_types import (
    FailureKind, RoomId, ShareStatus, UserId, Violation, as_utc,
)
from lucky_money.core.repository_protocols import EnvelopeLike, ShareLike


# --- Individual rules ---------------------------------------------------------

def check_envelope_exists(envelope: EnvelopeLike | None) -> Violation | None:
    if envelope is None:
        return Violation(FailureKind.NOT_FOUND, "Envelope does not exist.")
    return None


def check_room(envelope: EnvelopeLike, room_id: RoomId) -> Violation | None:
    """Only members of the envelope's room may claim."""
    if envelope.room_id != room_id:
        return Violation(
            FailureKind.ROOM_MISMATCH,
            "Envelope belongs to a different room.",
        )
    return None


def check_claim_window(envelope: EnvelopeLike, now: datetime) -> Violation | None:
    if as_utc(now) > as_utc(envelope.claim_expires_at):
        return Violation(FailureKind.EXPIRED, "Envelope claim window has expired.")
    return None


def check_not_owner(envelope: EnvelopeLike, claimant_id: UserId) -> Violation | None:
    if envelope.owner_id == claimant_id:
        return Violation(
            FailureKind.SELF_CLAIM_FORBIDDEN,
            "Owners cannot claim from their own envelope.",
        )
    return None


def check_not_claimed(
    shares: Sequence[ShareLike], claimant_id: UserId,
) -> Violation | None:
    """A user holds at most one share per envelope, in any status."""
    if any(share.claimant_id == claimant_id for share in shares):
        return Violation(
            FailureKind.DUPLICATE_CLAIM,
            "User has already claimed a share of this envelope.",
        )
    return None


def check_standby_available(shares: Sequence[ShareLike]) -> Violation | None:
    if select_standby_share(shares) is None:
        return Violation(
            FailureKind.NO_SHARES_REMAINING,
            "No shares remain in this envelope.",
        )
    return None


# --- Selection ----------------------------------------------------------------

def select_standby_share(shares: Sequence[ShareLike]) -> ShareLike | None:
    """Lowest-id WITHDRAW_STANDBY share, or None when all are taken."""
    standby = [
        share for share in shares
        if share.status == ShareStatus.WITHDRAW_STANDBY
    ]
    if not standby:
        return None
    return min(standby, key=lambda share: share.id)


# --- Composite validator ------------------------------------------------------

def validate_claim(
    envelope: EnvelopeLike | None,
    shares: Sequence[ShareLike],
    claimant_id: UserId,
    room_id: RoomId,
    now: datetime,
) -> Violation | None:
    """Run every claim rule in order; first failure wins."""
    missing = check_envelope_exists(envelope)
    if missing:
        return missing
    return (
        check_room(envelope, room_id)
        or check_claim_window(envelope, now)
        or check_not_owner(envelope, claimant_id)
        or check_not_claimed(shares, claimant_id)
        or check_standby_available(shares)
    )
