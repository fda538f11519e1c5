"""Envelope Planning — pure construction of an envelope and its share rows.

Invariants:
    - Exactly one DEPOSIT_COMPLETED share (amount = total, claimant = owner), first
    - Exactly share_count WITHDRAW_STANDBY shares, each floor(total / share_count)
    - The integer-division remainder is forfeited, never redistributed
    - claim_expires_at = now + CLAIM_WINDOW < audit_expires_at = now + AUDIT_WINDOW

Design Decisions:
    - Preconditions (share_count >= 1, total >= share_count) validated at the HTTP
      boundary; this module does no special-casing beyond integer division
"""

from dataclasses import dataclass
from datetime import datetime

from lucky_money.core.domain_types import (
    AUDIT_WINDOW, CLAIM_WINDOW, EnvelopeToken, RoomId, ShareStatus, UserId,
)
from lucky_money.core.repository_protocols import EnvelopeDraft, ShareDraft


@dataclass(frozen=True)
class EnvelopePlan:
    """Everything create() writes, as one atomic batch."""
    envelope: EnvelopeDraft
    shares: list[ShareDraft]


def split_equally(total_amount: int, share_count: int) -> list[int]:
    """Equal split, remainder dropped: 1000 / 3 -> [333, 333, 333]."""
    return [total_amount // share_count] * share_count


def forfeited_remainder(total_amount: int, share_count: int) -> int:
    return total_amount % share_count


def plan_envelope(
    token: EnvelopeToken,
    owner_id: UserId,
    room_id: RoomId,
    total_amount: int,
    share_count: int,
    now: datetime,
) -> EnvelopePlan:
    """Build the envelope draft plus its deposit and standby share drafts."""
    envelope = EnvelopeDraft(
        token=token,
        owner_id=owner_id,
        room_id=room_id,
        created_at=now,
        claim_expires_at=now + CLAIM_WINDOW,
        audit_expires_at=now + AUDIT_WINDOW,
    )
    deposit = ShareDraft(
        amount=total_amount,
        status=ShareStatus.DEPOSIT_COMPLETED,
        claimant_id=owner_id,
        created_at=now,
    )
    standby = [
        ShareDraft(
            amount=amount,
            status=ShareStatus.WITHDRAW_STANDBY,
            claimant_id=None,
            created_at=now,
        )
        for amount in split_equally(total_amount, share_count)
    ]
    return EnvelopePlan(envelope=envelope, shares=[deposit, *standby])
