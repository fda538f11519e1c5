"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - EnvelopeToken, EnvelopeId, UserId, RoomId, ShareId wrap primitives — never mix them up
    - CLAIM_WINDOW < AUDIT_WINDOW, so claim_expires_at < audit_expires_at always
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: stored as-is in the status column and serialized to JSON without
      custom encoders
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

EnvelopeToken = NewType("EnvelopeToken", str)
EnvelopeId = NewType("EnvelopeId", int)
UserId = NewType("UserId", int)
RoomId = NewType("RoomId", str)
ShareId = NewType("ShareId", int)


# ─── Windows ─────────────────────────────────────────────────────

CLAIM_WINDOW = timedelta(minutes=10)
AUDIT_WINDOW = timedelta(days=7)


# ─── Enums ───────────────────────────────────────────────────────

class ShareStatus(str, Enum):
    """Share states — maps to the `status` column of the shares table."""
    DEPOSIT_COMPLETED = "DEPOSIT_COMPLETED"
    WITHDRAW_STANDBY = "WITHDRAW_STANDBY"
    WITHDRAW_COMPLETED = "WITHDRAW_COMPLETED"


class FailureKind(str, Enum):
    """Why a claim or lookup was rejected."""
    NOT_FOUND = "NOT_FOUND"
    ROOM_MISMATCH = "ROOM_MISMATCH"
    EXPIRED = "EXPIRED"
    SELF_CLAIM_FORBIDDEN = "SELF_CLAIM_FORBIDDEN"
    DUPLICATE_CLAIM = "DUPLICATE_CLAIM"
    FORBIDDEN = "FORBIDDEN"
    NO_SHARES_REMAINING = "NO_SHARES_REMAINING"


@dataclass(frozen=True)
class Violation:
    """Result of a failed rule check. Checks return None when the rule holds."""
    kind: FailureKind
    message: str


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the zone on read)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
