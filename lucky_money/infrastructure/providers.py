"""Identifier & Time Providers — default Clock and TokenGenerator implementations.

Invariants:
    - SystemClock.now() is always timezone-aware UTC
    - Tokens are uuid4 hex: opaque, 32 chars, collision-free for practical purposes

Design Decisions:
    - Plain classes satisfying core Protocols; tests inject fixed clocks instead
"""

import uuid
from datetime import datetime, timezone

from lucky_money.core.domain_types import EnvelopeToken


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UuidTokenGenerator:
    def new_token(self) -> EnvelopeToken:
        return EnvelopeToken(uuid.uuid4().hex)
