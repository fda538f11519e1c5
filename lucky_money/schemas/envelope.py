"""Envelope Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - EnvelopeCreate: share_count >= 1, amount >= share_count (every share >= 1)
    - Response models mirror service results one-to-one; no domain logic here
"""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from lucky_money.core.domain_types import ShareStatus


class EnvelopeCreate(BaseModel):
    """Envelope creation — total amount split across share_count claimants."""
    amount: int = Field(ge=1)
    share_count: int = Field(ge=1, le=10_000)

    @model_validator(mode="after")
    def validate_amount_covers_shares(self):
        if self.amount < self.share_count:
            raise ValueError("amount must be at least share_count")
        return self


class EnvelopeCreatedResponse(BaseModel):
    token: str
    owner_id: int
    created_at: datetime


class ClaimResponse(BaseModel):
    """The share assigned by a successful claim."""
    id: int
    status: ShareStatus
    amount: int
    created_at: datetime
    modified_at: datetime


class ClaimedShareResponse(BaseModel):
    user_id: int
    amount: int


class AuditResponse(BaseModel):
    """Owner's view of the envelope: deposit and every completed claim."""
    created_at: datetime
    deposited_amount: int
    withdraw_amount: int
    withdraw_completed: list[ClaimedShareResponse]
