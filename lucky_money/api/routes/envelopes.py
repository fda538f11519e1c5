"""Envelope Routes — create, claim and audit over HTTP.

Invariants:
    - Caller identity comes from X-USER-ID, room scope from X-ROOM-ID
    - Routes only translate HTTP <-> service calls; every rule lives in core/
    - LuckyMoneyError raised by services is rendered by the global handler

Design Decisions:
    - Services built per request around the request's AsyncSession; the claim
      lock registry is process-wide (services/envelope_locks.py)
"""

import logging

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from lucky_money.config import get_settings
from lucky_money.core.domain_types import EnvelopeToken, RoomId, UserId
from lucky_money.infrastructure.database import get_db
from lucky_money.schemas.envelope import (
    AuditResponse, ClaimedShareResponse, ClaimResponse,
    EnvelopeCreate, EnvelopeCreatedResponse,
)
from lucky_money.services.audit_aggregator import AuditAggregator
from lucky_money.services.claim_engine import ClaimEngine
from lucky_money.services.envelope_lifecycle import EnvelopeLifecycle
from lucky_money.services.envelope_repository import SqlEnvelopeRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/envelopes", tags=["envelopes"])


def get_repository(db: AsyncSession = Depends(get_db)) -> SqlEnvelopeRepository:
    return SqlEnvelopeRepository(db)


@router.post(
    "", response_model=EnvelopeCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_envelope(
    body: EnvelopeCreate,
    user_id: int = Header(alias="X-USER-ID"),
    room_id: str = Header(alias="X-ROOM-ID", min_length=1, max_length=64),
    repository: SqlEnvelopeRepository = Depends(get_repository),
):
    """Deposit `amount` into a new envelope split into `share_count` shares."""
    receipt = await EnvelopeLifecycle(repository).create(
        UserId(user_id), RoomId(room_id), body.amount, body.share_count,
    )
    return EnvelopeCreatedResponse(
        token=receipt.token,
        owner_id=receipt.owner_id,
        created_at=receipt.created_at,
    )


@router.put("/{token}", response_model=ClaimResponse)
async def claim_share(
    token: str,
    user_id: int = Header(alias="X-USER-ID"),
    room_id: str = Header(alias="X-ROOM-ID", min_length=1, max_length=64),
    repository: SqlEnvelopeRepository = Depends(get_repository),
):
    """Claim one share of the envelope for the calling user."""
    settings = get_settings()
    engine = ClaimEngine(
        repository,
        max_retries=settings.claim_max_retries,
        retry_base_delay_ms=settings.claim_retry_base_delay_ms,
    )
    result = await engine.claim(EnvelopeToken(token), UserId(user_id), RoomId(room_id))
    return ClaimResponse(
        id=result.id,
        status=result.status,
        amount=result.amount,
        created_at=result.created_at,
        modified_at=result.modified_at,
    )


@router.get("/{token}", response_model=AuditResponse)
async def lookup_envelope(
    token: str,
    user_id: int = Header(alias="X-USER-ID"),
    repository: SqlEnvelopeRepository = Depends(get_repository),
):
    """Owner-only audit of deposit and completed claims."""
    view = await AuditAggregator(repository).lookup(
        EnvelopeToken(token), UserId(user_id),
    )
    return AuditResponse(
        created_at=view.created_at,
        deposited_amount=view.deposited_amount,
        withdraw_amount=view.withdraw_amount,
        withdraw_completed=[
            ClaimedShareResponse(user_id=c.claimant_id, amount=c.amount)
            for c in view.withdraw_completed
        ],
    )
