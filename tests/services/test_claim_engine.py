"""Claim Engine — rule order, expiry boundary, and race safety under concurrent claims.

Tests cover:
    - each rule's failure kind, and that the first failing rule wins
    - claim at exactly claim_expires_at succeeds, one microsecond later fails
    - the 1000/3 scenario from creation to exhaustion
    - N concurrent distinct claimants: exactly min(k, N) succeed, no share reused
    - N concurrent claims by one user: exactly one succeeds
    - CAS conflicts retried internally; exhausted retries raise ConcurrencyError
    - engines without a shared lock (separate workers) still never double-assign
"""

import asyncio
from datetime import timedelta

import pytest

from lucky_money.core.domain_types import CLAIM_WINDOW, ShareStatus
from lucky_money.core.errors import (
    ConcurrencyError, DuplicateClaimError, EnvelopeExpiredError,
    EnvelopeNotFoundError, RoomMismatchError, RuleViolationError,
    SelfClaimForbiddenError, SharesExhaustedError,
)
from lucky_money.services.claim_engine import ClaimEngine
from lucky_money.services.envelope_lifecycle import EnvelopeLifecycle
from lucky_money.services.envelope_locks import EnvelopeLocks
from tests.services.fake_envelope_repository import T0, FakeEnvelopeRepository

OWNER = 1
ROOM = "room-1"


async def _create(repo, tokens, amount=1000, shares=3):
    receipt = await EnvelopeLifecycle(repo, tokens).create(
        OWNER, ROOM, amount, shares, now=T0,
    )
    return receipt.token


def _engine(repo, **kwargs):
    kwargs.setdefault("locks", EnvelopeLocks())
    kwargs.setdefault("retry_base_delay_ms", 0)
    return ClaimEngine(repo, **kwargs)


# --- Rules --------------------------------------------------------------------

async def test_unknown_token_is_not_found(fake_repo):
    with pytest.raises(EnvelopeNotFoundError) as exc:
        await _engine(fake_repo).claim("missing", 2, ROOM, now=T0)
    assert exc.value.http_status == 404
    assert not isinstance(exc.value, RuleViolationError)


async def test_other_room_is_rejected(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    with pytest.raises(RoomMismatchError):
        await _engine(fake_repo).claim(token, 2, "room-2", now=T0)


async def test_owner_cannot_claim(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    with pytest.raises(SelfClaimForbiddenError):
        await _engine(fake_repo).claim(token, OWNER, ROOM, now=T0)


async def test_second_claim_by_same_user_is_duplicate(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    engine = _engine(fake_repo)
    await engine.claim(token, 2, ROOM, now=T0)
    with pytest.raises(DuplicateClaimError):
        await engine.claim(token, 2, ROOM, now=T0)


async def test_room_checked_before_expiry(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    late = T0 + CLAIM_WINDOW + timedelta(seconds=1)
    with pytest.raises(RoomMismatchError):
        await _engine(fake_repo).claim(token, 2, "room-2", now=late)


async def test_expiry_checked_before_owner(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    late = T0 + CLAIM_WINDOW + timedelta(seconds=1)
    with pytest.raises(EnvelopeExpiredError):
        await _engine(fake_repo).claim(token, OWNER, ROOM, now=late)


async def test_duplicate_checked_before_exhaustion(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=10, shares=1)
    engine = _engine(fake_repo)
    await engine.claim(token, 2, ROOM, now=T0)
    with pytest.raises(DuplicateClaimError):
        await engine.claim(token, 2, ROOM, now=T0)
    with pytest.raises(SharesExhaustedError):
        await engine.claim(token, 3, ROOM, now=T0)


# --- Expiry boundary ----------------------------------------------------------

async def test_claim_exactly_at_deadline_succeeds(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    result = await _engine(fake_repo).claim(token, 2, ROOM, now=T0 + CLAIM_WINDOW)
    assert result.status == ShareStatus.WITHDRAW_COMPLETED


async def test_claim_just_after_deadline_fails(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    late = T0 + CLAIM_WINDOW + timedelta(microseconds=1)
    with pytest.raises(EnvelopeExpiredError) as exc:
        await _engine(fake_repo).claim(token, 2, ROOM, now=late)
    assert exc.value.http_status == 410


# --- Scenario -----------------------------------------------------------------

async def test_thousand_split_three_ways(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=1000, shares=3)
    engine = _engine(fake_repo)

    results = [
        await engine.claim(token, user, ROOM, now=T0 + timedelta(minutes=1))
        for user in (2, 3, 4)
    ]

    assert [r.amount for r in results] == [333, 333, 333]
    assert [r.id for r in results] == sorted(r.id for r in results)
    assert all(r.modified_at == T0 + timedelta(minutes=1) for r in results)
    assert all(r.created_at == T0 for r in results)
    with pytest.raises(SharesExhaustedError) as exc:
        await engine.claim(token, 5, ROOM, now=T0 + timedelta(minutes=2))
    assert exc.value.code == "NO_SHARES_REMAINING"


async def test_claim_assigns_lowest_standby_id(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    standby_ids = sorted(
        s.id for s in fake_repo.shares_of(token)
        if s.status == ShareStatus.WITHDRAW_STANDBY.value
    )
    result = await _engine(fake_repo).claim(token, 2, ROOM, now=T0)
    assert result.id == standby_ids[0]


async def test_deposit_share_is_never_touched(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=100, shares=2)
    engine = _engine(fake_repo)
    await engine.claim(token, 2, ROOM, now=T0)
    await engine.claim(token, 3, ROOM, now=T0)

    deposits = [
        s for s in fake_repo.shares_of(token)
        if s.status == ShareStatus.DEPOSIT_COMPLETED.value
    ]
    assert len(deposits) == 1
    assert deposits[0].claimant_id == OWNER
    assert deposits[0].amount == 100


# --- Concurrency --------------------------------------------------------------

async def test_concurrent_distinct_claimants_get_exactly_k_shares(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=500, shares=5)
    engine = _engine(fake_repo)

    outcomes = await asyncio.gather(
        *(engine.claim(token, user, ROOM, now=T0) for user in range(2, 14)),
        return_exceptions=True,
    )

    wins = [o for o in outcomes if not isinstance(o, Exception)]
    losses = [o for o in outcomes if isinstance(o, Exception)]
    assert len(wins) == 5
    assert len({w.id for w in wins}) == 5
    assert len(losses) == 7
    assert all(isinstance(o, SharesExhaustedError) for o in losses)


async def test_fewer_claimants_than_shares_all_succeed(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=1000, shares=10)
    engine = _engine(fake_repo)

    outcomes = await asyncio.gather(
        *(engine.claim(token, user, ROOM, now=T0) for user in (2, 3, 4)),
    )

    assert len({o.id for o in outcomes}) == 3
    remaining = [
        s for s in fake_repo.shares_of(token)
        if s.status == ShareStatus.WITHDRAW_STANDBY.value
    ]
    assert len(remaining) == 7


async def test_concurrent_claims_by_one_user_succeed_once(fake_repo, tokens):
    token = await _create(fake_repo, tokens, amount=1000, shares=5)
    engine = _engine(fake_repo)

    outcomes = await asyncio.gather(
        *(engine.claim(token, 7, ROOM, now=T0) for _ in range(8)),
        return_exceptions=True,
    )

    wins = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(wins) == 1
    losses = [o for o in outcomes if isinstance(o, Exception)]
    assert len(losses) == 7
    assert all(isinstance(o, DuplicateClaimError) for o in losses)
    held = [s for s in fake_repo.shares_of(token) if s.claimant_id == 7]
    assert len(held) == 1


async def test_separate_workers_never_double_assign(fake_repo, tokens):
    """Each engine has its own lock registry, as in separate processes."""
    token = await _create(fake_repo, tokens, amount=400, shares=4)

    def worker():
        return ClaimEngine(
            fake_repo, locks=EnvelopeLocks(), max_retries=50, retry_base_delay_ms=0,
        )

    claimants = [2, 3, 4, 5, 6, 7, 3, 3]
    outcomes = await asyncio.gather(
        *(worker().claim(token, user, ROOM, now=T0) for user in claimants),
        return_exceptions=True,
    )

    wins = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(wins) == 4
    assert len({w.id for w in wins}) == 4
    completed = [
        s for s in fake_repo.shares_of(token)
        if s.status == ShareStatus.WITHDRAW_COMPLETED.value
    ]
    claimant_ids = [s.claimant_id for s in completed]
    assert len(claimant_ids) == len(set(claimant_ids)) == 4
    assert fake_repo.cas_calls > 4
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            assert isinstance(outcome, (SharesExhaustedError, DuplicateClaimError))


async def test_different_envelopes_do_not_share_a_lock(fake_repo, tokens):
    first = await _create(fake_repo, tokens)
    second = await _create(fake_repo, tokens)
    locks = EnvelopeLocks()
    engine = _engine(fake_repo, locks=locks)

    async with locks.hold(first):
        result = await asyncio.wait_for(
            engine.claim(second, 2, ROOM, now=T0), timeout=1,
        )
    assert result.amount == 333


# --- Retry --------------------------------------------------------------------

async def test_cas_conflict_is_retried_transparently(tokens):
    repo = FakeEnvelopeRepository(cas_conflicts=2)
    token = await _create(repo, tokens)

    result = await _engine(repo, max_retries=3).claim(token, 2, ROOM, now=T0)

    assert result.status == ShareStatus.WITHDRAW_COMPLETED
    assert repo.cas_calls == 3


async def test_exhausted_retries_raise_concurrency_error(tokens):
    repo = FakeEnvelopeRepository(cas_conflicts=10)
    token = await _create(repo, tokens)

    with pytest.raises(ConcurrencyError) as exc:
        await _engine(repo, max_retries=3).claim(token, 2, ROOM, now=T0)

    assert exc.value.code == "CONCURRENCY_CONFLICT"
    assert repo.cas_calls == 3
    assert all(s.claimant_id != 2 for s in repo.shares_of(token))


def test_engine_requires_at_least_one_attempt(fake_repo):
    with pytest.raises(ValueError):
        ClaimEngine(fake_repo, locks=EnvelopeLocks(), max_retries=0)


async def test_single_attempt_still_claims(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    result = await _engine(fake_repo, max_retries=1).claim(token, 2, ROOM, now=T0)
    assert result.amount == 333
    assert fake_repo.cas_calls == 1


async def test_lock_registry_is_empty_after_claims(fake_repo, tokens):
    token = await _create(fake_repo, tokens)
    locks = EnvelopeLocks()
    engine = _engine(fake_repo, locks=locks)

    await asyncio.gather(
        *(engine.claim(token, user, ROOM, now=T0) for user in (2, 3, 4, 5)),
        return_exceptions=True,
    )

    assert len(locks) == 0


async def test_engine_uses_injected_clock(fake_repo, tokens, clock):
    token = await _create(fake_repo, tokens)
    clock.moment = T0 + CLAIM_WINDOW + timedelta(seconds=1)
    with pytest.raises(EnvelopeExpiredError):
        await _engine(fake_repo, clock=clock).claim(token, 2, ROOM)
