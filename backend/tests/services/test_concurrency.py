"""Concurrent requests — each racer runs on its own session and connection.

Invariants:
    - Of two racing claims on one row, exactly one wins; the loser raises
      GuardViolationError and leaves no partial writes
    - Balances move exactly once per escrow, whatever the interleaving
    - A request that accepted a bid keeps no pending bids
    - The minting collaborator is reached at most once per certificate
"""

import asyncio

from sqlalchemy import func, select

from skillloop.core.domain_types import BidAction, WalletAddress
from skillloop.core.errors import GuardViolationError, InsufficientBalanceError
from skillloop.core.notification_events import EventOutbox
from skillloop.core.progress_tracking import ProgressTracking
from skillloop.core.repository_protocols import MintResult
from skillloop.models.bid import Bid
from skillloop.models.learning_request import LearningRequest
from skillloop.models.session import Session as SessionModel
from skillloop.services.bidding import BiddingEngine
from skillloop.services.certificates import CertificateIssuer
from skillloop.services.ledger import LedgerService
from skillloop.services.progress_tracker import ProgressTracker
from skillloop.services.session_lifecycle import SessionLifecycle
from tests.services.factories import LEARNER, OTHER_TUTOR, TUTOR, tomorrow


async def _race(factory, *calls) -> list:
    """Run every call concurrently, each with its own session and outbox."""
    async def run(call):
        async with factory() as db:
            return await call(db, EventOutbox())
    return await asyncio.gather(*(run(c) for c in calls), return_exceptions=True)


async def _balance(factory, wallet: WalletAddress) -> float:
    async with factory() as db:
        return await LedgerService(db).get_balance(wallet)


async def _open_request(factory):
    async with factory() as db:
        return await BiddingEngine(db, EventOutbox()).create_request(
            LEARNER, "React", "Hooks and state management", 20, 60,
        )


async def _bid(factory, request_id, tutor: WalletAddress, rate: float = 10):
    async with factory() as db:
        return await BiddingEngine(db, EventOutbox()).submit_bid(
            request_id, tutor, rate, 60, "I can help",
        )


async def _bids_by_tutor(factory, request_id) -> dict[str, list[str]]:
    async with factory() as db:
        result = await db.execute(
            select(Bid.tutor_address, Bid.status)
            .where(Bid.learning_request_id == request_id),
        )
        statuses: dict[str, list[str]] = {}
        for tutor, status in result.all():
            statuses.setdefault(tutor, []).append(status)
        return statuses


def _accept(request_id, bid_id):
    async def call(db, outbox):
        return await BiddingEngine(db, outbox).resolve_bid(
            request_id, bid_id, LEARNER, BidAction.ACCEPT, tomorrow(),
        )
    return call


def _losers(results) -> list:
    return [r for r in results if isinstance(r, Exception)]


async def _ready_to_complete(factory):
    """A directly booked 60-minute session, started, with 80% progress and attendance."""
    async with factory() as db:
        lifecycle = SessionLifecycle(db, EventOutbox())
        session = await lifecycle.book(LEARNER, TUTOR, "Solidity", tomorrow(), 60, 10)
        await lifecycle.approve(session.id, TUTOR)
    async with factory() as db:
        await SessionLifecycle(db, EventOutbox()).start(session.id, TUTOR)
    async with factory() as db:
        started = await SessionLifecycle(db, EventOutbox()).get_session(session.id)
        progress = ProgressTracking.from_dict(started.progress_tracking)
    for milestone in progress.milestones[:4]:
        async with factory() as db:
            await ProgressTracker(db, EventOutbox()).update_milestone(
                session.id, TUTOR, milestone.id, True,
            )
    async with factory() as db:
        await ProgressTracker(db, EventOutbox()).update_meeting_data(
            session.id, LEARNER, [TUTOR, LEARNER], 90, 50,
        )
    return session.id


# ─── Bidding ─────────────────────────────────────────────────────

async def test_duplicate_bids_race_to_one_pending(race_factory):
    request = await _open_request(race_factory)

    async def submit(db, outbox):
        return await BiddingEngine(db, outbox).submit_bid(
            request.id, TUTOR, 12, 60, "I can help",
        )

    results = await _race(race_factory, submit, submit)

    losers = _losers(results)
    assert len(losers) == 1
    assert isinstance(losers[0], GuardViolationError)
    assert losers[0].code == "DUPLICATE_PENDING_BID"
    assert await _bids_by_tutor(race_factory, request.id) == {TUTOR: ["pending"]}


async def test_concurrent_accepts_settle_one_bid(race_factory):
    request = await _open_request(race_factory)
    first = await _bid(race_factory, request.id, TUTOR)
    second = await _bid(race_factory, request.id, OTHER_TUTOR)

    results = await _race(
        race_factory,
        _accept(request.id, first.id), _accept(request.id, second.id),
    )

    losers = _losers(results)
    assert len(losers) == 1
    assert isinstance(losers[0], GuardViolationError)
    assert await _balance(race_factory, LEARNER) == 190
    statuses = await _bids_by_tutor(race_factory, request.id)
    assert sorted(statuses[TUTOR] + statuses[OTHER_TUTOR]) == ["accepted", "rejected"]
    async with race_factory() as db:
        sessions = await db.scalar(select(func.count()).select_from(SessionModel))
    assert sessions == 1


async def test_bid_racing_an_accept_never_stays_pending(race_factory):
    request = await _open_request(race_factory)
    bid = await _bid(race_factory, request.id, TUTOR)

    async def late_bid(db, outbox):
        return await BiddingEngine(db, outbox).submit_bid(
            request.id, OTHER_TUTOR, 10, 60, "Me too",
        )

    results = await _race(race_factory, _accept(request.id, bid.id), late_bid)

    assert not isinstance(results[0], Exception)
    if isinstance(results[1], Exception):
        assert results[1].code == "REQUEST_NOT_OPEN"
    statuses = await _bids_by_tutor(race_factory, request.id)
    assert statuses[TUTOR] == ["accepted"]
    assert "pending" not in statuses.get(OTHER_TUTOR, [])
    async with race_factory() as db:
        stored = await db.get(LearningRequest, request.id)
    assert stored.status == "in_progress"


# ─── Sessions ────────────────────────────────────────────────────

async def test_bookings_beyond_balance_race_to_one_debit(race_factory):
    async def book(db, outbox):
        return await SessionLifecycle(db, outbox).book(
            LEARNER, TUTOR, "Solidity", tomorrow(), 360, 20,
        )

    results = await _race(race_factory, book, book)

    losers = _losers(results)
    assert len(losers) == 1
    assert isinstance(losers[0], InsufficientBalanceError)
    assert await _balance(race_factory, LEARNER) == 80
    async with race_factory() as db:
        sessions = await db.scalar(select(func.count()).select_from(SessionModel))
    assert sessions == 1


async def test_duplicate_completion_releases_escrow_once(race_factory):
    session_id = await _ready_to_complete(race_factory)

    async def complete(db, outbox):
        return await SessionLifecycle(db, outbox).complete(session_id, TUTOR)

    results = await _race(race_factory, complete, complete)

    losers = _losers(results)
    assert len(losers) == 1
    assert isinstance(losers[0], GuardViolationError)
    assert await _balance(race_factory, TUTOR) == 210
    assert await _balance(race_factory, LEARNER) == 190


# ─── Certificates ────────────────────────────────────────────────

class SlowMinter:
    def __init__(self):
        self.calls = 0

    async def mint(self, certificate_id):
        self.calls += 1
        await asyncio.sleep(0.05)
        return MintResult(
            token_id=str(self.calls),
            tx_hash="0x" + "e" * 64,
            metadata_uri=f"https://metadata.test/{certificate_id}/metadata.json",
        )


async def test_concurrent_mints_reach_the_minter_once(race_factory):
    session_id = await _ready_to_complete(race_factory)
    async with race_factory() as db:
        _, certificate = await SessionLifecycle(db, EventOutbox()).complete(
            session_id, TUTOR,
        )
    minter = SlowMinter()

    async def mint(db, outbox):
        return await CertificateIssuer(db).mint(certificate.id, LEARNER, minter)

    results = await _race(race_factory, mint, mint)

    losers = _losers(results)
    assert len(losers) == 1
    assert losers[0].code == "CERTIFICATE_NOT_PENDING"
    assert minter.calls == 1
    async with race_factory() as db:
        stored = await CertificateIssuer(db).get(certificate.id)
    assert stored.status == "minted"
    assert stored.token_id == "1"
