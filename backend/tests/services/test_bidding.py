"""Bidding — learning requests, bid submission and resolution.

Invariants:
    - Bids are refused on non-open requests, over budget, by the owner, or when duplicated
    - Accept opens a confirmed, bid-born session with the bid's cost in escrow
    - At most one bid per request is ever accepted; pending siblings are rejected with it
    - Reject touches only the target bid
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from skillloop.core.domain_types import BidAction
from skillloop.core.errors import (
    AuthorizationError, GuardViolationError, InsufficientBalanceError,
)
from skillloop.models.notification import Notification
from skillloop.services.bidding import BiddingEngine
from tests.services.factories import (
    LEARNER, OTHER_TUTOR, OUTSIDER, TUTOR, balance_of, headers, tomorrow,
)


async def _create_request(client, max_budget: float = 20, duration: int = 60) -> dict:
    res = await client.post(
        "/api/v1/learning-requests",
        json={
            "skill_name": "React",
            "description": "Hooks and state management",
            "max_budget": max_budget,
            "preferred_duration": duration,
        },
        headers=headers(LEARNER),
    )
    assert res.status_code == 201, res.text
    return res.json()


async def _bid(client, request_id: str, tutor: str, rate: float = 12, duration: int = 60):
    return await client.post(
        f"/api/v1/learning-requests/{request_id}/bids",
        json={"proposed_rate": rate, "proposed_duration": duration, "message": "I can help"},
        headers=headers(tutor),
    )


async def _resolve(client, request_id: str, bid_id: str, action: str = "accept"):
    body = {"action": action}
    if action == "accept":
        body["start_time"] = tomorrow().isoformat()
    return await client.post(
        f"/api/v1/learning-requests/{request_id}/bids/{bid_id}/resolve",
        json=body, headers=headers(LEARNER),
    )


# ─── Requests ────────────────────────────────────────────────────

async def test_create_request_is_open(client, wallets):
    request = await _create_request(client)
    assert request["status"] == "open"
    assert request["owner_address"] == LEARNER
    assert request["preferred_schedule"] == "Flexible"
    assert request["bids"] == []


async def test_list_requests_filters_by_status_and_skill(client, wallets):
    await _create_request(client)
    res = await client.get(
        "/api/v1/learning-requests", params={"status": "open", "skill": "rea"},
    )
    assert len(res.json()) == 1
    res = await client.get("/api/v1/learning-requests", params={"skill": "Solidity"})
    assert res.json() == []


# ─── Submission ──────────────────────────────────────────────────

async def test_submit_bid_prices_and_notifies_owner(client, wallets, test_db):
    request = await _create_request(client)
    res = await _bid(client, request["id"], TUTOR, rate=12, duration=45)

    assert res.status_code == 201
    bid = res.json()
    assert bid["total_cost"] == 9
    assert bid["status"] == "pending"
    result = await test_db.execute(
        select(Notification).where(Notification.recipient_address == LEARNER),
    )
    assert [n.type for n in result.scalars().all()] == ["new_bid"]


async def test_bid_over_budget_refused(client, wallets):
    request = await _create_request(client, max_budget=10)
    res = await _bid(client, request["id"], TUTOR, rate=15, duration=60)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "OVER_BUDGET"


async def test_bid_rounding_down_to_budget_is_still_over_budget(client, wallets):
    request = await _create_request(client, max_budget=10)
    res = await _bid(client, request["id"], TUTOR, rate=10.004, duration=60)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "OVER_BUDGET"


async def test_duplicate_pending_bid_refused(client, wallets):
    request = await _create_request(client)
    assert (await _bid(client, request["id"], TUTOR)).status_code == 201
    res = await _bid(client, request["id"], TUTOR)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "DUPLICATE_PENDING_BID"


async def test_owner_cannot_bid_on_own_request(client, wallets):
    request = await _create_request(client)
    res = await _bid(client, request["id"], LEARNER)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "OWN_REQUEST"


# ─── Accept ──────────────────────────────────────────────────────

async def test_accept_opens_confirmed_session_with_escrow(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR, rate=12, duration=60)).json()

    res = await _resolve(client, request["id"], bid["id"])

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["bid"]["status"] == "accepted"
    session = body["session"]
    assert session["status"] == "confirmed"
    assert session["origin"] == "bid"
    assert session["token_amount"] == 12
    assert session["tutor_address"] == TUTOR
    assert session["learner_address"] == LEARNER
    assert await balance_of(client, LEARNER) == 188

    request = (await client.get(f"/api/v1/learning-requests/{request['id']}")).json()
    assert request["status"] == "in_progress"
    assert request["selected_bid_id"] == bid["id"]


async def test_accept_rejects_pending_siblings(client, wallets, test_db):
    request = await _create_request(client)
    chosen = (await _bid(client, request["id"], TUTOR)).json()
    sibling = (await _bid(client, request["id"], OTHER_TUTOR)).json()

    await _resolve(client, request["id"], chosen["id"])

    request = (await client.get(f"/api/v1/learning-requests/{request['id']}")).json()
    statuses = {b["id"]: b["status"] for b in request["bids"]}
    assert statuses == {chosen["id"]: "accepted", sibling["id"]: "rejected"}
    result = await test_db.execute(
        select(Notification).where(Notification.recipient_address == OTHER_TUTOR),
    )
    assert [n.type for n in result.scalars().all()] == ["bid_rejected"]


async def test_second_accept_on_same_request_refused(client, wallets):
    request = await _create_request(client)
    first = (await _bid(client, request["id"], TUTOR)).json()
    second = (await _bid(client, request["id"], OTHER_TUTOR)).json()
    await _resolve(client, request["id"], first["id"])

    res = await _resolve(client, request["id"], second["id"])

    assert res.status_code == 409
    assert await balance_of(client, LEARNER) == 188


async def test_only_owner_may_accept(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()
    res = await client.post(
        f"/api/v1/learning-requests/{request['id']}/bids/{bid['id']}/resolve",
        json={"action": "accept", "start_time": tomorrow().isoformat()},
        headers=headers(OUTSIDER),
    )
    assert res.status_code == 403


async def test_accept_requires_start_time(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()
    res = await client.post(
        f"/api/v1/learning-requests/{request['id']}/bids/{bid['id']}/resolve",
        json={"action": "accept"}, headers=headers(LEARNER),
    )
    assert res.status_code == 400


async def test_bid_born_session_can_start_without_approval(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()
    session = (await _resolve(client, request["id"], bid["id"])).json()["session"]

    res = await client.post(f"/api/v1/sessions/{session['id']}/start", headers=headers(TUTOR))
    assert res.status_code == 200
    assert res.json()["status"] == "in-progress"


async def test_cancel_of_bid_born_session_refunds_and_closes_request(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()
    session = (await _resolve(client, request["id"], bid["id"])).json()["session"]

    res = await client.post(
        f"/api/v1/sessions/{session['id']}/cancel",
        json={"reason": "plans changed"}, headers=headers(LEARNER),
    )

    assert res.status_code == 200
    assert await balance_of(client, LEARNER) == 200
    request = (await client.get(f"/api/v1/learning-requests/{request['id']}")).json()
    assert request["status"] == "closed"


# ─── Reject, withdraw, close ─────────────────────────────────────

async def test_reject_touches_only_target_bid(client, wallets):
    request = await _create_request(client)
    rejected = (await _bid(client, request["id"], TUTOR)).json()
    other = (await _bid(client, request["id"], OTHER_TUTOR)).json()

    res = await _resolve(client, request["id"], rejected["id"], action="reject")

    assert res.status_code == 200
    assert res.json()["session"] is None
    request = (await client.get(f"/api/v1/learning-requests/{request['id']}")).json()
    assert request["status"] == "open"
    statuses = {b["id"]: b["status"] for b in request["bids"]}
    assert statuses == {rejected["id"]: "rejected", other["id"]: "pending"}
    assert await balance_of(client, LEARNER) == 200


async def test_tutor_withdraws_own_bid(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()

    res = await client.post(
        f"/api/v1/learning-requests/{request['id']}/bids/{bid['id']}/withdraw",
        headers=headers(TUTOR),
    )
    assert res.status_code == 200
    assert res.json()["status"] == "withdrawn"
    # a withdrawn bid no longer blocks a fresh one
    assert (await _bid(client, request["id"], TUTOR)).status_code == 201


async def test_other_tutor_cannot_withdraw_bid(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()
    res = await client.post(
        f"/api/v1/learning-requests/{request['id']}/bids/{bid['id']}/withdraw",
        headers=headers(OTHER_TUTOR),
    )
    assert res.status_code == 403


async def test_close_request_rejects_pending_bids(client, wallets):
    request = await _create_request(client)
    bid = (await _bid(client, request["id"], TUTOR)).json()

    res = await client.post(
        f"/api/v1/learning-requests/{request['id']}/close", headers=headers(LEARNER),
    )

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "closed"
    assert body["bids"][0]["id"] == bid["id"]
    assert body["bids"][0]["status"] == "rejected"
    assert (await _bid(client, request["id"], OTHER_TUTOR)).status_code == 409


# ─── Service level ───────────────────────────────────────────────

async def test_accept_refused_when_learner_cannot_cover_cost(test_db, wallets, outbox):
    engine = BiddingEngine(test_db, outbox)
    request = await engine.create_request(LEARNER, "DeFi", "Lending protocols", 500, 480)
    bid = await engine.submit_bid(request.id, TUTOR, 30, 480, "Deep dive")

    with pytest.raises(InsufficientBalanceError):
        await engine.resolve_bid(
            request.id, bid.id, LEARNER, BidAction.ACCEPT, datetime.now(timezone.utc),
        )
    assert (await engine.get_request(request.id)).status == "open"
    assert (await engine.ledger.get_balance(LEARNER)) == 200


async def test_resolving_resolved_bid_is_guard_violation(test_db, wallets, outbox):
    engine = BiddingEngine(test_db, outbox)
    request = await engine.create_request(LEARNER, "Web3", "Wallet integration", 50, 60)
    bid = await engine.submit_bid(request.id, TUTOR, 10, 60, "Happy to help")
    await engine.resolve_bid(request.id, bid.id, LEARNER, BidAction.REJECT)

    with pytest.raises(GuardViolationError):
        await engine.resolve_bid(
            request.id, bid.id, LEARNER, BidAction.ACCEPT, datetime.now(timezone.utc),
        )


async def test_non_owner_resolution_is_authorization_error(test_db, wallets, outbox):
    engine = BiddingEngine(test_db, outbox)
    request = await engine.create_request(LEARNER, "Web3", "Wallet integration", 50, 60)
    bid = await engine.submit_bid(request.id, TUTOR, 10, 60, "Happy to help")

    with pytest.raises(AuthorizationError):
        await engine.resolve_bid(request.id, bid.id, TUTOR, BidAction.REJECT)
