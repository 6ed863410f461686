"""Notification Dispatch & Inbox — post-commit delivery and per-wallet reads."""

import logging

from skillloop.core.domain_types import NotificationType
from skillloop.core.notification_events import EventOutbox
from skillloop.infrastructure.notifier import dispatch_notifications
from tests.services.factories import LEARNER, TUTOR, book, headers


class FlakySender:
    """Fails the first `failures` calls, then records deliveries."""

    def __init__(self, failures: int):
        self.failures = failures
        self.delivered = []

    async def notify(self, user, type, title, message, data):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("transport down")
        self.delivered.append((user, type))


def _events(*recipients):
    outbox = EventOutbox()
    for recipient in recipients:
        outbox.add(
            recipient, NotificationType.SESSION_REQUEST,
            "New Session Request", "A learner wants to book a session",
            session_id="s-1",
        )
    return outbox.drain()


# ─── Inbox ───────────────────────────────────────────────────────

async def test_booking_lands_in_tutor_inbox(client, wallets):
    await book(client)

    res = await client.get("/api/v1/notifications", headers=headers(TUTOR))

    assert res.status_code == 200
    inbox = res.json()
    assert len(inbox) == 1
    assert inbox[0]["type"] == "session_request"
    assert inbox[0]["read"] is False
    assert "session_id" in inbox[0]["data"]
    assert (await client.get("/api/v1/notifications", headers=headers(LEARNER))).json() == []


async def test_mark_read_filters_unread(client, wallets):
    await book(client)
    inbox = (await client.get("/api/v1/notifications", headers=headers(TUTOR))).json()

    res = await client.post(
        f"/api/v1/notifications/{inbox[0]['id']}/read", headers=headers(TUTOR),
    )

    assert res.status_code == 200
    assert res.json()["read"] is True
    unread = await client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=headers(TUTOR),
    )
    assert unread.json() == []


async def test_cannot_mark_another_wallets_notification(client, wallets):
    await book(client)
    inbox = (await client.get("/api/v1/notifications", headers=headers(TUTOR))).json()

    res = await client.post(
        f"/api/v1/notifications/{inbox[0]['id']}/read", headers=headers(LEARNER),
    )
    assert res.status_code == 403


# ─── Dispatch ────────────────────────────────────────────────────

async def test_dispatch_retries_transient_failures():
    sender = FlakySender(failures=2)

    delivered = await dispatch_notifications(_events(TUTOR), sender, max_attempts=3)

    assert delivered == 1
    assert sender.delivered == [(TUTOR, "session_request")]


async def test_dispatch_drops_after_max_attempts_and_continues(caplog):
    sender = FlakySender(failures=3)

    with caplog.at_level(logging.WARNING):
        delivered = await dispatch_notifications(
            _events(TUTOR, LEARNER), sender, max_attempts=3,
        )

    assert delivered == 1
    assert sender.delivered == [(LEARNER, "session_request")]
    assert any("dropped after 3 attempts" in r.message for r in caplog.records)


async def test_outbox_drain_empties_buffer():
    outbox = EventOutbox()
    outbox.add(TUTOR, NotificationType.NEW_BID, "New Bid Received!", "A tutor bid")
    assert len(outbox.drain()) == 1
    assert outbox.drain() == []
