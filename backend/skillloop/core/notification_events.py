"""Notification Events — outbox of messages produced by a committed state change.

Invariants:
    - Services only APPEND to the outbox; nothing is delivered before commit
    - drain() hands the events over exactly once and empties the outbox
    - An outbox is per-request; it is never shared across requests

Design Decisions:
    - Outbox over inline notify(): a notification failure can never be mistaken for,
      or roll back, a ledger/status change
    - Recipient is a wallet address, not a DB id: the collaborator resolves it
"""

from dataclasses import dataclass, field
from typing import Any

from skillloop.core.domain_types import NotificationType, WalletAddress


@dataclass(frozen=True)
class NotificationEvent:
    recipient: WalletAddress
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class EventOutbox:
    """Collects NotificationEvents during a unit of work."""

    def __init__(self) -> None:
        self._events: list[NotificationEvent] = []

    def add(
        self,
        recipient: WalletAddress,
        type: NotificationType,
        title: str,
        message: str,
        **data: Any,
    ) -> None:
        self._events.append(
            NotificationEvent(recipient, type, title, message, dict(data)),
        )

    def drain(self) -> list[NotificationEvent]:
        events, self._events = self._events, []
        return events

    def __len__(self) -> int:
        return len(self._events)
