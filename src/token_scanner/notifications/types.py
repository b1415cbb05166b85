"""Notification message types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol

EventType = Literal[
    "token_deployed",
    "token_minted",
    "pair_created",
    "system_started",
    "system_stopped",
]


@dataclass(frozen=True)
class NotificationMessage:
    """Message to be sent via one or more notification channels.

    related_address / related_tx_hash drive the channel's action links
    (buy link, explorer link) when set.
    """

    event_type: str
    message: str
    title: str | None = None
    payload: dict[str, Any] | None = None
    related_address: str | None = None
    related_tx_hash: str | None = None


class NotificationStyler(Protocol):
    """Render a message into a formatted string for delivery."""

    def render(self, message: NotificationMessage) -> str:
        """Return the formatted (HTML) text for the given message."""
        ...
