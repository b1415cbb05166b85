# -*- coding: utf-8 -*-
"""Console channel: plain-text alerts on stdout."""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING

from token_scanner.notifications.strategies.base import BaseNotificationStrategy
from token_scanner.notifications.types import NotificationMessage

if TYPE_CHECKING:  # pragma: no cover
    from token_scanner.config import Settings
    from token_scanner.notifications.types import NotificationStyler

_TAG_RE = re.compile(r"</?(b|code|i)>")


def to_plain_text(rendered: str) -> str:
    """Strip the Telegram HTML subset and unescape entities."""
    return html.unescape(_TAG_RE.sub("", rendered))


class ConsoleNotifier(BaseNotificationStrategy):
    """Print each alert followed by one line per link (buy page, explorer)."""

    def __init__(self, settings: "Settings", styler: "NotificationStyler") -> None:
        super().__init__(settings)
        self._styler = styler
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self) -> None:
        self._running = True

    async def shutdown(self) -> None:
        self._running = False

    async def send_notification(self, message: NotificationMessage) -> None:
        if not self._running:
            return
        lines = [to_plain_text(self._styler.render(message))]
        lines.extend(url for _label, url in self.links(message))
        print("\n".join(lines))
