# -*- coding: utf-8 -*-
"""Event-based notification styler (Telegram HTML)."""

from __future__ import annotations

import html
import time
from typing import Any, Callable

from token_scanner.notifications.types import NotificationMessage, NotificationStyler
from token_scanner.utils.units import ago, format_units

_DASH = "—"
_RULE = "─" * 12

_TITLES: dict[str, tuple[str, str]] = {
    "token_deployed": ("🆕", "New CRC-20 Token Detected"),
    "token_minted": ("🆕", "New Token Minted!"),
    "pair_created": ("🆕", "New LP Token Added!"),
    "system_started": ("▶️", "Scanner Started"),
    "system_stopped": ("⏹️", "Scanner Stopped"),
}


def _bold_after_emoji(text: str, suffix: str = "") -> str:
    """'🚀 Status' -> '🚀 <b>Status</b>'; text without a space is bolded whole."""
    emoji, _, rest = text.partition(" ")
    if rest:
        return f"{emoji} <b>{rest}{suffix}</b>"
    return f"<b>{text}{suffix}</b>"


def _join(lines: list[str]) -> str:
    return "\n".join(lines).strip()


class EventNotificationStyler(NotificationStyler):
    """Render notifications by event_type.

    Payload values coming from the chain (names, symbols) are HTML-escaped.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._renderers: dict[str, Callable[[NotificationMessage], str]] = {
            "token_deployed": self._render_token_deployed,
            "token_minted": self._render_token_minted,
            "pair_created": self._render_pair_created,
            "system_started": lambda m: self._render_system(m, "🚀 Status"),
            "system_stopped": lambda m: self._render_system(m, "🛑 Status"),
        }

    def render(self, message: NotificationMessage) -> str:
        renderer = self._renderers.get(message.event_type, self._render_generic)
        return renderer(message)

    @staticmethod
    def _heading(event_type: str) -> str:
        emoji, title = _TITLES.get(event_type, ("ℹ️", event_type.replace("_", " ").title()))
        return f"{emoji} <b>{title}</b>"

    def _render_token_deployed(self, message: NotificationMessage) -> str:
        p = message.payload or {}
        lines = [
            self._heading(message.event_type),
            "",
            f"<b>Name:</b> {self._name_symbol(p)}",
            f"<b>CA:</b> <code>{self._text(p.get('address'))}</code>",
            f"<b>Block:</b> {self._text(p.get('block_number'))}",
            f"<b>Created:</b> {self._age(p.get('block_timestamp'))}",
        ]
        if p.get("compliance") == "partial":
            lines.append("<b>Compliance:</b> partial")
        if p.get("creator"):
            lines.extend(["", *self._creator_block(p)])
        return _join(lines)

    def _creator_block(self, p: dict[str, Any]) -> list[str]:
        """Deployer address, its native balance and its share of the new supply."""
        native_symbol = self._text(p.get("native_symbol") or "CRO")
        balance = p.get("creator_native_balance")
        share = p.get("creator_token_pct")
        balance_text = (
            self._amount(balance, int(p.get("native_decimals") or 18), max_fraction=4)
            if balance is not None
            else _DASH
        )
        share_text = f"{float(share):.2f}%" if share is not None else _DASH
        return [
            f"<b>Creator:</b> <code>{self._text(p.get('creator'))}</code>",
            f" ├{native_symbol}: {balance_text}",
            f" └Token: {share_text}",
        ]

    def _render_token_minted(self, message: NotificationMessage) -> str:
        p = message.payload or {}
        decimals = int(p.get("decimals") if p.get("decimals") is not None else 18)
        symbol = self._text(p.get("symbol") or _DASH)
        return _join(
            [
                self._heading(message.event_type),
                "",
                f"<b>Name:</b> {self._name_symbol(p)}",
                f"<b>Amount:</b> {self._amount(p.get('amount'), decimals)} {symbol}",
                f"<b>CA:</b> <code>{self._text(p.get('address'))}</code>",
                f"<b>Block:</b> {self._text(p.get('block_number'))}",
                f"<b>Recipient:</b> <code>{self._text(p.get('recipient'))}</code>",
                "",
                f"<b>Created:</b> {self._age(p.get('block_timestamp'))}",
            ]
        )

    def _render_pair_created(self, message: NotificationMessage) -> str:
        p = message.payload or {}
        token0 = self._text(p.get("token0_symbol") or "Unknown")
        token1 = self._text(p.get("token1_symbol") or "Unknown")
        return _join(
            [
                self._heading(message.event_type),
                "",
                f"<b>Name:</b> {token0} / {token1}",
                f"<b>Address:</b> <code>{self._text(p.get('address'))}</code>",
                f"<b>Block:</b> {self._text(p.get('block_number'))}",
                f"<b>Transaction:</b> <code>{self._text(p.get('tx_hash') or _DASH)}</code>",
                "",
                f"<b>Created:</b> {self._age(p.get('block_timestamp'))}",
            ]
        )

    def _render_system(self, message: NotificationMessage, header: str) -> str:
        payload = message.payload or {}
        parts = [
            self._heading(message.event_type) + "\n",
            self._section(header, [self._text(message.message)]),
            self._section(
                "⚙️ Details",
                [
                    f"{_bold_after_emoji(f'• {key}', ':')} {self._text(value)}"
                    for key, value in sorted(payload.items())
                    if value is not None
                ],
            ),
        ]
        return _join([part for part in parts if part])

    def _render_generic(self, message: NotificationMessage) -> str:
        lines = [self._heading(message.event_type), self._text(message.message)]
        for key, value in sorted((message.payload or {}).items()):
            if value is not None:
                lines.append(f"<b>{key}:</b> {self._text(value)}")
        return _join(lines)

    @staticmethod
    def _section(header: str, rows: list[str]) -> str:
        """Bold header, a rule, then the non-empty rows; empty string when no rows remain."""
        kept = [row for row in rows if row]
        if not kept:
            return ""
        return "\n".join([_bold_after_emoji(header), _RULE, *kept]) + "\n"

    def _name_symbol(self, payload: dict[str, Any]) -> str:
        name = self._text(payload.get("name") or _DASH)
        symbol = self._text(payload.get("symbol") or _DASH)
        return f"{name} ({symbol})"

    def _age(self, block_timestamp: Any) -> str:
        if block_timestamp is None:
            return _DASH
        try:
            return ago(float(block_timestamp), now=self._clock())
        except (TypeError, ValueError):
            return _DASH

    @staticmethod
    def _amount(raw: Any, decimals: int, *, max_fraction: int | None = None) -> str:
        """Raw integer amount scaled by decimals ('1500000000000000000' @ 18 -> '1.5')."""
        if raw is None:
            return _DASH
        try:
            text = format_units(int(raw), decimals)
        except (TypeError, ValueError):
            return _DASH
        if max_fraction is not None and "." in text:
            whole, frac = text.split(".", 1)
            frac = frac[:max_fraction].rstrip("0")
            text = f"{whole}.{frac}" if frac else whole
        return text

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return _DASH
        return html.escape(str(value), quote=False)
