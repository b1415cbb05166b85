# -*- coding: utf-8 -*-
"""Unit tests for EventNotificationStyler."""

from __future__ import annotations

from conftest import DEPLOYER, PAIR, RECIPIENT, TOKEN
from token_scanner.notifications.stylers import EventNotificationStyler
from token_scanner.notifications.types import NotificationMessage

NOW = 1_700_000_100.0


def _styler() -> EventNotificationStyler:
    return EventNotificationStyler(clock=lambda: NOW)


def test_token_minted_shows_scaled_amount() -> None:
    message = NotificationMessage(
        event_type="token_minted",
        message="minted",
        payload={
            "address": TOKEN,
            "name": "Test Token",
            "symbol": "TST",
            "decimals": 18,
            "amount": str(15 * 10**17),
            "recipient": RECIPIENT,
            "block_number": 120,
            "block_timestamp": 1_700_000_000,
        },
    )

    text = _styler().render(message)

    assert text.startswith("🆕 <b>New Token Minted!</b>")
    assert "<b>Amount:</b> 1.5 TST" in text
    assert f"<b>CA:</b> <code>{TOKEN}</code>" in text
    assert f"<b>Recipient:</b> <code>{RECIPIENT}</code>" in text
    assert "<b>Created:</b> 1m ago" in text


def test_token_deployed_with_creator_stats() -> None:
    message = NotificationMessage(
        event_type="token_deployed",
        message="deployed",
        payload={
            "address": TOKEN,
            "name": "Test Token",
            "symbol": "TST",
            "compliance": "partial",
            "block_number": 7,
            "block_timestamp": NOW - 5,
            "creator": DEPLOYER,
            "creator_native_balance": str(123456789 * 10**10),
            "creator_token_pct": 25.0,
            "native_symbol": "CRO",
            "native_decimals": 18,
        },
    )

    text = _styler().render(message)

    assert text.startswith("🆕 <b>New CRC-20 Token Detected</b>")
    assert "<b>Name:</b> Test Token (TST)" in text
    assert "<b>Compliance:</b> partial" in text
    assert f"<b>Creator:</b> <code>{DEPLOYER}</code>" in text
    assert " ├CRO: 1.2345" in text
    assert " └Token: 25.00%" in text
    assert "5s ago" in text


def test_token_deployed_without_creator_has_no_creator_block() -> None:
    message = NotificationMessage(
        event_type="token_deployed",
        message="deployed",
        payload={"address": TOKEN, "name": "A", "symbol": "B", "block_number": 1, "compliance": "full"},
    )

    text = _styler().render(message)

    assert "Creator" not in text
    assert "Compliance" not in text
    assert "<b>Created:</b> —" in text


def test_pair_created_lists_both_symbols() -> None:
    message = NotificationMessage(
        event_type="pair_created",
        message="pair",
        payload={
            "address": PAIR,
            "token0_symbol": "WCRO",
            "token1_symbol": None,
            "block_number": 9,
            "tx_hash": "0xpairtx",
        },
    )

    text = _styler().render(message)

    assert "🆕 <b>New LP Token Added!</b>" in text
    assert "<b>Name:</b> WCRO / Unknown" in text
    assert "<b>Transaction:</b> <code>0xpairtx</code>" in text


def test_chain_values_are_html_escaped() -> None:
    message = NotificationMessage(
        event_type="token_minted",
        message="minted",
        payload={"address": TOKEN, "name": "<script>", "symbol": "A&B", "amount": "1", "decimals": 0},
    )

    text = _styler().render(message)

    assert "&lt;script&gt; (A&amp;B)" in text
    assert "<script>" not in text


def test_system_messages_render_details() -> None:
    message = NotificationMessage(
        event_type="system_started",
        message="Token scanner started",
        payload={"chain_id": 25, "block": 100, "skipped": None},
    )

    text = _styler().render(message)

    assert text.startswith("▶️ <b>Scanner Started</b>")
    assert "Token scanner started" in text
    assert "<b>chain_id:</b> 25" in text
    assert "skipped" not in text


def test_unknown_event_uses_generic_layout() -> None:
    text = _styler().render(NotificationMessage(event_type="custom_event", message="hello", payload={"k": "v"}))

    assert text.startswith("ℹ️ <b>Custom Event</b>")
    assert "<b>k:</b> v" in text
