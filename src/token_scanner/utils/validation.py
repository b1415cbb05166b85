"""Validation and normalization helpers for addresses, topics and hex quantities."""

from __future__ import annotations

from typing import Any

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def is_hex_address(addr: Any) -> bool:
    """Return True if addr is a valid 0x address (42 chars)."""
    if not isinstance(addr, str):
        return False
    s = addr.strip()
    if len(s) != 42:
        return False
    if not s.startswith(("0x", "0X")):
        return False
    try:
        int(s[2:], 16)
        return True
    except ValueError:
        return False


def normalize_address(addr: str | None) -> str:
    """Return the lowercased, stripped address ('' for None or a non-string)."""
    if not addr or not isinstance(addr, str):
        return ""
    return addr.strip().lower()


def mask_address(addr: str | None) -> str:
    """Return a masked address for logging (e.g. 0x1234...abcd)."""
    if not addr or len(addr) < 10:
        return "***"
    return f"{addr[:6]}...{addr[-4:]}"


def topic_to_address(topic: str) -> str:
    """Decode an indexed address topic (32-byte word) into a lowercased 0x address."""
    if not isinstance(topic, str):
        raise ValueError(f"topic must be a hex string, got {type(topic).__name__}")
    s = topic.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if len(s) != 64:
        raise ValueError(f"topic must be 32 bytes, got {len(s) // 2}")
    int(s, 16)
    return "0x" + s[24:]


def address_to_topic(addr: str) -> str:
    """Left-pad an address into a 32-byte topic."""
    s = normalize_address(addr)
    if s.startswith("0x"):
        s = s[2:]
    return "0x" + s.rjust(64, "0")


def parse_hex_int(value: Any) -> int:
    """Parse a JSON-RPC quantity ('0x1a', '', None, or int) into an int."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if s in ("", "0x", "0X"):
        return 0
    return int(s, 16) if s.lower().startswith("0x") else int(s)


ZERO_TOPIC = address_to_topic(ZERO_ADDRESS)
