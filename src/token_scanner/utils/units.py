"""Display helpers: token units and relative ages."""

from __future__ import annotations

import time

_AGE_UNITS: tuple[tuple[int, str], ...] = (
    (31536000, "y"),
    (2592000, "mo"),
    (604800, "w"),
    (86400, "d"),
    (3600, "h"),
    (60, "m"),
)


def format_units(raw: int, decimals: int) -> str:
    """Format a raw integer amount with the given decimals, trimming trailing zeros.

    format_units(1500000000000000000, 18) -> "1.5"
    format_units(2 * 10**18, 18) -> "2"
    """
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    sign = "-" if raw < 0 else ""
    raw = abs(raw)
    if decimals == 0:
        return f"{sign}{raw}"
    whole, frac = divmod(raw, 10**decimals)
    if frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def ago(unix_seconds: float, *, now: float | None = None) -> str:
    """Return a compact age like '12s ago', '3m ago', '2d ago' (at least 1s)."""
    current = time.time() if now is None else now
    s = max(1, int(current - unix_seconds))
    for seconds, tag in _AGE_UNITS:
        if s >= seconds:
            return f"{s // seconds}{tag} ago"
    return f"{s}s ago"
