"""Token metadata returned by the probe."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    """ERC-20 style metadata. compliance is 'partial' when name or symbol is missing."""

    name: str
    symbol: str
    decimals: int
    total_supply: int
    compliance: Literal["full", "partial"] = "full"


@dataclass(frozen=True, slots=True)
class CreatorStats:
    """Deployer holdings shown next to a new token. Fields are None when the read failed."""

    native_balance: int | None
    """Native coin balance in wei."""
    token_share_pct: float | None
    """Percentage of total supply held by the deployer (0-100)."""
