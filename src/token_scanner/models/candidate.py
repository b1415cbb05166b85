"""CandidateEvent: a detection result awaiting the dedup-check-and-mark step."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CandidateKind(str, Enum):
    """Which detection path produced the candidate."""

    DEPLOYMENT = "deployment"
    MINT = "mint"
    PAIR = "pair"


@dataclass(frozen=True, slots=True)
class CandidateEvent:
    """In-flight detection result.

    address is the entity that gets deduplicated: the deployed contract,
    the minted token, or the created pair.
    """

    kind: CandidateKind
    address: str
    block_number: int
    tx_hash: str | None = None
    block_timestamp: int | None = None
    """Unix seconds of the originating block, when known."""

    # mint
    recipient: str | None = None
    amount: int | None = None

    # pair
    token0: str | None = None
    token1: str | None = None
    factory: str | None = None

    # deployment
    deployer: str | None = None
