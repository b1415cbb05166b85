# -*- coding: utf-8 -*-
"""Token probe: decide whether a contract looks like an ERC-20 / CRC-20 token."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from token_scanner.exceptions import AllEndpointsUnavailable
from token_scanner.models.token_metadata import CreatorStats, TokenMetadata
from token_scanner.utils.validation import mask_address, normalize_address

if TYPE_CHECKING:
    from token_scanner.chain.source import IChainSource

# ERC-20 selectors (bytes4(keccak256(...)))
SELECTOR_NAME = "0x06fdde03"
SELECTOR_SYMBOL = "0x95d89b41"
SELECTOR_DECIMALS = "0x313ce567"
SELECTOR_TOTAL_SUPPLY = "0x18160ddd"
SELECTOR_BALANCE_OF = "0x70a08231"

DEFAULT_DECIMALS = 18
UNKNOWN_SYMBOL = "Unknown"


def _strip_hex(raw: str | None) -> str:
    s = (raw or "").strip().lower()
    return s[2:] if s.startswith("0x") else s


def decode_abi_string(raw: str | None) -> str | None:
    """Decode an eth_call result as ABI `string`, falling back to `bytes32`.

    Returns None for empty results and for values that decode to an empty string.
    """
    data = _strip_hex(raw)
    if not data:
        return None
    try:
        blob = bytes.fromhex(data)
    except ValueError:
        return None

    if len(blob) >= 64 and int.from_bytes(blob[:32], "big") == 32:
        length = int.from_bytes(blob[32:64], "big")
        if 64 + length <= len(blob):
            text = blob[64 : 64 + length].decode("utf-8", errors="replace")
            return text.strip("\x00").strip() or None

    if len(blob) == 32:
        text = blob.rstrip(b"\x00").decode("utf-8", errors="replace")
        return text.strip() or None
    return None


def decode_uint(raw: str | None) -> int | None:
    """Decode a single uint256 word; None when the result is empty or malformed."""
    data = _strip_hex(raw)
    if not data:
        return None
    try:
        return int(data[:64], 16)
    except ValueError:
        return None


def encode_address_arg(address: str) -> str:
    """ABI-encode an address argument (32-byte word, no 0x)."""
    return _strip_hex(address).rjust(64, "0")


class TokenProbe:
    """Reads token metadata over eth_call through the chain source.

    Individual metadata calls may fail; the probe tolerates those and only
    rejects contracts with no code or with neither name() nor symbol().
    AllEndpointsUnavailable always propagates.
    """

    def __init__(
        self,
        source: IChainSource,
        *,
        min_supply: int = 0,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            source: Chain source used for eth_getCode / eth_call / eth_getBalance.
            min_supply: Raw total supply below which a token does not qualify (0 disables).
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._source = source
        self._min_supply = min_supply
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def min_supply(self) -> int:
        return self._min_supply

    async def _call(self, address: str, data: str) -> str | None:
        """eth_call that returns None on any failure except AllEndpointsUnavailable."""
        try:
            return await self._source.call(address, data)
        except AllEndpointsUnavailable:
            raise
        except Exception as e:
            self._logger.debug(
                "token_probe_call_failed",
                entity_address=mask_address(address),
                call_data=data[:10],
                error_type=type(e).__name__,
            )
            return None

    async def probe(self, address: str) -> TokenMetadata | None:
        """Return token metadata, or None when address is not a token contract."""
        address = normalize_address(address)
        code = await self._source.get_code(address)
        if not _strip_hex(code):
            self._logger.debug("token_probe_no_code", entity_address=address)
            return None

        name_raw, symbol_raw, decimals_raw, supply_raw = await asyncio.gather(
            self._call(address, SELECTOR_NAME),
            self._call(address, SELECTOR_SYMBOL),
            self._call(address, SELECTOR_DECIMALS),
            self._call(address, SELECTOR_TOTAL_SUPPLY),
        )
        name = decode_abi_string(name_raw)
        symbol = decode_abi_string(symbol_raw)
        if not name and not symbol:
            self._logger.debug("token_probe_not_a_token", entity_address=address)
            return None

        decimals = decode_uint(decimals_raw)
        if decimals is None or decimals > 77:
            decimals = DEFAULT_DECIMALS
        total_supply = decode_uint(supply_raw) or 0

        meta = TokenMetadata(
            name=name or UNKNOWN_SYMBOL,
            symbol=symbol or UNKNOWN_SYMBOL,
            decimals=decimals,
            total_supply=total_supply,
            compliance="full" if name and symbol else "partial",
        )
        self._logger.debug(
            "token_probe_succeeded",
            entity_address=address,
            token_symbol=meta.symbol,
            token_decimals=meta.decimals,
            token_compliance=meta.compliance,
        )
        return meta

    def qualifies(self, meta: TokenMetadata) -> bool:
        """Apply the optional minimum supply filter."""
        return not (self._min_supply > 0 and meta.total_supply < self._min_supply)

    async def symbol(self, address: str) -> str:
        """Best-effort symbol() for display; 'Unknown' on any failure."""
        return decode_abi_string(await self._call(normalize_address(address), SELECTOR_SYMBOL)) or UNKNOWN_SYMBOL

    async def creator_stats(self, token: str, creator: str, total_supply: int) -> CreatorStats:
        """Best-effort deployer holdings: native balance and share of token supply."""
        native_balance: int | None
        try:
            native_balance = await self._source.get_balance(creator)
        except AllEndpointsUnavailable:
            raise
        except Exception as e:
            self._logger.debug(
                "token_probe_balance_failed",
                entity_address=mask_address(creator),
                error_type=type(e).__name__,
            )
            native_balance = None

        share: float | None = None
        held = decode_uint(await self._call(token, SELECTOR_BALANCE_OF + encode_address_arg(creator)))
        if held is not None and total_supply > 0:
            share = (held * 10000 // total_supply) / 100
        return CreatorStats(native_balance=native_balance, token_share_pct=share)
