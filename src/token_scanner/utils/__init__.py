# -*- coding: utf-8 -*-
"""Utility modules."""

from token_scanner.utils.units import ago, format_units
from token_scanner.utils.validation import (
    ZERO_ADDRESS,
    ZERO_TOPIC,
    address_to_topic,
    is_hex_address,
    mask_address,
    normalize_address,
    parse_hex_int,
    topic_to_address,
)

__all__ = [
    "ZERO_ADDRESS",
    "ZERO_TOPIC",
    "address_to_topic",
    "ago",
    "format_units",
    "is_hex_address",
    "mask_address",
    "normalize_address",
    "parse_hex_int",
    "topic_to_address",
]
