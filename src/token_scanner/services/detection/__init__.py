"""Token detection helpers."""

from token_scanner.services.detection.token_probe import (
    TokenProbe,
    decode_abi_string,
    decode_uint,
)

__all__ = [
    "TokenProbe",
    "decode_abi_string",
    "decode_uint",
]
