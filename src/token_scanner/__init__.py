"""Token scanner: watches an EVM chain for new tokens, mints and LP pairs."""

from token_scanner.clients import AsyncHttpClient
from token_scanner.config import get_settings
from token_scanner.DI import Container
from token_scanner.services import IngestionLoop, TokenProbe

__version__ = "0.0.1"
__all__ = [
    "AsyncHttpClient",
    "Container",
    "IngestionLoop",
    "TokenProbe",
    "get_settings",
]
