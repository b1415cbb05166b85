"""Logging subpackage."""

from token_scanner.logging.config import configure_logging

__all__ = ["configure_logging"]
