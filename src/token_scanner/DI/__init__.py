"""Dependency injection."""

from token_scanner.DI.container import Container

__all__ = ["Container"]
