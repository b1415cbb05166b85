"""Subscription channel exceptions."""

from __future__ import annotations


class SubscriptionError(Exception):
    """Base exception for subscription channel operations."""


class SubscriptionClosed(SubscriptionError):
    """Raised when publishing into a subscription that has been closed."""
