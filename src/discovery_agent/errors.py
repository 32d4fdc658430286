"""
Exception types raised inside the Token Discovery Agent.

Upstream-client failures never surface as exceptions (clients return
``None`` / empty results); these types cover pipeline-level conditions.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for every error raised by this package."""


class InvalidRecordError(DiscoveryError):
    """Raised when a discovery record fails boundary validation."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"Invalid discovery record {address!r}: {reason}")
        self.address = address
        self.reason = reason


class StrategyError(DiscoveryError):
    """Raised by a source strategy for a failed poll / scan iteration.

    Never escapes the strategy's own run loop.
    """
