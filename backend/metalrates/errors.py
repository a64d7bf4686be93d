from __future__ import annotations


class MetalratesError(Exception):
    """Base class for errors raised by the price service."""


class AuthorizationError(MetalratesError):
    """The cron trigger did not present the configured shared secret."""


class ProviderError(MetalratesError):
    def __init__(self, provider: str, reason: str, status: str = "error") -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
        self.status = status


class CacheError(MetalratesError):
    """The cache backend could not be reached or rejected the operation."""
