"""
Exception hierarchy for the chat router.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RouterError(Exception):
    """Base exception for router-related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize router error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class RegistryError(RouterError):
    """Provider registry misconfiguration; raised at startup, never swallowed."""

    pass


class DuplicateNameError(RegistryError):
    """A provider with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Provider '{name}' is already registered", details={"provider": name})
        self.name = name


class InvalidProviderError(RegistryError):
    """Provider is missing a required callable or has an invalid name."""

    pass


class ProviderError(RouterError):
    """Base exception for a single provider attempt."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ):
        """
        Initialize provider error.

        Args:
            message: Error message
            provider: Provider name
            details: Additional error details
            retryable: Whether another provider may be tried
        """
        super().__init__(message, details=details)
        self.provider = provider
        self.retryable = retryable


class CandidateTimeout(ProviderError):
    """Provider exceeded the adaptive timeout."""

    def __init__(self, provider: str, timeout_ms: int):
        super().__init__(
            f"Timeout {timeout_ms}ms",
            provider=provider,
            details={"timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class CandidateError(ProviderError):
    """Provider raised or returned an unusable result."""

    pass
