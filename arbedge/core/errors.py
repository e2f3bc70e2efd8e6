"""
Exception hierarchy for ArbEdge.

Provider errors carry a `recoverable` flag: a recoverable failure costs one
sport's quotes for one refresh, anything else aborts the refresh and
reaches the caller that triggered it.
"""

from typing import Any, Optional


class ArbEdgeError(Exception):
    """Base exception for all ArbEdge errors."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "ARBEDGE_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging/serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ArbEdgeError):
    """Unreadable or invalid config.yaml."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, code="CONFIG_ERROR", details=details, **kwargs)


class ProviderError(ArbEdgeError):
    """A quote source failed to deliver."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        recoverable: bool = True,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["provider"] = provider
        details["recoverable"] = recoverable
        code = kwargs.pop("code", "PROVIDER_ERROR")
        super().__init__(message, code=code, details=details, **kwargs)
        self.provider = provider
        self.recoverable = recoverable


class PayloadError(ProviderError):
    """Upstream answered, but not with anything we can parse."""

    def __init__(self, message: str, *, provider: str, **kwargs):
        super().__init__(
            message, provider=provider, recoverable=True, code="BAD_PAYLOAD", **kwargs
        )


class RateLimitError(ProviderError):
    """Upstream rate limit exceeded."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["retry_after"] = retry_after
        super().__init__(
            message,
            provider=provider,
            recoverable=True,
            code="RATE_LIMIT",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """Missing or rejected API key."""

    def __init__(self, message: str, *, provider: str, **kwargs):
        super().__init__(
            message, provider=provider, recoverable=False, code="AUTH_ERROR", **kwargs
        )


class QuotaExceededError(ProviderError):
    """Request budget for a metered provider is used up."""

    def __init__(self, message: str, *, provider: str, **kwargs):
        super().__init__(
            message, provider=provider, recoverable=False, code="QUOTA_EXCEEDED", **kwargs
        )


class StoreError(ArbEdgeError):
    """A write to the quote/opportunity store failed and was rolled back."""

    def __init__(self, message: str, *, operation: str, **kwargs):
        details = kwargs.pop("details", {})
        details["operation"] = operation
        super().__init__(message, code="STORE_ERROR", details=details, **kwargs)
        self.operation = operation
