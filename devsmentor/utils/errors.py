"""
Custom exceptions for the DevsMentor career-guidance core.

This module defines a hierarchy of exceptions for entitlement checks,
usage storage and outbound AI provider calls.
"""

from typing import Optional, Any


class DevsMentorError(Exception):
    """Base exception for all DevsMentor errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(DevsMentorError):
    """Raised when configuration is invalid, or a feature key is unknown."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class StorageError(DevsMentorError):
    """Raised when the subscription or usage store cannot be read or written."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.original_error = original_error
        self.details = {
            "operation": operation,
            "original_error": str(original_error) if original_error else None,
        }


class DispatchError(DevsMentorError):
    """
    Base for terminal failures of an outbound completion request.

    Dispatch errors are carried inside a DispatchResult rather than raised,
    so every subclass exposes a stable ``kind`` for the presentation layer.
    """

    kind = "dispatch_error"

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts
        self.details = {"kind": self.kind, "attempts": attempts}


class RateLimitedError(DispatchError):
    """Provider kept answering 429 after all retries were spent."""

    kind = "rate_limited"

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        retry_after_seconds: Optional[int] = None,
        attempts: int = 1,
    ):
        super().__init__(message, attempts=attempts)
        self.retry_after_seconds = retry_after_seconds
        self.details["retry_after_seconds"] = retry_after_seconds


class ProviderQuotaExhaustedError(DispatchError):
    """Provider answered 402: credits on the provider account are used up."""

    kind = "provider_quota_exhausted"

    def __init__(
        self,
        message: str = "AI credits exhausted at the provider.",
        attempts: int = 1,
    ):
        super().__init__(message, attempts=attempts)


class MalformedResponseError(DispatchError):
    """A 2xx response carried no JSON value that could be extracted."""

    kind = "malformed_response"

    def __init__(
        self,
        message: str = "Failed to parse AI response.",
        raw_text: Optional[str] = None,
        attempts: int = 1,
    ):
        super().__init__(message, attempts=attempts)
        self.raw_text = raw_text


class ProviderError(DispatchError):
    """Any other non-2xx answer, timeout or connection failure."""

    kind = "provider_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        attempts: int = 1,
    ):
        super().__init__(message, attempts=attempts)
        self.status_code = status_code
        self.body = body
        self.details["status_code"] = status_code
