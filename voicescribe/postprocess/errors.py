"""
Typed errors for provider adapters.

Adapters translate raw transport and SDK failures into a closed set of
error kinds so that fallback logic can switch on the kind instead of
searching error messages.
"""

from enum import Enum
from typing import Optional
import json
import re

import httpx
import openai
from google.genai import errors as genai_errors


class ErrorKind(str, Enum):
    """Closed set of provider failure kinds."""
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_UNAVAILABLE = "network_unavailable"
    MALFORMED = "malformed"


class ProviderError(Exception):
    """Raised by an adapter when a provider call fails."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        provider: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.kind == ErrorKind.RATE_LIMITED

    def __str__(self) -> str:
        prefix = f"{self.provider}: " if self.provider else ""
        return f"{prefix}{self.args[0]} [{self.kind.value}]"


class NotConfiguredError(Exception):
    """Raised when a client is used before it has been given a credential."""
    pass


class CorrectionMergeError(Exception):
    """Raised when a spelling correction cannot be applied to the text."""
    pass


# Substrings providers put in quota errors (HTTP 429, Google's RESOURCE_EXHAUSTED)
_RATE_LIMIT_SIGNATURES = ("429", "quota", "resource_exhausted", "rate limit", "too many requests")
_UNAUTHORIZED_SIGNATURES = ("401", "403", "unauthorized", "invalid api key", "permission_denied")
_SERVER_STATUS = re.compile(r"\b5\d\d\b")


def kind_from_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.MALFORMED


def kind_from_message(message: str) -> ErrorKind:
    """Classify an error by its message when nothing typed is available."""
    lowered = message.lower()
    if any(sig in lowered for sig in _RATE_LIMIT_SIGNATURES):
        return ErrorKind.RATE_LIMITED
    if any(sig in lowered for sig in _UNAUTHORIZED_SIGNATURES):
        return ErrorKind.UNAUTHORIZED
    if _SERVER_STATUS.search(lowered):
        return ErrorKind.SERVER_ERROR
    if "timeout" in lowered or "timed out" in lowered or "connection" in lowered:
        return ErrorKind.NETWORK_UNAVAILABLE
    return ErrorKind.MALFORMED


def classify_exception(exc: BaseException) -> ErrorKind:
    """
    Classify a raw exception raised by an SDK or HTTP client.

    Args:
        exc: Exception raised by openai, httpx, google-genai or anything else

    Returns:
        The ErrorKind that best describes the failure.
    """
    if isinstance(exc, ProviderError):
        return exc.kind

    # openai SDK: connection errors first, APITimeoutError subclasses APIConnectionError
    if isinstance(exc, openai.APIConnectionError):
        return ErrorKind.NETWORK_UNAVAILABLE
    if isinstance(exc, openai.AuthenticationError) or isinstance(exc, openai.PermissionDeniedError):
        return ErrorKind.UNAUTHORIZED
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, openai.APIStatusError):
        return kind_from_status(exc.status_code)

    if isinstance(exc, httpx.HTTPStatusError):
        return kind_from_status(exc.response.status_code)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return ErrorKind.NETWORK_UNAVAILABLE

    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None)
        if isinstance(code, int):
            return kind_from_status(code)
        return kind_from_message(str(exc))

    if isinstance(exc, (json.JSONDecodeError, KeyError, TypeError, ValueError)):
        return ErrorKind.MALFORMED
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorKind.NETWORK_UNAVAILABLE

    return kind_from_message(str(exc))


def status_code_of(exc: BaseException) -> Optional[int]:
    """Extract an HTTP status code from a raw exception, if it carries one."""
    if isinstance(exc, ProviderError):
        return exc.status_code
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def to_provider_error(exc: BaseException, provider: str) -> ProviderError:
    """Wrap a raw exception into a ProviderError for the given provider."""
    if isinstance(exc, ProviderError):
        return exc
    return ProviderError(
        str(exc) or exc.__class__.__name__,
        kind=classify_exception(exc),
        provider=provider,
        status_code=status_code_of(exc)
    )
