# note_poster/providers/errors.py
"""
Closed error taxonomy for provider failures.

Provider clients are the only place a GenerationError is constructed; the
pipeline inspects ``retryable`` but never reclassifies.
"""

from enum import Enum

import anthropic
import httpx
import openai
from google.genai import errors as genai_errors


class ErrorKind(str, Enum):
    """Failure classes surfaced to the user."""

    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    GENERATION_FAILED = "GENERATION_FAILED"
    CONTENT_FILTERED = "CONTENT_FILTERED"
    NO_CONTENT = "NO_CONTENT"


class GenerationError(Exception):
    """
    Classified generation failure.

    Attributes:
        kind: ErrorKind of the failure
        message: Human-readable message
        retryable: Whether an automatic re-attempt is allowed (fixed at construction)
        details: Optional provider detail (status code, raw reason, ...)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.details = details

    def __repr__(self) -> str:
        return (
            f"GenerationError(kind={self.kind.value}, message={self.message!r}, "
            f"retryable={self.retryable})"
        )

    @classmethod
    def from_status(cls, status: int, message: str, details: str | None = None) -> "GenerationError":
        """
        Map an HTTP status from a provider to an error.

        401/403 -> INVALID_API_KEY, 429 -> RATE_LIMIT, 408 and 5xx ->
        GENERATION_FAILED (retryable), anything else -> GENERATION_FAILED.
        """
        if status in (401, 403):
            return cls(ErrorKind.INVALID_API_KEY, "Invalid API key", False, details or message)
        if status == 429:
            return cls(ErrorKind.RATE_LIMIT, "Rate limit exceeded", True, details or message)
        if status == 408 or status >= 500:
            return cls(
                ErrorKind.GENERATION_FAILED,
                f"Provider error ({status})",
                True,
                details or message,
            )
        return cls(ErrorKind.GENERATION_FAILED, message, False, details)

    @classmethod
    def network(cls, exc: BaseException) -> "GenerationError":
        return cls(ErrorKind.NETWORK_ERROR, "Network error", True, str(exc) or type(exc).__name__)


_BAD_KEY_MARKERS = ("api key not valid", "api_key_invalid", "invalid api key", "incorrect api key")


def classify_provider_exception(exc: BaseException) -> GenerationError:
    """
    Translate an SDK/transport exception into a GenerationError.

    Handles openai, anthropic, google-genai and raw httpx failures. Anything
    unrecognised becomes GENERATION_FAILED (not retryable).
    """
    if isinstance(exc, GenerationError):
        return exc

    # Transport failures first: connection errors subclass the SDK base errors
    if isinstance(exc, (openai.APIConnectionError, anthropic.APIConnectionError)):
        return GenerationError.network(exc)
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return GenerationError.network(exc)

    if isinstance(exc, (openai.APIStatusError, anthropic.APIStatusError)):
        return GenerationError.from_status(exc.status_code, str(exc), details=exc.message)

    if isinstance(exc, genai_errors.APIError):
        text = f"{exc.status or ''} {exc.message or ''}".strip()
        if exc.code == 400 and any(m in text.lower() for m in _BAD_KEY_MARKERS):
            return GenerationError(ErrorKind.INVALID_API_KEY, "Invalid API key", False, text)
        return GenerationError.from_status(exc.code or 0, text or str(exc), details=text or None)

    if isinstance(exc, httpx.HTTPStatusError):
        return GenerationError.from_status(
            exc.response.status_code, str(exc), details=exc.response.text[:500]
        )

    return to_generation_error(exc)


def to_generation_error(exc: BaseException) -> GenerationError:
    """Coerce any exception into the closed taxonomy (GENERATION_FAILED, not retryable)."""
    if isinstance(exc, GenerationError):
        return exc
    message = str(exc) or type(exc).__name__
    return GenerationError(ErrorKind.GENERATION_FAILED, message, retryable=False)
