"""Error taxonomy for generation and remix calls.

Every error carries an ``ErrorKind`` so callers branch on the kind rather than
on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class ErrorKind(str, Enum):
    FORMAT = "format"
    SERVICE = "service"
    TRANSIENT = "transient"
    REFUSAL = "refusal"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_STATE = "invalid_state"
    GENERATION_FAILED = "generation_failed"


class EvergardenError(Exception):
    kind: ErrorKind = ErrorKind.SERVICE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FormatError(EvergardenError):
    """Input image is not a ``data:image/...;base64,...`` URL."""

    kind = ErrorKind.FORMAT


class ServiceError(EvergardenError):
    kind = ErrorKind.SERVICE

    def __init__(self, message: str, *, code: int | None = None, status: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


class TransientServiceError(ServiceError):
    """Server-side fault that is worth retrying."""

    kind = ErrorKind.TRANSIENT


class RefusalError(EvergardenError):
    """The service answered without an image (text only, or nothing)."""

    kind = ErrorKind.REFUSAL

    def __init__(self, message: str, *, text: str | None = None) -> None:
        super().__init__(message)
        self.text = text


class MalformedResponseError(EvergardenError):
    kind = ErrorKind.MALFORMED_RESPONSE


class InvalidStateError(EvergardenError):
    kind = ErrorKind.INVALID_STATE


class GenerationFailedError(EvergardenError):
    kind = ErrorKind.GENERATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        attempts: Sequence[str] = (),
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = list(attempts)
        self.last_error = last_error


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"An unknown error occurred ({type(exc).__name__})."
