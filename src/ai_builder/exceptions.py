"""
Generation exception hierarchy.

Every failure that a stage can report is one of these types. Stages return
them inside a StageResult instead of raising; the orchestrator and the API
layer render them with describe_error().
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a generation failure."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    MALFORMED_RESPONSE = "malformed_response"
    APPLICATION = "application"
    CANCELLED = "cancelled"
    PRECONDITION = "precondition"


class GenerationError(Exception):
    """
    Base exception for all generation errors.

    All orchestrator-specific exceptions inherit from this class.
    """

    kind: ErrorKind = ErrorKind.APPLICATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class TransportError(GenerationError):
    """
    The backend could not be reached.

    Raised for connection refusals, DNS failures and dropped connections.
    """

    kind = ErrorKind.TRANSPORT


class StageTimeoutError(TransportError):
    """
    A stage exceeded its time budget.

    Raised when the HTTP client or the stage's own deadline expires.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class HttpStatusError(GenerationError):
    """The backend answered with a non-success HTTP status."""

    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class MalformedResponseError(GenerationError):
    """The backend answered with a body that is not a valid envelope."""

    kind = ErrorKind.MALFORMED_RESPONSE


class ApplicationError(GenerationError):
    """The backend reported success: false."""

    kind = ErrorKind.APPLICATION


class CancelledError(GenerationError):
    """
    The generation was cancelled by the user or superseded.

    Never rendered to the user; distinct from asyncio.CancelledError, which
    it replaces at stage boundaries.
    """

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Generation cancelled"):
        super().__init__(message)


class PreconditionError(GenerationError):
    """
    A request cannot be started.

    Raised before any backend call, e.g. regeneration without a previous
    response.
    """

    kind = ErrorKind.PRECONDITION


def describe_error(error: GenerationError) -> str:
    """
    Render an error as user-facing guidance.

    Args:
        error: The error to describe

    Returns:
        A human-readable message with a category prefix
    """
    if isinstance(error, StageTimeoutError):
        return (
            f"Request Timeout: {error.message}. The request took too long to "
            "complete. Try simplifying the prompt or try again in a moment."
        )
    if isinstance(error, TransportError):
        return (
            f"Network Error: Unable to reach the server. {error.message}. "
            "Check your connection and that the service is running."
        )
    if isinstance(error, HttpStatusError):
        if error.status_code == 504:
            return (
                f"Gateway Timeout (504): {error.message}. The server took too "
                "long to respond. Complex prompts or large outputs may exceed "
                "the gateway limit; try a shorter prompt or fewer search results."
            )
        return f"Server Error ({error.status_code}): {error.message}"
    if isinstance(error, MalformedResponseError):
        return f"Response Parse Error: {error.message}"
    if isinstance(error, ApplicationError):
        return f"AI Builder Error: {error.message}"
    return error.message
