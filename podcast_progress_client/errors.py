from enum import Enum
from typing import Any, Optional

from podcast_progress_client import messages

TERMINAL_HTTP_STATUSES = frozenset({403, 404})


def server_error_text(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        error = payload.get("error") or payload.get("message")
        if isinstance(error, str) and error:
            return error
    return None


class FailureKind(str, Enum):
    transient = "transient"
    terminal = "terminal"


class FetchFailure(Exception):
    """A status or list request that did not produce a usable response"""

    def __init__(
        self,
        message: str = "",
        status: Optional[int] = None,
        payload: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    @property
    def server_error(self) -> Optional[str]:
        return server_error_text(self.payload)


class MalformedResponseError(FetchFailure):
    """The response body could not be read as a status snapshot"""


class InvalidTerminalResponseError(MalformedResponseError):
    """A completed or failed status arrived with fields that could not be read"""


class UnrecognizedStatusError(FetchFailure):
    """The backend reported a status outside processing/completed/failed"""

    def __init__(self, reported_status: Any, status: Optional[int] = None, payload=None):
        super().__init__(
            f"Unrecognized job status: {reported_status!r}", status=status, payload=payload
        )
        self.reported_status = reported_status


def classify_failure(failure: BaseException) -> FailureKind:
    """Decide whether polling can still succeed after this failure

    Only a missing job, a forbidden job, an unrecognized status and an unreadable
    terminal status are terminal.
    Everything else may be a backend hiccup and is retried on the next tick.
    """
    if isinstance(failure, (UnrecognizedStatusError, InvalidTerminalResponseError)):
        return FailureKind.terminal
    if isinstance(failure, FetchFailure) and failure.status in TERMINAL_HTTP_STATUSES:
        return FailureKind.terminal
    return FailureKind.transient


def failure_message(failure: BaseException, locale: str = messages.DEFAULT_LOCALE) -> str:
    """User-facing text: server error string, then raw error text, then a fallback"""
    if isinstance(failure, UnrecognizedStatusError):
        return messages.unrecognized_status_message(str(failure.reported_status), locale)
    if isinstance(failure, FetchFailure):
        server_error = failure.server_error
        if server_error:
            return server_error
        if failure.message:
            return failure.message
    elif str(failure):
        return str(failure)
    return messages.status_check_failed_message(locale)
