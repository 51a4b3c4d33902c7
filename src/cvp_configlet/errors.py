"""Error taxonomy for configlet operations.

Callers react differently depending on where a request failed:
NotFound and RemoteRejected mean nothing was changed remotely by the failing step.
TransportFailure means the request may not have reached the remote system.
PartialCommit means an assignment was staged but not committed, so remote
state has changed even though the operation failed.
"""
from typing import Any, Optional


class CvpError(Exception):
    """Base class for all configlet client exceptions."""


class NotFound(CvpError):
    """Raised when a name-based lookup yields no matching record."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} not found: {name}")
        self.kind = kind
        self.name = name


class RemoteRejected(CvpError):
    """Raised when the response envelope carries a non-empty error code."""

    def __init__(self, error_code: str, error_message: str = ""):
        super().__init__(f"CVP returned error code: {error_code}, {error_message}")
        self.error_code = error_code
        self.error_message = error_message


class TransportFailure(CvpError):
    """Raised when the HTTP call fails or its body cannot be decoded."""


class PartialCommit(CvpError):
    """Raised when an action was staged but the commit call failed.

    ``result`` holds the staged CommitResult so callers can inspect
    what is pending on the remote system.
    """

    def __init__(self, result: Any, cause: Optional[BaseException] = None):
        super().__init__(f"Action staged but commit failed: {cause}")
        self.result = result
        self.cause = cause
