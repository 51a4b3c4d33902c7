"""Decoding of the generic response envelope.

Most endpoints answer with ``{"data": ..., "errorCode": ..., "errorMessage": ...}``.
A non-empty ``errorCode`` is a failure even when the HTTP status is 200.
"""
import json
from dataclasses import dataclass
from typing import Any

from .errors import RemoteRejected, TransportFailure


def decode_json(raw: bytes, what: str = "response") -> Any:
    """Decode a raw response body, mapping decode errors to TransportFailure."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise TransportFailure(f"Could not decode {what}: {e}") from e


@dataclass
class ResponseEnvelope:
    """Generic response wrapper returned by most endpoints."""
    data: Any = None
    error_code: str = ""
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return not self.error_code

    @classmethod
    def from_dict(cls, data: Any) -> "ResponseEnvelope":
        if not isinstance(data, dict):
            return cls(data=data)
        return cls(
            data=data.get("data"),
            error_code=str(data.get("errorCode") or ""),
            error_message=data.get("errorMessage") or "",
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "ResponseEnvelope":
        return cls.from_dict(decode_json(raw))

    def raise_for_error(self) -> None:
        if self.error_code:
            raise RemoteRejected(self.error_code, self.error_message)


def check_response(raw: bytes) -> ResponseEnvelope:
    """Decode a response envelope and raise RemoteRejected on an error code."""
    envelope = ResponseEnvelope.from_bytes(raw)
    envelope.raise_for_error()
    return envelope


def decode_record(raw: bytes, what: str) -> dict:
    """Decode a JSON object body that may carry an error code instead of data."""
    data = decode_json(raw, what)
    if not isinstance(data, dict):
        raise TransportFailure(f"Unexpected response for {what}")
    if data.get("errorCode"):
        raise RemoteRejected(str(data["errorCode"]), data.get("errorMessage") or "")
    return data
