"""
Remote-call failure taxonomy.

Every failed remote call is normalized into exactly one Failure variant:

- TransportFailure: endpoint unreachable (``FETCH_ERROR``)
- ParseFailure: response body was not valid JSON (``PARSING_ERROR``)
- HttpFailure: the backend answered with a non-2xx status
- UnknownFailure: anything else, raw payload kept for logging

``classify_failure`` accepts the loose payload shape used across the client
(``status``, ``data``, ``error``, ``originalStatus``) and ``describe_failure``
derives the single human-readable message shown to the user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

FETCH_ERROR = "FETCH_ERROR"
PARSING_ERROR = "PARSING_ERROR"

NETWORK_ERROR_MESSAGE = "Network error: API endpoint is unreachable."
GENERIC_ERROR_MESSAGE = "Request failed."
UNAUTHORIZED_STATUS = 401


@dataclass(frozen=True)
class TransportFailure:
    """The request never produced a response."""

    error: str | None = None
    reason: str | None = None  # diagnostics only, never shown


@dataclass(frozen=True)
class ParseFailure:
    """A response arrived but its body could not be decoded."""

    original_status: int | None = None
    raw_body: str = ""
    error: str | None = None
    reason: str | None = None

    @property
    def returned_html(self) -> bool:
        return self.raw_body.strip().startswith("<")


@dataclass(frozen=True)
class HttpFailure:
    """A structured non-2xx response."""

    status: int
    detail: str | None = None
    error: str | None = None

    @property
    def is_unauthorized(self) -> bool:
        return self.status == UNAUTHORIZED_STATUS


@dataclass(frozen=True)
class UnknownFailure:
    """A failure payload of unrecognized shape."""

    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


Failure = Union[TransportFailure, ParseFailure, HttpFailure, UnknownFailure]


def _body_field(data: Any, name: str) -> str | None:
    if isinstance(data, dict):
        value = data.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def classify_failure(payload: dict[str, Any]) -> Failure:
    """
    Map a loose failure payload onto a Failure variant.

    Args:
        payload: Dict with optional ``status`` (int or marker string),
            ``data`` (decoded body dict or raw text), ``error`` and
            ``originalStatus``.

    Returns:
        Exactly one Failure variant. Unrecognized shapes become UnknownFailure.
    """
    status = payload.get("status")
    data = payload.get("data")
    error = _text(payload.get("error"))

    if status == FETCH_ERROR:
        return TransportFailure(error=error)

    if status == PARSING_ERROR:
        original = payload.get("originalStatus")
        return ParseFailure(
            original_status=original if isinstance(original, int) else None,
            raw_body=data if isinstance(data, str) else "",
            error=error,
        )

    if isinstance(status, int) and not isinstance(status, bool):
        return HttpFailure(
            status=status,
            detail=_body_field(data, "detail"),
            error=_body_field(data, "error") or error,
        )

    return UnknownFailure(payload=dict(payload), error=error)


def failure_status(failure: Failure) -> int | str | None:
    """Status code or transport marker, for logging."""
    if isinstance(failure, HttpFailure):
        return failure.status
    if isinstance(failure, TransportFailure):
        return FETCH_ERROR
    if isinstance(failure, ParseFailure):
        return PARSING_ERROR
    return None


def is_unauthorized(failure: Failure) -> bool:
    return isinstance(failure, HttpFailure) and failure.is_unauthorized


def describe_failure(failure: Failure) -> str:
    """
    Derive the user-facing message for a failure.

    Precedence: body ``detail``, body/payload ``error``, then a canned message
    for the transport or parse marker, then a generic fallback.
    """
    if isinstance(failure, HttpFailure):
        return failure.detail or failure.error or GENERIC_ERROR_MESSAGE

    if isinstance(failure, TransportFailure):
        return failure.error or NETWORK_ERROR_MESSAGE

    if isinstance(failure, ParseFailure):
        if failure.error:
            return failure.error
        status_part = (
            f" (HTTP {failure.original_status})" if failure.original_status is not None else ""
        )
        if failure.returned_html:
            return (
                f"API returned HTML instead of JSON{status_part}. "
                "Check the backend logs or the API base URL."
            )
        return f"Response parsing failed from API{status_part}."

    if isinstance(failure, UnknownFailure):
        detail = _body_field(failure.payload.get("data"), "detail")
        return detail or _body_field(failure.payload.get("data"), "error") or failure.error or GENERIC_ERROR_MESSAGE

    raise TypeError(f"Unsupported failure type: {type(failure).__name__}")
