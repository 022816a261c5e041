"""
Error types raised at the collaborator boundary.

The hosted store reports failures in several payload shapes
(``message`` / ``error`` / ``details`` / ``hint``). Clients translate
them into this small hierarchy once, so booking and loyalty logic can
branch on the exception type instead of sniffing payloads.
"""

import json
from typing import Any, Optional


class BackendError(Exception):
    """Base class for failures talking to the store or the serverless functions."""


class NetworkError(BackendError):
    """The call could not complete: no connectivity, DNS, timeout, reset."""


class ServerError(BackendError):
    """The store answered, but reported a failure."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status


class UnknownError(BackendError):
    """The store answered with a failure we could not interpret."""

    def __init__(self, raw: Any) -> None:
        super().__init__("Unrecognised store error")
        self.raw = raw


class EmailDeliveryError(Exception):
    """The email API rejected or failed to accept a message."""


class FunctionCallError(BackendError):
    """A serverless function answered with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def is_server_side(self) -> bool:
        return self.status >= 500


def server_error_from_payload(payload: Any, status: Optional[int] = None) -> BackendError:
    """Build a ServerError from a decoded error body, or UnknownError if unrecognised."""
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        details = payload.get("details")
        hint = payload.get("hint")
        if isinstance(message, str) or isinstance(details, str):
            return ServerError(
                message=message if isinstance(message, str) else details,
                code=payload.get("code"),
                details=details if isinstance(details, str) else None,
                hint=hint if isinstance(hint, str) else None,
                status=status,
            )
    return UnknownError(payload)


def describe_error(error: BaseException) -> str:
    """Return the fullest human-readable detail for an operator report."""
    if isinstance(error, ServerError):
        parts = [error.message]
        if error.code:
            parts.append(f"code={error.code}")
        if error.details and error.details != error.message:
            parts.append(f"details={error.details}")
        if error.hint:
            parts.append(f"hint={error.hint}")
        return " | ".join(parts)
    if isinstance(error, UnknownError):
        try:
            return json.dumps(error.raw, indent=2, default=str)
        except (TypeError, ValueError):
            return f"Error object could not be serialized: {type(error.raw).__name__}"
    return str(error) or type(error).__name__
