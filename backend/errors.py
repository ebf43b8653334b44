"""Error taxonomy shared by services and routes.

Services raise these; ``backend.app`` turns them into JSON responses of the
form ``{"message": ...}`` with the matching status code.
"""

from __future__ import annotations

from typing import Optional


def format_validation_errors(errors: list[dict]) -> str:
    """One readable line from pydantic's error list (first error wins)."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    if str(first.get("type", "")).startswith("magic_"):
        return first.get("msg", "Invalid request")
    loc = [str(part) for part in first.get("loc", ()) if not isinstance(part, int)]
    field = loc[-1] if loc else ""
    if field.lower().endswith("email"):
        return "Valid email is required"
    if field in ("body", ""):
        return first.get("msg", "Invalid request")
    return f"{field}: {first.get('msg', 'invalid value')}"


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, *, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_payload(self) -> dict:
        payload = {"message": self.message}
        if self.error:
            payload["error"] = self.error
        return payload


class ValidationError(AppError):
    """Missing or malformed required field."""

    status_code = 400


class ConflictError(AppError):
    """Uniqueness violation (startup email, guest username/email)."""

    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class AuthenticationError(AppError):
    status_code = 401


class PermissionDenied(AppError):
    status_code = 403


class UpstreamError(AppError):
    """Store unavailable or unexpected failure. ``error`` carries the cause."""

    status_code = 500

    def __init__(self, cause: BaseException, message: str = "Server error"):
        super().__init__(message, error=str(cause))
        self.cause = cause
