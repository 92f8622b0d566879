# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a service can report maps onto one of these classes. Routes
turn them into the standard envelope with the class's HTTP status; anything
that is not a ClaimdeskError is an unexpected failure and becomes a
generic 500.
"""

from __future__ import annotations


class ClaimdeskError(Exception):
    """Base class. `message` is safe to show to the caller."""
    status_code = 500

    def __init__(self, message: str = "Server error", *, errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(ClaimdeskError, ValueError):
    """Malformed or missing input (400). `errors` holds field-level details."""
    status_code = 400


class AuthenticationError(ClaimdeskError):
    """
    Missing/invalid/expired token or bad credentials (401).

    `reason` is for the server log only; callers always see `message`.
    """
    status_code = 401

    def __init__(self, message: str = "Invalid credentials", *, reason: str | None = None):
        super().__init__(message)
        self.reason = reason or message


class AuthorizationError(ClaimdeskError):
    """Valid identity, insufficient capability or not the owner (403)."""
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFoundError(ClaimdeskError):
    status_code = 404


class ConflictError(ClaimdeskError):
    """State-transition guard violated or unique key taken (409)."""
    status_code = 409


class LifecycleError(ConflictError):
    """Raised when a claim transition is not allowed from its current status."""


class InternalError(ClaimdeskError):
    status_code = 500
