"""Exceptions raised by the store and mapped to HTTP responses by the app."""


class BeerfestError(Exception):
    """Base exception for beerfest errors."""

    status_code = 400


class EventNotFoundError(BeerfestError):
    """Raised when an event (or something inside it) does not exist."""

    status_code = 404


class EventClosedError(BeerfestError):
    """Raised when an ended event is joined or scored."""

    status_code = 409


class AuthorizationError(BeerfestError):
    """Raised when a session token does not match, or a non-host acts as host."""

    status_code = 403


class ValidationError(BeerfestError):
    """Raised for rejected user input (blank names, unsupported uploads)."""

    status_code = 400
