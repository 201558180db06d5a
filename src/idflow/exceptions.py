"""Errors raised by idflow.

Each class knows the process exit code it maps to (see
:mod:`idflow.exit_codes`), so :func:`idflow.app.main` and the session
commands can end the process without a lookup table of their own.

Hierarchy::

    IdflowError (exit 1)
    +-- InvalidUsageError        (exit 2)
    |   +-- PreconditionError    (exit 2)
    +-- AuthenticationError      (exit 3)
    +-- TransportError           (exit 6)
    +-- MalformedCallbackError   (exit 7)
    +-- ConfigError              (exit 1)
"""

from idflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MALFORMED_CALLBACK,
    EXIT_TRANSPORT_ERROR,
)


class IdflowError(Exception):
    """Root of the hierarchy.

    Args:
        message: Shown to the user after ``Error:``.
        exit_code: Replaces the class default for this instance.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = type(self).exit_code if exit_code is None else exit_code


class InvalidUsageError(IdflowError):
    """Raised for invalid CLI arguments or API misuse (e.g. unknown event names)."""

    exit_code = EXIT_INVALID_USAGE


class PreconditionError(InvalidUsageError):
    """Raised when a caller violates an invocation contract.

    Always raised before any network request, persistence or navigation
    happens, so a failed call leaves no side effect behind.
    """


class AuthenticationError(IdflowError):
    """Raised when the identity provider reports a failed authentication."""

    exit_code = EXIT_AUTH_FAILURE


class TransportError(IdflowError):
    """Raised on network failures, HTTP error statuses or unparseable response bodies.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the failing response, or ``None`` when
            no response was received.
    """

    exit_code = EXIT_TRANSPORT_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedCallbackError(IdflowError):
    """Raised when a recognized callback fragment carries an undecodable payload."""

    exit_code = EXIT_MALFORMED_CALLBACK


class ConfigError(IdflowError):
    """A profile or config file is missing or cannot be read."""
