"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~idflow.exceptions.IdflowError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ idflow callback "https://app.example.com/cb#error=login_required"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the identity provider refused the silent login
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or violated a call precondition."""

EXIT_AUTH_FAILURE = 3
"""The identity provider reported an authentication failure."""

EXIT_TRANSPORT_ERROR = 6
"""A network-level or HTTP error occurred while talking to the identity provider."""

EXIT_MALFORMED_CALLBACK = 7
"""A callback URL had a recognized shape but an undecodable payload."""
