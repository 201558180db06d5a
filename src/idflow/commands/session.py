"""Session commands -- drive the login flows from the terminal.

Each command resolves the active profile (``--profile``, ``IDFLOW_PROFILE``,
project config, then the default profile), builds an
:class:`~idflow.client.ApiClient` for it and runs one operation:

* ``sso-data`` -- print what the identity provider knows about the session.
* ``login`` -- open the silent-login URL in the browser.
* ``callback`` -- classify a redirect-back URL and print the outcome.
* ``exchange`` -- redeem an authorization code with the stored verifier.
* ``logout`` -- open the logout URL in the browser.

Library errors are reported on stderr and mapped to their exit code.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, NoReturn, Optional, TypeVar

import typer

from idflow.client import ApiClient, create_client
from idflow.config import resolve_config
from idflow.exceptions import AuthenticationError, IdflowError
from idflow.exit_codes import EXIT_INVALID_USAGE
from idflow.models import AuthenticationFailure, AuthenticationSuccess, AuthRequestOptions
from idflow.output import error, format_response, info, success, suggest

T = TypeVar("T")


def _resolve_client(ctx: typer.Context) -> ApiClient:
    """Build a client for the profile selected by *ctx* and the environment."""
    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    try:
        _, profile = resolve_config(cli_profile=cli_profile)
    except IdflowError as exc:
        _fail(exc)

    if profile is None:
        error("No profile selected.")
        suggest("Create one: idflow profile add NAME --domain D --client-id C --default")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return create_client(profile)


def _fail(exc: IdflowError) -> NoReturn:
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def _run(client: ApiClient, operation: Callable[[ApiClient], Awaitable[T]]) -> T:
    """Run an async client operation to completion and close the client."""

    async def _go() -> T:
        async with client:
            return await operation(client)

    return asyncio.run(_go())


@contextmanager
def _closing(client: ApiClient) -> Iterator[ApiClient]:
    """Close the client after a synchronous operation.

    No event loop runs inside the block, so events are delivered before
    the operation returns.
    """
    try:
        yield client
    finally:
        asyncio.run(client.aclose())


def sso_data_command(
    ctx: typer.Context,
    id_token_hint: Optional[str] = typer.Option(
        None, "--id-token-hint", help="ID token identifying the user."
    ),
    login_hint: Optional[str] = typer.Option(
        None, "--login-hint", help="Login identifier (ignored with --id-token-hint)."
    ),
) -> None:
    """Show the identity provider's view of the current session.

    Example::

        idflow sso-data --login-hint john@example.com --json
    """
    client = _resolve_client(ctx)
    options = AuthRequestOptions(id_token_hint=id_token_hint, login_hint=login_hint)
    try:
        data = _run(client, lambda c: c.get_sso_data(options))
    except IdflowError as exc:
        _fail(exc)

    format_response(data.to_dict())


def login_command(
    ctx: typer.Context,
    id_token_hint: Optional[str] = typer.Option(
        None, "--id-token-hint", help="ID token of the user to re-authenticate."
    ),
    redirect_uri: Optional[str] = typer.Option(
        None,
        "--redirect-uri",
        help="Callback URL. Selects the authorization-code flow with PKCE.",
    ),
) -> None:
    """Start a silent login in the browser (``prompt=none``).

    Without ``--redirect-uri`` the implicit flow is used and tokens come back
    in the callback URL's fragment. With it, a PKCE verifier is stored and
    the callback carries a ``code`` to redeem with ``idflow exchange``.
    """
    client = _resolve_client(ctx)
    options = AuthRequestOptions(id_token_hint=id_token_hint, redirect_uri=redirect_uri)
    try:
        with _closing(client):
            client.login_from_session(options)
    except IdflowError as exc:
        _fail(exc)

    info("Opened the identity provider in your browser.")
    if redirect_uri:
        suggest(f"Then run: idflow exchange CODE --redirect-uri {redirect_uri}")
    else:
        suggest("Then run: idflow callback URL")


def callback_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Full callback URL, including its #fragment."),
) -> None:
    """Parse a callback URL and print the authentication outcome.

    Exits with code 3 when the identity provider reported an error and with
    code 2 when the URL is not an authentication callback.
    """
    client = _resolve_client(ctx)
    outcome: list[Any] = []
    client.on("authenticated", outcome.append)
    client.on("authentication_failed", outcome.append)

    try:
        with _closing(client):
            recognized = client.parse_url_fragment(url)
    except IdflowError as exc:
        _fail(exc)

    if not recognized:
        error("URL fragment is not an authentication callback.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    for result in outcome:
        format_response(result.to_dict())
        if isinstance(result, AuthenticationFailure):
            _fail(
                AuthenticationError(
                    result.error_usr_msg or result.error_description or result.error
                )
            )
        if isinstance(result, AuthenticationSuccess):
            success("Authenticated.")


def exchange_command(
    ctx: typer.Context,
    code: str = typer.Argument(help="Authorization code from the callback URL."),
    redirect_uri: str = typer.Option(
        ..., "--redirect-uri", help="Redirect URI used for the login request."
    ),
) -> None:
    """Redeem an authorization code with the stored PKCE verifier."""
    client = _resolve_client(ctx)
    try:
        result = _run(client, lambda c: c.exchange_authorization_code(code, redirect_uri))
    except IdflowError as exc:
        _fail(exc)

    format_response(result.to_dict())
    success("Authenticated.")


def logout_command(
    ctx: typer.Context,
    redirect_to: Optional[str] = typer.Option(
        None, "--redirect-to", help="Where the identity provider sends the browser afterwards."
    ),
) -> None:
    """End the identity provider session in the browser."""
    client = _resolve_client(ctx)
    with _closing(client):
        client.logout(redirect_to)
    info("Opened the logout page in your browser.")
