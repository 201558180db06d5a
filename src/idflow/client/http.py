"""Asynchronous JSON transport to the identity provider.

This module provides :class:`HttpTransport`, a thin wrapper around
:class:`httpx.AsyncClient` that issues the two kinds of calls the flows
need (a GET returning JSON and a form POST returning JSON) and maps every
failure onto :class:`~idflow.exceptions.TransportError`.

The underlying client's cookie jar plays the role of the browser's ambient
session: cookies set by the identity provider are kept, and a request only
carries them when the caller asks for ``include_credentials``. Otherwise the
``Cookie`` header is stripped.

There is no retry logic: a failed call surfaces immediately.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from idflow.exceptions import TransportError
from idflow.models import RequestConfig
from idflow.output import debug


class HttpTransport:
    """Non-blocking JSON transport with cookie-aware credential control.

    Must be used as an async context manager, or closed with :meth:`aclose`,
    so that the underlying connection pool is released.

    Args:
        config: Timeout and SSL settings.
        client: Pre-built :class:`httpx.AsyncClient` to use instead of
            creating one (e.g. with an :class:`httpx.MockTransport` in
            tests). The transport takes ownership and closes it.

    Example::

        async with HttpTransport() as http:
            data = await http.get_json("https://idp/identity/v1/sso/data",
                                       params={"client_id": "abc"})
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        config = config or RequestConfig()
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        """The ambient cookie jar sent with credentialed requests."""
        return self._client.cookies

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        include_credentials: bool = False,
    ) -> Any:
        """Send a GET request and return the decoded JSON body.

        Args:
            url: Absolute URL, already carrying its query string, or a base
                URL combined with *params*.
            params: Extra query parameters.
            include_credentials: Send the ambient cookies with the request.

        Returns:
            The decoded JSON document.

        Raises:
            TransportError: On network errors, HTTP status >= 400, or a
                body that is not JSON.
        """
        request = self._client.build_request("GET", url, params=params)
        return await self._send(request, include_credentials)

    async def post_form(
        self,
        url: str,
        data: dict[str, Any],
        include_credentials: bool = False,
    ) -> Any:
        """Send a form-encoded POST request and return the decoded JSON body.

        Raises:
            TransportError: On network errors, HTTP status >= 400, or a
                body that is not JSON.
        """
        request = self._client.build_request(
            "POST", url, data=data, headers={"Accept": "application/json"}
        )
        return await self._send(request, include_credentials)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send(self, request: httpx.Request, include_credentials: bool) -> Any:
        if not include_credentials:
            request.headers.pop("Cookie", None)

        debug(f"{request.method} {str(request.url).split('?', 1)[0]}")
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {request.url.host} failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON in response from {request.url.host}: {exc}",
                status_code=response.status_code,
            ) from exc


def _error_message(response: httpx.Response) -> str:
    """Build ``HTTP <status>: <detail>`` from an error response."""
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = (
                detail.get("error_description")
                or detail.get("error")
                or detail.get("message")
                or ""
            )
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {msg}" if msg else prefix
