"""Tests for the async JSON transport."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest

from idflow.client.http import HttpTransport
from idflow.exceptions import TransportError
from idflow.querystring import parse_query_string

URL = "https://local.reach5.net/identity/v1/sso/data?client_id=zdfuh"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    cookies: dict[str, str] | None = None,
) -> HttpTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), cookies=cookies)
    return HttpTransport(client=client)


def _json_handler(data: Any, status_code: int = 200, seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=data)

    return handler


def _get(transport: HttpTransport, url: str = URL, **kwargs: Any) -> Any:
    async def _go() -> Any:
        async with transport:
            return await transport.get_json(url, **kwargs)

    return asyncio.run(_go())


def _post(transport: HttpTransport, data: dict[str, Any]) -> Any:
    async def _go() -> Any:
        async with transport:
            return await transport.post_form("https://local.reach5.net/oauth/token", data)

    return asyncio.run(_go())


# ---------------------------------------------------------------------------
# GET
# ---------------------------------------------------------------------------


class TestGetJson:
    def test_returns_decoded_body(self) -> None:
        transport = _make_transport(_json_handler({"name": "John Doe"}))
        assert _get(transport) == {"name": "John Doe"}

    def test_sends_get_to_url_unchanged(self) -> None:
        seen: list[httpx.Request] = []
        transport = _make_transport(_json_handler({}, seen=seen))
        _get(transport)
        assert seen[0].method == "GET"
        assert str(seen[0].url) == URL

    def test_extra_params_are_merged(self) -> None:
        seen: list[httpx.Request] = []
        transport = _make_transport(_json_handler({}, seen=seen))
        _get(transport, "https://local.reach5.net/x", params={"a": "1"})
        assert seen[0].url.params["a"] == "1"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_cookies_stripped_by_default(self) -> None:
        seen: list[httpx.Request] = []
        transport = _make_transport(_json_handler({}, seen=seen), cookies={"sid": "abc"})
        _get(transport)
        assert "cookie" not in seen[0].headers

    def test_cookies_sent_when_credentials_included(self) -> None:
        seen: list[httpx.Request] = []
        transport = _make_transport(_json_handler({}, seen=seen), cookies={"sid": "abc"})
        _get(transport, include_credentials=True)
        assert seen[0].headers["cookie"] == "sid=abc"

    def test_cookie_jar_is_exposed(self) -> None:
        transport = _make_transport(_json_handler({}), cookies={"sid": "abc"})
        assert transport.cookies["sid"] == "abc"
        asyncio.run(transport.aclose())


# ---------------------------------------------------------------------------
# POST
# ---------------------------------------------------------------------------


class TestPostForm:
    def test_sends_form_encoded_body(self) -> None:
        seen: list[httpx.Request] = []
        transport = _make_transport(_json_handler({"access_token": "x"}, seen=seen))

        result = _post(transport, {"grant_type": "authorization_code", "code": "a b"})

        assert result == {"access_token": "x"}
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.headers["accept"] == "application/json"
        form = parse_query_string(request.content.decode("ascii"))
        assert form == {"grant_type": "authorization_code", "code": "a b"}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_http_error_status(self) -> None:
        transport = _make_transport(
            _json_handler({"error": "invalid_request", "error_description": "Bad client"}, 400)
        )
        with pytest.raises(TransportError, match="HTTP 400: Bad client") as exc_info:
            _get(transport)
        assert exc_info.value.status_code == 400

    def test_error_falls_back_to_error_code(self) -> None:
        transport = _make_transport(_json_handler({"error": "invalid_grant"}, 400))
        with pytest.raises(TransportError, match="HTTP 400: invalid_grant"):
            _get(transport)

    def test_error_with_text_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        with pytest.raises(TransportError, match="HTTP 503: Service Unavailable"):
            _get(_make_transport(handler))

    def test_error_with_empty_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        with pytest.raises(TransportError, match="^HTTP 500$"):
            _get(_make_transport(handler))

    def test_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>login</html>")

        with pytest.raises(TransportError, match="Invalid JSON") as exc_info:
            _get(_make_transport(handler))
        assert exc_info.value.status_code == 200

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused") as exc_info:
            _get(_make_transport(handler))
        assert exc_info.value.status_code is None
