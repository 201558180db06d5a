"""Tests for ApiClient.parse_url_fragment -- callback classification."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from conftest import CLIENT_ID, DOMAIN, ID_TOKEN, ID_TOKEN_CLAIMS, RecordingNavigator, make_id_token
from idflow.client import ApiClient
from idflow.exceptions import MalformedCallbackError
from idflow.models import AuthenticationFailure, AuthenticationSuccess
from idflow.querystring import to_query_string

CALLBACK = "https://app.example.com/login/callback"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Recorder:
    """Collects every payload published by a client."""

    def __init__(self, client: ApiClient) -> None:
        self.authenticated: list[AuthenticationSuccess] = []
        self.failed: list[AuthenticationFailure] = []
        client.on("authenticated", self.authenticated.append)
        client.on("authentication_failed", self.failed.append)

    @property
    def total(self) -> int:
        return len(self.authenticated) + len(self.failed)


@pytest.fixture
def client(navigator: RecordingNavigator) -> ApiClient:
    return ApiClient(DOMAIN, CLIENT_ID, navigator=navigator)


def _url(params: dict[str, Any]) -> str:
    return f"{CALLBACK}#{to_query_string(params)}"


SUCCESS_PARAMS = {
    "id_token": ID_TOKEN,
    "access_token": "kjbsdfljndvlksndfv",
    "expires_in": 1800,
    "token_type": "Bearer",
}

ERROR_PARAMS = {
    "error": "invalid_grant",
    "error_description": "Invalid email or password",
    "error_usr_msg": "Invalid email or password",
}


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------


class TestSuccessFragment:
    def test_returns_true_and_emits_authenticated(self, client: ApiClient) -> None:
        recorder = _Recorder(client)

        assert client.parse_url_fragment(_url(SUCCESS_PARAMS)) is True

        assert recorder.failed == []
        assert len(recorder.authenticated) == 1
        result = recorder.authenticated[0]
        assert result.id_token == ID_TOKEN
        assert result.id_token_payload == ID_TOKEN_CLAIMS
        assert result.access_token == "kjbsdfljndvlksndfv"
        assert result.expires_in == 1800
        assert result.token_type == "Bearer"

    def test_payload_serialises_to_camel_case(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        client.parse_url_fragment(_url(SUCCESS_PARAMS))

        assert recorder.authenticated[0].to_dict() == {
            "idToken": ID_TOKEN,
            "idTokenPayload": ID_TOKEN_CLAIMS,
            "accessToken": "kjbsdfljndvlksndfv",
            "expiresIn": 1800,
            "tokenType": "Bearer",
        }

    def test_minimal_fragment(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        token = make_id_token({"sub": "7"})

        assert client.parse_url_fragment(f"{CALLBACK}#id_token={token}") is True

        result = recorder.authenticated[0]
        assert result.id_token_payload == {"sub": "7"}
        assert result.access_token is None
        assert result.expires_in is None

    def test_url_without_path(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        assert client.parse_url_fragment(f"#id_token={ID_TOKEN}") is True
        assert len(recorder.authenticated) == 1

    def test_malformed_id_token_raises_and_emits_nothing(self, client: ApiClient) -> None:
        recorder = _Recorder(client)

        with pytest.raises(MalformedCallbackError):
            client.parse_url_fragment(f"{CALLBACK}#id_token=not-a-jwt")

        assert recorder.total == 0

    @pytest.mark.parametrize("fragment", ["id_token=&access_token=abc", "id_token"])
    def test_empty_id_token_raises_and_emits_nothing(
        self, client: ApiClient, fragment: str
    ) -> None:
        recorder = _Recorder(client)

        with pytest.raises(MalformedCallbackError, match="id_token"):
            client.parse_url_fragment(f"{CALLBACK}#{fragment}")

        assert recorder.total == 0

    @pytest.mark.parametrize("raw", [" 1800 ", "+1800", "1_800", "1800.0", ""])
    def test_loose_integer_spellings_of_expires_in_raise(
        self, client: ApiClient, raw: str
    ) -> None:
        recorder = _Recorder(client)
        url = _url({**SUCCESS_PARAMS, "expires_in": raw})

        with pytest.raises(MalformedCallbackError, match="expires_in"):
            client.parse_url_fragment(url)

        assert recorder.total == 0

    def test_non_integer_expires_in_raises(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        url = _url({**SUCCESS_PARAMS, "expires_in": "soon"})

        with pytest.raises(MalformedCallbackError, match="expires_in"):
            client.parse_url_fragment(url)

        assert recorder.total == 0


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class TestErrorFragment:
    def test_returns_true_and_emits_failure(self, client: ApiClient) -> None:
        recorder = _Recorder(client)

        assert client.parse_url_fragment(_url(ERROR_PARAMS)) is True

        assert recorder.authenticated == []
        assert recorder.failed == [
            AuthenticationFailure(
                error="invalid_grant",
                error_description="Invalid email or password",
                error_usr_msg="Invalid email or password",
            )
        ]

    def test_failure_serialises_to_camel_case(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        client.parse_url_fragment(_url(ERROR_PARAMS))

        assert recorder.failed[0].to_dict() == {
            "error": "invalid_grant",
            "errorDescription": "Invalid email or password",
            "errorUsrMsg": "Invalid email or password",
        }

    def test_error_only(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        client.parse_url_fragment(f"{CALLBACK}#error=login_required")
        assert recorder.failed[0].error == "login_required"
        assert recorder.failed[0].error_description is None

    def test_error_wins_over_id_token(self, client: ApiClient) -> None:
        recorder = _Recorder(client)
        url = _url({**SUCCESS_PARAMS, "error": "consent_required"})

        assert client.parse_url_fragment(url) is True

        assert recorder.authenticated == []
        assert recorder.failed[0].error == "consent_required"


# ---------------------------------------------------------------------------
# Not a callback
# ---------------------------------------------------------------------------


class TestUnrecognized:
    @pytest.mark.parametrize(
        "url",
        [
            f"{CALLBACK}#toto=tutu",
            CALLBACK,
            f"{CALLBACK}#",
            f"{CALLBACK}?id_token={ID_TOKEN}",
            "",
        ],
        ids=["unrelated-keys", "no-fragment", "empty-fragment", "query-not-fragment", "empty"],
    )
    def test_returns_false_without_events(self, client: ApiClient, url: str) -> None:
        recorder = _Recorder(client)
        assert client.parse_url_fragment(url) is False
        assert recorder.total == 0


# ---------------------------------------------------------------------------
# Delivery timing
# ---------------------------------------------------------------------------


class TestDelivery:
    def test_deferred_inside_running_loop(self, client: ApiClient) -> None:
        recorder = _Recorder(client)

        async def _scenario() -> tuple[bool, int, int]:
            recognized = client.parse_url_fragment(_url(SUCCESS_PARAMS))
            before = recorder.total
            await asyncio.sleep(0)
            return recognized, before, recorder.total

        recognized, before, after = asyncio.run(_scenario())

        assert recognized is True
        assert before == 0
        assert after == 1

    def test_each_subscriber_called_once(self, client: ApiClient) -> None:
        calls: list[Any] = []
        client.on("authenticated", calls.append)
        client.on("authenticated", calls.append)

        client.parse_url_fragment(_url(SUCCESS_PARAMS))

        assert len(calls) == 2
        assert calls[0] is calls[1]
