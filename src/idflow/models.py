"""Pydantic models for idflow.

**Stored configuration** -- JSON files under the config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`GlobalConfig`,
    and :class:`Profile`.

**Flow models** -- inputs and outcomes of the authentication flows:
    :class:`AuthRequestOptions`, :class:`PkcePair`,
    :class:`PersistedVerifier`, :class:`SessionData`,
    :class:`AuthenticationSuccess`, and :class:`AuthenticationFailure`.

Flow models use snake_case attribute names with camelCase aliases. They can
be validated from either spelling, and :meth:`to_dict` produces the camelCase
shape that applications consume.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Flow inputs ---


class AuthRequestOptions(BaseModel):
    """Options accepted by the silent-login and session-data operations.

    ``redirect_uri`` selects the authorization-code branch of
    :meth:`~idflow.client.api_client.ApiClient.login_from_session`; leaving
    it out selects the implicit branch. When both hints are supplied only
    ``id_token_hint`` is transmitted.

    Unknown keys (``popupMode``, ``responseType``, ...) are ignored.

    Example::

        AuthRequestOptions(id_token_hint="eyJ...", redirect_uri="https://app/cb")
        AuthRequestOptions.model_validate({"idTokenHint": "eyJ..."})
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id_token_hint: Optional[str] = Field(
        default=None,
        alias="idTokenHint",
        description="Opaque token proving a prior authentication of the same subject",
    )
    login_hint: Optional[str] = Field(
        default=None,
        alias="loginHint",
        description="Free-form hint such as an email, used when no id_token_hint is given",
    )
    redirect_uri: Optional[str] = Field(
        default=None,
        alias="redirectUri",
        description="Absolute callback URL; selects the authorization-code branch",
    )


class PkcePair(BaseModel):
    """A PKCE verifier/challenge pair (:rfc:`7636`).

    ``code_verifier`` stays on the client and is never sent on the authorize
    redirect. ``code_challenge`` is derived from it deterministically.
    """

    model_config = ConfigDict(frozen=True)

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"


class PersistedVerifier(BaseModel):
    """A code verifier written to durable storage before leaving the page."""

    key: str = Field(description="Storage slot (or correlation id) of the in-flight flow")
    code_verifier: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Flow outcomes ---


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase mapping exposed to applications."""
        return self.model_dump(by_alias=True)


class SessionData(_Result):
    """Snapshot of the identity provider's knowledge about the current browser session.

    Produced only by
    :meth:`~idflow.client.api_client.ApiClient.get_sso_data`.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    last_login_type: Optional[str] = Field(default=None, alias="lastLoginType")
    is_authenticated: bool = Field(default=False, alias="isAuthenticated")
    has_password: bool = Field(default=False, alias="hasPassword")
    social_providers: list[str] = Field(default_factory=list, alias="socialProviders")


class AuthenticationSuccess(_Result):
    """Tokens delivered by a successful authentication.

    ``id_token_payload`` holds the decoded (unverified) claims of
    ``id_token``.
    """

    id_token: Optional[str] = Field(default=None, alias="idToken")
    id_token_payload: dict[str, Any] = Field(default_factory=dict, alias="idTokenPayload")
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")
    token_type: Optional[str] = Field(default=None, alias="tokenType")


class AuthenticationFailure(_Result):
    """Error reported by the identity provider on its redirect back.

    Fields missing from the callback stay absent: :meth:`to_dict` drops
    them instead of reporting empty strings.
    """

    error: str
    error_description: Optional[str] = Field(default=None, alias="errorDescription")
    error_usr_msg: Optional[str] = Field(default=None, alias="errorUsrMsg")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every call a profile makes to the identity provider."""

    timeout: int = Field(default=30, description="Seconds before an identity-provider call is abandoned")
    verify_ssl: bool = Field(default=True, description="Check the tenant TLS certificate")


class OutputConfig(BaseModel):
    """How results are printed when no --json or --plain flag is given."""

    format: str = Field(
        default="auto", description="One of auto, json, plain or rich"
    )


class GlobalConfig(BaseModel):
    """Settings that apply to every profile, kept in ``config.json``.

    ``default_profile`` is the last place :func:`~idflow.config.resolve_config`
    looks for a profile name.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """One identity-provider application, stored as JSON under ``profiles/``.

    A profile binds a tenant domain to a client identifier and records
    whether the tenant has SSO sessions enabled, which decides whether a
    silent login may run without a hint token.

    See Also:
        :func:`~idflow.config.load_profile`: Deserialise a profile by name.
        :func:`~idflow.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    domain: str = Field(description="Identity provider host, e.g. 'tenant.example.net'")
    client_id: str = Field(description="OAuth client identifier of the application")
    sso: bool = Field(
        default=False,
        description="Whether the tenant keeps an SSO session cookie for the browser",
    )
    verifier_key: str = Field(
        default="verifier_key",
        description="Storage slot used to persist the PKCE verifier across the redirect",
    )
    verifier_max_age: Optional[int] = Field(
        default=600,
        description="Seconds after which a persisted verifier is discarded (None = never)",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
