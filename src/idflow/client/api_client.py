"""Authentication flows against the hosted identity provider.

:class:`ApiClient` is the application-facing entry point. It bundles:

- **Silent login** (:meth:`~ApiClient.login_from_session`) -- builds the
  ``prompt=none`` authorize request, choosing the implicit branch or the
  authorization-code branch with PKCE, and navigates to it.
- **Callback parsing** (:meth:`~ApiClient.parse_url_fragment`) -- turns the
  fragment of the redirect-back URL into an ``authenticated`` or
  ``authentication_failed`` event.
- **Session info** (:meth:`~ApiClient.get_sso_data`) -- asks the identity
  provider what it knows about the current browser session.
- **Code exchange** (:meth:`~ApiClient.exchange_authorization_code`) --
  redeems the code from the authorization-code branch with the verifier
  persisted before the redirect.
- **Logout** (:meth:`~ApiClient.logout`).

Collaborators are injected: a :class:`~idflow.navigation.Navigator` for page
navigation, a :class:`~idflow.auth.verifier_store.VerifierStore` for the PKCE
verifier, an :class:`~idflow.client.http.HttpTransport` for JSON calls, and
an :class:`~idflow.events.EventManager` for outcomes.
:func:`create_client` wires the defaults from a
:class:`~idflow.models.Profile`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Literal, Optional, Union, overload

from idflow.auth.pkce import generate_pkce_pair
from idflow.auth.tokens import decode_id_token_payload
from idflow.auth.verifier_store import FileVerifierStore, VerifierStore
from idflow.client.http import HttpTransport
from idflow.events import AUTHENTICATED, AUTHENTICATION_FAILED, EventManager, Subscription
from idflow.exceptions import MalformedCallbackError, PreconditionError, TransportError
from idflow.models import (
    AuthenticationFailure,
    AuthenticationSuccess,
    AuthRequestOptions,
    PkcePair,
    Profile,
    SessionData,
)
from idflow.navigation import BrowserNavigator, Navigator
from idflow.output import debug
from idflow.querystring import decode_value, parse_query_string, to_query_string

SCOPE = "openid profile email phone"
DISPLAY = "page"
DEFAULT_VERIFIER_KEY = "verifier_key"

# wire field -> application field
_SSO_DATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("name", "name"),
    ("email", "email"),
    ("last_login_type", "lastLoginType"),
    ("is_authenticated", "isAuthenticated"),
    ("has_password", "hasPassword"),
    ("social_providers", "socialProviders"),
)

OptionsLike = Union[AuthRequestOptions, Mapping[str, Any], None]


def _coerce_options(options: OptionsLike) -> AuthRequestOptions:
    if options is None:
        return AuthRequestOptions()
    if isinstance(options, AuthRequestOptions):
        return options
    return AuthRequestOptions.model_validate(dict(options))


def _session_data(payload: Mapping[str, Any]) -> SessionData:
    """Map a session-info wire payload onto :class:`SessionData`."""
    mapped = {app: payload[wire] for wire, app in _SSO_DATA_FIELDS if wire in payload}
    return SessionData.model_validate(mapped)


def _expires_in(raw: Any) -> Optional[int]:
    # JSON bodies carry an int, fragments carry its decimal spelling
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        try:
            return decode_value(raw, int)
        except ValueError as exc:
            raise MalformedCallbackError(f"Invalid expires_in value: {raw!r}") from exc
    raise MalformedCallbackError(f"Invalid expires_in value: {raw!r}")


def _authentication_success(data: Mapping[str, Any]) -> AuthenticationSuccess:
    """Build an :class:`AuthenticationSuccess` from fragment or token-endpoint fields.

    An ``id_token`` key that is present is always decoded, so an empty value
    is rejected rather than turned into empty claims. A token-endpoint
    response without the key yields no claims.

    Raises:
        MalformedCallbackError: If ``id_token`` is present but empty or cannot
            be decoded, or ``expires_in`` is not a decimal integer.
    """
    id_token = data.get("id_token")
    claims: dict[str, Any] = {}
    if id_token is not None:
        if not id_token:
            raise MalformedCallbackError("Invalid id_token: empty value")
        claims = decode_id_token_payload(id_token)

    return AuthenticationSuccess(
        id_token=id_token,
        id_token_payload=claims,
        access_token=data.get("access_token"),
        expires_in=_expires_in(data.get("expires_in")),
        token_type=data.get("token_type"),
    )


class ApiClient:
    """Client for one identity-provider application.

    Args:
        domain: Identity provider host (``tenant.example.net``). A value
            that already starts with ``http://`` or ``https://`` is used as
            the base URL unchanged.
        client_id: OAuth client identifier.
        sso: Whether the tenant keeps an SSO session for the browser. When
            ``False``, a silent login requires an ``id_token_hint``; when
            ``True``, session-info requests carry the ambient cookies.
        events: Event registry shared with the application. A fresh one is
            created when omitted.
        navigator: Page-navigation capability. Defaults to
            :class:`~idflow.navigation.BrowserNavigator`.
        verifier_store: Durable storage for the PKCE verifier. Defaults to
            :class:`~idflow.auth.verifier_store.FileVerifierStore`.
        transport: JSON transport. Defaults to a new
            :class:`~idflow.client.http.HttpTransport`.
        verifier_key: Storage slot for the verifier of the in-flight flow.
            Distinct keys let several flows be in flight at once.

    Example::

        client = ApiClient("tenant.example.net", "my-client-id", sso=True)
        client.on("authenticated", handle_tokens)
        client.login_from_session(AuthRequestOptions(redirect_uri="https://app/cb"))
    """

    def __init__(
        self,
        domain: str,
        client_id: str,
        sso: bool = False,
        *,
        events: Optional[EventManager] = None,
        navigator: Optional[Navigator] = None,
        verifier_store: Optional[VerifierStore] = None,
        transport: Optional[HttpTransport] = None,
        verifier_key: str = DEFAULT_VERIFIER_KEY,
    ) -> None:
        self._domain = domain
        self._client_id = client_id
        self._sso = sso
        self._events = events or EventManager()
        self._navigator = navigator or BrowserNavigator()
        self._verifier_store = verifier_store or FileVerifierStore()
        self._transport = transport or HttpTransport()
        self._verifier_key = verifier_key

        if domain.startswith(("http://", "https://")):
            self._base_url = domain.rstrip("/")
        else:
            self._base_url = f"https://{domain}"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def sso(self) -> bool:
        return self._sso

    @property
    def events(self) -> EventManager:
        return self._events

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the HTTP transport."""
        await self._transport.aclose()

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    @overload
    def on(
        self,
        event: Literal["authenticated"],
        callback: Callable[[AuthenticationSuccess], Any],
    ) -> Subscription: ...

    @overload
    def on(
        self,
        event: Literal["authentication_failed"],
        callback: Callable[[AuthenticationFailure], Any],
    ) -> Subscription: ...

    def on(self, event: str, callback: Callable[[Any], Any]) -> Subscription:
        """Subscribe to ``"authenticated"`` or ``"authentication_failed"``."""
        return self._events.on(event, callback)  # type: ignore[call-overload]

    def off(self, event: str, callback: Callable[[Any], Any]) -> None:
        """Remove a subscription registered with :meth:`on`."""
        self._events.off(event, callback)

    # ------------------------------------------------------------------ #
    # Silent login
    # ------------------------------------------------------------------ #

    def login_from_session(self, options: OptionsLike = None) -> None:
        """Silently re-authenticate the user by navigating to the authorize endpoint.

        The request always carries ``prompt=none``: the identity provider
        must answer without showing any UI, either with tokens (or a code)
        or with an error such as ``login_required``. The outcome is observed
        on the next page load through :meth:`parse_url_fragment` (or
        :meth:`exchange_authorization_code` for the code branch).

        With ``redirect_uri`` the authorization-code branch is used: a PKCE
        pair is generated and its verifier is persisted under the client's
        verifier key *before* navigating. Without it the implicit branch
        (``response_type=token``) is used and nothing is persisted.

        ``login_hint`` is accepted but never forwarded by this operation.

        Args:
            options: :class:`~idflow.models.AuthRequestOptions` or an
                equivalent mapping (snake_case or camelCase keys).

        Raises:
            PreconditionError: If SSO is disabled and no ``id_token_hint``
                was supplied. Nothing is generated, stored or opened.
        """
        opts = _coerce_options(options)
        id_token_hint = opts.id_token_hint or None
        redirect_uri = opts.redirect_uri or None

        if not self._sso and id_token_hint is None:
            raise PreconditionError(
                "Cannot call 'login_from_session' without 'id_token_hint' "
                "if SSO is not enabled."
            )

        pkce: Optional[PkcePair] = None
        if redirect_uri is not None:
            pkce = generate_pkce_pair()
            self._verifier_store.save(self._verifier_key, pkce.code_verifier)
            debug(f"Persisted PKCE verifier under '{self._verifier_key}'")

        params: dict[str, Any] = {
            "client_id": self._client_id,
            "response_type": "code" if pkce else "token",
            "redirect_uri": redirect_uri,
            "prompt": "none",
            "scope": SCOPE,
            "display": DISPLAY,
            "id_token_hint": id_token_hint,
        }
        if pkce is not None:
            params["code_challenge"] = pkce.code_challenge
            params["code_challenge_method"] = pkce.code_challenge_method

        debug(f"Silent login ({params['response_type']} branch) for client {self._client_id}")
        self._navigator.navigate(f"{self._base_url}/oauth/authorize?{to_query_string(params)}")

    # ------------------------------------------------------------------ #
    # Callback
    # ------------------------------------------------------------------ #

    def parse_url_fragment(self, url: str) -> bool:
        """Classify the fragment of a callback URL and publish the outcome.

        An ``error`` key produces an ``authentication_failed`` event; failing
        that, an ``id_token`` key produces an ``authenticated`` event with the
        decoded claims. When both keys are present the error wins.

        Subscribers run on the next turn of the running event loop, or
        before this method returns when no loop is running. Callers must not
        depend on either order.

        Args:
            url: The full callback URL, including its ``#`` fragment.

        Returns:
            ``True`` if the fragment matched the success or the error shape,
            ``False`` otherwise (no fragment, empty fragment, unrelated keys).

        Raises:
            MalformedCallbackError: If the fragment has the success shape but
                its ``id_token`` or ``expires_in`` cannot be decoded. No event
                is published in that case.
        """
        _, sep, fragment = url.partition("#")
        if not sep or not fragment:
            return False

        params = parse_query_string(fragment)

        if "error" in params:
            failure = AuthenticationFailure(
                error=params["error"],
                error_description=params.get("error_description"),
                error_usr_msg=params.get("error_usr_msg"),
            )
            debug(f"Callback reports error '{failure.error}'")
            self._events.emit_soon(AUTHENTICATION_FAILED, failure)
            return True

        if "id_token" in params:
            success = _authentication_success(params)
            debug("Callback carries an id_token")
            self._events.emit_soon(AUTHENTICATED, success)
            return True

        return False

    # ------------------------------------------------------------------ #
    # Session info
    # ------------------------------------------------------------------ #

    async def get_sso_data(self, options: OptionsLike = None) -> SessionData:
        """Fetch what the identity provider knows about the current session.

        Sends ``client_id`` and at most one hint: ``id_token_hint`` when
        given, otherwise ``login_hint``. Other option fields are ignored.
        The ambient session cookies are sent only when SSO is enabled.

        Raises:
            TransportError: On network failures, HTTP errors, or a response
                that is not a session-info object. Not retried.
        """
        opts = _coerce_options(options)

        params: dict[str, Any] = {"client_id": self._client_id}
        if opts.id_token_hint:
            params["id_token_hint"] = opts.id_token_hint
        elif opts.login_hint:
            params["login_hint"] = opts.login_hint

        url = f"{self._base_url}/identity/v1/sso/data?{to_query_string(params)}"
        payload = await self._transport.get_json(url, include_credentials=self._sso)

        if not isinstance(payload, Mapping):
            raise TransportError("Session info response is not a JSON object")
        try:
            return _session_data(payload)
        except ValueError as exc:
            raise TransportError(f"Invalid session info response: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Authorization code
    # ------------------------------------------------------------------ #

    async def exchange_authorization_code(
        self, code: str, redirect_uri: str
    ) -> AuthenticationSuccess:
        """Redeem an authorization code with the persisted PKCE verifier.

        The verifier is removed from the store as soon as it is read, so a
        code exchange can be attempted only once per login. On success an
        ``authenticated`` event is published and the tokens are returned.

        Args:
            code: The ``code`` query parameter of the callback URL.
            redirect_uri: The same redirect URI used for the login request.

        Raises:
            PreconditionError: If no (unexpired) verifier is stored.
            TransportError: If the token request fails or the response has
                no ``access_token``.
            MalformedCallbackError: If the returned ``id_token`` cannot be
                decoded.
        """
        verifier = self._verifier_store.load(self._verifier_key)
        if verifier is None:
            raise PreconditionError(
                f"No PKCE code verifier stored under '{self._verifier_key}'. "
                "Start the flow with login_from_session and a redirect_uri first."
            )
        self._verifier_store.remove(self._verifier_key)

        data = await self._transport.post_form(
            f"{self._base_url}/oauth/token",
            data={
                "client_id": self._client_id,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": verifier,
            },
        )
        if not isinstance(data, Mapping) or "access_token" not in data:
            raise TransportError("Token response missing 'access_token' field")

        success = _authentication_success(data)
        self._events.emit_soon(AUTHENTICATED, success)
        return success

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, redirect_to: Optional[str] = None) -> None:
        """End the identity provider session by navigating to its logout endpoint."""
        url = f"{self._base_url}/identity/v1/logout"
        query = to_query_string({"redirect_to": redirect_to})
        if query:
            url = f"{url}?{query}"
        self._navigator.navigate(url)


def create_client(
    profile: Profile,
    *,
    events: Optional[EventManager] = None,
    navigator: Optional[Navigator] = None,
    verifier_store: Optional[VerifierStore] = None,
    transport: Optional[HttpTransport] = None,
) -> ApiClient:
    """Create an :class:`ApiClient` configured from *profile*.

    Collaborators that are not supplied get their default implementation:
    a browser navigator, a file-backed verifier store honouring
    ``profile.verifier_max_age``, and an HTTP transport using
    ``profile.request``.
    """
    return ApiClient(
        profile.domain,
        profile.client_id,
        sso=profile.sso,
        events=events,
        navigator=navigator,
        verifier_store=verifier_store or FileVerifierStore(max_age=profile.verifier_max_age),
        transport=transport or HttpTransport(profile.request),
        verifier_key=profile.verifier_key,
    )
