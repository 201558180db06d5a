"""idflow -- Client-side silent authentication flows for a hosted identity provider.

This package drives the browser-side half of an OpenID Connect login against
a hosted identity provider: it silently re-authenticates a known user
(``prompt=none``), builds the PKCE pair for the authorization-code branch,
decodes the provider's redirect-back fragment into typed results, and
delivers those results to application listeners through a typed event bus.

Typical usage::

    from idflow.client import create_client

    client = create_client(profile)
    client.on("authenticated", lambda result: print(result.id_token_payload))
    client.parse_url_fragment(current_url)

Modules:
    app: Typer application and CLI entry point.
    client: ApiClient (silent login, callback parsing, session info) and its HTTP transport.
    auth: PKCE generation, verifier storage and id_token claim decoding.
    navigation: Browser navigation capability.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and profile management.
    events: Typed publish/subscribe registry for flow outcomes.
    querystring: Deterministic query-string encoding and decoding.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
