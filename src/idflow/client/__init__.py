"""Identity-provider client for idflow.

Classes:
    :class:`ApiClient` -- silent login, callback parsing, session info,
    code exchange and logout for one identity-provider application.
    :class:`HttpTransport` -- non-blocking JSON transport backed by
    :class:`httpx.AsyncClient`.

Example::

    from idflow.client import create_client

    client = create_client(profile)
    async with client:
        session = await client.get_sso_data()
"""

from idflow.client.api_client import ApiClient, create_client
from idflow.client.http import HttpTransport

__all__ = ["ApiClient", "HttpTransport", "create_client"]
