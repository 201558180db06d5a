"""Unverified decoding of id_token claims.

The callback parser only needs the claims to hand them to the application;
signature verification belongs to whoever consumes the token server-side.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from idflow.exceptions import MalformedCallbackError


def decode_id_token_payload(id_token: str) -> dict[str, Any]:
    """Decode the payload (middle) segment of a JWT into a claims dict.

    Args:
        id_token: A compact-serialised JWT (``header.payload.signature``).

    Returns:
        The decoded claims.

    Raises:
        MalformedCallbackError: If the token does not have three segments,
            the payload is not valid base64url, is not UTF-8 JSON, or is not
            a JSON object.
    """
    parts = id_token.split(".")
    if len(parts) != 3:
        raise MalformedCallbackError(
            f"Invalid id_token: expected 3 segments, got {len(parts)}"
        )

    payload = parts[1]
    # JWT uses base64url without padding
    payload += "=" * (-len(payload) % 4)

    try:
        raw = base64.b64decode(payload, altchars=b"-_", validate=True)
        claims = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedCallbackError(f"Invalid id_token payload: {exc}") from exc

    if not isinstance(claims, dict):
        raise MalformedCallbackError("Invalid id_token payload: claims are not a JSON object")
    return claims
