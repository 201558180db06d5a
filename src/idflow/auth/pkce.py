"""PKCE verifier/challenge generation (:rfc:`7636`, ``S256`` only)."""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Optional

from idflow.models import PkcePair

CODE_CHALLENGE_METHOD = "S256"


def compute_code_challenge(code_verifier: str) -> str:
    """Derive the ``S256`` code challenge for *code_verifier*.

    The challenge is the unpadded base64url encoding of the SHA-256 digest
    of the ASCII verifier, so the same verifier always yields the same
    challenge.
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(code_verifier: Optional[str] = None) -> PkcePair:
    """Generate a PKCE pair, or rebuild one from an existing verifier.

    Args:
        code_verifier: Reuse this verifier instead of drawing a new one.

    Returns:
        A :class:`~idflow.models.PkcePair` with method ``S256``.
    """
    if code_verifier is None:
        # RFC 7636: 43-128 characters from unreserved character set
        code_verifier = secrets.token_urlsafe(64)[:128]
    return PkcePair(
        code_verifier=code_verifier,
        code_challenge=compute_code_challenge(code_verifier),
        code_challenge_method=CODE_CHALLENGE_METHOD,
    )
