"""Cryptographic and persistence helpers for the authorization-code branch.

- :func:`generate_pkce_pair` / :func:`compute_code_challenge` -- PKCE
  (:rfc:`7636`) with the ``S256`` method.
- :class:`VerifierStore` / :class:`FileVerifierStore` -- durable storage for
  the code verifier across the login redirect.
- :func:`decode_id_token_payload` -- unverified claims extraction from an
  id_token.
"""

from idflow.auth.pkce import CODE_CHALLENGE_METHOD, compute_code_challenge, generate_pkce_pair
from idflow.auth.tokens import decode_id_token_payload
from idflow.auth.verifier_store import FileVerifierStore, VerifierStore

__all__ = [
    "CODE_CHALLENGE_METHOD",
    "FileVerifierStore",
    "VerifierStore",
    "compute_code_challenge",
    "decode_id_token_payload",
    "generate_pkce_pair",
]
